# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SKILL.md 与 Skill ZIP 包解析器

负责：
- 拆分 YAML frontmatter（由 --- 分隔符包裹）与 Markdown 正文
- 校验 manifest（必填字段 + 透传未知字段）
- 解析 ZIP 包：定位 SKILL.md、提取资源文件、计算整包哈希

ZIP 内 SKILL.md 的定位顺序：
    1. 指定子目录时：<根目录前缀><子目录>/SKILL.md（GitHub 归档包外层有 <repo>-<branch>/）
    2. 指定子目录时的回退：任意一层前缀下的 <子目录>/SKILL.md
    3. 根目录 SKILL.md
    4. 一级子目录 */SKILL.md
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import hashlib
import io
import logging
import re
import zipfile

import yaml
from pydantic import ValidationError

from .models import SkillManifest, ParsedPackage, ParsedArchivePackage, SKILL_MD_FILENAME
from .exceptions import SkillParseError, SkillManifestError

logger = logging.getLogger(__name__)

# frontmatter 分隔符正则，允许空 frontmatter
_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)(.*)\Z",
    re.DOTALL
)

_OPENING_RE = re.compile(r"\A---[ \t]*(?:\r?\n|\Z)")

_NESTED_SKILL_MD_RE = re.compile(r"^[^/]+/SKILL\.md$")

# macOS 压缩时附带的元数据目录
_MACOS_METADATA_DIR = "__MACOSX"

_REQUIRED_MESSAGES = {
    "name": "Skill name is required",
    "description": "Skill description is required",
}


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """
    解析 YAML frontmatter 和 Markdown 正文

    没有 frontmatter 时返回空字典和全文。

    Args:
        content: SKILL.md 的完整文本内容

    Returns:
        (frontmatter_dict, markdown_body) 元组

    Raises:
        SkillParseError: YAML 解析失败或 frontmatter 不是映射
    """
    text = content.lstrip("\ufeff")

    if not _OPENING_RE.match(text):
        return {}, text

    match = _FRONTMATTER_RE.match(text)
    if not match:
        raise SkillParseError(
            "Invalid frontmatter format: missing closing '---' delimiter"
        )

    yaml_str = match.group(1) or ""
    body = match.group(2)

    try:
        frontmatter = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise SkillParseError(f"YAML parsing failed: {e}", cause=e)

    if frontmatter is None:
        return {}, body

    if not isinstance(frontmatter, dict):
        raise SkillParseError(
            "Frontmatter must be a YAML mapping (key: value pairs). "
            f"Got: {type(frontmatter).__name__}"
        )

    return frontmatter, body


def _describe_error(error: Dict[str, Any]) -> str:
    """将单个 pydantic 错误转为违规说明"""
    loc = [str(part) for part in error.get("loc", ())]
    field = loc[0] if loc else ""

    if len(loc) == 1 and field in _REQUIRED_MESSAGES and error.get("type") in (
        "missing", "string_too_short"
    ):
        return _REQUIRED_MESSAGES[field]

    message = error.get("msg", "invalid value")
    if error.get("type") == "value_error" and error.get("ctx", {}).get("error"):
        message = str(error["ctx"]["error"])

    path = ".".join(loc)
    return f"{path}: {message}" if path else message


def validate_manifest(data: Any) -> SkillManifest:
    """
    校验 manifest 数据

    Args:
        data: frontmatter 解析出的原始数据

    Returns:
        SkillManifest 实例，未知字段原样保留

    Raises:
        SkillManifestError: 存在任何违规字段，消息中包含全部违规说明
    """
    if not isinstance(data, dict):
        raise SkillManifestError([
            f"Manifest must be a mapping, got {type(data).__name__}"
        ])

    try:
        return SkillManifest.model_validate(data)
    except ValidationError as e:
        raise SkillManifestError([_describe_error(err) for err in e.errors()])


def infer_root_prefix(paths: List[str]) -> Optional[str]:
    """
    推断 ZIP 的根目录前缀（如 "tools-main/"）

    取条目顺序中第一个带目录的路径的首段，含末尾分隔符；
    所有条目都在根目录时返回 None。
    """
    for path in paths:
        first_slash = path.find("/")
        if first_slash > 0:
            return path[:first_slash + 1]
    return None


def _normalize_hint(hint: str) -> str:
    return hint.strip("/")


def locate_manifest(paths: List[str], subdirectory_hint: Optional[str] = None) -> Optional[str]:
    """
    在 ZIP 条目中定位 SKILL.md，返回其路径；找不到时返回 None

    Args:
        paths: ZIP 条目路径列表（保持归档内顺序）
        subdirectory_hint: 仓库内子目录，如 "skills/foo"
    """
    entries = set(paths)

    if subdirectory_hint:
        hint = _normalize_hint(subdirectory_hint)

        root_prefix = infer_root_prefix(paths)
        if root_prefix:
            target = f"{root_prefix}{hint}/{SKILL_MD_FILENAME}"
            if target in entries:
                logger.debug(f"Located manifest via root prefix: {target}")
                return target

        pattern = re.compile(rf"^[^/]+/{re.escape(hint)}/SKILL\.md$")
        for path in paths:
            if pattern.match(path):
                logger.debug(f"Located manifest via hint pattern: {path}")
                return path

    # 根目录优先于子目录，与条目顺序无关
    if SKILL_MD_FILENAME in entries:
        return SKILL_MD_FILENAME

    for path in paths:
        if _NESTED_SKILL_MD_RE.match(path):
            return path

    return None


def _is_unsafe_path(path: str) -> bool:
    """路径是否可能逃逸出 Skill 目录"""
    if path.startswith("/") or "\\" in path:
        return True
    return any(part in ("", "..") for part in path.split("/"))


def extract_resources(entries: Dict[str, bytes], manifest_path: str) -> Dict[str, bytes]:
    """
    提取资源文件

    跳过目录、隐藏文件（完整路径或相对路径的任意一段以 . 开头）、__MACOSX、
    SKILL.md 本身以及 SKILL.md 所在目录之外的文件，
    返回路径相对于 SKILL.md 所在目录。

    Args:
        entries: ZIP 条目路径 -> 内容
        manifest_path: SKILL.md 在 ZIP 内的路径

    Returns:
        虚拟路径 -> 内容
    """
    base_path = manifest_path[:manifest_path.rfind("/") + 1] if "/" in manifest_path else ""
    resources: Dict[str, bytes] = {}

    for path, data in entries.items():
        if (
            path.endswith("/")
            or path.startswith(".")
            or _MACOS_METADATA_DIR in path.split("/")
            or path == manifest_path
        ):
            continue

        if base_path and not path.startswith(base_path):
            continue

        relative_path = path[len(base_path):]
        if not relative_path:
            continue

        # 相对路径中任何一段以 . 开头（.env、.git/config）都视为隐藏文件
        if any(part.startswith(".") and part != ".." for part in relative_path.split("/")):
            continue

        if _is_unsafe_path(relative_path):
            logger.warning(f"Skipping unsafe archive entry: {path!r}")
            continue

        resources[relative_path] = data

    return resources


def compute_archive_hash(data: bytes) -> str:
    """整个 ZIP 字节的 SHA-256 十六进制摘要"""
    return hashlib.sha256(data).hexdigest()


class SkillParser:
    """
    Skill 包解析器

    Args:
        max_archive_size: ZIP 字节数上限，None 表示不限制

    Example:
        >>> parser = SkillParser()
        >>> parsed = parser.parse_archive(zip_bytes, subdirectory_hint="skills/foo")
        >>> print(parsed.manifest.name, list(parsed.resources))
    """

    def __init__(self, max_archive_size: Optional[int] = None):
        self.max_archive_size = max_archive_size

    def parse_document(self, text: str) -> ParsedPackage:
        """
        解析 SKILL.md 文本

        Args:
            text: SKILL.md 原始内容

        Returns:
            ParsedPackage，正文已去除首尾空白

        Raises:
            SkillManifestError: manifest 校验失败（不包装，调用方可区分）
            SkillParseError: 其他解析失败
        """
        try:
            frontmatter, body = parse_frontmatter(text)
            manifest = validate_manifest(frontmatter)
        except (SkillManifestError, SkillParseError):
            raise
        except Exception as e:
            raise SkillParseError("Failed to parse SKILL.md", cause=e) from e

        return ParsedPackage(manifest=manifest, body=body.strip(), raw_document=text)

    def parse_archive(
        self,
        data: bytes,
        subdirectory_hint: Optional[str] = None,
        compute_hash: bool = True,
    ) -> ParsedArchivePackage:
        """
        解析 Skill ZIP 包

        Args:
            data: ZIP 字节
            subdirectory_hint: GitHub 子目录导入时的仓库内路径
            compute_hash: 是否计算 archive_hash

        Returns:
            ParsedArchivePackage

        Raises:
            SkillParseError: ZIP 损坏、找不到 SKILL.md、SKILL.md 解析失败
            SkillManifestError: manifest 校验失败
        """
        if self.max_archive_size is not None and len(data) > self.max_archive_size:
            raise SkillParseError(
                f"Archive is too large ({len(data)} bytes, max {self.max_archive_size})"
            )

        entries = self._unzip(data)

        manifest_path = locate_manifest(list(entries), subdirectory_hint)
        if manifest_path is None:
            raise SkillParseError("SKILL.md manifest not found in zip package")

        try:
            document = entries[manifest_path].decode("utf-8")
        except UnicodeDecodeError as e:
            raise SkillParseError(
                f"Failed to decode '{manifest_path}' as UTF-8", cause=e
            ) from e

        parsed = self.parse_document(document)
        resources = extract_resources(entries, manifest_path)
        archive_hash = compute_archive_hash(data) if compute_hash else None

        logger.info(
            f"Parsed skill package '{parsed.manifest.name}' "
            f"(manifest={manifest_path}, resources={len(resources)})"
        )

        return ParsedArchivePackage(
            manifest=parsed.manifest,
            body=parsed.body,
            raw_document=parsed.raw_document,
            resources=resources,
            archive_hash=archive_hash,
            manifest_path=manifest_path,
        )

    def parse_archive_file(
        self,
        file_path: Union[str, Path],
        subdirectory_hint: Optional[str] = None,
    ) -> ParsedArchivePackage:
        """
        从磁盘读取 ZIP 并解析

        Raises:
            SkillParseError: 文件读取失败或解析失败
            SkillManifestError: manifest 校验失败
        """
        try:
            data = Path(file_path).read_bytes()
        except OSError as e:
            raise SkillParseError(f"Failed to read ZIP file: {file_path}", cause=e) from e

        return self.parse_archive(data, subdirectory_hint=subdirectory_hint)

    @staticmethod
    def _unzip(data: bytes) -> Dict[str, bytes]:
        """解压为 路径 -> 内容 的平铺映射，保持归档内条目顺序"""
        entries: Dict[str, bytes] = {}

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                for info in zf.infolist():
                    name = info.filename
                    entries[name] = b"" if info.is_dir() else zf.read(info)
        except NotImplementedError as e:
            raise SkillParseError(f"Unsupported compression method: {e}", cause=e) from e
        except (zipfile.BadZipFile, zipfile.LargeZipFile, RuntimeError, ValueError, EOFError, OSError) as e:
            raise SkillParseError(f"Failed to unzip buffer: {e}", cause=e) from e

        return entries
