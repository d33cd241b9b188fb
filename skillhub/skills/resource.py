# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
Skill 资源存储

将 ZIP 包中提取的资源文件写入对象存储，键为
``<source_files_prefix>/<archive_hash>/<virtual_path>``，同一个 ZIP 的资源共享前缀；
文件记录表再按内容哈希去重。

资源按顺序逐个上传，中途失败时中止剩余部分，已上传的资源不回滚，
重新导入即可修复。
"""

from typing import Dict, List, Tuple
import hashlib
import logging
import mimetypes

from skillhub.storage import FileService, ObjectNotFoundError

from .models import ResourceTreeNode
from .exceptions import SkillResourceError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_SOURCE_FILES_PREFIX = "skills/source_files"


def guess_content_type(path: str) -> str:
    """按扩展名推断媒体类型"""
    content_type, _ = mimetypes.guess_type(path, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def build_tree(paths: List[str]) -> List[ResourceTreeNode]:
    """
    由平铺的虚拟路径构建目录树

    路径先按字典序排序，结果与输入顺序无关。

    Args:
        paths: 虚拟路径列表，如 ["assets/x.png", "README.md"]

    Returns:
        根层节点列表
    """
    root: List[ResourceTreeNode] = []
    nodes: Dict[Tuple[str, str], ResourceTreeNode] = {}

    for path in sorted(set(paths)):
        parts = path.split("/")
        current_path = ""
        current_level = root

        for i, part in enumerate(parts):
            is_file = i == len(parts) - 1
            current_path = f"{current_path}/{part}" if current_path else part
            node_type = "file" if is_file else "directory"

            node = nodes.get((current_path, node_type))
            if node is None:
                node = ResourceTreeNode(
                    name=part,
                    path=current_path,
                    type=node_type,
                    children=None if is_file else [],
                )
                nodes[(current_path, node_type)] = node
                current_level.append(node)

            if not is_file:
                current_level = node.children

    return root


class SkillResourceService:
    """
    Skill 资源服务

    Args:
        file_service: 文件服务（对象存储 + 文件记录表）
        source_files_prefix: 资源键前缀

    Example:
        >>> service = SkillResourceService(file_service)
        >>> ids = service.store_resources(parsed.archive_hash, parsed.resources)
        >>> service.read_resource(ids, "references/FORMS.md")
    """

    def __init__(self, file_service: FileService, source_files_prefix: str = DEFAULT_SOURCE_FILES_PREFIX):
        self.file_service = file_service
        self.source_files_prefix = source_files_prefix.rstrip("/")

    def store_resources(self, archive_hash: str, resources: Dict[str, bytes]) -> Dict[str, str]:
        """
        依次存储全部资源文件

        Args:
            archive_hash: ZIP 包哈希，用作键前缀
            resources: 虚拟路径 -> 内容

        Returns:
            虚拟路径 -> 文件记录 ID
        """
        logger.debug(f"Storing {len(resources)} resource(s) for archive {archive_hash}")
        result: Dict[str, str] = {}

        for virtual_path, data in resources.items():
            result[virtual_path] = self._store_resource(archive_hash, virtual_path, data)

        logger.info(f"Stored {len(result)} resource(s) for archive {archive_hash}")
        return result

    def _store_resource(self, archive_hash: str, virtual_path: str, data: bytes) -> str:
        key = f"{self.source_files_prefix}/{archive_hash}/{virtual_path}"
        content_type = guess_content_type(virtual_path)

        self.file_service.upload_buffer(key, data, content_type)

        file_id = self.file_service.create_file_record(
            file_hash=hashlib.sha256(data).hexdigest(),
            file_type=content_type,
            name=virtual_path.rsplit("/", 1)[-1],
            size=len(data),
            url=key,
        )
        logger.debug(f"Stored resource {virtual_path} -> {file_id} ({content_type}, {len(data)} bytes)")
        return file_id

    def read_resource(self, resource_ids: Dict[str, str], path: str) -> bytes:
        """
        读取资源文件内容

        Args:
            resource_ids: 虚拟路径 -> 文件记录 ID
            path: 虚拟路径

        Raises:
            SkillResourceError: 路径不在映射中，或映射的文件记录/对象不存在
        """
        file_id = resource_ids.get(path)
        if not file_id:
            raise SkillResourceError(f"Resource not found: {path}")

        record = self.file_service.find_file(file_id)
        if record is None:
            raise SkillResourceError(f"File record not found: {file_id}")

        try:
            return self.file_service.get_file_content(record.url)
        except ObjectNotFoundError as e:
            raise SkillResourceError(f"Resource content missing: {path}") from e

    def read_resource_text(self, resource_ids: Dict[str, str], path: str, encoding: str = "utf-8") -> str:
        """读取文本资源"""
        data = self.read_resource(resource_ids, path)
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            raise SkillResourceError(f"Resource '{path}' is not valid {encoding} text") from e

    def list_resources(self, resource_ids: Dict[str, str]) -> List[ResourceTreeNode]:
        """构建资源目录树"""
        return build_tree(list(resource_ids))
