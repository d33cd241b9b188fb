# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
Skills 组件异常定义

所有 Skill 相关异常均继承自 SkillError，方便统一捕获。

异常层级：
    SkillError
    ├── SkillParseError          # SKILL.md / ZIP 解析失败
    ├── SkillManifestError       # manifest 校验不通过
    ├── SkillResourceError       # 资源文件访问失败
    ├── SkillNotFoundError       # 指定 ID 的 Skill 记录不存在
    └── SkillImportError         # 导入流程失败（带错误码）
"""

from enum import Enum
from typing import List, Optional


class SkillError(Exception):
    """Skills 模块基础异常"""
    pass


class SkillParseError(SkillError):
    """SKILL.md 或 ZIP 包解析失败

    常见原因：
    - YAML frontmatter 格式错误
    - ZIP 文件损坏或加密
    - 包内找不到 SKILL.md
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class SkillManifestError(SkillError):
    """manifest 校验不通过

    violations 保存全部违规字段的说明，消息中按顺序拼接。
    """

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        detail = ", ".join(self.violations)
        super().__init__(f"Invalid skill manifest: {detail}")


class SkillResourceError(SkillError):
    """Skill 资源文件访问失败

    常见原因：
    - 资源路径不在 resource_ids 映射中
    - 映射的文件记录已被删除
    """
    pass


class SkillNotFoundError(SkillError):
    """指定 ID 的 Skill 记录不存在"""

    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(f"Skill '{skill_id}' not found.")


class ImportErrorCode(str, Enum):
    """导入失败的错误码，由传输层映射为用户可见状态"""
    CONFLICT = "CONFLICT"
    INVALID_URL = "INVALID_URL"
    NOT_FOUND = "NOT_FOUND"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    STORAGE_FAILED = "STORAGE_FAILED"      # 资源、归档或记录写入失败


class SkillImportError(SkillError):
    """导入流程失败

    底层异常（GitHub、存储）在越过导入器边界前统一转换为此异常，
    code 字段提供稳定的判别值。
    """

    def __init__(self, message: str, code: ImportErrorCode):
        self.code = ImportErrorCode(code)
        super().__init__(message)

    def __repr__(self) -> str:
        return f"SkillImportError(code={self.code.value!r}, message={str(self)!r})"
