# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
存储层记录模型

SkillRecord 由记录存储持有；导入流程只读写其中的字段。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SkillSource(str, Enum):
    """Skill 来源"""
    USER = "user"           # 用户手动创建或上传
    MARKET = "market"       # 从 GitHub 仓库导入
    BUILTIN = "builtin"     # 系统内置


class SkillRecord(BaseModel):
    """
    持久化的 Skill 记录

    identifier 在同一用户下唯一；resource_ids 是唯一长期保存的资源信息，
    目录树按需计算，不入库。
    """

    id: str
    user_id: str
    identifier: str
    name: str
    description: Optional[str] = None
    content: Optional[str] = None
    manifest: Dict[str, Any] = Field(default_factory=dict)
    source: SkillSource = SkillSource.USER
    resource_ids: Dict[str, str] = Field(default_factory=dict)
    archive_hash: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def __str__(self) -> str:
        return f"SkillRecord(id='{self.id}', identifier='{self.identifier}', source='{self.source.value}')"


@dataclass
class FileRecord:
    """文件记录"""
    id: str
    file_hash: str
    file_type: str
    name: str
    size: int
    url: str
    created_at: datetime = field(default_factory=_utcnow)
