# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SkillHub Storage Component

Skill 导入流程依赖的存储协作者：对象存储、文件记录表、Skill 记录存储。

使用示例:
```python
from skillhub.storage import (
    FileService,
    InMemoryObjectStorage,
    InMemoryFileRegistry,
    create_record_store,
)

file_service = FileService(InMemoryObjectStorage(), InMemoryFileRegistry())

# 内存记录存储（适合测试）
store = create_record_store("memory", user_id="user_1")

# SQLite 记录存储（适合单机部署）
store = create_record_store("sqlite", user_id="user_1", path="./data/skills.db")
```
"""

from skillhub.storage.records import FileRecord, SkillRecord, SkillSource
from skillhub.storage.base_storage import (
    StorageError,
    ObjectNotFoundError,
    DuplicateRecordError,
    ObjectStorage,
    InMemoryObjectStorage,
    FileRecordRegistry,
    InMemoryFileRegistry,
    SkillRecordStore,
    SkillRecordTable,
    InMemorySkillStore,
    UPDATABLE_FIELDS,
)
from skillhub.storage.sqlite_storage import SQLiteSkillStore
from skillhub.storage.local_storage import LocalObjectStorage
from skillhub.storage.file_service import FileService


def create_record_store(
    storage_type: str = "memory",
    user_id: str = "",
    path: str = None,
    **kwargs
) -> SkillRecordStore:
    """
    创建 Skill 记录存储的工厂函数

    Args:
        storage_type: 存储类型 (memory, sqlite)
        user_id: 记录归属用户
        path: SQLite 数据库路径
        **kwargs: 传递给存储构造函数的额外参数

    Returns:
        SkillRecordStore 实例
    """
    if not user_id:
        raise ValueError("user_id is required")

    if storage_type == "memory":
        return InMemorySkillStore(user_id, **kwargs)
    if storage_type == "sqlite":
        return SQLiteSkillStore(user_id, path=path, **kwargs)

    raise ValueError(
        f"Unknown storage type: {storage_type}. "
        f"Available: ['memory', 'sqlite']"
    )


__all__ = [
    # 记录模型
    "FileRecord",
    "SkillRecord",
    "SkillSource",

    # 异常
    "StorageError",
    "ObjectNotFoundError",
    "DuplicateRecordError",

    # 对象存储
    "ObjectStorage",
    "InMemoryObjectStorage",
    "LocalObjectStorage",

    # 文件记录
    "FileRecordRegistry",
    "InMemoryFileRegistry",
    "FileService",

    # Skill 记录
    "SkillRecordStore",
    "SkillRecordTable",
    "InMemorySkillStore",
    "SQLiteSkillStore",
    "UPDATABLE_FIELDS",

    # 工厂函数
    "create_record_store",
]
