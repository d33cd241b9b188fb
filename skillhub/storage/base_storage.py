# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
Storage 抽象基类

定义 Skill 导入流程依赖的三类外部协作者接口，并提供内存实现：
- ObjectStorage:       原始字节的对象存储（S3 等）
- FileRecordRegistry:  文件记录表，按内容哈希去重
- SkillRecordStore:    按用户隔离的 Skill 记录存储
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import threading
import uuid

from skillhub.storage.records import FileRecord, SkillRecord, SkillSource


class StorageError(Exception):
    """存储组件基础异常"""
    pass


class ObjectNotFoundError(StorageError):
    """对象或文件记录不存在"""
    pass


class DuplicateRecordError(StorageError):
    """同一用户下 identifier 已存在"""
    pass


# ==================== 对象存储 ====================

class ObjectStorage(ABC):
    """
    对象存储抽象基类

    使用示例:
    ```python
    storage = InMemoryObjectStorage()
    storage.put("skills/source_files/<hash>/a.txt", b"hello", "text/plain")
    data = storage.get("skills/source_files/<hash>/a.txt")
    ```
    """

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> None:
        """
        写入对象

        Args:
            key: 对象键
            data: 内容
            content_type: 媒体类型
        """
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """
        读取对象

        Raises:
            ObjectNotFoundError: 键不存在
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """检查对象是否存在"""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """删除对象，返回是否存在过"""
        pass

    def content_type(self, key: str) -> Optional[str]:
        """获取对象的媒体类型（子类可重写）"""
        return None


class InMemoryObjectStorage(ObjectStorage):
    """
    内存对象存储

    用于测试或不需要持久化的场景
    """

    def __init__(self):
        self._objects: Dict[str, bytes] = {}
        self._types: Dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, content_type: str) -> None:
        with self._lock:
            self._objects[key] = bytes(data)
            self._types[key] = content_type

    def get(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(f"Object not found: {key}")
            return self._objects[key]

    def exists(self, key: str) -> bool:
        return key in self._objects

    def delete(self, key: str) -> bool:
        with self._lock:
            self._types.pop(key, None)
            return self._objects.pop(key, None) is not None

    def content_type(self, key: str) -> Optional[str]:
        return self._types.get(key)

    def keys(self) -> List[str]:
        return list(self._objects.keys())


# ==================== 文件记录 ====================

class FileRecordRegistry(ABC):
    """文件记录表抽象基类"""

    @abstractmethod
    def create(self, file_hash: str, file_type: str, name: str, size: int, url: str) -> str:
        """
        创建文件记录

        相同 file_hash 的记录已存在时直接复用。

        Returns:
            文件记录 ID
        """
        pass

    @abstractmethod
    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        """按 ID 查找文件记录，不存在返回 None"""
        pass

    @abstractmethod
    def delete(self, file_id: str) -> bool:
        """删除文件记录"""
        pass


class InMemoryFileRegistry(FileRecordRegistry):
    """内存文件记录表"""

    def __init__(self):
        self._records: Dict[str, FileRecord] = {}
        self._by_hash: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, file_hash: str, file_type: str, name: str, size: int, url: str) -> str:
        with self._lock:
            existing = self._by_hash.get(file_hash)
            if existing is not None and existing in self._records:
                return existing

            file_id = f"file_{uuid.uuid4().hex[:16]}"
            self._records[file_id] = FileRecord(
                id=file_id,
                file_hash=file_hash,
                file_type=file_type,
                name=name,
                size=size,
                url=url,
            )
            self._by_hash[file_hash] = file_id
            return file_id

    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        return self._records.get(file_id)

    def delete(self, file_id: str) -> bool:
        with self._lock:
            record = self._records.pop(file_id, None)
            if record is None:
                return False
            if self._by_hash.get(record.file_hash) == file_id:
                del self._by_hash[record.file_hash]
            return True

    def __len__(self) -> int:
        return len(self._records)


# ==================== Skill 记录 ====================

# update() 允许修改的字段
UPDATABLE_FIELDS = (
    "name",
    "description",
    "content",
    "manifest",
    "resource_ids",
    "archive_hash",
)


class SkillRecordStore(ABC):
    """
    Skill 记录存储抽象基类

    所有操作都限定在构造时传入的 user_id 范围内；
    (user_id, identifier) 唯一。
    """

    def __init__(self, user_id: str):
        self.user_id = user_id

    @abstractmethod
    def create(
        self,
        identifier: str,
        name: str,
        description: Optional[str] = None,
        content: Optional[str] = None,
        manifest: Optional[Dict[str, Any]] = None,
        source: SkillSource = SkillSource.USER,
        resource_ids: Optional[Dict[str, str]] = None,
        archive_hash: Optional[str] = None,
    ) -> SkillRecord:
        """
        创建记录

        Raises:
            DuplicateRecordError: identifier 已存在
            StorageError: 其他写入失败
        """
        pass

    @abstractmethod
    def update(self, skill_id: str, **fields: Any) -> SkillRecord:
        """
        更新记录，仅允许 UPDATABLE_FIELDS 中的字段

        Raises:
            ObjectNotFoundError: 记录不存在
        """
        pass

    @abstractmethod
    def find_by_id(self, skill_id: str) -> Optional[SkillRecord]:
        pass

    @abstractmethod
    def find_by_identifier(self, identifier: str) -> Optional[SkillRecord]:
        pass

    @abstractmethod
    def find_all(self) -> List[SkillRecord]:
        """按创建时间倒序返回全部记录"""
        pass

    @abstractmethod
    def delete(self, skill_id: str) -> bool:
        pass

    def list_by_source(self, source: SkillSource) -> List[SkillRecord]:
        source = SkillSource(source)
        return [r for r in self.find_all() if r.source == source]

    def search(self, query: str) -> List[SkillRecord]:
        """按名称、描述、identifier 模糊搜索（不区分大小写）"""
        needle = query.strip().lower()
        if not needle:
            return self.find_all()
        return [
            r for r in self.find_all()
            if needle in r.name.lower()
            or needle in (r.description or "").lower()
            or needle in r.identifier.lower()
        ]

    @staticmethod
    def _check_update_fields(fields: Dict[str, Any]) -> None:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise StorageError(f"Cannot update fields: {', '.join(sorted(unknown))}")


class SkillRecordTable:
    """
    内存记录表，记录与保护它的锁一起传递

    多个 InMemorySkillStore 共享同一个表时，identifier 唯一性检查在同一把锁下串行。
    """

    def __init__(self):
        self.records: Dict[str, SkillRecord] = {}
        self.lock = threading.RLock()

    def __len__(self) -> int:
        with self.lock:
            return len(self.records)


class InMemorySkillStore(SkillRecordStore):
    """
    内存 Skill 记录存储

    多个用户可共享同一个 SkillRecordTable，记录按 user_id 隔离。

    使用示例:
    ```python
    table = SkillRecordTable()
    alice = InMemorySkillStore("alice", shared=table)
    bob = InMemorySkillStore("bob", shared=table)
    ```
    """

    def __init__(self, user_id: str, shared: Optional[SkillRecordTable] = None):
        super().__init__(user_id)
        self._table = shared if shared is not None else SkillRecordTable()

    def _own(self) -> List[SkillRecord]:
        # 调用方需持有 self._table.lock
        return [r for r in self._table.records.values() if r.user_id == self.user_id]

    def create(
        self,
        identifier: str,
        name: str,
        description: Optional[str] = None,
        content: Optional[str] = None,
        manifest: Optional[Dict[str, Any]] = None,
        source: SkillSource = SkillSource.USER,
        resource_ids: Optional[Dict[str, str]] = None,
        archive_hash: Optional[str] = None,
    ) -> SkillRecord:
        with self._table.lock:
            if any(r.identifier == identifier for r in self._own()):
                raise DuplicateRecordError(f"Skill identifier already exists: {identifier}")

            record = SkillRecord(
                id=f"skill_{uuid.uuid4().hex[:16]}",
                user_id=self.user_id,
                identifier=identifier,
                name=name,
                description=description,
                content=content,
                manifest=dict(manifest or {}),
                source=SkillSource(source),
                resource_ids=dict(resource_ids or {}),
                archive_hash=archive_hash,
            )
            self._table.records[record.id] = record
            return record.model_copy(deep=True)

    def update(self, skill_id: str, **fields: Any) -> SkillRecord:
        self._check_update_fields(fields)
        with self._table.lock:
            record = self._table.records.get(skill_id)
            if record is None or record.user_id != self.user_id:
                raise ObjectNotFoundError(f"Skill record not found: {skill_id}")

            updated = record.model_copy(
                update={**fields, "updated_at": datetime.now(timezone.utc)},
                deep=True,
            )
            self._table.records[skill_id] = updated
            return updated.model_copy(deep=True)

    def find_by_id(self, skill_id: str) -> Optional[SkillRecord]:
        with self._table.lock:
            record = self._table.records.get(skill_id)
            if record is None or record.user_id != self.user_id:
                return None
            return record.model_copy(deep=True)

    def find_by_identifier(self, identifier: str) -> Optional[SkillRecord]:
        with self._table.lock:
            for record in self._own():
                if record.identifier == identifier:
                    return record.model_copy(deep=True)
        return None

    def find_all(self) -> List[SkillRecord]:
        with self._table.lock:
            records = sorted(self._own(), key=lambda r: r.created_at, reverse=True)
            return [r.model_copy(deep=True) for r in records]

    def delete(self, skill_id: str) -> bool:
        with self._table.lock:
            record = self._table.records.get(skill_id)
            if record is None or record.user_id != self.user_id:
                return False
            del self._table.records[skill_id]
            return True
