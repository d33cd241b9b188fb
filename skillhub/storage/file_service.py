# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
文件服务

组合对象存储与文件记录表，提供上传、记录创建、读取以及
「下载到本地临时文件」的作用域资源。
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union
import hashlib
import logging
import os
import tempfile

from skillhub.storage.base_storage import (
    ObjectStorage,
    FileRecordRegistry,
    ObjectNotFoundError,
)
from skillhub.storage.records import FileRecord

logger = logging.getLogger(__name__)


class FileService:
    """
    文件服务

    Args:
        object_storage: 原始字节存储
        registry: 文件记录表
        temp_dir: 临时文件目录，None 使用系统默认

    Example:
        >>> service = FileService(InMemoryObjectStorage(), InMemoryFileRegistry())
        >>> file_id = service.upload_file("skill.zip", data, "application/zip")
        >>> with service.download_file_to_local(file_id) as path:
        ...     print(path.stat().st_size)
    """

    def __init__(
        self,
        object_storage: ObjectStorage,
        registry: FileRecordRegistry,
        temp_dir: Optional[Union[str, Path]] = None,
    ):
        self.object_storage = object_storage
        self.registry = registry
        self.temp_dir = Path(temp_dir) if temp_dir else None

    @classmethod
    def from_config(cls, object_storage: ObjectStorage, registry: FileRecordRegistry, config) -> "FileService":
        """按 SkillHubConfig 创建，使用其中的 temp_dir"""
        return cls(object_storage, registry, temp_dir=config.temp_dir)

    def upload_buffer(self, key: str, data: bytes, content_type: str) -> None:
        """上传字节到对象存储"""
        self.object_storage.put(key, data, content_type)

    def create_file_record(
        self,
        file_hash: str,
        file_type: str,
        name: str,
        size: int,
        url: str,
    ) -> str:
        """创建文件记录（记录表按哈希去重），返回文件 ID"""
        return self.registry.create(file_hash, file_type, name, size, url)

    def upload_file(self, name: str, data: bytes, content_type: str) -> str:
        """
        上传一个用户文件并登记，返回文件 ID

        键为 files/<sha256>/<name>，相同内容复用同一对象。
        """
        file_hash = hashlib.sha256(data).hexdigest()
        key = f"files/{file_hash}/{name}"
        self.upload_buffer(key, data, content_type)
        return self.create_file_record(file_hash, content_type, name, len(data), key)

    def find_file(self, file_id: str) -> Optional[FileRecord]:
        return self.registry.find_by_id(file_id)

    def get_file_content(self, key: str) -> bytes:
        """
        读取对象内容

        Raises:
            ObjectNotFoundError: 对象不存在
        """
        return self.object_storage.get(key)

    @contextmanager
    def download_file_to_local(self, file_id: str) -> Iterator[Path]:
        """
        将文件下载到本地临时文件，退出作用域时无论成功失败都会删除

        使用示例:
        ```python
        with file_service.download_file_to_local(file_id) as path:
            data = path.read_bytes()
        ```

        Raises:
            ObjectNotFoundError: 文件记录或对象不存在
        """
        record = self.find_file(file_id)
        if record is None:
            raise ObjectNotFoundError(f"File record not found: {file_id}")

        data = self.get_file_content(record.url)

        suffix = Path(record.name).suffix
        fd, temp_name = tempfile.mkstemp(
            prefix="skill_upload_",
            suffix=suffix,
            dir=str(self.temp_dir) if self.temp_dir else None,
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            logger.debug(f"Downloaded file {file_id} to {temp_path} ({len(data)} bytes)")
            yield temp_path
        finally:
            temp_path.unlink(missing_ok=True)
            logger.debug(f"Removed temporary file {temp_path}")
