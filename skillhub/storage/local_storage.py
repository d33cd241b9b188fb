# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
本地目录对象存储

目录结构：
    <root>/objects/<key>       对象内容
    <root>/meta/<key>.json     媒体类型等元数据

内容与元数据分属两棵目录树，任何合法键（包括以 .json 结尾的键）都不会与元数据文件冲突。
适合开发调试或单机部署。
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from skillhub.storage.base_storage import ObjectStorage, ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)


class LocalObjectStorage(ObjectStorage):
    """
    本地目录对象存储

    使用示例:
    ```python
    storage = LocalObjectStorage("./data/storage")
    storage.put("skills/zip/abc.zip", data, "application/zip")
    ```
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser().resolve()
        self.objects_dir = self.root / "objects"
        self.meta_dir = self.root / "meta"
        self.objects_dir.mkdir(parents=True, exist_ok=True)
        self.meta_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        """键 -> 对象文件路径，拒绝逃逸出 objects 目录的键"""
        target = (self.objects_dir / key.lstrip("/")).resolve()
        try:
            target.relative_to(self.objects_dir)
        except ValueError:
            raise StorageError(f"Object key escapes storage root: '{key}'")
        if target == self.objects_dir:
            raise StorageError(f"Invalid object key: '{key}'")
        return target

    def _meta_path(self, target: Path) -> Path:
        relative = target.relative_to(self.objects_dir)
        return self.meta_dir / relative.parent / f"{relative.name}.json"

    def put(self, key: str, data: bytes, content_type: str) -> None:
        target = self._resolve(key)
        meta = self._meta_path(target)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            meta.parent.mkdir(parents=True, exist_ok=True)
            meta.write_text(json.dumps({"content_type": content_type}), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write object {key}: {e}") from e
        logger.debug(f"Stored object {key} ({len(data)} bytes, {content_type})")

    def get(self, key: str) -> bytes:
        target = self._resolve(key)
        if not target.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}")
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read object {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> bool:
        target = self._resolve(key)
        if not target.is_file():
            return False
        try:
            target.unlink()
            self._meta_path(target).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete object {key}: {e}") from e
        return True

    def content_type(self, key: str) -> Optional[str]:
        meta = self._meta_path(self._resolve(key))
        if not meta.is_file():
            return None
        return json.loads(meta.read_text(encoding="utf-8")).get("content_type")
