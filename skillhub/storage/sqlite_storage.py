# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SQLite Skill 记录存储

特点：
- 单文件持久化，适合单机部署
- 线程本地连接
- (user_id, identifier) 唯一索引，作为 identifier 并发冲突的唯一仲裁点
"""

import sqlite3
import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from skillhub.storage.base_storage import (
    SkillRecordStore,
    StorageError,
    ObjectNotFoundError,
    DuplicateRecordError,
)
from skillhub.storage.records import SkillRecord, SkillSource


class SQLiteSkillStore(SkillRecordStore):
    """
    SQLite Skill 记录存储

    使用示例:
    ```python
    store = SQLiteSkillStore("user_1", "./data/skills.db")
    record = store.create(identifier="user.user_1.1700000000000", name="demo")
    store.find_by_identifier("user.user_1.1700000000000")
    ```
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS agent_skills (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        identifier TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        content TEXT,
        manifest TEXT NOT NULL DEFAULT '{}',
        source TEXT NOT NULL DEFAULT 'user',
        resource_ids TEXT NOT NULL DEFAULT '{}',
        archive_hash TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE UNIQUE INDEX IF NOT EXISTS idx_skills_user_identifier
        ON agent_skills(user_id, identifier);
    CREATE INDEX IF NOT EXISTS idx_skills_source ON agent_skills(user_id, source);
    """

    _JSON_COLUMNS = ("manifest", "resource_ids")

    def __init__(
        self,
        user_id: str,
        path: Optional[str] = None,
        check_same_thread: bool = False,
    ):
        super().__init__(user_id)
        self.path = path
        self._check_same_thread = check_same_thread
        self._local = threading.local()
        # 内存数据库在连接之间不共享，只能复用同一连接
        self._shared_connection: Optional[sqlite3.Connection] = None

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """获取线程本地连接"""
        if not self.path:
            if self._shared_connection is None:
                self._shared_connection = self._connect(":memory:")
            return self._shared_connection

        if getattr(self._local, "connection", None) is None:
            db_path = Path(self.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._local.connection = self._connect(str(db_path))

        return self._local.connection

    def _connect(self, target: str) -> sqlite3.Connection:
        conn = sqlite3.connect(target, check_same_thread=self._check_same_thread)
        conn.row_factory = sqlite3.Row
        if target != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def _init_db(self):
        """初始化数据库表"""
        conn = self._get_connection()
        conn.executescript(self.SCHEMA)
        conn.commit()

    def _row_to_record(self, row: sqlite3.Row) -> SkillRecord:
        data = dict(row)
        for column in self._JSON_COLUMNS:
            data[column] = json.loads(data[column] or "{}")
        return SkillRecord.model_validate(data)

    # ==================== 写操作 ====================

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
        conn = self._get_connection()
        now = datetime.now(timezone.utc).isoformat()
        skill_id = f"skill_{uuid.uuid4().hex[:16]}"

        try:
            conn.execute(
                """INSERT INTO agent_skills
                   (id, user_id, identifier, name, description, content, manifest,
                    source, resource_ids, archive_hash, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    skill_id,
                    self.user_id,
                    identifier,
                    name,
                    description,
                    content,
                    json.dumps(manifest or {}, ensure_ascii=False, default=str),
                    SkillSource(source).value,
                    json.dumps(resource_ids or {}, ensure_ascii=False),
                    archive_hash,
                    now,
                    now,
                )
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise DuplicateRecordError(f"Skill identifier already exists: {identifier}") from e
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to create skill record: {e}") from e

        return self.find_by_id(skill_id)

    def update(self, skill_id: str, **fields: Any) -> SkillRecord:
        self._check_update_fields(fields)

        if self.find_by_id(skill_id) is None:
            raise ObjectNotFoundError(f"Skill record not found: {skill_id}")

        values: Dict[str, Any] = {}
        for column, value in fields.items():
            if column in self._JSON_COLUMNS:
                value = json.dumps(value or {}, ensure_ascii=False, default=str)
            values[column] = value
        values["updated_at"] = datetime.now(timezone.utc).isoformat()

        assignments = ", ".join(f"{column} = ?" for column in values)
        conn = self._get_connection()
        try:
            conn.execute(
                f"UPDATE agent_skills SET {assignments} WHERE id = ? AND user_id = ?",
                (*values.values(), skill_id, self.user_id)
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to update skill record {skill_id}: {e}") from e

        return self.find_by_id(skill_id)

    def delete(self, skill_id: str) -> bool:
        conn = self._get_connection()
        cursor = conn.execute(
            "DELETE FROM agent_skills WHERE id = ? AND user_id = ?",
            (skill_id, self.user_id)
        )
        conn.commit()
        return cursor.rowcount > 0

    # ==================== 查询 ====================

    def find_by_id(self, skill_id: str) -> Optional[SkillRecord]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM agent_skills WHERE id = ? AND user_id = ?",
            (skill_id, self.user_id)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def find_by_identifier(self, identifier: str) -> Optional[SkillRecord]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM agent_skills WHERE identifier = ? AND user_id = ?",
            (identifier, self.user_id)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def find_all(self) -> List[SkillRecord]:
        conn = self._get_connection()
        rows = conn.execute(
            "SELECT * FROM agent_skills WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (self.user_id,)
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def list_by_source(self, source: SkillSource) -> List[SkillRecord]:
        conn = self._get_connection()
        rows = conn.execute(
            """SELECT * FROM agent_skills WHERE user_id = ? AND source = ?
               ORDER BY created_at DESC, rowid DESC""",
            (self.user_id, SkillSource(source).value)
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def close(self):
        """关闭当前线程的连接"""
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            self._local.connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
