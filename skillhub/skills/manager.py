# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SkillManager - Skill 记录查询与维护

面向上层请求处理层的记录级接口：查询、搜索、更新、删除，
以及按记录读取资源文件、生成资源目录树。导入流程见 SkillImporter。

基础用法：
    manager = SkillManager(store, file_service)

    for record in manager.list(source=SkillSource.MARKET):
        print(record.identifier)

    tree = manager.list_resources(record.id)
    data = manager.read_resource(record.id, "references/FORMS.md")
"""

from typing import Any, Dict, List, Optional
import logging

from skillhub.storage import FileService, ObjectNotFoundError, SkillRecordStore

from .models import ResourceTreeNode, SkillRecord, SkillSource
from .resource import SkillResourceService
from .exceptions import SkillNotFoundError, SkillResourceError

logger = logging.getLogger(__name__)


class SkillManager:
    """
    Skill 记录管理器

    Args:
        record_store: 用户范围内的 Skill 记录存储
        file_service: 文件服务，用于读取资源
        resource_service: 资源服务，默认基于 file_service 创建

    Example:
        >>> manager = SkillManager(store, file_service)
        >>> record = manager.get_by_identifier("github.acme.tools.skills.foo")
        >>> manager.read_resource(record.id, "assets/x.png")
    """

    def __init__(
        self,
        record_store: SkillRecordStore,
        file_service: FileService,
        resource_service: Optional[SkillResourceService] = None,
    ):
        self.record_store = record_store
        self.resource_service = resource_service or SkillResourceService(file_service)

    # ==================== 查询 ====================

    def get(self, skill_id: str) -> SkillRecord:
        """
        按 ID 获取记录

        Raises:
            SkillNotFoundError: 记录不存在
        """
        record = self.record_store.find_by_id(skill_id)
        if record is None:
            raise SkillNotFoundError(skill_id)
        return record

    def get_by_identifier(self, identifier: str) -> SkillRecord:
        record = self.record_store.find_by_identifier(identifier)
        if record is None:
            raise SkillNotFoundError(identifier)
        return record

    def list(self, source: Optional[SkillSource] = None) -> List[SkillRecord]:
        """列出记录，可按来源过滤，按创建时间倒序"""
        if source is None:
            return self.record_store.find_all()
        return self.record_store.list_by_source(source)

    def search(self, query: str) -> List[SkillRecord]:
        return self.record_store.search(query)

    # ==================== 维护 ====================

    def update(
        self,
        skill_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        content: Optional[str] = None,
        manifest: Optional[Dict[str, Any]] = None,
    ) -> SkillRecord:
        """
        更新记录的基本信息

        未传入的字段保持不变；manifest 为增量合并。

        Args:
            skill_id: 记录 ID
            name: 新名称
            description: 新描述
            content: 新正文
            manifest: 需要合并进 manifest 的字段

        Raises:
            SkillNotFoundError: 记录不存在
        """
        record = self.get(skill_id)

        fields: Dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if description is not None:
            fields["description"] = description
        if content is not None:
            fields["content"] = content
        if manifest:
            fields["manifest"] = {**record.manifest, **manifest}

        if not fields:
            return record

        try:
            updated = self.record_store.update(skill_id, **fields)
        except ObjectNotFoundError as e:
            raise SkillNotFoundError(skill_id) from e

        logger.info(f"Updated skill {skill_id} ({', '.join(sorted(fields))})")
        return updated

    def delete(self, skill_id: str) -> None:
        """
        删除记录

        资源文件按内容哈希共享，删除记录时不删除资源。

        Raises:
            SkillNotFoundError: 记录不存在
        """
        if not self.record_store.delete(skill_id):
            raise SkillNotFoundError(skill_id)
        logger.info(f"Deleted skill {skill_id}")

    # ==================== 资源 ====================

    def list_resources(self, skill_id: str) -> List[ResourceTreeNode]:
        """记录的资源目录树，没有资源时返回空列表"""
        record = self.get(skill_id)
        if not record.resource_ids:
            return []
        return self.resource_service.list_resources(record.resource_ids)

    def read_resource(self, skill_id: str, path: str) -> bytes:
        """
        读取记录中的资源文件

        Raises:
            SkillNotFoundError: 记录不存在
            SkillResourceError: 记录没有资源，或资源不存在
        """
        record = self.get(skill_id)
        if not record.resource_ids:
            raise SkillResourceError(f"Skill '{skill_id}' has no resources")

        data = self.resource_service.read_resource(record.resource_ids, path)
        logger.debug(f"Read resource {path} of skill {skill_id} ({len(data)} bytes)")
        return data
