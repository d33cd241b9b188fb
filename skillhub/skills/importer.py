# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SkillImporter - Skill 导入编排

三种入口：
- create_user_skill:           用户手动创建
- import_from_archive_upload:  导入用户上传的 ZIP
- import_from_repository:      从 GitHub 仓库（可含子目录）导入或更新

仓库导入流程：
    解析地址 -> 下载 ZIP -> 解析 ZIP -> 存储资源 -> 写入记录

每一步失败都直接终止，本层不做重试。GitHub 与存储层的异常在离开本层前
统一转换为 SkillImportError：
- GitHub：INVALID_URL / NOT_FOUND / DOWNLOAD_FAILED
- 上传文件缺失：FILE_NOT_FOUND
- identifier 冲突：CONFLICT
- 其他存储写入失败（资源、归档、记录）：STORAGE_FAILED
解析与 manifest 校验异常原样抛出。
"""

from contextlib import ExitStack
from typing import Any, Dict, Optional
import logging
import time

from skillhub.config import SkillHubConfig
from skillhub.github import (
    GitHubClient,
    GitHubError,
    GitHubNotFoundError,
    GitHubParseError,
    RepositoryReference,
)
from skillhub.storage import (
    DuplicateRecordError,
    FileService,
    ObjectNotFoundError,
    SkillRecord,
    SkillRecordStore,
    SkillSource,
    StorageError,
)

from .models import ParsedArchivePackage
from .parser import SkillParser
from .resource import SkillResourceService
from .exceptions import ImportErrorCode, SkillImportError

logger = logging.getLogger(__name__)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def build_repository_identifier(reference: RepositoryReference) -> str:
    """
    仓库导入的 identifier：github.<owner>.<repo>[.<子目录，/ 替换为 .>]

    同一仓库 + 子目录重复导入得到相同 identifier。
    """
    suffix = f".{reference.subdirectory.replace('/', '.')}" if reference.subdirectory else ""
    return f"github.{reference.owner}.{reference.repo}{suffix}"


class SkillImporter:
    """
    Skill 导入器

    每个实例只服务一个用户；不同导入之间不共享可变状态。

    Args:
        record_store: 该用户的 Skill 记录存储
        file_service: 文件服务
        user_id: 用户 ID，默认取 record_store.user_id
        github: GitHub 客户端
        parser: Skill 包解析器
        resource_service: 资源服务
        config: 导入配置

    Example:
        >>> importer = SkillImporter(store, file_service)
        >>> record = importer.import_from_repository("https://github.com/acme/tools/tree/main/skills/foo")
        >>> print(record.identifier)
        github.acme.tools.skills.foo
    """

    def __init__(
        self,
        record_store: SkillRecordStore,
        file_service: FileService,
        user_id: Optional[str] = None,
        github: Optional[GitHubClient] = None,
        parser: Optional[SkillParser] = None,
        resource_service: Optional[SkillResourceService] = None,
        config: Optional[SkillHubConfig] = None,
    ):
        self.config = config or SkillHubConfig()
        self.record_store = record_store
        self.file_service = file_service
        self.user_id = user_id or record_store.user_id
        self.github = github or GitHubClient(
            user_agent=self.config.user_agent,
            timeout=self.config.request_timeout,
        )
        self.parser = parser or SkillParser(max_archive_size=self.config.max_archive_size)
        self.resource_service = resource_service or SkillResourceService(
            file_service, source_files_prefix=self.config.source_files_prefix
        )

    # 手动创建
    def create_user_skill(
        self,
        name: str,
        content: str,
        description: Optional[str] = None,
        identifier: Optional[str] = None,
    ) -> SkillRecord:
        """
        用户手动创建 Skill

        Args:
            name: 名称
            content: 正文内容
            description: 描述
            identifier: 自定义 identifier，默认 user.<user_id>.<毫秒时间戳>

        Raises:
            SkillImportError(CONFLICT): identifier 已存在
        """
        identifier = identifier or f"user.{self.user_id}.{_timestamp_ms()}"

        if self.record_store.find_by_identifier(identifier) is not None:
            raise SkillImportError(
                f'Skill with identifier "{identifier}" already exists',
                ImportErrorCode.CONFLICT,
            )

        manifest = {"name": name, "description": description or ""}

        record = self._create_record(
            identifier=identifier,
            name=name,
            description=description,
            content=content,
            manifest=manifest,
            source=SkillSource.USER,
        )
        logger.info(f"Created user skill '{name}' ({record.id}, identifier={identifier})")
        return record

    # ZIP 上传导入
    def import_from_archive_upload(self, file_id: str) -> SkillRecord:
        """
        导入用户上传的 ZIP 文件

        上传文件先下载到本地临时文件，无论成功失败退出时都会删除。

        Args:
            file_id: 上传文件的文件记录 ID

        Raises:
            SkillImportError(FILE_NOT_FOUND): 上传文件不存在
            SkillImportError(STORAGE_FAILED): 读取上传文件或写入资源、记录失败
            SkillParseError / SkillManifestError: ZIP 或 manifest 无效
        """
        logger.info(f"Importing skill from uploaded archive {file_id}")

        with ExitStack() as stack:
            try:
                local_path = stack.enter_context(
                    self.file_service.download_file_to_local(file_id)
                )
            except ObjectNotFoundError as e:
                raise SkillImportError(str(e), ImportErrorCode.FILE_NOT_FOUND) from e
            except StorageError as e:
                raise SkillImportError(
                    f"Failed to read uploaded file {file_id}: {e}",
                    ImportErrorCode.STORAGE_FAILED,
                ) from e

            parsed = self.parser.parse_archive_file(local_path)
            resource_ids = self._store_resources(parsed)

            identifier = f"import.{self.user_id}.{_timestamp_ms()}"
            record = self._create_record(
                identifier=identifier,
                name=parsed.manifest.name,
                description=parsed.manifest.description,
                content=parsed.body,
                manifest=parsed.manifest.to_dict(),
                source=SkillSource.USER,
                resource_ids=resource_ids,
                archive_hash=parsed.archive_hash,
            )

        logger.info(
            f"Imported skill '{record.name}' from archive upload "
            f"({record.id}, resources={len(resource_ids)})"
        )
        return record

    # GitHub 仓库导入
    def import_from_repository(self, url: str, branch: Optional[str] = None) -> SkillRecord:
        """
        从 GitHub 仓库导入 Skill，已导入过则原地更新

        Args:
            url: 仓库地址，支持 tree/<branch>/<子目录>
            branch: 地址未指定分支时使用的分支

        Raises:
            SkillImportError: INVALID_URL / NOT_FOUND / DOWNLOAD_FAILED / STORAGE_FAILED
            SkillParseError / SkillManifestError: ZIP 或 manifest 无效
        """
        logger.info(f"Importing skill from repository {url} (branch={branch})")

        reference = self._resolve_reference(url, branch)
        archive = self._fetch_archive(reference)

        parsed = self.parser.parse_archive(archive, subdirectory_hint=reference.subdirectory)
        resource_ids = self._store_resources(parsed)

        identifier = build_repository_identifier(reference)
        manifest = self._with_provenance(parsed.manifest.to_dict(), url, reference)

        if parsed.archive_hash:
            self._store_archive(parsed.archive_hash, archive, reference)

        existing = self.record_store.find_by_identifier(identifier)
        if existing is not None:
            record = self._update_record(
                existing.id,
                name=parsed.manifest.name,
                description=parsed.manifest.description,
                content=parsed.body,
                manifest=manifest,
                resource_ids=resource_ids,
                archive_hash=parsed.archive_hash,
            )
            logger.info(f"Updated skill '{record.name}' ({record.id}) from {reference}")
            return record

        record = self._create_record(
            identifier=identifier,
            name=parsed.manifest.name,
            description=parsed.manifest.description,
            content=parsed.body,
            manifest=manifest,
            source=SkillSource.MARKET,
            resource_ids=resource_ids,
            archive_hash=parsed.archive_hash,
        )
        logger.info(f"Created skill '{record.name}' ({record.id}) from {reference}")
        return record

    # 内部步骤
    def _resolve_reference(self, url: str, branch: Optional[str]) -> RepositoryReference:
        try:
            reference = self.github.parse_repo_url(url, branch or self.config.default_branch)
        except GitHubParseError as e:
            raise SkillImportError(str(e), ImportErrorCode.INVALID_URL) from e
        logger.debug(f"Resolved repository reference {reference}")
        return reference

    def _fetch_archive(self, reference: RepositoryReference) -> bytes:
        try:
            return self.github.download_archive(reference)
        except GitHubNotFoundError as e:
            raise SkillImportError(str(e), ImportErrorCode.NOT_FOUND) from e
        except GitHubError as e:
            raise SkillImportError(
                f"Failed to download GitHub repository: {e}",
                ImportErrorCode.DOWNLOAD_FAILED,
            ) from e

    def _store_resources(self, parsed: ParsedArchivePackage) -> Dict[str, str]:
        if not parsed.archive_hash:
            return {}
        try:
            return self.resource_service.store_resources(parsed.archive_hash, parsed.resources)
        except StorageError as e:
            raise SkillImportError(
                f"Failed to store skill resources: {e}",
                ImportErrorCode.STORAGE_FAILED,
            ) from e

    def _store_archive(self, archive_hash: str, archive: bytes, reference: RepositoryReference) -> None:
        """保存仓库 ZIP 本身，使记录中的 archive_hash 指向实际对象"""
        key = f"{self.config.archive_prefix}/{archive_hash}.zip"
        try:
            self.file_service.upload_buffer(key, archive, "application/zip")
            self.file_service.create_file_record(
                file_hash=archive_hash,
                file_type="application/zip",
                name=f"{reference.repo}.zip",
                size=len(archive),
                url=key,
            )
        except StorageError as e:
            raise SkillImportError(
                f"Failed to store repository archive: {e}",
                ImportErrorCode.STORAGE_FAILED,
            ) from e
        logger.debug(f"Stored repository archive {key} ({len(archive)} bytes)")

    @staticmethod
    def _with_provenance(manifest: Dict[str, Any], url: str, reference: RepositoryReference) -> Dict[str, Any]:
        """合并来源信息，覆盖 manifest 中的同名字段"""
        git_url = url.strip()
        if not git_url.startswith(("http://", "https://")):
            git_url = reference.repository_url
            if reference.subdirectory:
                git_url += f"/tree/{reference.branch}/{reference.subdirectory}"
        return {
            **manifest,
            "gitUrl": git_url,
            "repository": reference.repository_url,
        }

    def _create_record(self, identifier: str, **fields: Any) -> SkillRecord:
        try:
            return self.record_store.create(identifier=identifier, **fields)
        except DuplicateRecordError as e:
            raise SkillImportError(
                f'Skill with identifier "{identifier}" already exists',
                ImportErrorCode.CONFLICT,
            ) from e
        except StorageError as e:
            raise SkillImportError(
                f"Failed to create skill record {identifier}: {e}",
                ImportErrorCode.STORAGE_FAILED,
            ) from e

    def _update_record(self, skill_id: str, **fields: Any) -> SkillRecord:
        try:
            return self.record_store.update(skill_id, **fields)
        except StorageError as e:
            raise SkillImportError(
                f"Failed to update skill record {skill_id}: {e}",
                ImportErrorCode.STORAGE_FAILED,
            ) from e
