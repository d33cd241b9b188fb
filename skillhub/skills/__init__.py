# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SkillHub Skills - Skill 包解析与导入组件

解析带 YAML frontmatter 的 SKILL.md 及其 ZIP 包，校验 manifest，
将资源文件写入按内容寻址的存储，并编排三种导入方式：
手动创建、上传 ZIP 导入、GitHub 仓库导入/更新。

快速开始：
    from skillhub.skills import SkillParser

    parsed = SkillParser().parse_archive(zip_bytes)
    print(parsed.manifest.name, list(parsed.resources))

导入到记录存储：
    from skillhub.skills import SkillImporter
    from skillhub.storage import FileService, InMemoryObjectStorage, InMemoryFileRegistry, create_record_store

    store = create_record_store("memory", user_id="user_1")
    file_service = FileService(InMemoryObjectStorage(), InMemoryFileRegistry())

    importer = SkillImporter(store, file_service)
    record = importer.import_from_repository("https://github.com/acme/tools/tree/main/skills/foo")
"""

from .importer import SkillImporter, build_repository_identifier
from .manager import SkillManager
from .models import (
    SKILL_MD_FILENAME,
    SkillAuthor,
    SkillManifest,
    ParsedPackage,
    ParsedArchivePackage,
    ResourceTreeNode,
    SkillRecord,
    SkillSource,
)
from .parser import (
    SkillParser,
    parse_frontmatter,
    validate_manifest,
    locate_manifest,
    infer_root_prefix,
    extract_resources,
    compute_archive_hash,
)
from .resource import SkillResourceService, build_tree, guess_content_type
from .exceptions import (
    SkillError,
    SkillParseError,
    SkillManifestError,
    SkillResourceError,
    SkillNotFoundError,
    SkillImportError,
    ImportErrorCode,
)

__all__ = [
    # 导入与管理
    "SkillImporter",
    "SkillManager",
    "build_repository_identifier",

    # 数据模型
    "SKILL_MD_FILENAME",
    "SkillAuthor",
    "SkillManifest",
    "ParsedPackage",
    "ParsedArchivePackage",
    "ResourceTreeNode",
    "SkillRecord",
    "SkillSource",

    # 解析器
    "SkillParser",
    "parse_frontmatter",
    "validate_manifest",
    "locate_manifest",
    "infer_root_prefix",
    "extract_resources",
    "compute_archive_hash",

    # 资源
    "SkillResourceService",
    "build_tree",
    "guess_content_type",

    # 异常
    "SkillError",
    "SkillParseError",
    "SkillManifestError",
    "SkillResourceError",
    "SkillNotFoundError",
    "SkillImportError",
    "ImportErrorCode",
]
