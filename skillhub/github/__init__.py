# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
SkillHub GitHub - 仓库地址解析与归档下载

    from skillhub.github import GitHubClient

    client = GitHubClient(user_agent="SkillHub-Skill-Importer")
    ref = client.parse_repo_url("https://github.com/acme/tools/tree/main/skills/foo")
    zip_bytes = client.download_archive(ref)
"""

from .client import (
    GitHubClient,
    RepositoryReference,
    GitHubError,
    GitHubParseError,
    GitHubNotFoundError,
    GitHubDownloadError,
)

__all__ = [
    "GitHubClient",
    "RepositoryReference",
    "GitHubError",
    "GitHubParseError",
    "GitHubNotFoundError",
    "GitHubDownloadError",
]
