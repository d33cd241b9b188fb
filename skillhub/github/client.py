# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
GitHub 仓库解析与下载

支持的仓库地址格式：
- owner/repo
- github.com/owner/repo、https://github.com/owner/repo
- https://github.com/owner/repo/tree/<branch>
- https://github.com/owner/repo/tree/<branch>/<subdirectory...>
- 以上任一格式带 .git 后缀

已知限制：tree/ 之后的第一段总被视为完整分支名，含 / 的分支名无法与子目录区分。
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import re

import requests

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "SkillHub"

_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+$")

_REPO_URL_RE = re.compile(
    r"^(?:https?://)?github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/tree/([^/]+)(?:/(.+?))?)?/?$"
)


class GitHubError(Exception):
    """GitHub 组件基础异常"""
    pass


class GitHubParseError(GitHubError):
    """仓库地址无法解析"""
    pass


class GitHubNotFoundError(GitHubError):
    """仓库、分支或文件不存在（HTTP 404）"""
    pass


class GitHubDownloadError(GitHubError):
    """其他下载失败（非 2xx 状态或网络错误）"""
    pass


@dataclass
class RepositoryReference:
    """解析后的仓库引用"""
    owner: str
    repo: str
    branch: str
    subdirectory: Optional[str] = None

    @property
    def repository_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    def __str__(self) -> str:
        ref = f"{self.owner}/{self.repo}@{self.branch}"
        if self.subdirectory:
            ref += f":{self.subdirectory}"
        return ref


class GitHubClient:
    """
    GitHub 仓库客户端

    Args:
        user_agent: 请求头 User-Agent
        timeout: 请求超时（秒），None 表示不设超时
        session: 可选的 requests.Session

    Example:
        >>> client = GitHubClient(user_agent="SkillHub-Skill-Importer")
        >>> ref = client.parse_repo_url("https://github.com/acme/tools/tree/main/skills/foo")
        >>> data = client.download_archive(ref)
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.timeout = timeout
        self.session = session

    # 地址解析
    def parse_repo_url(self, url: str, default_branch: str = "main") -> RepositoryReference:
        """
        解析仓库地址

        Args:
            url: 仓库地址
            default_branch: 地址未指定分支时使用的分支

        Returns:
            RepositoryReference

        Raises:
            GitHubParseError: 主机不是 github.com 或路径段不匹配
        """
        url = (url or "").strip()
        default_branch = default_branch or "main"

        if _SHORTHAND_RE.match(url) and not url.lower().startswith("github.com/"):
            owner, repo = url.split("/")
            if repo.endswith(".git"):
                repo = repo[:-len(".git")]
            reference = RepositoryReference(owner=owner, repo=repo, branch=default_branch)
            logger.debug(f"Parsed shorthand repository reference: {reference}")
            return reference

        match = _REPO_URL_RE.match(url)
        if not match:
            raise GitHubParseError(f"Invalid GitHub URL format: {url}")

        owner, repo, branch, subdirectory = match.groups()
        if repo.endswith(".git"):
            repo = repo[:-len(".git")]

        reference = RepositoryReference(
            owner=owner,
            repo=repo,
            branch=branch or default_branch,
            subdirectory=subdirectory or None,
        )
        logger.debug(f"Parsed repository reference: {reference}")
        return reference

    def build_archive_url(self, reference: RepositoryReference) -> str:
        """分支 ZIP 归档下载地址"""
        return (
            f"https://github.com/{reference.owner}/{reference.repo}"
            f"/archive/refs/heads/{reference.branch}.zip"
        )

    def build_raw_file_url(self, reference: RepositoryReference, file_path: str) -> str:
        """单个文件的原始内容地址"""
        return (
            f"https://raw.githubusercontent.com/{reference.owner}/{reference.repo}"
            f"/{reference.branch}/{file_path.lstrip('/')}"
        )

    # 下载
    def download_archive(self, reference: RepositoryReference) -> bytes:
        """
        下载仓库分支 ZIP

        Raises:
            GitHubNotFoundError: 仓库或分支不存在
            GitHubDownloadError: 其他下载失败
        """
        url = self.build_archive_url(reference)
        logger.info(f"Downloading repository archive {url}")

        response = self._get(url)
        if response.status_code == 404:
            raise GitHubNotFoundError(
                f"Repository not found: {reference.owner}/{reference.repo}@{reference.branch}"
            )
        self._raise_for_status(response, "repository")

        data = response.content
        logger.info(f"Downloaded {len(data)} bytes from {url}")
        return data

    def download_raw_file(self, reference: RepositoryReference, file_path: str) -> str:
        """下载单个文件（文本）"""
        response = self._get_raw(reference, file_path)
        return response.text

    def download_raw_file_bytes(self, reference: RepositoryReference, file_path: str) -> bytes:
        """下载单个文件（字节）"""
        response = self._get_raw(reference, file_path)
        return response.content

    def _get_raw(self, reference: RepositoryReference, file_path: str) -> requests.Response:
        url = self.build_raw_file_url(reference, file_path)
        logger.debug(f"Downloading raw file {url}")

        response = self._get(url)
        if response.status_code == 404:
            raise GitHubNotFoundError(
                f"File not found: {reference.owner}/{reference.repo}@{reference.branch}/{file_path}"
            )
        self._raise_for_status(response, "file")
        return response

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent}

    def _get(self, url: str) -> requests.Response:
        getter = self.session.get if self.session is not None else requests.get
        try:
            return getter(url, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise GitHubDownloadError(f"Network error: {e}") from e

    @staticmethod
    def _raise_for_status(response: requests.Response, what: str) -> None:
        if not response.ok:
            raise GitHubDownloadError(
                f"Failed to download {what}: {response.status_code} {response.reason}"
            )
