# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""Tests for repository URL parsing and downloads. No network access."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from skillhub.github import (
    GitHubClient,
    GitHubDownloadError,
    GitHubNotFoundError,
    GitHubParseError,
    RepositoryReference,
)


@pytest.fixture
def client():
    return GitHubClient(user_agent="SkillHub-Skill-Importer")


def _response(status_code=200, content=b"", text="", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = content
    response.text = text
    response.reason = reason
    return response


# ==================== parse_repo_url ====================

@pytest.mark.parametrize("url, expected", [
    ("acme/tools", ("acme", "tools", "main", None)),
    ("acme/tools.git", ("acme", "tools", "main", None)),
    ("github.com/acme/tools", ("acme", "tools", "main", None)),
    ("https://github.com/acme/tools", ("acme", "tools", "main", None)),
    ("http://github.com/acme/tools.git", ("acme", "tools", "main", None)),
    ("https://github.com/acme/tools/", ("acme", "tools", "main", None)),
    ("https://github.com/acme/tools/tree/dev", ("acme", "tools", "dev", None)),
    ("https://github.com/acme/tools.git/tree/dev", ("acme", "tools", "dev", None)),
    ("https://github.com/acme/tools/tree/main/skills/foo", ("acme", "tools", "main", "skills/foo")),
    ("https://github.com/acme/tools/tree/main/skills/foo/", ("acme", "tools", "main", "skills/foo")),
    ("  https://github.com/acme/my.tools  ", ("acme", "my.tools", "main", None)),
])
def test_parse_repo_url_forms(client, url, expected):
    ref = client.parse_repo_url(url)
    assert (ref.owner, ref.repo, ref.branch, ref.subdirectory) == expected


def test_parse_repo_url_default_branch(client):
    assert client.parse_repo_url("acme/tools", "develop").branch == "develop"
    assert client.parse_repo_url("https://github.com/acme/tools/tree/v2", "develop").branch == "v2"


def test_branch_with_slash_is_not_disambiguated(client):
    """The first segment after tree/ is always the whole branch name."""
    ref = client.parse_repo_url("https://github.com/acme/tools/tree/feature/x/skills")
    assert ref.branch == "feature"
    assert ref.subdirectory == "x/skills"


@pytest.mark.parametrize("url", [
    "",
    "tools",
    "https://gitlab.com/acme/tools",
    "https://github.com/acme",
    "github.com/acme",
    "https://github.com/acme/tools/blob/main/SKILL.md",
    "not a url at all",
])
def test_parse_repo_url_rejects(client, url):
    with pytest.raises(GitHubParseError, match="Invalid GitHub URL format"):
        client.parse_repo_url(url)


def test_reference_helpers():
    ref = RepositoryReference(owner="acme", repo="tools", branch="main", subdirectory="skills/foo")
    assert ref.repository_url == "https://github.com/acme/tools"
    assert str(ref) == "acme/tools@main:skills/foo"


# ==================== URLs ====================

def test_build_archive_url(client):
    ref = RepositoryReference(owner="acme", repo="tools", branch="dev")
    assert client.build_archive_url(ref) == "https://github.com/acme/tools/archive/refs/heads/dev.zip"


def test_build_raw_file_url(client):
    ref = RepositoryReference(owner="acme", repo="tools", branch="main")
    assert (
        client.build_raw_file_url(ref, "skills/foo/SKILL.md")
        == "https://raw.githubusercontent.com/acme/tools/main/skills/foo/SKILL.md"
    )


# ==================== downloads ====================

@patch("skillhub.github.client.requests.get")
def test_download_archive_sends_user_agent(mock_get, client):
    mock_get.return_value = _response(content=b"PK\x03\x04zip")
    ref = RepositoryReference(owner="acme", repo="tools", branch="main")

    assert client.download_archive(ref) == b"PK\x03\x04zip"
    mock_get.assert_called_once_with(
        "https://github.com/acme/tools/archive/refs/heads/main.zip",
        headers={"User-Agent": "SkillHub-Skill-Importer"},
        timeout=None,
    )


@patch("skillhub.github.client.requests.get")
def test_download_archive_not_found(mock_get, client):
    mock_get.return_value = _response(status_code=404, reason="Not Found")
    with pytest.raises(GitHubNotFoundError, match="Repository not found"):
        client.download_archive(RepositoryReference(owner="acme", repo="nope", branch="main"))


@patch("skillhub.github.client.requests.get")
def test_download_archive_server_error(mock_get, client):
    mock_get.return_value = _response(status_code=500, reason="Internal Server Error")
    with pytest.raises(GitHubDownloadError, match="500"):
        client.download_archive(RepositoryReference(owner="acme", repo="tools", branch="main"))


@patch("skillhub.github.client.requests.get")
def test_network_error_becomes_download_error(mock_get, client):
    mock_get.side_effect = requests.exceptions.ConnectionError("connection refused")
    with pytest.raises(GitHubDownloadError):
        client.download_archive(RepositoryReference(owner="acme", repo="tools", branch="main"))


@patch("skillhub.github.client.requests.get")
def test_download_raw_file(mock_get, client):
    mock_get.return_value = _response(text="---\nname: x\n---\n", content=b"---\nname: x\n---\n")
    ref = RepositoryReference(owner="acme", repo="tools", branch="main")

    assert client.download_raw_file(ref, "SKILL.md") == "---\nname: x\n---\n"
    assert client.download_raw_file_bytes(ref, "SKILL.md") == b"---\nname: x\n---\n"
    assert mock_get.call_args[0][0] == "https://raw.githubusercontent.com/acme/tools/main/SKILL.md"


@patch("skillhub.github.client.requests.get")
def test_download_raw_file_not_found(mock_get, client):
    mock_get.return_value = _response(status_code=404)
    with pytest.raises(GitHubNotFoundError, match="File not found"):
        client.download_raw_file(RepositoryReference(owner="acme", repo="tools", branch="main"), "x.md")


def test_session_and_timeout_are_used():
    session = MagicMock()
    session.get.return_value = _response(content=b"zip")
    client = GitHubClient(user_agent="UA", timeout=5.0, session=session)

    client.download_archive(RepositoryReference(owner="acme", repo="tools", branch="main"))

    _, kwargs = session.get.call_args
    assert kwargs == {"headers": {"User-Agent": "UA"}, "timeout": 5.0}
