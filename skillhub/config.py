# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from typing import Optional
import os


@dataclass
class SkillHubConfig:
    """Skill 导入配置类"""
    user_agent: str = "SkillHub-Skill-Importer"       # 出站请求的 User-Agent
    default_branch: str = "main"
    source_files_prefix: str = "skills/source_files"  # 资源文件键前缀
    archive_prefix: str = "skills/zip"                # 仓库 ZIP 键前缀
    request_timeout: Optional[float] = None           # 不设超时，由调用方控制
    temp_dir: Optional[str] = None                    # 上传文件的临时目录
    max_archive_size: Optional[int] = None            # ZIP 字节数上限

    def __post_init__(self):
        self.source_files_prefix = self.source_files_prefix.strip("/")
        self.archive_prefix = self.archive_prefix.strip("/")
        if not self.default_branch:
            self.default_branch = "main"
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive (got {self.request_timeout})")
        if self.max_archive_size is not None and self.max_archive_size <= 0:
            raise ValueError(f"max_archive_size must be positive (got {self.max_archive_size})")

    @classmethod
    def from_env(cls, prefix: str = "SKILLHUB_") -> "SkillHubConfig":
        """从环境变量读取配置，未设置的项使用默认值"""
        config = cls()

        def _env(name: str) -> Optional[str]:
            value = os.environ.get(f"{prefix}{name}")
            return value if value else None

        if _env("USER_AGENT"):
            config.user_agent = _env("USER_AGENT")
        if _env("DEFAULT_BRANCH"):
            config.default_branch = _env("DEFAULT_BRANCH")
        if _env("REQUEST_TIMEOUT"):
            config.request_timeout = float(_env("REQUEST_TIMEOUT"))
        if _env("TEMP_DIR"):
            config.temp_dir = _env("TEMP_DIR")
        if _env("MAX_ARCHIVE_SIZE"):
            config.max_archive_size = int(_env("MAX_ARCHIVE_SIZE"))

        config.__post_init__()
        return config
