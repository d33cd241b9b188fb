# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""
Skills 数据模型
定义 Skill manifest、解析结果、资源树、持久化记录等数据结构。
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

from skillhub.storage.records import SkillRecord, SkillSource


SKILL_MD_FILENAME = "SKILL.md"

_URL_ADAPTER = TypeAdapter(AnyUrl)


def _check_url(value: Optional[str]) -> Optional[str]:
    """校验为绝对 URL，返回原始字符串（不做规范化）"""
    if value is None:
        return value
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        raise ValueError(f"Invalid url '{value}'")
    return value


class SkillAuthor(BaseModel):
    """manifest 中的作者信息"""

    name: str
    url: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)


class SkillManifest(BaseModel):
    """
    Skill manifest，从 SKILL.md YAML frontmatter 解析

    name 与 description 为必填且非空；其余字段可选。
    未声明的字段原样保留（向前兼容），序列化时一并输出。

    Attributes:
        name: Skill 名称
        description: Skill 描述，说明功能和触发条件
        author: 作者信息
        version: 版本号
        license: 许可证标识
        permissions: 声明的权限列表
        repository: 项目主仓库 URL
        git_url: Skill 所在的具体 Git 位置（可含子目录），YAML 中为 gitUrl
    """

    name: str = Field(..., min_length=1, description="Skill name")
    description: str = Field(..., min_length=1, description="What the skill does")
    author: Optional[SkillAuthor] = None
    version: Optional[str] = None
    license: Optional[str] = None
    permissions: Optional[List[str]] = None
    repository: Optional[str] = Field(default=None, description="Project repository URL")
    git_url: Optional[str] = Field(
        default=None,
        alias="gitUrl",
        description="Git location of the skill, may include a subdirectory"
    )

    class Config:
        extra = "allow"
        populate_by_name = True

    @field_validator("repository", "git_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)

    @property
    def extra_fields(self) -> Dict[str, Any]:
        """未声明的透传字段"""
        return dict(self.model_extra or {})

    def to_dict(self) -> Dict[str, Any]:
        """序列化为可持久化的字典，未设置的可选字段不输出"""
        return self.model_dump(by_alias=True, exclude_unset=True)


class ParsedPackage(BaseModel):
    """
    SKILL.md 解析结果

    Attributes:
        manifest: 校验后的 manifest
        body: 去除首尾空白的 Markdown 正文
        raw_document: SKILL.md 的完整原始文本
    """

    manifest: SkillManifest
    body: str
    raw_document: str


class ParsedArchivePackage(ParsedPackage):
    """
    ZIP 包解析结果

    Attributes:
        resources: 虚拟路径 -> 文件内容，路径相对于 SKILL.md 所在目录
        archive_hash: 整个 ZIP 字节的 SHA-256（十六进制），调用方跳过计算时为 None
        manifest_path: SKILL.md 在 ZIP 内的原始路径
    """

    resources: Dict[str, bytes] = Field(default_factory=dict)
    archive_hash: Optional[str] = None
    manifest_path: str = SKILL_MD_FILENAME


class ResourceTreeNode(BaseModel):
    """资源目录树节点，children 仅目录节点存在"""

    name: str
    path: str
    type: Literal["file", "directory"]
    children: Optional[List["ResourceTreeNode"]] = None

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

