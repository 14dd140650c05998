"""
Template models: reusable block layouts with variable substitution.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from lifeagent.models.block import BlockType


class TemplateCategory(str, Enum):
    """Template categories."""

    PROJECT = "project"
    PERSONAL = "personal"
    WORK = "work"
    EDUCATION = "education"
    CUSTOM = "custom"


class TemplateBlock(BaseModel):
    """Block blueprint inside a template. Strings may contain {{variable}} placeholders."""

    type: BlockType
    content: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict)
    position: int = 0


class TemplateVariable(BaseModel):
    """Variable a template expects when instantiated."""

    name: str
    type: str = "text"  # text, number, date, select
    default_value: Any = None
    description: str | None = None
    required: bool = False


class Template(BaseModel):
    """Reusable block layout."""

    id: str = Field(..., description="Unique template ID (tpl_xxx)")
    name: str
    description: str | None = None
    category: TemplateCategory = TemplateCategory.CUSTOM
    blocks: list[TemplateBlock] = Field(default_factory=list)
    variables: list[TemplateVariable] = Field(default_factory=list)
    is_public: bool = False
    user_id: str
    usage_count: int = 0
    last_used: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
