"""
Template Service - reusable block layouts.

Templates hold block blueprints whose strings may contain {{variable}}
placeholders. Built-ins: {{date}}, {{time}}, {{datetime}}.
"""

import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.block_store.template_repository import SQLiteTemplateRepository
from lifeagent.models.block import Block, parse_content
from lifeagent.models.template import (
    Template,
    TemplateBlock,
    TemplateCategory,
    TemplateVariable,
)
from lifeagent.utils.exceptions import NotFoundError, ValidationError
from lifeagent.utils.id_generator import generate_template_id
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_UPDATABLE_FIELDS = {"name", "description", "category", "blocks", "variables", "is_public"}


def substitute(value: Any, variables: dict[str, str]) -> Any:
    """Replace known {{name}} placeholders in strings, recursing into lists and dicts."""
    if isinstance(value, str):
        return _PLACEHOLDER.sub(
            lambda m: variables.get(m.group(1), m.group(0)),
            value,
        )
    if isinstance(value, list):
        return [substitute(item, variables) for item in value]
    if isinstance(value, dict):
        return {key: substitute(item, variables) for key, item in value.items()}
    return value


class TemplateService:
    """Template CRUD and instantiation into blocks."""

    def __init__(
        self,
        repository: SQLiteTemplateRepository,
        block_store: BlockStore,
        now_fn: Callable[[], datetime] | None = None,
    ):
        """
        Initialize template service.

        Args:
            repository: Template persistence
            block_store: Store used to create blocks from templates
            now_fn: Clock for built-in date variables (default: datetime.now)
        """
        self.repository = repository
        self.block_store = block_store
        self.now_fn = now_fn or datetime.now

    async def initialize(self) -> None:
        await self.repository.initialize()

    async def close(self) -> None:
        await self.repository.close()

    def _validate_blocks(self, blocks: list[TemplateBlock | dict[str, Any]]) -> list[TemplateBlock]:
        parsed = []
        for raw in blocks:
            try:
                block = raw if isinstance(raw, TemplateBlock) else TemplateBlock.model_validate(raw)
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Invalid template block: {e.errors(include_url=False)}"
                ) from e
            parse_content(block.type, block.content)
            parsed.append(block)
        return parsed

    def _parse_variables(
        self, variables: list[TemplateVariable | dict[str, Any]] | None
    ) -> list[TemplateVariable]:
        try:
            return [
                v if isinstance(v, TemplateVariable) else TemplateVariable.model_validate(v)
                for v in variables or []
            ]
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid template variable: {e.errors(include_url=False)}"
            ) from e

    def _parse_category(self, category: TemplateCategory | str) -> TemplateCategory:
        try:
            return TemplateCategory(category)
        except ValueError as e:
            raise ValidationError(
                f"Unknown template category: {category}",
                context={"allowed": [c.value for c in TemplateCategory]},
            ) from e

    async def create_template(
        self,
        user_id: str,
        name: str,
        blocks: list[TemplateBlock | dict[str, Any]],
        category: TemplateCategory | str = TemplateCategory.CUSTOM,
        description: str | None = None,
        variables: list[TemplateVariable | dict[str, Any]] | None = None,
        is_public: bool = False,
    ) -> Template:
        """
        Create a template.

        Raises:
            ValidationError: If the name is empty or a block's content does not fit its type
        """
        if not name or not name.strip():
            raise ValidationError("Template name cannot be empty")

        template = Template(
            id=generate_template_id(),
            name=name.strip(),
            description=description,
            category=self._parse_category(category),
            blocks=self._validate_blocks(blocks),
            variables=self._parse_variables(variables),
            is_public=is_public,
            user_id=user_id,
        )
        await self.repository.save(template)

        logger.info(
            f"Created template {template.id}: {template.name}",
            extra={"template_id": template.id, "user_id": user_id},
        )
        return template

    async def get_template(self, template_id: str) -> Template:
        """
        Raises:
            NotFoundError: If the template does not exist
        """
        template = await self.repository.get(template_id)
        if template is None:
            raise NotFoundError(
                f"Template {template_id} not found", context={"template_id": template_id}
            )
        return template

    async def get_visible_template(self, template_id: str, user_id: str) -> Template:
        """A template the user owns or that is public."""
        template = await self.get_template(template_id)
        if template.user_id != user_id and not template.is_public:
            raise NotFoundError(
                f"Template {template_id} not found", context={"template_id": template_id}
            )
        return template

    async def list_templates(
        self,
        user_id: str,
        category: TemplateCategory | str | None = None,
        include_public: bool = True,
    ) -> list[Template]:
        """The user's templates plus public ones, most used first."""
        return await self.repository.list_visible(
            user_id,
            category=self._parse_category(category) if category else None,
            include_public=include_public,
        )

    async def update_template(self, template_id: str, user_id: str, updates: dict[str, Any]) -> Template:
        """
        Update fields of a template the user owns.

        Raises:
            NotFoundError: If the template does not exist or belongs to someone else
            ValidationError: If an update field is unknown or invalid
        """
        template = await self.get_template(template_id)
        if template.user_id != user_id:
            raise NotFoundError(
                f"Template {template_id} not found", context={"template_id": template_id}
            )

        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update template fields: {', '.join(sorted(unknown))}",
                context={"allowed": sorted(_UPDATABLE_FIELDS)},
            )

        changes = dict(updates)
        if "blocks" in changes:
            changes["blocks"] = self._validate_blocks(changes["blocks"])
        if "variables" in changes:
            changes["variables"] = self._parse_variables(changes["variables"])
        if "category" in changes:
            changes["category"] = self._parse_category(changes["category"])
        changes["updated_at"] = self.now_fn()

        updated = template.model_copy(update=changes)
        await self.repository.save(updated)
        return updated

    async def delete_template(self, template_id: str, user_id: str) -> None:
        template = await self.get_template(template_id)
        if template.user_id != user_id:
            raise NotFoundError(
                f"Template {template_id} not found", context={"template_id": template_id}
            )
        await self.repository.delete(template_id)
        logger.info(f"Deleted template {template_id}", extra={"template_id": template_id})

    def resolve_variables(
        self, template: Template, values: dict[str, Any] | None = None
    ) -> dict[str, str]:
        """
        Built-in date variables, declared defaults, then caller values.

        Raises:
            ValidationError: If a required variable has no value
        """
        now = self.now_fn()
        resolved = {
            "date": now.date().isoformat(),
            "time": now.strftime("%H:%M"),
            "datetime": now.strftime("%Y-%m-%d %H:%M"),
        }

        values = values or {}
        missing = []
        for variable in template.variables:
            if variable.name in values:
                continue
            if variable.default_value is not None:
                resolved[variable.name] = str(variable.default_value)
            elif variable.required:
                missing.append(variable.name)

        if missing:
            raise ValidationError(
                f"Missing template variables: {', '.join(missing)}",
                context={"template_id": template.id, "missing": missing},
            )

        resolved.update({key: str(value) for key, value in values.items()})
        return resolved

    async def create_from_template(
        self,
        template_id: str,
        user_id: str,
        variables: dict[str, Any] | None = None,
        parent_id: str | None = None,
    ) -> list[Block]:
        """
        Instantiate a template's blocks in position order.

        Args:
            template_id: Template to use
            user_id: Owner of the new blocks
            variables: Values for {{name}} placeholders
            parent_id: Optional page to attach the new blocks to

        Returns:
            Created blocks in position order
        """
        template = await self.get_visible_template(template_id, user_id)
        resolved = self.resolve_variables(template, variables)

        blocks = []
        for blueprint in sorted(template.blocks, key=lambda b: b.position):
            metadata = {
                "category": template.category.value,
                "ai_generated": True,
                **substitute(blueprint.metadata, resolved),
            }
            block = await self.block_store.create_block(
                blueprint.type,
                substitute(blueprint.content, resolved),
                user_id,
                metadata=metadata,
                parent_id=parent_id,
                template_id=template.id,
            )
            blocks.append(block)

        await self.repository.save(
            template.model_copy(
                update={"usage_count": template.usage_count + 1, "last_used": self.now_fn()}
            )
        )

        logger.info(
            f"Created {len(blocks)} blocks from template {template.name}",
            extra={"template_id": template.id, "user_id": user_id, "blocks": len(blocks)},
        )
        return blocks

    async def create_default_templates(self, user_id: str) -> list[Template]:
        """Seed the built-in public templates."""
        project = await self.create_template(
            user_id=user_id,
            name="Basic Project Template",
            description="A basic template for project management",
            category=TemplateCategory.PROJECT,
            is_public=True,
            variables=[
                TemplateVariable(name="project_name", default_value="Project Name"),
                TemplateVariable(name="owner", default_value=""),
            ],
            blocks=[
                TemplateBlock(
                    type="heading", content={"level": 1, "text": "{{project_name}}"}, position=0
                ),
                TemplateBlock(
                    type="text", content={"text": "Project description and objectives..."}, position=1
                ),
                TemplateBlock(
                    type="table",
                    content={
                        "headers": ["Property", "Value"],
                        "rows": [
                            ["Status", "Active"],
                            ["Priority", "Medium"],
                            ["Start Date", "{{date}}"],
                            ["Due Date", ""],
                            ["Owner", "{{owner}}"],
                        ],
                    },
                    position=2,
                ),
                TemplateBlock(type="heading", content={"level": 2, "text": "Tasks"}, position=3),
                TemplateBlock(
                    type="todo", content={"text": "Project setup", "checked": False}, position=4
                ),
            ],
        )

        review = await self.create_template(
            user_id=user_id,
            name="Daily Review Template",
            description="Template for daily work review and reflection",
            category=TemplateCategory.PERSONAL,
            is_public=True,
            blocks=[
                TemplateBlock(
                    type="heading", content={"level": 1, "text": "{{date}} Daily Review"}, position=0
                ),
                TemplateBlock(
                    type="heading", content={"level": 2, "text": "Today's Accomplishments"}, position=1
                ),
                TemplateBlock(type="text", content={"text": "What I accomplished today..."}, position=2),
                TemplateBlock(
                    type="heading", content={"level": 2, "text": "Challenges Faced"}, position=3
                ),
                TemplateBlock(type="text", content={"text": "Challenges I encountered..."}, position=4),
                TemplateBlock(
                    type="heading", content={"level": 2, "text": "Tomorrow's Plan"}, position=5
                ),
                TemplateBlock(
                    type="todo",
                    content={"text": "Important task for tomorrow", "checked": False},
                    position=6,
                ),
            ],
        )

        return [project, review]
