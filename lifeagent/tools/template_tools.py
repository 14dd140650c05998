"""
Template tools: manage templates and create blocks from them.
"""

from typing import Any

from pydantic import Field

from lifeagent.models.template import Template, TemplateBlock, TemplateCategory, TemplateVariable
from lifeagent.services.template_service import TemplateService
from lifeagent.tools.block_tools import block_brief
from lifeagent.tools.registry import ToolContext, ToolDefinition, ToolParams, ToolRegistry


def template_brief(template: Template) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "category": template.category.value,
        "blocks": len(template.blocks),
        "variables": [v.name for v in template.variables],
        "is_public": template.is_public,
        "usage_count": template.usage_count,
    }


class CreateTemplateParams(ToolParams):
    name: str = Field(..., description="Template name")
    description: str | None = None
    category: TemplateCategory = TemplateCategory.CUSTOM
    blocks: list[TemplateBlock] = Field(
        ..., min_length=1, description="Block blueprints; strings may use {{variable}} placeholders"
    )
    variables: list[TemplateVariable] = Field(default_factory=list)
    is_public: bool = False


class TemplateIdParams(ToolParams):
    template_id: str = Field(..., description="Template ID")


class ListTemplatesParams(ToolParams):
    category: TemplateCategory | None = None
    include_public: bool = True


class UpdateTemplateParams(ToolParams):
    template_id: str = Field(..., description="Template ID")
    name: str | None = None
    description: str | None = None
    category: TemplateCategory | None = None
    blocks: list[TemplateBlock] | None = None
    variables: list[TemplateVariable] | None = None
    is_public: bool | None = None


class CreateFromTemplateParams(ToolParams):
    template_id: str = Field(..., description="Template ID")
    variables: dict[str, str] = Field(default_factory=dict, description="Values for {{variable}} placeholders")
    parent_id: str | None = Field(default=None, description="Page to add the new blocks to")


def register_template_tools(registry: ToolRegistry, template_service: TemplateService) -> None:
    """Register template tools."""

    async def create_template(params: CreateTemplateParams, context: ToolContext) -> dict[str, Any]:
        template = await template_service.create_template(
            user_id=context.user_id,
            name=params.name,
            blocks=params.blocks,
            category=params.category,
            description=params.description,
            variables=params.variables,
            is_public=params.is_public,
        )
        return {"template": template_brief(template), "message": f"Created template {template.id}"}

    async def get_template(params: TemplateIdParams, context: ToolContext) -> dict[str, Any]:
        template = await template_service.get_visible_template(params.template_id, context.user_id)
        return {"template": template.model_dump(mode="json")}

    async def list_templates(params: ListTemplatesParams, context: ToolContext) -> dict[str, Any]:
        templates = await template_service.list_templates(
            context.user_id, category=params.category, include_public=params.include_public
        )
        return {"templates": [template_brief(t) for t in templates], "count": len(templates)}

    async def update_template(params: UpdateTemplateParams, context: ToolContext) -> dict[str, Any]:
        updates = params.model_dump(exclude={"template_id"}, exclude_none=True)
        template = await template_service.update_template(params.template_id, context.user_id, updates)
        return {"template": template_brief(template), "message": "Template updated"}

    async def delete_template(params: TemplateIdParams, context: ToolContext) -> dict[str, Any]:
        await template_service.delete_template(params.template_id, context.user_id)
        return {"template_id": params.template_id, "message": "Template deleted"}

    async def create_from_template(params: CreateFromTemplateParams, context: ToolContext) -> dict[str, Any]:
        blocks = await template_service.create_from_template(
            params.template_id,
            context.user_id,
            variables=params.variables,
            parent_id=params.parent_id,
        )
        return {
            "blocks": [block_brief(b) for b in blocks],
            "count": len(blocks),
            "message": f"Created {len(blocks)} blocks from template",
        }

    tools = [
        ("create_template", "Create a reusable block template", CreateTemplateParams, create_template),
        ("get_template", "Get a template by ID", TemplateIdParams, get_template),
        ("list_templates", "List the user's and public templates", ListTemplatesParams, list_templates),
        ("update_template", "Update fields of a template you own", UpdateTemplateParams, update_template),
        ("delete_template", "Delete a template you own", TemplateIdParams, delete_template),
        ("create_from_template", "Create blocks from a template", CreateFromTemplateParams, create_from_template),
    ]

    for name, description, parameters, handler in tools:
        registry.register(
            ToolDefinition(name=name, description=description, parameters=parameters, handler=handler)
        )
