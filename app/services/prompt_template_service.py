"""Prompt template administration."""

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, NotFoundError, ValidationError
from app.database.models import PromptTemplate, PromptTemplateType, utcnow
from app.repositories.prompt_template_repository import TEMPLATE_FLAGS, PromptTemplateRepository
from app.services.base_service import BaseService
from app.services.generation.prompt_loader import PLACEHOLDER
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

TEMPLATE_TYPES = {t.value for t in PromptTemplateType}
EDITABLE_FIELDS = ("name", "description", "system_prompt", "content", "variables", "is_active", "is_default")


def extract_variables(content: str) -> List[str]:
    """Placeholder names in order of first appearance."""
    seen: List[str] = []
    for match in PLACEHOLDER.finditer(content):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


class PromptTemplateService(BaseService):
    """CRUD for prompt templates.

    Keeps at most one active and one default template per type: before a
    template takes either flag, the previous holder for that type loses it
    in the same transaction.
    """

    def __init__(self, session: AsyncSession):
        self.template_repo = PromptTemplateRepository(session)
        super().__init__(self.template_repo)

    async def run(self, *args, **kwargs) -> Any:
        action = kwargs.pop("action")

        if action == "create":
            return await self._create_template_logic(**kwargs)
        elif action == "update":
            return await self._update_template_logic(**kwargs)
        else:
            raise AppError(f"Unknown action: {action}")

    def validate(self, *args, **kwargs) -> None:
        template_type = kwargs.get("type")
        if template_type is not None and template_type not in TEMPLATE_TYPES:
            raise ValidationError(f"Invalid template type: {template_type}")
        content = kwargs.get("content")
        if content is not None and not content.strip():
            raise ValidationError("Template content cannot be empty")

    async def create_template(
        self,
        name: str,
        type: str,
        content: str,
        system_prompt: Optional[str] = None,
        description: Optional[str] = None,
        variables: Optional[List[str]] = None,
        is_active: bool = False,
        is_default: bool = False,
    ) -> PromptTemplate:
        return await self.execute(
            action="create",
            name=name,
            type=type,
            content=content,
            system_prompt=system_prompt,
            description=description,
            variables=variables,
            is_active=is_active,
            is_default=is_default,
        )

    async def update_template(self, template_id: UUID, **changes: Any) -> PromptTemplate:
        return await self.execute(action="update", template_id=template_id, **changes)

    async def get_template(self, template_id: UUID) -> PromptTemplate:
        template = await self.template_repo.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Prompt template", str(template_id))
        return template

    async def list_templates(self, template_type: Optional[str] = None) -> List[PromptTemplate]:
        return await self.template_repo.list_templates(template_type)

    async def delete_template(self, template_id: UUID) -> None:
        if not await self.template_repo.delete(template_id):
            raise NotFoundError("Prompt template", str(template_id))
        LOGGER.info("Deleted prompt template", extra={"template_id": str(template_id)})

    async def _create_template_logic(self, **fields: Any) -> PromptTemplate:
        if not fields.get("variables"):
            fields["variables"] = extract_variables(fields["content"])

        try:
            for flag in TEMPLATE_FLAGS:
                if fields.get(flag):
                    await self.template_repo.clear_flag(fields["type"], flag)
            template = await self.template_repo.create(commit=False, **fields)
            await self.template_repo.commit()
        except Exception:
            await self.template_repo.rollback()
            raise

        LOGGER.info(
            f"Created {template.type} prompt template '{template.name}'",
            extra={"template_id": str(template.id)},
        )
        return template

    async def _update_template_logic(self, template_id: UUID, **changes: Any) -> PromptTemplate:
        values = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS and value is not None}
        template = await self.get_template(template_id)

        if "content" in values and "variables" not in values:
            values["variables"] = extract_variables(values["content"])

        try:
            for flag in TEMPLATE_FLAGS:
                if values.get(flag):
                    await self.template_repo.clear_flag(template.type, flag, exclude_id=template.id)
            values["updated_at"] = utcnow()
            template = await self.template_repo.update(template_id, **values)
        except Exception:
            await self.template_repo.rollback()
            raise

        LOGGER.info(
            f"Updated prompt template '{template.name}'", extra={"template_id": str(template_id)}
        )
        return template
