"""Prompt template resolution and ``{{variable}}`` substitution."""

import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional
from uuid import UUID

from app.core.exceptions import NotFoundError, ValidationError
from app.database.models import DocumentType, PromptTemplateType
from app.repositories.prompt_template_repository import PromptTemplateRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")


@dataclass
class LoadedTemplate:
    content: str
    system_prompt: Optional[str] = None
    variables: List[str] = field(default_factory=list)
    template_id: Optional[UUID] = None
    name: Optional[str] = None


def template_type_for(document_type: str, month: Optional[int] = None) -> str:
    """Template type serving a document type (and program month)."""
    if document_type == DocumentType.BUSINESS_PLAN.value:
        return PromptTemplateType.BUSINESS_PLAN.value
    if document_type == DocumentType.DELIVERABLE.value:
        if month is None or not 1 <= month <= 8:
            raise ValidationError(f"Deliverable month must be between 1 and 8, got {month}")
        return f"DELIVERABLE_M{month}"
    raise ValidationError(f"Unknown document type: {document_type}")


def render(content: str, context: Mapping[str, object]) -> str:
    """Substitute ``{{key}}`` placeholders; unknown keys are left verbatim."""

    def replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in context or context[key] is None:
            return match.group(0)
        return str(context[key])

    return PLACEHOLDER.sub(replace, content)


def find_unresolved_variables(rendered: str) -> List[str]:
    return sorted({match.group(1) for match in PLACEHOLDER.finditer(rendered)})


class PromptTemplateLoader:
    """Loads the active (else default) template for a template type."""

    def __init__(self, repository: PromptTemplateRepository):
        self.repository = repository

    async def load_template(self, template_type: str) -> LoadedTemplate:
        """Resolve the template for ``template_type``.

        Raises:
            NotFoundError: If no template is active or default for the type
        """
        template = await self.repository.get_active(template_type)
        if template is None:
            template = await self.repository.get_default(template_type)
            if template is not None:
                LOGGER.info(
                    f"No active template for {template_type}, using default '{template.name}'"
                )
        if template is None:
            raise NotFoundError(f"Prompt template for type {template_type}")

        return LoadedTemplate(
            content=template.content,
            system_prompt=template.system_prompt,
            variables=list(template.variables or []),
            template_id=template.id,
            name=template.name,
        )

    def render_template(self, template: LoadedTemplate, context: Mapping[str, object]) -> str:
        """Render a loaded template, warning about placeholders left unresolved."""
        rendered = render(template.content, context)
        unresolved = find_unresolved_variables(rendered)
        if unresolved:
            LOGGER.warning(
                f"Template '{template.name}' has unresolved variables: {', '.join(unresolved)}",
                extra={"template_id": str(template.template_id), "unresolved": unresolved},
            )
        return rendered
