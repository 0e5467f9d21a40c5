"""Tests for prompt template administration."""

from uuid import uuid4

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.repositories.prompt_template_repository import PromptTemplateRepository
from app.services.prompt_template_service import PromptTemplateService, extract_variables


def test_extract_variables_in_order_without_duplicates():
    assert extract_variables("{{a}} {{ b }} {{a}} {{c_1}}") == ["a", "b", "c_1"]


class TestCreateTemplate:
    async def test_variables_default_to_placeholders(self, session):
        template = await PromptTemplateService(session).create_template(
            name="Plan", type="BUSINESS_PLAN", content="For {{client_name}} in {{niche}}"
        )

        assert template.variables == ["client_name", "niche"]
        assert template.is_active is False

    async def test_new_active_template_takes_the_flag(self, session, templates):
        service = PromptTemplateService(session)

        created = await service.create_template(
            name="Plan v3", type="BUSINESS_PLAN", content="{{client_name}}", is_active=True
        )

        active = await PromptTemplateRepository(session).get_active("BUSINESS_PLAN")
        assert active.id == created.id
        previous = await service.get_template(templates[0].id)
        assert previous.is_active is False

    async def test_flags_are_scoped_to_the_type(self, session, templates):
        await PromptTemplateService(session).create_template(
            name="M1 new default", type="DELIVERABLE_M1", content="x", is_default=True
        )

        m2_default = await PromptTemplateRepository(session).get_default("DELIVERABLE_M2")
        assert m2_default.name == "Month 2 default"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "x", "type": "NEWSLETTER", "content": "body"},
            {"name": "x", "type": "CUSTOM", "content": "   "},
        ],
    )
    async def test_invalid_input_is_rejected(self, session, kwargs):
        with pytest.raises(ValidationError):
            await PromptTemplateService(session).create_template(**kwargs)


class TestUpdateTemplate:
    async def test_setting_default_clears_the_previous_default(self, session, templates):
        service = PromptTemplateService(session)
        replacement = await service.create_template(
            name="M1 v2", type="DELIVERABLE_M1", content="{{client_name}}"
        )

        await service.update_template(replacement.id, is_default=True)

        default = await PromptTemplateRepository(session).get_default("DELIVERABLE_M1")
        assert default.id == replacement.id
        assert (await service.get_template(templates[1].id)).is_default is False

    async def test_content_change_refreshes_variables(self, session, templates):
        service = PromptTemplateService(session)

        updated = await service.update_template(templates[0].id, content="Only {{niche}}")

        assert updated.variables == ["niche"]

    async def test_unknown_template_is_not_found(self, session):
        with pytest.raises(NotFoundError):
            await PromptTemplateService(session).update_template(uuid4(), name="x")


class TestListAndDelete:
    async def test_list_filters_by_type(self, session, templates):
        service = PromptTemplateService(session)

        assert len(await service.list_templates()) == 3
        assert [t.name for t in await service.list_templates("DELIVERABLE_M2")] == ["Month 2 default"]

    async def test_delete(self, session, templates):
        service = PromptTemplateService(session)

        await service.delete_template(templates[0].id)

        with pytest.raises(NotFoundError):
            await service.get_template(templates[0].id)
