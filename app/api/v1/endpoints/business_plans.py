from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from app.api.v1.deps import (
    CurrentUserId,
    JobDispatcher,
    Orchestrator,
    get_business_plan_repository,
    get_section_store,
)
from app.core.exceptions import NotFoundError
from app.database.models import DocumentType
from app.repositories.document_repository import BusinessPlanRepository
from app.schemas.common import ApiResponse
from app.schemas.generation import (
    DocumentResponse,
    GenerateBusinessPlanRequest,
    GenerationOutcomeResponse,
    RegenerateAffectedRequest,
    RegenerateSectionsRequest,
    RegenerationResponse,
    SectionResponse,
)
from app.services.generation.orchestrator import RegenerationResult
from app.services.generation.sections import SectionStore
from app.temporal.core.constants import JOB_BUSINESS_PLAN
from app.utils.logging import get_logger
from app.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


def regeneration_response(result: RegenerationResult) -> RegenerationResponse:
    return RegenerationResponse(
        document_id=result.document_id,
        regenerated_count=len(result.regenerated_sections),
        regenerated_sections=result.regenerated_sections,
        skipped_sections=result.skipped_sections,
        total_sections=result.total_sections,
    )


@router.post(
    "/generate",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a client's business plan",
    operation_id="generate_business_plan",
)
async def generate_business_plan(
    request: Request,
    body: GenerateBusinessPlanRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
    dispatcher: JobDispatcher,
) -> ApiResponse:
    """Generate inline, or start a durable background job when ``background`` is set."""
    if body.background:
        started = await dispatcher.start(JOB_BUSINESS_PLAN, user_id, client_id=body.client_id)
        return create_api_response(
            data=started, message="Business plan generation started", request=request
        )

    outcome = await orchestrator.generate_business_plan(body.client_id, user_id)
    return create_api_response(
        data=GenerationOutcomeResponse(**vars(outcome)),
        message=f"Generated business plan with {outcome.section_count} sections",
        request=request,
    )


@router.get(
    "/{plan_id}",
    response_model=ApiResponse,
    summary="Get a business plan",
    operation_id="get_business_plan",
)
async def get_business_plan(
    request: Request,
    plan_id: UUID,
    user_id: CurrentUserId,
    repository: Annotated[BusinessPlanRepository, Depends(get_business_plan_repository)],
) -> ApiResponse:
    plan = await repository.get_by_id(plan_id)
    if plan is None:
        raise NotFoundError("Business plan", str(plan_id))
    return create_api_response(
        data=DocumentResponse.model_validate(plan),
        message="Business plan retrieved successfully",
        request=request,
    )


@router.get(
    "/{plan_id}/sections",
    response_model=ApiResponse,
    summary="List the sections of a business plan",
    operation_id="list_business_plan_sections",
)
async def list_business_plan_sections(
    request: Request,
    plan_id: UUID,
    user_id: CurrentUserId,
    section_store: Annotated[SectionStore, Depends(get_section_store)],
) -> ApiResponse:
    sections = await section_store.get_sections(plan_id, DocumentType.BUSINESS_PLAN.value)
    return create_api_response(
        data=[SectionResponse.model_validate(s) for s in sections],
        message=f"Retrieved {len(sections)} sections",
        request=request,
    )


@router.post(
    "/{plan_id}/regenerate-sections",
    response_model=ApiResponse,
    summary="Regenerate selected sections",
    operation_id="regenerate_business_plan_sections",
)
async def regenerate_sections(
    request: Request,
    plan_id: UUID,
    body: RegenerateSectionsRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
) -> ApiResponse:
    result = await orchestrator.regenerate_sections(
        DocumentType.BUSINESS_PLAN.value, plan_id, body.section_names, user_id
    )
    return create_api_response(
        data=regeneration_response(result),
        message=f"Regenerated {len(result.regenerated_sections)} sections",
        request=request,
    )


@router.post(
    "/{plan_id}/regenerate-affected",
    response_model=ApiResponse,
    summary="Regenerate sections affected by changed client fields",
    operation_id="regenerate_affected_business_plan_sections",
)
async def regenerate_affected_sections(
    request: Request,
    plan_id: UUID,
    body: RegenerateAffectedRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
) -> ApiResponse:
    result = await orchestrator.regenerate_affected_sections(
        DocumentType.BUSINESS_PLAN.value, plan_id, body.changed_fields, user_id
    )
    return create_api_response(
        data=regeneration_response(result),
        message=f"Regenerated {len(result.regenerated_sections)} affected sections",
        request=request,
    )
