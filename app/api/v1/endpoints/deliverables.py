from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.v1.deps import (
    CurrentUserId,
    JobDispatcher,
    Orchestrator,
    get_deliverable_repository,
    get_section_store,
)
from app.api.v1.endpoints.business_plans import regeneration_response
from app.core.exceptions import NotFoundError
from app.database.models import DocumentType
from app.repositories.document_repository import DeliverableRepository
from app.schemas.common import ApiResponse
from app.schemas.generation import (
    DocumentResponse,
    GenerateDeliverableRequest,
    GenerationOutcomeResponse,
    RegenerateSectionsRequest,
    SectionResponse,
)
from app.services.generation.sections import SectionStore
from app.temporal.core.constants import JOB_DELIVERABLE
from app.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/generate",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a monthly deliverable",
    operation_id="generate_deliverable",
)
async def generate_deliverable(
    request: Request,
    body: GenerateDeliverableRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
    dispatcher: JobDispatcher,
) -> ApiResponse:
    if body.background:
        started = await dispatcher.start(
            JOB_DELIVERABLE, user_id, client_id=body.client_id, month=body.month
        )
        return create_api_response(
            data=started, message=f"Month {body.month} deliverable generation started", request=request
        )

    outcome = await orchestrator.generate_deliverable(body.client_id, body.month, user_id)
    return create_api_response(
        data=GenerationOutcomeResponse(**vars(outcome)),
        message=f"Generated month {body.month} deliverable",
        request=request,
    )


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List a client's deliverables",
    operation_id="list_deliverables",
)
async def list_deliverables(
    request: Request,
    user_id: CurrentUserId,
    repository: Annotated[DeliverableRepository, Depends(get_deliverable_repository)],
    client_id: UUID = Query(...),
) -> ApiResponse:
    deliverables = await repository.list_for_client(client_id)
    return create_api_response(
        data=[DocumentResponse.model_validate(d) for d in deliverables],
        message=f"Retrieved {len(deliverables)} deliverables",
        request=request,
    )


@router.get(
    "/{deliverable_id}",
    response_model=ApiResponse,
    summary="Get a deliverable",
    operation_id="get_deliverable",
)
async def get_deliverable(
    request: Request,
    deliverable_id: UUID,
    user_id: CurrentUserId,
    repository: Annotated[DeliverableRepository, Depends(get_deliverable_repository)],
) -> ApiResponse:
    deliverable = await repository.get_by_id(deliverable_id)
    if deliverable is None:
        raise NotFoundError("Deliverable", str(deliverable_id))
    return create_api_response(
        data=DocumentResponse.model_validate(deliverable),
        message="Deliverable retrieved successfully",
        request=request,
    )


@router.get(
    "/{deliverable_id}/sections",
    response_model=ApiResponse,
    summary="List the sections of a deliverable",
    operation_id="list_deliverable_sections",
)
async def list_deliverable_sections(
    request: Request,
    deliverable_id: UUID,
    user_id: CurrentUserId,
    section_store: Annotated[SectionStore, Depends(get_section_store)],
) -> ApiResponse:
    sections = await section_store.get_sections(deliverable_id, DocumentType.DELIVERABLE.value)
    return create_api_response(
        data=[SectionResponse.model_validate(s) for s in sections],
        message=f"Retrieved {len(sections)} sections",
        request=request,
    )


@router.post(
    "/{deliverable_id}/regenerate-sections",
    response_model=ApiResponse,
    summary="Regenerate selected deliverable sections",
    operation_id="regenerate_deliverable_sections",
)
async def regenerate_sections(
    request: Request,
    deliverable_id: UUID,
    body: RegenerateSectionsRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
) -> ApiResponse:
    result = await orchestrator.regenerate_sections(
        DocumentType.DELIVERABLE.value, deliverable_id, body.section_names, user_id
    )
    return create_api_response(
        data=regeneration_response(result),
        message=f"Regenerated {len(result.regenerated_sections)} sections",
        request=request,
    )
