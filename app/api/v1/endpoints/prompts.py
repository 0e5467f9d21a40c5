from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.v1.deps import CurrentUserId, get_prompt_template_service
from app.schemas.common import ApiResponse
from app.schemas.prompts import PromptTemplateCreate, PromptTemplateResponse, PromptTemplateUpdate
from app.services.prompt_template_service import PromptTemplateService
from app.utils.responses import create_api_response

router = APIRouter()

Templates = Annotated[PromptTemplateService, Depends(get_prompt_template_service)]


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List prompt templates",
    operation_id="list_prompt_templates",
)
async def list_templates(
    request: Request,
    user_id: CurrentUserId,
    service: Templates,
    type: Optional[str] = Query(None, description="Filter by template type"),
) -> ApiResponse:
    templates = await service.list_templates(type)
    return create_api_response(
        data=[PromptTemplateResponse.model_validate(t) for t in templates],
        message=f"Retrieved {len(templates)} templates",
        request=request,
    )


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a prompt template",
    operation_id="create_prompt_template",
)
async def create_template(
    request: Request,
    body: PromptTemplateCreate,
    user_id: CurrentUserId,
    service: Templates,
) -> ApiResponse:
    template = await service.create_template(**body.model_dump())
    return create_api_response(
        data=PromptTemplateResponse.model_validate(template),
        message=f"Template '{template.name}' created",
        request=request,
    )


@router.get(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Get a prompt template",
    operation_id="get_prompt_template",
)
async def get_template(
    request: Request,
    template_id: UUID,
    user_id: CurrentUserId,
    service: Templates,
) -> ApiResponse:
    template = await service.get_template(template_id)
    return create_api_response(
        data=PromptTemplateResponse.model_validate(template),
        message="Template retrieved successfully",
        request=request,
    )


@router.patch(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Update a prompt template",
    operation_id="update_prompt_template",
)
async def update_template(
    request: Request,
    template_id: UUID,
    body: PromptTemplateUpdate,
    user_id: CurrentUserId,
    service: Templates,
) -> ApiResponse:
    template = await service.update_template(template_id, **body.model_dump(exclude_unset=True))
    return create_api_response(
        data=PromptTemplateResponse.model_validate(template),
        message="Template updated",
        request=request,
    )


@router.delete(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Delete a prompt template",
    operation_id="delete_prompt_template",
)
async def delete_template(
    request: Request,
    template_id: UUID,
    user_id: CurrentUserId,
    service: Templates,
) -> ApiResponse:
    await service.delete_template(template_id)
    return create_api_response(
        data={"template_id": str(template_id)}, message="Template deleted", request=request
    )
