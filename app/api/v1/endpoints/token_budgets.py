from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.v1.deps import CurrentUserId, get_budget_service
from app.schemas.budgets import TokenBudgetCreate, TokenBudgetResponse, TokenBudgetUpdate
from app.schemas.common import ApiResponse
from app.services.budget_service import BudgetService
from app.utils.responses import create_api_response

router = APIRouter()

Budgets = Annotated[BudgetService, Depends(get_budget_service)]


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List token budgets",
    operation_id="list_token_budgets",
)
async def list_budgets(
    request: Request,
    user_id: CurrentUserId,
    service: Budgets,
    active_only: bool = Query(False),
) -> ApiResponse:
    budgets = await service.list_budgets(active_only=active_only)
    return create_api_response(
        data=[TokenBudgetResponse.model_validate(b) for b in budgets],
        message=f"Retrieved {len(budgets)} budgets",
        request=request,
    )


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a token budget",
    operation_id="create_token_budget",
)
async def create_budget(
    request: Request,
    body: TokenBudgetCreate,
    user_id: CurrentUserId,
    service: Budgets,
) -> ApiResponse:
    budget = await service.create_budget(**body.model_dump())
    return create_api_response(
        data=TokenBudgetResponse.model_validate(budget),
        message=f"{budget.period} budget created",
        request=request,
    )


@router.get(
    "/status",
    response_model=ApiResponse,
    summary="Current usage per budget period",
    operation_id="get_token_budget_status",
)
async def get_budget_status(request: Request, user_id: CurrentUserId, service: Budgets) -> ApiResponse:
    return create_api_response(
        data=await service.get_budget_status(), message="Budget status", request=request
    )


@router.get(
    "/usage",
    response_model=ApiResponse,
    summary="Token usage statistics",
    operation_id="get_token_usage",
)
async def get_usage(
    request: Request,
    user_id: CurrentUserId,
    service: Budgets,
    days: int = Query(30, ge=1, le=365),
) -> ApiResponse:
    return create_api_response(
        data=await service.get_usage_stats(days), message=f"Usage for the last {days} days", request=request
    )


@router.patch(
    "/{budget_id}",
    response_model=ApiResponse,
    summary="Update a token budget",
    operation_id="update_token_budget",
)
async def update_budget(
    request: Request,
    budget_id: UUID,
    body: TokenBudgetUpdate,
    user_id: CurrentUserId,
    service: Budgets,
) -> ApiResponse:
    budget = await service.update_budget(budget_id, **body.model_dump(exclude_unset=True))
    return create_api_response(
        data=TokenBudgetResponse.model_validate(budget), message="Budget updated", request=request
    )


@router.post(
    "/{budget_id}/reset",
    response_model=ApiResponse,
    summary="Reset budget usage",
    operation_id="reset_token_budget",
)
async def reset_budget(
    request: Request,
    budget_id: UUID,
    user_id: CurrentUserId,
    service: Budgets,
) -> ApiResponse:
    budget = await service.reset_budget(budget_id)
    return create_api_response(
        data=TokenBudgetResponse.model_validate(budget), message="Budget reset", request=request
    )


@router.delete(
    "/{budget_id}",
    response_model=ApiResponse,
    summary="Delete a token budget",
    operation_id="delete_token_budget",
)
async def delete_budget(
    request: Request,
    budget_id: UUID,
    user_id: CurrentUserId,
    service: Budgets,
) -> ApiResponse:
    await service.delete_budget(budget_id)
    return create_api_response(
        data={"budget_id": str(budget_id)}, message="Budget deleted", request=request
    )
