from fastapi import APIRouter

from app.api.v1.endpoints import business_plans, checkpoints, deliverables, prompts, token_budgets

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(business_plans.router, prefix="/business-plans", tags=["Business Plans"])
api_router.include_router(deliverables.router, prefix="/deliverables", tags=["Deliverables"])
api_router.include_router(checkpoints.router, prefix="/checkpoints", tags=["Checkpoints"])
api_router.include_router(token_budgets.router, prefix="/token-budgets", tags=["Token Budgets"])
api_router.include_router(prompts.router, prefix="/prompts", tags=["Prompt Templates"])

__all__ = ["api_router"]
