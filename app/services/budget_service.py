"""Token budget administration."""

from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, NotFoundError, ValidationError
from app.database.models import BudgetPeriod, TokenBudget, utcnow
from app.repositories.token_budget_repository import TokenBudgetRepository, TokenUsageRepository
from app.services.base_service import BaseService
from app.services.generation.completion_service import budget_percentage
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

PERIOD_DAYS = {
    BudgetPeriod.DAILY.value: 1,
    BudgetPeriod.WEEKLY.value: 7,
    BudgetPeriod.MONTHLY.value: 30,
}

UPDATABLE_FIELDS = (
    "token_limit",
    "cost_limit",
    "is_active",
    "is_paused",
    "alert_at_50",
    "alert_at_75",
    "alert_at_90",
    "alert_at_100",
    "auto_pause_at_limit",
)


class BudgetService(BaseService):
    """Create, adjust and report on token budgets.

    At most one budget per period is active: creating a budget deactivates
    the current one for the same period in the same transaction.
    """

    def __init__(self, session: AsyncSession):
        self.budget_repo = TokenBudgetRepository(session)
        self.usage_repo = TokenUsageRepository(session)
        super().__init__(self.budget_repo)

    async def run(self, *args, **kwargs) -> Any:
        action = kwargs.pop("action")

        if action == "create":
            return await self._create_budget_logic(**kwargs)
        elif action == "update":
            return await self._update_budget_logic(**kwargs)
        else:
            raise AppError(f"Unknown action: {action}")

    def validate(self, *args, **kwargs) -> None:
        period = kwargs.get("period")
        if period is not None and period not in PERIOD_DAYS:
            raise ValidationError(f"Invalid budget period: {period}")
        for limit in ("token_limit", "cost_limit"):
            value = kwargs.get(limit)
            if value is not None and value <= 0:
                raise ValidationError(f"{limit} must be positive")

    async def create_budget(
        self,
        period: str,
        token_limit: int,
        cost_limit: float,
        alert_at_50: bool = True,
        alert_at_75: bool = True,
        alert_at_90: bool = True,
        alert_at_100: bool = True,
        auto_pause_at_limit: bool = False,
    ) -> TokenBudget:
        return await self.execute(
            action="create",
            period=period,
            token_limit=token_limit,
            cost_limit=cost_limit,
            alert_at_50=alert_at_50,
            alert_at_75=alert_at_75,
            alert_at_90=alert_at_90,
            alert_at_100=alert_at_100,
            auto_pause_at_limit=auto_pause_at_limit,
        )

    async def update_budget(self, budget_id: UUID, **changes: Any) -> TokenBudget:
        return await self.execute(action="update", budget_id=budget_id, **changes)

    async def reset_budget(self, budget_id: UUID) -> TokenBudget:
        """Zero the usage counters, unpause and clear the alert marker."""
        budget = await self.budget_repo.reset_usage(budget_id)
        if budget is None:
            raise NotFoundError("Token budget", str(budget_id))
        LOGGER.info(f"Reset {budget.period} token budget", extra={"budget_id": str(budget_id)})
        return budget

    async def delete_budget(self, budget_id: UUID) -> None:
        if not await self.budget_repo.delete(budget_id):
            raise NotFoundError("Token budget", str(budget_id))
        LOGGER.info("Deleted token budget", extra={"budget_id": str(budget_id)})

    async def get_budget(self, budget_id: UUID) -> TokenBudget:
        budget = await self.budget_repo.get_fresh(budget_id)
        if budget is None:
            raise NotFoundError("Token budget", str(budget_id))
        return budget

    async def list_budgets(self, active_only: bool = False) -> List[TokenBudget]:
        return await self.budget_repo.list_budgets(active_only=active_only)

    async def get_budget_status(self) -> Dict[str, Optional[Dict[str, Any]]]:
        """Usage of the active budget for each period, ``None`` where unset."""
        status: Dict[str, Optional[Dict[str, Any]]] = {period: None for period in PERIOD_DAYS}
        for budget in await self.budget_repo.list_active():
            status[budget.period] = {
                "budget_id": budget.id,
                "token_limit": budget.token_limit,
                "tokens_used": budget.tokens_used,
                "cost_limit": budget.cost_limit,
                "cost_used": budget.cost_used,
                "percentage": round(budget_percentage(budget), 2),
                "is_paused": budget.is_paused,
                "end_date": budget.end_date,
            }
        return status

    async def get_usage_stats(self, days: int = 30) -> Dict[str, Any]:
        end = utcnow()
        return await self.usage_repo.summarize(end - timedelta(days=days), end)

    async def _create_budget_logic(self, period: str, **fields: Any) -> TokenBudget:
        start = utcnow()
        try:
            await self.budget_repo.deactivate_period(period)
            budget = await self.budget_repo.create(
                commit=False,
                period=period,
                is_active=True,
                start_date=start,
                end_date=start + timedelta(days=PERIOD_DAYS[period]),
                **fields,
            )
            await self.budget_repo.commit()
        except Exception:
            await self.budget_repo.rollback()
            raise

        LOGGER.info(
            f"Created {period} token budget: {budget.token_limit:,} tokens / ${budget.cost_limit:.2f}",
            extra={"budget_id": str(budget.id)},
        )
        return budget

    async def _update_budget_logic(self, budget_id: UUID, **changes: Any) -> TokenBudget:
        values = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS and value is not None}
        budget = await self.budget_repo.get_fresh(budget_id)
        if budget is None:
            raise NotFoundError("Token budget", str(budget_id))

        if values.get("is_active"):
            await self.budget_repo.deactivate_period(budget.period)
            # Reload so the row reflects the bulk update before is_active is set again
            await self.budget_repo.get_fresh(budget_id)
        budget = await self.budget_repo.update(budget_id, **values)
        LOGGER.info(
            f"Updated {budget.period} token budget: {', '.join(sorted(values)) or 'no changes'}",
            extra={"budget_id": str(budget_id)},
        )
        return budget
