"""Repositories for token budgets and per-request usage records.

Budget counters are only ever changed with single conditional UPDATE
statements so concurrent completion calls cannot overrun a paused or
exhausted budget between a check and an increment.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import TokenBudget, TokenUsage
from app.repositories.base_repository import BaseRepository


class TokenBudgetRepository(BaseRepository[TokenBudget]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TokenBudget)

    async def list_active(self) -> List[TokenBudget]:
        result = await self.session.execute(
            select(TokenBudget)
            .where(TokenBudget.is_active.is_(True))
            .order_by(TokenBudget.period)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_budgets(self, active_only: bool = False) -> List[TokenBudget]:
        stmt = select(TokenBudget).order_by(TokenBudget.created_at.desc())
        if active_only:
            stmt = stmt.where(TokenBudget.is_active.is_(True))
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_fresh(self, budget_id: UUID) -> Optional[TokenBudget]:
        """Re-read a budget, overwriting any stale identity-map state."""
        result = await self.session.execute(
            select(TokenBudget)
            .where(TokenBudget.id == budget_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def deactivate_period(self, period: str) -> None:
        """Deactivate the active budget(s) of ``period``. Does not commit."""
        await self.session.execute(
            update(TokenBudget)
            .where(TokenBudget.period == period, TokenBudget.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )

    async def try_reserve(self, budget_id: UUID, tokens: int) -> bool:
        """Atomically add ``tokens`` to a budget if it may accept more work.

        The reservation is refused when the budget is paused, inactive, or
        (with auto-pause on) already at its token or cost limit.
        """
        stmt = (
            update(TokenBudget)
            .where(
                TokenBudget.id == budget_id,
                TokenBudget.is_active.is_(True),
                TokenBudget.is_paused.is_(False),
                or_(
                    TokenBudget.auto_pause_at_limit.is_(False),
                    and_(
                        TokenBudget.tokens_used < TokenBudget.token_limit,
                        TokenBudget.cost_used < TokenBudget.cost_limit,
                    ),
                ),
            )
            .values(tokens_used=TokenBudget.tokens_used + tokens)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def release(self, budget_id: UUID, tokens: int) -> None:
        """Give back a reservation taken by :meth:`try_reserve`."""
        await self.session.execute(
            update(TokenBudget)
            .where(TokenBudget.id == budget_id)
            .values(
                tokens_used=case(
                    (TokenBudget.tokens_used > tokens, TokenBudget.tokens_used - tokens), else_=0
                )
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def settle(self, budget_id: UUID, token_delta: int, cost: float) -> None:
        """Apply the actual usage on top of a reservation.

        Pausing on reaching a limit happens in the same statement, so no
        request can slip in between the increment and the pause.
        """
        new_tokens = TokenBudget.tokens_used + token_delta
        new_cost = TokenBudget.cost_used + cost
        reaches_limit = and_(
            TokenBudget.auto_pause_at_limit.is_(True),
            or_(new_tokens >= TokenBudget.token_limit, new_cost >= TokenBudget.cost_limit),
        )
        await self.session.execute(
            update(TokenBudget)
            .where(TokenBudget.id == budget_id)
            .values(
                tokens_used=new_tokens,
                cost_used=new_cost,
                is_paused=case((reaches_limit, True), else_=TokenBudget.is_paused),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def claim_alert(self, budget_id: UUID, threshold: int) -> bool:
        """Record that ``threshold`` was crossed; True only for the first claimant."""
        result = await self.session.execute(
            update(TokenBudget)
            .where(TokenBudget.id == budget_id, TokenBudget.last_alert_threshold < threshold)
            .values(last_alert_threshold=threshold)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def reset_usage(self, budget_id: UUID) -> Optional[TokenBudget]:
        await self.session.execute(
            update(TokenBudget)
            .where(TokenBudget.id == budget_id)
            .values(tokens_used=0, cost_used=0.0, is_paused=False, last_alert_threshold=0)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return await self.get_fresh(budget_id)


class TokenUsageRepository(BaseRepository[TokenUsage]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TokenUsage)

    async def list_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[TokenUsage]:
        stmt = select(TokenUsage).order_by(TokenUsage.created_at.asc())
        if start is not None:
            stmt = stmt.where(TokenUsage.created_at >= start)
        if end is not None:
            stmt = stmt.where(TokenUsage.created_at <= end)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def summarize(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Totals, cache hit rate and per-operation/per-model breakdowns."""
        rows = await self.list_between(start, end)

        total_requests = len(rows)
        cache_hits = sum(1 for r in rows if r.cache_hit)
        by_operation: Dict[str, Dict[str, Any]] = {}
        by_model: Dict[str, Dict[str, Any]] = {}

        for row in rows:
            for key, bucket in ((row.operation, by_operation), (row.model, by_model)):
                entry = bucket.setdefault(key, {"requests": 0, "tokens": 0, "cost": 0.0})
                entry["requests"] += 1
                entry["tokens"] += row.total_tokens
                entry["cost"] += row.estimated_cost

        return {
            "total_requests": total_requests,
            "total_tokens": sum(r.total_tokens for r in rows),
            "total_cost": round(sum(r.estimated_cost for r in rows), 6),
            "cache_hits": cache_hits,
            "cache_hit_rate": round(100 * cache_hits / total_requests, 2) if total_requests else 0.0,
            "by_operation": by_operation,
            "by_model": by_model,
        }
