"""Tests for token budget administration."""

from uuid import uuid4

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.repositories.token_budget_repository import TokenBudgetRepository
from app.services.budget_service import BudgetService


class TestCreateBudget:
    async def test_create_sets_period_window(self, session):
        service = BudgetService(session)

        budget = await service.create_budget("WEEKLY", token_limit=50_000, cost_limit=25.0)

        assert budget.is_active is True
        assert budget.tokens_used == 0
        assert (budget.end_date - budget.start_date).days == 7

    async def test_new_budget_replaces_active_one_for_period(self, session):
        service = BudgetService(session)
        first = await service.create_budget("DAILY", token_limit=1000, cost_limit=1.0)
        second = await service.create_budget("DAILY", token_limit=2000, cost_limit=2.0)

        active = await service.list_budgets(active_only=True)

        assert [b.id for b in active] == [second.id]
        assert (await service.get_budget(first.id)).is_active is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"period": "YEARLY", "token_limit": 10, "cost_limit": 1.0},
            {"period": "DAILY", "token_limit": 0, "cost_limit": 1.0},
            {"period": "DAILY", "token_limit": 10, "cost_limit": -1.0},
        ],
    )
    async def test_invalid_input_is_rejected(self, session, kwargs):
        with pytest.raises(ValidationError):
            await BudgetService(session).create_budget(**kwargs)


class TestUpdateBudget:
    async def test_update_limits_and_flags(self, session):
        service = BudgetService(session)
        budget = await service.create_budget("MONTHLY", token_limit=1000, cost_limit=10.0)

        updated = await service.update_budget(
            budget.id, token_limit=5000, auto_pause_at_limit=True, tokens_used=999
        )

        assert updated.token_limit == 5000
        assert updated.auto_pause_at_limit is True
        assert updated.tokens_used == 0

    async def test_reactivating_deactivates_current_budget(self, session):
        service = BudgetService(session)
        old = await service.create_budget("DAILY", token_limit=1000, cost_limit=1.0)
        current = await service.create_budget("DAILY", token_limit=2000, cost_limit=2.0)

        reactivated = await service.update_budget(old.id, is_active=True)

        assert reactivated.is_active is True
        assert (await service.get_budget(current.id)).is_active is False

    async def test_unknown_budget_is_not_found(self, session):
        with pytest.raises(NotFoundError):
            await BudgetService(session).update_budget(uuid4(), token_limit=10)


class TestBudgetStatus:
    async def test_status_per_period(self, session):
        service = BudgetService(session)
        budget = await service.create_budget("DAILY", token_limit=1000, cost_limit=10.0)
        await TokenBudgetRepository(session).settle(budget.id, 250, 1.0)

        status = await service.get_budget_status()

        assert status["WEEKLY"] is None
        assert status["MONTHLY"] is None
        assert status["DAILY"]["tokens_used"] == 250
        assert status["DAILY"]["percentage"] == 25.0

    async def test_reset_clears_usage_pause_and_alerts(self, session):
        service = BudgetService(session)
        budget = await service.create_budget(
            "DAILY", token_limit=100, cost_limit=10.0, auto_pause_at_limit=True
        )
        repository = TokenBudgetRepository(session)
        await repository.settle(budget.id, 150, 0.5)
        await repository.claim_alert(budget.id, 100)

        reset = await service.reset_budget(budget.id)

        assert reset.tokens_used == 0
        assert reset.cost_used == 0.0
        assert reset.is_paused is False
        assert reset.last_alert_threshold == 0

    async def test_delete(self, session):
        service = BudgetService(session)
        budget = await service.create_budget("DAILY", token_limit=100, cost_limit=1.0)

        await service.delete_budget(budget.id)

        with pytest.raises(NotFoundError):
            await service.get_budget(budget.id)
        with pytest.raises(NotFoundError):
            await service.delete_budget(budget.id)

    async def test_usage_stats_are_empty_without_requests(self, session):
        stats = await BudgetService(session).get_usage_stats(days=7)

        assert stats["total_requests"] == 0
        assert stats["cache_hit_rate"] == 0.0
