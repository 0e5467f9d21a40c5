"""LLM completion adapter with caching, budget gating and usage accounting.

Every call goes through the same sequence:

1. Look up the normalized prompt in the cache. A live hit returns the stored
   text, counts the hit and records a zero-cost usage row. Budgets are not
   touched.
2. Reserve the estimated prompt tokens on every active budget with one
   conditional UPDATE each. A refused reservation raises ``CapacityError``.
3. Call the provider. Failures release the reservations and surface as
   ``GenerationError``.
4. Settle the actual usage (pausing budgets that reach their limit in the
   same statement), emit threshold alerts once per crossing, record usage and
   cache the text.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from app.core.config import LLMSettings, settings
from app.core.exceptions import APIClientError, CapacityError, GenerationError
from app.core.llm_client import LLMResponse
from app.database.models import TokenBudget
from app.repositories.token_budget_repository import TokenBudgetRepository, TokenUsageRepository
from app.services.generation.cache_store import (
    CacheStore,
    generate_cache_key,
    generate_prompt_hash,
)
from app.services.notifications import EventType, GenerationEvent, NotificationSink
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

ALERT_THRESHOLDS = (100, 90, 75, 50)


class CompletionClient(Protocol):
    model: str

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> LLMResponse: ...


@dataclass
class CompletionOptions:
    system_prompt: Optional[str] = None
    use_cache: bool = True
    cache_ttl_hours: int = 168
    operation: str = "GENERATE"
    client_id: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    max_output_tokens: Optional[int] = None
    temperature: float = 0.7


@dataclass
class CompletionResult:
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    cache_hit: bool = False


def estimate_tokens(text: Optional[str]) -> int:
    """Rough token count at four characters per token."""
    return math.ceil(len(text) / 4) if text else 0


def calculate_cost(prompt_tokens: int, completion_tokens: int, llm_settings: LLMSettings) -> float:
    return (prompt_tokens / 1000) * llm_settings.cost_per_1k_input + (
        completion_tokens / 1000
    ) * llm_settings.cost_per_1k_output


def budget_percentage(budget: TokenBudget) -> float:
    """Highest of token and cost usage as a percentage of the limits."""
    token_pct = (budget.tokens_used / budget.token_limit) * 100 if budget.token_limit else 0.0
    cost_pct = (budget.cost_used / budget.cost_limit) * 100 if budget.cost_limit else 0.0
    return max(token_pct, cost_pct)


def alert_threshold(budget: TokenBudget) -> Optional[int]:
    """Highest enabled alert threshold the budget has reached."""
    percentage = budget_percentage(budget)
    enabled = {
        100: budget.alert_at_100,
        90: budget.alert_at_90,
        75: budget.alert_at_75,
        50: budget.alert_at_50,
    }
    for threshold in ALERT_THRESHOLDS:
        if percentage >= threshold and enabled[threshold]:
            return threshold
    return None


class CompletionService:
    """Cached, budget-governed access to the LLM."""

    def __init__(
        self,
        llm_client: CompletionClient,
        cache_store: CacheStore,
        budget_repository: TokenBudgetRepository,
        usage_repository: TokenUsageRepository,
        notifier: Optional[NotificationSink] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        self.llm_client = llm_client
        self.cache_store = cache_store
        self.budget_repository = budget_repository
        self.usage_repository = usage_repository
        self.notifier = notifier
        self.llm_settings = llm_settings or settings.llm

    @property
    def model(self) -> str:
        return getattr(self.llm_client, "model", None) or self.llm_settings.active_model

    async def generate(
        self, prompt: str, options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """Generate text for ``prompt``.

        Raises:
            CapacityError: If an active budget is paused or exhausted
            GenerationError: If the provider fails or returns no text
        """
        options = options or CompletionOptions()
        max_tokens = options.max_output_tokens or self.llm_settings.max_output_tokens
        cache_key = generate_cache_key(
            prompt,
            self.model,
            system_prompt=options.system_prompt,
            operation=options.operation,
            temperature=options.temperature,
            max_tokens=max_tokens,
        )

        if options.use_cache:
            cached = await self.cache_store.get(cache_key)
            if cached is not None:
                return await self._serve_cached(cache_key, prompt, cached.response, cached.model, options)

        estimated = estimate_tokens(prompt) + estimate_tokens(options.system_prompt)
        reserved = await self._reserve(estimated)

        try:
            response = await self._call_model(prompt, options, max_tokens)
        except Exception:
            await self._release(reserved, estimated)
            raise

        prompt_tokens = response.prompt_tokens or estimated
        completion_tokens = response.completion_tokens or estimate_tokens(response.text)
        total_tokens = prompt_tokens + completion_tokens
        cost = calculate_cost(prompt_tokens, completion_tokens, self.llm_settings)

        for budget in reserved:
            await self.budget_repository.settle(budget.id, total_tokens - estimated, cost)
        await self._check_alerts(reserved, options)

        await self._record_usage(
            options,
            model=response.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=cost,
            cache_hit=False,
            cache_key=cache_key,
        )

        if options.use_cache:
            await self.cache_store.set(
                cache_key,
                generate_prompt_hash(prompt),
                response.text,
                response.model,
                options.cache_ttl_hours,
            )

        LOGGER.info(
            f"Completion for {options.operation}: {total_tokens} tokens (${cost:.4f})",
            extra={"operation": options.operation, "client_id": options.client_id},
        )
        return CompletionResult(
            text=response.text,
            model=response.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            cost=cost,
            cache_hit=False,
        )

    async def get_token_stats(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self.usage_repository.summarize(start, end)

    async def get_cache_stats(self) -> Dict[str, int]:
        return await self.cache_store.stats()

    async def clear_expired_cache(self) -> int:
        cleared = await self.cache_store.clear_expired()
        LOGGER.info(f"Cleared {cleared} expired cache entries")
        return cleared

    async def _serve_cached(
        self,
        cache_key: str,
        prompt: str,
        text: str,
        model: str,
        options: CompletionOptions,
    ) -> CompletionResult:
        await self.cache_store.increment(cache_key, estimate_tokens(prompt) + estimate_tokens(text))
        await self._record_usage(
            options,
            model=model,
            prompt_tokens=0,
            completion_tokens=0,
            cost=0.0,
            cache_hit=True,
            cache_key=cache_key,
        )
        LOGGER.info(
            f"Cache hit for {options.operation}",
            extra={"operation": options.operation, "cache_key": cache_key[:12]},
        )
        return CompletionResult(text=text, model=model, cache_hit=True)

    async def _call_model(
        self, prompt: str, options: CompletionOptions, max_tokens: int
    ) -> LLMResponse:
        try:
            response = await self.llm_client.generate_content(
                prompt,
                system_instruction=options.system_prompt,
                max_output_tokens=max_tokens,
                temperature=options.temperature,
            )
        except APIClientError as e:
            LOGGER.error(
                f"Completion failed for {options.operation}: {e.message}",
                exc_info=True,
                extra={"operation": options.operation, "client_id": options.client_id},
            )
            raise GenerationError(f"Completion failed: {e.message}", original_error=e) from e

        if not response.text or not response.text.strip():
            raise GenerationError(f"Completion for {options.operation} returned no text")
        return response

    async def _reserve(self, tokens: int) -> List[TokenBudget]:
        """Reserve ``tokens`` on every active budget, all or nothing."""
        reserved: List[TokenBudget] = []
        for budget in await self.budget_repository.list_active():
            if not await self.budget_repository.try_reserve(budget.id, tokens):
                await self._release(reserved, tokens)
                LOGGER.warning(
                    f"{budget.period} token budget refused generation",
                    extra={"budget_id": str(budget.id), "paused": budget.is_paused},
                )
                raise CapacityError(
                    f"{budget.period} token budget is paused or exhausted; generation blocked"
                )
            reserved.append(budget)
        return reserved

    async def _release(self, budgets: List[TokenBudget], tokens: int) -> None:
        for budget in budgets:
            await self.budget_repository.release(budget.id, tokens)

    async def _check_alerts(self, budgets: List[TokenBudget], options: CompletionOptions) -> None:
        for budget in budgets:
            fresh = await self.budget_repository.get_fresh(budget.id)
            if fresh is None:
                continue

            threshold = alert_threshold(fresh)
            if threshold is None or not await self.budget_repository.claim_alert(fresh.id, threshold):
                continue

            description = (
                f"Token budget alert: {fresh.period} budget {threshold}% threshold reached. "
                f"Used {fresh.tokens_used:,} tokens (${fresh.cost_used:.2f})"
            )
            LOGGER.warning(description, extra={"budget_id": str(fresh.id)})
            if self.notifier is not None:
                await self.notifier.notify(
                    GenerationEvent(
                        type=EventType.TOKEN_BUDGET_ALERT,
                        description=description,
                        user_id=options.user_id,
                        metadata={
                            "budget_id": str(fresh.id),
                            "period": fresh.period,
                            "threshold": threshold,
                            "tokens_used": fresh.tokens_used,
                            "cost_used": fresh.cost_used,
                            "paused": fresh.is_paused,
                        },
                    )
                )

    async def _record_usage(
        self,
        options: CompletionOptions,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost: float,
        cache_hit: bool,
        cache_key: str,
    ) -> None:
        await self.usage_repository.create(
            operation=options.operation,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            estimated_cost=cost,
            cache_hit=cache_hit,
            cache_key=cache_key,
            client_id=options.client_id,
            user_id=options.user_id,
            usage_metadata=options.metadata or None,
        )
