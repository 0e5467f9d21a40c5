"""Fire-and-forget notifications about generated documents and budgets."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.repositories.activity_repository import ActivityRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class EventType(str, Enum):
    BUSINESS_PLAN_GENERATED = "BUSINESS_PLAN_GENERATED"
    BUSINESS_PLAN_UPDATED = "BUSINESS_PLAN_UPDATED"
    DELIVERABLE_GENERATED = "DELIVERABLE_GENERATED"
    DELIVERABLE_UPDATED = "DELIVERABLE_UPDATED"
    TOKEN_BUDGET_ALERT = "SETTINGS_UPDATED"


@dataclass
class GenerationEvent:
    type: EventType
    description: str
    client_id: Optional[UUID] = None
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    async def notify(self, event: GenerationEvent) -> None: ...


class ActivityLogNotifier:
    """Writes events to the activity log.

    Never raises: a failed write is logged and the generation job carries on.
    """

    def __init__(self, repository: ActivityRepository):
        self.repository = repository

    async def notify(self, event: GenerationEvent) -> None:
        try:
            await self.repository.create(
                client_id=event.client_id,
                type=event.type.value,
                description=event.description,
                user_id=event.user_id,
                activity_metadata=event.metadata or None,
            )
        except SQLAlchemyError:
            LOGGER.error(
                f"Failed to record activity {event.type.value}",
                exc_info=True,
                extra={"client_id": str(event.client_id) if event.client_id else None},
            )
            await self.repository.rollback()

