from abc import ABC, abstractmethod
from typing import Any, Optional

from app.core.exceptions import AppError
from app.repositories.base_repository import BaseRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for application services.

    ``execute`` validates input, runs the service and normalizes failures:
    ``AppError`` subclasses pass through untouched so the API can render their
    status, anything else is logged and wrapped in a generic ``AppError``.
    """

    def __init__(self, repository: Optional[BaseRepository] = None):
        self.repository = repository
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        try:
            self.validate(*args, **kwargs)
            return await self.run(*args, **kwargs)
        except AppError:
            raise
        except Exception as e:
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e)

    def validate(self, *args, **kwargs) -> None:
        """Override to reject bad input with ``ValidationError``."""

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Core service logic."""
