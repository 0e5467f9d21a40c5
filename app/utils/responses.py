from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.exceptions import AppError
from app.schemas.common import ApiResponse, ErrorDetail, ResponseMeta
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _request_id(request: Optional[Request]) -> str:
    if request is not None and hasattr(request.state, "correlation_id"):
        return request.state.correlation_id
    return str(uuid4())


def _as_dict(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict):
        return data
    if hasattr(data, "model_dump"):
        return data.model_dump()
    if isinstance(data, list):
        return {"items": [item.model_dump() if hasattr(item, "model_dump") else item for item in data]}
    if data is None:
        return {}
    return {"value": data}


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1",
) -> Dict[str, Any]:
    """Create a standardized API response as a dictionary.

    Lists are wrapped as ``{"items": [...]}`` and scalars as ``{"value": ...}``.
    """
    meta = ResponseMeta(
        timestamp=datetime.now(timezone.utc),
        request_id=_request_id(request),
        api_version=api_version,
    )
    response = ApiResponse(status=status, message=message, data=_as_dict(data), meta=meta)
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None,
    code: Optional[str] = None,
    retryable: bool = False,
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        code=code,
        retryable=retryable,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render ``AppError`` subclasses with their status code and error code."""
    if exc.status_code >= 500:
        LOGGER.error(
            f"{exc.code}: {exc.message}",
            exc_info=exc.original_error or exc,
            extra={"path": request.url.path},
        )
    else:
        LOGGER.info(f"{exc.code}: {exc.message}", extra={"path": request.url.path})

    detail = create_error_detail(
        title=exc.__class__.__name__,
        status=exc.status_code,
        detail=exc.message,
        request=request,
        code=exc.code,
        retryable=exc.retryable,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": detail.model_dump(mode="json")})
