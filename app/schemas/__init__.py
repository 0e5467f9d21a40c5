from .common import ApiResponse, ErrorDetail, ResponseMeta

__all__ = [
    "ApiResponse",
    "ErrorDetail",
    "ResponseMeta",
]
