"""
Core types, errors, source-key normalization and the preview cache.
"""

from .cache import PreviewCache
from .errors import (
    FetchError,
    HttpError,
    NetworkError,
    NotReady,
    PreviewError,
    RateLimited,
    RetryNotAllowed,
    TotalBatchFailure,
    UpstreamError,
    ValidationError,
)
from .source_key import normalize_source_key
from .types import (
    ActiveSelection,
    CacheEntry,
    DisplayMode,
    PreviewPayload,
    VariantId,
    VariantResult,
    VariantState,
    VariantStatus,
    all_variants,
    parse_variant,
)

__all__ = [
    "ActiveSelection",
    "CacheEntry",
    "DisplayMode",
    "FetchError",
    "HttpError",
    "NetworkError",
    "NotReady",
    "PreviewCache",
    "PreviewError",
    "PreviewPayload",
    "RateLimited",
    "RetryNotAllowed",
    "TotalBatchFailure",
    "UpstreamError",
    "ValidationError",
    "VariantId",
    "VariantResult",
    "VariantState",
    "VariantStatus",
    "all_variants",
    "normalize_source_key",
    "parse_variant",
]
