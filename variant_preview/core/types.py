"""
Core data types for variant previews.

This module defines the data structures shared by the cache, the
orchestrator and the selection state:
- VariantId: The closed set of rendering variants, in priority order
- PreviewPayload: One successfully transformed variant of a document
- VariantResult: Settled outcome of one variant fetch (payload or error)
- VariantState: Lifecycle state of one variant inside the cache
- CacheEntry: Read-only snapshot of the cache for one source key
- ActiveSelection: The variant and display mode currently shown
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .errors import FetchError, ValidationError


class VariantId(str, Enum):
    """Rendering variants. Declaration order is the selection priority order."""

    MODERN = "modern"
    DRUDGE = "drudge"
    MATRIX = "matrix"
    GHIBLI = "ghibli"

    @property
    def info(self) -> "VariantInfo":
        return VARIANT_INFO[self]


@dataclass(frozen=True)
class VariantInfo:
    name: str
    description: str


VARIANT_INFO: Mapping[VariantId, VariantInfo] = MappingProxyType(
    {
        VariantId.MODERN: VariantInfo(
            "Modern",
            "Clean, minimalist design with focus on readability.",
        ),
        VariantId.DRUDGE: VariantInfo(
            "Drudge",
            "Retro news feed style with emphasis on headlines.",
        ),
        VariantId.MATRIX: VariantInfo(
            "Matrix",
            "Monospaced, code-focused, minimal decoration.",
        ),
        VariantId.GHIBLI: VariantInfo(
            "Ghibli",
            "Whimsical and soft, like a journal entry.",
        ),
    }
)

_missing_info = set(VariantId) - set(VARIANT_INFO)
if _missing_info:
    raise RuntimeError(f"VARIANT_INFO has no entry for: {sorted(v.value for v in _missing_info)}")


def all_variants() -> tuple[VariantId, ...]:
    """Return every variant in priority order."""
    return tuple(VariantId)


def parse_variant(name: str) -> VariantId:
    """Parse a variant name, ignoring case and surrounding whitespace."""
    cleaned = (name or "").strip().lower()
    try:
        return VariantId(cleaned)
    except ValueError:
        supported = ", ".join(v.value for v in VariantId)
        raise ValidationError(f"Unknown variant: {name!r}. Supported: {supported}") from None


class DisplayMode(str, Enum):
    RAW = "raw"
    TRANSFORMED = "transformed"

    def toggled(self) -> "DisplayMode":
        return DisplayMode.RAW if self is DisplayMode.TRANSFORMED else DisplayMode.TRANSFORMED


@dataclass(frozen=True)
class PreviewPayload:
    """One variant of a source document as returned by the transform service.

    The cache and the orchestrator treat this as opaque; only the rendering
    layer and the export step read its fields.

    Attributes:
        title: Document title
        author: Author name, if the source exposes one
        published_date: Publication date as reported by the source
        raw_content: Original HTML of the document
        transformed_content: Markdown produced for this variant
        featured_image: URL of the featured image, if any
    """

    title: str
    author: str | None
    published_date: str | None
    raw_content: str
    transformed_content: str
    featured_image: str | None = None


@dataclass(frozen=True)
class VariantResult:
    """Settled result of fetching one variant.

    Either payload will be populated (success) or error will be populated
    (failure), but never both.
    """

    variant: VariantId
    payload: PreviewPayload | None = None
    error: FetchError | None = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error is None):
            raise ValueError("VariantResult needs exactly one of payload or error")

    @property
    def ok(self) -> bool:
        return self.payload is not None

    @classmethod
    def success(cls, variant: VariantId, payload: PreviewPayload) -> "VariantResult":
        return cls(variant=variant, payload=payload)

    @classmethod
    def failure(cls, variant: VariantId, error: FetchError) -> "VariantResult":
        return cls(variant=variant, error=error)


class VariantStatus(str, Enum):
    UNREQUESTED = "unrequested"
    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class VariantState:
    status: VariantStatus
    payload: PreviewPayload | None = None
    error: FetchError | None = None

    @classmethod
    def unrequested(cls) -> "VariantState":
        return cls(VariantStatus.UNREQUESTED)

    @classmethod
    def pending(cls) -> "VariantState":
        return cls(VariantStatus.PENDING)

    @classmethod
    def from_result(cls, result: VariantResult) -> "VariantState":
        if result.payload is not None:
            return cls(VariantStatus.LOADED, payload=result.payload)
        return cls(VariantStatus.FAILED, error=result.error)

    @property
    def is_loaded(self) -> bool:
        return self.status is VariantStatus.LOADED

    @property
    def is_failed(self) -> bool:
        return self.status is VariantStatus.FAILED

    @property
    def is_pending(self) -> bool:
        return self.status is VariantStatus.PENDING


@dataclass(frozen=True)
class CacheEntry:
    """Snapshot of every variant's state for one source key.

    Attributes:
        source_key: The source key the states belong to
        generation: Latest batch generation issued for the key
        states: Variant state per variant id, in priority order
    """

    source_key: str
    generation: int
    states: Mapping[VariantId, VariantState] = field(default_factory=dict)

    def _with_status(self, status: VariantStatus) -> tuple[VariantId, ...]:
        return tuple(v for v, state in self.states.items() if state.status is status)

    @property
    def loaded(self) -> tuple[VariantId, ...]:
        return self._with_status(VariantStatus.LOADED)

    @property
    def failed(self) -> tuple[VariantId, ...]:
        return self._with_status(VariantStatus.FAILED)

    @property
    def pending(self) -> tuple[VariantId, ...]:
        return self._with_status(VariantStatus.PENDING)

    def state(self, variant: VariantId) -> VariantState:
        return self.states.get(variant, VariantState.unrequested())

    def payload(self, variant: VariantId) -> PreviewPayload | None:
        return self.state(variant).payload


@dataclass(frozen=True)
class ActiveSelection:
    source_key: str
    variant: VariantId
    mode: DisplayMode = DisplayMode.TRANSFORMED
