"""
Variant Preview - preview a remote document in several rendering variants.

This package fetches every rendering variant of a source document
concurrently, caches the results for the current source, lets the user
switch between variants (retrying failed ones on demand), and exports the
selected variant through a remote packager.

Main entry point is the CLI via the `variant-preview` command.

Example:
    $ variant-preview preview example.com/blog/post --variant matrix
"""

__all__ = [
    "__version__",
    "PreviewCache",
    "PreviewSession",
    "SessionPhase",
    "VariantId",
    "build_session",
    "extract_front_matter",
    "normalize_source_key",
]
__version__ = "0.1.0"

from .core.cache import PreviewCache
from .core.source_key import normalize_source_key
from .core.types import VariantId
from .render.front_matter import extract_front_matter
from .session import PreviewSession, SessionPhase, build_session
