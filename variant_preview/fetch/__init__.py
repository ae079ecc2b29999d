"""
Variant fetching.

This package handles the HTTP round trip to the transform service and the
classification of its failures.
"""

from .fetcher import TransformServiceFetcher, VariantFetcher, parse_preview_payload

__all__ = [
    "TransformServiceFetcher",
    "VariantFetcher",
    "parse_preview_payload",
]
