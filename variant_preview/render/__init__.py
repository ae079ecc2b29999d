"""
Rendering helpers applied to loaded variants.
"""

from .front_matter import display_title, extract_front_matter

__all__ = ["display_title", "extract_front_matter"]
