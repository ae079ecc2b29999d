"""
Export of the active variant through the remote packager.
"""

from .packager import ExportBundle, ExportResult, HttpPackager, PackageRequest, Packager
from .trigger import ExportTrigger

__all__ = [
    "ExportBundle",
    "ExportResult",
    "ExportTrigger",
    "HttpPackager",
    "PackageRequest",
    "Packager",
]
