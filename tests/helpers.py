"""Fakes shared by the preview tests."""

from __future__ import annotations

import asyncio
from typing import Callable

from variant_preview.core.errors import FetchError
from variant_preview.core.types import PreviewPayload, VariantId, VariantResult
from variant_preview.export.packager import ExportBundle, ExportResult, PackageRequest, Packager
from variant_preview.fetch.fetcher import VariantFetcher


X, Y, Z = VariantId.MODERN, VariantId.DRUDGE, VariantId.MATRIX
XYZ = (X, Y, Z)

S1 = "https://one.example.com/post"
S2 = "https://two.example.com/post"


def make_payload(title: str = "Doc", variant: VariantId = X) -> PreviewPayload:
    return PreviewPayload(
        title=title,
        author="Ada",
        published_date="2024-01-02",
        raw_content=f"<h1>{title}</h1>",
        transformed_content=f"# {title} ({variant.value})",
    )


class ScriptedFetcher(VariantFetcher):
    """Returns scripted outcomes per (source key, variant).

    Each script entry is a list consumed one item per call, so a retry can
    see a different outcome than the batch did. A source key with a gate
    blocks its fetches until the gate's event is set.
    """

    def __init__(self, script: dict[tuple[str, VariantId], list[PreviewPayload | FetchError]]):
        self.script = {key: list(items) for key, items in script.items()}
        self.calls: list[tuple[str, VariantId]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.on_fetch: Callable[[str, VariantId], None] | None = None

    def gate(self, source_key: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[source_key] = event
        return event

    async def fetch(self, source_key: str, variant: VariantId) -> VariantResult:
        self.calls.append((source_key, variant))
        if self.on_fetch is not None:
            self.on_fetch(source_key, variant)
        gate = self.gates.get(source_key)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        outcome = self.script[(source_key, variant)].pop(0)
        if isinstance(outcome, FetchError):
            return VariantResult.failure(variant, outcome)
        return VariantResult.success(variant, outcome)


class RecordingPackager(Packager):
    def __init__(self, error: FetchError | None = None):
        self.requests: list[PackageRequest] = []
        self.error = error

    async def package(self, request: PackageRequest) -> ExportResult:
        self.requests.append(request)
        if self.error is not None:
            return ExportResult(request=request, error=self.error)
        bundle = ExportBundle(filename="site.zip", media_type="application/zip", content=b"PK\x03\x04")
        return ExportResult(request=request, bundle=bundle)


async def settle() -> None:
    """Let every ready task run until it blocks."""
    for _ in range(5):
        await asyncio.sleep(0)
