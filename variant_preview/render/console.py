"""
Terminal rendering of a preview session with Rich.
"""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..core.errors import FetchError, RateLimited
from ..core.types import DisplayMode, PreviewPayload, VariantId, all_variants
from .front_matter import display_title, extract_front_matter


def variants_table() -> Table:
    table = Table(title="Variants")
    table.add_column("Id", style="bold")
    table.add_column("Name")
    table.add_column("Description")
    for variant in all_variants():
        table.add_row(variant.value, variant.info.name, variant.info.description)
    return table


def status_table(
    loaded: tuple[VariantId, ...],
    failed: tuple[VariantId, ...],
    pending: tuple[VariantId, ...],
    errors: dict[VariantId, FetchError],
    active: VariantId | None,
) -> Table:
    """One row per variant: state, whether it is active, and its last error."""
    table = Table(title="Preview status")
    table.add_column("Variant", style="bold")
    table.add_column("State")
    table.add_column("Active")
    table.add_column("Error")
    for variant in all_variants():
        if variant in loaded:
            state = "[green]loaded[/green]"
        elif variant in failed:
            state = "[red]failed (retryable)[/red]"
        elif variant in pending:
            state = "[yellow]pending[/yellow]"
        else:
            state = "[dim]unrequested[/dim]"
        error = errors.get(variant)
        table.add_row(
            variant.value,
            state,
            "*" if variant is active else "",
            escape(describe_error(error)) if error else "",
        )
    return table


def describe_error(error: Exception) -> str:
    if isinstance(error, RateLimited):
        wait = f" (retry after {error.retry_after:g}s)" if error.retry_after else ""
        return f"Rate limited, try again later{wait}"
    return f"{type(error).__name__}: {error}"


def render_payload(console: Console, payload: PreviewPayload, variant: VariantId, mode: DisplayMode) -> None:
    if mode is DisplayMode.RAW:
        console.rule(escape(f"{payload.title or 'Untitled'} [{variant.value}, raw]"))
        console.print(payload.raw_content, markup=False, highlight=False)
        return

    metadata, body = extract_front_matter(payload.transformed_content)
    title = display_title(metadata, body, fallback=payload.title or "Untitled")
    byline = [part for part in (metadata.get("author") or payload.author, metadata.get("date") or payload.published_date) if part]
    console.rule(escape(f"{title} [{variant.value}]"))
    if byline:
        console.print(Panel(escape(" | ".join(byline)), expand=False))
    console.print(Markdown(body))
