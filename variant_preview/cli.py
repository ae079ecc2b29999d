"""
Command-line interface for variant previews.

Uses Typer to provide commands to list variants, preview a document in
every variant, and export the selected variant through the packager.
Supports loading .env files for service URLs and credentials.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console
from rich.markup import escape

from .config import AppConfig, load_config
from .core.errors import NotReady, PreviewError
from .core.types import DisplayMode, VariantId, parse_variant
from .render.console import describe_error, render_payload, status_table, variants_table
from .session import PreviewSession, SessionPhase, build_session
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False)
console = Console()


def _load(config: Path | None, log_level: str | None, log_file: bool | None) -> AppConfig:
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file
    setup_logging(cfg.logging)
    return cfg


def _print_status(session: PreviewSession) -> None:
    snapshot = session.snapshot()
    console.print(
        status_table(
            snapshot.loaded,
            snapshot.failed,
            snapshot.pending,
            snapshot.variant_errors,
            snapshot.active.variant if snapshot.active else None,
        )
    )


async def _load_preview(
    session: PreviewSession,
    url: str,
    preferred: VariantId | None,
    retry_failed: bool,
) -> None:
    snapshot = await session.submit_source(url, preferred)
    if snapshot.phase is SessionPhase.ALL_FAILED:
        _print_status(session)
        raise session.error or NotReady("No variant loaded")
    if retry_failed and snapshot.failed:
        await session.retry_failed()
    if preferred is not None and session.active is not None and session.active.variant is not preferred:
        task = session.select_variant(preferred)
        if task is not None:
            await task


async def _preview(cfg: AppConfig, url: str, preferred: VariantId | None, raw: bool, retry_failed: bool) -> None:
    session = build_session(cfg)
    await _load_preview(session, url, preferred, retry_failed)
    if raw:
        session.set_display_mode(DisplayMode.RAW)
    _print_status(session)
    active = session.active
    if active is None:
        raise NotReady("No active variant")
    render_payload(console, session.active_payload(), active.variant, session.display_mode)


async def _export(cfg: AppConfig, url: str, preferred: VariantId | None, output: Path) -> Path:
    session = build_session(cfg)
    await _load_preview(session, url, preferred, retry_failed=True)
    _print_status(session)
    if preferred is not None and (session.active is None or session.active.variant is not preferred):
        error = session.variant_error(preferred)
        detail = describe_error(error) if error else "not loaded"
        raise NotReady(f"Variant {preferred.value} is not available: {detail}")

    result = await session.export_active()
    if result.error is not None:
        raise result.error
    bundle = result.bundle
    output.mkdir(parents=True, exist_ok=True)
    target = output / bundle.filename
    target.write_bytes(bundle.content)
    return target


def _run(coro) -> object:
    try:
        return asyncio.run(coro)
    except PreviewError as exc:
        console.print(f"[red]Error:[/red] {escape(describe_error(exc))}")
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2)


def _parse_preferred(variant: str | None) -> VariantId | None:
    if not variant:
        return None
    try:
        return parse_variant(variant)
    except PreviewError as exc:
        raise typer.BadParameter(str(exc), param_hint="--variant")


@app.command()
def variants():
    """List the available rendering variants."""
    console.print(variants_table())


@app.command()
def preview(
    url: str = typer.Argument(..., help="Source document URL; https:// is added when missing."),
    variant: str | None = typer.Option(None, "--variant", "-v", help="Variant to show if it loads."),
    raw: bool = typer.Option(False, "--raw", help="Show the original content instead of the transformed one."),
    retry_failed: bool = typer.Option(False, "--retry-failed/--no-retry-failed", help="Retry failed variants once."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(None, "--log-file/--no-log-file", help="Enable or disable file logging."),
):
    """Fetch every variant of URL and show the active one."""
    cfg = _load(config, log_level, log_file)
    preferred = _parse_preferred(variant)
    _run(_preview(cfg, url, preferred, raw, retry_failed))


@app.command()
def export(
    url: str = typer.Argument(..., help="Source document URL; https:// is added when missing."),
    variant: str | None = typer.Option(None, "--variant", "-v", help="Variant to export."),
    output: Path = typer.Option(Path("out"), "--output", "-o", help="Directory for the bundle."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(None, "--log-file/--no-log-file", help="Enable or disable file logging."),
):
    """Preview URL, then export the selected variant as a bundle."""
    cfg = _load(config, log_level, log_file)
    preferred = _parse_preferred(variant)
    target = _run(_export(cfg, url, preferred, output))
    console.print(f"Bundle written: {target}")


if __name__ == "__main__":
    app()
