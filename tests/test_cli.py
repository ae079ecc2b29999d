"""CLI tests with the session wired to in-memory fakes."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from variant_preview import cli
from variant_preview.core.errors import HttpError
from variant_preview.core.types import VariantId, all_variants
from variant_preview.session import build_session

from helpers import S1, RecordingPackager, ScriptedFetcher, make_payload


runner = CliRunner()


@pytest.fixture
def fakes(monkeypatch):
    script = {(S1, v): [make_payload("Doc", v)] for v in all_variants()}
    script[(S1, VariantId.DRUDGE)] = [HttpError(500)] * 3
    fetcher = ScriptedFetcher(script)
    packager = RecordingPackager()

    def fake_build_session(cfg):
        return build_session(cfg, fetcher=fetcher, packager=packager)

    monkeypatch.setattr(cli, "build_session", fake_build_session)
    return fetcher, packager


def test_variants_lists_every_variant():
    result = runner.invoke(cli.app, ["variants"])
    assert result.exit_code == 0
    for variant in all_variants():
        assert variant.value in result.output


def test_preview_renders_first_loaded_variant(fakes):
    fetcher, _ = fakes
    result = runner.invoke(cli.app, ["preview", "one.example.com/post", "--no-log-file"])
    assert result.exit_code == 0, result.output
    assert "Doc (modern)" in result.output
    assert len(fetcher.calls) == len(all_variants())


def test_preview_with_preferred_variant(fakes):
    result = runner.invoke(cli.app, ["preview", "one.example.com/post", "--variant", "ghibli"])
    assert result.exit_code == 0, result.output
    assert "Doc (ghibli)" in result.output


def test_unknown_variant_is_rejected():
    result = runner.invoke(cli.app, ["preview", "one.example.com/post", "--variant", "sepia"])
    assert result.exit_code == 2


def test_all_failed_exits_with_error(monkeypatch):
    fetcher = ScriptedFetcher({(S1, v): [HttpError(503)] for v in all_variants()})
    monkeypatch.setattr(cli, "build_session", lambda cfg: build_session(cfg, fetcher=fetcher))
    result = runner.invoke(cli.app, ["preview", S1])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_export_writes_bundle(fakes, tmp_path):
    _, packager = fakes
    result = runner.invoke(cli.app, ["export", S1, "--variant", "matrix", "--output", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Bundle written" in result.output
    assert (tmp_path / "site.zip").read_bytes() == b"PK\x03\x04"
    assert packager.requests[0].variant is VariantId.MATRIX
    assert packager.requests[0].source_key == S1


def test_export_of_failed_variant_exits_with_error(fakes, tmp_path):
    _, packager = fakes
    result = runner.invoke(cli.app, ["export", S1, "--variant", "drudge", "--output", str(tmp_path)])
    assert result.exit_code == 1
    assert packager.requests == []
