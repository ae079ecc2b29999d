"""Tests for single-variant retries."""

from __future__ import annotations

import asyncio

import pytest

from variant_preview.batch import BatchOrchestrator
from variant_preview.core.cache import PreviewCache
from variant_preview.core.errors import HttpError, NetworkError, RetryNotAllowed
from variant_preview.retry import RetryController

from helpers import S1, S2, X, XYZ, Y, Z, ScriptedFetcher, make_payload, settle


def _scenario_a_script():
    return {
        (S1, X): [make_payload("Doc", X)],
        (S1, Y): [HttpError(500), make_payload("Doc", Y)],
        (S1, Z): [make_payload("Doc", Z)],
    }


def _setup(script):
    cache = PreviewCache(XYZ)
    fetcher = ScriptedFetcher(script)
    return cache, fetcher, BatchOrchestrator(cache, fetcher), RetryController(cache, fetcher)


def test_retry_moves_variant_from_failed_to_loaded():
    async def scenario():
        cache, _, orchestrator, retry = _setup(_scenario_a_script())
        await orchestrator.run(S1)
        before = cache.read(S1)
        outcome = await retry.retry(S1, Y)
        return before, cache.read(S1), outcome

    before, after, outcome = asyncio.run(scenario())

    assert outcome.committed and outcome.loaded
    assert after.loaded == (X, Y, Z)
    assert after.failed == ()
    assert after.state(X) == before.state(X)
    assert after.state(Z) == before.state(Z)
    assert after.generation == before.generation


def test_failed_retry_stays_failed_with_new_error():
    script = _scenario_a_script()
    script[(S1, Y)] = [HttpError(500), NetworkError("reset")]

    async def scenario():
        cache, _, orchestrator, retry = _setup(script)
        await orchestrator.run(S1)
        outcome = await retry.retry(S1, Y)
        return cache.read(S1), outcome

    entry, outcome = asyncio.run(scenario())

    assert outcome.committed and not outcome.loaded
    assert entry.failed == (Y,)
    assert isinstance(entry.state(Y).error, NetworkError)


def test_retry_of_loaded_or_unknown_source_is_refused():
    async def scenario():
        cache, fetcher, orchestrator, retry = _setup(_scenario_a_script())
        await orchestrator.run(S1)
        calls = len(fetcher.calls)
        with pytest.raises(RetryNotAllowed):
            await retry.retry(S1, X)
        with pytest.raises(RetryNotAllowed):
            await retry.retry(S2, Y)
        return calls, len(fetcher.calls)

    before, after = asyncio.run(scenario())
    assert before == after


def test_retry_commit_dropped_after_source_change():
    script = _scenario_a_script()
    script.update({(S2, v): [make_payload("Other", v)] for v in XYZ})

    async def scenario():
        cache, fetcher, orchestrator, retry = _setup(script)
        await orchestrator.run(S1)
        gate = fetcher.gate(S1)
        pending = asyncio.create_task(retry.retry(S1, Y))
        await settle()
        await orchestrator.run(S2)
        snapshot = cache.read(S2)
        gate.set()
        return cache, snapshot, await pending

    cache, snapshot, outcome = asyncio.run(scenario())

    assert outcome.result.ok
    assert not outcome.committed
    assert cache.read(S2) == snapshot
    assert cache.read(S1) is None


def test_concurrent_retries_are_independent():
    script = {
        (S1, X): [make_payload(variant=X)],
        (S1, Y): [HttpError(500), make_payload(variant=Y)],
        (S1, Z): [HttpError(500), HttpError(404)],
    }

    async def scenario():
        cache, _, orchestrator, retry = _setup(script)
        await orchestrator.run(S1)
        outcomes = await asyncio.gather(retry.retry(S1, Y), retry.retry(S1, Z))
        return cache.read(S1), outcomes

    entry, (y_outcome, z_outcome) = asyncio.run(scenario())

    assert y_outcome.loaded
    assert z_outcome.committed and not z_outcome.loaded
    assert entry.loaded == (X, Y)
    assert entry.failed == (Z,)
    assert entry.state(Z).error.status == 404
