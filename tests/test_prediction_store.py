"""Tests for the per-(event, card, model) prediction cache."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_details, make_fights
from fight_genie.errors import ExternalProviderError
from fight_genie.predictions.base import CardType, ModelName
from fight_genie.predictions.store import PredictionStore

PAYLOAD = {
    "fights": [
        {
            "fighter1": "Red Fighter 0",
            "fighter2": "Blue Fighter 0",
            "predictedWinner": "Red Fighter 0",
            "method": "KO/TKO",
            "confidence": 70,
        }
    ]
}


@pytest.fixture
async def event_id(repo) -> int:
    return await repo.create_event_batch(make_details(), make_fights(6))


@pytest.mark.asyncio
async def test_generator_runs_once(repo, event_id):
    store = PredictionStore(repo)
    generator = AsyncMock(return_value=PAYLOAD)

    first = await store.get_or_create(event_id, "main", "gpt", generator)
    second = await store.get_or_create(event_id, CardType.MAIN, ModelName.GPT, generator)

    assert generator.await_count == 1
    assert first == second == PAYLOAD


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_generation(repo, event_id):
    store = PredictionStore(repo)
    calls = 0

    async def slow_generator():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return PAYLOAD

    results = await asyncio.gather(
        *(store.get_or_create(event_id, "prelims", "claude", slow_generator) for _ in range(5))
    )

    assert calls == 1
    assert all(r == PAYLOAD for r in results)


@pytest.mark.asyncio
async def test_keys_are_independent(repo, event_id):
    store = PredictionStore(repo)
    generator = AsyncMock(return_value=PAYLOAD)

    await store.get_or_create(event_id, "main", "gpt", generator)
    await store.get_or_create(event_id, "prelims", "gpt", generator)
    await store.get_or_create(event_id, "main", "claude", generator)

    assert generator.await_count == 3


@pytest.mark.asyncio
async def test_get_returns_none_when_absent(repo, event_id):
    store = PredictionStore(repo)
    assert await store.get(event_id, "main", "gpt") is None

    await store.get_or_create(event_id, "main", "gpt", AsyncMock(return_value=PAYLOAD))
    assert await store.get(event_id, "main", "gpt") == PAYLOAD


@pytest.mark.asyncio
async def test_generator_failure_stores_nothing(repo, event_id):
    store = PredictionStore(repo)
    failing = AsyncMock(side_effect=ExternalProviderError("openai", "HTTP 500", status_code=500))

    with pytest.raises(ExternalProviderError):
        await store.get_or_create(event_id, "main", "gpt", failing)

    assert await store.get(event_id, "main", "gpt") is None
    retry = AsyncMock(return_value=PAYLOAD)
    assert await store.get_or_create(event_id, "main", "gpt", retry) == PAYLOAD
    retry.assert_awaited_once()


@pytest.mark.asyncio
async def test_invalid_card_or_model(repo, event_id):
    store = PredictionStore(repo)
    generator = AsyncMock(return_value=PAYLOAD)

    with pytest.raises(ValueError):
        await store.get_or_create(event_id, "undercard", "gpt", generator)
    with pytest.raises(ValueError):
        await store.get(event_id, "main", "llama")
    generator.assert_not_awaited()


@pytest.mark.asyncio
async def test_key_locks_released_after_use(repo, event_id):
    store = PredictionStore(repo)

    async def slow_generator():
        await asyncio.sleep(0.01)
        return PAYLOAD

    await asyncio.gather(
        *(store.get_or_create(event_id, "main", "gpt", slow_generator) for _ in range(3))
    )
    await store.get_or_create(event_id, "prelims", "gpt", AsyncMock(return_value=PAYLOAD))
    with pytest.raises(ExternalProviderError):
        await store.get_or_create(
            event_id, "main", "claude", AsyncMock(side_effect=ExternalProviderError("x", "down"))
        )

    assert store._locks == {}
