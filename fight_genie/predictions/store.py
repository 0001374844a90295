"""Cache of AI predictions, one per (event, card, model)."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from fight_genie.db.repository import Repository
from fight_genie.predictions.base import CardType, ModelName

log = structlog.get_logger()

PredictionGenerator = Callable[[], Awaitable[dict[str, Any]]]

PredictionKey = tuple[int, CardType, ModelName]


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0  # callers holding or waiting on the lock


class PredictionStore:
    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._locks: dict[PredictionKey, _KeyLock] = {}

    async def get(
        self, event_id: int, card_type: CardType | str, model: ModelName | str
    ) -> dict[str, Any] | None:
        card_type, model = _validate(card_type, model)
        stored = await self._repo.get_prediction(event_id, card_type, model)
        return stored.data if stored else None

    async def get_or_create(
        self,
        event_id: int,
        card_type: CardType | str,
        model: ModelName | str,
        generator: PredictionGenerator,
    ) -> dict[str, Any]:
        """Return the stored prediction, generating and storing it on first use.

        The generator runs at most once per key. Its errors propagate and
        nothing is stored.
        """
        card_type, model = _validate(card_type, model)
        key = (event_id, card_type, model)
        entry = self._locks.setdefault(key, _KeyLock())
        entry.users += 1
        try:
            async with entry.lock:
                stored = await self._repo.get_prediction(event_id, card_type, model)
                if stored is not None:
                    log.debug("prediction_cache_hit", event_id=event_id, card=card_type.value, model=model.value)
                    return stored.data

                payload = await generator()
                inserted = await self._repo.insert_prediction(
                    event_id, card_type, model, json.dumps(payload)
                )
                # Re-read so first and later callers see the same persisted text.
                stored = await self._repo.get_prediction(event_id, card_type, model)
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

        log.info(
            "prediction_stored" if inserted else "prediction_insert_ignored",
            event_id=event_id,
            card=card_type.value,
            model=model.value,
        )
        return stored.data if stored else payload


def _validate(card_type: CardType | str, model: ModelName | str) -> tuple[CardType, ModelName]:
    try:
        card = CardType(card_type)
    except ValueError:
        raise ValueError(f"card_type must be 'main' or 'prelims', got {card_type!r}") from None
    try:
        name = ModelName(model)
    except ValueError:
        raise ValueError(f"model must be 'gpt' or 'claude', got {model!r}") from None
    return card, name
