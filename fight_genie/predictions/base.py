"""Base types and ABC for AI prediction providers."""

from __future__ import annotations

import abc
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from fight_genie.events.base import EventMeta, FightRow


class CardType(str, Enum):
    MAIN = "main"
    PRELIMS = "prelims"


class ModelName(str, Enum):
    GPT = "gpt"
    CLAUDE = "claude"


@dataclass
class StoredPrediction:
    prediction_id: int
    event_id: int
    card_type: CardType
    model_used: ModelName
    prediction_data: str  # raw JSON text exactly as persisted
    created_at: str

    @property
    def data(self) -> dict[str, Any]:
        return json.loads(self.prediction_data)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> StoredPrediction:
        return cls(
            prediction_id=row["prediction_id"],
            event_id=row["event_id"],
            card_type=CardType(row["card_type"]),
            model_used=ModelName(row["model_used"]),
            prediction_data=row["prediction_data"],
            created_at=row["created_at"],
        )


class PredictionProvider(abc.ABC):
    """An opaque external generator of prediction JSON for a list of fights."""

    model: ModelName

    @abc.abstractmethod
    async def generate(self, event: EventMeta, fights: list[FightRow]) -> dict[str, Any]:
        """Return the prediction payload for the given fights."""
        ...

    async def close(self) -> None:
        return None
