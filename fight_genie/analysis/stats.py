"""Per-model prediction accuracy aggregated from graded outcomes."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from fight_genie.db.repository import Repository

log = structlog.get_logger()


@dataclass
class ModelStats:
    model: str
    events_analyzed: int
    total_fights: int
    correct_fights: int
    correct_methods: int
    confidence_accuracy: float
    parlay_legs: int = 0
    correct_parlay_legs: int = 0
    props: int = 0
    correct_props: int = 0

    @property
    def fight_accuracy(self) -> float:
        if not self.total_fights:
            return 0.0
        return round(self.correct_fights / self.total_fights * 100, 2)

    @property
    def method_accuracy(self) -> float:
        if not self.total_fights:
            return 0.0
        return round(self.correct_methods / self.total_fights * 100, 2)

    @property
    def parlay_accuracy(self) -> float:
        if not self.parlay_legs:
            return 0.0
        return round(self.correct_parlay_legs / self.parlay_legs * 100, 2)

    @property
    def prop_accuracy(self) -> float:
        if not self.props:
            return 0.0
        return round(self.correct_props / self.props * 100, 2)


class ModelStatsTracker:
    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def get_stats(self) -> dict[str, ModelStats]:
        """Stats keyed by model name. Models without graded fights are absent."""
        rows = await self._repo.get_model_fight_stats()
        confidence = await self._repo.get_model_confidence_accuracy()
        parlays = await self._repo.get_model_leg_stats("parlay_outcomes")
        props = await self._repo.get_model_leg_stats("prop_outcomes")
        stats: dict[str, ModelStats] = {}
        for row in rows:
            model = row["model_used"]
            parlay_legs, correct_parlay_legs = parlays.get(model, (0, 0))
            prop_count, correct_props = props.get(model, (0, 0))
            stats[model] = ModelStats(
                model=model,
                events_analyzed=row["events_analyzed"] or 0,
                total_fights=row["total_fights"] or 0,
                correct_fights=row["correct_fights"] or 0,
                correct_methods=row["correct_methods"] or 0,
                confidence_accuracy=round(confidence.get(model, 0.0), 2),
                parlay_legs=parlay_legs,
                correct_parlay_legs=correct_parlay_legs,
                props=prop_count,
                correct_props=correct_props,
            )
        log.debug("model_stats_computed", models=sorted(stats))
        return stats
