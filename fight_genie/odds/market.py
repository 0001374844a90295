"""Compare stored predictions with recorded odds to find value picks."""

from __future__ import annotations

from typing import Any

import structlog

from fight_genie.analysis.methods import fight_key, normalize_name
from fight_genie.analysis.outcomes import parse_confidence
from fight_genie.db.repository import Repository
from fight_genie.events.base import EventMeta
from fight_genie.predictions.base import CardType, ModelName

log = structlog.get_logger()

# Edge, in percentage points of win probability, above which a pick counts as value.
VALUE_EDGE = 5.0


def implied_probability(american_odds: float) -> float:
    """Win probability (percent) implied by American odds."""
    if american_odds > 0:
        return 100 / (american_odds + 100) * 100
    return abs(american_odds) / (abs(american_odds) + 100) * 100


def value_rating(edge: float, confidence: float) -> int:
    if edge >= 20 and confidence >= 75:
        return 5
    if edge >= 15 and confidence >= 75:
        return 4
    if edge >= 10 and confidence >= 65:
        return 3
    if edge >= 5 and confidence >= 60:
        return 2
    return 1


def enrich_fight(fight: dict[str, Any], odds_row: Any | None) -> dict[str, Any]:
    """Attach the predicted winner's price, implied probability and edge."""
    enriched = {**fight, "odds": None, "impliedProbability": None, "edge": None}
    if odds_row is None:
        return enriched
    winner = normalize_name(fight.get("predictedWinner"))
    if winner == normalize_name(odds_row["fighter1"]):
        price = odds_row["fighter1_odds"]
    elif winner == normalize_name(odds_row["fighter2"]):
        price = odds_row["fighter2_odds"]
    else:
        return enriched
    if not price:
        return enriched
    implied = implied_probability(price)
    confidence = parse_confidence(fight.get("confidence"))
    enriched["odds"] = price
    enriched["impliedProbability"] = round(implied, 2)
    if confidence is not None:
        enriched["edge"] = round(confidence - implied, 2)
    return enriched


def build_report(event: EventMeta, fights: list[dict[str, Any]]) -> dict[str, Any]:
    priced = [f for f in fights if f["odds"] is not None]
    edges = [f["edge"] for f in priced if f["edge"] is not None]
    picks = sorted(
        (f for f in priced if f["edge"] is not None and f["edge"] > VALUE_EDGE),
        key=lambda f: f["edge"],
        reverse=True,
    )
    return {
        "event": {"name": event.name, "date": event.date},
        "metrics": {
            "totalFights": len(fights),
            "fightsWithOdds": len(priced),
            "averageEdge": round(sum(edges) / len(edges), 2) if edges else 0.0,
            "valueOpportunities": len(picks),
        },
        "valuePicks": [
            {
                "fighter": f.get("predictedWinner"),
                "opponent": (
                    f.get("fighter2")
                    if normalize_name(f.get("predictedWinner")) == normalize_name(f.get("fighter1"))
                    else f.get("fighter1")
                ),
                "odds": f["odds"],
                "confidence": parse_confidence(f.get("confidence")),
                "impliedProbability": f["impliedProbability"],
                "edge": f["edge"],
                "method": f.get("method"),
                "valueRating": value_rating(f["edge"], parse_confidence(f.get("confidence")) or 0),
            }
            for f in picks
        ],
    }


class MarketAnalyzer:
    def __init__(
        self, repo: Repository, bookmaker: str = "fanduel", max_age_minutes: int = 60
    ) -> None:
        self._repo = repo
        self._bookmaker = bookmaker
        self._max_age_minutes = max_age_minutes

    async def analyze(self, event: EventMeta, model: ModelName) -> dict[str, Any] | None:
        """Market report for one event and model, reusing a recent stored one.

        None when the model has no stored predictions for the event.
        """
        cached = await self._repo.get_recent_market_analysis(
            event.event_id, model, self._max_age_minutes
        )
        if cached is not None:
            log.debug("market_analysis_cache_hit", event_id=event.event_id, model=model.value)
            return cached

        fights: list[dict[str, Any]] = []
        for card_type in CardType:
            prediction = await self._repo.get_prediction(event.event_id, card_type, model)
            if prediction is not None:
                fights.extend(prediction.data.get("fights") or [])
        if not fights:
            return None

        odds = await self._latest_odds(event.event_id)
        enriched = [
            enrich_fight(f, odds.get(fight_key(f.get("fighter1"), f.get("fighter2"))))
            for f in fights
        ]
        report = build_report(event, enriched)
        await self._repo.record_market_analysis(event.event_id, model, report)
        log.info(
            "market_analysis_generated",
            event_id=event.event_id,
            model=model.value,
            priced=report["metrics"]["fightsWithOdds"],
            value_picks=len(report["valuePicks"]),
        )
        return report

    async def _latest_odds(self, event_id: int) -> dict[frozenset[str], Any]:
        # Rows arrive newest first; keep the newest per fight, preferring our bookmaker.
        latest: dict[frozenset[str], Any] = {}
        for row in await self._repo.get_odds(event_id):
            key = fight_key(row["fighter1"], row["fighter2"])
            current = latest.get(key)
            if current is None or (
                current["bookmaker"] != self._bookmaker and row["bookmaker"] == self._bookmaker
            ):
                latest[key] = row
        return latest
