"""Grade stored predictions against scraped final results."""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Any

import structlog

from fight_genie.analysis.methods import compare_method, fight_key, normalize_name
from fight_genie.db.repository import Repository
from fight_genie.events.base import EventMeta
from fight_genie.predictions.base import StoredPrediction
from fight_genie.scraper.client import UFCStatsScraper
from fight_genie.scraper.schemas import FightResult

log = structlog.get_logger()


def grade_fights(
    predicted_fights: list[dict[str, Any]], results: list[FightResult]
) -> dict[str, Any]:
    """Compare predicted fights with results. Unmatched, drawn and no-contest bouts are left out."""
    by_pair = {fight_key(r.winner, r.loser): r for r in results if r.outcome == "win"}

    graded = []
    for fight in predicted_fights:
        result = by_pair.get(fight_key(fight.get("fighter1"), fight.get("fighter2")))
        if result is None:
            continue
        predicted_winner = fight.get("predictedWinner") or ""
        predicted_method = fight.get("method") or fight.get("predictedMethod") or ""
        correct = normalize_name(predicted_winner) == normalize_name(result.winner)
        graded.append(
            {
                "fighter1": fight.get("fighter1"),
                "fighter2": fight.get("fighter2"),
                "predictedWinner": predicted_winner,
                "actualWinner": result.winner,
                "predictedMethod": predicted_method,
                "actualMethod": result.method,
                "confidence": parse_confidence(fight.get("confidence")),
                "correct": correct,
                "methodCorrect": correct and compare_method(predicted_method, result.method),
            }
        )

    return {
        "fights": graded,
        "total": len(graded),
        "correctCount": sum(1 for f in graded if f["correct"]),
        "methodCorrectCount": sum(1 for f in graded if f["methodCorrect"]),
    }


_PARLAY_RE = re.compile(r"include ([^,]+(?:,[^,]+)*)", re.IGNORECASE)
_PROP_RE = re.compile(r"([^,.;:]+?)\s+(?:win\s+)?by\s+([^,.;]+)", re.IGNORECASE)


def _find_result(fighter: str, results: list[FightResult]) -> FightResult | None:
    name = normalize_name(fighter)
    for result in results:
        if result.outcome == "win" and name in (
            normalize_name(result.winner),
            normalize_name(result.loser),
        ):
            return result
    return None


def _as_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value if isinstance(value, str) else ""


def grade_parlays(parlays: Any, results: list[FightResult]) -> list[dict[str, Any]]:
    """One entry per parlay leg ("... include A, B") whose fight has a result."""
    match = _PARLAY_RE.search(_as_text(parlays))
    if not match:
        return []
    graded = []
    for fighter in (s.strip(" .;") for s in match.group(1).split(",")):
        result = _find_result(fighter, results) if fighter else None
        if result is None:
            continue
        graded.append(
            {
                "fighter": fighter,
                "correct": normalize_name(result.winner) == normalize_name(fighter),
            }
        )
    return graded


def grade_props(props: Any, results: list[FightResult]) -> list[dict[str, Any]]:
    """One entry per "<fighter> by <method>" prop whose fight has a result."""
    graded = []
    for fighter, method in _PROP_RE.findall(_as_text(props)):
        fighter = fighter.strip()
        result = _find_result(fighter, results)
        if result is None:
            continue
        won = normalize_name(result.winner) == normalize_name(fighter)
        graded.append(
            {
                "fighter": fighter,
                "predictedMethod": method.strip(),
                "actualMethod": result.method,
                "correct": won and compare_method(method, result.method),
            }
        )
    return graded


def confidence_accuracy(fights: list[dict[str, Any]]) -> float:
    """Percent score rewarding confident hits and unconfident misses."""
    if not fights:
        return 0.0
    score = 0.0
    for fight in fights:
        confidence = fight.get("confidence")
        if not confidence:
            continue
        score += confidence / 100 if fight["correct"] else (100 - confidence) / 100
    return score / len(fights) * 100


def parse_confidence(value: Any) -> float | None:
    try:
        return float(str(value).rstrip("%"))
    except (TypeError, ValueError):
        return None


class OutcomeSync:
    def __init__(
        self, repo: Repository, scraper: UFCStatsScraper, lookback_days: int = 14
    ) -> None:
        self._repo = repo
        self._scraper = scraper
        self._lookback_days = lookback_days

    async def sync_completed_events(self, today: str | None = None) -> dict[str, int]:
        """Grade every stored prediction of recent past events that has no outcome yet.

        Events older than the lookback window are given up on, so a card whose
        results never match is not re-scraped forever.

        Returns counts: {"synced": N, "skipped": N, "errors": N}
        """
        today = today or date.today().isoformat()
        since = (date.fromisoformat(today) - timedelta(days=self._lookback_days)).isoformat()
        events = await self._repo.get_events_needing_outcomes(today, since)
        if not events:
            log.info("outcome_sync_nothing_pending")
            return {"synced": 0, "skipped": 0, "errors": 0}

        synced = 0
        skipped = 0
        errors = 0

        for event in events:
            predictions = await self._repo.get_unsynced_predictions(event.event_id)
            try:
                results = await self._fetch_results(event)
            except Exception:
                log.exception("outcome_sync_fetch_error", event_id=event.event_id)
                errors += len(predictions)
                continue
            if not results:
                log.info("outcome_sync_no_results", event_id=event.event_id, event_name=event.name)
                skipped += len(predictions)
                continue

            for prediction in predictions:
                try:
                    if await self._grade_prediction(prediction, results):
                        synced += 1
                    else:
                        skipped += 1
                except Exception:
                    log.exception(
                        "outcome_sync_error",
                        event_id=event.event_id,
                        prediction_id=prediction.prediction_id,
                    )
                    errors += 1

        log.info("outcome_sync_complete", synced=synced, skipped=skipped, errors=errors)
        return {"synced": synced, "skipped": skipped, "errors": errors}

    async def _fetch_results(self, event: EventMeta) -> list[FightResult]:
        if not event.event_link:
            return []
        return await self._scraper.fetch_event_results(event.event_link)

    async def _grade_prediction(
        self, prediction: StoredPrediction, results: list[FightResult]
    ) -> bool:
        predicted_fights = prediction.data.get("fights") or []
        outcomes = grade_fights(predicted_fights, results)
        if outcomes["total"] == 0:
            log.info("outcome_no_matched_fights", prediction_id=prediction.prediction_id)
            return False

        betting = prediction.data.get("betting_analysis") or {}
        if not isinstance(betting, dict):
            betting = {}
        parlays = grade_parlays(betting.get("parlays"), results)
        props = grade_props(betting.get("props"), results)

        accuracy = confidence_accuracy(outcomes["fights"])
        inserted = await self._repo.record_outcome(
            prediction.prediction_id,
            prediction.event_id,
            prediction.model_used.value,
            outcomes,
            accuracy,
            parlay_outcomes=parlays,
            prop_outcomes=props,
        )
        if inserted:
            log.info(
                "prediction_graded",
                prediction_id=prediction.prediction_id,
                event_id=prediction.event_id,
                model=prediction.model_used.value,
                correct=outcomes["correctCount"],
                total=outcomes["total"],
                parlay_legs=len(parlays),
                props=len(props),
            )
        return inserted
