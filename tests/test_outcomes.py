"""Tests for grading stored predictions against final results."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from conftest import make_details, make_fights
from fight_genie.analysis.outcomes import (
    OutcomeSync,
    confidence_accuracy,
    grade_fights,
    grade_parlays,
    grade_props,
)
from fight_genie.errors import TransientFetchError
from fight_genie.predictions.base import CardType, ModelName
from fight_genie.scraper.schemas import FightResult

RESULTS = [
    FightResult(winner="Red Fighter 0", loser="Blue Fighter 0", method="KO/TKO Punches", round=1),
    FightResult(winner="Blue Fighter 1", loser="Red Fighter 1", method="Decision - Unanimous", round=3),
    FightResult(winner="Red Fighter 2", loser="Blue Fighter 2", method="Decision - Split", outcome="draw"),
]


def _prediction(*fights: dict) -> dict:
    return {"fights": list(fights)}


def _fight(f1: str, f2: str, winner: str, method: str, confidence=70) -> dict:
    return {
        "fighter1": f1,
        "fighter2": f2,
        "predictedWinner": winner,
        "method": method,
        "confidence": confidence,
    }


class TestGradeFights:
    def test_tko_prediction_matches_ko_tko_result(self):
        outcomes = grade_fights(
            [_fight("Red Fighter 0", "Blue Fighter 0", "Red Fighter 0", "TKO")], RESULTS
        )
        assert outcomes["total"] == 1
        fight = outcomes["fights"][0]
        assert fight["correct"] is True
        assert fight["methodCorrect"] is True
        assert fight["actualWinner"] == "Red Fighter 0"
        assert fight["actualMethod"] == "KO/TKO Punches"

    def test_fighter_order_and_case_ignored(self):
        outcomes = grade_fights(
            [_fight("blue fighter 1", "RED FIGHTER 1", "Blue Fighter 1", "Decision")], RESULTS
        )
        assert outcomes["correctCount"] == 1
        assert outcomes["methodCorrectCount"] == 1

    def test_wrong_winner_is_not_method_correct(self):
        outcomes = grade_fights(
            [_fight("Red Fighter 1", "Blue Fighter 1", "Red Fighter 1", "Decision")], RESULTS
        )
        assert outcomes["fights"][0]["correct"] is False
        assert outcomes["fights"][0]["methodCorrect"] is False

    def test_unmatched_and_drawn_fights_excluded(self):
        outcomes = grade_fights(
            [
                _fight("Someone", "Else", "Someone", "KO"),
                _fight("Red Fighter 2", "Blue Fighter 2", "Red Fighter 2", "Decision"),
            ],
            RESULTS,
        )
        assert outcomes == {"fights": [], "total": 0, "correctCount": 0, "methodCorrectCount": 0}


class TestConfidenceAccuracy:
    def test_rewards_confident_hits_and_unconfident_misses(self):
        fights = [
            {"correct": True, "confidence": 80},
            {"correct": False, "confidence": 60},
        ]
        # (0.8 + 0.4) / 2 * 100
        assert confidence_accuracy(fights) == pytest.approx(60.0)

    def test_empty(self):
        assert confidence_accuracy([]) == 0.0


async def _event_with_predictions(repo, day: str = "2025-06-07") -> int:
    event_id = await repo.create_event_batch(make_details(day=day), make_fights(4))
    await repo.insert_prediction(
        event_id,
        CardType.MAIN,
        ModelName.GPT,
        json.dumps(
            _prediction(
                _fight("Red Fighter 0", "Blue Fighter 0", "Red Fighter 0", "KO", 80),
                _fight("Red Fighter 1", "Blue Fighter 1", "Red Fighter 1", "Decision", 60),
            )
        ),
    )
    await repo.insert_prediction(
        event_id,
        CardType.MAIN,
        ModelName.CLAUDE,
        json.dumps(_prediction(_fight("Red Fighter 0", "Blue Fighter 0", "Blue Fighter 0", "Submission", 55))),
    )
    return event_id


class TestOutcomeSync:
    @pytest.mark.asyncio
    async def test_sync_records_one_outcome_per_prediction(self, repo):
        event_id = await _event_with_predictions(repo)
        scraper = AsyncMock()
        scraper.fetch_event_results.return_value = RESULTS

        counts = await OutcomeSync(repo, scraper).sync_completed_events(today="2025-06-08")

        assert counts == {"synced": 2, "skipped": 0, "errors": 0}
        # Results are scraped once per event, not once per prediction.
        scraper.fetch_event_results.assert_awaited_once_with(make_details().link)

        rows = await repo.get_outcomes(event_id)
        by_model = {r["model_used"]: json.loads(r["fight_outcomes"]) for r in rows}
        assert by_model["gpt"]["total"] == 2
        assert by_model["gpt"]["correctCount"] == 1
        assert by_model["gpt"]["methodCorrectCount"] == 1
        assert by_model["claude"]["correctCount"] == 0

    @pytest.mark.asyncio
    async def test_second_run_has_nothing_to_do(self, repo):
        await _event_with_predictions(repo)
        scraper = AsyncMock()
        scraper.fetch_event_results.return_value = RESULTS
        sync = OutcomeSync(repo, scraper)

        await sync.sync_completed_events(today="2025-06-08")
        counts = await sync.sync_completed_events(today="2025-06-08")

        assert counts == {"synced": 0, "skipped": 0, "errors": 0}
        assert scraper.fetch_event_results.await_count == 1

    @pytest.mark.asyncio
    async def test_future_events_not_synced(self, repo):
        await _event_with_predictions(repo, day="2025-06-07")
        scraper = AsyncMock()

        counts = await OutcomeSync(repo, scraper).sync_completed_events(today="2025-06-07")

        assert counts == {"synced": 0, "skipped": 0, "errors": 0}
        scraper.fetch_event_results.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_matched_fights_writes_no_row(self, repo):
        event_id = await _event_with_predictions(repo)
        scraper = AsyncMock()
        scraper.fetch_event_results.return_value = [
            FightResult(winner="Other A", loser="Other B", method="KO/TKO")
        ]

        counts = await OutcomeSync(repo, scraper).sync_completed_events(today="2025-06-08")

        assert counts == {"synced": 0, "skipped": 2, "errors": 0}
        assert await repo.get_outcomes(event_id) == []

    @pytest.mark.asyncio
    async def test_fetch_failure_counted_as_errors(self, repo):
        await _event_with_predictions(repo)
        scraper = AsyncMock()
        scraper.fetch_event_results.side_effect = TransientFetchError("down")

        counts = await OutcomeSync(repo, scraper).sync_completed_events(today="2025-06-08")

        assert counts == {"synced": 0, "skipped": 0, "errors": 2}


class TestGradeParlaysAndProps:
    def test_parlay_legs_graded_by_winner(self):
        legs = grade_parlays("Parlay: include red fighter 0, Red Fighter 1, Nobody.", RESULTS)
        assert legs == [
            {"fighter": "red fighter 0", "correct": True},
            {"fighter": "Red Fighter 1", "correct": False},
        ]

    def test_parlay_without_include_clause(self):
        assert grade_parlays("No parlays this week", RESULTS) == []
        assert grade_parlays(None, RESULTS) == []

    def test_props_need_winner_and_method(self):
        props = grade_props(
            "Red Fighter 0 by TKO, Blue Fighter 1 by Submission, Red Fighter 1 win by Decision",
            RESULTS,
        )
        assert [(p["fighter"], p["correct"]) for p in props] == [
            ("Red Fighter 0", True),
            ("Blue Fighter 1", False),
            ("Red Fighter 1", False),
        ]
        assert props[0]["actualMethod"] == "KO/TKO Punches"

    def test_drawn_fight_props_excluded(self):
        assert grade_props("Red Fighter 2 by Decision", RESULTS) == []


class TestOutcomeSyncBetting:
    @pytest.mark.asyncio
    async def test_parlays_and_props_stored_with_outcome(self, repo):
        event_id = await repo.create_event_batch(make_details(), make_fights(4))
        prediction = _prediction(_fight("Red Fighter 0", "Blue Fighter 0", "Red Fighter 0", "KO", 80))
        prediction["betting_analysis"] = {
            "parlays": "Parlay: include Red Fighter 0, Blue Fighter 1",
            "props": "Red Fighter 0 by KO",
        }
        await repo.insert_prediction(event_id, CardType.MAIN, ModelName.GPT, json.dumps(prediction))
        scraper = AsyncMock()
        scraper.fetch_event_results.return_value = RESULTS

        counts = await OutcomeSync(repo, scraper).sync_completed_events(today="2025-06-08")

        assert counts["synced"] == 1
        row = (await repo.get_outcomes(event_id))[0]
        assert [leg["correct"] for leg in json.loads(row["parlay_outcomes"])] == [True, True]
        assert json.loads(row["prop_outcomes"])[0]["correct"] is True

    @pytest.mark.asyncio
    async def test_events_past_lookback_are_not_retried(self, repo):
        await _event_with_predictions(repo, day="2025-05-01")
        scraper = AsyncMock()

        counts = await OutcomeSync(repo, scraper, lookback_days=14).sync_completed_events(
            today="2025-06-08"
        )

        assert counts == {"synced": 0, "skipped": 0, "errors": 0}
        scraper.fetch_event_results.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_events_inside_lookback_are_retried(self, repo):
        await _event_with_predictions(repo, day="2025-06-01")
        scraper = AsyncMock()
        scraper.fetch_event_results.return_value = []
        sync = OutcomeSync(repo, scraper, lookback_days=14)

        await sync.sync_completed_events(today="2025-06-08")
        await sync.sync_completed_events(today="2025-06-15")
        await sync.sync_completed_events(today="2025-06-16")

        # Retried while inside the window, then given up.
        assert scraper.fetch_event_results.await_count == 2
