"""Tests for the odds client and market analysis (HTTP mocked with httpx.MockTransport)."""

from __future__ import annotations

import json

import httpx
import pytest

from conftest import make_details, make_fights
from fight_genie.errors import TransientFetchError
from fight_genie.odds.client import SPORT_KEY, OddsClient, match_fight_odds
from fight_genie.odds.market import MarketAnalyzer, implied_probability, value_rating
from fight_genie.odds.schemas import EventOddsSchema
from fight_genie.predictions.base import CardType, ModelName


def _odds_event(home: str, away: str, home_price: float, away_price: float, book: str = "fanduel") -> dict:
    return {
        "id": f"{home}-{away}",
        "sport_key": SPORT_KEY,
        "home_team": home,
        "away_team": away,
        "commence_time": "2025-06-08T02:00:00Z",
        "bookmakers": [
            {
                "key": book,
                "title": book.title(),
                "last_update": "2025-06-06T12:00:00Z",
                "markets": [
                    {
                        "key": "h2h",
                        "outcomes": [
                            {"name": home, "price": home_price},
                            {"name": away, "price": away_price},
                        ],
                    }
                ],
            }
        ],
    }


ODDS_PAYLOAD = [
    # Listed in the opposite corner order from the stored card.
    _odds_event("Blue Fighter 0", "Red Fighter 0", 150, -180),
    _odds_event("Red Fighter 1", "Blue Fighter 1", -110, -110, book="betmgm"),
    _odds_event("Someone", "Else", 100, -120),
]


def _client(settings, repo, handler) -> OddsClient:
    client = httpx.AsyncClient(
        base_url=settings.odds_api_base_url, transport=httpx.MockTransport(handler)
    )
    return OddsClient(settings, repo, client=client)


class TestMatchFightOdds:
    @pytest.mark.asyncio
    async def test_rows_follow_stored_fighter_order(self, repo):
        event_id = await repo.create_event_batch(make_details(), make_fights(3))
        fights = await repo.get_event_fights(event_id)
        events = [EventOddsSchema(**e) for e in ODDS_PAYLOAD]

        rows = match_fight_odds(fights, events, ["fanduel", "draftkings"])

        assert rows == [
            {
                "fighter1": "Red Fighter 0",
                "fighter2": "Blue Fighter 0",
                "fighter1_odds": -180,
                "fighter2_odds": 150,
                "bookmaker": "fanduel",
                "market_type": "h2h",
                "last_updated": "2025-06-06T12:00:00Z",
            }
        ]


class TestOddsClient:
    @pytest.mark.asyncio
    async def test_record_event_odds_uses_cache(self, settings, repo):
        settings.odds_api_key = "test_odds"
        event_id = await repo.create_event_batch(make_details(), make_fights(3))
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=ODDS_PAYLOAD, headers={"x-requests-remaining": "499"})

        client = _client(settings, repo, handler)
        assert await client.record_event_odds(event_id) == 1
        assert await client.record_event_odds(event_id) == 1
        await client.close()

        assert len(seen) == 1
        assert seen[0].url.path == f"/v4/sports/{SPORT_KEY}/odds"
        assert seen[0].url.params["apiKey"] == "test_odds"
        assert seen[0].url.params["bookmakers"] == "fanduel,draftkings"
        assert len(await repo.get_odds(event_id)) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_raises_transient(self, settings, repo):
        settings.odds_api_key = "test_odds"
        client = _client(settings, repo, lambda request: httpx.Response(429))

        with pytest.raises(TransientFetchError) as exc_info:
            await client.fetch_ufc_odds()
        await client.close()

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_disabled_without_key(self, settings, repo):
        event_id = await repo.create_event_batch(make_details(), make_fights(3))

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = _client(settings, repo, handler)
        assert client.enabled is False
        assert await client.record_event_odds(event_id) == 0
        await client.close()


class TestMarketAnalysis:
    def test_implied_probability(self):
        assert implied_probability(-200) == pytest.approx(66.67, abs=0.01)
        assert implied_probability(150) == pytest.approx(40.0)

    def test_value_rating(self):
        assert value_rating(22, 80) == 5
        assert value_rating(12, 70) == 3
        assert value_rating(3, 90) == 1

    @pytest.mark.asyncio
    async def test_value_picks_against_recorded_odds(self, repo):
        event_id = await repo.create_event_batch(make_details(), make_fights(3))
        await repo.record_odds(
            event_id,
            [
                {"fighter1": "Red Fighter 0", "fighter2": "Blue Fighter 0",
                 "fighter1_odds": 150, "fighter2_odds": -180, "bookmaker": "fanduel"},
                {"fighter1": "Red Fighter 1", "fighter2": "Blue Fighter 1",
                 "fighter1_odds": -300, "fighter2_odds": 250, "bookmaker": "fanduel"},
            ],
        )
        prediction = {
            "fights": [
                {"fighter1": "Red Fighter 0", "fighter2": "Blue Fighter 0",
                 "predictedWinner": "Red Fighter 0", "method": "KO", "confidence": 60},
                {"fighter1": "Red Fighter 1", "fighter2": "Blue Fighter 1",
                 "predictedWinner": "Red Fighter 1", "method": "Decision", "confidence": 70},
                {"fighter1": "Red Fighter 2", "fighter2": "Blue Fighter 2",
                 "predictedWinner": "Blue Fighter 2", "method": "Submission", "confidence": 65},
            ]
        }
        await repo.insert_prediction(event_id, CardType.MAIN, ModelName.GPT, json.dumps(prediction))
        event = await repo.get_event(event_id)
        analyzer = MarketAnalyzer(repo)

        report = await analyzer.analyze(event, ModelName.GPT)

        assert report["metrics"]["totalFights"] == 3
        assert report["metrics"]["fightsWithOdds"] == 2
        # +150 implies 40%: a 60% pick has a 20 point edge. -300 implies 75%: no value.
        assert [p["fighter"] for p in report["valuePicks"]] == ["Red Fighter 0"]
        assert report["valuePicks"][0]["opponent"] == "Blue Fighter 0"
        assert report["valuePicks"][0]["edge"] == pytest.approx(20.0)

        # A recent stored report is reused.
        await repo.record_odds(
            event_id,
            [{"fighter1": "Red Fighter 1", "fighter2": "Blue Fighter 1",
              "fighter1_odds": 200, "fighter2_odds": -250, "bookmaker": "fanduel"}],
        )
        assert await analyzer.analyze(event, ModelName.GPT) == report

    @pytest.mark.asyncio
    async def test_no_predictions(self, repo):
        event_id = await repo.create_event_batch(make_details(), make_fights(2))
        event = await repo.get_event(event_id)
        assert await MarketAnalyzer(repo).analyze(event, ModelName.CLAUDE) is None
