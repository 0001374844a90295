"""Async client for The Odds API (MMA moneylines)."""

from __future__ import annotations

import json
from typing import Any, Sequence

import httpx
import structlog

from fight_genie.analysis.methods import fight_key, normalize_name
from fight_genie.config import Settings
from fight_genie.db.repository import Repository
from fight_genie.errors import TransientFetchError
from fight_genie.events.base import FightRow
from fight_genie.odds.schemas import EventOddsSchema

log = structlog.get_logger()

SPORT_KEY = "mma_mixed_martial_arts"


def match_fight_odds(
    fights: Sequence[FightRow],
    events: Sequence[EventOddsSchema],
    bookmakers: Sequence[str],
) -> list[dict[str, Any]]:
    """Flatten h2h prices into odds_history rows for the stored fights.

    Fighters are matched on the unordered pair of normalized names, and the
    row keeps the stored card's fighter order.
    """
    by_pair = {fight_key(e.home_team, e.away_team): e for e in events}
    wanted = set(bookmakers)
    rows = []
    for fight in fights:
        event = by_pair.get(fight_key(fight.fighter1, fight.fighter2))
        if event is None:
            continue
        for bm in event.bookmakers:
            if wanted and bm.key not in wanted:
                continue
            market = next((m for m in bm.markets if m.key == "h2h"), None)
            if market is None:
                continue
            prices = {normalize_name(o.name): o.price for o in market.outcomes}
            row = {
                "fighter1": fight.fighter1,
                "fighter2": fight.fighter2,
                "fighter1_odds": prices.get(normalize_name(fight.fighter1)),
                "fighter2_odds": prices.get(normalize_name(fight.fighter2)),
                "bookmaker": bm.key,
                "market_type": "h2h",
            }
            if bm.last_update:
                row["last_updated"] = bm.last_update
            rows.append(row)
    return rows


class OddsClient:
    MARKETS = "h2h"

    def __init__(
        self,
        settings: Settings,
        repo: Repository,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._repo = repo
        self._client = client or httpx.AsyncClient(
            base_url=settings.odds_api_base_url,
            timeout=30.0,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._settings.odds_api_key)

    async def close(self) -> None:
        await self._client.aclose()

    # ── Public methods ──────────────────────────────────────────────

    async def fetch_ufc_odds(self) -> list[EventOddsSchema]:
        """Current MMA moneylines, served from the HTTP cache when fresh."""
        cache_key = f"odds:{SPORT_KEY}"
        cached = await self._repo.get_cached(cache_key)
        if cached is not None:
            log.debug("odds_cache_hit")
            return [EventOddsSchema(**e) for e in json.loads(cached)]

        params: dict[str, Any] = {
            "apiKey": self._settings.odds_api_key,
            "markets": self.MARKETS,
            "bookmakers": ",".join(self._settings.odds_bookmakers),
            "oddsFormat": "american",
            "dateFormat": "iso",
        }
        path = f"/sports/{SPORT_KEY}/odds"
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            log.error("odds_fetch_failed", status=status)
            raise TransientFetchError(
                f"GET {path} returned {status}", url=path, status_code=status
            ) from exc
        except httpx.HTTPError as exc:
            log.error("odds_fetch_failed", error=str(exc))
            raise TransientFetchError(f"GET {path} failed: {exc}", url=path) from exc

        remaining = resp.headers.get("x-requests-remaining")
        if remaining is not None:
            log.info("api_credits", endpoint=path, remaining=int(remaining))

        payload = resp.json()
        events = [EventOddsSchema(**e) for e in payload]
        await self._repo.put_cached(
            cache_key, json.dumps(payload), self._settings.odds_cache_minutes
        )
        log.info("odds_fetched", events=len(events))
        return events

    async def record_event_odds(self, event_id: int) -> int:
        """Store a snapshot of current odds for one stored event. Returns rows written."""
        if not self.enabled:
            log.info("odds_disabled")
            return 0
        fights = await self._repo.get_event_fights(event_id)
        if not fights:
            return 0
        events = await self.fetch_ufc_odds()
        rows = match_fight_odds(fights, events, self._settings.odds_bookmakers)
        inserted = await self._repo.record_odds(event_id, rows)
        log.info(
            "event_odds_recorded",
            event_id=event_id,
            fights=len(fights),
            rows=inserted,
        )
        return inserted
