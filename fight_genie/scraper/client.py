"""Async client for ufcstats.com."""

from __future__ import annotations

import asyncio
import json
from typing import Awaitable, TypeVar

import httpx
import structlog

from fight_genie.config import Settings
from fight_genie.db.repository import Repository
from fight_genie.errors import TransientFetchError
from fight_genie.scraper.parsers import (
    parse_event_card,
    parse_event_details,
    parse_event_results,
    parse_upcoming_events,
)
from fight_genie.scraper.schemas import EventDetails, FightResult, ScrapedFight, UpcomingEvent

log = structlog.get_logger()

T = TypeVar("T")

UPCOMING_PATH = "/statistics/events/upcoming"


class UFCStatsScraper:
    def __init__(
        self,
        settings: Settings,
        repo: Repository | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._repo = repo
        self._client = client or httpx.AsyncClient(
            base_url=settings.ufcstats_base_url,
            timeout=settings.scrape_timeout_seconds,
            follow_redirects=True,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ── Public methods ──────────────────────────────────────────────

    async def fetch_upcoming_events(self) -> list[UpcomingEvent]:
        """Upcoming events listing, served from the HTTP cache when fresh."""
        return await self._with_deadline(self._upcoming_events(), UPCOMING_PATH)

    async def fetch_event_card(self, event_link: str) -> list[ScrapedFight]:
        """Fight card of one event. Empty when the page layout is not recognized."""
        html = await self._with_deadline(self._get(event_link), event_link)
        fights = parse_event_card(html)
        log.info("event_card_fetched", link=event_link, fights=len(fights))
        return fights

    async def fetch_event_details(self, event_link: str) -> EventDetails | None:
        html = await self._with_deadline(self._get(event_link), event_link)
        return parse_event_details(html, link=event_link)

    async def fetch_event_results(self, event_link: str) -> list[FightResult]:
        html = await self._with_deadline(self._get(event_link), event_link)
        results = parse_event_results(html)
        log.info("event_results_fetched", link=event_link, results=len(results))
        return results

    # ── Internal ────────────────────────────────────────────────────

    async def _upcoming_events(self) -> list[UpcomingEvent]:
        cache_key = f"ufcstats:{UPCOMING_PATH}"
        if self._repo is not None:
            cached = await self._repo.get_cached(cache_key)
            if cached is not None:
                log.debug("upcoming_events_cache_hit")
                return [UpcomingEvent(**e) for e in json.loads(cached)]

        html = await self._get(UPCOMING_PATH)
        events = parse_upcoming_events(html)
        if self._repo is not None and events:
            payload = json.dumps([e.model_dump(mode="json") for e in events])
            await self._repo.put_cached(cache_key, payload, self._settings.listing_cache_minutes)
        log.info("upcoming_events_fetched", count=len(events))
        return events

    async def _with_deadline(self, coro: Awaitable[T], url: str) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self._settings.scrape_deadline_seconds)
        except asyncio.TimeoutError as exc:
            log.warning("scrape_deadline_exceeded", url=url)
            raise TransientFetchError(f"scrape of {url} timed out", url=url) from exc

    async def _get(self, url: str) -> str:
        try:
            resp = await self._client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            log.error("scrape_fetch_failed", url=url, status=status)
            raise TransientFetchError(
                f"GET {url} returned {status}", url=url, status_code=status
            ) from exc
        except httpx.HTTPError as exc:
            log.error("scrape_fetch_failed", url=url, error=str(exc))
            raise TransientFetchError(f"GET {url} failed: {exc}", url=url) from exc
        return resp.text
