"""Event lifecycle: SCHEDULED -> COMPLETED, with admin rollback.

Completion is only ever set by an explicit advance. Dates are used to pick
candidates, never to infer that an event has finished.
"""

from __future__ import annotations

import asyncio
from datetime import date

import structlog

from fight_genie.db.repository import Repository
from fight_genie.errors import FightGenieError, ParseMismatchError
from fight_genie.events.base import AdvanceResult, EventMeta, RollbackResult
from fight_genie.scraper.client import UFCStatsScraper
from fight_genie.scraper.parsers import parse_location
from fight_genie.scraper.schemas import EventDetails, UpcomingEvent

log = structlog.get_logger()


def _today() -> str:
    return date.today().isoformat()


class EventLifecycleManager:
    def __init__(self, repo: Repository, scraper: UFCStatsScraper) -> None:
        self._repo = repo
        self._scraper = scraper
        self._admin_lock = asyncio.Lock()

    async def get_upcoming_event(self, today: str | None = None) -> EventMeta | None:
        """Stored current/next event, falling back to scraping the first upcoming one."""
        today = today or _today()
        event = await self._repo.get_upcoming_event(today)
        if event is not None:
            return event

        log.info("no_stored_upcoming_event", today=today)
        upcoming = await self._scraper.fetch_upcoming_events()
        if not upcoming:
            return None
        async with self._admin_lock:
            # Another caller may have stored it while we were scraping.
            event = await self._repo.get_upcoming_event(today)
            if event is not None:
                return event
            event_id = await self._store(upcoming[0])
        return await self._repo.get_event(event_id)

    async def store_event(self, upcoming: UpcomingEvent) -> int:
        """Scrape an event and store it, replacing any batches with the same link."""
        async with self._admin_lock:
            return await self._store(upcoming)

    async def advance_event(self, today: str | None = None) -> AdvanceResult:
        today = today or _today()
        async with self._admin_lock:
            due = await self._repo.get_earliest_due_event(today)
            if due is None:
                upcoming = await self._repo.get_next_event_after(today)
                log.info("advance_nothing_due", today=today)
                return AdvanceResult(advanced=False, next_event=upcoming, reason="nothing_due")

            if not await self._repo.mark_completed(due.event_id):
                return AdvanceResult(advanced=False, reason="already_completed")
            completed = await self._repo.get_event(due.event_id)
            log.info("event_completed", event_id=due.event_id, event_name=due.name)

            result = AdvanceResult(advanced=True, completed=completed)
            next_event = await self._repo.get_next_event_after(due.date)
            if next_event is None:
                log.info("advance_no_next_event", after=due.date)
                return result

            try:
                result.next_event, result.refreshed_fights = await self._refresh(next_event)
            except FightGenieError as exc:
                log.warning("next_event_refresh_failed", event_id=next_event.event_id, error=str(exc))
                result.next_event = next_event
                result.refresh_error = str(exc)
            return result

    async def rollback_event(self, event_id: int) -> RollbackResult:
        async with self._admin_lock:
            result = await self._repo.rollback_completion(event_id)
        if not result.rolled_back:
            log.info("rollback_skipped", event_id=event_id, reason=result.reason)
        return result

    # ── Internal ────────────────────────────────────────────────────

    async def _refresh(self, event: EventMeta) -> tuple[EventMeta | None, int]:
        """Re-scrape an event's card and replace it under a new event_id."""
        if not event.event_link:
            log.info("refresh_skipped_no_link", event_id=event.event_id)
            fights = await self._repo.get_event_fights(event.event_id)
            return event, len(fights)

        fights = await self._scraper.fetch_event_card(event.event_link)
        if not fights:
            raise ParseMismatchError(
                f"no fights parsed for {event.name}", url=event.event_link
            )
        details = await self._scraper.fetch_event_details(event.event_link)
        if details is None:
            details = EventDetails(
                name=event.name,
                date=date.fromisoformat(event.date),
                city=event.city or "TBD",
                state=event.state or "",
                country=event.country or "TBD",
                link=event.event_link,
            )
        old_ids = await self._repo.find_event_ids_by_link(event.event_link)
        if event.event_id not in old_ids:
            old_ids.append(event.event_id)
        new_id = await self._repo.replace_event_batch(old_ids, details, fights)
        log.info(
            "event_refreshed",
            old_event_id=event.event_id,
            event_id=new_id,
            fights=len(fights),
        )
        return await self._repo.get_event(new_id), len(fights)

    async def _store(self, upcoming: UpcomingEvent) -> int:
        fights = await self._scraper.fetch_event_card(upcoming.link)
        if not fights:
            raise ParseMismatchError(f"no fights parsed for {upcoming.name}", url=upcoming.link)

        details = await self._scraper.fetch_event_details(upcoming.link)
        if details is None:
            if upcoming.date is None:
                raise ParseMismatchError(f"no date found for {upcoming.name}", url=upcoming.link)
            city, state, country = parse_location(upcoming.location)
            details = EventDetails(
                name=upcoming.name,
                date=upcoming.date,
                city=city,
                state=state,
                country=country,
                link=upcoming.link,
            )

        old_ids = await self._repo.find_event_ids_by_link(upcoming.link)
        event_id = await self._repo.replace_event_batch(old_ids, details, fights)
        log.info("event_stored", event_id=event_id, event_name=details.name, replaced=old_ids)
        return event_id
