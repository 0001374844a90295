"""Server access records: lifetime and single-event subscriptions.

Payment verification happens elsewhere; this module only records and checks
the resulting access.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import structlog

from fight_genie.db.repository import Repository

log = structlog.get_logger()

LIFETIME = "LIFETIME"
EVENT = "EVENT"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SubscriptionManager:
    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def activate_lifetime(self, server_id: str, payment_id: str) -> None:
        await self._repo.upsert_subscription(server_id, LIFETIME, payment_id)
        log.info("lifetime_access_activated", server_id=server_id, payment_id=payment_id)

    async def activate_event_access(
        self, server_id: str, payment_id: str, today: str | None = None
    ) -> int | None:
        """Grant access to the next event. Returns its event_id, or None when none is scheduled."""
        today = today or date.today().isoformat()
        event = await self._repo.get_next_event_on_or_after(today)
        if event is None:
            log.warning("event_access_no_upcoming_event", server_id=server_id)
            return None

        # Access lasts until the end of the day after the event.
        expires = datetime.combine(
            date.fromisoformat(event.date) + timedelta(days=1), time.max, tzinfo=timezone.utc
        )
        await self._repo.upsert_subscription(
            server_id,
            EVENT,
            payment_id,
            event_id=event.event_id,
            expiration_date=expires.isoformat(),
        )
        log.info(
            "event_access_activated",
            server_id=server_id,
            event_id=event.event_id,
            expires=expires.isoformat(),
        )
        return event.event_id

    async def verify_access(
        self, server_id: str, event_id: int | None = None, now: str | None = None
    ) -> bool:
        now = now or _now()
        if await self._repo.get_active_subscriptions(server_id, LIFETIME, now):
            return True
        return bool(await self._repo.get_active_subscriptions(server_id, EVENT, now, event_id))

    async def expire_stale(self, now: str | None = None) -> int:
        expired = await self._repo.expire_subscriptions(now or _now())
        if expired:
            log.info("subscriptions_expired", count=expired)
        return expired
