"""Data access layer for Fight Genie."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Iterable, Sequence

import aiosqlite
import structlog

from fight_genie.errors import DataIntegrityError
from fight_genie.events.base import EventMeta, FightRow, RollbackResult
from fight_genie.predictions.base import CardType, ModelName, StoredPrediction
from fight_genie.scraper.schemas import EventDetails, ScrapedFight

log = structlog.get_logger()

# Tables holding event_id references, in the order they must be emptied
# before the event itself can go.
DEPENDENT_TABLES = (
    "prediction_outcomes",
    "stored_predictions",
    "odds_history",
    "market_analysis",
)

# One row per event: every fight row of a batch carries the same metadata.
_EVENT_SELECT = """
    SELECT event_id, Event, Date, City, State, Country, event_link,
           MAX(is_completed) AS is_completed, MAX(completed_at) AS completed_at
    FROM events
"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._write_lock = asyncio.Lock()

    async def close(self) -> None:
        await self._db.close()

    # ── Transactions ────────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block of statements atomically.

        sqlite errors roll the whole block back and surface as DataIntegrityError.
        """
        async with self._write_lock:
            if self._db.in_transaction:
                await self._db.commit()
            await self._db.execute("BEGIN IMMEDIATE")
            try:
                yield self._db
            except sqlite3.Error as exc:
                await self._db.rollback()
                log.error("transaction_rolled_back", error=str(exc))
                raise DataIntegrityError(str(exc)) from exc
            except BaseException:
                await self._db.rollback()
                log.warning("transaction_rolled_back")
                raise
            else:
                await self._db.commit()

    async def _write(self, sql: str, params: Sequence[Any] = ()) -> aiosqlite.Cursor:
        async with self._write_lock:
            try:
                cursor = await self._db.execute(sql, params)
                await self._db.commit()
            except sqlite3.IntegrityError as exc:
                await self._db.rollback()
                raise DataIntegrityError(str(exc)) from exc
        return cursor

    # ── Events ──────────────────────────────────────────────────────

    async def create_event_batch(
        self, details: EventDetails, fights: Sequence[ScrapedFight]
    ) -> int:
        """Allocate one event_id and insert every fight row under it. Returns the id."""
        async with self.transaction() as db:
            event_id = await self._insert_batch(db, details, fights)
        log.info(
            "event_batch_created",
            event_id=event_id,
            event_name=details.name,
            fights=len(fights),
        )
        return event_id

    async def delete_event_cascade(self, event_id: int) -> dict[str, int]:
        """Delete an event and every dependent row. Returns deleted counts per table."""
        async with self.transaction() as db:
            counts = await self._delete_cascade(db, event_id)
        log.info("event_deleted", event_id=event_id, **counts)
        return counts

    async def replace_event_batch(
        self,
        old_event_ids: Iterable[int],
        details: EventDetails,
        fights: Sequence[ScrapedFight],
    ) -> int:
        """Cascade-delete old batches and create the new one in a single transaction."""
        old_ids = list(old_event_ids)
        async with self.transaction() as db:
            for old_id in old_ids:
                await self._delete_cascade(db, old_id)
            event_id = await self._insert_batch(db, details, fights)
            # Paid event access follows the card to its new id.
            for old_id in old_ids:
                await db.execute(
                    "UPDATE server_subscriptions SET event_id = ?, updated_at = ? WHERE event_id = ?",
                    (event_id, _now_iso(), old_id),
                )
        log.info(
            "event_batch_replaced",
            old_event_ids=old_ids,
            event_id=event_id,
            event_name=details.name,
            fights=len(fights),
        )
        return event_id

    async def _insert_batch(
        self,
        db: aiosqlite.Connection,
        details: EventDetails,
        fights: Sequence[ScrapedFight],
    ) -> int:
        if not fights:
            raise DataIntegrityError(f"no fights to store for {details.name!r}")
        cursor = await db.execute(
            "INSERT INTO event_batches (event_link, created_at) VALUES (?, ?)",
            (details.link, _now_iso()),
        )
        event_id = cursor.lastrowid
        sql = """
            INSERT INTO events
                (event_id, Event, Date, City, State, Country,
                 fighter1, fighter2, WeightClass, is_main_card, event_link)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        rows = [
            (
                event_id, details.name, details.date.isoformat(),
                details.city, details.state, details.country,
                fight.fighter1, fight.fighter2, fight.weight_class,
                1 if fight.is_main_card else 0, details.link,
            )
            for fight in fights
        ]
        await db.executemany(sql, rows)
        return event_id

    async def _delete_cascade(self, db: aiosqlite.Connection, event_id: int) -> dict[str, int]:
        counts: dict[str, int] = {}
        cursor = await db.execute(
            """
            DELETE FROM prediction_outcomes
            WHERE event_id = ?
               OR prediction_id IN (
                   SELECT prediction_id FROM stored_predictions WHERE event_id = ?
               )
            """,
            (event_id, event_id),
        )
        counts["prediction_outcomes"] = cursor.rowcount
        for table in DEPENDENT_TABLES[1:]:
            cursor = await db.execute(f"DELETE FROM {table} WHERE event_id = ?", (event_id,))
            counts[table] = cursor.rowcount

        leftovers = await self._count_references(db, event_id, DEPENDENT_TABLES)
        dangling = {t: n for t, n in leftovers.items() if n}
        if dangling:
            raise DataIntegrityError(f"event {event_id} still referenced by {dangling}")

        cursor = await db.execute("DELETE FROM events WHERE event_id = ?", (event_id,))
        counts["events"] = cursor.rowcount
        await db.execute("DELETE FROM event_batches WHERE event_id = ?", (event_id,))
        return counts

    async def count_event_references(self, event_id: int) -> dict[str, int]:
        """Row counts per table that reference the event, including the fight rows."""
        return await self._count_references(
            self._db, event_id, DEPENDENT_TABLES + ("events", "event_batches")
        )

    @staticmethod
    async def _count_references(
        db: aiosqlite.Connection, event_id: int, tables: Sequence[str]
    ) -> dict[str, int]:
        counts: dict[str, int] = {}
        for table in tables:
            cursor = await db.execute(
                f"SELECT COUNT(*) AS cnt FROM {table} WHERE event_id = ?", (event_id,)
            )
            row = await cursor.fetchone()
            counts[table] = row["cnt"] if row else 0
        return counts

    async def get_event(self, event_id: int) -> EventMeta | None:
        sql = _EVENT_SELECT + " WHERE event_id = ? GROUP BY event_id"
        return await self._fetch_event(sql, (event_id,))

    async def get_current_event(self, today: str) -> EventMeta | None:
        """The uncompleted event taking place today."""
        sql = _EVENT_SELECT + """
            WHERE Date = ?
            GROUP BY event_id
            HAVING MAX(is_completed) = 0
            ORDER BY event_id ASC
            LIMIT 1
        """
        return await self._fetch_event(sql, (today,))

    async def get_upcoming_event(self, today: str) -> EventMeta | None:
        """Today's event, else the nearest future uncompleted event."""
        current = await self.get_current_event(today)
        if current:
            return current
        return await self.get_next_event_after(today)

    async def get_next_event_after(self, date: str) -> EventMeta | None:
        """Nearest uncompleted event with a Date strictly after the given one."""
        sql = _EVENT_SELECT + """
            WHERE Date > ?
            GROUP BY event_id
            HAVING MAX(is_completed) = 0
            ORDER BY Date ASC, event_id ASC
            LIMIT 1
        """
        return await self._fetch_event(sql, (date,))

    async def get_next_event_on_or_after(self, date: str) -> EventMeta | None:
        sql = _EVENT_SELECT + """
            WHERE Date >= ?
            GROUP BY event_id
            HAVING MAX(is_completed) = 0
            ORDER BY Date ASC, event_id ASC
            LIMIT 1
        """
        return await self._fetch_event(sql, (date,))

    async def get_earliest_due_event(self, today: str) -> EventMeta | None:
        """Earliest uncompleted event dated today or earlier."""
        sql = _EVENT_SELECT + """
            WHERE Date <= ?
            GROUP BY event_id
            HAVING MAX(is_completed) = 0
            ORDER BY Date ASC, event_id ASC
            LIMIT 1
        """
        return await self._fetch_event(sql, (today,))

    async def get_latest_completed_event(self) -> EventMeta | None:
        sql = _EVENT_SELECT + """
            GROUP BY event_id
            HAVING MAX(is_completed) = 1
            ORDER BY Date DESC, event_id DESC
            LIMIT 1
        """
        return await self._fetch_event(sql)

    async def list_events(self, include_completed: bool = True) -> list[EventMeta]:
        having = "" if include_completed else "HAVING MAX(is_completed) = 0"
        sql = _EVENT_SELECT + f" GROUP BY event_id {having} ORDER BY Date ASC, event_id ASC"
        cursor = await self._db.execute(sql)
        return [EventMeta.from_row(row) for row in await cursor.fetchall()]

    async def find_event_ids_by_link(self, event_link: str) -> list[int]:
        sql = "SELECT DISTINCT event_id FROM events WHERE event_link = ? ORDER BY event_id"
        cursor = await self._db.execute(sql, (event_link,))
        rows = await cursor.fetchall()
        return [row["event_id"] for row in rows]

    async def get_event_fights(
        self, event_id: int, card_type: CardType | None = None
    ) -> list[FightRow]:
        """Fight rows of an event in scrape order, optionally for one card."""
        sql = """
            SELECT fight_id, event_id, fighter1, fighter2, WeightClass, is_main_card
            FROM events
            WHERE event_id = ?
        """
        params: tuple = (event_id,)
        if card_type is not None:
            sql += " AND is_main_card = ?"
            params = (event_id, 1 if card_type == CardType.MAIN else 0)
        sql += " ORDER BY fight_id ASC"
        cursor = await self._db.execute(sql, params)
        return [FightRow.from_row(row) for row in await cursor.fetchall()]

    async def mark_completed(self, event_id: int) -> bool:
        """Mark every fight row of an event completed. False if already completed or missing."""
        sql = """
            UPDATE events
            SET is_completed = 1, completed_at = ?
            WHERE event_id = ? AND is_completed = 0
        """
        cursor = await self._write(sql, (_now_iso(), event_id))
        return cursor.rowcount > 0

    async def rollback_completion(self, event_id: int) -> RollbackResult:
        """Un-complete an event and every later one, dropping the later events' predictions."""
        async with self.transaction() as db:
            cursor = await db.execute(
                _EVENT_SELECT + " WHERE event_id = ? GROUP BY event_id", (event_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return RollbackResult(rolled_back=False, event_id=event_id, reason="not_found")
            target = EventMeta.from_row(row)
            if not target.is_completed:
                return RollbackResult(rolled_back=False, event_id=event_id, reason="not_completed")

            cursor = await db.execute(
                "SELECT DISTINCT event_id FROM events WHERE Date > ? AND event_id != ? ORDER BY event_id",
                (target.date, event_id),
            )
            later_ids = [r["event_id"] for r in await cursor.fetchall()]

            await db.execute(
                """
                UPDATE events
                SET is_completed = 0, completed_at = NULL
                WHERE event_id = ? OR Date > ?
                """,
                (event_id, target.date),
            )

            outcomes_deleted = 0
            predictions_deleted = 0
            for later_id in later_ids:
                cursor = await db.execute(
                    """
                    DELETE FROM prediction_outcomes
                    WHERE event_id = ?
                       OR prediction_id IN (
                           SELECT prediction_id FROM stored_predictions WHERE event_id = ?
                       )
                    """,
                    (later_id, later_id),
                )
                outcomes_deleted += cursor.rowcount
                cursor = await db.execute(
                    "DELETE FROM stored_predictions WHERE event_id = ?", (later_id,)
                )
                predictions_deleted += cursor.rowcount

        log.info(
            "event_rolled_back",
            event_id=event_id,
            reset_event_ids=later_ids,
            predictions_deleted=predictions_deleted,
        )
        return RollbackResult(
            rolled_back=True,
            event_id=event_id,
            reset_event_ids=later_ids,
            predictions_deleted=predictions_deleted,
            outcomes_deleted=outcomes_deleted,
        )

    async def _fetch_event(self, sql: str, params: Sequence[Any] = ()) -> EventMeta | None:
        cursor = await self._db.execute(sql, params)
        row = await cursor.fetchone()
        return EventMeta.from_row(row) if row else None

    # ── Stored predictions ─────────────────────────────────────────

    async def get_prediction(
        self, event_id: int, card_type: CardType, model: ModelName
    ) -> StoredPrediction | None:
        sql = """
            SELECT * FROM stored_predictions
            WHERE event_id = ? AND card_type = ? AND model_used = ?
            LIMIT 1
        """
        cursor = await self._db.execute(sql, (event_id, card_type.value, model.value))
        row = await cursor.fetchone()
        return StoredPrediction.from_row(row) if row else None

    async def insert_prediction(
        self, event_id: int, card_type: CardType, model: ModelName, prediction_data: str
    ) -> bool:
        """Store a prediction unless one already exists for the key. Returns True if inserted."""
        sql = """
            INSERT OR IGNORE INTO stored_predictions
                (event_id, card_type, model_used, prediction_data, created_at)
            VALUES (?, ?, ?, ?, ?)
        """
        cursor = await self._write(
            sql, (event_id, card_type.value, model.value, prediction_data, _now_iso())
        )
        return cursor.rowcount > 0

    # ── Prediction outcomes ────────────────────────────────────────

    async def get_events_needing_outcomes(
        self, today: str, since: str | None = None
    ) -> list[EventMeta]:
        """Past events that have stored predictions without an outcome row.

        ``since`` bounds the lookback: events dated before it are never retried.
        """
        sql = """
            SELECT e.event_id, e.Event, e.Date, e.City, e.State, e.Country, e.event_link,
                   MAX(e.is_completed) AS is_completed, MAX(e.completed_at) AS completed_at
            FROM events e
            JOIN stored_predictions sp ON sp.event_id = e.event_id
            LEFT JOIN prediction_outcomes po ON po.prediction_id = sp.prediction_id
            WHERE e.Date < ? AND e.Date >= ? AND po.outcome_id IS NULL
            GROUP BY e.event_id
            ORDER BY e.Date DESC
        """
        cursor = await self._db.execute(sql, (today, since or ""))
        return [EventMeta.from_row(row) for row in await cursor.fetchall()]

    async def get_unsynced_predictions(self, event_id: int) -> list[StoredPrediction]:
        sql = """
            SELECT sp.* FROM stored_predictions sp
            LEFT JOIN prediction_outcomes po ON po.prediction_id = sp.prediction_id
            WHERE sp.event_id = ? AND po.outcome_id IS NULL
            ORDER BY sp.prediction_id
        """
        cursor = await self._db.execute(sql, (event_id,))
        return [StoredPrediction.from_row(row) for row in await cursor.fetchall()]

    async def record_outcome(
        self,
        prediction_id: int,
        event_id: int,
        model_used: str,
        fight_outcomes: dict[str, Any],
        confidence_accuracy: float,
        parlay_outcomes: list[dict[str, Any]] | None = None,
        prop_outcomes: list[dict[str, Any]] | None = None,
    ) -> bool:
        now = _now_iso()
        sql = """
            INSERT OR IGNORE INTO prediction_outcomes
                (prediction_id, event_id, model_used, fight_outcomes,
                 parlay_outcomes, prop_outcomes,
                 confidence_accuracy, created_at, last_updated)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        cursor = await self._write(
            sql,
            (
                prediction_id, event_id, model_used, json.dumps(fight_outcomes),
                json.dumps(parlay_outcomes or []), json.dumps(prop_outcomes or []),
                confidence_accuracy, now, now,
            ),
        )
        return cursor.rowcount > 0

    async def get_outcomes(self, event_id: int) -> list[aiosqlite.Row]:
        sql = "SELECT * FROM prediction_outcomes WHERE event_id = ? ORDER BY outcome_id"
        cursor = await self._db.execute(sql, (event_id,))
        return await cursor.fetchall()

    async def get_model_fight_stats(self) -> list[aiosqlite.Row]:
        """Per-model fight and method hit counts across all graded outcomes."""
        sql = """
            SELECT po.model_used AS model_used,
                   COUNT(DISTINCT po.event_id) AS events_analyzed,
                   COUNT(f.value) AS total_fights,
                   SUM(json_extract(f.value, '$.correct')) AS correct_fights,
                   SUM(json_extract(f.value, '$.methodCorrect')) AS correct_methods
            FROM prediction_outcomes po, json_each(po.fight_outcomes, '$.fights') AS f
            GROUP BY po.model_used
        """
        cursor = await self._db.execute(sql)
        return await cursor.fetchall()

    async def get_model_leg_stats(self, column: str) -> dict[str, tuple[int, int]]:
        """Per-model (total, correct) counts over parlay or prop outcome legs."""
        if column not in ("parlay_outcomes", "prop_outcomes"):
            raise ValueError(f"not a leg outcome column: {column}")
        sql = f"""
            SELECT po.model_used AS model_used,
                   COUNT(leg.value) AS total,
                   SUM(json_extract(leg.value, '$.correct')) AS correct
            FROM prediction_outcomes po, json_each(po.{column}) AS leg
            GROUP BY po.model_used
        """
        cursor = await self._db.execute(sql)
        rows = await cursor.fetchall()
        return {row["model_used"]: (row["total"] or 0, row["correct"] or 0) for row in rows}

    async def get_model_confidence_accuracy(self) -> dict[str, float]:
        sql = """
            SELECT model_used, AVG(confidence_accuracy) AS avg_conf
            FROM prediction_outcomes
            GROUP BY model_used
        """
        cursor = await self._db.execute(sql)
        rows = await cursor.fetchall()
        return {row["model_used"]: row["avg_conf"] or 0.0 for row in rows}

    # ── Odds history / market analysis ─────────────────────────────

    async def record_odds(self, event_id: int, rows: list[dict[str, Any]]) -> int:
        """Append odds snapshots for an event. Returns count inserted."""
        if not rows:
            return 0
        now = _now_iso()
        sql = """
            INSERT INTO odds_history
                (event_id, fighter1, fighter2, fighter1_odds, fighter2_odds,
                 bookmaker, market_type, last_updated)
            VALUES
                (:event_id, :fighter1, :fighter2, :fighter1_odds, :fighter2_odds,
                 :bookmaker, :market_type, :last_updated)
        """
        params = [
            {
                "market_type": "h2h",
                "last_updated": now,
                **row,
                "event_id": event_id,
            }
            for row in rows
        ]
        async with self._write_lock:
            try:
                cursor = await self._db.executemany(sql, params)
                await self._db.commit()
            except sqlite3.IntegrityError as exc:
                await self._db.rollback()
                raise DataIntegrityError(str(exc)) from exc
        inserted = cursor.rowcount  # type: ignore[union-attr]
        log.debug("odds_recorded", event_id=event_id, count=inserted)
        return inserted

    async def get_odds(self, event_id: int) -> list[aiosqlite.Row]:
        sql = "SELECT * FROM odds_history WHERE event_id = ? ORDER BY last_updated DESC"
        cursor = await self._db.execute(sql, (event_id,))
        return await cursor.fetchall()

    async def prune_old_odds(self, days_to_keep: int = 30) -> int:
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days_to_keep)).isoformat()
        cursor = await self._write("DELETE FROM odds_history WHERE last_updated < ?", (cutoff,))
        return cursor.rowcount

    async def record_market_analysis(
        self, event_id: int, model: ModelName, analysis: dict[str, Any]
    ) -> None:
        sql = """
            INSERT INTO market_analysis (event_id, model_used, analysis_data, created_at)
            VALUES (?, ?, ?, ?)
        """
        await self._write(sql, (event_id, model.value, json.dumps(analysis), _now_iso()))

    async def get_recent_market_analysis(
        self, event_id: int, model: ModelName, max_age_minutes: int = 60
    ) -> dict[str, Any] | None:
        cutoff = (datetime.now(timezone.utc) - timedelta(minutes=max_age_minutes)).isoformat()
        sql = """
            SELECT analysis_data FROM market_analysis
            WHERE event_id = ? AND model_used = ? AND created_at > ?
            ORDER BY created_at DESC
            LIMIT 1
        """
        cursor = await self._db.execute(sql, (event_id, model.value, cutoff))
        row = await cursor.fetchone()
        return json.loads(row["analysis_data"]) if row else None

    # ── Server subscriptions ───────────────────────────────────────

    async def upsert_subscription(
        self,
        server_id: str,
        subscription_type: str,
        payment_id: str,
        status: str = "ACTIVE",
        event_id: int | None = None,
        expiration_date: str | None = None,
    ) -> None:
        now = _now_iso()
        sql = """
            INSERT INTO server_subscriptions
                (server_id, subscription_type, payment_id, status, event_id,
                 expiration_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(payment_id) DO UPDATE SET
                status = excluded.status,
                event_id = excluded.event_id,
                expiration_date = excluded.expiration_date,
                updated_at = excluded.updated_at
        """
        await self._write(
            sql,
            (server_id, subscription_type, payment_id, status, event_id,
             expiration_date, now, now),
        )

    async def get_active_subscriptions(
        self,
        server_id: str,
        subscription_type: str,
        now: str,
        event_id: int | None = None,
    ) -> list[aiosqlite.Row]:
        """Active subscriptions of a type; EVENT ones must also be unexpired."""
        sql = """
            SELECT * FROM server_subscriptions
            WHERE server_id = ? AND subscription_type = ? AND status = 'ACTIVE'
              AND (expiration_date IS NULL OR expiration_date > ?)
        """
        params: tuple = (server_id, subscription_type, now)
        if event_id is not None:
            sql += " AND event_id = ?"
            params = params + (event_id,)
        cursor = await self._db.execute(sql, params)
        return await cursor.fetchall()

    async def expire_subscriptions(self, now: str) -> int:
        sql = """
            UPDATE server_subscriptions
            SET status = 'EXPIRED', updated_at = ?
            WHERE subscription_type = 'EVENT' AND status = 'ACTIVE'
              AND expiration_date IS NOT NULL AND expiration_date <= ?
        """
        cursor = await self._write(sql, (_now_iso(), now))
        return cursor.rowcount

    # ── HTTP response cache ─────────────────────────────────────────

    async def get_cached(self, cache_key: str) -> str | None:
        """Return a live cache entry. Expired entries are pruned on read."""
        now = _now_iso()
        cursor = await self._db.execute(
            "SELECT cache_value, expires_at FROM http_cache WHERE cache_key = ?",
            (cache_key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        if row["expires_at"] <= now:
            await self._write("DELETE FROM http_cache WHERE cache_key = ?", (cache_key,))
            return None
        return row["cache_value"]

    async def put_cached(self, cache_key: str, value: str, ttl_minutes: int) -> None:
        now = datetime.now(timezone.utc)
        expires_at = (now + timedelta(minutes=ttl_minutes)).isoformat()
        sql = """
            INSERT INTO http_cache (cache_key, cache_value, expires_at, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(cache_key) DO UPDATE SET
                cache_value = excluded.cache_value,
                expires_at = excluded.expires_at,
                created_at = excluded.created_at
        """
        await self._write(sql, (cache_key, value, expires_at, now.isoformat()))

    async def prune_expired_cache(self) -> int:
        cursor = await self._write("DELETE FROM http_cache WHERE expires_at <= ?", (_now_iso(),))
        return cursor.rowcount
