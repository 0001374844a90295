"""Shared test fixtures."""

from __future__ import annotations

from datetime import date

import pytest
import aiosqlite

from fight_genie.db.models import SCHEMA_SQL
from fight_genie.db.repository import Repository
from fight_genie.config import Settings
from fight_genie.scraper.schemas import EventDetails, ScrapedFight


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="test_openai",
        openai_base_url="https://api.openai.com/v1",
        anthropic_api_key="test_anthropic",
        anthropic_base_url="https://api.anthropic.com/v1",
        odds_api_key=None,
        odds_api_base_url="https://api.the-odds-api.com/v4",
        ufcstats_base_url="http://www.ufcstats.com",
        discord_webhook_url=None,
        admin_server_id="admin-guild",
        db_path=":memory:",
    )


@pytest.fixture
async def db():
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.executescript(SCHEMA_SQL)
    await conn.commit()
    yield conn
    await conn.close()


@pytest.fixture
async def repo(db) -> Repository:
    return Repository(db)


def make_details(
    name: str = "UFC 300: Pereira vs. Hill",
    day: str = "2025-06-07",
    link: str | None = "http://www.ufcstats.com/event-details/abc123",
) -> EventDetails:
    return EventDetails(
        name=name,
        date=date.fromisoformat(day),
        city="Las Vegas",
        state="Nevada",
        country="USA",
        link=link,
    )


def make_fights(count: int = 12, prefix: str = "") -> list[ScrapedFight]:
    return [
        ScrapedFight(
            fighter1=f"{prefix}Red Fighter {i}",
            fighter2=f"{prefix}Blue Fighter {i}",
            weight_class="Lightweight",
            is_main_card=i < 5,
        )
        for i in range(count)
    ]
