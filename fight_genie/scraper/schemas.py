"""Pydantic models for records parsed from ufcstats.com pages."""

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel


class ScrapedFight(BaseModel):
    fighter1: str
    fighter2: str
    weight_class: str = "TBD"
    is_main_card: bool = False


class UpcomingEvent(BaseModel):
    name: str
    date: dt.date | None = None
    location: str = ""
    link: str


class EventDetails(BaseModel):
    name: str
    date: dt.date
    city: str = "TBD"
    state: str = ""
    country: str = "TBD"
    link: str | None = None


class FightResult(BaseModel):
    winner: str
    loser: str
    method: str
    round: int | None = None
    time: str | None = None
    outcome: Literal["win", "draw", "nc"] = "win"
