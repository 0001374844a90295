"""HTML parsers for ufcstats.com pages.

Every parser takes raw HTML and returns plain records. Unknown page
structures yield an empty list; deciding whether that is an error is left
to the caller.
"""

from __future__ import annotations

import re
from datetime import date, datetime

import structlog
from bs4 import BeautifulSoup, Tag

from fight_genie.scraper.schemas import EventDetails, FightResult, ScrapedFight, UpcomingEvent

log = structlog.get_logger()

# The source lists the main card first; it has no explicit marker.
MAIN_CARD_SIZE = 5

IGNORED_LINK_TEXT = ("View", "Matchup")

# Most specific first: "Light Heavyweight" must win over "Heavyweight".
WEIGHT_CLASSES = (
    ("women's strawweight", "Women's Strawweight"),
    ("women's flyweight", "Women's Flyweight"),
    ("women's bantamweight", "Women's Bantamweight"),
    ("women's featherweight", "Women's Featherweight"),
    ("light heavyweight", "Light Heavyweight"),
    ("heavyweight", "Heavyweight"),
    ("middleweight", "Middleweight"),
    ("welterweight", "Welterweight"),
    ("lightweight", "Lightweight"),
    ("featherweight", "Featherweight"),
    ("bantamweight", "Bantamweight"),
    ("flyweight", "Flyweight"),
    ("strawweight", "Strawweight"),
    ("catch weight", "Catch Weight"),
    ("catchweight", "Catch Weight"),
    ("open weight", "Open Weight"),
)

_DATE_RE = re.compile(r"([A-Za-z]+\.? \d{1,2}, \d{4})")
_WS_RE = re.compile(r"\s+")


def _clean(text: str | None) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def classify_weight_class(text: str | None) -> str:
    """Map free text such as "UFC Light Heavyweight Title Bout" to a weight class."""
    lowered = _clean(text).lower().replace("’", "'")
    if not lowered:
        return "TBD"
    for keyword, label in WEIGHT_CLASSES:
        if keyword in lowered:
            if label in ("Strawweight", "Flyweight", "Bantamweight", "Featherweight") and (
                "women" in lowered
            ):
                return f"Women's {label}"
            return label
    return "TBD"


def parse_event_date(text: str | None) -> date | None:
    """Parse "September 06, 2025" or "Sep. 6, 2025". None when unparseable."""
    match = _DATE_RE.search(_clean(text))
    if not match:
        return None
    raw = match.group(1).replace(".", "")
    for fmt in ("%B %d, %Y", "%b %d, %Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    # "Sept 6, 2025" and similar long abbreviations
    month, rest = raw.split(" ", 1)
    try:
        return datetime.strptime(f"{month[:3]} {rest}", "%b %d, %Y").date()
    except ValueError:
        return None


def parse_location(text: str | None) -> tuple[str, str, str]:
    """Split a location into (city, state, country)."""
    parts = [p.strip() for p in _clean(text).split(",") if p.strip()]
    if not parts:
        return ("TBD", "", "TBD")
    if len(parts) == 1:
        return (parts[0], "", "")
    if len(parts) == 2:
        return (parts[0], "", parts[1])
    return (parts[0], parts[1], ", ".join(parts[2:]))


# ── Event card ──────────────────────────────────────────────────────


def parse_event_card(html: str) -> list[ScrapedFight]:
    """Extract the fight list of an event page, trying each known layout in turn."""
    soup = BeautifulSoup(html, "html.parser")
    for name, strategy in (
        ("listing", _parse_listing_layout),
        ("table", _parse_table_layout),
        ("tabs", _parse_tabbed_layout),
    ):
        fights = strategy(soup)
        if fights:
            log.debug("event_card_parsed", layout=name, fights=len(fights))
            return fights
    return []


def _with_positional_card(pairs: list[tuple[str, str, str]]) -> list[ScrapedFight]:
    return [
        ScrapedFight(
            fighter1=f1,
            fighter2=f2,
            weight_class=weight,
            is_main_card=idx < MAIN_CARD_SIZE,
        )
        for idx, (f1, f2, weight) in enumerate(pairs)
    ]


def _parse_listing_layout(soup: BeautifulSoup) -> list[ScrapedFight]:
    pairs = []
    for block in soup.select(".c-listing-fight__content"):
        red = block.select_one(".c-listing-fight__corner-name--red")
        blue = block.select_one(".c-listing-fight__corner-name--blue")
        fighter1 = _clean(red.get_text(" ")) if red else ""
        fighter2 = _clean(blue.get_text(" ")) if blue else ""
        if not (fighter1 and fighter2):
            continue
        weight = block.select_one(".c-listing-fight__class-text")
        pairs.append((fighter1, fighter2, classify_weight_class(weight.get_text() if weight else "")))
    return _with_positional_card(pairs)


def _fighter_links(row: Tag) -> list[str]:
    names = []
    for link in row.select("a.b-link.b-link_style_black"):
        text = _clean(link.get_text())
        if text and not any(word in text for word in IGNORED_LINK_TEXT):
            names.append(text)
    return names


def _parse_table_layout(soup: BeautifulSoup) -> list[ScrapedFight]:
    pairs = []
    for row in soup.select(".b-fight-details__table-row"):
        names = _fighter_links(row)
        if len(names) < 2:
            continue
        weight_text = ""
        for cell in row.find_all("td"):
            text = _clean(cell.get_text(" "))
            if "weight" in text.lower():
                weight_text = text
                break
        pairs.append((names[0], names[1], classify_weight_class(weight_text)))
    return _with_positional_card(pairs)


def _parse_tabbed_layout(soup: BeautifulSoup) -> list[ScrapedFight]:
    # The tabs carry their own card split, so position is not used here.
    fights = []
    for section_id, is_main in (("card-tabs-1", True), ("card-tabs-2", False)):
        section = soup.find(id=section_id)
        if section is None:
            continue
        for item in section.select(".l-listing__item"):
            names = [_clean(n.get_text(" ")) for n in item.select(".c-listing__name")]
            names = [n for n in names if n]
            if len(names) < 2:
                continue
            term = item.select_one(".c-listing__term")
            fights.append(
                ScrapedFight(
                    fighter1=names[0],
                    fighter2=names[-1],
                    weight_class=classify_weight_class(term.get_text() if term else ""),
                    is_main_card=is_main,
                )
            )
    return fights


# ── Upcoming events listing ─────────────────────────────────────────


def parse_upcoming_events(html: str) -> list[UpcomingEvent]:
    """Rows of the upcoming events table: name, date, location and link."""
    soup = BeautifulSoup(html, "html.parser")
    events = []
    for row in soup.select("tr.b-statistics__table-row"):
        cols = row.find_all("td", recursive=False)
        if len(cols) < 2:
            continue
        link = cols[0].select_one("a[href]")
        if link is None:
            continue
        name = _clean(link.get_text())
        href = link["href"].strip()
        if not name or not href:
            continue
        events.append(
            UpcomingEvent(
                name=name,
                date=parse_event_date(cols[0].get_text(" ")),
                location=_clean(cols[1].get_text(" ")),
                link=href,
            )
        )
    return events


# ── Event details / results ────────────────────────────────────────


def parse_event_details(html: str, link: str | None = None) -> EventDetails | None:
    """Name, date and location from an event page header. None without a name and date."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.select_one(".b-content__title-highlight") or soup.select_one("h2.b-content__title")
    name = _clean(title.get_text(" ")) if title else ""

    date_text = ""
    location_text = ""
    for item in soup.select("li.b-list__box-list-item"):
        text = _clean(item.get_text(" "))
        if text.lower().startswith("date:"):
            date_text = text[len("date:"):]
        elif text.lower().startswith("location:"):
            location_text = text[len("location:"):]

    event_date = parse_event_date(date_text)
    if not name or event_date is None:
        return None
    city, state, country = parse_location(location_text)
    return EventDetails(
        name=name, date=event_date, city=city, state=state, country=country, link=link
    )


def parse_event_results(html: str) -> list[FightResult]:
    """Completed bouts of an event page. The winner is listed first on ufcstats."""
    soup = BeautifulSoup(html, "html.parser")
    results = []
    for row in soup.select(".b-fight-details__table tbody tr"):
        cols = row.find_all("td", recursive=False)
        if len(cols) < 8:
            continue
        fighters = [_clean(a.get_text()) for a in cols[1].select("a")]
        fighters = [f for f in fighters if f]
        if len(fighters) < 2:
            continue

        flags = [_clean(f.get_text()).lower() for f in cols[0].select(".b-flag__text")]
        if "draw" in flags:
            outcome = "draw"
        elif "nc" in flags:
            outcome = "nc"
        else:
            outcome = "win"

        round_text = _clean(cols[8].get_text()) if len(cols) > 8 else ""
        time_text = _clean(cols[9].get_text()) if len(cols) > 9 else ""
        results.append(
            FightResult(
                winner=fighters[0],
                loser=fighters[1],
                method=_clean(cols[7].get_text(" ")),
                round=int(round_text) if round_text.isdigit() else None,
                time=time_text or None,
                outcome=outcome,
            )
        )
    return results
