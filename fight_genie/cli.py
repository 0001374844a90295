"""CLI commands for Fight Genie admins (advance, rollback, predict, etc.)."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Awaitable, Callable

from fight_genie.config import Settings
from fight_genie.errors import FightGenieError
from fight_genie.main import configure_logging
from fight_genie.service import FightGenie


async def _with_genie(action: Callable[[FightGenie], Awaitable[None]]) -> None:
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings.log_level)

    genie = await FightGenie.create(settings)
    try:
        await action(genie)
    finally:
        await genie.close()


async def show_upcoming(genie: FightGenie) -> None:
    event = await genie.get_upcoming_event()
    if event is None:
        print("No upcoming event found.")
        return
    fights = await genie.repo.get_event_fights(event.event_id)
    print(f"#{event.event_id} {event.name} | {event.date} | {event.location}")
    for fight in fights:
        card = "main" if fight.is_main_card else "prelims"
        print(f"  [{card:7s}] {fight.fighter1} vs {fight.fighter2} ({fight.weight_class})")


async def list_scraped(genie: FightGenie) -> None:
    events = await genie.fetch_upcoming_events()
    if not events:
        print("No upcoming events listed on the source.")
    for event in events:
        when = event.date.isoformat() if event.date else "TBD"
        print(f"{when}  {event.name} | {event.location}\n    {event.link}")


async def advance(genie: FightGenie) -> None:
    result = await genie.advance_event()
    if not result.advanced:
        print(f"Nothing advanced ({result.reason}).")
        if result.next_event:
            print(f"Next event: #{result.next_event.event_id} {result.next_event.name}")
        return
    print(f"Completed: #{result.completed.event_id} {result.completed.name}")
    if result.next_event:
        print(f"Next event: #{result.next_event.event_id} {result.next_event.name}")
    if result.refresh_error:
        print(f"Refresh failed: {result.refresh_error}")
    else:
        print(f"Fights refreshed: {result.refreshed_fights}")


def cli() -> None:
    parser = argparse.ArgumentParser(prog="fight-genie-tools", description="Fight Genie admin tools")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("upcoming", help="Show the current or next stored event")
    sub.add_parser("scrape", help="List upcoming events on ufcstats.com")

    sel = sub.add_parser("select", help="Store an event from its ufcstats link")
    sel.add_argument("link", help="Event details URL")

    sub.add_parser("advance", help="Complete the due event and refresh the next one")

    rb = sub.add_parser("rollback", help="Undo completion of an event and every later one")
    rb.add_argument("event_id", type=int)

    de = sub.add_parser("delete", help="Delete an event and all dependent rows")
    de.add_argument("event_id", type=int)

    pr = sub.add_parser("predict", help="Show (generating if needed) a stored prediction")
    pr.add_argument("event_id", type=int)
    pr.add_argument("card", choices=["main", "prelims"])
    pr.add_argument("model", choices=["gpt", "claude"])

    sub.add_parser("sync", help="Grade predictions of finished events")
    sub.add_parser("stats", help="Show per-model prediction accuracy")
    sub.add_parser("odds", help="Snapshot current odds for the upcoming event")

    mk = sub.add_parser("market", help="Show the market analysis for an event")
    mk.add_argument("event_id", type=int)
    mk.add_argument("model", choices=["gpt", "claude"])

    args = parser.parse_args()

    async def select(genie: FightGenie) -> None:
        event = await genie.select_event(args.link)
        print(f"Stored #{event.event_id} {event.name}" if event else "Event not stored.")

    async def rollback(genie: FightGenie) -> None:
        result = await genie.rollback_event(args.event_id)
        if not result.rolled_back:
            print(f"Nothing rolled back ({result.reason}).")
            return
        print(
            f"Rolled back #{result.event_id}; reset {result.reset_event_ids}; "
            f"deleted {result.predictions_deleted} predictions"
        )

    async def delete(genie: FightGenie) -> None:
        counts = await genie.delete_event_cascade(args.event_id)
        if counts is None:
            print(f"Event #{args.event_id} not found.")
            return
        for table, count in counts.items():
            print(f"  {table}: {count}")

    async def predict(genie: FightGenie) -> None:
        ctx = genie.context(genie.settings.admin_server_id)
        prediction = await genie.get_or_create_prediction(ctx, args.event_id, args.card, args.model)
        if prediction is None:
            print("No fights stored for that event/card.")
            return
        print(json.dumps(prediction, indent=2))

    async def sync(genie: FightGenie) -> None:
        counts = await genie.sync_completed_events()
        print(f"Synced {counts['synced']}, skipped {counts['skipped']}, errors {counts['errors']}")

    async def stats(genie: FightGenie) -> None:
        model_stats = await genie.model_stats()
        if not model_stats:
            print("No graded predictions yet.")
            return
        print("Model Performance:")
        for name, s in sorted(model_stats.items()):
            print(
                f"  {name}: {s.fight_accuracy:.1f}% winners, {s.method_accuracy:.1f}% methods "
                f"({s.total_fights} fights / {s.events_analyzed} events), "
                f"confidence accuracy {s.confidence_accuracy:.1f}%, "
                f"parlay legs {s.parlay_accuracy:.1f}%, props {s.prop_accuracy:.1f}%"
            )

    async def odds(genie: FightGenie) -> None:
        rows = await genie.refresh_odds()
        print(f"Recorded {rows} odds rows.")

    async def market(genie: FightGenie) -> None:
        ctx = genie.context(genie.settings.admin_server_id)
        report = await genie.market_analysis(ctx, args.event_id, args.model)
        if report is None:
            print("No stored predictions for that event/model.")
            return
        print(json.dumps(report, indent=2))

    actions = {
        "upcoming": show_upcoming,
        "scrape": list_scraped,
        "select": select,
        "advance": advance,
        "rollback": rollback,
        "delete": delete,
        "predict": predict,
        "sync": sync,
        "stats": stats,
        "odds": odds,
        "market": market,
    }
    action = actions.get(args.command)
    if action is None:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_with_genie(action))
    except FightGenieError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    cli()
