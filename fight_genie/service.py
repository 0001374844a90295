"""Command-level facade used by the bot layer, the CLI and scheduled jobs."""

from __future__ import annotations

from typing import Any, Sequence

import structlog

from fight_genie.access.subscriptions import SubscriptionManager
from fight_genie.alerts.discord import AdminNotifier
from fight_genie.analysis.outcomes import OutcomeSync
from fight_genie.analysis.stats import ModelStats, ModelStatsTracker
from fight_genie.config import Settings
from fight_genie.context import RequestContext
from fight_genie.db.migrations import init_db
from fight_genie.db.repository import Repository
from fight_genie.errors import AccessDeniedError
from fight_genie.events.base import AdvanceResult, EventMeta, RollbackResult
from fight_genie.events.lifecycle import EventLifecycleManager
from fight_genie.odds.client import OddsClient
from fight_genie.odds.market import MarketAnalyzer
from fight_genie.predictions.base import CardType, ModelName, PredictionProvider
from fight_genie.predictions.providers import build_providers
from fight_genie.predictions.store import PredictionStore
from fight_genie.scraper.client import UFCStatsScraper
from fight_genie.scraper.schemas import EventDetails, ScrapedFight, UpcomingEvent

log = structlog.get_logger()


class FightGenie:
    def __init__(
        self,
        settings: Settings,
        repo: Repository,
        scraper: UFCStatsScraper,
        providers: dict[ModelName, PredictionProvider],
        notifier: AdminNotifier | None = None,
        odds: OddsClient | None = None,
    ) -> None:
        self.settings = settings
        self.repo = repo
        self.scraper = scraper
        self._providers = providers
        self.notifier = notifier or AdminNotifier(settings)
        self.lifecycle = EventLifecycleManager(repo, scraper)
        self.predictions = PredictionStore(repo)
        self.outcomes = OutcomeSync(repo, scraper, settings.outcome_lookback_days)
        self.stats = ModelStatsTracker(repo)
        self.subscriptions = SubscriptionManager(repo)
        self.odds = odds or OddsClient(settings, repo)
        bookmaker = settings.odds_bookmakers[0] if settings.odds_bookmakers else "fanduel"
        self.market = MarketAnalyzer(repo, bookmaker=bookmaker)

    @classmethod
    async def create(cls, settings: Settings) -> FightGenie:
        db = await init_db(settings.db_path)
        repo = Repository(db)
        return cls(settings, repo, UFCStatsScraper(settings, repo), build_providers(settings))

    async def close(self) -> None:
        await self.scraper.close()
        await self.odds.close()
        for provider in self._providers.values():
            await provider.close()
        await self.repo.close()

    def context(self, guild_id: str | None = None) -> RequestContext:
        return RequestContext.from_settings(self.settings, guild_id)

    # ── Events ──────────────────────────────────────────────────────

    async def get_upcoming_event(self, today: str | None = None) -> EventMeta | None:
        return await self.lifecycle.get_upcoming_event(today)

    async def fetch_upcoming_events(self) -> list[UpcomingEvent]:
        return await self.scraper.fetch_upcoming_events()

    async def create_event_batch(
        self, details: EventDetails, fights: Sequence[ScrapedFight]
    ) -> int:
        return await self.repo.create_event_batch(details, fights)

    async def delete_event_cascade(self, event_id: int) -> dict[str, int] | None:
        """Delete an event and its dependents. None when the event does not exist."""
        if await self.repo.get_event(event_id) is None:
            return None
        counts = await self.repo.delete_event_cascade(event_id)
        self.notifier.report_deleted(event_id, counts)
        return counts

    async def select_event(self, link: str) -> EventMeta | None:
        """Store the event behind a ufcstats link as the active card."""
        upcoming = next(
            (e for e in await self.scraper.fetch_upcoming_events() if e.link == link), None
        )
        if upcoming is None:
            upcoming = UpcomingEvent(name=link, link=link)
        event_id = await self.lifecycle.store_event(upcoming)
        event = await self.repo.get_event(event_id)
        fights = await self.repo.get_event_fights(event_id)
        self.notifier.report_stored(event, len(fights))
        return event

    async def advance_event(self, today: str | None = None) -> AdvanceResult:
        result = await self.lifecycle.advance_event(today)
        self.notifier.report_advance(result)
        return result

    async def rollback_event(self, event_id: int) -> RollbackResult:
        result = await self.lifecycle.rollback_event(event_id)
        self.notifier.report_rollback(result)
        return result

    # ── Predictions ────────────────────────────────────────────────

    async def get_or_create_prediction(
        self,
        ctx: RequestContext,
        event_id: int,
        card_type: CardType | str,
        model: ModelName | str | None = None,
    ) -> dict[str, Any] | None:
        """Stored prediction for one card, generating it on first request.

        None when the event or the card has no fights.
        """
        if not ctx.allows_command():
            raise AccessDeniedError(f"server {ctx.guild_id} is not allowed in admin mode")
        model = ModelName(model) if model is not None else ctx.model
        card_type = CardType(card_type)

        event = await self.repo.get_event(event_id)
        if event is None:
            return None
        fights = await self.repo.get_event_fights(event_id, card_type)
        if not fights:
            return None

        provider = self._providers[model]

        async def generate() -> dict[str, Any]:
            return await provider.generate(event, fights)

        return await self.predictions.get_or_create(event_id, card_type, model, generate)

    async def has_access(self, ctx: RequestContext, event_id: int | None = None) -> bool:
        if not ctx.allows_command() or ctx.guild_id is None:
            return False
        if ctx.guild_id == ctx.admin_server_id:
            return True
        return await self.subscriptions.verify_access(ctx.guild_id, event_id)

    # ── Outcomes / stats ───────────────────────────────────────────

    async def sync_completed_events(self, today: str | None = None) -> dict[str, int]:
        counts = await self.outcomes.sync_completed_events(today)
        self.notifier.report_sync(counts)
        return counts

    async def model_stats(self) -> dict[str, ModelStats]:
        return await self.stats.get_stats()

    # ── Odds / market analysis ─────────────────────────────────────

    async def refresh_odds(self, today: str | None = None) -> int:
        """Snapshot current odds for the upcoming event. Returns rows written."""
        event = await self.lifecycle.get_upcoming_event(today)
        if event is None:
            return 0
        return await self.odds.record_event_odds(event.event_id)

    async def market_analysis(
        self, ctx: RequestContext, event_id: int, model: ModelName | str | None = None
    ) -> dict[str, Any] | None:
        if not ctx.allows_command():
            raise AccessDeniedError(f"server {ctx.guild_id} is not allowed in admin mode")
        event = await self.repo.get_event(event_id)
        if event is None:
            return None
        model = ModelName(model) if model is not None else ctx.model
        return await self.market.analyze(event, model)
