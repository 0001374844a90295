"""Discord webhook reports for admin lifecycle actions and scheduled jobs."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from discord_webhook import DiscordEmbed, DiscordWebhook

from fight_genie.alerts.models import REPORT_COLORS, REPORT_LABELS, ReportKind
from fight_genie.config import Settings
from fight_genie.events.base import AdvanceResult, EventMeta, RollbackResult

log = structlog.get_logger()


def _event_line(event: EventMeta | None) -> str:
    if event is None:
        return "none"
    return f"**{event.name}** ({event.date}, {event.location}) `#{event.event_id}`"


class AdminNotifier:
    """Posts embeds to the admin webhook. Without a webhook URL it only logs."""

    def __init__(self, settings: Settings) -> None:
        self._url = settings.discord_webhook_url

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def report_advance(self, result: AdvanceResult) -> None:
        if not result.advanced:
            return
        fields = {
            "Completed": _event_line(result.completed),
            "Next event": _event_line(result.next_event),
        }
        if result.refresh_error:
            fields["Refresh error"] = result.refresh_error
        else:
            fields["Fights refreshed"] = str(result.refreshed_fights)
        self._send(ReportKind.EVENT_ADVANCED, fields)

    def report_rollback(self, result: RollbackResult) -> None:
        if not result.rolled_back:
            return
        reset = ", ".join(f"#{i}" for i in result.reset_event_ids) or "none"
        self._send(
            ReportKind.EVENT_ROLLED_BACK,
            {
                "Event": f"#{result.event_id}",
                "Also reset": reset,
                "Predictions deleted": str(result.predictions_deleted),
            },
        )

    def report_stored(self, event: EventMeta | None, fights: int) -> None:
        self._send(
            ReportKind.EVENT_STORED,
            {"Event": _event_line(event), "Fights": str(fights)},
        )

    def report_deleted(self, event_id: int, counts: dict[str, int]) -> None:
        lines = [f"`{table:20s}` {count}" for table, count in counts.items()]
        self._send(
            ReportKind.EVENT_DELETED,
            {"Event": f"#{event_id}", "Rows deleted": "\n".join(lines) or "none"},
        )

    def report_sync(self, counts: dict[str, int]) -> None:
        if not any(counts.values()):
            return
        self._send(ReportKind.OUTCOMES_SYNCED, {k.title(): str(v) for k, v in counts.items()})

    def report_job_failure(self, job: str, error: str) -> None:
        self._send(ReportKind.JOB_FAILED, {"Job": job, "Error": error[:1000]})

    def _send(self, kind: ReportKind, fields: dict[str, str]) -> None:
        if not self._url:
            log.debug("admin_report_skipped", kind=kind.value)
            return
        try:
            webhook = DiscordWebhook(url=self._url)
            embed = DiscordEmbed(
                title=REPORT_LABELS[kind], color=REPORT_COLORS.get(kind, 0x95A5A6)
            )
            for name, value in fields.items():
                embed.add_embed_field(name=name, value=value, inline=False)
            embed.set_timestamp(datetime.now(timezone.utc).isoformat())
            embed.set_footer(text="Fight Genie Admin")
            webhook.add_embed(embed)
            resp = webhook.execute()
            if resp and hasattr(resp, "status_code") and resp.status_code >= 400:
                log.error("discord_webhook_error", status=resp.status_code, kind=kind.value)
            else:
                log.info("admin_report_sent", kind=kind.value)
        except Exception:
            log.exception("admin_report_failed", kind=kind.value)
