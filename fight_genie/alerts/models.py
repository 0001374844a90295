"""Color and label mappings for admin reports."""

from __future__ import annotations

from enum import Enum


class ReportKind(str, Enum):
    EVENT_ADVANCED = "event_advanced"
    EVENT_ROLLED_BACK = "event_rolled_back"
    EVENT_STORED = "event_stored"
    EVENT_DELETED = "event_deleted"
    OUTCOMES_SYNCED = "outcomes_synced"
    JOB_FAILED = "job_failed"


# Discord embed colors (decimal)
REPORT_COLORS: dict[ReportKind, int] = {
    ReportKind.EVENT_ADVANCED: 0x2ECC71,     # green
    ReportKind.EVENT_ROLLED_BACK: 0xFFD700,  # gold
    ReportKind.EVENT_STORED: 0x4169E1,       # blue
    ReportKind.EVENT_DELETED: 0x95A5A6,      # grey
    ReportKind.OUTCOMES_SYNCED: 0x8A2BE2,    # violet
    ReportKind.JOB_FAILED: 0xFF4500,         # orange-red
}

REPORT_LABELS: dict[ReportKind, str] = {
    ReportKind.EVENT_ADVANCED: "Event Advanced",
    ReportKind.EVENT_ROLLED_BACK: "Event Rolled Back",
    ReportKind.EVENT_STORED: "Event Stored",
    ReportKind.EVENT_DELETED: "Event Deleted",
    ReportKind.OUTCOMES_SYNCED: "Prediction Outcomes Synced",
    ReportKind.JOB_FAILED: "Scheduled Job Failed",
}
