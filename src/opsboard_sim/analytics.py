"""Aggregations behind the dashboard: reason pie, KPI cards and timeline breakdowns."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .downtime import NOT_CHOSEN, REASON_OPTIONS, DowntimeRecord
from .generators import MachineStatus, TimelineEvent

logger = logging.getLogger(__name__)


REASON_COLORS: Dict[str, str] = {
    NOT_CHOSEN: "#fb7185",
    "Mechanical": "#6366f1",
    "Electrical": "#f59e0b",
    "Operational": "#10b981",
    "Material": "#8b5cf6",
}

RUNNING_STATUSES = (MachineStatus.RUNNING_GOOD, MachineStatus.RUNNING_ABNORMAL)


# =============================================================================
# Downtime reasons
# =============================================================================


def resolve_reason(reason: Optional[str]) -> str:
    """Bucket name for ``reason``; null, empty and unknown reasons are Not Chosen."""
    if reason in REASON_OPTIONS:
        return reason
    return NOT_CHOSEN


def reason_distribution(records: Sequence[DowntimeRecord]) -> Dict[str, int]:
    """Count records per resolved reason, in order of first occurrence."""
    counts: Dict[str, int] = {}
    for record in records:
        reason = resolve_reason(record.reason)
        counts[reason] = counts.get(reason, 0) + 1
    return counts


def top_reason(distribution: Dict[str, int]) -> str:
    """Reason with the most records; ties go to the first one encountered.

    Unlabeled records only win when no labeled reason exists at all.
    """
    labeled = {name: count for name, count in distribution.items() if name != NOT_CHOSEN}
    if not labeled:
        return NOT_CHOSEN
    # sorted() is stable so equal counts keep insertion order
    ranked = sorted(labeled.items(), key=lambda item: item[1], reverse=True)
    return ranked[0][0]


def filter_by_reason(
    records: Sequence[DowntimeRecord], selected: Optional[str]
) -> List[DowntimeRecord]:
    """Records whose resolved reason is ``selected``; ``None`` keeps them all."""
    if selected is None:
        return list(records)
    return [r for r in records if resolve_reason(r.reason) == selected]


def toggle_reason(current: Optional[str], clicked: Optional[str]) -> Optional[str]:
    """New reason filter after clicking a pie slice or table row.

    Clicking the active reason again clears the filter.
    """
    target = resolve_reason(clicked)
    return None if current == target else target


def reason_buckets(records: Sequence[DowntimeRecord]) -> List[Dict[str, Any]]:
    """Pie chart slices for the reason distribution."""
    return [
        {"name": name, "value": count, "color": REASON_COLORS.get(name, REASON_COLORS[NOT_CHOSEN])}
        for name, count in reason_distribution(records).items()
    ]


# =============================================================================
# KPI cards
# =============================================================================


def parse_run_time(value: Optional[str]) -> int:
    """Seconds in an ``H:MM:SS`` string; malformed values count as 0."""
    if not value:
        return 0
    parts = value.strip().split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        logger.warning(f"Malformed run time: {value!r}")
        return 0

    seconds = 0
    for number in numbers:
        seconds = seconds * 60 + number
    return max(0, seconds)


def format_duration(seconds: float) -> str:
    """Format seconds as ``H:MM:SS``."""
    total = max(0, int(round(seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def labeled_percent(records: Sequence[DowntimeRecord]) -> float:
    """Share of records that carry a real reason, in percent."""
    if not records:
        return 0.0
    labeled = sum(1 for r in records if resolve_reason(r.reason) != NOT_CHOSEN)
    return round(labeled / len(records) * 100, 1)


def total_run_time(records: Sequence[DowntimeRecord], min_minutes: float = 0) -> int:
    """Summed downtime in seconds, counting only stops of at least ``min_minutes``."""
    threshold = min_minutes * 60
    durations = (parse_run_time(r.run_time) for r in records)
    return sum(d for d in durations if d >= threshold)


def average_run_time(records: Sequence[DowntimeRecord]) -> float:
    """Mean stop length in seconds."""
    if not records:
        return 0.0
    return sum(parse_run_time(r.run_time) for r in records) / len(records)


def downtime_summary(
    records: Sequence[DowntimeRecord], min_minutes: float = 10
) -> Dict[str, Any]:
    """All KPI card values for the downtime overview."""
    distribution = reason_distribution(records)
    return {
        "record_count": len(records),
        "total_downtime_seconds": total_run_time(records, min_minutes),
        "total_downtime": format_duration(total_run_time(records, min_minutes)),
        "min_stop_minutes": min_minutes,
        "labeled_pct": labeled_percent(records),
        "top_reason": top_reason(distribution),
        "avg_stop_length": format_duration(average_run_time(records)),
        "distribution": distribution,
    }


# =============================================================================
# Timeline breakdowns
# =============================================================================


def status_breakdown(events: Sequence[TimelineEvent]) -> Dict[str, Dict[str, float]]:
    """Seconds and percent of the covered time spent in each status."""
    seconds: Dict[str, float] = {status.value: 0.0 for status in MachineStatus}
    for event in events:
        seconds[event.status.value] += max(0.0, event.duration_seconds)

    total = sum(seconds.values())
    return {
        name: {
            "seconds": value,
            "percent": round(value / total * 100, 2) if total else 0.0,
        }
        for name, value in seconds.items()
    }


def utilization_percent(events: Sequence[TimelineEvent]) -> float:
    """Percent of the covered time the machine was running (good or abnormal)."""
    total = sum(max(0.0, e.duration_seconds) for e in events)
    if not total:
        return 0.0
    running = sum(max(0.0, e.duration_seconds) for e in events if e.status in RUNNING_STATUSES)
    return round(running / total * 100, 2)


def long_stops(events: Sequence[TimelineEvent], min_minutes: float = 15) -> List[TimelineEvent]:
    """Stopped intervals lasting at least ``min_minutes``."""
    return [
        e
        for e in events
        if e.status == MachineStatus.STOPPED and e.duration_seconds >= min_minutes * 60
    ]


def signal_history(events: Sequence[TimelineEvent], limit: int = 5) -> List[Dict[str, Any]]:
    """Rows of the signal table: the first ``limit`` events, latest on top."""
    rows = []
    for event in reversed(list(events)[:limit]):
        rows.append(
            {
                "time": event.start_time,
                "status": event.status.value,
                "duration": format_duration(event.duration_seconds),
                "remarks": event.reason or "No remarks",
            }
        )
    return rows
