"""Map timeline events onto the linear strip and the 24h clock face."""

import logging
import math
from datetime import datetime, time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .generators import DAY_SECONDS, MachineStatus, TimelineEvent

logger = logging.getLogger(__name__)


STATUS_COLORS: Dict[MachineStatus, str] = {
    MachineStatus.RUNNING_GOOD: "#10b981",
    MachineStatus.RUNNING_ABNORMAL: "#facc15",
    MachineStatus.STOPPED: "#f43f5e",
    MachineStatus.OFFLINE: "#94a3b8",
}

FULL_CIRCLE = 360.0
DAY_MINUTES = 24 * 60


def _parse(timestamp: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        logger.warning(f"Skipping malformed timestamp: {timestamp!r}")
        return None


def seconds_since_midnight(moment: datetime) -> float:
    midnight = datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)
    return (moment - midnight).total_seconds()


# =============================================================================
# Linear strip
# =============================================================================


def strip_coordinates(events: Sequence[TimelineEvent]) -> List[Dict[str, Any]]:
    """Left offset and width of each event as a percentage of the day."""
    coords = []
    for event in events:
        start = _parse(event.start_time)
        if start is None:
            continue
        coords.append(
            {
                "left_percent": seconds_since_midnight(start) / DAY_SECONDS * 100,
                "width_percent": max(0.0, event.duration_seconds) / DAY_SECONDS * 100,
                "status": event.status.value,
                "color": STATUS_COLORS[event.status],
            }
        )
    return coords


# =============================================================================
# Clock face
# =============================================================================


def time_to_degrees(moment: datetime) -> float:
    """Angle of ``moment`` on a 24h dial, minute resolution, 0 at midnight."""
    return (moment.hour * 60 + moment.minute) / DAY_MINUTES * FULL_CIRCLE


def _arc_bounds(start: datetime, end: datetime) -> Tuple[float, float]:
    start_deg = time_to_degrees(start)
    end_deg = time_to_degrees(end)
    # An interval closing on the next midnight ends the dial, it does not wrap
    if end_deg == 0.0 and end > start and end.time() == time.min:
        end_deg = FULL_CIRCLE
    return start_deg, end_deg


def arc_coordinates(
    events: Sequence[TimelineEvent], split_wraparound: bool = False
) -> List[Dict[str, Any]]:
    """Start and end angles of each event on the clock face.

    Arcs whose end angle falls before their start angle cross midnight. They
    are dropped unless ``split_wraparound`` is set, in which case they are
    split into one arc up to 360 degrees and one from 0.

    An event ending exactly on the following midnight closes the dial at 360
    degrees. This differs from the dashboard's clock renderer, which reads
    that end as 0 degrees and drops the last arc of the day.
    """
    arcs = []
    for event in events:
        start = _parse(event.start_time)
        end = _parse(event.end_time)
        if start is None or end is None:
            continue

        start_deg, end_deg = _arc_bounds(start, end)
        status = event.status.value

        if end_deg >= start_deg:
            arcs.append({"start_deg": start_deg, "end_deg": end_deg, "status": status})
        elif split_wraparound:
            arcs.append({"start_deg": start_deg, "end_deg": FULL_CIRCLE, "status": status})
            arcs.append({"start_deg": 0.0, "end_deg": end_deg, "status": status})
        else:
            logger.debug(f"Dropping arc crossing midnight: {event.event_id}")

    return arcs


def polar_to_cartesian(
    center_x: float, center_y: float, radius: float, degrees: float
) -> Tuple[float, float]:
    """Point on the dial for ``degrees``, with 0 at the top and clockwise positive."""
    radians = math.radians(degrees - 90)
    return (
        center_x + radius * math.cos(radians),
        center_y + radius * math.sin(radians),
    )
