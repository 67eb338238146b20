"""Downtime records and their reason/remark classification."""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


NOT_CHOSEN = "Not Chosen"
FALLBACK_REMARK = "Other"

REASON_OPTIONS = [NOT_CHOSEN, "Mechanical", "Electrical", "Operational", "Material"]

REMARK_OPTIONS: Dict[str, List[str]] = {
    NOT_CHOSEN: ["Not Chosen", "Pending Investigation"],
    "Mechanical": [
        "Conveyor Jam",
        "Belt Slippage",
        "Motor Failure",
        "Bearing Issue",
        "Hydraulic Leak",
    ],
    "Electrical": [
        "Sensor Misalignment",
        "Overheat Protection",
        "Power Loss",
        "Fuse Blown",
        "Drive Fault",
    ],
    "Operational": [
        "Shift Changeover",
        "Cleaning",
        "Operator Break",
        "Setup",
        "Quality Check",
    ],
    "Material": [
        "Out of Raw Material",
        "Bad Material Quality",
        "Hopper Empty",
        "Packaging Issue",
    ],
}


@dataclass(frozen=True)
class DowntimeRecord:
    """A labeled stop of the machine."""

    record_id: str
    time: str  # dd/mm/yy HH:MM:SS
    reason: Optional[str]
    remarks: Optional[str]
    run_time: str  # H:MM:SS
    is_confirmed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "time": self.time,
            "reason": self.reason,
            "remarks": self.remarks,
            "run_time": self.run_time,
            "is_confirmed": self.is_confirmed,
        }


MOCK_DOWNTIME_RECORDS: Tuple[DowntimeRecord, ...] = (
    DowntimeRecord("1", "05/12/25 11:45:00", "Mechanical", "Conveyor Jam", "1:05:44", True),
    DowntimeRecord("2", "05/12/25 09:30:15", "Electrical", "Sensor Misalignment", "0:52:32", True),
    DowntimeRecord("3", "05/12/25 08:15:10", NOT_CHOSEN, None, "0:36:57", False),
    DowntimeRecord("4", "05/12/25 06:45:22", "Operational", "Shift Changeover", "1:06:16", True),
    DowntimeRecord("5", "05/12/25 04:20:05", "Mechanical", "Belt Slippage", "0:20:33", True),
    DowntimeRecord("6", "04/12/25 23:10:00", NOT_CHOSEN, None, "0:15:00", False),
    DowntimeRecord("7", "04/12/25 21:05:30", "Material", "Out of Raw Material", "0:45:00", True),
    DowntimeRecord("8", "04/12/25 19:40:12", "Electrical", "Overheat Protection", "0:25:10", True),
    DowntimeRecord("9", "04/12/25 16:36:32", NOT_CHOSEN, None, "0:12:33", False),
    DowntimeRecord("10", "04/12/25 14:15:00", "Operational", "Cleaning", "0:18:22", True),
)


def remark_options(reason: Optional[str]) -> List[str]:
    """Remarks selectable for ``reason`` (the Not Chosen list for null)."""
    if not reason:
        reason = NOT_CHOSEN
    if not isinstance(reason, str):
        return [FALLBACK_REMARK]
    return REMARK_OPTIONS.get(reason, [FALLBACK_REMARK])


def set_reason(
    records: Sequence[DowntimeRecord], record_id: str, reason: str
) -> List[DowntimeRecord]:
    """Return records with ``record_id`` relabeled to ``reason``.

    The remark is reset to the first remark of the new reason so the pair
    stays consistent. Unknown ids leave the records unchanged.
    """
    first_remark = remark_options(reason)[0]
    updated = []
    found = False

    for record in records:
        if record.record_id == record_id:
            record = replace(record, reason=reason, remarks=first_remark)
            found = True
        updated.append(record)

    if not found:
        logger.debug(f"Ignoring reason change for unknown record: {record_id}")
    return updated


def set_remark(
    records: Sequence[DowntimeRecord], record_id: str, remark: str
) -> List[DowntimeRecord]:
    """Return records with the remark of ``record_id`` replaced.

    The remark is not checked against the record's reason.
    """
    updated = []
    found = False

    for record in records:
        if record.record_id == record_id:
            record = replace(record, remarks=remark)
            found = True
        updated.append(record)

    if not found:
        logger.debug(f"Ignoring remark change for unknown record: {record_id}")
    return updated


class DowntimeStore:
    """In-memory collection of downtime records edited by the operator."""

    def __init__(self, records: Optional[Sequence[DowntimeRecord]] = None):
        if records is None:
            records = MOCK_DOWNTIME_RECORDS
        self._records: Tuple[DowntimeRecord, ...] = tuple(records)
        self._lock = threading.Lock()

    @property
    def records(self) -> Tuple[DowntimeRecord, ...]:
        return self._records

    def get(self, record_id: str) -> Optional[DowntimeRecord]:
        for record in self._records:
            if record.record_id == record_id:
                return record
        return None

    def set_reason(self, record_id: str, reason: str) -> Tuple[DowntimeRecord, ...]:
        with self._lock:
            self._records = tuple(set_reason(self._records, record_id, reason))
            return self._records

    def set_remark(self, record_id: str, remark: str) -> Tuple[DowntimeRecord, ...]:
        with self._lock:
            self._records = tuple(set_remark(self._records, record_id, remark))
            return self._records

    def remark_options(self, reason: Optional[str]) -> List[str]:
        return remark_options(reason)
