# ============================================================================
# SyncBench -- Daemon Events (src/core/events.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Decodes the daemon's event API payload into validated Event objects.
#
#   The API returns a JSON array of records like:
#     {"id": 17, "type": "StateChanged", "time": "2026-10-18T13:01:02.123456789+02:00",
#      "data": {"folder": "default", "from": "idle", "to": "syncing"}}
#
#   Every record must have "type" and "time". StateChanged records must
#   also carry data.folder and data.to. A missing or mistyped required
#   field raises ParseError naming the field.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.exceptions import ParseError

STATE_CHANGED = "StateChanged"

# RFC 3339 with up to nanosecond precision; datetime keeps microseconds
_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class Event:
    """
    One record from the daemon's event stream.

    folder / from_state / to_state are only populated for
    StateChanged events; data keeps the raw payload for everything else.
    """
    id: int
    type: str
    time: datetime
    folder: Optional[str] = None
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_state_change(self) -> bool:
        return self.type == STATE_CHANGED


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an RFC 3339 timestamp ("Z" or numeric offset, any precision).

    Fractional seconds beyond microseconds are truncated.
    """
    if not isinstance(value, str) or not value:
        raise ParseError(f"Event time is not a string: {value!r}", field="time")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ParseError(f"Event time is not RFC 3339: {value!r}", field="time")


def _require(record: Dict[str, Any], key: str, kind: type, field_name: str):
    if key not in record or record[key] is None:
        raise ParseError(field=field_name)
    value = record[key]
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ParseError(
            f"Event field '{field_name}' has type {type(value).__name__}, "
            f"expected {kind.__name__}",
            field=field_name,
        )
    return value


def parse_event(record: Any) -> Event:
    """Validate one raw event record and build an Event."""
    if not isinstance(record, dict):
        raise ParseError(
            f"Event record is {type(record).__name__}, expected object",
            field="<record>",
        )

    event_type = _require(record, "type", str, "type")
    when = parse_timestamp(record.get("time"))

    event_id = record.get("id", 0)
    if not isinstance(event_id, int) or isinstance(event_id, bool):
        raise ParseError(field="id")

    data = record.get("data")
    if data is None:
        data = {}

    if event_type != STATE_CHANGED:
        return Event(
            id=event_id, type=event_type, time=when,
            data=data if isinstance(data, dict) else {"value": data},
        )

    if not isinstance(data, dict):
        raise ParseError(field="data")

    folder = _require(data, "folder", str, "data.folder")
    to_state = _require(data, "to", str, "data.to")
    from_state = data.get("from")
    if from_state is not None and not isinstance(from_state, str):
        raise ParseError(field="data.from")

    return Event(
        id=event_id,
        type=event_type,
        time=when,
        folder=folder,
        from_state=from_state,
        to_state=to_state,
        data=data,
    )


def parse_events(payload: Any) -> List[Event]:
    """Decode a whole event batch; the payload must be a JSON array."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ParseError(
            f"Event payload is {type(payload).__name__}, expected array",
            field="<payload>",
        )
    return [parse_event(record) for record in payload]
