# ============================================================================
# test_events.py -- Tests for event payload decoding
# ============================================================================
#
# COVERS:
#   TestParseTimestamp -- RFC 3339 with Z, offsets, nanoseconds
#   TestParseEvent     -- required fields, type checks, non-StateChanged
#   TestParseEvents    -- batch payload shape
#
# RUN:
#   python -m pytest tests/test_events.py -v
#
# INTERNET ACCESS: NONE
# ============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from src.core.events import STATE_CHANGED, parse_event, parse_events, parse_timestamp
from src.core.exceptions import ParseError, ProbeFatalError


def _record(**overrides):
    record = {
        "id": 7,
        "type": "StateChanged",
        "time": "2026-10-18T12:00:05Z",
        "data": {"folder": "default", "from": "idle", "to": "syncing"},
    }
    record.update(overrides)
    return record


class TestParseTimestamp:

    def test_zulu(self):
        t = parse_timestamp("2026-10-18T12:00:05Z")
        assert t == datetime(2026, 10, 18, 12, 0, 5, tzinfo=timezone.utc)

    def test_nanoseconds_truncated(self):
        t = parse_timestamp("2026-10-18T12:00:05.123456789+02:00")
        assert t.microsecond == 123456
        assert t.utcoffset() == timedelta(hours=2)

    def test_short_fraction_padded(self):
        assert parse_timestamp("2026-10-18T12:00:05.5Z").microsecond == 500000

    @pytest.mark.parametrize("bad", ["", "yesterday", 12345, None])
    def test_invalid(self, bad):
        with pytest.raises(ParseError) as exc:
            parse_timestamp(bad)
        assert exc.value.field == "time"


class TestParseEvent:

    def test_state_changed(self):
        ev = parse_event(_record())
        assert ev.id == 7
        assert ev.type == STATE_CHANGED
        assert ev.is_state_change
        assert ev.folder == "default"
        assert ev.from_state == "idle"
        assert ev.to_state == "syncing"

    def test_missing_type(self):
        rec = _record()
        del rec["type"]
        with pytest.raises(ParseError) as exc:
            parse_event(rec)
        assert exc.value.field == "type"

    def test_missing_folder(self):
        with pytest.raises(ParseError) as exc:
            parse_event(_record(data={"to": "idle"}))
        assert exc.value.field == "data.folder"

    def test_wrong_type_for_to(self):
        with pytest.raises(ParseError) as exc:
            parse_event(_record(data={"folder": "default", "to": 3}))
        assert exc.value.field == "data.to"

    def test_other_types_need_no_folder(self):
        ev = parse_event({"id": 1, "type": "Ping", "time": "2026-10-18T12:00:00Z"})
        assert not ev.is_state_change
        assert ev.folder is None

    def test_non_object_record(self):
        with pytest.raises(ParseError):
            parse_event(["not", "a", "dict"])

    def test_parse_error_is_fatal_probe_error(self):
        with pytest.raises(ProbeFatalError):
            parse_event({"time": "2026-10-18T12:00:00Z"})


class TestParseEvents:

    def test_batch(self):
        evs = parse_events([_record(id=1), _record(id=2)])
        assert [e.id for e in evs] == [1, 2]

    def test_null_payload_is_empty(self):
        assert parse_events(None) == []

    def test_object_payload_rejected(self):
        with pytest.raises(ParseError):
            parse_events({"events": []})
