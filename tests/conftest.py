# ============================================================================
# conftest.py -- Shared Test Fixtures for the SyncBench Test Suite
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Pytest automatically loads this file before any test runs.
#   It provides:
#     1. sys.path setup so "from src.core.X import Y" works from any test
#     2. make_event() for building validated daemon events
#     3. FakeDaemonClient: scripted scan/events answers, no network
#     4. FakeDaemonProcess: stands in for a daemon; the receiver copies
#        the sender's tree on start, like a perfect sync would
#     5. bench_config fixture: a real Config rooted in tmp_path
#
# INTERNET ACCESS: NONE
# ============================================================================

import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pytest

# -- sys.path setup --
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.core.config import Config, PathsConfig, ProbeConfig  # noqa: E402
from src.core.events import parse_event  # noqa: E402
from src.core.process_controller import StoppedProcess  # noqa: E402
from src.core.resource_usage import RawUsage  # noqa: E402


# ============================================================================
# SECTION 0: EVENTS AND RESPONSES
# ============================================================================

def make_event(event_id, to_state, folder="default", when="2026-10-18T12:00:00Z",
               event_type="StateChanged", from_state=None):
    """Build an Event the same way the REST client does."""
    data = {"folder": folder, "to": to_state}
    if from_state is not None:
        data["from"] = from_state
    return parse_event({"id": event_id, "type": event_type, "time": when, "data": data})


@dataclass
class FakeResponse:
    """Just enough of HttpResponse for the readiness prober."""
    status_code: int = 200

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class FakeDaemonClient:
    """
    Scripted DaemonClient.

    scan_results / event_batches are consumed in order. An entry that is
    an Exception instance is raised instead of returned. When a script
    runs out, the last entry repeats (an empty list for events).
    """

    def __init__(self, scan_results=None, event_batches=None):
        self.scan_results = list(scan_results or [FakeResponse(200)])
        self.event_batches = list(event_batches or [])
        self.scan_calls = 0
        self.event_calls = 0

    def _next(self, script, default):
        if not script:
            item = default
        elif len(script) == 1:
            item = script[0]
        else:
            item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def scan(self, folder):
        self.scan_calls += 1
        return self._next(self.scan_results, FakeResponse(200))

    def events(self):
        self.event_calls += 1
        if not self.event_batches:
            return []
        item = self.event_batches.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


# ============================================================================
# SECTION 1: FAKE DAEMON PROCESSES
# ============================================================================

class FakeDaemonProcess:
    """
    Stands in for DaemonProcess in orchestrator tests.

    copy_from/copy_to: when set, start() copies the tree, which is what a
    successful sync pass leaves behind.
    """

    def __init__(self, instance, start_error=None, stop_error=None,
                 copy_from=None, copy_to=None, findings=None, calls=None):
        self.instance = instance
        self.start_error = start_error
        self.stop_error = stop_error
        self.copy_from = copy_from
        self.copy_to = copy_to
        self.findings = list(findings or [])
        self.calls = calls if calls is not None else []
        self._started = False
        self.stop_count = 0

    @property
    def name(self):
        return self.instance.name

    @property
    def started(self):
        return self._started

    def start(self):
        self.calls.append(("start", self.name))
        if self.start_error is not None:
            raise self.start_error
        self._started = True
        if self.copy_from and self.copy_to:
            shutil.copytree(self.copy_from, self.copy_to)
        return self

    def stop(self):
        self.calls.append(("stop", self.name))
        self.stop_count += 1
        if self.stop_error is not None:
            raise self.stop_error
        return StoppedProcess(
            instance=self.instance,
            returncode=0,
            usage=RawUsage(1.5, 0.5, 2048 * 1024, "bytes"),
            log_path=f"{self.name}.log",
            log_findings=self.findings,
        )


# ============================================================================
# SECTION 2: CONFIG FIXTURE
# ============================================================================

SEED_TEXT = b"Permission is hereby granted, free of charge, to any person.\n"


@pytest.fixture
def bench_config(tmp_path, monkeypatch):
    """A real Config with every path under tmp_path and no waiting."""
    for var in ("SYNCBENCH_WORK_DIR", "SYNCBENCH_DAEMON_BINARY",
                "SYNCBENCH_API_KEY", "SYNCBENCH_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    seed = tmp_path / "LICENSE"
    seed.write_bytes(SEED_TEXT)

    config = Config(
        paths=PathsConfig(work_dir=str(tmp_path), seed_file=str(seed)),
        probe=ProbeConfig(
            ready_attempts=3,
            ready_interval_seconds=0.0,
            poll_interval_seconds=0.0,
            completion_timeout_seconds=None,
        ),
    )
    config.sender.api_key = "abc123"
    config.receiver.api_key = "abc123"
    return config


def completed_batches(folder="default") -> List[list]:
    """Event batches for a clean syncing -> idle pass taking 10 seconds."""
    return [
        [make_event(1, "scanning", folder, "2026-10-18T12:00:00Z")],
        [make_event(2, "syncing", folder, "2026-10-18T12:00:05Z")],
        [make_event(3, "idle", folder, "2026-10-18T12:00:15Z")],
    ]
