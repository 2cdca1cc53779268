# ============================================================================
# SyncBench -- Completion Detector (src/core/completion.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Watches the receiver's event stream and decides when the sync pass
#   is over.
#
#   STATE MACHINE (one folder):
#
#     IDLE  --StateChanged to=syncing-->  AWAITING_IDLE   (t0 = event time)
#     AWAITING_IDLE  --StateChanged to=idle-->  DONE      (t1 = event time)
#
#   Events for other folders and other event types are ignored. An idle
#   event that arrives before any syncing event does not count; t1 is
#   only accepted once t0 exists.
#
#   The measured duration is t1 - t0 using the daemon's own timestamps,
#   so polling latency does not leak into the result.
#
# INTERNET ACCESS: localhost only
# ============================================================================

from __future__ import annotations

import enum
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from src.core.events import Event
from src.core.exceptions import (
    CompletionTimeoutError,
    ConnectionFailedError,
    ProbeFatalError,
    ProbeTransientError,
    SyncBenchError,
)
from src.monitoring.logger import get_logger

logger = get_logger(__name__)

STATE_SYNCING = "syncing"
STATE_IDLE = "idle"


class CompletionState(enum.Enum):
    IDLE = "idle"
    AWAITING_IDLE = "awaiting_idle"
    DONE = "done"


class CompletionDetector:
    """
    Feed it event batches; it reports True once the folder went
    syncing -> idle.
    """

    def __init__(self, folder: str):
        self.folder = folder
        self.state = CompletionState.IDLE
        self.t0: Optional[datetime] = None
        self.t1: Optional[datetime] = None

    @property
    def done(self) -> bool:
        return self.state is CompletionState.DONE

    @property
    def elapsed(self) -> Optional[float]:
        """Seconds between t0 and t1, or None until DONE."""
        if self.t0 is None or self.t1 is None:
            return None
        return (self.t1 - self.t0).total_seconds()

    def feed(self, events: Iterable[Event]) -> bool:
        for event in events:
            if self.done:
                break
            if not event.is_state_change or event.folder != self.folder:
                continue

            if event.to_state == STATE_SYNCING and self.t0 is None:
                self.t0 = event.time
                self.state = CompletionState.AWAITING_IDLE
                logger.info("sync_started", folder=self.folder, t0=event.time.isoformat())
            elif event.to_state == STATE_IDLE and self.t0 is not None:
                self.t1 = event.time
                self.state = CompletionState.DONE
                logger.info(
                    "sync_finished", folder=self.folder,
                    t1=event.time.isoformat(), elapsed_s=self.elapsed,
                )
        return self.done


def wait_for_completion(
    client,
    detector: CompletionDetector,
    poll_interval: float = 0.25,
    timeout: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> CompletionDetector:
    """
    Poll client.events() into the detector until DONE.

    Timeouts, read errors and refused connections are retried until
    the timeout budget runs out. Anything else raises
    ProbeFatalError. With timeout set, CompletionTimeoutError is raised
    once that many seconds have passed without completion.
    """
    started = clock()
    polls = 0

    while True:
        try:
            batch = client.events()
        except (ProbeTransientError, ConnectionFailedError) as e:
            # The receiver opens its REST port some time after spawn
            logger.debug("events_transient", error=str(e))
        except ProbeFatalError:
            raise
        except SyncBenchError as e:
            raise ProbeFatalError(f"Event polling failed: {e}")
        else:
            polls += 1
            if detector.feed(batch):
                logger.debug("events_polls", polls=polls)
                return detector

        if timeout is not None and clock() - started > timeout:
            raise CompletionTimeoutError(
                f"Folder '{detector.folder}' did not finish syncing within "
                f"{timeout:.0f}s (state {detector.state.value})",
                timeout_seconds=timeout,
            )
        sleep(poll_interval)
