# ============================================================================
# SyncBench -- Child Resource Usage (src/core/resource_usage.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Collects CPU time and peak memory for a daemon process as it is
#   stopped. How that works depends on the OS, so each approach is a
#   small "probe" class with the same two calls:
#
#     probe.before_stop(popen)        called just before terminate()
#     probe.wait(popen, timeout)      reaps the child, returns RawUsage
#                                     (or None if it is still running)
#
#   Wait4Probe    POSIX. Reaps with os.wait4(), which hands back the
#                 child's rusage. ru_maxrss is bytes on macOS, KiB on Linux.
#   PsutilProbe   Everything else. Samples the live process with psutil
#                 right before termination.
#
#   The raw numbers keep their native unit (rss_unit); converting to KiB is
#   the metrics module's job.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import os
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Optional

import psutil

from src.monitoring.logger import get_logger

logger = get_logger(__name__)

RSS_BYTES = "bytes"
RSS_KIB = "KiB"

_REAP_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class RawUsage:
    """Resource usage as the OS reported it."""
    user_time: float
    system_time: float
    max_rss: int
    rss_unit: str


class UsageProbe:
    """Base probe: plain Popen.wait(), no usage collected."""

    def before_stop(self, popen: subprocess.Popen) -> None:
        pass

    def wait(self, popen: subprocess.Popen, timeout: Optional[float]) -> Optional[RawUsage]:
        try:
            popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None
        return RawUsage(0.0, 0.0, 0, RSS_KIB)


class Wait4Probe(UsageProbe):
    """Reap through os.wait4() and return the child's rusage."""

    def __init__(self, platform: str = sys.platform):
        self.rss_unit = RSS_BYTES if platform == "darwin" else RSS_KIB

    def wait(self, popen: subprocess.Popen, timeout: Optional[float]) -> Optional[RawUsage]:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                pid, status, rusage = os.wait4(popen.pid, os.WNOHANG)
            except ChildProcessError:
                # Already reaped elsewhere; rusage is gone
                logger.warning("wait4_no_child_usage_unavailable", pid=popen.pid)
                if popen.returncode is None:
                    popen.returncode = 0
                return RawUsage(0.0, 0.0, 0, self.rss_unit)

            if pid == popen.pid:
                popen.returncode = os.waitstatus_to_exitcode(status)
                return RawUsage(
                    user_time=rusage.ru_utime,
                    system_time=rusage.ru_stime,
                    max_rss=int(rusage.ru_maxrss),
                    rss_unit=self.rss_unit,
                )

            if deadline is not None and time.monotonic() >= deadline:
                return None
            time.sleep(_REAP_POLL_SECONDS)


class PsutilProbe(UsageProbe):
    """Sample CPU times and peak working set with psutil before stopping."""

    def __init__(self):
        self._sample: Optional[RawUsage] = None

    def before_stop(self, popen: subprocess.Popen) -> None:
        try:
            proc = psutil.Process(popen.pid)
            with proc.oneshot():
                times = proc.cpu_times()
                mem = proc.memory_info()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.warning("usage_sample_failed", pid=popen.pid, error=str(e))
            return
        peak = getattr(mem, "peak_wset", None) or mem.rss
        self._sample = RawUsage(
            user_time=times.user,
            system_time=times.system,
            max_rss=int(peak),
            rss_unit=RSS_BYTES,
        )

    def wait(self, popen: subprocess.Popen, timeout: Optional[float]) -> Optional[RawUsage]:
        try:
            popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None
        return self._sample or RawUsage(0.0, 0.0, 0, RSS_BYTES)


def select_probe(platform: str = sys.platform) -> UsageProbe:
    """Pick the probe for this OS. A new probe is needed per process."""
    if platform.startswith("win") or not hasattr(os, "wait4"):
        return PsutilProbe()
    return Wait4Probe(platform)
