# ============================================================================
# test_resource_usage.py -- Tests for the per-OS usage probes
# ============================================================================
#
# RUN:
#   python -m pytest tests/test_resource_usage.py -v
#
# INTERNET ACCESS: NONE
# ============================================================================

import os
import subprocess
import sys
from unittest.mock import patch

import pytest

from src.core.resource_usage import (
    RSS_BYTES,
    RSS_KIB,
    PsutilProbe,
    Wait4Probe,
    select_probe,
)

needs_wait4 = pytest.mark.skipif(not hasattr(os, "wait4"), reason="os.wait4 unavailable")

BUSY = "x = [0] * 2000000; sum(range(200000))"
SLEEPER = "import time; time.sleep(60)"


def _spawn(code):
    return subprocess.Popen([sys.executable, "-c", code])


class TestSelectProbe:

    def test_windows_uses_psutil(self):
        assert isinstance(select_probe("win32"), PsutilProbe)

    @needs_wait4
    def test_linux_uses_wait4_in_kib(self):
        probe = select_probe("linux")
        assert isinstance(probe, Wait4Probe)
        assert probe.rss_unit == RSS_KIB

    def test_darwin_reports_bytes(self):
        assert Wait4Probe("darwin").rss_unit == RSS_BYTES


@needs_wait4
class TestWait4Probe:

    def test_reaps_and_reports_usage(self):
        popen = _spawn(BUSY)
        usage = Wait4Probe().wait(popen, timeout=30)
        assert usage is not None
        assert usage.max_rss > 0
        assert usage.user_time >= 0.0
        assert popen.returncode == 0

    def test_timeout_returns_none(self):
        popen = _spawn(SLEEPER)
        probe = Wait4Probe()
        try:
            assert probe.wait(popen, timeout=0.1) is None
            assert popen.returncode is None
        finally:
            popen.kill()
            probe.wait(popen, timeout=10)
        assert popen.returncode == -9

    def test_already_reaped_child_reports_zero_usage(self):
        popen = _spawn("pass")
        popen.wait(timeout=30)
        with patch("src.core.resource_usage.logger") as log:
            usage = Wait4Probe().wait(popen, timeout=5)
        assert usage is not None
        assert (usage.user_time, usage.system_time, usage.max_rss) == (0.0, 0.0, 0)
        assert popen.returncode == 0
        log.warning.assert_called_once_with(
            "wait4_no_child_usage_unavailable", pid=popen.pid,
        )


class TestPsutilProbe:

    def test_samples_before_stop(self):
        popen = _spawn(SLEEPER)
        probe = PsutilProbe()
        probe.before_stop(popen)
        popen.terminate()
        usage = probe.wait(popen, timeout=10)
        assert usage is not None
        assert usage.rss_unit == RSS_BYTES
        assert usage.max_rss > 0
