# ============================================================================
# SyncBench -- Metrics Reporter (src/core/metrics.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Turns the raw numbers from one run into the benchmark result:
#     - wall time between the receiver's syncing and idle events
#     - throughput in MiB/s (total corpus bytes / wall time)
#     - CPU user/system seconds and peak RSS for each daemon
#
#   Peak RSS arrives in whatever unit the OS reported (bytes on macOS and
#   Windows, KiB on Linux). normalize_usage() converts using the unit the
#   probe recorded, never by guessing from the current OS.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.resource_usage import RSS_BYTES, RSS_KIB, RawUsage

MIB = 1024 * 1024


@dataclass(frozen=True)
class ResourceUsage:
    """CPU seconds and peak memory of one daemon, memory in KiB."""
    user_time: float
    system_time: float
    peak_memory_kib: int


def normalize_usage(raw: RawUsage) -> ResourceUsage:
    if raw.rss_unit == RSS_BYTES:
        peak = raw.max_rss // 1024
    elif raw.rss_unit == RSS_KIB:
        peak = raw.max_rss
    else:
        raise ValueError(f"Unknown RSS unit: {raw.rss_unit!r}")
    return ResourceUsage(
        user_time=float(raw.user_time),
        system_time=float(raw.system_time),
        peak_memory_kib=int(peak),
    )


def throughput_mib_s(total_bytes: int, duration_seconds: float) -> float:
    """MiB per second. A zero or negative duration gives 0.0."""
    if duration_seconds <= 0:
        return 0.0
    return total_bytes / duration_seconds / MIB


@dataclass
class BenchmarkResult:
    """Everything measured in one run. Built only after verification passed."""
    scenario: str
    total_bytes: int
    file_count: int
    t0: datetime
    t1: datetime
    duration_seconds: float
    throughput_mib_s: float
    usage: Dict[str, ResourceUsage] = field(default_factory=dict)
    sender_ready: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "total_bytes": self.total_bytes,
            "file_count": self.file_count,
            "t0": self.t0.isoformat(),
            "t1": self.t1.isoformat(),
            "duration_seconds": self.duration_seconds,
            "throughput_mib_s": self.throughput_mib_s,
            "usage": {name: asdict(u) for name, u in self.usage.items()},
            "sender_ready": self.sender_ready,
        }


def build_result(
    scenario: str,
    total_bytes: int,
    file_count: int,
    t0: datetime,
    t1: datetime,
    raw_usage: Optional[Dict[str, RawUsage]] = None,
    sender_ready: bool = True,
) -> BenchmarkResult:
    duration = (t1 - t0).total_seconds()
    return BenchmarkResult(
        scenario=scenario,
        total_bytes=total_bytes,
        file_count=file_count,
        t0=t0,
        t1=t1,
        duration_seconds=duration,
        throughput_mib_s=throughput_mib_s(total_bytes, duration),
        usage={name: normalize_usage(raw) for name, raw in (raw_usage or {}).items()},
        sender_ready=sender_ready,
    )


def _fmt_size(b) -> str:
    """Format bytes as human-readable string (KiB, MiB, GiB)."""
    b = float(b)
    if b < 1024:
        return f"{b:.0f} B"
    elif b < 1024**2:
        return f"{b / 1024:.1f} KiB"
    elif b < 1024**3:
        return f"{b / 1024**2:.1f} MiB"
    return f"{b / 1024**3:.2f} GiB"


def format_report(result: BenchmarkResult) -> List[str]:
    """Report lines, one per measurement."""
    lines = [
        f"Result: Wall time: {result.duration_seconds:.3f}s / "
        f"{_fmt_size(result.total_bytes)} in {result.file_count:,} files",
        f"Result: {result.throughput_mib_s:.1f} MiB/s synced",
    ]
    for name in sorted(result.usage):
        u = result.usage[name]
        lines.append(
            f"{name}: Utime: {u.user_time:.2f}s  Stime: {u.system_time:.2f}s  "
            f"MaxRSS: {u.peak_memory_kib} KiB"
        )
    if not result.sender_ready:
        lines.append("Note: sender never confirmed readiness")
    return lines
