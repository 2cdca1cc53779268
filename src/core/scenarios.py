# ============================================================================
# SyncBench -- Benchmark Scenarios (src/core/scenarios.py)
# ============================================================================
#
#   many_small_files   50,000 files, sizes up to ~32 KiB
#   large_file_1g      one 1 GiB file
#   ...
#   large_file_32g     one 32 GiB file
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from src.core.exceptions import ConfigError


@dataclass(frozen=True)
class Scenario:
    name: str
    file_count: int
    size_exponent: int

    @property
    def nominal_bytes(self) -> int:
        """Exact size for single-file scenarios, upper bound per file otherwise."""
        return 1 << self.size_exponent


SCENARIOS: Tuple[Scenario, ...] = (
    Scenario("many_small_files", 50000, 15),
    Scenario("large_file_1g", 1, 30),
    Scenario("large_file_2g", 1, 31),
    Scenario("large_file_4g", 1, 32),
    Scenario("large_file_8g", 1, 33),
    Scenario("large_file_16g", 1, 34),
    Scenario("large_file_32g", 1, 35),
)

_BY_NAME: Dict[str, Scenario] = {s.name: s for s in SCENARIOS}


def get_scenario(name: str) -> Scenario:
    try:
        return _BY_NAME[name]
    except KeyError:
        known = ", ".join(_BY_NAME)
        raise ConfigError(f"Unknown scenario '{name}'. Known scenarios: {known}")
