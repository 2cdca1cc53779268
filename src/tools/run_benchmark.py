# ============================================================================
# SyncBench -- Run a Benchmark Scenario (src/tools/run_benchmark.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Command-line wrapper around run_benchmark().
#
#     python -m src.tools.run_benchmark --list
#     python -m src.tools.run_benchmark --scenario many_small_files
#     python -m src.tools.run_benchmark --scenario large_file_1g \
#         --project-dir . --json-file results/large_1g.json
#
#   Exit codes:
#     0  run completed and verified
#     1  the run failed (daemon, polling, verification)
#     2  bad configuration or unknown scenario
#
# INTERNET ACCESS: localhost only
# ============================================================================

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

from src.core.benchmark import run_benchmark
from src.core.config import load_config, validate_config
from src.core.exceptions import ConfigError, SyncBenchError
from src.core.metrics import format_report
from src.core.scenarios import SCENARIOS, get_scenario


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one scenario, print the report."""
    import argparse
    p = argparse.ArgumentParser(
        description="SyncBench -- measure sync throughput between two daemons",
    )
    p.add_argument("--scenario", help="Scenario name (see --list)")
    p.add_argument("--list", action="store_true",
                   help="List the available scenarios and exit")
    p.add_argument("--project-dir", default=".",
                   help="Folder containing config/default_config.yaml (default: .)")
    p.add_argument("--config-file", default="default_config.yaml",
                   help="Config file name inside config/")
    p.add_argument("--json-file", default="",
                   help="Also write the result as JSON to this path")
    args = p.parse_args(argv)

    if args.list:
        for s in SCENARIOS:
            print(f"  {s.name:20s} files={s.file_count:<6d} size_exp={s.size_exponent}")
        return 0

    if not args.scenario:
        p.error("--scenario is required (or use --list)")

    try:
        scenario = get_scenario(args.scenario)
        config = load_config(args.project_dir, args.config_file)
        problems = validate_config(config)
        if problems:
            raise ConfigError("; ".join(problems))
    except ConfigError as e:
        print(f"[FAIL] {e.error_code}: {e}", file=sys.stderr)
        if e.fix_suggestion:
            print(f"       {e.fix_suggestion}", file=sys.stderr)
        return 2

    try:
        result = run_benchmark(scenario, config)
    except SyncBenchError as e:
        print(f"[FAIL] {e.error_code}: {e}", file=sys.stderr)
        for te in getattr(e, "teardown_errors", []):
            print(f"       teardown: {te}", file=sys.stderr)
        return 1

    for line in format_report(result):
        print(line)

    if args.json_file:
        out = Path(args.json_file)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        print(f"[OK] Result written to {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
