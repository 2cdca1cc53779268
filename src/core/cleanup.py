# ============================================================================
# SyncBench -- Pre-run Cleanup (src/core/cleanup.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Removes the previous run's data and index artifacts so every run starts
#   from an empty receiver and a fresh index on both sides.
#
#   Patterns are glob expressions relative to the work directory, e.g.
#     remove_all(work_dir, ["s1", "s2", "h1/index*", "h2/index*"])
#
#   Missing paths are fine. Any other failure raises SetupError.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import glob
import os
import shutil
from pathlib import Path
from typing import Iterable, List

from src.core.exceptions import SetupError


def remove_all(base_dir, patterns: Iterable[str]) -> List[str]:
    """
    Delete every file or directory matching the given glob patterns.

    Returns the list of paths that were removed.
    """
    removed: List[str] = []
    base = Path(base_dir)
    for pattern in patterns:
        full = pattern if os.path.isabs(pattern) else str(base / pattern)
        for match in sorted(glob.glob(full)):
            try:
                if os.path.isdir(match) and not os.path.islink(match):
                    shutil.rmtree(match)
                else:
                    os.remove(match)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise SetupError(f"Cannot remove {match}: {e}", path=match)
            removed.append(match)
    return removed
