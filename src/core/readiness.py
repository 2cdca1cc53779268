# ============================================================================
# SyncBench -- Readiness Prober (src/core/readiness.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   After the sender starts, it needs time to open its REST API and index
#   the corpus. We poke it with a folder scan until it answers 2xx.
#
#   Best-effort: if every attempt fails we log a warning and return False.
#   The orchestrator carries on either way; a sender that really is broken
#   shows up as a completion timeout later.
#
# INTERNET ACCESS: localhost only
# ============================================================================

from __future__ import annotations

import time
from typing import Callable

from src.core.exceptions import ProbeFatalError, ProbeTransientError
from src.monitoring.logger import get_logger

logger = get_logger(__name__)


def wait_until_ready(
    client,
    folder: str,
    attempts: int = 20,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    POST a scan for folder until the daemon answers 2xx.

    Returns True on success, False after `attempts` failures.
    """
    last_problem = ""
    for attempt in range(1, attempts + 1):
        try:
            response = client.scan(folder)
        except (ProbeTransientError, ProbeFatalError) as e:
            last_problem = f"{type(e).__name__}: {e}"
        else:
            if response.is_success:
                logger.info("daemon_ready", folder=folder, attempt=attempt)
                return True
            last_problem = f"HTTP {response.status_code}"

        logger.debug(
            "daemon_not_ready", folder=folder, attempt=attempt, problem=last_problem,
        )
        if attempt < attempts:
            sleep(interval)

    logger.warning(
        "daemon_ready_exhausted", folder=folder, attempts=attempts,
        last_problem=last_problem,
    )
    return False
