# ===========================================================================
# SyncBench -- TYPED EXCEPTIONS
# ===========================================================================
# FILE: src/core/exceptions.py
#
# WHAT THIS IS:
#   Custom error types for the benchmark harness. Each one names exactly
#   which phase failed (setup, process lifecycle, polling, verification)
#   and carries a fix suggestion plus a machine-readable error code.
#
# HOW IT'S USED:
#   Instead of:  raise Exception("daemon did not start")
#   We write:    raise ProcessStartError("...", instance="sender")
#
#   The orchestrator catches the specific type and decides what to do:
#     try:
#         detector = wait_for_completion(client, detector)
#     except ProbeFatalError:
#         stop_all(processes)      # teardown, then re-raise
#         raise
#
# HIERARCHY:
#   SyncBenchError
#     ConfigError
#     SetupError
#     ProcessStartError
#     ProcessStopError
#     TeardownError
#     ProbeTransientError
#     ProbeFatalError
#       ConnectionFailedError
#       CompletionTimeoutError
#       AuthRejectedError
#       UnexpectedStatusError
#       ParseError
#     VerificationMismatchError
# ===========================================================================

from __future__ import annotations


class SyncBenchError(Exception):
    """
    Base class for all SyncBench errors.

    Attributes:
        fix_suggestion (str | None): Human-readable fix instruction.
        error_code (str | None): Machine-readable code like "PROC-001"
            for structured logs.
    """

    def __init__(self, message, fix_suggestion=None, error_code=None):
        self.fix_suggestion = fix_suggestion
        self.error_code = error_code
        super().__init__(message)

    def to_dict(self):
        """Convert to dictionary for JSON logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": str(self),
            "fix_suggestion": self.fix_suggestion,
        }


# ---------------------------------------------------------------------------
# CONFIGURATION / SETUP ERRORS
# These happen before any daemon is started. Nothing needs cleaning up.
# ---------------------------------------------------------------------------

class ConfigError(SyncBenchError):
    """
    Configuration is invalid or a scenario name is unknown.

    WHEN YOU'LL SEE THIS:
      - validate_config() reported problems
      - --scenario names something not in the scenario table
    """
    def __init__(self, message=None):
        super().__init__(
            message or "Benchmark configuration is invalid.",
            fix_suggestion="Check config/default_config.yaml and the scenario name.",
            error_code="CONF-001",
        )


class SetupError(SyncBenchError):
    """
    Corpus generation or pre-run cleanup failed on the local filesystem.

    WHEN YOU'LL SEE THIS:
      - Seed file missing or empty
      - Disk full while writing the corpus
      - Permission denied removing a previous run's data directory
    """
    def __init__(self, message=None, path=None):
        self.path = path
        detail = f" Path: {path}" if path else ""
        super().__init__(
            message or f"Benchmark setup failed.{detail}",
            fix_suggestion=(
                "Check free disk space and permissions on the work directory, "
                "and that paths.seed_file points at a readable, non-empty file."
            ),
            error_code="SETUP-001",
        )


# ---------------------------------------------------------------------------
# PROCESS LIFECYCLE ERRORS (PROC-xxx)
# ---------------------------------------------------------------------------

class ProcessStartError(SyncBenchError):
    """
    A daemon process could not be launched.

    Raised only after any partially started process has been killed
    and reaped, so nothing is left running.
    """
    def __init__(self, message=None, instance=None):
        self.instance = instance
        super().__init__(
            message or f"Daemon '{instance}' failed to start.",
            fix_suggestion=(
                "Check daemon.command in the config (binary path, arguments) "
                "and the instance log file in the log directory."
            ),
            error_code="PROC-001",
        )


class ProcessStopError(SyncBenchError):
    """
    A daemon did not stop cleanly, or its log contained a failure marker
    (data race, panic, deadlock).
    """
    def __init__(self, message=None, instance=None, findings=None):
        self.instance = instance
        self.findings = list(findings or [])
        super().__init__(
            message or f"Daemon '{instance}' did not stop cleanly.",
            fix_suggestion="Inspect the instance log file for the reported lines.",
            error_code="PROC-002",
        )


class TeardownError(SyncBenchError):
    """
    One or more daemons failed to stop.

    Every instance was still given its own stop attempt. `errors` holds
    each per-instance failure; `stopped` holds the StoppedProcess results
    that were collected successfully, keyed by instance name.
    """
    def __init__(self, errors, stopped=None):
        self.errors = list(errors)
        self.stopped = dict(stopped or {})
        names = ", ".join(
            str(getattr(e, "instance", None) or type(e).__name__) for e in self.errors
        )
        super().__init__(
            f"Teardown failed for: {names}",
            fix_suggestion="Check for leftover daemon processes and their log files.",
            error_code="PROC-003",
        )


# ---------------------------------------------------------------------------
# POLLING ERRORS (NET-xxx / API-xxx)
# Raised by the daemon REST client during readiness and completion polling.
# ---------------------------------------------------------------------------

class ProbeTransientError(SyncBenchError):
    """
    Timeout or read failure talking to a daemon.

    Absorbed by the readiness and completion loops; never surfaces
    to the caller of run_benchmark().
    """
    def __init__(self, message=None, url=None):
        self.url = url
        super().__init__(
            message or f"Transient error polling {url or 'daemon'}.",
            fix_suggestion="None needed; the poll is retried.",
            error_code="NET-001",
        )


class ProbeFatalError(SyncBenchError):
    """
    Non-transient polling failure. Triggers teardown of both daemons.
    """
    def __init__(self, message=None, fix_suggestion=None, error_code=None):
        super().__init__(
            message or "Polling the daemon failed.",
            fix_suggestion=fix_suggestion or "Check the receiver's log file.",
            error_code=error_code or "NET-002",
        )


class ConnectionFailedError(ProbeFatalError):
    """The daemon's REST port refused the connection."""
    def __init__(self, message=None, url=None):
        self.url = url
        super().__init__(
            message or f"Cannot connect to daemon at {url}.",
            fix_suggestion=(
                "The daemon may have crashed or is listening on another port. "
                "Compare sender.port / receiver.port with the daemon's GUI address."
            ),
            error_code="NET-003",
        )


class CompletionTimeoutError(ProbeFatalError):
    """The completion wait exceeded probe.completion_timeout_seconds."""
    def __init__(self, message=None, timeout_seconds=None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message or f"Synchronization did not complete within {timeout_seconds}s.",
            fix_suggestion=(
                "Raise probe.completion_timeout_seconds for large scenarios, "
                "or set it to null to wait without a budget."
            ),
            error_code="NET-004",
        )


class AuthRejectedError(ProbeFatalError):
    """401/403 from the daemon: the API key does not match."""
    def __init__(self, message=None, status_code=None):
        self.status_code = status_code
        super().__init__(
            message or f"Daemon rejected the API key (HTTP {status_code}).",
            fix_suggestion="Make sure the daemon is launched with the same api_key the harness sends.",
            error_code="API-001",
        )


class UnexpectedStatusError(ProbeFatalError):
    """Any other non-2xx status from the daemon."""
    def __init__(self, message=None, status_code=None):
        self.status_code = status_code
        super().__init__(
            message or f"Daemon returned HTTP {status_code}.",
            fix_suggestion="Check the daemon log for the failing request.",
            error_code="API-002",
        )


class ParseError(ProbeFatalError):
    """An event payload is missing a required field or has the wrong type."""
    def __init__(self, message=None, field=None):
        self.field = field
        super().__init__(
            message or f"Malformed event: missing or invalid '{field}'.",
            fix_suggestion="The daemon's event API format may have changed.",
            error_code="API-003",
        )


# ---------------------------------------------------------------------------
# VERIFICATION ERRORS
# ---------------------------------------------------------------------------

class VerificationMismatchError(SyncBenchError):
    """
    The receiver's tree differs from the sender's.

    kind is one of: "missing", "extra", "size", "mode".
    """
    def __init__(self, path, kind, expected=None, actual=None):
        self.path = path
        self.kind = kind
        self.expected = expected
        self.actual = actual
        if kind == "missing":
            msg = f"Missing in receiver: {path}"
        elif kind == "extra":
            msg = f"Unexpected extra path in receiver: {path}"
        else:
            msg = f"Mismatched {kind} for {path}: {actual} (actual) != {expected} (expected)"
        super().__init__(
            msg,
            fix_suggestion="The sync pass did not reproduce the sender's tree; see the receiver log.",
            error_code="VERIFY-001",
        )


def exception_from_http_status(status_code, response_body="", url=None):
    """
    Map an HTTP error status from the daemon to the matching exception.

    Returns:
        A ProbeFatalError subclass instance, ready to raise.
    """
    body_preview = (response_body or "")[:200]
    message = f"HTTP {status_code}"
    if url:
        message += f" from {url}"
    if body_preview:
        message += f": {body_preview}"
    if status_code in (401, 403):
        return AuthRejectedError(message, status_code=status_code)
    return UnexpectedStatusError(message, status_code=status_code)
