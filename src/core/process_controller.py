# ============================================================================
# SyncBench -- Process Controller (src/core/process_controller.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Launches and stops the two daemon instances (sender and receiver).
#
#   Each instance gets a DaemonProcess handle. The handle is the only
#   thing that knows the OS process; nothing is kept in a module-level
#   list. The orchestrator holds both handles in an InstancePair.
#
# START:
#   daemon.command and daemon.env from the config are rendered with the
#   instance's {home}, {port}, {api_key} and {name}, then spawned with
#   stdout/stderr going to <log_dir>/<name>.log. If the process exits
#   within start_grace_seconds it is treated as a failed start.
#
# STOP:
#   terminate -> wait stop_timeout_seconds -> kill -> wait again.
#   The usage probe reaps the child and reports CPU time and peak RSS.
#   Afterwards the instance log is scanned for failure markers
#   (data race reports, panics, deadlocks).
#
# TEARDOWN:
#   stop_all() stops every handle independently and collects every error.
#   One instance failing to stop never prevents the other from stopping.
#
# INTERNET ACCESS: NONE (spawns local processes only)
# ============================================================================

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from src.core.exceptions import ProcessStartError, ProcessStopError, TeardownError
from src.core.resource_usage import RawUsage, UsageProbe, select_probe
from src.monitoring.logger import get_logger

logger = get_logger(__name__)

# Findings beyond this many lines are dropped from the report
MAX_LOG_FINDINGS = 20


@dataclass(frozen=True)
class ProcessInstance:
    """Identity of one daemon: name, home directory, port and API key."""
    name: str
    home_dir: str
    port: int
    api_key: str = ""

    def template_values(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "home": str(self.home_dir),
            "port": str(self.port),
            "api_key": self.api_key,
        }


@dataclass
class StoppedProcess:
    """What is left of a daemon after stop()."""
    instance: ProcessInstance
    returncode: Optional[int]
    usage: RawUsage
    log_path: str
    log_findings: List[str] = field(default_factory=list)
    killed: bool = False


def render_template(value: str, values: Dict[str, str]) -> str:
    """Replace {home}, {port}, {api_key} and {name}. Other braces are left alone."""
    for key, replacement in values.items():
        value = value.replace("{" + key + "}", replacement)
    return value


def scan_log(log_path, markers: Iterable[str]) -> List[str]:
    """Return the log lines that contain any of the markers."""
    markers = [m for m in markers if m]
    if not markers or not os.path.exists(log_path):
        return []

    findings: List[str] = []
    with open(log_path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            if any(m in line for m in markers):
                findings.append(line.rstrip("\r\n"))
                if len(findings) >= MAX_LOG_FINDINGS:
                    break
    return findings


class DaemonProcess:
    """
    Handle for one daemon instance.

    Usage:
        proc = DaemonProcess(instance, config.daemon, log_dir)
        proc.start()
        ...
        stopped = proc.stop()
        print(stopped.usage.user_time)
    """

    def __init__(
        self,
        instance: ProcessInstance,
        daemon_config,
        log_dir,
        probe: Optional[UsageProbe] = None,
        cwd: Optional[str] = None,
    ):
        self.instance = instance
        self.daemon_config = daemon_config
        self.log_path = str(Path(log_dir) / f"{instance.name}.log")
        self.probe = probe or select_probe()
        self.cwd = cwd
        self._popen: Optional[subprocess.Popen] = None
        self._log_file = None
        self._stopped: Optional[StoppedProcess] = None

    @property
    def name(self) -> str:
        return self.instance.name

    @property
    def started(self) -> bool:
        return self._popen is not None

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid if self._popen is not None else None

    def command(self) -> List[str]:
        values = self.instance.template_values()
        return [render_template(str(arg), values) for arg in self.daemon_config.command]

    def environment(self) -> Dict[str, str]:
        values = self.instance.template_values()
        env = dict(os.environ)
        for key, value in (self.daemon_config.env or {}).items():
            env[key] = render_template(str(value), values)
        return env

    def start(self) -> "DaemonProcess":
        """Spawn the daemon. Raises ProcessStartError, leaving nothing running."""
        if self._popen is not None:
            return self

        argv = self.command()
        if not argv:
            raise ProcessStartError("daemon.command is empty", instance=self.name)

        try:
            Path(self.log_path).parent.mkdir(parents=True, exist_ok=True)
            self._log_file = open(self.log_path, "wb")
        except OSError as e:
            raise ProcessStartError(
                f"Cannot open log file {self.log_path} for '{self.name}': {e}",
                instance=self.name,
            )

        try:
            self._popen = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=self._log_file,
                stderr=subprocess.STDOUT,
                env=self.environment(),
                cwd=self.cwd,
            )
        except OSError as e:
            self._close_log()
            raise ProcessStartError(
                f"Cannot launch {argv[0]} for '{self.name}': {e}",
                instance=self.name,
            )

        logger.info(
            "daemon_spawned", instance=self.name, pid=self._popen.pid,
            port=self.instance.port, log=self.log_path,
        )

        try:
            time.sleep(max(0.0, float(self.daemon_config.start_grace_seconds)))
        except BaseException:
            self._abort()
            raise

        if self._popen.poll() is not None:
            code = self._popen.returncode
            self._abort()
            raise ProcessStartError(
                f"Daemon '{self.name}' exited immediately with code {code}; "
                f"see {self.log_path}",
                instance=self.name,
            )
        return self

    def _abort(self) -> None:
        """Kill and reap a process that failed to start."""
        popen = self._popen
        if popen is not None and popen.returncode is None:
            popen.kill()
            try:
                popen.wait(timeout=self.daemon_config.stop_timeout_seconds)
            except subprocess.TimeoutExpired:
                logger.error("daemon_not_reaped", instance=self.name, pid=popen.pid)
        self._close_log()
        self._popen = None

    def _close_log(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    def stop(self) -> StoppedProcess:
        """
        Terminate, reap and collect usage. Calling stop() again returns
        the same StoppedProcess.

        Raises ProcessStopError if the process was never started or could
        not be reaped even after kill.
        """
        if self._stopped is not None:
            return self._stopped

        popen = self._popen
        if popen is None:
            raise ProcessStopError(
                f"Daemon '{self.name}' was never started", instance=self.name,
            )

        timeout = float(self.daemon_config.stop_timeout_seconds)
        killed = False

        try:
            self.probe.before_stop(popen)
            popen.terminate()
            usage = self.probe.wait(popen, timeout)

            if usage is None:
                logger.warning(
                    "daemon_kill", instance=self.name, pid=popen.pid, waited_s=timeout,
                )
                killed = True
                popen.kill()
                usage = self.probe.wait(popen, timeout)
                if usage is None:
                    raise ProcessStopError(
                        f"Daemon '{self.name}' (pid {popen.pid}) survived kill",
                        instance=self.name,
                    )
        finally:
            self._close_log()

        findings = scan_log(self.log_path, self.daemon_config.failure_markers)

        self._stopped = StoppedProcess(
            instance=self.instance,
            returncode=popen.returncode,
            usage=usage,
            log_path=self.log_path,
            log_findings=findings,
            killed=killed,
        )
        logger.info(
            "daemon_stopped", instance=self.name, returncode=popen.returncode,
            killed=killed, findings=len(findings),
        )
        return self._stopped


def stop_all(processes: Iterable[DaemonProcess]) -> Dict[str, StoppedProcess]:
    """
    Stop every started handle. Never stops early.

    Returns StoppedProcess results keyed by instance name. If any stop
    failed, or any log contained a failure marker, raises TeardownError
    carrying all errors and all results collected.
    """
    stopped: Dict[str, StoppedProcess] = {}
    errors: List[Exception] = []

    for proc in processes:
        if proc is None or not proc.started:
            continue
        try:
            result = proc.stop()
        except Exception as e:
            logger.error("daemon_stop_failed", instance=proc.name, error=str(e))
            errors.append(e)
            continue

        stopped[proc.name] = result
        if result.log_findings:
            errors.append(ProcessStopError(
                f"Daemon '{proc.name}' log contains failure markers: "
                + "; ".join(result.log_findings[:3]),
                instance=proc.name,
                findings=result.log_findings,
            ))

    if errors:
        raise TeardownError(errors, stopped=stopped)
    return stopped


@dataclass
class InstancePair:
    """The sender and receiver handles for one run."""
    sender: Optional[DaemonProcess] = None
    receiver: Optional[DaemonProcess] = None

    def handles(self) -> List[DaemonProcess]:
        return [p for p in (self.sender, self.receiver) if p is not None]

    def stop_all(self) -> Dict[str, StoppedProcess]:
        return stop_all(self.handles())
