# ============================================================================
# SyncBench -- Configuration (src/core/config.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Single source of truth for every harness setting: where the sender and
#   receiver trees live, how to launch a daemon, which ports and API keys
#   each instance uses, and how aggressively to poll.
#
# HOW IT WORKS:
#   1. Dataclasses define every setting with a default
#   2. config/default_config.yaml overrides those defaults
#   3. Environment variables override YAML (machine-specific values)
#
#   Priority: env vars > YAML file > hardcoded defaults
#
# USAGE:
#   from src.core.config import load_config
#   config = load_config(".")
#   print(config.sender.port)          # 8081
#   print(config.probe.folder)         # "default"
#
# TEMPLATES:
#   daemon.command and daemon.env values may contain {home}, {port},
#   {api_key} and {name}; they are filled in per instance at launch.
# ============================================================================

from __future__ import annotations

import os
import sys
import yaml
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


# -------------------------------------------------------------------
# Sub-configs: each one maps to a section in the YAML file
# -------------------------------------------------------------------

@dataclass
class PathsConfig:
    """
    Filesystem layout for one benchmark run.

    Relative paths are resolved against work_dir. SYNCBENCH_WORK_DIR
    overrides work_dir.
    """
    work_dir: str = "."
    sender_data: str = "s1"        # Corpus is generated here
    receiver_data: str = "s2"      # Receiver syncs into here
    sender_home: str = "h1"        # Sender config/index directory
    receiver_home: str = "h2"      # Receiver config/index directory
    seed_file: str = "../LICENSE"  # Bytes the corpus is built from
    log_dir: str = "logs"          # Harness + daemon log files
    index_glob: str = "index*"     # Index artifacts removed before each run

    def __post_init__(self) -> None:
        env_dir = os.getenv("SYNCBENCH_WORK_DIR")
        if env_dir:
            self.work_dir = env_dir
        self.work_dir = os.path.normpath(os.path.expandvars(self.work_dir))

    def resolve(self, name: str) -> Path:
        """Absolute path for one of the fields above."""
        value = getattr(self, name)
        p = Path(os.path.expandvars(value))
        if not p.is_absolute():
            p = Path(self.work_dir) / p
        return p


@dataclass
class DaemonConfig:
    """
    How to launch one daemon instance.

    command is an argv list; env entries are added to the inherited
    environment. Both are rendered per instance.
    """
    command: List[str] = field(default_factory=lambda: [
        "syncthing", "-home", "{home}", "-no-browser",
    ])
    env: Dict[str, str] = field(default_factory=lambda: {
        "STNORESTART": "1",
        "STGUIADDRESS": "127.0.0.1:{port}",
        "STGUIAPIKEY": "{api_key}",
    })
    stop_timeout_seconds: float = 10.0
    start_grace_seconds: float = 0.2   # Exit within this window = start failure

    # Lines in the daemon log that mark the run as broken
    failure_markers: List[str] = field(default_factory=lambda: [
        "WARNING: DATA RACE",
        "panic: deadlock detected",
        "fatal error: all goroutines are asleep - deadlock!",
        "panic:",
    ])

    def __post_init__(self) -> None:
        env_binary = os.getenv("SYNCBENCH_DAEMON_BINARY")
        if env_binary and self.command:
            self.command = [env_binary.strip()] + list(self.command[1:])


@dataclass
class InstanceConfig:
    """Port and credential for one instance (sender or receiver)."""
    port: int = 8081
    api_key: str = ""
    host: str = "127.0.0.1"

    def __post_init__(self) -> None:
        env_key = os.getenv("SYNCBENCH_API_KEY")
        if env_key:
            self.api_key = env_key.strip()

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass
class HttpConfig:
    """REST client settings used for scan and event calls."""
    timeout_seconds: float = 30.0
    user_agent: str = "SyncBench/1.0"
    api_key_header: str = "X-API-Key"


@dataclass
class ProbeConfig:
    """
    Readiness and completion polling.

    completion_timeout_seconds: None means wait forever.
    """
    folder: str = "default"
    ready_attempts: int = 20
    ready_interval_seconds: float = 1.0
    poll_interval_seconds: float = 0.25
    completion_timeout_seconds: Optional[float] = 4 * 3600.0


@dataclass
class VerifyConfig:
    """Post-run directory comparison."""
    ignore_names: List[str] = field(default_factory=lambda: [
        ".stfolder", ".stversions",
    ])


@dataclass
class LoggingConfig:
    """Console level for the structured logger."""
    level: str = "INFO"

    def __post_init__(self) -> None:
        env_level = os.getenv("SYNCBENCH_LOG_LEVEL")
        if env_level:
            self.level = env_level.strip().upper()


# -------------------------------------------------------------------
# Master Config
# -------------------------------------------------------------------

@dataclass
class Config:
    """
    Master configuration object for the harness.

    Example:
        config = load_config(".")
        print(config.paths.resolve("sender_data"))
        print(config.receiver.base_url)       # "http://127.0.0.1:8082"
    """
    paths: PathsConfig = field(default_factory=PathsConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    sender: InstanceConfig = field(default_factory=lambda: InstanceConfig(port=8081))
    receiver: InstanceConfig = field(default_factory=lambda: InstanceConfig(port=8082))
    http: HttpConfig = field(default_factory=HttpConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    verify: VerifyConfig = field(default_factory=VerifyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# -------------------------------------------------------------------
# Helper: YAML dict -> dataclass
# -------------------------------------------------------------------

def _dict_to_dataclass(cls, data: dict, defaults: Optional[dict] = None):
    """
    Build a dataclass from a dictionary, ignoring unknown keys.

    Unknown keys are reported on stderr with the closest field name
    when one contains the other ("timeout" vs "timeout_seconds").
    """
    known_fields = {f.name for f in dataclasses.fields(cls)}

    filtered = dict(defaults or {})
    for k, v in (data or {}).items():
        if k in known_fields:
            filtered[k] = v
        else:
            suggestion = ""
            for field_name in known_fields:
                if k in field_name or field_name in k:
                    suggestion = " Did you mean '" + field_name + "'?"
                    break
            print(
                "  [WARN] config/" + cls.__name__ + ": YAML key '"
                + k + "' is not a recognized setting"
                + " -- IGNORED (using default)." + suggestion,
                file=sys.stderr,
            )

    return cls(**filtered)


# -------------------------------------------------------------------
# Main entry point: load_config()
# -------------------------------------------------------------------

def load_config(
    project_dir: str = ".",
    config_filename: str = "default_config.yaml",
) -> Config:
    """
    Load configuration from YAML file, with defaults and env var overrides.

    Parameters
    ----------
    project_dir : str
        Folder containing the config/ subfolder.

    config_filename : str
        Name of the YAML config file inside config/.

    Returns
    -------
    Config
        Fully resolved configuration object.
    """
    config_path = Path(project_dir) / "config" / config_filename

    yaml_data: dict = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                yaml_data = raw

    return Config(
        paths=_dict_to_dataclass(PathsConfig, yaml_data.get("paths", {})),
        daemon=_dict_to_dataclass(DaemonConfig, yaml_data.get("daemon", {})),
        sender=_dict_to_dataclass(
            InstanceConfig, yaml_data.get("sender", {}), {"port": 8081}),
        receiver=_dict_to_dataclass(
            InstanceConfig, yaml_data.get("receiver", {}), {"port": 8082}),
        http=_dict_to_dataclass(HttpConfig, yaml_data.get("http", {})),
        probe=_dict_to_dataclass(ProbeConfig, yaml_data.get("probe", {})),
        verify=_dict_to_dataclass(VerifyConfig, yaml_data.get("verify", {})),
        logging=_dict_to_dataclass(LoggingConfig, yaml_data.get("logging", {})),
    )


def validate_config(config: Config) -> List[str]:
    """
    Check a Config object for problems. Returns a list of error messages.
    Empty list = everything is valid.
    """
    errors: List[str] = []

    if not config.daemon.command:
        errors.append("daemon.command is empty. Set the daemon binary and arguments.")

    if config.sender.port == config.receiver.port:
        errors.append(
            "sender.port and receiver.port are both "
            + str(config.sender.port) + ". Each instance needs its own port."
        )

    for name in ("sender", "receiver"):
        port = getattr(config, name).port
        if not 0 < int(port) < 65536:
            errors.append(name + ".port out of range: " + str(port))

    if config.paths.sender_home == config.paths.receiver_home:
        errors.append("paths.sender_home and paths.receiver_home must differ.")

    if config.paths.sender_data == config.paths.receiver_data:
        errors.append("paths.sender_data and paths.receiver_data must differ.")

    if config.probe.ready_attempts < 1:
        errors.append("probe.ready_attempts must be at least 1.")

    if config.probe.ready_interval_seconds < 0 or config.probe.poll_interval_seconds < 0:
        errors.append("probe intervals must not be negative.")

    timeout = config.probe.completion_timeout_seconds
    if timeout is not None and timeout <= 0:
        errors.append(
            "probe.completion_timeout_seconds must be positive, or null to disable."
        )

    if config.daemon.stop_timeout_seconds <= 0:
        errors.append("daemon.stop_timeout_seconds must be positive.")

    return errors


def ensure_directories(config: Config) -> None:
    """Create the log directory and both home directories if missing."""
    for name in ("log_dir", "sender_home", "receiver_home"):
        os.makedirs(config.paths.resolve(name), exist_ok=True)
