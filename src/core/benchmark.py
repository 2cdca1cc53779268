# ============================================================================
# SyncBench -- Benchmark Orchestrator (src/core/benchmark.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Runs one scenario end to end. The phases always run in this order:
#
#     1. cleanup         remove old data dirs and index files
#     2. generate        write the corpus into the sender's data dir
#     3. start_sender    launch the sender daemon
#     4. probe           wait until the sender answers a folder scan
#     5. start_receiver  launch the receiver daemon
#     6. wait            follow the receiver's events until syncing -> idle
#     7. stop            stop both daemons, collect CPU and memory usage
#     8. verify          compare the receiver's tree with the sender's
#     9. report          compute throughput, log the result
#
#   Everything runs on one thread. If anything fails after the first
#   daemon is started, Ctrl-C included, both daemons are stopped before
#   the error is raised. A failure during that cleanup does not replace
#   the original error; it is logged and attached to it as
#   `teardown_errors`.
#
# USAGE:
#   from src.core.benchmark import run_benchmark
#   from src.core.scenarios import get_scenario
#   result = run_benchmark(get_scenario("many_small_files"), load_config("."))
#   print(result.throughput_mib_s)
#
# INTERNET ACCESS: localhost only
# ============================================================================

from __future__ import annotations

import time
from dataclasses import asdict
from typing import Callable, Optional

from src.core.cleanup import remove_all
from src.core.completion import CompletionDetector, wait_for_completion
from src.core.config import Config, ensure_directories
from src.core.corpus import SeedSource, generate_files
from src.core.dir_compare import compare_directory_contents, directory_contents
from src.core.exceptions import TeardownError
from src.core.http_client import create_daemon_client
from src.core.metrics import BenchmarkResult, build_result, format_report
from src.core.process_controller import DaemonProcess, InstancePair, ProcessInstance
from src.core.readiness import wait_until_ready
from src.core.scenarios import Scenario
from src.monitoring.logger import (
    PhaseLogEntry,
    ResultLogEntry,
    get_app_logger,
    initialize_logging,
)


def default_process_factory(instance: ProcessInstance, config: Config) -> DaemonProcess:
    return DaemonProcess(
        instance,
        config.daemon,
        config.paths.resolve("log_dir"),
        cwd=config.paths.work_dir,
    )


def default_client_factory(instance_config, config: Config):
    return create_daemon_client(instance_config, config.http)


def _instance(name: str, config: Config) -> ProcessInstance:
    section = getattr(config, name)
    return ProcessInstance(
        name=name,
        home_dir=str(config.paths.resolve(f"{name}_home")),
        port=int(section.port),
        api_key=section.api_key,
    )


def run_benchmark(
    scenario: Scenario,
    config: Config,
    process_factory: Callable = default_process_factory,
    client_factory: Callable = default_client_factory,
    seed: Optional[SeedSource] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BenchmarkResult:
    """
    Run one scenario and return its BenchmarkResult.

    process_factory(instance, config) must return an object with
    start()/stop() like DaemonProcess. client_factory(instance_config,
    config) must return an object with scan()/events() like DaemonClient.
    seed overrides paths.seed_file.
    """
    initialize_logging(str(config.paths.resolve("log_dir")), config.logging.level)
    log = get_app_logger("syncbench")
    paths = config.paths
    probe = config.probe

    def phase(name, **details):
        log.info("phase", **PhaseLogEntry.build(scenario.name, name, details))

    # 1. cleanup
    removed = remove_all(paths.work_dir, [
        paths.sender_data,
        paths.receiver_data,
        f"{paths.sender_home}/{paths.index_glob}",
        f"{paths.receiver_home}/{paths.index_glob}",
    ])
    ensure_directories(config)
    phase("cleanup", removed=len(removed))

    # 2. generate
    if seed is None:
        seed = SeedSource.from_file(paths.resolve("seed_file"))
    started = time.monotonic()
    manifest = generate_files(
        paths.resolve("sender_data"), scenario.file_count, scenario.size_exponent, seed,
    )
    phase(
        "generate", files=manifest.file_count, total_bytes=manifest.total_bytes,
        seconds=round(time.monotonic() - started, 2),
    )

    pair = InstancePair()
    teardown_done = False
    try:
        # 3. start_sender
        pair.sender = process_factory(_instance("sender", config), config)
        pair.sender.start()
        phase("start_sender", port=config.sender.port)

        # 4. probe
        sender_client = client_factory(config.sender, config)
        ready = wait_until_ready(
            sender_client, probe.folder,
            attempts=probe.ready_attempts,
            interval=probe.ready_interval_seconds,
            sleep=sleep,
        )
        phase("probe", ready=ready)

        # 5. start_receiver
        pair.receiver = process_factory(_instance("receiver", config), config)
        pair.receiver.start()
        phase("start_receiver", port=config.receiver.port)

        # 6. wait
        receiver_client = client_factory(config.receiver, config)
        detector = wait_for_completion(
            receiver_client,
            CompletionDetector(probe.folder),
            poll_interval=probe.poll_interval_seconds,
            timeout=probe.completion_timeout_seconds,
            sleep=sleep,
        )
        phase("wait", elapsed_s=detector.elapsed)

        # 7. stop
        teardown_done = True
        stopped = pair.stop_all()
        phase("stop", instances=sorted(stopped))
    except BaseException as e:
        if not teardown_done:
            _teardown(pair, e, log, scenario.name)
        raise

    # 8. verify
    ignore = config.verify.ignore_names
    expected = directory_contents(paths.resolve("sender_data"), ignore)
    actual = directory_contents(paths.resolve("receiver_data"), ignore)
    compare_directory_contents(actual, expected)
    phase("verify", paths=len(expected))

    # 9. report
    result = build_result(
        scenario.name,
        manifest.total_bytes,
        manifest.file_count,
        detector.t0,
        detector.t1,
        {name: s.usage for name, s in stopped.items()},
        sender_ready=ready,
    )
    log.info("result", **ResultLogEntry.build(
        scenario.name,
        result.total_bytes,
        result.file_count,
        result.duration_seconds,
        result.throughput_mib_s,
        {name: asdict(u) for name, u in result.usage.items()},
    ))
    for line in format_report(result):
        log.info("report", line=line)
    return result


def _teardown(pair: InstancePair, error: BaseException, log, scenario_name: str) -> None:
    """Stop whatever was started. The original error stays the one raised."""
    try:
        pair.stop_all()
    except TeardownError as te:
        log.error(
            "teardown_failed", scenario=scenario_name,
            original_error=str(error),
            errors=[str(e) for e in te.errors],
        )
        error.teardown_errors = te.errors
