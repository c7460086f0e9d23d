#!/usr/bin/env python3
"""
nomad-bench - command line entry point.

Commands:
    setup                 write the job manifest (NOMAD_NUM_CONTAINERS per job)
    run                   register NOMAD_NUM_JOBS copies of the manifest
    status <sink_addr>    stream placed/booting/running counts to Graphite
    teardown <dir>        deregister all jobs and remove the working dir
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
from pathlib import Path
from typing import Mapping, Optional

from .config import NUM_CONTAINERS_ENV, NUM_JOBS_ENV, BenchConfig, ConfigError, read_count
from .jobs import (
    JobSpecError,
    SubmissionError,
    TeardownError,
    TranscodeError,
    parse_file,
    submit_jobs,
    teardown,
    to_api_job,
    write_manifest,
)
from .orchestrator import NomadClient
from .status import AllocationWatcher, SinkError
from .status import connect as connect_sink

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_FAILURE = 3


def _fail(message: str, code: int) -> int:
    sys.stderr.write(f"Error: {message}\n")
    sys.stderr.flush()
    return code


def _make_client(config: BenchConfig) -> NomadClient:
    try:
        return NomadClient.from_config(config.nomad)
    except ValueError as e:
        raise ConfigError(f"invalid nomad settings: {e}") from e


def handle_setup(args: argparse.Namespace, config: BenchConfig, env: Mapping[str, str]) -> int:
    count = read_count(NUM_CONTAINERS_ENV, env)
    try:
        path = write_manifest(Path(args.dir), count, name=config.manifest_name)
    except JobSpecError as e:
        return _fail(str(e), EXIT_FAILURE)
    print(f"[setup] Wrote {path} ({count} containers)", flush=True)
    return EXIT_OK


def handle_run(args: argparse.Namespace, config: BenchConfig, env: Mapping[str, str]) -> int:
    count = read_count(NUM_JOBS_ENV, env)

    try:
        job = parse_file(Path(args.dir) / config.manifest_name)
    except JobSpecError as e:
        return _fail(f"failed parsing job file: {e}", EXIT_FAILURE)

    try:
        api_job = to_api_job(job)
    except TranscodeError as e:
        return _fail(f"failed converting job: {e}", EXIT_FAILURE)

    client = _make_client(config)
    try:
        submit_jobs(client, api_job, count)
    except SubmissionError as e:
        return _fail(f"failed registering jobs: {e}", EXIT_FAILURE)
    finally:
        client.close()
    return EXIT_OK


def handle_status(args: argparse.Namespace, config: BenchConfig, env: Mapping[str, str]) -> int:
    client = _make_client(config)
    try:
        sink = connect_sink(args.sink_address, prefix=config.sink.prefix, timeout=config.sink.connect_timeout)
    except SinkError as e:
        client.close()
        return _fail(f"failed contacting status server: {e}", EXIT_FAILURE)

    watcher = AllocationWatcher(client, sink, config.watch)

    # SIGTERM behaves like Ctrl-C so a blocking query is interrupted too.
    previous = signal.signal(signal.SIGTERM, signal.default_int_handler)
    try:
        watcher.run()
    except KeyboardInterrupt:
        watcher.stop()
        print(f"[watch] Interrupted at index {watcher.state.cursor}", flush=True)
    finally:
        signal.signal(signal.SIGTERM, previous)
        sink.close()
        client.close()
    return EXIT_OK


def handle_teardown(args: argparse.Namespace, config: BenchConfig, env: Mapping[str, str]) -> int:
    client = _make_client(config)
    try:
        teardown(client, Path(args.working_dir))
    except TeardownError as e:
        return _fail(str(e), EXIT_FAILURE)
    finally:
        client.close()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nomad-bench", description="Nomad scheduling load-test driver.")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    setup = sub.add_parser("setup", help=f"Write the job manifest ({NUM_CONTAINERS_ENV} containers)")
    setup.add_argument("--dir", default=".", help="Working directory for the manifest (default: .)")
    setup.set_defaults(handler=handle_setup)

    run = sub.add_parser("run", help=f"Register {NUM_JOBS_ENV} copies of the manifest")
    run.add_argument("--dir", default=".", help="Working directory holding the manifest (default: .)")
    run.set_defaults(handler=handle_run)

    status = sub.add_parser("status", help="Stream allocation counts to a Graphite sink")
    status.add_argument("sink_address", help="Metrics sink address, host:port")
    status.set_defaults(handler=handle_status)

    td = sub.add_parser("teardown", help="Deregister all jobs and remove the working directory")
    td.add_argument("working_dir", help="Working directory to remove")
    td.set_defaults(handler=handle_teardown)

    return parser


def main(argv=None, env: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if env is None else env
    args = build_parser().parse_args(argv)

    try:
        config = BenchConfig.load(args.config, env=env)
        return args.handler(args, config, env)
    except ConfigError as e:
        return _fail(str(e), EXIT_CONFIG)


if __name__ == "__main__":
    sys.exit(main())
