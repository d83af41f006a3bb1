from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import TextIO

from service_kernel.config.configuration import Configuration
from service_kernel.config.loader import import_object
from service_kernel.observability.adapters.logging import (
    JsonlLogSink,
    default_log_sink,
    emit_log,
    log_sink_from_settings,
    set_default_log_sink,
)
from service_kernel.service.formatting import format_statistics
from service_kernel.supervision.policy import Policy


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="service-kernel")
    commands = parser.add_subparsers(dest="command", required=True)

    list_parser = commands.add_parser("list", help="print the evaluated configuration of every service")
    list_parser.add_argument("config", help="service file (.py, .yml or .yaml)")
    list_parser.add_argument("--implementing", help="only services implementing 'package.module:Facet'")

    run_parser = commands.add_parser("run", help="run every service under the controller")
    run_parser.add_argument("config", help="service file (.py, .yml or .yaml)")
    run_parser.add_argument("--maximum-failures", type=int)
    run_parser.add_argument("--window", type=float)
    run_parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"])
    run_parser.add_argument("--log-path")
    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def policy_from_args(args: argparse.Namespace) -> Policy:
    # Only flags given on the command line override the policy defaults.
    overrides: dict[str, object] = {}
    if args.maximum_failures is not None:
        overrides["maximum_failures"] = args.maximum_failures
    if args.window is not None:
        overrides["window"] = args.window
    return Policy(**overrides)


def logging_settings_from_args(args: argparse.Namespace) -> dict[str, object]:
    settings: dict[str, object] = {}
    if args.log_level is not None:
        settings["level"] = args.log_level
    if args.log_path is not None:
        settings["path"] = args.log_path
    return settings


def list_services(args: argparse.Namespace, out: TextIO) -> int:
    configuration = Configuration().load_file(args.config)
    implementing = import_object(args.implementing) if args.implementing else None
    for service in configuration.services(implementing):
        # Values such as service classes and paths are printed via str().
        out.write(json.dumps(service.to_dict(), separators=(",", ":"), ensure_ascii=False, default=str) + "\n")
    return 0


def run_services(args: argparse.Namespace) -> int:
    policy = policy_from_args(args)
    sink = log_sink_from_settings(logging_settings_from_args(args))
    previous = default_log_sink()
    set_default_log_sink(sink)
    try:
        configuration = Configuration().load_file(args.config)
        controller = configuration.controller(policy=policy, log_sink=sink)
        try:
            asyncio.run(controller.run())
        except KeyboardInterrupt:
            emit_log(sink, "info", "controller.interrupted")
            return 130
        container = controller.container
        if container is None:
            return 0
        statistics = container.statistics
        emit_log(
            sink,
            "info",
            "controller.finished",
            statistics=format_statistics(s=statistics.spawns, r=statistics.restarts, f=statistics.failures),
        )
        return 1 if statistics.failed() else 0
    finally:
        set_default_log_sink(previous)
        if isinstance(sink, JsonlLogSink):
            sink.close()


def main(argv: Sequence[str] | None = None, *, out: TextIO | None = None) -> int:
    args = parse_args(list(argv) if argv is not None else sys.argv[1:])
    if args.command == "list":
        return list_services(args, out if out is not None else sys.stdout)
    return run_services(args)
