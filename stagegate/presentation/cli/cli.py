"""
CLI Module

Architectural Intent:
- Command-line interface for stagegate
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug/--json-logs flags for log level control

Exit Codes:
- 0  rollout settled / flow allowed / command succeeded
- 1  rollout aborted or cancelled / flow denied / run-time failure
- 2  configuration error (nothing was applied)
"""

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
import traceback

from stagegate.domain.entities.autoscale import MetricKind, ReplicasScaledEvent
from stagegate.domain.entities.network_policy import Direction
from stagegate.domain.errors import ConfigurationError, StagegateError
from stagegate.domain.value_objects.label_selector import LabelSelector
from stagegate.infrastructure.config import load_config
from stagegate.infrastructure.logging import configure_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="stagegate: staged rollouts with readiness gating, "
        "network policy checks and autoscaling"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON logs on stderr"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to config file (default: stagegate.json)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    rollout_parser = subparsers.add_parser(
        "rollout", help="Apply a manifest set stage by stage, gating on readiness"
    )
    rollout_parser.add_argument("path", help="Manifest file or directory")
    rollout_parser.add_argument("--namespace", "-n", default=None, help="Target namespace")
    rollout_parser.add_argument(
        "--timeout", "-t", type=float, default=None,
        help="Default readiness timeout in seconds for resources without one",
    )
    rollout_parser.add_argument(
        "--simulate", action="store_true", help="Use the in-memory platform"
    )
    rollout_parser.add_argument(
        "--dry-run", action="store_true", help="Validate and print the stage plan only"
    )

    status_parser = subparsers.add_parser("status", help="Show the last recorded rollout")
    status_parser.add_argument("--namespace", "-n", default=None, help="Filter by namespace")
    status_parser.add_argument("--rollout-id", default=None, help="Show a specific rollout")

    policy_parser = subparsers.add_parser(
        "policy", help="Check whether a flow is allowed by the manifest network policies"
    )
    policy_parser.add_argument("path", help="Manifest file or directory")
    policy_parser.add_argument(
        "--from", dest="source", required=True, help="Source labels, e.g. app=frontend"
    )
    policy_parser.add_argument(
        "--to", dest="destination", required=True, help="Destination labels, e.g. app=backend"
    )
    policy_parser.add_argument("--port", "-p", type=int, required=True, help="Destination port")
    policy_parser.add_argument(
        "--direction", default="ingress", help="ingress (default) or egress"
    )

    autoscale_parser = subparsers.add_parser(
        "autoscale", help="Run the autoscale loop for the manifest autoscalers"
    )
    autoscale_parser.add_argument("path", help="Manifest file or directory")
    autoscale_parser.add_argument("--namespace", "-n", default=None, help="Target namespace")
    autoscale_parser.add_argument(
        "--interval", "-i", type=float, default=None, help="Tick interval in seconds"
    )
    autoscale_parser.add_argument("--once", action="store_true", help="Run one tick and exit")
    autoscale_parser.add_argument(
        "--simulate", action="store_true", help="Use the in-memory platform and metrics"
    )
    autoscale_parser.add_argument(
        "--load", action="append", default=[], metavar="WORKLOAD[:METRIC]=PERCENT",
        help="Simulated utilization reading (repeatable, requires --simulate)",
    )

    dash_parser = subparsers.add_parser("dash", help="Launch the rollout dashboard")
    dash_parser.add_argument("--namespace", "-n", default=None, help="Filter by namespace")

    return parser


def parse_load(value: str) -> tuple[str, MetricKind, float]:
    """Parses 'backend-a=85' or 'backend-a:memory=60'."""
    if "=" not in value:
        raise ConfigurationError(f"Expected WORKLOAD[:METRIC]=PERCENT, got {value!r}")
    target, percent = value.rsplit("=", 1)
    workload, _, metric = target.partition(":")
    try:
        return workload, MetricKind(metric or "cpu"), float(percent)
    except ValueError:
        raise ConfigurationError(f"Invalid load reading {value!r}")


def print_plan(plan) -> None:
    for stage, names in plan:
        print(f"  stage {stage}: {', '.join(names)}")


def print_rollout(state) -> None:
    for record in sorted(state.records.values(), key=lambda r: (r.stage, r.name)):
        marker = {"ready": "+", "failed": "-"}.get(record.status.value, "*")
        line = f"  [{marker}] stage {record.stage}  {record.name}: {record.status.value}"
        if record.skipped_apply:
            line += " (unchanged)"
        if record.optional:
            line += " (optional)"
        if record.error:
            line += f" - {record.error}"
        print(line)


async def run_rollout(args, config, verbose: bool) -> int:
    from stagegate.application.dtos.rollout_dtos import RolloutRequest
    from stagegate.composition_root import create_container

    if args.timeout is not None:
        config = dataclasses.replace(
            config, rollout=dataclasses.replace(config.rollout, default_timeout_seconds=args.timeout)
        )
    namespace = args.namespace or config.rollout.namespace
    container = create_container(
        config, simulate=args.simulate or None, persist=not args.dry_run
    )

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except NotImplementedError:
        pass

    await container.telemetry.initialize()
    span = container.telemetry.start_span("stagegate.rollout", {"namespace": namespace})
    try:
        request = RolloutRequest(args.path, namespace, dry_run=args.dry_run)
        print(f"[*] Rolling out {args.path} into namespace '{namespace}'...")
        response = await container.rollout.execute(request, cancel)
    except (ConfigurationError, ValueError) as e:
        print(f"[-] Configuration error: {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_CONFIG
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        container.telemetry.end_span(span)
        await container.telemetry.export()
        container.close()

    if args.dry_run:
        print(f"[+] {response.message}")
        print_plan(response.plan)
        return EXIT_OK

    print_rollout(response.state)
    if response.success:
        print(f"[+] {response.message} (rollout {response.rollout_id})")
        return EXIT_OK

    print(f"[-] {response.message} (rollout {response.rollout_id})")
    for failure in response.failures:
        print(f"    {failure}")
    if response.pending:
        print(f"    not started or interrupted: {', '.join(response.pending)}")
    return EXIT_FAILED


def run_status(args, config) -> int:
    from stagegate.infrastructure.repositories.sqlite_repository import SQLiteRepository

    repository = SQLiteRepository(config.storage.db_path)
    repository.connect()
    try:
        if args.rollout_id:
            state = repository.get_rollout(args.rollout_id)
        else:
            state = repository.latest_rollout(args.namespace)
    finally:
        repository.close()

    if state is None:
        print("[-] No rollouts recorded.")
        return EXIT_FAILED

    outcome = "settled" if state.succeeded else (
        "cancelled" if state.cancelled else f"aborted: {state.aborted_reason}"
    )
    print(f"[*] Rollout {state.rollout_id} in '{state.namespace}' ({outcome})")
    print(f"    started {state.started_at.isoformat()}")
    print_rollout(state)
    return EXIT_OK if state.succeeded else EXIT_FAILED


def run_policy(args) -> int:
    from stagegate.application.use_cases.check_network_flow import CheckNetworkFlow
    from stagegate.infrastructure.manifests.loader import YamlManifestSource

    try:
        decision = CheckNetworkFlow(YamlManifestSource()).execute(
            args.path,
            LabelSelector.parse(args.source).as_dict(),
            LabelSelector.parse(args.destination).as_dict(),
            args.port,
            Direction.parse(args.direction),
        )
    except ConfigurationError as e:
        print(f"[-] Configuration error: {e}")
        return EXIT_CONFIG

    if decision.allowed:
        print(f"[+] ALLOW {args.source} -> {args.destination}:{args.port}")
        for rule in decision.matched:
            print(f"    {rule.name or 'rule'}: {rule}")
        return EXIT_OK
    print(f"[-] DENY {args.source} -> {args.destination}:{args.port}: {decision.reason}")
    return EXIT_FAILED


async def run_autoscale(args, config, verbose: bool) -> int:
    from stagegate.composition_root import create_container

    namespace = args.namespace or config.rollout.namespace
    interval = args.interval or config.autoscale.interval_seconds
    container = create_container(config, simulate=args.simulate or None)
    try:
        specs = container.manifest_source.load_autoscale_specs(args.path, namespace)
        if args.simulate:
            for spec in specs:
                container.platform.seed_workload(
                    spec.workload, spec.namespace, spec.current_replicas, spec.kind
                )
            for value in args.load:
                workload, metric, percent = parse_load(value)
                container.metrics.set(workload, metric, percent)
    except ConfigurationError as e:
        print(f"[-] Configuration error: {e}")
        if verbose:
            traceback.print_exc()
        container.close()
        return EXIT_CONFIG

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except NotImplementedError:
        pass

    async def report(event) -> None:
        print(f"[+] {event.workload}: {event.previous_replicas} -> {event.replicas} ({event.reason})")

    container.event_bus.subscribe(ReplicasScaledEvent, report)
    await container.telemetry.initialize()
    try:
        print(f"[*] Autoscaling {len(specs)} workload(s) in '{namespace}' every {interval}s...")
        await container.autoscaler.execute(specs, interval, run_once=args.once, cancel=cancel)
        print("[*] Autoscale loop stopped.")
    except StagegateError as e:
        print(f"[-] Autoscale loop failed: {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_FAILED
    finally:
        await container.telemetry.export()
        container.close()
    for spec in specs:
        print(f"    {spec.workload}: {spec.current_replicas} replica(s)")
    return EXIT_OK


async def async_main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)

    # Configure logging based on flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.getLevelName(config.log_level)
        if not isinstance(level, int):
            level = logging.WARNING
    configure_logging(level=level, json_format=args.json_logs or config.log_json)

    verbose = args.verbose or args.debug

    if args.command == "rollout":
        return await run_rollout(args, config, verbose)

    if args.command == "status":
        return run_status(args, config)

    if args.command == "policy":
        return run_policy(args)

    if args.command == "autoscale":
        return await run_autoscale(args, config, verbose)

    if args.command == "dash":
        from stagegate.infrastructure.repositories.sqlite_repository import SQLiteRepository
        from stagegate.presentation.tui.dashboard import Dashboard

        repository = SQLiteRepository(config.storage.db_path)
        repository.connect()
        try:
            app = Dashboard(repository, args.namespace, config.dashboard.refresh_interval)
            await app.run_async()
        finally:
            repository.close()
        return EXIT_OK

    parser.print_help()
    return EXIT_OK


def main():
    try:
        code = asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n[*] Interrupted.")
        code = EXIT_FAILED
    sys.exit(code)


if __name__ == "__main__":
    main()
