"""secgate CLI: scan, gate, schedule, scheduler, trends, scorecard.

Exit codes: 0 gate passed (or warning), 1 gate failed, 2 scan failed,
3 configuration or input error.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import signal
import sys
from datetime import date
from pathlib import Path

import pydantic

from secgate.config import settings
from secgate.errors.exceptions import NotFoundError, ScanFailedError, SecGateError, ValidationError
from secgate.logging_config import configure_logging
from secgate.models.enums import ComplianceFramework, GateStatus, ScheduleType
from secgate.models.finding import ScanPayload
from secgate.models.policy import GateDecision

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_GATE_FAILED = 1
EXIT_SCAN_FAILED = 2
EXIT_CONFIG_ERROR = 3


def _exit_code(decision: GateDecision) -> int:
    return EXIT_GATE_FAILED if decision.status == GateStatus.FAILED else EXIT_OK


def _print_decision(decision: GateDecision, quiet_stdout: bool = False) -> None:
    passed = decision.status == GateStatus.PASSED
    stream = sys.stdout if passed and not quiet_stdout else sys.stderr
    print(f"[{decision.status.upper()}] {decision.reason}", file=stream)


async def _open_database(database_url: str | None = None):
    from secgate.db.engine import create_db_engine, create_session_factory, create_tables

    engine = create_db_engine(database_url)
    await create_tables(engine)
    return engine, create_session_factory(engine)


# ---------------------------------------------------------------------------
# scan / gate
# ---------------------------------------------------------------------------


async def _scan(args: argparse.Namespace) -> int:
    from secgate.gate.policy_engine import evaluate_gate, load_policy
    from secgate.repositories.repository_repo import RepositoryRepository
    from secgate.scanning.adapters import build_adapters
    from secgate.scanning.orchestrator import ScanOrchestrator
    from secgate.services.scan_service import ScanService

    policy = load_policy(args.policy or settings.policy_file)
    tools = [t.strip() for t in args.tools.split(",")] if args.tools else None
    try:
        adapters = build_adapters(tools)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    payload = await ScanOrchestrator(adapters).scan_repository(args.source, args.triggered_by)
    decision = evaluate_gate(payload.summary, policy)

    if args.record:
        engine, session_factory = await _open_database(args.database_url)
        try:
            async with session_factory() as session:
                repository = await RepositoryRepository(session).get_or_create(
                    name=payload.metadata.repository,
                    url=args.source,
                    default_branch=payload.metadata.branch,
                )
                scan, _ = await ScanService(session).record_scan(payload, repository.repository_id, policy)
                await session.commit()
            logger.info("Scan stored as %s", scan.scan_id)
        finally:
            await engine.dispose()

    if args.json:
        print(json.dumps({
            "payload": payload.model_dump(mode="json", by_alias=True),
            "gate": decision.model_dump(mode="json"),
        }, indent=2))
    else:
        counts = payload.summary.by_severity
        print(
            f"{payload.metadata.repository}@{payload.metadata.commit}: {payload.summary.total} findings "
            f"(critical={counts.critical}, high={counts.high}, medium={counts.medium}, "
            f"low={counts.low}, info={counts.info})"
        )
        for error in payload.errors:
            print(f"  scanner error: {error}", file=sys.stderr)
    _print_decision(decision, quiet_stdout=args.json)
    return _exit_code(decision)


def _gate(args: argparse.Namespace) -> int:
    from secgate.gate.policy_engine import evaluate_gate, load_policy

    policy = load_policy(args.policy or settings.policy_file)
    try:
        payload = ScanPayload.model_validate_json(Path(args.payload).read_bytes())
    except OSError as exc:
        raise ValidationError(f"Cannot read scan payload {args.payload}: {exc}") from exc
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid scan payload {args.payload}", details=exc.errors()) from exc

    decision = evaluate_gate(payload.summary, policy)
    if args.json:
        print(decision.model_dump_json())
    _print_decision(decision, quiet_stdout=args.json)
    return _exit_code(decision)


# ---------------------------------------------------------------------------
# schedules
# ---------------------------------------------------------------------------


def _build_engine(session_factory):
    from secgate.gate.policy_engine import load_policy
    from secgate.scheduling.engine import ScheduleEngine
    from secgate.services.scan_service import make_scan_runner

    policy = load_policy(settings.policy_file)
    return ScheduleEngine(session_factory, runner=make_scan_runner(session_factory, policy=policy))


async def _scheduler(args: argparse.Namespace) -> int:
    engine, session_factory = await _open_database(args.database_url)
    schedule_engine = _build_engine(session_factory)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    await schedule_engine.start()
    try:
        await stop.wait()
    finally:
        await schedule_engine.shutdown()
        await engine.dispose()
    return EXIT_OK


async def _schedule(args: argparse.Namespace) -> int:
    from secgate.repositories.repository_repo import RepositoryRepository

    engine, session_factory = await _open_database(args.database_url)
    schedule_engine = _build_engine(session_factory)
    try:
        if args.action == "add":
            async with session_factory() as session:
                repository = await RepositoryRepository(session).get_or_create(
                    name=args.repository, url=args.repository
                )
                await session.commit()
                repository_id = repository.repository_id

            config = {
                key: value
                for key, value in (
                    ("hour", args.hour),
                    ("minute", args.minute),
                    ("dayOfWeek", args.day_of_week),
                    ("dayOfMonth", args.day_of_month),
                )
                if value is not None
            }
            schedule = await schedule_engine.create_schedule({
                "repositoryRef": repository_id,
                "scheduleType": args.type,
                "config": config,
                "timezone": args.timezone,
            })
            print(schedule.model_dump_json(by_alias=True))

        elif args.action == "list":
            for schedule in await schedule_engine.list_schedules(enabled_only=args.enabled_only):
                print(schedule.model_dump_json(by_alias=True))

        elif args.action in ("remove", "run"):
            if not args.schedule_id:
                raise ValidationError(f"schedule_id is required for '{args.action}'")
            if args.action == "remove":
                await schedule_engine.delete_schedule(args.schedule_id)
                print(f"Deleted: {args.schedule_id}")
            else:
                await schedule_engine.execute_now(args.schedule_id)
                print(f"Executed: {args.schedule_id}")
    finally:
        await engine.dispose()
    return EXIT_OK


# ---------------------------------------------------------------------------
# trends / scorecard
# ---------------------------------------------------------------------------


async def _trends(args: argparse.Namespace) -> int:
    from secgate.trends.aggregator import TrendAggregator

    engine, session_factory = await _open_database(args.database_url)
    aggregator = TrendAggregator(session_factory)
    try:
        if args.action == "aggregate":
            point = await aggregator.aggregate_daily(args.repository_id, args.date)
            print(point.model_dump_json())
        elif args.action == "show":
            for point in await aggregator.get_trends(args.repository_id, days=args.days):
                print(point.model_dump_json())
        else:
            if not args.periods or len(args.periods) != 4:
                raise ValidationError("compare needs P1_START P1_END P2_START P2_END dates")
            comparison = await aggregator.compare_periods(args.repository_id, *args.periods)
            print(comparison.model_dump_json(indent=2))
    finally:
        await engine.dispose()
    return EXIT_OK


async def _scorecard(args: argparse.Namespace) -> int:
    from secgate.services.scan_service import ScanService

    if not (args.scan_id or args.repository_id):
        raise ValidationError("--scan-id or --repository-id is required")
    engine, session_factory = await _open_database(args.database_url)
    try:
        async with session_factory() as session:
            scorecard = await ScanService(session).get_scorecard(
                ComplianceFramework(args.framework),
                scan_id=args.scan_id,
                repository_id=args.repository_id,
            )
        print(scorecard.model_dump_json(indent=2))
    finally:
        await engine.dispose()
    return EXIT_OK


# ---------------------------------------------------------------------------
# entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secgate",
        description="Run security scanners, gate CI/CD pipelines, and schedule recurring scans",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: SECGATE_LOG_LEVEL or info)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines on stderr")
    sub = parser.add_subparsers(dest="command")

    # scan
    p_scan = sub.add_parser("scan", help="Scan a local path or GitHub repository and evaluate the gate")
    p_scan.add_argument("source", help="Local directory, owner/repo, or GitHub URL")
    p_scan.add_argument("--triggered-by", default="manual", help="Who triggered the scan (default: manual)")
    p_scan.add_argument("--policy", help="Security gate policy JSON file")
    p_scan.add_argument("--tools", help="Comma-separated subset of scanners to run")
    p_scan.add_argument("--json", action="store_true", help="Print the scan payload and gate as JSON")
    p_scan.add_argument("--record", action="store_true", help="Store the scan in the database")
    p_scan.add_argument("--database-url", help="Database URL (overrides SECGATE_DATABASE_URL)")

    # gate
    p_gate = sub.add_parser("gate", help="Evaluate the gate for an existing scan payload JSON")
    p_gate.add_argument("payload", help="Scan payload JSON file")
    p_gate.add_argument("--policy", help="Security gate policy JSON file")
    p_gate.add_argument("--json", action="store_true", help="Print the decision as JSON")

    # scheduler
    p_sched = sub.add_parser("scheduler", help="Run the schedule engine until interrupted")
    p_sched.add_argument("--database-url", help="Database URL (overrides SECGATE_DATABASE_URL)")

    # schedule
    p_schedule = sub.add_parser("schedule", help="Manage scheduled scans")
    p_schedule.add_argument("action", choices=["add", "list", "remove", "run"])
    p_schedule.add_argument("schedule_id", nargs="?", help="Schedule ID (for remove/run)")
    p_schedule.add_argument("--repository", help="Repository URL or owner/repo (for add)")
    p_schedule.add_argument("--type", choices=[t.value for t in ScheduleType], default="daily")
    p_schedule.add_argument("--hour", type=int)
    p_schedule.add_argument("--minute", type=int)
    p_schedule.add_argument("--day-of-week", type=int, help="0 = Sunday (weekly)")
    p_schedule.add_argument("--day-of-month", type=int, help="1-31 (monthly)")
    p_schedule.add_argument("--timezone", default="UTC")
    p_schedule.add_argument("--enabled-only", action="store_true", help="Only enabled schedules (for list)")
    p_schedule.add_argument("--database-url", help="Database URL (overrides SECGATE_DATABASE_URL)")

    # trends
    p_trends = sub.add_parser("trends", help="Daily trend aggregation and comparison")
    p_trends.add_argument("action", choices=["aggregate", "show", "compare"])
    p_trends.add_argument("repository_id")
    p_trends.add_argument("periods", nargs="*", type=date.fromisoformat,
                          help="P1_START P1_END P2_START P2_END (for compare)")
    p_trends.add_argument("--date", type=date.fromisoformat, help="Day to aggregate (default: today)")
    p_trends.add_argument("--days", type=int, default=30, help="Window for show (default: 30)")
    p_trends.add_argument("--database-url", help="Database URL (overrides SECGATE_DATABASE_URL)")

    # scorecard
    p_score = sub.add_parser("scorecard", help="Compliance scorecard for a scan or repository")
    p_score.add_argument("--framework", choices=[f.value for f in ComplianceFramework], default="owasp-top10")
    p_score.add_argument("--scan-id")
    p_score.add_argument("--repository-id")
    p_score.add_argument("--database-url", help="Database URL (overrides SECGATE_DATABASE_URL)")

    return parser


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return EXIT_CONFIG_ERROR

    configure_logging(args.log_level or settings.log_level, args.json_logs or settings.json_logs)

    if args.command == "schedule" and args.action == "add" and not args.repository:
        print("Error: --repository is required for 'schedule add'", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    commands = {
        "scan": _scan,
        "gate": _gate,
        "scheduler": _scheduler,
        "schedule": _schedule,
        "trends": _trends,
        "scorecard": _scorecard,
    }
    command = commands[args.command]
    try:
        if inspect.iscoroutinefunction(command):
            return asyncio.run(command(args))
        return command(args)
    except ScanFailedError as exc:
        print(f"[SCAN FAILED] {exc.message}", file=sys.stderr)
        return EXIT_SCAN_FAILED
    except (ValidationError, NotFoundError) as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SecGateError as exc:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
        return EXIT_SCAN_FAILED


def main(argv: list[str] | None = None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
