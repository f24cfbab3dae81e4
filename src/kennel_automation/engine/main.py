"""CLI entrypoint for the automation engine.

Exit codes:
  0 success
  1 unexpected failure
  2 configuration / usage error
  3 a workflow failed validation
  4 workflow definitions could not be loaded
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from pydantic import ValidationError

from kennel_automation import __version__
from kennel_automation.engine.config import EngineSettings
from kennel_automation.engine.errors import WorkflowLoadError
from kennel_automation.engine.logging import configure_logging
from kennel_automation.engine.workflow.automation import AutomationEngine, build_engine
from kennel_automation.engine.workflow.definitions import TriggerType
from kennel_automation.engine.workflow.enrollments import Enrollment
from kennel_automation.engine.workflow.events import TriggerEvent, WorkflowContext
from kennel_automation.engine.workflow.validator import validate_workflow

logger = logging.getLogger(__name__)


def _parse_data(value: str | None) -> dict[str, object]:
    if not value:
        return {}
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError("--data must be a JSON object")
    return parsed


def _print_enrollments(enrollments: list[Enrollment]) -> None:
    payload = [e.model_dump(mode="json") for e in enrollments]
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kennel-automation",
        description="Workflow automation engine for boarding and daycare facilities",
    )
    parser.add_argument("--version", action="version", version=f"kennel-automation {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate stored workflow graphs")
    validate.add_argument(
        "--workflow-id", default=None, help="Only validate this workflow (default: all)"
    )

    trigger = subparsers.add_parser(
        "trigger", help="Emit a business event and enroll matching workflows"
    )
    trigger.add_argument(
        "event_type",
        choices=[t.value for t in TriggerType],
        help="Trigger type of the event",
    )
    trigger.add_argument("--subject-id", default=None, help="Customer/owner the event concerns")
    trigger.add_argument("--pet-id", default=None, help="Pet the event concerns")
    trigger.add_argument("--order-id", default=None, help="Order the event concerns")
    trigger.add_argument(
        "--data",
        default=None,
        help='Event fields as a JSON object, e.g. \'{"amount": 75}\'',
    )

    enrollments = subparsers.add_parser("enrollments", help="List enrollments")
    enrollments.add_argument("--subject-id", default=None, help="Only this subject's enrollments")

    stop = subparsers.add_parser("stop", help="Stop (remove) an enrollment")
    stop.add_argument("enrollment_id", help="Enrollment id, e.g. enr-...")

    subparsers.add_parser("resume-due", help="Resume waiting enrollments whose delay has elapsed")

    return parser


async def _validate(engine: AutomationEngine, workflow_id: str | None) -> int:
    workflows = await engine.workflows.list_workflows()
    if workflow_id is not None:
        workflows = [w for w in workflows if w.id == workflow_id]
        if not workflows:
            print(f"Workflow not found: {workflow_id}", file=sys.stderr)
            return 2

    invalid = 0
    for workflow in workflows:
        report = validate_workflow(workflow)
        status = "ok" if report.ok else "INVALID"
        print(f"{workflow.id} ({workflow.name or 'unnamed'}): {status}")
        for issue in report.issues:
            level = "warning" if issue.is_warning else "error"
            print(f"  {level}: [{issue.code.value}] {issue.message}")
        if not report.ok:
            invalid += 1
    return 3 if invalid else 0


async def _run(engine: AutomationEngine, args: argparse.Namespace) -> int:
    if args.command == "validate":
        return await _validate(engine, args.workflow_id)

    if args.command == "trigger":
        context = WorkflowContext(
            subject_id=args.subject_id,
            pet_id=args.pet_id,
            order_id=args.order_id,
            data=_parse_data(args.data),
        )
        event = TriggerEvent(type=TriggerType(args.event_type), context=context)
        created = await engine.handle(event)
        _print_enrollments(created)
        return 0

    if args.command == "enrollments":
        _print_enrollments(engine.get_active_enrollments(args.subject_id))
        return 0

    if args.command == "stop":
        engine.stop_enrollment(args.enrollment_id)
        print(f"Stopped {args.enrollment_id}")
        return 0

    if args.command == "resume-due":
        resumed = await engine.resume_due()
        _print_enrollments(resumed)
        return 0

    logger.error("Unknown command", extra={"command": args.command})
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_format)
    engine = build_engine(settings)

    try:
        return asyncio.run(_run(engine, args))

    except WorkflowLoadError as e:
        logger.error("Could not load workflows", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return 4

    except ValueError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
