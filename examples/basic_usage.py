#!/usr/bin/env python3
"""Programmatic engine usage.

This demonstrates using the engine components directly:

* load workflow records from ``examples/workflows.json``
* emit a purchase event and print the resulting enrollments
* fast-forward the clock and resume the enrollment past its wait step

Enrollments are kept in memory and side effects are only logged.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path

from kennel_automation.engine.logging import configure_logging
from kennel_automation.engine.workflow.actions import logging_action_executor
from kennel_automation.engine.workflow.automation import AutomationEngine
from kennel_automation.engine.workflow.definitions import TriggerType
from kennel_automation.engine.workflow.enrollments import InMemoryEnrollmentStore, utc_now
from kennel_automation.engine.workflow.events import WorkflowContext
from kennel_automation.engine.workflow.repository import JsonWorkflowRepository

HERE = Path(__file__).resolve().parent


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a purchase through the example workflows.")
    parser.add_argument("--amount", type=float, default=75.0, help="Purchase amount")
    parser.add_argument("--category", default="Grooming", help="Purchase category")
    parser.add_argument(
        "--workflows", type=Path, default=HERE / "workflows.json", help="Workflow records file"
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> None:
    engine = AutomationEngine(
        workflows=JsonWorkflowRepository(args.workflows),
        store=InMemoryEnrollmentStore(),
        actions=logging_action_executor(),
    )
    context = WorkflowContext(
        subject_id="owner-42",
        pet_id="pet-7",
        data={
            "amount": args.amount,
            "category": args.category,
            "FirstName": "Dana",
            "PetName": "Biscuit",
            "phone": "+15550100",
        },
    )

    created = await engine.trigger_event(TriggerType.POS_PURCHASE, context)
    for enrollment in created:
        print(json.dumps(enrollment.model_dump(mode="json"), indent=2))

    resumed = await engine.resume_due(utc_now() + timedelta(days=3))
    for enrollment in resumed:
        print(f"{enrollment.id}: {enrollment.status.value} at {enrollment.current_node_id}")


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging("INFO", "text")
    asyncio.run(_run(_parse_args(argv)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
