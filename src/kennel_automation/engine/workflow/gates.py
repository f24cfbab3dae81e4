"""Trigger gates: predicates over an event's data that can suppress enrollment.

Gates are configured on the trigger node and apply to any trigger kind that
configures them. A gate that is not configured always passes.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .definitions import TriggerConfig

ANY_CATEGORY = "Any"


@dataclass(frozen=True, slots=True)
class GateResult:
    passed: bool
    gate: str = ""
    reason: str = ""


def _to_float(value: Any) -> float:
    if isinstance(value, bool | int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0.0
    else:
        return 0.0
    # nan and inf never satisfy a threshold.
    return number if math.isfinite(number) else 0.0


def min_amount_gate(config: TriggerConfig, data: Mapping[str, Any]) -> GateResult:
    if config.min_amount is None:
        return GateResult(passed=True)
    amount = _to_float(data.get("amount", 0))
    if amount < config.min_amount:
        return GateResult(
            passed=False,
            gate="min_amount",
            reason=f"amount {amount:g} < {config.min_amount:g}",
        )
    return GateResult(passed=True)


def category_gate(config: TriggerConfig, data: Mapping[str, Any]) -> GateResult:
    wanted = (config.category or "").strip()
    if not wanted or wanted == ANY_CATEGORY:
        return GateResult(passed=True)
    actual = data.get("category")
    if actual != wanted:
        return GateResult(
            passed=False, gate="category", reason=f"category {actual!r} != {wanted!r}"
        )
    return GateResult(passed=True)


Gate = Callable[[TriggerConfig, Mapping[str, Any]], GateResult]

DEFAULT_GATES: tuple[Gate, ...] = (min_amount_gate, category_gate)


def check_gates(
    config: TriggerConfig,
    data: Mapping[str, Any],
    gates: tuple[Gate, ...] = DEFAULT_GATES,
) -> GateResult:
    """Run gates in order; the first rejection wins."""

    for gate in gates:
        result = gate(config, data)
        if not result.passed:
            return result
    return GateResult(passed=True)
