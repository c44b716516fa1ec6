"""Parity gates run on every emitted unit.

Each gate compares the finished target text with what the renderer was
asked to produce.  A failing blocking gate fails the unit with an
``EmitError`` of kind ``PARITY_GATE``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from ..action_model import models as am
from ..diagnostics import EmitError, EmitErrorKind
from .renderer import RenderState, escape_selector_value, fill, quote_string

logger = logging.getLogger(__name__)


@dataclass
class GateDefinition:
    """A check that validates one emitted file."""

    name: str
    description: str
    blocking: bool = True


@dataclass
class GateResult:
    gate_name: str
    passed: bool
    details: Dict[str, Any] = field(default_factory=dict)
    blocking: bool = True


GATES = (
    GateDefinition(
        "wait_parity",
        "Every wait in the rendered bodies appears in the output",
    ),
    GateDefinition(
        "locator_fidelity",
        "Every locator uses its own strategy's template and appears in the output",
    ),
    GateDefinition(
        "order_parity",
        "Actions of each body appear in source order",
    ),
)


def _wait_parity(text: str, state: RenderState, gate: GateDefinition) -> GateResult:
    waits = [e for e in state.trace if e.kind == "wait"]
    present = [e for e in waits if e.fragment in text]
    return GateResult(
        gate_name=gate.name,
        passed=state.waits_visited == len(present),
        details={
            "expected": state.waits_visited,
            "found": len(present),
            "missing": [e.provenance.start_line for e in waits if e.fragment not in text],
        },
        blocking=gate.blocking,
    )


def _expected_locator_parts(state: RenderState, locator: am.Locator, scope: str) -> List[str]:
    """Static text the fragment must contain for this locator."""
    profile = state.profile
    template = profile.locators.strategies.get(locator.strategy)
    if template is None:
        return []
    quote = profile.syntax.quote
    literal = isinstance(locator.value, am.Literal) and locator.value.kind == "string"
    if template.expression is not None:
        if literal:
            return [fill(template.expression, scope=scope, value=quote_string(str(locator.value.value), quote))]
        return [p for p in template.expression.replace("$scope", scope).split("$value") if p]
    selector = template.selector
    if literal:
        escaped = escape_selector_value(str(locator.value.value), template.escape)
        rendered = quote_string(selector.replace("$value", escaped), quote)
        return [fill(profile.locators.locate, scope=scope, selector=rendered)]
    prefix, _, suffix = selector.partition("$value")
    return [quote_string(p, quote) for p in (prefix, suffix) if p]


def _locator_fidelity(text: str, state: RenderState, gate: GateDefinition) -> GateResult:
    mismatched = []
    absent = []
    checked = 0
    for entry in state.trace:
        if entry.kind != "locator" or entry.locator is None:
            continue
        checked += 1
        expected = _expected_locator_parts(state, entry.locator, entry.scope)
        if not expected or any(part not in entry.fragment for part in expected):
            mismatched.append(f"{entry.locator.strategy}@{entry.provenance.start_line}")
        if entry.fragment not in text:
            absent.append(f"{entry.locator.strategy}@{entry.provenance.start_line}")
    return GateResult(
        gate_name=gate.name,
        passed=not mismatched and not absent,
        details={"checked": checked, "mismatched": mismatched, "missing": absent},
        blocking=gate.blocking,
    )


def _order_parity(text: str, state: RenderState, gate: GateDefinition) -> GateResult:
    bodies: Dict[str, List] = {}
    for entry in state.trace:
        if entry.kind == "action" and entry.provenance.unit_name == state.unit.unit_name:
            bodies.setdefault(entry.body, []).append(entry)

    out_of_order = []
    for body, entries in bodies.items():
        last_line = 0
        pos = 0
        for entry in entries:
            found = text.find(entry.fragment, pos)
            if entry.provenance.start_line < last_line or found < 0:
                out_of_order.append(f"{body}@{entry.provenance.start_line}")
                break
            last_line = entry.provenance.start_line
            pos = found + 1
    return GateResult(
        gate_name=gate.name,
        passed=not out_of_order,
        details={"bodies": len(bodies), "out_of_order": out_of_order},
        blocking=gate.blocking,
    )


_CHECKS: Dict[str, Callable[[str, RenderState, GateDefinition], GateResult]] = {
    "wait_parity": _wait_parity,
    "locator_fidelity": _locator_fidelity,
    "order_parity": _order_parity,
}


def run_gates(text: str, state: RenderState) -> List[GateResult]:
    """Run every gate; raise on the first blocking failure."""
    results = []
    for gate in GATES:
        result = _CHECKS[gate.name](text, state, gate)
        results.append(result)
        logger.debug(f"Gate {gate.name} on {state.unit.unit_name}: passed={result.passed}")
        if not result.passed and result.blocking:
            raise EmitError(
                EmitErrorKind.PARITY_GATE,
                f"parity gate '{gate.name}' failed: {result.details}",
                state.unit.unit_name,
            )
    return results
