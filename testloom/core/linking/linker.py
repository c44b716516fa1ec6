"""Resolution pass: SourceUnit[] -> ActionModel.

Resolves every Delegate's target type and method across units, records
project superclass links, and checks the delegate graph for cycles.

Type resolution order:
1. explicit (or wildcard) import of the calling unit
2. same package
3. unique simple name across the project

Method resolution is by (declaring type, method name, arity), walking
project superclasses nearest first.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..action_model.models import (
    ActionModel,
    Assert,
    BinaryOp,
    Bind,
    Branch,
    BrowserCommand,
    Construct,
    Contains,
    Delegate,
    DelegateCall,
    ElementQuery,
    Interact,
    Locate,
    Locator,
    MethodKey,
    Navigate,
    Not,
    Opaque,
    OpaqueValue,
    Pause,
    Pick,
    Probe,
    Return,
    ScriptCall,
    ScriptExec,
    SourceUnit,
    Wait,
    frozen_map,
)
from ..action_model.walk import action_values, iter_actions, iter_delegate_calls, iter_values
from ..diagnostics import Diagnostic, LinkError, LinkErrorKind, LinkIssue, Position, Severity

logger = logging.getLogger(__name__)


class Linker:
    """Builds the whole-program ActionModel from extracted units."""

    def __init__(self, units: Sequence[SourceUnit], failed_unit_names: Iterable[str] = ()):
        self.units = sorted(units, key=lambda u: u.unit_name)
        self._by_qualified: Dict[str, SourceUnit] = {}
        self._by_simple: Dict[str, List[SourceUnit]] = defaultdict(list)
        for unit in self.units:
            self._by_qualified[unit.qualified_name] = unit
            self._by_simple[unit.simple_name].append(unit)

        # Simple names of units that failed to parse, keyed to their unit name
        self._failed: Dict[str, str] = {
            PurePosixPath(name).stem: name for name in sorted(failed_unit_names)
        }

        self._issues: List[LinkIssue] = []
        self._diagnostics: List[Diagnostic] = []
        self._resolutions: Dict[str, MethodKey] = {}
        self._demoted: Set[str] = set()

    # ── Entry point ──────────────────────────────────────────────────

    def link(self) -> ActionModel:
        superclasses = self._link_superclasses()

        for unit in self.units:
            for call, line in self._unit_calls(unit):
                self._resolve_call(unit, call, line)

        if not self._issues:
            self._check_cycles()

        if self._issues:
            error = LinkError(self._issues)
            logger.error(f"Linking failed with {len(self._issues)} issue(s): {error.message}")
            raise error

        units = tuple(self._demote(unit) for unit in self.units) if self._demoted else tuple(self.units)
        logger.info(
            f"Linked {len(units)} units: {len(self._resolutions)} delegate calls resolved, "
            f"{len(self._demoted)} demoted"
        )
        return ActionModel(
            units=units,
            resolutions=frozen_map(self._resolutions),
            superclasses=frozen_map(superclasses),
            diagnostics=tuple(self._diagnostics),
        )

    # ── Type resolution ──────────────────────────────────────────────

    def resolve_type(self, type_name: str, unit: SourceUnit, line: int = 0) -> Optional[SourceUnit]:
        """Resolve a simple type name as seen from ``unit``."""
        simple = type_name.rsplit(".", 1)[-1]

        if "." in type_name and type_name in self._by_qualified:
            return self._by_qualified[type_name]

        if simple == unit.simple_name:
            return unit

        for imp in unit.imports:
            if imp.startswith("static "):
                continue
            if imp.endswith("." + simple) and imp in self._by_qualified:
                return self._by_qualified[imp]
            if imp.endswith(".*"):
                candidate = self._by_qualified.get(f"{imp[:-2]}.{simple}")
                if candidate is not None:
                    return candidate

        if unit.package:
            candidate = self._by_qualified.get(f"{unit.package}.{simple}")
            if candidate is not None:
                return candidate

        candidates = self._by_simple.get(simple, [])
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            names = ", ".join(c.qualified_name for c in candidates)
            self._issue(
                LinkErrorKind.AMBIGUOUS,
                unit,
                f"type '{simple}' is ambiguous: {names}",
                line,
            )
        return None

    def _link_superclasses(self) -> Dict[str, str]:
        links: Dict[str, str] = {}
        for unit in self.units:
            if not unit.superclass:
                continue
            parent = self.resolve_type(unit.superclass, unit, unit.provenance.start_line)
            if parent is not None and parent.unit_name != unit.unit_name:
                links[unit.unit_name] = parent.unit_name
        return links

    # ── Method resolution ────────────────────────────────────────────

    def _resolve_call(self, unit: SourceUnit, call: DelegateCall, line: int) -> None:
        issues_before = len(self._issues)
        target = self.resolve_type(call.target_type, unit, line)
        if target is None:
            if len(self._issues) > issues_before:
                return
            failed = self._failed.get(call.target_type.rsplit(".", 1)[-1])
            if failed is not None:
                self._issue(
                    LinkErrorKind.UNRESOLVED,
                    unit,
                    f"'{call.source_text}' targets '{call.target_type}', which failed to parse ({failed})",
                    line,
                )
                return
            self._demoted.add(call.call_id)
            self._diagnostics.append(
                Diagnostic(
                    Severity.WARNING,
                    unit.unit_name,
                    f"'{call.source_text}' targets '{call.target_type}', which is not a project unit; "
                    "passed through as opaque",
                    position=None if not line else self._position(line),
                    code="link_demoted",
                )
            )
            return

        key = self._resolve_method(target, call, unit, line)
        if key is not None:
            self._resolutions[call.call_id] = key

    def _resolve_method(
        self, target: SourceUnit, call: DelegateCall, caller: SourceUnit, line: int
    ) -> Optional[MethodKey]:
        seen: Set[str] = set()
        current: Optional[SourceUnit] = target
        while current is not None and current.unit_name not in seen:
            seen.add(current.unit_name)
            matches = current.find_methods(call.method, call.arity)
            if len(matches) == 1:
                return MethodKey(current.unit_name, call.method, call.arity)
            if len(matches) > 1:
                self._issue(
                    LinkErrorKind.AMBIGUOUS,
                    caller,
                    f"'{call.source_text}' matches {len(matches)} overloads of "
                    f"{current.simple_name}.{call.method}/{call.arity}",
                    line,
                )
                return None
            if not current.superclass:
                break
            current = self.resolve_type(current.superclass, current, current.provenance.start_line)

        self._issue(
            LinkErrorKind.UNRESOLVED,
            caller,
            f"'{call.source_text}' does not resolve: no method "
            f"{target.simple_name}.{call.method}/{call.arity}",
            line,
        )
        return None

    # ── Cycle detection ──────────────────────────────────────────────

    def _check_cycles(self) -> None:
        graph: Dict[MethodKey, List[MethodKey]] = {}
        for unit in self.units:
            for method in unit.methods:
                key = MethodKey(unit.unit_name, method.name, method.arity)
                targets = [
                    self._resolutions[c.call_id]
                    for c in iter_delegate_calls(method.actions)
                    if c.call_id in self._resolutions
                ]
                graph[key] = sorted(set(targets), key=str)

        WHITE, GREY, BLACK = 0, 1, 2
        color: Dict[MethodKey, int] = {key: WHITE for key in graph}
        reported: Set[Tuple[MethodKey, ...]] = set()

        def visit(node: MethodKey, path: List[MethodKey]) -> None:
            color[node] = GREY
            path.append(node)
            for succ in graph.get(node, []):
                if color.get(succ, WHITE) == GREY:
                    cycle = path[path.index(succ):] + [succ]
                    signature = tuple(sorted(set(cycle), key=str))
                    if signature not in reported:
                        reported.add(signature)
                        unit = next(u for u in self.units if u.unit_name == succ.unit_name)
                        self._issue(
                            LinkErrorKind.CYCLE,
                            unit,
                            "delegate cycle: " + " -> ".join(str(k) for k in cycle),
                            0,
                        )
                elif color.get(succ, WHITE) == WHITE:
                    visit(succ, path)
            path.pop()
            color[node] = BLACK

        for key in sorted(graph, key=str):
            if color[key] == WHITE:
                visit(key, [])

    # ── Demotion of non-project delegates ────────────────────────────

    def _demote(self, unit: SourceUnit) -> SourceUnit:
        return replace(
            unit,
            methods=tuple(replace(m, actions=self._demote_actions(m.actions)) for m in unit.methods),
            tests=tuple(replace(t, actions=self._demote_actions(t.actions)) for t in unit.tests),
            page_object=(
                replace(
                    unit.page_object,
                    methods=tuple(
                        replace(m, actions=self._demote_actions(m.actions))
                        for m in unit.page_object.methods
                    ),
                )
                if unit.page_object is not None
                else None
            ),
        )

    def _demote_actions(self, actions) -> tuple:
        return tuple(self._demote_action(a) for a in actions)

    def _demote_action(self, action):
        v = self._demote_value
        if isinstance(action, Delegate):
            if action.call.call_id in self._demoted:
                return Opaque(
                    text=action.call.source_text,
                    reason=f"'{action.call.target_type}' is not a project unit",
                    provenance=action.provenance,
                )
            return replace(action, call=v(action.call))
        if isinstance(action, Branch):
            return replace(
                action,
                condition=v(action.condition),
                then=self._demote_actions(action.then),
                otherwise=self._demote_actions(action.otherwise),
            )
        if isinstance(action, Probe):
            return replace(
                action,
                body=self._demote_actions(action.body),
                fallback=self._demote_actions(action.fallback),
            )
        if isinstance(action, Navigate):
            return replace(action, url=v(action.url))
        if isinstance(action, Locate):
            return replace(action, locator=Locator(action.locator.strategy, v(action.locator.value)))
        if isinstance(action, Pick):
            return replace(action, index=v(action.index))
        if isinstance(action, (Interact, Wait, BrowserCommand, ScriptExec)):
            return replace(action, args=tuple(v(a) for a in action.args))
        if isinstance(action, Assert):
            return replace(
                action,
                actual=v(action.actual),
                expected=v(action.expected) if action.expected is not None else None,
                message=v(action.message) if action.message is not None else None,
            )
        if isinstance(action, Bind):
            return replace(action, value=v(action.value))
        if isinstance(action, Return):
            return replace(action, value=v(action.value)) if action.value is not None else action
        if isinstance(action, Pause):
            return replace(action, millis=v(action.millis))
        return action

    def _demote_value(self, value):
        v = self._demote_value
        if isinstance(value, DelegateCall):
            if value.call_id in self._demoted:
                return OpaqueValue(value.source_text)
            return replace(value, args=tuple(v(a) for a in value.args))
        if isinstance(value, Not):
            return Not(v(value.operand))
        if isinstance(value, BinaryOp):
            return BinaryOp(value.op, v(value.left), v(value.right))
        if isinstance(value, Contains):
            return Contains(v(value.haystack), v(value.needle))
        if isinstance(value, ElementQuery) and value.arg is not None:
            return replace(value, arg=v(value.arg))
        if isinstance(value, (ScriptCall, Construct)):
            return replace(value, args=tuple(v(a) for a in value.args))
        return value

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _unit_calls(unit: SourceUnit) -> List[Tuple[DelegateCall, int]]:
        """Every delegate call of a unit, with the line of its owning action."""
        calls: List[Tuple[DelegateCall, int]] = []
        bodies = [m.actions for m in unit.methods] + [t.actions for t in unit.tests]
        for body in bodies:
            for action in iter_actions(body):
                line = action.provenance.start_line
                for value in action_values(action):
                    for inner in iter_values(value):
                        if isinstance(inner, DelegateCall):
                            calls.append((inner, line))
        return calls

    @staticmethod
    def _position(line: int) -> Position:
        return Position(line)

    def _issue(self, kind: LinkErrorKind, unit: SourceUnit, message: str, line: int) -> None:
        self._issues.append(
            LinkIssue(kind, unit.unit_name, message, self._position(line) if line else None)
        )


def link(units: Sequence[SourceUnit], failed_unit_names: Iterable[str] = ()) -> ActionModel:
    """Link extracted units into one ActionModel; raises LinkError."""
    return Linker(units, failed_unit_names).link()
