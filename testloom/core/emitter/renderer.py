"""Renders Action Model bodies and values through a target profile.

``BodyRenderer`` turns one method or test body into lines of target code.
Every profile-driven fragment it writes is recorded in ``RenderState.trace``
so the parity gates can check the finished file against the model.
"""

import json
import logging
from collections import Counter
from contextlib import nullcontext
from dataclasses import dataclass, field
from string import Template
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..action_model import models as am
from ..action_model.walk import action_values, iter_actions, iter_values
from ..diagnostics import Diagnostic, EmitError, EmitErrorKind, Position, Severity
from ..extraction.patterns import DRIVER_TYPES, base_type
from .naming import Naming
from .profile import LocatorTemplate, TargetProfile
from .writer import CodeWriter

logger = logging.getLogger(__name__)


def fill(template: str, **values) -> str:
    return Template(template).safe_substitute(**values)


def quote_string(text: str, quote: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace(quote, "\\" + quote)
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f"{quote}{escaped}{quote}"


def _hex_escape(ch: str) -> str:
    return f"\\{ord(ch):x} "


def css_identifier(text: str) -> str:
    """Serialize ``text`` as a CSS identifier, as ``CSS.escape`` does."""
    out = []
    for i, ch in enumerate(text):
        code = ord(ch)
        if code == 0:
            out.append("\ufffd")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            out.append(_hex_escape(ch))
        elif ch.isdigit() and ch.isascii() and (i == 0 or (i == 1 and text[0] == "-")):
            out.append(_hex_escape(ch))
        elif ch == "-" and len(text) == 1:
            out.append("\\-")
        elif code >= 0x80 or ch in "-_" or (ch.isascii() and ch.isalnum()):
            out.append(ch)
        else:
            out.append("\\" + ch)
    return "".join(out)


def css_string(text: str) -> str:
    """Escape ``text`` for use inside a double-quoted CSS string."""
    out = []
    for ch in text:
        code = ord(ch)
        if code == 0:
            out.append("\ufffd")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            out.append(_hex_escape(ch))
        elif ch in '"\\':
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def escape_selector_value(text: str, mode: Optional[str]) -> str:
    if mode == "identifier":
        return css_identifier(text)
    if mode == "string":
        return css_string(text)
    return text


def is_atomic(text: str) -> bool:
    """True when ``text`` has no top-level whitespace outside quotes and brackets."""
    depth = 0
    in_quote = ""
    escaped = False
    for ch in text:
        if in_quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_quote:
                in_quote = ""
        elif ch in "'\"`":
            in_quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch.isspace() and depth == 0:
            return False
    return True


def group(text: str) -> str:
    return text if is_atomic(text) else f"({text})"


@dataclass
class TraceEntry:
    """One profile-driven fragment written into the output."""

    kind: str  # wait | locator | action
    provenance: am.Provenance
    fragment: str
    body: str
    locator: Optional[am.Locator] = None
    scope: str = ""


# Actions after which a field cleared earlier is still known to be empty.
_FIELD_PRESERVING = (am.Interact, am.Wait, am.Assert, am.Pause, am.Return)


@dataclass
class Frame:
    """Rendering context of one body."""

    unit: am.SourceUnit
    mode: str  # test | page | function | inline
    page: str
    body: str
    params: Set[str] = field(default_factory=set)
    subst: Dict[str, str] = field(default_factory=dict)
    elements: Dict[str, str] = field(default_factory=dict)
    declared: Set[str] = field(default_factory=set)
    mutable: Set[str] = field(default_factory=set)
    context_objects: Dict[str, str] = field(default_factory=dict)
    stack: Tuple[am.MethodKey, ...] = ()
    cleared: Set[str] = field(default_factory=set)  # elements whose last interaction was clear


class _Untranslatable(Exception):
    """Raised while rendering a value that has no target form."""

    def __init__(self, text: str):
        super().__init__(text)
        self.text = text


class RenderState:
    """Per-output-unit state shared by every body of that unit."""

    def __init__(self, unit: am.SourceUnit, model: am.ActionModel, profile: TargetProfile, strategy: str):
        self.unit = unit
        self.model = model
        self.profile = profile
        self.strategy = strategy
        self.naming = Naming(
            profile.naming.identifiers,
            profile.naming.modules,
            profile.naming.test_prefix,
            profile.syntax.keywords,
        )
        self.trace: List[TraceEntry] = []
        self.waits_visited = 0
        self.diagnostics: List[Diagnostic] = []
        self.class_imports: Dict[str, am.SourceUnit] = {}
        self.module_imports: Dict[str, am.SourceUnit] = {}
        self.function_imports: Dict[str, Set[str]] = {}
        self._notes: Set[str] = set()

    # -- imports ---------------------------------------------------------

    def need_class(self, unit: am.SourceUnit) -> None:
        if unit.unit_name != self.unit.unit_name:
            self.class_imports[unit.unit_name] = unit

    def need_module(self, unit: am.SourceUnit) -> str:
        self.module_imports[unit.unit_name] = unit
        return self.module_alias(unit)

    def need_function(self, unit: am.SourceUnit, function: str) -> None:
        self.function_imports.setdefault(unit.unit_name, set()).add(function)

    def imported_units(self) -> Set[str]:
        return set(self.class_imports) | set(self.module_imports) | set(self.function_imports)

    def module_alias(self, unit: am.SourceUnit) -> str:
        if self.profile.naming.modules == "snake":
            return self.naming.module(unit.simple_name)
        return unit.simple_name

    # -- lookups ---------------------------------------------------------

    def unit_for_type(self, type_name: str, near: am.SourceUnit) -> Optional[am.SourceUnit]:
        simple = type_name.split("<", 1)[0].rsplit(".", 1)[-1]
        candidates = [u for u in self.model.units if u.simple_name == simple]
        if not candidates:
            return None
        for u in candidates:
            if u.package == near.package:
                return u
        return candidates[0]

    def note(self, key: str, message: str, position: Optional[Position] = None) -> None:
        """Record an info diagnostic once per unit."""
        if key in self._notes:
            return
        self._notes.add(key)
        self.diagnostics.append(
            Diagnostic(Severity.INFO, self.unit.unit_name, message, position, code="emit_note")
        )


def bound_name(action: am.Action) -> str:
    if isinstance(action, am.Bind):
        return action.name
    if isinstance(action, (am.ScriptExec, am.Delegate)):
        return action.bind
    if isinstance(action, (am.Locate, am.Pick)) and not action.inline:
        return action.ref.name
    return ""


def implicit_page(method: am.MethodModel) -> bool:
    """Whether a module function receives the page as a leading argument."""
    return not method.static and not any(base_type(p.type_name) in DRIVER_TYPES for p in method.params)


def mutable_names(actions: Sequence[am.Action]) -> Set[str]:
    """Names declared more than once or reassigned within a body."""
    declared: Counter = Counter()
    assigned: Set[str] = set()
    for action in iter_actions(actions):
        name = bound_name(action)
        if not name:
            continue
        if getattr(action, "declare", True):
            declared[name] += 1
        else:
            assigned.add(name)
    return assigned | {n for n, c in declared.items() if c > 1}


class BodyRenderer:
    def __init__(self, state: RenderState):
        self.state = state
        self.profile = state.profile
        self.syntax = state.profile.syntax
        self.naming = state.naming

    # =====================================================================
    # Bodies
    # =====================================================================

    def render_body(self, actions: Sequence[am.Action], frame: Frame, w: CodeWriter) -> None:
        frame.mutable |= mutable_names(actions)
        self._context_init(actions, frame, w)
        self.render_actions(actions, frame, w)

    def render_actions(self, actions: Sequence[am.Action], frame: Frame, w: CodeWriter) -> None:
        for action in actions:
            if isinstance(action, am.Wait):
                self.state.waits_visited += 1
            try:
                self._action(action, frame, w)
            except _Untranslatable as e:
                self._untranslated(w, f"{e.text}", action.provenance)

    def _block(self, actions: Sequence[am.Action], frame: Frame, w: CodeWriter) -> None:
        before = w.statements
        with w.indented():
            self.render_actions(actions, frame, w)
            if w.statements == before and self.syntax.empty_block:
                w.line(self.syntax.empty_block)

    def _context_init(self, actions: Sequence[am.Action], frame: Frame, w: CodeWriter) -> None:
        """Instantiate the page objects a test-side body uses."""
        if frame.mode not in ("test", "function") or not frame.context_objects:
            return
        bound = {bound_name(a) for a in iter_actions(actions)}
        used: List[str] = []
        for action in iter_actions(actions):
            for value in action_values(action):
                for sub in iter_values(value):
                    name = ""
                    if isinstance(sub, am.DelegateCall) and sub.style == "instance":
                        # inlined calls never touch their receiver
                        if self.state.strategy != "inline":
                            name = sub.receiver
                    elif isinstance(sub, am.VarRef):
                        name = sub.name
                    if name in frame.context_objects and name not in used:
                        used.append(name)
        for name in used:
            if name in frame.params or name in bound or name in frame.declared:
                continue
            type_name = frame.context_objects[name]
            target = self.state.unit_for_type(type_name, frame.unit)
            if target is None or target.kind != am.UnitKind.PAGE_OBJECT:
                continue
            self.state.need_class(target)
            frame.declared.add(name)
            w.line(
                fill(
                    self.syntax.declare,
                    name=self.naming.ident(name),
                    value=fill(self.syntax.construct_, type=target.simple_name, args=frame.page),
                )
            )

    # =====================================================================
    # Actions
    # =====================================================================

    def _action(self, action: am.Action, frame: Frame, w: CodeWriter) -> None:
        if isinstance(action, am.Navigate):
            self._emit(w, frame, action, fill(self._command("navigate"), page=frame.page, url=self.value(action.url, frame)))
        elif isinstance(action, am.Locate):
            self._locate(action, frame, w)
        elif isinstance(action, am.Pick):
            source = self.element(action.source, frame)
            expr = fill(self.profile.locators.nth, source=source, index=self.value(action.index, frame))
            self._element_binding(action, expr, frame, w)
        elif isinstance(action, am.Interact):
            self._interact(action, frame, w)
        elif isinstance(action, am.Wait):
            self._wait(action, frame, w)
        elif isinstance(action, am.Assert):
            self._assert(action, frame, w)
        elif isinstance(action, am.ScriptExec):
            self._script_exec(action, frame, w)
        elif isinstance(action, am.Delegate):
            if self.state.strategy == "inline":
                self._inline(action, frame, w)
            elif action.bind:
                self._bind_line(action.bind, self.call(action.call, frame), action.declare, frame, w)
            else:
                w.line(fill(self.syntax.expression_statement, expression=self.call(action.call, frame)))
        elif isinstance(action, am.Bind):
            self._bind_line(action.name, self.value(action.value, frame), action.declare, frame, w)
        elif isinstance(action, am.Branch):
            self._branch(action, frame, w)
        elif isinstance(action, am.Probe):
            self._probe(action, frame, w)
        elif isinstance(action, am.Return):
            if action.value is None:
                w.line(self.syntax.return_void)
            else:
                w.line(fill(self.syntax.return_value, value=self.value(action.value, frame)))
        elif isinstance(action, am.Pause):
            self._emit(w, frame, action, fill(self._command("pause"), page=frame.page, millis=self.value(action.millis, frame)))
        elif isinstance(action, am.BrowserCommand):
            self._browser_command(action, frame, w)
        elif isinstance(action, am.Opaque):
            self._untranslated(w, action.text, action.provenance)
        else:
            raise EmitError(
                EmitErrorKind.UNSUPPORTED_ACTION,
                f"no rendering for {type(action).__name__}",
                self.state.unit.unit_name,
                action.provenance.position,
            )
        if not isinstance(action, _FIELD_PRESERVING):
            frame.cleared.clear()

    def _emit(self, w: CodeWriter, frame: Frame, action: am.Action, text: str) -> None:
        w.line(text)
        self._trace("action", action.provenance, text, frame)

    def _trace(self, kind: str, prov: am.Provenance, fragment: str, frame: Frame, **extra) -> None:
        self.state.trace.append(TraceEntry(kind, prov, fragment, frame.body, **extra))

    def _untranslated(self, w: CodeWriter, text: str, prov: am.Provenance) -> None:
        lines = text.strip().splitlines() or [""]
        w.comment(fill(self.syntax.comment, text=f"[untranslated] {lines[0].strip()}"))
        for extra in lines[1:]:
            w.comment(fill(self.syntax.comment, text=extra.strip()))

    def _unsupported(self, kind: EmitErrorKind, message: str, prov: am.Provenance) -> EmitError:
        return EmitError(kind, message, self.state.unit.unit_name, prov.position)

    def _command(self, name: str) -> str:
        return self.profile.commands.get(name, "")

    def _locate(self, action: am.Locate, frame: Frame, w: CodeWriter) -> None:
        scope = self.element(action.parent, frame) if action.parent is not None else frame.page
        expr = self.locator_expression(action.locator, scope, frame, action.provenance)
        self._trace("locator", action.provenance, expr, frame, locator=action.locator, scope=scope)
        self._element_binding(action, expr, frame, w)

    def _element_binding(self, action, expr: str, frame: Frame, w: CodeWriter) -> None:
        if action.inline:
            frame.elements[action.ref.ref_id] = expr
            return
        self._bind_line(action.ref.name, expr, getattr(action, "declare", True), frame, w)
        frame.elements[action.ref.ref_id] = self.naming.ident(action.ref.name)

    def _interact(self, action: am.Interact, frame: Frame, w: CodeWriter) -> None:
        template = self.profile.interactions.get(action.op)
        if template is None:
            raise self._unsupported(
                EmitErrorKind.UNSUPPORTED_ACTION,
                f"profile '{self.profile.name}' has no interaction '{action.op}'",
                action.provenance,
            )
        element = self.element(action.element, frame)
        if action.op == "sendKeys" and element in frame.cleared and "fill" in self.profile.interactions:
            # typing into an emptied field replaces its value
            template = self.profile.interactions["fill"]
        if action.op == "clear":
            frame.cleared.add(element)
        else:
            frame.cleared.discard(element)
        values = self._arg_values(action.args, frame)
        text = fill(template, element=element, page=frame.page, **values)
        self._emit(w, frame, action, text)

    def _wait(self, action: am.Wait, frame: Frame, w: CodeWriter) -> None:
        template = self.profile.waits.get(action.condition)
        if template is None:
            raise self._unsupported(
                EmitErrorKind.UNSUPPORTED_CONDITION,
                f"profile '{self.profile.name}' has no wait condition '{action.condition}'",
                action.provenance,
            )
        values = self._arg_values(action.args, frame)
        millis = int(round(action.timeout_seconds * 1000))
        if action.target is not None:
            values["element"] = self.element(action.target, frame)
        if action.condition == "scriptReturns":
            predicate = self._predicate(action)
            values["predicate"] = predicate
            values["predicate_str"] = quote_string(predicate, self.syntax.quote)
        text = fill(
            template,
            page=frame.page,
            timeout_ms=str(millis),
            timeout=_number_text(action.timeout_seconds),
            **values,
        )
        w.line(text)
        self._trace("wait", action.provenance, text, frame)
        self._trace("action", action.provenance, text, frame)

    @staticmethod
    def _predicate(action: am.Wait) -> str:
        """``return document.readyState`` + expected -> a page-side boolean expression."""
        code = action.args[0].value if action.args and isinstance(action.args[0], am.Literal) else ""
        code = str(code).strip()
        if code.startswith("return "):
            code = code[len("return "):]
        code = code.rstrip(";").strip()
        if len(action.args) > 1 and isinstance(action.args[1], am.Literal):
            return f"{code} === {json.dumps(action.args[1].value)}"
        return code

    def _assert(self, action: am.Assert, frame: Frame, w: CodeWriter) -> None:
        template = self.profile.asserts.get(action.kind)
        if template is None:
            raise self._unsupported(
                EmitErrorKind.UNSUPPORTED_ASSERTION,
                f"profile '{self.profile.name}' has no assertion '{action.kind}'",
                action.provenance,
            )
        operand = group if self.syntax.group_assert_operands else (lambda t: t)
        actual = operand(self.value(action.actual, frame))
        expected = operand(self.value(action.expected, frame)) if action.expected is not None else ""
        message_part = ""
        if action.message is not None:
            message_part = fill(self.syntax.message_part, message=self.value(action.message, frame))
        text = fill(template, actual=actual, expected=expected, message_part=message_part)
        self._emit(w, frame, action, text)

    def _script_parts(self, code: str, args: Sequence[am.Value], frame: Frame) -> Dict[str, str]:
        bridge = self.profile.script
        body = code.replace("arguments[", f"{bridge.params}[")
        function = fill(bridge.function, params=bridge.params, code=body)
        rendered = []
        for arg in args:
            if isinstance(arg, am.ElementValue):
                rendered.append(fill(bridge.element_arg, element=self.element(arg.ref, frame)))
            else:
                rendered.append(self.value(arg, frame))
        args_part = ""
        if rendered:
            args_part = ", " + fill(self.syntax.list, items=", ".join(rendered))
        self.state.note(
            "script",
            f"script calls run through the {self.profile.display_name} script bridge: {bridge.semantics}",
        )
        return {
            "page": frame.page,
            "function": function,
            "function_str": quote_string(function, self.syntax.quote),
            "args_part": args_part,
        }

    def _script_exec(self, action: am.ScriptExec, frame: Frame, w: CodeWriter) -> None:
        parts = self._script_parts(action.code, action.args, frame)
        if action.bind:
            text = fill(self.profile.script.expression, **parts)
            self._bind_line(action.bind, text, action.declare, frame, w)
        else:
            text = fill(self.profile.script.statement, **parts)
            w.line(text)
        self._trace("action", action.provenance, text, frame)

    def _branch(self, action: am.Branch, frame: Frame, w: CodeWriter) -> None:
        w.line(fill(self.syntax.if_open, condition=self.value(action.condition, frame)))
        self._block(action.then, frame, w)
        if action.otherwise:
            w.line(self.syntax.else_open)
            self._block(action.otherwise, frame, w)
        if self.syntax.block_close:
            w.line(self.syntax.block_close)

    def _probe(self, action: am.Probe, frame: Frame, w: CodeWriter) -> None:
        presence = self._presence_check(action)
        if presence is not None:
            text = fill(self.syntax.return_value, value=self.value(presence, frame))
            self._emit(w, frame, action, text)
            return
        w.line(self.syntax.try_open)
        self._block(action.body, frame, w)
        w.line(self.syntax.catch_open)
        self._block(action.fallback, frame, w)
        if self.syntax.block_close:
            w.line(self.syntax.block_close)

    @staticmethod
    def _presence_check(action: am.Probe) -> Optional[am.ElementQuery]:
        """``try { return el.isDisplayed(); } catch (...) { return false; }``"""
        if len(action.body) != 1 or len(action.fallback) != 1:
            return None
        body, fallback = action.body[0], action.fallback[0]
        if not (isinstance(body, am.Return) and isinstance(fallback, am.Return)):
            return None
        if not (isinstance(body.value, am.ElementQuery) and body.value.query == "visible"):
            return None
        if not (isinstance(fallback.value, am.Literal) and fallback.value.value is False):
            return None
        return body.value

    def _browser_command(self, action: am.BrowserCommand, frame: Frame, w: CodeWriter) -> None:
        if action.command not in self.profile.commands:
            raise self._unsupported(
                EmitErrorKind.UNSUPPORTED_ACTION,
                f"profile '{self.profile.name}' has no browser command '{action.command}'",
                action.provenance,
            )
        template = self.profile.commands[action.command]
        if not template:
            self.state.note(
                f"command:{action.command}",
                f"'{action.command}' has no {self.profile.display_name} equivalent and was dropped",
                action.provenance.position,
            )
            return
        millis = ""
        if action.args and isinstance(action.args[0], am.Literal):
            millis = str(int(round(float(action.args[0].value) * 1000)))
        self._emit(w, frame, action, fill(template, page=frame.page, millis=millis))

    def _bind_line(self, name: str, value: str, declare: bool, frame: Frame, w: CodeWriter) -> None:
        target = self.naming.ident(name)
        if declare and name not in frame.declared:
            frame.declared.add(name)
            template = self.syntax.declare_mutable if name in frame.mutable else self.syntax.declare
        else:
            frame.declared.add(name)
            template = self.syntax.assign
        w.line(fill(template, name=target, value=value))

    # =====================================================================
    # Delegation
    # =====================================================================

    def _resolve(self, call: am.DelegateCall, prov: Optional[am.Provenance] = None) -> am.MethodKey:
        key = self.state.model.resolve(call)
        if key is None:
            raise EmitError(
                EmitErrorKind.UNSUPPORTED_DELEGATE,
                f"call '{call.source_text or call.method}' was not resolved",
                self.state.unit.unit_name,
                prov.position if prov else None,
            )
        return key

    def call(self, call: am.DelegateCall, frame: Frame) -> str:
        """Render a delegate call under the call strategy."""
        if self.state.strategy == "inline":
            raise EmitError(
                EmitErrorKind.UNSUPPORTED_DELEGATE,
                f"call '{call.source_text or call.method}' is used as a value and cannot be inlined",
                self.state.unit.unit_name,
            )
        key = self._resolve(call)
        target = self.state.model.unit(key.unit_name)
        method = self.state.model.method(key)
        name = self.naming.ident(method.name)
        args = [self.value(a, frame) for a in call.args]

        if target.kind == am.UnitKind.PAGE_OBJECT:
            if method.static:
                self.state.need_class(target)
                receiver = target.simple_name
            elif call.style == "self":
                if frame.mode != "page":
                    raise EmitError(
                        EmitErrorKind.UNSUPPORTED_DELEGATE,
                        f"self call '{call.method}' outside a page object instance",
                        self.state.unit.unit_name,
                    )
                receiver = self.syntax.self_ref
            else:
                receiver = self._receiver(call.receiver, frame)
            expr = f"{receiver}.{name}({', '.join(args)})"
        else:
            if implicit_page(method):
                args = [frame.page] + args
            if target.unit_name == self.state.unit.unit_name:
                expr = f"{name}({', '.join(args)})"
            elif call.style == "self":
                self.state.need_function(target, name)
                expr = f"{name}({', '.join(args)})"
            else:
                alias = self.state.need_module(target)
                expr = f"{alias}.{name}({', '.join(args)})"
        return fill(self.syntax.await_, expression=expr)

    def _receiver(self, name: str, frame: Frame) -> str:
        if name in frame.subst:
            return frame.subst[name]
        ident = self.naming.ident(name)
        if frame.mode == "page" and name not in frame.declared and name not in frame.params:
            return f"{self.syntax.self_ref}.{ident}"
        return ident

    def _inline(self, action: am.Delegate, frame: Frame, w: CodeWriter) -> None:
        call = action.call
        key = self._resolve(call, action.provenance)
        method = self.state.model.method(key)
        callee = self.state.model.unit(key.unit_name)
        where = f"{callee.simple_name}.{method.name}"

        def refuse(reason: str) -> EmitError:
            return self._unsupported(EmitErrorKind.UNSUPPORTED_DELEGATE, f"cannot inline {where}: {reason}", action.provenance)

        if action.bind or method.returns_value:
            raise refuse("its result is used")
        if key in frame.stack:
            raise refuse("recursive call")
        if any(isinstance(a, am.Return) for a in iter_actions(method.actions)):
            raise refuse("early return")

        child = Frame(
            unit=callee,
            mode="inline",
            page=frame.page,
            body=frame.body,
            stack=frame.stack + (key,),
        )
        bindings: List[Tuple[str, str]] = []
        for param, arg in zip(method.params, call.args):
            if isinstance(arg, am.ElementValue):
                child.elements[f"param:{method.name}:{param.name}"] = self.element(arg.ref, frame)
            elif isinstance(arg, am.DriverRef):
                child.subst[param.name] = frame.page
            elif isinstance(arg, (am.Literal, am.VarRef)):
                child.subst[param.name] = self.value(arg, frame)
            else:
                bindings.append((param.name, self.value(arg, frame)))

        w.comment(fill(self.syntax.comment, text=f"inlined {where}"))
        opened = bool(self.syntax.inline_open)
        if opened:
            w.line(self.syntax.inline_open)
        before = w.statements
        with w.indented() if opened else nullcontext():
            for name, value in bindings:
                child.declared.add(name)
                w.line(fill(self.syntax.declare, name=self.naming.ident(name), value=value))
            child.mutable = mutable_names(method.actions)
            self.render_actions(method.actions, child, w)
            if opened and w.statements == before and self.syntax.empty_block:
                w.line(self.syntax.empty_block)
        if opened:
            w.line(self.syntax.inline_close)

    # =====================================================================
    # Elements and locators
    # =====================================================================

    def element(self, ref: am.ElementRef, frame: Frame) -> str:
        if ref.ref_id in frame.elements:
            return frame.elements[ref.ref_id]
        if ref.origin == "field":
            if frame.mode == "page":
                return f"{self.syntax.self_ref}.{self.naming.ident(ref.name)}"
            locator = self._field_locator(ref.name, frame.unit)
            if locator is not None:
                expr = self.locator_expression(locator.locator, frame.page, frame, locator.provenance)
                self._trace("locator", locator.provenance, expr, frame, locator=locator.locator, scope=frame.page)
                return expr
        if ref.origin == "param":
            return frame.subst.get(ref.name, self.naming.ident(ref.name))
        raise EmitError(
            EmitErrorKind.UNSUPPORTED_LOCATOR,
            f"element '{ref.name or ref.ref_id}' is used before it is located",
            self.state.unit.unit_name,
        )

    def _field_locator(self, name: str, unit: am.SourceUnit) -> Optional[am.LocatorField]:
        for u in (unit,) + self.state.model.superclass_chain(unit.unit_name):
            for f in u.locator_fields:
                if f.name == name:
                    return f
        return None

    def locator_expression(self, locator: am.Locator, scope: str, frame: Frame, prov: am.Provenance) -> str:
        template = self.profile.locators.strategies.get(locator.strategy)
        if template is None:
            raise self._unsupported(
                EmitErrorKind.UNSUPPORTED_LOCATOR,
                f"profile '{self.profile.name}' has no locator strategy '{locator.strategy}'",
                prov,
            )
        if template.expression is not None:
            return fill(template.expression, scope=scope, value=self.value(locator.value, frame))
        selector = self._selector(template, locator.value, frame)
        return fill(self.profile.locators.locate, scope=scope, selector=selector)

    def _selector(self, template: LocatorTemplate, value: am.Value, frame: Frame) -> str:
        quote = self.syntax.quote
        selector = template.selector
        if "$value" not in selector:
            return quote_string(selector, quote)
        prefix, _, suffix = selector.partition("$value")
        if isinstance(value, am.Literal) and value.kind == "string":
            escaped = escape_selector_value(str(value.value), template.escape)
            return quote_string(f"{prefix}{escaped}{suffix}", quote)
        if template.escape:
            self.state.note(
                "selector-escape",
                "locator values computed at run time are inserted into CSS selectors unescaped",
            )
        parts = []
        if prefix:
            parts.append(quote_string(prefix, quote))
        parts.append(group(self.value(value, frame)))
        if suffix:
            parts.append(quote_string(suffix, quote))
        return " + ".join(parts)

    # =====================================================================
    # Values
    # =====================================================================

    def _arg_values(self, args: Sequence[am.Value], frame: Frame) -> Dict[str, str]:
        rendered = [self.value(a, frame) for a in args]
        values = {f"arg{i}": text for i, text in enumerate(rendered)}
        values["args"] = ", ".join(rendered)
        return values

    def value(self, value: am.Value, frame: Frame) -> str:
        syntax = self.syntax
        if isinstance(value, am.Literal):
            return self.literal(value)
        if isinstance(value, am.VarRef):
            return self._var(value.name, frame)
        if isinstance(value, am.DriverRef):
            return frame.page
        if isinstance(value, am.ElementValue):
            return self.element(value.ref, frame)
        if isinstance(value, am.ElementQuery):
            template = self.profile.queries.get(value.query)
            if template is None:
                raise EmitError(
                    EmitErrorKind.UNSUPPORTED_ACTION,
                    f"profile '{self.profile.name}' has no element query '{value.query}'",
                    self.state.unit.unit_name,
                )
            arg0 = self.value(value.arg, frame) if value.arg is not None else ""
            return fill(template, element=self.element(value.ref, frame), arg0=arg0)
        if isinstance(value, am.PageQuery):
            template = self.profile.page_queries.get(value.query)
            if template is None:
                raise EmitError(
                    EmitErrorKind.UNSUPPORTED_ACTION,
                    f"profile '{self.profile.name}' has no page query '{value.query}'",
                    self.state.unit.unit_name,
                )
            return fill(template, page=frame.page)
        if isinstance(value, am.Not):
            return fill(syntax.not_, operand=group(self.value(value.operand, frame)))
        if isinstance(value, am.BinaryOp):
            op = syntax.operators.get(value.op, value.op)
            return f"{group(self.value(value.left, frame))} {op} {group(self.value(value.right, frame))}"
        if isinstance(value, am.Contains):
            return fill(
                syntax.contains,
                haystack=group(self.value(value.haystack, frame)),
                needle=group(self.value(value.needle, frame)),
            )
        if isinstance(value, am.DelegateCall):
            return self.call(value, frame)
        if isinstance(value, am.ScriptCall):
            return fill(self.profile.script.expression, **self._script_parts(value.code, value.args, frame))
        if isinstance(value, am.Construct):
            target = self.state.unit_for_type(value.type_name, frame.unit)
            if target is None or target.kind != am.UnitKind.PAGE_OBJECT:
                raise EmitError(
                    EmitErrorKind.UNSUPPORTED_DELEGATE,
                    f"cannot construct '{value.type_name}' in the target",
                    self.state.unit.unit_name,
                )
            self.state.need_class(target)
            args = ", ".join(self.value(a, frame) for a in value.args)
            return fill(syntax.construct_, type=target.simple_name, args=args)
        if isinstance(value, am.OpaqueValue):
            raise _Untranslatable(value.text)
        raise EmitError(
            EmitErrorKind.UNSUPPORTED_ACTION,
            f"no rendering for value {type(value).__name__}",
            self.state.unit.unit_name,
        )

    def literal(self, value: am.Literal) -> str:
        if value.kind == "null" or value.value is None:
            return self.syntax.null
        if value.kind == "boolean":
            return self.syntax.true if value.value else self.syntax.false
        if value.kind == "number":
            return _number_text(value.value)
        return quote_string(str(value.value), self.syntax.quote)

    def _var(self, name: str, frame: Frame) -> str:
        if name == "this":
            if frame.mode == "page":
                return self.syntax.self_ref
            raise EmitError(
                EmitErrorKind.UNSUPPORTED_DELEGATE,
                "'this' has no meaning outside a page object",
                self.state.unit.unit_name,
            )
        if name in frame.subst:
            return frame.subst[name]
        if name in frame.declared or name in frame.params:
            return self.naming.ident(name)
        for constant in frame.unit.constants:
            if constant.name == name:
                if frame.unit.unit_name == self.state.unit.unit_name:
                    return self.naming.ident(name)
                return self.literal(constant.value)
        if frame.mode == "page":
            return f"{self.syntax.self_ref}.{self.naming.ident(name)}"
        return self.naming.ident(name)


def _number_text(number) -> str:
    if isinstance(number, bool):
        return str(int(number))
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)
