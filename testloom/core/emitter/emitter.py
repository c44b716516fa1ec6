"""Target emission: turns a linked Action Model into target files.

One ``UnitEmitter`` per source unit assembles the file from profile
templates, renders every body through ``BodyRenderer`` and runs the parity
gates on the finished text.  A unit that fails to emit is reported and the
rest of the run carries on.
"""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from ..action_model import models as am
from ..diagnostics import Diagnostic, EmitError, EmitErrorKind
from ..extraction.patterns import DRIVER_TYPES, base_type
from .gates import run_gates
from .naming import Naming
from .profile import TargetProfile
from .renderer import BodyRenderer, Frame, RenderState, fill, implicit_page, quote_string
from .writer import CodeWriter

logger = logging.getLogger(__name__)

DEFAULT_BROWSER = "chromium"


@dataclass
class EmitResult:
    units: List[am.ConversionUnit] = field(default_factory=list)
    failed: Dict[str, EmitError] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)


def naming_for(profile: TargetProfile) -> Naming:
    return Naming(
        profile.naming.identifiers,
        profile.naming.modules,
        profile.naming.test_prefix,
        profile.syntax.keywords,
    )


def output_path(unit: am.SourceUnit, profile: TargetProfile) -> str:
    """Target path of a unit, relative to the output root."""
    naming = naming_for(profile)
    filename = fill(
        profile.paths[unit.kind.value],
        name=unit.simple_name,
        module=naming.module(unit.simple_name),
    )
    directory = posixpath.dirname(unit.unit_name)
    return posixpath.join(directory, filename) if directory else filename


def _module_path(path: str) -> str:
    return posixpath.splitext(path)[0]


def _dotted(path: str) -> str:
    return _module_path(path).replace("/", ".")


class UnitEmitter:
    """Emits one source unit as one target file."""

    def __init__(self, unit: am.SourceUnit, model: am.ActionModel, profile: TargetProfile, strategy: str):
        self.unit = unit
        self.model = model
        self.profile = profile
        self.files = profile.files
        self.syntax = profile.syntax
        self.state = RenderState(unit, model, profile, strategy)
        self.naming = self.state.naming
        self.renderer = BodyRenderer(self.state)
        self.path = output_path(unit, profile)

    def emit(self) -> am.ConversionUnit:
        if self.unit.kind in (am.UnitKind.TEST_CLASS, am.UnitKind.SUITE):
            header_key = "test"
            sections = self._test_module()
        elif self.unit.kind == am.UnitKind.PAGE_OBJECT:
            header_key = "page"
            sections = self._page_module()
        else:
            header_key = "module"
            sections = self._function_module()

        body = [s.text() for s in sections if s.lines]
        head = [fill(self.syntax.comment, text=f"Generated by testloom from {self.unit.unit_name}")]
        head.extend(self._header_lines(header_key, "\n".join(body)))
        head.extend(self._import_lines())

        gap = "\n" * (self.files.top_level_gap + 1)
        blocks = ["\n".join(head)] + body
        text = gap.join(blocks) + "\n"

        run_gates(text, self.state)
        return am.ConversionUnit(
            qualified_name=_dotted(self.path),
            output_path=self.path,
            kind=self.unit.kind,
            source_unit=self.unit.unit_name,
            text=text,
        )

    # =====================================================================
    # Shared pieces
    # =====================================================================

    def _writer(self, level: int = 0) -> CodeWriter:
        return CodeWriter(self.syntax.indent, level)

    def _constants(self) -> List[CodeWriter]:
        if not self.unit.constants:
            return []
        w = self._writer()
        for constant in self.unit.constants:
            w.line(
                fill(
                    self.files.constant,
                    name=self.naming.ident(constant.name),
                    value=self.renderer.literal(constant.value),
                )
            )
        return [w]

    def _type(self, type_name: str) -> str:
        types = self.profile.types
        if type_name in types:
            return types[type_name]
        base = base_type(type_name)
        if base in types:
            return types[base]
        target = self.state.unit_for_type(base, self.unit) if base else None
        if target is not None and target.kind == am.UnitKind.PAGE_OBJECT:
            self.state.need_class(target)
            return target.simple_name
        return types.get("default", "")

    def _param(self, name: str, type_name: str) -> str:
        rendered = self._type(type_name)
        if rendered:
            return fill(self.files.param, name=name, type=rendered)
        return fill(self.files.untyped_param, name=name)

    def _params(self, method: am.MethodModel, page_param: bool, self_param: bool = False) -> str:
        params = []
        if self_param and self.files.self_param:
            params.append(self.files.self_param)
        if page_param:
            params.append(self.files.page_param)
        for p in method.params:
            if base_type(p.type_name) in DRIVER_TYPES:
                params.append(self.files.page_param)
            else:
                params.append(self._param(self.naming.ident(p.name), p.type_name))
        return ", ".join(params)

    def _returns(self, method: am.MethodModel) -> str:
        rendered = self._type(method.return_type) if method.returns_value else self.files.void_type
        if not rendered or not self.files.return_annotation:
            return ""
        return fill(self.files.return_annotation, type=rendered)

    def _context_objects(self) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for u in reversed((self.unit,) + self.model.superclass_chain(self.unit.unit_name)):
            merged.update(u.context.page_objects)
        return merged

    def _render(
        self,
        w: CodeWriter,
        actions: Sequence[am.Action],
        unit: am.SourceUnit,
        mode: str,
        body: str,
        page: str,
        params: Sequence[str] = (),
        declared: Optional[set] = None,
    ) -> None:
        frame = Frame(
            unit=unit,
            mode=mode,
            page=page,
            body=body,
            params=set(params),
            context_objects=self._context_objects() if mode in ("test", "function") else {},
        )
        if declared is not None:
            frame.declared = declared
        self.renderer.render_body(actions, frame, w)

    def _close_block(self, w: CodeWriter, before: int, close: str) -> None:
        if w.statements == before and self.syntax.empty_block:
            with w.indented():
                w.line(self.syntax.empty_block)
        if close:
            w.line(close)

    def _function(self, method: am.MethodModel, w: CodeWriter) -> None:
        params = self._params(method, page_param=implicit_page(method))
        w.line(
            fill(
                self.files.function_open,
                name=self.naming.ident(method.name),
                params=params,
                returns=self._returns(method),
            )
        )
        before = w.statements
        with w.indented():
            self._render(
                w,
                method.actions,
                self.unit,
                "function",
                f"{self.unit.simple_name}.{method.name}/{method.arity}",
                self.profile.page_ref,
                params=self._param_names(method),
            )
        self._close_block(w, before, self.files.function_close)

    def _param_names(self, method: am.MethodModel) -> List[str]:
        return [p.name for p in method.params if base_type(p.type_name) not in DRIVER_TYPES]

    def _function_sections(self, methods: Sequence[am.MethodModel]) -> List[CodeWriter]:
        sections = []
        for method in methods:
            w = self._writer()
            self._function(method, w)
            sections.append(w)
        return sections

    # =====================================================================
    # Test modules
    # =====================================================================

    def _test_module(self) -> List[CodeWriter]:
        sections = self._constants()
        sections.extend(self._function_sections(self.unit.methods_with_role(am.MethodRole.HELPER)))
        for ctor in self.unit.methods_with_role(am.MethodRole.CONSTRUCTOR):
            if ctor.actions:
                self.state.note(
                    "test-constructor",
                    "test class constructor statements were not converted",
                    ctor.provenance.position,
                )
        if not self.unit.tests:
            return sections

        files = self.files
        chain = (self.unit,) + self.model.superclass_chain(self.unit.unit_name)
        setups = [
            (u, m)
            for u in reversed(chain)
            for m in u.methods_with_role(am.MethodRole.SETUP_ALL, am.MethodRole.SETUP)
        ]
        teardowns = [
            (u, m)
            for u in chain
            for m in u.methods_with_role(am.MethodRole.TEARDOWN, am.MethodRole.TEARDOWN_ALL)
        ]
        if any(m.role == am.MethodRole.SETUP_ALL for _, m in setups) or any(
            m.role == am.MethodRole.TEARDOWN_ALL for _, m in teardowns
        ):
            self.state.note(
                "class-hooks",
                "class-level setup and teardown run around every test in the target",
            )

        level = 1 if files.suite_open else 0
        suite = self._writer()
        title = quote_string(self.unit.simple_name, self.syntax.quote)
        if files.suite_open:
            suite.line(fill(files.suite_open, title=title, name=self.unit.simple_name))

        blocks: List[CodeWriter] = []
        if files.hooks_open:
            hooks = self._fixture_hooks(setups, teardowns, level)
            if hooks is not None:
                blocks.append(hooks)
        else:
            for template, methods, label in (
                (files.hook_before, setups, "setup"),
                (files.hook_after, teardowns, "teardown"),
            ):
                hook = self._hook(template, methods, label, level)
                if hook is not None:
                    blocks.append(hook)
        for test in self.unit.tests:
            blocks.append(self._test(test, level))

        for i, block in enumerate(blocks):
            if i:
                suite.blank(1 if files.suite_open else files.top_level_gap)
            suite.extend(block)
        if files.suite_close:
            suite.line(files.suite_close)
        sections.append(suite)
        return sections

    def _hook_body(self, methods, label: str, w: CodeWriter) -> None:
        declared: set = set()
        for unit, method in methods:
            self._render(
                w,
                method.actions,
                unit,
                "test",
                f"{label}:{unit.simple_name}.{method.name}",
                self.profile.page_ref,
                declared=declared,
            )

    def _hook(self, template: str, methods, label: str, level: int) -> Optional[CodeWriter]:
        if not any(m.actions for _, m in methods):
            return None
        w = self._writer(level)
        w.line(template)
        opened = len(w.lines)
        with w.indented():
            self._hook_body(methods, label, w)
        if len(w.lines) == opened:
            # everything was absorbed into the target's fixtures
            return None
        w.line(self.files.hook_close)
        return w

    def _fixture_hooks(self, setups, teardowns, level: int) -> Optional[CodeWriter]:
        if not any(m.actions for _, m in setups + teardowns):
            return None
        w = self._writer(level)
        w.line(self.files.hooks_open)
        opened = len(w.lines)
        with w.indented():
            self._hook_body(setups, "setup", w)
            rendered = len(w.lines)
            w.line(self.files.hooks_yield)
            self._hook_body(teardowns, "teardown", w)
        if rendered == opened and len(w.lines) == rendered + 1:
            return None
        if self.files.hook_close:
            w.line(self.files.hook_close)
        return w

    def _test(self, test: am.TestCase, level: int) -> CodeWriter:
        files = self.files
        w = self._writer(level)
        title = test.display_name or test.name
        template = files.test_disabled_open if test.disabled else files.test_open
        w.line(
            fill(
                template,
                title=quote_string(title, self.syntax.quote),
                name=self.naming.test(test.name),
            )
        )
        before = w.statements
        with w.indented():
            if test.display_name and files.test_doc:
                w.line(fill(files.test_doc, title=test.display_name))
            self._render(w, test.actions, self.unit, "test", f"test:{test.name}", self.profile.page_ref)
        self._close_block(w, before, files.test_close)
        return w

    # =====================================================================
    # Page objects
    # =====================================================================

    def _page_module(self) -> List[CodeWriter]:
        files = self.files
        self_ref = self.syntax.self_ref
        page_ref = self.profile.page_ref
        member_page = fill(self.profile.member_page_ref, self=self_ref)

        chain = self.model.superclass_chain(self.unit.unit_name)
        base = chain[0] if chain else None
        if base is not None:
            self.state.need_class(base)

        w = self._writer()
        extends = fill(files.extends_clause, base=base.simple_name) if base is not None else ""
        w.line(fill(files.class_open, name=self.unit.simple_name, extends=extends))

        body = self._writer(1)
        if files.field_decl:
            if base is None:
                body.line(fill(files.field_decl, name="page", type=self._type("WebDriver")))
            for f in self.unit.locator_fields:
                body.line(fill(files.field_decl, name=self.naming.ident(f.name), type=self._type("WebElement")))
            for name, type_name in self.unit.context.page_objects.items():
                body.line(fill(files.field_decl, name=self.naming.ident(name), type=self._type(type_name)))
            if body.lines:
                body.blank()

        self._constructor(body, base, page_ref)

        page_methods = self.unit.methods_with_role(am.MethodRole.PAGE_METHOD)
        for method in page_methods:
            body.blank()
            template = files.static_method_open if method.static else files.method_open
            params = self._params(method, page_param=False, self_param=not method.static)
            body.line(
                fill(
                    template,
                    name=self.naming.ident(method.name),
                    params=params,
                    returns=self._returns(method),
                )
            )
            before = body.statements
            with body.indented():
                self._render(
                    body,
                    method.actions,
                    self.unit,
                    "page",
                    f"{self.unit.simple_name}.{method.name}/{method.arity}",
                    member_page,
                    params=self._param_names(method),
                )
            self._close_block(body, before, files.method_close)

        w.extend(body)
        if files.class_close:
            w.line(files.class_close)
        return self._constants() + [w]

    def _constructor(self, w: CodeWriter, base: Optional[am.SourceUnit], page_ref: str) -> None:
        files = self.files
        self_ref = self.syntax.self_ref
        ctors = self.unit.methods_with_role(am.MethodRole.CONSTRUCTOR)
        if len(ctors) > 1:
            self.state.note(
                "constructors",
                f"{self.unit.simple_name} has {len(ctors)} constructors; only the first was converted",
            )
        ctor = ctors[0] if ctors else None

        extra = []
        if ctor is not None:
            extra = [
                self._param(self.naming.ident(p.name), p.type_name)
                for p in ctor.params
                if base_type(p.type_name) not in DRIVER_TYPES
            ]
        params = [files.self_param] if files.self_param else []
        params += [files.page_param] + extra
        w.line(fill(files.constructor_open, params=", ".join(params)))
        with w.indented():
            if base is not None:
                w.line(fill(files.super_init, page=page_ref))
            else:
                w.line(fill(files.member_init, self=self_ref, name="page", value=page_ref))

            frame = Frame(unit=self.unit, mode="page", page=page_ref, body=f"{self.unit.simple_name}.<init>")
            for f in self.unit.locator_fields:
                expr = self.renderer.locator_expression(f.locator, page_ref, frame, f.provenance)
                self.renderer._trace("locator", f.provenance, expr, frame, locator=f.locator, scope=page_ref)
                w.line(fill(files.member_init, self=self_ref, name=self.naming.ident(f.name), value=expr))
            for name, type_name in self.unit.context.page_objects.items():
                target = self.state.unit_for_type(type_name, self.unit)
                if target is None or target.kind != am.UnitKind.PAGE_OBJECT:
                    continue
                self.state.need_class(target)
                value = fill(self.syntax.construct_, type=target.simple_name, args=page_ref)
                w.line(fill(files.member_init, self=self_ref, name=self.naming.ident(name), value=value))
            if ctor is not None and ctor.actions:
                self._render(
                    w,
                    ctor.actions,
                    self.unit,
                    "page",
                    f"{self.unit.simple_name}.<init>",
                    fill(self.profile.member_page_ref, self=self_ref),
                    params=self._param_names(ctor),
                )
        if files.constructor_close:
            w.line(files.constructor_close)

    # =====================================================================
    # Utility modules
    # =====================================================================

    def _function_module(self) -> List[CodeWriter]:
        methods = [m for m in self.unit.methods if m.role != am.MethodRole.CONSTRUCTOR]
        return self._constants() + self._function_sections(methods)

    # =====================================================================
    # Imports
    # =====================================================================

    def _import_target(self, unit: am.SourceUnit) -> Dict[str, str]:
        target = output_path(unit, self.profile)
        relative = posixpath.relpath(_module_path(target), posixpath.dirname(self.path) or ".")
        if not relative.startswith("."):
            relative = "./" + relative
        return {"path": relative, "module": _dotted(target)}

    def _header_lines(self, key: str, body: str) -> List[str]:
        lines = []
        for header in self.files.header_imports.get(key, []):
            if not header.names:
                lines.extend(header.template.splitlines())
                continue
            used = [name for name in header.names if re.search(rf"(?<![\w.$]){re.escape(name)}(?![\w$])", body)]
            if used:
                lines.extend(fill(header.template, names=", ".join(used)).splitlines())
        return lines

    def _import_lines(self) -> List[str]:
        lines = []
        for unit_name in sorted(self.state.class_imports):
            unit = self.state.class_imports[unit_name]
            lines.append(fill(self.files.import_class, name=unit.simple_name, **self._import_target(unit)))
        for unit_name in sorted(self.state.function_imports):
            unit = self.model.unit(unit_name)
            names = ", ".join(sorted(self.state.function_imports[unit_name]))
            lines.append(fill(self.files.import_functions, names=names, **self._import_target(unit)))
        for unit_name in sorted(self.state.module_imports):
            unit = self.state.module_imports[unit_name]
            alias = self.state.module_alias(unit)
            lines.append(fill(self.files.import_module, alias=alias, **self._import_target(unit)))
        return lines


# =========================================================================
# Run-level emission
# =========================================================================


def _browser(model: am.ActionModel) -> str:
    for unit in model.units:
        if unit.context.browser:
            return unit.context.browser
    return DEFAULT_BROWSER


def support_units(model: am.ActionModel, profile: TargetProfile, emitted: Sequence[am.ConversionUnit]) -> List[am.ConversionUnit]:
    """Project files emitted once per run (runner config, package markers)."""
    values = {"browser": _browser(model), "profile": profile.name}
    units = [
        am.ConversionUnit(
            qualified_name=path,
            output_path=path,
            kind=am.UnitKind.SUPPORT,
            source_unit="",
            text=fill(template, **values),
        )
        for path, template in sorted(profile.support_files.items())
    ]
    if profile.package_marker:
        directories = set()
        for unit in emitted:
            directory = posixpath.dirname(unit.output_path)
            while directory:
                directories.add(directory)
                directory = posixpath.dirname(directory)
        for directory in sorted(directories):
            path = posixpath.join(directory, profile.package_marker)
            units.append(am.ConversionUnit(path, path, am.UnitKind.SUPPORT, "", ""))
    return units


def _drop_dependents(result: EmitResult, imports: Dict[str, Set[str]]) -> None:
    """Fail converted units that import a unit which did not convert.

    Repeats until stable, so a failure propagates through chains of imports.
    """
    changed = True
    while changed:
        changed = False
        for converted in list(result.units):
            name = converted.source_unit
            broken = sorted(imports.get(name, set()) & set(result.failed))
            if not broken:
                continue
            error = EmitError(
                EmitErrorKind.FAILED_DEPENDENCY,
                f"depends on {', '.join(broken)}, which failed to convert",
                name,
            )
            logger.warning(f"Emission failed for {name}: {error.message}")
            result.units.remove(converted)
            result.failed[name] = error
            result.diagnostics.append(error.to_diagnostic())
            changed = True


def emit(
    model: am.ActionModel,
    profile: TargetProfile,
    delegate_strategy: Optional[str] = None,
) -> EmitResult:
    """Emit every unit of a linked model; failures are collected per unit."""
    strategy = delegate_strategy or profile.delegate_strategy
    result = EmitResult()
    imports: Dict[str, Set[str]] = {}
    logger.info(f"Emitting {len(model.units)} units with profile '{profile.name}' (delegate strategy: {strategy})")

    for unit in sorted(model.units, key=lambda u: u.unit_name):
        emitter = UnitEmitter(unit, model, profile, strategy)
        try:
            converted = emitter.emit()
        except EmitError as e:
            if not e.unit_name:
                e.unit_name = unit.unit_name
            logger.warning(f"Emission failed for {unit.unit_name}: {e.message}")
            result.failed[unit.unit_name] = e
            result.diagnostics.append(e.to_diagnostic())
            result.diagnostics.extend(emitter.state.diagnostics)
            continue
        result.units.append(converted)
        result.diagnostics.extend(emitter.state.diagnostics)
        imports[unit.unit_name] = emitter.state.imported_units() - {unit.unit_name}
        logger.debug(f"Emitted {unit.unit_name} -> {converted.output_path}")

    _drop_dependents(result, imports)
    if result.units:
        result.units.extend(support_units(model, profile, result.units))
    return result
