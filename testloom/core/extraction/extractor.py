"""Semantic extractor: SyntaxTree -> SourceUnit.

Walks method bodies in source order and recognizes Selenium, JUnit and
TestNG call shapes, turning them into Action nodes.  Statements that set
up the browser (driver creation, waits, page-object instantiation) are
absorbed into the unit's TestContext instead of becoming actions.
Anything unrecognized becomes an Opaque action plus a warning.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..action_model.models import (
    Action,
    Assert,
    BinaryOp,
    Bind,
    Branch,
    BrowserCommand,
    ConstantField,
    Construct,
    Contains,
    Delegate,
    DelegateCall,
    DriverRef,
    ElementQuery,
    ElementRef,
    ElementValue,
    Interact,
    Literal,
    Locate,
    Locator,
    LocatorField,
    MethodModel,
    MethodRole,
    Navigate,
    Not,
    Opaque,
    PageObjectModel,
    PageQuery,
    Param,
    Pause,
    Pick,
    Probe,
    Provenance,
    Return,
    ScriptCall,
    ScriptExec,
    SourceUnit,
    TestCase,
    TestContext,
    UnitKind,
    Value,
    VarRef,
    Wait,
    frozen_map,
)
from ..action_model.walk import iter_delegate_calls
from ..ast_parser import models as syn
from ..constants import (
    DEFAULT_WAIT_TIMEOUT_SECONDS,
    FRAMEWORK_IMPORT_PREFIXES,
    FRAMEWORK_JUNIT5,
    FRAMEWORK_TESTNG,
)
from ..diagnostics import Diagnostic, ParseError, Position, Severity, UnrecognizedConstruct
from . import scope as sc
from .classifier import classify
from .patterns import (
    ACTIONS_CHAIN_NOOPS,
    ACTIONS_CHAIN_OPS,
    ASSERT_ARITY,
    ASSERT_METHODS,
    ASSERT_RECEIVERS,
    BINARY_OPERATORS,
    BY_METHODS,
    DISABLED_ANNOTATIONS,
    DISPLAY_NAME_ANNOTATIONS,
    DRIVER_CLASSES,
    DRIVER_TYPES,
    ELEMENT_INTERACTIONS,
    ELEMENT_QUERIES,
    ELEMENT_TYPES,
    FINDBY_KEYS,
    HOW_VALUES,
    KEYS,
    LOCATOR_ANNOTATIONS,
    PAGE_QUERIES,
    SCRIPT_TYPES,
    SELECT_OPS,
    SETUP_ALL_ANNOTATIONS,
    SETUP_ANNOTATIONS,
    TEARDOWN_ALL_ANNOTATIONS,
    TEARDOWN_ANNOTATIONS,
    TEST_ANNOTATIONS,
    UNBOXING,
    WAIT_CONDITIONS,
    WAIT_TYPES,
    base_type,
    is_project_type,
    static_import_owner,
    type_argument,
)
from .scope import Binding, Scope

logger = logging.getLogger(__name__)

_DURATION_FACTORS = {"ofMillis": 0.001, "ofSeconds": 1.0, "ofMinutes": 60.0}
_CONTEXT_ROLES = (MethodRole.SETUP, MethodRole.SETUP_ALL, MethodRole.CONSTRUCTOR)


def detect_framework(imports: Sequence[str]) -> str:
    """JUnit 5, TestNG or JUnit 4, from the unit's imports."""
    paths = [imp.replace("static ", "", 1) for imp in imports]
    for prefix, framework in FRAMEWORK_IMPORT_PREFIXES.items():
        if any(p.startswith(prefix) for p in paths):
            return framework
    return ""


def _is_name(expr: Optional[syn.Expr], name: str) -> bool:
    return isinstance(expr, syn.Name) and expr.name == name


def _this_field(expr: syn.Expr) -> Optional[str]:
    if isinstance(expr, syn.FieldAccess) and isinstance(expr.target, syn.This):
        return expr.name
    return None


def _strip_casts(expr: syn.Expr) -> syn.Expr:
    while isinstance(expr, syn.Cast):
        expr = expr.expr
    return expr


class SemanticExtractor:
    """Converts one SyntaxTree into a SourceUnit."""

    def __init__(self, tree: syn.SyntaxTree):
        self.tree = tree
        self.unit_name = tree.unit_name
        self.framework = detect_framework(tree.imports)

        self._diagnostics: List[Diagnostic] = []
        self._class_scope = Scope()
        self._decl: Optional[syn.ClassDecl] = None
        self._constants: Dict[str, Literal] = {}

        # TestContext accumulators
        self._browser = ""
        self._default_timeout: Optional[float] = None
        self._timeouts: Dict[str, float] = {}
        self._page_objects: Dict[str, str] = {}
        self._driver_names: List[str] = []
        self._actions_aliases: List[str] = []
        self._script_aliases: List[str] = []

        # per-method state
        self._method: Optional[syn.MethodDecl] = None
        self._role: Optional[MethodRole] = None
        self._ref_counter = 0
        self._call_counter = 0
        self._pending: List[Action] = []

    # =========================================================================
    # Entry point
    # =========================================================================

    def extract(self) -> SourceUnit:
        decl = self.tree.primary_class
        if decl is None:
            raise ParseError(self.unit_name, Position(1), "no class declaration found")
        self._decl = decl

        for other in self.tree.classes:
            if other is not decl:
                self._warn(f"secondary top-level class '{other.name}' ignored", other.span)
        for nested in decl.nested:
            self._warn(f"nested type '{nested}' ignored", decl.span)
        for span in self.tree.recovered:
            self._warn("syntax error recovered; affected statements kept as opaque text", span)

        kind = classify(decl)
        locator_fields, constants = self._scan_fields(decl)

        setup_names = tuple(
            m.name for m in decl.methods
            if self._has_annotation(m, SETUP_ANNOTATIONS | SETUP_ALL_ANNOTATIONS)
        )
        teardown_names = tuple(
            m.name for m in decl.methods
            if self._has_annotation(m, TEARDOWN_ANNOTATIONS | TEARDOWN_ALL_ANNOTATIONS)
        )

        # Constructors and setup first, so their context is known to every body.
        first = [m for m in decl.methods if self._is_context_producer(m)]
        rest = [m for m in decl.methods if not self._is_context_producer(m)]

        methods: List[MethodModel] = []
        tests: List[TestCase] = []
        for method in first + rest:
            if self._has_annotation(method, TEST_ANNOTATIONS):
                tests.append(self._test_case(method, setup_names, teardown_names))
            else:
                methods.append(self._method_model(method, self._method_role(method, kind)))

        methods.sort(key=lambda m: m.provenance.start_line)
        tests.sort(key=lambda t: t.provenance.start_line)

        if kind == UnitKind.TEST_CLASS:
            for test in tests:
                if any(c.style != "self" for c in iter_delegate_calls(test.actions)):
                    kind = UnitKind.SUITE
                    break

        page_object = None
        if kind == UnitKind.PAGE_OBJECT:
            page_object = PageObjectModel(
                name=decl.name,
                fields=tuple(locator_fields),
                methods=tuple(m for m in methods if m.role == MethodRole.PAGE_METHOD),
            )

        package = self.tree.package
        unit = SourceUnit(
            unit_name=self.unit_name,
            qualified_name=f"{package}.{decl.name}" if package else decl.name,
            simple_name=decl.name,
            package=package,
            kind=kind,
            imports=tuple(self.tree.imports),
            provenance=self._prov(decl.span),
            superclass=base_type(decl.extends) if decl.extends else "",
            framework=self.framework,
            locator_fields=tuple(locator_fields),
            constants=tuple(constants),
            methods=tuple(methods),
            tests=tuple(tests),
            context=TestContext(
                browser=self._browser,
                default_timeout=self._default_timeout,
                timeouts=frozen_map(self._timeouts),
                page_objects=frozen_map(self._page_objects),
                driver_names=tuple(self._driver_names) or ("driver",),
                actions_aliases=tuple(self._actions_aliases),
                script_aliases=tuple(self._script_aliases),
            ),
            page_object=page_object,
            diagnostics=tuple(self._diagnostics),
        )
        logger.debug(
            f"Extracted {self.unit_name}: kind={kind.value}, "
            f"{len(tests)} tests, {len(methods)} methods, {len(self._diagnostics)} diagnostics"
        )
        return unit

    # =========================================================================
    # Fields and members
    # =========================================================================

    def _scan_fields(self, decl: syn.ClassDecl) -> Tuple[List[LocatorField], List[ConstantField]]:
        locator_fields: List[LocatorField] = []
        constants: List[ConstantField] = []
        scope = self._class_scope

        for f in decl.fields:
            t = base_type(f.type_name)
            prov = self._prov(f.span)
            find_by = next((a for a in f.annotations if a.name in LOCATOR_ANNOTATIONS), None)

            if find_by is not None:
                locator = self._find_by_locator(find_by, f)
                multiple = t == "List"
                if locator is None:
                    scope.define(f.name, Binding(sc.VALUE, f.type_name, is_field=True))
                    continue
                locator_fields.append(LocatorField(f.name, locator, prov, multiple))
                ref = ElementRef(f"field:{f.name}", f.name, "field")
                scope.define(
                    f.name,
                    Binding(sc.ELEMENTS if multiple else sc.ELEMENT, f.type_name, ref=ref, is_field=True),
                )
            elif t in DRIVER_TYPES:
                scope.define(f.name, Binding(sc.DRIVER, f.type_name, is_field=True))
                self._add_driver_name(f.name)
                if isinstance(f.init, syn.New):
                    self._absorb(f.name, f.type_name, f.init, scope, f.span, field=True)
            elif t in WAIT_TYPES:
                scope.define(f.name, Binding(sc.WAIT, f.type_name, is_field=True))
                if f.init is not None:
                    self._absorb(f.name, f.type_name, f.init, scope, f.span, field=True)
            elif t == "Actions":
                scope.define(f.name, Binding(sc.ACTIONS, f.type_name, is_field=True))
                self._actions_aliases.append(f.name)
            elif t in SCRIPT_TYPES:
                scope.define(f.name, Binding(sc.SCRIPT, f.type_name, is_field=True))
                self._script_aliases.append(f.name)
            elif t == "By" and f.init is not None:
                try:
                    locator = self._locator(f.init, scope)
                except UnrecognizedConstruct as e:
                    self._warn(f"locator field '{f.name}' not recognized: {e.message}", f.span)
                    scope.define(f.name, Binding(sc.VALUE, f.type_name, is_field=True))
                    continue
                locator_fields.append(LocatorField(f.name, locator, prov))
                scope.define(f.name, Binding(sc.BY, f.type_name, locator=locator, is_field=True))
            elif is_project_type(f.type_name):
                scope.define(f.name, Binding(sc.PAGE_OBJECT, t, is_field=True))
                self._page_objects[f.name] = t
            elif isinstance(f.init, syn.Literal) and f.init.kind != "null":
                value = self._literal(f.init)
                constants.append(ConstantField(f.name, value, prov))
                self._constants[f.name] = value
                scope.define(f.name, Binding(sc.VALUE, f.type_name, is_field=True))
            else:
                scope.define(f.name, Binding(sc.VALUE, f.type_name, is_field=True))

        return locator_fields, constants

    def _find_by_locator(self, ann: syn.Annotation, f: syn.FieldDecl) -> Optional[Locator]:
        try:
            if "how" in ann.arguments and "using" in ann.arguments:
                how = ann.arguments["how"]
                how_name = how.name if isinstance(how, syn.FieldAccess) else getattr(how, "name", "")
                strategy = HOW_VALUES.get(how_name)
                if strategy is None:
                    raise UnrecognizedConstruct(f"unsupported How value '{how_name}'")
                return Locator(strategy, self._value(ann.arguments["using"], self._class_scope))
            for key, expr in ann.arguments.items():
                if key in FINDBY_KEYS:
                    return Locator(FINDBY_KEYS[key], self._value(expr, self._class_scope))
            raise UnrecognizedConstruct(f"unsupported locator annotation {ann.text}")
        except UnrecognizedConstruct as e:
            self._warn(f"field '{f.name}': {e.message}", f.span)
            return None

    def _is_context_producer(self, method: syn.MethodDecl) -> bool:
        return method.is_constructor or self._has_annotation(
            method, SETUP_ANNOTATIONS | SETUP_ALL_ANNOTATIONS
        )

    def _method_role(self, method: syn.MethodDecl, kind: UnitKind) -> MethodRole:
        if method.is_constructor:
            return MethodRole.CONSTRUCTOR
        if self._has_annotation(method, SETUP_ANNOTATIONS):
            return MethodRole.SETUP
        if self._has_annotation(method, TEARDOWN_ANNOTATIONS):
            return MethodRole.TEARDOWN
        if self._has_annotation(method, SETUP_ALL_ANNOTATIONS):
            self._warn(f"class-level hook '{method.name}' runs before each test", method.span)
            return MethodRole.SETUP_ALL
        if self._has_annotation(method, TEARDOWN_ALL_ANNOTATIONS):
            self._warn(f"class-level hook '{method.name}' runs after each test", method.span)
            return MethodRole.TEARDOWN_ALL
        if kind == UnitKind.PAGE_OBJECT:
            return MethodRole.PAGE_METHOD
        if kind == UnitKind.TEST_CLASS:
            return MethodRole.HELPER
        return MethodRole.FUNCTION

    def _method_model(self, method: syn.MethodDecl, role: MethodRole) -> MethodModel:
        actions = self._method_actions(method, role)
        return MethodModel(
            name=method.name,
            params=tuple(Param(p.name, p.type_name) for p in method.params),
            return_type=method.return_type,
            role=role,
            actions=tuple(actions),
            provenance=self._prov(method.span),
            static="static" in method.modifiers,
        )

    def _test_case(
        self, method: syn.MethodDecl, setup: Tuple[str, ...], teardown: Tuple[str, ...]
    ) -> TestCase:
        display_name = ""
        disabled = False
        for ann in method.annotations:
            if ann.name in DISABLED_ANNOTATIONS:
                disabled = True
            elif ann.name in DISPLAY_NAME_ANNOTATIONS:
                display_name = self._annotation_string(ann, "value")
            elif ann.name in TEST_ANNOTATIONS:
                enabled = ann.arguments.get("enabled")
                if isinstance(enabled, syn.Literal) and enabled.value is False:
                    disabled = True
                display_name = display_name or self._annotation_string(ann, "description")

        if method.params:
            self._warn(f"parameterized test '{method.name}' parameters are not converted", method.span)

        return TestCase(
            name=method.name,
            actions=tuple(self._method_actions(method, None)),
            provenance=self._prov(method.span),
            setup=setup,
            teardown=teardown,
            display_name=display_name,
            disabled=disabled,
        )

    def _method_actions(self, method: syn.MethodDecl, role: Optional[MethodRole]) -> List[Action]:
        self._method = method
        self._role = role
        self._ref_counter = 0

        scope = self._class_scope.child()
        for p in method.params:
            scope.define(p.name, self._param_binding(method, p))
        return self._block(method.body, scope)

    def _param_binding(self, method: syn.MethodDecl, p: syn.Param) -> Binding:
        t = base_type(p.type_name)
        if t in DRIVER_TYPES:
            return Binding(sc.DRIVER, p.type_name)
        if t in ELEMENT_TYPES:
            return Binding(sc.ELEMENT, p.type_name, ref=ElementRef(f"param:{method.name}:{p.name}", p.name, "param"))
        if t == "List" and type_argument(p.type_name) in ELEMENT_TYPES:
            return Binding(sc.ELEMENTS, p.type_name, ref=ElementRef(f"param:{method.name}:{p.name}", p.name, "param"))
        if t in WAIT_TYPES:
            return Binding(sc.WAIT, p.type_name)
        if t in SCRIPT_TYPES:
            return Binding(sc.SCRIPT, p.type_name)
        if t == "By":
            return Binding(sc.BY, p.type_name)
        if is_project_type(p.type_name):
            return Binding(sc.PAGE_OBJECT, t)
        return Binding(sc.VALUE, p.type_name)

    # =========================================================================
    # Statements
    # =========================================================================

    def _block(self, stmts: Sequence[syn.Stmt], scope: Scope) -> List[Action]:
        actions: List[Action] = []
        for stmt in stmts:
            actions.extend(self._statement(stmt, scope))
        return actions

    def _statement(self, stmt: syn.Stmt, scope: Scope) -> List[Action]:
        saved = self._pending
        self._pending = []
        try:
            actions = self._convert_statement(stmt, scope)
            return self._pending + actions
        except UnrecognizedConstruct as e:
            e.unit_name = self.unit_name
            e.position = Position(stmt.span.start_line, stmt.span.start_column)
            self._diagnostics.append(e.to_diagnostic())
            if isinstance(stmt, syn.LocalVar) and scope.lookup(stmt.name) is None:
                scope.define(stmt.name, Binding(sc.VALUE, stmt.type_name))
            return [Opaque(text=stmt.text.strip(), reason=e.message, provenance=self._prov(stmt.span))]
        finally:
            self._pending = saved

    def _convert_statement(self, stmt: syn.Stmt, scope: Scope) -> List[Action]:
        if isinstance(stmt, syn.LocalVar):
            return self._bind(stmt.name, stmt.type_name, stmt.init, scope, stmt.span, declare=True)

        if isinstance(stmt, syn.Assign):
            return self._assign(stmt, scope)

        if isinstance(stmt, syn.ExprStmt):
            if isinstance(stmt.expr, syn.Call):
                return self._call_statement(stmt.expr, scope, self._prov(stmt.span))
            raise UnrecognizedConstruct(f"unsupported expression statement '{stmt.text.strip()}'")

        if isinstance(stmt, syn.If):
            return self._if(stmt, scope)

        if isinstance(stmt, syn.Try):
            return self._try(stmt, scope)

        if isinstance(stmt, syn.Return):
            value = self._value(stmt.value, scope) if stmt.value is not None else None
            return [Return(value, self._prov(stmt.span))]

        if isinstance(stmt, syn.OpaqueStmt):
            if stmt.reason == "constructor invocation" and self._role == MethodRole.CONSTRUCTOR:
                return []
            raise UnrecognizedConstruct(stmt.reason)

        raise UnrecognizedConstruct(f"unsupported statement '{stmt.text.strip()}'")

    def _assign(self, stmt: syn.Assign, scope: Scope) -> List[Action]:
        target = stmt.target
        name = _this_field(target)
        if name is None and isinstance(target, syn.Name):
            name = target.name
        if name is None:
            raise UnrecognizedConstruct(f"unsupported assignment target '{stmt.text.strip()}'")

        qualified = _this_field(target) is not None
        binding = scope.lookup_field(name) if qualified else scope.lookup(name)
        type_name = binding.type_name if binding else ""
        is_field = qualified or not scope.is_local(name)
        if self._absorb(name, type_name, stmt.value, scope, stmt.span, field=is_field):
            return []
        if is_field:
            raise UnrecognizedConstruct(f"assignment to field '{name}' is not supported")
        return self._bind(name, type_name, stmt.value, scope, stmt.span, declare=False)

    def _bind(
        self,
        name: str,
        type_name: str,
        init: Optional[syn.Expr],
        scope: Scope,
        span: syn.Span,
        declare: bool,
    ) -> List[Action]:
        """Local declaration or reassignment."""
        prov = self._prov(span)
        t = base_type(type_name)

        if init is None:
            if t in ELEMENT_TYPES or (t == "List" and type_argument(type_name) in ELEMENT_TYPES):
                scope.define(name, Binding(sc.ELEMENT, type_name))
                return []
            scope.define(name, Binding(sc.VALUE, type_name))
            return [Bind(name, Literal(None, "null"), prov, declare)]

        if self._absorb(name, type_name, init, scope, span, field=False):
            return []

        stripped = _strip_casts(init)

        if t == "By":
            scope.define(name, Binding(sc.BY, type_name, locator=self._locator(init, scope)))
            return []

        # WebElement el = wait.until(visibilityOfElementLocated(...))
        if isinstance(stripped, syn.Call) and stripped.name == "until" and self._is_wait(stripped.target, scope):
            actions, target_ref, target_locator = self._wait(stripped, scope, prov)
            if t in ELEMENT_TYPES or t == "var":
                if target_locator is not None:
                    ref = self._named_ref(name)
                    actions.append(Locate(target_locator, ref, prov))
                    scope.define(name, Binding(sc.ELEMENT, type_name, ref=ref))
                    return actions
                if target_ref is not None:
                    scope.define(name, Binding(sc.ELEMENT, type_name, ref=target_ref))
                    return actions
            if t in ELEMENT_TYPES:
                raise UnrecognizedConstruct(f"unsupported wait result binding '{name}'")
            scope.define(name, Binding(sc.VALUE, type_name))
            return actions + [Bind(name, Literal(True, "boolean"), prov, declare)]

        # Select dropdown = new Select(element)
        if isinstance(stripped, syn.New) and base_type(stripped.type_name) == "Select":
            if len(stripped.args) != 1:
                raise UnrecognizedConstruct("unsupported Select constructor")
            ref, actions = self._bound_element(name, stripped.args[0], scope, prov)
            scope.define(name, Binding(sc.SELECT, type_name, ref=ref))
            return actions

        if self._is_element_expr(stripped, scope):
            ref, actions = self._bound_element(name, stripped, scope, prov)
            multiple = any(isinstance(a, Locate) and a.multiple for a in actions) or t == "List"
            scope.define(name, Binding(sc.ELEMENTS if multiple else sc.ELEMENT, type_name, ref=ref))
            return actions

        if isinstance(stripped, syn.Call):
            if stripped.name in ("executeScript", "executeAsyncScript") and self._is_script_receiver(
                stripped.target, scope
            ):
                script = self._script(stripped, scope)
                scope.define(name, Binding(sc.VALUE, type_name))
                return [ScriptExec(script.code, script.args, prov, bind=name, declare=declare)]

            call = self._delegate_call(stripped, scope)
            if call is not None:
                if is_project_type(type_name):
                    scope.define(name, Binding(sc.PAGE_OBJECT, t))
                else:
                    scope.define(name, Binding(sc.VALUE, type_name))
                return [Delegate(call, prov, bind=name, declare=declare)]

        value = self._value(init, scope)
        if scope.lookup(name) is None or declare:
            kind = sc.PAGE_OBJECT if is_project_type(type_name) else sc.VALUE
            scope.define(name, Binding(kind, t if kind == sc.PAGE_OBJECT else type_name))
        return [Bind(name, value, prov, declare)]

    def _bound_element(
        self, name: str, expr: syn.Expr, scope: Scope, prov: Provenance
    ) -> Tuple[ElementRef, List[Action]]:
        """An element expression bound to a local: the lookup renders as a declaration."""
        expr = _strip_casts(expr)
        if isinstance(expr, syn.Call) and expr.name in ("findElement", "findElements") and len(expr.args) == 1:
            parent = None if self._is_driver(expr.target, scope) else self._element(expr.target, scope, prov)
            ref = self._named_ref(name)
            locate = Locate(
                self._locator(expr.args[0], scope),
                ref,
                prov,
                multiple=expr.name == "findElements",
                parent=parent,
            )
            return ref, [locate]
        if isinstance(expr, syn.Call) and expr.name == "get" and len(expr.args) == 1:
            source = self._element(expr.target, scope, prov)
            ref = self._named_ref(name)
            return ref, [Pick(source, self._value(expr.args[0], scope), ref, prov)]
        # alias of an existing element
        return self._element(expr, scope, prov), []

    def _absorb(
        self,
        name: str,
        type_name: str,
        init: syn.Expr,
        scope: Scope,
        span: syn.Span,
        field: bool,
    ) -> bool:
        """Fold context-producing statements into the TestContext."""
        target_scope = self._class_scope if field else scope
        t = base_type(type_name)

        if isinstance(init, syn.New):
            created = base_type(init.type_name)
            if created in DRIVER_CLASSES:
                self._browser = self._browser or DRIVER_CLASSES[created]
                target_scope.define(name, Binding(sc.DRIVER, created, is_field=field))
                self._add_driver_name(name)
                return True
            if created in WAIT_TYPES:
                timeout = self._timeout_of_new(init, scope)
                target_scope.define(name, Binding(sc.WAIT, created, timeout=timeout, is_field=field))
                if timeout is not None and (field or self._role in _CONTEXT_ROLES):
                    self._timeouts[name] = timeout
                    if self._default_timeout is None:
                        self._default_timeout = timeout
                return True
            if created == "Actions":
                target_scope.define(name, Binding(sc.ACTIONS, created, is_field=field))
                if name not in self._actions_aliases:
                    self._actions_aliases.append(name)
                return True
            if is_project_type(created) and all(
                self._is_driver(a, scope) or isinstance(_strip_casts(a), syn.This) for a in init.args
            ):
                target_scope.define(name, Binding(sc.PAGE_OBJECT, created, is_field=field))
                self._page_objects[name] = created
                return True
            return False

        if isinstance(init, syn.Cast) and base_type(init.type_name) in SCRIPT_TYPES:
            target_scope.define(name, Binding(sc.SCRIPT, init.type_name, is_field=field))
            if name not in self._script_aliases:
                self._script_aliases.append(name)
            return True

        if self._is_driver(init, scope) and (t in DRIVER_TYPES or not type_name):
            target_scope.define(name, Binding(sc.DRIVER, type_name or "WebDriver", is_field=field))
            self._add_driver_name(name)
            return True

        if t in DRIVER_TYPES:
            # driver obtained from a factory: the target fixture provides the page
            self._info(f"driver '{name}' obtained from '{init.text.strip()}'; using the target page", span)
            target_scope.define(name, Binding(sc.DRIVER, type_name, is_field=field))
            self._add_driver_name(name)
            return True

        if isinstance(init, syn.Call) and _is_name(init.target, "PageFactory") and init.name == "initElements":
            target_scope.define(name, Binding(sc.PAGE_OBJECT, base_type(type_name), is_field=field))
            self._page_objects[name] = base_type(type_name)
            return True

        return False

    def _if(self, stmt: syn.If, scope: Scope) -> List[Action]:
        cond = stmt.condition
        # if (driver != null) { driver.quit(); }
        if isinstance(cond, syn.Binary) and cond.op == "!=" and isinstance(cond.right, syn.Literal) and cond.right.kind == "null":
            guarded = _this_field(cond.left) or (cond.left.name if isinstance(cond.left, syn.Name) else None)
            binding = scope.lookup(guarded) if guarded else None
            if binding is not None and binding.kind in (sc.DRIVER, sc.WAIT, sc.PAGE_OBJECT, sc.SCRIPT, sc.ACTIONS):
                return self._block(stmt.then, scope.child())

        condition = self._value(cond, scope)
        then = self._block(stmt.then, scope.child())
        otherwise = self._block(stmt.otherwise, scope.child())
        return [Branch(condition, tuple(then), tuple(otherwise), self._prov(stmt.span))]

    def _try(self, stmt: syn.Try, scope: Scope) -> List[Action]:
        body = self._block(stmt.body, scope.child())
        catch_types = {base_type(t) for c in stmt.catches for t in c.types}

        if not stmt.catches or catch_types <= {"InterruptedException"}:
            # try { Thread.sleep(..) } catch (InterruptedException e) { ... }
            result = body
        else:
            if len(stmt.catches) > 1:
                self._warn("multiple catch clauses; only the first is used as the fallback", stmt.span)
            fallback = self._block(stmt.catches[0].body, scope.child())
            result = [Probe(tuple(body), tuple(fallback), self._prov(stmt.span))]

        if stmt.finally_body:
            result = result + self._block(stmt.finally_body, scope.child())
        return result

    # =========================================================================
    # Calls in statement position
    # =========================================================================

    def _call_statement(self, call: syn.Call, scope: Scope, prov: Provenance) -> List[Action]:
        name = call.name
        target = call.target

        if name in ASSERT_METHODS and (target is None or (isinstance(target, syn.Name) and target.name in ASSERT_RECEIVERS)):
            return [self._assert(call, scope, prov)]

        if _is_name(target, "Thread") and name == "sleep" and len(call.args) == 1:
            return [Pause(self._value(call.args[0], scope), prov)]

        if _is_name(target, "PageFactory") and name == "initElements":
            return []

        if self._is_driver(target, scope):
            if name == "get" and len(call.args) == 1:
                return [Navigate(self._value(call.args[0], scope), prov)]
            if name in ("quit", "close") and not call.args:
                return [BrowserCommand(name, prov)]
            if name in ("executeScript", "executeAsyncScript"):
                script = self._script(call, scope)
                return [ScriptExec(script.code, script.args, prov)]
            raise UnrecognizedConstruct(f"unsupported driver call '{name}'")

        command = self._driver_chain_command(call, scope, prov)
        if command is not None:
            return command

        if name == "until" and self._is_wait(target, scope):
            actions, _, _ = self._wait(call, scope, prov)
            return actions

        if name == "perform":
            chain_actions = self._actions_chain(call, scope, prov)
            if chain_actions is not None:
                return chain_actions

        if name in SELECT_OPS and len(call.args) == 1:
            ref = self._select_target(target, scope, prov)
            return [Interact(ref, name, (self._value(call.args[0], scope),), prov)]

        if name in ("executeScript", "executeAsyncScript") and self._is_script_receiver(target, scope):
            script = self._script(call, scope)
            return [ScriptExec(script.code, script.args, prov)]

        if name in ELEMENT_INTERACTIONS and target is not None and self._is_element_expr(target, scope):
            ref = self._element(target, scope, prov)
            return self._interactions(ref, name, call.args, scope, prov)

        delegate = self._delegate_call(call, scope)
        if delegate is not None:
            return [Delegate(delegate, prov)]

        raise UnrecognizedConstruct(f"unrecognized call '{call.text.strip()}'")

    def _driver_chain_command(
        self, call: syn.Call, scope: Scope, prov: Provenance
    ) -> Optional[List[Action]]:
        """``driver.navigate().x()`` and ``driver.manage()...`` chains."""
        chain: List[syn.Call] = []
        node: Optional[syn.Expr] = call
        while isinstance(node, syn.Call):
            chain.insert(0, node)
            node = node.target
        if not chain or not self._is_driver(node, scope) or chain[0].name not in ("navigate", "manage"):
            return None
        names = [c.name for c in chain]

        if names[:1] == ["navigate"]:
            if names == ["navigate", "to"] and len(call.args) == 1:
                return [Navigate(self._value(call.args[0], scope), prov)]
            if len(names) == 2 and names[1] in ("back", "forward", "refresh"):
                return [BrowserCommand(names[1], prov)]
        elif names == ["manage", "window", "maximize"]:
            return [BrowserCommand("maximize", prov)]
        elif names == ["manage", "deleteAllCookies"]:
            return [BrowserCommand("deleteAllCookies", prov)]
        elif names[:2] == ["manage", "timeouts"] and names[-1] == "implicitlyWait":
            seconds = self._duration(call.args[0], scope) if call.args else None
            if seconds is None:
                raise UnrecognizedConstruct("unsupported implicit wait duration")
            return [BrowserCommand("implicitWait", prov, (Literal(seconds, "number"),))]
        raise UnrecognizedConstruct(f"unsupported driver chain '{call.text.strip()}'")

    def _interactions(
        self, ref: ElementRef, name: str, args: Sequence[syn.Expr], scope: Scope, prov: Provenance
    ) -> List[Action]:
        op = ELEMENT_INTERACTIONS[name]
        if op != "sendKeys":
            return [Interact(ref, op, (), prov)]
        actions: List[Action] = []
        for arg in args:
            if isinstance(arg, syn.FieldAccess) and _is_name(arg.target, "Keys"):
                key = KEYS.get(arg.name)
                if key is None:
                    raise UnrecognizedConstruct(f"unsupported key 'Keys.{arg.name}'")
                actions.append(Interact(ref, "press", (Literal(key),), prov))
            else:
                actions.append(Interact(ref, "sendKeys", (self._value(arg, scope),), prov))
        return actions

    def _actions_chain(self, call: syn.Call, scope: Scope, prov: Provenance) -> Optional[List[Action]]:
        chain: List[syn.Call] = []
        node: Optional[syn.Expr] = call
        while isinstance(node, syn.Call):
            chain.insert(0, node)
            node = node.target
        root = _strip_casts(node) if node is not None else None
        is_root = (
            isinstance(root, syn.New) and base_type(root.type_name) == "Actions"
        ) or (root is not None and self._binding_of(root, scope, sc.ACTIONS) is not None)
        if not is_root:
            return None

        actions: List[Action] = []
        last: Optional[ElementRef] = None
        for step in chain:
            if step.name in ACTIONS_CHAIN_NOOPS:
                continue
            op = ACTIONS_CHAIN_OPS.get(step.name)
            if op is None:
                raise UnrecognizedConstruct(f"unsupported Actions step '{step.name}'")
            if step.args:
                last = self._element(step.args[0], scope, prov)
            if last is None:
                raise UnrecognizedConstruct(f"Actions step '{step.name}' has no element")
            if op == "hover" and not step.args:
                continue
            actions.append(Interact(last, op, (), prov))
        return actions

    def _select_target(self, target: Optional[syn.Expr], scope: Scope, prov: Provenance) -> ElementRef:
        target = _strip_casts(target) if target is not None else None
        if isinstance(target, syn.New) and base_type(target.type_name) == "Select" and len(target.args) == 1:
            return self._element(target.args[0], scope, prov)
        binding = self._binding_of(target, scope, sc.SELECT) if target is not None else None
        if binding is None or binding.ref is None:
            raise UnrecognizedConstruct("select operation on an unknown dropdown")
        return binding.ref

    # =========================================================================
    # Waits, asserts, scripts, delegates
    # =========================================================================

    def _wait(
        self, call: syn.Call, scope: Scope, prov: Provenance
    ) -> Tuple[List[Action], Optional[ElementRef], Optional[Locator]]:
        """``wait.until(cond)``: returns actions, the element target and its locator."""
        if len(call.args) != 1:
            raise UnrecognizedConstruct("wait.until takes exactly one condition")
        timeout = self._wait_timeout(call.target, scope)
        cond = _strip_casts(call.args[0])

        if isinstance(cond, syn.Lambda):
            return [self._script_wait(cond, timeout, scope, prov)], None, None

        if not isinstance(cond, syn.Call) or not (
            cond.target is None or _is_name(cond.target, "ExpectedConditions")
        ):
            raise UnrecognizedConstruct(f"unsupported wait condition '{cond.text.strip()}'")

        mapping = WAIT_CONDITIONS.get(cond.name)
        if mapping is None:
            # kept verbatim so the emitter can report it
            return [Wait(cond.name, timeout, prov)], None, None

        condition, shape = mapping
        if not cond.args:
            raise UnrecognizedConstruct(f"wait condition '{cond.name}' needs an argument")
        arg = cond.args[0]

        if shape == "locator" or (shape == "either" and self._is_locator_expr(arg, scope)):
            locator = self._locator(arg, scope)
            ref = self._inline_ref()
            actions: List[Action] = [
                Locate(locator, ref, prov, inline=True),
                Wait(condition, timeout, prov, target=ref),
            ]
            return actions, ref, locator
        if shape in ("element", "either"):
            ref = self._element(arg, scope, prov)
            return [Wait(condition, timeout, prov, target=ref)], ref, None

        args = tuple(self._value(a, scope) for a in cond.args)
        return [Wait(condition, timeout, prov, args=args)], None, None

    def _script_wait(self, lam: syn.Lambda, timeout: float, scope: Scope, prov: Provenance) -> Wait:
        """``wd -> ((JavascriptExecutor) wd).executeScript("...").equals(x)``"""
        body = lam.body
        if isinstance(body, list):
            if len(body) == 1 and isinstance(body[0], syn.Return) and body[0].value is not None:
                body = body[0].value
            else:
                raise UnrecognizedConstruct("unsupported wait lambda body")

        inner = scope.child()
        for param in lam.params:
            inner.define(param, Binding(sc.DRIVER, "WebDriver"))

        body = _strip_casts(body)
        if isinstance(body, syn.Call) and body.name == "equals" and len(body.args) == 1:
            script_side, expected = body.target, body.args[0]
            if not self._is_script_call(script_side):
                script_side, expected = body.args[0], body.target
            script_side = _strip_casts(script_side) if script_side is not None else None
            if isinstance(script_side, syn.Call) and script_side.name == "toString":
                script_side = script_side.target
            if self._is_script_call(script_side):
                script = self._script(script_side, inner)
                return Wait("scriptReturns", timeout, prov, args=(Literal(script.code), self._value(expected, inner)))
        raise UnrecognizedConstruct(f"unsupported wait lambda '{lam.text.strip()}'")

    @staticmethod
    def _is_script_call(expr: Optional[syn.Expr]) -> bool:
        expr = _strip_casts(expr) if expr is not None else None
        if isinstance(expr, syn.Call) and expr.name == "toString":
            expr = expr.target
        return isinstance(expr, syn.Call) and expr.name in ("executeScript", "executeAsyncScript")

    def _wait_timeout(self, wait_expr: Optional[syn.Expr], scope: Scope) -> float:
        wait_expr = _strip_casts(wait_expr) if wait_expr is not None else None
        if isinstance(wait_expr, syn.New):
            timeout = self._timeout_of_new(wait_expr, scope)
            if timeout is not None:
                return timeout
        else:
            name = _this_field(wait_expr) if wait_expr is not None else None
            if name is None and isinstance(wait_expr, syn.Name):
                name = wait_expr.name
            if name is not None:
                binding = scope.lookup(name) if _this_field(wait_expr) is None else scope.lookup_field(name)
                if binding is not None and binding.timeout is not None:
                    return binding.timeout
                if name in self._timeouts:
                    return self._timeouts[name]
        return self._default_timeout if self._default_timeout is not None else DEFAULT_WAIT_TIMEOUT_SECONDS

    def _timeout_of_new(self, new: syn.New, scope: Scope) -> Optional[float]:
        if len(new.args) < 2:
            return None
        return self._duration(new.args[1], scope)

    def _duration(self, expr: syn.Expr, scope: Scope) -> Optional[float]:
        """``Duration.ofSeconds(10)`` or a bare number of seconds."""
        if isinstance(expr, syn.Call) and _is_name(expr.target, "Duration") and expr.name in _DURATION_FACTORS:
            if len(expr.args) == 1:
                amount = self._number(expr.args[0])
                if amount is not None:
                    return amount * _DURATION_FACTORS[expr.name]
            return None
        return self._number(expr)

    def _number(self, expr: syn.Expr) -> Optional[float]:
        if isinstance(expr, syn.Literal) and expr.kind == "number":
            return float(expr.value)
        if isinstance(expr, syn.Name) and expr.name in self._constants:
            value = self._constants[expr.name].value
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
        return None

    def _assert(self, call: syn.Call, scope: Scope, prov: Provenance) -> Assert:
        kind = ASSERT_METHODS[call.name]
        arity = ASSERT_ARITY[kind]
        args = list(call.args)
        if len(args) not in (arity, arity + 1):
            raise UnrecognizedConstruct(f"unsupported {call.name} with {len(args)} arguments")

        message: Optional[syn.Expr] = None
        if self.framework in (FRAMEWORK_JUNIT5, FRAMEWORK_TESTNG):
            core = args[:arity]
            if len(args) > arity:
                message = args[arity]
        elif len(args) > arity:
            delta_form = (
                arity == 2
                and isinstance(args[2], syn.Literal)
                and args[2].kind == "number"
                and not (isinstance(args[0], syn.Literal) and args[0].kind == "string")
            )
            if delta_form:
                core = args[:2]
            else:
                message, core = args[0], args[1:]
        else:
            core = args

        message_value = self._value(message, scope) if message is not None else None
        if arity == 2:
            if self.framework == FRAMEWORK_TESTNG:
                actual, expected = core
            else:
                expected, actual = core
            return Assert(
                kind,
                self._value(actual, scope),
                prov,
                expected=self._value(expected, scope),
                message=message_value,
            )

        value = self._value(core[0], scope)
        if kind == "true" and isinstance(value, Contains):
            return Assert("contains", value.haystack, prov, expected=value.needle, message=message_value)
        return Assert(kind, value, prov, message=message_value)

    def _script(self, call: syn.Call, scope: Scope) -> ScriptCall:
        if not call.args:
            raise UnrecognizedConstruct("executeScript without a script")
        code = call.args[0]
        if not (isinstance(code, syn.Literal) and code.kind == "string"):
            raise UnrecognizedConstruct("executeScript with a non-literal script")
        return ScriptCall(str(code.value), tuple(self._value(a, scope) for a in call.args[1:]))

    def _delegate_call(self, call: syn.Call, scope: Scope) -> Optional[DelegateCall]:
        """A call into a page object, utility module or same-class helper."""
        assert self._decl is not None
        target = call.target
        receiver = ""

        if target is None or isinstance(target, syn.This):
            if target is None and call.name in ASSERT_METHODS:
                return None
            declared = any(m.name == call.name and not m.is_constructor for m in self._decl.methods)
            owner = static_import_owner(self.tree.imports, call.name) if target is None and not declared else ""
            inherited = bool(self._decl.extends) and is_project_type(self._decl.extends)
            if owner:
                style, target_type = "static", owner
            elif declared or inherited:
                style, target_type = "self", self._decl.name
            else:
                return None
        else:
            field_name = _this_field(target)
            var_name = field_name or (target.name if isinstance(target, syn.Name) else None)
            if var_name is None:
                return None
            binding = scope.lookup_field(var_name) if field_name else scope.lookup(var_name)
            if binding is not None:
                if binding.kind == sc.PAGE_OBJECT or (binding.kind == sc.VALUE and is_project_type(binding.type_name)):
                    style, target_type, receiver = "instance", base_type(binding.type_name), var_name
                else:
                    return None
            elif is_project_type(var_name):
                style, target_type = "static", var_name
            else:
                return None

        args = tuple(self._value(a, scope) for a in call.args)
        self._call_counter += 1
        return DelegateCall(
            call_id=f"{self.unit_name}#{self._call_counter}",
            target_type=target_type,
            method=call.name,
            args=args,
            style=style,
            receiver=receiver,
            source_text=call.text.strip(),
        )

    # =========================================================================
    # Elements and locators
    # =========================================================================

    def _is_element_expr(self, expr: Optional[syn.Expr], scope: Scope) -> bool:
        if expr is None:
            return False
        expr = _strip_casts(expr)
        binding = self._binding_of(expr, scope)
        if binding is not None:
            return binding.kind in (sc.ELEMENT, sc.ELEMENTS) and binding.ref is not None
        if isinstance(expr, syn.Call):
            if expr.name in ("findElement", "findElements") and len(expr.args) == 1:
                return True
            if expr.name == "get" and len(expr.args) == 1:
                inner = self._binding_of(_strip_casts(expr.target), scope) if expr.target is not None else None
                return inner is not None and inner.kind == sc.ELEMENTS
            if expr.name == "until" and self._is_wait(expr.target, scope):
                return self._wait_yields_element(expr)
        return False

    @staticmethod
    def _wait_yields_element(call: syn.Call) -> bool:
        cond = _strip_casts(call.args[0]) if len(call.args) == 1 else None
        if not isinstance(cond, syn.Call):
            return False
        mapping = WAIT_CONDITIONS.get(cond.name)
        return mapping is not None and mapping[1] != "page"

    def _element(self, expr: Optional[syn.Expr], scope: Scope, prov: Provenance) -> ElementRef:
        """Resolve an element expression, queueing inline lookups."""
        if expr is None:
            raise UnrecognizedConstruct("missing element expression")
        expr = _strip_casts(expr)

        binding = self._binding_of(expr, scope)
        if binding is not None:
            if binding.kind in (sc.ELEMENT, sc.ELEMENTS, sc.SELECT) and binding.ref is not None:
                return binding.ref
            raise UnrecognizedConstruct(f"'{expr.text.strip()}' is not an element")

        if isinstance(expr, syn.Call):
            if expr.name in ("findElement", "findElements") and len(expr.args) == 1:
                parent = None if self._is_driver(expr.target, scope) else self._element(expr.target, scope, prov)
                ref = self._inline_ref()
                self._pending.append(
                    Locate(
                        self._locator(expr.args[0], scope),
                        ref,
                        prov,
                        multiple=expr.name == "findElements",
                        parent=parent,
                        inline=True,
                    )
                )
                return ref
            if expr.name == "get" and len(expr.args) == 1:
                source = self._element(expr.target, scope, prov)
                ref = self._inline_ref()
                self._pending.append(Pick(source, self._value(expr.args[0], scope), ref, prov, inline=True))
                return ref
            if expr.name == "until" and self._is_wait(expr.target, scope):
                actions, target_ref, _ = self._wait(expr, scope, prov)
                self._pending.extend(actions)
                if target_ref is not None:
                    return target_ref

        raise UnrecognizedConstruct(f"unrecognized element expression '{expr.text.strip()}'")

    def _is_locator_expr(self, expr: syn.Expr, scope: Scope) -> bool:
        expr = _strip_casts(expr)
        if isinstance(expr, syn.Call) and _is_name(expr.target, "By"):
            return True
        binding = self._binding_of(expr, scope)
        return binding is not None and binding.kind == sc.BY

    def _locator(self, expr: syn.Expr, scope: Scope) -> Locator:
        expr = _strip_casts(expr)
        if isinstance(expr, syn.Call) and _is_name(expr.target, "By"):
            strategy = BY_METHODS.get(expr.name)
            if strategy is None or len(expr.args) != 1:
                raise UnrecognizedConstruct(f"unsupported locator 'By.{expr.name}'")
            return Locator(strategy, self._value(expr.args[0], scope))
        binding = self._binding_of(expr, scope)
        if binding is not None and binding.kind == sc.BY and binding.locator is not None:
            return binding.locator
        raise UnrecognizedConstruct(f"unrecognized locator '{expr.text.strip()}'")

    # =========================================================================
    # Values
    # =========================================================================

    def _value(self, expr: Optional[syn.Expr], scope: Scope) -> Value:
        if expr is None:
            raise UnrecognizedConstruct("missing expression")

        if isinstance(expr, syn.Literal):
            return self._literal(expr)

        if isinstance(expr, (syn.Name, syn.FieldAccess)) and (
            isinstance(expr, syn.Name) or _this_field(expr) is not None
        ):
            binding = self._binding_of(expr, scope)
            name = expr.name
            if binding is None:
                raise UnrecognizedConstruct(f"unknown name '{name}'")
            if binding.kind in (sc.ELEMENT, sc.ELEMENTS, sc.SELECT):
                if binding.ref is None:
                    raise UnrecognizedConstruct(f"element '{name}' used before lookup")
                return ElementValue(binding.ref)
            if binding.kind == sc.DRIVER:
                return DriverRef()
            if binding.kind in (sc.VALUE, sc.PAGE_OBJECT):
                return VarRef(name)
            raise UnrecognizedConstruct(f"'{name}' cannot be used as a value")

        if isinstance(expr, syn.This):
            return VarRef("this")

        if isinstance(expr, syn.Cast):
            return self._value(expr.expr, scope)

        if isinstance(expr, syn.Binary):
            if expr.op not in BINARY_OPERATORS:
                raise UnrecognizedConstruct(f"unsupported operator '{expr.op}'")
            return BinaryOp(expr.op, self._value(expr.left, scope), self._value(expr.right, scope))

        if isinstance(expr, syn.Unary):
            operand = self._value(expr.operand, scope)
            if expr.op == "!":
                return Not(operand)
            if expr.op == "-" and isinstance(operand, Literal) and operand.kind == "number":
                return Literal(-operand.value, "number")
            raise UnrecognizedConstruct(f"unsupported operator '{expr.op}'")

        if isinstance(expr, syn.New):
            if is_project_type(expr.type_name):
                return Construct(base_type(expr.type_name), tuple(self._value(a, scope) for a in expr.args))
            raise UnrecognizedConstruct(f"unsupported object creation '{expr.text.strip()}'")

        if isinstance(expr, syn.Call):
            return self._call_value(expr, scope)

        raise UnrecognizedConstruct(f"unsupported expression '{expr.text.strip()}'")

    def _call_value(self, call: syn.Call, scope: Scope) -> Value:
        name = call.name
        target = call.target
        prov = self._prov(call.span)

        if name in ("findElement", "findElements", "get", "until") and self._is_element_expr(call, scope):
            return ElementValue(self._element(call, scope, prov))

        if name == "until" and self._is_wait(target, scope):
            actions, _, _ = self._wait(call, scope, prov)
            self._pending.extend(actions)
            return Literal(True, "boolean")

        if name in ELEMENT_QUERIES and self._is_element_expr(target, scope):
            ref = self._element(target, scope, prov)
            query = ELEMENT_QUERIES[name]
            arg = self._value(call.args[0], scope) if query == "attribute" and call.args else None
            return ElementQuery(ref, query, arg)

        if name in ("size", "isEmpty") and not call.args and self._is_element_expr(target, scope):
            ref = self._element(target, scope, prov)
            count = ElementQuery(ref, "count")
            return count if name == "size" else BinaryOp("==", count, Literal(0, "number"))

        if self._is_driver(target, scope) and name in PAGE_QUERIES and not call.args:
            return PageQuery(PAGE_QUERIES[name])

        if name in ("getFirstSelectedOption",) and self._binding_of(target, scope, sc.SELECT) is not None:
            raise UnrecognizedConstruct("selected option lookup is not supported")

        if name == "contains" and len(call.args) == 1 and target is not None:
            return Contains(self._value(target, scope), self._value(call.args[0], scope))

        if name == "equals" and len(call.args) == 1 and target is not None:
            return BinaryOp("==", self._value(target, scope), self._value(call.args[0], scope))

        if name in UNBOXING and not call.args and target is not None:
            return self._value(target, scope)

        if name in ("executeScript", "executeAsyncScript") and (
            self._is_script_receiver(target, scope) or self._is_driver(target, scope)
        ):
            return self._script(call, scope)

        delegate = self._delegate_call(call, scope)
        if delegate is not None:
            return delegate

        raise UnrecognizedConstruct(f"unrecognized call '{call.text.strip()}'")

    @staticmethod
    def _literal(expr: syn.Literal) -> Literal:
        if expr.kind == "char":
            return Literal(expr.value, "string")
        return Literal(expr.value, expr.kind)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _binding_of(self, expr: Optional[syn.Expr], scope: Scope, kind: Optional[str] = None) -> Optional[Binding]:
        if expr is None:
            return None
        field_name = _this_field(expr)
        if field_name is not None:
            binding = scope.lookup_field(field_name)
        elif isinstance(expr, syn.Name):
            binding = scope.lookup(expr.name)
        else:
            return None
        if binding is not None and kind is not None and binding.kind != kind:
            return None
        return binding

    def _is_driver(self, expr: Optional[syn.Expr], scope: Scope) -> bool:
        if expr is None:
            return False
        expr = _strip_casts(expr)
        binding = self._binding_of(expr, scope)
        if binding is not None:
            return binding.kind == sc.DRIVER
        return isinstance(expr, syn.Name) and expr.name in self._driver_names

    def _is_wait(self, expr: Optional[syn.Expr], scope: Scope) -> bool:
        if expr is None:
            return False
        expr = _strip_casts(expr)
        if isinstance(expr, syn.New):
            return base_type(expr.type_name) in WAIT_TYPES
        return self._binding_of(expr, scope, sc.WAIT) is not None

    def _is_script_receiver(self, expr: Optional[syn.Expr], scope: Scope) -> bool:
        if expr is None:
            return False
        if isinstance(expr, syn.Cast) and base_type(expr.type_name) in SCRIPT_TYPES:
            return True
        return self._binding_of(expr, scope, sc.SCRIPT) is not None

    def _add_driver_name(self, name: str) -> None:
        if name not in self._driver_names:
            self._driver_names.append(name)

    def _named_ref(self, name: str) -> ElementRef:
        self._ref_counter += 1
        method = self._method.name if self._method else ""
        return ElementRef(f"{method}:{name}#{self._ref_counter}", name, "local")

    def _inline_ref(self) -> ElementRef:
        self._ref_counter += 1
        method = self._method.name if self._method else ""
        return ElementRef(f"{method}#{self._ref_counter}", "", "local")

    @staticmethod
    def _has_annotation(method: syn.MethodDecl, names: frozenset) -> bool:
        return any(a.name in names for a in method.annotations)

    @staticmethod
    def _annotation_string(ann: syn.Annotation, key: str) -> str:
        value = ann.arguments.get(key)
        if isinstance(value, syn.Literal) and value.kind == "string":
            return str(value.value)
        return ""

    def _prov(self, span: syn.Span) -> Provenance:
        return Provenance(self.unit_name, span.start_line, span.end_line)

    def _warn(self, message: str, span: Optional[syn.Span] = None) -> None:
        self._diagnostics.append(
            Diagnostic(
                Severity.WARNING,
                self.unit_name,
                message,
                Position(span.start_line, span.start_column) if span else None,
                code="extract_warning",
            )
        )

    def _info(self, message: str, span: Optional[syn.Span] = None) -> None:
        self._diagnostics.append(
            Diagnostic(
                Severity.INFO,
                self.unit_name,
                message,
                Position(span.start_line, span.start_column) if span else None,
                code="extract_info",
            )
        )


def extract(tree: syn.SyntaxTree) -> SourceUnit:
    """Extract the SourceUnit of one parsed unit."""
    return SemanticExtractor(tree).extract()
