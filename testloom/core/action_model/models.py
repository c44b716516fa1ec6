"""Action Model, the language-agnostic intermediate representation.

Everything here is immutable: frozen dataclasses, tuples and read-only
mappings.  The extractor builds one SourceUnit per input file, the linker
wraps them into an ActionModel, and the emitter only ever reads it.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

from ..diagnostics import Diagnostic, Position


def frozen_map(data: Optional[dict] = None) -> Mapping:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class Provenance:
    """Where an action came from: unit name plus 1-based line range."""

    unit_name: str
    start_line: int
    end_line: int

    @property
    def position(self) -> Position:
        return Position(self.start_line)


# ── Locators and element handles ─────────────────────────────────────

LOCATOR_STRATEGIES = (
    "id",
    "name",
    "className",
    "cssSelector",
    "xpath",
    "tagName",
    "linkText",
    "partialLinkText",
)


@dataclass(frozen=True)
class Locator:
    strategy: str
    value: "Value"


@dataclass(frozen=True)
class ElementRef:
    """Logical handle for a located element.

    ``origin`` is ``local`` (bound inside a body), ``field`` (page-object
    or injected field) or ``param`` (method parameter).  Local refs are
    never shared between test cases.
    """

    ref_id: str
    name: str = ""
    origin: str = "local"


# ── Values ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    value: Union[str, int, float, bool, None]
    kind: str = "string"  # string | number | boolean | null


@dataclass(frozen=True)
class VarRef:
    name: str


@dataclass(frozen=True)
class DriverRef:
    pass


@dataclass(frozen=True)
class ElementValue:
    ref: ElementRef


ELEMENT_QUERIES = ("text", "visible", "enabled", "selected", "attribute", "count", "value")


@dataclass(frozen=True)
class ElementQuery:
    ref: ElementRef
    query: str
    arg: Optional["Value"] = None  # attribute name


@dataclass(frozen=True)
class PageQuery:
    query: str  # url | title | source


@dataclass(frozen=True)
class Not:
    operand: "Value"


@dataclass(frozen=True)
class BinaryOp:
    op: str  # Java operator spelling
    left: "Value"
    right: "Value"


@dataclass(frozen=True)
class Contains:
    haystack: "Value"
    needle: "Value"


@dataclass(frozen=True)
class DelegateCall:
    """A call into another project method.

    ``style`` is ``instance`` (receiver variable), ``static``
    (class-qualified) or ``self`` (implicit ``this``).
    """

    call_id: str
    target_type: str
    method: str
    args: Tuple["Value", ...]
    style: str = "instance"
    receiver: str = ""
    source_text: str = ""

    @property
    def arity(self) -> int:
        return len(self.args)


@dataclass(frozen=True)
class ScriptCall:
    code: str
    args: Tuple["Value", ...] = ()


@dataclass(frozen=True)
class Construct:
    type_name: str  # project page object or utility type
    args: Tuple["Value", ...] = ()


@dataclass(frozen=True)
class OpaqueValue:
    text: str


Value = Union[
    Literal,
    VarRef,
    DriverRef,
    ElementValue,
    ElementQuery,
    PageQuery,
    Not,
    BinaryOp,
    Contains,
    DelegateCall,
    ScriptCall,
    Construct,
    OpaqueValue,
]


# ── Actions ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Navigate:
    url: Value
    provenance: Provenance


@dataclass(frozen=True)
class Locate:
    """``findElement``/``findElements``.

    Inline locates (a lookup used directly as an expression) render no
    statement of their own; the locator is rendered where ``ref`` is used.
    """

    locator: Locator
    ref: ElementRef
    provenance: Provenance
    multiple: bool = False
    parent: Optional[ElementRef] = None
    inline: bool = False


@dataclass(frozen=True)
class Pick:
    """``list.get(index)`` on a ``findElements`` result."""

    source: ElementRef
    index: Value
    ref: ElementRef
    provenance: Provenance
    inline: bool = False


INTERACTION_OPS = (
    "clear",
    "sendKeys",
    "click",
    "hover",
    "selectByVisibleText",
    "doubleClick",
    "submit",
    "press",
    "selectByValue",
    "selectByIndex",
    "fill",  # sendKeys into a field that was just cleared
)


@dataclass(frozen=True)
class Interact:
    element: ElementRef
    op: str
    args: Tuple[Value, ...]
    provenance: Provenance


WAIT_CONDITIONS = (
    "visibilityOf",
    "presenceOf",
    "urlContains",
    "invisibilityOf",
    "elementToBeClickable",
    "urlToBe",
    "titleIs",
    "scriptReturns",
)


@dataclass(frozen=True)
class Wait:
    """Explicit wait.  ``target`` is set for element conditions only."""

    condition: str
    timeout_seconds: float
    provenance: Provenance
    target: Optional[ElementRef] = None
    args: Tuple[Value, ...] = ()


ASSERT_KINDS = ("equals", "notEquals", "true", "false", "null", "notNull", "contains")


@dataclass(frozen=True)
class Assert:
    kind: str
    actual: Value
    provenance: Provenance
    expected: Optional[Value] = None
    message: Optional[Value] = None


@dataclass(frozen=True)
class ScriptExec:
    code: str
    args: Tuple[Value, ...]
    provenance: Provenance
    bind: str = ""
    declare: bool = True


@dataclass(frozen=True)
class Delegate:
    call: DelegateCall
    provenance: Provenance
    bind: str = ""
    declare: bool = True

    @property
    def target_type(self) -> str:
        return self.call.target_type

    @property
    def method(self) -> str:
        return self.call.method

    @property
    def args(self) -> Tuple[Value, ...]:
        return self.call.args


@dataclass(frozen=True)
class Bind:
    """Local variable declaration (``declare``) or reassignment."""

    name: str
    value: Value
    provenance: Provenance
    declare: bool = True


@dataclass(frozen=True)
class Branch:
    condition: Value
    then: Tuple["Action", ...]
    otherwise: Tuple["Action", ...]
    provenance: Provenance


@dataclass(frozen=True)
class Probe:
    """Locate-with-fallback: run ``body``; on element lookup failure run ``fallback``."""

    body: Tuple["Action", ...]
    fallback: Tuple["Action", ...]
    provenance: Provenance


@dataclass(frozen=True)
class Return:
    value: Optional[Value]
    provenance: Provenance


@dataclass(frozen=True)
class Pause:
    millis: Value
    provenance: Provenance


BROWSER_COMMANDS = (
    "maximize",
    "quit",
    "close",
    "deleteAllCookies",
    "back",
    "forward",
    "refresh",
    "implicitWait",
)


@dataclass(frozen=True)
class BrowserCommand:
    command: str
    provenance: Provenance
    args: Tuple[Value, ...] = ()


@dataclass(frozen=True)
class Opaque:
    text: str
    reason: str
    provenance: Provenance


Action = Union[
    Navigate,
    Locate,
    Pick,
    Interact,
    Wait,
    Assert,
    ScriptExec,
    Delegate,
    Bind,
    Branch,
    Probe,
    Return,
    Pause,
    BrowserCommand,
    Opaque,
]


# ── Members ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Param:
    name: str
    type_name: str


class MethodRole(str, Enum):
    SETUP = "setup"
    TEARDOWN = "teardown"
    SETUP_ALL = "setup_all"
    TEARDOWN_ALL = "teardown_all"
    CONSTRUCTOR = "constructor"
    HELPER = "helper"  # non-test method of a test class
    PAGE_METHOD = "page_method"
    FUNCTION = "function"  # utility module function


@dataclass(frozen=True)
class MethodModel:
    name: str
    params: Tuple[Param, ...]
    return_type: str
    role: MethodRole
    actions: Tuple[Action, ...]
    provenance: Provenance
    static: bool = False

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def returns_value(self) -> bool:
        return self.return_type not in ("", "void")


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    name: str
    actions: Tuple[Action, ...]
    provenance: Provenance
    setup: Tuple[str, ...] = ()
    teardown: Tuple[str, ...] = ()
    display_name: str = ""
    disabled: bool = False


@dataclass(frozen=True)
class LocatorField:
    name: str
    locator: Locator
    provenance: Provenance
    multiple: bool = False


@dataclass(frozen=True)
class ConstantField:
    name: str
    value: Literal
    provenance: Provenance


@dataclass(frozen=True)
class TestContext:
    """What setup produces and teardown consumes for one class."""

    __test__ = False

    browser: str = ""
    default_timeout: Optional[float] = None
    timeouts: Mapping[str, float] = field(default_factory=frozen_map)  # wait variable -> seconds
    page_objects: Mapping[str, str] = field(default_factory=frozen_map)  # variable -> type
    driver_names: Tuple[str, ...] = ("driver",)
    actions_aliases: Tuple[str, ...] = ()
    script_aliases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PageObjectModel:
    name: str
    fields: Tuple[LocatorField, ...]
    methods: Tuple[MethodModel, ...]

    @property
    def locator_map(self) -> Mapping[str, Locator]:
        return frozen_map({f.name: f.locator for f in self.fields})


class UnitKind(str, Enum):
    TEST_CLASS = "TestClass"
    PAGE_OBJECT = "PageObject"
    UTILITY_MODULE = "UtilityModule"
    SUITE = "Suite"
    SUPPORT = "Support"


@dataclass(frozen=True)
class SourceUnit:
    unit_name: str
    qualified_name: str
    simple_name: str
    package: str
    kind: UnitKind
    imports: Tuple[str, ...]
    provenance: Provenance
    superclass: str = ""
    framework: str = ""  # junit4 | junit5 | testng
    locator_fields: Tuple[LocatorField, ...] = ()
    constants: Tuple[ConstantField, ...] = ()
    methods: Tuple[MethodModel, ...] = ()
    tests: Tuple[TestCase, ...] = ()
    context: TestContext = field(default_factory=TestContext)
    page_object: Optional[PageObjectModel] = None
    diagnostics: Tuple[Diagnostic, ...] = ()

    def find_methods(self, name: str, arity: Optional[int] = None) -> Tuple[MethodModel, ...]:
        return tuple(
            m
            for m in self.methods
            if m.name == name and m.role != MethodRole.CONSTRUCTOR and (arity is None or m.arity == arity)
        )

    def methods_with_role(self, *roles: MethodRole) -> Tuple[MethodModel, ...]:
        return tuple(m for m in self.methods if m.role in roles)


@dataclass(frozen=True)
class MethodKey:
    unit_name: str
    method: str
    arity: int

    def __str__(self) -> str:
        return f"{self.unit_name}#{self.method}/{self.arity}"


@dataclass(frozen=True)
class ActionModel:
    """Linked whole-program model.

    ``resolutions`` maps every project DelegateCall id to the method it
    calls; ``superclasses`` maps a unit to its project superclass unit.
    """

    units: Tuple[SourceUnit, ...]
    resolutions: Mapping[str, MethodKey] = field(default_factory=frozen_map)
    superclasses: Mapping[str, str] = field(default_factory=frozen_map)
    diagnostics: Tuple[Diagnostic, ...] = ()

    def unit(self, unit_name: str) -> SourceUnit:
        for unit in self.units:
            if unit.unit_name == unit_name:
                return unit
        raise KeyError(unit_name)

    def method(self, key: MethodKey) -> MethodModel:
        unit = self.unit(key.unit_name)
        return unit.find_methods(key.method, key.arity)[0]

    def resolve(self, call: DelegateCall) -> Optional[MethodKey]:
        return self.resolutions.get(call.call_id)

    def superclass_chain(self, unit_name: str) -> Tuple[SourceUnit, ...]:
        """Project superclasses of a unit, nearest first."""
        chain = []
        seen = {unit_name}
        current = self.superclasses.get(unit_name)
        while current and current not in seen:
            seen.add(current)
            chain.append(self.unit(current))
            current = self.superclasses.get(current)
        return tuple(chain)


@dataclass(frozen=True)
class ConversionUnit:
    """One emitted target file."""

    qualified_name: str
    output_path: str
    kind: UnitKind
    source_unit: str
    text: str
