"""Target profile schema.

A profile is a YAML document describing how each Action Model construct is
rendered in one target framework.  Templates use ``string.Template``
placeholders (``$element``, ``$arg0``, ``$timeout_ms`` ...); every section
is validated here before a run starts.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..action_model.models import (
    ASSERT_KINDS,
    BROWSER_COMMANDS,
    INTERACTION_OPS,
    LOCATOR_STRATEGIES,
    UnitKind,
)
from ..constants import DELEGATE_STRATEGIES
from ..diagnostics import ProfileError

logger = logging.getLogger(__name__)


class LocatorTemplate(BaseModel):
    """One strategy: either a selector string or a full expression.

    ``selector`` is the text of a selector with ``$value`` standing for the
    locator value (``#$value``); it is wrapped by ``LocatorSpec.locate``.
    ``expression`` is a complete expression (``$scope.getByRole(...)``)
    receiving the rendered value.  ``escape`` names how a literal value is
    escaped before it is pasted into the selector: ``identifier`` for
    ``#id`` and ``.class`` (CSS identifier rules), ``string`` for a quoted
    attribute value.
    """

    selector: Optional[str] = None
    expression: Optional[str] = None
    escape: Optional[str] = None

    @field_validator("escape")
    @classmethod
    def _known_escape(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("identifier", "string"):
            raise ValueError(f"unknown selector escape '{v}'")
        return v

    @model_validator(mode="after")
    def _exactly_one(self) -> "LocatorTemplate":
        if (self.selector is None) == (self.expression is None):
            raise ValueError("locator template needs exactly one of 'selector' or 'expression'")
        return self


class LocatorSpec(BaseModel):
    locate: str
    nth: str
    strategies: Dict[str, LocatorTemplate]

    @field_validator("strategies")
    @classmethod
    def _known_strategies(cls, v: Dict[str, LocatorTemplate]) -> Dict[str, LocatorTemplate]:
        unknown = set(v) - set(LOCATOR_STRATEGIES)
        if unknown:
            raise ValueError(f"unknown locator strategies: {sorted(unknown)}")
        return v


class ScriptBridge(BaseModel):
    semantics: str
    function: str = "($params) => { $code }"
    params: str = "args"
    statement: str
    expression: str
    element_arg: str


class SyntaxSpec(BaseModel):
    """Statement and expression shapes of the target language."""

    indent: str = "  "
    quote: str = "'"
    true: str = "true"
    false: str = "false"
    null: str = "null"
    self_ref: str = "this"
    operators: Dict[str, str] = Field(default_factory=dict)
    not_: str = Field("!$operand", alias="not")
    contains: str
    declare: str
    declare_mutable: str
    assign: str
    expression_statement: str = "$expression;"
    await_: str = Field("await $expression", alias="await")
    if_open: str
    else_open: str
    try_open: str
    catch_open: str
    block_close: str = "}"
    empty_block: str = ""
    inline_open: str = "{"
    inline_close: str = "}"
    return_value: str
    return_void: str
    comment: str
    construct_: str = Field(alias="construct")
    list: str = "[$items]"
    message_part: str = ", $message"
    group_assert_operands: bool = False
    keywords: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class NamingSpec(BaseModel):
    identifiers: str = "camel"  # camel | snake
    modules: str = "pascal"  # pascal | snake
    test_prefix: str = ""

    @field_validator("identifiers", "modules")
    @classmethod
    def _known_style(cls, v: str) -> str:
        if v not in ("camel", "snake", "pascal"):
            raise ValueError(f"unknown naming style '{v}'")
        return v


class HeaderImport(BaseModel):
    """An import statement written only when the file uses one of ``names``.

    ``$names`` in the template expands to the used names, in listed order.
    With no ``names`` the statement is always written.
    """

    template: str
    names: List[str] = Field(default_factory=list)


class FileTemplates(BaseModel):
    """Whole-file and member shapes.

    A test module uses either ``suite_open``/``hook_before``/``hook_after``
    (one block per hook) or ``hooks_open`` (one fixture holding setup, then
    ``hooks_yield``, then teardown).  Empty strings render nothing.
    """

    header_imports: Dict[str, List[HeaderImport]]
    constant: str
    top_level_gap: int = 1
    suite_open: str = ""
    suite_close: str = ""
    hook_before: str = ""
    hook_after: str = ""
    hooks_open: str = ""
    hooks_yield: str = "yield"
    hook_close: str = ""
    test_open: str
    test_disabled_open: str
    test_doc: str = ""
    test_close: str = ""
    function_open: str
    function_close: str = ""
    class_open: str
    class_close: str = ""
    extends_clause: str = ""
    super_init: str = ""
    self_param: str = ""
    field_decl: str = ""
    constructor_open: str
    constructor_close: str = ""
    member_init: str
    method_open: str
    static_method_open: str
    method_close: str = ""
    param: str = "$name: $type"
    untyped_param: str = "$name"
    return_annotation: str = ""
    void_type: str = "void"
    page_param: str = "page: Page"
    import_class: str
    import_module: str
    import_functions: str

    @model_validator(mode="after")
    def _one_hook_style(self) -> "FileTemplates":
        if not self.hooks_open and not (self.hook_before and self.hook_after):
            raise ValueError("files need either 'hooks_open' or both 'hook_before' and 'hook_after'")
        return self


class TargetProfile(BaseModel):
    name: str
    display_name: str
    version: str = "1.0.0"
    language: str
    file_extension: str
    delegate_strategy: str = "call"
    syntax: SyntaxSpec
    naming: NamingSpec = Field(default_factory=NamingSpec)
    types: Dict[str, str] = Field(default_factory=dict)
    locators: LocatorSpec
    interactions: Dict[str, str]
    queries: Dict[str, str]
    page_queries: Dict[str, str]
    waits: Dict[str, str]
    asserts: Dict[str, str]
    commands: Dict[str, str]
    script: ScriptBridge
    page_ref: str = "page"
    member_page_ref: str = "$self.page"
    files: FileTemplates
    paths: Dict[str, str]
    support_files: Dict[str, str] = Field(default_factory=dict)
    package_marker: Optional[str] = None

    @field_validator("delegate_strategy")
    @classmethod
    def _known_strategy(cls, v: str) -> str:
        if v not in DELEGATE_STRATEGIES:
            raise ValueError(f"delegate_strategy must be one of {DELEGATE_STRATEGIES}")
        return v

    @field_validator("interactions")
    @classmethod
    def _known_interactions(cls, v: Dict[str, str]) -> Dict[str, str]:
        unknown = set(v) - set(INTERACTION_OPS)
        if unknown:
            raise ValueError(f"unknown interactions: {sorted(unknown)}")
        return v

    @field_validator("asserts")
    @classmethod
    def _known_asserts(cls, v: Dict[str, str]) -> Dict[str, str]:
        unknown = set(v) - set(ASSERT_KINDS)
        if unknown:
            raise ValueError(f"unknown assertion kinds: {sorted(unknown)}")
        return v

    @field_validator("commands")
    @classmethod
    def _known_commands(cls, v: Dict[str, str]) -> Dict[str, str]:
        unknown = set(v) - set(BROWSER_COMMANDS) - {"navigate", "pause"}
        if unknown:
            raise ValueError(f"unknown commands: {sorted(unknown)}")
        return v

    @field_validator("paths")
    @classmethod
    def _paths_per_kind(cls, v: Dict[str, str]) -> Dict[str, str]:
        kinds = {k.value for k in UnitKind} - {UnitKind.SUPPORT.value}
        missing = kinds - set(v)
        if missing:
            raise ValueError(f"paths missing for kinds: {sorted(missing)}")
        return v


def load_profile_file(path: Path) -> TargetProfile:
    """Load and validate one profile YAML file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ProfileError(f"cannot read profile {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ProfileError(f"profile {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"profile {path} must be a mapping")

    try:
        profile = TargetProfile.model_validate(data)
    except ValidationError as e:
        raise ProfileError(f"profile {path} does not validate: {e}") from e

    logger.debug(f"Loaded profile '{profile.name}' from {path}")
    return profile
