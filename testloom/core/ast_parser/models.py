"""Syntax tree data models.

Plain data containers produced by the front end.  They keep only what the
semantic extractor needs to recognize test-framework idioms, plus the raw
text of every node so unrecognized constructs can be passed through.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


@dataclass
class Span:
    """1-based inclusive line range with the start column."""

    start_line: int
    end_line: int
    start_column: int = 1


# =========================================================================
# Expressions
# =========================================================================


@dataclass
class Literal:
    kind: str  # "string" | "number" | "boolean" | "null" | "char"
    value: Union[str, int, float, bool, None]
    text: str
    span: Span


@dataclass
class Name:
    name: str
    text: str
    span: Span


@dataclass
class This:
    text: str
    span: Span


@dataclass
class FieldAccess:
    target: "Expr"
    name: str
    text: str
    span: Span


@dataclass
class Call:
    target: Optional["Expr"]  # None for unqualified calls
    name: str
    args: List["Expr"]
    text: str
    span: Span


@dataclass
class New:
    type_name: str
    args: List["Expr"]
    text: str
    span: Span


@dataclass
class Cast:
    type_name: str
    expr: "Expr"
    text: str
    span: Span


@dataclass
class Lambda:
    params: List[str]
    body: Union["Expr", List["Stmt"]]
    text: str
    span: Span


@dataclass
class Binary:
    op: str
    left: "Expr"
    right: "Expr"
    text: str
    span: Span


@dataclass
class Unary:
    op: str
    operand: "Expr"
    text: str
    span: Span


@dataclass
class OpaqueExpr:
    text: str
    span: Span


Expr = Union[Literal, Name, This, FieldAccess, Call, New, Cast, Lambda, Binary, Unary, OpaqueExpr]


# =========================================================================
# Statements
# =========================================================================


@dataclass
class LocalVar:
    type_name: str
    name: str
    init: Optional[Expr]
    text: str
    span: Span


@dataclass
class Assign:
    target: Expr
    value: Expr
    text: str
    span: Span


@dataclass
class ExprStmt:
    expr: Expr
    text: str
    span: Span


@dataclass
class If:
    condition: Expr
    then: List["Stmt"]
    otherwise: List["Stmt"]
    text: str
    span: Span


@dataclass
class CatchClause:
    types: List[str]
    name: str
    body: List["Stmt"]
    span: Span


@dataclass
class Try:
    body: List["Stmt"]
    catches: List[CatchClause]
    finally_body: Optional[List["Stmt"]]
    text: str
    span: Span


@dataclass
class Return:
    value: Optional[Expr]
    text: str
    span: Span


@dataclass
class OpaqueStmt:
    text: str
    span: Span
    reason: str = "unsupported statement"


Stmt = Union[LocalVar, Assign, ExprStmt, If, Try, Return, OpaqueStmt]


# =========================================================================
# Declarations
# =========================================================================


@dataclass
class Annotation:
    """``@Name`` or ``@Name(key = value, ...)``.

    A single unnamed argument is stored under the key ``"value"``.
    """

    name: str
    arguments: Dict[str, Expr] = field(default_factory=dict)
    text: str = ""


@dataclass
class Param:
    type_name: str
    name: str


@dataclass
class FieldDecl:
    type_name: str
    name: str
    modifiers: List[str]
    annotations: List[Annotation]
    init: Optional[Expr]
    text: str
    span: Span


@dataclass
class MethodDecl:
    name: str
    params: List[Param]
    return_type: str  # "" for constructors
    modifiers: List[str]
    annotations: List[Annotation]
    body: List[Stmt]
    text: str
    span: Span
    is_constructor: bool = False


@dataclass
class ClassDecl:
    name: str
    modifiers: List[str]
    annotations: List[Annotation]
    extends: Optional[str]
    implements: List[str]
    fields: List[FieldDecl]
    methods: List[MethodDecl]  # constructors included, in source order
    nested: List[str]
    text: str
    span: Span


@dataclass
class SyntaxTree:
    """Parse output for a single source unit."""

    unit_name: str
    language: str
    package: str
    imports: List[str]  # dotted paths, "static " prefix kept for static imports
    classes: List[ClassDecl]
    source: str
    recovered: List[Span] = field(default_factory=list)  # regions tree-sitter could not parse

    @property
    def primary_class(self) -> Optional[ClassDecl]:
        """The public top-level class, or the first one."""
        for decl in self.classes:
            if "public" in decl.modifiers:
                return decl
        return self.classes[0] if self.classes else None
