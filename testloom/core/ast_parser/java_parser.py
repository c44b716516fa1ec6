"""Java front end using tree-sitter.

Walks the tree-sitter AST and converts the subset of Java that appears in
Selenium test code (classes, fields, methods, call chains, literals,
``if``/``try``/``return``, casts and lambdas) into the syntax model.
Everything else is kept as opaque text.
"""

import logging
import re
from typing import List, Optional, Tuple

import tree_sitter
import tree_sitter_java

from .base import BaseLanguageParser
from .models import (
    Annotation,
    Assign,
    Binary,
    Call,
    Cast,
    CatchClause,
    ClassDecl,
    Expr,
    ExprStmt,
    FieldAccess,
    FieldDecl,
    If,
    Lambda,
    Literal,
    LocalVar,
    MethodDecl,
    Name,
    New,
    OpaqueExpr,
    OpaqueStmt,
    Param,
    Return,
    Span,
    Stmt,
    SyntaxTree,
    This,
    Try,
    Unary,
)

logger = logging.getLogger(__name__)

_JAVA_LANGUAGE = tree_sitter.Language(tree_sitter_java.language())

_COMMENT_TYPES = frozenset({"line_comment", "block_comment"})

_INT_LITERALS = frozenset({
    "decimal_integer_literal",
    "hex_integer_literal",
    "octal_integer_literal",
    "binary_integer_literal",
})

_FLOAT_LITERALS = frozenset({"decimal_floating_point_literal", "hex_floating_point_literal"})

_ESCAPE_RE = re.compile(r"\\(u+[0-9a-fA-F]{4}|[0-7]{1,3}|.)", re.DOTALL)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "s": " ",
    '"': '"',
    "'": "'",
    "\\": "\\",
}


def _unescape(body: str) -> str:
    def repl(match: re.Match) -> str:
        seq = match.group(1)
        if seq.startswith("u"):
            return chr(int(seq.lstrip("u"), 16))
        if seq[0] in "01234567":
            return chr(int(seq, 8))
        return _SIMPLE_ESCAPES.get(seq, seq)

    return _ESCAPE_RE.sub(repl, body)


class JavaParser(BaseLanguageParser):
    """tree-sitter based Java front end.

    Produces:
    - Package and import declarations -> SyntaxTree.package / imports
    - Top-level class declarations -> ClassDecl (nested classes by name only)
    - Fields, methods and constructors -> FieldDecl / MethodDecl
    - Method bodies -> statement and expression nodes
    """

    def get_language(self) -> str:
        return "java"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _JAVA_LANGUAGE

    def build_tree(
        self, tree: tree_sitter.Tree, source: bytes, unit_name: str, source_text: str
    ) -> SyntaxTree:
        root = tree.root_node
        imports: List[str] = []
        classes: List[ClassDecl] = []

        for child in root.children:
            if child.type == "import_declaration":
                imports.append(self._import_path(child, source))
            elif child.type == "class_declaration":
                decl = self._class(child, source)
                if decl:
                    classes.append(decl)

        return SyntaxTree(
            unit_name=unit_name,
            language="java",
            package=self._extract_package(root, source),
            imports=imports,
            classes=classes,
            source=source_text,
        )

    # =========================================================================
    # Declarations
    # =========================================================================

    def _class(self, node: tree_sitter.Node, source: bytes) -> Optional[ClassDecl]:
        name = self._get_child_text(node, "name", source)
        if not name:
            return None

        modifiers, annotations = self._modifiers(node, source)
        extends, implements = self._extract_inheritance(node, source)

        fields: List[FieldDecl] = []
        methods: List[MethodDecl] = []
        nested: List[str] = []

        body = node.child_by_field_name("body")
        if body is not None:
            for child in body.named_children:
                if child.type == "field_declaration":
                    fields.extend(self._fields(child, source))
                elif child.type == "method_declaration":
                    methods.append(self._method(child, source))
                elif child.type == "constructor_declaration":
                    methods.append(self._method(child, source, constructor=True))
                elif child.type in ("class_declaration", "interface_declaration", "enum_declaration"):
                    nested_name = self._get_child_text(child, "name", source)
                    if nested_name:
                        nested.append(nested_name)

        return ClassDecl(
            name=name,
            modifiers=modifiers,
            annotations=annotations,
            extends=extends,
            implements=implements,
            fields=fields,
            methods=methods,
            nested=nested,
            text=self._text(node, source),
            span=self._span(node),
        )

    def _fields(self, node: tree_sitter.Node, source: bytes) -> List[FieldDecl]:
        modifiers, annotations = self._modifiers(node, source)
        type_name = self._get_child_text(node, "type", source) or ""
        result = []
        for declarator in node.children_by_field_name("declarator"):
            value = declarator.child_by_field_name("value")
            result.append(
                FieldDecl(
                    type_name=type_name,
                    name=self._get_child_text(declarator, "name", source) or "",
                    modifiers=modifiers,
                    annotations=annotations,
                    init=self._expr(value, source) if value is not None else None,
                    text=self._text(node, source),
                    span=self._span(node),
                )
            )
        return result

    def _method(self, node: tree_sitter.Node, source: bytes, constructor: bool = False) -> MethodDecl:
        modifiers, annotations = self._modifiers(node, source)
        params: List[Param] = []
        params_node = node.child_by_field_name("parameters")
        if params_node is not None:
            for p in params_node.named_children:
                if p.type in ("formal_parameter", "spread_parameter"):
                    type_node = p.child_by_field_name("type")
                    name_node = p.child_by_field_name("name")
                    if p.type == "spread_parameter":
                        # Type... name
                        named = [c for c in p.named_children if c.type != "modifiers"]
                        type_node = named[0] if named else None
                        decl = named[-1] if named else None
                        if decl is not None and decl.type == "variable_declarator":
                            name_node = decl.child_by_field_name("name")
                        else:
                            name_node = decl
                    params.append(
                        Param(
                            type_name=self._text(type_node, source) if type_node else "",
                            name=self._text(name_node, source) if name_node else "",
                        )
                    )

        body_node = node.child_by_field_name("body")
        body = self._block(body_node, source) if body_node is not None else []

        return MethodDecl(
            name=self._get_child_text(node, "name", source) or "",
            params=params,
            return_type="" if constructor else (self._get_child_text(node, "type", source) or "void"),
            modifiers=modifiers,
            annotations=annotations,
            body=body,
            text=self._text(node, source),
            span=self._span(node),
            is_constructor=constructor,
        )

    def _modifiers(self, node: tree_sitter.Node, source: bytes) -> Tuple[List[str], List[Annotation]]:
        modifiers: List[str] = []
        annotations: List[Annotation] = []
        mods = self._get_child_by_type(node, "modifiers")
        if mods is None:
            return modifiers, annotations
        for child in mods.children:
            if child.type in ("marker_annotation", "annotation"):
                annotations.append(self._annotation(child, source))
            elif not child.is_named:
                modifiers.append(child.type)
        return modifiers, annotations

    def _annotation(self, node: tree_sitter.Node, source: bytes) -> Annotation:
        name = self._get_child_text(node, "name", source) or ""
        # @org.junit.Test -> Test
        name = name.rsplit(".", 1)[-1]
        arguments = {}
        args = node.child_by_field_name("arguments")
        if args is not None:
            for child in args.named_children:
                if child.type in _COMMENT_TYPES:
                    continue
                if child.type == "element_value_pair":
                    key = self._get_child_text(child, "key", source) or "value"
                    value = child.child_by_field_name("value")
                    arguments[key] = self._expr(value, source)
                else:
                    arguments["value"] = self._expr(child, source)
        return Annotation(name=name, arguments=arguments, text=self._text(node, source))

    # =========================================================================
    # Statements
    # =========================================================================

    def _block(self, node: tree_sitter.Node, source: bytes) -> List[Stmt]:
        if node.type not in ("block", "constructor_body"):
            return self._stmt(node, source)
        stmts: List[Stmt] = []
        for child in node.named_children:
            stmts.extend(self._stmt(child, source))
        return stmts

    def _stmt(self, node: tree_sitter.Node, source: bytes) -> List[Stmt]:
        t = node.type
        text = self._text(node, source)
        span = self._span(node)

        if t in _COMMENT_TYPES:
            return []

        if t == "ERROR":
            return [OpaqueStmt(text=text, span=span, reason="syntax error")]

        if t == "block":
            return self._block(node, source)

        if t == "local_variable_declaration":
            type_name = self._get_child_text(node, "type", source) or ""
            result: List[Stmt] = []
            for declarator in node.children_by_field_name("declarator"):
                value = declarator.child_by_field_name("value")
                result.append(
                    LocalVar(
                        type_name=type_name,
                        name=self._get_child_text(declarator, "name", source) or "",
                        init=self._expr(value, source) if value is not None else None,
                        text=text,
                        span=span,
                    )
                )
            return result

        if t == "expression_statement":
            inner = node.named_children[0] if node.named_children else None
            if inner is None:
                return []
            if inner.type == "assignment_expression":
                operator = inner.child_by_field_name("operator")
                if operator is not None and operator.type == "=":
                    return [
                        Assign(
                            target=self._expr(inner.child_by_field_name("left"), source),
                            value=self._expr(inner.child_by_field_name("right"), source),
                            text=text,
                            span=span,
                        )
                    ]
            return [ExprStmt(expr=self._expr(inner, source), text=text, span=span)]

        if t == "if_statement":
            condition = node.child_by_field_name("condition")
            consequence = node.child_by_field_name("consequence")
            alternative = node.child_by_field_name("alternative")
            return [
                If(
                    condition=self._expr(condition, source),
                    then=self._block(consequence, source) if consequence is not None else [],
                    otherwise=self._block(alternative, source) if alternative is not None else [],
                    text=text,
                    span=span,
                )
            ]

        if t == "try_statement":
            return [self._try(node, source)]

        if t == "return_statement":
            value = node.named_children[0] if node.named_children else None
            return [
                Return(
                    value=self._expr(value, source) if value is not None else None,
                    text=text,
                    span=span,
                )
            ]

        if t == "explicit_constructor_invocation":
            return [OpaqueStmt(text=text, span=span, reason="constructor invocation")]

        return [OpaqueStmt(text=text, span=span, reason=f"unsupported statement '{t}'")]

    def _try(self, node: tree_sitter.Node, source: bytes) -> Try:
        body_node = node.child_by_field_name("body")
        catches: List[CatchClause] = []
        finally_body = None
        for child in node.named_children:
            if child.type == "catch_clause":
                types: List[str] = []
                name = ""
                param = self._get_child_by_type(child, "catch_formal_parameter")
                if param is not None:
                    catch_type = self._get_child_by_type(param, "catch_type")
                    if catch_type is not None:
                        types = [self._text(c, source) for c in catch_type.named_children]
                    name = self._get_child_text(param, "name", source) or ""
                catch_body = child.child_by_field_name("body")
                catches.append(
                    CatchClause(
                        types=types,
                        name=name,
                        body=self._block(catch_body, source) if catch_body is not None else [],
                        span=self._span(child),
                    )
                )
            elif child.type == "finally_clause":
                block = self._get_child_by_type(child, "block")
                finally_body = self._block(block, source) if block is not None else []
        return Try(
            body=self._block(body_node, source) if body_node is not None else [],
            catches=catches,
            finally_body=finally_body,
            text=self._text(node, source),
            span=self._span(node),
        )

    # =========================================================================
    # Expressions
    # =========================================================================

    def _expr(self, node: tree_sitter.Node, source: bytes) -> Expr:
        t = node.type
        text = self._text(node, source)
        span = self._span(node)

        if t == "parenthesized_expression":
            inner = [c for c in node.named_children if c.type not in _COMMENT_TYPES]
            if len(inner) == 1:
                return self._expr(inner[0], source)
            return OpaqueExpr(text=text, span=span)

        if t == "identifier":
            return Name(name=text, text=text, span=span)

        if t in ("this", "super"):
            return This(text=text, span=span)

        if t == "string_literal":
            return Literal(kind="string", value=self._string_value(text), text=text, span=span)

        if t == "character_literal":
            return Literal(kind="char", value=_unescape(text[1:-1]), text=text, span=span)

        if t in _INT_LITERALS:
            return Literal(kind="number", value=self._int_value(text), text=text, span=span)

        if t in _FLOAT_LITERALS:
            digits = text.replace("_", "").rstrip("fFdD")
            try:
                value = float(digits) if t == "decimal_floating_point_literal" else float.fromhex(digits)
            except ValueError:
                return OpaqueExpr(text=text, span=span)
            return Literal(kind="number", value=value, text=text, span=span)

        if t in ("true", "false"):
            return Literal(kind="boolean", value=(t == "true"), text=text, span=span)

        if t == "null_literal":
            return Literal(kind="null", value=None, text=text, span=span)

        if t == "field_access":
            obj = node.child_by_field_name("object")
            field_node = node.child_by_field_name("field")
            if obj is None or field_node is None:
                return OpaqueExpr(text=text, span=span)
            return FieldAccess(
                target=self._expr(obj, source),
                name=self._text(field_node, source),
                text=text,
                span=span,
            )

        if t == "scoped_identifier":
            # a.b.c used as an expression (rare; e.g. in annotation values)
            scope = node.child_by_field_name("scope")
            name_node = node.child_by_field_name("name")
            if scope is None or name_node is None:
                return OpaqueExpr(text=text, span=span)
            return FieldAccess(
                target=self._expr(scope, source),
                name=self._text(name_node, source),
                text=text,
                span=span,
            )

        if t == "method_invocation":
            obj = node.child_by_field_name("object")
            args_node = node.child_by_field_name("arguments")
            return Call(
                target=self._expr(obj, source) if obj is not None else None,
                name=self._get_child_text(node, "name", source) or "",
                args=self._args(args_node, source),
                text=text,
                span=span,
            )

        if t == "object_creation_expression":
            if self._get_child_by_type(node, "class_body") is not None:
                return OpaqueExpr(text=text, span=span)
            type_name = self._get_child_text(node, "type", source) or ""
            return New(
                type_name=type_name,
                args=self._args(node.child_by_field_name("arguments"), source),
                text=text,
                span=span,
            )

        if t == "cast_expression":
            value = node.child_by_field_name("value")
            if value is None:
                return OpaqueExpr(text=text, span=span)
            return Cast(
                type_name=self._get_child_text(node, "type", source) or "",
                expr=self._expr(value, source),
                text=text,
                span=span,
            )

        if t == "lambda_expression":
            return self._lambda(node, source)

        if t == "binary_expression":
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            operator = node.child_by_field_name("operator")
            if left is None or right is None or operator is None:
                return OpaqueExpr(text=text, span=span)
            return Binary(
                op=operator.type,
                left=self._expr(left, source),
                right=self._expr(right, source),
                text=text,
                span=span,
            )

        if t == "unary_expression":
            operator = node.child_by_field_name("operator")
            operand = node.child_by_field_name("operand")
            if operator is None or operand is None:
                return OpaqueExpr(text=text, span=span)
            return Unary(op=operator.type, operand=self._expr(operand, source), text=text, span=span)

        return OpaqueExpr(text=text, span=span)

    def _args(self, node: Optional[tree_sitter.Node], source: bytes) -> List[Expr]:
        if node is None:
            return []
        return [self._expr(c, source) for c in node.named_children if c.type not in _COMMENT_TYPES]

    def _lambda(self, node: tree_sitter.Node, source: bytes) -> Lambda:
        params: List[str] = []
        params_node = node.child_by_field_name("parameters")
        if params_node is not None:
            if params_node.type == "identifier":
                params.append(self._text(params_node, source))
            else:
                for p in params_node.named_children:
                    if p.type == "identifier":
                        params.append(self._text(p, source))
                    elif p.type == "formal_parameter":
                        params.append(self._get_child_text(p, "name", source) or "")

        body_node = node.child_by_field_name("body")
        body: object
        if body_node is None:
            body = []
        elif body_node.type == "block":
            body = self._block(body_node, source)
        else:
            body = self._expr(body_node, source)
        return Lambda(params=params, body=body, text=self._text(node, source), span=self._span(node))

    @staticmethod
    def _string_value(text: str) -> str:
        if text.startswith('"""'):
            body = text[3:-3]
            # Strip the opening line break and common indentation of a text block.
            lines = body.split("\n")[1:] if "\n" in body else [body]
            indent = min(
                (len(line) - len(line.lstrip()) for line in lines if line.strip()),
                default=0,
            )
            return _unescape("\n".join(line[indent:] for line in lines))
        return _unescape(text[1:-1])

    @staticmethod
    def _int_value(text: str) -> int:
        digits = text.replace("_", "").rstrip("lL")
        lowered = digits.lower()
        if lowered.startswith("0x"):
            return int(digits[2:], 16)
        if lowered.startswith("0b"):
            return int(digits[2:], 2)
        if len(digits) > 1 and digits.startswith("0"):
            return int(digits[1:], 8)
        return int(digits)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _text(node: tree_sitter.Node, source: bytes) -> str:
        return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def _span(node: tree_sitter.Node) -> Span:
        return Span(node.start_point.row + 1, node.end_point.row + 1, node.start_point.column + 1)

    @staticmethod
    def _get_child_text(node: tree_sitter.Node, field_name: str, source: bytes) -> Optional[str]:
        child = node.child_by_field_name(field_name)
        if child:
            return source[child.start_byte:child.end_byte].decode("utf-8", errors="replace")
        return None

    @staticmethod
    def _get_child_by_type(node: tree_sitter.Node, type_name: str) -> Optional[tree_sitter.Node]:
        for child in node.children:
            if child.type == type_name:
                return child
        return None

    @staticmethod
    def _extract_package(root: tree_sitter.Node, source: bytes) -> str:
        """Extract package name from the compilation unit."""
        for child in root.children:
            if child.type == "package_declaration":
                text = source[child.start_byte:child.end_byte].decode("utf-8", errors="replace").strip()
                return text.replace("package ", "", 1).rstrip(";").strip()
        return ""

    @staticmethod
    def _import_path(node: tree_sitter.Node, source: bytes) -> str:
        """``import static org.junit.Assert.*;`` -> ``static org.junit.Assert.*``"""
        text = source[node.start_byte:node.end_byte].decode("utf-8", errors="replace").strip()
        text = text[len("import"):].rstrip(";").strip()
        return " ".join(text.split())

    @staticmethod
    def _extract_inheritance(node: tree_sitter.Node, source: bytes) -> tuple:
        """Extract extends and implements clauses from a class declaration.

        Returns:
            (extends: str | None, implements: list[str])
        """
        extends = None
        implements = []

        for child in node.children:
            if child.type == "superclass":
                for sub in child.named_children:
                    extends = source[sub.start_byte:sub.end_byte].decode("utf-8", errors="replace")
                    break

            elif child.type == "super_interfaces":
                for sub in child.children:
                    if sub.type == "type_list":
                        for type_node in sub.named_children:
                            implements.append(
                                source[type_node.start_byte:type_node.end_byte].decode("utf-8", errors="replace")
                            )

        return extends, implements
