"""Tests for the tree-sitter Java front end."""

import pytest

from testloom.core.ast_parser import (
    ParseError,
    SyntaxTree,
    detect_language,
    is_supported_file,
    parse_file,
    parse_source,
    should_skip_directory,
)
from testloom.core.ast_parser import models as syn


UNBALANCED = '''
public class Broken {
    public void go() {
        driver.get("https://example.com");
'''

UNTERMINATED_STRING = '''
public class Broken {
    public void go() {
        driver.get("https://example.com);
    }
}
'''

BRACE_IN_STRING = '''
public class Quoted {
    public void go() {
        driver.findElement(By.cssSelector("div[data-x='}']")).click();
    }
}
'''

TWO_CLASSES = '''
class Helper {}

public class Main {
    static class Inner {}
}
'''


# =========================================================================
# Tests: Language detection and file walking
# =========================================================================

class TestLanguageDetection:
    def test_java(self):
        assert detect_language("src/test/LoginTest.java") == "java"

    def test_unknown(self):
        assert detect_language("README.md") is None

    def test_case_insensitive(self):
        assert detect_language("LOGIN.JAVA") == "java"

    def test_supported_file(self):
        assert is_supported_file("a/b/LoginTest.java")
        assert not is_supported_file("a/b/login.py")

    def test_skip_directories(self):
        assert should_skip_directory("target")
        assert should_skip_directory("node_modules")
        assert should_skip_directory(".git")
        assert not should_skip_directory("pages")


# =========================================================================
# Tests: Declarations
# =========================================================================

class TestDeclarations:
    def test_package_and_imports(self, read_fixture):
        tree = parse_source(read_fixture("LoginTest.java"), "LoginTest.java")
        assert isinstance(tree, SyntaxTree)
        assert tree.language == "java"
        assert tree.package == "com.example.tests"
        assert "org.openqa.selenium.WebDriver" in tree.imports
        assert "static org.junit.Assert.*" in tree.imports

    def test_primary_class_and_methods(self, read_fixture):
        tree = parse_source(read_fixture("LoginTest.java"), "LoginTest.java")
        decl = tree.primary_class
        assert decl.name == "LoginTest"
        assert [m.name for m in decl.methods] == [
            "setUp",
            "testSuccessfulLogin",
            "testFailedLogin",
            "tearDown",
        ]
        annotations = {m.name: [a.name for a in m.annotations] for m in decl.methods}
        assert annotations["setUp"] == ["Before"]
        assert annotations["testFailedLogin"] == ["Test"]
        assert [f.name for f in decl.fields] == ["driver", "wait"]
        assert decl.fields[1].type_name == "WebDriverWait"

    def test_find_by_annotation_arguments(self, read_fixture):
        tree = parse_source(read_fixture("suite/pages/LoginPage.java"), "suite/pages/LoginPage.java")
        fields = {f.name: f for f in tree.primary_class.fields}
        ann = fields["loginButton"].annotations[0]
        assert ann.name == "FindBy"
        value = ann.arguments["xpath"]
        assert isinstance(value, syn.Literal)
        assert value.value == "//button[@type='submit']"

    def test_constructor(self, read_fixture):
        tree = parse_source(read_fixture("suite/pages/LoginPage.java"), "suite/pages/LoginPage.java")
        ctor = tree.primary_class.methods[0]
        assert ctor.is_constructor
        assert ctor.return_type == ""
        assert [(p.type_name, p.name) for p in ctor.params] == [("WebDriver", "driver")]

    def test_secondary_and_nested_classes(self):
        tree = parse_source(TWO_CLASSES, "Main.java")
        assert [c.name for c in tree.classes] == ["Helper", "Main"]
        assert tree.primary_class.name == "Main"
        assert tree.primary_class.nested == ["Inner"]


# =========================================================================
# Tests: Statements and expressions
# =========================================================================

class TestStatements:
    def test_body_statements_in_order(self, read_fixture):
        tree = parse_source(read_fixture("LoginTest.java"), "LoginTest.java")
        body = tree.primary_class.methods[1].body
        assert len(body) == 15  # comments are dropped

        first = body[0]
        assert isinstance(first, syn.ExprStmt)
        assert isinstance(first.expr, syn.Call)
        assert first.expr.name == "get"
        assert first.expr.target.name == "driver"
        assert first.expr.args[0].value == "https://example.com/login"

        local = body[1]
        assert isinstance(local, syn.LocalVar)
        assert local.type_name == "WebElement"
        assert local.name == "usernameField"
        assert local.init.name == "findElement"

    def test_assignment(self, read_fixture):
        tree = parse_source(read_fixture("LoginTest.java"), "LoginTest.java")
        first = tree.primary_class.methods[0].body[0]
        assert isinstance(first, syn.Assign)
        assert isinstance(first.value, syn.New)
        assert first.value.type_name == "ChromeDriver"

    def test_try_catch(self, read_fixture):
        tree = parse_source(read_fixture("suite/pages/LoginPage.java"), "suite/pages/LoginPage.java")
        method = next(m for m in tree.primary_class.methods if m.name == "isErrorMessageDisplayed")
        stmt = method.body[0]
        assert isinstance(stmt, syn.Try)
        assert len(stmt.body) == 2
        assert stmt.catches[0].types == ["Exception"]
        assert isinstance(stmt.catches[0].body[0], syn.Return)

    def test_lambda_inside_cast(self, read_fixture):
        tree = parse_source(read_fixture("suite/utils/TestUtils.java"), "suite/utils/TestUtils.java")
        method = tree.primary_class.methods[0]
        until = method.body[1].expr
        assert until.name == "until"
        cast = until.args[0]
        assert isinstance(cast, syn.Cast)
        assert isinstance(cast.expr, syn.Lambda)
        assert cast.expr.params == ["wd"]
        assert cast.expr.body.name == "equals"

    def test_unsupported_statement_is_opaque(self, read_fixture):
        tree = parse_source(read_fixture("suite/utils/TestUtils.java"), "suite/utils/TestUtils.java")
        method = next(m for m in tree.primary_class.methods if m.name == "getRandomString")
        loop = method.body[2]
        assert isinstance(loop, syn.OpaqueStmt)
        assert "for_statement" in loop.reason
        assert loop.text.startswith("for (int i = 0")

    def test_span_is_one_based(self, read_fixture):
        tree = parse_source(read_fixture("LoginTest.java"), "LoginTest.java")
        set_up = tree.primary_class.methods[0]
        assert set_up.span.start_line == 21
        assert set_up.body[0].span.start_line == 23


# =========================================================================
# Tests: Errors
# =========================================================================

class TestParseErrors:
    def test_unbalanced_braces(self):
        with pytest.raises(ParseError) as exc:
            parse_source(UNBALANCED, "Broken.java")
        assert exc.value.unit_name == "Broken.java"
        assert "unclosed '{'" in exc.value.message
        assert exc.value.position.line == 3

    def test_unterminated_string(self):
        with pytest.raises(ParseError) as exc:
            parse_source(UNTERMINATED_STRING, "Broken.java")
        assert "unterminated" in exc.value.message
        assert exc.value.position.line == 4

    def test_braces_inside_strings_are_ignored(self):
        tree = parse_source(BRACE_IN_STRING, "Quoted.java")
        assert tree.primary_class.name == "Quoted"

    def test_parse_file_uses_relative_unit_name(self, fixtures_dir):
        import os

        path = os.path.join(fixtures_dir, "suite", "pages", "DashboardPage.java")
        tree = parse_file(path, fixtures_dir)
        assert tree.unit_name == "suite/pages/DashboardPage.java"
        assert tree.package == "com.example.pages"

    def test_parse_file_rejects_unsupported(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        with pytest.raises(ValueError):
            parse_file(str(path))
