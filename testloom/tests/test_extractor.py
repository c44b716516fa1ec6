"""Tests for semantic extraction and unit classification."""

from testloom.core.action_model import models as am
from testloom.core.action_model.walk import count_actions, iter_delegate_calls
from testloom.core.ast_parser import parse_source
from testloom.core.extraction import classify, detect_framework, extract
from testloom.core.pipeline import extract_source


JUNIT5_SEARCH = '''
package com.example.search;

import org.junit.jupiter.api.Disabled;
import org.junit.jupiter.api.DisplayName;
import org.junit.jupiter.api.Test;
import org.openqa.selenium.By;
import org.openqa.selenium.Keys;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.WebElement;
import org.openqa.selenium.firefox.FirefoxDriver;
import static org.junit.jupiter.api.Assertions.assertEquals;

public class SearchTest {
    private WebDriver driver = new FirefoxDriver();

    @Test
    @DisplayName("search returns results")
    void searchReturnsResults() {
        driver.get("https://example.com");
        WebElement box = driver.findElement(By.name("q"));
        box.sendKeys("playwright", Keys.ENTER);
        assertEquals("Results", driver.getTitle(), "title after search");
    }

    @Disabled
    @Test
    void refreshes() {
        driver.navigate().refresh();
    }
}
'''

TESTNG_HOME = '''
package com.example.ng;

import org.openqa.selenium.WebDriver;
import org.openqa.selenium.chrome.ChromeDriver;
import org.testng.Assert;
import org.testng.annotations.BeforeMethod;
import org.testng.annotations.Test;

public class HomeTest {
    private WebDriver driver;

    @BeforeMethod
    public void setUp() {
        driver = new ChromeDriver();
    }

    @Test(enabled = false, description = "title check")
    public void titleIsHome() {
        driver.get("https://example.com");
        Assert.assertEquals(driver.getTitle(), "Home");
    }
}
'''

SEARCH_PAGE = '''
package com.example.pages;

import java.util.List;
import org.openqa.selenium.WebElement;
import org.openqa.selenium.support.FindBy;
import org.openqa.selenium.support.How;

public class SearchPage {
    @FindBy(how = How.CSS, using = "input.search")
    private WebElement searchBox;

    @FindBy(css = "li.result")
    private List<WebElement> results;

    public void search(String term) {
        searchBox.sendKeys(term);
        searchBox.submit();
    }

    public int resultCount() {
        return results.size();
    }
}
'''

ALERT_TEST = '''
package com.example.tests;

import org.junit.Test;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.chrome.ChromeDriver;
import org.openqa.selenium.support.ui.ExpectedConditions;
import org.openqa.selenium.support.ui.WebDriverWait;

public class AlertTest {
    private WebDriver driver = new ChromeDriver();
    private WebDriverWait wait = new WebDriverWait(driver, 5);

    @Test
    public void acceptsAlert() {
        wait.until(ExpectedConditions.alertIsPresent());
    }
}
'''


def _unit(read_fixture, rel_path):
    return extract_source(rel_path, read_fixture(rel_path))


def _method(unit, name):
    return next(m for m in unit.methods if m.name == name)


def _test(unit, name):
    return next(t for t in unit.tests if t.name == name)


# =========================================================================
# Tests: Classification
# =========================================================================

class TestClassification:
    def test_test_class(self, read_fixture):
        tree = parse_source(read_fixture("LoginTest.java"), "LoginTest.java")
        assert classify(tree.primary_class) == am.UnitKind.TEST_CLASS

    def test_page_object(self, read_fixture):
        tree = parse_source(read_fixture("suite/pages/LoginPage.java"), "LoginPage.java")
        assert classify(tree.primary_class) == am.UnitKind.PAGE_OBJECT

    def test_utility_module(self, read_fixture):
        tree = parse_source(read_fixture("suite/utils/TestUtils.java"), "TestUtils.java")
        assert classify(tree.primary_class) == am.UnitKind.UTILITY_MODULE

    def test_suite_promotion(self, read_fixture):
        unit = _unit(read_fixture, "suite/LoginSuiteTest.java")
        assert unit.kind == am.UnitKind.SUITE

    def test_self_calls_do_not_promote(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        assert unit.kind == am.UnitKind.TEST_CLASS


class TestFrameworkDetection:
    def test_junit4(self):
        assert detect_framework(["org.junit.Test", "static org.junit.Assert.*"]) == "junit4"

    def test_junit5_wins_over_junit_prefix(self):
        assert detect_framework(["org.junit.jupiter.api.Test"]) == "junit5"

    def test_testng(self):
        assert detect_framework(["org.testng.annotations.Test"]) == "testng"

    def test_none(self):
        assert detect_framework(["java.util.List"]) == ""


# =========================================================================
# Tests: Test classes
# =========================================================================

class TestLoginTestExtraction:
    def test_unit_identity(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        assert unit.qualified_name == "com.example.tests.LoginTest"
        assert unit.simple_name == "LoginTest"
        assert unit.framework == "junit4"
        assert [t.name for t in unit.tests] == ["testSuccessfulLogin", "testFailedLogin"]

    def test_context_absorbs_setup(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        ctx = unit.context
        assert ctx.browser == "chromium"
        assert ctx.default_timeout == 10.0
        assert dict(ctx.timeouts) == {"wait": 10.0}
        assert ctx.driver_names == ("driver",)

    def test_lifecycle_methods(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        set_up = _method(unit, "setUp")
        tear_down = _method(unit, "tearDown")
        assert set_up.role == am.MethodRole.SETUP
        assert [a.command for a in set_up.actions] == ["maximize"]
        # the null guard around quit() is dropped
        assert tear_down.role == am.MethodRole.TEARDOWN
        assert [a.command for a in tear_down.actions] == ["quit"]

        test = _test(unit, "testFailedLogin")
        assert test.setup == ("setUp",)
        assert test.teardown == ("tearDown",)

    def test_actions_in_source_order(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        actions = _test(unit, "testSuccessfulLogin").actions
        kinds = [type(a).__name__ for a in actions]
        assert kinds == [
            "Navigate",
            "Locate", "Locate", "Locate",
            "Interact", "Interact", "Interact", "Interact", "Interact",
            "Locate", "Wait",
            "Locate", "Bind", "Assert",
            "Locate", "Bind", "Assert",
        ]

        navigate = actions[0]
        assert navigate.url == am.Literal("https://example.com/login")
        assert navigate.provenance == am.Provenance("LoginTest.java", 31, 31)

        username = actions[1]
        assert username.locator == am.Locator("id", am.Literal("username"))
        assert username.ref.name == "usernameField"
        assert not username.inline
        assert actions[3].locator.strategy == "xpath"

        assert [(a.op, a.element.name) for a in actions[4:9]] == [
            ("clear", "usernameField"),
            ("sendKeys", "usernameField"),
            ("clear", "passwordField"),
            ("sendKeys", "passwordField"),
            ("click", "loginButton"),
        ]

    def test_wait_on_locator(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        actions = _test(unit, "testSuccessfulLogin").actions
        locate, wait = actions[9], actions[10]
        assert locate.inline
        assert locate.locator == am.Locator("id", am.Literal("dashboard"))
        assert wait.condition == "visibilityOf"
        assert wait.timeout_seconds == 10.0
        assert wait.target == locate.ref

    def test_contains_assertion(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        actions = _test(unit, "testSuccessfulLogin").actions
        bind, check = actions[12], actions[13]
        assert bind.name == "messageText"
        assert isinstance(bind.value, am.ElementQuery)
        assert bind.value.query == "text"
        assert check.kind == "contains"
        assert check.actual == am.VarRef("messageText")
        assert check.expected == am.Literal("Welcome, Test User")

    def test_inline_lookup_in_value(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        actions = _test(unit, "testSuccessfulLogin").actions
        locate, bind = actions[14], actions[15]
        assert locate.inline
        assert locate.locator.strategy == "linkText"
        assert bind.value == am.ElementQuery(locate.ref, "visible")

    def test_junit4_equals_order(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        check = next(a for a in _test(unit, "testFailedLogin").actions if isinstance(a, am.Assert))
        assert check.kind == "equals"
        assert check.expected == am.Literal("Invalid username or password")
        assert isinstance(check.actual, am.ElementQuery)
        assert check.actual.ref.name == "errorMessage"
        assert check.message is None

    def test_page_query(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        binds = [a for a in _test(unit, "testFailedLogin").actions if isinstance(a, am.Bind)]
        assert binds[-1].name == "currentUrl"
        assert binds[-1].value == am.PageQuery("url")

    def test_no_diagnostics(self, read_fixture):
        unit = _unit(read_fixture, "LoginTest.java")
        assert unit.diagnostics == ()


class TestShoppingCartExtraction:
    def test_context_aliases(self, read_fixture):
        unit = _unit(read_fixture, "ShoppingCartTest.java")
        assert unit.context.actions_aliases == ("actions",)
        assert unit.context.script_aliases == ("js",)

    def test_hover_select_and_pick(self, read_fixture):
        unit = _unit(read_fixture, "ShoppingCartTest.java")
        actions = _test(unit, "testAddItemToCart").actions

        hover = next(a for a in actions if isinstance(a, am.Interact) and a.op == "hover")
        assert hover.element.name == "firstProduct"

        select = next(a for a in actions if isinstance(a, am.Interact) and a.op == "selectByVisibleText")
        assert select.element.name == "sizeDropdown"
        assert select.args == (am.Literal("Medium"),)

        items = next(a for a in actions if isinstance(a, am.Locate) and a.ref.name == "cartItems")
        assert items.multiple
        pick = next(a for a in actions if isinstance(a, am.Pick))
        assert pick.source == items.ref
        assert pick.index == am.Literal(0, "number")
        assert pick.ref.name == "cartItem"

        nested = next(a for a in actions if isinstance(a, am.Locate) and a.ref.name == "quantityDisplay")
        assert nested.parent == pick.ref

    def test_count_and_script(self, read_fixture):
        unit = _unit(read_fixture, "ShoppingCartTest.java")
        actions = _test(unit, "testAddItemToCart").actions
        asserts = [a for a in actions if isinstance(a, am.Assert)]

        count = asserts[1]
        assert count.expected == am.Literal(1, "number")
        assert isinstance(count.actual, am.ElementQuery)
        assert count.actual.query == "count"

        script = next(a for a in actions if isinstance(a, am.ScriptExec))
        assert script.bind == "cartCount"
        assert script.code.startswith("return parseInt(")
        # intValue() unboxes to the bound variable
        assert asserts[-1].actual == am.VarRef("cartCount")

    def test_url_wait(self, read_fixture):
        unit = _unit(read_fixture, "ShoppingCartTest.java")
        waits = [a for a in _test(unit, "testAddItemToCart").actions if isinstance(a, am.Wait)]
        url_wait = next(w for w in waits if w.condition == "urlContains")
        assert url_wait.target is None
        assert url_wait.args == (am.Literal("/cart"),)

    def test_count_actions(self, read_fixture):
        unit = _unit(read_fixture, "ShoppingCartTest.java")
        test = _test(unit, "testRemoveItemFromCart")
        assert count_actions(test.actions, am.Navigate) == 2
        assert count_actions(test.actions, am.Wait) == 3


class TestJUnit5AndTestNG:
    def test_junit5_features(self):
        unit = extract_source("SearchTest.java", JUNIT5_SEARCH)
        assert unit.framework == "junit5"
        assert unit.context.browser == "firefox"

        test = _test(unit, "searchReturnsResults")
        assert test.display_name == "search returns results"
        assert not test.disabled

        interacts = [a for a in test.actions if isinstance(a, am.Interact)]
        assert [(a.op, a.args) for a in interacts] == [
            ("sendKeys", (am.Literal("playwright"),)),
            ("press", (am.Literal("Enter"),)),
        ]

        check = test.actions[-1]
        assert check.expected == am.Literal("Results")
        assert check.actual == am.PageQuery("title")
        assert check.message == am.Literal("title after search")

    def test_junit5_disabled(self):
        unit = extract_source("SearchTest.java", JUNIT5_SEARCH)
        test = _test(unit, "refreshes")
        assert test.disabled
        assert [a.command for a in test.actions] == ["refresh"]

    def test_testng_order_and_attributes(self):
        unit = extract_source("HomeTest.java", TESTNG_HOME)
        assert unit.framework == "testng"
        test = _test(unit, "titleIsHome")
        assert test.disabled
        assert test.display_name == "title check"
        check = test.actions[-1]
        assert check.actual == am.PageQuery("title")
        assert check.expected == am.Literal("Home")


# =========================================================================
# Tests: Page objects and utility modules
# =========================================================================

class TestPageObjectExtraction:
    def test_locator_fields(self, read_fixture):
        unit = _unit(read_fixture, "suite/pages/LoginPage.java")
        assert unit.kind == am.UnitKind.PAGE_OBJECT
        fields = {f.name: f.locator for f in unit.locator_fields}
        assert fields == {
            "usernameField": am.Locator("id", am.Literal("username")),
            "passwordField": am.Locator("id", am.Literal("password")),
            "loginButton": am.Locator("xpath", am.Literal("//button[@type='submit']")),
            "errorMessage": am.Locator("className", am.Literal("error-message")),
        }
        assert unit.page_object.locator_map["errorMessage"].strategy == "className"

    def test_constructor_is_absorbed(self, read_fixture):
        unit = _unit(read_fixture, "suite/pages/LoginPage.java")
        ctor = next(m for m in unit.methods if m.role == am.MethodRole.CONSTRUCTOR)
        assert ctor.actions == ()
        assert dict(unit.context.timeouts) == {"wait": 10.0}

    def test_page_methods(self, read_fixture):
        unit = _unit(read_fixture, "suite/pages/LoginPage.java")
        names = [m.name for m in unit.page_object.methods]
        assert names == [
            "enterUsername",
            "enterPassword",
            "clickLogin",
            "login",
            "isErrorMessageDisplayed",
            "getErrorMessage",
        ]
        login = _method(unit, "login")
        calls = list(iter_delegate_calls(login.actions))
        assert [(c.style, c.method) for c in calls] == [
            ("self", "enterUsername"),
            ("self", "enterPassword"),
            ("self", "clickLogin"),
        ]
        assert calls[0].args == (am.VarRef("username"),)

    def test_try_catch_becomes_probe(self, read_fixture):
        unit = _unit(read_fixture, "suite/pages/LoginPage.java")
        method = _method(unit, "isErrorMessageDisplayed")
        assert method.returns_value
        probe = method.actions[0]
        assert isinstance(probe, am.Probe)
        wait, ret = probe.body
        assert wait.condition == "visibilityOf"
        assert wait.target.origin == "field"
        assert ret.value.query == "visible"
        assert probe.fallback[0].value == am.Literal(False, "boolean")

    def test_find_by_how_using(self):
        unit = extract_source("SearchPage.java", SEARCH_PAGE)
        fields = {f.name: f for f in unit.locator_fields}
        assert fields["searchBox"].locator == am.Locator("cssSelector", am.Literal("input.search"))
        assert fields["results"].multiple

        search = _method(unit, "search")
        assert [a.op for a in search.actions] == ["sendKeys", "submit"]
        count = _method(unit, "resultCount").actions[0]
        assert count.value.query == "count"


class TestUtilityExtraction:
    def test_script_wait(self, read_fixture):
        unit = _unit(read_fixture, "suite/utils/TestUtils.java")
        method = _method(unit, "waitForPageLoad")
        assert method.role == am.MethodRole.FUNCTION
        assert method.static
        wait = method.actions[0]
        assert wait.condition == "scriptReturns"
        assert wait.timeout_seconds == 30.0
        assert wait.args == (am.Literal("return document.readyState"), am.Literal("complete"))

    def test_script_and_pause(self, read_fixture):
        unit = _unit(read_fixture, "suite/utils/TestUtils.java")
        script, pause = _method(unit, "scrollIntoView").actions
        assert script.code == "arguments[0].scrollIntoView(true);"
        assert isinstance(script.args[0], am.ElementValue)
        assert script.args[0].ref.origin == "param"
        assert pause.millis == am.Literal(500, "number")

    def test_unrecognized_constructs_become_opaque(self, read_fixture):
        unit = _unit(read_fixture, "suite/utils/TestUtils.java")
        method = _method(unit, "getRandomString")
        opaque = [a for a in method.actions if isinstance(a, am.Opaque)]
        assert len(opaque) == 3
        assert opaque[1].text.startswith("for (int i = 0")

        warnings = [d for d in unit.diagnostics if d.code == "unrecognized_construct"]
        assert len(warnings) == 3
        assert warnings[1].position.line == 53

    def test_unknown_wait_condition_is_kept(self):
        unit = extract_source("AlertTest.java", ALERT_TEST)
        wait = _test(unit, "acceptsAlert").actions[0]
        assert wait.condition == "alertIsPresent"
        assert wait.timeout_seconds == 5.0


class TestSuiteExtraction:
    def test_page_objects_in_context(self, read_fixture):
        unit = _unit(read_fixture, "suite/LoginSuiteTest.java")
        assert dict(unit.context.page_objects) == {
            "loginPage": "LoginPage",
            "dashboardPage": "DashboardPage",
        }

    def test_delegate_styles(self, read_fixture):
        unit = _unit(read_fixture, "suite/LoginSuiteTest.java")
        calls = list(iter_delegate_calls(_test(unit, "testSuccessfulLogin").actions))
        assert [(c.style, c.target_type, c.method) for c in calls] == [
            ("instance", "LoginPage", "login"),
            ("static", "TestUtils", "waitForPageLoad"),
            ("instance", "DashboardPage", "isWelcomeMessageDisplayed"),
            ("instance", "DashboardPage", "getWelcomeMessage"),
            ("instance", "DashboardPage", "isLogoutButtonDisplayed"),
        ]
        assert calls[0].receiver == "loginPage"
        assert calls[1].args == (am.DriverRef(),)
        assert len({c.call_id for c in calls}) == len(calls)

    def test_extract_from_tree(self, read_fixture):
        tree = parse_source(read_fixture("suite/LoginSuiteTest.java"), "suite/LoginSuiteTest.java")
        unit = extract(tree)
        assert unit.package == "com.example.tests.suite"
        assert "com.example.pages.LoginPage" in unit.imports
