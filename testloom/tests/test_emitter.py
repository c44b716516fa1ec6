"""Tests for target emission, the delegate strategies and the parity gates."""

import pytest

from testloom.core.action_model import models as am
from testloom.core.diagnostics import EmitError, EmitErrorKind
from testloom.core.emitter import UnitEmitter, emit, output_path
from testloom.core.emitter.gates import run_gates
from testloom.core.emitter.renderer import css_identifier, css_string, escape_selector_value
from testloom.core.emitter.writer import CodeWriter


GATE_TEST = '''
package com.example.tests;

import java.time.Duration;
import org.junit.Test;
import org.openqa.selenium.By;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.support.ui.ExpectedConditions;
import org.openqa.selenium.support.ui.WebDriverWait;

public class GateTest {
    private WebDriver driver;

    @Test
    public void ordered() {
        driver.get("https://example.com");
        driver.findElement(By.id("first")).click();
        new WebDriverWait(driver, Duration.ofSeconds(5)).until(ExpectedConditions.urlContains("/done"));
        driver.findElement(By.id("second")).click();
    }
}
'''

INLINE_LOGIN_TEST = '''
package com.example.tests;

import com.example.pages.LoginPage;
import org.junit.Before;
import org.junit.Test;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.chrome.ChromeDriver;

public class InlineLoginTest {
    private WebDriver driver;
    private LoginPage loginPage;

    @Before
    public void setUp() {
        driver = new ChromeDriver();
        loginPage = new LoginPage(driver);
    }

    @Test
    public void logsIn() {
        driver.get("https://example.com/login");
        loginPage.login("testuser", "password123");
    }
}
'''

ALERT_TEST = '''
package com.example.tests;

import java.time.Duration;
import org.junit.Test;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.support.ui.ExpectedConditions;
import org.openqa.selenium.support.ui.WebDriverWait;

public class AlertTest {
    private WebDriver driver;

    @Test
    public void acceptsAlert() {
        new WebDriverWait(driver, Duration.ofSeconds(5)).until(ExpectedConditions.alertIsPresent());
    }
}
'''

FIELD_TEST = '''
package com.example.tests;

import org.junit.Test;
import org.openqa.selenium.By;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.WebElement;

public class FieldTest {
    private WebDriver driver;

    @Test
    public void typesIntoFields() {
        WebElement name = driver.findElement(By.id("name"));
        name.sendKeys("John");
        name.sendKeys(" Doe");
        name.clear();
        name.sendKeys("Jane");
        driver.findElement(By.id("loginForm:username")).sendKeys("admin");
        driver.findElement(By.id("user.name")).click();
        driver.findElement(By.className("2col")).click();
    }
}
'''

FRAME_PAGE = '''
package com.example.pages;

import java.time.Duration;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.support.ui.ExpectedConditions;
import org.openqa.selenium.support.ui.WebDriverWait;

public class FramePage {
    private WebDriver driver;

    public FramePage(WebDriver driver) {
        this.driver = driver;
    }

    public void acceptAlert() {
        new WebDriverWait(driver, Duration.ofSeconds(5)).until(ExpectedConditions.alertIsPresent());
    }
}
'''

USES_PAGE_TEST = '''
package com.example.tests;

import com.example.pages.FramePage;
import org.junit.Before;
import org.junit.Test;
import org.openqa.selenium.WebDriver;
import org.openqa.selenium.chrome.ChromeDriver;

public class UsesPageTest {
    private WebDriver driver;
    private FramePage framePage;

    @Before
    public void setUp() {
        driver = new ChromeDriver();
        framePage = new FramePage(driver);
    }

    @Test
    public void acceptsAlert() {
        framePage.acceptAlert();
    }
}
'''


def _emitted(result, output):
    return next(u for u in result.units if u.output_path == output).text


@pytest.fixture(scope="module")
def ts_result(sample_model, ts_profile):
    return emit(sample_model, ts_profile)


@pytest.fixture(scope="module")
def py_result(sample_model, py_profile):
    return emit(sample_model, py_profile)


# =========================================================================
# Tests: Writer
# =========================================================================

class TestCodeWriter:
    def test_indentation_and_statement_count(self):
        w = CodeWriter("    ")
        w.line("def f():")
        with w.indented():
            w.comment("# note")
            w.line("return 1")
        w.line("")
        assert w.lines == ["def f():", "    # note", "    return 1", ""]
        assert w.statements == 2

    def test_multi_line_text(self):
        w = CodeWriter("  ", level=1)
        w.line("@decorator\ndef g():")
        assert w.text() == "  @decorator\n  def g():"


# =========================================================================
# Tests: Output paths
# =========================================================================

class TestOutputPaths:
    def test_typescript_paths(self, sample_model, ts_profile):
        paths = {u.unit_name: output_path(u, ts_profile) for u in sample_model.units}
        assert paths["LoginTest.java"] == "LoginTest.spec.ts"
        assert paths["suite/pages/LoginPage.java"] == "suite/pages/LoginPage.ts"
        assert paths["suite/utils/TestUtils.java"] == "suite/utils/TestUtils.ts"

    def test_python_paths(self, sample_model, py_profile):
        paths = {u.unit_name: output_path(u, py_profile) for u in sample_model.units}
        assert paths["LoginTest.java"] == "login_test.py"
        assert paths["suite/LoginSuiteTest.java"] == "suite/login_suite_test.py"
        assert paths["suite/pages/DashboardPage.java"] == "suite/pages/dashboard_page.py"


# =========================================================================
# Tests: Playwright TypeScript
# =========================================================================

class TestTypeScriptEmission:
    def test_everything_converts(self, ts_result, sample_model):
        assert ts_result.failed == {}
        converted = [u.source_unit for u in ts_result.units if u.source_unit]
        assert converted == sorted(u.unit_name for u in sample_model.units)
        support = sorted(u.output_path for u in ts_result.units if u.kind == am.UnitKind.SUPPORT)
        assert support == ["README.md", "package.json", "playwright.config.ts", "tsconfig.json"]

    def test_test_class(self, ts_result):
        text = _emitted(ts_result, "LoginTest.spec.ts")
        assert text.startswith("// Generated by testloom from LoginTest.java\n")
        assert "import { test, expect } from '@playwright/test';" in text
        assert "test.describe('LoginTest', () => {" in text
        assert "test('testSuccessfulLogin', async ({ page }) => {" in text
        assert "await page.goto('https://example.com/login');" in text
        assert "const usernameField = page.locator('#username');" in text
        assert "await usernameField.fill('testuser');" in text
        assert "await usernameField.pressSequentially('wronguser');" in text
        assert "await page.locator('#dashboard').waitFor({ state: 'visible', timeout: 10000 });" in text
        assert "const messageText = await welcomeMessage.innerText();" in text
        assert "expect(messageText).toContain('Welcome, Test User');" in text
        assert "page.getByRole('link', { name: 'Logout', exact: true }).isVisible()" in text
        assert "expect(await errorMessage.innerText()).toBe('Invalid username or password');" in text
        assert "const currentUrl = page.url();" in text
        assert "page.locator('xpath=//button[@type=\\'submit\\']')" in text

    def test_absorbed_hooks_are_omitted(self, ts_result):
        text = _emitted(ts_result, "LoginTest.spec.ts")
        assert "beforeEach" not in text
        assert "afterEach" not in text
        assert "maximize" not in text

    def test_dropped_commands_are_noted(self, ts_result):
        notes = [
            d for d in ts_result.diagnostics
            if d.unit_name == "LoginTest.java" and d.code == "emit_note"
        ]
        assert any("'maximize'" in d.message for d in notes)
        assert any("'quit'" in d.message for d in notes)

    def test_suite_imports_and_calls(self, ts_result):
        text = _emitted(ts_result, "suite/LoginSuiteTest.spec.ts")
        assert "import { DashboardPage } from './pages/DashboardPage';" in text
        assert "import { LoginPage } from './pages/LoginPage';" in text
        assert "import * as TestUtils from './utils/TestUtils';" in text
        assert "const loginPage = new LoginPage(page);" in text
        assert "await loginPage.login('testuser', 'password123');" in text
        assert "await TestUtils.waitForPageLoad(page);" in text
        assert "expect(await dashboardPage.isWelcomeMessageDisplayed()).toBe(true);" in text

    def test_page_object_class(self, ts_result):
        text = _emitted(ts_result, "suite/pages/LoginPage.ts")
        assert "export class LoginPage {" in text
        assert "readonly page: Page;" in text
        assert "readonly usernameField: Locator;" in text
        assert "constructor(page: Page) {" in text
        assert "this.page = page;" in text
        assert "this.usernameField = page.locator('#username');" in text
        assert "async login(username: string, password: string): Promise<void> {" in text
        assert "await this.enterUsername(username);" in text
        assert "} catch {" in text

    def test_presence_probe_collapses(self, ts_result):
        text = _emitted(ts_result, "suite/pages/DashboardPage.ts")
        assert "return await this.logoutButton.isVisible();" in text

    def test_utility_module(self, ts_result):
        text = _emitted(ts_result, "suite/utils/TestUtils.ts")
        assert "export async function waitForPageLoad(page: Page): Promise<void> {" in text
        assert (
            'await page.waitForFunction(() => document.readyState === "complete", undefined, { timeout: 30000 });'
            in text
        )
        assert (
            "await page.evaluate((args) => { args[0].scrollIntoView(true); }, [await element.elementHandle()]);"
            in text
        )
        assert "await page.waitForTimeout(500);" in text
        assert "export async function isElementPresent(page: Page, element: Locator): Promise<boolean> {" in text
        assert "return await element.isVisible();" in text
        assert "// [untranslated] for (int i = 0; i < length; i++) {" in text

    def test_runner_config_uses_browser(self, ts_result):
        config = _emitted(ts_result, "playwright.config.ts")
        assert "browserName: 'chromium'," in config

    def test_deterministic(self, sample_model, ts_profile, ts_result):
        again = emit(sample_model, ts_profile)
        assert [(u.output_path, u.text) for u in again.units] == [
            (u.output_path, u.text) for u in ts_result.units
        ]


# =========================================================================
# Tests: Playwright Python
# =========================================================================

class TestPythonEmission:
    def test_everything_converts(self, py_result):
        assert py_result.failed == {}

    def test_test_module(self, py_result):
        text = _emitted(py_result, "login_test.py")
        assert text.startswith("# Generated by testloom from LoginTest.java\n")
        assert "def test_successful_login(page: Page):" in text
        assert 'page.goto("https://example.com/login")' in text
        assert 'username_field = page.locator("#username")' in text
        assert 'username_field.fill("testuser")' in text
        assert 'page.locator("#dashboard").wait_for(state="visible", timeout=10000)' in text
        assert 'assert "Welcome, Test User" in message_text' in text
        assert 'assert error_message.inner_text() == "Invalid username or password"' in text

    def test_suite_module(self, py_result):
        text = _emitted(py_result, "suite/login_suite_test.py")
        assert "from suite.pages.login_page import LoginPage" in text
        assert "import suite.utils.test_utils as test_utils" in text
        assert "login_page = LoginPage(page)" in text
        assert "test_utils.wait_for_page_load(page)" in text

    def test_page_object_class(self, py_result):
        text = _emitted(py_result, "suite/pages/login_page.py")
        assert "class LoginPage:" in text
        assert "def __init__(self, page: Page):" in text
        assert 'self.username_field = page.locator("#username")' in text
        assert "def login(self, username: str, password: str) -> None:" in text
        assert "self.enter_username(username)" in text

    def test_support_files(self, py_result):
        paths = {u.output_path for u in py_result.units if u.kind == am.UnitKind.SUPPORT}
        assert {"pytest.ini", "suite/__init__.py", "suite/pages/__init__.py", "suite/utils/__init__.py"} <= paths
        ini = _emitted(py_result, "pytest.ini")
        assert "--browser chromium" in ini

    def test_header_imports_only_what_is_used(self, py_result):
        text = _emitted(py_result, "suite/pages/dashboard_page.py")
        assert "import pytest" not in text
        header = next(line for line in text.splitlines() if line.startswith("from playwright.sync_api import "))
        assert "Page" in header
        assert "expect" not in header


# =========================================================================
# Tests: Field input and selector escaping
# =========================================================================

class TestFieldInput:
    @pytest.fixture
    def field_model(self, build_model):
        return build_model({"FieldTest.java": FIELD_TEST})

    def test_send_keys_appends_unless_cleared(self, field_model, ts_profile):
        text = UnitEmitter(field_model.unit("FieldTest.java"), field_model, ts_profile, "call").emit().text
        john = text.index("await name.pressSequentially('John');")
        doe = text.index("await name.pressSequentially(' Doe');")
        clear = text.index("await name.clear();")
        jane = text.index("await name.fill('Jane');")
        assert john < doe < clear < jane
        assert "fill('John')" not in text

    def test_python_profile(self, field_model, py_profile):
        text = UnitEmitter(field_model.unit("FieldTest.java"), field_model, py_profile, "call").emit().text
        assert 'name.press_sequentially("John")' in text
        assert 'name.press_sequentially(" Doe")' in text
        assert 'name.fill("Jane")' in text

    def test_selector_values_are_escaped(self, field_model, ts_profile):
        emitter = UnitEmitter(field_model.unit("FieldTest.java"), field_model, ts_profile, "call")
        text = emitter.emit().text
        assert r"await page.locator('#loginForm\\:username').pressSequentially('admin');" in text
        assert r"await page.locator('#user\\.name').click();" in text
        assert r"await page.locator('.\\32 col').click();" in text
        assert all(r.passed for r in run_gates(text, emitter.state))

    @pytest.mark.parametrize("profile_fixture", ["ts_profile", "py_profile"])
    def test_no_waits_renders_no_waits(self, field_model, request, profile_fixture):
        profile = request.getfixturevalue(profile_fixture)
        emitter = UnitEmitter(field_model.unit("FieldTest.java"), field_model, profile, "call")
        text = emitter.emit().text
        assert emitter.state.waits_visited == 0
        for call in ("waitFor", "wait_for", "waitForURL", "wait_for_url", "wait_for_timeout"):
            assert call not in text
        assert all(r.passed for r in run_gates(text, emitter.state))


class TestSelectorEscaping:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("username", "username"),
            ("loginForm:username", "loginForm\\:username"),
            ("user.name", "user\\.name"),
            ("1a", "\\31 a"),
            ("-1a", "-\\31 a"),
            ("-", "\\-"),
            ("a b", "a\\ b"),
            ("café", "café"),
        ],
    )
    def test_identifier(self, value, expected):
        assert css_identifier(value) == expected

    def test_string(self):
        assert css_string('say "hi"') == 'say \\"hi\\"'
        assert css_string("a\\b") == "a\\\\b"
        assert css_string("line\nbreak") == "line\\a break"

    def test_modes(self):
        assert escape_selector_value("a.b", None) == "a.b"
        assert escape_selector_value("a.b", "identifier") == "a\\.b"
        assert escape_selector_value('a"b', "string") == 'a\\"b'


# =========================================================================
# Tests: Inline delegate strategy
# =========================================================================

class TestInlineStrategy:
    def test_page_calls_are_inlined(self, build_model, read_fixture, ts_profile):
        model = build_model({
            "InlineLoginTest.java": INLINE_LOGIN_TEST,
            "pages/LoginPage.java": read_fixture("suite/pages/LoginPage.java"),
        })
        result = emit(model, ts_profile, "inline")
        assert result.failed == {}
        text = _emitted(result, "InlineLoginTest.spec.ts")
        assert "// inlined LoginPage.login" in text
        assert "// inlined LoginPage.enterUsername" in text
        assert "await page.locator('#username').fill('testuser');" in text
        assert "new LoginPage(" not in text

    def test_value_position_calls_fail(self, sample_model, ts_profile):
        result = emit(sample_model, ts_profile, "inline")
        failed = result.failed
        assert failed["suite/LoginSuiteTest.java"].kind == EmitErrorKind.UNSUPPORTED_DELEGATE
        assert failed["suite/pages/DashboardPage.java"].kind == EmitErrorKind.UNSUPPORTED_DELEGATE
        assert "LoginTest.java" not in failed
        codes = {d.code for d in result.diagnostics if d.unit_name == "suite/LoginSuiteTest.java"}
        assert "emit_unsupported_delegate" in codes


# =========================================================================
# Tests: Failures and gates
# =========================================================================

class TestEmitFailures:
    def test_unknown_wait_condition(self, build_model, ts_profile):
        model = build_model({"AlertTest.java": ALERT_TEST})
        result = emit(model, ts_profile)
        assert result.units == []
        error = result.failed["AlertTest.java"]
        assert error.kind == EmitErrorKind.UNSUPPORTED_CONDITION
        assert "alertIsPresent" in error.message
        assert error.position.line == 15

    def test_importers_of_failed_units_fail(self, build_model, read_fixture, ts_profile):
        model = build_model({
            "UsesPageTest.java": USES_PAGE_TEST,
            "pages/FramePage.java": FRAME_PAGE,
            "LoginTest.java": read_fixture("LoginTest.java"),
        })
        result = emit(model, ts_profile)
        assert result.failed["pages/FramePage.java"].kind == EmitErrorKind.UNSUPPORTED_CONDITION
        error = result.failed["UsesPageTest.java"]
        assert error.kind == EmitErrorKind.FAILED_DEPENDENCY
        assert "pages/FramePage.java" in error.message
        outputs = [u.output_path for u in result.units]
        assert "UsesPageTest.spec.ts" not in outputs
        assert "pages/FramePage.ts" not in outputs
        assert "LoginTest.spec.ts" in outputs
        codes = [d.code for d in result.diagnostics if d.unit_name == "UsesPageTest.java"]
        assert "emit_failed_dependency" in codes


class TestParityGates:
    @pytest.fixture
    def gate_unit(self, build_model, ts_profile):
        model = build_model({"GateTest.java": GATE_TEST})
        emitter = UnitEmitter(model.unit("GateTest.java"), model, ts_profile, "call")
        converted = emitter.emit()
        return converted.text, emitter.state

    def test_rendered_lines(self, gate_unit):
        text, _ = gate_unit
        first = text.index("await page.locator('#first').click();")
        wait = text.index("await page.waitForURL((url) => url.toString().includes('/done'), { timeout: 5000 });")
        second = text.index("await page.locator('#second').click();")
        assert first < wait < second

    def test_all_gates_pass(self, gate_unit):
        text, state = gate_unit
        results = run_gates(text, state)
        assert [r.gate_name for r in results] == ["wait_parity", "locator_fidelity", "order_parity"]
        assert all(r.passed for r in results)

    def test_missing_wait(self, gate_unit):
        text, state = gate_unit
        lines = [line for line in text.splitlines() if "waitForURL" not in line]
        with pytest.raises(EmitError) as exc:
            run_gates("\n".join(lines), state)
        assert exc.value.kind == EmitErrorKind.PARITY_GATE
        assert "parity gate 'wait_parity' failed" in exc.value.message

    def test_reordered_actions(self, gate_unit):
        text, state = gate_unit
        first = "await page.locator('#first').click();"
        second = "await page.locator('#second').click();"
        swapped = text.replace(first, "@@").replace(second, first).replace("@@", second)
        with pytest.raises(EmitError) as exc:
            run_gates(swapped, state)
        assert "parity gate 'order_parity' failed" in exc.value.message

    def test_changed_locator(self, gate_unit):
        text, state = gate_unit
        with pytest.raises(EmitError) as exc:
            run_gates(text.replace("page.locator('#first')", "page.locator('.first')"), state)
        assert "parity gate 'locator_fidelity' failed" in exc.value.message
