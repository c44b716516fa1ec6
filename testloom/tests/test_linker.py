"""Tests for cross-unit delegate resolution."""

import pytest

from testloom.core.action_model import models as am
from testloom.core.action_model.walk import iter_delegate_calls
from testloom.core.diagnostics import LinkError, LinkErrorKind
from testloom.core.linking import link
from testloom.core.pipeline import extract_source


def _test_class(body: str, imports: str = "", name: str = "FlowTest", package: str = "com.example.tests") -> str:
    return f'''
package {package};

import org.junit.Test;
import org.openqa.selenium.WebDriver;
{imports}

public class {name} {{
    private WebDriver driver;

    @Test
    public void flow() {{
        {body}
    }}
}}
'''


A_UTILS = '''
package com.example.utils;

public class AUtils {
    public static void a() {
        BUtils.b();
    }
}
'''

B_UTILS = '''
package com.example.utils;

public class BUtils {
    public static void b() {
        AUtils.a();
    }
}
'''

HELPERS_ONE = '''
package com.example.one;

public class Helpers {
    public static void reset() {
    }
}
'''

HELPERS_TWO = '''
package com.example.two;

public class Helpers {
    public static void reset() {
    }
}
'''

BASE_PAGE = '''
package com.example.pages;

import org.openqa.selenium.WebDriver;

public class BasePage {
    protected WebDriver driver;

    public void open(String url) {
        driver.get(url);
    }
}
'''

HOME_PAGE = '''
package com.example.pages;

import org.openqa.selenium.WebDriver;

public class HomePage extends BasePage {
    public HomePage(WebDriver driver) {
        this.driver = driver;
    }
}
'''

COOKIE_UTILS = '''
package com.example.utils;

import org.openqa.selenium.WebDriver;

public class TestUtils {
    public static void clearCookies(WebDriver driver) {
        driver.manage().deleteAllCookies();
    }
}
'''


# =========================================================================
# Tests: Successful resolution
# =========================================================================

class TestResolution:
    def test_sample_project_links(self, sample_model):
        suite = sample_model.unit("suite/LoginSuiteTest.java")
        calls = list(iter_delegate_calls(suite.tests[0].actions))
        keys = [sample_model.resolve(c) for c in calls]
        assert [str(k) for k in keys] == [
            "suite/pages/LoginPage.java#login/2",
            "suite/utils/TestUtils.java#waitForPageLoad/1",
            "suite/pages/DashboardPage.java#isWelcomeMessageDisplayed/0",
            "suite/pages/DashboardPage.java#getWelcomeMessage/0",
            "suite/pages/DashboardPage.java#isLogoutButtonDisplayed/0",
        ]

    def test_self_calls_resolve_to_own_unit(self, sample_model):
        page = sample_model.unit("suite/pages/LoginPage.java")
        login = page.find_methods("login", 2)[0]
        for call in iter_delegate_calls(login.actions):
            key = sample_model.resolve(call)
            assert key.unit_name == "suite/pages/LoginPage.java"
            assert sample_model.method(key).name == call.method

    def test_units_sorted_and_no_diagnostics(self, sample_model):
        names = [u.unit_name for u in sample_model.units]
        assert names == sorted(names)
        assert sample_model.diagnostics == ()

    def test_inherited_method(self, build_model):
        flow = _test_class(
            "HomePage home = new HomePage(driver);\n        home.open(\"https://example.com\");",
            imports="import com.example.pages.HomePage;",
        )
        model = build_model({
            "FlowTest.java": flow,
            "pages/BasePage.java": BASE_PAGE,
            "pages/HomePage.java": HOME_PAGE,
        })
        assert model.superclasses["pages/HomePage.java"] == "pages/BasePage.java"
        assert [u.simple_name for u in model.superclass_chain("pages/HomePage.java")] == ["BasePage"]
        call = next(iter_delegate_calls(model.unit("FlowTest.java").tests[0].actions))
        assert str(model.resolve(call)) == "pages/BasePage.java#open/1"

    def test_non_project_target_is_demoted(self, build_model):
        model = build_model({
            "FlowTest.java": _test_class('driver.get("https://example.com");\n        ReportHelper.log("x");'),
        })
        actions = model.unit("FlowTest.java").tests[0].actions
        opaque = actions[-1]
        assert isinstance(opaque, am.Opaque)
        assert opaque.text == 'ReportHelper.log("x")'
        assert [d.code for d in model.diagnostics] == ["link_demoted"]
        assert dict(model.resolutions) == {}

    def test_static_import_call(self, build_model):
        flow = _test_class("clearCookies(driver);", imports="import static com.example.utils.TestUtils.clearCookies;")
        model = build_model({"FlowTest.java": flow, "utils/TestUtils.java": COOKIE_UTILS})
        call = next(iter_delegate_calls(model.unit("FlowTest.java").tests[0].actions))
        assert (call.style, call.target_type) == ("static", "com.example.utils.TestUtils")
        assert str(model.resolve(call)) == "utils/TestUtils.java#clearCookies/1"
        assert model.diagnostics == ()

    def test_static_wildcard_import_call(self, build_model):
        flow = _test_class("clearCookies(driver);", imports="import static com.example.utils.TestUtils.*;")
        model = build_model({"FlowTest.java": flow, "utils/TestUtils.java": COOKIE_UTILS})
        call = next(iter_delegate_calls(model.unit("FlowTest.java").tests[0].actions))
        assert str(model.resolve(call)) == "utils/TestUtils.java#clearCookies/1"


# =========================================================================
# Tests: Link failures
# =========================================================================

class TestLinkErrors:
    def test_cycle(self, build_model):
        with pytest.raises(LinkError) as exc:
            build_model({"utils/AUtils.java": A_UTILS, "utils/BUtils.java": B_UTILS})
        assert exc.value.kind == LinkErrorKind.CYCLE
        assert len(exc.value.issues) == 1
        assert "utils/AUtils.java#a/0 -> utils/BUtils.java#b/0 -> utils/AUtils.java#a/0" in exc.value.message

    def test_ambiguous_type(self, build_model):
        flow = _test_class("Helpers.reset();", package="com.example.tests")
        with pytest.raises(LinkError) as exc:
            build_model({
                "FlowTest.java": flow,
                "one/Helpers.java": HELPERS_ONE,
                "two/Helpers.java": HELPERS_TWO,
            })
        assert exc.value.kind == LinkErrorKind.AMBIGUOUS
        assert "com.example.one.Helpers" in exc.value.message
        assert "com.example.two.Helpers" in exc.value.message

    def test_import_disambiguates(self, build_model):
        flow = _test_class("Helpers.reset();", imports="import com.example.two.Helpers;")
        model = build_model({
            "FlowTest.java": flow,
            "one/Helpers.java": HELPERS_ONE,
            "two/Helpers.java": HELPERS_TWO,
        })
        call = next(iter_delegate_calls(model.unit("FlowTest.java").tests[0].actions))
        assert model.resolve(call).unit_name == "two/Helpers.java"

    def test_unresolved_method(self, read_fixture):
        flow = _test_class(
            "LoginPage loginPage = new LoginPage(driver);\n        loginPage.logout();",
            imports="import com.example.pages.LoginPage;",
        )
        units = [
            extract_source("FlowTest.java", flow),
            extract_source("pages/LoginPage.java", read_fixture("suite/pages/LoginPage.java")),
        ]
        with pytest.raises(LinkError) as exc:
            link(units)
        assert exc.value.kind == LinkErrorKind.UNRESOLVED
        assert "no method LoginPage.logout/0" in exc.value.message
        assert exc.value.unit_name == "FlowTest.java"

        diagnostics = exc.value.to_diagnostics()
        assert [d.code for d in diagnostics] == ["link_unresolved"]
        assert diagnostics[0].position.line == 14

    def test_static_import_of_missing_method(self, build_model):
        flow = _test_class("resetSession(driver);", imports="import static com.example.utils.TestUtils.resetSession;")
        with pytest.raises(LinkError) as exc:
            build_model({"FlowTest.java": flow, "utils/TestUtils.java": COOKIE_UTILS})
        assert exc.value.kind == LinkErrorKind.UNRESOLVED
        assert "no method TestUtils.resetSession/1" in exc.value.message

    def test_target_failed_to_parse(self):
        flow = _test_class("TestUtils.waitForPageLoad(driver);")
        with pytest.raises(LinkError) as exc:
            link([extract_source("FlowTest.java", flow)], failed_unit_names=["utils/TestUtils.java"])
        assert exc.value.kind == LinkErrorKind.UNRESOLVED
        assert "failed to parse (utils/TestUtils.java)" in exc.value.message
