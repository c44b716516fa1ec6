"""Vocabulary tables for the Selenium / JUnit / TestNG idioms the extractor knows."""

from typing import Sequence

# =============================================================================
# Locators
# =============================================================================

# By.<method>(value) -> strategy
BY_METHODS = {
    "id": "id",
    "name": "name",
    "className": "className",
    "cssSelector": "cssSelector",
    "xpath": "xpath",
    "tagName": "tagName",
    "linkText": "linkText",
    "partialLinkText": "partialLinkText",
}

# @FindBy(<key> = value) -> strategy
FINDBY_KEYS = {
    "id": "id",
    "name": "name",
    "className": "className",
    "css": "cssSelector",
    "xpath": "xpath",
    "tagName": "tagName",
    "linkText": "linkText",
    "partialLinkText": "partialLinkText",
}

# @FindBy(how = How.<X>, using = value) -> strategy
HOW_VALUES = {
    "ID": "id",
    "NAME": "name",
    "CLASS_NAME": "className",
    "CSS": "cssSelector",
    "XPATH": "xpath",
    "TAG_NAME": "tagName",
    "LINK_TEXT": "linkText",
    "PARTIAL_LINK_TEXT": "partialLinkText",
    "ID_OR_NAME": "id",
}

LOCATOR_ANNOTATIONS = frozenset({"FindBy"})

# =============================================================================
# Element interactions and queries
# =============================================================================

ELEMENT_INTERACTIONS = {
    "click": "click",
    "clear": "clear",
    "sendKeys": "sendKeys",
    "submit": "submit",
}

SELECT_OPS = frozenset({"selectByVisibleText", "selectByValue", "selectByIndex"})

# new Actions(driver).<op>(element)...perform()
ACTIONS_CHAIN_OPS = {
    "moveToElement": "hover",
    "click": "click",
    "doubleClick": "doubleClick",
}

ACTIONS_CHAIN_NOOPS = frozenset({"build", "perform", "pause"})

ELEMENT_QUERIES = {
    "getText": "text",
    "isDisplayed": "visible",
    "isEnabled": "enabled",
    "isSelected": "selected",
    "getAttribute": "attribute",
    "getDomAttribute": "attribute",
}

PAGE_QUERIES = {
    "getCurrentUrl": "url",
    "getTitle": "title",
    "getPageSource": "source",
}

# Keys.<X> -> key name understood by the target press() APIs
KEYS = {
    "ENTER": "Enter",
    "RETURN": "Enter",
    "TAB": "Tab",
    "ESCAPE": "Escape",
    "BACK_SPACE": "Backspace",
    "DELETE": "Delete",
    "SPACE": "Space",
    "ARROW_UP": "ArrowUp",
    "ARROW_DOWN": "ArrowDown",
    "ARROW_LEFT": "ArrowLeft",
    "ARROW_RIGHT": "ArrowRight",
    "UP": "ArrowUp",
    "DOWN": "ArrowDown",
    "LEFT": "ArrowLeft",
    "RIGHT": "ArrowRight",
    "HOME": "Home",
    "END": "End",
    "PAGE_UP": "PageUp",
    "PAGE_DOWN": "PageDown",
}

# Boxed-number conversions that are identities in the target languages
UNBOXING = frozenset({"intValue", "longValue", "doubleValue", "floatValue", "booleanValue"})

# =============================================================================
# Waits
# =============================================================================

# ExpectedConditions.<name> -> (model condition, argument shape)
WAIT_CONDITIONS = {
    "visibilityOfElementLocated": ("visibilityOf", "locator"),
    "visibilityOf": ("visibilityOf", "element"),
    "presenceOfElementLocated": ("presenceOf", "locator"),
    "invisibilityOfElementLocated": ("invisibilityOf", "locator"),
    "invisibilityOf": ("invisibilityOf", "element"),
    "elementToBeClickable": ("elementToBeClickable", "either"),
    "urlContains": ("urlContains", "page"),
    "urlToBe": ("urlToBe", "page"),
    "titleIs": ("titleIs", "page"),
}

WAIT_TYPES = frozenset({"WebDriverWait", "FluentWait", "Wait"})

# =============================================================================
# Assertions
# =============================================================================

ASSERT_METHODS = {
    "assertEquals": "equals",
    "assertSame": "equals",
    "assertNotEquals": "notEquals",
    "assertNotSame": "notEquals",
    "assertTrue": "true",
    "assertFalse": "false",
    "assertNull": "null",
    "assertNotNull": "notNull",
}

ASSERT_RECEIVERS = frozenset({"Assert", "Assertions", "AssertJUnit"})

# Number of non-message arguments per kind
ASSERT_ARITY = {
    "equals": 2,
    "notEquals": 2,
    "true": 1,
    "false": 1,
    "null": 1,
    "notNull": 1,
}

# =============================================================================
# Lifecycle annotations
# =============================================================================

TEST_ANNOTATIONS = frozenset({"Test"})
SETUP_ANNOTATIONS = frozenset({"Before", "BeforeEach", "BeforeMethod"})
TEARDOWN_ANNOTATIONS = frozenset({"After", "AfterEach", "AfterMethod"})
SETUP_ALL_ANNOTATIONS = frozenset({"BeforeClass", "BeforeAll", "BeforeTest", "BeforeSuite"})
TEARDOWN_ALL_ANNOTATIONS = frozenset({"AfterClass", "AfterAll", "AfterTest", "AfterSuite"})
DISABLED_ANNOTATIONS = frozenset({"Ignore", "Disabled"})
DISPLAY_NAME_ANNOTATIONS = frozenset({"DisplayName"})

# =============================================================================
# Types
# =============================================================================

# Driver implementation -> browser kind recorded in the TestContext
DRIVER_CLASSES = {
    "ChromeDriver": "chromium",
    "EdgeDriver": "chromium",
    "ChromiumDriver": "chromium",
    "FirefoxDriver": "firefox",
    "SafariDriver": "webkit",
    "RemoteWebDriver": "chromium",
    "InternetExplorerDriver": "chromium",
}

DRIVER_TYPES = frozenset({"WebDriver", *DRIVER_CLASSES})

ELEMENT_TYPES = frozenset({"WebElement"})

SCRIPT_TYPES = frozenset({"JavascriptExecutor"})

PRIMITIVE_TYPES = frozenset({
    "int", "long", "short", "byte", "float", "double", "boolean", "char", "void", "var",
})

# Selenium and JDK types that never denote a project unit
KNOWN_TYPES = frozenset({
    *DRIVER_TYPES,
    *ELEMENT_TYPES,
    *SCRIPT_TYPES,
    *WAIT_TYPES,
    "By",
    "How",
    "Actions",
    "Select",
    "Keys",
    "ExpectedConditions",
    "ExpectedCondition",
    "PageFactory",
    "Alert",
    "Cookie",
    "Dimension",
    "TakesScreenshot",
    "OutputType",
    *ASSERT_RECEIVERS,
    "Duration",
    "TimeUnit",
    "Thread",
    "System",
    "Math",
    "String",
    "StringBuilder",
    "Integer",
    "Long",
    "Short",
    "Double",
    "Float",
    "Boolean",
    "Character",
    "Object",
    "List",
    "ArrayList",
    "LinkedList",
    "Map",
    "HashMap",
    "Set",
    "HashSet",
    "Arrays",
    "Collections",
    "Optional",
    "Objects",
    "Random",
    "UUID",
    "LocalDate",
    "LocalDateTime",
    "Exception",
    "RuntimeException",
})

BINARY_OPERATORS = frozenset({"==", "!=", "<", ">", "<=", ">=", "&&", "||", "+", "-", "*", "/", "%"})


def base_type(type_name: str) -> str:
    """``java.util.List<WebElement>`` -> ``List``; ``String[]`` -> ``String``."""
    name = type_name.split("<", 1)[0].replace("[]", "").strip()
    return name.rsplit(".", 1)[-1]


def type_argument(type_name: str) -> str:
    """``List<WebElement>`` -> ``WebElement``; empty when not generic."""
    if "<" not in type_name:
        return ""
    return base_type(type_name.split("<", 1)[1].rsplit(">", 1)[0])


def is_project_type(type_name: str) -> bool:
    """True when a declared type could name a project unit."""
    name = base_type(type_name)
    return bool(name) and name[0].isupper() and name not in KNOWN_TYPES and name not in PRIMITIVE_TYPES


# Static imports from these packages never name project methods
LIBRARY_PACKAGES = (
    "java.",
    "javax.",
    "junit.",
    "org.junit.",
    "org.testng.",
    "org.hamcrest.",
    "org.openqa.selenium.",
    "io.github.bonigarcia.",
)


def static_import_owner(imports: Sequence[str], method: str) -> str:
    """Qualified class a bare method call was statically imported from.

    An exact ``import static a.B.method`` wins over ``import static a.B.*``.
    Returns "" when no project class imports the name.
    """
    wildcard = ""
    for imp in imports:
        if not imp.startswith("static "):
            continue
        path = imp[len("static "):]
        if path.startswith(LIBRARY_PACKAGES):
            continue
        owner, _, member = path.rpartition(".")
        if not is_project_type(owner.rsplit(".", 1)[-1]):
            continue
        if member == method:
            return owner
        if member == "*" and not wildcard:
            wildcard = owner
    return wildcard
