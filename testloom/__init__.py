"""testloom: converts Selenium WebDriver Java test suites into Playwright tests."""

__version__ = "0.3.0"
