"""Shared constants for testloom.

Values used across the front end, extractor and pipeline.
"""

# =============================================================================
# Run exit codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_FAILURE = 2
EXIT_USAGE = 3

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_PROFILE = "playwright-ts"

DEFAULT_WORKERS = 4

# Used when a wait has no resolvable timeout (Selenium has no implicit default)
DEFAULT_WAIT_TIMEOUT_SECONDS = 10.0

DELEGATE_STRATEGIES = ("call", "inline")

# =============================================================================
# Source test frameworks
# =============================================================================

FRAMEWORK_JUNIT4 = "junit4"
FRAMEWORK_JUNIT5 = "junit5"
FRAMEWORK_TESTNG = "testng"

# Import prefixes used to detect the framework of a unit
FRAMEWORK_IMPORT_PREFIXES = {
    "org.junit.jupiter": FRAMEWORK_JUNIT5,
    "org.testng": FRAMEWORK_TESTNG,
    "org.junit": FRAMEWORK_JUNIT4,
    "junit.framework": FRAMEWORK_JUNIT4,
}
