"""Unit kind classification.

Heuristics, in priority order:
1. ``@Test`` methods or ``extends TestCase`` -> TestClass
2. ``Page``/``PageObject`` suffix, ``@FindBy`` fields, or
   ``PageFactory.initElements`` -> PageObject
3. ``Util``/``Utils``/``Helper``/``Helpers`` suffix, or more than 70% of
   public methods static -> UtilityModule
4. anything else -> UtilityModule

A TestClass is promoted to Suite by the extractor once it knows whether
its tests delegate to other units.
"""

import logging

from ..action_model.models import UnitKind
from ..ast_parser.models import ClassDecl
from .patterns import LOCATOR_ANNOTATIONS, TEST_ANNOTATIONS

logger = logging.getLogger(__name__)

PAGE_SUFFIXES = ("Page", "PageObject")
UTILITY_SUFFIXES = ("Util", "Utils", "Helper", "Helpers")
STATIC_RATIO = 0.7


def is_test_class(decl: ClassDecl) -> bool:
    if decl.extends == "TestCase":
        return True
    return any(
        ann.name in TEST_ANNOTATIONS
        for method in decl.methods
        for ann in method.annotations
    )


def is_page_object(decl: ClassDecl) -> bool:
    if decl.name.endswith(PAGE_SUFFIXES):
        return True
    if any(ann.name in LOCATOR_ANNOTATIONS for f in decl.fields for ann in f.annotations):
        return True
    return "PageFactory.initElements" in decl.text


def is_utility(decl: ClassDecl) -> bool:
    if decl.name.endswith(UTILITY_SUFFIXES):
        return True
    public = [m for m in decl.methods if not m.is_constructor and "public" in m.modifiers]
    if not public:
        return False
    static = sum(1 for m in public if "static" in m.modifiers)
    return static / len(public) > STATIC_RATIO


def classify(decl: ClassDecl) -> UnitKind:
    if is_test_class(decl):
        kind = UnitKind.TEST_CLASS
    elif is_page_object(decl):
        kind = UnitKind.PAGE_OBJECT
    else:
        if not is_utility(decl):
            logger.debug(f"{decl.name}: no kind matched, treating as utility module")
        kind = UnitKind.UTILITY_MODULE
    return kind
