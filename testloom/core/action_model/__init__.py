"""Action Model: the contract between the front end and the emitter."""

from .models import (
    Action,
    ActionModel,
    ConversionUnit,
    Locator,
    MethodKey,
    MethodModel,
    MethodRole,
    PageObjectModel,
    Provenance,
    SourceUnit,
    TestCase,
    TestContext,
    UnitKind,
    Value,
)
from .walk import iter_actions, iter_delegate_calls, iter_values

__all__ = [
    "Action",
    "ActionModel",
    "ConversionUnit",
    "Locator",
    "MethodKey",
    "MethodModel",
    "MethodRole",
    "PageObjectModel",
    "Provenance",
    "SourceUnit",
    "TestCase",
    "TestContext",
    "UnitKind",
    "Value",
    "iter_actions",
    "iter_delegate_calls",
    "iter_values",
]
