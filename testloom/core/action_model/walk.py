"""Traversal helpers over actions and values."""

from typing import Iterable, Iterator

from .models import (
    Action,
    Assert,
    BinaryOp,
    Bind,
    Branch,
    BrowserCommand,
    Construct,
    Contains,
    Delegate,
    DelegateCall,
    ElementQuery,
    Interact,
    Locate,
    Navigate,
    Not,
    Pause,
    Pick,
    Probe,
    Return,
    ScriptCall,
    ScriptExec,
    Value,
    Wait,
)


def iter_actions(actions: Iterable[Action]) -> Iterator[Action]:
    """Depth-first, source order, including nested branch/probe bodies."""
    for action in actions:
        yield action
        if isinstance(action, Branch):
            yield from iter_actions(action.then)
            yield from iter_actions(action.otherwise)
        elif isinstance(action, Probe):
            yield from iter_actions(action.body)
            yield from iter_actions(action.fallback)


def action_values(action: Action) -> Iterator[Value]:
    """Top-level values carried directly by one action."""
    if isinstance(action, Navigate):
        yield action.url
    elif isinstance(action, Locate):
        yield action.locator.value
    elif isinstance(action, Pick):
        yield action.index
    elif isinstance(action, (Interact, Wait, BrowserCommand)):
        yield from action.args
    elif isinstance(action, Assert):
        yield action.actual
        if action.expected is not None:
            yield action.expected
        if action.message is not None:
            yield action.message
    elif isinstance(action, ScriptExec):
        yield from action.args
    elif isinstance(action, Delegate):
        yield action.call
    elif isinstance(action, Bind):
        yield action.value
    elif isinstance(action, Branch):
        yield action.condition
    elif isinstance(action, Return):
        if action.value is not None:
            yield action.value
    elif isinstance(action, Pause):
        yield action.millis


def iter_values(value: Value) -> Iterator[Value]:
    """A value and all of its sub-values."""
    yield value
    if isinstance(value, Not):
        yield from iter_values(value.operand)
    elif isinstance(value, BinaryOp):
        yield from iter_values(value.left)
        yield from iter_values(value.right)
    elif isinstance(value, Contains):
        yield from iter_values(value.haystack)
        yield from iter_values(value.needle)
    elif isinstance(value, (DelegateCall, ScriptCall, Construct)):
        for arg in value.args:
            yield from iter_values(arg)
    elif isinstance(value, ElementQuery) and value.arg is not None:
        yield from iter_values(value.arg)


def iter_delegate_calls(actions: Iterable[Action]) -> Iterator[DelegateCall]:
    """Every DelegateCall reachable from the actions, statement or value position."""
    for action in iter_actions(actions):
        for value in action_values(action):
            for sub in iter_values(value):
                if isinstance(sub, DelegateCall):
                    yield sub


def count_actions(actions: Iterable[Action], kind: type) -> int:
    return sum(1 for a in iter_actions(actions) if isinstance(a, kind))
