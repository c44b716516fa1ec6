"""Name bindings seen by the extractor.

The class scope holds fields; each method body gets a child scope holding
parameters and locals.  A binding records what a name denotes in Selenium
terms so later statements can be recognized.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from ..action_model.models import ElementRef, Locator

# Binding kinds
ELEMENT = "element"
ELEMENTS = "elements"
SELECT = "select"
WAIT = "wait"
DRIVER = "driver"
ACTIONS = "actions"
SCRIPT = "script"
PAGE_OBJECT = "pageobject"
BY = "by"
VALUE = "value"


@dataclass
class Binding:
    kind: str
    type_name: str = ""
    ref: Optional[ElementRef] = None
    timeout: Optional[float] = None
    locator: Optional[Locator] = None
    is_field: bool = False


class Scope:
    def __init__(self, parent: Optional["Scope"] = None):
        self.parent = parent
        self.bindings: Dict[str, Binding] = {}

    def child(self) -> "Scope":
        return Scope(self)

    def define(self, name: str, binding: Binding) -> Binding:
        self.bindings[name] = binding
        return binding

    def lookup(self, name: str) -> Optional[Binding]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.bindings:
                return scope.bindings[name]
            scope = scope.parent
        return None

    def lookup_field(self, name: str) -> Optional[Binding]:
        """Resolve ``this.name``: only the outermost (class) scope counts."""
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope.bindings.get(name)

    def is_local(self, name: str) -> bool:
        scope: Optional[Scope] = self
        while scope is not None and scope.parent is not None:
            if name in scope.bindings:
                return True
            scope = scope.parent
        return False
