"""
Subject adapters.

The engine reads a subject only through ``get_attribute(code)`` and, for
item quantifiers, ``get_items()``. Hosts can pass any object that implements
that pair; mappings and plain objects are wrapped here.
"""

from typing import Any, Iterable, List, Mapping, Optional, Protocol


class Subject(Protocol):
    """What the evaluator needs from a cart, product, customer or line item."""

    def get_attribute(self, code: str) -> Any:
        ...

    def get_items(self) -> Iterable[Any]:
        ...


class MappingSubject:
    """Subject backed by a dict; items live under ``items_key``."""

    def __init__(self, data: Mapping[str, Any], items_key: str = "items"):
        self.data = data
        self.items_key = items_key

    def get_attribute(self, code: str) -> Any:
        if code in self.data:
            return self.data[code]

        # Nested lookups, e.g. "address.country_id"
        if "." in code:
            value: Any = self.data
            for part in code.split("."):
                if isinstance(value, Mapping) and part in value:
                    value = value[part]
                else:
                    return None
            return value

        return None

    def get_items(self) -> List[Any]:
        items = self.data.get(self.items_key)
        return list(items) if items else []

    def __repr__(self) -> str:
        return f"MappingSubject({dict(self.data)!r})"


class ObjectSubject:
    """Subject backed by attribute access on an arbitrary object."""

    def __init__(self, obj: Any, items_attribute: str = "items"):
        self.obj = obj
        self.items_attribute = items_attribute

    def get_attribute(self, code: str) -> Any:
        value: Any = self.obj
        for part in code.split("."):
            value = getattr(value, part, None)
            if value is None:
                return None
        return value

    def get_items(self) -> List[Any]:
        items = getattr(self.obj, self.items_attribute, None)
        if callable(items):
            items = items()
        return list(items) if items else []


def as_subject(obj: Any) -> Subject:
    """Wrap ``obj`` so it satisfies the subject contract."""
    if obj is None:
        return MappingSubject({})
    # Items only need get_attribute; get_items is looked up when quantifying
    if hasattr(obj, "get_attribute"):
        return obj
    if isinstance(obj, Mapping):
        return MappingSubject(obj)
    return ObjectSubject(obj)


def subject_identity(subject: Any) -> Optional[str]:
    """Identifier of a mapping subject, for log correlation."""
    if not isinstance(subject, Mapping):
        return None
    for code in ("id", "entity_id", "quote_id"):
        value = subject.get(code)
        if value not in (None, ""):
            return str(value)
    return None
