# File: queryfields/marker.py
"""
queryfields - Runtime Marker
=============================

The class decorator users put on repository classes to request query
generation::

    from queryfields import QueryFields

    @QueryFields("name", "price")
    class ItemRepository(ItemRepositoryQueries):
        TableName = "items"

The decorator only records the field list.  Generation itself is static:
``queryfields.discovery`` reads the decorator from source without importing
the module.

Marker rules:
    - applies to classes only;
    - not inherited: a subclass of a marked class is not marked;
    - not repeatable: marking the same class twice raises ``TypeError``.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, TypeVar

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.marker")

_T = TypeVar("_T", bound=type)

MARKER_ATTRIBUTE: str = "__query_fields__"


class QueryFields:
    """Marks a class for CRUD query generation over ``Fields``."""

    __slots__ = ("Fields",)

    def __init__(self, *fields: str) -> None:
        self.Fields: Tuple[str, ...] = tuple(fields)

    def __call__(self, cls: _T) -> _T:
        if not isinstance(cls, type):
            raise TypeError(
                f"{type(self).__name__} can only decorate classes, "
                f"not {type(cls).__name__}."
            )
        if MARKER_ATTRIBUTE in vars(cls):
            raise TypeError(
                f"{type(self).__name__} is already applied to {cls.__qualname__}."
            )
        setattr(cls, MARKER_ATTRIBUTE, self)
        logger.debug("Marked %s with fields %s.", cls.__qualname__, self.Fields)
        return cls

    def __repr__(self) -> str:
        args: str = ", ".join(repr(f) for f in self.Fields)
        return f"{type(self).__name__}({args})"


def get_query_fields(cls: type) -> Optional[QueryFields]:
    """
    Return the marker applied directly to *cls*, or None.

    Only the class's own namespace is consulted, so markers on base
    classes are ignored.
    """
    marker: object = vars(cls).get(MARKER_ATTRIBUTE)
    if isinstance(marker, QueryFields):
        return marker
    return None


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MARKER_ATTRIBUTE",
    "QueryFields",
    "get_query_fields",
]
