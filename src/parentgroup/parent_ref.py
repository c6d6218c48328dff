"""Parent issue reference used as a group key."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .stores.issue import Issue

logger = logging.getLogger(__name__)

Resolver = Callable[[int], "Issue | None"]

_UNRESOLVED = object()


class ParentRef:
    """A nullable ``parent_id`` with separate sort and display accessors.

    Equality and hashing follow the raw id only, so two refs built from the
    same id collapse into one group key whether or not either has resolved
    its referent. ``ParentRef(0)`` is a present key distinct from
    ``ParentRef(None)``.
    """

    __slots__ = ("_id", "_resolver", "_parent")

    def __init__(self, parent_id: int | None, resolver: Resolver | None = None) -> None:
        self._id = parent_id
        self._resolver = resolver
        self._parent: object = _UNRESOLVED

    @property
    def id(self) -> int | None:
        return self._id

    @property
    def is_absent(self) -> bool:
        return self._id is None

    @property
    def parent(self) -> Issue | None:
        if self._parent is _UNRESOLVED:
            self._parent = self._resolve()
        return self._parent  # type: ignore[return-value]

    def _resolve(self) -> Issue | None:
        if self._id is None or self._resolver is None:
            return None
        found = self._resolver(self._id)
        if found is None:
            logger.debug("parent issue %s not found", self._id)
        return found

    @property
    def subject(self) -> str:
        parent = self.parent
        return parent.subject if parent is not None else ""

    def ordinal(self) -> int:
        return self._id if self._id is not None else 0

    def display(self) -> str:
        parent = self.parent
        if parent is not None:
            return f"#{parent.id}: {parent.subject}"
        if self._id is not None:
            return f"#{self._id}"
        return ""

    def __str__(self) -> str:
        return self.display()

    def __repr__(self) -> str:
        return f"ParentRef({self._id!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParentRef):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash((ParentRef, self._id))
