"""Group header labels."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from rich.text import Text

from .parent_ref import ParentRef, Resolver
from .policy import PARENT_FIELD

logger = logging.getLogger(__name__)

NONE_LABEL = "(none)"
DEFAULT_ISSUE_URL = "/issues/{id}"

Label = str | Text
Formatter = Callable[..., Label]


def format_object(value: object, rich: bool = True) -> Label:
    if value is None:
        return NONE_LABEL
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, ParentRef):
        return value.display() or NONE_LABEL
    return str(value)


def issue_link(label: str, url: str) -> Text:
    return Text(label, style=f"link {url}")


@dataclass
class GroupLabelFormatter:
    """Render group headings; parent keys become ``#<id>: <subject>``.

    Anything that is not a present parent key under parent grouping goes to
    ``fallback`` untouched.
    """

    group_by: str | None
    resolver: Resolver | None = None
    fallback: Formatter = format_object
    issue_url: str = DEFAULT_ISSUE_URL

    def _parent_id(self, value: object) -> int | None:
        if isinstance(value, ParentRef):
            return value.id
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    def format_object(self, value: object, rich: bool = True) -> Label:
        if (self.group_by or "").strip() != PARENT_FIELD:
            return self.fallback(value, rich)

        parent_id = self._parent_id(value)
        if parent_id is None:
            return self.fallback(value, rich)

        parent = None
        if isinstance(value, ParentRef) and value.parent is not None:
            parent = value.parent
        elif self.resolver is not None:
            parent = self.resolver(parent_id)

        if parent is None:
            logger.debug("no issue #%s for group label", parent_id)
            return f"#{parent_id}"

        label = f"#{parent.id}: {parent.subject}"
        if rich:
            return issue_link(label, self.issue_url.format(id=parent.id))
        return label
