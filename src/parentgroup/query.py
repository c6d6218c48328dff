from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from itertools import groupby
from typing import Any

from .labels import GroupLabelFormatter
from .parent_ref import ParentRef
from .policy import (
    ID_FIELD,
    PARENT_FIELD,
    GroupedOrderPolicy,
    OrderTerm,
    SortCriterion,
)
from .settings import ParentGroupingSettings, normalize_direction
from .stores.issue import Issue, IssueStore

logger = logging.getLogger(__name__)

HOST_DEFAULT_SORT: list[SortCriterion] = [(ID_FIELD, "desc")]


@dataclass(frozen=True)
class QueryColumn:
    name: str
    caption: str
    sortable: str | None = None
    groupable: str | None = None
    default_order: str | None = None
    value_fn: Callable[[Issue], Any] | None = field(default=None, compare=False)

    def value(self, issue: Issue) -> Any:
        if self.value_fn is not None:
            return self.value_fn(issue)
        return getattr(issue, self.name)


BASE_COLUMNS = (
    QueryColumn("id", "#", sortable="id", default_order="desc"),
    QueryColumn("subject", "Subject", sortable="subject"),
    QueryColumn("status", "Status", sortable="status", groupable="status"),
    QueryColumn("parent_id", "Parent", sortable="parent_id"),
    QueryColumn("created_at", "Created", sortable="created_at", default_order="desc"),
)

PARENT_COLUMN = QueryColumn(
    PARENT_FIELD,
    "Parent task",
    sortable=PARENT_FIELD,
    groupable=PARENT_FIELD,
    default_order="desc",
)


def parse_sort(raw: str | None) -> list[SortCriterion]:
    """Parse ``"field:dir,field"`` into sort criteria. Missing dirs mean asc."""
    out: list[SortCriterion] = []
    for token in (raw or "").split(","):
        token = token.strip()
        if not token:
            continue
        name, _, direction = token.partition(":")
        name = name.strip()
        if not name:
            continue
        out.append((name, normalize_direction(direction or "asc", key=name)))
    return out


def format_sort(criteria: list[SortCriterion]) -> str:
    return ",".join(f"{name}:{direction}" for name, direction in criteria)


@dataclass
class IssueQuery:
    """List query over an ``IssueStore`` with parent grouping plugged in.

    The injected policy decides group order and default sorting when the
    query is grouped by ``parent_id``; every other grouping keeps the plain
    host behavior.
    """

    store: IssueStore
    settings: ParentGroupingSettings = field(default_factory=ParentGroupingSettings)
    group_by: str | None = None
    explicit_sort: list[SortCriterion] | None = None
    status: str | None = None
    columns: tuple[QueryColumn, ...] = BASE_COLUMNS

    def __post_init__(self) -> None:
        self.policy = GroupedOrderPolicy(self.settings)
        if (
            self.settings.enabled
            and self.settings.default_grouping
            and not (self.group_by or "").strip()
        ):
            logger.debug("applying default grouping by %s", PARENT_FIELD)
            self.group_by = PARENT_FIELD

    @property
    def grouped(self) -> bool:
        return self.group_by_column() is not None

    @property
    def grouped_by_parent(self) -> bool:
        return self.policy.applies(self.group_by)

    def available_columns(self) -> list[QueryColumn]:
        cols = [col for col in self.columns if col.name != PARENT_FIELD]
        cols.append(PARENT_COLUMN)
        return cols

    def groupable_columns(self) -> list[QueryColumn]:
        cols = [
            col
            for col in self.columns
            if col.groupable and col.name != PARENT_FIELD
        ]
        cols.append(PARENT_COLUMN)
        return cols

    def _sortable_names(self) -> set[str]:
        return {col.name for col in self.available_columns() if col.sortable}

    def default_sort_criteria(self) -> list[SortCriterion]:
        criteria = self.policy.default_sort_criteria(self.group_by)
        if criteria is not None:
            return criteria
        return list(HOST_DEFAULT_SORT)

    @property
    def sort_criteria(self) -> list[SortCriterion]:
        if self.explicit_sort:
            return list(self.explicit_sort)
        return self.default_sort_criteria()

    @sort_criteria.setter
    def sort_criteria(self, value: list[SortCriterion] | None) -> None:
        if not value:
            self.explicit_sort = None
            return
        names = self._sortable_names()
        kept = [(name, direction) for name, direction in value if name in names]
        dropped = [name for name, _ in value if name not in names]
        if dropped:
            logger.debug("dropping unsortable fields: %s", ", ".join(dropped))
        self.explicit_sort = kept or None

    def build_from_params(self, params: Mapping[str, Any]) -> "IssueQuery":
        if "group_by" in params:
            raw_group = str(params.get("group_by") or "").strip()
            groupable = {col.name for col in self.groupable_columns()}
            if raw_group and raw_group not in groupable:
                logger.debug("ignoring unknown grouping field: %s", raw_group)
                raw_group = ""
            self.group_by = raw_group or None
        if "status" in params:
            self.status = str(params.get("status") or "").strip() or None
        if "sort" in params:
            self.sort_criteria = parse_sort(params.get("sort"))

        if self.policy.active(self.group_by):
            self.explicit_sort = self.policy.reassert_sort_criteria(
                self.group_by, self.sort_criteria
            )
        return self

    def group_by_column(self) -> QueryColumn | None:
        for col in self.groupable_columns():
            if col.name == self.group_by:
                if col.name == PARENT_FIELD:
                    return replace(
                        col,
                        value_fn=lambda issue: ParentRef(issue.parent_id, self.store.get),
                    )
                return col
        return None

    def group_by_sort_order(self) -> list[OrderTerm]:
        if self.grouped_by_parent:
            return self.policy.group_order_terms()
        column = self.group_by_column()
        if column is None or not column.groupable:
            return []
        return [OrderTerm(column.groupable, "asc")]

    def sort_clause(self) -> list[OrderTerm]:
        if self.grouped_by_parent:
            return self.policy.member_order_terms()
        return [OrderTerm(name, direction) for name, direction in self.sort_criteria]

    def order_terms(self) -> list[OrderTerm]:
        return self.group_by_sort_order() + self.sort_clause()

    def issues(self, *, limit: int | None = None) -> list[Issue]:
        return self.store.list(order=self.order_terms(), status=self.status, limit=limit)

    def resolve(self, issue_id: int) -> Issue | None:
        return self.store.get(issue_id)

    def groups(self, *, limit: int | None = None) -> list[tuple[Any, list[Issue]]]:
        rows = self.issues(limit=limit)
        if self.grouped_by_parent:
            cache = self.store.find_many(
                issue.parent_id for issue in rows if issue.parent_id is not None
            )
            result = self.policy.group(rows, resolver=cache.get)
            return [(group.key, list(group.issues)) for group in result]

        column = self.group_by_column()
        if column is None:
            return [(None, rows)]
        return [
            (key, list(members))
            for key, members in groupby(rows, key=column.value)
        ]

    def label_formatter(self) -> GroupLabelFormatter:
        return GroupLabelFormatter(self.group_by, resolver=self.resolve)
