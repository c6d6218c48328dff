"""Grouping and ordering of issues by parent issue."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .parent_ref import ParentRef, Resolver
from .settings import Direction, ParentGroupingSettings

if TYPE_CHECKING:
    from .stores.issue import Issue

logger = logging.getLogger(__name__)

PARENT_FIELD = "parent_id"
ID_FIELD = "id"

SortCriterion = tuple[str, Direction]


@dataclass(frozen=True)
class OrderTerm:
    field: str
    direction: Direction = "asc"
    nulls_last: bool = False


@dataclass(frozen=True)
class Group:
    key: ParentRef
    issues: tuple[Issue, ...]

    @property
    def count(self) -> int:
        return len(self.issues)


@dataclass(frozen=True)
class GroupingResult:
    groups: tuple[Group, ...]

    def __iter__(self):
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def keys(self) -> list[int | None]:
        return [group.key.id for group in self.groups]

    def member_ids(self) -> list[list[int]]:
        return [[issue.id for issue in group.issues] for group in self.groups]


@dataclass(frozen=True)
class GroupedOrderPolicy:
    """Order issues as parent groups (absent parent last) with members by id."""

    settings: ParentGroupingSettings

    def applies(self, group_by: str | None) -> bool:
        return (group_by or "").strip() == PARENT_FIELD

    def active(self, group_by: str | None) -> bool:
        return self.settings.enabled and self.applies(group_by)

    def sort_criteria(self) -> list[SortCriterion]:
        return [
            (PARENT_FIELD, self.settings.root_sort),
            (ID_FIELD, self.settings.subtask_sort),
        ]

    def default_sort_criteria(self, group_by: str | None) -> list[SortCriterion] | None:
        if not self.active(group_by):
            return None
        return self.sort_criteria()

    def reassert_sort_criteria(
        self,
        group_by: str | None,
        current: Sequence[SortCriterion],
    ) -> list[SortCriterion]:
        if not self.active(group_by):
            return list(current)
        criteria = self.sort_criteria()
        if list(current) != criteria:
            logger.debug("overriding sort criteria %s with %s", list(current), criteria)
        return criteria

    def group_order_terms(self) -> list[OrderTerm]:
        return [
            OrderTerm(PARENT_FIELD, "asc", nulls_last=True),
            OrderTerm(PARENT_FIELD, self.settings.root_sort),
        ]

    def member_order_terms(self) -> list[OrderTerm]:
        return [OrderTerm(ID_FIELD, self.settings.subtask_sort)]

    def group(
        self,
        issues: Iterable[Issue],
        resolver: Resolver | None = None,
    ) -> GroupingResult:
        buckets: dict[int | None, list[Issue]] = {}
        for issue in issues:
            buckets.setdefault(issue.parent_id, []).append(issue)

        present = sorted(
            (key for key in buckets if key is not None),
            reverse=self.settings.root_sort == "desc",
        )
        keys: list[int | None] = list(present)
        if None in buckets:
            keys.append(None)

        member_desc = self.settings.subtask_sort == "desc"
        groups = tuple(
            Group(
                key=ParentRef(key, resolver),
                issues=tuple(
                    sorted(buckets[key], key=lambda issue: issue.id, reverse=member_desc)
                ),
            )
            for key in keys
        )
        logger.debug(
            "grouped %d issues into %d parent groups",
            sum(group.count for group in groups),
            len(groups),
        )
        return GroupingResult(groups)
