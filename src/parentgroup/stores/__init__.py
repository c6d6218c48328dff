from __future__ import annotations

from .issue import ISSUE_STATUSES, Issue, IssueStore

__all__ = [
    "ISSUE_STATUSES",
    "Issue",
    "IssueStore",
]
