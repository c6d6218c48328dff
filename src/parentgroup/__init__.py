from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "__version__",
    "GroupLabelFormatter",
    "GroupedOrderPolicy",
    "IssueQuery",
    "ParentGroupingSettings",
    "ParentRef",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .labels import GroupLabelFormatter
    from .parent_ref import ParentRef
    from .policy import GroupedOrderPolicy
    from .query import IssueQuery
    from .settings import ParentGroupingSettings


def __getattr__(name: str):
    if name == "ParentRef":
        from .parent_ref import ParentRef

        return ParentRef
    if name == "GroupedOrderPolicy":
        from .policy import GroupedOrderPolicy

        return GroupedOrderPolicy
    if name == "GroupLabelFormatter":
        from .labels import GroupLabelFormatter

        return GroupLabelFormatter
    if name == "IssueQuery":
        from .query import IssueQuery

        return IssueQuery
    if name == "ParentGroupingSettings":
        from .settings import ParentGroupingSettings

        return ParentGroupingSettings
    raise AttributeError(f"module 'parentgroup' has no attribute {name!r}")
