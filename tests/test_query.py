from __future__ import annotations

from parentgroup.parent_ref import ParentRef
from parentgroup.policy import OrderTerm
from parentgroup.query import IssueQuery, format_sort, parse_sort
from parentgroup.settings import ParentGroupingSettings
from parentgroup.stores.issue import IssueStore


def _seed_scenario(store: IssueStore) -> None:
    store.import_rows(
        [
            {"id": 1, "subject": "Epic"},
            {"id": 2, "subject": "First child", "parent_id": 1},
            {"id": 3, "subject": "Second child", "parent_id": 1},
            {"id": 4, "subject": "Loose task", "status": "closed"},
        ]
    )


def test_parse_sort_defaults_and_malformed_directions() -> None:
    assert parse_sort("id:desc, subject,status:ASC,parent_id:up") == [
        ("id", "desc"),
        ("subject", "asc"),
        ("status", "asc"),
        ("parent_id", "desc"),
    ]
    assert parse_sort("") == []
    assert parse_sort(None) == []
    assert format_sort([("id", "desc"), ("subject", "asc")]) == "id:desc,subject:asc"


def test_parent_column_replaces_existing_one(store: IssueStore) -> None:
    query = IssueQuery(store)

    available = [col for col in query.available_columns() if col.name == "parent_id"]
    groupable = [col.name for col in query.groupable_columns()]

    assert len(available) == 1
    assert available[0].caption == "Parent task"
    assert available[0].sortable == "parent_id"
    assert available[0].default_order == "desc"
    assert groupable == ["status", "parent_id"]


def test_default_grouping_auto_applies_when_enabled(store: IssueStore) -> None:
    settings = ParentGroupingSettings(default_grouping=True)

    assert IssueQuery(store, settings=settings).group_by == "parent_id"
    assert IssueQuery(store, settings=settings, group_by="status").group_by == "status"
    assert (
        IssueQuery(
            store,
            settings=ParentGroupingSettings(enabled=False, default_grouping=True),
        ).group_by
        is None
    )
    assert IssueQuery(store).group_by is None


def test_default_sort_criteria_supplied_for_parent_grouping(store: IssueStore) -> None:
    query = IssueQuery(
        store,
        settings=ParentGroupingSettings(root_sort="asc", subtask_sort="desc"),
        group_by="parent_id",
    )

    assert query.default_sort_criteria() == [("parent_id", "asc"), ("id", "desc")]
    assert query.sort_criteria == [("parent_id", "asc"), ("id", "desc")]


def test_disabled_leaves_host_default_sort(store: IssueStore) -> None:
    query = IssueQuery(
        store,
        settings=ParentGroupingSettings(enabled=False),
        group_by="parent_id",
    )

    assert query.default_sort_criteria() == [("id", "desc")]
    assert query.sort_criteria == [("id", "desc")]


def test_explicit_sort_wins_over_defaults(store: IssueStore) -> None:
    query = IssueQuery(store, group_by="parent_id")
    query.sort_criteria = [("subject", "asc"), ("tracker", "desc")]

    assert query.sort_criteria == [("subject", "asc")]


def test_build_from_params_reasserts_policy_sort(store: IssueStore) -> None:
    query = IssueQuery(store, settings=ParentGroupingSettings(subtask_sort="asc"))

    query.build_from_params({"group_by": "parent_id", "sort": "subject:asc"})

    assert query.group_by == "parent_id"
    assert query.sort_criteria == [("parent_id", "desc"), ("id", "asc")]


def test_build_from_params_keeps_caller_sort_when_disabled(store: IssueStore) -> None:
    query = IssueQuery(store, settings=ParentGroupingSettings(enabled=False))

    query.build_from_params({"group_by": "parent_id", "sort": "subject:asc"})

    assert query.sort_criteria == [("subject", "asc")]


def test_build_from_params_can_clear_auto_grouping(store: IssueStore) -> None:
    query = IssueQuery(store, settings=ParentGroupingSettings(default_grouping=True))

    query.build_from_params({"group_by": ""})

    assert query.group_by is None
    assert query.sort_criteria == [("id", "desc")]


def test_order_terms_for_parent_grouping(store: IssueStore) -> None:
    query = IssueQuery(
        store,
        settings=ParentGroupingSettings(root_sort="asc", subtask_sort="desc"),
        group_by="parent_id",
    )

    assert query.group_by_sort_order() == [
        OrderTerm("parent_id", "asc", nulls_last=True),
        OrderTerm("parent_id", "asc"),
    ]
    assert query.sort_clause() == [OrderTerm("id", "desc")]


def test_order_terms_for_other_grouping(store: IssueStore) -> None:
    query = IssueQuery(store, group_by="status")
    query.sort_criteria = [("subject", "desc")]

    assert query.order_terms() == [
        OrderTerm("status", "asc"),
        OrderTerm("subject", "desc"),
    ]
    assert IssueQuery(store).order_terms() == [OrderTerm("id", "desc")]


def test_group_by_column_yields_parent_refs(store: IssueStore) -> None:
    _seed_scenario(store)
    query = IssueQuery(store, group_by="parent_id")

    column = query.group_by_column()
    assert column is not None
    child = store.get(2)
    assert child is not None

    value = column.value(child)

    assert isinstance(value, ParentRef)
    assert value == ParentRef(1)
    assert value.display() == "#1: Epic"
    assert IssueQuery(store).group_by_column() is None
    assert IssueQuery(store, group_by="tracker").group_by_column() is None


def test_groups_scenario_desc(store: IssueStore) -> None:
    _seed_scenario(store)
    query = IssueQuery(store, group_by="parent_id")

    groups = query.groups()

    assert [key.id for key, _ in groups] == [1, None]
    assert [[issue.id for issue in members] for _, members in groups] == [
        [3, 2],
        [4, 1],
    ]
    assert [key.display() for key, _ in groups] == ["#1: Epic", ""]


def test_groups_scenario_root_asc(store: IssueStore) -> None:
    _seed_scenario(store)
    query = IssueQuery(
        store,
        settings=ParentGroupingSettings(root_sort="asc"),
        group_by="parent_id",
    )

    groups = query.groups()

    assert [key.id for key, _ in groups] == [1, None]
    assert [issue.id for issue in groups[0][1]] == [3, 2]


def test_groups_by_status_use_plain_values(store: IssueStore) -> None:
    _seed_scenario(store)
    query = IssueQuery(store, group_by="status")

    groups = query.groups()

    assert [key for key, _ in groups] == ["closed", "open"]
    assert [issue.id for issue in groups[1][1]] == [3, 2, 1]


def test_ungrouped_query_returns_single_bucket(store: IssueStore) -> None:
    _seed_scenario(store)

    groups = IssueQuery(store).groups()

    assert len(groups) == 1
    assert groups[0][0] is None
    assert [issue.id for issue in groups[0][1]] == [4, 3, 2, 1]


def test_status_filter_applies_before_grouping(store: IssueStore) -> None:
    _seed_scenario(store)
    query = IssueQuery(store, group_by="parent_id")
    query.build_from_params({"status": "closed"})

    groups = query.groups()

    assert [key.id for key, _ in groups] == [None]
    assert [issue.id for issue in groups[0][1]] == [4]


def test_label_formatter_follows_group_by(store: IssueStore) -> None:
    _seed_scenario(store)

    parent_labels = IssueQuery(store, group_by="parent_id").label_formatter()
    status_labels = IssueQuery(store, group_by="status").label_formatter()

    assert parent_labels.format_object(1, rich=False) == "#1: Epic"
    assert status_labels.format_object(1, rich=False) == "1"


def test_unknown_group_by_is_not_grouped(store: IssueStore) -> None:
    _seed_scenario(store)

    assert not IssueQuery(store, group_by="tracker").grouped
    assert IssueQuery(store, group_by="status").grouped

    query = IssueQuery(store)
    query.build_from_params({"group_by": "tracker"})

    assert query.group_by is None
    assert not query.grouped
    groups = query.groups()
    assert len(groups) == 1
    assert groups[0][0] is None
    assert [issue.id for issue in groups[0][1]] == [4, 3, 2, 1]
