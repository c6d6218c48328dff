from __future__ import annotations

from parentgroup.parent_ref import ParentRef
from parentgroup.stores.issue import Issue


def _resolver(issues: list[Issue]):
    by_id = {issue.id: issue for issue in issues}
    calls: list[int] = []

    def resolve(issue_id: int) -> Issue | None:
        calls.append(issue_id)
        return by_id.get(issue_id)

    return resolve, calls


def test_display_resolved_parent_uses_id_and_subject() -> None:
    resolve, _ = _resolver([Issue(id=7, subject="Ship it")])

    ref = ParentRef(7, resolve)

    assert ref.display() == "#7: Ship it"
    assert ref.display().startswith("#7: ")
    assert str(ref) == "#7: Ship it"
    assert ref.subject == "Ship it"


def test_display_unresolved_parent_is_bare_id() -> None:
    resolve, _ = _resolver([])

    assert ParentRef(12, resolve).display() == "#12"
    assert ParentRef(12).display() == "#12"
    assert ParentRef(12).subject == ""


def test_display_absent_parent_is_empty() -> None:
    ref = ParentRef(None)

    assert ref.display() == ""
    assert ref.is_absent
    assert ref.ordinal() == 0


def test_ordinal_is_numeric_id() -> None:
    assert ParentRef(42).ordinal() == 42


def test_resolution_is_lazy_and_cached() -> None:
    resolve, calls = _resolver([Issue(id=3, subject="Parent")])

    ref = ParentRef(3, resolve)
    assert calls == []

    ref.display()
    ref.display()
    _ = ref.subject

    assert calls == [3]


def test_absent_parent_never_hits_resolver() -> None:
    resolve, calls = _resolver([])

    ParentRef(None, resolve).display()

    assert calls == []


def test_equality_and_hash_follow_raw_id() -> None:
    resolve, _ = _resolver([Issue(id=5, subject="Parent")])

    resolved = ParentRef(5, resolve)
    bare = ParentRef(5)
    resolved.display()

    assert resolved == bare
    assert hash(resolved) == hash(bare)
    assert ParentRef(None) == ParentRef(None)
    assert ParentRef(5) != ParentRef(6)
    assert len({resolved, bare, ParentRef(None), ParentRef(None)}) == 2


def test_zero_parent_id_is_present_and_distinct_from_absent() -> None:
    zero = ParentRef(0)

    assert not zero.is_absent
    assert zero != ParentRef(None)
    assert zero.display() == "#0"
    assert {zero: "zero", ParentRef(None): "none"}[ParentRef(0)] == "zero"


def test_comparison_with_other_types_is_not_equal() -> None:
    assert ParentRef(5) != 5
    assert ParentRef(None) != None  # noqa: E711
