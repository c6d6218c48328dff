from __future__ import annotations

from pathlib import Path

import pytest

from parentgroup.stores.issue import Issue, IssueStore


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PARENTGROUP_STATE_DIR", raising=False)
    monkeypatch.delenv("PARENTGROUP_OUTPUT", raising=False)


@pytest.fixture
def store(tmp_path: Path) -> IssueStore:
    return IssueStore(tmp_path / ".parentgroup")


@pytest.fixture
def scenario_issues() -> list[Issue]:
    return [
        Issue(id=1, subject="Epic"),
        Issue(id=2, subject="First child", parent_id=1),
        Issue(id=3, subject="Second child", parent_id=1),
        Issue(id=4, subject="Loose task"),
    ]
