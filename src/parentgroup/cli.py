"""CLI entry point for parentgroup."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.text import Text

from . import __version__
from .jsonl import read_jsonl
from .labels import GroupLabelFormatter
from .parent_ref import ParentRef
from .query import IssueQuery, format_sort
from .settings import ParentGroupingSettings, load_settings
from .stores.issue import ISSUE_STATUSES, Issue, IssueStore
from .ui import (
    OutputMode,
    add_output_mode_argument,
    make_console,
    render_panel,
    render_table,
    resolve_output_mode,
)

_ISSUE_HEADERS = ("ID", "STATUS", "PARENT", "CREATED", "SUBJECT")
_COLUMN_HEADERS = ("NAME", "CAPTION", "SORTABLE", "GROUPABLE", "DEFAULT ORDER")
_READ_COMMANDS = {"list", "settings", "columns"}


def _format_time(value: object) -> str:
    if not isinstance(value, int) or value <= 0:
        return "-"
    try:
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return "-"
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _truncate(value: object, limit: int) -> str:
    text = str(value or "").strip()
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def _emit_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _issue_columns(issue: Issue) -> tuple[str, str, str, str, str]:
    return (
        f"#{issue.id}",
        issue.status,
        f"#{issue.parent_id}" if issue.parent_id is not None else "-",
        _format_time(issue.created_at),
        _truncate(issue.subject, 56),
    )


def _print_issue_rows(rows: list[Issue], *, indent: str = "") -> None:
    values = [_issue_columns(row) for row in rows]
    widths = [len(item) for item in _ISSUE_HEADERS]
    for row in values:
        for idx, col in enumerate(row):
            widths[idx] = max(widths[idx], len(col))
    print(
        indent
        + "  ".join(
            _ISSUE_HEADERS[idx].ljust(widths[idx]) for idx in range(len(_ISSUE_HEADERS))
        ).rstrip()
    )
    for row in values:
        print(
            indent
            + "  ".join(row[idx].ljust(widths[idx]) for idx in range(len(row))).rstrip()
        )


def _group_key_json(key: object) -> object:
    if isinstance(key, ParentRef):
        return key.id
    return key


def _groups_payload(
    query: IssueQuery,
    groups: list[tuple[Any, list[Issue]]],
    formatter: GroupLabelFormatter,
) -> dict[str, Any]:
    return {
        "group_by": query.group_by,
        "sort": format_sort(query.sort_criteria),
        "groups": [
            {
                "key": _group_key_json(key),
                "label": (
                    str(formatter.format_object(key, rich=False))
                    if query.grouped
                    else None
                ),
                "count": len(members),
                "issues": [issue.to_dict() for issue in members],
            }
            for key, members in groups
        ],
    }


def _print_groups(
    query: IssueQuery,
    groups: list[tuple[Any, list[Issue]]],
    formatter: GroupLabelFormatter,
) -> None:
    if not query.grouped:
        _print_issue_rows(groups[0][1] if groups else [])
        return
    for idx, (key, members) in enumerate(groups):
        if idx:
            print()
        label = formatter.format_object(key, rich=False)
        print(f"{label} ({len(members)})")
        _print_issue_rows(members, indent="  ")


def _print_groups_rich(
    query: IssueQuery,
    groups: list[tuple[Any, list[Issue]]],
    formatter: GroupLabelFormatter,
) -> None:
    console = make_console("rich")
    for key, members in groups:
        if query.grouped:
            label = formatter.format_object(key, rich=True)
            title: str | Text = Text.assemble(label, f" ({len(members)})")
        else:
            title = "Issues"
        render_table(
            console,
            title=title,
            headers=_ISSUE_HEADERS,
            no_wrap_columns=(0, 1, 2, 3),
            rows=[_issue_columns(row) for row in members],
        )


def _print_settings(settings: ParentGroupingSettings, *, path: Path, mode: OutputMode) -> None:
    values = settings.to_mapping()
    if mode == "rich":
        render_table(
            make_console("rich"),
            title=f"Settings ({path})",
            headers=("KEY", "VALUE"),
            rows=list(values.items()),
            no_wrap_columns=(0,),
        )
        return
    for key, value in values.items():
        print(f"{key}={value}")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="parentgroup",
        description="Group and sort issues by parent issue.",
    )
    p.add_argument("--version", action="version", version=f"parentgroup {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    new = sub.add_parser("new", help="Create a new issue")
    new.add_argument("subject", help="Issue subject")
    new.add_argument("--parent", type=int, help="Parent issue id")
    new.add_argument(
        "-s",
        "--status",
        default="open",
        choices=ISSUE_STATUSES,
        help=f"Initial status ({', '.join(ISSUE_STATUSES)})",
    )
    new.add_argument("--json", action="store_true", help="Output JSON")

    parent = sub.add_parser("parent", help="Set or clear an issue's parent")
    parent.add_argument("id", type=int, help="Issue id")
    parent.add_argument("parent_id", nargs="?", type=int, help="New parent id")
    parent.add_argument("--clear", action="store_true", help="Remove the parent")
    parent.add_argument("--json", action="store_true", help="Output JSON")

    ls = sub.add_parser("list", help="List issues, optionally grouped")
    ls.add_argument(
        "--group-by",
        help="Grouping field (parent_id, status) or 'none'",
    )
    ls.add_argument("--sort", help="Sort criteria, e.g. 'id:desc,subject'")
    ls.add_argument("--status", help=f"Filter by status ({', '.join(ISSUE_STATUSES)})")
    ls.add_argument("--root-sort", choices=("asc", "desc"), help="Parent group order")
    ls.add_argument("--subtask-sort", choices=("asc", "desc"), help="Order within groups")
    ls.add_argument("--limit", type=int, help="Max rows")
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    imp = sub.add_parser("import", help="Import issues from a JSONL file")
    imp.add_argument("path", help="JSONL file with id, subject, parent_id rows")
    imp.add_argument("--json", action="store_true", help="Output JSON")

    settings = sub.add_parser("settings", help="Show parent grouping settings")
    settings.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(settings)

    columns = sub.add_parser("columns", help="Show sortable and groupable columns")
    columns.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(columns)

    return p


def _list_params(args: argparse.Namespace) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if args.group_by is not None:
        group_by = args.group_by.strip()
        params["group_by"] = "" if group_by.lower() == "none" else group_by
    if args.sort is not None:
        params["sort"] = args.sort
    if args.status is not None:
        params["status"] = args.status
    return params


def _run(args: argparse.Namespace, output_mode: OutputMode) -> None:
    store = IssueStore.from_workdir(
        Path.cwd(), create=args.command not in _READ_COMMANDS
    )

    loaded = load_settings(store.root)
    if loaded.error:
        print(f"warning: {loaded.error}; using defaults", file=sys.stderr)
    settings = loaded.settings

    if args.command == "new":
        issue = store.create(args.subject, parent_id=args.parent, status=args.status)
        if args.json:
            _emit_json(issue.to_dict())
        else:
            print(" ".join(_issue_columns(issue)))
        return

    if args.command == "parent":
        if args.clear and args.parent_id is not None:
            raise ValueError("pass a parent id or --clear, not both")
        if not args.clear and args.parent_id is None:
            raise ValueError("missing parent id (use --clear to remove the parent)")
        issue = store.set_parent(args.id, None if args.clear else args.parent_id)
        if args.json:
            _emit_json(issue.to_dict())
        else:
            print(" ".join(_issue_columns(issue)))
        return

    if args.command == "list":
        settings = settings.replace(
            root_sort=args.root_sort,
            subtask_sort=args.subtask_sort,
        )
        params = _list_params(args)
        query = IssueQuery(store, settings=settings)
        query.build_from_params(params)
        groups = query.groups(limit=args.limit)
        formatter = query.label_formatter()

        if args.json:
            _emit_json(_groups_payload(query, groups, formatter))
        elif not any(members for _, members in groups):
            if output_mode == "rich":
                render_panel(make_console("rich"), "(no issues)", title="Issues")
            else:
                print("(no issues)")
        elif output_mode == "rich":
            _print_groups_rich(query, groups, formatter)
        else:
            _print_groups(query, groups, formatter)
        return

    if args.command == "import":
        rows = read_jsonl(Path(args.path))
        issues = store.import_rows(rows)
        if args.json:
            _emit_json([issue.to_dict() for issue in issues])
        else:
            print(f"imported {len(issues)} issue(s)")
        return

    if args.command == "settings":
        if args.json:
            _emit_json(settings.to_mapping())
        else:
            _print_settings(settings, path=loaded.path, mode=output_mode)
        return

    if args.command == "columns":
        query = IssueQuery(store, settings=settings)
        groupable = {col.name for col in query.groupable_columns()}
        cols = [
            {
                "name": col.name,
                "caption": col.caption,
                "sortable": bool(col.sortable),
                "groupable": col.name in groupable,
                "default_order": col.default_order,
            }
            for col in query.available_columns()
        ]
        if args.json:
            _emit_json(cols)
            return
        rows = [
            (
                col["name"],
                col["caption"],
                "yes" if col["sortable"] else "no",
                "yes" if col["groupable"] else "no",
                col["default_order"] or "-",
            )
            for col in cols
        ]
        if output_mode == "rich":
            render_table(
                make_console("rich"),
                title="Columns",
                headers=_COLUMN_HEADERS,
                rows=rows,
                no_wrap_columns=(0,),
            )
        else:
            for row in rows:
                print("  ".join(row))
        return

    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    args = _build_parser().parse_args(raw_argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )

    output_mode: OutputMode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(getattr(args, "output", None))
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            raise SystemExit(2) from exc

    try:
        _run(args, output_mode)
    except (ValueError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
