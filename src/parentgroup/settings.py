from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import tomllib

from .workspace import Workspace

logger = logging.getLogger(__name__)

Direction = Literal["asc", "desc"]

SETTINGS_SECTION = "parent_grouping"

HOST_DEFAULTS = {
    "enabled": "1",
    "root_sort": "desc",
    "subtask_sort": "desc",
    "default_grouping": "0",
}


class ConfigValidationError(ValueError):
    pass


def normalize_direction(value: object, *, key: str = "sort") -> Direction:
    text = str(value if value is not None else "").strip().lower()
    if text == "asc":
        return "asc"
    if text != "desc":
        logger.debug("%s value %r is not asc/desc; using desc", key, value)
    return "desc"


def _as_flag(value: object, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    return str(value).strip() == "1"


@dataclass(frozen=True)
class ParentGroupingSettings:
    enabled: bool = True
    root_sort: Direction = "desc"
    subtask_sort: Direction = "desc"
    default_grouping: bool = False

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "ParentGroupingSettings":
        """Build settings from host-format values (``"1"``/``"0"``, ``asc``/``desc``).

        TOML booleans and integers are accepted for the flags. Unknown keys
        are ignored.
        """
        raw = raw or {}
        return cls(
            enabled=_as_flag(raw.get("enabled"), default=True),
            root_sort=normalize_direction(
                raw.get("root_sort", HOST_DEFAULTS["root_sort"]), key="root_sort"
            ),
            subtask_sort=normalize_direction(
                raw.get("subtask_sort", HOST_DEFAULTS["subtask_sort"]),
                key="subtask_sort",
            ),
            default_grouping=_as_flag(raw.get("default_grouping"), default=False),
        )

    def to_mapping(self) -> dict[str, str]:
        return {
            "enabled": "1" if self.enabled else "0",
            "root_sort": self.root_sort,
            "subtask_sort": self.subtask_sort,
            "default_grouping": "1" if self.default_grouping else "0",
        }

    def replace(self, **changes: Any) -> "ParentGroupingSettings":
        values = self.to_mapping()
        for key, value in changes.items():
            if value is not None:
                values[key] = value
        return ParentGroupingSettings.from_mapping(values)


@dataclass(frozen=True)
class SettingsFile:
    path: Path
    settings: ParentGroupingSettings = field(default_factory=ParentGroupingSettings)
    error: str | None = None


def _parse_section(raw: object) -> ParentGroupingSettings:
    if raw is None:
        return ParentGroupingSettings()
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"[{SETTINGS_SECTION}] must be a table")
    return ParentGroupingSettings.from_mapping(raw)


def load_settings(state_dir: Path) -> SettingsFile:
    """Read ``[parent_grouping]`` from ``<state_dir>/settings.toml``.

    A missing file yields defaults. Parse problems are reported through
    ``SettingsFile.error`` alongside default settings.
    """
    path = Workspace(state_dir).settings_path
    if not path.exists():
        return SettingsFile(path=path)

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        return SettingsFile(path=path, error=f"invalid TOML in {path.name}: {exc}")

    try:
        settings = _parse_section(raw.get(SETTINGS_SECTION))
    except ConfigValidationError as exc:
        return SettingsFile(path=path, error=f"{path.name}: {exc}")

    logger.debug("loaded settings from %s: %s", path, settings)
    return SettingsFile(path=path, settings=settings)
