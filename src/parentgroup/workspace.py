"""Location of the on-disk state shared by the issue store and settings."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

STATE_DIR_NAME = ".parentgroup"
STATE_DIR_ENV_VAR = "PARENTGROUP_STATE_DIR"
DB_FILE = "issues.sqlite3"
SETTINGS_FILE = "settings.toml"


@dataclass(frozen=True)
class Workspace:
    root: Path

    @classmethod
    def locate(
        cls,
        cwd: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> "Workspace":
        """Find the state dir without creating it.

        ``PARENTGROUP_STATE_DIR`` wins; otherwise the nearest existing
        ``.parentgroup`` from ``cwd`` upward, falling back to ``cwd/.parentgroup``.
        """
        environ = os.environ if env is None else env
        raw = environ.get(STATE_DIR_ENV_VAR, "").strip()
        if raw:
            return cls(Path(raw).expanduser().resolve())

        start = (cwd or Path.cwd()).resolve()
        for base in (start, *start.parents):
            candidate = base / STATE_DIR_NAME
            if candidate.is_dir():
                return cls(candidate)
        return cls(start / STATE_DIR_NAME)

    @property
    def exists(self) -> bool:
        return self.root.is_dir()

    @property
    def db_path(self) -> Path:
        return self.root / DB_FILE

    @property
    def settings_path(self) -> Path:
        return self.root / SETTINGS_FILE

    def ensure(self) -> "Workspace":
        self.root.mkdir(parents=True, exist_ok=True)
        return self
