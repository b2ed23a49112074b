"""Persistent snapshot of synchronized source values shared by all content kinds."""

from __future__ import annotations

import json
import os
import pathlib
import tempfile
from typing import Any, Dict

from .errors import LockFileError
from .structures import ContentKind, LockSection

LOCK_FILE_NAME = ".polyglot-lock.json"
FROZEN_KEY = "__frozen"
VALUES_KEY = "values"


class LockStore:
    """Loads and saves one section of the lock file per content kind.

    The file is read and written wholesale; sections of other content kinds
    are carried over untouched on save. Concurrent runs against the same
    project are not coordinated.
    """

    def __init__(self, root_dir: pathlib.Path) -> None:
        self.path = root_dir / LOCK_FILE_NAME

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise LockFileError(
                f"Lock file {self.path} is corrupt ({exc}). Fix or delete it and rerun."
            ) from exc
        except OSError as exc:
            raise LockFileError(f"Lock file {self.path} could not be read: {exc}") from exc
        if not isinstance(raw, dict):
            raise LockFileError(f"Lock file {self.path} must contain a JSON object.")
        return raw

    def load(self, kind: ContentKind) -> LockSection:
        """Return the stored section, or an empty one on the first run."""

        section = self._read().get(kind.value)
        if not isinstance(section, dict):
            return LockSection()

        result = LockSection()
        values = section.get(VALUES_KEY)
        if isinstance(values, dict):
            result.values = {
                str(key): value for key, value in values.items() if isinstance(value, str)
            }
        frozen = section.get(FROZEN_KEY)
        if isinstance(frozen, list):
            result.frozen = {str(item) for item in frozen}
        return result

    def save(self, kind: ContentKind, section: LockSection) -> None:
        """Replace the section for ``kind`` and rewrite the whole file."""

        try:
            existing = self._read()
        except LockFileError:
            existing = {}

        existing[kind.value] = {
            FROZEN_KEY: sorted(section.frozen),
            VALUES_KEY: dict(section.values),
        }
        content = json.dumps(existing, ensure_ascii=False, indent=2) + "\n"

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{LOCK_FILE_NAME}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, self.path)
        except BaseException:
            pathlib.Path(tmp_name).unlink(missing_ok=True)
            raise
