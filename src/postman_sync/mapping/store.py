"""Local mapping from collection file path to Postman collection uid.

The mapping document is a single JSON object keyed by the file path
relative to the project root::

    {
      "services/users/users.postman_collection.json": {
        "file": "services/users/users.postman_collection.json",
        "uid": "12345-abcd"
      }
    }

It is loaded once per run and written back at most once, at the end.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ValidationError

from postman_sync.errors import FilesystemError


class MappingEntry(BaseModel):
    """One tracked collection file. A non-empty uid means it exists remotely."""

    file: str
    uid: str = ""


class MappingStore:
    """In-memory view of the mapping document with dirty tracking."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.entries: dict[str, MappingEntry] = {}
        self._dirty = False
        self._valid_on_load = False

    @property
    def changed(self) -> bool:
        return self._dirty

    def load(self) -> dict[str, MappingEntry]:
        """Read the mapping document.

        A missing or unparseable document yields an empty mapping; every
        collection is then treated as new. Entries are checked one by one: an
        entry with a string uid but a missing or bad ``file`` is repaired, an
        entry without a usable uid is dropped. Either marks the store dirty.
        """
        self.entries = {}
        self._dirty = False
        self._valid_on_load = False

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return self.entries
        if not isinstance(data, dict):
            return self.entries

        for key, value in data.items():
            entry = self._read_entry(key, value)
            if entry is not None:
                self.entries[key] = entry

        self._valid_on_load = True
        return self.entries

    def _read_entry(self, key: str, value) -> MappingEntry | None:
        try:
            return MappingEntry.model_validate(value)
        except ValidationError:
            pass

        self._dirty = True
        if isinstance(value, dict) and isinstance(value.get("uid"), str):
            return MappingEntry(file=key, uid=value["uid"])
        return None

    def get(self, key: str) -> MappingEntry:
        """Return a copy of the entry for key, or a fresh untracked entry."""
        entry = self.entries.get(key)
        if entry is None:
            return MappingEntry(file=key, uid="")
        return entry.model_copy()

    def put(self, key: str, entry: MappingEntry) -> None:
        previous = self.entries.get(key)
        if previous is None:
            self._dirty = True
        elif not previous.uid and entry.uid:
            self._dirty = True
        elif previous != entry:
            self._dirty = True
        self.entries[key] = entry.model_copy()

    def prune_missing(self, existing_keys) -> list[str]:
        """Drop entries whose key is not in existing_keys. Returns the removed keys."""
        keep = set(existing_keys)
        removed = sorted(k for k in self.entries if k not in keep)
        for key in removed:
            del self.entries[key]
        if removed:
            self._dirty = True
        return removed

    def persist_if_needed(self) -> bool:
        """Write the document if dirty or if no valid one existed at load time.

        Returns True when the file was written.
        """
        if not self._dirty and self._valid_on_load:
            return False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.dumps(), encoding="utf-8")
        except OSError as e:
            raise FilesystemError(self.path, str(e)) from e

        self._dirty = False
        self._valid_on_load = True
        return True

    def dumps(self) -> str:
        data = {key: entry.model_dump() for key, entry in self.entries.items()}
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def keys(self) -> list[str]:
        return list(self.entries)

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)
