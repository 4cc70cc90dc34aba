from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.toml_document import TOMLDocument

from .cli_shared import OpError


@dataclass(frozen=True)
class ProfileEntry:
    account_id: str
    access_key_id: str


def _entry_from_table(val: object) -> ProfileEntry | None:
    if not isinstance(val, Mapping):
        return None
    access_key_id = str(val.get("access_key_id") or "").strip()
    # Older import runs wrote `account_id`; current writes use `account`.
    account_id = str(val.get("account") or val.get("account_id") or "").strip()
    if not access_key_id or not account_id:
        return None
    return ProfileEntry(account_id=account_id, access_key_id=access_key_id)


class ProfileRegistry:
    """Profile name -> (account, access_key_id) table backed by a TOML file.

    The document is kept as a tomlkit tree so keys this tool does not know
    about (reserved metadata, entries from other versions) are written back
    exactly as they were read.
    """

    def __init__(self, path: Path, doc: TOMLDocument) -> None:
        self.path = path
        self._doc = doc

    @classmethod
    def load(cls, path: Path) -> "ProfileRegistry":
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise OpError(f"failed to read profile registry {path}: {e}") from e
        try:
            doc = tomlkit.parse(raw)
        except TOMLKitError as e:
            raise OpError(f"invalid profile registry {path}: {e}") from e
        return cls(path, doc)

    def save(self) -> None:
        try:
            self.path.write_text(tomlkit.dumps(self._doc), encoding="utf-8")
        except OSError as e:
            raise OpError(f"failed to write profile registry {self.path}: {e}") from e

    def text(self) -> str:
        return tomlkit.dumps(self._doc)

    def profiles(self) -> list[tuple[str, ProfileEntry]]:
        out: list[tuple[str, ProfileEntry]] = []
        for name, val in self._doc.items():
            entry = _entry_from_table(val)
            if entry is not None:
                out.append((str(name), entry))
        return out

    def get(self, name: str) -> ProfileEntry | None:
        if name not in self._doc:
            return None
        return _entry_from_table(self._doc[name])

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def set_profile(self, name: str, *, account_id: str, access_key_id: str) -> None:
        existing = self._doc.get(name)
        if isinstance(existing, Mapping):
            existing["account"] = account_id
            existing["access_key_id"] = access_key_id
            if "account_id" in existing:
                del existing["account_id"]
            return
        tbl = tomlkit.table()
        tbl.add("account", account_id)
        tbl.add("access_key_id", access_key_id)
        if name in self._doc:
            del self._doc[name]
        self._doc[name] = tbl

    def remove(self, name: str) -> ProfileEntry | None:
        entry = self.get(name)
        if entry is None:
            return None
        del self._doc[name]
        return entry
