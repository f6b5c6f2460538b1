"""Load and save the versioned save file.

SaveFile is the public API:
    save = SaveFile("~/.local/share/taskit/save.json")
    snapshot = save.load()
    ...                                  # arbitrarily long user interaction
    save.commit([AddEntry(...)])         # reload, migrate, apply, write

There is no lock. commit() always re-reads the file, so changes other
processes committed while this one was waiting are kept. Two writes landing
at the same instant are last-writer-wins for the whole file.

Writes go to a temporary file in the same directory which then replaces
the save file (os.replace), so readers see either the old or the new
document. Before the first write of data that was upgraded from an older
schema, the original bytes are copied to ``<name>.v<N>.bak``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from taskit.deltas import apply, describe
from taskit.errors import StoreIOError
from taskit.migrations import MigrationResult, migrate
from taskit.models import CURRENT_VERSION, SaveData

if TYPE_CHECKING:
    from collections.abc import Sequence

    from taskit.deltas import DeltaItem

logger = logging.getLogger("taskit.store")


@dataclass
class Prepared:
    """A snapshot ready to be written, plus where it came from."""

    data: SaveData
    raw: bytes | None = None            # bytes it was loaded from; None for a new file
    from_version: int = CURRENT_VERSION

    @property
    def needs_backup(self) -> bool:
        return self.raw is not None and self.from_version < CURRENT_VERSION


def serialize(data: SaveData) -> bytes:
    return (json.dumps(data.to_dict(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")


class SaveFile:
    """The save file at a fixed path."""

    def __init__(self, path: Path | str, backup_dir: Path | str | None = None) -> None:
        self.path = Path(path).expanduser()
        self.backup_dir = Path(backup_dir).expanduser() if backup_dir else None

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read_bytes(self) -> bytes | None:
        """Raw file content, or None if there is no save file yet."""
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"cannot read {self.path}: {exc}"
            raise StoreIOError(msg) from exc

    def _read(self) -> Prepared:
        raw = self.read_bytes()
        if raw is None:
            logger.debug("no save file at %s, starting empty", self.path)
            return Prepared(data=SaveData())
        result: MigrationResult = migrate(raw)
        return Prepared(data=result.data, raw=raw, from_version=result.from_version)

    def load(self, *, persist_upgrade: bool = True) -> SaveData:
        """Read and migrate the save file.

        If the file was in an older schema and persist_upgrade is set, the
        original bytes are backed up and the upgraded document is written
        back before returning.
        """
        prepared = self._read()
        if prepared.needs_backup and persist_upgrade:
            self.write(prepared)
        return prepared.data

    def upgrade(self) -> Path | None:
        """Persist the upgrade of an old-schema file now. Returns the backup path.

        None when there is no file or it is already current.
        """
        prepared = self._read()
        if not prepared.needs_backup:
            return None
        assert prepared.raw is not None
        backup = self.write_backup(prepared.raw, prepared.from_version)
        self.write(prepared)
        return backup

    def source_version(self) -> int | None:
        """Schema version stored on disk (None if there is no file)."""
        prepared = self._read()
        return prepared.from_version if prepared.raw is not None else None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def prepare(self, deltas: Sequence[DeltaItem]) -> Prepared:
        """Reload the file and apply deltas to it, without writing anything."""
        current = self._read()
        return Prepared(
            data=apply(current.data, deltas),
            raw=current.raw,
            from_version=current.from_version,
        )

    def write(self, prepared: Prepared | SaveData) -> None:
        """Replace the save file atomically, backing up pre-upgrade bytes first."""
        if isinstance(prepared, SaveData):
            prepared = Prepared(data=prepared)
        if prepared.needs_backup:
            assert prepared.raw is not None
            self.write_backup(prepared.raw, prepared.from_version)
        _atomic_write(self.path, serialize(prepared.data))
        logger.info("wrote %s (%d entries)", self.path, len(prepared.data.entries))

    def commit(self, deltas: Sequence[DeltaItem]) -> SaveData:
        """Reload, migrate, apply deltas and write. Returns the written snapshot.

        Any error leaves the file as it was. An empty list writes nothing.
        """
        if not deltas:
            return self.load(persist_upgrade=False)
        prepared = self.prepare(deltas)
        self.write(prepared)
        for delta in deltas:
            logger.info("committed: %s", describe(delta))
        return prepared.data

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def _backup_root(self) -> Path:
        return self.backup_dir or self.path.parent

    def backup_path(self, version: int, n: int = 0) -> Path:
        """Path of the n-th backup of a schema-v<version> file."""
        suffix = f".v{version}.bak" if n == 0 else f".v{version}.{n}.bak"
        return self._backup_root() / f"{self.path.name}{suffix}"

    def write_backup(self, raw: bytes, version: int) -> Path:
        """Copy pre-upgrade bytes aside. Never overwrites an earlier backup.

        If a backup with identical content already exists it is reused;
        otherwise the first free numbered name is taken.
        """
        n = 0
        while True:
            target = self.backup_path(version, n)
            if not target.exists():
                break
            try:
                if target.read_bytes() == raw:
                    logger.debug("backup %s already holds these bytes", target)
                    return target
            except OSError as exc:
                msg = f"cannot read backup {target}: {exc}"
                raise StoreIOError(msg) from exc
            n += 1
        _atomic_write(target, raw)
        logger.info("backed up schema v%d save file to %s", version, target)
        return target

    def list_backups(self) -> list[Path]:
        root = self._backup_root()
        if not root.exists():
            return []
        return sorted(root.glob(f"{self.path.name}.v*.bak"))


def _atomic_write(path: Path, payload: bytes) -> None:
    """Write payload to a temp file next to path, fsync it, then rename over path."""
    tmp: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        tmp = Path(tmp_name)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(path)
    except OSError as exc:
        if tmp is not None:
            with contextlib.suppress(OSError):
                tmp.unlink()
        msg = f"cannot write {path}: {exc}"
        raise StoreIOError(msg) from exc
