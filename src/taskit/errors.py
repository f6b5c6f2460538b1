"""Exception hierarchy for the save file and the delta engine.

StoreError covers everything that goes wrong between the disk and a
migrated snapshot; ApplyError covers a rejected delta batch. Both leave the
save file untouched.
"""

from __future__ import annotations

from typing import Any


class TaskitError(Exception):
    """Base exception for taskit."""


class StoreError(TaskitError):
    """The save file could not be read, decoded, migrated or written."""


class StoreIOError(StoreError):
    """Reading or writing the save file (or a backup) failed."""


class DecodeError(StoreError):
    """The save file is not a recognisable taskit document."""


class FutureVersionError(StoreError):
    """The save file was written by a newer taskit than this one."""

    def __init__(self, found: int, supported: int) -> None:
        self.found = found
        self.supported = supported
        super().__init__(
            f"save file has schema version {found}, this build supports up to {supported}; "
            "upgrade taskit instead of downgrading the file"
        )


class MigrationError(StoreError):
    """An upgrade transform failed on data that decoded correctly."""


class ApplyError(TaskitError):
    """A delta batch was rejected. Nothing from the batch was applied."""

    def __init__(self, message: str, *, index: int | None = None, delta: Any = None) -> None:
        self.index = index
        self.delta = delta
        super().__init__(message)


class ReferenceNotFound(ApplyError):
    """A delta points at an entry, category or tag that does not exist."""

    def __init__(self, kind: str, ref: Any, *, index: int | None = None, delta: Any = None) -> None:
        self.kind = kind
        self.ref = ref
        super().__init__(f"{kind} not found: {ref}", index=index, delta=delta)


class InvalidDelta(ApplyError):
    """A delta is malformed (negative duration, blank name, ...)."""
