"""Command contract: snapshot in, delta list out.

A command is any callable taking a read-only snapshot and returning the
deltas to commit, or None to commit nothing. It may block on the user for as
long as it likes; the store re-reads the file when the command returns, so
nothing is held open meanwhile.

The *_deltas helpers below turn already-collected user input into delta
lists. They do no I/O and never prompt.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from taskit.deltas import (
    AddCategory,
    AddCategoryToTag,
    AddDailyNote,
    AddEntry,
    AddTag,
    AmendEntry,
    ArchiveCategory,
    Pending,
)
from taskit.errors import ReferenceNotFound

if TYPE_CHECKING:
    from datetime import date, datetime, timedelta

    from taskit.deltas import DeltaItem
    from taskit.models import SaveData
    from taskit.store import SaveFile

logger = logging.getLogger("taskit.commands")

NEW_CATEGORY = "new-category"
NEW_TAG = "new-tag"


class Command(Protocol):
    def __call__(self, snapshot: SaveData) -> list[DeltaItem] | None: ...


def run_command(save: SaveFile, command: Command) -> SaveData | None:
    """Load, hand the snapshot to command, commit what it returns.

    Returns the committed snapshot, or None when the command chose not to
    commit (returned None or an empty list).
    """
    snapshot = save.load()
    deltas = command(snapshot)
    if not deltas:
        logger.info("nothing to commit")
        return None
    return save.commit(deltas)


# ---------------------------------------------------------------------------
# Delta builders
# ---------------------------------------------------------------------------


def category_ref(
    snapshot: SaveData, name: str | None, *, create_missing: bool = False,
) -> tuple[int | Pending | None, list[DeltaItem]]:
    """Resolve a category name to an id, or to a new category.

    Active categories win over archived ones with the same name; among
    equals the oldest wins. A blank name means uncategorized.
    """
    if not name or not name.strip():
        return None, []
    name = name.strip()
    found = snapshot.categories_named(name) or snapshot.categories_named(name, include_archived=True)
    if found:
        return found[0].id, []
    if not create_missing:
        raise ReferenceNotFound("category", name)
    return Pending(NEW_CATEGORY), [AddCategory(name, ref=NEW_CATEGORY)]


def entry_deltas(
    snapshot: SaveData,
    *,
    category: str | None,
    start: datetime,
    duration: timedelta,
    comment: str = "",
    create_missing: bool = False,
) -> list[DeltaItem]:
    ref, deltas = category_ref(snapshot, category, create_missing=create_missing)
    deltas.append(AddEntry(category=ref, start=start, duration=duration, comment=comment))
    return deltas


def amend_deltas(
    snapshot: SaveData,
    entry_id: int,
    *,
    category: str | None,
    start: datetime,
    duration: timedelta,
    comment: str = "",
    create_missing: bool = False,
) -> list[DeltaItem]:
    if entry_id not in snapshot.entries:
        raise ReferenceNotFound("entry", entry_id)
    ref, deltas = category_ref(snapshot, category, create_missing=create_missing)
    deltas.append(AmendEntry(entry_id=entry_id, category=ref, start=start, duration=duration, comment=comment))
    return deltas


def archive_deltas(snapshot: SaveData, name: str) -> list[DeltaItem]:
    """Archive every active category called name. Empty if there is none."""
    return [ArchiveCategory(c.id) for c in snapshot.categories_named(name.strip())]


def tag_deltas(
    snapshot: SaveData, category: str, tag: str, *, create_missing: bool = False,
) -> list[DeltaItem]:
    """Put a category into a tag, creating the tag if allowed."""
    cat_ref, deltas = category_ref(snapshot, category)
    if cat_ref is None:
        raise ReferenceNotFound("category", category)
    tag_name = tag.strip().removeprefix("#")
    existing = snapshot.tags_named(tag_name)
    if existing:
        tag_ref: int | Pending = existing[0].id
    elif create_missing:
        deltas.append(AddTag(tag_name, ref=NEW_TAG))
        tag_ref = Pending(NEW_TAG)
    else:
        raise ReferenceNotFound("tag", tag_name)
    deltas.append(AddCategoryToTag(category=cat_ref, tag=tag_ref))
    return deltas


def note_deltas(day: date, text: str) -> list[DeltaItem]:
    return [AddDailyNote(day=day, text=text)]
