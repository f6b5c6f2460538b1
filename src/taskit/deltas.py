"""Delta items and the transactional applier.

A command never edits a snapshot directly. It returns a list of delta items
and the store applies them, in order, to a fresh copy of the file:

    deltas = [
        AddCategory("reading", ref="cat"),
        AddEntry(category=Pending("cat"), start=..., duration=timedelta(hours=1)),
    ]
    new_snapshot = apply(snapshot, deltas)

Creation deltas never carry ids; ids are minted from the target snapshot
while applying. A creation delta may name itself with ``ref`` so that later
items in the same batch can point at it through ``Pending(ref)``.

The set of delta types is closed. New types may be added; the meaning of an
existing type never changes (old data is reinterpreted by migrations only).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from taskit.errors import ApplyError, InvalidDelta, ReferenceNotFound
from taskit.models import Category, DailyNote, Tag, TimeEntry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from taskit.models import SaveData

logger = logging.getLogger("taskit.deltas")


@dataclass(frozen=True)
class Pending:
    """Reference to a record created earlier in the same batch."""

    label: str


@dataclass(frozen=True)
class AddEntry:
    category: int | Pending | None
    start: datetime
    duration: timedelta
    comment: str = ""


@dataclass(frozen=True)
class AmendEntry:
    """Replace every field of an existing entry. The id stays the same."""

    entry_id: int
    category: int | Pending | None
    start: datetime
    duration: timedelta
    comment: str = ""


@dataclass(frozen=True)
class AddCategory:
    name: str
    ref: str | None = None


@dataclass(frozen=True)
class ArchiveCategory:
    category: int | Pending


@dataclass(frozen=True)
class AddTag:
    name: str
    ref: str | None = None


@dataclass(frozen=True)
class AddCategoryToTag:
    category: int | Pending
    tag: int | Pending


@dataclass(frozen=True)
class AddDailyNote:
    """Set the note for a day, replacing any previous text."""

    day: date
    text: str


DeltaItem = AddEntry | AmendEntry | AddCategory | ArchiveCategory | AddTag | AddCategoryToTag | AddDailyNote


def describe(delta: DeltaItem) -> str:
    """One-line human summary of a delta."""
    match delta:
        case AddEntry(category=cat, start=start, duration=dur, comment=comment):
            return f"add entry {start:%Y-%m-%d %H:%M} +{dur} in {_ref_str(cat)}" + (f": {comment}" if comment else "")
        case AmendEntry(entry_id=eid, category=cat, start=start, duration=dur):
            return f"amend entry {eid}: {start:%Y-%m-%d %H:%M} +{dur} in {_ref_str(cat)}"
        case AddCategory(name=name):
            return f"add category {name!r}"
        case ArchiveCategory(category=cat):
            return f"archive {_ref_str(cat)}"
        case AddTag(name=name):
            return f"add tag #{name}"
        case AddCategoryToTag(category=cat, tag=tag):
            return f"tag {_ref_str(cat)} with {_ref_str(tag, 'tag')}"
        case AddDailyNote(day=day):
            return f"set note for {day.isoformat()}"
    return repr(delta)


def _ref_str(ref: int | Pending | None, kind: str = "category") -> str:
    if ref is None:
        return "no category"
    if isinstance(ref, Pending):
        return f"new {kind} <{ref.label}>"
    return f"{kind} {ref}"


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------


@dataclass
class _Batch:
    """Working state for one apply() call."""

    data: SaveData
    labels: dict[str, tuple[str, int]] = field(default_factory=dict)

    def resolve(self, ref: int | Pending, kind: str) -> int:
        if isinstance(ref, Pending):
            found = self.labels.get(ref.label)
            if found is None or found[0] != kind:
                raise ReferenceNotFound(kind, ref)
            return found[1]
        table = self.data.categories if kind == "category" else self.data.tags
        if ref not in table:
            raise ReferenceNotFound(kind, ref)
        return ref

    def remember(self, label: str | None, kind: str, new_id: int) -> None:
        if label is None:
            return
        if label in self.labels:
            msg = f"ref {label!r} used twice in one batch"
            raise InvalidDelta(msg)
        self.labels[label] = (kind, new_id)

    def fresh_id(self, table: str, records: dict[int, Any]) -> int:
        new_id = self.data.mint(table)
        if new_id in records:
            msg = f"next {table} id {new_id} is already taken"
            raise InvalidDelta(msg)
        return new_id

    def entry_fields(self, delta: AddEntry | AmendEntry) -> tuple[int | None, datetime, timedelta, str]:
        if delta.duration < timedelta(0):
            msg = f"negative duration: {delta.duration}"
            raise InvalidDelta(msg)
        if delta.start.tzinfo is not None:
            msg = f"start must be naive local time: {delta.start.isoformat()}"
            raise InvalidDelta(msg)
        try:
            delta.start + delta.duration
        except OverflowError as exc:
            msg = f"entry ends past the last representable date: {delta.start} +{delta.duration}"
            raise InvalidDelta(msg) from exc
        category = None if delta.category is None else self.resolve(delta.category, "category")
        return category, delta.start, delta.duration, delta.comment

    def apply_one(self, delta: DeltaItem) -> None:
        data = self.data
        match delta:
            case AddEntry():
                category, start, duration, comment = self.entry_fields(delta)
                new_id = self.fresh_id("entry", data.entries)
                data.entries[new_id] = TimeEntry(new_id, category, start, duration, comment)
            case AmendEntry(entry_id=entry_id):
                entry = data.entries.get(entry_id)
                if entry is None:
                    raise ReferenceNotFound("entry", entry_id)
                entry.category_id, entry.start, entry.duration, entry.comment = self.entry_fields(delta)
            case AddCategory(name=name, ref=ref):
                _check_name(name)
                self.remember(ref, "category", data.next_ids["category"])
                new_id = self.fresh_id("category", data.categories)
                data.categories[new_id] = Category(new_id, name.strip())
            case ArchiveCategory(category=ref):
                data.categories[self.resolve(ref, "category")].archived = True
            case AddTag(name=name, ref=ref):
                _check_name(name)
                self.remember(ref, "tag", data.next_ids["tag"])
                new_id = self.fresh_id("tag", data.tags)
                data.tags[new_id] = Tag(new_id, name.strip())
            case AddCategoryToTag(category=cat_ref, tag=tag_ref):
                category = self.resolve(cat_ref, "category")
                data.tags[self.resolve(tag_ref, "tag")].categories.add(category)
            case AddDailyNote(day=day, text=text):
                data.notes[day] = DailyNote(day, text)
            case _:
                msg = f"unknown delta: {delta!r}"
                raise InvalidDelta(msg)


def _check_name(name: str) -> None:
    if not name or not name.strip():
        msg = "name must not be blank"
        raise InvalidDelta(msg)


def apply(snapshot: SaveData, deltas: Sequence[DeltaItem]) -> SaveData:
    """Apply deltas in order to a copy of snapshot and return the copy.

    All or nothing: the first invalid item raises ApplyError (with .index and
    .delta set) and no effect of the batch is visible anywhere. snapshot
    itself is never modified.
    """
    batch = _Batch(snapshot.copy())
    for index, delta in enumerate(deltas):
        try:
            batch.apply_one(delta)
        except ApplyError as exc:
            exc.index = index
            exc.delta = delta
            logger.info("delta batch rejected at item %d (%s): %s", index, describe(delta), exc)
            raise
        logger.debug("applied %s", describe(delta))
    return batch.data
