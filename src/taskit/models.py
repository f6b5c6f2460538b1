"""Data models for the time-tracking save file.

Every record is keyed by an integer id minted from a per-table counter in
SaveData.next_ids. Counters only grow, so an id is never handed out twice,
not even after its category has been archived.

Tag membership is stored on the Tag (Tag.categories) and only there; the
category side is derived with SaveData.tags_of().
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

CURRENT_VERSION = 4

ID_TABLES = ("entry", "category", "tag")


def _fresh_counters() -> dict[str, int]:
    return dict.fromkeys(ID_TABLES, 1)


@dataclass
class TimeEntry:
    """One tracked span of time."""

    id: int
    category_id: int | None            # None = uncategorized
    start: datetime                    # naive local time
    duration: timedelta
    comment: str = ""

    @property
    def end(self) -> datetime:
        return self.start + self.duration

    @property
    def day(self) -> date:
        return self.start.date()

    @classmethod
    def from_dict(cls, entry_id: int, d: dict[str, Any]) -> TimeEntry:
        category = d.get("category")
        return cls(
            id=entry_id,
            category_id=int(category) if category is not None else None,
            start=datetime.fromisoformat(d["start"]),
            duration=timedelta(seconds=int(d["duration"])),
            comment=d.get("comment", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category_id,
            "start": self.start.isoformat(timespec="seconds"),
            "duration": int(self.duration.total_seconds()),
            "comment": self.comment,
        }


@dataclass
class Category:
    id: int
    name: str
    archived: bool = False

    @classmethod
    def from_dict(cls, category_id: int, d: dict[str, Any]) -> Category:
        return cls(id=category_id, name=d["name"], archived=bool(d.get("archived", False)))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "archived": self.archived}


@dataclass
class Tag:
    """A named group of categories, used for aggregation."""

    id: int
    name: str
    categories: set[int] = field(default_factory=set)

    @classmethod
    def from_dict(cls, tag_id: int, d: dict[str, Any]) -> Tag:
        return cls(id=tag_id, name=d["name"], categories={int(c) for c in d.get("categories", [])})

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "categories": sorted(self.categories)}


@dataclass
class DailyNote:
    day: date
    text: str


@dataclass
class SaveData:
    """A fully migrated snapshot of the save file.

    Snapshots only exist at CURRENT_VERSION: older documents are upgraded
    before one is built. The version a file has on disk is reported by
    SaveFile.source_version().
    """

    entries: dict[int, TimeEntry] = field(default_factory=dict)
    categories: dict[int, Category] = field(default_factory=dict)
    tags: dict[int, Tag] = field(default_factory=dict)
    notes: dict[date, DailyNote] = field(default_factory=dict)
    next_ids: dict[str, int] = field(default_factory=_fresh_counters)

    @property
    def version(self) -> int:
        return CURRENT_VERSION

    # ------------------------------------------------------------------
    # Ids
    # ------------------------------------------------------------------

    def mint(self, table: str) -> int:
        """Hand out the next id for table and advance its counter."""
        new_id = self.next_ids[table]
        self.next_ids[table] = new_id + 1
        return new_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def tags_of(self, category_id: int) -> list[Tag]:
        """Tags that list category_id as a member, ordered by id."""
        return [t for _, t in sorted(self.tags.items()) if category_id in t.categories]

    def categories_named(self, name: str, *, include_archived: bool = False) -> list[Category]:
        return [
            c for _, c in sorted(self.categories.items())
            if c.name == name and (include_archived or not c.archived)
        ]

    def tags_named(self, name: str) -> list[Tag]:
        return [t for _, t in sorted(self.tags.items()) if t.name == name]

    @property
    def active_categories(self) -> list[Category]:
        return [c for _, c in sorted(self.categories.items()) if not c.archived]

    def latest_entry(self) -> TimeEntry | None:
        """The most recently added entry (highest id)."""
        if not self.entries:
            return None
        return self.entries[max(self.entries)]

    # ------------------------------------------------------------------
    # Validation predicates
    # ------------------------------------------------------------------

    def entry_category_present(self, entry: TimeEntry) -> bool:
        return entry.category_id is None or entry.category_id in self.categories

    def tag_members_present(self, tag: Tag) -> bool:
        return all(c in self.categories for c in tag.categories)

    def problems(self) -> list[str]:
        """Human-readable invariant violations; empty for a healthy snapshot."""
        found: list[str] = []
        for entry in self.entries.values():
            if not self.entry_category_present(entry):
                found.append(f"entry {entry.id}: unknown category {entry.category_id}")
            if entry.duration < timedelta(0):
                found.append(f"entry {entry.id}: negative duration")
        for tag in self.tags.values():
            if not self.tag_members_present(tag):
                missing = sorted(c for c in tag.categories if c not in self.categories)
                found.append(f"tag {tag.id}: unknown categories {missing}")
        for table, records in (("entry", self.entries), ("category", self.categories), ("tag", self.tags)):
            if records and max(records) >= self.next_ids[table]:
                found.append(f"next {table} id {self.next_ids[table]} is not above used id {max(records)}")
        return found

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def copy(self) -> SaveData:
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SaveData:
        """Build a snapshot from a current-version document (without migrating)."""
        return cls(
            entries={int(k): TimeEntry.from_dict(int(k), v) for k, v in d["entries"].items()},
            categories={int(k): Category.from_dict(int(k), v) for k, v in d["categories"].items()},
            tags={int(k): Tag.from_dict(int(k), v) for k, v in d["tags"].items()},
            notes={
                date.fromisoformat(k): DailyNote(day=date.fromisoformat(k), text=v)
                for k, v in d["notes"].items()
            },
            next_ids={table: int(d["next_ids"][table]) for table in ID_TABLES},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "next_ids": dict(self.next_ids),
            "categories": {str(k): v.to_dict() for k, v in sorted(self.categories.items())},
            "tags": {str(k): v.to_dict() for k, v in sorted(self.tags.items())},
            "entries": {str(k): v.to_dict() for k, v in sorted(self.entries.items())},
            "notes": {k.isoformat(): v.text for k, v in sorted(self.notes.items())},
        }
