"""Read-only views over a snapshot for display: filtering, grouping, totals.

Nothing here writes; the display commands return no deltas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import groupby
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from taskit.models import Category, SaveData, Tag, TimeEntry

UNCATEGORIZED = "(uncategorized)"


@dataclass
class EntryRow:
    """An entry with its category and tags resolved."""

    entry: TimeEntry
    category: Category | None
    tags: list[str] = field(default_factory=list)

    @property
    def category_name(self) -> str:
        return self.category.name if self.category else UNCATEGORIZED

    @property
    def archived(self) -> bool:
        return bool(self.category and self.category.archived)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartDate:
    day: date

    def matches(self, row: EntryRow) -> bool:
        return row.entry.day >= self.day

    def __str__(self) -> str:
        return f"At/After: {self.day}"


@dataclass(frozen=True)
class EndDate:
    day: date

    def matches(self, row: EntryRow) -> bool:
        return row.entry.day <= self.day

    def __str__(self) -> str:
        return f"At/Before: {self.day}"


@dataclass(frozen=True)
class CategoryIs:
    name: str

    def matches(self, row: EntryRow) -> bool:
        return row.category is not None and row.category.name == self.name

    def __str__(self) -> str:
        return f"Category: {self.name}"


@dataclass(frozen=True)
class TagIs:
    name: str

    def matches(self, row: EntryRow) -> bool:
        return self.name in row.tags

    def __str__(self) -> str:
        return f"Tag: #{self.name}"


@dataclass(frozen=True)
class CommentContains:
    text: str

    def matches(self, row: EntryRow) -> bool:
        return self.text in row.entry.comment

    def __str__(self) -> str:
        return f"Comment contains: {self.text}"


Filter = StartDate | EndDate | CategoryIs | TagIs | CommentContains


# ---------------------------------------------------------------------------
# Grouping and totals
# ---------------------------------------------------------------------------


@dataclass
class DayGroup:
    day: date
    rows: list[EntryRow]
    note: str | None = None

    @property
    def total(self) -> timedelta:
        return sum((r.entry.duration for r in self.rows), timedelta(0))


@dataclass
class Totals:
    overall: timedelta
    uncategorized: timedelta
    categories: list[tuple[Category, timedelta]]
    tags: list[tuple[Tag, timedelta]]


class SnapshotView:
    """Resolved, read-only traversal of a snapshot."""

    def __init__(self, data: SaveData) -> None:
        self.data = data

    def _row(self, entry: TimeEntry) -> EntryRow:
        category = self.data.categories.get(entry.category_id) if entry.category_id is not None else None
        tags = [t.name for t in self.data.tags_of(category.id)] if category else []
        return EntryRow(entry=entry, category=category, tags=tags)

    def rows(self, filters: Iterable[Filter] = ()) -> list[EntryRow]:
        """Entries passing every filter, newest first."""
        active = list(filters)
        entries = sorted(self.data.entries.values(), key=lambda e: (e.start, e.id), reverse=True)
        rows = (self._row(e) for e in entries)
        return [r for r in rows if all(f.matches(r) for f in active)]

    def by_day(self, filters: Iterable[Filter] = ()) -> list[DayGroup]:
        """Filtered entries grouped by calendar day, newest day first."""
        groups = []
        for day, rows in groupby(self.rows(filters), key=lambda r: r.entry.day):
            note = self.data.notes.get(day)
            groups.append(DayGroup(day=day, rows=list(rows), note=note.text if note else None))
        return groups

    def totals(self, filters: Iterable[Filter] = ()) -> Totals:
        """Time per category and per tag over the filtered entries.

        Active categories are always listed; archived ones only when they
        have time in the filtered set. A tag's total is the sum of its
        member categories.
        """
        per_category: dict[int, timedelta] = {
            c.id: timedelta(0) for c in self.data.active_categories
        }
        overall = uncategorized = timedelta(0)
        for row in self.rows(filters):
            duration = row.entry.duration
            overall += duration
            if row.category is None:
                uncategorized += duration
            else:
                per_category[row.category.id] = per_category.get(row.category.id, timedelta(0)) + duration
        categories = [(self.data.categories[cid], total) for cid, total in sorted(per_category.items())]
        tags = [
            (tag, sum((per_category.get(cid, timedelta(0)) for cid in tag.categories), timedelta(0)))
            for _, tag in sorted(self.data.tags.items())
        ]
        return Totals(overall=overall, uncategorized=uncategorized, categories=categories, tags=tags)
