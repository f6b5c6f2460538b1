"""Tests for the command contract and the delta builders."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import click
import pytest
from savedocs import v4_doc, write_doc

from taskit.commands import (
    NEW_CATEGORY,
    NEW_TAG,
    amend_deltas,
    archive_deltas,
    category_ref,
    entry_deltas,
    note_deltas,
    run_command,
    tag_deltas,
)
from taskit.deltas import AddCategory, AddCategoryToTag, AddDailyNote, AddEntry, AddTag, ArchiveCategory, Pending
from taskit.errors import ReferenceNotFound
from taskit.models import Category
from taskit.store import SaveFile

START = datetime(2024, 6, 1, 9)
HOUR = timedelta(hours=1)


@pytest.fixture
def snapshot(save, save_path):
    write_doc(save_path, v4_doc())
    return save.load()


class TestRunCommand:
    def test_none_commits_nothing(self, save, save_path):
        raw = write_doc(save_path, v4_doc())
        assert run_command(save, lambda snapshot: None) is None
        assert save_path.read_bytes() == raw

    def test_empty_list_commits_nothing(self, save, save_path):
        assert run_command(save, lambda snapshot: []) is None
        assert not save_path.exists()

    def test_deltas_are_committed(self, save, save_path):
        write_doc(save_path, v4_doc())
        result = run_command(save, lambda snapshot: [AddEntry(category=1, start=START, duration=HOUR)])
        assert result.entries[3].category_id == 1
        assert save.load().entries[3].start == START

    def test_command_sees_snapshot_and_commit_sees_later_writes(self, save, save_path):
        write_doc(save_path, v4_doc())
        seen = []

        def command(snapshot):
            seen.append(len(snapshot.entries))
            # another process records something while the user is typing
            SaveFile(save_path).commit([AddEntry(category=None, start=START, duration=HOUR, comment="other")])
            return [AddEntry(category=1, start=START, duration=HOUR, comment="mine")]

        result = run_command(save, command)
        assert seen == [2]
        assert sorted(e.comment for e in result.entries.values()) == ["", "mine", "other", "standup"]

    def test_abort_propagates_without_commit(self, save, save_path):
        raw = write_doc(save_path, v4_doc())

        def command(snapshot):
            raise click.Abort()

        with pytest.raises(click.Abort):
            run_command(save, command)
        assert save_path.read_bytes() == raw


class TestCategoryRef:
    def test_blank_is_uncategorized(self, snapshot):
        assert category_ref(snapshot, "  ") == (None, [])
        assert category_ref(snapshot, None) == (None, [])

    def test_existing(self, snapshot):
        assert category_ref(snapshot, " work ") == (1, [])

    def test_active_wins_over_archived(self, snapshot):
        snapshot.categories[3] = Category(3, "reading")
        assert category_ref(snapshot, "reading") == (3, [])

    def test_archived_still_resolves(self, snapshot):
        assert category_ref(snapshot, "reading") == (2, [])

    def test_missing(self, snapshot):
        with pytest.raises(ReferenceNotFound, match="category not found: gym"):
            category_ref(snapshot, "gym")
        ref, deltas = category_ref(snapshot, "gym", create_missing=True)
        assert ref == Pending(NEW_CATEGORY)
        assert deltas == [AddCategory("gym", ref=NEW_CATEGORY)]


class TestBuilders:
    def test_entry_with_new_category(self, snapshot):
        deltas = entry_deltas(
            snapshot, category="gym", start=START, duration=HOUR, comment="legs", create_missing=True,
        )
        assert deltas == [
            AddCategory("gym", ref=NEW_CATEGORY),
            AddEntry(category=Pending(NEW_CATEGORY), start=START, duration=HOUR, comment="legs"),
        ]

    def test_amend_unknown_entry(self, snapshot):
        with pytest.raises(ReferenceNotFound, match="entry"):
            amend_deltas(snapshot, 99, category="work", start=START, duration=HOUR)

    def test_amend_to_uncategorized(self, snapshot):
        (delta,) = amend_deltas(snapshot, 1, category="", start=START, duration=HOUR, comment="x")
        assert delta.entry_id == 1
        assert delta.category is None

    def test_archive_every_active_match(self, snapshot):
        snapshot.categories[3] = Category(3, "work")
        assert archive_deltas(snapshot, "work") == [ArchiveCategory(1), ArchiveCategory(3)]
        assert archive_deltas(snapshot, "reading") == []

    def test_tag_existing(self, snapshot):
        assert tag_deltas(snapshot, "reading", "#job") == [AddCategoryToTag(category=2, tag=1)]

    def test_tag_missing(self, snapshot):
        with pytest.raises(ReferenceNotFound, match="tag"):
            tag_deltas(snapshot, "work", "fun")
        assert tag_deltas(snapshot, "work", "fun", create_missing=True) == [
            AddTag("fun", ref=NEW_TAG),
            AddCategoryToTag(category=1, tag=Pending(NEW_TAG)),
        ]

    def test_tag_unknown_category(self, snapshot):
        with pytest.raises(ReferenceNotFound, match="category"):
            tag_deltas(snapshot, "gym", "job")

    def test_note(self):
        assert note_deltas(date(2024, 5, 1), "hi") == [AddDailyNote(date(2024, 5, 1), "hi")]
