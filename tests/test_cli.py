"""CLI tests: each command end to end against a save file in tmp_path."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

import pytest
from click.testing import CliRunner
from savedocs import v1_doc, v4_doc, write_doc

import taskit.cli as taskit_cli
from taskit.cli import cli
from taskit.models import CURRENT_VERSION
from taskit.store import SaveFile


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def invoke(runner, save_path):
    def _invoke(*args: str, input: str | None = None):
        return runner.invoke(cli, ["--file", str(save_path), *args], input=input)

    return _invoke


@pytest.fixture
def existing(save_path):
    write_doc(save_path, v4_doc())
    return save_path


def _entries(path) -> dict:
    return json.loads(path.read_text())["entries"]


class TestRecord:
    def test_all_options(self, invoke, existing):
        result = invoke(
            "record", "--date", "2024-05-02", "--start", "09:00", "--end", "0930", "-c", "work", "-m", "review",
        )
        assert result.exit_code == 0, result.output
        assert "Recorded." in result.output
        assert _entries(existing)["3"] == {
            "category": 1,
            "start": "2024-05-02T09:00:00",
            "duration": 1800,
            "comment": "review",
        }

    def test_prompts_in_order(self, invoke, existing):
        result = invoke("add", input="2024-05-02\n22:00\nwork\nlate\n01:00\n")
        assert result.exit_code == 0, result.output
        assert "Categories: work" in result.output
        entry = _entries(existing)["3"]
        assert entry["start"] == "2024-05-02T22:00:00"
        assert entry["duration"] == 3 * 3600
        assert entry["comment"] == "late"

    def test_new_category_confirmed(self, invoke, save_path):
        args = ("record", "--date", "2024-05-02", "--start", "9:00", "--end", "10:00", "-c", "gym", "-m", "")
        result = invoke(*args, input="y\n")
        assert result.exit_code == 0, result.output
        assert "Category gym does not currently exist. Create it?" in result.output
        data = SaveFile(save_path).load()
        assert data.categories[1].name == "gym"
        assert data.entries[1].category_id == 1

    def test_new_category_refused(self, invoke, save_path):
        args = ("record", "--date", "2024-05-02", "--start", "9:00", "--end", "10:00", "-c", "gym", "-m", "")
        result = invoke(*args, input="n\n")
        assert result.exit_code == 0, result.output
        assert "Cannot create an entry with a nonexistent category." in result.output
        assert not save_path.exists()

    def test_bad_clock_is_a_usage_error(self, invoke):
        result = invoke("record", "--start", "25:00")
        assert result.exit_code == 2
        assert "out of range" in result.output

    def test_old_file_upgraded_with_backup(self, invoke, save_path):
        raw = write_doc(save_path, v1_doc())
        result = invoke(
            "record", "--date", "2024-05-02", "--start", "9:00", "--end", "10:00", "-c", "reading", "-m", "",
        )
        assert result.exit_code == 0, result.output
        assert SaveFile(save_path).backup_path(1).read_bytes() == raw
        assert json.loads(save_path.read_text())["version"] == CURRENT_VERSION


class TestStopwatch:
    @pytest.fixture
    def clock(self, monkeypatch):
        ticks = iter([datetime(2024, 5, 2, 14, 0, 5, 123), datetime(2024, 5, 2, 15, 30, 5)])
        monkeypatch.setattr(taskit_cli, "_now", lambda: next(ticks))

    def test_records_elapsed_time(self, invoke, existing, clock):
        result = invoke("stopwatch", input="\nwork\nfocus\n")
        assert result.exit_code == 0, result.output
        assert "Stopped at 15:30 (1h30m)" in result.output
        entry = _entries(existing)["3"]
        assert entry == {"category": 1, "start": "2024-05-02T14:00:05", "duration": 5400, "comment": "focus"}

    def test_cancel_records_nothing(self, invoke, existing, clock):
        raw = existing.read_bytes()
        result = invoke("time", input="")
        assert "nothing recorded" in result.output
        assert existing.read_bytes() == raw

    def test_refused_category_asks_again(self, invoke, existing, clock):
        result = invoke("start", input="\ngym\nn\nwork\n\n")
        assert result.exit_code == 0, result.output
        assert _entries(existing)["3"]["category"] == 1


class TestAmend:
    def test_latest_with_defaults(self, invoke, existing):
        result = invoke("amend", "--latest", "-m", "night owl", input="\n\n\n\n")
        assert result.exit_code == 0, result.output
        assert "Amended." in result.output
        entry = _entries(existing)["2"]
        assert entry == {"category": None, "start": "2024-05-01T23:00:00", "duration": 7200, "comment": "night owl"}

    def test_by_id_with_options(self, invoke, existing):
        result = invoke(
            "amend", "1", "--date", "2024-05-03", "--start", "10:00", "--end", "12:00", "-c", "reading", "-m", "x",
        )
        assert result.exit_code == 0, result.output
        assert _entries(existing)["1"] == {
            "category": 2,
            "start": "2024-05-03T10:00:00",
            "duration": 7200,
            "comment": "x",
        }

    def test_pick_from_list(self, invoke, existing):
        result = invoke("amend", "-m", "picked", input="1\n\n\n\n\n")
        assert result.exit_code == 0, result.output
        assert "(  1) 2024-05-01 09:00-10:00 work: standup" in result.output
        assert _entries(existing)["1"]["comment"] == "picked"

    def test_unknown_id(self, invoke, existing):
        result = invoke("amend", "42")
        assert result.exit_code == 1
        assert "No entry with id 42." in result.output

    def test_nothing_to_amend(self, invoke):
        result = invoke("amend", "--latest")
        assert result.exit_code == 1
        assert "No entries to amend." in result.output


class TestArchiveTagNote:
    def test_archive(self, invoke, existing):
        result = invoke("archive", "work")
        assert result.exit_code == 0, result.output
        assert "Archived work." in result.output
        assert SaveFile(existing).load().categories[1].archived

    def test_archive_unknown(self, invoke, existing):
        raw = existing.read_bytes()
        result = invoke("archive", "gym")
        assert "No active category named 'gym'." in result.output
        assert existing.read_bytes() == raw

    def test_tag_new(self, invoke, existing):
        result = invoke("tag", "reading", "#hobby", "-y")
        assert result.exit_code == 0, result.output
        assert "Tagged reading with #hobby." in result.output
        tags = SaveFile(existing).load().tags
        assert tags[2].name == "hobby"
        assert tags[2].categories == {2}

    def test_tag_refused(self, invoke, existing):
        raw = existing.read_bytes()
        result = invoke("tag", "reading", "hobby", input="n\n")
        assert "Tag #hobby does not currently exist. Create it?" in result.output
        assert existing.read_bytes() == raw

    def test_tag_unknown_category(self, invoke, existing):
        result = invoke("tag", "gym", "job")
        assert result.exit_code == 1
        assert "category not found: gym" in result.output

    def test_note(self, invoke, existing):
        result = invoke("note", "busy day", "--date", "2024-05-01")
        assert result.exit_code == 0, result.output
        notes = json.loads(existing.read_text())["notes"]
        assert notes == {"2024-05-01": "busy day"}

    def test_note_editor_unchanged(self, invoke, existing, monkeypatch):
        raw = existing.read_bytes()
        monkeypatch.setattr("click.edit", lambda text: None)
        result = invoke("note", "--date", "2024-05-01")
        assert "No changes." in result.output
        assert existing.read_bytes() == raw


class TestShow:
    def test_days_and_totals(self, invoke, existing):
        result = invoke("show", "--all")
        assert result.exit_code == 0, result.output
        assert "2024-05-01 (3h)" in result.output
        assert "standup" in result.output
        assert "[slow day]" in result.output
        assert "Aggregated durations" in result.output
        assert "#job" in result.output

    def test_default_window_hides_old_entries(self, invoke, existing, monkeypatch):
        monkeypatch.setattr(taskit_cli, "_now", lambda: datetime(2024, 6, 30, 12))
        result = invoke("list")
        assert result.exit_code == 0, result.output
        assert "No entries." in result.output
        assert "At/After: 2024-06-17" in result.output

    def test_filters(self, invoke, existing):
        result = invoke("show", "--all", "-c", "work", "--to", "2024-05-01")
        assert "Category: work" in result.output
        assert "standup" in result.output
        assert "(uncategorized)" not in result.output

    def test_missing_file_shows_nothing(self, invoke, save_path):
        result = invoke("show", "--all")
        assert result.exit_code == 0, result.output
        assert "No entries." in result.output
        assert not save_path.exists()

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("start", "2024-05-01T09:00:00+02:00", "UTC offset"),
            ("duration", 10**20, "last representable date"),
        ],
    )
    def test_corrupt_entry_is_reported(self, invoke, save_path, field, value, message):
        doc = v4_doc()
        doc["entries"]["1"][field] = value
        write_doc(save_path, doc)
        result = invoke("show", "--all")
        assert result.exit_code == 1
        assert message in result.output

    def test_future_file_is_an_error(self, invoke, save_path):
        doc = v4_doc()
        doc["version"] = CURRENT_VERSION + 1
        write_doc(save_path, doc)
        result = invoke("show")
        assert result.exit_code == 1
        assert "upgrade taskit" in result.output


class TestHousekeeping:
    def test_migrate(self, invoke, save_path):
        write_doc(save_path, v1_doc())
        result = invoke("migrate")
        assert result.exit_code == 0, result.output
        assert "from schema v1 to v4" in result.output
        assert "save.json.v1.bak" in result.output
        assert invoke("migrate").output.strip() == f"Already at schema v{CURRENT_VERSION}."

    def test_migrate_without_file(self, invoke):
        assert "nothing to migrate" in invoke("migrate").output

    def test_status(self, invoke, save_path):
        write_doc(save_path, v1_doc())
        result = invoke("status")
        assert result.exit_code == 0, result.output
        assert "Schema" in result.output
        assert SaveFile(save_path).source_version() == 1
        assert SaveFile(save_path).list_backups() == []

    def test_categories(self, invoke, existing):
        result = invoke("categories", "--no-archived")
        assert result.exit_code == 0, result.output
        assert "#job" in result.output
        assert "reading" not in result.output

    def test_init(self, invoke, tmp_path):
        result = invoke("init")
        assert result.exit_code == 0, result.output
        assert (tmp_path / "config" / "taskit.toml").exists()
        assert "already exists" in invoke("init").output
