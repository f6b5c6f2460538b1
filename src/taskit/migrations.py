"""Schema migration chain for the save file.

Each historical schema version N has exactly one upgrade transform
``UPGRADES[N]`` producing version N+1. Transforms work on plain JSON
documents, never mutate their input and never fail on a document that
passed the shape check for its version.

Version history:
    1   next_ids {entry, category}, categories {name}, entries
    2   + tags table, next_ids.tag
    3   + categories[*].archived
    4   + notes (daily notes)             <- CURRENT_VERSION
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from taskit.errors import DecodeError, FutureVersionError, MigrationError
from taskit.models import CURRENT_VERSION, SaveData

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("taskit.migrations")

Document = dict[str, Any]


# ---------------------------------------------------------------------------
# Upgrade transforms
# ---------------------------------------------------------------------------


def upgrade_1(doc: Document) -> Document:
    """v1 -> v2: add an empty tag table and its id counter."""
    return {
        "version": 2,
        "next_ids": {**doc["next_ids"], "tag": 1},
        "categories": copy.deepcopy(doc["categories"]),
        "tags": {},
        "entries": copy.deepcopy(doc["entries"]),
    }


def upgrade_2(doc: Document) -> Document:
    """v2 -> v3: every existing category starts out active."""
    return {
        "version": 3,
        "next_ids": dict(doc["next_ids"]),
        "categories": {k: {**v, "archived": False} for k, v in doc["categories"].items()},
        "tags": copy.deepcopy(doc["tags"]),
        "entries": copy.deepcopy(doc["entries"]),
    }


def upgrade_3(doc: Document) -> Document:
    """v3 -> v4: add daily notes."""
    return {
        "version": 4,
        "next_ids": dict(doc["next_ids"]),
        "categories": copy.deepcopy(doc["categories"]),
        "tags": copy.deepcopy(doc["tags"]),
        "entries": copy.deepcopy(doc["entries"]),
        "notes": {},
    }


UPGRADES: dict[int, Callable[[Document], Document]] = {
    1: upgrade_1,
    2: upgrade_2,
    3: upgrade_3,
}


# ---------------------------------------------------------------------------
# Shape checks
# ---------------------------------------------------------------------------


def _id_tables(version: int) -> tuple[str, ...]:
    return ("entry", "category") if version < 2 else ("entry", "category", "tag")


def _require(cond: bool, where: str, what: str) -> None:
    if not cond:
        msg = f"{where}: {what}"
        raise DecodeError(msg)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_id_key(key: str) -> bool:
    # "01" and "1" would both load as id 1
    return key.isascii() and key.isdigit() and key == str(int(key)) and int(key) > 0


def _check_table(doc: Document, name: str) -> dict[str, Any]:
    table = doc.get(name)
    _require(isinstance(table, dict), name, "missing or not an object")
    for key, record in table.items():
        _require(_is_id_key(key), f"{name}.{key}", "id is not a positive integer in canonical form")
        _require(isinstance(record, dict), f"{name}.{key}", "record is not an object")
    return table


def check_shape(version: int, doc: Document) -> None:
    """Raise DecodeError unless doc is a valid document of the given version."""
    next_ids = doc.get("next_ids")
    _require(isinstance(next_ids, dict), "next_ids", "missing or not an object")
    for table in _id_tables(version):
        _require(_is_int(next_ids.get(table)) and next_ids[table] >= 1, f"next_ids.{table}", "not a positive integer")

    for key, cat in _check_table(doc, "categories").items():
        where = f"categories.{key}"
        _require(isinstance(cat.get("name"), str), where, "name is not a string")
        if version >= 3:
            _require(isinstance(cat.get("archived"), bool), where, "archived is not a boolean")

    for key, entry in _check_table(doc, "entries").items():
        where = f"entries.{key}"
        category = entry.get("category")
        _require(category is None or _is_int(category), where, "category is not an id")
        _require(_is_int(entry.get("duration")) and entry["duration"] >= 0, where, "duration is not a non-negative integer")
        _require(isinstance(entry.get("comment", ""), str), where, "comment is not a string")
        try:
            start = datetime.fromisoformat(entry["start"])
        except (KeyError, TypeError, ValueError):
            _require(False, where, "start is not an ISO timestamp")
        _require(start.tzinfo is None, where, "start carries a UTC offset")
        try:
            start + timedelta(seconds=entry["duration"])
        except OverflowError:
            _require(False, where, "entry ends past the last representable date")

    if version >= 2:
        for key, tag in _check_table(doc, "tags").items():
            where = f"tags.{key}"
            _require(isinstance(tag.get("name"), str), where, "name is not a string")
            members = tag.get("categories")
            _require(isinstance(members, list) and all(_is_int(c) for c in members), where, "categories is not a list of ids")

    if version >= 4:
        notes = doc.get("notes")
        _require(isinstance(notes, dict), "notes", "missing or not an object")
        for key, text in notes.items():
            try:
                day = date.fromisoformat(key)
            except ValueError:
                _require(False, f"notes.{key}", "key is not an ISO date")
            _require(key == day.isoformat(), f"notes.{key}", "key is not in YYYY-MM-DD form")
            _require(isinstance(text, str), f"notes.{key}", "text is not a string")

    for table, name in (("entry", "entries"), ("category", "categories"), ("tag", "tags")):
        if table not in _id_tables(version) or not doc[name]:
            continue
        highest = max(int(k) for k in doc[name])
        _require(highest < next_ids[table], f"next_ids.{table}", f"{next_ids[table]} is not above used id {highest}")


# ---------------------------------------------------------------------------
# Decoding and migrating
# ---------------------------------------------------------------------------


def decode(raw: bytes) -> tuple[int, Document]:
    """Parse raw bytes and read the version tag. Does not check the payload."""
    try:
        doc = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = f"not a JSON document: {exc}"
        raise DecodeError(msg) from exc
    if not isinstance(doc, dict):
        msg = "top level is not an object"
        raise DecodeError(msg)
    version = doc.get("version")
    if not _is_int(version) or version < 1:
        msg = f"missing or invalid schema version: {version!r}"
        raise DecodeError(msg)
    return version, doc


def upgrade_document(doc: Document, from_version: int, to_version: int = CURRENT_VERSION) -> Document:
    """Fold the upgrade transforms from from_version up to to_version."""
    for version in range(from_version, to_version):
        logger.debug("upgrading schema v%d -> v%d", version, version + 1)
        try:
            doc = UPGRADES[version](doc)
        except Exception as exc:
            msg = f"upgrade from schema v{version} failed: {exc}"
            raise MigrationError(msg) from exc
    return doc


@dataclass
class MigrationResult:
    data: SaveData
    from_version: int

    @property
    def upgraded(self) -> bool:
        return self.from_version < CURRENT_VERSION


def migrate(raw: bytes) -> MigrationResult:
    """Decode raw save-file bytes of any known version into a current snapshot.

    Raises DecodeError for bytes that do not match their declared version,
    FutureVersionError for versions newer than CURRENT_VERSION and
    MigrationError if an upgrade transform fails.
    """
    version, doc = decode(raw)
    if version > CURRENT_VERSION:
        raise FutureVersionError(version, CURRENT_VERSION)
    check_shape(version, doc)
    doc = upgrade_document(doc, version)
    try:
        data = SaveData.from_dict(doc)
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        msg = f"migrated document is not a valid v{CURRENT_VERSION} snapshot: {exc}"
        raise MigrationError(msg) from exc
    if version < CURRENT_VERSION:
        logger.info("migrated save data from schema v%d to v%d", version, CURRENT_VERSION)
    return MigrationResult(data=data, from_version=version)
