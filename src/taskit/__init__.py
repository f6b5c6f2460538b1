"""Personal time tracking backed by one versioned JSON file.

Layout:
    $XDG_DATA_HOME/taskit/
        save.json           # the save file (schema version + all tables)
        save.json.v<N>.bak  # original bytes of a file upgraded from schema v<N>
    $XDG_CONFIG_HOME/taskit/
        taskit.toml         # optional config

save.json:
    {"version": 4,
     "next_ids": {"entry": 3, "category": 2, "tag": 1},
     "categories": {"1": {"name": "work", "archived": false}},
     "tags": {"1": {"name": "job", "categories": [1]}},
     "entries": {"1": {"category": 1, "start": "2024-05-01T09:00:00", "duration": 3600, "comment": ""}},
     "notes": {"2024-05-01": "slow day"}}

Every change is a list of delta items applied by SaveFile.commit(), which
re-reads the file first. No locks are taken.
"""

from taskit.config import TaskitConfig, load_config
from taskit.deltas import (
    AddCategory,
    AddCategoryToTag,
    AddDailyNote,
    AddEntry,
    AddTag,
    AmendEntry,
    ArchiveCategory,
    DeltaItem,
    Pending,
    apply,
)
from taskit.models import CURRENT_VERSION, Category, DailyNote, SaveData, Tag, TimeEntry
from taskit.store import SaveFile

__all__ = [
    "CURRENT_VERSION",
    "AddCategory",
    "AddCategoryToTag",
    "AddDailyNote",
    "AddEntry",
    "AddTag",
    "AmendEntry",
    "ArchiveCategory",
    "Category",
    "DailyNote",
    "DeltaItem",
    "Pending",
    "SaveData",
    "SaveFile",
    "Tag",
    "TaskitConfig",
    "TimeEntry",
    "apply",
    "load_config",
]
