"""taskit CLI — personal time tracking in a single JSON file.

Commands:
    taskit record                 add an entry by hand (alias: add)
    taskit stopwatch              time an entry live (aliases: time, start)
    taskit show                   entries by day plus totals (alias: list)
    taskit amend [ID | --latest]  change an existing entry
    taskit archive CATEGORY       stop offering a category
    taskit tag CATEGORY TAG       group a category under a tag
    taskit note [TEXT]            set the note for a day
    taskit categories             list categories and their tags
    taskit status                 save file, schema version, counts
    taskit migrate                upgrade the save file to the current schema
    taskit init                   write a default taskit.toml
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

import click

from taskit.commands import (
    amend_deltas,
    archive_deltas,
    entry_deltas,
    note_deltas,
    run_command,
    tag_deltas,
)
from taskit.config import TaskitConfig, init_config, load_config
from taskit.errors import TaskitError
from taskit.models import CURRENT_VERSION
from taskit.store import SaveFile
from taskit.timefmt import format_clock, format_duration, parse_clock, parse_date, span
from taskit.views import CategoryIs, CommentContains, EndDate, SnapshotView, StartDate, TagIs

if TYPE_CHECKING:
    from taskit.commands import Command
    from taskit.deltas import DeltaItem
    from taskit.models import SaveData
    from taskit.views import Filter

logger = logging.getLogger("taskit.cli")

# Indirection so tests can freeze the clock.
_now = datetime.now


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ClockType(click.ParamType):
    name = "HH:MM"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> time:
        if isinstance(value, time):
            return value
        try:
            return parse_clock(str(value))
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


class DateType(click.ParamType):
    name = "DATE"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> date:
        if isinstance(value, date):
            return value
        try:
            return parse_date(str(value), today=_now().date())
        except ValueError:
            self.fail(f"not a date: {value!r} (use YYYY-MM-DD, today or yesterday)", param, ctx)


CLOCK = ClockType()
DATE = DateType()


def _save_file(cfg: TaskitConfig) -> SaveFile:
    return SaveFile(cfg.save_path, backup_dir=cfg.store.backup_dir)


def _run(cfg: TaskitConfig, command: Command) -> SaveData | None:
    """Run a command against the save file, turning core errors into CLI errors."""
    try:
        return run_command(_save_file(cfg), command)
    except TaskitError as exc:
        raise click.ClickException(str(exc)) from exc


def _load(cfg: TaskitConfig) -> SaveData:
    try:
        return _save_file(cfg).load()
    except TaskitError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_categories_hint(snapshot: SaveData) -> None:
    names = sorted({c.name for c in snapshot.active_categories})
    if names:
        click.echo(f"Categories: {', '.join(names)}")


def _ask_category(snapshot: SaveData, given: str | None, default: str = "") -> str:
    if given is not None:
        return given
    _echo_categories_hint(snapshot)
    return click.prompt("Category", default=default, show_default=bool(default))


def _allow_new_category(snapshot: SaveData, name: str, yes: bool) -> bool | None:
    """True if name is new and may be created, False if it exists, None if refused."""
    if not name.strip() or snapshot.categories_named(name.strip(), include_archived=True):
        return False
    if yes or click.confirm(f"Category {name.strip()} does not currently exist. Create it?"):
        return True
    return None


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="taskit")
@click.option("--file", "save_file", type=click.Path(dir_okay=False), help="Save file (overrides config)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to taskit.toml")
@click.option("-v", "--verbose", count=True, help="-v for info, -vv for debug logging")
@click.pass_context
def cli(ctx: click.Context, save_file: str | None, config_path: str | None, verbose: int) -> None:
    """taskit — personal time tracking."""
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(message)s")
    try:
        ctx.obj = load_config(config_path, save_file=save_file)
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"cannot load config: {exc}") from exc


# ---------------------------------------------------------------------------
# taskit init
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_obj
def init(cfg: TaskitConfig) -> None:
    """Write a default taskit.toml."""
    try:
        path = init_config(cfg.config_path)
        click.echo(f"Created {path}")
    except FileExistsError:
        click.echo(f"{cfg.config_path} already exists — skipping init")
    click.echo(f"Save file : {cfg.save_path}")


# ---------------------------------------------------------------------------
# taskit record / stopwatch
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--date", "day", type=DATE, help="Day of the entry  [default: today]")
@click.option("--start", type=CLOCK, help="Start time")
@click.option("--end", type=CLOCK, help="End time (before start = next day)")
@click.option("-c", "--category", help="Category name (empty = uncategorized)")
@click.option("-m", "--comment", help="Free-text comment")
@click.option("-y", "--yes", is_flag=True, help="Create a missing category without asking")
@click.pass_obj
def record(
    cfg: TaskitConfig,
    day: date | None,
    start: time | None,
    end: time | None,
    category: str | None,
    comment: str | None,
    yes: bool,
) -> None:
    """Add an entry, prompting for anything not given as an option."""

    def command(snapshot: SaveData) -> list[DeltaItem] | None:
        entry_day = day or click.prompt("Date", type=DATE, default="today")
        start_t = start or click.prompt("Start time", type=CLOCK)
        name = _ask_category(snapshot, category)
        note = comment if comment is not None else click.prompt("Comment", default="", show_default=False)
        end_t = end or click.prompt("End time", type=CLOCK)
        create = _allow_new_category(snapshot, name, yes)
        if create is None:
            click.echo("Cannot create an entry with a nonexistent category.")
            return None
        begin, duration = span(entry_day, start_t, end_t)
        return entry_deltas(
            snapshot, category=name, start=begin, duration=duration, comment=note, create_missing=create,
        )

    if _run(cfg, command) is not None:
        click.echo("Recorded.")


@cli.command()
@click.option("-c", "--category", help="Category name (asked when stopped if omitted)")
@click.option("-y", "--yes", is_flag=True, help="Create a missing category without asking")
@click.pass_obj
def stopwatch(cfg: TaskitConfig, category: str | None, yes: bool) -> None:
    """Time an entry: starts now, stops on Enter. Ctrl-C discards it."""

    def command(snapshot: SaveData) -> list[DeltaItem] | None:
        started = _now().replace(microsecond=0)
        click.echo(f"Started at {format_clock(started)}. Press Enter to stop, Ctrl-C to cancel.")
        try:
            click.prompt("", default="", show_default=False, prompt_suffix="")
        except click.Abort:
            click.echo("\nCancelled — nothing recorded.")
            return None
        stopped = _now().replace(microsecond=0)
        duration = max(stopped - started, timedelta(0))
        click.echo(f"Stopped at {format_clock(stopped)} ({format_duration(duration)})")

        while True:
            name = _ask_category(snapshot, category)
            create = _allow_new_category(snapshot, name, yes)
            if create is not None:
                break
            if category is not None:
                return None
        note = click.prompt("Comment", default="", show_default=False)
        return entry_deltas(
            snapshot, category=name, start=started, duration=duration, comment=note, create_missing=create,
        )

    if _run(cfg, command) is not None:
        click.echo("Recorded.")


cli.add_command(record, name="add")
cli.add_command(stopwatch, name="time")
cli.add_command(stopwatch, name="start")


# ---------------------------------------------------------------------------
# taskit amend
# ---------------------------------------------------------------------------


def _pick_entry(snapshot: SaveData, limit: int = 10) -> int:
    rows = SnapshotView(snapshot).rows()[:limit]
    if not rows:
        raise click.ClickException("No entries to amend.")
    for row in rows:
        e = row.entry
        click.echo(
            f"({e.id:>3}) {e.start:%Y-%m-%d} {format_clock(e.start)}-{format_clock(e.end)} "
            f"{row.category_name}: {e.comment}"
        )
    choice = click.prompt("Entry to amend", type=click.Choice([str(r.entry.id) for r in rows]), show_choices=False)
    return int(choice)


@cli.command()
@click.argument("entry_id", type=int, required=False)
@click.option("--latest", is_flag=True, help="Amend the most recently added entry")
@click.option("--date", "day", type=DATE, help="New day")
@click.option("--start", type=CLOCK, help="New start time")
@click.option("--end", type=CLOCK, help="New end time")
@click.option("-c", "--category", help="New category")
@click.option("-m", "--comment", help="New comment")
@click.option("-y", "--yes", is_flag=True, help="Create a missing category without asking")
@click.pass_obj
def amend(
    cfg: TaskitConfig,
    entry_id: int | None,
    latest: bool,
    day: date | None,
    start: time | None,
    end: time | None,
    category: str | None,
    comment: str | None,
    yes: bool,
) -> None:
    """Change an existing entry. Current values are offered as defaults."""

    def command(snapshot: SaveData) -> list[DeltaItem] | None:
        if latest:
            entry = snapshot.latest_entry()
            if entry is None:
                raise click.ClickException("No entries to amend.")
            target = entry.id
        else:
            target = entry_id if entry_id is not None else _pick_entry(snapshot)
        entry = snapshot.entries.get(target)
        if entry is None:
            raise click.ClickException(f"No entry with id {target}.")
        current_cat = snapshot.categories.get(entry.category_id) if entry.category_id is not None else None

        new_day = day or click.prompt("Date", type=DATE, default=entry.day.isoformat())
        start_t = start or click.prompt("Start time", type=CLOCK, default=format_clock(entry.start))
        name = _ask_category(snapshot, category, default=current_cat.name if current_cat else "")
        note = comment if comment is not None else click.prompt(
            "Comment", default=entry.comment, show_default=bool(entry.comment),
        )
        end_t = end or click.prompt("End time", type=CLOCK, default=format_clock(entry.end))
        create = _allow_new_category(snapshot, name, yes)
        if create is None:
            click.echo("Cannot update an entry with a nonexistent category.")
            return None
        begin, duration = span(new_day, start_t, end_t)
        return amend_deltas(
            snapshot, target, category=name, start=begin, duration=duration, comment=note, create_missing=create,
        )

    if _run(cfg, command) is not None:
        click.echo("Amended.")


# ---------------------------------------------------------------------------
# taskit archive / tag / note
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("category")
@click.pass_obj
def archive(cfg: TaskitConfig, category: str) -> None:
    """Mark a category as archived so it is no longer offered."""

    def command(snapshot: SaveData) -> list[DeltaItem] | None:
        deltas = archive_deltas(snapshot, category)
        if not deltas:
            click.echo(f"No active category named {category!r}.")
        return deltas

    if _run(cfg, command) is not None:
        click.echo(f"Archived {category}.")


@cli.command()
@click.argument("category")
@click.argument("tag_name", metavar="TAG")
@click.option("-y", "--yes", is_flag=True, help="Create a missing tag without asking")
@click.pass_obj
def tag(cfg: TaskitConfig, category: str, tag_name: str, yes: bool) -> None:
    """Add a category to a tag for larger aggregation."""

    def command(snapshot: SaveData) -> list[DeltaItem] | None:
        name = tag_name.strip().removeprefix("#")
        create = False
        if not snapshot.tags_named(name):
            if not (yes or click.confirm(f"Tag #{name} does not currently exist. Create it?")):
                return None
            create = True
        return tag_deltas(snapshot, category, name, create_missing=create)

    if _run(cfg, command) is not None:
        click.echo(f"Tagged {category} with #{tag_name.strip().removeprefix('#')}.")


@cli.command()
@click.argument("text", required=False)
@click.option("--date", "day", type=DATE, help="Day of the note  [default: today]")
@click.pass_obj
def note(cfg: TaskitConfig, text: str | None, day: date | None) -> None:
    """Set the note for a day. Opens $EDITOR when TEXT is omitted."""

    def command(snapshot: SaveData) -> list[DeltaItem] | None:
        note_day = day or _now().date()
        body = text
        if body is None:
            existing = snapshot.notes.get(note_day)
            edited = click.edit(existing.text if existing else "")
            if edited is None:
                click.echo("No changes.")
                return None
            body = edited.rstrip("\n")
        return note_deltas(note_day, body)

    if _run(cfg, command) is not None:
        click.echo("Saved note.")


# ---------------------------------------------------------------------------
# taskit show
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--from", "from_day", type=DATE, help="Only entries on/after this day")
@click.option("--to", "to_day", type=DATE, help="Only entries on/before this day")
@click.option("-c", "--category", help="Only this category")
@click.option("-t", "--tag", "tag_name", help="Only categories in this tag")
@click.option("--contains", help="Only entries whose comment contains this text")
@click.option("--all", "show_all", is_flag=True, help="Ignore display.max_days")
@click.pass_obj
def show(
    cfg: TaskitConfig,
    from_day: date | None,
    to_day: date | None,
    category: str | None,
    tag_name: str | None,
    contains: str | None,
    show_all: bool,
) -> None:
    """Display entries grouped by day with per-category and per-tag totals."""
    from rich.console import Console
    from rich.markup import escape as _markup_escape
    from rich.table import Table

    snapshot = _load(cfg)
    filters: list[Filter] = []
    if from_day is None and not show_all and cfg.display.max_days > 0:
        from_day = _now().date() - timedelta(days=cfg.display.max_days - 1)
    if from_day:
        filters.append(StartDate(from_day))
    if to_day:
        filters.append(EndDate(to_day))
    if category:
        filters.append(CategoryIs(category))
    if tag_name:
        filters.append(TagIs(tag_name.removeprefix("#")))
    if contains:
        filters.append(CommentContains(contains))

    console = Console()
    view = SnapshotView(snapshot)
    if filters:
        console.print("[dim]" + _markup_escape(" | ".join(str(f) for f in filters)) + "[/dim]")

    days = view.by_day(filters)
    if not days:
        console.print("No entries.")
    for group in days:
        table = Table(
            title=f"{group.day.isoformat()} ({format_duration(group.total)})",
            caption=_markup_escape(f"[{group.note}]") if group.note else None,
            show_header=False,
            title_justify="left",
        )
        table.add_column("Time", style="bold", no_wrap=True)
        table.add_column("Duration", style="dim", justify="right")
        table.add_column("Category", style="blue bold")
        table.add_column("Comment")
        for row in group.rows:
            e = row.entry
            table.add_row(
                f"{format_clock(e.start)}-{format_clock(e.end)}",
                format_duration(e.duration),
                _markup_escape(row.category_name) + (" (archived)" if row.archived else ""),
                _markup_escape(e.comment),
            )
        console.print(table)

    totals = view.totals(filters)
    summary = Table(title="Aggregated durations", show_header=False, title_justify="left")
    summary.add_column("Name", no_wrap=True)
    summary.add_column("Total", justify="right")
    summary.add_row("[bold green]all[/bold green]", format_duration(totals.overall))
    for cat, total in totals.categories:
        summary.add_row(f"[bold blue]{_markup_escape(cat.name)}[/bold blue]", format_duration(total))
    if totals.uncategorized:
        summary.add_row("[blue]uncategorized[/blue]", format_duration(totals.uncategorized))
    for t, total in totals.tags:
        summary.add_row(f"[bold magenta]#{_markup_escape(t.name)}[/bold magenta]", format_duration(total))
    console.print(summary)


cli.add_command(show, name="list")


# ---------------------------------------------------------------------------
# taskit categories / status / migrate
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--archived/--no-archived", default=True, show_default=True, help="Include archived categories")
@click.pass_obj
def categories(cfg: TaskitConfig, archived: bool) -> None:
    """List categories with their tags."""
    from rich.console import Console
    from rich.markup import escape as _markup_escape
    from rich.table import Table

    snapshot = _load(cfg)
    table = Table(show_header=True, header_style="bold")
    table.add_column("Id", justify="right", style="dim")
    table.add_column("Category")
    table.add_column("Tags")
    for cid, cat in sorted(snapshot.categories.items()):
        if cat.archived and not archived:
            continue
        name = _markup_escape(cat.name) + (" [dim](archived)[/dim]" if cat.archived else "")
        table.add_row(str(cid), name, _markup_escape(" ".join(f"#{t.name}" for t in snapshot.tags_of(cid))))
    Console().print(table)


@cli.command()
@click.pass_obj
def status(cfg: TaskitConfig) -> None:
    """Show the save file location, schema version and record counts."""
    from rich.console import Console
    from rich.table import Table

    save = _save_file(cfg)
    try:
        on_disk = save.source_version()
        snapshot = save.load(persist_upgrade=False)
    except TaskitError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title="taskit", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Config", str(cfg.config_path) + ("" if cfg.config_path.exists() else " [dim](defaults)[/dim]"))
    table.add_row("Save file", str(save.path))
    if on_disk is None:
        table.add_row("Schema", "[yellow]no save file yet[/yellow]")
    elif on_disk < CURRENT_VERSION:
        table.add_row("Schema", f"[yellow]v{on_disk} — run `taskit migrate` (current v{CURRENT_VERSION})[/yellow]")
    else:
        table.add_row("Schema", f"v{on_disk}")
    table.add_row("", "")
    table.add_row("Entries", str(len(snapshot.entries)))
    table.add_row("Categories", str(len(snapshot.active_categories)))
    table.add_row("  Archived", str(len(snapshot.categories) - len(snapshot.active_categories)))
    table.add_row("Tags", str(len(snapshot.tags)))
    table.add_row("Daily notes", str(len(snapshot.notes)))
    backups = save.list_backups()
    table.add_row("Backups", str(len(backups)))
    for problem in snapshot.problems():
        table.add_row("Problem", f"[red]{problem}[/red]")
    Console().print(table)


@cli.command()
@click.pass_obj
def migrate(cfg: TaskitConfig) -> None:
    """Upgrade the save file to the current schema, keeping a backup."""
    save = _save_file(cfg)
    try:
        before = save.source_version()
        if before is None:
            click.echo("No save file yet — nothing to migrate.")
            return
        if before == CURRENT_VERSION:
            click.echo(f"Already at schema v{CURRENT_VERSION}.")
            return
        backup = save.upgrade()
    except TaskitError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Upgraded {save.path} from schema v{before} to v{CURRENT_VERSION}.")
    click.echo(f"Backup    : {backup}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
