"""
CLI interface for listening stats.

Imports exported streaming history and prints the statistics computed
over it.
"""

import logging
import sys
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from listening_stats.config.loader import Settings, load_settings
from listening_stats.core.importer import ExportFormatError, read_export_files
from listening_stats.core.patterns import (
    analyze_platforms,
    analyze_skip_behavior,
    analyze_time_patterns,
)
from listening_stats.core.rankings import get_top_artists, get_top_tracks
from listening_stats.core.rollups import get_complete_summary, get_yearly_stats
from listening_stats.core.timeline import analyze_discovery, get_listening_streaks
from listening_stats.storage.db import StoreUnavailable
from listening_stats.storage.repository import HistoryRepository

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

YEAR_OPTION = typer.Option(None, "--year", "-y", help="Only use plays from this year")


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


@contextmanager
def _repository(ctx: typer.Context) -> Iterator[HistoryRepository]:
    """Open the configured store for one command and close it afterwards."""
    settings: Settings = ctx.obj
    repository = HistoryRepository(settings.db_path, tz=settings.timezone)
    try:
        repository.open()
    except StoreUnavailable as e:
        _fail(str(e))
    try:
        yield repository
    finally:
        repository.close()


def _records(repository: HistoryRepository, year: Optional[int]):
    return repository.by_year(year) if year is not None else repository.all()


def _minutes(total_minutes: int) -> str:
    return f"{total_minutes:,} min"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="Path to the history database"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Listening stats CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    try:
        settings = load_settings(config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(str(e))
    if db is not None:
        settings = replace(settings, db_path=db)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        console.print("Listening stats - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the history database."""
    with _repository(ctx):
        console.print("[green]✓[/] Database initialized successfully")
    sys.exit(EXIT_CODE_PASS)


@app.command("import")
def import_files(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(..., help="Export JSON files or directories holding them"),
):
    """Import Extended Streaming History export files."""
    try:
        records = read_export_files(paths)
    except (FileNotFoundError, ExportFormatError) as e:
        _fail(str(e))

    def report(done: int, total: int) -> None:
        logger.info("Progress: %d/%d", done, total)

    with _repository(ctx) as repository:
        result = repository.import_history(
            records, chunk_size=ctx.obj.chunk_size, progress=report
        )

    console.print(
        f"[green]✓[/] Import complete: {result.imported} imported, "
        f"{result.skipped} skipped ({result.total} total)"
    )


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Don't ask for confirmation"),
):
    """Delete all stored listening history."""
    if not yes and not typer.confirm("Delete all stored listening history?"):
        console.print("Aborted")
        return
    with _repository(ctx) as repository:
        repository.clear_history()
    console.print("[green]✓[/] History cleared")


@app.command()
def stats(ctx: typer.Context):
    """Show what the store holds."""
    with _repository(ctx) as repository:
        store_stats = repository.stats()

    if not store_stats["has_data"]:
        console.print("\n[bold yellow]No listening history found[/]")
        console.print("Run `listening-stats import <files>` to load an export.\n")
        return

    table = Table(title="Stored history")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in store_stats.items():
        if key != "has_data":
            table.add_row(key.replace("_", " ").capitalize(), f"{value:,}" if isinstance(value, int) else str(value))
    console.print(table)


@app.command("top-tracks")
def top_tracks(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of tracks"),
    year: Optional[int] = YEAR_OPTION,
):
    """Show the most played tracks."""
    with _repository(ctx) as repository:
        tracks = get_top_tracks(_records(repository, year), limit or ctx.obj.top_limit)

    table = Table(title="Top tracks")
    for column in ("#", "Track", "Artist", "Plays", "Time"):
        table.add_column(column)
    for track in tracks:
        table.add_row(
            str(track.rank), track.name or track.uri, track.artist or "",
            str(track.play_count), _minutes(track.total_minutes),
        )
    console.print(table)


@app.command("top-artists")
def top_artists(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of artists"),
    year: Optional[int] = YEAR_OPTION,
):
    """Show the most played artists."""
    with _repository(ctx) as repository:
        artists = get_top_artists(_records(repository, year), limit or ctx.obj.top_limit)

    table = Table(title="Top artists")
    for column in ("#", "Artist", "Plays", "Tracks", "Time"):
        table.add_column(column)
    for artist in artists:
        table.add_row(
            str(artist.rank), artist.name, str(artist.play_count),
            str(artist.unique_tracks), _minutes(artist.total_minutes),
        )
    console.print(table)


@app.command()
def patterns(ctx: typer.Context, year: Optional[int] = YEAR_OPTION):
    """Show when you listen most."""
    with _repository(ctx) as repository:
        result = analyze_time_patterns(_records(repository, year))

    console.print(f"[bold]Peak hour:[/bold] {result.peak_hour}")
    console.print(f"[bold]Peak day:[/bold] {result.peak_day}")
    console.print(f"[bold]Peak month:[/bold] {result.peak_month}")


@app.command()
def skips(ctx: typer.Context, year: Optional[int] = YEAR_OPTION):
    """Show skip behaviour of track plays."""
    with _repository(ctx) as repository:
        result = analyze_skip_behavior(_records(repository, year))

    console.print(f"Track plays: {result.total_plays:,}")
    console.print(f"Skip rate: {result.skip_rate}%")
    console.print(f"Completion rate: {result.completion_rate}%")
    for reason, count in sorted(result.skip_reasons.items(), key=lambda item: -item[1]):
        console.print(f"  {reason}: {count:,}")


@app.command()
def platforms(ctx: typer.Context, year: Optional[int] = YEAR_OPTION):
    """Show plays per platform."""
    with _repository(ctx) as repository:
        result = analyze_platforms(_records(repository, year))

    table = Table(title="Platforms")
    for column in ("Platform", "Plays", "Time"):
        table.add_column(column)
    for platform in result:
        table.add_row(platform.platform, f"{platform.plays:,}", _minutes(platform.total_minutes))
    console.print(table)


@app.command()
def yearly(ctx: typer.Context):
    """Show listening per year."""
    with _repository(ctx) as repository:
        years = get_yearly_stats(repository.all())

    table = Table(title="Yearly")
    for column in ("Year", "Plays", "Hours", "Tracks", "Artists", "Per day"):
        table.add_column(column)
    for year in years:
        table.add_row(
            str(year.year), f"{year.plays:,}", f"{year.total_hours:,}",
            f"{year.unique_tracks:,}", f"{year.unique_artists:,}", str(year.average_per_day),
        )
    console.print(table)


@app.command()
def streaks(ctx: typer.Context):
    """Show current and longest listening streaks."""
    with _repository(ctx) as repository:
        result = get_listening_streaks(repository.all())

    console.print(f"Current streak: {result.current} days")
    console.print(f"Longest streak: {result.longest} days")
    if result.last_listening_date:
        console.print(f"Last listened: {result.last_listening_date}")


@app.command()
def discovery(
    ctx: typer.Context,
    show: int = typer.Option(10, "--show", help="Number of recent discoveries to list"),
):
    """Show how many artists and tracks you discovered."""
    with _repository(ctx) as repository:
        result = analyze_discovery(repository.all(), limit=ctx.obj.discovery_limit)

    console.print(f"Artists discovered: {result.total_artists_discovered:,}")
    console.print(f"Tracks discovered: {result.total_tracks_discovered:,}")
    for entry in result.discoveries[-show:] if show > 0 else []:
        console.print(f"  {entry.date}  {entry.artist or '-'} - {entry.track or '-'}")


@app.command()
def summary(ctx: typer.Context, year: Optional[int] = YEAR_OPTION):
    """Show all-time totals."""
    with _repository(ctx) as repository:
        result = get_complete_summary(_records(repository, year))

    if result.total_plays == 0:
        console.print("\n[bold yellow]No track plays found[/]\n")
        return

    console.print("\n[bold]Listening summary[/bold]")
    console.print("-" * 40)
    console.print(f"Plays: {result.total_plays:,}")
    console.print(f"Listening time: {result.total_hours:,} hours ({result.total_days:,} days)")
    console.print(f"Unique tracks: {result.unique_tracks:,}")
    console.print(f"Unique artists: {result.unique_artists:,}")
    console.print(f"Average per day: {result.average_per_day:,}")
    console.print(f"From {result.oldest_date} to {result.newest_date}")


if __name__ == "__main__":
    app()
