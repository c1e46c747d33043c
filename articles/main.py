#!/usr/bin/env python3
"""
Article Desk - operator command line.

Finds duplicate submissions, merges a group into a chosen survivor, and
deletes discarded articles. Merges and deletes always ask for confirmation
unless --yes is given.

Usage:
    python -m articles.main duplicates
    python -m articles.main merge SURVIVOR_ID DISCARD_ID [DISCARD_ID ...]
    python -m articles.main delete ARTICLE_ID
    python -m articles.main import export.json
"""

import sys
import uuid
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from articles.database import create_all_tables, drop_all_tables, get_session
from articles.deduplication import DeduplicationService, MergeRequest
from articles.exceptions import DeskError, NotFoundError, TransactionError, ValidationError
from articles.repository import ArticleRepository

console = Console()


def _service() -> DeduplicationService:
    return DeduplicationService()


def _fail(error: DeskError) -> None:
    if isinstance(error, NotFoundError):
        console.print(f"[red]Not found: {escape(', '.join(error.ids))}[/red]")
    elif isinstance(error, ValidationError):
        console.print(f"[red]Invalid request: {escape(str(error))}[/red]")
    elif isinstance(error, TransactionError):
        console.print(f"[red]{escape(str(error))}. Nothing was changed; it is safe to retry.[/red]")
    else:
        console.print(f"[red]{escape(str(error))}[/red]")
    sys.exit(1)


def _fmt_date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug):
    """Article Desk - duplicate detection and merge"""
    from articles.utils.logging import setup_logging
    if debug:
        setup_logging(level="DEBUG")


@cli.command("init-db")
@click.option("--drop", is_flag=True, help="Drop existing tables before creating (USE WITH CAUTION!)")
def init_db(drop: bool):
    """Create the database tables."""
    if drop:
        if not click.confirm("Are you sure you want to drop all tables?"):
            console.print("Drop cancelled.")
            return
        logger.warning("Dropping all existing tables...")
        drop_all_tables()

    create_all_tables()
    console.print("[green]Tables created.[/green]")


@cli.command()
def duplicates():
    """List groups of articles that look like the same submission."""
    report = _service().find_duplicates()

    console.print(
        f"\n[bold blue]{report.total_articles} articles, {len(report.groups)} duplicate groups, "
        f"{report.total_duplicates} surplus copies[/bold blue]\n"
    )

    for group in report.groups:
        heading = f"[bold]{group.normalized_title}[/bold]  <{group.contact_key or 'no email'}>"
        if group.anonymous:
            heading += "  [yellow]no contact key: members may be unrelated submissions[/yellow]"
        console.print(heading)

        table = Table()
        table.add_column("ID")
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Status")
        table.add_column("Submitted")
        table.add_column("Created")
        table.add_column("Files")
        table.add_column("Tags")
        table.add_column("Source IDs")

        for member in group.members:
            table.add_row(
                str(member.id),
                member.title,
                member.author_name or "-",
                member.status or "-",
                _fmt_date(member.submitted_at),
                _fmt_date(member.created_at),
                str(member.attachment_count),
                ", ".join(member.tags),
                ", ".join(member.source_ids),
            )
        console.print(table)


@cli.command()
@click.argument("survivor", type=click.UUID)
@click.argument("discards", type=click.UUID, nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def merge(survivor: uuid.UUID, discards: tuple[uuid.UUID, ...], yes: bool):
    """
    Merge DISCARDS into SURVIVOR.

    Attachments, tags and source ids of the discarded articles move to the
    survivor; the discarded articles are deleted.
    """
    try:
        request = MergeRequest.build(survivor, discards)
    except ValidationError as e:
        _fail(e)

    if not yes and not click.confirm(
        f"Merge {len(request.discard_ids)} article(s) into {request.survivor_id}? This cannot be undone."
    ):
        console.print("Merge cancelled.")
        return

    try:
        result = _service().merge(request)
    except DeskError as e:
        _fail(e)

    console.print(
        f"[green]Merged {result.merged_count} article(s) into {result.survivor_id}[/green] "
        f"({result.attachments_moved} attachments moved, "
        f"tags added: {', '.join(result.tags_added) or 'none'}, "
        f"{len(result.source_ids_added)} source ids folded in)"
    )


@cli.command()
@click.argument("article_id", type=click.UUID)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def delete(article_id: uuid.UUID, yes: bool):
    """Delete an article with its attachments and tags."""
    if not yes and not click.confirm(f"Delete article {article_id}? This cannot be undone."):
        console.print("Delete cancelled.")
        return

    try:
        result = _service().delete_article(article_id)
    except DeskError as e:
        _fail(e)

    console.print(f"[green]Deleted {article_id}[/green] ({result.attachments_removed} attachments)")
    if result.files_failed:
        console.print(f"[yellow]{len(result.files_failed)} file(s) could not be removed from storage:[/yellow]")
        for path in result.files_failed:
            console.print(f"  {path}")


@cli.command()
def files():
    """List attachments that look like duplicate uploads."""
    report = _service().find_duplicate_attachments()

    console.print(
        f"\n[bold blue]{report.total_files} files, {len(report.groups)} duplicate groups[/bold blue]\n"
    )

    table = Table()
    table.add_column("Match")
    table.add_column("ID")
    table.add_column("File")
    table.add_column("Size")
    table.add_column("Article")

    for group in report.groups:
        for f in group.files:
            table.add_row(
                group.match_type,
                str(f.id),
                f.original_file_name,
                str(f.file_size or "-"),
                f.article_title,
            )
        table.add_section()

    console.print(table)


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_(path: Path):
    """Import submissions from a JSON export, skipping ones already present."""
    from articles.intake import import_submissions, load_submissions

    try:
        submissions = load_submissions(path)
    except DeskError as e:
        _fail(e)

    stats = import_submissions(submissions)

    table = Table()
    table.add_column("Created")
    table.add_column("Already present")
    table.add_column("New authors")
    table.add_column("Errors")
    table.add_row(str(stats.created), str(stats.skipped), str(stats.authors_created), str(len(stats.errors)))
    console.print(table)

    for error in stats.errors:
        console.print(f"[red]{error}[/red]")


@cli.command()
def status():
    """Show database statistics."""
    with get_session() as session:
        counts = ArticleRepository(session).counts()

    table = Table()
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Articles", str(counts["articles"]))
    table.add_row("Authors", str(counts["authors"]))
    table.add_row("Attachments", str(counts["attachments"]))
    console.print(table)


if __name__ == "__main__":
    cli()
