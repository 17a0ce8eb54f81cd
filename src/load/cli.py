"""CLI for importing clippings exports and managing import sessions."""

import argparse
import sys
from pathlib import Path

from rich.markup import escape

from common.errors import ClippingsError, StorageFailure
from common.logger import error, print_counts, progress, setup_logging, success, warning

from .db import DatabaseConfig, create_database, get_adapter
from .import_session import ImportSessionTracker
from .models import ImportStatus, ReviewAction, ReviewStatus
from .pipeline import ImportPipeline
from .store import ReadingStore


def open_store(args) -> ReadingStore:
    """Open the store named by --database, else the one from DATABASE_PATH."""
    if args.database:
        adapter = create_database(DatabaseConfig(db_type="sqlite", db_path=args.database))
    else:
        adapter = get_adapter()
    return ReadingStore(adapter)


def cmd_import(args):
    """Import a clippings export file."""
    path = Path(args.file)
    if not path.is_file():
        error(f"File not found: {path}")
        return 1

    raw_text = path.read_text(encoding="utf-8", errors="replace")
    progress(f"Importing {escape(path.name)} ({path.stat().st_size} bytes)")

    with open_store(args) as store:
        pipeline = ImportPipeline(store)
        try:
            result = pipeline.run(raw_text, path.name, file_size=path.stat().st_size)
        except StorageFailure as e:
            error(str(e))
            return 1

    if result.status == ImportStatus.FAILED:
        for message in result.format_check.errors:
            error(message)
        return 1

    print_counts(f"Import {result.session_id}", result.stats.to_dict())
    for parse_error in result.parse_errors[: args.show_errors]:
        warning(f"Block {parse_error.block_index}: {parse_error.message}")
    for validation_error in result.validation_errors[: args.show_errors]:
        warning(str(validation_error))
    for message in result.dedup_errors[: args.show_errors]:
        warning(message)
    if result.stats.review_needed:
        warning(f"{result.stats.review_needed} entries need review (see 'reviews')")
    success("Import complete")
    return 0


def cmd_sessions(args):
    """List import sessions, newest first."""
    status = ImportStatus(args.status) if args.status else None
    with open_store(args) as store:
        sessions = ImportSessionTracker(store).list_sessions(status=status, limit=args.limit)

    if not sessions:
        progress("No import sessions")
        return 0
    for session in sessions:
        stats = session.stats
        progress(
            f"{session.id}  {session.started_at:%Y-%m-%d %H:%M}  {session.status.value:<11}  "
            f"{escape(session.file_name)}  +{stats.notes_added} ~{stats.notes_updated} "
            f"={stats.notes_skipped} ?{stats.review_needed}"
        )
        if session.error_message:
            warning(session.error_message)
    return 0


def cmd_rollback(args):
    """Undo everything an import session wrote."""
    with open_store(args) as store:
        try:
            result = ImportSessionTracker(store).rollback(args.session_id)
        except ClippingsError as e:
            error(str(e))
            return 1

    if not result.success:
        for message in result.errors:
            error(message)
        return 1
    success(
        f"Rolled back {result.session_id}: "
        f"{result.notes_removed} notes, {result.books_removed} books removed"
    )
    return 0


def cmd_reviews(args):
    """List review items."""
    status = None if args.all else ReviewStatus.PENDING
    with open_store(args) as store:
        items = store.list_review_items(status=status)

    if not items:
        progress("Nothing to review")
        return 0
    for item in items:
        entry = item.entry
        progress(
            f"[bold]{item.id}[/bold]  {item.status.value}  {escape(entry.title)} "
            f"@ {entry.location or entry.page or '-'}  ({item.similarity:.0%})"
        )
        progress(f"  {escape(item.reason)}")
        progress(f"  new: {escape(entry.content[:120])}")
    return 0


def cmd_resolve_review(args):
    """Settle a review item."""
    with open_store(args) as store:
        try:
            item = ImportPipeline(store).resolve_review(args.review_id, ReviewAction(args.action))
        except ClippingsError as e:
            error(str(e))
            return 1
    success(f"Review item {item.id}: {item.status.value}")
    return 0


def main():
    """Main entry point for the import CLI."""
    parser = argparse.ArgumentParser(
        description="Import e-reader clippings exports into the reading database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database",
        "-d",
        default=None,
        help="SQLite database file (default: DATABASE_PATH)",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="Also append log records to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import a clippings export file")
    import_parser.add_argument("file", help="Path to the clippings export")
    import_parser.add_argument(
        "--show-errors",
        type=int,
        default=10,
        help="How many entry errors of each kind to print (default: 10)",
    )
    import_parser.set_defaults(func=cmd_import)

    sessions_parser = subparsers.add_parser("sessions", help="List import sessions")
    sessions_parser.add_argument(
        "--status",
        choices=[status.value for status in ImportStatus],
        default=None,
        help="Only sessions with this status",
    )
    sessions_parser.add_argument("--limit", type=int, default=20, help="Max sessions (default: 20)")
    sessions_parser.set_defaults(func=cmd_sessions)

    rollback_parser = subparsers.add_parser("rollback", help="Undo an import session")
    rollback_parser.add_argument("session_id", help="Import session id")
    rollback_parser.set_defaults(func=cmd_rollback)

    reviews_parser = subparsers.add_parser("reviews", help="List entries waiting for review")
    reviews_parser.add_argument("--all", action="store_true", help="Include resolved items")
    reviews_parser.set_defaults(func=cmd_reviews)

    resolve_parser = subparsers.add_parser("resolve-review", help="Settle a review item")
    resolve_parser.add_argument("review_id", help="Review item id")
    resolve_parser.add_argument(
        "--action",
        required=True,
        choices=[action.value for action in ReviewAction],
        help="keep_existing drops the entry, replace overwrites the note, add stores it as new",
    )
    resolve_parser.set_defaults(func=cmd_resolve_review)

    args = parser.parse_args()
    setup_logging(args.log_level, log_file=args.log_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
