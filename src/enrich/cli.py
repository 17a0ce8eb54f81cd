"""CLI for canonical book resolution and its confirmation queue."""

import argparse
import sys

from rich.markup import escape

from common.constants import SOURCE_FLOW_MANUAL
from common.errors import ClippingsError
from common.logger import error, get_logger, print_counts, progress, setup_logging, success
from load.cli import open_store

from .audit import AuditTrail
from .clients.factory import create_catalog_client
from .resolver import CanonicalResolver

logger = get_logger(__name__)


def cmd_resolve(args):
    """Resolve one title/author pair and show the outcome."""
    with open_store(args) as store, create_catalog_client(args.provider) as client:
        resolver = CanonicalResolver(store, client=client)
        resolution = resolver.resolve(args.title, args.author, source_flow=SOURCE_FLOW_MANUAL)

    identity = resolution.identity
    print_counts(
        f"Resolution for '{args.title}'",
        {
            "mode": resolution.mode.value,
            "confidence": f"{resolution.confidence:.2f}",
            "band": resolution.band.value,
            "canonical_book_id": identity.canonical_book_id,
            "title": identity.title_canonical,
            "authors": ", ".join(identity.authors_canonical) or "-",
            "status": identity.match_status.value,
            "external_id": identity.external_catalog_id or "-",
        },
    )
    if resolution.pending_confirmation_id:
        progress(f"Pending confirmation: {resolution.pending_confirmation_id}")
    if resolution.provider_available is False:
        logger.warning("Catalog provider unavailable; identity is provisional")
    return 0


def cmd_pending(args):
    """List mid-confidence matches waiting for a decision."""
    with open_store(args) as store:
        pending = store.list_pending()

    if not pending:
        progress("No pending confirmations")
        return 0
    for item in pending:
        candidate = item.candidate
        progress(
            f"[bold]{item.id}[/bold]  {item.confidence:.2f}  "
            + escape(
                f"'{item.raw_title}' -> '{candidate.title}' "
                f"by {', '.join(candidate.authors) or '?'} ({candidate.source})"
            )
        )
    return 0


def cmd_confirm(args):
    """Accept a pending match."""
    with open_store(args) as store:
        resolver = CanonicalResolver(store, client=create_catalog_client(args.provider))
        try:
            resolution = resolver.confirm(args.pending_id)
        except ClippingsError as e:
            error(str(e))
            return 1
    success(f"Linked to {resolution.identity.title_canonical} ({resolution.canonical_book_id})")
    return 0


def cmd_dismiss(args):
    """Reject a pending match."""
    with open_store(args) as store:
        resolver = CanonicalResolver(store, client=create_catalog_client(args.provider))
        try:
            resolver.dismiss(args.pending_id)
        except ClippingsError as e:
            error(str(e))
            return 1
    success(f"Dismissed {args.pending_id}")
    return 0


def cmd_audit(args):
    """Show recent resolution attempts and totals."""
    with open_store(args) as store:
        trail = AuditTrail(store.adapter)
        rows = trail.recent(limit=args.limit, source_flow=args.source_flow)
        stats = trail.stats()

    for row in rows:
        progress(
            f"{row.resolved_at:%Y-%m-%d %H:%M:%S}  {row.resolution_mode.value:<20} "
            f"{row.confidence:.2f}  "
            + escape(f"{row.input_title!r} -> {row.canonical_book_id}  [{row.source_flow}]")
        )
    print_counts("Audit totals", {"total": stats["total"], **stats["by_mode"]})
    return 0


def main():
    """Main entry point for the canonical resolution CLI."""
    parser = argparse.ArgumentParser(description="Canonical book identity resolution")
    parser.add_argument(
        "--database",
        "-d",
        default=None,
        help="SQLite database file (default: DATABASE_PATH)",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Catalog provider: google-books or openlibrary (default: CATALOG_PROVIDER)",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="Also append log records to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a title to a canonical book")
    resolve_parser.add_argument("title", help="Book title as written")
    resolve_parser.add_argument("--author", default=None, help="Author as written")
    resolve_parser.set_defaults(func=cmd_resolve)

    pending_parser = subparsers.add_parser("pending", help="List pending confirmations")
    pending_parser.set_defaults(func=cmd_pending)

    confirm_parser = subparsers.add_parser("confirm", help="Accept a pending match")
    confirm_parser.add_argument("pending_id", help="Pending confirmation id")
    confirm_parser.set_defaults(func=cmd_confirm)

    dismiss_parser = subparsers.add_parser("dismiss", help="Reject a pending match")
    dismiss_parser.add_argument("pending_id", help="Pending confirmation id")
    dismiss_parser.set_defaults(func=cmd_dismiss)

    audit_parser = subparsers.add_parser("audit", help="Show the resolution audit trail")
    audit_parser.add_argument("--limit", type=int, default=20, help="Rows to show (default: 20)")
    audit_parser.add_argument("--source-flow", default=None, help="Only rows from this flow")
    audit_parser.set_defaults(func=cmd_audit)

    args = parser.parse_args()
    setup_logging(args.log_level, log_file=args.log_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
