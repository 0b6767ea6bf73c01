"""Command-line interface for Back Office Ledger."""

import argparse
import sys
from pathlib import Path
from uuid import UUID

from back_office_ledger import __version__
from back_office_ledger.config import Settings
from back_office_ledger.container import Container
from back_office_ledger.domain.documents import DocumentHeader
from back_office_ledger.domain.value_objects import DocumentEvent, DocumentType, OrderLineKey
from back_office_ledger.exceptions import BackOfficeLedgerError
from back_office_ledger.logging_config import configure_logging
from back_office_ledger.repositories.sqlite import SQLiteDatabase


def get_default_db_path() -> Path:
    """Get the default database path in user's home directory."""
    return Path.home() / ".back_office_ledger" / "ledger.db"


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.database) if args.database else get_default_db_path()


def create_app(db_path: Path | None = None) -> Container:
    """Create a container bound to the database at ``db_path``."""
    if db_path is None:
        db_path = get_default_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    return Container(settings=Settings(sqlite_path=db_path))


def _find_document(container: Container, reference: str) -> DocumentHeader | None:
    """Look a document up by id, falling back to its number."""
    repo = container.document_repository
    try:
        return repo.get(UUID(reference))
    except ValueError:
        return repo.get_by_number(reference)


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = SQLiteDatabase(str(db_path))
    db.initialize()
    db.close()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show database status."""
    db_path = _db_path(args)

    if not db_path.exists():
        print(f"No database found at {db_path}")
        print("Run 'bol init' to create a new database")
        return 1

    with create_app(db_path) as container:
        print(f"Database: {db_path}")
        for document_type in DocumentType:
            documents = list(container.document_repository.list_by_type(document_type))
            if documents:
                print(f"  {document_type.value}: {len(documents)}")

    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Back Office Ledger v{__version__}")
    return 0


def cmd_document_show(args: argparse.Namespace) -> int:
    """Show a document header and its lines."""
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        return 1

    with create_app(db_path) as container:
        header = _find_document(container, args.document)
        if header is None:
            print(f"Error: Document not found: {args.document}")
            return 1

        print(f"Document: {header.number} ({header.document_type.value})")
        print(f"  ID: {header.id}")
        print(f"  Status: {header.status.value}")
        print(f"  Currency: {header.currency}")
        print(f"  Lines: {len(header.items)}")
        for line in header.items:
            description = line.description or (str(line.item_id) if line.item_id else "-")
            print(
                f"    {line.line_number:>3}  {description:<30} "
                f"{line.quantity:>10} x {line.unit_price:>12}"
            )
        allowed = container.document_service.allowed_events(header.id)
        if allowed:
            names = ", ".join(sorted(event.value for event in allowed))
            print(f"  Allowed events: {names}")
    return 0


def cmd_document_totals(args: argparse.Namespace) -> int:
    """Show resolved line breakdowns and document totals."""
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        return 1

    with create_app(db_path) as container:
        header = _find_document(container, args.document)
        if header is None:
            print(f"Error: Document not found: {args.document}")
            return 1

        service = container.document_service
        try:
            lines = service.resolve_document(header.id)
            totals = service.document_totals(header.id)
            if args.save:
                service.refresh_totals(header.id)
        except BackOfficeLedgerError as e:
            print(f"Error: {e}")
            return 1

        print(f"Document: {header.number} ({totals.currency})")
        print(
            f"  {'Gross':>12} {'Discount':>12} {'Net':>12} {'VAT':>12} {'Total':>12}"
        )
        for line in lines:
            print(
                f"  {line.gross_amount:>12} {line.discount_amount:>12} "
                f"{line.net_amount:>12} {line.vat_amount:>12} {line.total_amount:>12}"
            )
        print(f"Subtotal: {totals.subtotal}")
        print(f"Discount: {totals.discount_amount} ({totals.effective_discount_percent}%)")
        print(f"Net: {totals.net_amount}")
        print(f"VAT: {totals.vat_amount} ({totals.effective_vat_percent}%)")
        print(f"Total: {totals.total_amount}")
        if args.save:
            print("Header totals updated")
    return 0


def cmd_document_reconcile(args: argparse.Namespace) -> int:
    """Compare recomputed totals with the stored header totals."""
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        return 1

    with create_app(db_path) as container:
        header = _find_document(container, args.document)
        if header is None:
            print(f"Error: Document not found: {args.document}")
            return 1

        try:
            result = container.document_service.reconcile_document(
                header.id, strict=args.strict or None
            )
        except BackOfficeLedgerError as e:
            print(f"Error: {e}")
            return 1

        if result.ok:
            print(f"Document {header.number} reconciles (tolerance {result.tolerance})")
            return 0

        print(f"Document {header.number} does not reconcile (tolerance {result.tolerance})")
        for name, delta in result.mismatches.items():
            print(f"  {name}: {delta:+}")
    return 2


def cmd_document_remaining(args: argparse.Namespace) -> int:
    """Show ordered, fulfilled and remaining quantities."""
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        return 1

    with create_app(db_path) as container:
        service = container.document_service
        try:
            if ":" in args.target:
                results = [service.order_line_remaining(OrderLineKey.parse(args.target))]
            else:
                header = _find_document(container, args.target)
                if header is None:
                    print(f"Error: Document not found: {args.target}")
                    return 1
                results = list(service.document_ledger(header.id).lines)
        except ValueError:
            print(f"Error: Invalid order line key: {args.target}")
            return 1
        except BackOfficeLedgerError as e:
            print(f"Error: {e}")
            return 1

        if not results:
            print("No order lines")
            return 0

        print(f"{'Order line':<55} {'Ordered':>10} {'Fulfilled':>10} {'Remaining':>10}")
        for result in results:
            flag = " OVER" if result.over_delivered else ""
            if result.has_discrepancy:
                flag += " DISCREPANCY"
            print(
                f"{str(result.key):<55} {result.total_ordered:>10} "
                f"{result.total_fulfilled:>10} {result.total_remaining:>10}{flag}"
            )
    return 0


def cmd_document_transition(args: argparse.Namespace) -> int:
    """Apply a status event to a document."""
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        return 1

    with create_app(db_path) as container:
        header = _find_document(container, args.document)
        if header is None:
            print(f"Error: Document not found: {args.document}")
            return 1

        try:
            new_status = container.document_service.apply_event(
                header.id, DocumentEvent(args.event)
            )
        except BackOfficeLedgerError as e:
            print(f"Error: {e}")
            return 1

        print(f"{header.number}: {header.status.value} -> {new_status.value}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bol",
        description="Back Office Ledger - Document pricing, totals and fulfillment tracking",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # status command
    status_parser = subparsers.add_parser("status", help="Show database status")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # document command group
    document_parser = subparsers.add_parser("document", help="Document commands")
    document_subparsers = document_parser.add_subparsers(
        dest="document_command", help="Document subcommands"
    )

    # document show
    show_parser = document_subparsers.add_parser("show", help="Show a document")
    show_parser.add_argument("document", help="Document ID or number")
    show_parser.set_defaults(func=cmd_document_show)

    # document totals
    totals_parser = document_subparsers.add_parser(
        "totals", help="Resolve lines and show document totals"
    )
    totals_parser.add_argument("document", help="Document ID or number")
    totals_parser.add_argument(
        "--save", action="store_true", help="Write the totals back to the header"
    )
    totals_parser.set_defaults(func=cmd_document_totals)

    # document reconcile
    reconcile_parser = document_subparsers.add_parser(
        "reconcile", help="Check stored header totals against the lines"
    )
    reconcile_parser.add_argument("document", help="Document ID or number")
    reconcile_parser.add_argument(
        "--strict", action="store_true", help="Treat a mismatch as an error"
    )
    reconcile_parser.set_defaults(func=cmd_document_reconcile)

    # document remaining
    remaining_parser = document_subparsers.add_parser(
        "remaining", help="Show remaining quantities"
    )
    remaining_parser.add_argument(
        "target", help="Document ID or number, or an order line key like sales_order_item:<id>"
    )
    remaining_parser.set_defaults(func=cmd_document_remaining)

    # document transition
    transition_parser = document_subparsers.add_parser(
        "transition", help="Apply a status event"
    )
    transition_parser.add_argument("document", help="Document ID or number")
    transition_parser.add_argument(
        "event", choices=[event.value for event in DocumentEvent], help="Event to apply"
    )
    transition_parser.set_defaults(func=cmd_document_transition)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "document" and (
        not hasattr(args, "document_command") or args.document_command is None
    ):
        document_parser.print_help()
        return 0

    configure_logging()

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
