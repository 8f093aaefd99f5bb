"""
Intake CLI

Command-line interface for delivery notes, pages, sync, board and cart.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from .authorization.admin_gate import AuthenticationError, AuthorizationError
from .config import load_config
from .export.cart_export import cart_to_csv, export_cart
from .inbound.registry import DuplicateWarning, InvalidTransition
from .inbound.models import InboundStatus
from .inventory.board import BoardZone
from .scanner.quality_gate import Rejected
from .service import IntakeService
from .storage.store_interface import StoreError


def _print_document(doc):
    print(f"{doc.id}  {doc.ls_nr:<16} {doc.supplier:<20} {doc.date_doc}  {doc.status.value}")


def cmd_create(service, args):
    """Register a delivery note."""
    result = asyncio.run(service.create_document(args.ls_nr, args.supplier, args.date, override=args.force))
    if isinstance(result, DuplicateWarning):
        print(f"Possible duplicate of {len(result.matches)} existing delivery note(s):")
        for doc in result.matches:
            _print_document(doc)
        print("Use --force to create it anyway.")
        return 2
    print("Created:")
    _print_document(result)
    return 0


def cmd_attach(service, args):
    """Admit image files and attach them as pages."""
    rc = 0
    for file_name in args.files:
        raw = Path(file_name).read_bytes()
        result = asyncio.run(service.capture_page(args.inbound_id, raw))
        if isinstance(result, Rejected):
            print(f"{file_name}: rejected ({result.reason.value}) {result.detail}")
            rc = 3
        else:
            print(f"{file_name}: page {result.page_no} ({result.width_px}x{result.height_px}, {result.size_bytes} bytes)")
    return rc


def cmd_confirm(service, args):
    """Mark drawing attached."""
    doc = asyncio.run(service.confirm_drawing_attached(args.inbound_id))
    _print_document(doc)
    return 0


def cmd_pages(service, args):
    """List pages of a delivery note."""
    for page in service.registry.pages(args.inbound_id):
        state = "synced" if page.synced else "pending"
        print(f"#{page.page_no:<3} {page.id}  {page.width_px}x{page.height_px}  {page.content_hash[:12]}  {state}")
    return 0


def cmd_list(service, args):
    """List delivery notes."""
    if args.ls_nr:
        docs = service.registry.find_by_normalized_number(args.ls_nr)
    elif args.date:
        docs = service.registry.find_by_date(args.date)
    elif args.supplier:
        docs = service.registry.find_by_supplier(args.supplier)
    else:
        docs = service.registry.find_by_status(args.status)
    for doc in docs:
        _print_document(doc)
    print(f"\n{len(docs)} delivery note(s)")
    return 0


def cmd_history(service, args):
    """Show the activity log of a delivery note."""
    for entry in service.registry.history(args.inbound_id):
        print(f"[{entry.ts}] {entry.action:<15} {entry.user:<12} {entry.details}")
    return 0


def cmd_pending(service, args):
    """Show number of pages awaiting upload."""
    print(f"Pending uploads: {asyncio.run(service.pending_uploads())}")
    return 0


def cmd_sync(service, args):
    """Reconcile pending uploads."""
    report = asyncio.run(service.reconcile(online=not args.offline))
    print("\n=== Sync ===")
    print(f"online: {report.online}")
    print(f"pending before: {report.pending_before}")
    print(f"acknowledged: {report.acknowledged}")
    print(f"pending after: {report.pending_after}")
    return 0


def cmd_cart_add(service, args):
    line = service.cart.add(args.name, args.qty, args.note)
    print(f"{line.qty} x {line.name} {line.note}".rstrip())
    return 0


def cmd_cart_export(service, args):
    lines = service.cart.lines()
    if args.output:
        path = export_cart(lines, args.output, fmt=args.format)
        print(f"Exported {len(lines)} line(s) to {path}")
    else:
        sys.stdout.write(cart_to_csv(lines))
    return 0


def cmd_board_place(service, args):
    item = service.board.place(args.name, args.zone, args.qty, args.note)
    print(f"{item.zone.value}: {item.qty} x {item.name}")
    return 0


def cmd_board_move(service, args):
    item = service.board.move(args.item_id, args.zone, args.qty)
    print(f"{item.zone.value}: {item.qty} x {item.name}")
    return 0


def cmd_board_list(service, args):
    for item in service.board.items(args.zone):
        print(f"{item.id}  {item.zone.get_label():<13} {item.qty:>5} x {item.name} {item.note}".rstrip())
    return 0


def cmd_admin_pin(service, args):
    """Set or change the admin PIN."""
    session = None
    if service.admin.has_credential():
        session = asyncio.run(service.admin_login(getpass.getpass("Current PIN: ")))
    service.admin.set_credential(getpass.getpass("New PIN: "), session)
    print("Admin PIN updated")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lager-intake", description="Inventory intake tracker")
    parser.add_argument('--config', help='JSON config file (default config/intake.json)')
    parser.add_argument('--identity', help='Acting user/device identity')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    create_parser = subparsers.add_parser('create', help='Register a delivery note')
    create_parser.add_argument('ls_nr', help='Delivery-note number')
    create_parser.add_argument('supplier', help='Supplier')
    create_parser.add_argument('date', help='Document date (YYYY-MM-DD)')
    create_parser.add_argument('--force', action='store_true', help='Create even if a duplicate exists')
    create_parser.set_defaults(func=cmd_create)

    attach_parser = subparsers.add_parser('attach', help='Attach page images')
    attach_parser.add_argument('inbound_id')
    attach_parser.add_argument('files', nargs='+', help='Image files')
    attach_parser.set_defaults(func=cmd_attach)

    confirm_parser = subparsers.add_parser('confirm', help='Mark drawing attached')
    confirm_parser.add_argument('inbound_id')
    confirm_parser.set_defaults(func=cmd_confirm)

    pages_parser = subparsers.add_parser('pages', help='List pages')
    pages_parser.add_argument('inbound_id')
    pages_parser.set_defaults(func=cmd_pages)

    list_parser = subparsers.add_parser('list', help='List delivery notes')
    list_parser.add_argument('--status', default=InboundStatus.AWAITING_DRAWING.value,
                             choices=[s.value for s in InboundStatus])
    list_parser.add_argument('--date', help='Document date')
    list_parser.add_argument('--ls-nr', help='Delivery-note number (any spelling)')
    list_parser.add_argument('--supplier', help='Supplier')
    list_parser.set_defaults(func=cmd_list)

    history_parser = subparsers.add_parser('history', help='Activity log of a delivery note')
    history_parser.add_argument('inbound_id')
    history_parser.set_defaults(func=cmd_history)

    subparsers.add_parser('pending', help='Pages awaiting upload').set_defaults(func=cmd_pending)

    sync_parser = subparsers.add_parser('sync', help='Reconcile pending uploads')
    sync_parser.add_argument('--offline', action='store_true', help='Only report')
    sync_parser.set_defaults(func=cmd_sync)

    cart_add_parser = subparsers.add_parser('cart-add', help='Add a cart line')
    cart_add_parser.add_argument('name')
    cart_add_parser.add_argument('--qty', type=int, default=1)
    cart_add_parser.add_argument('--note', default='')
    cart_add_parser.set_defaults(func=cmd_cart_add)

    cart_export_parser = subparsers.add_parser('cart-export', help='Export the cart')
    cart_export_parser.add_argument('--format', choices=['csv', 'html'], default='csv')
    cart_export_parser.add_argument('--output', help='Output file (stdout if not specified)')
    cart_export_parser.set_defaults(func=cmd_cart_export)

    zones = [z.value for z in BoardZone]

    board_place_parser = subparsers.add_parser('board-place', help='Place items on the board')
    board_place_parser.add_argument('name')
    board_place_parser.add_argument('zone', choices=zones)
    board_place_parser.add_argument('--qty', type=int, default=1)
    board_place_parser.add_argument('--note', default='')
    board_place_parser.set_defaults(func=cmd_board_place)

    board_move_parser = subparsers.add_parser('board-move', help='Move items between zones')
    board_move_parser.add_argument('item_id')
    board_move_parser.add_argument('zone', choices=zones)
    board_move_parser.add_argument('--qty', type=int, help='Partial quantity (default: all)')
    board_move_parser.set_defaults(func=cmd_board_move)

    board_list_parser = subparsers.add_parser('board-list', help='List board items')
    board_list_parser.add_argument('--zone', choices=zones)
    board_list_parser.set_defaults(func=cmd_board_list)

    subparsers.add_parser('admin-pin', help='Set or change the admin PIN').set_defaults(func=cmd_admin_pin)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        return 1

    config = load_config(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )

    try:
        with IntakeService(config, identity=args.identity) as service:
            return args.func(service, args)
    except (InvalidTransition, StoreError, AuthenticationError, AuthorizationError, ValueError, KeyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
