"""
Invoice Bridge CLI - Command line access to the generator integration layer

Copyright (c) 2025 Brent Lefebure / EhkoLabs

Usage:
    python bridge_cli.py settings                      - Show settings (creates defaults)
    python bridge_cli.py settings --output <dir>       - Change the output directory
    python bridge_cli.py fields                        - Show all five invoice fields
    python bridge_cli.py get-field <name>              - Show one field
    python bridge_cli.py set-field <name> <value>      - Write one field
    python bridge_cli.py set-field <name> --file <f>   - Write one field from a file
    python bridge_cli.py generate [--dry]              - Generate invoices
    python bridge_cli.py invoices                      - List generated invoices
    python bridge_cli.py invoice <id> [--save <path>]  - Show one invoice / save its PDF
    python bridge_cli.py first-run                     - Report first-run status
    python bridge_cli.py reset --yes                   - Delete database and settings
    python bridge_cli.py resolve                       - Show where the generator was found
    python bridge_cli.py db check                      - Check database status
"""

import os
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from invoice_bridge import (
    AppContext,
    CONFIG_FIELDS,
    InvoiceBridge,
    InvoiceBridgeError,
    Settings,
)
from invoice_bridge.database import check_database
from invoice_bridge.logging_utils import setup_logging


def _option(args, flag):
    """Value following a --flag, or None."""
    if flag in args:
        idx = args.index(flag)
        if idx + 1 < len(args):
            return args[idx + 1]
    return None


# =============================================================================
# SETTINGS & FIELDS
# =============================================================================

def cmd_settings(bridge: InvoiceBridge, args):
    output = _option(args, "--output")
    if output is not None:
        current = bridge.get_settings()
        bridge.save_settings(Settings(output_directory=output,
                                      config_directory=current.config_directory))

    settings = bridge.get_settings()
    print(f"\nSettings ({bridge.context.settings_path})")
    print("-" * 50)
    print(f"Output directory: {settings.output_directory}")
    if settings.config_directory:
        print(f"Config directory: {settings.config_directory}")
    print(f"Storage mode:     {bridge.context.config.storage_mode}")


def cmd_fields(bridge: InvoiceBridge):
    values = bridge.read_all_fields()
    for name in CONFIG_FIELDS:
        print(f"\n[{name}]")
        print(values[name] if values[name] else "(empty)")


def cmd_get_field(bridge: InvoiceBridge, name: str):
    print(bridge.read_field(name))


def cmd_set_field(bridge: InvoiceBridge, args):
    if not args:
        print("Usage: bridge_cli.py set-field <name> <value>")
        print("       bridge_cli.py set-field <name> --file <path>")
        sys.exit(1)

    name = args[0]
    source = _option(args, "--file")
    if source is not None:
        value = Path(source).read_text(encoding="utf-8")
    elif len(args) >= 2:
        value = args[1]
    else:
        print("Missing value")
        sys.exit(1)

    bridge.write_field(name, value)
    print(f"Saved {name} ({len(value)} chars)")


# =============================================================================
# GENERATION & INVOICES
# =============================================================================

def cmd_generate(bridge: InvoiceBridge, args):
    dry_run = "--dry" in args
    mode = "preview" if dry_run else "normal"
    print(f"Generating invoices in {mode} mode...")

    result = bridge.generate(dry_run=dry_run)
    print(result.summary())


def cmd_invoices(bridge: InvoiceBridge):
    invoices = bridge.list_invoices()
    if not invoices:
        print("No invoices yet.")
        return

    print(f"\n{'ID':>5}  {'Number':<14} {'Date':<12} {'Due':<12} {'VAT':<6} Service")
    print("-" * 70)
    for inv in invoices:
        vat = f"{inv.vat_rate}%" if inv.vat_enabled else "-"
        service = inv.service.replace("\n", " ")
        if len(service) > 30:
            service = service[:27] + "..."
        print(f"{inv.id:>5}  {inv.invoice_number:<14} {inv.invoice_date:<12} "
              f"{inv.due_date:<12} {vat:<6} {service}")
    print(f"\nTotal: {len(invoices)}")


def cmd_invoice(bridge: InvoiceBridge, args):
    if not args:
        print("Usage: bridge_cli.py invoice <id> [--save <path>]")
        sys.exit(1)

    invoice = bridge.get_invoice(int(args[0]))
    print(f"\nInvoice {invoice.invoice_number} (id {invoice.id})")
    print("-" * 50)
    print(f"Service:  {invoice.service}")
    print(f"Date:     {invoice.invoice_date}")
    print(f"Due:      {invoice.due_date}")
    print(f"VAT:      {invoice.vat_rate}%" if invoice.vat_enabled else "VAT:      none")
    print(f"Created:  {invoice.created_at}")

    target = _option(args, "--save")
    if target is not None:
        path = Path(target)
        if path.is_dir():
            path = path / f"{invoice.invoice_number or invoice.id}.pdf"
        path.write_bytes(invoice.pdf_bytes())
        print(f"\nSaved PDF: {path}")


# =============================================================================
# MAINTENANCE
# =============================================================================

def cmd_reset(bridge: InvoiceBridge, args):
    if "--yes" not in args:
        print("This deletes the invoice database and settings.")
        print("Re-run with --yes to confirm.")
        sys.exit(1)
    settings = bridge.reset_state()
    print("State reset. Fresh example data created.")
    print(f"Output directory: {settings.output_directory}")


def cmd_db(bridge: InvoiceBridge, args):
    if not args or args[0] != "check":
        print("Usage: bridge_cli.py db check")
        sys.exit(1)

    path = bridge.context.db_path
    result = check_database(path)
    if "error" in result:
        print(f"Error: {result['error']} ({path})")
        return

    print(f"Database: {path}")
    print(f"Tables: {result['total_tables']}")
    print(f"Total rows: {result['total_rows']}")
    print()
    for table, count in sorted(result["tables"].items()):
        print(f"  {table}: {count}")


# =============================================================================
# MAIN
# =============================================================================

def main(argv=None, bridge: InvoiceBridge = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        print(__doc__)
        return 1

    setup_logging(level=os.environ.get("INVOICE_BRIDGE_LOG_LEVEL", "WARNING"))
    if bridge is None:
        bridge = InvoiceBridge(AppContext.from_environment())

    cmd = argv[0].lower()
    rest = argv[1:]

    try:
        if cmd == "settings":
            cmd_settings(bridge, rest)
        elif cmd == "fields":
            cmd_fields(bridge)
        elif cmd == "get-field" and rest:
            cmd_get_field(bridge, rest[0])
        elif cmd == "set-field":
            cmd_set_field(bridge, rest)
        elif cmd == "generate":
            cmd_generate(bridge, rest)
        elif cmd == "invoices":
            cmd_invoices(bridge)
        elif cmd == "invoice":
            cmd_invoice(bridge, rest)
        elif cmd == "first-run":
            print("yes" if bridge.is_first_run() else "no")
        elif cmd == "reset":
            cmd_reset(bridge, rest)
        elif cmd == "resolve":
            print(bridge.resolve_generator())
        elif cmd == "db":
            cmd_db(bridge, rest)
        else:
            print(f"Unknown command: {cmd}")
            print(__doc__)
            return 1
    except InvoiceBridgeError as e:
        print(f"\n❌ Error: {e.user_message}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
