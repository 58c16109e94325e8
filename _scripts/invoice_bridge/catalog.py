"""
Invoice Bridge - Invoice Catalog v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Read-only queries over the generator-owned `invoices` table. The
generator creates and migrates that table out of band, so every query
first checks that it exists and has the expected columns; until then the
catalog reads as empty.
"""

import base64
import logging
import sqlite3
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List

from .database import connect, table_columns, table_exists
from .errors import RecordNotFoundError, SchemaIncompatibleError

logger = logging.getLogger(__name__)


INVOICE_TABLE = "invoices"
REQUIRED_COLUMNS = (
    "id", "invoice_number", "service", "invoice_date", "due_date",
    "vat_enabled", "vat_rate", "created_at", "pdf_content",
)
# Present only once the generator has migrated the table; never selected
SCHEMA_MARKER_COLUMNS = ("locale",)

_SELECT = """
    SELECT id, invoice_number, service, invoice_date, due_date,
           vat_enabled, vat_rate, created_at, pdf_content
    FROM invoices
"""


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class InvoiceRecord:
    """One generated invoice; PDF bytes travel as base64 text."""
    id: int
    invoice_number: str
    service: str
    invoice_date: str
    due_date: str
    vat_enabled: bool
    vat_rate: int
    created_at: str
    pdf_base64: str

    def to_dict(self) -> Dict:
        return asdict(self)

    def pdf_bytes(self) -> bytes:
        return base64.b64decode(self.pdf_base64)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "InvoiceRecord":
        """Create from database row."""
        content = row["pdf_content"]
        if content is None:
            content = b""
        elif isinstance(content, str):
            content = content.encode("utf-8")
        return cls(
            id=int(row["id"]),
            invoice_number=row["invoice_number"] or "",
            service=row["service"] or "",
            invoice_date=row["invoice_date"] or "",
            due_date=row["due_date"] or "",
            vat_enabled=bool(row["vat_enabled"]),
            vat_rate=int(row["vat_rate"] or 0),
            created_at=row["created_at"] or "",
            pdf_base64=base64.b64encode(bytes(content)).decode("ascii"),
        )


# =============================================================================
# CATALOG
# =============================================================================

class InvoiceCatalog:
    """
    Query layer over the shared database.

    Tolerates three states:
    - no invoices table yet         -> empty list / RecordNotFoundError
    - table missing a column        -> same as no table (older schema)
    - fully initialized schema      -> normal queries
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        return connect(self.db_path)

    def check_schema(self, conn: sqlite3.Connection) -> None:
        """
        Raises:
            SchemaIncompatibleError: table absent or missing required columns
        """
        if not table_exists(conn, INVOICE_TABLE):
            raise SchemaIncompatibleError("invoices table does not exist")

        columns = set(table_columns(conn, INVOICE_TABLE))
        missing = [c for c in REQUIRED_COLUMNS + SCHEMA_MARKER_COLUMNS if c not in columns]
        if missing:
            raise SchemaIncompatibleError(
                f"invoices table missing columns: {', '.join(missing)}", missing
            )

    def list_all(self) -> List[InvoiceRecord]:
        """All invoices, newest first. Empty while the schema is not ready."""
        if not self.db_path.exists():
            return []

        conn = self._connect()
        try:
            try:
                self.check_schema(conn)
            except SchemaIncompatibleError as e:
                logger.warning(f"Invoice catalog empty: {e.detail}")
                return []
            rows = conn.execute(_SELECT + " ORDER BY created_at DESC, id DESC").fetchall()
        finally:
            conn.close()

        return [InvoiceRecord.from_row(row) for row in rows]

    def get_by_id(self, invoice_id: int) -> InvoiceRecord:
        """
        Raises:
            RecordNotFoundError: no such id, or schema not ready
        """
        if not self.db_path.exists():
            raise RecordNotFoundError("invoice", invoice_id)

        conn = self._connect()
        try:
            try:
                self.check_schema(conn)
            except SchemaIncompatibleError as e:
                raise RecordNotFoundError("invoice", invoice_id) from e
            row = conn.execute(_SELECT + " WHERE id = ?", (int(invoice_id),)).fetchone()
        finally:
            conn.close()

        if row is None:
            raise RecordNotFoundError("invoice", invoice_id)
        return InvoiceRecord.from_row(row)

    def count(self) -> int:
        if not self.db_path.exists():
            return 0
        conn = self._connect()
        try:
            try:
                self.check_schema(conn)
            except SchemaIncompatibleError:
                return 0
            return conn.execute("SELECT COUNT(*) FROM invoices").fetchone()[0]
        finally:
            conn.close()


__all__ = [
    "INVOICE_TABLE",
    "REQUIRED_COLUMNS",
    "SCHEMA_MARKER_COLUMNS",
    "InvoiceRecord",
    "InvoiceCatalog",
]
