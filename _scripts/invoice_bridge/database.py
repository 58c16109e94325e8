"""
Invoice Bridge Database Utilities

Copyright (c) 2025 Brent Lefebure / EhkoLabs

Initialize and inspect the shared invoice database. The front-end owns
only the settings table; the generator creates and migrates its own
invoices table.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)


SETTINGS_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

INITIALIZED_KEY = "_app_initialized"

# Seed rows shown to first-time users
EXAMPLE_SETTINGS = [
    ("sender", "Your Company Name\nYour Address\nCity, Postal Code\nCountry"),
    ("bankdetails", "Bank Name: Your Bank\nAccount: 1234-56-78901\nIBAN: NO1234567890123456\nBIC: BANKNO22"),
    ("description", "Consulting services\nWeb development\nProject management"),
    ("amount", "5000.00"),
    ("recipients", "Client Company\nclient@example.com\nClient Address\nCity, Postal Code\n\n"
                   "Another Client\nanother@example.com\nAnother Address\nCity, Postal Code"),
    (INITIALIZED_KEY, "true"),
]


def connect(db_path: Path) -> sqlite3.Connection:
    """Open the database with a row factory, creating parent directories."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def ensure_settings_table(conn: sqlite3.Connection) -> None:
    """Create the settings table without seeding it."""
    conn.execute(SETTINGS_SCHEMA)
    conn.commit()


def init_database(db_path: Path) -> Path:
    """
    Create the settings table and seed example rows.

    Existing values are never overwritten (INSERT OR IGNORE), so this is
    safe to call on every startup.

    Args:
        db_path: Path to database file

    Returns:
        Path to the database
    """
    conn = connect(db_path)
    try:
        conn.execute(SETTINGS_SCHEMA)
        conn.executemany(
            "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
            EXAMPLE_SETTINGS,
        )
        conn.commit()
    finally:
        conn.close()

    logger.debug(f"Database initialized: {db_path}")
    return Path(db_path)


def reset_database(db_path: Path) -> Path:
    """Delete the database file and recreate it with fresh example data."""
    db_path = Path(db_path)
    if db_path.exists() or db_path.is_symlink():
        db_path.unlink()
        logger.info(f"Removed existing database: {db_path}")
    return init_database(db_path)


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return bool(row and row[0])


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
    """Column names of a table (empty if it does not exist)."""
    # PRAGMA does not accept bound parameters
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return [row[1] for row in rows]


def check_database(db_path: Path) -> Dict:
    """
    Check database status and table counts.

    Args:
        db_path: Path to database

    Returns:
        Dict with table names and row counts
    """
    db_path = Path(db_path)
    if not db_path.exists():
        return {"error": "Database not found"}

    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = [row[0] for row in cursor.fetchall()]

        result = {"tables": {}}
        for table in tables:
            if table.startswith("sqlite_"):
                continue
            cursor.execute(f"SELECT COUNT(*) FROM {table}")
            result["tables"][table] = cursor.fetchone()[0]
    finally:
        conn.close()

    result["total_tables"] = len(result["tables"])
    result["total_rows"] = sum(result["tables"].values())
    return result


__all__ = [
    "SETTINGS_SCHEMA",
    "INITIALIZED_KEY",
    "EXAMPLE_SETTINGS",
    "connect",
    "ensure_settings_table",
    "init_database",
    "reset_database",
    "table_exists",
    "table_columns",
    "check_database",
]
