"""
Shared fixtures for the Invoice Bridge tests.

Every test builds its own AppContext over tmp_path, so nothing touches
the real application data or Documents directories.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import os
import stat
import sys
import textwrap
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from invoice_bridge import AppContext, BridgeConfig, STORAGE_DATABASE, STORAGE_FILES


# =============================================================================
# FAKE GENERATOR
# =============================================================================

# Stands in for the real generator. Behaviour is steered by marker files in
# its working directory: FAIL -> exit 3 with stderr, SLEEP -> hang.
FAKE_GENERATOR = textwrap.dedent('''
    import os
    import sqlite3
    import sys
    import time

    dry = "-dry" in sys.argv[1:]

    if os.path.exists("SLEEP"):
        time.sleep(30)

    if os.path.exists("FAIL"):
        sys.stderr.write("Error: recipients list is empty\\n")
        sys.exit(3)

    def field(name):
        if os.path.exists("invoices.db"):
            conn = sqlite3.connect("invoices.db")
            try:
                row = conn.execute("SELECT value FROM settings WHERE key = ?", (name,)).fetchone()
            except sqlite3.OperationalError:
                row = None
            conn.close()
            return row[0] if row else ""
        path = os.path.join("config", name + ".txt")
        if os.path.exists(path):
            with open(path, encoding="utf-8") as handle:
                return handle.read()
        return None

    print("Args: " + " ".join(sys.argv[1:]))
    for name in ("sender", "bankdetails", "description", "amount", "recipients"):
        value = field(name)
        print(name + "=" + ("MISSING" if value is None else repr(value)))

    if dry:
        print("Dry run: nothing written")
        sys.exit(0)

    os.makedirs("out", exist_ok=True)
    with open(os.path.join("out", "invoice_001.pdf"), "wb") as handle:
        handle.write(b"%PDF-1.4 fake")
    with open(os.path.join("out", "notes.txt"), "w") as handle:
        handle.write("not an artifact")

    if os.path.exists("invoices.db"):
        conn = sqlite3.connect("invoices.db")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS invoices (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                invoice_number TEXT, service TEXT, invoice_date TEXT,
                due_date TEXT, vat_enabled INTEGER, vat_rate INTEGER,
                created_at TEXT, pdf_content BLOB, locale TEXT
            )
        """)
        conn.execute(
            "INSERT INTO invoices (invoice_number, service, invoice_date, due_date, "
            "vat_enabled, vat_rate, created_at, pdf_content) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            ("INV-001", "Consulting", "2025-01-01", "2025-01-15", 1, 25,
             "2025-01-01 10:00:00", b"%PDF-1.4 fake"),
        )
        conn.commit()
        conn.close()

    print("Generated 1 invoice")
''')


def make_generator_root(parent: Path, name: str = "ocaml-backend", with_binary: bool = True) -> Path:
    """Create a generator tree: <parent>/<name>/src plus an executable main.exe."""
    root = parent / name
    (root / "src").mkdir(parents=True, exist_ok=True)
    if with_binary:
        install_fake_binary(root)
    return root


def install_fake_binary(root: Path, body: str = None) -> Path:
    """Write main.exe as a shell wrapper; `body` replaces the Python generator."""
    binary = root / "_build" / "default" / "src" / "main.exe"
    binary.parent.mkdir(parents=True, exist_ok=True)

    if body is None:
        script = root / "fake_generator.py"
        script.write_text(FAKE_GENERATOR, encoding="utf-8")
        body = f'exec "{sys.executable}" "{script}" "$@"\n'

    binary.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return binary


posix_only = pytest.mark.skipif(
    sys.platform.startswith("win"), reason="fake generator is a POSIX shell script"
)


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================

def build_context(tmp_path: Path, storage_mode: str = STORAGE_DATABASE, **overrides) -> AppContext:
    """AppContext whose exe dir is <tmp>/app/bin so 'dev-sibling' finds <tmp>/app/ocaml-backend."""
    base_dir = tmp_path / "app" / "bin"
    base_dir.mkdir(parents=True, exist_ok=True)
    return AppContext(
        data_dir=tmp_path / "data",
        documents_dir=tmp_path / "Documents",
        base_dir=base_dir,
        config=BridgeConfig.for_testing(storage_mode=storage_mode, **overrides),
    )


@pytest.fixture
def db_context(tmp_path):
    """Database-mode context (no generator tree)."""
    return build_context(tmp_path, STORAGE_DATABASE)


@pytest.fixture
def files_context(tmp_path):
    """Files-mode context (no generator tree)."""
    return build_context(tmp_path, STORAGE_FILES)


@pytest.fixture
def generator_root(tmp_path):
    """Generator tree next to the fake exe directory."""
    return make_generator_root(tmp_path / "app")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer INVOICE_BRIDGE_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("INVOICE_BRIDGE_"):
            monkeypatch.delenv(key, raising=False)
