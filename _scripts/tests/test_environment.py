"""
Invoice Bridge Environment Reconciler Tests

Tests database sharing (link and copy fallback) and legacy config
mirroring into the generator root.

Run with: pytest tests/test_environment.py -v
"""

import errno
import sqlite3
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from invoice_bridge import (
    CONFIG_FIELDS,
    EnvironmentReconciler,
    LegacyConfigBridge,
    LinkOrCopyError,
    PathNotFoundError,
    STORAGE_DATABASE,
    STORAGE_FILES,
    SettingsStore,
    link_or_copy,
)
from invoice_bridge.environment import MODE_COPY, MODE_LINK, link_unsupported
from conftest import build_context, make_generator_root


def _unsupported_symlink(source, target):
    raise NotImplementedError("symlinks unavailable")


def _eperm_symlink(source, target):
    raise OSError(errno.EPERM, "Operation not permitted")


def _eacces_symlink(source, target):
    raise OSError(errno.EACCES, "Permission denied")


def _settings_rows(db_path):
    conn = sqlite3.connect(str(db_path))
    rows = dict(conn.execute("SELECT key, value FROM settings").fetchall())
    conn.close()
    return rows


# =============================================================================
# LINK / COPY STRATEGY
# =============================================================================

class TestLinkOrCopy:

    def test_link_preferred(self, tmp_path):
        source = tmp_path / "a.db"
        source.write_bytes(b"data")
        target = tmp_path / "b.db"

        assert link_or_copy(source, target) == MODE_LINK
        assert target.is_symlink()
        assert target.read_bytes() == b"data"

    @pytest.mark.parametrize("symlink", [_unsupported_symlink, _eperm_symlink])
    def test_unsupported_falls_back_to_copy(self, tmp_path, symlink):
        source = tmp_path / "a.db"
        source.write_bytes(b"data")
        target = tmp_path / "b.db"

        assert link_or_copy(source, target, symlink=symlink) == MODE_COPY
        assert not target.is_symlink()
        assert target.read_bytes() == b"data"

    def test_other_link_failure_raises(self, tmp_path):
        source = tmp_path / "a.db"
        source.write_bytes(b"data")

        with pytest.raises(LinkOrCopyError) as exc_info:
            link_or_copy(source, tmp_path / "b.db", symlink=_eacces_symlink)
        assert exc_info.value.operation == "link"

    def test_replaces_existing_target(self, tmp_path):
        source = tmp_path / "a.db"
        source.write_bytes(b"new")
        target = tmp_path / "b.db"
        target.write_bytes(b"old")

        link_or_copy(source, target, prefer_link=False)
        assert target.read_bytes() == b"new"

    def test_replaces_dangling_symlink(self, tmp_path):
        source = tmp_path / "a.db"
        source.write_bytes(b"data")
        target = tmp_path / "b.db"
        target.symlink_to(tmp_path / "missing.db")

        assert link_or_copy(source, target) == MODE_LINK
        assert target.read_bytes() == b"data"

    def test_link_unsupported_classification(self):
        assert link_unsupported(NotImplementedError())
        assert link_unsupported(OSError(errno.EPERM, "x"))
        assert not link_unsupported(OSError(errno.EACCES, "x"))
        assert not link_unsupported(ValueError())


# =============================================================================
# DATABASE MODE
# =============================================================================

class TestDatabaseMode:

    def test_prepare_links_canonical_database(self, db_context, generator_root):
        store = SettingsStore(db_context)
        store.load()

        env = EnvironmentReconciler(db_context, store).prepare()

        assert env.root == generator_root.resolve()
        assert env.output_dir == env.root / "out"
        assert env.database_mode == MODE_LINK
        assert env.database_path == env.root / "invoices.db"
        assert env.database_path.resolve() == db_context.db_path.resolve()

    def test_settings_identical_via_both_paths(self, db_context, generator_root):
        store = SettingsStore(db_context)
        store.load()
        LegacyConfigBridge.for_context(db_context).write_field("amount", "321.00")

        env = EnvironmentReconciler(db_context, store).prepare()

        assert _settings_rows(env.database_path) == _settings_rows(db_context.db_path)
        assert _settings_rows(env.database_path)["amount"] == "321.00"

    def test_prepare_is_idempotent(self, db_context, generator_root):
        store = SettingsStore(db_context)
        reconciler = EnvironmentReconciler(db_context, store)

        first = reconciler.prepare()
        second = reconciler.prepare()

        assert first.to_dict() == second.to_dict()
        assert second.database_path.resolve() == db_context.db_path.resolve()

    def test_missing_canonical_database_gets_placeholder(self, db_context, generator_root):
        store = SettingsStore(db_context)
        assert not db_context.db_path.exists()

        env = EnvironmentReconciler(db_context, store).prepare()

        assert db_context.db_path.exists()
        assert env.database_path.exists()

    def test_copy_fallback_and_sync_back(self, db_context, generator_root):
        store = SettingsStore(db_context)
        store.load()
        reconciler = EnvironmentReconciler(db_context, store, symlink=_unsupported_symlink)

        env = reconciler.prepare()
        assert env.database_mode == MODE_COPY
        assert not env.database_path.is_symlink()
        assert _settings_rows(env.database_path) == _settings_rows(db_context.db_path)

        # The generator writes to its copy; sync_back makes it canonical again
        conn = sqlite3.connect(str(env.database_path))
        conn.execute("INSERT OR REPLACE INTO settings (key, value) VALUES ('amount', '9')")
        conn.commit()
        conn.close()

        assert reconciler.sync_back(env) is True
        assert _settings_rows(db_context.db_path)["amount"] == "9"

    def test_sync_back_noop_when_linked(self, db_context, generator_root):
        store = SettingsStore(db_context)
        reconciler = EnvironmentReconciler(db_context, store)
        env = reconciler.prepare()
        assert reconciler.sync_back(env) is False

    def test_link_disabled_by_config(self, tmp_path):
        ctx = build_context(tmp_path, link_database=False)
        make_generator_root(tmp_path / "app")
        store = SettingsStore(ctx)
        store.load()

        env = EnvironmentReconciler(ctx, store).prepare()
        assert env.database_mode == MODE_COPY

    def test_missing_generator_raises(self, db_context):
        with pytest.raises(PathNotFoundError):
            EnvironmentReconciler(db_context, SettingsStore(db_context)).prepare()


# =============================================================================
# FILES MODE
# =============================================================================

class TestFilesMode:

    def test_mirrors_all_five_files(self, files_context, generator_root):
        store = SettingsStore(files_context)
        store.load()
        fields = LegacyConfigBridge.for_context(files_context, store)
        fields.write_field("sender", "Me")
        fields.write_field("amount", "10")

        env = EnvironmentReconciler(files_context, store).prepare()

        config_dir = env.root / "config"
        assert env.config_dir == config_dir
        assert env.database_path is None
        for name in CONFIG_FIELDS:
            assert (config_dir / f"{name}.txt").exists()
        assert (config_dir / "sender.txt").read_text(encoding="utf-8") == "Me"
        assert (config_dir / "amount.txt").read_text(encoding="utf-8") == "10"

    def test_missing_sources_become_empty_files(self, files_context, generator_root):
        store = SettingsStore(files_context)

        env = EnvironmentReconciler(files_context, store).prepare()

        for name in CONFIG_FIELDS:
            assert (env.root / "config" / f"{name}.txt").read_text(encoding="utf-8") == ""
        assert len(env.mirrored_files) == len(CONFIG_FIELDS)

    def test_prepare_refreshes_stale_copies(self, files_context, generator_root):
        store = SettingsStore(files_context)
        fields = LegacyConfigBridge.for_context(files_context, store)
        reconciler = EnvironmentReconciler(files_context, store)

        fields.write_field("amount", "1")
        reconciler.prepare()
        fields.write_field("amount", "2")
        env = reconciler.prepare()

        assert (env.root / "config" / "amount.txt").read_text(encoding="utf-8") == "2"

    def test_stale_symlink_not_written_through(self, files_context, generator_root, tmp_path):
        store = SettingsStore(files_context)
        outside = tmp_path / "outside.txt"
        outside.write_text("untouched")
        config_dir = generator_root / "config"
        config_dir.mkdir()
        (config_dir / "amount.txt").symlink_to(outside)

        EnvironmentReconciler(files_context, store).prepare()

        assert outside.read_text() == "untouched"
        assert not (config_dir / "amount.txt").is_symlink()


# =============================================================================
# SHARED DIRECTORIES
# =============================================================================

class TestSourceIsTarget:
    """Data directory placed inside the generator root must survive prepare()."""

    def _context(self, tmp_path, storage_mode):
        root = make_generator_root(tmp_path / "app")
        ctx = build_context(tmp_path, storage_mode)
        ctx.data_dir = root
        return ctx

    def test_database_shared_in_place(self, tmp_path):
        ctx = self._context(tmp_path, STORAGE_DATABASE)
        store = SettingsStore(ctx)
        store.load()
        LegacyConfigBridge.for_context(ctx).write_field("amount", "77.50")

        env = EnvironmentReconciler(ctx, store).prepare()

        assert env.database_mode == MODE_LINK
        assert not ctx.db_path.is_symlink()
        assert _settings_rows(ctx.db_path)["amount"] == "77.50"
        assert LegacyConfigBridge.for_context(ctx).read_field("amount") == "77.50"

    def test_config_files_mirrored_in_place(self, tmp_path):
        ctx = self._context(tmp_path, STORAGE_FILES)
        store = SettingsStore(ctx)
        store.load()
        fields = LegacyConfigBridge.for_context(ctx, store)
        fields.write_field("sender", "Acme Ltd")

        env = EnvironmentReconciler(ctx, store).prepare()

        assert env.config_dir == ctx.default_config_dir.resolve()
        assert fields.read_field("sender") == "Acme Ltd"
        assert (env.config_dir / "recipients.txt").read_text(encoding="utf-8") == ""
        assert len(env.mirrored_files) == len(CONFIG_FIELDS)

    def test_link_or_copy_same_path(self, tmp_path):
        source = tmp_path / "a.db"
        source.write_bytes(b"data")

        assert link_or_copy(source, source) == MODE_LINK
        assert source.read_bytes() == b"data"

    def test_link_or_copy_existing_link(self, tmp_path):
        source = tmp_path / "a.db"
        source.write_bytes(b"data")
        target = tmp_path / "b.db"
        target.symlink_to(source)

        assert link_or_copy(source, target, symlink=_eacces_symlink) == MODE_LINK
        assert target.read_bytes() == b"data"
