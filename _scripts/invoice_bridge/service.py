"""
Invoice Bridge - Service Facade v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

The operations the GUI layer calls: settings, legacy fields, generation,
invoice history, first-run status and reset. Wires PathResolver,
EnvironmentReconciler, GeneratorInvoker, OutputCollector and
InvoiceCatalog together around one AppContext.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .catalog import InvoiceCatalog, InvoiceRecord
from .collector import OutputCollector
from .config_bridge import LegacyConfigBridge
from .context import AppContext
from .database import check_database, reset_database
from .environment import EnvironmentReconciler, GeneratorEnvironment
from .errors import GenerationInProgressError, PathNotFoundError, SettingsIOError
from .invoker import GenerationResult, GeneratorInvoker
from .logging_utils import Timer, run_context
from .paths import PathResolver
from .settings_store import Settings, SettingsStore

logger = logging.getLogger(__name__)


class InvoiceBridge:
    """
    Backend for the invoice desktop front-end.

    Usage:
        bridge = InvoiceBridge(AppContext.from_environment())
        bridge.write_all_fields({...})
        result = bridge.generate(dry_run=True)
        print(result.summary())
    """

    def __init__(
        self,
        context: AppContext,
        resolver: Optional[PathResolver] = None,
        invoker: Optional[GeneratorInvoker] = None,
    ):
        self.context = context
        self.settings_store = SettingsStore(context)
        self.resolver = resolver or PathResolver.from_context(context)
        self.reconciler = EnvironmentReconciler(context, self.settings_store, resolver=self.resolver)
        self.invoker = invoker or GeneratorInvoker.from_context(context)
        self.collector = OutputCollector.from_context(context, self.settings_store)
        self.catalog = InvoiceCatalog(context.db_path)
        self._generate_lock = threading.Lock()

    @property
    def fields(self) -> LegacyConfigBridge:
        # Rebuilt per call: the config directory may change with settings
        return LegacyConfigBridge.for_context(self.context, self.settings_store)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_settings(self) -> Settings:
        return self.settings_store.load()

    def save_settings(self, settings: Settings) -> Settings:
        return self.settings_store.save(settings)

    # =========================================================================
    # CONFIG VALUES & LEGACY FIELDS
    # =========================================================================

    def get_config_value(self, key: str) -> str:
        return self.fields.get_value(key)

    def set_config_value(self, key: str, value: str) -> None:
        self.fields.set_value(key, value)

    def read_field(self, name: str) -> str:
        return self.fields.read_field(name)

    def write_field(self, name: str, text: str) -> None:
        self.fields.write_field(name, text)

    def read_all_fields(self) -> Dict[str, str]:
        return self.fields.read_all()

    def write_all_fields(self, values: Dict[str, str]) -> None:
        self.fields.write_all(values)

    def save_invoice_details(self, description: str, amount: str) -> None:
        self.fields.write_invoice_details(description, amount)

    def is_first_run(self) -> bool:
        return self.fields.is_first_run()

    # =========================================================================
    # GENERATION
    # =========================================================================

    def prepare(self) -> GeneratorEnvironment:
        return self.reconciler.prepare()

    def generate(self, dry_run: bool = False) -> GenerationResult:
        """
        Prepare the environment, run the generator, collect its PDFs.

        Only one run may be in flight; a concurrent call fails fast.

        Raises:
            GenerationInProgressError: another run is in flight
            PathNotFoundError, LinkOrCopyError, LaunchError, ExecutionError,
            GenerationTimeoutError, OutputCopyError: from the pipeline stages
        """
        if not self._generate_lock.acquire(blocking=False):
            raise GenerationInProgressError()

        try:
            # One run ID per generation; an API request's ID is kept
            with run_context():
                mode = "dry run" if dry_run else "normal"
                logger.info(f"Generating invoices ({mode})", extra={"dry_run": dry_run})

                # Make sure settings (and the seeded database) exist before mirroring
                self.settings_store.load()

                with Timer(logger, "prepare generator environment"):
                    env = self.reconciler.prepare()

                result = self.invoker.run(env, dry_run=dry_run)

                with Timer(logger, "collect generated files"):
                    result.produced_files = self.collector.collect(env)

                if not dry_run:
                    self.reconciler.sync_back(env)

                logger.info(
                    f"Generation finished ({mode}), {len(result.produced_files)} file(s) copied",
                    extra={"file_count": len(result.produced_files)},
                )
                return result
        finally:
            self._generate_lock.release()

    def is_generating(self) -> bool:
        return self._generate_lock.locked()

    def resolve_generator(self) -> Path:
        return self.resolver.resolve()

    # =========================================================================
    # INVOICE HISTORY
    # =========================================================================

    def list_invoices(self) -> List[InvoiceRecord]:
        return self.catalog.list_all()

    def get_invoice(self, invoice_id: int) -> InvoiceRecord:
        return self.catalog.get_by_id(invoice_id)

    # =========================================================================
    # RESET & HEALTH
    # =========================================================================

    def reset_state(self) -> Settings:
        """
        Delete the database and settings file, then recreate defaults.

        In database mode the fresh database is seeded with example fields.
        """
        if self.is_generating():
            raise GenerationInProgressError()

        if self.context.config.uses_database:
            try:
                reset_database(self.context.db_path)
            except OSError as e:
                raise SettingsIOError("reset", str(self.context.db_path), e.strerror or str(e)) from e
        settings = self.settings_store.reset()
        logger.info("Application state reset to defaults")
        return settings

    def health(self) -> Dict:
        """Snapshot for the status endpoint; never raises for a missing generator."""
        try:
            generator_root = str(self.resolver.resolve())
        except PathNotFoundError as e:
            generator_root = None
            logger.debug(f"Health check: {e}")

        db_status = check_database(self.context.db_path)
        return {
            "storage_mode": self.context.config.storage_mode,
            "data_dir": str(self.context.data_dir),
            "database": {
                "path": str(self.context.db_path),
                "tables": db_status.get("total_tables", 0),
                "rows": db_status.get("total_rows", 0),
            },
            "generator_root": generator_root,
            "first_run": self.is_first_run(),
            "generating": self.is_generating(),
            "invoice_count": self.catalog.count(),
        }


__all__ = ["InvoiceBridge"]
