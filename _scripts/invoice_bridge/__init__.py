"""
Invoice Bridge - Generator Integration Layer v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Backend for the invoice desktop front-end. PDF generation is delegated to
an external generator executable; this package finds it, prepares its
working directory, runs it, and reconciles its output back into the
user's folders and the shared invoice database.

Pipeline:
- PathResolver: locate the generator root across deployment layouts
- EnvironmentReconciler: share the database / mirror legacy config files
- GeneratorInvoker: run the generator, capture stdout/stderr
- OutputCollector: copy generated PDFs to the output directory
- InvoiceCatalog: read generated invoices from the shared database
"""

__version__ = '1.0.0'


# =============================================================================
# CONFIGURATION & CONTEXT
# =============================================================================

from .config import BridgeConfig, STORAGE_DATABASE, STORAGE_FILES
from .context import AppContext


# =============================================================================
# COMPONENTS
# =============================================================================

from .paths import PathResolver, Topology, default_topologies, relative_topology
from .settings_store import Settings, SettingsStore
from .config_bridge import (
    CONFIG_FIELDS,
    DatabaseFieldBackend,
    FileFieldBackend,
    LegacyConfigBridge,
)
from .environment import EnvironmentReconciler, GeneratorEnvironment, link_or_copy
from .invoker import GenerationResult, GeneratorInvoker
from .collector import OutputCollector
from .catalog import InvoiceCatalog, InvoiceRecord
from .service import InvoiceBridge


# =============================================================================
# ERRORS
# =============================================================================

from .errors import (
    InvoiceBridgeError,
    PathNotFoundError,
    DirectoryCreationError,
    SettingsIOError,
    UnknownFieldError,
    LinkOrCopyError,
    GeneratorError,
    LaunchError,
    ExecutionError,
    BuildFailedError,
    GenerationTimeoutError,
    GenerationInProgressError,
    OutputCopyError,
    SchemaIncompatibleError,
    RecordNotFoundError,
    ValidationError,
)


__all__ = [
    "__version__",
    # Config
    "BridgeConfig",
    "STORAGE_DATABASE",
    "STORAGE_FILES",
    "AppContext",
    # Components
    "PathResolver",
    "Topology",
    "default_topologies",
    "relative_topology",
    "Settings",
    "SettingsStore",
    "CONFIG_FIELDS",
    "DatabaseFieldBackend",
    "FileFieldBackend",
    "LegacyConfigBridge",
    "EnvironmentReconciler",
    "GeneratorEnvironment",
    "link_or_copy",
    "GenerationResult",
    "GeneratorInvoker",
    "OutputCollector",
    "InvoiceCatalog",
    "InvoiceRecord",
    "InvoiceBridge",
    # Errors
    "InvoiceBridgeError",
    "PathNotFoundError",
    "DirectoryCreationError",
    "SettingsIOError",
    "UnknownFieldError",
    "LinkOrCopyError",
    "GeneratorError",
    "LaunchError",
    "ExecutionError",
    "BuildFailedError",
    "GenerationTimeoutError",
    "GenerationInProgressError",
    "OutputCopyError",
    "SchemaIncompatibleError",
    "RecordNotFoundError",
    "ValidationError",
]
