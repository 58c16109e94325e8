# invoice_bridge/errors.py
"""
Invoice Bridge - Custom Exceptions v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Error types for the generator integration layer.
Each exception includes both a technical message (for logs) and
a user-friendly message (for the GUI / API responses).
"""

from typing import List, Optional


class InvoiceBridgeError(Exception):
    """Base exception for Invoice Bridge errors."""

    def __init__(self, message: str, user_message: str = None, status_code: int = 500):
        super().__init__(message)
        self.user_message = user_message or message
        self.status_code = status_code


# =============================================================================
# PATH & DIRECTORY ERRORS
# =============================================================================

class PathNotFoundError(InvoiceBridgeError):
    """Generator root could not be discovered in any known topology."""

    def __init__(self, tried: List[str], marker: str = "src"):
        tried_str = "; ".join(tried) if tried else "(no candidates)"
        super().__init__(
            f"Generator directory not found (marker '{marker}'). Tried: {tried_str}",
            "Could not find the invoice generator. Make sure the application is "
            f"properly installed. Locations checked: {tried_str}",
            500
        )
        self.tried = tried
        self.marker = marker


class DirectoryCreationError(InvoiceBridgeError):
    """A required directory could not be created."""

    def __init__(self, directory: str, reason: str, purpose: str = "directory"):
        super().__init__(
            f"Failed to create {purpose} {directory}: {reason}",
            f"Could not create the {purpose} '{directory}'. Check that the location "
            f"exists and is writable. ({reason})",
            500
        )
        self.directory = directory
        self.reason = reason
        self.purpose = purpose


class SettingsIOError(InvoiceBridgeError):
    """Settings file could not be read, parsed or written."""

    def __init__(self, operation: str, path: str, reason: str):
        super().__init__(
            f"Failed to {operation} settings {path}: {reason}",
            f"Could not {operation} the settings file '{path}': {reason}",
            500
        )
        self.operation = operation
        self.path = path
        self.reason = reason


# =============================================================================
# CONFIG FIELD ERRORS
# =============================================================================

class UnknownFieldError(InvoiceBridgeError):
    """Write attempted on a name that is not a legacy config field."""

    def __init__(self, name: str, known: List[str]):
        super().__init__(
            f"Unknown config field: {name}",
            f"'{name}' is not a known config field. Known fields: {', '.join(known)}",
            400
        )
        self.name = name
        self.known = known


# =============================================================================
# ENVIRONMENT ERRORS
# =============================================================================

class LinkOrCopyError(InvoiceBridgeError):
    """Mirroring a file into the generator environment failed."""

    def __init__(self, operation: str, path: str, reason: str):
        super().__init__(
            f"Failed to {operation} {path}: {reason}",
            f"Could not prepare the invoice generator ({operation} '{path}' failed). "
            f"Try again; if this persists check file permissions.",
            500
        )
        self.operation = operation
        self.path = path
        self.reason = reason


# =============================================================================
# GENERATOR PROCESS ERRORS
# =============================================================================

class GeneratorError(InvoiceBridgeError):
    """Generator process errors."""
    pass


class LaunchError(GeneratorError):
    """Generator process could not be started."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            f"Failed to launch {command}: {reason}",
            f"The invoice generator could not be started: {reason}",
            500
        )
        self.command = command
        self.reason = reason


class ExecutionError(GeneratorError):
    """Generator process ran but exited non-zero."""

    def __init__(self, stderr: str, returncode: int, command: str = "generator"):
        super().__init__(
            f"{command} exited with status {returncode}: {stderr.strip()[:500]}",
            stderr.strip() or f"The invoice generator failed (exit status {returncode}).",
            502
        )
        self.stderr = stderr
        self.returncode = returncode
        self.command = command


class BuildFailedError(ExecutionError):
    """Development build of the generator failed."""

    def __init__(self, stderr: str, returncode: int):
        super().__init__(stderr, returncode, command="build")
        self.user_message = f"Generator build failed: {stderr.strip()}"


class GenerationTimeoutError(GeneratorError):
    """Generator did not exit within the configured timeout."""

    def __init__(self, timeout_seconds: float, stderr: str = ""):
        super().__init__(
            f"Generator timed out after {timeout_seconds}s",
            f"Invoice generation took longer than {timeout_seconds:g} seconds and was stopped.",
            504
        )
        self.timeout_seconds = timeout_seconds
        self.stderr = stderr


class GenerationInProgressError(GeneratorError):
    """A generation run is already in flight."""

    def __init__(self):
        super().__init__(
            "Generation already running",
            "Invoices are already being generated. Wait for the current run to finish.",
            409
        )


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputCopyError(InvoiceBridgeError):
    """A generated artifact could not be copied to the output directory."""

    def __init__(self, filename: str, reason: str):
        super().__init__(
            f"Failed to copy {filename} to output directory: {reason}",
            f"Could not copy '{filename}' to your output directory: {reason}",
            500
        )
        self.filename = filename
        self.reason = reason


# =============================================================================
# CATALOG ERRORS
# =============================================================================

class SchemaIncompatibleError(InvoiceBridgeError):
    """Invoice table missing or not yet migrated by the generator."""

    def __init__(self, detail: str, missing_columns: Optional[List[str]] = None):
        super().__init__(
            f"Invoice schema not ready: {detail}",
            "No invoices are available yet. Generate an invoice first.",
            503
        )
        self.detail = detail
        self.missing_columns = missing_columns or []


class RecordNotFoundError(InvoiceBridgeError):
    """Requested record doesn't exist."""

    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            f"The requested {resource_type} could not be found.",
            404
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(InvoiceBridgeError):
    """Input validation failed."""

    def __init__(self, field: str, issue: str):
        super().__init__(
            f"Validation error: {field} - {issue}",
            f"Invalid input for '{field}': {issue}",
            400
        )
        self.field = field
        self.issue = issue


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Base
    "InvoiceBridgeError",
    # Paths
    "PathNotFoundError",
    "DirectoryCreationError",
    "SettingsIOError",
    # Fields
    "UnknownFieldError",
    # Environment
    "LinkOrCopyError",
    # Generator
    "GeneratorError",
    "LaunchError",
    "ExecutionError",
    "BuildFailedError",
    "GenerationTimeoutError",
    "GenerationInProgressError",
    # Output
    "OutputCopyError",
    # Catalog
    "SchemaIncompatibleError",
    "RecordNotFoundError",
    # Validation
    "ValidationError",
]
