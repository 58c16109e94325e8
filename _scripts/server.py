"""
Invoice Bridge Server - Flask API for the desktop front-end

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

REST API for:
- App settings and legacy invoice fields
- Invoice generation (normal and dry run)
- Invoice history
- First-run status and full reset
"""

import io
import os
from datetime import datetime, timezone
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from invoice_bridge import (
    AppContext,
    InvoiceBridge,
    InvoiceBridgeError,
    Settings,
    ValidationError,
    __version__,
)
from invoice_bridge.logging_utils import get_logger, log_request, setup_logging

logger = get_logger(__name__)

RESET_CONFIRMATION = "DELETE DATABASE"


# =============================================================================
# UTILITIES
# =============================================================================

def api_response(data=None, error=None, status=200):
    """Standard API response wrapper."""
    response = {
        "success": error is None,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    if data is not None:
        response["data"] = data
    if error is not None:
        response["error"] = error
    return jsonify(response), status


def require_json(f):
    """Decorator to require JSON body."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not request.is_json:
            return api_response(error="JSON body required", status=400)
        return f(*args, **kwargs)
    return decorated


def _json_object(required: bool = True) -> dict:
    """Request body as a dict; anything but a JSON object is a ValidationError."""
    body = request.get_json(silent=True)
    if body is None and not required:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("body", "expected a JSON object")
    return body


def _string_field(body: dict, name: str, required: bool = True) -> Optional[str]:
    value = body.get(name)
    if value is None:
        if required:
            raise ValidationError(name, f"'{name}' is required but was not provided.")
        return None
    if not isinstance(value, str):
        raise ValidationError(name, "must be a string")
    return value


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(bridge: Optional[InvoiceBridge] = None) -> Flask:
    """
    Build the Flask app around one InvoiceBridge.

    Tests pass a bridge built over temporary directories; production uses
    AppContext.from_environment().
    """
    if bridge is None:
        bridge = InvoiceBridge(AppContext.from_environment())

    app = Flask(__name__)
    app.config["BRIDGE"] = bridge
    CORS(app)

    @app.errorhandler(InvoiceBridgeError)
    def handle_bridge_error(e: InvoiceBridgeError):
        logger.warning(f"{type(e).__name__}: {e}")
        return api_response(error=e.user_message, status=e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return api_response(error=e.description, status=e.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return api_response(error="Internal server error", status=500)

    # =========================================================================
    # HEALTH & INFO
    # =========================================================================

    @app.route("/api/health", methods=["GET"])
    @log_request(logger)
    def health():
        """Health check endpoint."""
        data = bridge.health()
        data["status"] = "healthy"
        data["version"] = __version__
        return api_response(data)

    @app.route("/api/generator", methods=["GET"])
    @log_request(logger)
    def generator_root():
        """Where the generator was found; lists every location tried if nowhere."""
        return api_response({"root": str(bridge.resolve_generator())})

    # =========================================================================
    # SETTINGS
    # =========================================================================

    @app.route("/api/settings", methods=["GET"])
    @log_request(logger)
    def get_settings():
        return api_response(bridge.get_settings().to_dict())

    @app.route("/api/settings", methods=["PUT"])
    @log_request(logger)
    @require_json
    def save_settings():
        body = _json_object()
        settings = Settings.from_dict(body)
        saved = bridge.save_settings(settings)
        return api_response(saved.to_dict())

    @app.route("/api/first-run", methods=["GET"])
    @log_request(logger)
    def first_run():
        return api_response({"first_run": bridge.is_first_run()})

    @app.route("/api/reset", methods=["POST"])
    @log_request(logger)
    @require_json
    def reset():
        """Delete database and settings. Requires the confirmation phrase."""
        body = _json_object()
        confirm = str(body.get("confirm", "")).strip().upper()
        if confirm != RESET_CONFIRMATION:
            raise ValidationError("confirm", f"type '{RESET_CONFIRMATION}' to confirm the reset")
        settings = bridge.reset_state()
        return api_response({"settings": settings.to_dict(), "first_run": bridge.is_first_run()})

    # =========================================================================
    # CONFIG VALUES & FIELDS
    # =========================================================================

    @app.route("/api/config/<key>", methods=["GET"])
    @log_request(logger)
    def get_config_value(key):
        return api_response({"key": key, "value": bridge.get_config_value(key)})

    @app.route("/api/config/<key>", methods=["PUT"])
    @log_request(logger)
    @require_json
    def set_config_value(key):
        value = _string_field(_json_object(), "value")
        bridge.set_config_value(key, value)
        return api_response({"key": key, "value": value})

    @app.route("/api/fields", methods=["GET"])
    @log_request(logger)
    def read_all_fields():
        return api_response(bridge.read_all_fields())

    @app.route("/api/fields", methods=["PUT"])
    @log_request(logger)
    @require_json
    def write_all_fields():
        body = _json_object()
        values = {name: _string_field(body, name) for name in body}
        bridge.write_all_fields(values)
        return api_response(bridge.read_all_fields())

    @app.route("/api/fields/<name>", methods=["GET"])
    @log_request(logger)
    def read_field(name):
        return api_response({"name": name, "value": bridge.read_field(name)})

    @app.route("/api/fields/<name>", methods=["PUT"])
    @log_request(logger)
    @require_json
    def write_field(name):
        value = _string_field(_json_object(), "value")
        bridge.write_field(name, value)
        return api_response({"name": name, "value": value})

    @app.route("/api/invoice-details", methods=["POST"])
    @log_request(logger)
    @require_json
    def save_invoice_details():
        body = _json_object()
        description = _string_field(body, "description")
        amount = _string_field(body, "amount")
        bridge.save_invoice_details(description, amount)
        return api_response({"description": description, "amount": amount})

    # =========================================================================
    # GENERATION
    # =========================================================================

    @app.route("/api/generate", methods=["POST"])
    @log_request(logger)
    def generate():
        body = _json_object(required=False)
        dry_run = bool(body.get("dry_run", body.get("dryRun", False)))
        result = bridge.generate(dry_run=dry_run)
        return api_response(result.to_dict())

    # =========================================================================
    # INVOICES
    # =========================================================================

    @app.route("/api/invoices", methods=["GET"])
    @log_request(logger)
    def list_invoices():
        invoices = bridge.list_invoices()
        return api_response({
            "invoices": [inv.to_dict() for inv in invoices],
            "count": len(invoices),
        })

    @app.route("/api/invoices/<int:invoice_id>", methods=["GET"])
    @log_request(logger)
    def get_invoice(invoice_id):
        return api_response(bridge.get_invoice(invoice_id).to_dict())

    @app.route("/api/invoices/<int:invoice_id>/pdf", methods=["GET"])
    @log_request(logger)
    def get_invoice_pdf(invoice_id):
        invoice = bridge.get_invoice(invoice_id)
        name = f"{invoice.invoice_number or invoice.id}.pdf"
        return send_file(
            io.BytesIO(invoice.pdf_bytes()),
            mimetype="application/pdf",
            as_attachment=True,
            download_name=name,
        )

    return app


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    setup_logging(level=os.environ.get("INVOICE_BRIDGE_LOG_LEVEL", "INFO"))
    port = int(os.environ.get("INVOICE_BRIDGE_PORT", 5150))

    app = create_app()
    logger.info(f"Starting Invoice Bridge server on http://127.0.0.1:{port}")
    app.run(host="127.0.0.1", port=port, debug=False, threaded=True)
