"""
cartpool/__init__.py — Flask application factory.

create_app(config_name) builds a fresh app per call. Tests get isolated
instances and Alembic can import the models without starting a server.

Every error leaves the API in one shape:

    {"error": {"code": "PARTY_NOT_FOUND", "message": "...", "field": "..."}}

"field" is present only when a single request field is at fault.
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from backend.config import config_by_name, validate_production_config

_REQUIRED_PREFIX = "Missing data for required field"

# Default wording for schema errors whose message is a registered code.
_CODE_MESSAGES = {
    "INVALID_TIME_FORMAT": "Times must be 'MM-DD HH:MM' and name a real date this year.",
}


class DecimalJSONProvider(DefaultJSONProvider):
    """Serialises Decimal coordinates as strings, e.g. "37.5665000"."""

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


def create_app(config_name: str = "development") -> Flask:
    """
    Args:
        config_name: "development", "testing" or "production". Unknown names
                     fall back to development.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    app.config.from_object(config_by_name.get(config_name, config_by_name["development"]))
    if config_name == "production":
        validate_production_config(app)

    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("backend.cartpool").setLevel(app.config["LOG_LEVEL"])

    from backend.cartpool.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # Populate db.metadata before create_all() or Alembic autogenerate.
    from backend.cartpool.models import chat_message, item, party, party_member, user  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _register_blueprints(app: Flask) -> None:
    from backend.cartpool.routes.auth import auth_bp
    from backend.cartpool.routes.chat import chat_bp
    from backend.cartpool.routes.items import items_bp
    from backend.cartpool.routes.parties import parties_bp
    from backend.cartpool.routes.users import users_bp

    # chat_bp shares the parties prefix; it only owns /<id>/chat.
    for blueprint, prefix in (
            (auth_bp, "/api/v1/auth"),
            (users_bp, "/api/v1/users"),
            (items_bp, "/api/v1/items"),
            (parties_bp, "/api/v1/parties"),
            (chat_bp, "/api/v1/parties"),
    ):
        app.register_blueprint(blueprint, url_prefix=prefix)


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    Picks the first (field, message) pair out of marshmallow's error tree.

    Only one error is reported per response; clients fix fields one at a time.
    """
    if isinstance(messages, dict):
        for field_name, errors in messages.items():
            field = None if field_name == "_schema" else field_name
            if isinstance(errors, list):
                return field, str(errors[0]) if errors else "Invalid value."
            if isinstance(errors, dict):
                # Nested schema errors: report the outer field.
                return field, str(next(iter(errors.values()), "Invalid value."))
            return field, str(errors)
    if isinstance(messages, list) and messages:
        return None, str(messages[0])
    return None, "Invalid input."


def _validation_error_body(error: ValidationError) -> dict:
    from backend.cartpool.errors import ErrorCode

    field, message = _first_validation_error(error.messages)

    if ErrorCode.is_registered(message):
        code, message = message, _CODE_MESSAGES.get(message, "Invalid input.")
    elif message.startswith(_REQUIRED_PREFIX):
        code = ErrorCode.MISSING_FIELD
    else:
        code = ErrorCode.INVALID_FIELD

    body = {"code": code, "message": message}
    if field is not None:
        body["field"] = field
    return {"error": body}


def _register_error_handlers(app: Flask) -> None:
    from backend.cartpool.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        return jsonify(_validation_error_body(error)), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        # Unknown routes and wrong methods keep their own status.
        if isinstance(error, HTTPException):
            return jsonify({
                "error": {"code": error.name.upper().replace(" ", "_"), "message": error.description}
            }), error.code

        app.logger.error(
            "Unhandled %s on %s %s\n%s",
            type(error).__name__,
            request.method,
            request.path,
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """Permissive CORS while DEBUG or TESTING, for a frontend on another local port."""

    @app.after_request
    def add_cors_headers(response):
        if not (app.config.get("DEBUG") or app.config.get("TESTING")):
            return response

        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin") or "*"
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response
