from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import DBAPIError, IntegrityError
import logging

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base of the auth failure taxonomy.

    `error` is the stable machine-readable kind, `status` the HTTP code
    the API layer answers with.
    """
    error = "AUTH_ERROR"
    status = 400
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccountExists(AuthError):
    error = "ACCOUNT_EXISTS"
    status = 409
    default_message = "An account with this email already exists."


class InvalidCredentials(AuthError):
    error = "INVALID_CREDENTIALS"
    status = 401
    default_message = "Invalid email or password."


class NotConfigured(AuthError):
    error = "NOT_CONFIGURED"
    status = 400
    default_message = "Google Sign-In is not configured."


class BadRequest(AuthError):
    error = "BAD_REQUEST"
    status = 400
    default_message = "Bad request"


class Unauthorized(AuthError):
    error = "UNAUTHORIZED"
    status = 401
    default_message = "Refresh token required."


class InvalidToken(AuthError):
    error = "INVALID_TOKEN"
    status = 401
    default_message = "Invalid refresh token."


class TokenRevoked(AuthError):
    error = "TOKEN_REVOKED"
    status = 401
    default_message = "Refresh token has been revoked."


class TokenExpired(AuthError):
    error = "TOKEN_EXPIRED"
    status = 401
    default_message = "Refresh token has expired."


class NotFound(AuthError):
    error = "NOT_FOUND"
    status = 404
    default_message = "User not found."


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Auth taxonomy: stable kind + message, nothing internal
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        return error_response(err.error, err.message, err.status)

    # 400 Bad Request (generic)
    @app.errorhandler(400)
    def bad_request(e):
        message = getattr(e, "description", "Bad request")
        return error_response("BAD_REQUEST", message, 400)

    @app.errorhandler(401)
    def unauthorized(e):
        message = getattr(e, "description", "Unauthorized")
        return error_response("UNAUTHORIZED", message, 401)

    @app.errorhandler(403)
    def forbidden(e):
        message = getattr(e, "description", "Forbidden")
        return error_response("FORBIDDEN", message, 403)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # 422 Unprocessable Entity (validation)
    @app.errorhandler(422)
    def unprocessable(e):
        message = getattr(e, "description", "Unprocessable entity")
        return error_response("VALIDATION_ERROR", message, 422)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Unique constraint races that slipped past the service layer
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        logger.warning("Integrity error: %s", getattr(err, "orig", err))
        return error_response("CONFLICT", "Unique constraint violated.", 409)

    # Store unreachable or failing: generic infrastructure failure
    @app.errorhandler(DBAPIError)
    def handle_store_error(err: DBAPIError):
        logger.exception("Credential store failure", exc_info=err)
        return error_response("SERVICE_UNAVAILABLE", "Service temporarily unavailable", 503)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("BAD_REQUEST", err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
