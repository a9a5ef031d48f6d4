from __future__ import annotations

import logging

from flask import jsonify

logger = logging.getLogger(__name__)


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """A required field is missing or malformed."""

    status_code = 400


class SlotUnavailableError(ValidationError):
    """The requested slot is closed or already taken."""

    status_code = 409


class AuthorizationError(BookingError):
    status_code = 403


class StorageError(BookingError):
    """The database rejected a read or write."""

    status_code = 500


class NotificationError(BookingError):
    """An email could not be delivered. Logged, never returned to a client."""


def register_error_handlers(app) -> None:
    @app.errorhandler(ValidationError)
    def _validation(err: ValidationError):
        return jsonify({"error": err.message}), err.status_code

    @app.errorhandler(AuthorizationError)
    def _authorization(err: AuthorizationError):
        return jsonify({"error": err.message}), err.status_code

    @app.errorhandler(StorageError)
    def _storage(err: StorageError):
        logger.error("Storage failure: %s", err.message, exc_info=err.__cause__ or err)
        return jsonify({"error": "Internal Server Error"}), 500
