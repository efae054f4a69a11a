"""Error types raised by the services and their JSON handlers."""
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .filters import format_currency
from .models import db

bp = Blueprint('errors', __name__)


class LedgerError(Exception):
    """Base class for errors that surface to the caller unmodified."""
    status_code = 400

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message}
        payload.update({k: v for k, v in self.details.items() if v is not None})
        return payload


class ValidationError(LedgerError):
    status_code = 400

    def __init__(self, message, field=None):
        super().__init__(message, field=field)
        self.field = field


class NotFoundError(LedgerError):
    status_code = 404


class InvalidStateError(LedgerError):
    status_code = 409


class InsufficientTrustFundsError(LedgerError):
    status_code = 409

    def __init__(self, available, requested):
        message = (
            f"insufficient trust funds: available {format_currency(available)}, "
            f"requested {format_currency(requested)}"
        )
        super().__init__(message, available=str(available), requested=str(requested))
        self.available = available
        self.requested = requested


@bp.app_errorhandler(LedgerError)
def handle_ledger_error(error):
    return jsonify(error.to_dict()), error.status_code


@bp.app_errorhandler(SQLAlchemyError)
def handle_store_error(error):
    db.session.rollback()
    current_app.logger.exception(f"Store error: {error}")
    return jsonify({'error': 'An internal error occurred'}), 500


@bp.app_errorhandler(401)
def unauthorized_error(error):
    return jsonify({'error': 'Not authenticated'}), 401


@bp.app_errorhandler(403)
def forbidden_error(error):
    return jsonify({'error': 'Forbidden'}), 403


@bp.app_errorhandler(404)
def not_found_error(error):
    return jsonify({'error': 'Resource not found'}), 404


@bp.app_errorhandler(405)
def method_not_allowed_error(error):
    return jsonify({'error': 'Method not allowed'}), 405


@bp.app_errorhandler(500)
def internal_error(error):
    db.session.rollback()
    return jsonify({'error': 'An internal error occurred'}), 500
