"""
Error taxonomy for the ledger core and its mapping onto JSON responses.

Services raise these; only the handlers registered here turn them into
HTTP responses.
"""

import logging
from contextlib import contextmanager

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from extensions import db

logger = logging.getLogger(__name__)


class HotelLedgerError(Exception):
    status_code = 500
    error = 'Internal server error'

    def __init__(self, message, error=None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error

    def to_dict(self):
        return {'success': False, 'error': self.error, 'message': self.message}


class ValidationError(HotelLedgerError):
    status_code = 400
    error = 'Validation error'


class AuthenticationError(HotelLedgerError):
    status_code = 401
    error = 'Unauthorized'


class AccessDeniedError(HotelLedgerError):
    status_code = 403
    error = 'Access denied'


class NotFoundError(HotelLedgerError):
    status_code = 404
    error = 'Not found'

    def __init__(self, entity, message=None):
        super().__init__(message or f'{entity} not found', error=f'{entity} not found')
        self.entity = entity


class ConflictError(HotelLedgerError):
    status_code = 409
    error = 'Conflict'


@contextmanager
def transaction():
    """Commit everything done in the block once, or roll all of it back"""
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("[DB] Integrity error, rolled back: %s", e.orig)
        raise ConflictError('The change conflicts with existing records', error='Constraint violation') from e
    except Exception:
        db.session.rollback()
        raise


def register_error_handlers(app):
    @app.errorhandler(HotelLedgerError)
    def handle_ledger_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'error': e.name, 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception("[API] Unhandled error: %s", e)
        message = str(e) if current_app.debug else 'Something went wrong, please try again later'
        return jsonify({'success': False, 'error': 'Internal server error', 'message': message}), 500
