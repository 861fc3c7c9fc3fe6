import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class FinanceError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {'message': self.message}


class NotFound(FinanceError):
    status_code = 404
    message = 'Not found'


class AccessDenied(FinanceError):
    status_code = 403
    message = 'Access denied'


class ValidationError(FinanceError):
    """Bad input. `errors` lists every offending field, not just the first."""
    status_code = 400
    message = 'Invalid input data'

    def __init__(self, message=None, field=None, errors=None):
        super().__init__(message)
        self.field = field
        self.errors = errors or ([{'field': field, 'message': self.message}] if field else [])

    def to_dict(self):
        return {'message': self.message, 'errors': self.errors}


class InternalError(FinanceError):
    status_code = 500


def register_error_handlers(app):
    @app.errorhandler(FinanceError)
    def handle_finance_error(err):
        if err.status_code >= 500:
            logger.error('Request failed: %s', err.message)
            return jsonify({'message': 'Internal server error'}), err.status_code
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({'message': err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        logger.exception('Unhandled error')
        return jsonify({'message': 'Internal server error'}), 500
