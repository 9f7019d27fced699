# FILE: portal/errors/handlers.py
from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from portal import db
from portal.errors import bp
from portal.services import ServiceError

DEFAULT_MESSAGES = {
    400: 'Bad request.',
    401: 'Authentication is required.',
    403: 'You do not have permission to perform this action.',
    404: 'Resource not found.',
    405: 'Method not allowed.',
    409: 'Conflict.',
    413: 'File is too large.',
    415: 'Unsupported media type.',
}


def error_response(status_code, message=None):
    message = message or DEFAULT_MESSAGES.get(status_code, 'An unexpected error occurred.')
    return jsonify({'status': 'error', 'message': message}), status_code


@bp.app_errorhandler(ServiceError)
def service_error(error):
    db.session.rollback()
    return error_response(error.status_code, error.message)


@bp.app_errorhandler(HTTPException)
def http_error(error):
    # abort(404, description=...) keeps its message, the stock werkzeug text does not
    message = error.description if error.description != type(error).description else None
    return error_response(error.code, message)


@bp.app_errorhandler(Exception)
def internal_error(error):
    db.session.rollback()
    current_app.logger.error(f"Unhandled exception: {error}", exc_info=True)
    return error_response(500, 'An internal error occurred.')
