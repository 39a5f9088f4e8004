"""
FlowTime backend - shared error taxonomy and Flask error handlers
"""

import logging
import traceback

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors surfaced to API callers as JSON"""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class ValidationError(ServiceError):
    status_code = 400


class Unauthenticated(ServiceError):
    """No bearer token was supplied"""
    status_code = 401


class InvalidToken(ServiceError):
    """Token has a bad signature, is expired, or is of the wrong class"""
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    """The resource is not in a state that allows the operation"""
    status_code = 409


class RateLimitExceeded(ServiceError):
    status_code = 429

    def __init__(self, retry_after=60):
        super().__init__('Rate limit exceeded')
        self.retry_after = retry_after


class UpstreamUnavailable(ServiceError):
    """A proxied service could not be reached"""

    status_code = 502

    def __init__(self, service, message=None):
        super().__init__(message or f'Service unavailable: {service}')
        self.service = service

    def to_dict(self):
        return {'error': self.message, 'service': self.service}


def register_error_handlers(app):
    """Install JSON error handlers on a Flask app"""

    @app.errorhandler(ServiceError)
    def service_error(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error.message}")
        else:
            logger.warning(f"{type(error).__name__}: {error.message}")
        response = jsonify(error.to_dict())
        if isinstance(error, RateLimitExceeded):
            response.headers['Retry-After'] = str(error.retry_after)
        return response, error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        logger.error(f"Internal error: {str(error)}")
        logger.error(traceback.format_exc())
        return jsonify({'error': 'Internal server error'}), 500
