"""
Error Taxonomy
==============

Domain errors raised by the modules and rendered to JSON by the handlers
that TaleAdmin registers on the app.
"""

from flask import jsonify
from werkzeug.exceptions import HTTPException


class AdminError(Exception):
    """Base class: carries a machine code, an HTTP status and optional details"""

    code = 'internal_error'
    status = 500

    def __init__(self, message=None, details=None, status=None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details
        if status is not None:
            self.status = status

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class Unauthorized(AdminError):
    code = 'unauthorized'
    status = 401


class Forbidden(AdminError):
    code = 'forbidden'
    status = 403


class NotFound(AdminError):
    code = 'not_found'
    status = 404


class InvalidTransition(AdminError):
    """A state guard rejected the operation (transition, edit, delete or send)"""
    code = 'invalid_transition'
    status = 409

    def __init__(self, message, current_status=None, target_status=None):
        details = None
        if current_status is not None:
            details = {'currentStatus': current_status}
            if target_status is not None:
                details['targetStatus'] = target_status
        super().__init__(message, details)
        self.current_status = current_status
        self.target_status = target_status


class ValidationFailed(AdminError):
    code = 'validation_failed'
    status = 400

    @classmethod
    def from_pydantic(cls, exc, message='Validation failed'):
        """Flatten a pydantic ValidationError into [{field, message}]"""
        details = []
        for err in exc.errors():
            field = '.'.join(str(part) for part in err.get('loc', ()))
            details.append({'field': field or '__root__', 'message': err.get('msg', 'Invalid value')})
        return cls(message, details)


class UpstreamFailure(AdminError):
    """
    An internal service (notification engine, story workflow) answered with
    an error or could not be reached.
    `payload` is the service's JSON body and is returned to the caller verbatim.
    """
    code = 'upstream_failure'
    status = 502

    def __init__(self, status=502, payload=None, message='Notification engine request failed'):
        super().__init__(message, status=status)
        self.payload = payload

    def to_dict(self):
        if self.payload is not None:
            return self.payload
        return {'error': self.message, 'code': self.code}


def register_error_handlers(app):
    """Recover AdminError subclasses and stray exceptions into JSON responses"""
    from .logging_service import LoggingService, logger

    @app.errorhandler(AdminError)
    def handle_admin_error(error):
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or 'http_error').lower().replace(' ', '_')
        return jsonify({'error': error.description, 'code': code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception(f"Unhandled error: {error}")
        LoggingService.log_error_with_traceback('system', error)
        return jsonify({'error': 'Internal server error', 'code': 'internal_error'}), 500
