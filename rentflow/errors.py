from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException


class LifecycleError(Exception):
    """Base class for every error raised by the lifecycle engines."""

    kind = 'lifecycle_error'
    status_code = 400

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        data = {'error': self.kind, 'message': self.message}
        data.update(self.details)
        return data


class ValidationError(LifecycleError):
    """Malformed or out-of-range input. Not retryable without correction."""

    kind = 'validation_error'
    status_code = 400

    def __init__(self, message, field=None):
        if field:
            super().__init__(message, field=field)
        else:
            super().__init__(message)
        self.field = field


class NotAuthorized(LifecycleError):
    kind = 'not_authorized'
    status_code = 403


class NotFound(LifecycleError):
    kind = 'not_found'
    status_code = 404


class InvalidTransition(LifecycleError):
    """Operation attempted from a state that does not allow it."""

    kind = 'invalid_transition'
    status_code = 409

    def __init__(self, message, current_status=None):
        if current_status:
            super().__init__(message, current_status=current_status)
        else:
            super().__init__(message)
        self.current_status = current_status


class InvalidState(InvalidTransition):
    kind = 'invalid_state'


class ConflictingActiveLease(LifecycleError):
    kind = 'conflicting_active_lease'
    status_code = 409

    def __init__(self, property_id, active_lease_id=None):
        message = f'Property {property_id} already has an active lease'
        if active_lease_id:
            super().__init__(message, property_id=property_id, active_lease_id=active_lease_id)
        else:
            super().__init__(message, property_id=property_id)
        self.property_id = property_id
        self.active_lease_id = active_lease_id


class ConcurrencyConflict(LifecycleError):
    """Optimistic write collision that outlived the internal retry bound."""

    kind = 'concurrency_conflict'
    status_code = 409

    def __init__(self, message):
        super().__init__(message, retryable=True)


def register_error_handlers(app):
    @app.errorhandler(LifecycleError)
    def lifecycle_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(error='not_found', message='Resource not found'), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(error='method_not_allowed', message='Method not allowed'), 405

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify(error='rate_limited', message='Rate limit exceeded. Please try again later.'), 429

    @app.errorhandler(500)
    def internal_error(error):
        from rentflow import db
        db.session.rollback()
        current_app.logger.error(f'Unhandled error: {error}')
        return jsonify(error='server_error', message='Internal server error'), 500

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify(error=e.name.lower().replace(' ', '_'), message=e.description), e.code
