"""
Error taxonomy for the API.

Business rules raise one of these; the handlers registered in ``app.py``
turn them into the ``{success: false, status, message}`` envelope.
"""


class ApiError(Exception):
    status = 400

    def __init__(self, message, status=None, errors=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.errors = errors


class ValidationFailed(ApiError):
    status = 400


class NotFound(ApiError):
    # Missing records are reported as bad requests, not 404
    status = 400

    @classmethod
    def for_id(cls, entity, record_id):
        return cls(f'No {entity} found with ID {record_id}')


class Conflict(ApiError):
    status = 409


class Unauthorized(ApiError):
    status = 401


class Forbidden(ApiError):
    status = 403
