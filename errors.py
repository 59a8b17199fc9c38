class StoreError(Exception):
    """Base for failures reported to API callers as JSON."""

    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.errors = errors

    def to_dict(self):
        body = {'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body


class ValidationFailed(StoreError):
    status_code = 400
    message = 'Validation error'


class ProtectedAccountError(ValidationFailed):
    message = 'The main admin account cannot be modified'


class AuthenticationError(StoreError):
    status_code = 401
    message = 'Unauthorized'


class AuthorizationError(StoreError):
    status_code = 403
    message = 'Access denied'


class NotFoundError(StoreError):
    status_code = 404
    message = 'Not found'


class ConflictError(StoreError):
    status_code = 409
    message = 'Conflict'


class UpstreamError(StoreError):
    status_code = 502
    message = 'Upstream service unavailable'
