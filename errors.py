"""errors.py

Error taxonomy shared by the services and routes.

Every business-rule violation raises a `LibraryError` subclass. `kind` names the rule
that failed and `status_code` is the HTTP status the error handler in app.py returns.
"""


class LibraryError(Exception):
    kind = 'error'
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class NotAuthenticated(LibraryError):
    kind = 'not_authenticated'
    status_code = 401
    message = 'Not authenticated'


class Forbidden(LibraryError):
    kind = 'forbidden'
    status_code = 403
    message = 'Admin access required'


class NotFound(LibraryError):
    kind = 'not_found'
    status_code = 404
    message = 'Not found'


class Conflict(LibraryError):
    kind = 'conflict'
    status_code = 409
    message = 'Conflict'


class DuplicateEmail(Conflict):
    kind = 'duplicate_email'
    message = 'A library card application with this email already exists'


class AlreadyReturned(Conflict):
    kind = 'already_returned'
    message = 'Book already returned'


class InvalidInput(LibraryError):
    kind = 'invalid_input'
    status_code = 400
    message = 'Missing required fields'


class InvalidStatus(InvalidInput):
    kind = 'invalid_status'
    message = 'Invalid status'


class NoCopiesAvailable(LibraryError):
    kind = 'no_copies_available'
    status_code = 400
    message = 'No copies available for borrowing'


def text_value(data, key, strip=True):
    """String value of data[key]; '' when the key is missing or null.

    Raises InvalidInput when the value is present but is not a string.
    """
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise InvalidInput(f'{key} must be a string')
    return value.strip() if strip else value
