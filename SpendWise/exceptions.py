"""Error kinds raised by the account and password reset controllers.

Every workflow error carries a stable ``code`` for the UI, the HTTP status the
API layer should answer with, and whether re-invoking the same action may
succeed.
"""


class SpendWiseError(Exception):
    code = 'REQUEST_FAILED'
    status_code = 400
    retryable = False
    default_message = 'Request failed'

    def __init__(self, message=None, **details):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        payload = {'code': self.code, 'retryable': self.retryable}
        payload.update(self.details)
        return payload


class ValidationError(SpendWiseError):
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid input'


class AccountNotFound(SpendWiseError):
    code = 'ACCOUNT_NOT_FOUND'
    status_code = 404
    default_message = 'User not found'


class AccountExists(SpendWiseError):
    code = 'ACCOUNT_EXISTS'
    status_code = 409
    default_message = 'An account with that username or email already exists'


class ResetRequestNotFound(SpendWiseError):
    code = 'REQUEST_NOT_FOUND'
    status_code = 404
    default_message = 'Reset request not found'


class InvalidState(SpendWiseError):
    code = 'INVALID_STATE'
    status_code = 409
    default_message = 'This request has already been processed'


class PermissionDenied(SpendWiseError):
    code = 'PERMISSION_DENIED'
    status_code = 403
    default_message = 'Admin access required'


class InvalidResetToken(SpendWiseError):
    code = 'INVALID_RESET_TOKEN'
    default_message = 'Reset link is invalid or has expired'


class DispatchFailed(SpendWiseError):
    code = 'DISPATCH_FAILED'
    status_code = 502
    retryable = True
    default_message = 'Failed to send the password reset email'


class UpdateFailed(SpendWiseError):
    code = 'UPDATE_FAILED'
    status_code = 502
    retryable = True
    default_message = 'Failed to update the password'


class CredentialStoreError(Exception):
    """Raised by a CredentialStore when the backing system rejects or fails a call.

    ``retryable`` is False when repeating the call could duplicate its effect.
    """

    def __init__(self, message=None, retryable=True):
        super().__init__(message or 'Credential store call failed')
        self.retryable = retryable
