"""Errors raised by the pricing lifecycle.

Every error carries a stable ``code`` so the HTTP layer and other callers
can discriminate without matching on messages.
"""

class LifecycleError(Exception):
    """Base class for lifecycle errors."""
    code = 'lifecycle_error'

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {'error': self.code, 'detail': self.message}

class ValidationError(LifecycleError):
    """Raised when setter input is malformed. Nothing was changed."""
    code = 'validation_error'

class StateConflictError(LifecycleError):
    """Raised when an operation is invalid for the current state.

    Never partially applied; re-fetch the status before retrying.
    """
    code = 'state_conflict'

class LifecycleExhaustedError(StateConflictError):
    """Raised once the final phase of the final series has completed."""
    code = 'lifecycle_exhausted'

class NotFoundError(LifecycleError):
    """Raised when a referenced series, phase or tier does not exist."""
    code = 'not_found'

class PersistenceError(LifecycleError):
    """Raised when the store fails during a transaction.

    The transaction is rolled back, state is exactly as before the call.
    """
    code = 'persistence_error'
