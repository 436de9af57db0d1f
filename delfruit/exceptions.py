"""Exception taxonomy shared by the services and the HTTP boundary."""
from typing import Optional


class DelfruitError(Exception):
    """Base class. ``code`` is a short machine-readable reason."""

    code = 'ERROR'
    status = 500

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code}


class ClientInputError(DelfruitError):
    """Malformed id token or payload; detected before any storage call."""

    code = 'BAD_REQUEST'
    status = 400


class AuthenticationError(DelfruitError):
    """Identity missing where one is required, or the token is invalid."""

    code = 'UNAUTHENTICATED'
    status = 401

    def __init__(self, message: str = 'Authentication required',
                 code: Optional[str] = None) -> None:
        super().__init__(message, code)


class AuthorizationError(DelfruitError):
    """Identity present but lacking the required role or ownership."""

    code = 'FORBIDDEN'
    status = 403

    def __init__(self, message: str = 'Unauthorized',
                 code: Optional[str] = None) -> None:
        super().__init__(message, code)


class NotFoundError(DelfruitError):
    """No matching row visible to the caller."""

    code = 'NOT_FOUND'
    status = 404

    def __init__(self, message: str = 'Not found',
                 code: Optional[str] = None) -> None:
        super().__init__(message, code)


class StorageError(DelfruitError):
    """A failure raised by the storage boundary.

    Carries the repository operation and entity id for server-side
    diagnosis; callers only ever see a generic failure.
    """

    code = 'STORAGE_ERROR'
    status = 500

    def __init__(self, operation: str, entity_id=None) -> None:
        detail = operation if entity_id is None else f"{operation} (id={entity_id})"
        super().__init__(f"Storage failure during {detail}")
        self.operation = operation
        self.entity_id = entity_id
