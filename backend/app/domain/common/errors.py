"""Domain error types."""


class DomainError(Exception):
    """Base domain error."""
    pass


class NotFoundError(DomainError):
    """Resource not found."""
    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Validation error (missing identifiers, unknown enum values)."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnauthorizedError(DomainError):
    """Caller identity was not established upstream."""
    def __init__(self, message: str = "Not authenticated"):
        self.message = message
        super().__init__(message)


class ConflictError(DomainError):
    """Resource conflict error."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class StoreUnavailableError(DomainError):
    """The store could not be reached. Transient: retry the same call on the next tick."""
    def __init__(self, message: str = "Store unavailable"):
        self.message = message
        super().__init__(message)
