"""Domain errors raised by invoicing services.

Services raise these instead of HTTP exceptions; ``backend.app.main`` maps each
class to a status code.
"""


class InvoiceFlowError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InvoiceFlowError):
    """Malformed or out-of-range input. Nothing was changed."""


class InvalidInputError(ValidationError):
    """Invalid monetary input to the totals calculator."""


class NotFoundError(InvoiceFlowError):
    """Referenced entity does not exist for this owner."""


class InvalidStateError(InvoiceFlowError):
    """Operation not permitted in the invoice's current lifecycle state."""


class ConflictError(InvoiceFlowError):
    """Concurrent modification or uniqueness clash at the storage boundary. Retryable."""


class DependencyError(InvoiceFlowError):
    """An external collaborator (email, payment gateway, storage) failed."""
