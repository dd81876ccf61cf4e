"""Custom exceptions for couple-finance."""


class CoupleFinanceError(Exception):
    """Base exception for all couple-finance errors."""

    pass


class ConfigurationError(CoupleFinanceError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(CoupleFinanceError):
    """Raised when input fails a membership, reference or amount check."""

    pass


class NotFoundError(CoupleFinanceError):
    """Raised when a record does not exist in the ledger."""

    def __init__(self, entity: str, entity_id: str, message: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} {entity_id} not found")


class InvalidStateError(CoupleFinanceError):
    """Raised when a transaction cannot move to the requested status."""

    pass


class SplitError(CoupleFinanceError):
    """Raised when a split allocation is requested with invalid input."""

    pass


class APIError(CoupleFinanceError):
    """Base class for API-related errors."""

    pass


class OpenAIAPIError(APIError):
    """Raised when OpenAI API request fails."""

    pass


class ParsingError(CoupleFinanceError):
    """Raised when AI output cannot be turned into a transaction."""

    pass


class PermissionDeniedError(CoupleFinanceError):
    """Raised when a member's role does not allow the requested change."""

    pass
