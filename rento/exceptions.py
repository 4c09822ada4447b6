class RentoError(Exception):
    """Base class for domain errors raised by the booking workflow."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RentoError):
    """Malformed input: bad dates, own item, unavailable item, empty content."""


class NotFoundError(RentoError):
    """Referenced item, booking, notification or profile does not exist."""


class InvalidTransitionError(RentoError):
    """The booking's current status does not allow the requested transition."""


class AuthorizationError(RentoError):
    """The acting user does not hold the role the operation requires."""
