class DomainError(Exception):
    """Base class for reservation engine errors."""


class InvalidInputError(DomainError, ValueError):
    """Malformed request: missing date, negative duration, unknown resource and the like."""


class StoreUnavailableError(DomainError):
    """The reservation/config store could not be read or written."""


class ReservationNotFoundError(DomainError):
    pass


class VersionConflictError(DomainError):
    pass


class StatusTransitionError(DomainError):
    pass
