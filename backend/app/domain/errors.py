class DomainError(Exception):
    """Base class for expected, caller-recoverable failures."""


class InvalidCapacityError(DomainError):
    pass


class NoCapacityConfiguredError(DomainError):
    pass


class CapacityExceededError(DomainError):
    pass


class NotFoundError(DomainError):
    pass


class InvalidTransitionError(DomainError):
    pass


class StoreUnavailableError(DomainError):
    """The database could not complete the operation; safe to retry later."""
