"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainException):
    """Input has a bad shape or is out of range"""

    kind = "validation_error"


class InvalidDate(ValidationError):
    """Scheduled date is malformed or in the past"""

    kind = "invalid_date"


class NotFound(DomainException):
    """Transaction or payout does not exist"""

    kind = "not_found"


class AlreadyApproved(DomainException):
    """Transaction was approved before this request"""

    kind = "already_approved"


class InvalidState(DomainException):
    """Payout is not in a state that allows the requested transition"""

    kind = "invalid_state"


class Conflict(DomainException):
    """A concurrent writer won the race for the same row"""

    kind = "conflict"


class PersistenceError(DomainException):
    """Database is unavailable or the write failed"""

    kind = "persistence_error"
