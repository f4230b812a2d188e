"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidScheduleError(DomainException):
    """Cadence or recurrence is not one the schedule math understands"""

    pass


class BankAPIError(DomainException):
    """Bank aggregation API returned an error or is unavailable"""

    pass


class DataUnavailableError(DomainException):
    """Financial data could not be loaded from the upstream collaborators"""

    pass


class BillNotFoundError(DomainException):
    """Requested bill instance does not exist for the user"""

    pass


class BillAlreadyPaidError(DomainException):
    """Bill instance was already paid; its successor period takes further payments"""

    pass
