"""
Domain exceptions
"""


class CheckInError(Exception):
    """Base class for check-in failures"""


class CheckInPersistenceError(CheckInError):
    """The registry could not be read or written for this scan.

    A failed write leaves nothing changed. A failed reload after commit
    means the check-in is stored; scanning again reports it as already done.
    """

    def __init__(self, token: str, cause: Exception = None):
        self.token = token
        self.cause = cause
        super().__init__(f"Could not persist check-in for token {token!r}: {cause}")
