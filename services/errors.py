# services/errors.py


class SchedulingError(Exception):
    """Base class for errors reported back to the caller with a message."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class SlotValidationError(SchedulingError, ValueError):
    status_code = 400


class CapacityConflictError(SchedulingError):
    status_code = 409


class NotFoundError(SchedulingError):
    status_code = 404
