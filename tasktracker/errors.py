from fastapi import status


class TaskTrackerError(Exception):
    """Base error carrying the HTTP status and the client-facing message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskTrackerError):
    """A required field is missing or a parameter is not acceptable."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(TaskTrackerError):
    status_code = status.HTTP_404_NOT_FOUND


class PersistenceError(TaskTrackerError):
    """The store failed. The message must stay generic."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
