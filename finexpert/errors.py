from fastapi import status


class FinExpertError(Exception):
    """Base class for errors raised by the budget engine and its stores."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(FinExpertError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientHistoryError(FinExpertError):
    status_code = status.HTTP_400_BAD_REQUEST


class AIServiceUnavailableError(FinExpertError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class NotFoundError(FinExpertError):
    status_code = status.HTTP_404_NOT_FOUND
