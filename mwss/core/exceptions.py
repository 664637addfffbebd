from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Missing or duplicate required fields. Nothing was written."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AuthenticationError(ServiceError):
    def __init__(self, message: str = "Invalid credentials", status_code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(message, status_code)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvalidStateError(ServiceError):
    """Requested status transition is not allowed from the current status."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class TransientInfraError(ServiceError):
    """Database or network failure. Safe to retry."""

    def __init__(self, message: str = "Service temporarily unavailable, please retry") -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class NotificationError(Exception):
    """Raised by notification sinks. Only the dispatcher worker ever sees it."""
