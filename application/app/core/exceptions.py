"""
Auth service errors.

Every error carries the HTTP status it maps to and a human readable message;
`register_exception_handlers` renders them as `{"message": ...}`.
"""
from fastapi import status


class AuthServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    message = "All fields required"


class ConflictError(AuthServiceError):
    pass


class PhoneTaken(ConflictError):
    message = "Phone already registered"


class EmailTaken(ConflictError):
    message = "Email already registered"


class OTPNotFound(AuthServiceError):
    message = "No OTP found"


class OTPExpired(AuthServiceError):
    message = "OTP expired"


class OTPMismatch(AuthServiceError):
    message = "Invalid OTP"


class EmailNotVerified(AuthServiceError):
    message = "Email not verified"


class UserNotFound(AuthServiceError):
    message = "User not found"


class WrongPassword(AuthServiceError):
    message = "Wrong password"


class InvalidToken(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid token"


class DeliveryFailed(AuthServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Error sending OTP"


class StoreUnavailable(AuthServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server error"
