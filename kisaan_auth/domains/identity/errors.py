from fastapi import status


class OTPError(Exception):
    """Base exception for OTP operations; rendered as ``{success: false, error}``."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "OTP request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_payload(self) -> dict:
        return {"success": False, "error": self.message}


class OTPValidationError(OTPError):
    message = "Invalid request"


class OTPSessionNotFound(OTPError):
    message = "OTP session not found. Please request OTP again."


class OTPExpired(OTPError):
    message = "OTP has expired. Please request a new OTP."


class OTPAttemptsExhausted(OTPError):
    message = "Too many failed attempts. Please request a new OTP."


class OTPMismatch(OTPError):
    message = "Invalid OTP"

    def __init__(self, attempts_left: int):
        super().__init__()
        self.attempts_left = attempts_left

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["attemptsLeft"] = self.attempts_left
        return payload


class NameRequired(OTPError):
    message = "Name is required for new user registration"


class OTPDeliveryFailed(OTPError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Failed to send OTP. Please try again."
