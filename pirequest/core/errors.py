from typing import List, Optional


class PiRequestError(Exception):
    """
    Business-rule rejection. Carries the HTTP status and the message shown to the
    caller; main.py turns it into the standard {success, message, details?} envelope.
    """

    status_code: int = 400
    message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, *, details: Optional[List[str]] = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class HumanVerificationRequired(PiRequestError):
    message = "Human verification required"


class InvalidSession(PiRequestError):
    message = "Invalid or expired session"


class CodeExpired(PiRequestError):
    message = "MFA code has expired. Please request a new code."


class AttemptsExhausted(PiRequestError):
    status_code = 429
    message = "Too many failed attempts. Please request a new code."


class PhoneMismatch(PiRequestError):
    message = "Phone number mismatch"


class AlreadyVerified(PiRequestError):
    message = "MFA code already verified for this session"


class InvalidCode(PiRequestError):
    def __init__(self, attempts_remaining: int):
        self.attempts_remaining = attempts_remaining
        super().__init__(f"Invalid MFA code. {attempts_remaining} attempts remaining.")


class VerificationRequired(PiRequestError):
    status_code = 401
    message = "MFA verification required"


class InvalidRequestId(PiRequestError):
    message = "Invalid request ID format"


class RateLimited(PiRequestError):
    status_code = 429
    message = "Too many requests from this IP, please try again later."

    def __init__(self, message: Optional[str] = None, *, retry_after: int = 0):
        self.retry_after = retry_after
        super().__init__(message)
