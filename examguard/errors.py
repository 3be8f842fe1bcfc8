"""
Error taxonomy for the exam session & proctoring engine.

HTTP mapping lives in main.py; services raise these and never build
HTTP responses themselves.
"""


class ExamGuardError(Exception):
    """Base class for all service errors"""

    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ConfigurationError(ExamGuardError):
    """Exam is misconfigured (empty pool, bad question count)"""

    status_code = 422
    error_code = "configuration_error"


class NotFoundError(ConfigurationError):
    """Exam, candidate or question does not exist"""

    status_code = 404
    error_code = "not_found"


class AuthorizationError(ExamGuardError):
    """Caller is not allowed to touch this candidate session"""

    status_code = 403
    error_code = "forbidden"


class MediaAccessError(ExamGuardError):
    """Camera, microphone or fullscreen unavailable. Degrades, never fatal."""

    status_code = 200
    error_code = "media_unavailable"

    def __init__(self, device: str, reason: str = "permission denied"):
        super().__init__(f"{device} unavailable: {reason}")
        self.device = device
        self.reason = reason


class TransientChannelError(ExamGuardError):
    """Observer connection dropped or fell too far behind"""

    status_code = 503
    error_code = "channel_error"


class ValidationError(ExamGuardError):
    """Malformed response or proctor log payload"""

    status_code = 422
    error_code = "validation_error"


class SessionStateError(ExamGuardError):
    """Illegal lifecycle transition (e.g. submit before start)"""

    status_code = 409
    error_code = "session_state_error"
