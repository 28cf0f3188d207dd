# errors.py
from __future__ import annotations


class ResumeFlameError(Exception):
    """Base error; ``status_code`` is what the HTTP layer answers with."""

    status_code = 500

    def __init__(self, message: str = "", *, status_code: int | None = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ResumeFlameError):
    status_code = 404


class NoInputError(ResumeFlameError):
    status_code = 400


class ValidationError(ResumeFlameError):
    status_code = 400


class ConfigError(ResumeFlameError):
    status_code = 500


class SignatureError(ResumeFlameError):
    status_code = 401


class PaymentProviderError(ResumeFlameError):
    status_code = 502


class PollTimeoutError(ResumeFlameError):
    status_code = 504


# -------- Generation --------
class GenerationError(ResumeFlameError):
    status_code = 500


class AuthError(GenerationError):
    """Upstream rejected our credentials; retrying cannot help."""


class TransientGenerationError(GenerationError):
    pass


class MalformedOutputError(GenerationError):
    pass
