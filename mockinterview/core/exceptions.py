from typing import Any


class AppError(Exception):
    """Base error rendered as ``{"error": message}`` by the error handler."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None, detail: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class ConfigurationError(AppError):
    """An API key or database URI is missing, so the operation cannot start."""

    status_code = 400


class UpstreamServiceError(AppError):
    """A remote collaborator (Gemini, ElevenLabs) failed."""

    status_code = 500


class ResponseParseError(UpstreamServiceError):
    """The model answered without a usable JSON object."""


class AudioCaptureError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409
