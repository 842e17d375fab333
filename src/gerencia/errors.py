from __future__ import annotations


class GerenciaError(RuntimeError):
    """Base error for request handling. `status_code` is the HTTP status the web layer answers with."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(GerenciaError):
    status_code = 400


class ValidationError(GerenciaError):
    status_code = 400


class NotFoundError(GerenciaError):
    status_code = 404


class PersistenceError(GerenciaError):
    status_code = 500


class DuplicateTokenError(GerenciaError):
    status_code = 409
