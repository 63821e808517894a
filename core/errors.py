"""
core/errors.py -- Typed failures raised by the credential and tenant engine.

Every failure the engine can produce surfaces as one of these classes. The
HTTP layer maps classes to status codes (api/main.py); nothing below api/
knows about HTTP.

code is a stable machine-readable identifier, message is safe to show to a
client. Messages never contain secrets, passwords, hashes or token strings --
only non-sensitive identifiers such as tenant_id or username.
"""


class TenantGateError(Exception):
    """Base class for all engine errors."""

    code = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(TenantGateError):
    """Malformed or missing input. The caller must re-prompt."""

    code = "validation_error"


class ConflictError(TenantGateError):
    """A uniqueness invariant would be violated."""

    code = "conflict"


class UnauthorizedError(TenantGateError):
    """Secret, password or token did not match."""

    code = "unauthorized"


class InvalidTokenError(UnauthorizedError):
    """Token signature, structure or type is wrong."""

    code = "invalid_token"


class ExpiredTokenError(UnauthorizedError):
    """Token was valid but is past its expiry."""

    code = "expired_token"


class NotFoundError(TenantGateError):
    """Unknown tenant, account or refresh token."""

    code = "not_found"


class ConfigurationError(TenantGateError):
    """A required key or setting is missing. The operation must not run."""

    code = "configuration_error"


class InfrastructureError(TenantGateError):
    """Persistence or hashing backend failure. Retry is the caller's choice."""

    code = "infrastructure_error"
