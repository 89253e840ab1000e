"""
Error taxonomy for the affiliate registration flow.
Routers translate these into JSON responses; none of them is fatal.
"""
from typing import Optional

from fastapi.responses import JSONResponse


class AffiliateError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        out = {"error": self.code, "message": self.message}
        out.update(self.details)
        return out


class ValidationError(AffiliateError):
    """Schema-level rejection; carries one message per offending field."""
    code = "validation_error"
    status_code = 422

    def __init__(self, errors: dict[str, str], message: str = "Invalid form data"):
        super().__init__(message, fields=dict(errors))
        self.errors = dict(errors)


class MissingIdentifyingNameError(AffiliateError):
    code = "missing_identifying_name"
    status_code = 400


class DuplicateIdentityError(AffiliateError):
    code = "duplicate_identity"
    status_code = 409

    def __init__(self, affiliate_id: str, codigo_afiliado: str, login_hint: str, message: str = ""):
        super().__init__(
            message or "Affiliate already exists",
            affiliate_id=affiliate_id,
            codigo_afiliado=codigo_afiliado,
            login_hint=login_hint,
        )
        self.affiliate_id = affiliate_id
        self.codigo_afiliado = codigo_afiliado
        self.login_hint = login_hint


class NotFoundError(AffiliateError):
    code = "not_found"
    status_code = 404


class InvalidCredentialsError(AffiliateError):
    code = "invalid_credentials"
    status_code = 401


class BackendUnavailableError(AffiliateError):
    code = "backend_unavailable"
    status_code = 503

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message or "Backend unavailable")
        self.cause = cause


class NoChangesError(AffiliateError):
    """Edit submitted with an empty diff. Informational, not a fault."""
    code = "no_changes"
    status_code = 200


class InvalidStateError(AffiliateError):
    code = "invalid_state"
    status_code = 409


def error_response(ex: AffiliateError, notifications: Optional[list] = None):
    body = ex.to_dict()
    if notifications is not None:
        body["notifications"] = notifications
    return JSONResponse(body, status_code=ex.status_code)
