"""
Error taxonomy shared by the services and the API layer.

Every error carries a stable ``code`` for logs. Errors the caller can act on
(validation, insufficient funds, forbidden, fraud screening) expose their
message directly; not-found and conflict errors only expose a generic message
together with the code.
"""

from typing import Any, Dict, Optional


class DonaroError(Exception):
    """Base class for domain errors raised by the services."""

    status_code = 500
    default_code = "internal_error"
    expose_message = False
    generic_message = "Request could not be completed"

    def __init__(self, message: str, code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code or self.default_code
        self.context = context or {}
        super().__init__(f"[{self.code}] {message}")

    @property
    def public_message(self) -> str:
        return self.message if self.expose_message else self.generic_message

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.public_message, "code": self.code}


class ValidationError(DonaroError):
    status_code = 400
    default_code = "validation_error"
    expose_message = True

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        if "missing_fields" in self.context:
            body["missing_fields"] = self.context["missing_fields"]
        return body


class NotFoundError(DonaroError):
    status_code = 404
    default_code = "not_found"
    generic_message = "Resource not found"


class ConflictError(DonaroError):
    status_code = 409
    default_code = "conflict"
    generic_message = "Resource is not in a state that allows this change"


class ForbiddenError(DonaroError):
    status_code = 403
    default_code = "forbidden"
    expose_message = True


class InsufficientFundsError(DonaroError):
    status_code = 400
    default_code = "insufficient_funds"
    expose_message = True


class SuspiciousDonationError(ValidationError):
    """High-risk submission: blocked and routed to manual review."""

    status_code = 422
    default_code = "fraud_high_risk"
    override_allowed = False

    def __init__(self, message: str, evaluation, code: Optional[str] = None):
        self.evaluation = evaluation
        super().__init__(message, code=code, context={"evaluation": evaluation.model_dump(mode="json")})

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["risk_level"] = self.evaluation.risk_level.value
        body["reasons"] = list(self.evaluation.reasons)
        body["override_allowed"] = self.override_allowed
        return body


class FraudWarningError(SuspiciousDonationError):
    """Low/medium-risk submission: the submitter may resend with an override."""

    default_code = "fraud_warning"
    override_allowed = True
