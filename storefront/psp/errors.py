"""
Gateway error taxonomy.

Every failure coming out of a PSP adapter is one of these. Each carries a
machine-readable ``code`` and a single user-facing message.
"""
from typing import Any, Optional


class GatewayError(Exception):
    """Base class for all payment gateway failures."""

    code = "gateway_error"
    default_message = "Payment gateway error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        self.message = message or self.default_message
        self.provider = provider
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

    def __repr__(self):
        return f"<{self.__class__.__name__}(provider={self.provider}, message={self.message!r})>"


class MissingCredentials(GatewayError):
    code = "missing_credentials"
    default_message = "Payment gateway credentials are missing. Please check your environment variables."


class AuthenticationFailed(GatewayError):
    code = "authentication_failed"
    default_message = (
        "Payment gateway authentication failed. Check that the credentials are correct "
        "and match the configured environment."
    )


class ValidationError(GatewayError):
    code = "validation_error"
    default_message = "Payment gateway rejected the request"


class NetworkUnreachable(GatewayError):
    code = "network_unreachable"
    default_message = "Unable to connect to payment gateway. Please check your internet connection."


class SignatureVerificationFailed(GatewayError):
    code = "signature_verification_failed"
    default_message = "Webhook signature verification failed"


class StatusFetchFailed(GatewayError):
    code = "status_fetch_failed"
    default_message = "Failed to fetch payment status"


class UnknownGatewayError(GatewayError):
    code = "unknown_gateway_error"
    default_message = "Payment gateway error"


class DuplicateRequest(GatewayError):
    code = "duplicate_request"
    default_message = "A payment request for this order is already in progress"
