"""
Halo Exception Hierarchy

Error codes for the protocol translation layer.
All errors use the halo: prefix so clients can branch on them.
"""
from typing import Optional, Dict, Any


class HaloError(Exception):
    """
    Base exception for all Halo errors.

    Every error carries a stable error code, a human message and
    optional structured details for the API response.
    """

    status_code = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class UnparseableIntentError(HaloError):
    """
    Text contained no buy-trigger.

    The parser itself returns None; this is raised only at the
    orchestration boundary where a purchase was explicitly requested.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:intent:unparseable", message, details)


class UnknownProtocolError(HaloError):
    """
    No adapter registered for the requested or detected protocol.

    Example:
    - Client asks for "ap2" but only ACP, UCP and x402 are registered
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:protocol:unknown", message, details)


class CatalogMissError(HaloError):
    """
    Catalog lookup found no product for the requested item.

    Recoverable: the caller should ask the user to clarify the item.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:catalog:miss", message, details)


class InvalidCardError(HaloError):
    """
    Card failed validation.

    Examples:
    - Luhn checksum mismatch
    - Expiry month out of range or in the past
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:card:invalid", message, details)


class VerificationFailedError(HaloError):
    """
    OTP check failed for a payment method.

    Examples:
    - No OTP pending
    - OTP expired
    - OTP mismatch
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:verification:failed", message, details)


class VerificationRequiredError(HaloError):
    """
    High-value checkout attempted without a verified step-up session.
    """

    status_code = 403

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:verification:required", message, details)


class VerificationSessionError(HaloError):
    """
    Step-up session operation is not valid.

    Examples:
    - Unknown or cancelled session token
    - OTP submitted to a biometric session
    - Operation not allowed in the current state
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:verification:session_invalid", message, details)


class NormalizationGapError(HaloError):
    """
    Protocol payload is missing a field required by the canonical shape.

    Money fields are never defaulted: a payload without an amount or a
    currency cannot be normalized.
    """

    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:normalization:gap", message, details)


class PaymentMethodNotFoundError(HaloError):
    """Payment method does not exist or belongs to another user."""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:payment_method:not_found", message, details)


class PaymentMethodUnavailableError(HaloError):
    """
    Payment method cannot be charged.

    Examples:
    - Card not yet verified with OTP
    - Card removed or expired
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:payment_method:unavailable", message, details)


class OrderNotFoundError(HaloError):
    """No order with the requested id."""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:order:not_found", message, details)


class RiskBlockedError(HaloError):
    """
    Risk scoring refused the checkout outright.

    Raised before authorization; no step-up session can override it.
    """

    status_code = 403

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("halo:risk:blocked", message, details)
