"""
Domain errors raised by services and mapped to HTTP responses in app.main.
Expected settlement outcomes (bad signature, unknown order, ...) are not errors:
they are returned as SettlementStatus values by the fulfillment engine.
"""


class PaywallError(Exception):
    """Base class; status_code is the HTTP code used by the exception handler."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(PaywallError):
    status_code = 401


class ValidationError(PaywallError):
    status_code = 400


class RateLimitedError(PaywallError):
    status_code = 429


class GatewayError(PaywallError):
    """Payment gateway unreachable, rejected the call or circuit is open."""

    status_code = 502


class FulfillmentPersistenceError(PaywallError):
    """
    Signature verified, but the transaction or entitlement could not be persisted.
    Retriable: re-submitting the same payment repairs the grant.
    """

    status_code = 500

    def __init__(self, payment_id: str, order_id: str, stage: str) -> None:
        super().__init__("Payment verified, but fulfillment failed. Access is pending, please retry.")
        self.payment_id = payment_id
        self.order_id = order_id
        self.stage = stage
