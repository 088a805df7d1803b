"""
Payment order fulfillment (internal library).
One engine for every transport: HTTP client callback, gateway webhook, Celery, CLI.
"""
from app.fulfillment.engine import FulfillmentEngine
from app.fulfillment.models import (
    ClientConfirmation,
    Confirmation,
    GatewayWebhook,
    SettlementResult,
    SettlementStatus,
)
from app.fulfillment.router import SettlementRouter
from app.fulfillment.signature import SignatureVerifier, compute_signature, verify_signature

__all__ = [
    "ClientConfirmation",
    "Confirmation",
    "FulfillmentEngine",
    "GatewayWebhook",
    "SettlementResult",
    "SettlementRouter",
    "SettlementStatus",
    "SignatureVerifier",
    "compute_signature",
    "verify_signature",
]
