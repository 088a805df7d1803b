"""
DTO fulfillment: tagged union of inbound confirmations and the settlement result.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from app.fulfillment.signature import SignatureVerifier


CHANNEL_CLIENT = "client"
CHANNEL_WEBHOOK = "webhook"


class SettlementStatus(str, Enum):
    FULFILLED = "fulfilled"
    ALREADY_FULFILLED = "already_fulfilled"
    SIGNATURE_INVALID = "signature_invalid"
    ORDER_NOT_FOUND = "order_not_found"
    USER_MISMATCH = "user_mismatch"
    IGNORED = "ignored"  # webhook event other than payment.captured
    MALFORMED = "malformed"  # signed webhook body without usable ids

    @property
    def is_success(self) -> bool:
        return self in (SettlementStatus.FULFILLED, SettlementStatus.ALREADY_FULFILLED)


# ----- Confirmation shapes (one per entry point) -----


class ClientConfirmation(BaseModel):
    """Checkout callback from an authenticated user; source_user_id is the verified caller."""

    channel: Literal["client"] = CHANNEL_CLIENT
    payment_id: str
    order_id: str
    signature: str
    source_user_id: str

    model_config = {"frozen": True}

    def is_authentic(self, verifier: SignatureVerifier) -> bool:
        return verifier.verify_payment(self.order_id, self.payment_id, self.signature)


class GatewayWebhook(BaseModel):
    """payment.captured push from the gateway; signed over the raw body, no user identity."""

    channel: Literal["webhook"] = CHANNEL_WEBHOOK
    payment_id: str
    order_id: str
    signature: str
    raw_payload: bytes

    model_config = {"frozen": True}

    def is_authentic(self, verifier: SignatureVerifier) -> bool:
        return verifier.verify_webhook(self.raw_payload, self.signature)


Confirmation = Annotated[Union[ClientConfirmation, GatewayWebhook], Field(discriminator="channel")]


class SettlementResult(BaseModel):
    status: SettlementStatus
    channel: str
    order_id: str | None = None
    payment_id: str | None = None
    user_id: str | None = None
    content_ref: str | None = None
    # True only for the call that actually inserted the entitlement row
    entitlement_created: bool = False

    model_config = {"frozen": True}
