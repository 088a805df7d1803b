from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SettleIn(BaseModel):
    """Checkout callback body; Razorpay handler field names are accepted as-is."""

    model_config = ConfigDict(extra="ignore")

    payment_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("paymentId", "payment_id", "razorpay_payment_id"),
    )
    order_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("orderId", "order_id", "razorpay_order_id"),
    )
    signature: str = Field(
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature"),
    )


class SettleOut(BaseModel):
    success: bool
    verified: bool
    status: str
    message: str


class WebhookAck(BaseModel):
    received: bool = True
    status: str
