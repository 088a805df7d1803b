"""
Settlement endpoints: explicit client callback and gateway webhook.
Webhook answers 200 for every business outcome so the gateway does not
retry-storm; only persistence failures return 500 (gateway retries them).
"""
import logging

from fastapi import APIRouter, Depends, Header, Request, Response
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_current_user_id, get_settlement_router
from app.core.errors import FulfillmentPersistenceError
from app.fulfillment.models import SettlementStatus
from app.fulfillment.router import SettlementRouter
from app.schemas.payments import SettleIn, SettleOut, WebhookAck


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

# status -> (http code, verified, message)
CLIENT_RESPONSES = {
    SettlementStatus.FULFILLED: (200, True, "Payment verified successfully"),
    SettlementStatus.ALREADY_FULFILLED: (200, True, "Payment already processed"),
    SettlementStatus.SIGNATURE_INVALID: (400, False, "Payment verification failed"),
    SettlementStatus.ORDER_NOT_FOUND: (404, True, "Order not found"),
    SettlementStatus.USER_MISMATCH: (403, True, "Unauthorized: Order does not belong to this user"),
}


@router.post("/settle", response_model=SettleOut)
def settle_client(
    body: SettleIn,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    settlement: SettlementRouter = Depends(get_settlement_router),
) -> SettleOut:
    result = settlement.from_client(
        user_id=user_id,
        payment_id=body.payment_id,
        order_id=body.order_id,
        signature=body.signature,
    )
    status_code, verified, message = CLIENT_RESPONSES[result.status]
    response.status_code = status_code
    return SettleOut(
        success=result.status.is_success,
        verified=verified,
        status=result.status.value,
        message=message,
    )


@router.post("/webhook", response_model=WebhookAck)
async def gateway_webhook(
    request: Request,
    response: Response,
    x_razorpay_signature: str | None = Header(default=None),
    settlement: SettlementRouter = Depends(get_settlement_router),
) -> WebhookAck:
    raw_payload = await request.body()
    try:
        result = await run_in_threadpool(settlement.from_webhook, raw_payload, x_razorpay_signature)
    except FulfillmentPersistenceError as e:
        response.status_code = 500
        logger.error(
            "webhook_fulfillment_pending",
            extra={"payment_id": e.payment_id, "order_id": e.order_id, "error": e.stage},
        )
        return WebhookAck(received=False, status="fulfillment_pending")
    return WebhookAck(status=result.status.value)
