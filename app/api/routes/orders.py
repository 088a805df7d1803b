from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id, get_order_service
from app.schemas.orders import CreateOrderIn, CreateOrderOut
from app.services.orders.service import OrderService


router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=CreateOrderOut)
def create_order(
    body: CreateOrderIn,
    user_id: str = Depends(get_current_user_id),
    service: OrderService = Depends(get_order_service),
) -> CreateOrderOut:
    """Purchase intent: mints a gateway order and stores it as created."""
    created = service.create_order(
        user_id=user_id,
        amount=body.amount,
        content_ref=body.content_ref,
        title=body.title,
    )
    return CreateOrderOut(
        order_id=created.order.order_id,
        amount=created.order.amount,
        currency=created.order.currency,
        key=created.checkout_key,
    )
