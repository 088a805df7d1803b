"""
OrderService - создание намерения покупки (Order Store).

Ответственности:
- Валидация суммы и content_ref
- Rate-limit покупок (Redis - общий для всех воркеров API)
- Получение order id у платёжного шлюза и сохранение Order со статусом created
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import redis
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import RateLimitedError, ValidationError
from app.models.order import ORDER_STATUS_CREATED, ORDER_STATUS_SETTLED, Order
from app.services.gateway.client import RazorpayClient
from app.utils.metrics import orders_created_total, orders_rejected_total

logger = logging.getLogger(__name__)


@dataclass
class CreatedOrder:
    order: Order
    checkout_key: str  # public key id for the frontend checkout


def build_receipt() -> str:
    """Receipt as the gateway shows it: r_ + last 8 digits of epoch millis."""
    return f"r_{str(int(time.time() * 1000))[-8:]}"


class OrderService:
    def __init__(
        self,
        db: Session,
        gateway: RazorpayClient | None = None,
        redis_client: redis.Redis | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self._redis = redis_client

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate(user_id: str | None, amount, content_ref: str | None) -> None:
        if not user_id:
            raise ValidationError("Missing user")
        if not content_ref or not str(content_ref).strip():
            raise ValidationError("Missing required parameters")
        # bool is an int subclass; True must not pass as amount=1
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Invalid amount")
        if amount < settings.order_amount_min or amount > settings.order_amount_max:
            raise ValidationError(
                f"Invalid amount. Must be between {settings.order_amount_min} "
                f"and {settings.order_amount_max} minor units"
            )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(
        self,
        user_id: str,
        amount: int,
        content_ref: str,
        title: str | None = None,
    ) -> CreatedOrder:
        """
        Создаёт order у шлюза и сохраняет Order(status=created).
        Entitlement не меняется - доступ выдаёт только FulfillmentEngine.
        """
        try:
            self.validate(user_id, amount, content_ref)
        except ValidationError:
            orders_rejected_total.labels(reason="validation").inc()
            raise
        if not self._check_rate_limit(user_id):
            orders_rejected_total.labels(reason="rate_limited").inc()
            raise RateLimitedError("Too many purchases. Try again later.")

        if self.gateway is None:
            raise RuntimeError("OrderService was built without a gateway client")

        content_ref = content_ref.strip()
        title = (title or "").strip()[: settings.content_title_max_length] or None
        receipt = build_receipt()

        gateway_order = self.gateway.create_order(
            amount=amount,
            currency=settings.order_currency,
            receipt=receipt,
            notes={"userId": user_id, "contentRef": content_ref, "title": title or ""},
        )

        order = Order(
            order_id=gateway_order.order_id,
            user_id=user_id,
            content_ref=content_ref,
            title=title,
            amount=gateway_order.amount,
            currency=gateway_order.currency,
            receipt=gateway_order.receipt,
            status=ORDER_STATUS_CREATED,
        )
        self.db.add(order)
        self.db.commit()

        orders_created_total.labels(currency=order.currency).inc()
        logger.info(
            "order_created",
            extra={
                "order_id": order.order_id,
                "user_id": user_id,
                "content_ref": content_ref,
                "amount": order.amount,
                "currency": order.currency,
            },
        )
        return CreatedOrder(order=order, checkout_key=self.gateway.key_id)

    # ------------------------------------------------------------------
    # Queries / status
    # ------------------------------------------------------------------

    def get(self, order_id: str) -> Order | None:
        return self.db.query(Order).filter(Order.order_id == order_id).one_or_none()

    def mark_settled(self, order_id: str) -> bool:
        """created -> settled; повторный вызов - no-op. Не коммитит."""
        res = self.db.execute(
            update(Order)
            .where(Order.order_id == order_id, Order.status == ORDER_STATUS_CREATED)
            .values(status=ORDER_STATUS_SETTLED, settled_at=datetime.now(timezone.utc))
        )
        return res.rowcount > 0

    # ------------------------------------------------------------------
    # Rate-limit
    # ------------------------------------------------------------------

    def _check_rate_limit(self, user_id: str) -> bool:
        """Не более purchase_rate_limit заказов за окно. Работает при нескольких репликах API."""
        if self._redis is None:
            return True
        key = f"purchase_rate:{user_id}"
        try:
            current = self._redis.incr(key)
            if current == 1:
                self._redis.expire(key, settings.purchase_rate_window_seconds)
            return current <= settings.purchase_rate_limit
        except redis.RedisError as e:
            logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
            return True  # fail open: Redis недоступен - разрешаем заказ
