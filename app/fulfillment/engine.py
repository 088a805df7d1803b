"""
FulfillmentEngine - превращает подтверждённый платёж ровно в один доступ.

Порядок (Unseen -> Fulfilled):
1. подпись; 2. Order по order_id; 3. владелец заказа (только client path);
4. INSERT Transaction с PK = payment_id - единственный примитив синхронизации;
5. entitlement (insert-if-absent) + Order -> settled.

Шаг 5 выполняется и на ветке «транзакция уже есть», если доступ ещё не выдан:
сбой между 4 и 5 чинится любым повтором (клиент или redelivery webhook).
Внутрипроцессных локов нет: корректность держится на PK в БД.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import FulfillmentPersistenceError
from app.fulfillment.models import (
    ClientConfirmation,
    Confirmation,
    SettlementResult,
    SettlementStatus,
)
from app.fulfillment.signature import SignatureVerifier
from app.models.transaction import Transaction
from app.services.entitlements.service import EntitlementService
from app.services.orders.service import OrderService
from app.utils.metrics import fulfillment_errors_total, settlements_total

logger = logging.getLogger(__name__)


class FulfillmentEngine:
    def __init__(self, db: Session, verifier: SignatureVerifier):
        self.db = db
        self.verifier = verifier
        self.orders = OrderService(db)
        self.entitlements = EntitlementService(db)

    def settle(self, confirmation: Confirmation) -> SettlementResult:
        result = self._settle(confirmation)
        settlements_total.labels(channel=result.channel, status=result.status.value).inc()
        return result

    def _settle(self, confirmation: Confirmation) -> SettlementResult:
        channel = confirmation.channel
        payment_id = confirmation.payment_id
        order_id = confirmation.order_id
        log_extra = {"payment_id": payment_id, "order_id": order_id, "channel": channel}

        # 1. Signature
        if not confirmation.is_authentic(self.verifier):
            logger.warning("settlement_signature_invalid", extra=log_extra)
            return SettlementResult(
                status=SettlementStatus.SIGNATURE_INVALID,
                channel=channel,
                order_id=order_id,
                payment_id=payment_id,
            )

        # 2. Order
        order = self.orders.get(order_id)
        if order is None:
            logger.warning("settlement_order_not_found", extra=log_extra)
            return SettlementResult(
                status=SettlementStatus.ORDER_NOT_FOUND,
                channel=channel,
                order_id=order_id,
                payment_id=payment_id,
            )
        user_id = order.user_id
        content_ref = order.content_ref

        # 3. Owner check: webhook is gateway-authenticated and trusts the order binding
        if isinstance(confirmation, ClientConfirmation) and confirmation.source_user_id != user_id:
            logger.warning(
                "settlement_user_mismatch",
                extra={**log_extra, "user_id": confirmation.source_user_id},
            )
            return SettlementResult(
                status=SettlementStatus.USER_MISMATCH,
                channel=channel,
                order_id=order_id,
                payment_id=payment_id,
                user_id=confirmation.source_user_id,
            )

        # 4. Idempotence boundary
        existing = self._create_transaction(payment_id, order_id, user_id, content_ref, channel)
        if existing is not None:
            if existing.order_id != order_id:
                logger.error(
                    "settlement_payment_reused",
                    extra={**log_extra, "error": f"bound to order {existing.order_id}"},
                )
            user_id = existing.user_id
            content_ref = existing.content_ref
            order_id = existing.order_id
            status = SettlementStatus.ALREADY_FULFILLED
        else:
            status = SettlementStatus.FULFILLED

        # 5. Grant (also on the already-exists branch while access is missing)
        created = self._grant_access(payment_id, order_id, user_id, content_ref)

        logger.info(
            "settlement_completed",
            extra={
                **log_extra,
                "user_id": user_id,
                "content_ref": content_ref,
                "status": status.value,
            },
        )
        return SettlementResult(
            status=status,
            channel=channel,
            order_id=order_id,
            payment_id=payment_id,
            user_id=user_id,
            content_ref=content_ref,
            entitlement_created=created,
        )

    # ------------------------------------------------------------------
    # Steps 4 and 5
    # ------------------------------------------------------------------

    def _create_transaction(
        self,
        payment_id: str,
        order_id: str,
        user_id: str,
        content_ref: str,
        channel: str,
    ) -> Transaction | None:
        """
        Атомарно создаёт Transaction. Returns: None если создана этим вызовом,
        иначе уже существующую запись (ключ занят другим вызовом/процессом).
        """
        stmt = insert(Transaction).values(
            payment_id=payment_id,
            order_id=order_id,
            user_id=user_id,
            content_ref=content_ref,
            verified=True,
            channel=channel,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
            return None
        except IntegrityError as e:
            self.db.rollback()
            existing = self._get_transaction(payment_id)
            if existing is None:
                # IntegrityError not caused by the payment_id key
                fulfillment_errors_total.labels(stage="transaction").inc()
                logger.exception("transaction_persist_failed", extra={"payment_id": payment_id})
                raise FulfillmentPersistenceError(payment_id, order_id, "transaction") from e
            logger.info(
                "payment_already_processed",
                extra={"payment_id": payment_id, "order_id": order_id, "channel": existing.channel},
            )
            return existing
        except SQLAlchemyError as e:
            self.db.rollback()
            fulfillment_errors_total.labels(stage="transaction").inc()
            logger.exception("transaction_persist_failed", extra={"payment_id": payment_id})
            raise FulfillmentPersistenceError(payment_id, order_id, "transaction") from e

    def _get_transaction(self, payment_id: str) -> Transaction | None:
        try:
            return (
                self.db.query(Transaction)
                .filter(Transaction.payment_id == payment_id)
                .one_or_none()
            )
        except SQLAlchemyError:
            self.db.rollback()
            return None

    def _grant_access(self, payment_id: str, order_id: str, user_id: str, content_ref: str) -> bool:
        try:
            created = self.entitlements.grant(user_id, content_ref, payment_id)
            self.orders.mark_settled(order_id)
            self.db.commit()
            return created
        except SQLAlchemyError as e:
            self.db.rollback()
            fulfillment_errors_total.labels(stage="entitlement").inc()
            logger.exception(
                "entitlement_persist_failed",
                extra={"payment_id": payment_id, "user_id": user_id, "content_ref": content_ref},
            )
            raise FulfillmentPersistenceError(payment_id, order_id, "entitlement") from e
