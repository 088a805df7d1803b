"""
EntitlementService - Access Store и Access Query.

- grant: insert-if-absent по (user_id, content_ref), никогда не удаляет и не снимает доступ
- list_content_refs / is_granted: чтение без кэша, видно сразу после fulfillment
- reconcile: восстановить недостающие entitlement по verified транзакциям
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.entitlement import Entitlement
from app.models.transaction import Transaction
from app.utils.metrics import entitlements_granted_total

logger = logging.getLogger(__name__)


class EntitlementService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_granted(self, user_id: str, content_ref: str) -> bool:
        row = (
            self.db.query(Entitlement.granted)
            .filter(Entitlement.user_id == user_id, Entitlement.content_ref == content_ref)
            .one_or_none()
        )
        return bool(row and row.granted)

    def list_content_refs(self, user_id: str) -> list[str]:
        """Все content_ref, к которым у пользователя есть доступ (отсортированы)."""
        rows = (
            self.db.query(Entitlement.content_ref)
            .filter(Entitlement.user_id == user_id, Entitlement.granted.is_(True))
            .order_by(Entitlement.content_ref)
            .all()
        )
        return [row.content_ref for row in rows]

    # ------------------------------------------------------------------
    # Grant (monotonic)
    # ------------------------------------------------------------------

    def grant(self, user_id: str, content_ref: str, payment_id: str | None = None) -> bool:
        """
        Добавить доступ, если его ещё нет. Не коммитит - коммит делает вызывающий.
        Returns: True если строка создана этим вызовом.

        Конкурентный grant того же ключа ловится по IntegrityError (PK) и считается успехом.
        """
        if self.is_granted(user_id, content_ref):
            return False
        self.db.add(
            Entitlement(
                user_id=user_id,
                content_ref=content_ref,
                granted=True,
                payment_id=payment_id,
            )
        )
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "entitlement_granted_concurrently",
                extra={"user_id": user_id, "content_ref": content_ref, "payment_id": payment_id},
            )
            return False
        entitlements_granted_total.inc()
        logger.info(
            "entitlement_granted",
            extra={"user_id": user_id, "content_ref": content_ref, "payment_id": payment_id},
        )
        return True

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, batch_size: int = 500) -> dict[str, int]:
        """
        Пройти по всем verified транзакциям и выдать недостающие entitlement.
        Чинит разрыв «транзакция записана, доступ не выдан» без повторной оплаты.
        """
        total = 0
        restored = 0
        already_granted = 0
        last_payment_id = ""
        while True:
            batch = (
                self.db.query(Transaction)
                .filter(Transaction.verified.is_(True), Transaction.payment_id > last_payment_id)
                .order_by(Transaction.payment_id)
                .limit(batch_size)
                .all()
            )
            if not batch:
                break
            # keyset pagination: commit() below expires the loaded rows
            last_payment_id = batch[-1].payment_id
            bindings = [(txn.user_id, txn.content_ref, txn.payment_id) for txn in batch]
            for user_id, content_ref, payment_id in bindings:
                total += 1
                if self.grant(user_id, content_ref, payment_id):
                    self.db.commit()
                    restored += 1
                else:
                    already_granted += 1

        result = {"total": total, "restored": restored, "already_granted": already_granted}
        logger.info("entitlements_reconciled", extra=result)
        return result
