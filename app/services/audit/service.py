"""
Журнал отклонённых подтверждений оплаты (подпись, чужой заказ, неизвестный заказ).
Пишется отдельным коммитом: на исход settlement не влияет.
"""
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog

if TYPE_CHECKING:
    from app.fulfillment.models import SettlementResult

ENTITY_ORDER = "order"


class AuditService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record_settlement(
        self,
        action: str,
        result: "SettlementResult",
        actor_type: str,
        actor_id: str | None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=ENTITY_ORDER,
            entity_id=result.order_id,
            payload={
                "payment_id": result.payment_id,
                "channel": result.channel,
                "status": result.status.value,
            },
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def order_trail(self, order_id: str) -> list[AuditLog]:
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.entity_type == ENTITY_ORDER, AuditLog.entity_id == order_id)
            .order_by(AuditLog.created_at)
            .all()
        )
