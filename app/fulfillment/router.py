"""
SettlementRouter - два явных входа (client callback и gateway webhook),
нормализуемых в один вызов FulfillmentEngine.settle.

Канал определяется точкой входа, а не наличием заголовка подписи.
"""
import json
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.fulfillment.engine import FulfillmentEngine
from app.fulfillment.models import (
    CHANNEL_WEBHOOK,
    ClientConfirmation,
    GatewayWebhook,
    SettlementResult,
    SettlementStatus,
)
from app.fulfillment.signature import SignatureVerifier
from app.services.audit.service import AuditService
from app.utils.metrics import settlements_total

logger = logging.getLogger(__name__)

PAYMENT_CAPTURED_EVENT = "payment.captured"

# outcomes worth keeping in audit_logs for investigation
AUDITED_STATUSES = {
    SettlementStatus.SIGNATURE_INVALID: "settlement_signature_invalid",
    SettlementStatus.ORDER_NOT_FOUND: "settlement_order_not_found",
    SettlementStatus.USER_MISMATCH: "settlement_user_mismatch",
}


class SettlementRouter:
    def __init__(self, db: Session, verifier: SignatureVerifier):
        self.db = db
        self.verifier = verifier
        self.engine = FulfillmentEngine(db, verifier)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def from_client(
        self,
        user_id: str,
        payment_id: str,
        order_id: str,
        signature: str,
    ) -> SettlementResult:
        """Checkout callback от аутентифицированного пользователя."""
        confirmation = ClientConfirmation(
            payment_id=payment_id,
            order_id=order_id,
            signature=signature,
            source_user_id=user_id,
        )
        result = self.engine.settle(confirmation)
        self._audit(result, actor_type="user", actor_id=user_id)
        return result

    def from_webhook(self, raw_payload: bytes, signature: str | None) -> SettlementResult:
        """
        Push от шлюза. Подпись проверяется по сырому телу до разбора JSON;
        пользователь берётся из Order, а не из payload.
        """
        if not self.verifier.verify_webhook(raw_payload, signature):
            logger.warning("webhook_signature_invalid")
            result = SettlementResult(status=SettlementStatus.SIGNATURE_INVALID, channel=CHANNEL_WEBHOOK)
            settlements_total.labels(channel=CHANNEL_WEBHOOK, status=result.status.value).inc()
            self._audit(result, actor_type="gateway", actor_id=None)
            return result

        parsed = self.parse_webhook(raw_payload)
        if isinstance(parsed, SettlementResult):
            settlements_total.labels(channel=CHANNEL_WEBHOOK, status=parsed.status.value).inc()
            return parsed
        payment_id, order_id = parsed

        confirmation = GatewayWebhook(
            payment_id=payment_id,
            order_id=order_id,
            signature=signature,
            raw_payload=raw_payload,
        )
        result = self.engine.settle(confirmation)
        self._audit(result, actor_type="gateway", actor_id=None)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def parse_webhook(raw_payload: bytes) -> tuple[str, str] | SettlementResult:
        """
        Достаёт (payment_id, order_id) из payment.captured.
        Returns: кортеж id или SettlementResult (IGNORED / MALFORMED) для ack без fulfillment.
        """
        try:
            payload = json.loads(raw_payload)
        except (ValueError, UnicodeDecodeError):
            logger.warning("webhook_payload_malformed")
            return SettlementResult(status=SettlementStatus.MALFORMED, channel=CHANNEL_WEBHOOK)
        if not isinstance(payload, dict):
            logger.warning("webhook_payload_malformed")
            return SettlementResult(status=SettlementStatus.MALFORMED, channel=CHANNEL_WEBHOOK)

        event = payload.get("event")
        if event != PAYMENT_CAPTURED_EVENT:
            logger.info("webhook_event_ignored", extra={"status": str(event)})
            return SettlementResult(status=SettlementStatus.IGNORED, channel=CHANNEL_WEBHOOK)

        entity = payload
        for key in ("payload", "payment", "entity"):
            entity = entity.get(key) if isinstance(entity, dict) else None
        payment_id = entity.get("id") if isinstance(entity, dict) else None
        order_id = entity.get("order_id") if isinstance(entity, dict) else None
        if not payment_id or not order_id:
            logger.warning(
                "webhook_payload_missing_ids",
                extra={"payment_id": payment_id, "order_id": order_id},
            )
            return SettlementResult(
                status=SettlementStatus.MALFORMED,
                channel=CHANNEL_WEBHOOK,
                payment_id=payment_id,
                order_id=order_id,
            )
        return str(payment_id), str(order_id)

    def _audit(self, result: SettlementResult, actor_type: str, actor_id: str | None) -> None:
        action = AUDITED_STATUSES.get(result.status)
        if action is None:
            return
        try:
            AuditService(self.db).record_settlement(action, result, actor_type=actor_type, actor_id=actor_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("settlement_audit_error", extra={"order_id": result.order_id})
