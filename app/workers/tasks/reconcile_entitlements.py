"""
Celery periodic task: grant entitlements missing for verified transactions
(payment recorded, access write failed and the payer never retried).
"""
import logging

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import SessionLocal
from app.services.entitlements.service import EntitlementService

logger = logging.getLogger(__name__)


@celery_app.task(name="app.workers.tasks.reconcile_entitlements.reconcile_entitlements")
def reconcile_entitlements() -> dict:
    db = SessionLocal()
    try:
        result = EntitlementService(db).reconcile(batch_size=settings.reconcile_batch_size)
        if result["restored"]:
            logger.warning("entitlements_restored_by_reconcile", extra=result)
        return result
    finally:
        db.close()
