"""
Admin routes (X-Admin-Key): entitlement reconciliation and settlement audit trail.
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.schemas.entitlements import ReconcileOut
from app.services.audit.service import AuditService
from app.services.entitlements.service import EntitlementService


def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    if not settings.admin_api_key or x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="unauthorized")


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/entitlements/reconcile", response_model=ReconcileOut)
def reconcile_entitlements(db: Session = Depends(get_db)) -> ReconcileOut:
    """Restore entitlements missing for verified transactions."""
    result = EntitlementService(db).reconcile(batch_size=settings.reconcile_batch_size)
    return ReconcileOut(**result)


@router.get("/orders/{order_id}/audit")
def order_audit(order_id: str, db: Session = Depends(get_db)) -> list[dict]:
    entries = AuditService(db).order_trail(order_id)
    return [
        {
            "id": e.id,
            "action": e.action,
            "actor_type": e.actor_type,
            "actor_id": e.actor_id,
            "payload": e.payload,
            "created_at": e.created_at.isoformat() if e.created_at else None,
        }
        for e in entries
    ]
