from fastapi import APIRouter, Depends

from app.api.deps import get_current_user_id, get_entitlement_service
from app.schemas.entitlements import EntitlementCheckOut, EntitlementsOut
from app.services.entitlements.service import EntitlementService


router = APIRouter(prefix="/entitlements", tags=["entitlements"])


@router.get("", response_model=EntitlementsOut)
def list_entitlements(
    user_id: str = Depends(get_current_user_id),
    service: EntitlementService = Depends(get_entitlement_service),
) -> EntitlementsOut:
    return EntitlementsOut(content_refs=service.list_content_refs(user_id))


@router.get("/{content_ref:path}", response_model=EntitlementCheckOut)
def check_entitlement(
    content_ref: str,
    user_id: str = Depends(get_current_user_id),
    service: EntitlementService = Depends(get_entitlement_service),
) -> EntitlementCheckOut:
    """Single-document check for page protection."""
    return EntitlementCheckOut(content_ref=content_ref, granted=service.is_granted(user_id, content_ref))
