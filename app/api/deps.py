"""
Process-wide clients (built once, reused, never torn down mid-process)
and per-request services wired through FastAPI dependencies.
"""
from functools import lru_cache

import redis
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.fulfillment.router import SettlementRouter
from app.fulfillment.signature import SignatureVerifier
from app.services.auth.identity import IdentityVerifier, extract_bearer_token
from app.services.circuit_breaker import get_circuit_breaker
from app.services.entitlements.service import EntitlementService
from app.services.gateway.client import RazorpayClient
from app.services.orders.service import OrderService


@lru_cache
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


@lru_cache
def get_signature_verifier() -> SignatureVerifier:
    return SignatureVerifier(
        key_secret=settings.razorpay_key_secret,
        webhook_secret=settings.razorpay_webhook_secret,
    )


@lru_cache
def get_gateway_client() -> RazorpayClient:
    return RazorpayClient(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_base=settings.razorpay_api_base,
        timeout=settings.gateway_timeout,
        breaker=get_circuit_breaker("payment_gateway", get_redis()),
    )


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    return IdentityVerifier(
        secret=settings.identity_jwt_secret,
        jwks_url=settings.identity_jwks_url,
        algorithms=settings.identity_algorithms_list,
        audience=settings.identity_audience,
        issuer=settings.identity_issuer,
    )



def close_process_clients() -> None:
    """Shutdown hook: close clients that were actually built in this process."""
    if get_gateway_client.cache_info().currsize:
        get_gateway_client().close()
        get_gateway_client.cache_clear()
    if get_redis.cache_info().currsize:
        get_redis().close()
        get_redis.cache_clear()


def get_current_user_id(
    authorization: str | None = Header(default=None),
    identity: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    return identity.verify(extract_bearer_token(authorization))


def get_order_service(
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway_client),
    redis_client: redis.Redis = Depends(get_redis),
) -> OrderService:
    return OrderService(db, gateway=gateway, redis_client=redis_client)


def get_settlement_router(
    db: Session = Depends(get_db),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
) -> SettlementRouter:
    return SettlementRouter(db, verifier)


def get_entitlement_service(db: Session = Depends(get_db)) -> EntitlementService:
    return EntitlementService(db)
