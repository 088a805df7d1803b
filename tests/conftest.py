"""
Shared fixtures: settings from env, SQLite in-memory store, signing helpers.
Env must be set before app.core.config is imported anywhere.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-identity-secret-0123456789abcdef")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

import json
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.fulfillment.signature import SignatureVerifier, compute_signature, payment_message
from app.models import audit_log, entitlement, order, transaction  # noqa: F401
from app.models.order import Order

KEY_SECRET = os.environ["RAZORPAY_KEY_SECRET"]
WEBHOOK_SECRET = os.environ["RAZORPAY_WEBHOOK_SECRET"]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def verifier():
    return SignatureVerifier(key_secret=KEY_SECRET, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def make_order(db):
    def _make(order_id="order_O1", user_id="U1", content_ref="C1", amount=1000):
        o = Order(
            order_id=order_id,
            user_id=user_id,
            content_ref=content_ref,
            amount=amount,
            currency="INR",
            status="created",
            created_at=datetime.now(timezone.utc),
        )
        db.add(o)
        db.commit()
        return o

    return _make


def client_signature(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return compute_signature(payment_message(order_id, payment_id), secret)


def webhook_body(payment_id: str, order_id: str, event: str = "payment.captured") -> bytes:
    payload = {
        "entity": "event",
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order_id,
                    "amount": 1000,
                    "currency": "INR",
                    "status": "captured",
                }
            }
        },
    }
    return json.dumps(payload).encode("utf-8")


def webhook_signature(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return compute_signature(body, secret)
