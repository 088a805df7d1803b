"""
Signature Verifier: HMAC-SHA256 (hex) over gateway confirmations.

Client checkout callback: HMAC(key_secret, "{order_id}|{payment_id}").
Webhook: HMAC(webhook_secret, raw request body).
A mismatch is a normal outcome (False), never an exception.
"""
from __future__ import annotations

import hashlib
import hmac


def compute_signature(message: bytes | str, secret: str) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(message: bytes | str, signature: str | None, secret: str) -> bool:
    """Constant-time comparison of the provided signature against the expected one."""
    if not signature or not secret:
        return False
    expected = compute_signature(message, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8"))


def payment_message(order_id: str, payment_id: str) -> str:
    return f"{order_id}|{payment_id}"


class SignatureVerifier:
    """Binds the two gateway secrets; built once per process and injected."""

    def __init__(self, key_secret: str, webhook_secret: str) -> None:
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret

    def verify_payment(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        return verify_signature(payment_message(order_id, payment_id), signature, self._key_secret)

    def verify_webhook(self, raw_payload: bytes, signature: str | None) -> bool:
        return verify_signature(raw_payload, signature, self._webhook_secret)
