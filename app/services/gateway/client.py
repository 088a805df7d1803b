"""
Razorpay Orders API client using httpx sync client.
Only order creation is needed server-side: payment capture happens in the
hosted checkout and comes back as a signed confirmation or webhook.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx
import pybreaker

from app.core.errors import GatewayError
from app.utils.metrics import (
    gateway_requests_total,
    gateway_request_duration_seconds,
)


logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    """Order as minted by the gateway."""
    order_id: str
    amount: int
    currency: str
    receipt: str | None = None


class RazorpayClient:
    """
    Sync Razorpay client. One instance per process (see app.api.deps),
    the underlying httpx.Client keeps the connection pool.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        breaker: pybreaker.CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self._key_secret = key_secret
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._breaker = breaker
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._api_base,
                auth=(self.key_id, self._key_secret),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _record_request(self, method: str, status: str, duration: float) -> None:
        gateway_requests_total.labels(method=method, status=status).inc()
        gateway_request_duration_seconds.labels(method=method).observe(duration)

    @staticmethod
    def _describe(resp: httpx.Response) -> str:
        try:
            return resp.json().get("error", {}).get("description", "")
        except (ValueError, AttributeError):
            return resp.text[:200]

    def _send(self, path: str, body: dict[str, Any]) -> httpx.Response:
        """Only 5xx counts as a breaker failure; 4xx is returned to the caller."""
        resp = self.client.post(path, json=body)
        if resp.status_code >= 500:
            raise GatewayError(f"gateway returned {resp.status_code}: {self._describe(resp)}")
        return resp

    def _post(self, method: str, path: str, body: dict[str, Any]) -> dict:
        start = time.time()
        try:
            if self._breaker is not None:
                resp = self._breaker.call(self._send, path, body)
            else:
                resp = self._send(path, body)
        except pybreaker.CircuitBreakerError as e:
            self._record_request(method, "circuit_open", time.time() - start)
            logger.warning("gateway_circuit_open", extra={"error": str(e)})
            raise GatewayError("payment gateway temporarily unavailable") from e
        except httpx.HTTPError as e:
            self._record_request(method, "error", time.time() - start)
            logger.warning("gateway_transport_error", extra={"error": str(e)})
            raise GatewayError("payment gateway unreachable") from e
        except GatewayError:
            self._record_request(method, "error", time.time() - start)
            raise

        if resp.status_code >= 400:
            self._record_request(method, "rejected", time.time() - start)
            raise GatewayError(f"gateway returned {resp.status_code}: {self._describe(resp)}")
        try:
            data = resp.json()
        except ValueError as e:
            self._record_request(method, "error", time.time() - start)
            raise GatewayError("gateway returned a non-JSON body") from e
        if not isinstance(data, dict):
            self._record_request(method, "error", time.time() - start)
            raise GatewayError("gateway returned an unexpected body")
        self._record_request(method, "success", time.time() - start)
        return data

    def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        """Mint a gateway order id for amount (minor units)."""
        data = self._post(
            "create_order",
            "/orders",
            {
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        order_id = data.get("id")
        if not order_id:
            raise GatewayError("gateway response has no order id")
        return GatewayOrder(
            order_id=order_id,
            amount=int(data.get("amount", amount)),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
