from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

import httpx

from settlement.config import settings
from settlement.errors import RequestError, TransportError
from settlement.utils.correlation import ensure_correlation_id
from settlement.utils.money import to_wire

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Session handed in by whoever performed the login."""

    access_token: str
    actor: str = "admin"


class SettlementClient:
    """Async client for the store's admin REST API.

    Every response is a JSON envelope ``{success, ...}``. Non-2xx statuses and
    ``success: false`` raise :class:`RequestError`; network failures and
    non-JSON bodies raise :class:`TransportError`. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
            transport=transport,
        )

    @property
    def actor(self) -> str:
        return self.credentials.actor

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "X-Request-ID": ensure_correlation_id(),
        }
        if self.credentials.access_token:
            headers["Authorization"] = f"Bearer {self.credentials.access_token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error("Transport error on %s %s: %s", method, path, e)
            raise TransportError(f"Error de conexión con el servidor: {e}") from e

        content_type = resp.headers.get("content-type", "")
        if "application/json" not in content_type:
            snippet = resp.text[:100]
            logger.error("Non-JSON response on %s %s (status %s)", method, path, resp.status_code)
            raise TransportError(f"Respuesta no válida del servidor: {snippet}")
        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError("Respuesta no válida del servidor: JSON malformado") from e
        if not isinstance(data, dict):
            raise TransportError("Respuesta no válida del servidor: se esperaba un objeto JSON")

        if resp.is_error:
            message = data.get("message") or data.get("error") or f"Error {resp.status_code}: {resp.reason_phrase}"
            logger.warning("Request failed %s %s: %s %s", method, path, resp.status_code, message)
            raise RequestError(str(message), status_code=resp.status_code)
        if data.get("success") is False:
            message = data.get("message") or data.get("error") or "La operación no fue exitosa"
            logger.warning("Request rejected %s %s: %s", method, path, message)
            raise RequestError(str(message), status_code=resp.status_code)
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        return data

    @staticmethod
    def _field(data: Mapping[str, Any], key: str) -> Any:
        value = data.get(key)
        if value is None:
            raise TransportError(f"Respuesta no válida del servidor: falta '{key}'")
        return value

    # Orders
    async def list_orders(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/orders")
        return list(data.get("orders") or [])

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/orders/{order_id}")
        return self._field(data, "order")

    async def update_order_status(self, order_id: str, order_status: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/orders/{order_id}/status", json={"orderStatus": order_status})

    # Reservation plans
    async def list_plans(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        data = await self._request("GET", "/reservation-plans", params=params)
        return list(data.get("plans") or [])

    async def get_plan(self, plan_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/reservation-plans/{plan_id}")
        return self._field(data, "plan")

    async def create_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/reservation-plans", json=payload)

    async def add_plan_payment(self, plan_id: str, amount: Decimal, payment_date: str, notes: str = "") -> Dict[str, Any]:
        body = {"amount": to_wire(amount), "paymentDate": payment_date, "notes": notes}
        return await self._request("POST", f"/reservation-plans/{plan_id}/payments", json=body)

    async def verify_plan_payment(self, payment_id: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/reservation-plans/payments/{payment_id}/verify", json={})

    # Transfer receipts
    async def list_receipts(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("GET", "/receipts", params=params)

    async def update_receipt_status(self, owner_id: str, status: str, rejection_reason: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"status": status}
        if rejection_reason is not None:
            body["rejectionReason"] = rejection_reason
        return await self._request("PUT", f"/receipts/{owner_id}/status", json=body)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SettlementClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()


def get_client(credentials: Optional[Credentials] = None) -> SettlementClient:
    creds = credentials or Credentials(access_token=settings.api_token, actor=settings.api_actor)
    return SettlementClient(settings.api_base_url, creds, timeout=settings.http_timeout_seconds)
