from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from settlement.api.client import Credentials, SettlementClient

BASE_URL = "http://api.test/api"

Route = Union[Callable[[httpx.Request], Any], Dict[str, Any], httpx.Response]


class FakeApi:
    """In-memory stand-in for the admin REST API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Route] = {}

    def on(self, method: str, path: str, route: Route) -> None:
        self.routes[(method.upper(), "/api" + path)] = route

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"success": False, "message": f"no route {request.method} {request.url.path}"})
        result = route(request) if callable(route) else route
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        out = []
        for r in self.requests:
            if method and r.method != method.upper():
                continue
            if path and r.url.path != "/api" + path:
                continue
            out.append(r)
        return out

    def writes(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method in {"POST", "PUT", "DELETE"}]


def body_of(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content.decode("utf-8") or "{}")


def plan_payload(
    total: float = 900,
    paid: float = 0,
    *,
    status: str = "active",
    payments: Optional[List[Dict[str, Any]]] = None,
    plan_id: str = "plan-1",
    remaining: Optional[float] = None,
) -> Dict[str, Any]:
    return {
        "id": plan_id,
        "userId": "user-1",
        "productId": "prod-1",
        "productName": "Campera de cuero",
        "quantity": 1,
        "totalAmount": total,
        "paidAmount": paid,
        "remainingAmount": total - paid if remaining is None else remaining,
        "numberOfPayments": 3,
        "paymentFrequency": "mensual",
        "status": status,
        "payments": payments or [],
    }


def order_payload(order_id: str = "ord-1", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": order_id,
        "orderNumber": "ORD-0001",
        "orderStatus": "pending",
        "paymentStatus": "pending",
        "paymentMethod": "cash",
        "total": 1500.5,
        "items": [{"productId": "prod-1", "name": "Remera", "quantity": 2, "price": 750.25}],
        "createdAt": "2026-10-01T12:00:00Z",
        "updatedAt": "2026-10-01T12:00:00Z",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def client(api: FakeApi) -> SettlementClient:
    return SettlementClient(
        BASE_URL,
        Credentials(access_token="test-token-123456", actor="tester"),
        transport=httpx.MockTransport(api.handle),
    )
