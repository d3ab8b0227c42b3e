"""
Shared fixtures: an in-memory stand-in for the remote brokerage API (served through
httpx.MockTransport) and fakeredis in place of the Redis connection.
"""
import json
import re
import uuid

import fakeredis
import fakeredis.aioredis
import httpx
import pytest
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from courier import redis_client
from courier.api_client import OrderApiClient
from courier.main import app
from courier.session import get_api, get_token

REMOTE_BASE = "http://remote.test"

USERS = {
    "tok-c1": {"id": "c1", "name": "Client One", "role": "CLIENT"},
    "tok-c2": {"id": "c2", "name": "Client Two", "role": "CLIENT"},
    "tok-d1": {"id": "d1", "name": "Driver One", "role": "DRIVER"},
    "tok-d2": {"id": "d2", "name": "Driver Two", "role": "DRIVER"},
    "tok-admin": {"id": "a1", "name": "Admin", "role": "ADMIN"},
}


def order_payload(status: str = "PENDING", **overrides) -> dict:
    order = {
        "id": "o1",
        "trackingNumber": "TRK-0001",
        "status": status,
        "clientId": "c1",
        "driverId": None if status == "PENDING" else "d1",
        "price": 120.0,
        "paymentStatus": "PENDING",
        "commissionPaid": False,
    }
    order.update(overrides)
    return order


def envelope(key: str, value) -> dict:
    return {"status": "success", "data": {key: value}}


class FakeRemote:
    """Minimal brokerage API: enough routes to drive the gateway end to end."""

    def __init__(self):
        self.orders: dict[str, dict] = {}
        self.notifications: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        # (status_code, message, mutate(order)) applied to the next mutation instead of performing it
        self.reject_next: tuple[int, str, object] | None = None

    def add_order(self, **kwargs) -> dict:
        order = order_payload(**kwargs)
        self.orders[order["id"]] = order
        return order

    @property
    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("PATCH", "POST", "PUT", "DELETE")]

    def _mutate(self, order_id: str, apply) -> httpx.Response:
        order = self.orders.get(order_id)
        if order is None:
            return httpx.Response(404, json={"status": "fail", "message": "Order not found"})
        if self.reject_next is not None:
            code, message, concurrent_change = self.reject_next
            self.reject_next = None
            if concurrent_change:
                concurrent_change(order)
            return httpx.Response(code, json={"status": "fail", "message": message})
        apply(order)
        return httpx.Response(200, json=envelope("order", order))

    def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        user = USERS.get(token)
        if user is None:
            return httpx.Response(401, json={"status": "fail", "message": "Invalid token"})
        body = json.loads(request.content) if request.content else {}

        if method == "GET" and path == "/api/auth/me":
            return httpx.Response(200, json=envelope("user", user))
        if method == "GET" and path == "/api/notifications":
            return httpx.Response(200, json=envelope("notifications", self.notifications.get(user["id"], [])))
        if method == "POST" and path == "/api/notifications/mark-read":
            for n in self.notifications.get(user["id"], []):
                if n["id"] in body["notificationIds"]:
                    n["read"] = True
            return httpx.Response(200, json={"status": "success", "data": {}})
        if method == "POST" and path == "/api/orders":
            order = order_payload(
                id=f"o-{uuid.uuid4().hex[:6]}",
                clientId=body["clientId"],
                pickupAddress=body["pickupAddress"],
                deliveryAddress=body["deliveryAddress"],
                packageDetails=body["packageDetails"],
            )
            self.orders[order["id"]] = order
            return httpx.Response(201, json=envelope("order", order))

        m = re.fullmatch(r"/api/orders/(client|driver)/([^/]+)/(current|history)", path)
        if method == "GET" and m:
            field = "clientId" if m.group(1) == "client" else "driverId"
            terminal = {"DELIVERED", "CANCELLED"}
            wanted = [
                o for o in self.orders.values()
                if o[field] == m.group(2) and ((o["status"] in terminal) == (m.group(3) == "history"))
            ]
            return httpx.Response(200, json=envelope("orders", wanted))

        if method == "GET" and path == "/api/admin/orders":
            if user["role"] != "ADMIN":
                return httpx.Response(403, json={"status": "fail", "message": "Admins only"})
            status = request.url.params.get("status")
            wanted = [o for o in self.orders.values() if status is None or o["status"] == status]
            return httpx.Response(200, json=envelope("orders", wanted))

        m = re.fullmatch(r"/api/payments/commission/([^/]+)", path)
        if method == "GET" and m:
            order = self.orders[m.group(1)]
            return httpx.Response(200, json=envelope("commission", {
                "order": {"id": order["id"], "trackingNumber": order["trackingNumber"], "price": order["price"], "commissionPaid": False},
                "commissionRate": 0.1,
                "commissionAmount": order["price"] * 0.1,
                "paymentStatus": "PENDING",
            }))

        m = re.fullmatch(r"/api/orders/([^/]+)", path)
        if method == "GET" and m:
            order = self.orders.get(m.group(1))
            if order is None:
                return httpx.Response(404, json={"status": "fail", "message": "Order not found"})
            return httpx.Response(200, json=envelope("order", order))

        m = re.fullmatch(r"/api/orders/([^/]+)/accept", path)
        if method == "PATCH" and m:
            return self._mutate(m.group(1), lambda o: o.update(status="ACCEPTED", driverId=user["id"]))

        m = re.fullmatch(r"/api/orders/([^/]+)/cancel", path)
        if method == "PATCH" and m:
            return self._mutate(m.group(1), lambda o: o.update(status="CANCELLED"))

        m = re.fullmatch(r"/api/(?:admin/orders|orders/(?:client|driver)/[^/]+/orders)/([^/]+)/status", path)
        if method == "PATCH" and m:
            def apply(o):
                o["status"] = body["status"]
                if "driverId" in body:
                    o["driverId"] = body["driverId"]
            return self._mutate(m.group(1), apply)

        return httpx.Response(404, json={"status": "fail", "message": f"No route {method} {path}"})


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def make_api(remote):
    def _make(token: str) -> OrderApiClient:
        return OrderApiClient(token, base_url=REMOTE_BASE, transport=httpx.MockTransport(remote.handle))
    return _make


@pytest.fixture
def fake_redis():
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    redis_client._redis = client
    yield client
    redis_client._redis = None


@pytest.fixture
def gateway(remote, fake_redis):
    """Gateway app whose remote API calls land on the in-memory FakeRemote."""
    async def _api(token: str = Depends(get_token)):
        async with OrderApiClient(token, base_url=REMOTE_BASE, transport=httpx.MockTransport(remote.handle)) as api:
            yield api

    app.dependency_overrides[get_api] = _api
    yield AsyncClient(transport=ASGITransport(app=app), base_url="http://gateway.test")
    app.dependency_overrides.clear()
