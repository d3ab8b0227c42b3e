"""
Async client for the remote brokerage REST API.

Every response must use the single envelope {"status": "success", "data": {<key>: ...}};
the expected key is pulled out and validated with pydantic. Anything else raises
ResponseSchemaError rather than guessing at alternate layouts.
"""
import logging
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from courier.config import settings
from courier.models import ApiEnvelope, CommissionSummary, NewOrder, Notification, OrderSnapshot, User
from courier.order_state import STATUS_ORDER, TERMINAL_STATES, Actor, OrderStatus, Role

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiClientError(Exception):
    """Base class for failures talking to the remote API."""


class NetworkError(ApiClientError):
    """Transport failure: the remote API could not be reached."""


class AuthError(ApiClientError):
    """Remote API rejected the bearer token (HTTP 401)."""


class ApiError(ApiClientError):
    """Remote API answered with a non-2xx status."""
    def __init__(self, status: int, message: str, details: Any = None):
        self.status = status
        self.message = message
        self.details = details
        super().__init__(f"{status}: {message}")


class ResponseSchemaError(ApiClientError):
    """Response body did not match the expected envelope or model."""


def bearer(token: str) -> str:
    return token if token.startswith("Bearer ") else f"Bearer {token}"


def unwrap(body: Any, key: str, model: type[T] | Any) -> T:
    """Validate the envelope and return data[key] parsed as `model`."""
    try:
        envelope = ApiEnvelope.model_validate(body)
    except ValidationError as e:
        raise ResponseSchemaError(f"Unexpected response envelope: {e}") from e
    if key not in envelope.data:
        raise ResponseSchemaError(f"Response data missing {key!r} (got {sorted(envelope.data)})")
    try:
        return TypeAdapter(model).validate_python(envelope.data[key])
    except ValidationError as e:
        raise ResponseSchemaError(f"Invalid {key!r} in response: {e}") from e


class OrderApiClient:
    def __init__(self, token: str, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.api_timeout_seconds,
            headers={
                "Authorization": bearer(token),
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OrderApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Any = None, params: dict | None = None) -> Any:
        logger.debug("API request %s %s", method, path)
        try:
            resp = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path}: {e}") from e

        if resp.status_code == 401:
            raise AuthError("Remote API rejected credentials")

        content_type = resp.headers.get("content-type", "")
        if "application/json" not in content_type:
            if resp.is_success:
                raise ResponseSchemaError(f"{method} {path}: non-JSON response ({content_type or 'no content-type'})")
            raise ApiError(resp.status_code, "Server returned non-JSON response")

        try:
            body = resp.json()
        except ValueError as e:
            raise ResponseSchemaError(f"{method} {path}: invalid JSON body") from e
        if not resp.is_success:
            message = body.get("message") if isinstance(body, dict) else None
            raise ApiError(resp.status_code, message or "An error occurred", details=body)
        return body

    # --- identity ---

    async def get_me(self) -> User:
        body = await self._request("GET", "/api/auth/me")
        return unwrap(body, "user", User)

    # --- orders ---

    async def get_order(self, order_id: str) -> OrderSnapshot:
        body = await self._request("GET", f"/api/orders/{order_id}")
        return unwrap(body, "order", OrderSnapshot)

    async def _admin_orders(self, statuses: list[OrderStatus]) -> list[OrderSnapshot]:
        """Admins list every order through /api/admin/orders, one status filter at a time."""
        orders: list[OrderSnapshot] = []
        for status in statuses:
            body = await self._request("GET", "/api/admin/orders", params={"status": status.value})
            orders.extend(unwrap(body, "orders", list[OrderSnapshot]))
        return orders

    async def current_orders(self, actor: Actor) -> list[OrderSnapshot]:
        if actor.role is Role.ADMIN:
            return await self._admin_orders([s for s in STATUS_ORDER if s not in TERMINAL_STATES])
        body = await self._request("GET", f"/api/orders/{actor.role.value.lower()}/{actor.user_id}/current")
        return unwrap(body, "orders", list[OrderSnapshot])

    async def order_history(self, actor: Actor) -> list[OrderSnapshot]:
        if actor.role is Role.ADMIN:
            return await self._admin_orders([s for s in STATUS_ORDER if s in TERMINAL_STATES])
        body = await self._request("GET", f"/api/orders/{actor.role.value.lower()}/{actor.user_id}/history")
        return unwrap(body, "orders", list[OrderSnapshot])

    async def create_order(self, order: NewOrder) -> OrderSnapshot:
        body = await self._request("POST", "/api/orders", json=order.model_dump(by_alias=True, mode="json", exclude_none=True))
        return unwrap(body, "order", OrderSnapshot)

    async def accept_order(self, order_id: str) -> OrderSnapshot:
        body = await self._request("PATCH", f"/api/orders/{order_id}/accept", json={})
        return unwrap(body, "order", OrderSnapshot)

    async def cancel_order(self, order_id: str) -> OrderSnapshot:
        body = await self._request("PATCH", f"/api/orders/{order_id}/cancel", json={})
        return unwrap(body, "order", OrderSnapshot)

    async def update_order_status(
        self,
        actor: Actor,
        order_id: str,
        status: OrderStatus,
        driver_id: str | None = None,
    ) -> OrderSnapshot:
        """Role-specific status endpoint; only admins may attach a driver assignment."""
        if actor.role is Role.ADMIN:
            path = f"/api/admin/orders/{order_id}/status"
        else:
            path = f"/api/orders/{actor.role.value.lower()}/{actor.user_id}/orders/{order_id}/status"
        payload: dict[str, Any] = {"status": status.value}
        if driver_id is not None and actor.role is Role.ADMIN:
            payload["driverId"] = driver_id
        body = await self._request("PATCH", path, json=payload)
        return unwrap(body, "order", OrderSnapshot)

    # --- notifications ---

    async def get_notifications(self) -> list[Notification]:
        body = await self._request("GET", "/api/notifications")
        return unwrap(body, "notifications", list[Notification])

    async def mark_notifications_read(self, notification_ids: list[str]) -> None:
        await self._request("POST", "/api/notifications/mark-read", json={"notificationIds": notification_ids})

    # --- payments ---

    async def get_order_commission(self, order_id: str) -> CommissionSummary:
        body = await self._request("GET", f"/api/payments/commission/{order_id}")
        return unwrap(body, "commission", CommissionSummary)

