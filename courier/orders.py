"""
Order workflow: gate every status change through the local transition check, then issue
exactly one remote mutation. A remote rejection is reported once against a fresh snapshot
and never retried, since replaying a stale transition could apply an invalid change.
"""
import logging
from dataclasses import dataclass, field

from courier.api_client import ApiError, OrderApiClient
from courier.metrics import transitions_rejected_total, transitions_total
from courier.models import NewOrder, OrderSnapshot
from courier.order_state import (
    OrderStatus,
    Role,
    SideEffect,
    TransitionError,
    TransitionResult,
    attempt_transition,
    available_transitions,
    is_accept_edge,
)
from courier.session import Session

logger = logging.getLogger(__name__)

# Remote statuses that mean "the transition's preconditions no longer hold"
REMOTE_REJECTION_STATUSES = frozenset({400, 403, 409, 422})


class OrderAccessError(Exception):
    """Actor may not perform a non-transition order operation (e.g. create for someone else)."""


@dataclass
class TransitionOutcome:
    ok: bool
    order: OrderSnapshot
    side_effects: tuple[SideEffect, ...] = field(default_factory=tuple)
    error: TransitionError | None = None
    remote_message: str | None = None

    @property
    def noop(self) -> bool:
        return self.ok and not self.side_effects


async def _apply(
    api: OrderApiClient,
    session: Session,
    order: OrderSnapshot,
    result: TransitionResult,
    driver_id: str | None,
) -> OrderSnapshot:
    actor = session.actor
    if actor.role is Role.DRIVER and is_accept_edge(order.status, result.new_status):
        return await api.accept_order(order.id)
    if actor.role is not Role.ADMIN and result.new_status is OrderStatus.CANCELLED:
        return await api.cancel_order(order.id)
    return await api.update_order_status(
        actor,
        order.id,
        result.new_status,
        driver_id=result.driver_assignment or driver_id,
    )


def _reject(order: OrderSnapshot, error: TransitionError, source: str, remote_message: str | None = None) -> TransitionOutcome:
    transitions_total.labels(outcome="rejected").inc()
    transitions_rejected_total.labels(error=error.value, source=source).inc()
    return TransitionOutcome(ok=False, order=order, error=error, remote_message=remote_message)


async def request_transition(
    api: OrderApiClient,
    session: Session,
    order_id: str,
    requested_status: OrderStatus,
    driver_id: str | None = None,
) -> TransitionOutcome:
    actor = session.actor
    order = await api.get_order(order_id)
    result = attempt_transition(order, requested_status, actor, driver_id=driver_id)

    if not result.ok:
        logger.info(
            "Rejected transition order_id=%s %s -> %s by %s %s: %s",
            order_id, order.status.value, requested_status.value, actor.role.value, actor.user_id, result.error.value,
        )
        return _reject(order, result.error, "local")

    if result.is_noop:
        transitions_total.labels(outcome="noop").inc()
        return TransitionOutcome(ok=True, order=order)

    try:
        updated = await _apply(api, session, order, result, driver_id)
    except ApiError as e:
        if e.status not in REMOTE_REJECTION_STATUSES:
            raise
        # Someone else moved the order first; classify against what the server now holds
        fresh = await api.get_order(order_id)
        recheck = attempt_transition(fresh, requested_status, actor, driver_id=driver_id)
        error = recheck.error if not recheck.ok else TransitionError.INVALID_EDGE
        logger.warning(
            "Remote rejected transition order_id=%s -> %s (HTTP %d: %s); now %s, reported as %s",
            order_id, requested_status.value, e.status, e.message, fresh.status.value, error.value,
        )
        return _reject(fresh, error, "remote", remote_message=e.message)

    if updated.status is not result.new_status:
        logger.warning(
            "Remote returned status %s for order_id=%s after requesting %s",
            updated.status.value, order_id, result.new_status.value,
        )
    transitions_total.labels(outcome="applied").inc()
    logger.info(
        "Order order_id=%s %s -> %s by %s %s",
        order_id, order.status.value, updated.status.value, actor.role.value, actor.user_id,
    )
    return TransitionOutcome(ok=True, order=updated, side_effects=result.side_effects)


async def list_available_actions(api: OrderApiClient, session: Session, order_id: str) -> tuple[OrderSnapshot, list[OrderStatus]]:
    order = await api.get_order(order_id)
    return order, available_transitions(order, session.actor)


async def create_order(api: OrderApiClient, session: Session, new_order: NewOrder) -> OrderSnapshot:
    actor = session.actor
    if actor.role is Role.DRIVER:
        raise OrderAccessError("Drivers cannot create orders")
    if actor.role is Role.CLIENT:
        if new_order.client_id not in (None, actor.user_id):
            raise OrderAccessError("Clients can only create orders for themselves")
        new_order = new_order.model_copy(update={"client_id": actor.user_id})
    elif new_order.client_id is None:
        raise OrderAccessError("Admin-created orders must name a client")
    order = await api.create_order(new_order)
    logger.info("Created order order_id=%s tracking=%s for client_id=%s", order.id, order.tracking_number, order.client_id)
    return order


async def current_orders(api: OrderApiClient, session: Session) -> list[OrderSnapshot]:
    return await api.current_orders(session.actor)


async def order_history(api: OrderApiClient, session: Session) -> list[OrderSnapshot]:
    return await api.order_history(session.actor)
