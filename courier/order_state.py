"""
Order lifecycle state machine with role-gated transitions.

The remote API is the authority on order state; this module only decides which
status changes the current actor may request, so the UI offers valid actions and
fails fast with one unambiguous error otherwise. Decisions are returned as values.
"""
from dataclasses import dataclass, field
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Role(str, Enum):
    CLIENT = "CLIENT"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class TransitionError(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_EDGE = "INVALID_EDGE"
    TERMINAL_STATE = "TERMINAL_STATE"


class SideEffect(str, Enum):
    REQUEST_STATUS_UPDATE = "REQUEST_STATUS_UPDATE"
    NOTIFY_STATUS_CHANGE = "NOTIFY_STATUS_CHANGE"
    ASSIGN_DRIVER = "ASSIGN_DRIVER"
    PROMPT_PAYMENT_CONFIRMATION = "PROMPT_PAYMENT_CONFIRMATION"
    RELEASE_DRIVER_ASSIGNMENT = "RELEASE_DRIVER_ASSIGNMENT"


TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
# The only statuses an order may hold without an assigned driver
DRIVERLESS_STATES = frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED})

# Lifecycle order, used to list available actions deterministically
STATUS_ORDER = [
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.PICKED_UP,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
]

# Current status -> allowed next status -> roles that may take the edge
VALID_TRANSITIONS: dict[OrderStatus, dict[OrderStatus, frozenset[Role]]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED: frozenset({Role.DRIVER}),
        OrderStatus.CANCELLED: frozenset({Role.CLIENT}),
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.PICKED_UP: frozenset({Role.DRIVER}),
        OrderStatus.CANCELLED: frozenset({Role.CLIENT, Role.DRIVER}),
    },
    OrderStatus.PICKED_UP: {
        OrderStatus.IN_TRANSIT: frozenset({Role.DRIVER}),
        OrderStatus.CANCELLED: frozenset({Role.DRIVER}),
    },
    OrderStatus.IN_TRANSIT: {
        OrderStatus.DELIVERED: frozenset({Role.DRIVER}),
    },
    OrderStatus.DELIVERED: {},  # terminal
    OrderStatus.CANCELLED: {},  # terminal
}


@dataclass(frozen=True)
class Actor:
    role: Role
    user_id: str


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    new_status: OrderStatus | None = None
    driver_assignment: str | None = None
    side_effects: tuple[SideEffect, ...] = field(default_factory=tuple)
    error: TransitionError | None = None

    @property
    def is_noop(self) -> bool:
        return self.ok and not self.side_effects

    @classmethod
    def failure(cls, error: TransitionError) -> "TransitionResult":
        return cls(ok=False, error=error)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES


def is_accept_edge(current: OrderStatus, requested: OrderStatus) -> bool:
    return current is OrderStatus.PENDING and requested is OrderStatus.ACCEPTED


def _side_effects(order, requested: OrderStatus, driver_assignment: str | None) -> tuple[SideEffect, ...]:
    effects = [SideEffect.REQUEST_STATUS_UPDATE, SideEffect.NOTIFY_STATUS_CHANGE]
    if driver_assignment is not None:
        effects.append(SideEffect.ASSIGN_DRIVER)
    if requested is OrderStatus.DELIVERED:
        effects.append(SideEffect.PROMPT_PAYMENT_CONFIRMATION)
    if requested is OrderStatus.CANCELLED or (requested is OrderStatus.PENDING and order.driver_id):
        effects.append(SideEffect.RELEASE_DRIVER_ASSIGNMENT)
    return tuple(effects)


def _admin_override(order, requested: OrderStatus, driver_id: str | None) -> TransitionResult:
    if requested not in DRIVERLESS_STATES and order.driver_id is None and driver_id is None:
        # Every status past PENDING needs an assigned driver
        return TransitionResult.failure(TransitionError.INVALID_EDGE)
    assignment = None
    if driver_id is not None and requested not in DRIVERLESS_STATES:
        if order.driver_id is None or order.driver_id != driver_id:
            assignment = driver_id
    return TransitionResult(
        ok=True,
        new_status=requested,
        driver_assignment=assignment,
        side_effects=_side_effects(order, requested, assignment),
    )


def _is_party(order, actor: Actor) -> bool:
    """Owner, assignee or admin."""
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.CLIENT:
        return actor.user_id == order.client_id
    return order.driver_id is not None and actor.user_id == order.driver_id


def _is_related(order, actor: Actor, current: OrderStatus, requested: OrderStatus) -> bool:
    if actor.role is Role.DRIVER and is_accept_edge(current, requested):
        return order.driver_id is None or order.driver_id == actor.user_id
    return _is_party(order, actor)


def attempt_transition(
    order,
    requested_status: OrderStatus,
    actor: Actor,
    *,
    driver_id: str | None = None,
) -> TransitionResult:
    """
    Decide whether `actor` may move `order` to `requested_status`.

    `order` is any snapshot exposing `status`, `client_id` and `driver_id`.
    Check order: terminal state, no-op (parties only), admin override, graph
    edge, role and ownership. `driver_id` is only honoured for an admin override,
    which needs one to move an unassigned order past PENDING. Unknown statuses are
    reported as INVALID_EDGE.
    """
    try:
        current = OrderStatus(order.status)
        requested = OrderStatus(requested_status)
    except ValueError:
        return TransitionResult.failure(TransitionError.INVALID_EDGE)

    if is_terminal(current):
        return TransitionResult.failure(TransitionError.TERMINAL_STATE)

    if requested is current:
        # Only a party to the order gets the no-op; for anyone else there is no such edge
        if _is_party(order, actor):
            return TransitionResult(ok=True, new_status=current)
        return TransitionResult.failure(TransitionError.INVALID_EDGE)

    if actor.role is Role.ADMIN:
        return _admin_override(order, requested, driver_id)

    allowed_roles = VALID_TRANSITIONS[current].get(requested)
    if allowed_roles is None:
        return TransitionResult.failure(TransitionError.INVALID_EDGE)

    if actor.role not in allowed_roles or not _is_related(order, actor, current, requested):
        return TransitionResult.failure(TransitionError.UNAUTHORIZED)

    assignment = actor.user_id if is_accept_edge(current, requested) else None
    return TransitionResult(
        ok=True,
        new_status=requested,
        driver_assignment=assignment,
        side_effects=_side_effects(order, requested, assignment),
    )


def available_transitions(order, actor: Actor) -> list[OrderStatus]:
    """Statuses the actor can move the order to right now (no-op excluded)."""
    return [
        status
        for status in STATUS_ORDER
        if status is not OrderStatus(order.status) and attempt_transition(order, status, actor).ok
    ]
