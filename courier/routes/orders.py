from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from courier import orders
from courier.api_client import OrderApiClient
from courier.messages import error_message, status_label, transition_message
from courier.models import NewOrder
from courier.order_state import OrderStatus, SideEffect, TransitionError
from courier.session import Session, get_api, get_session

router = APIRouter(prefix="/orders", tags=["orders"])

PAYMENT_CONFIRMATION_PATH = "/dashboard/payment-confirmation"

ERROR_HTTP_STATUS = {
    TransitionError.UNAUTHORIZED: 403,
    TransitionError.INVALID_EDGE: 409,
    TransitionError.TERMINAL_STATE: 409,
}


class StatusUpdateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: OrderStatus = Field(..., description="Requested order status")
    driver_id: str | None = Field(default=None, alias="driverId", description="Driver to assign (admin override only)")


def _dump(order) -> dict:
    return order.model_dump(by_alias=True, mode="json")


@router.get("/current")
async def list_current(
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    items = await orders.current_orders(api, session)
    return JSONResponse(status_code=200, content={"status": "ok", "orders": [_dump(o) for o in items]})


@router.get("/history")
async def list_history(
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    items = await orders.order_history(api, session)
    return JSONResponse(status_code=200, content={"status": "ok", "orders": [_dump(o) for o in items]})


@router.post("")
async def create(
    body: NewOrder,
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    order = await orders.create_order(api, session, body)
    return JSONResponse(status_code=201, content={"status": "ok", "order": _dump(order)})


@router.get("/{order_id}/actions")
async def available_actions(
    order_id: str,
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    """Current status plus the statuses this user may move the order to."""
    order, statuses = await orders.list_available_actions(api, session, order_id)
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "orderId": order.id,
            "currentStatus": order.status.value,
            "currentStatusLabel": status_label(order.status, session.language),
            "actions": [
                {"status": s.value, "label": status_label(s, session.language)} for s in statuses
            ],
        },
    )


@router.patch("/{order_id}/status")
async def update_status(
    order_id: str,
    body: StatusUpdateBody,
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    """
    Gate the status change locally, then apply it remotely. Rejections come back as
    403 (UNAUTHORIZED) or 409 (INVALID_EDGE / TERMINAL_STATE) with the refreshed order;
    the client should re-render from it rather than retry.
    """
    outcome = await orders.request_transition(api, session, order_id, body.status, driver_id=body.driver_id)
    if not outcome.ok:
        return JSONResponse(
            status_code=ERROR_HTTP_STATUS[outcome.error],
            content={
                "status": "error",
                "error": outcome.error.value,
                "message": error_message(outcome.error, session.language),
                "remoteMessage": outcome.remote_message,
                "refresh": True,
                "order": _dump(outcome.order),
            },
        )
    content = {
        "status": "ok",
        "order": _dump(outcome.order),
        "sideEffects": [e.value for e in outcome.side_effects],
        "message": transition_message(outcome.order.status, session.language, noop=outcome.noop),
    }
    if SideEffect.PROMPT_PAYMENT_CONFIRMATION in outcome.side_effects:
        content["redirect"] = PAYMENT_CONFIRMATION_PATH
    return JSONResponse(status_code=200, content=content)


@router.get("/{order_id}/commission")
async def commission(
    order_id: str,
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    summary = await api.get_order_commission(order_id)
    return JSONResponse(status_code=200, content={"status": "ok", "commission": summary.model_dump(by_alias=True, mode="json")})
