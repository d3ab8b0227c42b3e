from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from courier.api_client import OrderApiClient
from courier.notifications import mark_as_read, unread_count
from courier.redis_client import pop_toasts
from courier.session import Session, get_api, get_session

router = APIRouter(prefix="/notifications", tags=["notifications"])


class MarkReadBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notification_ids: list[str] = Field(default_factory=list, alias="notificationIds")


@router.get("")
async def list_notifications(
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    notifications = await api.get_notifications()
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "notifications": [n.model_dump(by_alias=True, mode="json") for n in notifications],
            "unreadCount": unread_count(notifications),
        },
    )


@router.post("/mark-read")
async def mark_read(
    body: MarkReadBody,
    session: Session = Depends(get_session),
    api: OrderApiClient = Depends(get_api),
) -> JSONResponse:
    await mark_as_read(api, body.notification_ids)
    return JSONResponse(status_code=200, content={"status": "ok", "marked": len(body.notification_ids)})


@router.get("/toasts")
async def drain_toasts(
    limit: int = Query(default=50, ge=1, le=500),
    session: Session = Depends(get_session),
) -> JSONResponse:
    """Toasts queued by the notification worker since the last call, oldest first."""
    toasts = await pop_toasts(session.actor.user_id, limit=limit)
    return JSONResponse(status_code=200, content={"status": "ok", "toasts": toasts})
