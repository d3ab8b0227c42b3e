"""
Per-request session: who is acting, with which bearer token, in which language.
Built explicitly from request headers and passed down; nothing is kept in module globals.
"""
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import Depends, Header, HTTPException

from courier.api_client import OrderApiClient
from courier.config import settings
from courier.messages import normalize_language
from courier.order_state import Actor
from courier.redis_client import register_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    actor: Actor
    token: str
    language: str = "en"


def get_token(authorization: str | None = Header(default=None)) -> str:
    """Opaque bearer token, forwarded as-is to the remote API."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(status_code=401, detail="Empty bearer token")
    return token


async def get_api(token: str = Depends(get_token)) -> AsyncIterator[OrderApiClient]:
    async with OrderApiClient(token) as api:
        yield api


async def get_session(
    token: str = Depends(get_token),
    api: OrderApiClient = Depends(get_api),
    accept_language: str | None = Header(default=None),
) -> Session:
    user = await api.get_me()
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is not active")
    try:
        await register_session(user.id, token)
    except redis.RedisError as e:
        logger.warning("Could not register session for user_id=%s in notification relay: %s", user.id, e)
    return Session(
        actor=user.to_actor(),
        token=token,
        language=normalize_language(accept_language, settings.default_language),
    )
