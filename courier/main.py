import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from courier.api_client import ApiError, AuthError, NetworkError, ResponseSchemaError
from courier.metrics import get_metrics_bytes, get_metrics_content_type
from courier.orders import OrderAccessError
from courier.redis_client import close_redis, get_redis
from courier.routes import notifications, orders

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_redis()
    yield
    await close_redis()


app = FastAPI(title="Courier Gateway", lifespan=lifespan)
app.include_router(orders.router)
app.include_router(notifications.router)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"status": "error", "error": "AUTH", "message": str(exc)})


@app.exception_handler(OrderAccessError)
async def order_access_error_handler(request: Request, exc: OrderAccessError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"status": "error", "error": "FORBIDDEN", "message": str(exc)})


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.warning("Upstream API error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"status": "error", "error": "UPSTREAM", "upstreamStatus": exc.status, "message": exc.message},
    )


@app.exception_handler(ResponseSchemaError)
async def schema_error_handler(request: Request, exc: ResponseSchemaError) -> JSONResponse:
    logger.error("Upstream response failed validation on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"status": "error", "error": "UPSTREAM_SCHEMA", "message": "Unexpected response from order service"},
    )


@app.exception_handler(NetworkError)
async def network_error_handler(request: Request, exc: NetworkError) -> JSONResponse:
    logger.warning("Upstream unreachable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"status": "error", "error": "UPSTREAM_UNAVAILABLE", "message": "Order service unavailable"},
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint: transition outcomes and rejections."""
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )
