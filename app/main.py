import logging
import uuid
from time import monotonic

from fastapi import FastAPI, Request

from app.api.network import router as network_router
from app.errors import register_error_handlers
from app.logging import configure_logging

app = FastAPI(title="ispnet IPAM API")
logger = logging.getLogger(__name__)

configure_logging()
register_error_handlers(app)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    started = monotonic()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (monotonic() - started) * 1000,
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
        },
    )
    return response


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(network_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
