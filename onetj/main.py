# onetj/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError

from onetj.api.tongji import router as tongji_router
from onetj.clients.tongji_client import TongjiClient
from onetj.core.config import settings
from onetj.core.errors import (
    SessionError,
    TransportError,
    http_exception_handler,
    session_error_handler,
    transport_error_handler,
    validation_exception_handler,
)
from onetj.middlewares.request_id import request_id_middleware
from onetj.middlewares.logging import LoggingMiddleware

logging.getLogger("onetj").setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 整个进程一个 TongjiClient（内含一个 httpx.AsyncClient）
    # 测试里可以提前塞好 app.state.tongji_client
    created = getattr(app.state, "tongji_client", None) is None
    if created:
        app.state.tongji_client = TongjiClient()
    yield
    if created:
        await app.state.tongji_client.aclose()
        app.state.tongji_client = None


app = FastAPI(
    title="OneTongji API",
    lifespan=lifespan,
)

# middleware
app.middleware("http")(request_id_middleware)
app.add_middleware(LoggingMiddleware)

# exception handlers
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SessionError, session_error_handler)
app.add_exception_handler(TransportError, transport_error_handler)

# routers
app.include_router(tongji_router)


@app.get("/health")
async def health():
    return {"status": "ok", "message": "FastAPI is running!"}
