from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter

from . import models
from .database import engine, redis_conn
from .core.config import settings
from .core.exceptions import TaskHubError, Unauthenticated
from .core.logger import logger
from .routers import (
    auth_router, user_router, tasks_router, wallet_router, notifications_router, admin_router,
)

@asynccontextmanager
async def lifespan(_: FastAPI):
    models.Base.metadata.create_all(bind=engine)
    if settings.RATE_LIMIT_ENABLED:
        try:
            await redis_conn.ping()
            await FastAPILimiter.init(redis_conn)
            logger.info("Rate limiter enabled")
        except Exception as e:
            logger.warning(f"Redis unavailable, rate limiting disabled: {e}")
    yield
    if FastAPILimiter.redis is not None:
        await redis_conn.aclose()

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

@app.exception_handler(TaskHubError)
async def taskhub_error_handler(request: Request, exc: TaskHubError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=headers,
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal_error"})

app.include_router(auth_router)
app.include_router(user_router)
app.include_router(tasks_router)
app.include_router(wallet_router)
app.include_router(notifications_router)
app.include_router(admin_router)

@app.get("/health")
def health():
    return {"status": "ok"}
