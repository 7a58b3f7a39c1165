"""
FastAPI application entry point.

Run with:
    mailhook  (or: uvicorn mailhook.main:app --port 3000)
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from mailhook.config import get_settings
from mailhook.routes import auth, health, hook, subscriptions, user
from mailhook.routes.health import VERSION
from mailhook.utils.errors import AppError, NotSignedInError
from mailhook.utils.logger import get_logger, setup_logging

# Fail fast on missing credentials before serving anything
settings = get_settings()

setup_logging(logging.DEBUG if settings.debug else logging.INFO)
logger = get_logger(__name__)

app = FastAPI(
    title="mailhook",
    description="Mail change notifications for Microsoft Graph accounts",
    version=VERSION,
)


@app.exception_handler(NotSignedInError)
async def not_signed_in_handler(request: Request, exc: NotSignedInError):
    return PlainTextResponse("Error", status_code=exc.status_code)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        {"error": True, "code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
        status_code=500,
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(hook.router, prefix="/hook", tags=["Webhook"])
# Earlier clients registered the webhook under /auth
app.include_router(hook.router, prefix="/auth", tags=["Webhook"], include_in_schema=False)
app.include_router(user.router, tags=["Mail"])
app.include_router(subscriptions.router, tags=["Subscriptions"])


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run("mailhook.main:app", host="0.0.0.0", port=3000, reload=settings.debug)
