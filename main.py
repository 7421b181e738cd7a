from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from core.config import settings
from core.db import Base, engine
from core.celery import celery_app
from core.logging_config import get_logger
import models  # noqa: F401
from routes.payments import router as payments_router
from routes.users import router as users_router

logger = get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Razorpay checkout, verification and webhook reconciliation for subscription plans",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


def payments_openapi():
    """OpenAPI document with bearer auth declared for the user-facing routes."""
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(title=app.title, version=app.version, description=app.description, routes=app.routes)
    components = schema.setdefault("components", {})
    components["securitySchemes"] = {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}
    schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = schema
    return schema


app.openapi = payments_openapi

# Dev/test convenience; production schemas are migrated separately
Base.metadata.create_all(bind=engine)

app.include_router(payments_router)
app.include_router(users_router)

if not settings.RAZORPAY_WEBHOOK_SECRET:
    logger.warning("razorpay_webhook_secret_unset", detail="webhook deliveries will be rejected")
if not settings.RAZORPAY_KEY_SECRET:
    logger.warning("razorpay_key_secret_unset", detail="checkout verification will be rejected")


@app.get("/health")
async def health_check():
    """Liveness plus which Razorpay credentials are present."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "razorpay": {
            "checkout_configured": bool(settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET),
            "webhook_configured": bool(settings.RAZORPAY_WEBHOOK_SECRET),
        },
    }


@app.get("/celery-health")
async def celery_health_check():
    """Report whether any worker is consuming the notification queue."""
    try:
        workers = celery_app.control.inspect(timeout=1.0).stats()
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
    if not workers:
        return {"status": "no_workers", "message": "Payment emails will be sent inline"}
    return {"status": "healthy", "workers": len(workers)}


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=settings.DEBUG)
