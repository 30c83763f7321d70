from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import init_db

# Import routers
from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.billing import router as billing_router
from app.api.mp_webhook import router as mp_webhook_router
from app.api.premium import router as premium_router

@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield

def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    @app.get("/health")
    def health():
        return {"status" : "ok", "env" : settings.app_env}

    # Include authentication routes
    app.include_router(auth_router)
    # Include billing routes
    app.include_router(billing_router)
    # Include Mercado Pago webhook routes
    app.include_router(mp_webhook_router)
    # Include paid-access routes
    app.include_router(premium_router)
    # Include admin routes
    app.include_router(admin_router)

    return app

app = create_app()
