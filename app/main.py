import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import CORS_ORIGINS, DATABASE_URL
from app.core.database import Base, engine
from app.core.logging_setup import configure_logging
from app.core.startup_checks import (
    apply_migrations,
    ensure_migrations_applied,
    validate_database_environment,
    validate_shopify_credentials,
)
from app.middleware.observability import ObservabilityMiddleware
from app.middleware.shop_rate_limit import ShopRateLimitMiddleware
import app.models  # noqa: F401  models must be registered before create_all
from app.services.shop_bootstrap import ShopNotFoundError

from app.routers.app_proxy import router as app_proxy_router
from app.routers.appointments import router as appointments_router
from app.routers.auth import router as auth_router
from app.routers.barbers import router as barbers_router
from app.routers.dashboard import router as dashboard_router
from app.routers.inquiries import router as inquiries_router
from app.routers.internal_metrics import router as internal_metrics_router
from app.routers.services import router as services_router
from app.routers.webhooks import router as webhooks_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Barber Shop App",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ShopRateLimitMiddleware)
app.add_middleware(ObservabilityMiddleware)


@app.exception_handler(ShopNotFoundError)
async def shop_not_found_handler(request: Request, exc: ShopNotFoundError):
    logger.error("[SHOP] lookup failed shop=%s path=%s", exc.shop_domain, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Shop not found"})


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_shopify_credentials()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
            return
        apply_migrations(alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


# Routers
app.include_router(dashboard_router)
app.include_router(appointments_router)
app.include_router(barbers_router)
app.include_router(services_router)
app.include_router(inquiries_router)
app.include_router(app_proxy_router)
app.include_router(auth_router)
app.include_router(webhooks_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
