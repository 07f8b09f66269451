import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import CORS_ALLOW_ORIGIN_REGEX, CORS_ORIGINS, DATABASE_URL, ENV
from app.core.database import Base, SessionLocal, engine
from app.core.errors import DomainError, domain_error_handler
from app.core.logging_setup import configure_logging
from app.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_ledger_settings,
)
from app.middleware.observability import ObservabilityMiddleware
import app.models  # noqa: F401  garante que os models são importados antes do create_all
from app.services.admin_bootstrap import upsert_admin_user
from app.services.event_handlers import register_event_handlers

from app.routers.admin_auth import router as admin_auth_router
from app.routers.admin_menu import router as admin_menu_router
from app.routers.balance import router as balance_router
from app.routers.internal_metrics import router as internal_metrics_router
from app.routers.onboarding import router as onboarding_router
from app.routers.orders import router as orders_router
from app.routers.platform import router as platform_router
from app.routers.public_menu import router as public_menu_router
from app.routers.restaurants import router as restaurants_router

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
DEFAULT_ADMIN_NAME = "Platform Admin"
ENVIRONMENT = os.getenv("ENVIRONMENT", ENV).strip().lower()
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="QR Orders API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

app.add_exception_handler(DomainError, domain_error_handler)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _ensure_admin_tables_exist() -> None:
    inspector = inspect(engine)
    required_tables = {"admin_users", "admin_audit_log", "restaurant_balances", "balance_transactions"}
    missing = [table for table in required_tables if not inspector.has_table(table)]
    if missing:
        logger.error(
            "%s tables missing / migrations not applied missing=%s",
            BOOTSTRAP_PREFIX,
            ",".join(sorted(missing)),
        )
        raise RuntimeError("tables missing / migrations not applied")


def _bootstrap_platform_admin() -> None:
    email = os.getenv("PLATFORM_ADMIN_EMAIL", "").strip()
    password = os.getenv("PLATFORM_ADMIN_PASSWORD", "").strip()
    if not email or not password:
        logger.info("%s skipped: configure PLATFORM_ADMIN_EMAIL/PLATFORM_ADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    name = os.getenv("PLATFORM_ADMIN_NAME", DEFAULT_ADMIN_NAME).strip() or DEFAULT_ADMIN_NAME
    db = SessionLocal()
    try:
        admin, created = upsert_admin_user(db, email=email, name=name, password=password)
        logger.info(
            "%s %s id=%s email=%s",
            BOOTSTRAP_PREFIX,
            "created" if created else "updated",
            admin.id,
            admin.email,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_ledger_settings()
        # Cria tabelas (dev). Em produção, use migrations.
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _ensure_admin_tables_exist()
        _bootstrap_platform_admin()
        register_event_handlers()
    except Exception:
        logger.exception("%s ERROR startup failed env=%s", BOOTSTRAP_PREFIX, ENVIRONMENT)
        raise


# Routers
app.include_router(admin_auth_router)
app.include_router(onboarding_router)
app.include_router(public_menu_router)
app.include_router(restaurants_router)
app.include_router(orders_router)
app.include_router(balance_router)
app.include_router(admin_menu_router)
app.include_router(platform_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
