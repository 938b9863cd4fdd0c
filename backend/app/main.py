"""
Aid Distribution Service: FastAPI Application
Beneficiary registration, regional inventory and duplicate-checked allocation
for humanitarian aid disbursers and administrators.
"""
import os
import sys
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add backend directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import settings
from app.exceptions import AidServiceError, PersistenceError
from database.connection import AsyncSessionLocal, init_db
from database.repository import AidStore
from routes.admin import router as admin_router
from routes.allocations import router as allocations_router
from routes.beneficiaries import router as beneficiaries_router
from routes.dashboard import router as dashboard_router
from routes.fraud_alerts import router as fraud_router
from routes.health import router as health_router
from routes.inventory import router as inventory_router
from services.allocation_service import BeneficiaryLocks
from services.fraud_monitor import NotificationFeed, build_fraud_monitor
from services.setup_service import ensure_initial_setup
from utils.logger import setup_logger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger(log_dir=settings.LOG_DIR, debug=settings.DEBUG)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    if settings.SEED_DEFAULTS:
        async with AsyncSessionLocal() as session:
            await ensure_initial_setup(AidStore(session))

    monitor = build_fraud_monitor(AsyncSessionLocal, app.state.notifications)
    app.state.fraud_monitor = monitor
    if settings.FRAUD_MONITOR_ENABLED:
        monitor.start()
    yield
    await monitor.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


async def aid_error_handler(request: Request, exc: AidServiceError):
    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, PersistenceError) and exc.allocation_id:
        content["allocation_id"] = exc.allocation_id
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Role-based API for humanitarian aid distribution: beneficiary "
            "registration, regional goods inventory, resource allocation and "
            "duplicate-allocation fraud alerts."
        ),
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.notifications = NotificationFeed()
    app.state.allocation_locks = BeneficiaryLocks()
    app.add_exception_handler(AidServiceError, aid_error_handler)

    # CORS: allow the dashboard frontends in development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173", "http://localhost:8080"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health_router)
    app.include_router(admin_router)
    app.include_router(beneficiaries_router)
    app.include_router(inventory_router)
    app.include_router(allocations_router)
    app.include_router(fraud_router)
    app.include_router(dashboard_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
