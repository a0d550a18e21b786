import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.audit.middleware import AuditMiddleware
from app.core.audit.router import router as audit_router
from app.core.config import settings
from app.core.exception_handler import setup_exception_handlers
from app.core.seed import seed_demo_data
from app.core.security.router import router as auth_router
from app.modules.catalog.router import router as catalog_router
from app.modules.dashboard.router import router as dashboard_router
from app.modules.logistics.router import router as logistics_router
from app.store.base import Store, build_store

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def create_app(store: Store | None = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store.init()
        if settings.SEED_DEMO_DATA:
            seed_demo_data(app.state.store)
        logger.info("Equipment ledger ready (%s storage)", type(app.state.store).__name__)
        yield

    app = FastAPI(title="Equipment Ledger", lifespan=lifespan)
    app.state.store = store or build_store(settings)

    setup_exception_handlers(app)
    app.add_middleware(AuditMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(catalog_router)
    app.include_router(logistics_router)
    app.include_router(dashboard_router)
    app.include_router(audit_router)

    @app.get("/")
    def root():
        return {"message": "Equipment ledger running"}

    return app


app = create_app()


def run():
    import uvicorn

    logger.info("Starting server on %s:%s", settings.HOST, settings.PORT)
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


# For local development
if __name__ == "__main__":
    run()
