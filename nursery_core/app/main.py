import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth_provider import AuthError, AuthProvider
from .db import create_db_and_tables
from .deps import get_store
from .services.fulfillment_service import InsufficientStockError, InvalidOperationError, NotFoundError
from .services.status_service import ProjectStatusNotInitialized
from .store import QueryClient, StoreError

from .auth import router as auth_router
from .seedlings import router as seedlings_router
from .batches import router as batches_router
from .zones import router as zones_router
from .partners import router as partners_router
from .logbook import router as logbook_router
from .status import router as status_router
from .dashboard import router as dashboard_router
from .export import router as export_router
from .routers.requests import router as requests_router

APP_NAME = "Seedling Nursery Dashboard"
APP_VERSION = "1.0.0"

logger = logging.getLogger("nursery_core")


def get_cors_origins():
    """Get CORS origins from environment or use defaults for development"""
    origins_env = os.getenv("CORS_ORIGINS", "")
    if origins_env:
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    # Default development origins
    return [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8080",
        "http://localhost:8080",
    ]


def configure_logging():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def weather_enabled() -> bool:
    return bool(os.getenv("WEATHER_API_KEY"))


def _log_auth_event(event, user):
    logger.info("Auth state changed: %s (%s)", event.value, user.email if user else "-")


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    subscription = app.state.auth.on_auth_state_change(_log_auth_event)
    logger.info("%s %s started (weather %s)", APP_NAME, APP_VERSION, "on" if weather_enabled() else "off")
    try:
        yield
    finally:
        subscription.unsubscribe()
        logger.info("%s stopped", APP_NAME)


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        # reads degrade to "unavailable", failed writes are server errors
        code = 503 if request.method in ("GET", "HEAD") else 500
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(ProjectStatusNotInitialized)
    async def status_missing_handler(request: Request, exc: ProjectStatusNotInitialized):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidOperationError)
    async def invalid_operation_handler(request: Request, exc: InvalidOperationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(InsufficientStockError)
    async def insufficient_stock_handler(request: Request, exc: InsufficientStockError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(status_code=401, content={"detail": str(exc)}, headers={"WWW-Authenticate": "Bearer"})


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title=APP_NAME,
        description="Record keeping for a seedling nursery: stock, batches, partners and request fulfillment",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.auth = AuthProvider()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(dashboard_router)
    app.include_router(seedlings_router)
    app.include_router(batches_router)
    app.include_router(zones_router)
    app.include_router(partners_router)
    app.include_router(logbook_router)
    app.include_router(requests_router)
    app.include_router(status_router)
    app.include_router(export_router)

    @app.get("/", tags=["meta"])
    def root():
        return {"name": APP_NAME, "version": APP_VERSION, "weather_enabled": weather_enabled()}

    @app.get("/health", tags=["meta"])
    def health(store: QueryClient = Depends(get_store)):
        store.ping()
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "nursery_core.app.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )
