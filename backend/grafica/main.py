from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
import logging
import os
from typing import Optional

from grafica.api import auth, backup, catalog, dashboard, preferences, pricing, services, settings, validate
from grafica.db.session import create_db_and_tables
from grafica.errors import (
    AuthError,
    BackupFormatError,
    DataAccessError,
    DuplicateIdentityError,
    NotFoundError,
    ValidationFailed,
)
from grafica.services.store import AppStore, JsonFilePersistence

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("grafica")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-secret-change-me")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(14 * 24 * 3600)))


def _error(status: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": code, "detail": message, **extra})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationFailed)
    async def on_validation(request: Request, exc: ValidationFailed):
        return _error(422, "validation_failed", str(exc), issues=exc.issues)

    @app.exception_handler(AuthError)
    async def on_auth(request: Request, exc: AuthError):
        status = 409 if isinstance(exc, DuplicateIdentityError) else 401
        logger.info("Auth error on %s: %s", request.url.path, exc.message)
        return _error(status, exc.code, exc.message)

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(DataAccessError)
    async def on_data_error(request: Request, exc: DataAccessError):
        logger.error("Data access error at %s: %s", exc.where, exc.message)
        return _error(502, "data_access_error", exc.message)

    @app.exception_handler(BackupFormatError)
    async def on_backup_format(request: Request, exc: BackupFormatError):
        return _error(400, "invalid_backup", str(exc))


def create_app(store: Optional[AppStore] = None) -> FastAPI:
    app = FastAPI(title="Gráfica Pro")

    # CORS for the frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # signed cookie carrying the signed-in user id, one per client
    app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET, max_age=SESSION_MAX_AGE,
                       same_site="lax")

    app.state.store = store if store is not None else AppStore(persistence=JsonFilePersistence())

    # Include routers
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(catalog.clients_router, prefix="/clients", tags=["clients"])
    app.include_router(catalog.materials_router, prefix="/materials", tags=["materials"])
    app.include_router(catalog.inks_router, prefix="/inks", tags=["inks"])
    app.include_router(services.router, prefix="/services", tags=["services"])
    app.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
    app.include_router(validate.router, prefix="/validate", tags=["validate"])
    app.include_router(settings.router, prefix="/settings", tags=["settings"])
    app.include_router(preferences.router, prefix="/preferences", tags=["preferences"])
    app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
    app.include_router(backup.router, prefix="", tags=["backup"])
    register_error_handlers(app)

    @app.on_event("startup")
    def on_startup():
        create_db_and_tables()
        logger.info("Tables ready; store locale=%s", app.state.store.get_state()["locale"])

    @app.get("/")
    async def root():
        return {"status": "ok", "service": "grafica-pro"}

    return app


app = create_app()
