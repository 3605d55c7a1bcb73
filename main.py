import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from config import Settings
from database import Database
from errors import DanusError
from routes import (
    barang_routes, stok_routes, ambilbarang_routes, detailsetor_routes,
    setor_routes, keuangan_routes, audit_routes, user_routes
)
from services.ambilbarang_services import AmbilBarangService
from services.detailsetor_services import DetailSetorService
from services.keuangan_services import KeuanganService
from services.setor_services import SetorService
from services.stok_services import StokService
from services.user_services import UserService
from utils import JakartaClock

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings: Settings = None, database: Database = None, clock=None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    database = database or Database(settings.database_url, echo=settings.echo_sql)
    clock = clock or JakartaClock(settings.timezone)

    app = FastAPI(title="Danus API", version="1.0.0")

    app.state.settings = settings
    app.state.database = database
    app.state.clock = clock
    app.state.stok_service = StokService(database, clock, settings.allow_negative_saldo)
    app.state.ambil_barang_service = AmbilBarangService(database, clock)
    app.state.setor_service = SetorService(database, clock)
    app.state.detail_setor_service = DetailSetorService(database, clock)
    app.state.keuangan_service = KeuanganService(database, clock, settings.allow_negative_saldo)
    app.state.user_service = UserService(database, clock)

    @app.on_event("startup")
    async def startup_event():
        database.create_all()
        logger.info("Database tables ready (%s)", settings)

    @app.on_event("shutdown")
    async def shutdown_event():
        database.dispose()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DanusError)
    async def danus_error_handler(request: Request, exc: DanusError):
        logger.warning("%s %s rejected: %s: %s", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("%s %s hit an integrity error: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Database error"},
        )

    app.include_router(barang_routes.router, prefix="/barang", tags=["Barang"])
    app.include_router(stok_routes.router, prefix="/stok", tags=["Stok Harian"])
    app.include_router(ambilbarang_routes.router, prefix="/ambil-barang", tags=["Ambil Barang"])
    app.include_router(detailsetor_routes.router, prefix="/detail-setor", tags=["Detail Setor"])
    app.include_router(setor_routes.router, prefix="/setor", tags=["Setor"])
    app.include_router(keuangan_routes.router, prefix="/keuangan", tags=["Keuangan"])
    app.include_router(audit_routes.router, prefix="/audit", tags=["Audit Trail"])
    app.include_router(user_routes.router, prefix="/users", tags=["Users"])

    return app


app = create_app()
