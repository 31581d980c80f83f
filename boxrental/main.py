import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.rentals import router as rentals_router
from .routes.customers import router as customers_router
from .routes.drivers import router as drivers_router
from .routes.inventory import router as inventory_router
from .routes.payments import router as payments_router
from .routes.reports import router as reports_router
from .routes.emails import router as emails_router
from .routes.reminders import router as reminders_router
from .routes.tracking import router as tracking_router
from .routes.tasks import router as tasks_router
from .services.errors import (
    InvalidStatusTransition,
    RentalNotFound,
    ReservationConflict,
    StaleRentalVersion,
)


log = structlog.get_logger(__name__)


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


async def _not_found(request: Request, exc: RentalNotFound):
    return _error(404, "Rental not found")


async def _invalid_transition(request: Request, exc: InvalidStatusTransition):
    return _error(409, str(exc), current=exc.current, target=exc.target)


async def _stale_version(request: Request, exc: StaleRentalVersion):
    return _error(409, str(exc), expected_version=exc.expected, current_version=exc.actual)


async def _reservation_conflict(request: Request, exc: ReservationConflict):
    conflicting = str(exc.conflicting_rental_id) if exc.conflicting_rental_id else None
    return _error(409, str(exc), item_code=exc.item_code, conflicting_rental_id=conflicting)


async def _db_error(request: Request, exc: SQLAlchemyError):
    log.error("database_error", path=request.url.path, error=str(exc))
    return _error(500, f"Database error: {exc.__class__.__name__}")


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(RentalNotFound, _not_found)
    app.add_exception_handler(InvalidStatusTransition, _invalid_transition)
    app.add_exception_handler(StaleRentalVersion, _stale_version)
    app.add_exception_handler(ReservationConflict, _reservation_conflict)
    app.add_exception_handler(SQLAlchemyError, _db_error)

    # Routers
    app.include_router(auth_router)
    app.include_router(rentals_router)
    app.include_router(customers_router)
    app.include_router(drivers_router)
    app.include_router(inventory_router)
    app.include_router(payments_router)
    app.include_router(reports_router)
    app.include_router(emails_router)
    app.include_router(reminders_router)
    app.include_router(tracking_router)
    app.include_router(tasks_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    @app.on_event("startup")
    def _startup():
        if settings.auto_create_db:
            if settings.database_url.startswith("sqlite:///./"):
                os.makedirs(os.path.dirname(settings.database_url.replace("sqlite:///", "")) or ".", exist_ok=True)
            Base.metadata.create_all(bind=engine)
        log.info("app_started", app=settings.app_name, email_configured=bool(settings.smtp_host and settings.mail_from))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("boxrental.main:app", host=settings.host, port=settings.port)
