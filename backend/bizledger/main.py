import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from bizledger.core.config import settings
from bizledger.core.errors import LedgerError
from bizledger.routes.health import router as health_router
from bizledger.routes.plans import router as plans_router
from bizledger.routes.sales import router as sales_router
from bizledger.routes.shifts import router as shifts_router
from bizledger.routes.tenants import router as tenants_router
from bizledger.core.database import init_db


logger = logging.getLogger(__name__)


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.retryable:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Business Ledger API", version="0.1.0")

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(LedgerError, ledger_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(plans_router, prefix="/plans", tags=["plans"])
    app.include_router(tenants_router, prefix="/tenants", tags=["tenants"])
    app.include_router(shifts_router, prefix="/shifts", tags=["shifts"])
    app.include_router(sales_router, prefix="/sales", tags=["sales"])

    return app


app = create_app()

# Only bootstrap the schema automatically in development
if settings.env == "dev":
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception("Database initialisation failed; run the Alembic migrations")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("bizledger.main:app", host="0.0.0.0", port=settings.port)
