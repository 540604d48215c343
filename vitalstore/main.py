import uvicorn
from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional

from vitalstore.exceptions.handlers import (
    application_exception_handler,
    http_exception_handler,
    generic_exception_handler
)
from vitalstore.exceptions.errors import ApplicationException
from vitalstore.database.connection import HealthStore
from vitalstore.api.v1.routes import metric_router, sleep_router, ecg_router, sync_router
from vitalstore.core.config import settings
from vitalstore.core.logger import get_logger

logger = get_logger("vitalstore-api")


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """Build the read-only query API over the store at `database_url`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Query API is starting...")
        store = HealthStore(database_url)
        try:
            await store.open()
        except Exception as e:
            logger.error(f"Failed to open health store: {e}")
            raise e
        app.state.store = store

        yield

        logger.info("Query API is shutting down...")
        await store.close()

    app = FastAPI(
        title="Vitalstore Query API",
        version="1.0.0",
        lifespan=lifespan,
        description="Read-only access to ring samples, daily rollups, sleep, ECG and sync status.",
    )

    app.include_router(metric_router, prefix="/api/v1")
    app.include_router(sleep_router, prefix="/api/v1")
    app.include_router(ecg_router, prefix="/api/v1")
    app.include_router(sync_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Vitalstore Query API",
            "docs": "/docs",
            "environment": settings.ENVIRONMENT,
            "version": "1.0.0"
        }

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error on {request.url.path}: {exc.errors()}")

        errors = []
        for error in exc.errors():
            errors.append({
                "type": error.get("type"),
                "loc": error.get("loc"),
                "msg": error.get("msg"),
                "input": str(error.get("input")) if error.get("input") is not None else None
            })

        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request", "detail": errors}
        )

    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "vitalstore.main:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        timeout_keep_alive=30,
    )
