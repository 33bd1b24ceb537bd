from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from vibereader.config.logging import setup_logging
from vibereader.config.settings import Settings
from vibereader.infra.database import Database
from vibereader.v1.core.exceptions import (
    RequestContextMiddleware,
    VibeReaderException,
    general_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    vibereader_exception_handler,
)
from vibereader.v1.infra.jobs.routes import router as jobs_router
from vibereader.v1.infra.jobs.service import JobQueue


@asynccontextmanager
async def lifespan(app: FastAPI):
    await app.state.database.create_all()
    yield
    await app.state.database.close()


def create_app(
    settings: Settings | None = None, database: Database | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    database = database or Database(settings)

    # Initialize structured logging
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Feed reader API with background job processing",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_url="/api/openapi.json" if settings.debug else None,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.job_queue = JobQueue(database.SessionLocal, settings)

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(VibeReaderException, vibereader_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(jobs_router, prefix="/api")

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
    )
