from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from tasktracker.api import router
from tasktracker.config import setup_logging, DATABASE_URL, HOST, PORT
from tasktracker.errors import TaskTrackerError
from tasktracker.models import metadata
from tasktracker.repository import build_engine, build_session_factory, enable_wal

# Setup logging
logger = setup_logging()


def create_app(session_factory=None) -> FastAPI:
    """
    Build the application around a session factory.

    Without one, an engine is created from DATABASE_URL.
    """
    if session_factory is None:
        session_factory = build_session_factory(build_engine(DATABASE_URL))

    app = FastAPI(title="Task Tracker")
    app.state.session_factory = session_factory
    app.include_router(router)

    @app.exception_handler(TaskTrackerError)
    async def task_tracker_error_handler(request: Request, exc: TaskTrackerError):
        """Handler for domain errors raised by the services."""
        logger.info(
            f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handler for request validation errors."""
        logger.warning(
            f"Validation error: {exc.errors()}",
            extra={"path": request.url.path, "method": request.method}
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request."}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled exceptions."""
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={"path": request.url.path, "method": request.method}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )

    @app.on_event("startup")
    def on_startup():
        """Initialize the database on application startup."""
        try:
            logger.info("Starting application...")
            engine = session_factory.kw["bind"]

            enable_wal(engine)

            # Create database tables
            metadata.create_all(bind=engine)
            logger.info("Database tables created/verified")
            logger.info("Server started successfully")

        except Exception as e:
            logger.critical(f"Failed to start application: {e}", exc_info=True)
            raise

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


def run():
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
