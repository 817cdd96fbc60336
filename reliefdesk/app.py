import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reliefdesk.core.errors import SessionNotFound, StateViolation, StorageError, ValidationFailure
from reliefdesk.routes import eligibility, intake, programs, sessions

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    level_name = os.getenv("RELIEF_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("reliefdesk").setLevel(level)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationFailure)
    async def validation_failure(request: Request, exc: ValidationFailure) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(StateViolation)
    async def state_violation(request: Request, exc: StateViolation) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(SessionNotFound)
    async def session_not_found(request: Request, exc: SessionNotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "session storage unavailable"})


def create_app() -> FastAPI:
    _configure_logging()
    app = FastAPI(title="Relief Desk API", version="0.1.0")

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(programs.router, prefix="/api")
    app.include_router(eligibility.router, prefix="/api")
    app.include_router(sessions.router, prefix="/api")
    app.include_router(intake.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Relief Desk API",
                "docs": "/docs",
                "health": "/api/programs",
            }
        )

    return app


app = create_app()
