from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from pydantic import ValidationError as PydanticValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from staffplan.api.database.database_controller import router as database_router
from staffplan.api.database.database_service import DatabaseService
from staffplan.api.staffing.staffing_controller import router as staffing_router
from staffplan.config import Settings, get_settings
from staffplan.run_utils.llm import LLMClient
from staffplan.utils.errors import (
    EmptyFileError,
    ExtractionFailed,
    JsonRecoveryExhausted,
    PlanNotFoundError,
    StructuralValidationError,
    TransportError,
    UnsupportedFileType,
    ValidationError,
)
from staffplan.utils.logging_config import configure_structured_logging

logger = structlog.get_logger("staffplan")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        start_time = time.time()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
        finally:
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=int((time.time() - start_time) * 1000),
            )
        return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, detail)

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(UnsupportedFileType)
    @app.exception_handler(EmptyFileError)
    async def upload_error(request: Request, exc: Exception):
        return _error(400, str(exc))

    @app.exception_handler(ExtractionFailed)
    async def extraction_error(request: Request, exc: ExtractionFailed):
        logger.error("text_extraction_failed", detail=exc.detail)
        return _error(500, str(exc))

    @app.exception_handler(PlanNotFoundError)
    async def not_found(request: Request, exc: PlanNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(JsonRecoveryExhausted)
    async def recovery_exhausted(request: Request, exc: JsonRecoveryExhausted):
        logger.error(
            "json_recovery_exhausted",
            attempts=exc.attempts,
            parse_error=exc.parse_error,
            raw_text=exc.raw_text,
        )
        return _error(500, str(exc))

    @app.exception_handler(StructuralValidationError)
    async def structural_error(request: Request, exc: StructuralValidationError):
        logger.error("model_output_invalid", failures=exc.failures)
        return _error(500, str(exc))

    @app.exception_handler(TransportError)
    async def transport_error(request: Request, exc: TransportError):
        logger.error("model_call_failed", kind=exc.kind.value, op=exc.op)
        return _error(500, str(exc))

    @app.exception_handler(PydanticValidationError)
    async def record_validation_error(request: Request, exc: PydanticValidationError):
        logger.error("record_validation_failed", errors=exc.errors(include_url=False))
        return _error(500, "Staffing plan record failed validation")


def create_app(
    settings: Optional[Settings] = None,
    llm: Optional[LLMClient] = None,
    database: Optional[DatabaseService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_structured_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await app.state.llm.close()
            app.state.db.close()

    app = FastAPI(title="RFP Staffing Plan Generator", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.llm = llm or LLMClient(settings)
    app.state.db = database or DatabaseService.from_settings(settings)

    allowed = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    _register_exception_handlers(app)

    app.include_router(staffing_router)
    app.include_router(database_router)

    return app


app = create_app()


def run() -> None:
    settings = app.state.settings
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
