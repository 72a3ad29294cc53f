"""
Error taxonomy for reservation operations and its mapping to HTTP responses.

Services raise these exceptions; the handlers registered by
``register_exception_handlers`` turn them into JSON bodies so routes stay thin.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class ReservationError(Exception):
    """Base class for errors answered with a structured JSON body"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body = {"success": False, "code": self.code, "message": self.message}
        if self.details is not None:
            body["detalhes"] = self.details
        return body


class ValidationError(ReservationError):
    """Missing or malformed request fields"""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFound(ReservationError):
    status_code = 404
    code = "NOT_FOUND"


class CapacityExceeded(ReservationError):
    """The daily table limit would be exceeded"""

    status_code = 409
    code = "CAPACITY_EXCEEDED"

    def __init__(self, limit: int, active_count: int, requested: int):
        super().__init__(
            f"Limite de {limit} mesas por dia seria ultrapassado.",
            details={"limite": limit, "reservadas": active_count, "solicitadas": requested},
        )
        self.limit = limit
        self.active_count = active_count
        self.requested = requested


class TableConflict(ReservationError):
    """Requested tables are already held by an active reservation on that date"""

    status_code = 409
    code = "TABLE_CONFLICT"

    def __init__(self, tables: Iterable[int]):
        self.tables = sorted(set(tables))
        super().__init__(
            "Mesas já ocupadas: {}".format(", ".join(str(t) for t in self.tables)),
            details={"mesas": self.tables},
        )


class UpstreamFailure(ReservationError):
    """The persistence layer itself failed"""

    status_code = 500
    code = "UPSTREAM_FAILURE"


class WebhookDeliveryFailure(Exception):
    """Webhook endpoint unreachable or answered non-2xx; logged, never surfaced"""


def _error_response(error: ReservationError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_body())


def _describe_validation_errors(errors: list) -> list:
    described = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        described.append({"campo": location, "erro": error.get("msg")})
    return described


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    logger.info(
        "Request rejected",
        path=request.url.path,
        code=exc.code,
        message=exc.message,
    )
    return _error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError(
        "Dados da requisição inválidos.",
        details=_describe_validation_errors(exc.errors()),
    )
    return await reservation_error_handler(request, error)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database failure", path=request.url.path, error=str(exc))
    return _error_response(UpstreamFailure("Erro interno do servidor", details=str(exc)))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        error = NotFound("Endpoint não encontrado")
    else:
        error = ReservationError(str(exc.detail))
        error.status_code = exc.status_code
        error.code = "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR"
    return JSONResponse(status_code=error.status_code, content=error.to_body(), headers=exc.headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on the application"""
    app.add_exception_handler(ReservationError, reservation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
