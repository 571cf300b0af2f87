"""Map domain exceptions onto HTTP error payloads"""

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from commission_gateway.api.dependencies import get_request_id
from commission_gateway.domain.exceptions import (
    AlreadyApproved,
    Conflict,
    DomainException,
    InvalidState,
    NotFound,
    PersistenceError,
    ValidationError,
)

STATUS_CODES = {
    ValidationError: 422,
    NotFound: 404,
    AlreadyApproved: 409,
    InvalidState: 409,
    Conflict: 409,
    PersistenceError: 503,
}


def status_code_for(error: DomainException) -> int:
    for exc_type in type(error).__mro__:
        if exc_type in STATUS_CODES:
            return STATUS_CODES[exc_type]
    return 500


def error_payload(error: DomainException) -> dict:
    return {"error": error.message, "kind": error.kind}


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as `{"error": ..., "kind": ...}`"""

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        status_code = status_code_for(exc)
        log = logging.error if status_code >= 500 else logging.warning
        log(f"{exc.kind}: {exc.message}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=status_code, content=error_payload(exc))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail, "kind": "http_error"})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(status_code=422, content={"error": "; ".join(messages), "kind": "validation_error"})
