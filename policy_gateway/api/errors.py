"""Map domain exceptions to structured JSON error responses"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from policy_gateway.api.v1.schemas import ErrorDetail, ErrorResponse
from policy_gateway.domain.exceptions import DomainException

STATUS_BY_KIND = {
    "validation_error": 422,
    "not_found": 404,
    "invalid_transition": 409,
    "authorization_error": 403,
    "upstream_error": 502,
    "payment_pending": 504,
}


def error_response(status_code: int, kind: str, message: str, retryable: bool = False) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(kind=kind, message=message, retryable=retryable))
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def handle_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logging.error(
            f"{exc.kind}: {exc}",
            extra={"request_id": getattr(request.state, "request_id", "unknown")},
        )
    return error_response(status_code, exc.kind, str(exc), exc.retryable)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}" for err in exc.errors()
    )
    return error_response(422, "validation_error", problems or "Invalid request")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, handle_domain_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
