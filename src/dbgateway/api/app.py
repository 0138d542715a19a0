from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dbgateway.common.errors import ErrorCode, ErrorResponse, GatewayError
from dbgateway.common.logger import get_logger, request_context
from .routes import router
from .service import DatabaseService

logger = get_logger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.ROUTE_NOT_FOUND: 404,
}


def _error_response(status_code: int, error: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error.model_dump(exclude_none=True))


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    status_code = _STATUS_BY_CODE.get(exc.error_code, 500)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error_response(status_code, exc.to_response())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(400, ErrorResponse(
        error_code=ErrorCode.INVALID_REQUEST.value,
        message=f"Invalid request: {exc.errors()}",
    ))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(500, ErrorResponse(
        error_code=ErrorCode.UNKNOWN_ERROR.value,
        message=str(exc) or type(exc).__name__,
    ))


def create_app(service: DatabaseService, api_prefix: str = "/api/db", title: str = "Database API") -> FastAPI:
    """Builds the HTTP surface for one server: fixed routes plus registry dispatch."""
    app = FastAPI(title=title, version="0.1.0")
    app.state.service = service

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        with request_context(request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(router, prefix=api_prefix.rstrip("/"))
    return app
