# api/errors.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from httpx import HTTPError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog.client import ConfigError, UpstreamError
from catalog.logger import get_logger

logger = get_logger("api.errors")


def error_body(request, status_code, message):
    """
    Build the JSON body shared by every error response.

    Args:
        request (Request): the failed request
        status_code (int): HTTP status returned to the caller
        message (str): human-readable error text shown to the user

    Returns:
        dict: ``error``, ``status_code``, ``message``, ``retry`` (URL to
            call again) and ``path``
    """
    return {
        "error": True,
        "status_code": status_code,
        "message": message,
        "retry": str(request.url),
        "path": str(request.url.path),
    }


def register_error_handlers(app: FastAPI):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, exc.status_code, exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": " -> ".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        content = error_body(request, 422, "Validation error")
        content["details"] = details
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        logger.error(f"Configuration error on {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content=error_body(request, 503, str(exc)))

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        status = 404 if exc.status == 404 else 502
        logger.warning(f"Upstream error on {request.url.path}: {exc}")
        return JSONResponse(status_code=status, content=error_body(request, status, str(exc)))

    @app.exception_handler(HTTPError)
    async def transport_error_handler(request: Request, exc: HTTPError):
        logger.warning(f"Upstream unreachable on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=504,
            content=error_body(request, 504, f"Catalog API unreachable: {exc}"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unexpected error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=error_body(request, 500, "Internal server error"),
        )
