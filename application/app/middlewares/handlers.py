from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from typing import Any
from app.config.sentry import capture_exception, add_breadcrumb
from app.config.settings import AuthConfigs
from app.core.exceptions import AuthServiceError
from app.logging.utils import get_app_logger

logger = get_app_logger(__name__)
configs = AuthConfigs()

# Debug mode detection (DEBUG=false means production)
DEBUG = configs.DEBUG


async def _auth_error_handler(request: Request, exc: AuthServiceError):
    """Render service errors as `{"message": ...}` with their own status."""
    status_code = exc.status_code
    if status_code >= 500:
        logger.error(f"auth_error | method={request.method} path={request.url.path} status_code={status_code} error={type(exc).__name__} message={exc.message}", exc_info=exc.__cause__ or exc)
        add_breadcrumb(
            message=f"Auth error {status_code} on {request.method} {request.url.path}",
            category="auth",
            level="error",
            data={"error": type(exc).__name__},
        )
        capture_exception(exc.__cause__ or exc)
    else:
        logger.warning(f"auth_error | method={request.method} path={request.url.path} status_code={status_code} error={type(exc).__name__} message={exc.message}")

    return JSONResponse(status_code=status_code, content={"message": exc.message})


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors: 400 with a readable message."""
    logger.warning(f"validation_error | method={request.method} path={request.url.path} errors={exc.errors()}")

    if not DEBUG:
        payload = {"message": "Invalid request data"}
    else:
        # "field_path: error_message", one per error
        error_messages = []
        for err in exc.errors():
            field_path = " -> ".join(str(loc) for loc in err.get("loc", []))
            error_messages.append(f"{field_path}: {err.get('msg', 'Invalid input')}")

        if len(error_messages) == 1:
            payload = {"message": error_messages[0]}
        else:
            payload = {"message": "Validation errors", "errors": error_messages}

    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)


async def _general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with production-safe messages."""
    logger.error(
        f"unhandled_exception | method={request.method} path={request.url.path} exception_type={type(exc).__name__} exception_message={str(exc)}",
        exc_info=True,
    )

    add_breadcrumb(
        message=f"Unhandled exception on {request.method} {request.url.path}",
        category="exception",
        level="error",
        data={"exception_type": type(exc).__name__},
    )
    capture_exception(exc)

    if not DEBUG:
        payload = {"message": "Server error"}
    else:
        payload = {"message": f"Internal server error: {str(exc)}"}

    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


async def _http_exception_handler(request: Request, exc: Any):
    """Handle HTTP exceptions (404s, 405s from routing) with a `message` body."""
    status_code = getattr(exc, 'status_code', status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail = getattr(exc, 'detail', str(exc))
    if status_code >= 500:
        logger.error(f"http_exception | method={request.method} path={request.url.path} status_code={status_code} detail={detail}")
        capture_exception(exc)
    else:
        logger.warning(f"http_exception | method={request.method} path={request.url.path} status_code={status_code} detail={detail}")

    if not DEBUG:
        if status_code == 404:
            message = "Resource not found"
        elif status_code == 401:
            message = "Authentication required"
        elif 400 <= status_code < 500:
            message = "Invalid request"
        else:
            message = "Server error"
    else:
        message = detail

    return JSONResponse(status_code=status_code, content={"message": message}, headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the given FastAPI instance."""
    from starlette.exceptions import HTTPException as StarletteHTTPException

    app.add_exception_handler(AuthServiceError, _auth_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _general_exception_handler)
