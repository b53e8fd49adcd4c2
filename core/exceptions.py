import traceback
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from utils.logger import get_logger

logger = get_logger("Global_Exception")


class AppException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class ValidationError(AppException):
    def __init__(self, detail: str = "Invalid request."):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class InvalidCredential(AppException):
    def __init__(self, detail: str = "Invalid or expired OTP."):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class Conflict(AppException):
    # duplicate keys answer 400, same as the dashboard client expects
    def __init__(self, detail: str = "Resource already exists."):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class Unauthenticated(AppException):
    def __init__(self, detail: str = "Access denied. No token provided."):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


class Forbidden(AppException):
    def __init__(self, detail: str = "Insufficient permissions."):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)


class NotFound(AppException):
    def __init__(self, detail: str = "Resource not found."):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


def error_body(message: str, **extra) -> dict:
    return {"error": {"message": message, **extra}}


async def app_exception_handler(request: Request, exc: AppException):
    logger.warning(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.detail), headers=exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        # nothing matched the path
        return JSONResponse(
            status_code=404,
            content=error_body("Route not found", path=request.url.path)
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)), headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        details.append({"field": loc, "message": err.get("msg")})
    fields = ", ".join(d["field"] for d in details if d["field"])
    message = f"Invalid or missing fields: {fields}." if fields else "Invalid request body."
    logger.warning(f"Validation failed on {request.url.path}: {details}")
    return JSONResponse(status_code=400, content=error_body(message, details=details))


def build_global_exception_handler(expose_stack: bool):
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception",
            extra={"path": request.url.path}
        )
        extra = {}
        if expose_stack:
            extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(
            status_code=500,
            content=error_body("Internal server error", **extra)
        )
    return global_exception_handler


def register_exception_handlers(app, expose_stack: bool = False):
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, build_global_exception_handler(expose_stack))
