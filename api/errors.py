from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from spotify_api.errors import ConfigurationError, NoCredentialError, SpotifyAPIError
from utils.logger import log_warning


class BadRequest(Exception):
    """Client sent something the route cannot use (400)."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def error_response(status: int, message: str, raw=None) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message, "raw": raw})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BadRequest)
    async def bad_request_handler(request: Request, exc: BadRequest):
        return JSONResponse(status_code=exc.status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"invalid {where}: {first.get('msg')}" if where else "invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(NoCredentialError)
    async def no_credential_handler(request: Request, exc: NoCredentialError):
        return error_response(401, str(exc))

    @app.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError):
        return error_response(500, str(exc))

    @app.exception_handler(SpotifyAPIError)
    async def spotify_api_handler(request: Request, exc: SpotifyAPIError):
        status = exc.status if 400 <= exc.status <= 599 else 500
        if status >= 500:
            log_warning(f"{request.method} {request.url.path} -> {status}: {exc.message}")
        return error_response(status, exc.message, exc.raw_body)
