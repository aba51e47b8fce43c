import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routers import admin_logo_reviews, auth, causes, claimers, claims, logo_reviews, notifications, payments, waitlist
from core.config import get_settings
from core.errors import AppError
from core.logging_config import configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


def error_body(message: str, error=None) -> dict:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


def create_app() -> FastAPI:
    app = FastAPI(title="CauseConnect API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, type(exc).__name__))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_body("Invalid request", jsonable_encoder(exc.errors())),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        detail = None if settings.is_production else "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=500, content=error_body("Internal server error", detail))

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the CauseConnect API"}

    @app.get(f"{settings.API_PREFIX}/health")
    def health():
        return {"success": True, "message": "Server is running"}

    for module in (auth, causes, claims, waitlist, payments, logo_reviews, admin_logo_reviews, claimers, notifications):
        app.include_router(module.router, prefix=settings.API_PREFIX)

    return app


app = create_app()

handler = Mangum(app)
