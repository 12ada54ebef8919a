import os
import time

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from storefront.database import create_tables, wait_for_db
from storefront.errors import InternalError, StorefrontError
from storefront.logger import logger
from storefront.routes import cart, categories, orders, products, users

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",")]


def create_app() -> FastAPI:
    app = FastAPI(title="Storefront Service")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"]
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request handled",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            }
        )
        return response

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request", extra={"path": request.url.path})
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request format", "errors": jsonable_encoder(exc.errors())}
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception("Internal server error", extra={"path": request.url.path})
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_content())

    @app.on_event("startup")
    async def startup():
        logger.info("Storefront Service startup")
        app.state.db = await wait_for_db()
        await create_tables(app.state.db)

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("Storefront Service shutdown")

    Instrumentator().instrument(app).expose(app)

    for module in (products, cart, users, orders, categories):
        app.include_router(module.router, prefix="/api")

    return app


app = create_app()
