import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from tennisflow import containers
from tennisflow.config import settings
from tennisflow.core.exception_handlers import register_exception_handlers
from tennisflow.core.logging_middleware import LoggingMiddleware
from tennisflow.logging_config import setup_logging
from tennisflow.routers import (
    board_router,
    health_router,
    order_router,
    point_router,
    rental_router,
)

load_dotenv("tennisflow/.env")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(title="TennisFlow API")
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    @app.get("/")
    def hello() -> dict:
        return {"message": "Hello World!"}

    app.include_router(health_router.router)
    for module in (point_router, rental_router, order_router, board_router):
        app.include_router(module.router, prefix=settings.API_V1_STR)

    logger.info("TennisFlow API initialized")
    return app


app = create_app()

handler = Mangum(app)
