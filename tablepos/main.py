# Main application file

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tablepos.database import Base, SessionLocal, engine
from tablepos.core.rate_limiter import limiter
from tablepos.core.config import settings
from tablepos.routers import menu, reports, sales, session, tables
from tablepos.services.context import build_context


# LOGGING CONFIGURATION

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
)

logger = logging.getLogger("tablepos")


def create_app(session_factory=SessionLocal, bind=engine, clock=None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=bind)

        extra = {"clock": clock} if clock is not None else {}
        context = build_context(session_factory, settings=settings, **extra)
        await context.start()
        app.state.context = context
        logger.info(f"POS ready with {settings.TABLE_COUNT} tables")

        yield

        context.stop()

    # APP INIT

    app = FastAPI(
        title="Table POS API",
        description="Table orders, checkout and sales reports for a small restaurant",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS (Token-based auth)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://127.0.0.1:5173",
            "http://localhost:5173",
        ],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # RATE LIMITING

    app.state.limiter = limiter
    app.add_exception_handler(
        RateLimitExceeded,
        _rate_limit_exceeded_handler
    )

    # REQUEST LOGGING MIDDLEWARE

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)

        logger.info(
            f"{request.method} {request.url.path} "
            f"Status: {response.status_code} "
            f"Time: {duration}ms"
        )

        return response

    # ROUTERS

    app.include_router(session.router)
    app.include_router(menu.router)
    app.include_router(tables.router)
    app.include_router(sales.router)
    app.include_router(reports.router)

    # ROOT

    @app.get("/")
    def root():
        logger.info("Health check endpoint called")
        return {"message": "Table POS API is running"}

    return app


app = create_app()
