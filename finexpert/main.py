import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from .config import Settings, configure_logging
from .config import settings as default_settings
from .database import create_db_engine, init_db
from .errors import FinExpertError
from .routers import budgets as budgets_router
from .routers import expenses as expenses_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(title="FinExpert – Budget Engine", version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine or create_db_engine(settings.database_url, echo=settings.sql_echo)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup():
        init_db(app.state.engine)

    @app.exception_handler(FinExpertError)
    def handle_finexpert_error(request: Request, exc: FinExpertError):
        if exc.status_code >= 500:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
        body = {"detail": exc.detail}
        if exc.retryable:
            body["retryable"] = True
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(expenses_router.router)
    app.include_router(budgets_router.router)

    return app
