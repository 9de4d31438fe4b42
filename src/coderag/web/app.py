"""Main FastAPI application."""

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from ..logging_config import setup_logging
from .routes import indexing, search, status


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title="coderag")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_router = APIRouter(prefix="/api")
    api_router.include_router(indexing.router)
    api_router.include_router(search.router)
    api_router.include_router(status.router)

    app.include_router(api_router)
    return app


app = create_app()
