import logging
from contextlib import asynccontextmanager

from config import AppMode, get_settings
from db.database import init_db
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse
from services.errors import CatalogError
from starlette.requests import Request

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Quiet noisy loggers
logging.getLogger("aiosqlite").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events - startup and shutdown"""
    logger.info(f"Starting Band Catalog in {settings.APP_MODE.value} mode...")
    await init_db()
    yield
    logger.info("Shutting down Band Catalog...")


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Map the service error taxonomy onto HTTP responses."""
    headers = None
    if exc.status == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=int(exc.status),
        content=exc.to_dict(),
        headers=headers,
    )


def install_exception_handlers(app: FastAPI) -> None:
    # Subclasses (NotFoundError, ConflictError, ...) resolve to this handler
    app.add_exception_handler(CatalogError, catalog_error_handler)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Band Catalog",
        description="Catalog backend for bands, albums, songs, members, events and countries",
        version="1.0.0",
        lifespan=lifespan,
        debug=(settings.APP_MODE == AppMode.DEV and settings.DEBUG),
    )
    install_exception_handlers(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=(settings.APP_MODE == AppMode.DEV),
    )
