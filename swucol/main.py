from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from swucol.api import cards_router, health_router
from swucol.config import settings
from swucol.db.database import init_db
from swucol.models.failure import KnownError


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler; migrates the schema before serving."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("swucol"),
    lifespan=lifespan,
)

app.include_router(cards_router)
app.include_router(health_router)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Answer a known failure with its status code and explanation."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_detail().model_dump(mode="json"),
    )
