import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.templating import Jinja2Templates
from rich.logging import RichHandler

from app.config import ConfigError, Settings, load_settings
from app.routers import pages
from speech.asr.router import router as asr_router


logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"


def _setup_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    list(map(root.removeHandler, root.handlers[:]))
    root.addHandler(RichHandler(rich_tracebacks=True))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    os.makedirs(settings.upload_dir, exist_ok=True)
    logger.info("Speech upload starting (provider=%s, uploads=%s)", settings.asr_provider, settings.upload_dir)
    yield
    logger.info("Speech upload stopping")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        settings = load_settings(os.getenv("ENV_FILE", ".env"))

    app = FastAPI(title="Speech Upload", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info("%s %s -> %d (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    app.include_router(pages.router)
    app.include_router(asr_router)

    return app


def main() -> None:
    try:
        settings = load_settings(os.getenv("ENV_FILE", ".env"))
    except ConfigError as e:
        _setup_logging("INFO")
        logger.critical("%s", e)
        sys.exit(1)
    _setup_logging(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()
