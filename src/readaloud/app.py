"""Application factory for the read-aloud service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from .config import get_settings
from .routers.speech import router as speech_router
from .services.engines import HttpSpeechEngine, build_engine
from .services.speech.filters import collapse_whitespace, strip_markdown
from .services.speech.segmenter import MarkdownStepPolicy, SentenceStepPolicy
from .services.speech.session import SessionManager


def configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Always add console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("readaloud").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)

    # Quiet down noisy third-party libraries
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app() -> FastAPI:
    # Configure logging first thing
    configure_logging()

    settings = get_settings()
    markdown = settings.markdown

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings)
        app.state.speech_manager = SessionManager(
            engine,
            settings.speech_options(),
            policy=MarkdownStepPolicy() if markdown else SentenceStepPolicy(),
            text_filter=strip_markdown if markdown else collapse_whitespace,
        )
        app.state.document = None
        try:
            yield
        finally:
            await app.state.speech_manager.shutdown()
            await HttpSpeechEngine.close_http_client()

    app = FastAPI(title="Read Aloud", lifespan=lifespan)
    app.include_router(speech_router)
    return app


__all__ = ["configure_logging", "create_app"]
