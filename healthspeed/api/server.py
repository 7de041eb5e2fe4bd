"""FastAPI server for the desktop UI — scans, fixes, license, automation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..automation.scheduler import AutomationScheduler
from ..checkers import build_default_engine
from ..config import Settings, settings as default_settings
from ..engine.scanner import ScannerEngine
from ..engine.store import ScanStore
from ..license.manager import LicenseManager
from .routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    cfg: Settings = app.state.settings

    store = ScanStore(cfg.db_path)
    app.state.store = store
    app.state.license_manager = LicenseManager(cfg.license_path)

    scheduler = AutomationScheduler(
        store=store,
        license_manager=app.state.license_manager,
        engine_factory=app.state.engine_factory,
        interval=cfg.automation_interval_seconds,
    )
    app.state.scheduler = scheduler
    try:
        await scheduler.start()
    except Exception:
        logger.exception("Automation scheduler failed to start")

    yield

    # Shutdown
    await scheduler.stop()
    store.close()


def create_app(
    settings: Settings | None = None,
    engine_factory: Callable[[], ScannerEngine] | None = None,
) -> FastAPI:
    cfg = settings or default_settings

    app = FastAPI(
        title="Health & Speed Checker",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.engine_factory = engine_factory or partial(build_default_engine, cfg)

    # Local UI only
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost", "http://127.0.0.1", "tauri://localhost"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    return app
