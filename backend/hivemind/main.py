"""FastAPI application for Hivemind.

Wires together the in-memory core, snapshot persistence and API routes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hivemind.config import Settings
from hivemind.core import Hivemind
from hivemind.db.repositories import EntityRepo, InvestigationRepo
from hivemind.db.sqlite import SQLiteDB
from hivemind.security import secure_directory, secure_file

logger = logging.getLogger(__name__)

settings = Settings()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Opens the snapshot database and loads entities and investigations into
    the core on startup; saves them back and closes the database on
    shutdown.
    """
    configure_logging(settings.LOG_LEVEL)

    data_dir = Path(settings.DATABASE_DIR)
    secure_directory(data_dir)

    db_path = str(data_dir / "hivemind.db")
    db = SQLiteDB(db_path)
    secure_file(Path(db_path))

    entity_repo = EntityRepo(db)
    investigation_repo = InvestigationRepo(db)

    core = Hivemind.from_settings(settings)
    loaded_entities = core.store.load(entity_repo.load_all())
    loaded_investigations = core.registry.load(investigation_repo.load_all())
    logger.info(
        "Loaded %d entities and %d investigations from %s",
        loaded_entities, loaded_investigations, db_path,
    )

    app.state.settings = settings
    app.state.db = db
    app.state.entity_repo = entity_repo
    app.state.investigation_repo = investigation_repo
    app.state.hivemind = core

    yield

    # Shutdown: persist snapshots and close
    try:
        entity_repo.save_all(core.store.all())
        investigation_repo.save_all(core.registry.all())
        logger.info("Saved %d entities and %d investigations", len(core.store), len(core.registry))
    finally:
        core.close()
        db.close()


app = FastAPI(
    title="Hivemind",
    description="Cross-identity entity correlation engine for OSINT investigations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from hivemind.api.routes import router as api_router
from hivemind.api.websocket import router as ws_router

app.include_router(api_router)
app.include_router(ws_router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
