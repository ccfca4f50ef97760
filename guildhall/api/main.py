"""
guildhall.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn guildhall.api.main:app --reload --port 8000

or, using the port from ``config.yaml``::

    guildhall-api
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from guildhall import __version__  # noqa: E402
from guildhall.api.auth import router as auth_router  # noqa: E402
from guildhall.api.deps import get_config, get_engine  # noqa: E402
from guildhall.api.rate_limit import configure_rate_limiter  # noqa: E402
from guildhall.api.routes.activity import router as activity_router  # noqa: E402
from guildhall.api.routes.forum import router as forum_router  # noqa: E402
from guildhall.api.routes.members import router as members_router  # noqa: E402
from guildhall.api.routes.quests import router as quests_router  # noqa: E402
from guildhall.config import GuildhallConfig  # noqa: E402
from guildhall.database.engine import init_db, run_db  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables, seed, arm the throttle."""
    cfg = get_config()
    engine = get_engine()
    await run_db(init_db, engine)
    configure_rate_limiter(
        engine=engine,
        max_requests=cfg.post_rate_limit,
        window_seconds=cfg.post_rate_window_seconds,
    )
    logger.info("%s API started — engine ready (%s)", cfg.community_name, engine.url.database)
    yield
    logger.info("%s API shutting down", cfg.community_name)


app = FastAPI(
    title="Guildhall Community API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api")
app.include_router(activity_router, prefix="/api")
app.include_router(members_router, prefix="/api")
app.include_router(forum_router, prefix="/api")
app.include_router(quests_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/community")
def community(cfg: GuildhallConfig = Depends(get_config)):
    return {"name": cfg.community_name, "motto": cfg.community_motto}


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=get_config().api_port)
