"""
kachna.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn kachna.api.main:app --reload --port 8000

The lifespan also runs the club state transition loop
(:mod:`kachna.tasks`), which notifies the FIT-wide Discord handler
whenever a planned state starts or ends.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from kachna.api.deps import get_config, get_engine  # noqa: E402
from kachna.api.errors import install_error_handlers  # noqa: E402
from kachna.api.routes.board_games import router as board_games_router  # noqa: E402
from kachna.api.routes.club_states import router as club_states_router  # noqa: E402
from kachna.api.routes.users import router as users_router  # noqa: E402
from kachna.services.discord_webhook import DiscordWebhookClient  # noqa: E402
from kachna.services.transition_handlers import FitwideDiscordTransitionHandler  # noqa: E402
from kachna.tasks import StateTransitionRunner  # noqa: E402

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


def build_transition_runner(engine, cfg) -> StateTransitionRunner:
    """Wire the Discord handler (webhook optional) into a runner."""
    webhook = None
    if cfg.fitwide_discord_webhook_url:
        webhook = DiscordWebhookClient(cfg.fitwide_discord_webhook_url, username=cfg.club_name)
    else:
        logger.info("No FIT-wide Discord webhook configured; transitions are only logged")
    handler = FitwideDiscordTransitionHandler(engine, club_name=cfg.club_name, webhook=webhook)
    return StateTransitionRunner(
        engine, [handler], interval_seconds=cfg.transition_check_seconds
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine, run the transition loop."""
    engine = get_engine()
    cfg = get_config()
    runner = build_transition_runner(engine, cfg)
    runner.start()
    logger.info("Kachna API started — engine ready (%s)", engine.url.database)
    yield
    runner.stop()
    logger.info("Kachna API shutting down")


app = FastAPI(
    title="Kachna Online API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Mount routers
app.include_router(board_games_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(club_states_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
