"""
kachna.tasks — Periodic Club State Transition Check
====================================================

A ``discord.ext.tasks`` loop that wakes every
``transition_check_seconds`` and asks the database which planned states
started or ended since the previous tick.  Each transition is fanned out
to the registered :class:`~kachna.services.transition_handlers.StateTransitionHandler`
instances.

The loop runs inside the API process and is started and stopped by the
FastAPI lifespan.  The previous tick is kept in memory only, so
transitions that happen while the process is down are not replayed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from discord.ext import tasks

from kachna.constants import utcnow
from kachna.database.engine import get_session, run_db
from kachna.services.state_planning_service import due_transitions
from kachna.services.transition_handlers import (
    StateTransitionHandler,
    dispatch_end,
    dispatch_start,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _collect_due(engine: Engine, since: datetime, now: datetime) -> tuple[list[int], list[int]]:
    with get_session(engine) as session:
        return due_transitions(session, since, now)


class StateTransitionRunner:
    """Poll for started/ended planned states and notify the handlers."""

    def __init__(
        self,
        engine: Engine,
        handlers: Sequence[StateTransitionHandler],
        *,
        interval_seconds: int = 30,
    ) -> None:
        self.engine = engine
        self.handlers = list(handlers)
        self.interval_seconds = interval_seconds
        self.last_tick: datetime | None = None

    def start(self) -> None:
        self.last_tick = utcnow()
        self.transition_loop.change_interval(seconds=self.interval_seconds)
        self.transition_loop.start()
        logger.info("State transition loop started (every %ds)", self.interval_seconds)

    def stop(self) -> None:
        self.transition_loop.cancel()
        logger.info("State transition loop stopped")

    async def tick(self, now: datetime | None = None) -> tuple[list[int], list[int]]:
        """Dispatch every transition in ``(last_tick, now]`` and advance the window."""
        now = now or utcnow()
        since = self.last_tick or now
        started, ended = await run_db(_collect_due, self.engine, since, now)
        self.last_tick = now

        # Ends first so a chained successor is announced after its predecessor
        for state_id in ended:
            await dispatch_end(self.handlers, state_id)
        for state_id in started:
            await dispatch_start(self.handlers, state_id)
        if started or ended:
            logger.info("Transitions dispatched: %d started, %d ended", len(started), len(ended))
        return started, ended

    # -------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------
    @tasks.loop(seconds=30)
    async def transition_loop(self):
        try:
            await self.tick()
        except Exception:
            logger.exception("Transition check failed", extra={"task": "state_transitions"})
