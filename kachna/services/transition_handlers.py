"""
kachna.services.transition_handlers — Club State Start/End Hooks
=================================================================

Whenever a planned state starts or ends, every registered
:class:`StateTransitionHandler` is told about it.  Handlers are
best-effort side effects: a failing handler is logged and never blocks
the others or the transition itself.

The FIT-wide Discord handler logs every transition and, when a webhook
client is configured, posts an embed describing the state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kachna.database.engine import get_session, run_db
from kachna.database.models import PlannedState
from kachna.services.embeds import build_state_ended_embed, build_state_started_embed

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from kachna.services.discord_webhook import DiscordWebhookClient

logger = logging.getLogger(__name__)


@runtime_checkable
class StateTransitionHandler(Protocol):
    async def perform_start_action(self, state_id: int) -> None: ...

    async def perform_end_action(self, state_id: int) -> None: ...


# ---------------------------------------------------------------------------
# Helpers (sync — run via run_db)
# ---------------------------------------------------------------------------
def _load_state(engine: Engine, state_id: int) -> PlannedState | None:
    with get_session(engine) as session:
        planned = session.get(PlannedState, state_id)
        if planned:
            session.expunge(planned)
        return planned


# ---------------------------------------------------------------------------
# Discord
# ---------------------------------------------------------------------------
class FitwideDiscordTransitionHandler:
    """Log club state transitions and mirror them to the FIT-wide Discord."""

    def __init__(
        self,
        engine: Engine,
        *,
        club_name: str,
        webhook: DiscordWebhookClient | None = None,
    ) -> None:
        self.engine = engine
        self.club_name = club_name
        self.webhook = webhook

    async def perform_start_action(self, state_id: int) -> None:
        logger.info("Discord TH start action for %d", state_id)
        await self._notify(state_id, started=True)

    async def perform_end_action(self, state_id: int) -> None:
        logger.info("Discord TH end action for %d", state_id)
        await self._notify(state_id, started=False)

    async def _notify(self, state_id: int, *, started: bool) -> None:
        if self.webhook is None:
            return
        try:
            planned = await run_db(_load_state, self.engine, state_id)
            if planned is None:
                logger.warning("State %d vanished before the Discord notification", state_id)
                return
            embed = (
                build_state_started_embed(planned, self.club_name)
                if started
                else build_state_ended_embed(planned, self.club_name)
            )
            await self.webhook.send(embeds=[embed])
        except Exception:
            logger.exception("Failed to notify Discord about state %d", state_id)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
async def _dispatch(
    handlers: Sequence[StateTransitionHandler], state_id: int, *, started: bool
) -> None:
    calls = [
        h.perform_start_action(state_id) if started else h.perform_end_action(state_id)
        for h in handlers
    ]
    results = await asyncio.gather(*calls, return_exceptions=True)
    for handler, result in zip(handlers, results):
        if isinstance(result, Exception):
            logger.error(
                "Transition handler %s failed for state %d",
                type(handler).__name__, state_id, exc_info=result,
            )


async def dispatch_start(handlers: Sequence[StateTransitionHandler], state_id: int) -> None:
    """Run every handler's start action concurrently."""
    await _dispatch(handlers, state_id, started=True)


async def dispatch_end(handlers: Sequence[StateTransitionHandler], state_id: int) -> None:
    """Run every handler's end action concurrently."""
    await _dispatch(handlers, state_id, started=False)
