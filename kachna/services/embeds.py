"""
kachna.services.embeds — Discord embed builders for club state changes
=======================================================================

All embed construction lives here so transition handlers only supply
data — no layout concerns.
"""

from __future__ import annotations

from datetime import UTC, datetime

import discord

from kachna.database.models import PlannedState, StateType

STATE_LABELS: dict[str, str] = {
    StateType.CLOSED: "Closed",
    StateType.OPEN_CHILLZONE: "Chillzone",
    StateType.OPEN_BAR: "Bar open",
    StateType.PRIVATE: "Private event",
}

STATE_COLORS: dict[str, discord.Color] = {
    StateType.CLOSED: discord.Color.dark_grey(),
    StateType.OPEN_CHILLZONE: discord.Color.blue(),
    StateType.OPEN_BAR: discord.Color.green(),
    StateType.PRIVATE: discord.Color.purple(),
}


def _label(state: str) -> str:
    return STATE_LABELS.get(state, state)


def build_state_started_embed(planned: PlannedState, club_name: str) -> discord.Embed:
    """Announce that *planned* has begun."""
    description = f"**{club_name}** is now: **{_label(planned.state)}**"
    if planned.planned_end is not None:
        description += f"\nPlanned until <t:{_unix(planned.planned_end)}:t>"
    embed = discord.Embed(
        title="\U0001f986 Club state started",
        description=description,
        color=STATE_COLORS.get(planned.state, discord.Color.default()),
    )
    if planned.note_public:
        embed.add_field(name="Note", value=planned.note_public, inline=False)
    return embed


def build_state_ended_embed(planned: PlannedState, club_name: str) -> discord.Embed:
    """Announce that *planned* is over."""
    return discord.Embed(
        title="\U0001f6aa Club state ended",
        description=f"**{_label(planned.state)}** at **{club_name}** has ended.",
        color=discord.Color.dark_grey(),
    )


def _unix(naive_utc: datetime) -> int:
    return int(naive_utc.replace(tzinfo=UTC).timestamp())
