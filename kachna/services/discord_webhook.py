"""
kachna.services.discord_webhook — Discord Webhook Client
=========================================================

Posts embeds to a Discord channel webhook.  One short-lived
:class:`httpx.AsyncClient` per call with an explicit timeout and a single
transport retry; callers decide what a failure means.
"""

from __future__ import annotations

import logging

import discord
import httpx

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 10


class DiscordWebhookClient:
    """Send embeds to one webhook URL."""

    def __init__(self, webhook_url: str, *, username: str | None = None) -> None:
        if not webhook_url:
            raise ValueError("webhook_url must not be empty")
        self.webhook_url = webhook_url
        self.username = username

    def __repr__(self) -> str:
        # The URL embeds the webhook token
        return f"<DiscordWebhookClient username={self.username!r}>"

    async def send(
        self, *, content: str | None = None, embeds: list[discord.Embed] | None = None
    ) -> None:
        """POST a message.

        Raises
        ------
        httpx.HTTPError
            On transport failure or a non-2xx response.
        """
        payload: dict = {}
        if content:
            payload["content"] = content
        if embeds:
            payload["embeds"] = [embed.to_dict() for embed in embeds]
        if self.username:
            payload["username"] = self.username

        transport = httpx.AsyncHTTPTransport(retries=1)
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS, transport=transport) as client:
            resp = await client.post(self.webhook_url, json=payload)
            resp.raise_for_status()
        logger.debug("Webhook message delivered (%d embeds)", len(embeds or []))
