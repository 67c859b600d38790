import logging
from pathlib import Path

import discord

from eventbot.services.notifier import Channel

log = logging.getLogger("bot.channel")

class DiscordChannel(Channel):
    def __init__(self, client: discord.Client, channel_id: int):
        self.client = client
        self.channel_id = channel_id

    async def _resolve(self) -> discord.abc.Messageable | None:
        ch = self.client.get_channel(self.channel_id)
        if ch is not None:
            return ch
        try:
            return await self.client.fetch_channel(self.channel_id)
        except (discord.NotFound, discord.Forbidden) as ex:
            log.error("Announcements channel %s unavailable: %s", self.channel_id, ex)
            return None

    async def send(self, text: str, attachment: Path | None = None) -> bool:
        ch = await self._resolve()
        if ch is None:
            return False
        if attachment is not None:
            await ch.send(content=text, file=discord.File(str(attachment)))
        else:
            await ch.send(content=text)
        return True
