from datetime import date

import discord

from eventbot.models import Event, NotificationKind
from eventbot.services.selection import Selected, SelectionOutcome, TimedOut
from eventbot.utils.text import clip, describe_candidate

MAX_OPTIONS = 25  # Discord select menu limit

class EventSelectView(discord.ui.View):
    """
    Select menu for the manual announcement flow. Only the invoking user can
    answer; the outcome is Selected(ids) or TimedOut once the view stops.
    """

    def __init__(self, *, events: list[Event], kind: NotificationKind, today: date, author_id: int, timeout: float):
        super().__init__(timeout=timeout)
        self.author_id = author_id
        self.outcome: SelectionOutcome = TimedOut()

        shown = events[:MAX_OPTIONS]
        select = discord.ui.Select(
            placeholder="Choose events to announce...",
            min_values=1,
            max_values=len(shown),
            options=[
                discord.SelectOption(
                    label=clip(e.title, 100),
                    description=clip(describe_candidate(e, kind, today), 100),
                    value=e.id,
                )
                for e in shown
            ],
        )
        select.callback = self._on_select
        self.select = select
        self.add_item(select)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        return interaction.user is not None and interaction.user.id == self.author_id

    async def _on_select(self, interaction: discord.Interaction) -> None:
        self.outcome = Selected(tuple(self.select.values))
        await interaction.response.edit_message(content="Sending...", view=None)
        self.stop()

    async def wait_for_outcome(self) -> SelectionOutcome:
        await self.wait()
        return self.outcome
