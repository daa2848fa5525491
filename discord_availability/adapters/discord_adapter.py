"""
Discord adapter using discord.py.

- Listens to guild and DM messages and forwards them to the core
- Sends confirmation prompts with Yes/No buttons as a direct message
- Registers the /availability, /available and /unavailable slash commands
"""
import asyncio
from typing import List, Optional

import discord
from discord import Message, app_commands

from ..commands import AVAILABILITY, AVAILABLE, COMMAND_DESCRIPTIONS, UNAVAILABLE, AvailabilityCommands
from ..models import Intent
from .base import AnswerCallback, BaseAdapter, IncomingMessage, MessageCallback, PromptContext, ReplyHandle

# Discord limit is 2000 characters
MAX_MESSAGE_LENGTH = 2000


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split text into chunks of at most `limit` characters, on line breaks where possible."""
    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            candidate = line
        current = candidate

    if current or not chunks:
        chunks.append(current)
    return chunks


class DiscordReplyHandle(ReplyHandle):
    """Replies for one button press, backed by the component interaction."""

    def __init__(self, interaction: discord.Interaction, prompt_id: str, view: Optional[discord.ui.View] = None):
        super().__init__(interaction.user.id, prompt_id)
        self.interaction = interaction
        self.view = view

    async def send_private(self, text: str):
        if self.interaction.response.is_done():
            await self.interaction.followup.send(text, ephemeral=True)
        else:
            await self.interaction.response.send_message(text, ephemeral=True)

    async def remove_prompt(self):
        if self.view is not None:
            self.view.stop()
        try:
            await self.interaction.message.delete()
        except discord.NotFound:
            pass  # Already gone


class PromptView(discord.ui.View):
    """Yes/No buttons attached to a confirmation prompt. Never times out."""

    def __init__(self, adapter: "DiscordAdapter", context: PromptContext):
        super().__init__(timeout=None)
        self.adapter = adapter
        self.context = context

    @discord.ui.button(label="Yes", style=discord.ButtonStyle.primary)
    async def yes(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.answer(interaction, True)

    @discord.ui.button(label="No", style=discord.ButtonStyle.secondary)
    async def no(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.answer(interaction, False)

    async def answer(self, interaction: discord.Interaction, accepted: bool):
        handle = DiscordReplyHandle(interaction, self.context.prompt_id, view=self)
        await self.adapter.handle_prompt_answer(self.context, accepted, handle)


class DiscordAdapter(BaseAdapter):
    """Discord messaging adapter using discord.py."""

    def __init__(self, config: dict, on_message: MessageCallback, on_prompt_answer: AnswerCallback,
                 commands: Optional[AvailabilityCommands] = None):
        super().__init__(config, on_message, on_prompt_answer)
        self.commands = commands
        self.client: Optional[discord.Client] = None
        self.tree: Optional[app_commands.CommandTree] = None

    @property
    def platform_name(self) -> str:
        return "discord"

    def _build_client(self) -> discord.Client:
        # Message content is needed to read free-text availability
        intents = discord.Intents.default()
        intents.message_content = True

        client = discord.Client(intents=intents)
        self.tree = app_commands.CommandTree(client)
        if self.commands is not None:
            self._register_commands(self.tree)

        @client.event
        async def on_ready():
            self._running = True
            self.logger.info(f"Discord connected as {client.user}")
            try:
                # Replaces whatever commands were registered before
                synced = await self.tree.sync()
                self.logger.info(f"Synced {len(synced)} slash commands")
            except discord.HTTPException as e:
                self.logger.error(f"Could not sync slash commands: {e}")

        @client.event
        async def on_message(message: Message):
            await self._handle_message(message)

        @client.event
        async def on_disconnect():
            self.logger.warning("Discord disconnected")

        @client.event
        async def on_resumed():
            self.logger.info("Discord connection resumed")

        return client

    def _register_commands(self, tree: app_commands.CommandTree):
        commands = self.commands

        @tree.command(name=AVAILABILITY, description=COMMAND_DESCRIPTIONS[AVAILABILITY])
        async def availability(interaction: discord.Interaction):
            report = await asyncio.to_thread(commands.availability_report)
            await self.send_report(interaction, report)

        @tree.command(name=AVAILABLE, description=COMMAND_DESCRIPTIONS[AVAILABLE])
        @app_commands.describe(when="When you are available, e.g. 'friday 20:00'")
        async def available(interaction: discord.Interaction, when: Optional[str] = None):
            reply = await commands.mark(str(interaction.user.id), interaction.user.name, Intent.AVAILABLE, when)
            await interaction.response.send_message(reply, ephemeral=True)

        @tree.command(name=UNAVAILABLE, description=COMMAND_DESCRIPTIONS[UNAVAILABLE])
        @app_commands.describe(when="When you are unavailable, e.g. 'saturday'")
        async def unavailable(interaction: discord.Interaction, when: Optional[str] = None):
            reply = await commands.mark(str(interaction.user.id), interaction.user.name, Intent.UNAVAILABLE, when)
            await interaction.response.send_message(reply, ephemeral=True)

    async def start(self) -> bool:
        """Start Discord bot."""
        token = self.config.get("bot_token")
        if not token:
            self.logger.error("Discord bot_token not configured!")
            return False

        self.client = self._build_client()

        # Start in background task
        self._task = asyncio.create_task(self._run_client(token))

        # Wait a bit for connection
        await asyncio.sleep(3)

        if not self.is_running:
            self.logger.warning("Discord connection pending...")

        return True

    async def _run_client(self, token: str):
        """Run the Discord client with auto-reconnect."""
        while True:
            try:
                await self.client.start(token)
            except discord.LoginFailure:
                self.logger.error("Invalid Discord token")
                break
            except Exception as e:
                if not self.is_running:
                    break
                self.logger.error(f"Discord error, reconnecting: {e}")
                await asyncio.sleep(5)

    async def stop(self):
        """Stop Discord bot gracefully."""
        self._running = False
        if self.client:
            await self.client.close()
        if hasattr(self, '_task'):
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self.logger.info("Discord adapter stopped")

    def to_incoming(self, message: Message) -> IncomingMessage:
        return IncomingMessage(
            platform="discord",
            user_id=str(message.author.id),
            user_name=message.author.name,
            chat_id=str(message.channel.id),
            text=message.content,
            timestamp=message.created_at.timestamp(),
            raw=message,
            metadata={"message_id": str(message.id)},
        )

    async def _handle_message(self, message: Message):
        """Handle incoming Discord message."""
        # Ignore our own and other bots' messages
        if message.author.bot or (self.client and message.author == self.client.user):
            return

        if not message.content:
            return

        await self.handle_message(self.to_incoming(message))

    async def send_prompt(self, message: IncomingMessage, context: PromptContext, text: str) -> str:
        """
        Send the Yes/No prompt to the author as a direct message.

        Falls back to replying in the channel when the author does not accept
        DMs from the bot.
        """
        view = PromptView(self, context)
        if message.raw is None:
            channel = await self._get_channel(message.chat_id)
            sent = await channel.send(text, view=view)
            return str(sent.id)

        try:
            sent = await message.raw.author.send(text, view=view)
        except discord.Forbidden:
            self.logger.info(f"DMs closed for user {message.user_id}, prompting in channel {message.chat_id}")
            sent = await message.raw.reply(text, view=view, mention_author=False)
        return str(sent.id)

    async def send_report(self, interaction: discord.Interaction, text: str):
        """Answer a slash command publicly, in as many messages as the text needs."""
        chunks = split_message(text)
        await interaction.response.send_message(chunks[0])
        for chunk in chunks[1:]:
            await interaction.followup.send(chunk)

    async def _get_channel(self, chat_id: str):
        channel = self.client.get_channel(int(chat_id))
        if not channel:
            channel = await self.client.fetch_channel(int(chat_id))
        return channel
