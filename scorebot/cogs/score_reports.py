"""
Score Reports Cog

Bridges Discord gateway events to the score report lifecycle. Messages,
edits and reactions in the configured channel are turned into lifecycle
events; the resulting chat side effects are carried out through
DiscordChatGateway.
"""

from typing import Optional

import discord
from discord.ext import commands

from scorebot.operations.lifecycle import (
    ChatGateway, ChatMessage, LifecycleController,
    MessageEdited, MessagePosted, ReactionAdded
)
from scorebot.utils.logger import setup_logger

logger = setup_logger(__name__)

# Discord rejects message content longer than this
MAX_MESSAGE_LENGTH = 2000


def to_chat_message(message: discord.Message) -> ChatMessage:
    """Snapshot the parts of a discord.Message the lifecycle needs"""
    return ChatMessage(
        id=message.id,
        content=message.content or '',
        author_id=message.author.id,
        channel_id=message.channel.id,
        channel_name=getattr(message.channel, 'name', '') or '',
        guild_id=message.guild.id if message.guild else None,
    )


class DiscordChatGateway(ChatGateway):
    """Chat side effects carried out with discord.py"""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.logger = logger

    @property
    def bot_user_id(self) -> Optional[int]:
        return self.bot.user.id if self.bot.user else None

    async def _channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def _partial(self, message: ChatMessage) -> discord.PartialMessage:
        channel = await self._channel(message.channel_id)
        return channel.get_partial_message(message.id)

    async def reply(self, message: ChatMessage, text: str) -> None:
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[:MAX_MESSAGE_LENGTH - 3] + '...'
        partial = await self._partial(message)
        await partial.reply(text)

    async def delete_message(self, message: ChatMessage) -> None:
        partial = await self._partial(message)
        try:
            await partial.delete()
        except discord.NotFound:
            self.logger.debug(f"Message {message.id} already deleted")

    async def clear_reactions(self, message: ChatMessage) -> None:
        partial = await self._partial(message)
        await partial.clear_reactions()

    async def add_reaction(self, message: ChatMessage, emoji: str) -> None:
        partial = await self._partial(message)
        await partial.add_reaction(emoji)

    async def remove_reaction(self, message: ChatMessage, emoji: str, user_id: int) -> None:
        partial = await self._partial(message)
        try:
            await partial.remove_reaction(emoji, discord.Object(id=user_id))
        except discord.NotFound:
            self.logger.debug(f"Reaction {emoji} by {user_id} already gone from message {message.id}")

    async def notify(self, message: ChatMessage, user_id: int, text: str) -> None:
        guild = self.bot.get_guild(message.guild_id) if message.guild_id else None
        if guild is None:
            self.logger.warning(f"Cannot notify {user_id}: guild {message.guild_id} not available")
            return

        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound:
                self.logger.info(f"Tagged user {user_id} is not a member of guild {guild.id}, skipping DM")
                return

        try:
            await member.send(text)
        except discord.Forbidden:
            # Member has DMs closed; the report stays valid without the nudge
            self.logger.info(f"Could not DM {member} ({user_id}) about message {message.id}")


class ScoreReportsCog(commands.Cog):
    """Score report intake, validation and certification"""

    def __init__(self, bot):
        self.bot = bot
        self.logger = logger
        self.settings = bot.report_settings
        self.gateway = DiscordChatGateway(bot)
        self.controller = LifecycleController(
            store=bot.record_store,
            ledger=bot.ledger,
            chat=self.gateway,
            settings=self.settings,
            policy=bot.permission_policy,
        )

    def _in_score_channel(self, channel) -> bool:
        return getattr(channel, 'name', None) == self.settings.channel_name

    async def _fetch_message(self, channel, message_id: int) -> Optional[discord.Message]:
        try:
            return await channel.fetch_message(message_id)
        except discord.NotFound:
            self.logger.debug(f"Message {message_id} vanished before it could be handled")
            return None

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        """New score reports"""
        if message.guild is None or not self._in_score_channel(message.channel):
            return
        if self.bot.user and message.author.id == self.bot.user.id:
            return

        await self.controller.handle(MessagePosted(to_chat_message(message)))

    @commands.Cog.listener()
    async def on_raw_message_edit(self, payload: discord.RawMessageUpdateEvent):
        """Edited score reports, including messages no longer in the cache"""
        data = payload.data
        if 'content' not in data:
            # Embed unfurls and pin changes arrive as edits without content
            return
        if payload.cached_message is not None and payload.cached_message.content == data['content']:
            return

        channel = self.bot.get_channel(payload.channel_id)
        if channel is None or not self._in_score_channel(channel):
            return

        message = await self._fetch_message(channel, payload.message_id)
        if message is None:
            return

        await self.controller.handle(MessageEdited(to_chat_message(message)))

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent):
        """Peer validation and admin certification"""
        if payload.guild_id is None:
            return
        if self.bot.user and payload.user_id == self.bot.user.id:
            return

        channel = self.bot.get_channel(payload.channel_id)
        if channel is None or not self._in_score_channel(channel):
            return

        message = await self._fetch_message(channel, payload.message_id)
        if message is None:
            return

        display_name = payload.member.display_name if payload.member else str(payload.user_id)
        await self.controller.handle(ReactionAdded(
            message=to_chat_message(message),
            # Unicode emoji render as themselves, custom ones as <:name:id>
            emoji=str(payload.emoji),
            user_id=payload.user_id,
            user_display_name=display_name,
        ))


async def setup(bot):
    await bot.add_cog(ScoreReportsCog(bot))
