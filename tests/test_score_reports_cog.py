"""Tests for the Discord event adapter."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from scorebot.cogs.score_reports import DiscordChatGateway, ScoreReportsCog, to_chat_message
from scorebot.operations.lifecycle import MessageEdited, MessagePosted, ReactionAdded

from tests.fakes import ALICE, BOB, BOT, CHANNEL, CHANNEL_ID, GUILD_ID, make_message


def _channel(name=CHANNEL):
    channel = MagicMock()
    channel.id = CHANNEL_ID
    channel.name = name
    return channel


def _discord_message(content="!score <@101> 1 <@102> 2", channel=None):
    message = MagicMock()
    message.id = 1
    message.content = content
    message.author.id = ALICE
    message.channel = channel or _channel()
    message.guild.id = GUILD_ID
    return message


@pytest.fixture
def cog(settings, policy):
    bot = SimpleNamespace(
        user=SimpleNamespace(id=BOT),
        report_settings=settings,
        record_store=AsyncMock(),
        ledger=AsyncMock(),
        permission_policy=policy,
        get_channel=MagicMock(),
        get_guild=MagicMock(),
    )
    cog = ScoreReportsCog(bot)
    cog.controller = AsyncMock()
    return cog


def test_to_chat_message_snapshot():
    chat_message = to_chat_message(_discord_message())

    assert chat_message == make_message("!score <@101> 1 <@102> 2")


@pytest.mark.asyncio
async def test_new_message_in_score_channel_is_handled(cog):
    await cog.on_message(_discord_message())

    event = cog.controller.handle.await_args.args[0]
    assert isinstance(event, MessagePosted)


@pytest.mark.asyncio
async def test_messages_elsewhere_and_from_bot_are_ignored(cog):
    await cog.on_message(_discord_message(channel=_channel("general")))
    own = _discord_message()
    own.author.id = BOT
    await cog.on_message(own)

    cog.controller.handle.assert_not_awaited()


@pytest.mark.asyncio
async def test_edit_without_content_change_is_ignored(cog):
    cached = SimpleNamespace(content="!score <@101> 1 <@102> 2")
    unchanged = SimpleNamespace(data={'content': cached.content}, cached_message=cached,
                                channel_id=CHANNEL_ID, message_id=1)
    embed_only = SimpleNamespace(data={'embeds': []}, cached_message=None,
                                 channel_id=CHANNEL_ID, message_id=1)

    await cog.on_raw_message_edit(unchanged)
    await cog.on_raw_message_edit(embed_only)

    cog.controller.handle.assert_not_awaited()


@pytest.mark.asyncio
async def test_content_edit_is_fetched_and_handled(cog):
    channel = _channel()
    channel.fetch_message = AsyncMock(return_value=_discord_message("!score <@101> 3 <@102> 2", channel))
    cog.bot.get_channel.return_value = channel
    payload = SimpleNamespace(data={'content': "!score <@101> 3 <@102> 2"}, cached_message=None,
                              channel_id=CHANNEL_ID, message_id=1)

    await cog.on_raw_message_edit(payload)

    event = cog.controller.handle.await_args.args[0]
    assert isinstance(event, MessageEdited)
    assert event.message.content == "!score <@101> 3 <@102> 2"


@pytest.mark.asyncio
async def test_reaction_is_handled_with_display_name(cog):
    channel = _channel()
    channel.fetch_message = AsyncMock(return_value=_discord_message(channel=channel))
    cog.bot.get_channel.return_value = channel
    payload = SimpleNamespace(
        guild_id=GUILD_ID, channel_id=CHANNEL_ID, message_id=1, user_id=BOB,
        emoji=discord.PartialEmoji(name="👍"), member=SimpleNamespace(display_name="Bobby"),
    )

    await cog.on_raw_reaction_add(payload)

    event = cog.controller.handle.await_args.args[0]
    assert isinstance(event, ReactionAdded)
    assert (event.emoji, event.user_id, event.user_display_name) == ("👍", BOB, "Bobby")


@pytest.mark.asyncio
async def test_gateway_skips_dm_when_member_has_dms_closed(settings):
    member = MagicMock()
    member.send = AsyncMock(side_effect=discord.Forbidden(MagicMock(status=403), "closed"))
    guild = MagicMock()
    guild.get_member.return_value = member
    bot = SimpleNamespace(user=None, get_guild=MagicMock(return_value=guild))

    gateway = DiscordChatGateway(bot)
    await gateway.notify(make_message("!score"), BOB, "please validate")

    member.send.assert_awaited_once_with("please validate")
    assert gateway.bot_user_id is None
