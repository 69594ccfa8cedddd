"""Tests for the admin override commands."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from scorebot.cogs.score_admin import ScoreAdminCog
from scorebot.data_models.report import Report, ReportField

from tests.fakes import ADMIN, ALICE, BIG_ADMIN, BOB, CHANNEL_ID, GUILD_ID


def _report(message_id=1):
    return Report(
        command="!score",
        fields=(ReportField(ALICE, "10"), ReportField(BOB, "5")),
        message_id=message_id,
        channel_id=CHANNEL_ID,
        guild_id=GUILD_ID,
        reporter_id=ALICE,
    )


async def _certified(store, ledger, message_id=1):
    report = _report(message_id)
    await store.insert(report)
    await store.mark_validated(message_id)
    await store.mark_certified(message_id)
    await ledger.append_row(report, "Referee Rita")


def _ctx(user_id):
    return SimpleNamespace(author=SimpleNamespace(id=user_id), send=AsyncMock())


@pytest.fixture
def channel():
    channel = MagicMock()
    channel.get_partial_message.return_value.clear_reactions = AsyncMock()
    return channel


@pytest.fixture
def cog(store, ledger, database, policy, channel):
    bot = SimpleNamespace(
        record_store=store,
        ledger=ledger,
        db=database,
        permission_policy=policy,
        get_channel=MagicMock(return_value=channel),
    )
    return ScoreAdminCog(bot)


def test_only_configured_admins_pass_cog_check(cog):
    assert cog.cog_check(_ctx(ADMIN))
    assert cog.cog_check(_ctx(BIG_ADMIN))
    assert not cog.cog_check(_ctx(ALICE))


@pytest.mark.asyncio
async def test_plain_admin_cannot_clear(cog, store, ledger):
    await _certified(store, ledger)
    ctx = _ctx(ADMIN)

    await cog.clear_score.callback(cog, ctx, 1)

    assert "Only big admins" in ctx.send.await_args.args[0]
    assert (await store.get(1)).certified
    assert await ledger.get_row(1) is not None


@pytest.mark.asyncio
async def test_big_admin_clears_certified_report(cog, store, ledger, channel):
    await _certified(store, ledger)
    ctx = _ctx(BIG_ADMIN)

    await cog.clear_score.callback(cog, ctx, 1)

    assert await store.get(1) is None
    assert await ledger.get_row(1) is None
    channel.get_partial_message.assert_called_once_with(1)
    channel.get_partial_message.return_value.clear_reactions.assert_awaited_once()
    assert "can now be reposted" in ctx.send.await_args.args[0]


@pytest.mark.asyncio
async def test_clear_warns_when_certified_marker_stays(cog, store, ledger, channel):
    await _certified(store, ledger)
    channel.get_partial_message.return_value.clear_reactions.side_effect = discord.Forbidden(
        MagicMock(status=403), "missing permissions"
    )
    ctx = _ctx(BIG_ADMIN)

    await cog.clear_score.callback(cog, ctx, 1)

    assert await store.get(1) is None
    assert "stale" in ctx.send.await_args.args[0]


@pytest.mark.asyncio
async def test_clear_unknown_report(cog, channel):
    ctx = _ctx(BIG_ADMIN)

    await cog.clear_score.callback(cog, ctx, 42)

    assert "No record found" in ctx.send.await_args.args[0]
    channel.get_partial_message.assert_not_called()


@pytest.mark.asyncio
async def test_status_shows_state_and_ledger_row(cog, store, ledger):
    await _certified(store, ledger)
    ctx = _ctx(ADMIN)

    await cog.score_status.callback(cog, ctx, 1)

    embed = ctx.send.await_args.kwargs['embed']
    fields = {field.name: field.value for field in embed.fields}
    assert fields["State"] == "Certified"
    assert "Referee Rita" in fields["Ledger row"]


@pytest.mark.asyncio
async def test_stats_lists_latest_certifications(cog, store, ledger):
    await _certified(store, ledger, message_id=1)
    await store.insert(_report(message_id=2))
    ctx = _ctx(ADMIN)

    await cog.score_stats.callback(cog, ctx)

    embed = ctx.send.await_args.kwargs['embed']
    fields = {field.name: field.value for field in embed.fields}
    assert (fields["Records"], fields["Certified"], fields["Ledger rows"]) == ("2", "1", "1")
    assert "by Referee Rita" in fields["Latest certifications"]
