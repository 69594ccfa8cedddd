import discord
from discord.ext import commands

from scorebot.data_models.report import record_state
from scorebot.utils.logger import setup_logger

logger = setup_logger(__name__)

# Discord embed field values are capped at this length
MAX_FIELD_LENGTH = 1024


class ScoreAdminCog(commands.Cog):
    """Admin-only commands for inspecting and overriding score records"""

    def __init__(self, bot):
        self.bot = bot
        self.store = bot.record_store
        self.ledger = bot.ledger
        self.policy = bot.permission_policy
        self.logger = logger

    def cog_check(self, ctx):
        """Check if user is a configured admin"""
        return self.policy.is_admin(ctx.author.id) or self.policy.is_big_admin(ctx.author.id)

    @commands.command(name='scorestatus')
    async def score_status(self, ctx, message_id: int):
        """Show the lifecycle state and ledger row of a score report (Admin only)"""
        record = await self.store.get(message_id)
        row = await self.ledger.get_row(message_id)
        state = record_state(record)

        embed = discord.Embed(
            title=f"📋 Score report {message_id}",
            color=discord.Color.blue()
        )
        embed.add_field(name="State", value=state.value.title(), inline=True)
        if record:
            embed.add_field(name="Reporter", value=f"<@{record.reporter_id}>", inline=True)
            embed.add_field(
                name="Fields",
                value='\n'.join(f"<@{f.user_id}> {f.stat}" for f in record.fields),
                inline=False
            )
        if row:
            embed.add_field(
                name="Ledger row",
                value=' | '.join(row.to_cells())[:MAX_FIELD_LENGTH],
                inline=False
            )
        await ctx.send(embed=embed)

    @commands.command(name='clearscore')
    async def clear_score(self, ctx, message_id: int):
        """Delete a report's record, ledger row and reactions, even if certified (Big admin only)"""
        if not self.policy.is_big_admin(ctx.author.id):
            await ctx.send("❌ Only big admins can clear score reports.")
            return

        async with self.store.locked(message_id):
            record = await self.store.get(message_id)
            row = await self.ledger.get_row(message_id)
            ledger_deleted = await self.ledger.delete_row(message_id)
            record_deleted = await self.store.clear(message_id)

        self.logger.warning(
            f"{ctx.author} ({ctx.author.id}) cleared score report {message_id} "
            f"(record={record_deleted}, ledger={ledger_deleted})"
        )

        if not (record_deleted or ledger_deleted):
            await ctx.send(f"ℹ️ No record found for message `{message_id}`.")
            return

        channel_id = record.channel_id if record else row.channel_id
        if not await self._clear_reactions(channel_id, message_id):
            await ctx.send(
                f"✅ Cleared score report `{message_id}`, but its reactions could not be "
                f"removed. The 🏆 marker on it is stale."
            )
            return
        await ctx.send(
            f"✅ Cleared score report `{message_id}`. The report can now be reposted."
        )

    async def _clear_reactions(self, channel_id: int, message_id: int) -> bool:
        """Drop the validation and certified markers left on a cleared report"""
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            self.logger.warning(f"Channel {channel_id} of report {message_id} is not available")
            return False
        try:
            await channel.get_partial_message(message_id).clear_reactions()
        except (discord.NotFound, discord.Forbidden) as e:
            self.logger.warning(f"Could not clear reactions on report {message_id}: {e}")
            return False
        return True

    @commands.command(name='scorestats')
    async def score_stats(self, ctx):
        """Show score report statistics (Admin only)"""
        stats = await self.bot.db.get_stats()
        recent = await self.ledger.get_rows(limit=5)

        embed = discord.Embed(
            title="📊 Score Report Statistics",
            color=discord.Color.blue()
        )
        embed.add_field(name="Records", value=stats['records'], inline=True)
        embed.add_field(name="Validated", value=stats['validated'], inline=True)
        embed.add_field(name="Certified", value=stats['certified'], inline=True)
        embed.add_field(name="Ledger rows", value=stats['ledger_rows'], inline=True)
        embed.add_field(name="Logged errors", value=stats['errors'], inline=True)
        if recent:
            embed.add_field(
                name="Latest certifications",
                value='\n'.join(
                    f"[{row.message_id}]({row.message_link}) by {row.certifier_name}" for row in recent
                )[:MAX_FIELD_LENGTH],
                inline=False
            )
        await ctx.send(embed=embed)


async def setup(bot):
    await bot.add_cog(ScoreAdminCog(bot))
