import asyncio
import sys
import traceback
from typing import Optional

import discord
from discord.ext import commands

from scorebot.config import Config
from scorebot.database.database import Database
from scorebot.database.game_records import GameRecordStore
from scorebot.operations.ledger import DatabaseLedger
from scorebot.operations.permissions import PermissionPolicy
from scorebot.utils.error_reporting import ErrorReporter
from scorebot.utils.logger import setup_logger


class ScoreBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.members = True
        intents.reactions = True

        super().__init__(
            command_prefix=Config.COMMAND_PREFIX,
            intents=intents,
            help_command=None
        )

        self.report_settings = Config.report_settings()
        self.permission_policy = PermissionPolicy.from_settings(self.report_settings)
        self.db: Optional[Database] = None
        self.record_store: Optional[GameRecordStore] = None
        self.ledger: Optional[DatabaseLedger] = None
        self.error_reporter = ErrorReporter()
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up Score Bot...")

        self.db = Database()
        await self.db.initialize()

        self.record_store = GameRecordStore(self.db)
        self.ledger = DatabaseLedger(self.db)
        self.error_reporter.ledger = self.ledger

        # Errors from tasks nobody awaits go through the same reporter
        asyncio.get_running_loop().set_exception_handler(self.error_reporter.handle_loop_exception)

        await self.load_cogs()

        self.logger.info("Score Bot setup complete!")

    async def load_cogs(self):
        """Load all cogs"""
        cogs_to_load = [
            'scorebot.cogs.score_reports',
            'scorebot.cogs.score_admin',
        ]

        for cog in cogs_to_load:
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def on_ready(self):
        """Called when the bot is ready"""
        self.logger.info(
            f"Logged in as {self.user}! Serving in {len(self.guilds)} servers for {len(self.users)} users"
        )

        if self.report_settings.now_playing:
            await self.change_presence(activity=discord.Game(name=self.report_settings.now_playing))

    async def on_resumed(self):
        self.logger.info("Reconnected to Discord")

    async def on_error(self, event_method: str, /, *args, **kwargs):
        """Global handler for exceptions escaping any event listener"""
        error = sys.exc_info()[1]
        if error is None:
            self.logger.error(f"on_error called for {event_method} without an active exception")
            return
        await self.error_reporter.report(error, context=event_method)

    async def on_command_error(self, ctx: commands.Context, error: Exception):
        """Global error handler for commands"""
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{ctx.command.name if ctx.command else 'Unknown'}' by user {ctx.author}")
            embed = discord.Embed(
                title="❌ Administrative Privileges Required",
                description="This command is restricted to league admins only.",
                color=discord.Color.red()
            )
            await ctx.send(embed=embed)
            return

        if isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(f"❌ Missing required argument: `{error.param.name}`")
            return

        if isinstance(error, commands.BadArgument):
            await ctx.send(f"❌ Invalid argument: {error}")
            return

        original = getattr(error, 'original', error)
        await self.error_reporter.report(original, context=f"command {ctx.command}")

        embed = discord.Embed(
            title="❌ An error occurred",
            description="An unexpected error occurred while processing your command. The error has been logged.",
            color=discord.Color.red()
        )
        await ctx.send(embed=embed)

    async def close(self):
        """Cleanup when bot is shutting down"""
        self.logger.info("Shutting down Score Bot...")

        if self.db:
            await self.db.close()

        await super().close()


async def main():
    """Main entry point"""
    Config.validate()

    bot = ScoreBot()

    try:
        await bot.start(Config.DISCORD_TOKEN)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        bot.logger.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        await bot.close()


def run():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
