"""
Process-wide error handling.

The last line of defence for every event handler: log the failure, then
try to record it in the ledger's audit sink. A failure of the audit sink is
logged and swallowed so it can never re-enter this handler.
"""

import asyncio
import traceback
from typing import Optional

from scorebot.utils.logger import setup_logger

logger = setup_logger(__name__)


def format_exception(error: BaseException) -> str:
    return ''.join(traceback.format_exception(type(error), error, error.__traceback__))


class ErrorReporter:
    """Logs unexpected errors and mirrors them to the audit sink"""

    def __init__(self, ledger=None):
        self.ledger = ledger
        self.logger = logger
        # Reports scheduled from the loop exception handler, kept alive until done
        self._pending = set()

    async def report(self, error: BaseException, context: Optional[str] = None) -> None:
        where = f" in {context}" if context else ""
        self.logger.error(
            f"Unhandled error{where}: {error}",
            exc_info=(type(error), error, error.__traceback__)
        )

        if self.ledger is None:
            return

        detail = format_exception(error)
        if context:
            detail = f"[{context}]\n{detail}"
        try:
            await self.ledger.report_error(detail)
        except Exception:
            # Never propagate: raising here would mask the original error
            self.logger.error("Unable to write error to the ledger", exc_info=True)

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        """
        asyncio exception handler for errors nobody awaited (failed background
        tasks, callbacks). Routes them through report() instead of letting the
        default handler print them.
        """
        error = context.get('exception')
        message = context.get('message', 'Unhandled exception in event loop')
        if error is None:
            self.logger.error(message)
            return
        task = loop.create_task(self.report(error, context=message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
