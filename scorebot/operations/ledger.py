"""
Ledger Publisher

The ledger is the league's published record of certified matches: one row
per certified report, keyed by the report's message id. It also doubles as
the audit sink for unexpected errors.

LedgerPublisher is the contract the lifecycle controller depends on.
DatabaseLedger is the bundled implementation, storing rows in the bot's own
database. Its get_row and get_rows readers back the admin commands.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import select, delete as sql_delete

from scorebot.data_models.report import Report, jump_url
from scorebot.database.models import ErrorEntry, LedgerRow
from scorebot.utils.keyed_lock import KeyedLock
from scorebot.utils.logger import setup_logger

logger = setup_logger(__name__)

# Tracebacks are truncated so a runaway error cannot bloat the audit table
MAX_ERROR_DETAIL_LENGTH = 10000


class LedgerPublisher(ABC):
    """Append/delete rows in the external ledger, keyed by report message id"""

    @abstractmethod
    async def append_row(self, report: Report, certifier_name: str) -> None:
        """Publish a certified report, tagged with who certified it"""
        pass

    @abstractmethod
    async def delete_row(self, message_id: int) -> bool:
        """Remove the row for a report; returns False if there was none"""
        pass

    @abstractmethod
    async def report_error(self, detail: str) -> None:
        """Best-effort audit record of an error. Must never raise."""
        pass


class DatabaseLedger(LedgerPublisher):
    """Ledger rows and error audit entries stored through SQLAlchemy"""

    def __init__(self, database):
        self.db = database
        self.logger = logger
        self._locks = KeyedLock()

    async def append_row(self, report: Report, certifier_name: str) -> None:
        """
        Write the ledger row for a certified report.

        Appending twice for the same message replaces the earlier row, so a
        retried certification never produces a duplicate.
        """
        async with self._locks.hold(report.message_id):
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(LedgerRow).where(LedgerRow.message_id == report.message_id)
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = LedgerRow(message_id=report.message_id)
                    session.add(row)

                row.channel_id = report.channel_id
                row.guild_id = report.guild_id
                row.reporter_id = report.reporter_id
                row.certifier_name = certifier_name
                row.fields_json = report.fields_to_json()
                row.message_link = jump_url(report.guild_id, report.channel_id, report.message_id)
                await session.commit()

        self.logger.info(f"Ledger row written for {report.message_id} (certified by {certifier_name})")

    async def delete_row(self, message_id: int) -> bool:
        async with self._locks.hold(message_id):
            async with self.db.get_session() as session:
                result = await session.execute(
                    sql_delete(LedgerRow).where(LedgerRow.message_id == message_id)
                )
                deleted = result.rowcount
                await session.commit()

        if deleted:
            self.logger.info(f"Ledger row deleted for {message_id}")
        return bool(deleted)

    async def get_row(self, message_id: int) -> Optional[LedgerRow]:
        """Published row for a report, shown by the admin status command"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(LedgerRow).where(LedgerRow.message_id == message_id)
            )
            return result.scalar_one_or_none()

    async def get_rows(self, limit: int = 50) -> List[LedgerRow]:
        """Most recent ledger rows first"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(LedgerRow).order_by(LedgerRow.id.desc()).limit(limit)
            )
            return list(result.scalars().all())

    async def report_error(self, detail: str) -> None:
        try:
            async with self.db.get_session() as session:
                session.add(ErrorEntry(detail=detail[:MAX_ERROR_DETAIL_LENGTH]))
                await session.commit()
        except Exception:
            # Raising here would re-enter the error handler that called us
            self.logger.error("Unable to write error to the ledger", exc_info=True)
