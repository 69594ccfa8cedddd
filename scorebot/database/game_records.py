"""
Game Record Store

CRUD over persisted game records, keyed by the Discord message id of the
report. Every operation is idempotent under retry and serialised per message
id, so concurrent reactions on the same report cannot interleave two
transitions:

- insert() refuses to overwrite an existing record
- mark_validated() / mark_certified() are conditional UPDATEs that report
  whether this call performed the flip
- clear() deletes the record if present
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete as sql_delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from scorebot.data_models.report import GameRecordSnapshot, Report
from scorebot.database.models import GameRecord
from scorebot.utils.keyed_lock import KeyedLock
from scorebot.utils.logger import setup_logger

logger = setup_logger(__name__)


class GameRecordError(Exception):
    """Raised when the backing database fails a game record operation"""
    pass


class GameRecordStore:
    """Persisted game state for score reports"""

    def __init__(self, database):
        """Initialize with database instance"""
        self.db = database
        self.logger = logger
        self._locks = KeyedLock()
        # Held across a whole lifecycle transition or admin override
        self._transitions = KeyedLock()

    async def get(self, message_id: int) -> Optional[GameRecordSnapshot]:
        """Get the record for a report message, or None if there is none"""
        try:
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(GameRecord).where(GameRecord.message_id == message_id)
                )
                record = result.scalar_one_or_none()
                return record.to_snapshot() if record else None
        except SQLAlchemyError as e:
            raise GameRecordError(f"Failed to load game record {message_id}: {e}") from e

    async def insert(self, report: Report) -> bool:
        """
        Create an unvalidated record for a freshly parsed report.

        Returns:
            True if the record was created, False if one already existed
        """
        async with self._locks.hold(report.message_id):
            try:
                async with self.db.get_session() as session:
                    existing = await session.scalar(
                        select(GameRecord.id).where(GameRecord.message_id == report.message_id)
                    )
                    if existing is not None:
                        self.logger.debug(f"Game record {report.message_id} already exists, skipping insert")
                        return False

                    session.add(GameRecord(
                        message_id=report.message_id,
                        channel_id=report.channel_id,
                        guild_id=report.guild_id,
                        reporter_id=report.reporter_id,
                        command=report.command,
                        fields_json=report.fields_to_json(),
                        validated=False,
                        certified=False,
                    ))
                    await session.commit()
            except IntegrityError:
                # Unique message_id hit by a writer outside this process
                self.logger.warning(f"Concurrent insert for game record {report.message_id}")
                return False
            except SQLAlchemyError as e:
                raise GameRecordError(f"Failed to insert game record {report.message_id}: {e}") from e

        self.logger.info(f"Inserted game record {report.message_id} with {len(report.fields)} fields")
        return True

    async def mark_validated(self, message_id: int) -> bool:
        """
        Flag a record as validated.

        Returns:
            True if this call flipped the flag, False if the record was missing or already validated
        """
        changed = await self._conditional_update(
            message_id,
            [GameRecord.validated == False],
            {'validated': True, 'validated_at': datetime.now(timezone.utc)},
        )
        if changed:
            self.logger.info(f"Game record {message_id} validated")
        return changed

    async def mark_certified(self, message_id: int) -> bool:
        """
        Flag a validated record as certified.

        Only one concurrent caller can win this flip; everyone else gets False.
        A record that was never validated is never certified.
        """
        changed = await self._conditional_update(
            message_id,
            [GameRecord.validated == True, GameRecord.certified == False],
            {'certified': True, 'certified_at': datetime.now(timezone.utc)},
        )
        if changed:
            self.logger.info(f"Game record {message_id} certified")
        return changed

    async def revoke_certification(self, message_id: int) -> bool:
        """Undo mark_certified when the ledger write that should follow it fails"""
        changed = await self._conditional_update(
            message_id,
            [GameRecord.certified == True],
            {'certified': False, 'certified_at': None},
        )
        if changed:
            self.logger.warning(f"Certification of game record {message_id} revoked")
        return changed

    async def clear(self, message_id: int) -> bool:
        """
        Delete a record entirely.

        Returns:
            True if a record was deleted
        """
        async with self._locks.hold(message_id):
            try:
                async with self.db.get_session() as session:
                    result = await session.execute(
                        sql_delete(GameRecord).where(GameRecord.message_id == message_id)
                    )
                    deleted = result.rowcount
                    await session.commit()
            except SQLAlchemyError as e:
                raise GameRecordError(f"Failed to clear game record {message_id}: {e}") from e

        if deleted:
            self.logger.info(f"Cleared game record {message_id}")
        return bool(deleted)

    def locked(self, message_id: int):
        """
        Serialise a read-decide-write sequence on one report.

        Separate from the per-operation locks, so the store methods above can
        still be called while it is held.
        """
        return self._transitions.hold(message_id)

    async def _conditional_update(self, message_id: int, conditions: list, values: dict) -> bool:
        """Atomic UPDATE with the expected current state in the WHERE clause"""
        async with self._locks.hold(message_id):
            try:
                async with self.db.get_session() as session:
                    result = await session.execute(
                        update(GameRecord)
                        .where(GameRecord.message_id == message_id, *conditions)
                        .values(**values)
                    )
                    changed = result.rowcount > 0
                    await session.commit()
            except SQLAlchemyError as e:
                raise GameRecordError(f"Failed to update game record {message_id}: {e}") from e
        return changed
