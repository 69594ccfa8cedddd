from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text,
    BigInteger, CheckConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from scorebot.data_models.report import GameRecordSnapshot, fields_from_json

Base = declarative_base()


class GameRecord(Base):
    """
    One reported match, keyed by the Discord message that reported it.

    The row is created when the report first parses, flipped to validated by
    a participant reaction, flipped to certified by an admin, and deleted when
    the report is edited before certification.
    """
    __tablename__ = 'game_records'

    id = Column(Integer, primary_key=True)
    message_id = Column(BigInteger, nullable=False, unique=True, index=True)
    channel_id = Column(BigInteger, nullable=False)
    guild_id = Column(BigInteger, nullable=True)
    reporter_id = Column(BigInteger, nullable=False)

    command = Column(String(50), nullable=False)
    fields_json = Column(Text, nullable=False)  # [{"user_id": ..., "stat": ...}, ...]

    validated = Column(Boolean, nullable=False, default=False)
    certified = Column(Boolean, nullable=False, default=False)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    validated_at = Column(DateTime, nullable=True)
    certified_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint('NOT certified OR validated', name='ck_certified_requires_validated'),
    )

    def to_snapshot(self) -> GameRecordSnapshot:
        return GameRecordSnapshot(
            message_id=self.message_id,
            channel_id=self.channel_id,
            guild_id=self.guild_id,
            reporter_id=self.reporter_id,
            command=self.command,
            fields=fields_from_json(self.fields_json),
            validated=bool(self.validated),
            certified=bool(self.certified),
            created_at=self.created_at,
        )

    def __repr__(self):
        return f"<GameRecord(message_id={self.message_id}, validated={self.validated}, certified={self.certified})>"


class LedgerRow(Base):
    """
    Published result of a certified match.

    Exactly one row per certified GameRecord, keyed by the same message id.
    """
    __tablename__ = 'ledger_rows'

    id = Column(Integer, primary_key=True)
    message_id = Column(BigInteger, nullable=False, unique=True, index=True)
    channel_id = Column(BigInteger, nullable=False)
    guild_id = Column(BigInteger, nullable=True)
    reporter_id = Column(BigInteger, nullable=False)
    certifier_name = Column(String(100), nullable=False)
    fields_json = Column(Text, nullable=False)
    message_link = Column(String(200), nullable=True)

    created_at = Column(DateTime, default=func.now())

    def to_cells(self) -> list:
        """Flatten the row the way the league spreadsheet lays it out"""
        cells = [
            self.created_at.strftime('%Y-%m-%d %H:%M:%S') if self.created_at else '',
            self.message_link or str(self.message_id),
            self.certifier_name,
        ]
        for field in fields_from_json(self.fields_json):
            cells.extend([str(field.user_id), field.stat])
        return cells

    def __repr__(self):
        return f"<LedgerRow(message_id={self.message_id}, certifier='{self.certifier_name}')>"


class ErrorEntry(Base):
    """Audit trail of unexpected errors"""
    __tablename__ = 'error_log'

    id = Column(Integer, primary_key=True)
    detail = Column(Text, nullable=False)
    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<ErrorEntry(id={self.id})>"
