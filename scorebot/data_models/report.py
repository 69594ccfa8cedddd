"""
Report data models for score reporting.

Immutable value objects shared by the parser, the lifecycle controller,
the game record store and the ledger.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ReportField:
    """One participant line of a report: who played and what they scored."""
    user_id: int
    stat: str


@dataclass(frozen=True)
class Report:
    """A successfully parsed score report."""
    command: str
    fields: Tuple[ReportField, ...]
    message_id: int
    channel_id: int
    guild_id: Optional[int]
    reporter_id: int

    @property
    def participant_ids(self) -> List[int]:
        return [f.user_id for f in self.fields]

    def fields_to_json(self) -> str:
        return fields_to_json(self.fields)


def fields_to_json(fields: Tuple[ReportField, ...]) -> str:
    """Serialise report fields for storage"""
    return json.dumps([{"user_id": f.user_id, "stat": f.stat} for f in fields])


def fields_from_json(raw: str) -> Tuple[ReportField, ...]:
    """Inverse of fields_to_json"""
    return tuple(ReportField(user_id=int(item["user_id"]), stat=str(item["stat"])) for item in json.loads(raw))


class RecordState(Enum):
    ABSENT = "absent"
    UNVALIDATED = "unvalidated"
    VALIDATED = "validated"
    CERTIFIED = "certified"


@dataclass(frozen=True)
class GameRecordSnapshot:
    """Detached, read-only view of a persisted game record."""
    message_id: int
    channel_id: int
    guild_id: Optional[int]
    reporter_id: int
    command: str
    fields: Tuple[ReportField, ...]
    validated: bool = False
    certified: bool = False
    created_at: Optional[datetime] = None

    @property
    def state(self) -> RecordState:
        if self.certified:
            return RecordState.CERTIFIED
        if self.validated:
            return RecordState.VALIDATED
        return RecordState.UNVALIDATED

    @property
    def participant_ids(self) -> List[int]:
        return [f.user_id for f in self.fields]


def record_state(record: Optional[GameRecordSnapshot]) -> RecordState:
    """State of an optional record, ABSENT when there is none"""
    return record.state if record is not None else RecordState.ABSENT


def jump_url(guild_id: Optional[int], channel_id: int, message_id: int) -> str:
    """Link that opens the report message in the Discord client"""
    return f"https://discord.com/channels/{guild_id if guild_id else '@me'}/{channel_id}/{message_id}"
