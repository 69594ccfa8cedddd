"""
Permission policy for score reports.

Pure predicates over the configured admin sets. No I/O.
"""

from typing import Iterable, Optional

from scorebot.config import ReportSettings
from scorebot.data_models.report import GameRecordSnapshot, ReportField


class PermissionPolicy:
    """Answers "is this user allowed to do X" for the score report workflow"""

    def __init__(self, admin_ids: Iterable[int], big_admin_ids: Iterable[int]):
        self.admin_ids = frozenset(admin_ids)
        self.big_admin_ids = frozenset(big_admin_ids)

    @classmethod
    def from_settings(cls, settings: ReportSettings) -> 'PermissionPolicy':
        return cls(settings.admin_ids, settings.big_admin_ids)

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admin_ids

    def is_big_admin(self, user_id: int) -> bool:
        return user_id in self.big_admin_ids

    def is_self_tag(self, user_id: int, field: ReportField) -> bool:
        """True when the acting user is the participant named in the field"""
        return field.user_id == user_id

    def can_certify(self, user_id: int) -> bool:
        return self.is_admin(user_id)

    def can_force_validate(self, user_id: int) -> bool:
        return self.is_big_admin(user_id)

    def is_peer_validation(self, user_id: int, record: Optional[GameRecordSnapshot]) -> bool:
        """
        A reaction counts as peer validation when the reactor is tagged in
        the report and is not the one who filed it.
        """
        if record is None or user_id == record.reporter_id:
            return False
        return user_id in record.participant_ids
