import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _parse_id_list(raw: str, name: str) -> FrozenSet[int]:
    """Parse a comma-separated list of Discord IDs"""
    try:
        return frozenset(int(part.strip()) for part in raw.split(',') if part.strip())
    except ValueError:
        raise ValueError(f"{name} must be comma-separated integers")


@dataclass(frozen=True)
class ReportSettings:
    """Read-only settings injected into the parser, policy and lifecycle controller"""
    channel_name: str
    score_commands: Tuple[str, ...]
    verify_emoji: str
    certified_emoji: str
    error_emoji: str
    admin_ids: FrozenSet[int] = field(default_factory=frozenset)
    big_admin_ids: FrozenSet[int] = field(default_factory=frozenset)
    min_report_fields: int = 2
    now_playing: Optional[str] = None

    @property
    def reserved_emoji(self) -> Tuple[str, str]:
        """Emoji only the bot itself may place on a report"""
        return (self.certified_emoji, self.error_emoji)


class Config:
    """Bot configuration settings"""

    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    NOW_PLAYING = os.getenv('NOW_PLAYING') or None

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///scorebot.db')

    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'

    # Score reporting
    SCORE_CHANNEL_NAME = os.getenv('SCORE_CHANNEL_NAME', 'league-scores')
    SCORE_COMMANDS = os.getenv('SCORE_COMMANDS', '!score')
    VERIFY_EMOJI = os.getenv('VERIFY_EMOJI', '✅')
    CERTIFIED_EMOJI = os.getenv('CERTIFIED_EMOJI', '🏆')
    ERROR_EMOJI = os.getenv('ERROR_EMOJI', '❌')
    MIN_REPORT_FIELDS = int(os.getenv('MIN_REPORT_FIELDS', 2))

    # Comma-separated Discord IDs
    ADMIN_IDS = os.getenv('ADMIN_IDS', '')
    BIG_ADMIN_IDS = os.getenv('BIG_ADMIN_IDS', '')

    @classmethod
    def get_score_commands(cls) -> Tuple[str, ...]:
        """Get the recognised score command tokens"""
        return tuple(cmd.strip() for cmd in cls.SCORE_COMMANDS.split(',') if cmd.strip())

    @classmethod
    def get_admin_ids(cls) -> FrozenSet[int]:
        return _parse_id_list(cls.ADMIN_IDS, 'ADMIN_IDS')

    @classmethod
    def get_big_admin_ids(cls) -> FrozenSet[int]:
        return _parse_id_list(cls.BIG_ADMIN_IDS, 'BIG_ADMIN_IDS')

    @classmethod
    def report_settings(cls) -> ReportSettings:
        """Build the immutable settings object handed to the score reporting components"""
        return ReportSettings(
            channel_name=cls.SCORE_CHANNEL_NAME,
            score_commands=cls.get_score_commands(),
            verify_emoji=cls.VERIFY_EMOJI,
            certified_emoji=cls.CERTIFIED_EMOJI,
            error_emoji=cls.ERROR_EMOJI,
            admin_ids=cls.get_admin_ids(),
            big_admin_ids=cls.get_big_admin_ids(),
            min_report_fields=cls.MIN_REPORT_FIELDS,
            now_playing=cls.NOW_PLAYING,
        )

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.SCORE_CHANNEL_NAME:
            raise ValueError("SCORE_CHANNEL_NAME is required")
        if not cls.get_score_commands():
            raise ValueError("SCORE_COMMANDS must name at least one command")
        if cls.MIN_REPORT_FIELDS < 1:
            raise ValueError("MIN_REPORT_FIELDS must be at least 1")
        # Surface malformed ID lists at startup rather than on the first reaction
        cls.get_admin_ids()
        cls.get_big_admin_ids()
