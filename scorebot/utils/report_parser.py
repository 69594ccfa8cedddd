"""
Score report parser.

Turns the raw text of a score command message into a structured Report or
a typed ParseFailure. Pure and deterministic: the same text, author and
settings always produce the same result.

Accepted shape:
    !score @alice 10 @bob 5
where each mention is followed by that participant's statistic. The
statistic runs until the next mention, so "@alice 3 kills @bob 1 kill" is
two fields with stats "3 kills" and "1 kill".
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from scorebot.config import ReportSettings
from scorebot.data_models.report import Report, ReportField

# Discord renders user mentions as <@id> or, for nicknamed members, <@!id>
MENTION_PATTERN = re.compile(r'<@!?(\d+)>')


class ParseFailureKind(Enum):
    UNKNOWN_COMMAND = "unknown_command"
    EMPTY_FIELD_LIST = "empty_field_list"
    MALFORMED_FIELD = "malformed_field"
    DUPLICATE_PARTICIPANT = "duplicate_participant"
    SELF_ONLY_REPORT = "self_only_report"
    TOO_FEW_FIELDS = "too_few_fields"


@dataclass(frozen=True)
class ParseFailure:
    """Why a report was rejected. `reason` is shown to the reporting user as-is."""
    kind: ParseFailureKind
    reason: str
    index: Optional[int] = None


ParseResult = Union[Report, ParseFailure]


def split_command(content: str) -> Tuple[str, str]:
    """Split message content into (command token, payload)"""
    parts = (content or '').strip().split(maxsplit=1)
    if not parts:
        return '', ''
    if len(parts) == 1:
        return parts[0], ''
    return parts[0], parts[1]


def is_score_command(content: str, settings: ReportSettings) -> bool:
    """True when the first token of the message is a recognised score command"""
    command, _ = split_command(content)
    return command in settings.score_commands


def _extract_fields(payload: str) -> Union[List[ReportField], ParseFailure]:
    # re.split with one capture group yields [prefix, id, stat, id, stat, ...]
    pieces = MENTION_PATTERN.split(payload)
    prefix, rest = pieces[0], pieces[1:]

    if prefix.strip():
        return ParseFailure(
            ParseFailureKind.MALFORMED_FIELD,
            "Field 1 is malformed: every field must start with a player mention",
            index=0,
        )

    fields = []
    for index in range(0, len(rest), 2):
        user_id = int(rest[index])
        stat = ' '.join(rest[index + 1].split())
        if not stat:
            field_number = index // 2
            return ParseFailure(
                ParseFailureKind.MALFORMED_FIELD,
                f"Field {field_number + 1} is malformed: <@{user_id}> has no score",
                index=field_number,
            )
        fields.append(ReportField(user_id=user_id, stat=stat))
    return fields


def parse_report(
    content: str,
    author_id: int,
    big_admin_ids: Iterable[int],
    settings: ReportSettings,
    *,
    message_id: int = 0,
    channel_id: int = 0,
    guild_id: Optional[int] = None,
) -> ParseResult:
    """
    Parse a score report.

    Args:
        content: Raw message text
        author_id: Discord ID of the user who posted the report
        big_admin_ids: IDs allowed to file reports for absent players
        settings: Score reporting settings (commands, minimum field count)
        message_id, channel_id, guild_id: Source message identifiers copied onto the Report

    Returns:
        Report on success, ParseFailure describing the first problem otherwise
    """
    command, payload = split_command(content)
    if command not in settings.score_commands:
        return ParseFailure(
            ParseFailureKind.UNKNOWN_COMMAND,
            f"Unknown score command '{command}'",
        )

    extracted = _extract_fields(payload)
    if isinstance(extracted, ParseFailure):
        return extracted
    if not extracted:
        return ParseFailure(
            ParseFailureKind.EMPTY_FIELD_LIST,
            "No players were tagged in this score report",
        )

    seen = set()
    for index, field in enumerate(extracted):
        if field.user_id in seen:
            return ParseFailure(
                ParseFailureKind.DUPLICATE_PARTICIPANT,
                f"<@{field.user_id}> is tagged more than once",
                index=index,
            )
        seen.add(field.user_id)

    # Big admins may file reports on behalf of players who are not around
    if author_id not in set(big_admin_ids):
        if seen == {author_id}:
            return ParseFailure(
                ParseFailureKind.SELF_ONLY_REPORT,
                "You can't report a match that only includes yourself",
            )
        if len(extracted) < settings.min_report_fields:
            return ParseFailure(
                ParseFailureKind.TOO_FEW_FIELDS,
                f"A score report needs at least {settings.min_report_fields} players",
            )

    return Report(
        command=command,
        fields=tuple(extracted),
        message_id=message_id,
        channel_id=channel_id,
        guild_id=guild_id,
        reporter_id=author_id,
    )
