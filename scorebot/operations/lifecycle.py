"""
Score Report Lifecycle

Drives a reported match through Absent -> Unvalidated -> Validated -> Certified
in response to chat events.

The decision and the doing are kept apart:
- transition() is pure. Given the current record and an event it returns the
  state the record will end up in plus the ordered list of side effects.
- LifecycleController loads the record, asks transition() what to do, and
  runs the effects against the store, the ledger and the chat gateway.

Guard effects (InsertRecord, MarkCertified) stop the rest of a transition
when the store reports that another task already made the change, so two
concurrent certifications can never both publish a ledger row.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from scorebot.config import ReportSettings
from scorebot.data_models.report import (
    GameRecordSnapshot, RecordState, Report, jump_url, record_state
)
from scorebot.operations.permissions import PermissionPolicy
from scorebot.utils.report_parser import ParseFailure, is_score_command, parse_report
from scorebot.utils.logger import setup_logger

logger = setup_logger(__name__)

CERTIFIED_EDIT_REFUSAL = (
    "Certified scores cannot be modified, please contact an admin if you wish to edit the score"
)
ALREADY_CERTIFIED = "Game is already certified"


class LifecycleError(Exception):
    """Raised for events the lifecycle does not know how to handle"""
    pass


# ============================================================================
# Events
# ============================================================================

@dataclass(frozen=True)
class ChatMessage:
    """The parts of a chat message the lifecycle looks at"""
    id: int
    content: str
    author_id: int
    channel_id: int
    channel_name: str
    guild_id: Optional[int] = None

    @property
    def link(self) -> str:
        return jump_url(self.guild_id, self.channel_id, self.id)


@dataclass(frozen=True)
class MessagePosted:
    message: ChatMessage


@dataclass(frozen=True)
class MessageEdited:
    message: ChatMessage


@dataclass(frozen=True)
class ReactionAdded:
    message: ChatMessage
    emoji: str
    user_id: int
    user_display_name: str


LifecycleEvent = Union[MessagePosted, MessageEdited, ReactionAdded]


# ============================================================================
# Side effects
# ============================================================================

@dataclass(frozen=True)
class Reply:
    text: str


@dataclass(frozen=True)
class DeleteMessage:
    pass


@dataclass(frozen=True)
class ClearReactions:
    pass


@dataclass(frozen=True)
class AddReaction:
    emoji: str


@dataclass(frozen=True)
class RemoveReaction:
    emoji: str
    user_id: int


@dataclass(frozen=True)
class Notify:
    user_id: int
    text: str


@dataclass(frozen=True)
class InsertRecord:
    report: Report


@dataclass(frozen=True)
class MarkValidated:
    pass


@dataclass(frozen=True)
class MarkCertified:
    pass


@dataclass(frozen=True)
class ClearRecord:
    pass


@dataclass(frozen=True)
class AppendLedgerRow:
    report: Report
    certifier_name: str


@dataclass(frozen=True)
class DeleteLedgerRow:
    pass


SideEffect = Union[
    Reply, DeleteMessage, ClearReactions, AddReaction, RemoveReaction, Notify,
    InsertRecord, MarkValidated, MarkCertified, ClearRecord, AppendLedgerRow, DeleteLedgerRow,
]

# Effects whose store call can report "someone else got there first"
GUARD_EFFECTS = (InsertRecord, MarkCertified)


@dataclass(frozen=True)
class Transition:
    state: RecordState
    effects: Tuple[SideEffect, ...]
    outcome: str


# ============================================================================
# Pure transition function
# ============================================================================

def _unchanged(record: Optional[GameRecordSnapshot], outcome: str, *effects: SideEffect) -> Transition:
    return Transition(record_state(record), tuple(effects), outcome)


def _strip(record: Optional[GameRecordSnapshot], event: ReactionAdded, outcome: str) -> Transition:
    return _unchanged(record, outcome, RemoveReaction(event.emoji, event.user_id))


def _reset_effects() -> Tuple[SideEffect, ...]:
    """Forget everything earned by the previous content of a report"""
    return (DeleteLedgerRow(), ClearRecord(), ClearReactions())


def validation_request_text(message: ChatMessage) -> str:
    return (
        "You've been tagged as having participated in a League Match. "
        "Please validate this match's occurrence by adding a Reaction emoji of your choice "
        f"(:thumbsup: :rocket: :ok_hand:) to this match report. {message.link}"
    )


def _parse(message: ChatMessage, settings: ReportSettings) -> Union[Report, ParseFailure]:
    return parse_report(
        message.content,
        message.author_id,
        settings.big_admin_ids,
        settings,
        message_id=message.id,
        channel_id=message.channel_id,
        guild_id=message.guild_id,
    )


def _record_new_report(
    message: ChatMessage,
    settings: ReportSettings,
    policy: PermissionPolicy,
    prefix: Tuple[SideEffect, ...] = (),
    outcome: str = "recorded",
) -> Transition:
    result = _parse(message, settings)

    if isinstance(result, ParseFailure):
        reply = f"{result.reason}:\n{message.content}\nPlease repost the corrected score."
        return Transition(
            RecordState.ABSENT,
            prefix + (Reply(reply), DeleteMessage()),
            f"rejected ({result.kind.value})",
        )

    notifications = tuple(
        Notify(field.user_id, validation_request_text(message))
        for field in result.fields
        if not policy.is_self_tag(message.author_id, field)
    )
    return Transition(RecordState.UNVALIDATED, prefix + (InsertRecord(result),) + notifications, outcome)


def _on_message_posted(
    record: Optional[GameRecordSnapshot],
    event: MessagePosted,
    settings: ReportSettings,
    policy: PermissionPolicy,
) -> Transition:
    if not is_score_command(event.message.content, settings):
        return _unchanged(record, "ignored: not a score command")
    if record is not None:
        # Redelivered create event; the record already reflects this message
        return _unchanged(record, "ignored: already recorded")
    return _record_new_report(event.message, settings, policy)


def _on_message_edited(
    record: Optional[GameRecordSnapshot],
    event: MessageEdited,
    settings: ReportSettings,
    policy: PermissionPolicy,
) -> Transition:
    message = event.message

    if record is not None and record.certified:
        return _unchanged(record, "edit refused: certified", Reply(CERTIFIED_EDIT_REFUSAL))

    if not is_score_command(message.content, settings):
        if record is None:
            return _unchanged(record, "ignored: not a score command")
        return Transition(RecordState.ABSENT, _reset_effects(), "cleared: no longer a score command")

    if record is None:
        return _record_new_report(message, settings, policy, outcome="recorded after edit")

    return _record_new_report(message, settings, policy, prefix=_reset_effects(), outcome="re-recorded after edit")


def _on_certification_attempt(
    record: Optional[GameRecordSnapshot],
    event: ReactionAdded,
    settings: ReportSettings,
    policy: PermissionPolicy,
) -> Transition:
    if record is not None and record.certified:
        return _unchanged(record, "certification refused: already certified", Reply(ALREADY_CERTIFIED))
    if record is None or not record.validated:
        return _strip(record, event, "certification refused: not validated")

    # Certify what the message says now, not what was stored at validation time
    result = _parse(event.message, settings)
    if isinstance(result, ParseFailure):
        return _unchanged(
            record,
            f"certification refused: report invalid ({result.kind.value})",
            RemoveReaction(event.emoji, event.user_id),
            Reply(result.reason),
        )

    if result.fields != record.fields:
        # The content changed without us seeing the edit; validation must be re-earned
        return _record_new_report(
            event.message, settings, policy,
            prefix=_reset_effects(),
            outcome="certification refused: stale record re-recorded",
        )

    return Transition(
        RecordState.CERTIFIED,
        (
            MarkCertified(),
            AppendLedgerRow(result, event.user_display_name),
            AddReaction(settings.certified_emoji),
        ),
        "certified",
    )


def _on_reaction_added(
    record: Optional[GameRecordSnapshot],
    event: ReactionAdded,
    settings: ReportSettings,
    policy: PermissionPolicy,
    bot_user_id: Optional[int],
) -> Transition:
    if bot_user_id is not None and event.user_id == bot_user_id:
        return _unchanged(record, "ignored: bot reaction")

    # Keep the channel legible for admins: only reports carry reactions
    if not is_score_command(event.message.content, settings):
        return _strip(record, event, "stripped: not a score command")

    if event.emoji in settings.reserved_emoji:
        return _strip(record, event, "stripped: reserved emoji")

    if event.emoji == settings.verify_emoji:
        if not policy.can_certify(event.user_id):
            return _strip(record, event, "stripped: verify emoji from non-admin")
        return _on_certification_attempt(record, event, settings, policy)

    if record is None:
        return _strip(record, event, "stripped: no record")

    if policy.can_force_validate(event.user_id) or policy.is_peer_validation(event.user_id, record):
        state = RecordState.CERTIFIED if record.certified else RecordState.VALIDATED
        return Transition(state, (MarkValidated(),), "validated")

    return _strip(record, event, "stripped: not a participant")


def transition(
    record: Optional[GameRecordSnapshot],
    event: LifecycleEvent,
    settings: ReportSettings,
    policy: PermissionPolicy,
    bot_user_id: Optional[int] = None,
) -> Transition:
    """
    Decide what an event does to a report.

    Args:
        record: Current record for the event's message, or None
        event: MessagePosted, MessageEdited or ReactionAdded
        settings: Channel, commands and emoji configuration
        policy: Admin and participant permission checks
        bot_user_id: The bot's own user id, whose reactions are ignored

    Returns:
        Transition with the resulting state and the side effects to run in order
    """
    if event.message.channel_name != settings.channel_name:
        return _unchanged(record, "ignored: other channel")

    if isinstance(event, MessagePosted):
        return _on_message_posted(record, event, settings, policy)
    if isinstance(event, MessageEdited):
        return _on_message_edited(record, event, settings, policy)
    if isinstance(event, ReactionAdded):
        return _on_reaction_added(record, event, settings, policy, bot_user_id)

    raise LifecycleError(f"Unsupported lifecycle event: {event!r}")


# ============================================================================
# Effect execution
# ============================================================================

class ChatGateway(ABC):
    """Chat operations the lifecycle needs; implemented by the Discord cog"""

    @property
    @abstractmethod
    def bot_user_id(self) -> Optional[int]:
        pass

    @abstractmethod
    async def reply(self, message: ChatMessage, text: str) -> None:
        pass

    @abstractmethod
    async def delete_message(self, message: ChatMessage) -> None:
        pass

    @abstractmethod
    async def clear_reactions(self, message: ChatMessage) -> None:
        pass

    @abstractmethod
    async def add_reaction(self, message: ChatMessage, emoji: str) -> None:
        pass

    @abstractmethod
    async def remove_reaction(self, message: ChatMessage, emoji: str, user_id: int) -> None:
        pass

    @abstractmethod
    async def notify(self, message: ChatMessage, user_id: int, text: str) -> None:
        """Send a direct message about `message` to a user"""
        pass


class LifecycleController:
    """
    Runs lifecycle transitions for chat events.

    Each event is handled under the store's per-message hold, so two events
    on the same report never interleave their writes. The guard effects keep
    the store itself consistent for writers outside this process.
    """

    def __init__(self, store, ledger, chat: ChatGateway, settings: ReportSettings,
                 policy: Optional[PermissionPolicy] = None):
        self.store = store
        self.ledger = ledger
        self.chat = chat
        self.settings = settings
        self.policy = policy or PermissionPolicy.from_settings(settings)
        self.logger = logger

    async def handle(self, event: LifecycleEvent) -> Transition:
        """Decide and apply the transition for one chat event"""
        if event.message.channel_name != self.settings.channel_name:
            return _unchanged(None, "ignored: other channel")

        # The record read and every write decided from it happen under one hold
        async with self.store.locked(event.message.id):
            record = await self.store.get(event.message.id)
            result = transition(record, event, self.settings, self.policy, self.chat.bot_user_id)

            if result.effects:
                self.logger.info(
                    f"Message {event.message.id}: {result.outcome} "
                    f"({record_state(record).value} -> {result.state.value})"
                )
            else:
                self.logger.debug(f"Message {event.message.id}: {result.outcome}")

            await self.execute(event.message, result.effects)
        return result

    async def execute(self, message: ChatMessage, effects: Tuple[SideEffect, ...]) -> bool:
        """
        Apply effects in order.

        Returns:
            False if a guard effect lost its race and the rest were skipped
        """
        certified_here = False
        for index, effect in enumerate(effects):
            if isinstance(effect, AppendLedgerRow):
                try:
                    await self.ledger.append_row(effect.report, effect.certifier_name)
                except Exception:
                    if certified_here:
                        # A certified record must always have its ledger row
                        await self.store.revoke_certification(message.id)
                    raise
                continue

            applied = await self._apply(message, effect)

            if isinstance(effect, GUARD_EFFECTS) and not applied:
                skipped = len(effects) - index - 1
                self.logger.info(
                    f"Message {message.id}: {type(effect).__name__} already done elsewhere, "
                    f"skipping {skipped} remaining effect(s)"
                )
                return False
            if isinstance(effect, MarkCertified):
                certified_here = True
        return True

    async def _apply(self, message: ChatMessage, effect: SideEffect) -> Optional[bool]:
        if isinstance(effect, Reply):
            await self.chat.reply(message, effect.text)
        elif isinstance(effect, DeleteMessage):
            await self.chat.delete_message(message)
        elif isinstance(effect, ClearReactions):
            await self.chat.clear_reactions(message)
        elif isinstance(effect, AddReaction):
            await self.chat.add_reaction(message, effect.emoji)
        elif isinstance(effect, RemoveReaction):
            self.logger.debug(f"Removing {effect.emoji} by {effect.user_id} from message {message.id}")
            await self.chat.remove_reaction(message, effect.emoji, effect.user_id)
        elif isinstance(effect, Notify):
            await self.chat.notify(message, effect.user_id, effect.text)
        elif isinstance(effect, InsertRecord):
            return await self.store.insert(effect.report)
        elif isinstance(effect, MarkValidated):
            return await self.store.mark_validated(message.id)
        elif isinstance(effect, MarkCertified):
            return await self.store.mark_certified(message.id)
        elif isinstance(effect, ClearRecord):
            return await self.store.clear(message.id)
        elif isinstance(effect, DeleteLedgerRow):
            return await self.ledger.delete_row(message.id)
        else:
            raise LifecycleError(f"Unknown side effect: {effect!r}")
        return None
