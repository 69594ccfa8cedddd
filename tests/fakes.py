"""Test doubles and shared identifiers for the score report tests."""

from typing import List, Optional, Tuple

from scorebot.operations.lifecycle import ChatGateway, ChatMessage

CHANNEL = "league-scores"
CHANNEL_ID = 5000
GUILD_ID = 7000

ALICE = 101
BOB = 102
CAROL = 103
ADMIN = 900
BIG_ADMIN = 901
BOT = 999


def make_message(content: str, message_id: int = 1, author_id: int = ALICE,
                 channel_name: str = CHANNEL) -> ChatMessage:
    return ChatMessage(
        id=message_id,
        content=content,
        author_id=author_id,
        channel_id=CHANNEL_ID,
        channel_name=channel_name,
        guild_id=GUILD_ID,
    )


def mention(user_id: int) -> str:
    return f"<@{user_id}>"


class RecordingChat(ChatGateway):
    """Remembers every chat side effect instead of talking to Discord"""

    def __init__(self, bot_user_id: Optional[int] = BOT):
        self._bot_user_id = bot_user_id
        self.calls: List[Tuple] = []
        # message id -> reactions currently on it, as (emoji, user_id)
        self.reactions = {}

    @property
    def bot_user_id(self) -> Optional[int]:
        return self._bot_user_id

    def of_kind(self, kind: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == kind]

    def add_user_reaction(self, message: ChatMessage, emoji: str, user_id: int) -> None:
        self.reactions.setdefault(message.id, set()).add((emoji, user_id))

    async def reply(self, message: ChatMessage, text: str) -> None:
        self.calls.append(("reply", message.id, text))

    async def delete_message(self, message: ChatMessage) -> None:
        self.calls.append(("delete", message.id))

    async def clear_reactions(self, message: ChatMessage) -> None:
        self.calls.append(("clear_reactions", message.id))
        self.reactions.pop(message.id, None)

    async def add_reaction(self, message: ChatMessage, emoji: str) -> None:
        self.calls.append(("add_reaction", message.id, emoji))
        self.reactions.setdefault(message.id, set()).add((emoji, self._bot_user_id))

    async def remove_reaction(self, message: ChatMessage, emoji: str, user_id: int) -> None:
        self.calls.append(("remove_reaction", message.id, emoji, user_id))
        self.reactions.get(message.id, set()).discard((emoji, user_id))

    async def notify(self, message: ChatMessage, user_id: int, text: str) -> None:
        self.calls.append(("notify", message.id, user_id, text))
