"""In-memory conversation store.

Conversations live only for the lifetime of the process. Each conversation
carries a lock so that at most one agent loop mutates its history at a time.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from toolhost.sessions.types import Message, SystemMessage, utc_timestamp

logger = logging.getLogger(__name__)


@dataclass
class Conversation:
    """A conversation history and its metadata."""

    conversation_id: str
    model: str
    messages: list[Message] = field(default_factory=list)
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_busy(self) -> bool:
        return self.lock.locked()

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self.touch()

    def touch(self) -> None:
        self.updated_at = utc_timestamp()


class ConversationStore:
    """Keeps conversations in memory, keyed by id."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    @staticmethod
    def generate_conversation_id() -> str:
        return uuid.uuid4().hex[:10]

    def create(self, model: str, system_prompt: str | None = None) -> Conversation:
        """Create a conversation, optionally starting with a system prompt."""
        conversation = Conversation(
            conversation_id=self.generate_conversation_id(),
            model=model,
        )
        if system_prompt:
            conversation.add_message(SystemMessage(content=system_prompt))

        self._conversations[conversation.conversation_id] = conversation
        logger.info(f"Created conversation {conversation.conversation_id}")
        return conversation

    def get(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def list_conversations(self) -> list[Conversation]:
        """List conversations, most recently updated first."""
        return sorted(
            self._conversations.values(), key=lambda c: c.updated_at, reverse=True
        )

    def delete(self, conversation_id: str) -> bool:
        """Delete a conversation.

        Returns:
            bool: False if it did not exist
        """
        if self._conversations.pop(conversation_id, None) is None:
            return False
        logger.info(f"Deleted conversation {conversation_id}")
        return True
