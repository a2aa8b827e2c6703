"""Conversation log and the per-document conversation aggregate."""
from __future__ import annotations

import itertools
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from ..documents import DocumentMetadata
from .types import ConversationMessage, MessageRole, SummaryConfig, SummaryVersion, utc_now
from .versions import VersionStore

_CHARS_PER_TOKEN = 4
_id_counter = itertools.count(1)


def new_conversation_id() -> str:
    """Process-unique identifier; a uuid suffix keeps ids distinct across runs too."""
    return f"{next(_id_counter):04d}-{uuid.uuid4().hex[:12]}"


class ConversationLog:
    """Ordered, append-only message history replayed on every refinement."""

    def __init__(self, messages: Optional[Sequence[ConversationMessage]] = None) -> None:
        self._messages: List[ConversationMessage] = list(messages or ())

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self._messages)

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    def append_exchange(self, user_message: ConversationMessage, model_message: ConversationMessage) -> None:
        if user_message.role is not MessageRole.USER:
            raise ValueError("Exchange must start with a user message")
        if model_message.role is not MessageRole.MODEL:
            raise ValueError("Exchange must end with a model message")
        self._messages.extend((user_message, model_message))

    def to_context_window(self) -> List[Dict[str, str]]:
        return [{"role": message.role.value, "content": message.content} for message in self._messages]

    def has_any_model_message(self) -> bool:
        return any(message.role is MessageRole.MODEL for message in self._messages)

    def estimate_tokens(self) -> int:
        total_chars = sum(len(message.content) for message in self._messages)
        return math.ceil(total_chars / _CHARS_PER_TOKEN)


@dataclass
class Conversation:
    """Full session state for one document: messages, versions and config."""

    document: DocumentMetadata
    config: SummaryConfig
    conversation_id: str = field(default_factory=new_conversation_id)
    created_at: datetime = field(default_factory=utc_now)
    log: ConversationLog = field(default_factory=ConversationLog)
    versions: VersionStore = field(default_factory=VersionStore)

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return self.log.messages

    @property
    def current_version_number(self) -> int:
        latest = self.versions.latest()
        return latest.version_number if latest else 0

    @property
    def refinement_count(self) -> int:
        return max(0, len(self.versions) - 1)

    def has_any_model_message(self) -> bool:
        return self.log.has_any_model_message()

    def commit(
        self,
        user_message: ConversationMessage,
        model_message: ConversationMessage,
        version: SummaryVersion,
    ) -> None:
        """Append the message pair and version together or not at all."""
        if version.version_number != self.versions.next_version_number:
            raise ValueError(
                f"Expected version number {self.versions.next_version_number}, got {version.version_number}"
            )
        self.log.append_exchange(user_message, model_message)
        self.versions.append(version)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "documentMetadata": self.document.to_dict(),
            "messages": [message.to_dict() for message in self.log],
            "versions": [version.to_dict() for version in self.versions],
            "config": self.config.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Conversation":
        messages = [ConversationMessage.from_dict(item) for item in data.get("messages", [])]
        versions = [SummaryVersion.from_dict(item) for item in data.get("versions", [])]
        if len(messages) != 2 * len(versions):
            raise ValueError(
                f"Conversation has {len(messages)} messages for {len(versions)} versions; expected pairs"
            )
        return cls(
            document=DocumentMetadata.from_dict(data["documentMetadata"]),
            config=SummaryConfig.from_dict(data["config"]),
            conversation_id=str(data["conversationId"]),
            created_at=datetime.fromisoformat(str(data["createdAt"])),
            log=ConversationLog(messages),
            versions=VersionStore(versions),
        )
