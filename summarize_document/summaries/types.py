"""Dataclasses shared across the summaries feature."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def count_words(text: str) -> int:
    """Whitespace-delimited token count."""
    return len(text.split())


class SummarySize(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @property
    def word_count(self) -> int:
        return _SIZE_WORD_COUNTS[self]

    @property
    def description(self) -> str:
        return _SIZE_DESCRIPTIONS[self]


_SIZE_WORD_COUNTS = {
    SummarySize.SHORT: 100,
    SummarySize.MEDIUM: 250,
    SummarySize.LONG: 500,
}

_SIZE_DESCRIPTIONS = {
    SummarySize.SHORT: "2-3 sentences (~100 words)",
    SummarySize.MEDIUM: "1-2 paragraphs (~250 words)",
    SummarySize.LONG: "3-4 paragraphs (~500 words)",
}


class RefinementIntent(str, Enum):
    SHORTER = "shorter"
    LONGER = "longer"
    SIMPLER = "simpler"
    TECHNICAL = "technical"
    BULLET_POINTS = "bullet_points"
    ADD_DETAILS = "add_details"
    CUSTOM = "custom"


class MessageRole(str, Enum):
    USER = "user"
    MODEL = "model"


class OutcomeStatus(str, Enum):
    COMMITTED = "committed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Attachment:
    """Inline binary payload sent alongside a prompt."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class SummaryVersion:
    """One immutable generated or refined summary."""

    content: str
    version_number: int
    created_at: datetime = field(default_factory=utc_now)
    refinement_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        if self.version_number < 1:
            raise ValueError("version_number must be a positive integer")

    @property
    def word_count(self) -> int:
        return count_words(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "timestamp": self.created_at.isoformat(),
            "refinementPrompt": self.refinement_prompt,
            "versionNumber": self.version_number,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SummaryVersion":
        return cls(
            content=str(data["content"]),
            version_number=int(data["versionNumber"]),
            created_at=datetime.fromisoformat(str(data["timestamp"])),
            refinement_prompt=data.get("refinementPrompt"),
        )


@dataclass(frozen=True)
class ConversationMessage:
    """A single role-tagged turn replayed to the remote model."""

    role: MessageRole
    content: str
    created_at: datetime = field(default_factory=utc_now)
    attachment_ref: Optional[str] = None

    @classmethod
    def user(cls, content: str, attachment_ref: Optional[str] = None) -> "ConversationMessage":
        return cls(role=MessageRole.USER, content=content, attachment_ref=attachment_ref)

    @classmethod
    def model(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.MODEL, content=content)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.created_at.isoformat(),
        }
        if self.attachment_ref is not None:
            payload["attachmentRef"] = self.attachment_ref
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConversationMessage":
        return cls(
            role=MessageRole(data["role"]),
            content=str(data["content"]),
            created_at=datetime.fromisoformat(str(data["timestamp"])),
            attachment_ref=data.get("attachmentRef"),
        )


@dataclass(frozen=True)
class SummaryConfig:
    """Size selection and optional custom instructions, fixed per conversation."""

    size: SummarySize = SummarySize.MEDIUM
    custom_prompt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"size": self.size.value, "customPrompt": self.custom_prompt}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SummaryConfig":
        return cls(size=SummarySize(data["size"]), custom_prompt=data.get("customPrompt"))


@dataclass(frozen=True)
class SummaryOutcome:
    """Result of a generation or refinement call that did not raise."""

    status: OutcomeStatus
    version: Optional[SummaryVersion] = None
    attempts: int = 0

    @property
    def committed(self) -> bool:
        return self.status is OutcomeStatus.COMMITTED

    @property
    def cancelled(self) -> bool:
        return self.status is OutcomeStatus.CANCELLED
