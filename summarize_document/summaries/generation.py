"""Initial-summary workflow: prompt, transmit, call the model, commit version 1."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from ..documents import DocumentMetadata, check_document, extract_text, resolve_document_bytes
from ..errors import RemoteError, ValidationError
from .conversation import Conversation
from .gemini_client import GenerativeClient
from .prompts import build_initial_prompt, validate_custom_instructions
from .retry import CancellationToken, OperationCancelled, RetryPolicy, call_with_retry
from .types import (
    Attachment,
    ConversationMessage,
    OutcomeStatus,
    SummaryConfig,
    SummaryOutcome,
    SummarySize,
    SummaryVersion,
)


class GenerationState(str, Enum):
    IDLE = "idle"
    PROMPTING = "prompting"
    AWAITING_REMOTE = "awaiting_remote"
    COMMITTED = "committed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GenerationOutcome(SummaryOutcome):
    """A ``SummaryOutcome`` that also carries the newly created conversation."""

    conversation: Optional[Conversation] = None


@dataclass(frozen=True)
class TransmissionPlan:
    """What actually goes over the wire for the first turn."""

    prompt: str
    attachment: Optional[Attachment]

    @property
    def native(self) -> bool:
        return self.attachment is not None


def plan_transmission(document: DocumentMetadata, data: Optional[bytes], prompt: str) -> TransmissionPlan:
    """Attach raw bytes when the model reads the format, else inline extracted text."""
    if document.can_send_natively and data:
        return TransmissionPlan(
            prompt=prompt,
            attachment=Attachment(data=data, mime_type=document.resolved_mime_type),
        )
    text = extract_text(document, data)
    return TransmissionPlan(prompt=f"{prompt}\nDocument Content:\n{text}", attachment=None)


class GenerationOrchestrator:
    """Drives Idle -> Prompting -> AwaitingRemote -> Committed/Failed."""

    def __init__(
        self,
        client: GenerativeClient,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self.state = GenerationState.IDLE

    def generate(
        self,
        document: DocumentMetadata,
        data: Optional[bytes],
        size: SummarySize = SummarySize.MEDIUM,
        custom_instructions: Optional[str] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationOutcome:
        """Produce version 1 for ``document`` inside a fresh ``Conversation``.

        Raises ``ValidationError`` for rejected input and ``RemoteError`` for
        remote failures; in both cases nothing is created. Cancellation
        yields an outcome with ``status == CANCELLED``. When ``data`` is None
        the bytes are read from ``document.path``.
        """

        self.state = GenerationState.PROMPTING
        size = SummarySize(size)
        try:
            validate_custom_instructions(custom_instructions)
            check_document(document)
            data = resolve_document_bytes(document, data)
            prompt = build_initial_prompt(document, size, custom_instructions)
            plan = plan_transmission(document, data, prompt)
        except ValidationError:
            self.state = GenerationState.FAILED
            raise

        self._log_debug(
            "generate-start",
            document,
            {"size": size.value, "native": plan.native, "prompt_chars": len(plan.prompt)},
        )

        self.state = GenerationState.AWAITING_REMOTE
        try:
            text, attempts = call_with_retry(
                lambda: self._client.generate_text(plan.prompt, (), plan.attachment),
                policy=self._retry_policy,
                cancel_token=cancel_token,
                sleep=self._sleep,
                logger=self._logger,
            )
        except OperationCancelled:
            self.state = GenerationState.CANCELLED
            self._log_debug("cancelled", document, {})
            return GenerationOutcome(status=OutcomeStatus.CANCELLED)
        except RemoteError as exc:
            self.state = GenerationState.FAILED
            self._log_debug("generate-failed", document, {"error": str(exc)})
            raise

        conversation = Conversation(
            document=document,
            config=SummaryConfig(size=size, custom_prompt=custom_instructions or None),
        )
        version = SummaryVersion(content=text, version_number=1)
        conversation.commit(
            ConversationMessage.user(plan.prompt, attachment_ref=document.reference),
            ConversationMessage.model(text),
            version,
        )
        self.state = GenerationState.COMMITTED
        self._log_debug(
            "generate-committed",
            document,
            {"conversation_id": conversation.conversation_id, "attempts": attempts, "words": version.word_count},
        )
        return GenerationOutcome(
            status=OutcomeStatus.COMMITTED,
            version=version,
            attempts=attempts,
            conversation=conversation,
        )

    def _log_debug(self, event: str, document: DocumentMetadata, extra: Mapping[str, object]) -> None:
        payload = {"event": event, "document": document.name, "extension": document.extension}
        payload.update(dict(extra))
        self._logger.debug("generation", extra={"summary": payload})
