"""Follow-up refinement workflow that replays the conversation to the model."""
from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

from ..errors import NoSummaryToRefineError, RemoteError, StateError
from .conversation import Conversation
from .gemini_client import GenerativeClient
from .prompts import build_refinement_prompt
from .retry import CancellationToken, OperationCancelled, RetryPolicy, call_with_retry
from .types import ConversationMessage, OutcomeStatus, RefinementIntent, SummaryOutcome, SummaryVersion

DEFAULT_REFINEMENT_LIMIT = 50


def has_reached_refinement_limit(conversation: Conversation, limit: int = DEFAULT_REFINEMENT_LIMIT) -> bool:
    return conversation.refinement_count >= limit


class RefinementOrchestrator:
    def __init__(
        self,
        client: GenerativeClient,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
        refinement_limit: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._refinement_limit = refinement_limit
        self._logger = logger or logging.getLogger(__name__)

    def refine(
        self,
        intent: RefinementIntent,
        custom_feedback: Optional[str],
        conversation: Conversation,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SummaryOutcome:
        """Append the next version to ``conversation`` or leave it untouched."""

        if not conversation.has_any_model_message():
            raise NoSummaryToRefineError("No summary available to refine")
        if self._refinement_limit is not None and has_reached_refinement_limit(
            conversation, self._refinement_limit
        ):
            raise StateError(f"Refinement limit of {self._refinement_limit} reached")

        intent = RefinementIntent(intent)
        prompt = build_refinement_prompt(intent, custom_feedback)
        context = conversation.log.to_context_window()
        self._log_debug(
            "refine-start",
            conversation,
            {"intent": intent.value, "context_messages": len(context)},
        )

        try:
            text, attempts = call_with_retry(
                lambda: self._client.generate_text(prompt, context),
                policy=self._retry_policy,
                cancel_token=cancel_token,
                sleep=self._sleep,
                logger=self._logger,
            )
        except OperationCancelled:
            self._log_debug("cancelled", conversation, {"intent": intent.value})
            return SummaryOutcome(status=OutcomeStatus.CANCELLED)
        except RemoteError as exc:
            self._log_debug("refine-failed", conversation, {"intent": intent.value, "error": str(exc)})
            raise

        version = SummaryVersion(
            content=text,
            version_number=conversation.current_version_number + 1,
            refinement_prompt=prompt,
        )
        conversation.commit(ConversationMessage.user(prompt), ConversationMessage.model(text), version)
        self._log_debug(
            "refine-committed",
            conversation,
            {"intent": intent.value, "version": version.version_number, "attempts": attempts},
        )
        return SummaryOutcome(status=OutcomeStatus.COMMITTED, version=version, attempts=attempts)

    def _log_debug(self, event: str, conversation: Conversation, extra: Mapping[str, object]) -> None:
        payload = {"event": event, "conversation_id": conversation.conversation_id}
        payload.update(dict(extra))
        self._logger.debug("refinement", extra={"summary": payload})
