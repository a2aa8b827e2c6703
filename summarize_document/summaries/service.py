"""Session controller tying the orchestrators, the conversation and the cursor together."""
from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

from ..documents import DocumentMetadata
from ..errors import NoSummaryToRefineError, StateError
from .conversation import Conversation
from .gemini_client import GenerativeClient
from .generation import GenerationOrchestrator, GenerationState
from .refinement import DEFAULT_REFINEMENT_LIMIT, RefinementOrchestrator
from .retry import CancellationToken, RetryPolicy
from .types import OutcomeStatus, RefinementIntent, SummaryOutcome, SummarySize, SummaryVersion
from .versions import NavigationResult, VersionComparison, VersionStatistics, compare, statistics


class SummarySession:
    """Public facade used by the CLI and the interactive refiner.

    Owns at most one ``Conversation`` and the version cursor into it. The
    caller must not start a second generate/refine while one is running.
    """

    def __init__(
        self,
        client: GenerativeClient,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
        refinement_limit: Optional[int] = DEFAULT_REFINEMENT_LIMIT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._generator = GenerationOrchestrator(
            client, retry_policy=retry_policy, sleep=sleep, logger=self._logger
        )
        self._refiner = RefinementOrchestrator(
            client,
            retry_policy=retry_policy,
            sleep=sleep,
            refinement_limit=refinement_limit,
            logger=self._logger,
        )
        self.conversation: Optional[Conversation] = None
        self.cursor: Optional[int] = None

    @property
    def generation_state(self) -> GenerationState:
        return self._generator.state

    def start(
        self,
        document: DocumentMetadata,
        data: Optional[bytes],
        size: SummarySize = SummarySize.MEDIUM,
        custom_instructions: Optional[str] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SummaryOutcome:
        """Summarize a new document; the previous conversation is replaced on success only."""
        outcome = self._generator.generate(
            document, data, size, custom_instructions, cancel_token=cancel_token
        )
        if outcome.status is OutcomeStatus.COMMITTED:
            self.conversation = outcome.conversation
            self.cursor = 0
            self._log_debug("session-started", {"versions": 1})
        return outcome

    def attach(self, conversation: Conversation) -> None:
        """Resume a previously saved conversation at its latest version."""
        self.conversation = conversation
        self.cursor = len(conversation.versions) - 1 if len(conversation.versions) else None

    def reset(self) -> None:
        self.conversation = None
        self.cursor = None

    def refine(
        self,
        intent: RefinementIntent,
        custom_feedback: Optional[str] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SummaryOutcome:
        if self.conversation is None:
            raise NoSummaryToRefineError("No summary available to refine")
        outcome = self._refiner.refine(
            intent, custom_feedback, self.conversation, cancel_token=cancel_token
        )
        if outcome.status is OutcomeStatus.COMMITTED:
            self.cursor = len(self.conversation.versions) - 1
        return outcome

    # ---- Navigation -----------------------------------------------------
    def undo(self) -> NavigationResult:
        conversation, cursor = self._require_versions()
        return self._move(conversation.versions.undo(cursor))

    def redo(self) -> NavigationResult:
        conversation, cursor = self._require_versions()
        return self._move(conversation.versions.redo(cursor))

    def jump_to(self, target_index: int) -> NavigationResult:
        conversation, cursor = self._require_versions()
        return self._move(conversation.versions.jump_to(cursor, target_index))

    def _move(self, result: NavigationResult) -> NavigationResult:
        self.cursor = result.cursor
        return result

    def _require_versions(self) -> tuple[Conversation, int]:
        if self.conversation is None or self.cursor is None:
            raise StateError("No summary versions yet")
        return self.conversation, self.cursor

    # ---- Queries --------------------------------------------------------
    @property
    def current_version(self) -> Optional[SummaryVersion]:
        if self.conversation is None or self.cursor is None:
            return None
        return self.conversation.versions[self.cursor]

    @property
    def can_undo(self) -> bool:
        return self.cursor is not None and self.conversation is not None and self.conversation.versions.can_undo(self.cursor)

    @property
    def can_redo(self) -> bool:
        return self.cursor is not None and self.conversation is not None and self.conversation.versions.can_redo(self.cursor)

    def statistics(self) -> VersionStatistics:
        versions = self.conversation.versions.versions if self.conversation else ()
        return statistics(versions)

    def compare(self, first_index: int, second_index: int) -> VersionComparison:
        conversation, _ = self._require_versions()
        return compare(conversation.versions[first_index], conversation.versions[second_index])

    def _log_debug(self, event: str, extra: Mapping[str, object]) -> None:
        payload = {
            "event": event,
            "conversation_id": self.conversation.conversation_id if self.conversation else None,
        }
        payload.update(dict(extra))
        self._logger.debug("summary-session", extra={"summary": payload})
