"""Shared exports for the summarize-and-refine feature."""
from __future__ import annotations

from ..errors import (
    AtBoundaryError,
    AuthenticationError,
    ClientConfigurationError,
    NavigationError,
    NoSummaryToRefineError,
    OutOfRangeError,
    ProhibitedPatternError,
    RateLimitError,
    RemoteError,
    RetryExhaustedError,
    StateError,
    TooLongError,
    TooShortError,
    TransientError,
    ValidationError,
)
from .conversation import Conversation, ConversationLog
from .gemini_client import GeminiClient, GenerationSettings, GenerativeClient
from .generation import GenerationOrchestrator, GenerationOutcome, GenerationState
from .prompts import build_initial_prompt, build_refinement_prompt, validate_custom_instructions
from .refinement import RefinementOrchestrator
from .retry import CancellationToken, RetryPolicy, call_with_retry, is_retryable
from .service import SummarySession
from .storage import ExportFormat, SessionPathResolver, export_version, load_conversation, save_conversation
from .types import (
    ConversationMessage,
    MessageRole,
    OutcomeStatus,
    RefinementIntent,
    SummaryConfig,
    SummaryOutcome,
    SummarySize,
    SummaryVersion,
)
from .versions import NavigationResult, VersionStore, compare, statistics


__all__ = [
    "SummarySession",
    "GenerationOrchestrator",
    "GenerationOutcome",
    "GenerationState",
    "RefinementOrchestrator",
    "Conversation",
    "ConversationLog",
    "ConversationMessage",
    "MessageRole",
    "VersionStore",
    "NavigationResult",
    "compare",
    "statistics",
    "SummaryVersion",
    "SummaryConfig",
    "SummarySize",
    "RefinementIntent",
    "OutcomeStatus",
    "SummaryOutcome",
    "build_initial_prompt",
    "build_refinement_prompt",
    "validate_custom_instructions",
    "CancellationToken",
    "RetryPolicy",
    "call_with_retry",
    "is_retryable",
    "GeminiClient",
    "GenerationSettings",
    "GenerativeClient",
    "ExportFormat",
    "SessionPathResolver",
    "export_version",
    "load_conversation",
    "save_conversation",
    "ValidationError",
    "TooShortError",
    "TooLongError",
    "ProhibitedPatternError",
    "StateError",
    "NoSummaryToRefineError",
    "NavigationError",
    "AtBoundaryError",
    "OutOfRangeError",
    "RemoteError",
    "AuthenticationError",
    "RateLimitError",
    "TransientError",
    "ClientConfigurationError",
    "RetryExhaustedError",
]
