from __future__ import annotations

import pytest

from summarize_document.summaries.conversation import Conversation, ConversationLog, new_conversation_id
from summarize_document.summaries.types import ConversationMessage, SummaryConfig, SummarySize, SummaryVersion


def build_conversation(document) -> Conversation:
    conversation = Conversation(
        document=document,
        config=SummaryConfig(size=SummarySize.LONG, custom_prompt="Focus on the budget lines"),
    )
    conversation.commit(
        ConversationMessage.user("Summarize", attachment_ref=document.reference),
        ConversationMessage.model("First draft"),
        SummaryVersion(content="First draft", version_number=1),
    )
    conversation.commit(
        ConversationMessage.user("Shorter please"),
        ConversationMessage.model("Draft"),
        SummaryVersion(content="Draft", version_number=2, refinement_prompt="Shorter please"),
    )
    return conversation


def test_commit_rejects_wrong_version_number_without_side_effects(pdf_document):
    conversation = build_conversation(pdf_document)
    with pytest.raises(ValueError):
        conversation.commit(
            ConversationMessage.user("again"),
            ConversationMessage.model("out of order"),
            SummaryVersion(content="out of order", version_number=5),
        )
    assert len(conversation.messages) == 4
    assert len(conversation.versions) == 2


def test_log_rejects_swapped_roles():
    log = ConversationLog()
    with pytest.raises(ValueError):
        log.append_exchange(ConversationMessage.model("a"), ConversationMessage.user("b"))
    assert len(log) == 0


def test_counts_and_token_estimate(pdf_document):
    conversation = build_conversation(pdf_document)
    assert conversation.current_version_number == 2
    assert conversation.refinement_count == 1
    assert conversation.has_any_model_message()
    total_chars = len("Summarize") + len("First draft") + len("Shorter please") + len("Draft")
    assert conversation.log.estimate_tokens() == -(-total_chars // 4)


def test_ids_are_unique():
    ids = {new_conversation_id() for _ in range(50)}
    assert len(ids) == 50


def test_serialization_round_trip(pdf_document):
    conversation = build_conversation(pdf_document)
    data = conversation.to_dict()

    assert set(data) == {"conversationId", "documentMetadata", "messages", "versions", "config", "createdAt"}
    assert data["messages"][0]["attachmentRef"] == "memory:///report.pdf"
    assert "attachmentRef" not in data["messages"][1]
    assert data["config"] == {"size": "long", "customPrompt": "Focus on the budget lines"}

    restored = Conversation.from_dict(data)
    assert restored.conversation_id == conversation.conversation_id
    assert restored.created_at == conversation.created_at
    assert restored.document == conversation.document
    assert restored.messages == conversation.messages
    assert restored.versions.versions == conversation.versions.versions
    assert restored.config == conversation.config


def test_from_dict_rejects_unpaired_history(pdf_document):
    data = build_conversation(pdf_document).to_dict()
    data["messages"] = data["messages"][:3]
    with pytest.raises(ValueError):
        Conversation.from_dict(data)
