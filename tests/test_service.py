from __future__ import annotations

import pytest
from conftest import FakeClient

from summarize_document.errors import AtBoundaryError, NoSummaryToRefineError, OutOfRangeError, StateError
from summarize_document.summaries.retry import CancellationToken
from summarize_document.summaries.service import SummarySession
from summarize_document.summaries.types import RefinementIntent, SummarySize


def started_session(document, policy, *responses: str) -> SummarySession:
    session = SummarySession(FakeClient(responses), retry_policy=policy)
    outcome = session.start(document, b"%PDF", SummarySize.MEDIUM)
    assert outcome.committed
    return session


def test_start_sets_cursor_to_first_version(pdf_document, policy):
    session = started_session(pdf_document, policy, "one two three")
    assert session.cursor == 0
    assert session.current_version.content == "one two three"
    assert not session.can_undo
    assert not session.can_redo


def test_refine_moves_cursor_to_latest_even_after_undo(pdf_document, policy):
    session = started_session(pdf_document, policy, "v1", "v2", "v3")
    session.refine(RefinementIntent.SHORTER)
    session.undo()
    assert session.cursor == 0

    session.refine(RefinementIntent.LONGER)
    assert session.cursor == 2
    assert session.current_version.content == "v3"
    assert [v.version_number for v in session.conversation.versions] == [1, 2, 3]


def test_navigation_round_trip_and_boundaries(pdf_document, policy):
    session = started_session(pdf_document, policy, "v1", "v2")
    session.refine(RefinementIntent.SIMPLER)

    with pytest.raises(AtBoundaryError):
        session.redo()
    assert session.undo().cursor == 0
    with pytest.raises(AtBoundaryError):
        session.undo()
    assert session.redo().cursor == 1

    assert session.jump_to(1).changed is False
    assert session.jump_to(0).version.content == "v1"
    with pytest.raises(OutOfRangeError):
        session.jump_to(5)
    assert session.cursor == 0


def test_navigation_without_versions_is_a_state_error(policy):
    session = SummarySession(FakeClient(), retry_policy=policy)
    with pytest.raises(StateError):
        session.undo()
    with pytest.raises(NoSummaryToRefineError):
        session.refine(RefinementIntent.SHORTER)
    assert session.statistics().count == 0


def test_cancelled_start_keeps_previous_conversation(pdf_document, text_document, policy):
    session = started_session(pdf_document, policy, "v1")
    previous = session.conversation
    token = CancellationToken()
    token.cancel()

    outcome = session.start(text_document, b"notes", cancel_token=token)

    assert outcome.cancelled
    assert session.conversation is previous
    assert session.cursor == 0


def test_statistics_and_compare(pdf_document, policy):
    session = started_session(pdf_document, policy, "one two", "one two three four")
    session.refine(RefinementIntent.LONGER)

    stats = session.statistics()
    assert stats.count == 2
    assert stats.average_word_count == pytest.approx(3.0)
    assert stats.longest_version.version_number == 2

    comparison = session.compare(0, 1)
    assert comparison.word_delta == 2
    assert comparison.percent_change == pytest.approx(100.0)


def test_attach_resumes_at_latest(pdf_document, policy):
    first = started_session(pdf_document, policy, "v1", "v2")
    first.refine(RefinementIntent.BULLET_POINTS)

    resumed = SummarySession(FakeClient(), retry_policy=policy)
    resumed.attach(first.conversation)
    assert resumed.cursor == 1
    assert resumed.can_undo

    resumed.reset()
    assert resumed.conversation is None
    assert resumed.current_version is None
