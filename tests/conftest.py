from __future__ import annotations

from typing import List, Mapping, Optional, Sequence, Union

import pytest

from summarize_document.documents import DocumentMetadata
from summarize_document.summaries.retry import RetryPolicy
from summarize_document.summaries.types import Attachment


class FakeClient:
    """Scripted stand-in for the Gemini adapter."""

    def __init__(self, responses: Sequence[Union[str, BaseException]] = ()) -> None:
        self.responses: List[Union[str, BaseException]] = list(responses)
        self.calls: List[dict] = []

    def generate_text(
        self,
        prompt: str,
        context: Sequence[Mapping[str, str]] = (),
        attachment: Optional[Attachment] = None,
    ) -> str:
        self.calls.append({"prompt": prompt, "context": list(context), "attachment": attachment})
        if not self.responses:
            raise AssertionError("FakeClient ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(jitter=False)


@pytest.fixture
def pdf_document() -> DocumentMetadata:
    return DocumentMetadata.for_bytes("report.pdf", b"%PDF-1.4 fake")


@pytest.fixture
def text_document() -> DocumentMetadata:
    return DocumentMetadata.for_bytes("notes.txt", b"Quarterly planning notes.")


@pytest.fixture
def word_document() -> DocumentMetadata:
    return DocumentMetadata.for_bytes("memo.docx", b"Memo body text")
