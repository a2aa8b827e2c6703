from __future__ import annotations

import pytest
from conftest import FakeClient

from summarize_document import cli
from summarize_document.summaries.storage import SessionPathResolver, load_conversation
from summarize_document.summaries.types import OutcomeStatus, SummaryOutcome


@pytest.fixture
def sessions_dir(tmp_path):
    return tmp_path / "sessions"


@pytest.fixture
def document(tmp_path):
    path = tmp_path / "report.txt"
    path.write_text("Revenue grew twelve percent while costs held flat.", encoding="utf-8")
    return path


def install_client(monkeypatch, *responses):
    client = FakeClient(responses)
    monkeypatch.setattr(cli, "build_gemini_client", lambda model: client)
    return client


def run(sessions_dir, *argv) -> int:
    return cli.main(["--sessions-dir", str(sessions_dir), *argv])


def test_summarize_saves_conversation(monkeypatch, capsys, sessions_dir, document):
    client = install_client(monkeypatch, "Revenue up, costs flat.")

    assert run(sessions_dir, "summarize", str(document), "--size", "short") == 0

    out = capsys.readouterr().out
    assert "[generated] report.txt" in out
    assert client.closed
    saved = SessionPathResolver(sessions_dir).list_conversations()
    assert len(saved) == 1
    conversation = load_conversation(saved[0])
    assert conversation.versions[0].content == "Revenue up, costs flat."
    assert conversation.config.size.value == "short"


def test_refine_show_history_and_compare(monkeypatch, capsys, sessions_dir, document):
    install_client(monkeypatch, "one two three four", "one two")
    run(sessions_dir, "summarize", str(document))

    assert run(sessions_dir, "refine", "1", "--intent", "shorter") == 0
    assert "-> v2 (-2 words (50.0% shorter))" in capsys.readouterr().out

    run(sessions_dir, "show", "1", "--version", "1")
    assert capsys.readouterr().out == "one two three four\n"

    run(sessions_dir, "history", "1")
    history = capsys.readouterr().out
    assert "v1" in history and "v2" in history
    assert "2 versions, 1 refinements" in history

    run(sessions_dir, "compare", "1", "1", "2")
    assert "v1 -> v2: -2 words (50.0% shorter)" in capsys.readouterr().out


def test_export_markdown(monkeypatch, capsys, sessions_dir, document, tmp_path):
    install_client(monkeypatch, "Exported summary text")
    run(sessions_dir, "summarize", str(document))
    target = tmp_path / "out.md"

    assert run(sessions_dir, "export", "1", "-o", str(target)) == 0

    content = target.read_text(encoding="utf-8")
    assert content.startswith("---\n")
    assert content.endswith("Exported summary text\n")


def test_list_without_conversations(capsys, sessions_dir):
    assert run(sessions_dir, "list") == 0
    assert "No saved conversations" in capsys.readouterr().out


def test_invalid_instructions_exit_with_usage_error(monkeypatch, sessions_dir, document):
    client = install_client(monkeypatch)
    with pytest.raises(SystemExit) as excinfo:
        run(sessions_dir, "summarize", str(document), "--instructions", "short")
    assert excinfo.value.code == 2
    assert client.calls == []


def test_missing_version_is_reported(monkeypatch, sessions_dir, document):
    install_client(monkeypatch, "Summary")
    run(sessions_dir, "summarize", str(document))
    with pytest.raises(SystemExit):
        run(sessions_dir, "show", "1", "--version", "9")


def test_missing_api_key(monkeypatch, tmp_path):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_AI_API_KEY", raising=False)
    monkeypatch.setattr(cli, "get_gemini_config_path", lambda: tmp_path / "absent")
    assert cli.load_gemini_api_key() is None

    monkeypatch.setenv("GOOGLE_AI_API_KEY", " from-env ")
    assert cli.load_gemini_api_key() == "from-env"


def test_cancelled_summary_is_not_saved(monkeypatch, capsys, sessions_dir, document):
    class CancellingSession:
        conversation = None

        def __init__(self, client):
            pass

        def start(self, *args, **kwargs):
            return SummaryOutcome(status=OutcomeStatus.CANCELLED)

    install_client(monkeypatch)
    monkeypatch.setattr(cli, "SummarySession", CancellingSession)

    assert run(sessions_dir, "summarize", str(document)) == 130
    assert "Cancelled." in capsys.readouterr().err
    assert SessionPathResolver(sessions_dir).list_conversations() == []
