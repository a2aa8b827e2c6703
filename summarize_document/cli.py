from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .documents import estimated_processing_seconds, load_document
from .errors import (
    AuthenticationError,
    RemoteError,
    StateError,
    ValidationError,
)
from .summaries import (
    Conversation,
    ExportFormat,
    GeminiClient,
    RefinementIntent,
    SessionPathResolver,
    SummarySession,
    SummarySize,
    SummaryVersion,
    compare,
    export_version,
    load_conversation,
    save_conversation,
    statistics,
)


def get_default_sessions_dir() -> Path:
    return Path("~/.summarize-document/sessions").expanduser()


def get_gemini_config_path() -> Path:
    return Path("~/.config/gemini/key").expanduser()


def load_gemini_api_key() -> Optional[str]:
    for name in ("GEMINI_API_KEY", "GOOGLE_AI_API_KEY"):
        env_key = os.getenv(name)
        if env_key and env_key.strip():
            return env_key.strip()

    config_path = get_gemini_config_path()
    try:
        contents = config_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return contents or None


def build_gemini_client(model: str) -> GeminiClient:
    api_key = load_gemini_api_key()
    if not api_key:
        raise AuthenticationError(
            "Gemini API key not found. Set GEMINI_API_KEY or place a key in ~/.config/gemini/key."
        )
    base_url = os.getenv("GEMINI_API_BASE", GeminiClient.DEFAULT_BASE_URL)
    return GeminiClient(api_key=api_key, base_url=base_url, model=model)


class SummaryEventFormatter(logging.Formatter):
    """Append the structured ``summary`` payload carried in ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        payload = getattr(record, "summary", None)
        if payload:
            text = f"{text} {payload}"
        return text


@dataclass
class ConversationEntry:
    index: int
    path: Path
    conversation: Conversation

    @property
    def created_display(self) -> str:
        return self.conversation.created_at.astimezone().strftime("%Y-%m-%d %H:%M")


def build_conversation_entries(paths: Sequence[Path]) -> list[ConversationEntry]:
    entries: list[ConversationEntry] = []
    for index, path in enumerate(paths, start=1):
        try:
            conversation = load_conversation(path)
        except (OSError, ValueError, KeyError):
            continue
        entries.append(ConversationEntry(index=index, path=path, conversation=conversation))
    return entries


def format_conversation_table(entries: Sequence[ConversationEntry]) -> tuple[str, list[str]]:
    rows = [
        (
            str(entry.index),
            entry.conversation.conversation_id,
            entry.conversation.document.name,
            str(len(entry.conversation.versions)),
            entry.created_display,
        )
        for entry in entries
    ]
    titles = ("Idx", "Id", "Document", "Versions", "Created")
    widths = [max([len(title)] + [len(row[col]) for row in rows]) for col, title in enumerate(titles)]

    def render(values: Sequence[str]) -> str:
        cells = [
            values[0].rjust(widths[0]),
            values[1].ljust(widths[1]),
            values[2].ljust(widths[2]),
            values[3].rjust(widths[3]),
            values[4].ljust(widths[4]),
        ]
        return "  ".join(cells).rstrip()

    return render(titles), [render(row) for row in rows]


def format_history(conversation: Conversation, cursor: Optional[int] = None) -> list[str]:
    lines: list[str] = []
    for index, item in enumerate(conversation.versions.history()):
        marker = "*" if index == cursor else " "
        label = item.version.refinement_prompt.splitlines()[0] if item.version.refinement_prompt else "initial summary"
        timestamp = item.version.created_at.astimezone().strftime("%H:%M:%S")
        lines.append(f"{marker} v{item.version.version_number}  {item.word_count:>5} words  {timestamp}  {label}")
    stats = statistics(conversation.versions.versions)
    if stats.count:
        lines.append(
            f"{stats.count} versions, {stats.refinement_count} refinements, "
            f"avg {stats.average_word_count:.0f} words "
            f"(shortest v{stats.shortest_version.version_number}, longest v{stats.longest_version.version_number})"
        )
    return lines


def select_version(conversation: Conversation, version_number: Optional[int]) -> SummaryVersion:
    if version_number is None:
        latest = conversation.versions.latest()
        if latest is None:
            raise StateError("Conversation has no versions")
        return latest
    version = conversation.versions.by_number(version_number)
    if version is None:
        raise StateError(
            f"Version {version_number} not found (conversation has {len(conversation.versions)} versions)"
        )
    return version


def write_text(text: str) -> None:
    sys.stdout.write(text)
    if not text.endswith("\n"):
        sys.stdout.write("\n")


def handle_summarize(args: argparse.Namespace, parser: argparse.ArgumentParser, resolver: SessionPathResolver) -> int:
    try:
        metadata, data = load_document(args.document)
    except FileNotFoundError as exc:
        parser.error(str(exc))
        return 2
    except ValidationError as exc:
        parser.error(str(exc))
        return 2

    client: Optional[GeminiClient] = None
    try:
        client = build_gemini_client(args.model)
        session = SummarySession(client)
        if not args.stdout:
            print(
                f"Summarizing {metadata.name} ({metadata.size_display}); "
                f"expect up to ~{estimated_processing_seconds(metadata)}s..."
            )
        outcome = session.start(metadata, data, SummarySize(args.size), args.instructions)
    except (ValidationError, RemoteError) as exc:
        parser.error(str(exc))
        return 2
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130
    finally:
        if client:
            client.close()

    conversation = session.conversation
    if not outcome.committed or conversation is None or outcome.version is None:
        print("Cancelled.", file=sys.stderr)
        return 130
    target = save_conversation(resolver.conversation_path_for(conversation.conversation_id), conversation)

    if args.stdout:
        write_text(outcome.version.content)
        return 0
    print(
        f"[generated] {metadata.name} -> {target} "
        f"(v1, {outcome.version.word_count} words, {outcome.attempts} attempt(s))"
    )
    return 0


def handle_refine(args: argparse.Namespace, parser: argparse.ArgumentParser, resolver: SessionPathResolver) -> int:
    path = _resolve_or_exit(args.conversation, parser, resolver)
    conversation = _load_or_exit(path, parser)

    client: Optional[GeminiClient] = None
    try:
        client = build_gemini_client(args.model)
        session = SummarySession(client)
        session.attach(conversation)
        outcome = session.refine(RefinementIntent(args.intent), args.feedback)
    except (StateError, RemoteError) as exc:
        parser.error(str(exc))
        return 2
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130
    finally:
        if client:
            client.close()

    if not outcome.committed or outcome.version is None:
        print("Cancelled.", file=sys.stderr)
        return 130
    save_conversation(path, conversation)
    if args.stdout:
        write_text(outcome.version.content)
        return 0
    previous = conversation.versions[len(conversation.versions) - 2]
    comparison = compare(previous, outcome.version)
    print(f"[refined] {conversation.document.name} -> v{outcome.version.version_number} ({comparison.description})")
    return 0


def handle_browse(args: argparse.Namespace, parser: argparse.ArgumentParser, resolver: SessionPathResolver) -> int:
    path = _resolve_or_exit(args.conversation, parser, resolver)
    conversation = _load_or_exit(path, parser)
    try:
        client = build_gemini_client(args.model)
    except AuthenticationError as exc:
        parser.error(str(exc))
        return 2

    try:
        from .browser import browse_conversation
    except ModuleNotFoundError as exc:
        client.close()
        if exc.name == "prompt_toolkit":
            parser.error(
                "Interactive refinement requires optional dependency 'prompt_toolkit'. "
                "Install it from the repo with `python -m pip install .[browser]`."
            )
        raise

    session = SummarySession(client)
    session.attach(conversation)
    try:
        return browse_conversation(session, path, resolver)
    finally:
        client.close()


def _resolve_or_exit(candidate: str, parser: argparse.ArgumentParser, resolver: SessionPathResolver) -> Path:
    try:
        return resolver.resolve(candidate)
    except FileNotFoundError as exc:
        parser.error(str(exc))
        raise


def _load_or_exit(path: Path, parser: argparse.ArgumentParser) -> Conversation:
    try:
        return load_conversation(path)
    except (OSError, ValueError, KeyError) as exc:
        parser.error(f"Failed to load {path}: {exc}")
        raise


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="summarize-document",
        description="Summarize a document with Gemini and refine the summary with version history.",
    )
    p.add_argument(
        "--sessions-dir",
        type=Path,
        default=get_default_sessions_dir(),
        help="Directory holding saved conversations (default: ~/.summarize-document/sessions)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug events to stderr")

    sub = p.add_subparsers(dest="cmd", required=True)

    def add_model(parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--model",
            default=GeminiClient.DEFAULT_MODEL,
            help=f"Gemini model identifier to use (default: {GeminiClient.DEFAULT_MODEL})",
        )

    p_summarize = sub.add_parser("summarize", help="Generate the first summary of a document")
    p_summarize.add_argument("document", type=Path, help="Path of the document or image to summarize")
    p_summarize.add_argument(
        "--size",
        choices=[size.value for size in SummarySize],
        default=SummarySize.MEDIUM.value,
        help="Summary length (default: medium)",
    )
    p_summarize.add_argument("--instructions", help="Optional custom instructions (10-1000 characters)")
    p_summarize.add_argument("--stdout", action="store_true", help="Print the summary instead of a status line")
    add_model(p_summarize)

    p_refine = sub.add_parser("refine", help="Refine the latest summary of a saved conversation")
    p_refine.add_argument("conversation", help="Conversation index, id, or path")
    p_refine.add_argument(
        "--intent",
        choices=[intent.value for intent in RefinementIntent],
        required=True,
        help="Kind of refinement to request",
    )
    p_refine.add_argument("--feedback", help="Free-form feedback used with --intent custom")
    p_refine.add_argument("--stdout", action="store_true", help="Print the refined summary")
    add_model(p_refine)

    sub.add_parser("list", help="List saved conversations")

    p_history = sub.add_parser("history", help="Show the version history of a conversation")
    p_history.add_argument("conversation", help="Conversation index, id, or path")

    p_show = sub.add_parser("show", help="Print one version of a conversation")
    p_show.add_argument("conversation", help="Conversation index, id, or path")
    p_show.add_argument("--version", type=int, help="Version number (default: latest)")

    p_compare = sub.add_parser("compare", help="Compare two versions by length")
    p_compare.add_argument("conversation", help="Conversation index, id, or path")
    p_compare.add_argument("first", type=int, help="Older version number")
    p_compare.add_argument("second", type=int, help="Newer version number")

    p_export = sub.add_parser("export", help="Export a version to Markdown or HTML")
    p_export.add_argument("conversation", help="Conversation index, id, or path")
    p_export.add_argument("--version", type=int, help="Version number (default: latest)")
    p_export.add_argument(
        "--format",
        choices=[fmt.value for fmt in ExportFormat],
        default=ExportFormat.MARKDOWN.value,
        help="Export format (default: markdown)",
    )
    p_export.add_argument("-o", "--output", type=Path, help="Output path (default: under the sessions dir)")

    p_browse = sub.add_parser("browse", help="Interactively refine and navigate a conversation")
    p_browse.add_argument("conversation", help="Conversation index, id, or path")
    add_model(p_browse)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        handler = logging.StreamHandler()
        handler.setFormatter(SummaryEventFormatter("%(asctime)s %(name)s %(message)s"))
        logging.basicConfig(level=logging.DEBUG, handlers=[handler])

    resolver = SessionPathResolver(args.sessions_dir)

    if args.cmd == "summarize":
        return handle_summarize(args, parser, resolver)

    if args.cmd == "refine":
        return handle_refine(args, parser, resolver)

    if args.cmd == "browse":
        return handle_browse(args, parser, resolver)

    if args.cmd == "list":
        entries = build_conversation_entries(resolver.list_conversations())
        if not entries:
            print(f"No saved conversations under {resolver.sessions_root}")
            return 0
        print(f"Conversations under {resolver.sessions_root}")
        header, lines = format_conversation_table(entries)
        print(header)
        for line in lines:
            print(line)
        return 0

    path = _resolve_or_exit(args.conversation, parser, resolver)
    conversation = _load_or_exit(path, parser)

    if args.cmd == "history":
        print(f"{conversation.document.name} ({conversation.config.size.value})")
        for line in format_history(conversation, cursor=len(conversation.versions) - 1):
            print(line)
        return 0

    try:
        if args.cmd == "show":
            write_text(select_version(conversation, args.version).content)
            return 0

        if args.cmd == "compare":
            first = select_version(conversation, args.first)
            second = select_version(conversation, args.second)
            comparison = compare(first, second)
            print(
                f"v{first.version_number} -> v{second.version_number}: {comparison.description} "
                f"({comparison.char_delta:+d} chars)"
            )
            return 0

        if args.cmd == "export":
            version = select_version(conversation, args.version)
            fmt = ExportFormat(args.format)
            target = args.output or resolver.export_path_for(conversation, version, fmt)
            try:
                export_version(target, conversation, version, fmt)
            except OSError as exc:
                parser.error(f"Failed to write {target}: {exc}")
                return 2
            print(f"Exported v{version.version_number} -> {target}")
            return 0
    except StateError as exc:
        parser.error(str(exc))
        return 2

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
