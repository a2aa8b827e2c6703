"""Filesystem helpers for persisting conversations and exporting versions."""
from __future__ import annotations

import html
import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

from .conversation import Conversation
from .types import SummaryVersion

_FRONT_MATTER_DELIMITER = "---"
_CONVERSATION_SUFFIX = ".json"


class ExportFormat(str, Enum):
    MARKDOWN = "markdown"
    HTML = "html"

    @property
    def extension(self) -> str:
        return "md" if self is ExportFormat.MARKDOWN else "html"


class SessionPathResolver:
    """Determines where saved conversations and exports live on disk."""

    def __init__(self, sessions_root: Path) -> None:
        self.sessions_root = Path(sessions_root).expanduser().resolve()

    def conversation_path_for(self, conversation_id: str) -> Path:
        return self.sessions_root / f"{_slugify(conversation_id)}{_CONVERSATION_SUFFIX}"

    def export_path_for(self, conversation: Conversation, version: SummaryVersion, fmt: ExportFormat) -> Path:
        stem = _slugify(Path(conversation.document.name).stem)
        name = f"{stem}-v{version.version_number}.{fmt.extension}"
        return self.sessions_root / "exports" / _slugify(conversation.conversation_id) / name

    def list_conversations(self) -> List[Path]:
        if not self.sessions_root.is_dir():
            return []
        return sorted(
            (p for p in self.sessions_root.glob(f"*{_CONVERSATION_SUFFIX}") if p.is_file()),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )

    def resolve(self, candidate: str) -> Path:
        """Accept a path, a conversation id, or a 1-based index into the listing."""
        stripped = candidate.strip()
        if stripped.isdigit():
            files = self.list_conversations()
            index = int(stripped)
            if files and 1 <= index <= len(files):
                return files[index - 1]
        path = Path(stripped).expanduser()
        if path.is_file():
            return path
        by_id = self.conversation_path_for(stripped)
        if by_id.is_file():
            return by_id
        raise FileNotFoundError(
            f"Conversation not found: {candidate}. Hint: provide a path, an id, or an index under {self.sessions_root}."
        )


def save_conversation(path: Path, conversation: Conversation) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(conversation.to_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def load_conversation(path: Path) -> Conversation:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not a saved conversation: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path} is not a saved conversation")
    return Conversation.from_dict(data)


def render_markdown(conversation: Conversation, version: SummaryVersion) -> str:
    """Summary markdown with YAML front matter describing its provenance."""
    metadata: Dict[str, object] = {
        "conversation_id": conversation.conversation_id,
        "document": conversation.document.name,
        "size": conversation.config.size.value,
        "version": version.version_number,
        "created_at": version.created_at.isoformat(),
        "word_count": version.word_count,
    }
    if version.refinement_prompt:
        metadata["refinement_prompt"] = version.refinement_prompt
    front_matter = yaml.safe_dump(metadata, sort_keys=True, allow_unicode=True).strip()
    body = version.content if version.content.endswith("\n") else f"{version.content}\n"
    return f"{_FRONT_MATTER_DELIMITER}\n{front_matter}\n{_FRONT_MATTER_DELIMITER}\n\n{body}"


def render_html(conversation: Conversation, version: SummaryVersion) -> str:
    title = html.escape(f"Summary of {conversation.document.name} (v{version.version_number})")
    paragraphs = [block.strip() for block in version.content.split("\n\n") if block.strip()]
    body = "\n".join(
        "<p>{}</p>".format(html.escape(block).replace("\n", "<br>\n")) for block in paragraphs
    )
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{title}</title>\n"
        "</head>\n"
        "<body>\n"
        f"<h1>{title}</h1>\n"
        f"{body}\n"
        "</body>\n"
        "</html>\n"
    )


def export_version(path: Path, conversation: Conversation, version: SummaryVersion, fmt: ExportFormat) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fmt = ExportFormat(fmt)
    text = render_markdown(conversation, version) if fmt is ExportFormat.MARKDOWN else render_html(conversation, version)
    path.write_text(text, encoding="utf-8")
    return path


def split_front_matter(content: str) -> Tuple[Dict[str, object], str]:
    """Parse an exported markdown file back into ``(metadata, body)``."""
    lines = content.splitlines()
    if not lines or lines[0].strip() != _FRONT_MATTER_DELIMITER:
        return {}, content

    for idx in range(1, len(lines)):
        if lines[idx].strip() == _FRONT_MATTER_DELIMITER:
            front_matter_text = "\n".join(lines[1:idx]).strip()
            metadata = yaml.safe_load(front_matter_text) if front_matter_text else {}
            if metadata is None:
                metadata = {}
            if not isinstance(metadata, dict):
                raise ValueError("Summary front matter must deserialize to a mapping")
            body = "\n".join(lines[idx + 1 :]).lstrip("\n")
            if body and not body.endswith("\n"):
                body = f"{body}\n"
            return metadata, body

    return {}, content


def _slugify(value: str) -> str:
    normalized = "".join(ch.lower() if ch.isalnum() else "-" for ch in value.strip())
    parts = [part for part in normalized.split("-") if part]
    slug = "-".join(parts)
    return slug or "default"
