from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
from typing import Optional

from prompt_toolkit.application import Application, run_in_terminal
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import D
from prompt_toolkit.styles import Style

from .errors import NavigationError, RemoteError, StateError
from .summaries import (
    CancellationToken,
    ExportFormat,
    RefinementIntent,
    SessionPathResolver,
    SummarySession,
    compare,
    export_version,
    save_conversation,
)
from .summaries.prompts import QUICK_ACTIONS

_INTENT_KEYS = {
    "s": RefinementIntent.SHORTER,
    "l": RefinementIntent.LONGER,
    "p": RefinementIntent.SIMPLER,
    "t": RefinementIntent.TECHNICAL,
    "b": RefinementIntent.BULLET_POINTS,
    "d": RefinementIntent.ADD_DETAILS,
}


class ConversationRefiner:
    """Interactive refinement screen backed by prompt_toolkit."""

    def __init__(
        self,
        session: SummarySession,
        conversation_path: Path,
        resolver: SessionPathResolver,
    ) -> None:
        if session.conversation is None:
            raise StateError("No conversation attached to the session")
        self.session = session
        self.conversation_path = conversation_path
        self.resolver = resolver
        self.status: str = f"Loaded {conversation_path}"
        self._app: Optional[Application] = None
        self._active_task: Optional[asyncio.Task[None]] = None
        self._cancel_token: Optional[CancellationToken] = None

    @property
    def busy(self) -> bool:
        return self._active_task is not None and not self._active_task.done()

    def _set_status(self, message: str) -> None:
        self.status = message
        if self._app:
            self._app.invalidate()

    # ---- Layout helpers -------------------------------------------------
    def _header_fragment(self) -> list[tuple[str, str]]:
        conversation = self.session.conversation
        version = self.session.current_version
        total = len(conversation.versions) if conversation else 0
        label = f"v{version.version_number} of {total}" if version else "no versions"
        name = conversation.document.name if conversation else "?"
        return [("class:header", f"{name} | {label}")]

    def _body_fragments(self) -> list[tuple[str, str]]:
        version = self.session.current_version
        text = version.content if version else "No summary yet."
        return [("class:summary", text)]

    def _detail_fragments(self) -> list[tuple[str, str]]:
        conversation = self.session.conversation
        version = self.session.current_version
        if conversation is None or version is None:
            return [("class:detail", "")]
        lines = [f"{version.word_count} words | created {version.created_at.astimezone():%H:%M:%S}"]
        if version.refinement_prompt:
            lines.append(f"Request: {version.refinement_prompt.splitlines()[0]}")
        if self.session.cursor:
            previous = conversation.versions[self.session.cursor - 1]
            lines.append(f"vs v{previous.version_number}: {compare(previous, version).description}")
        stats = self.session.statistics()
        lines.append(f"{stats.count} versions | avg {stats.average_word_count:.0f} words")
        return [("class:detail", "\n".join(lines))]

    def _instructions_fragment(self) -> list[tuple[str, str]]:
        actions = " ".join(
            f"{key} {action.label.lower()}"
            for key, action in zip(_INTENT_KEYS, QUICK_ACTIONS)
        )
        text = f"Left/Right undo/redo | Home/End | 1-9 jump | {actions} | c custom | e export | x cancel | q quit"
        return [("class:instructions", text)]

    def _status_fragment(self) -> list[tuple[str, str]]:
        return [("class:status", self.status)]

    # ---- Navigation -----------------------------------------------------
    def _navigate(self, action) -> None:
        try:
            result = action()
        except NavigationError as exc:
            self._set_status(str(exc))
            return
        if result.changed:
            self._set_status(f"Showing v{result.version.version_number}")
        else:
            self._set_status(f"Already at v{result.version.version_number}")

    def _jump_to_number(self, version_number: int) -> None:
        self._navigate(partial(self.session.jump_to, version_number - 1))

    # ---- Refinement -----------------------------------------------------
    def _start_refinement(self, intent: RefinementIntent, feedback: Optional[str] = None) -> None:
        if self.busy:
            self._set_status("Refinement already in progress.")
            return

        token = CancellationToken()
        self._cancel_token = token
        self._set_status(f"Refining ({intent.value})...")

        async def worker() -> None:
            try:
                loop = asyncio.get_running_loop()
                outcome = await loop.run_in_executor(
                    None,
                    partial(self.session.refine, intent, feedback, cancel_token=token),
                )
            except (StateError, RemoteError) as exc:
                self.status = f"Refinement failed: {exc}"
            else:
                if outcome.cancelled:
                    self.status = "Refinement cancelled."
                else:
                    save_conversation(self.conversation_path, self.session.conversation)
                    self.status = f"Created v{outcome.version.version_number} ({outcome.attempts} attempt(s))"
            finally:
                self._active_task = None
                self._cancel_token = None
                if self._app:
                    self._app.invalidate()

        if self._app is None:
            return
        self._active_task = self._app.create_background_task(worker())

    def _prompt_custom_feedback(self) -> None:
        if self.busy:
            self._set_status("Refinement already in progress.")
            return
        captured: dict[str, Optional[str]] = {"feedback": None}

        def ask() -> None:  # pragma: no cover - interactive
            try:
                captured["feedback"] = input("Refinement request: ").strip() or None
            except (KeyboardInterrupt, EOFError):
                captured["feedback"] = None

        async def run() -> None:  # pragma: no cover - interactive
            await run_in_terminal(ask)
            if captured["feedback"] is None:
                self._set_status("Custom refinement cancelled.")
                return
            self._start_refinement(RefinementIntent.CUSTOM, captured["feedback"])

        if self._app is not None:
            self._app.create_background_task(run())

    def _cancel_refinement(self) -> None:
        if self._cancel_token is None:
            self._set_status("Nothing to cancel.")
            return
        self._cancel_token.cancel()
        self._set_status("Cancelling...")

    def _export_current(self) -> None:
        conversation = self.session.conversation
        version = self.session.current_version
        if conversation is None or version is None:
            return
        target = self.resolver.export_path_for(conversation, version, ExportFormat.MARKDOWN)
        try:
            export_version(target, conversation, version, ExportFormat.MARKDOWN)
        except OSError as exc:
            self._set_status(f"Failed to write {target}: {exc}")
            return
        self._set_status(f"Exported v{version.version_number} -> {target}")

    def _cleanup(self) -> None:
        if self._cancel_token is not None:
            self._cancel_token.cancel()
        if self._active_task and not self._active_task.done():
            self._active_task.cancel()

    # ---- Key bindings ---------------------------------------------------
    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("left")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._navigate(self.session.undo)

        @kb.add("right")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._navigate(self.session.redo)

        @kb.add("home")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._navigate(partial(self.session.jump_to, 0))

        @kb.add("end")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            conversation = self.session.conversation
            if conversation is not None:
                self._navigate(partial(self.session.jump_to, len(conversation.versions) - 1))

        for digit in "123456789":

            @kb.add(digit)
            def _(event, number=int(digit)) -> None:  # pragma: no cover - interactive behaviour
                self._jump_to_number(number)

        for key, intent in _INTENT_KEYS.items():

            @kb.add(key)
            def _(event, intent=intent) -> None:  # pragma: no cover - interactive behaviour
                self._start_refinement(intent)

        @kb.add("c")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._prompt_custom_feedback()

        @kb.add("e")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._export_current()

        @kb.add("x")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            self._cancel_refinement()

        @kb.add("q")
        @kb.add("Q")
        @kb.add("escape")
        @kb.add("c-c")
        def _(event) -> None:  # pragma: no cover - interactive behaviour
            event.app.exit(result=0)

        return kb

    # ---- Public API -----------------------------------------------------
    def run(self) -> int:
        layout = Layout(
            HSplit(
                [
                    Window(content=FormattedTextControl(self._header_fragment), height=1, always_hide_cursor=True),
                    Window(height=1, char="-", always_hide_cursor=True),
                    Window(
                        content=FormattedTextControl(self._body_fragments, focusable=True),
                        height=D(min=5),
                        wrap_lines=True,
                        always_hide_cursor=True,
                    ),
                    Window(height=1, char="-", always_hide_cursor=True),
                    Window(
                        content=FormattedTextControl(self._detail_fragments),
                        height=D(min=3, max=5),
                        wrap_lines=True,
                        always_hide_cursor=True,
                    ),
                    Window(height=1, char="-", always_hide_cursor=True),
                    Window(content=FormattedTextControl(self._instructions_fragment), height=1, always_hide_cursor=True),
                    Window(content=FormattedTextControl(self._status_fragment), height=1, always_hide_cursor=True),
                ]
            )
        )

        style = Style.from_dict(
            {
                "header": "bold",
                "summary": "",
                "detail": "fg:#444444",
                "instructions": "fg:#888888",
                "status": "fg:#000000 bg:#e5e5e5",
            }
        )

        self._app = Application(
            layout=layout,
            key_bindings=self._build_key_bindings(),
            style=style,
            full_screen=True,
        )
        result = self._app.run()
        self._cleanup()
        return 0 if result is None else result


def browse_conversation(session: SummarySession, conversation_path: Path, resolver: SessionPathResolver) -> int:
    refiner = ConversationRefiner(session=session, conversation_path=conversation_path, resolver=resolver)
    return refiner.run()
