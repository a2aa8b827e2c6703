"""Append-only version history with cursor navigation."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterator, List, Optional, Sequence

from ..errors import AtBoundaryError, OutOfRangeError
from .types import SummaryVersion, count_words


@dataclass(frozen=True)
class NavigationResult:
    """Outcome of a cursor move; ``changed`` is False for a no-op jump."""

    cursor: int
    version: SummaryVersion
    changed: bool = True


@dataclass(frozen=True)
class VersionStatistics:
    count: int
    average_word_count: float
    shortest_version: Optional[SummaryVersion]
    longest_version: Optional[SummaryVersion]

    @property
    def refinement_count(self) -> int:
        return max(0, self.count - 1)


@dataclass(frozen=True)
class VersionComparison:
    older: SummaryVersion
    newer: SummaryVersion
    word_delta: int
    char_delta: int
    percent_change: float

    @property
    def description(self) -> str:
        if self.word_delta == 0:
            return "Same length"
        direction = "longer" if self.word_delta > 0 else "shorter"
        sign = "+" if self.word_delta > 0 else "-"
        return f"{sign}{abs(self.word_delta)} words ({abs(self.percent_change):.1f}% {direction})"


@dataclass(frozen=True)
class VersionHistoryItem:
    version: SummaryVersion
    word_count: int


class VersionStore:
    """Holds the linear version sequence; callers own the cursor."""

    def __init__(self, versions: Optional[Sequence[SummaryVersion]] = None) -> None:
        self._versions: List[SummaryVersion] = []
        for version in versions or ():
            self.append(version)

    def __len__(self) -> int:
        return len(self._versions)

    def __iter__(self) -> Iterator[SummaryVersion]:
        return iter(self._versions)

    def __getitem__(self, index: int) -> SummaryVersion:
        return self._versions[index]

    @property
    def versions(self) -> tuple[SummaryVersion, ...]:
        return tuple(self._versions)

    @property
    def next_version_number(self) -> int:
        return len(self._versions) + 1

    def append(self, version: SummaryVersion) -> None:
        """Append ``version``; the cursor is not moved."""
        expected = self.next_version_number
        if version.version_number != expected:
            raise ValueError(
                f"Expected version number {expected}, got {version.version_number}"
            )
        self._versions.append(version)

    # ---- Navigation -----------------------------------------------------
    def can_undo(self, cursor: int) -> bool:
        return 0 < cursor < len(self._versions)

    def can_redo(self, cursor: int) -> bool:
        return 0 <= cursor < len(self._versions) - 1

    def undo(self, cursor: int) -> NavigationResult:
        self._check_cursor(cursor)
        if cursor == 0:
            raise AtBoundaryError("Cannot undo - already at first version")
        return NavigationResult(cursor=cursor - 1, version=self._versions[cursor - 1])

    def redo(self, cursor: int) -> NavigationResult:
        self._check_cursor(cursor)
        if cursor == len(self._versions) - 1:
            raise AtBoundaryError("Cannot redo - already at latest version")
        return NavigationResult(cursor=cursor + 1, version=self._versions[cursor + 1])

    def jump_to(self, cursor: int, target_index: int) -> NavigationResult:
        if target_index < 0 or target_index >= len(self._versions):
            raise OutOfRangeError(
                f"Invalid version index {target_index} (history has {len(self._versions)} versions)"
            )
        if target_index == cursor:
            return NavigationResult(cursor=cursor, version=self._versions[cursor], changed=False)
        return NavigationResult(cursor=target_index, version=self._versions[target_index])

    def _check_cursor(self, cursor: int) -> None:
        if not 0 <= cursor < len(self._versions):
            raise OutOfRangeError(f"Cursor {cursor} is outside the version history")

    # ---- Queries --------------------------------------------------------
    def latest(self) -> Optional[SummaryVersion]:
        return self._versions[-1] if self._versions else None

    def first(self) -> Optional[SummaryVersion]:
        return self._versions[0] if self._versions else None

    def by_number(self, version_number: int) -> Optional[SummaryVersion]:
        for version in self._versions:
            if version.version_number == version_number:
                return version
        return None

    def is_behind_latest(self, cursor: int) -> bool:
        return cursor < len(self._versions) - 1

    def history(self) -> List[VersionHistoryItem]:
        return [VersionHistoryItem(version=v, word_count=count_words(v.content)) for v in self._versions]

    def rollback_version(self, target: SummaryVersion) -> SummaryVersion:
        """Build (but do not append) a new version restoring ``target``'s content."""
        return SummaryVersion(
            content=target.content,
            version_number=self.next_version_number,
            refinement_prompt=f"Rolled back to version {target.version_number}",
        )


def statistics(versions: Sequence[SummaryVersion]) -> VersionStatistics:
    """Aggregate word counts; ties resolve to the earliest version."""
    if not versions:
        return VersionStatistics(count=0, average_word_count=0.0, shortest_version=None, longest_version=None)

    shortest = longest = versions[0]
    shortest_count = longest_count = count_words(versions[0].content)
    total = 0
    for version in versions:
        words = count_words(version.content)
        total += words
        if words < shortest_count:
            shortest, shortest_count = version, words
        if words > longest_count:
            longest, longest_count = version, words

    return VersionStatistics(
        count=len(versions),
        average_word_count=total / len(versions),
        shortest_version=shortest,
        longest_version=longest,
    )


def compare(v1: SummaryVersion, v2: SummaryVersion) -> VersionComparison:
    words1 = count_words(v1.content)
    word_delta = count_words(v2.content) - words1
    char_delta = len(v2.content) - len(v1.content)
    percent_change = 0.0 if words1 == 0 else word_delta / words1 * 100
    return VersionComparison(
        older=v1,
        newer=v2,
        word_delta=word_delta,
        char_delta=char_delta,
        percent_change=percent_change,
    )


def time_between(v1: SummaryVersion, v2: SummaryVersion) -> timedelta:
    return v2.created_at - v1.created_at
