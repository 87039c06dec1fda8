"""Rich display for the question board.

Renders the AMA header and one panel per question in display order,
with the viewer's own votes highlighted. Accepts an optional
:class:`~rich.console.Console` for dependency injection in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from amalive.live.intents import ANONYMOUS_NAME

if TYPE_CHECKING:
    from collections.abc import Sequence

    from amalive.live.models import Ama, MergedRow
    from amalive.live.ranking import SortMode

_TRUNCATE_LEN = 280


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class BoardDisplay:
    """Rich rendering of a ranked board."""

    def __init__(
        self, console: Console | None = None, *, max_content_len: int = _TRUNCATE_LEN
    ) -> None:
        self._console = console or Console()
        self._limit = max_content_len

    def show_header(self, ama: Ama, question_count: int, mode: SortMode) -> None:
        """Print the AMA title, state and question count."""
        state = "[green]active[/green]" if ama.is_active else "[dim]closed[/dim]"
        noun = "question" if question_count == 1 else "questions"
        self._console.print()
        self._console.rule(f"[bold]{ama.title}[/bold]  {state}", style="cyan")
        if ama.description:
            self._console.print(ama.description, style="dim")
        self._console.print(
            f"{question_count} {noun}  |  sorted by {mode.value}", style="dim"
        )

    def show_row(
        self,
        row: MergedRow,
        *,
        voted_question: bool = False,
        voted_answer: bool = False,
    ) -> None:
        """Print one question with its answer and follow-up."""
        q = row.question
        marker = "[bold green]▲[/bold green]" if voted_question else "△"
        title = f"{marker} {q.vote_count}  {q.author_name or ANONYMOUS_NAME}"
        if row.answered_display:
            title += "  [bold blue]answered[/bold blue]"

        parts: list[Text] = [Text(_truncate(q.content, self._limit))]
        if row.answer is not None:
            votes = f"{row.answer.vote_count} ▲" + (" (you)" if voted_answer else "")
            parts.append(Text())
            parts.append(Text(f"Answer  [{votes}]", style="bold blue"))
            parts.append(Text(_truncate(row.answer.content, self._limit)))
        if row.follow_up is not None:
            parts.append(Text())
            parts.append(Text("Follow-up", style="bold magenta"))
            parts.append(Text(_truncate(row.follow_up.content, self._limit)))

        self._console.print(
            Panel(
                Text("\n").join(parts),
                title=title,
                title_align="left",
                subtitle=q.created_at.strftime("%Y-%m-%d %H:%M"),
                subtitle_align="right",
                border_style="blue" if row.answered_display else "white",
            )
        )

    def show_board(
        self,
        rows: Sequence[MergedRow],
        *,
        voted_questions: frozenset[str] = frozenset(),
        voted_answers: frozenset[str] = frozenset(),
    ) -> None:
        """Print every row in the given order."""
        if not rows:
            self._console.print("No questions yet.", style="dim")
            return
        for row in rows:
            self.show_row(
                row,
                voted_question=row.id in voted_questions,
                voted_answer=row.answer is not None
                and row.answer.id in voted_answers,
            )
