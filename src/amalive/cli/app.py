"""Main CLI application.

Click commands for amalive: show, demo, session.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import click

from amalive import __version__
from amalive.config.loader import load_config
from amalive.core.errors import AmaliveError, ConfigError

if TYPE_CHECKING:
    from amalive.cli.display import BoardDisplay
    from amalive.config.schema import AmaliveConfig
    from amalive.core.retry import RetryConfig
    from amalive.live.models import Ama, MergedRow
    from amalive.session.ledger import VoteLedger


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _setup_logging(config: AmaliveConfig) -> None:
    """Configure the root logger from the logging section."""
    logging.basicConfig(
        level=config.logging.level.upper(),
        filename=config.logging.file or None,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: str | None) -> AmaliveConfig:
    """Load config with user-friendly error handling."""
    try:
        config = load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy
    _setup_logging(config)
    return config


def _retry_config(config: AmaliveConfig) -> RetryConfig:
    from amalive.core.retry import RetryConfig

    r = config.retry
    return RetryConfig(
        max_retries=r.max_retries,
        base_delay=r.base_delay,
        max_delay=r.max_delay,
        jitter=r.jitter,
    )


def _make_display(config: AmaliveConfig) -> BoardDisplay:
    from amalive.cli.display import BoardDisplay

    return BoardDisplay(max_content_len=config.view.max_content_len)


def _render(
    display: BoardDisplay,
    ama: Ama,
    rows: list[MergedRow],
    sort: str,
    ledger: VoteLedger | None = None,
) -> None:
    from amalive.live.ranking import SortMode, rank
    from amalive.session.ledger import VoteKind

    mode = SortMode(sort)
    display.show_header(ama, len(rows), mode)
    display.show_board(
        rank(rows, mode),
        voted_questions=ledger.voted(VoteKind.QUESTION) if ledger else frozenset(),
        voted_answers=ledger.voted(VoteKind.ANSWER) if ledger else frozenset(),
    )


_SORT_OPTION = click.option(
    "--sort",
    type=click.Choice(["hot", "new"]),
    default=None,
    help="Board ordering (default from config).",
)


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="amalive")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """amalive - live Q&A board.

    Questions ranked by votes, answers and follow-ups, kept in sync
    with the hosted store.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── show ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("slug")
@_SORT_OPTION
@click.pass_context
def show(ctx: click.Context, slug: str, sort: str | None) -> None:
    """Load an AMA from the hosted store and print its board.

    SLUG is the public slug from the AMA's share link.
    """
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_show_async(config, slug, sort or config.view.default_sort))
    except AmaliveError as e:
        _error(str(e))


async def _show_async(config: AmaliveConfig, slug: str, sort: str) -> None:
    """Async implementation for the show command."""
    from amalive.live.loader import load_ama, load_snapshot
    from amalive.session.ledger import VoteLedger
    from amalive.storage.sql import create_storage
    from amalive.store.rest import RestStore

    retry = _retry_config(config)
    async with RestStore(
        config.store.url, config.store.api_key, timeout=config.store.timeout
    ) as store:
        ama = await load_ama(store, slug, retry=retry)
        rows = await load_snapshot(store, ama.id, retry=retry)

    storage, engine = await create_storage(config.storage)
    try:
        ledger = VoteLedger(storage)
        await ledger.load()
    finally:
        await engine.dispose()

    _render(_make_display(config), ama, rows, sort, ledger)


# ── demo ─────────────────────────────────────────────────────────


@cli.command()
@_SORT_OPTION
@click.pass_context
def demo(ctx: click.Context, sort: str | None) -> None:
    """Run a scripted AMA against an in-memory store and print the board."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_demo_async(config, sort or config.view.default_sort))
    except AmaliveError as e:
        _error(str(e))


class _TickingClock:
    """Strictly increasing timestamps so NEW ordering is deterministic."""

    def __init__(self) -> None:
        self._now = datetime.now(UTC)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


async def _demo_async(config: AmaliveConfig, sort: str) -> None:
    """Async implementation for the demo command."""
    from amalive.live.intents import QuestionActions
    from amalive.live.loader import load_ama
    from amalive.live.view import LiveQuestionView
    from amalive.session.identity import SessionIdentityStore
    from amalive.session.ledger import VoteLedger
    from amalive.storage.base import MemoryKeyValueStorage
    from amalive.store.base import Table, WriteOp
    from amalive.store.memory import InMemoryStore

    store = InMemoryStore(clock=_TickingClock())
    await store.write(
        Table.AMAS,
        WriteOp.INSERT,
        {
            "slug": "demo",
            "title": "Ask the maintainers anything",
            "owner_id": "host",
            "is_active": True,
            "allow_anonymous": True,
        },
    )
    ama = await load_ama(store, "demo")

    view = LiveQuestionView(store, ama.id)
    await view.start()

    ledgers: list[VoteLedger] = []

    async def attendee() -> QuestionActions:
        storage = MemoryKeyValueStorage()
        ledger = VoteLedger(storage)
        await ledger.load()
        ledgers.append(ledger)
        return QuestionActions(
            store, ledger, SessionIdentityStore(storage), ama, lambda: view.snapshot
        )

    you, alice, bob = await attendee(), await attendee(), await attendee()

    await you.submit_question("Will the realtime feed survive reconnects?")
    await alice.submit_question("What is on the roadmap for next quarter?", "Alice")
    await bob.submit_question("How do you pick which questions to answer?", "Bob")

    by_content = {r.question.content: r.id for r in view.snapshot.rows}
    roadmap = by_content["What is on the roadmap for next quarter?"]
    reconnects = by_content["Will the realtime feed survive reconnects?"]

    for voter in (you, alice, bob):
        await voter.toggle_question_vote(roadmap)
    await bob.toggle_question_vote(reconnects)

    await you.answer_question(
        reconnects, "Yes. The view reloads and keeps merging.", account_id="host"
    )
    answer = view.snapshot.get(reconnects).answer  # type: ignore[union-attr]
    if answer is not None:
        await alice.toggle_answer_vote(answer.id)
    await you.submit_follow_up(reconnects, "Does that include vote counts?")

    view.close()
    _render(_make_display(config), ama, list(view.snapshot.rows), sort, ledgers[0])


# ── session ──────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def session(ctx: click.Context) -> None:
    """Print this client's anonymous session id."""
    config = _load_config(ctx.obj["config_path"])
    try:
        session_id = asyncio.run(_session_async(config))
    except AmaliveError as e:
        _error(str(e))
        return
    click.echo(session_id)


async def _session_async(config: AmaliveConfig) -> str:
    """Async implementation for the session command."""
    from amalive.session.identity import SessionIdentityStore
    from amalive.storage.sql import create_storage

    storage, engine = await create_storage(config.storage)
    try:
        return await SessionIdentityStore(storage).get_or_create_session_id()
    finally:
        await engine.dispose()
