"""cardloop CLI: deck import, review sessions, card flags and reports."""

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from cardloop.application.config import AppConfig, resolve_config
from cardloop.application.factory import AppContext, build_context
from cardloop.consts import APP_NAME
from cardloop.domain.errors import CardloopError, InvalidArgument, NotFound, StorageFailure
from cardloop.main import setup_logging

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=f"{APP_NAME}: Spaced-repetition flashcard reviews.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cardloop configuration.")
app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

GRADE_PROMPT = "Grade [1=again 2=hard 3=easy, add 'h' to mark hard, s=suspend, q=quit]"


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    db_path: Annotated[
        Path | None, typer.Option("--db", help="SQLite database path. Defaults to config.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cardloop."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path
    ctx.obj["verbose_bonus"] = verbose


def _resolve(ctx: typer.Context, **overrides) -> AppConfig:
    obj = ctx.obj or {}
    verbose = obj.get("verbose_bonus", 0)
    return resolve_config(
        {
            "db_path": obj.get("db_path"),
            "verbose": 1 + verbose if verbose else None,
            **overrides,
        }
    )


def _open(ctx: typer.Context, **overrides) -> AppContext:
    config = _resolve(ctx, **overrides)
    setup_logging(config.log_dir, config.verbose)
    return build_context(config)


def _fail(error: CardloopError) -> None:
    typer.secho(f"Error: {error}", fg="red", err=True)
    raise typer.Exit(1)


async def _deck_or_last(app_ctx: AppContext, deck: str | None) -> str:
    """Use the given deck, else continue with the last reviewed one."""
    if deck:
        return deck
    last = await app_ctx.session.last_deck()
    if not last:
        raise InvalidArgument("No deck given and no deck has been reviewed yet.")
    typer.echo(f"Continuing with deck '{last}'.")
    return last


# ---------------------------------------------------------------------------
# Deck commands
# ---------------------------------------------------------------------------


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="JSON deck payload file.", exists=True)],
):
    """[bold green]Import[/bold green] cards from a JSON deck payload."""
    app_ctx = _open(ctx)
    try:
        written = asyncio.run(app_ctx.importer.import_file(path))
    except CardloopError as e:
        _fail(e)
    finally:
        app_ctx.close()
    typer.secho(f"Imported {written} cards.", fg="green")


@app.command()
def decks(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List decks with due, new, hard and suspended counts."""
    app_ctx = _open(ctx)
    try:
        summaries = asyncio.run(app_ctx.stats.list_decks())
    except StorageFailure as e:
        _fail(e)
    finally:
        app_ctx.close()

    if json_output:
        typer.echo(json.dumps([asdict(s) for s in summaries], indent=2))
        return

    if not summaries:
        typer.secho("No decks found. Run 'cardloop import' first.", fg="yellow")
        return

    for s in summaries:
        typer.echo(
            f"{s.deck_id}  total={s.total}  due={s.due_today}  new={s.new_count}"
            f"  hard={s.hard_count}  suspended={s.suspended}"
        )


@app.command()
def queue(
    ctx: typer.Context,
    deck: Annotated[
        str | None,
        typer.Argument(help="Deck to queue. Defaults to the last reviewed deck."),
    ] = None,
    new_card_limit: Annotated[
        int | None, typer.Option("--new-limit", help="Override the new-card limit.")
    ] = None,
):
    """Show today's review queue for a deck without grading anything."""
    app_ctx = _open(ctx, new_card_limit=new_card_limit)

    async def run() -> tuple[str, list[str]]:
        deck_id = await _deck_or_last(app_ctx, deck)
        return deck_id, await app_ctx.session.load_queue_for_today(deck_id)

    try:
        deck_id, ids = asyncio.run(run())
    except CardloopError as e:
        _fail(e)
    finally:
        app_ctx.close()

    if not ids:
        typer.secho("No cards due.", fg="yellow")
        return
    typer.echo(f"Queue for '{deck_id}': {len(ids)} cards")
    for card_id in ids:
        typer.echo(f"  {card_id}")


def _parse_choice(raw: str) -> tuple[str, int | None, bool]:
    """Return (action, grade, mark_hard) for a review prompt answer."""
    choice = raw.strip().lower()
    if choice in ("q", "s"):
        return choice, None, False
    mark_hard = choice.endswith("h")
    digits = choice[:-1] if mark_hard else choice
    if digits in ("1", "2", "3"):
        return "grade", int(digits), mark_hard
    return "invalid", None, False


@app.command()
def review(
    ctx: typer.Context,
    deck: Annotated[
        str | None,
        typer.Argument(help="Deck to review. Defaults to the last reviewed deck."),
    ] = None,
    mode: Annotated[
        str | None,
        typer.Option(help="input shows the front first, output shows the back first."),
    ] = None,
    new_card_limit: Annotated[
        int | None, typer.Option("--new-limit", help="Override the new-card limit.")
    ] = None,
):
    """[bold green]Review[/bold green] today's cards for a deck interactively."""
    if mode not in (None, "input", "output"):
        raise typer.BadParameter("mode must be 'input' or 'output'", param_hint="--mode")
    app_ctx = _open(ctx, mode=mode, new_card_limit=new_card_limit)

    async def run():
        session = app_ctx.session
        ids = await session.load_queue_for_today(await _deck_or_last(app_ctx, deck))
        if not ids:
            typer.secho("No cards due.", fg="yellow")
            return

        while session.current_card_id:
            try:
                card = await app_ctx.reviews.load_current_card()
            except NotFound as e:
                typer.secho(f"Skipping: {e}", fg="red")
                session.next_card()
                continue
            if card is None:
                break

            if session.mode == "input":
                prompt, answer = card.front, card.back
            else:
                prompt, answer = card.back, card.front
            left = len(session.queue) + len(session.hard_queue)
            typer.echo(f"\n[{left} left] {prompt}")
            typer.prompt("Press Enter to reveal", default="", show_default=False)
            session.reveal()
            typer.secho(answer, fg="cyan")

            while True:
                action, grade, mark_hard = _parse_choice(typer.prompt(GRADE_PROMPT))
                if action != "invalid":
                    break
                typer.secho("Please answer 1, 2, 3 (optionally with 'h'), s or q.", fg="yellow")

            if action == "q":
                break
            try:
                if action == "s":
                    await app_ctx.reviews.disable_current_card()
                    typer.secho("Card suspended.", fg="yellow")
                else:
                    await app_ctx.reviews.submit_grade(grade, mark_hard=mark_hard)
            except StorageFailure as e:
                typer.secho(f"Failed to save review: {e}. Please retry.", fg="red")

        stats = app_ctx.reviews.stats
        typer.secho(
            f"\nReviewed {stats.reviewed} (hard {stats.hard}, again {stats.again}) "
            f"in {stats.duration_ms // 1000}s.",
            fg="green",
        )

    try:
        asyncio.run(run())
    except CardloopError as e:
        _fail(e)
    finally:
        app_ctx.close()


@app.command()
def suspend(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to suspend.")],
    off: Annotated[bool, typer.Option("--off", help="Unsuspend instead.")] = False,
):
    """Suspend a card so it never enters a queue (or unsuspend with --off)."""
    app_ctx = _open(ctx)
    try:
        asyncio.run(app_ctx.decks.set_card_suspended(card_id, not off))
    except CardloopError as e:
        _fail(e)
    finally:
        app_ctx.close()
    typer.echo(f"{card_id}: suspended={not off}")


@app.command()
def hard(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to flag.")],
    off: Annotated[bool, typer.Option("--off", help="Clear the flag instead.")] = False,
):
    """Flag a card as hard (or clear the flag with --off)."""
    app_ctx = _open(ctx)
    try:
        asyncio.run(app_ctx.decks.set_card_hard_flag(card_id, not off))
    except CardloopError as e:
        _fail(e)
    finally:
        app_ctx.close()
    typer.echo(f"{card_id}: hard={not off}")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@app.command()
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show today's review count, streak and the last two weeks of activity."""
    app_ctx = _open(ctx)
    try:
        result = asyncio.run(app_ctx.stats.review_stats())
    except StorageFailure as e:
        _fail(e)
    finally:
        app_ctx.close()

    if json_output:
        typer.echo(json.dumps(asdict(result), indent=2))
        return

    typer.echo(f"Reviewed today: {result.today_reviewed}")
    typer.echo(f"Streak: {result.streak} day(s)")
    typer.echo(f"Last reviewed: {result.last_reviewed or 'never'}")
    for day in result.daily_counts:
        typer.echo(f"  {day.date}  {'#' * day.count}")


@app.command()
def forecast(
    ctx: typer.Context,
    days: Annotated[int, typer.Option(help="Number of days to forecast.", min=1)] = 7,
):
    """Show how many reviews fall due on each upcoming day."""
    app_ctx = _open(ctx)
    try:
        result = asyncio.run(app_ctx.stats.due_forecast(days))
    except StorageFailure as e:
        _fail(e)
    finally:
        app_ctx.close()

    for day in result:
        typer.echo(f"{day.date}  {day.count}")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP review API."""
    import uvicorn

    uvicorn.run("cardloop.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
