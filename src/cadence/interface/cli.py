"""cadence CLI: card management, interactive review, config and server."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from cadence.application.card_service import add_card, import_deck
from cadence.application.config import AppConfig, resolve_config
from cadence.application.factory import create_review_session, get_card_store
from cadence.application.session import ReviewSession
from cadence.application.utils.common import utcnow
from cadence.application.utils.display import format_interval, relative_due
from cadence.consts import APP_NAME
from cadence.domain.errors import CadenceError, DeckFileError, StoreError
from cadence.domain.models import Rating
from cadence.domain.ports import CardStore

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition flashcards in your terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    db_path: Annotated[
        Path | None, typer.Option("--db", help="Card database. Defaults to config.")
    ] = None,
    user: Annotated[str | None, typer.Option(help="Whose cards to use.")] = None,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"db_path": db_path, "user_id": user}
    logging.getLogger(APP_NAME).setLevel(LOG_LEVELS.get(1 + verbose, logging.DEBUG))


def _resolve(ctx: typer.Context, **overrides) -> AppConfig:
    merged = dict(ctx.obj.get("overrides", {})) if ctx.obj else {}
    merged.update(overrides)
    try:
        return resolve_config(merged)
    except ValueError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(2)


# ---------------------------------------------------------------------------
# Card management
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    front: Annotated[str, typer.Argument(help="Question side.")],
    back: Annotated[str, typer.Argument(help="Answer side.")],
):
    """Add a single card."""
    config = _resolve(ctx)
    store = get_card_store(config)
    try:
        card = asyncio.run(
            add_card(store, config.user_id, front, back, config=config.scheduler_config())
        )
    except StoreError as e:
        typer.secho(f"Could not add card: {e}", fg="red", err=True)
        raise typer.Exit(1)
    typer.echo(card.id)


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[
        Path, typer.Argument(help="YAML deck or Markdown file with a 'cards' list.")
    ],
):
    """[bold green]Import[/bold green] cards from a deck file."""
    config = _resolve(ctx)
    if not path.exists():
        typer.secho(f"File not found: {path}", fg="red", err=True)
        raise typer.Exit(1)

    store = get_card_store(config)
    try:
        result = asyncio.run(
            import_deck(store, config.user_id, path, config=config.scheduler_config())
        )
    except DeckFileError as e:
        typer.secho(f"Invalid deck file: {e}", fg="red", err=True)
        raise typer.Exit(1)
    except StoreError as e:
        typer.secho(f"Import failed: {e}", fg="red", err=True)
        raise typer.Exit(1)

    typer.secho(f"Imported {len(result.added)} cards", fg="green")
    if result.skipped:
        typer.echo(f"Skipped {len(result.skipped)} existing cards")


@app.command()
def delete(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="ID of the card to delete.")],
):
    """Delete a card and its review history."""
    config = _resolve(ctx)
    store = get_card_store(config)
    if not asyncio.run(store.delete_card(card_id)):
        typer.secho(f"No card with id {card_id}", fg="yellow")
        raise typer.Exit(1)
    typer.echo(f"Deleted {card_id}")


@app.command()
def cards(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards with their stage and next due date."""
    config = _resolve(ctx)
    store = get_card_store(config)
    records = asyncio.run(store.list_cards(config.user_id))
    now = utcnow()

    if json_output:
        payload = [
            {
                "id": card.id,
                "front": card.front,
                "stage": card.stage.value,
                "interval_days": card.interval_days,
                "ease_factor": card.ease_factor,
                "lapses": card.lapses,
                "due": relative_due(card.due_at, now),
            }
            for card in records
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not records:
        typer.echo("No cards yet. Add some with 'cadence add' or 'cadence import'.")
        return

    for card in records:
        interval = format_interval(card.interval_days) if card.interval_days else "-"
        typer.echo(
            f"{card.id}  {card.stage.value:<8}  {interval:>5}  "
            f"{relative_due(card.due_at, now):<12}  {card.front}"
        )


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@app.command()
def status(
    ctx: typer.Context,
    new_per_day: Annotated[
        int | None, typer.Option("--new-per-day", help="New cards per day (0 = unlimited).")
    ] = None,
):
    """Show what today's review session would contain."""
    config = _resolve(ctx, new_cards_per_day=new_per_day)
    session = create_review_session(config, get_card_store(config))
    try:
        asyncio.run(session.build())
    except StoreError as e:
        typer.secho(f"Could not load cards: {e}", fg="red", err=True)
        raise typer.Exit(1)

    progress = session.progress()
    typer.echo(f"Due for review: {progress.review_count}")
    typer.echo(f"New today:      {progress.new_count}")
    if session.total_new_cards:
        typer.echo(f"New held back:  {session.total_new_cards}")
    if session.status == "empty":
        typer.secho("Nothing to review right now.", fg="green")


@app.command()
def review(
    ctx: typer.Context,
    new_per_day: Annotated[
        int | None, typer.Option("--new-per-day", help="New cards per day (0 = unlimited).")
    ] = None,
    new_only: Annotated[
        bool, typer.Option("--new-only", help="Study new cards only, ignoring the daily cap.")
    ] = False,
):
    """[bold green]Review[/bold green] today's due and new cards."""
    config = _resolve(ctx, new_cards_per_day=new_per_day)
    store = get_card_store(config)
    session = create_review_session(config, store)

    try:
        asyncio.run(_review_loop(session, store, new_only=new_only))
    except CadenceError as e:
        typer.secho(f"Review stopped: {e}", fg="red", err=True)
        raise typer.Exit(1)


async def _review_loop(session: ReviewSession, store: CardStore, new_only: bool = False) -> None:
    if new_only:
        await session.start_new_cards_session(ignore_limit=True)
    else:
        await session.build()

    if session.status == "empty" and not session.total_new_cards:
        typer.secho("Nothing to review right now.", fg="green")
        return

    while True:
        entry = session.current_card()
        if entry is None:
            held_back = session.total_new_cards
            if held_back and typer.confirm(f"Learn {held_back} more new cards anyway?"):
                await session.start_new_cards_session(ignore_limit=True)
                continue
            break

        progress = session.progress()
        label = "again" if entry.is_again_requeue else ("new" if entry.is_new else "review")
        typer.secho(
            f"\n[{progress.completed_count + 1}/{progress.total}] {label}", fg="cyan", bold=True
        )
        typer.echo(entry.card.front or "")

        action = typer.prompt(
            "Enter to reveal, s skip, d delete, q quit", default="", show_default=False
        ).strip().lower()
        if action == "q":
            break
        if action == "s":
            session.skip_card()
            continue
        if action == "d":
            await store.delete_card(entry.card_id)
            session.remove_card(entry.card_id)
            typer.secho("Deleted.", fg="yellow")
            continue

        typer.echo("---")
        typer.echo(entry.card.back or "")
        await _rate_current(session)

    typer.secho(
        f"\nReviewed {session.cumulative_reviewed_count} cards.", fg="green", bold=True
    )


async def _rate_current(session: ReviewSession) -> None:
    previews = session.get_interval_previews()
    choices = "  ".join(
        f"{rating.button} {rating.value} ({previews.for_rating(rating)})" for rating in Rating
    )

    while True:
        answer = typer.prompt(choices, type=int)
        try:
            rating = Rating.from_button(answer)
        except ValueError:
            typer.secho("Pick 1-4.", fg="yellow")
            continue

        try:
            await session.submit_review(rating)
            return
        except StoreError as e:
            typer.secho(f"Could not save rating ({e}). Try again.", fg="red")


# ---------------------------------------------------------------------------
# Config & server
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the resolved configuration as JSON."""
    config = _resolve(ctx)
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP review API."""
    import uvicorn

    uvicorn.run("cadence.server:app", host=host, port=port, reload=reload)
