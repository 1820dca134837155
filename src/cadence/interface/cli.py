"""cadence CLI: scheduling previews, due sets, forecasts and configuration."""

import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from pydantic import ValidationError

from cadence.application.config import SchedulerConfig, resolve_config
from cadence.domain.errors import SchedulingError
from cadence.domain.scheduling.models import CardSchedulingState, Rating

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition scheduler for flashcard reviews.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CardsFile = Annotated[Path, typer.Argument(help="YAML or JSON file with card states.")]
NowOption = Annotated[
    str | None, typer.Option("--now", help="Reference time (ISO 8601). Defaults to now, UTC.")
]
RetentionOption = Annotated[
    float | None, typer.Option("--retention", help="Override request_retention (0-1).")
]


def _parse_now(value: str | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        typer.secho(f"Invalid timestamp: {value!r}", fg="red", err=True)
        raise typer.Exit(2) from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _config(**overrides: Any) -> SchedulerConfig:
    try:
        return resolve_config(overrides)
    except ValidationError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(1) from None


def _load(path: Path) -> list[CardSchedulingState]:
    from cadence.infrastructure.card_file import load_cards

    return load_cards(path)


def _format_interval(days: float) -> str:
    if days < 1.0:
        return f"{round(days * 24 * 60)}m"
    return f"{days:.1f}d"


def _fail(e: Exception) -> NoReturn:
    typer.secho(f"Error: {e}", fg="red", err=True)
    raise typer.Exit(1) from None


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cadence."""
    level = "DEBUG" if verbose else _config().log_level
    logging.getLogger("cadence").setLevel(level)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def preview(
    path: CardsFile,
    card: Annotated[str, typer.Option("--card", help="Card ID to preview.")],
    now: NowOption = None,
    retention: RetentionOption = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show what each rating [bold]would[/bold] do to a card, without committing."""
    from cadence.application.scheduler.core import SchedulerCore
    from cadence.infrastructure.card_file import find_card, state_to_dict

    moment = _parse_now(now)
    core = SchedulerCore(_config(request_retention=retention))
    try:
        state = find_card(_load(path), card)
        outcomes = core.preview(state, moment)
    except SchedulingError as e:
        _fail(e)

    if json_output:
        typer.echo(
            json.dumps(
                {rating.name: state_to_dict(res.state) for rating, res in outcomes.items()},
                indent=2,
            )
        )
        return

    r = core.retrievability(state, moment)
    typer.echo(f"Card {state.card_id}  [{state.state.value}]  recall probability {r:.1%}")
    for rating, res in outcomes.items():
        typer.echo(
            f"  {rating.name:<6} -> {res.state.state.value:<10} "
            f"in {_format_interval(res.event.scheduled_days):>8}  "
            f"S={res.state.stability:.2f}  D={res.state.difficulty:.2f}"
        )


@app.command()
def rate(
    path: CardsFile,
    card: Annotated[str, typer.Option("--card", help="Card ID to rate.")],
    rating: Annotated[str, typer.Option("--rating", help="again, hard, good, easy or 1-4.")],
    now: NowOption = None,
    retention: RetentionOption = None,
):
    """Apply a rating and print the next state and review event as JSON."""
    from cadence.application.scheduler.core import SchedulerCore
    from cadence.infrastructure.card_file import event_to_dict, find_card, state_to_dict

    moment = _parse_now(now)
    core = SchedulerCore(_config(request_retention=retention))
    try:
        state = find_card(_load(path), card)
        result = core.review(state, Rating.parse(rating), moment)
    except SchedulingError as e:
        _fail(e)

    typer.echo(
        json.dumps(
            {"state": state_to_dict(result.state), "event": event_to_dict(result.event)},
            indent=2,
        )
    )


@app.command()
def due(
    path: CardsFile,
    limit: Annotated[
        int | None, typer.Option("--limit", help="Maximum cards. Defaults to max_cards_per_day.")
    ] = None,
    now: NowOption = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List the due set in presentation order."""
    from cadence.application.scheduler.forecast import overdue_penalty
    from cadence.application.scheduler.selector import DueSetSelector

    moment = _parse_now(now)
    config = _config()
    try:
        cards = _load(path)
    except SchedulingError as e:
        _fail(e)

    selector = DueSetSelector(default_limit=config.max_cards_per_day)
    selected = selector.select_due(cards, moment, limit)
    total = selector.count_due(cards, moment)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "total_due": total,
                    "selected": [
                        {
                            "card_id": c.card_id,
                            "state": c.state.value,
                            "due_at": c.due_at.isoformat(),
                            "overdue_penalty": overdue_penalty(c, moment),
                        }
                        for c in selected
                    ],
                },
                indent=2,
            )
        )
        return

    typer.echo(f"Due: {total}  Selected: {len(selected)}")
    for c in selected:
        typer.echo(f"  {c.card_id:<16} {c.state.value:<10} {c.due_at.isoformat()}")
    if not selected:
        typer.secho("No cards due.", fg="green")


@app.command()
def forecast(
    path: CardsFile,
    days: Annotated[int, typer.Option("--days", help="Days to forecast.")] = 7,
    now: NowOption = None,
):
    """Count cards falling due on each of the next days."""
    from cadence.application.scheduler.forecast import review_forecast

    moment = _parse_now(now)
    try:
        cards = _load(path)
    except SchedulingError as e:
        _fail(e)

    for day, count in review_forecast(cards, moment, days).items():
        typer.echo(f"{day.isoformat()}  {count}")


@app.command()
def simulate(
    ratings: Annotated[
        str, typer.Option("--ratings", help="Comma-separated ratings, e.g. good,good,hard.")
    ],
    start: Annotated[
        str | None, typer.Option("--start", help="Time of the first rating (ISO 8601).")
    ] = None,
    retention: RetentionOption = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Drive one new card through a rating sequence, each rating at its due time."""
    from cadence.application.scheduler.core import SchedulerCore
    from cadence.infrastructure.card_file import event_to_dict

    moment = _parse_now(start)
    core = SchedulerCore(_config(request_retention=retention))
    state = CardSchedulingState.new("simulated", moment)

    events = []
    try:
        for raw in ratings.split(","):
            moment = max(moment, state.due_at)
            result = core.review(state, Rating.parse(raw), moment)
            state = result.state
            events.append(result.event)
    except SchedulingError as e:
        _fail(e)

    if json_output:
        typer.echo(json.dumps([event_to_dict(e) for e in events], indent=2))
        return

    for i, event in enumerate(events, start=1):
        due_at = event.reviewed_at + timedelta(days=event.scheduled_days)
        typer.echo(
            f"{i:>3}. {event.reviewed_at.isoformat()}  {event.rating.name:<6}"
            f"{event.state_before.value:>10} -> {event.state_after.value:<10} "
            f"next in {_format_interval(event.scheduled_days):>8}  "
            f"(due {due_at.isoformat()})"
        )


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = _config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))
