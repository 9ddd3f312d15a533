import logging
import random
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .draw import DrawEngine
from .errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .models import Entrant, Event, League, Participant
from .models.event import DEFAULT_WRESTLER_NAME
from .scoring import (
    DEFAULT_MODE_REGISTRY,
    LeaderboardRow,
    ScoringConfig,
    ScoringModeRegistry,
    build_leaderboard,
)
from .tracker import EventTracker, find_winner
from .types import Assignment

logger = logging.getLogger(__name__)

UNSET: Any = object()
"""Marker for ``update_entrant`` fields that were not supplied."""

_ENTRANT_STATUSES = {"active", "eliminated"}


def create_event_pool(
    session: Session,
    name: str,
    *,
    entrant_count: int = 30,
    wrestler_names: Optional[Sequence[str]] = None,
    year: Optional[int] = None,
    event_type: str = "royal_rumble",
    event_date: Optional[datetime] = None,
    description: Optional[str] = None,
) -> Event:
    """Create an event with ``entrant_count`` numbered entries.

    Entries are numbered ``1..entrant_count``. Names default to ``"TBD"``
    unless ``wrestler_names`` supplies them in ring order.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    name : str
        Event display name.
    entrant_count : int, default: 30
        Size of the pool (N).
    wrestler_names : Optional[Sequence[str]]
        Names for the first ``len(wrestler_names)`` entries.

    Returns
    -------
    Event
        The flushed event with its entrants.
    """
    if isinstance(entrant_count, bool) or not isinstance(entrant_count, int):
        raise ValidationError("entrant_count must be an integer")
    if entrant_count < 0:
        raise ValidationError("entrant_count must not be negative")
    names = list(wrestler_names or [])
    if len(names) > entrant_count:
        raise ValidationError("More wrestler names than entries were supplied")

    event = Event(
        name=name,
        year=year,
        event_type=event_type,
        event_date=event_date,
        description=description,
    )
    for number in range(1, entrant_count + 1):
        wrestler = names[number - 1] if number <= len(names) else DEFAULT_WRESTLER_NAME
        event.entrants.append(Entrant(entrant_number=number, wrestler_name=wrestler))
    session.add(event)
    session.flush()
    logger.debug(f"Created event {event.id} with {entrant_count} entrants")
    return event


def create_league(
    session: Session,
    name: str,
    event_id: int,
    *,
    league_type: str = "winner_takes_all",
    secondary_event_id: Optional[int] = None,
    buy_in: float = 0.0,
    elimination_points_enabled: bool = False,
    points_per_elimination: int = 0,
    time_bonus_enabled: bool = False,
    registry: Optional[ScoringModeRegistry] = None,
) -> League:
    """Create a league in the ``setup`` state.

    A ``combined`` league needs a ``secondary_event_id`` different from
    ``event_id``; the other modes must not have one. Elimination points are
    ignored for ``winner_takes_all`` leagues.

    Raises
    ------
    ValidationError
        If the scoring mode is unknown or the event configuration is invalid.
    NotFoundError
        If a referenced event does not exist.
    """
    if not name or not name.strip():
        raise ValidationError("League name is required")
    if league_type not in (registry or DEFAULT_MODE_REGISTRY).available_modes():
        raise ValidationError(f"Unknown league type '{league_type}'")
    if league_type == "combined":
        if secondary_event_id is None or secondary_event_id == event_id:
            raise ValidationError("A combined league needs two different events")
    elif secondary_event_id is not None:
        raise ValidationError("Only combined leagues can span two events")
    if buy_in < 0:
        raise ValidationError("buy_in must not be negative")
    if points_per_elimination < 0:
        raise ValidationError("points_per_elimination must not be negative")

    for ref in (event_id, secondary_event_id):
        if ref is not None and session.get(Event, ref) is None:
            raise NotFoundError(f"Event {ref} not found")

    league = League(
        name=name.strip(),
        event_id=event_id,
        secondary_event_id=secondary_event_id,
        league_type=league_type,
        buy_in=buy_in,
        elimination_points_enabled=(
            league_type != "winner_takes_all" and elimination_points_enabled
        ),
        points_per_elimination=points_per_elimination,
        time_bonus_enabled=time_bonus_enabled,
    )
    session.add(league)
    session.flush()
    logger.info(f"Created {league_type} league {league.id}")
    return league


def get_league(session: Session, league_id: int) -> League:
    """Return the league or raise :class:`NotFoundError`."""

    league = session.get(League, league_id)
    if league is None:
        raise NotFoundError(f"League {league_id} not found")
    return league


def _lock_setup_league(session: Session, league_id: int) -> League:
    """Re-read the league under ``FOR UPDATE`` and require the ``setup`` state.

    The lock orders participant edits against a concurrent draw, which flips
    the same row to ``active``.
    """

    league = session.scalar(
        select(League)
        .where(League.id == league_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if league is None:
        raise NotFoundError(f"League {league_id} not found")
    if league.status != "setup":
        raise ConflictError(
            f"League {league.id} is {league.status}; participants are frozen after the draw"
        )
    return league


def _get_participant(session: Session, participant_id: int) -> Participant:
    participant = session.get(Participant, participant_id)
    if participant is None:
        raise NotFoundError(f"Participant {participant_id} not found")
    return participant


def _check_count(count: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError("requested_entry_count must be an integer")
    if count < 0:
        raise ValidationError("requested_entry_count must not be negative")


def add_participant(
    session: Session,
    league_id: int,
    display_name: str,
    requested_entry_count: int = 0,
) -> Participant:
    """Add a participant to a league that has not been drawn yet."""

    league = _lock_setup_league(session, league_id)
    if not display_name or not display_name.strip():
        raise ValidationError("Participant name is required")
    _check_count(requested_entry_count)

    participant = Participant(
        display_name=display_name.strip(),
        requested_entry_count=requested_entry_count,
    )
    league.participants.append(participant)
    session.flush()
    return participant


def set_requested_entry_count(
    session: Session, participant_id: int, requested_entry_count: int
) -> Participant:
    """Change how many entries a participant wants. Only allowed before the draw."""

    participant = _get_participant(session, participant_id)
    _lock_setup_league(session, participant.league_id)
    _check_count(requested_entry_count)
    participant.requested_entry_count = requested_entry_count
    session.flush()
    return participant


def remove_participant(session: Session, participant_id: int) -> None:
    participant = _get_participant(session, participant_id)
    league = _lock_setup_league(session, participant.league_id)
    league.participants.remove(participant)
    session.flush()


def distribute_evenly(session: Session, league_id: int) -> list[Participant]:
    """Give every participant ``floor(N / participants)`` entries.

    Any remainder is left unassigned for the league manager to hand out.
    """

    league = _lock_setup_league(session, league_id)
    participants = list(league.participants)
    if not participants:
        return []
    share = len(league.pool(session)) // len(participants)
    for participant in participants:
        participant.requested_entry_count = share
    session.flush()
    return participants


def run_draw(
    session: Session,
    league_id: int,
    *,
    rng: Optional[random.Random] = None,
) -> Assignment:
    """Run the league's one-time draw and return the assignment.

    This function essentially wraps :class:`DrawEngine`. The caller should
    commit the surrounding transaction; nothing is committed here.

    Raises
    ------
    NotFoundError
        If the league does not exist.
    AlreadyDrawnError
        If the league was drawn before (or concurrently).
    EmptyPoolError, CountMismatchError, ValidationError
        If the pool and the requested counts do not line up.
    """

    league = get_league(session, league_id)
    return DrawEngine(session, rng=rng).draw(league)


def get_assignment(session: Session, league_id: int) -> Assignment:
    """Return the stored assignment; empty while the league is in ``setup``."""

    return get_league(session, league_id).to_assignment()


def _resolve_event_id(league: League, event_id: Optional[int]) -> int:
    if event_id is None:
        return league.event_id
    if event_id not in league.event_ids:
        raise NotFoundError(f"Event {event_id} is not part of league {league.id}")
    return event_id


def update_entrant(
    session: Session,
    league_id: int,
    entrant_number: int,
    *,
    event_id: Optional[int] = None,
    wrestler_name: Any = UNSET,
    status: Any = UNSET,
    eliminated_by: Any = UNSET,
    final_placement: Any = UNSET,
    entered_at: Any = UNSET,
    tracker: Optional[EventTracker] = None,
) -> Entrant:
    """Apply a partial update to one entry of the league's pool.

    Only supplied fields are applied, in this order: undo (``status="Active"``),
    wrestler name, entrance time, elimination (``status="Eliminated"``) or
    eliminator correction (``eliminated_by`` alone on an eliminated entry),
    then placement. ``final_placement=None`` clears a placement and
    ``entered_at=None`` records the entrance at the current time.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    league_id : int
        League whose pool holds the entry.
    entrant_number : int
        Ring number of the entry.
    event_id : Optional[int], default: None
        Event of the entry; defaults to the league's primary event. Needed
        to reach the secondary event of a combined league.
    tracker : Optional[EventTracker], default: None
        Pre-configured tracker, e.g. with uniqueness checks enabled.

    Returns
    -------
    Entrant
        The updated entry.

    Raises
    ------
    ValidationError
        If a field is malformed, including ``eliminated_by`` sent together
        with ``status="Active"``.
    InvalidEliminationError
        If the entry is credited with eliminating itself.
    InvalidTransitionError
        If the status change does not fit the entry's current state.
    NotFoundError
        If the league, event or entry does not exist.
    """

    league = get_league(session, league_id)
    target_event = _resolve_event_id(league, event_id)
    tracker = tracker or EventTracker(session)

    target_status = None
    if status is not UNSET:
        if not isinstance(status, str) or status.strip().lower() not in _ENTRANT_STATUSES:
            raise ValidationError("status must be 'Active' or 'Eliminated'")
        target_status = status.strip().lower()
    if eliminated_by is not UNSET and target_status == "active":
        raise ValidationError("eliminated_by cannot be sent with status 'Active'")

    entrant: Optional[Entrant] = None
    if target_status == "active":
        entrant = tracker.undo_elimination(target_event, entrant_number)
    if wrestler_name is not UNSET:
        entrant = tracker.assign_wrestler(target_event, entrant_number, wrestler_name)
    if entered_at is not UNSET:
        entrant = tracker.mark_entrance(target_event, entrant_number, entered_at)

    placement_applied = False
    if target_status == "eliminated":
        placement = None if final_placement is UNSET else final_placement
        entrant = tracker.eliminate(
            target_event,
            entrant_number,
            eliminated_by=None if eliminated_by is UNSET else eliminated_by,
            placement=placement,
        )
        placement_applied = placement is not None
    elif eliminated_by is not UNSET:
        entrant = tracker.credit_elimination(target_event, entrant_number, eliminated_by)
    if final_placement is not UNSET and not placement_applied:
        entrant = tracker.set_placement(target_event, entrant_number, final_placement)

    if entrant is None:
        entrant = tracker.entrant(target_event, entrant_number)
    logger.debug(f"League {league_id}: updated entrant #{entrant_number}")
    return entrant


def get_entrants(session: Session, league_id: int) -> list[Entrant]:
    """Return the league's pool with current elimination state, in draw order."""

    return get_league(session, league_id).pool(session)


def get_leaderboard(
    session: Session,
    league_id: int,
    *,
    registry: Optional[ScoringModeRegistry] = None,
) -> list[LeaderboardRow]:
    """Recompute every participant's score from the stored elimination state.

    Nothing is cached: each call re-reads the pool, so the board always
    matches the latest tracker edits. Ties keep participant creation order.
    """

    league = get_league(session, league_id)
    config = ScoringConfig.from_league(league)
    if config.mode not in (registry or DEFAULT_MODE_REGISTRY).available_modes():
        raise ValidationError(f"Unknown league type '{config.mode}'")
    states = [entrant.elimination_state() for entrant in league.pool(session)]
    participants = [(p.id, p.display_name) for p in league.participants]
    return build_leaderboard(
        participants,
        league.to_assignment(),
        states,
        config,
        registry=registry,
    )


def get_winners(session: Session, league_id: int) -> dict[int, Optional[Entrant]]:
    """Return the implicit winner of each of the league's events.

    The winner is the sole entry still active in that event's pool; events
    with more (or no) active entries map to ``None``.
    """

    league = get_league(session, league_id)
    by_event: dict[int, list[Entrant]] = {event_id: [] for event_id in league.event_ids}
    for entrant in league.pool(session):
        by_event[entrant.event_id].append(entrant)
    return {event_id: find_winner(entrants) for event_id, entrants in by_event.items()}


def complete_league(session: Session, league_id: int) -> League:
    """Close an active league. This is an explicit admin action, never automatic."""

    league = get_league(session, league_id)
    if league.status != "active":
        raise InvalidTransitionError(
            f"League {league_id} is {league.status}; only active leagues can be completed"
        )
    league.status = "completed"
    league.completed_at = datetime.now(timezone.utc)
    session.flush()
    logger.info(f"League {league_id} completed")
    return league
