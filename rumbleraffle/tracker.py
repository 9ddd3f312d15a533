"""Live tracking of entrances, eliminations and placements for an event."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import (
    ConflictError,
    InvalidEliminationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .models import Entrant, Event
from .types import SELF_ELIMINATION, EliminationState

logger = logging.getLogger(__name__)

_EVENT_TRANSITIONS = {
    "live": ("upcoming",),
    "completed": ("upcoming", "live"),
}


class EventTracker:
    """State machine applied to the entrants of an event during the live show.

    Each entrant is either *Active* or *Eliminated*. Every mutating call
    re-reads the entrant row (``SELECT ... FOR UPDATE`` where the backend
    supports it) right before changing it, so a stale object held by the
    caller never overwrites a concurrent change to the same entry.
    """

    def __init__(
        self,
        session: Session,
        *,
        unique_placements: bool = False,
        unique_wrestlers: bool = False,
    ) -> None:
        """Create a tracker bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session. The caller owns the transaction.
        unique_placements : bool, default: False
            Reject a placement already held by another entrant of the event.
        unique_wrestlers : bool, default: False
            Reject a wrestler name already used by another entrant of the event.
        """

        self._session = session
        self.unique_placements = unique_placements
        self.unique_wrestlers = unique_wrestlers

    # -------- transitions --------
    def assign_wrestler(self, event_id: int, entrant_number: int, name: str) -> Entrant:
        """Put ``name`` on the entry. Allowed in any state."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Wrestler name must be a non-empty string")
        name = name.strip()
        entrant = self._load(event_id, entrant_number)
        if self.unique_wrestlers:
            clash = self._session.scalar(
                select(Entrant.entrant_number).where(
                    Entrant.event_id == event_id,
                    Entrant.id != entrant.id,
                    func.lower(Entrant.wrestler_name) == name.lower(),
                )
            )
            if clash is not None:
                raise ConflictError(f"{name} is already entrant #{clash}")
        entrant.wrestler_name = name
        self._session.flush()
        logger.debug(f"Event {event_id}: #{entrant_number} is {name}")
        return entrant

    def mark_entrance(
        self,
        event_id: int,
        entrant_number: int,
        timestamp: Optional[datetime] = None,
    ) -> Entrant:
        """Record when the entry hit the ring. Calling again overwrites the time."""
        self._check_timestamp(timestamp)
        entrant = self._load(event_id, entrant_number)
        entrant.entered_at = timestamp or datetime.now(timezone.utc)
        self._session.flush()
        logger.debug(f"Event {event_id}: #{entrant_number} entered")
        return entrant

    def eliminate(
        self,
        event_id: int,
        entrant_number: int,
        eliminated_by: Union[int, str, None] = None,
        timestamp: Optional[datetime] = None,
        placement: Optional[int] = None,
    ) -> Entrant:
        """Move the entry from Active to Eliminated.

        Parameters
        ----------
        event_id : int
            Event holding the entry.
        entrant_number : int
            Entry being eliminated.
        eliminated_by : int | str | None, default: None
            Entrant number credited with the elimination, ``"self"``, or
            ``None`` when unknown. Numeric strings are accepted.
        timestamp : Optional[datetime], default: None
            Time of the elimination; defaults to now (UTC).
        placement : Optional[int], default: None
            Final placement to record together with the elimination.

        Raises
        ------
        InvalidEliminationError
            If the entry is credited with eliminating itself.
        InvalidTransitionError
            If the entry is already eliminated.
        NotFoundError
            If the entry or the eliminator does not exist.
        """
        self._check_timestamp(timestamp)
        eliminator = self._check_eliminator(entrant_number, eliminated_by)

        entrant = self._load(event_id, entrant_number)
        if entrant.is_eliminated:
            raise InvalidTransitionError(
                f"Entrant #{entrant_number} is already eliminated"
            )
        if placement is not None:
            self._check_placement(entrant, placement)
        eliminator_row = self._eliminator_row(event_id, eliminator)

        entrant.is_eliminated = True
        entrant.self_eliminated = eliminator == SELF_ELIMINATION
        entrant.eliminated_by_entrant = eliminator_row
        entrant.eliminated_at = timestamp or datetime.now(timezone.utc)
        if placement is not None:
            entrant.final_placement = placement
        self._session.flush()
        logger.debug(
            f"Event {event_id}: #{entrant_number} eliminated by {eliminator or 'unknown'}"
        )
        return entrant

    def credit_elimination(
        self,
        event_id: int,
        entrant_number: int,
        eliminated_by: Union[int, str, None],
    ) -> Entrant:
        """Correct who eliminated an entry, keeping its time and placement.

        ``None`` marks the eliminator as unknown.

        Raises
        ------
        InvalidTransitionError
            If the entry is still active.
        """
        eliminator = self._check_eliminator(entrant_number, eliminated_by)
        entrant = self._load(event_id, entrant_number)
        if not entrant.is_eliminated:
            raise InvalidTransitionError(f"Entrant #{entrant_number} is still active")
        entrant.eliminated_by_entrant = self._eliminator_row(event_id, eliminator)
        entrant.self_eliminated = eliminator == SELF_ELIMINATION
        self._session.flush()
        logger.debug(
            f"Event {event_id}: #{entrant_number} now credited to {eliminator or 'unknown'}"
        )
        return entrant

    def undo_elimination(self, event_id: int, entrant_number: int) -> Entrant:
        """Bring an eliminated entry back, clearing every elimination field.

        Raises
        ------
        InvalidTransitionError
            If the entry is still active.
        """
        entrant = self._load(event_id, entrant_number)
        if not entrant.is_eliminated:
            raise InvalidTransitionError(f"Entrant #{entrant_number} is still active")
        entrant.clear_elimination()
        self._session.flush()
        logger.debug(f"Event {event_id}: elimination of #{entrant_number} undone")
        return entrant

    def set_placement(
        self, event_id: int, entrant_number: int, placement: Optional[int]
    ) -> Entrant:
        """Record the final placement (1 = winner); ``None`` clears it.

        Allowed whether or not the entry has been eliminated, so the winner
        can be placed without an elimination.
        """
        entrant = self._load(event_id, entrant_number)
        if placement is not None:
            self._check_placement(entrant, placement)
        entrant.final_placement = placement
        self._session.flush()
        logger.debug(f"Event {event_id}: #{entrant_number} placed {placement}")
        return entrant

    # -------- event lifecycle --------
    def start_event(self, event_id: int) -> Event:
        return self._move_event(event_id, "live")

    def complete_event(self, event_id: int) -> Event:
        return self._move_event(event_id, "completed")

    # -------- reads --------
    def entrant(self, event_id: int, entrant_number: int) -> Entrant:
        """Return the current row for one entry, re-read from the database."""
        return self._load(event_id, entrant_number)

    def entrants(self, event_id: int) -> list[Entrant]:
        return list(
            self._session.scalars(
                select(Entrant)
                .where(Entrant.event_id == event_id)
                .order_by(Entrant.entrant_number)
            ).all()
        )

    def snapshot(self, event_id: int) -> list[EliminationState]:
        """Return the elimination state of every entry in ring order."""
        return [entrant.elimination_state() for entrant in self.entrants(event_id)]

    def winner(self, event_id: int) -> Optional[Entrant]:
        """Return the sole remaining active entry, or ``None``.

        Derived on every call from the stored states; nothing is persisted.
        """
        return find_winner(self.entrants(event_id))

    # -------- helpers --------
    def _load(self, event_id: int, entrant_number: int) -> Entrant:
        entrant = self._session.scalar(
            select(Entrant)
            .where(
                Entrant.event_id == event_id,
                Entrant.entrant_number == entrant_number,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if entrant is None:
            raise NotFoundError(
                f"Entrant #{entrant_number} not found in event {event_id}"
            )
        return entrant

    def _pool_size(self, event_id: int) -> int:
        return int(
            self._session.scalar(
                select(func.count(Entrant.id)).where(Entrant.event_id == event_id)
            )
            or 0
        )

    def _check_placement(self, entrant: Entrant, placement: int) -> None:
        if isinstance(placement, bool) or not isinstance(placement, int):
            raise ValidationError("Placement must be an integer")
        size = self._pool_size(entrant.event_id)
        if not 1 <= placement <= size:
            raise ValidationError(f"Placement must be between 1 and {size}")
        if self.unique_placements:
            holder = self._session.scalar(
                select(Entrant.entrant_number).where(
                    Entrant.event_id == entrant.event_id,
                    Entrant.id != entrant.id,
                    Entrant.final_placement == placement,
                )
            )
            if holder is not None:
                raise ConflictError(
                    f"Placement {placement} is already held by entrant #{holder}"
                )

    @staticmethod
    def _check_timestamp(timestamp: Optional[datetime]) -> None:
        if timestamp is not None and not isinstance(timestamp, datetime):
            raise ValidationError("Timestamps must be datetime values")

    def _check_eliminator(
        self, entrant_number: int, eliminated_by: Union[int, str, None]
    ) -> Union[int, str, None]:
        eliminator = self._normalize_eliminator(eliminated_by)
        if eliminator == entrant_number:
            raise InvalidEliminationError(
                f"Entrant #{entrant_number} cannot eliminate itself; "
                f"use '{SELF_ELIMINATION}' instead"
            )
        return eliminator

    def _eliminator_row(
        self, event_id: int, eliminator: Union[int, str, None]
    ) -> Optional[Entrant]:
        if not isinstance(eliminator, int):
            return None
        row = Entrant.get_by_number(self._session, event_id, eliminator)
        if row is None:
            raise NotFoundError(f"Entrant #{eliminator} not found in event {event_id}")
        return row

    @staticmethod
    def _normalize_eliminator(value: Union[int, str, None]) -> Union[int, str, None]:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValidationError("eliminated_by must be an entrant number or 'self'")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.lower() == SELF_ELIMINATION:
                return SELF_ELIMINATION
            if text.isdigit():
                return int(text)
        raise ValidationError("eliminated_by must be an entrant number or 'self'")

    def _move_event(self, event_id: int, target: str) -> Event:
        event = self._session.get(Event, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        if event.status not in _EVENT_TRANSITIONS[target]:
            raise InvalidTransitionError(
                f"Event {event_id} cannot move from {event.status} to {target}"
            )
        event.status = target
        self._session.flush()
        logger.info(f"Event {event_id} is now {target}")
        return event


def find_winner(entrants: list[Entrant]) -> Optional[Entrant]:
    """Return the only active entrant of ``entrants`` when exactly one remains."""
    active = [entrant for entrant in entrants if not entrant.is_eliminated]
    if len(active) == 1:
        return active[0]
    return None


__all__ = ["EventTracker", "find_winner"]
