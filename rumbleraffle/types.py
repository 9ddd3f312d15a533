"""Plain value objects shared by the draw, tracking and scoring layers.

Nothing in this module touches the database, so the scoring functions can be
exercised with hand-built inputs.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Union

SELF_ELIMINATION = "self"
"""Sentinel stored in :attr:`EliminationState.eliminated_by` for self-eliminations."""

EliminatedBy = Union[int, str, None]


@dataclass(frozen=True)
class EliminationState:
    """Read-only view of one entry's elimination data.

    Attributes
    ----------
    event_id : int
        Event whose pool the entry belongs to.
    entrant_number : int
        Ring position (1..N) within that event.
    is_eliminated : bool
        ``True`` once the entry has been eliminated.
    eliminated_by : int | str | None
        Entrant number of the eliminator, :data:`SELF_ELIMINATION`, or ``None``.
    eliminated_at : Optional[datetime]
        Timestamp of the elimination.
    final_placement : Optional[int]
        Final rank (1 = winner) when known.
    """

    event_id: int
    entrant_number: int
    is_eliminated: bool = False
    eliminated_by: EliminatedBy = None
    eliminated_at: Optional[datetime] = None
    final_placement: Optional[int] = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.event_id, self.entrant_number)


@dataclass(frozen=True)
class AssignmentSlot:
    """A single pool entry handed to a participant by the draw."""

    event_id: int
    entrant_number: int
    participant_id: int

    @property
    def key(self) -> tuple[int, int]:
        return (self.event_id, self.entrant_number)


@dataclass(frozen=True)
class Assignment:
    """The draw output: every pool entry mapped to exactly one participant.

    ``slots`` follow pool order, i.e. ticket ``i`` of the shuffled list sits at
    index ``i``.
    """

    league_id: int
    slots: tuple[AssignmentSlot, ...]

    def __len__(self) -> int:
        return len(self.slots)

    def __iter__(self) -> Iterator[AssignmentSlot]:
        return iter(self.slots)

    def for_participant(self, participant_id: int) -> list[AssignmentSlot]:
        """Return the slots owned by ``participant_id`` in pool order."""
        return [slot for slot in self.slots if slot.participant_id == participant_id]

    def owner_of(self, event_id: int, entrant_number: int) -> Optional[int]:
        for slot in self.slots:
            if slot.event_id == event_id and slot.entrant_number == entrant_number:
                return slot.participant_id
        return None

    def counts(self) -> dict[int, int]:
        """Return the number of entries held by each participant."""
        return dict(Counter(slot.participant_id for slot in self.slots))


__all__ = [
    "Assignment",
    "AssignmentSlot",
    "EliminatedBy",
    "EliminationState",
    "SELF_ELIMINATION",
]
