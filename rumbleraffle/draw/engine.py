"""Engine that runs a league's one-time random draw."""

from __future__ import annotations

import logging
import random
from collections import Counter
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from .tickets import plan_draw
from ..errors import AlreadyDrawnError, DrawIntegrityError
from ..models import EntrantAssignment, League
from ..types import Assignment, AssignmentSlot

logger = logging.getLogger(__name__)


class DrawEngine:
    """Engine that shuffles entry tickets and commits the resulting assignment."""

    def __init__(
        self,
        session: Session,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence. The
            caller owns the transaction; the engine only flushes.
        rng : Optional[random.Random], default: None
            Random generator used for the shuffle. Typically omitted, in which
            case :class:`random.SystemRandom` is used.
        """

        self._session = session
        self._rng = rng

    def draw(self, league: League) -> Assignment:
        """Assign every pool entry of ``league`` to a participant.

        Parameters
        ----------
        league : League
            Persisted league in the ``setup`` state.

        Returns
        -------
        Assignment
            Slots in pool order, one per entry.

        Notes
        -----
        The draw performs the following steps:

        1. Reject leagues that are not in ``setup``.
        2. Load the pool and expand the participants' requests into tickets.
        3. Shuffle the tickets (Fisher-Yates) and pair ticket ``i`` with entry ``i``.
        4. Flip the league to ``active`` with an update conditioned on
           ``status == 'setup'``. Only one caller can win that update; everyone
           else gets :class:`AlreadyDrawnError` before writing anything.
        5. Insert the assignment rows in the same transaction and check the
           result against the requests.

        Raises
        ------
        AlreadyDrawnError
            If the league has already been drawn, including by a concurrent caller.
        EmptyPoolError
            If the league's events have no entrants.
        CountMismatchError
            If the requested counts do not add up to the pool size.
        ValidationError
            If a requested count is not a non-negative integer.
        """
        if league.id is None:
            raise ValueError("League must be persisted before running a draw")
        if league.status != "setup":
            raise AlreadyDrawnError(
                f"League {league.id} is already {league.status}; the draw runs once"
            )

        pool = league.pool(self._session)
        participants = list(league.participants)
        requests = [(p.id, p.requested_entry_count) for p in participants]
        entrants_by_key = {(e.event_id, e.entrant_number): e for e in pool}
        try:
            plan = plan_draw(list(entrants_by_key), requests, rng=self._rng)
        except ValueError as exc:
            logger.warning(f"Draw rejected for league {league.id}: {exc}")
            raise

        now = datetime.now(timezone.utc)
        claimed = self._session.execute(
            update(League)
            .where(League.id == league.id, League.status == "setup")
            .values(status="active", drawn_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            logger.warning(f"Lost draw race for league {league.id}")
            raise AlreadyDrawnError(f"League {league.id} has already been drawn")

        rows = []
        for (event_id, entrant_number), participant_id in plan:
            entrant = entrants_by_key[(event_id, entrant_number)]
            rows.append(
                EntrantAssignment(
                    league_id=league.id,
                    participant_id=participant_id,
                    entrant_id=entrant.id,
                    event_id=event_id,
                    entrant_number=entrant_number,
                    assigned_at=now,
                )
            )
        self._session.add_all(rows)
        self._session.flush()
        league.status = "active"
        league.drawn_at = now

        assignment = Assignment(
            league_id=league.id,
            slots=tuple(
                AssignmentSlot(
                    event_id=event_id,
                    entrant_number=entrant_number,
                    participant_id=participant_id,
                )
                for (event_id, entrant_number), participant_id in plan
            ),
        )
        self._verify(assignment, requests, len(pool))
        logger.info(
            f"Drew {len(assignment)} entries for league {league.id} "
            f"across {len(participants)} participants"
        )
        return assignment

    @staticmethod
    def _verify(
        assignment: Assignment,
        requests: Sequence[tuple[int, int]],
        pool_size: int,
    ) -> None:
        """Fail loudly if the assignment does not honour every request."""

        expected = Counter({pid: count for pid, count in requests if count})
        actual = Counter(assignment.counts())
        keys = {slot.key for slot in assignment}
        if len(assignment) != pool_size or len(keys) != pool_size or actual != expected:
            logger.critical(
                f"Draw for league {assignment.league_id} broke its invariants: "
                f"{len(assignment)} slots for a pool of {pool_size}"
            )
            raise DrawIntegrityError(
                f"Assignment for league {assignment.league_id} does not match "
                "the requested entry counts"
            )


__all__ = ["DrawEngine"]
