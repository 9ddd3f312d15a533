"""Database models for leagues, their participants and the draw assignment."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base
from ..types import Assignment, AssignmentSlot

if TYPE_CHECKING:
    from .event import Entrant, Event

LEAGUE_TYPES = ("winner_takes_all", "points_based", "combined")
LEAGUE_STATUSES = ("setup", "active", "completed")


class League(Base):
    """A raffle league drawing its entries from one or two events."""

    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    league_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default="winner_takes_all"
    )
    """Scoring mode key, resolved through the scoring mode registry."""

    event_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("events.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    secondary_event_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("events.id", ondelete="RESTRICT"), nullable=True
    )
    """Second event of a combined league."""

    buy_in: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    """Amount tracked per requested entry. No money moves through the system."""

    elimination_points_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    points_per_elimination: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    time_bonus_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="setup")
    """``setup`` until drawn, then ``active``; ``completed`` is set by an admin."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    drawn_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    event: Mapped["Event"] = relationship(foreign_keys=[event_id])
    secondary_event: Mapped[Optional["Event"]] = relationship(
        foreign_keys=[secondary_event_id]
    )
    participants: Mapped[list["Participant"]] = relationship(
        back_populates="league",
        cascade="all, delete-orphan",
        order_by="[Participant.created_at, Participant.id]",
    )
    assignments: Mapped[list["EntrantAssignment"]] = relationship(
        back_populates="league", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "league_type IN ('winner_takes_all','points_based','combined')",
            name="league_type_enum",
        ),
        CheckConstraint(
            "status IN ('setup','active','completed')", name="status_enum"
        ),
        CheckConstraint("buy_in >= 0", name="buy_in_non_negative"),
    )

    def __init__(
        self,
        *,
        name: str,
        event_id: Optional[int] = None,
        event: Optional["Event"] = None,
        league_type: str = "winner_takes_all",
        secondary_event_id: Optional[int] = None,
        secondary_event: Optional["Event"] = None,
        buy_in: float = 0.0,
        elimination_points_enabled: bool = False,
        points_per_elimination: int = 0,
        time_bonus_enabled: bool = False,
        status: str = "setup",
        created_at: Optional[datetime] = None,
    ) -> None:
        self.name = name
        if event is not None:
            self.event = event
        if event_id is not None:
            self.event_id = event_id
        if secondary_event is not None:
            self.secondary_event = secondary_event
        if secondary_event_id is not None:
            self.secondary_event_id = secondary_event_id
        self.league_type = league_type
        self.buy_in = buy_in
        self.elimination_points_enabled = elimination_points_enabled
        self.points_per_elimination = points_per_elimination
        self.time_bonus_enabled = time_bonus_enabled
        self.status = status
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<League(id={self.id}, name='{self.name}', "
            f"league_type='{self.league_type}', status='{self.status}')>"
        )

    @property
    def event_ids(self) -> list[int]:
        """Events backing the pool, primary first."""
        ids = [self.event_id]
        if self.secondary_event_id is not None:
            ids.append(self.secondary_event_id)
        return ids

    @property
    def total_requested_entries(self) -> int:
        return sum(p.requested_entry_count for p in self.participants)

    @property
    def prize_pool(self) -> float:
        """Sum of every participant's buy-in."""
        return float(self.buy_in or 0.0) * self.total_requested_entries

    def pool(self, session: Session) -> list["Entrant"]:
        """Return the league's entrant pool in draw order.

        Entries of the primary event come first, followed by the secondary
        event of a combined league; each block is ordered by ring number.
        """
        from .event import Entrant

        order = {event_id: idx for idx, event_id in enumerate(self.event_ids)}
        entrants = session.scalars(
            select(Entrant).where(Entrant.event_id.in_(self.event_ids))
        ).all()
        return sorted(entrants, key=lambda e: (order[e.event_id], e.entrant_number))

    def to_assignment(self) -> Assignment:
        """Build the :class:`Assignment` value object from persisted rows."""
        order = {event_id: idx for idx, event_id in enumerate(self.event_ids)}
        rows = sorted(
            self.assignments,
            key=lambda a: (order.get(a.event_id, len(order)), a.entrant_number),
        )
        return Assignment(
            league_id=self.id,
            slots=tuple(
                AssignmentSlot(
                    event_id=row.event_id,
                    entrant_number=row.entrant_number,
                    participant_id=row.participant_id,
                )
                for row in rows
            ),
        )


class Participant(Base):
    """A person in a league holding one or more entries."""

    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_entry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    """Entries requested before the draw; frozen once the league is drawn."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    league: Mapped["League"] = relationship(back_populates="participants")
    assignments: Mapped[list["EntrantAssignment"]] = relationship(
        back_populates="participant"
    )

    __table_args__ = (
        CheckConstraint(
            "requested_entry_count >= 0", name="requested_entry_count_non_negative"
        ),
    )

    def __init__(
        self,
        *,
        display_name: str,
        requested_entry_count: int = 0,
        league: Optional["League"] = None,
        league_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.display_name = display_name
        self.requested_entry_count = requested_entry_count
        if league is not None:
            self.league = league
        if league_id is not None:
            self.league_id = league_id
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Participant(id={self.id}, league_id={self.league_id}, "
            f"display_name='{self.display_name}', "
            f"requested_entry_count={self.requested_entry_count})>"
        )

    @property
    def total_buy_in(self) -> float:
        if self.league is None:
            return 0.0
        return float(self.league.buy_in or 0.0) * self.requested_entry_count


class EntrantAssignment(Base):
    """Immutable record handing one pool entry to a participant."""

    __tablename__ = "entrant_assignments"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    participant_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entrant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("entrants.id", ondelete="CASCADE"), nullable=False
    )
    event_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    entrant_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Denormalized ring number for cheap leaderboard reads."""

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    league: Mapped["League"] = relationship(back_populates="assignments")
    participant: Mapped["Participant"] = relationship(back_populates="assignments")
    entrant: Mapped["Entrant"] = relationship(back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("league_id", "entrant_id", name="uq_assignment_entrant_per_league"),
    )

    def __init__(
        self,
        *,
        league_id: int,
        participant_id: int,
        entrant_id: int,
        event_id: int,
        entrant_number: int,
        assigned_at: Optional[datetime] = None,
    ) -> None:
        self.league_id = league_id
        self.participant_id = participant_id
        self.entrant_id = entrant_id
        self.event_id = event_id
        self.entrant_number = entrant_number
        if assigned_at is not None:
            self.assigned_at = assigned_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<EntrantAssignment(league_id={self.league_id}, "
            f"event_id={self.event_id}, number={self.entrant_number}, "
            f"participant_id={self.participant_id})>"
        )


__all__ = [
    "EntrantAssignment",
    "LEAGUE_STATUSES",
    "LEAGUE_TYPES",
    "League",
    "Participant",
]
