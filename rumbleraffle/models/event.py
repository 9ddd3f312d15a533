"""Database models for events and their numbered entrant pools."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base
from ..types import SELF_ELIMINATION, EliminationState

if TYPE_CHECKING:
    from .league import EntrantAssignment

DEFAULT_WRESTLER_NAME = "TBD"


class Event(Base):
    """An elimination match whose ring entries make up an entrant pool."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Display name such as ``"Royal Rumble 2025 (Men)"``."""

    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    event_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="royal_rumble"
    )
    event_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="upcoming")
    """Lifecycle of the live event (``upcoming``, ``live`` or ``completed``)."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    entrants: Mapped[list["Entrant"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Entrant.entrant_number",
    )
    """Entrant pool ordered by ring number."""

    __table_args__ = (
        CheckConstraint(
            "status IN ('upcoming','live','completed')", name="status_enum"
        ),
    )

    def __init__(
        self,
        *,
        name: str,
        year: Optional[int] = None,
        event_type: str = "royal_rumble",
        event_date: Optional[datetime] = None,
        status: str = "upcoming",
        description: Optional[str] = None,
        entrants: Optional[list["Entrant"]] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.name = name
        self.year = year
        self.event_type = event_type
        self.event_date = event_date
        self.status = status
        self.description = description
        if entrants is not None:
            self.entrants = entrants
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Event(id={self.id}, name='{self.name}', status='{self.status}')>"

    @property
    def size(self) -> int:
        """Number of entries (N) in this event's pool."""
        return len(self.entrants)

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["Event"]:
        """Return the event called ``name`` if it exists."""

        return session.scalar(select(cls).where(cls.name == name))


class Entrant(Base):
    """One numbered ring entry of an event together with its live state."""

    __tablename__ = "entrants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entrant_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Ring position (1..N)."""

    wrestler_name: Mapped[str] = mapped_column(
        String(100), nullable=False, default=DEFAULT_WRESTLER_NAME
    )
    entered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_eliminated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    eliminated_by_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("entrants.id", ondelete="SET NULL"), nullable=True
    )
    """Entrant credited with the elimination, if recorded."""

    self_eliminated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    eliminated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    final_placement: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Final rank (1 = winner)."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    event: Mapped["Event"] = relationship(back_populates="entrants")
    eliminated_by_entrant: Mapped[Optional["Entrant"]] = relationship(
        "Entrant", remote_side=[id], foreign_keys=[eliminated_by_id]
    )
    assignments: Mapped[list["EntrantAssignment"]] = relationship(
        back_populates="entrant"
    )

    __table_args__ = (
        UniqueConstraint("event_id", "entrant_number", name="uq_entrant_number_per_event"),
        CheckConstraint("entrant_number >= 1", name="entrant_number_positive"),
        CheckConstraint(
            "final_placement IS NULL OR final_placement >= 1",
            name="final_placement_positive",
        ),
        CheckConstraint(
            "NOT (self_eliminated AND eliminated_by_id IS NOT NULL)",
            name="single_eliminator",
        ),
    )

    def __init__(
        self,
        *,
        entrant_number: int,
        event: Optional["Event"] = None,
        event_id: Optional[int] = None,
        wrestler_name: str = DEFAULT_WRESTLER_NAME,
        entered_at: Optional[datetime] = None,
        is_eliminated: bool = False,
        eliminated_at: Optional[datetime] = None,
        final_placement: Optional[int] = None,
    ) -> None:
        self.entrant_number = entrant_number
        if event is not None:
            self.event = event
        if event_id is not None:
            self.event_id = event_id
        self.wrestler_name = wrestler_name
        self.entered_at = entered_at
        self.is_eliminated = is_eliminated
        self.self_eliminated = False
        self.eliminated_at = eliminated_at
        self.final_placement = final_placement

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Entrant(id={self.id}, event_id={self.event_id}, "
            f"number={self.entrant_number}, wrestler='{self.wrestler_name}', "
            f"status='{self.status}')>"
        )

    @property
    def status(self) -> str:
        return "Eliminated" if self.is_eliminated else "Active"

    @property
    def eliminated_by(self) -> Union[int, str, None]:
        """Eliminator as an entrant number, ``"self"`` or ``None``."""
        if self.self_eliminated:
            return SELF_ELIMINATION
        if self.eliminated_by_entrant is not None:
            return self.eliminated_by_entrant.entrant_number
        return None

    def clear_elimination(self) -> None:
        """Return to the active state, resetting every elimination field at once."""
        self.is_eliminated = False
        self.eliminated_by_entrant = None
        self.eliminated_by_id = None
        self.self_eliminated = False
        self.eliminated_at = None
        self.final_placement = None

    def elimination_state(self) -> EliminationState:
        return EliminationState(
            event_id=self.event_id,
            entrant_number=self.entrant_number,
            is_eliminated=self.is_eliminated,
            eliminated_by=self.eliminated_by,
            eliminated_at=self.eliminated_at,
            final_placement=self.final_placement,
        )

    @classmethod
    def get_by_number(
        cls, session: Session, event_id: int, entrant_number: int
    ) -> Optional["Entrant"]:
        """Return the entrant holding ``entrant_number`` in ``event_id``."""

        return session.scalar(
            select(cls).where(
                cls.event_id == event_id, cls.entrant_number == entrant_number
            )
        )


__all__ = ["DEFAULT_WRESTLER_NAME", "Entrant", "Event"]
