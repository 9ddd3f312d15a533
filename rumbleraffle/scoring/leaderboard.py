"""Ranking of participants by score."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .modes import Score, ScoringConfig, ScoringInputs, ScoringModeRegistry, score
from ..types import Assignment, EliminationState


@dataclass(frozen=True)
class LeaderboardRow:
    """One participant's line on the leaderboard.

    ``rank`` is a competition rank: tied scores share a rank and the next
    distinct score skips ahead (1, 1, 3).
    """

    participant_id: int
    display_name: str
    score: Score
    rank: int
    entries: tuple[EliminationState, ...]


def build_leaderboard(
    participants: Sequence[tuple[int, str]],
    assignment: Assignment,
    states: Iterable[EliminationState],
    config: ScoringConfig,
    *,
    registry: Optional[ScoringModeRegistry] = None,
) -> list[LeaderboardRow]:
    """Score every participant and order them by descending score.

    ``participants`` are ``(participant_id, display_name)`` pairs. Ties keep
    the order they are supplied in, so callers pass participants in creation
    order to get a deterministic board.
    """

    inputs = ScoringInputs(states)
    scored = []
    for participant_id, display_name in participants:
        owned = tuple(
            inputs.state_for(slot.key)
            for slot in assignment.for_participant(participant_id)
        )
        value = score(participant_id, assignment, inputs, config, registry=registry)
        scored.append((participant_id, display_name, value, owned))

    # sorted() is stable, which preserves the supplied order among ties.
    scored.sort(key=lambda item: -item[2])

    rows: list[LeaderboardRow] = []
    previous: Optional[Score] = None
    rank = 0
    for position, (participant_id, display_name, value, owned) in enumerate(
        scored, start=1
    ):
        if value != previous:
            rank = position
            previous = value
        rows.append(
            LeaderboardRow(
                participant_id=participant_id,
                display_name=display_name,
                score=value,
                rank=rank,
                entries=owned,
            )
        )
    return rows


__all__ = ["LeaderboardRow", "build_leaderboard"]
