"""Scoring modes that turn elimination data into participant scores."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Mapping, Optional, Union

from ..types import SELF_ELIMINATION, Assignment, EliminationState

if TYPE_CHECKING:
    from ..models import League

Score = Union[int, float]
StateKey = tuple[int, int]


@dataclass(frozen=True)
class ScoringConfig:
    """League settings consumed by the scorers.

    Attributes
    ----------
    mode : str
        Registry key of the scoring mode.
    elimination_points_enabled : bool
        Award ``points_per_elimination`` for every elimination credited to an
        owned entry (points modes only).
    points_per_elimination : int
        Bonus per credited elimination.
    time_bonus_enabled : bool
        Stored with the league but not used in any calculation.
    prize_pool : float
        Amount paid out by ``winner_takes_all``.
    """

    mode: str = "points_based"
    elimination_points_enabled: bool = False
    points_per_elimination: int = 0
    time_bonus_enabled: bool = False
    prize_pool: float = 0.0

    @classmethod
    def from_league(cls, league: "League") -> "ScoringConfig":
        return cls(
            mode=league.league_type,
            elimination_points_enabled=bool(league.elimination_points_enabled),
            points_per_elimination=int(league.points_per_elimination or 0),
            time_bonus_enabled=bool(league.time_bonus_enabled),
            prize_pool=league.prize_pool,
        )


class ScoringInputs:
    """Elimination states indexed for repeated per-participant lookups."""

    def __init__(self, states: Iterable[EliminationState]) -> None:
        self.by_key: Dict[StateKey, EliminationState] = {}
        for state in states:
            self.by_key[state.key] = state
        self.pool_sizes = Counter(key[0] for key in self.by_key)
        self.credited_eliminations = Counter(
            (state.event_id, state.eliminated_by)
            for state in self.by_key.values()
            if state.is_eliminated
            and state.eliminated_by is not None
            and state.eliminated_by != SELF_ELIMINATION
        )

    def state_for(self, key: StateKey) -> EliminationState:
        try:
            return self.by_key[key]
        except KeyError as exc:
            raise ValueError(
                f"No elimination state for entrant {key[1]} of event {key[0]}"
            ) from exc


Scorer = Callable[[int, Assignment, ScoringInputs, ScoringConfig], Score]


@dataclass(frozen=True)
class ScoringMode:
    """Definition of a scoring mode.

    Attributes
    ----------
    key : str
        Registry key; matches ``League.league_type``.
    scorer : Scorer
        Callable computing one participant's score.
    description : Optional[str]
        Human-readable summary of the mode.
    """

    key: str
    scorer: Scorer
    description: Optional[str] = None

    def score(
        self,
        participant_id: int,
        assignment: Assignment,
        inputs: ScoringInputs,
        config: ScoringConfig,
    ) -> Score:
        return self.scorer(participant_id, assignment, inputs, config)


class ScoringModeRegistry:
    """Mutable registry mapping mode keys to definitions."""

    def __init__(self) -> None:
        self._modes: Dict[str, ScoringMode] = {}

    def register(self, mode: ScoringMode, *, replace: bool = False) -> None:
        """Register a scoring mode under its key.

        Parameters
        ----------
        mode : ScoringMode
            Mode to add to the registry.
        replace : bool, default: False
            When ``True`` an existing registration with the same key is
            overwritten. Otherwise a duplicate raises :class:`ValueError`.
        """
        if not replace and mode.key in self._modes:
            raise ValueError(f"Scoring mode '{mode.key}' is already registered")
        self._modes[mode.key] = mode

    def get(self, key: str) -> ScoringMode:
        """Return the mode registered under ``key``."""
        try:
            return self._modes[key]
        except KeyError as exc:
            raise KeyError(f"Unknown scoring mode '{key}'") from exc

    def available_modes(self) -> Dict[str, ScoringMode]:
        """Return a copy of the registered modes keyed by identifier."""
        return dict(self._modes)


def placement_points(placement: int, pool_size: int) -> int:
    """Points for finishing ``placement`` in an event of ``pool_size`` entries."""
    return (pool_size + 1) - placement


def _points_based(
    participant_id: int,
    assignment: Assignment,
    inputs: ScoringInputs,
    config: ScoringConfig,
) -> int:
    total = 0
    for slot in assignment.for_participant(participant_id):
        state = inputs.state_for(slot.key)
        if state.final_placement is not None:
            total += placement_points(
                state.final_placement, inputs.pool_sizes[slot.event_id]
            )
        if config.elimination_points_enabled:
            credited = inputs.credited_eliminations[(slot.event_id, slot.entrant_number)]
            total += credited * config.points_per_elimination
    return total


def _winner_takes_all(
    participant_id: int,
    assignment: Assignment,
    inputs: ScoringInputs,
    config: ScoringConfig,
) -> Score:
    for slot in assignment.for_participant(participant_id):
        if inputs.state_for(slot.key).final_placement == 1:
            return config.prize_pool
    return 0


DEFAULT_MODE_REGISTRY = ScoringModeRegistry()
DEFAULT_MODE_REGISTRY.register(
    ScoringMode(
        key="winner_takes_all",
        scorer=_winner_takes_all,
        description="The holder of the entry placed first takes the whole prize pool.",
    )
)
DEFAULT_MODE_REGISTRY.register(
    ScoringMode(
        key="points_based",
        scorer=_points_based,
        description=(
            "Each placed entry earns (N + 1) - placement points, plus optional "
            "points for every elimination it is credited with."
        ),
    )
)
DEFAULT_MODE_REGISTRY.register(
    ScoringMode(
        key="combined",
        scorer=_points_based,
        description="Points-based scoring summed over two events, each with its own N.",
    )
)


def score(
    participant_id: int,
    assignment: Assignment,
    states: Union[ScoringInputs, Iterable[EliminationState]],
    config: ScoringConfig,
    *,
    registry: Optional[ScoringModeRegistry] = None,
) -> Score:
    """Compute one participant's score from the current elimination states.

    Parameters
    ----------
    participant_id : int
        Participant whose owned entries are scored.
    assignment : Assignment
        Draw output mapping entries to participants.
    states : ScoringInputs | Iterable[EliminationState]
        Elimination state of every entry in the league's pool. Pool sizes
        are derived from these states, so the full pool must be supplied.
    config : ScoringConfig
        League scoring settings.
    registry : Optional[ScoringModeRegistry], default: None
        Custom registry; the default registry is used when omitted.
    """
    inputs = states if isinstance(states, ScoringInputs) else ScoringInputs(states)
    mode = (registry or DEFAULT_MODE_REGISTRY).get(config.mode)
    return mode.score(participant_id, assignment, inputs, config)


__all__ = [
    "DEFAULT_MODE_REGISTRY",
    "Score",
    "ScoringConfig",
    "ScoringInputs",
    "ScoringMode",
    "ScoringModeRegistry",
    "placement_points",
    "score",
]
