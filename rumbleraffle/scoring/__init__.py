"""Score computation for league leaderboards."""

from .leaderboard import LeaderboardRow, build_leaderboard
from .modes import (
    DEFAULT_MODE_REGISTRY,
    ScoringConfig,
    ScoringInputs,
    ScoringMode,
    ScoringModeRegistry,
    placement_points,
    score,
)

__all__ = [
    "DEFAULT_MODE_REGISTRY",
    "LeaderboardRow",
    "ScoringConfig",
    "ScoringInputs",
    "ScoringMode",
    "ScoringModeRegistry",
    "build_leaderboard",
    "placement_points",
    "score",
]
