"""Utilities for the one-time league draw."""

from .engine import DrawEngine
from .tickets import build_tickets, fisher_yates_shuffle, plan_draw

__all__ = [
    "DrawEngine",
    "build_tickets",
    "fisher_yates_shuffle",
    "plan_draw",
]
