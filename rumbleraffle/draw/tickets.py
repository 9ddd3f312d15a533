"""Helpers for turning entry-count requests into a shuffled ticket list."""

from __future__ import annotations

import logging
import random
from typing import Hashable, Iterable, Optional, Sequence, TypeVar

from ..errors import CountMismatchError, EmptyPoolError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def build_tickets(requests: Iterable[tuple[int, int]]) -> list[int]:
    """Expand ``(participant_id, requested_entry_count)`` pairs into tickets.

    Each participant contributes one ticket per requested entry, in the order
    the requests are supplied.

    Parameters
    ----------
    requests : Iterable[tuple[int, int]]
        Participant ids paired with their requested entry counts.

    Raises
    ------
    ValidationError
        If a count is not a non-negative integer.
    """

    tickets: list[int] = []
    for participant_id, count in requests:
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValidationError(
                f"Entry count for participant {participant_id} must be an integer"
            )
        if count < 0:
            raise ValidationError(
                f"Entry count for participant {participant_id} must not be negative"
            )
        tickets.extend([participant_id] * count)
    logger.debug(f"Built {len(tickets)} tickets")
    return tickets


def fisher_yates_shuffle(
    items: Sequence[T], rng: Optional[random.Random] = None
) -> list[T]:
    """Return a uniformly shuffled copy of ``items``.

    Parameters
    ----------
    items : Sequence[T]
        Values to permute. The input is left untouched.
    rng : random.Random, optional
        Random generator to use; useful for deterministic tests. Defaults to
        :class:`random.SystemRandom`.
    """

    rng = rng or random.SystemRandom()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def plan_draw(
    pool_keys: Sequence[K],
    requests: Iterable[tuple[int, int]],
    rng: Optional[random.Random] = None,
) -> list[tuple[K, int]]:
    """Pair every pool entry with a participant id.

    ``pool_keys`` identify the entries in pool order. Ticket ``i`` of the
    shuffled ticket list goes to entry ``i``.

    Raises
    ------
    EmptyPoolError
        If ``pool_keys`` is empty.
    ValidationError
        If a requested count is invalid.
    CountMismatchError
        If the tickets do not cover the pool exactly.
    """

    if not pool_keys:
        raise EmptyPoolError()
    tickets = build_tickets(requests)
    if len(tickets) != len(pool_keys):
        raise CountMismatchError(requested=len(tickets), available=len(pool_keys))
    return list(zip(pool_keys, fisher_yates_shuffle(tickets, rng=rng)))


__all__ = ["build_tickets", "fisher_yates_shuffle", "plan_draw"]
