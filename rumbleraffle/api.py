"""JSON-ready wrappers around the core operations for the web layer.

Each call opens its own transaction from the supplied ``sessionmaker`` and
returns an :class:`ApiResponse`. Domain errors become
``{"error": {"code", "message"}}`` payloads with their status code; anything
else is logged and reported as a 500.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Callable, Mapping, NamedTuple, Optional

from sqlalchemy.orm import Session, sessionmaker

from . import workflows
from .db.utils import dt_iso
from .errors import RaffleError, ValidationError
from .models import Entrant
from .scoring import LeaderboardRow
from .types import Assignment, EliminationState

logger = logging.getLogger(__name__)

_PATCH_FIELDS = {
    "wrestlerName": "wrestler_name",
    "status": "status",
    "eliminatedBy": "eliminated_by",
    "finalPlacement": "final_placement",
    "enteredAt": "entered_at",
}


class ApiResponse(NamedTuple):
    status_code: int
    payload: Any


def _run(
    session_factory: sessionmaker,
    operation: Callable[[Session], Any],
    *,
    success_status: int = 200,
) -> ApiResponse:
    try:
        with session_factory.begin() as session:
            payload = operation(session)
    except RaffleError as exc:
        logger.debug(f"Request rejected ({exc.code}): {exc.message}")
        return ApiResponse(exc.status_code, {"error": exc.to_dict()})
    except Exception:
        logger.exception("Unhandled error while serving a raffle request")
        return ApiResponse(
            500,
            {"error": {"code": "internal_error", "message": "Internal server error."}},
        )
    return ApiResponse(success_status, payload)


# -------- serializers --------
def entrant_payload(entrant: Entrant) -> dict[str, Any]:
    return {
        "eventId": entrant.event_id,
        "entrantNumber": entrant.entrant_number,
        "wrestlerName": entrant.wrestler_name,
        "status": entrant.status,
        "isEliminated": entrant.is_eliminated,
        "eliminatedBy": entrant.eliminated_by,
        "enteredAt": dt_iso(entrant.entered_at),
        "eliminatedAt": dt_iso(entrant.eliminated_at),
        "finalPlacement": entrant.final_placement,
    }


def assignment_payload(assignment: Assignment) -> dict[str, Any]:
    return {
        "leagueId": assignment.league_id,
        "slots": [
            {
                "eventId": slot.event_id,
                "entrantNumber": slot.entrant_number,
                "participantId": slot.participant_id,
            }
            for slot in assignment
        ],
    }


def leaderboard_payload(
    rows: list[LeaderboardRow], names: Mapping[tuple[int, int], str]
) -> list[dict[str, Any]]:
    def entry(state: EliminationState) -> dict[str, Any]:
        return {
            "eventId": state.event_id,
            "entrantNumber": state.entrant_number,
            "wrestlerName": names.get(state.key),
            "status": "Eliminated" if state.is_eliminated else "Active",
            "eliminatedBy": state.eliminated_by,
            "finalPlacement": state.final_placement,
        }

    return [
        {
            "participantId": row.participant_id,
            "displayName": row.display_name,
            "score": row.score,
            "rank": row.rank,
            "entries": [entry(state) for state in row.entries],
        }
        for row in rows
    ]


def _parse_patch(body: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be a JSON object")
    unknown = set(body) - set(_PATCH_FIELDS) - {"eventId"}
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    changes = {_PATCH_FIELDS[key]: value for key, value in body.items() if key in _PATCH_FIELDS}
    entered_at = changes.get("entered_at")
    if isinstance(entered_at, str):
        try:
            changes["entered_at"] = datetime.fromisoformat(entered_at)
        except ValueError as exc:
            raise ValidationError("enteredAt must be an ISO 8601 timestamp") from exc
    elif entered_at is not None and not isinstance(entered_at, datetime):
        raise ValidationError("enteredAt must be an ISO 8601 timestamp")
    return changes


# -------- endpoints --------
def post_draw(
    session_factory: sessionmaker,
    league_id: int,
    *,
    rng: Optional[random.Random] = None,
) -> ApiResponse:
    """``POST draw(leagueId)`` -> ``{"assignment": ...}``."""

    def operation(session: Session) -> dict[str, Any]:
        assignment = workflows.run_draw(session, league_id, rng=rng)
        return {"assignment": assignment_payload(assignment)}

    return _run(session_factory, operation, success_status=201)


def patch_entrant(
    session_factory: sessionmaker,
    league_id: int,
    entrant_number: int,
    body: Mapping[str, Any],
) -> ApiResponse:
    """``PATCH updateEntrant(leagueId, entrantNumber, {...})`` -> updated entry."""

    def operation(session: Session) -> dict[str, Any]:
        changes = _parse_patch(body)
        entrant = workflows.update_entrant(
            session,
            league_id,
            entrant_number,
            event_id=body.get("eventId"),
            **changes,
        )
        return entrant_payload(entrant)

    return _run(session_factory, operation)


def get_leaderboard(session_factory: sessionmaker, league_id: int) -> ApiResponse:
    """``GET leaderboard(leagueId)`` -> ordered ``{participantId, score, entries[]}``."""

    def operation(session: Session) -> list[dict[str, Any]]:
        rows = workflows.get_leaderboard(session, league_id)
        names = {
            (e.event_id, e.entrant_number): e.wrestler_name
            for e in workflows.get_entrants(session, league_id)
        }
        return leaderboard_payload(rows, names)

    return _run(session_factory, operation)


def get_entrants(session_factory: sessionmaker, league_id: int) -> ApiResponse:
    """``GET entrants(leagueId)`` -> pool snapshot with elimination state."""

    def operation(session: Session) -> list[dict[str, Any]]:
        return [entrant_payload(e) for e in workflows.get_entrants(session, league_id)]

    return _run(session_factory, operation)


__all__ = [
    "ApiResponse",
    "assignment_payload",
    "entrant_payload",
    "get_entrants",
    "get_leaderboard",
    "leaderboard_payload",
    "patch_entrant",
    "post_draw",
]
