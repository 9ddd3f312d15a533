from __future__ import annotations

import random
import unittest
from unittest.mock import patch

from rumbleraffle import api
from rumbleraffle.db.engine import get_sessionmaker, make_engine
from rumbleraffle.models import Base
from rumbleraffle.workflows import add_participant, create_event_pool, create_league


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:", echo=False)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        with self.Session.begin() as session:
            event = create_event_pool(session, "Rumble")
            league = create_league(session, "Office", event.id, league_type="points_based")
            self.alice_id = add_participant(session, league.id, "Alice", 10).id
            self.bob_id = add_participant(session, league.id, "Bob", 20).id
            self.league_id = league.id
            self.event_id = event.id

    def tearDown(self) -> None:
        self.engine.dispose()

    def _draw(self) -> api.ApiResponse:
        return api.post_draw(self.Session, self.league_id, rng=random.Random(8))

    def test_post_draw_returns_created_assignment(self) -> None:
        status, payload = self._draw()
        self.assertEqual(status, 201)
        slots = payload["assignment"]["slots"]
        self.assertEqual(payload["assignment"]["leagueId"], self.league_id)
        self.assertEqual(len(slots), 30)
        owners = [slot["participantId"] for slot in slots]
        self.assertEqual(owners.count(self.alice_id), 10)
        self.assertEqual(owners.count(self.bob_id), 20)

    def test_second_draw_conflicts(self) -> None:
        self._draw()
        status, payload = self._draw()
        self.assertEqual(status, 409)
        self.assertEqual(payload["error"]["code"], "already_drawn")

    def test_count_mismatch_reports_delta(self) -> None:
        with self.Session.begin() as session:
            add_participant(session, self.league_id, "Carmen", 1)
        status, payload = self._draw()
        self.assertEqual(status, 400)
        self.assertEqual(payload["error"]["code"], "count_mismatch")
        self.assertEqual(payload["error"]["delta"], -1)
        self.assertEqual(payload["error"]["requested"], 31)

    def test_unknown_league_is_not_found(self) -> None:
        status, payload = api.post_draw(self.Session, 999)
        self.assertEqual(status, 404)
        self.assertEqual(payload["error"]["code"], "not_found")
        self.assertEqual(api.get_leaderboard(self.Session, 999).status_code, 404)

    def test_patch_entrant_eliminates(self) -> None:
        self._draw()
        status, payload = api.patch_entrant(
            self.Session,
            self.league_id,
            3,
            {
                "wrestlerName": "Ludwig Kaiser",
                "status": "Eliminated",
                "eliminatedBy": 1,
                "finalPlacement": 8,
                "enteredAt": "2024-01-27T20:04:00+00:00",
            },
        )
        self.assertEqual(status, 200)
        self.assertEqual(payload["wrestlerName"], "Ludwig Kaiser")
        self.assertEqual(payload["status"], "Eliminated")
        self.assertEqual(payload["eliminatedBy"], 1)
        self.assertEqual(payload["finalPlacement"], 8)
        self.assertEqual(payload["enteredAt"], "2024-01-27T20:04:00+00:00")
        self.assertIsNotNone(payload["eliminatedAt"])

    def test_patch_entrant_error_statuses(self) -> None:
        cases = [
            ({"nickname": "x"}, 400, "validation_error"),
            ({"enteredAt": "yesterday"}, 400, "validation_error"),
            ({"enteredAt": 5}, 400, "validation_error"),
            ({"enteredAt": {"at": "now"}}, 400, "validation_error"),
            ({"status": "Eliminated", "eliminatedBy": 3}, 400, "invalid_elimination"),
            ({"status": "Active"}, 409, "invalid_transition"),
            ({"eventId": 777, "wrestlerName": "x"}, 404, "not_found"),
        ]
        for body, expected_status, code in cases:
            with self.subTest(body=body):
                status, payload = api.patch_entrant(self.Session, self.league_id, 3, body)
                self.assertEqual(status, expected_status)
                self.assertEqual(payload["error"]["code"], code)

    def test_numeric_entered_at_is_a_validation_error(self) -> None:
        status, payload = api.patch_entrant(
            self.Session, self.league_id, 1, {"enteredAt": 5}
        )
        self.assertEqual(status, 400)
        self.assertEqual(payload["error"]["code"], "validation_error")
        self.assertIn("ISO 8601", payload["error"]["message"])

    def test_patch_corrects_eliminator(self) -> None:
        api.patch_entrant(
            self.Session,
            self.league_id,
            7,
            {"status": "Eliminated", "eliminatedBy": 2, "finalPlacement": 11},
        )
        status, payload = api.patch_entrant(
            self.Session, self.league_id, 7, {"eliminatedBy": 12}
        )
        self.assertEqual(status, 200)
        self.assertEqual(payload["eliminatedBy"], 12)
        self.assertEqual(payload["finalPlacement"], 11)

    def test_rejected_patch_rolls_back(self) -> None:
        api.patch_entrant(
            self.Session,
            self.league_id,
            4,
            {"wrestlerName": "Kofi Kingston", "status": "Eliminated", "eliminatedBy": 4},
        )
        status, entrants = api.get_entrants(self.Session, self.league_id)
        self.assertEqual(status, 200)
        self.assertEqual(entrants[3]["wrestlerName"], "TBD")
        self.assertFalse(entrants[3]["isEliminated"])

    def test_leaderboard_payload(self) -> None:
        status, payload = self._draw()
        alice_number = next(
            slot["entrantNumber"]
            for slot in payload["assignment"]["slots"]
            if slot["participantId"] == self.alice_id
        )
        api.patch_entrant(
            self.Session, self.league_id, alice_number, {"finalPlacement": 1}
        )

        status, board = api.get_leaderboard(self.Session, self.league_id)
        self.assertEqual(status, 200)
        self.assertEqual([row["participantId"] for row in board], [self.alice_id, self.bob_id])
        self.assertEqual(board[0]["score"], 30)
        self.assertEqual(board[0]["rank"], 1)
        self.assertEqual(len(board[0]["entries"]), 10)
        placed = [e for e in board[0]["entries"] if e["finalPlacement"] == 1]
        self.assertEqual(placed[0]["wrestlerName"], "TBD")
        self.assertEqual(placed[0]["status"], "Active")

    def test_get_entrants_payload(self) -> None:
        status, entrants = api.get_entrants(self.Session, self.league_id)
        self.assertEqual(status, 200)
        self.assertEqual(len(entrants), 30)
        self.assertEqual(entrants[0]["entrantNumber"], 1)
        self.assertEqual(entrants[0]["status"], "Active")
        self.assertIsNone(entrants[0]["eliminatedBy"])

    def test_unexpected_errors_become_500(self) -> None:
        with patch.object(api.workflows, "run_draw", side_effect=RuntimeError("boom")):
            with self.assertLogs("rumbleraffle.api", level="ERROR"):
                status, payload = self._draw()
        self.assertEqual(status, 500)
        self.assertEqual(payload["error"]["code"], "internal_error")
        self.assertNotIn("boom", payload["error"]["message"])


if __name__ == "__main__":
    unittest.main()
