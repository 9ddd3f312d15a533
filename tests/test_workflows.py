from __future__ import annotations

import random
import unittest
from datetime import datetime, timezone

from rumbleraffle.db.engine import get_sessionmaker, make_engine
from rumbleraffle.errors import (
    ConflictError,
    InvalidEliminationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from rumbleraffle.models import Base, League
from rumbleraffle.tracker import EventTracker
from rumbleraffle.workflows import (
    add_participant,
    complete_league,
    create_event_pool,
    create_league,
    distribute_evenly,
    get_assignment,
    get_entrants,
    get_leaderboard,
    get_league,
    get_winners,
    remove_participant,
    run_draw,
    set_requested_entry_count,
    update_entrant,
)


class WorkflowTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:", echo=False)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()


class SetupWorkflowTests(WorkflowTestCase):
    def test_create_event_pool_numbers_entries(self) -> None:
        with self.Session.begin() as session:
            event = create_event_pool(
                session, "Rumble", wrestler_names=["Gunther", "Dominik Mysterio"]
            )
            self.assertEqual(event.size, 30)
            self.assertEqual(
                [e.entrant_number for e in event.entrants], list(range(1, 31))
            )
            self.assertEqual(event.entrants[1].wrestler_name, "Dominik Mysterio")
            self.assertEqual(event.entrants[2].wrestler_name, "TBD")
            self.assertEqual(event.status, "upcoming")

    def test_create_event_pool_validation(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(ValidationError):
                create_event_pool(session, "Bad", entrant_count=-1)
            with self.assertRaises(ValidationError):
                create_event_pool(session, "Bad", entrant_count=1, wrestler_names=["A", "B"])

    def test_create_league_validation(self) -> None:
        with self.Session.begin() as session:
            first = create_event_pool(session, "Men")
            second = create_event_pool(session, "Women")
            cases = [
                dict(name="", event_id=first.id),
                dict(name="x", event_id=first.id, league_type="lottery"),
                dict(name="x", event_id=first.id, league_type="combined"),
                dict(
                    name="x",
                    event_id=first.id,
                    league_type="combined",
                    secondary_event_id=first.id,
                ),
                dict(name="x", event_id=first.id, secondary_event_id=second.id),
                dict(name="x", event_id=first.id, buy_in=-5),
            ]
            for kwargs in cases:
                with self.subTest(**{k: v for k, v in kwargs.items() if k != "event_id"}):
                    with self.assertRaises(ValidationError):
                        create_league(session, kwargs.pop("name"), kwargs.pop("event_id"), **kwargs)
            with self.assertRaises(NotFoundError):
                create_league(session, "x", first.id + 100)

    def test_winner_takes_all_disables_elimination_points(self) -> None:
        with self.Session.begin() as session:
            event = create_event_pool(session, "Rumble")
            league = create_league(
                session,
                "Cash",
                event.id,
                buy_in=5,
                elimination_points_enabled=True,
                points_per_elimination=3,
            )
            self.assertEqual(league.status, "setup")
            self.assertFalse(league.elimination_points_enabled)

    def test_participant_management(self) -> None:
        with self.Session.begin() as session:
            event = create_event_pool(session, "Rumble")
            league = create_league(session, "Office", event.id, buy_in=2.5)
            alice = add_participant(session, league.id, " Alice ", 4)
            bob = add_participant(session, league.id, "Bob")

            self.assertEqual(alice.display_name, "Alice")
            self.assertEqual(bob.requested_entry_count, 0)
            set_requested_entry_count(session, bob.id, 6)
            self.assertEqual(league.total_requested_entries, 10)
            self.assertEqual(league.prize_pool, 25.0)
            self.assertEqual(alice.total_buy_in, 10.0)

            with self.assertRaises(ValidationError):
                add_participant(session, league.id, "  ")
            with self.assertRaises(ValidationError):
                set_requested_entry_count(session, bob.id, -2)
            with self.assertRaises(NotFoundError):
                set_requested_entry_count(session, bob.id + 100, 1)

            remove_participant(session, alice.id)
            self.assertEqual(
                [p.display_name for p in get_league(session, league.id).participants],
                ["Bob"],
            )

    def test_distribute_evenly_uses_floor_share(self) -> None:
        with self.Session.begin() as session:
            event = create_event_pool(session, "Rumble")
            league = create_league(session, "Office", event.id)
            for name in ("A", "B", "C", "D"):
                add_participant(session, league.id, name, 1)
            participants = distribute_evenly(session, league.id)
            self.assertEqual([p.requested_entry_count for p in participants], [7] * 4)

            empty = create_league(session, "Empty", event.id)
            self.assertEqual(distribute_evenly(session, empty.id), [])

    def test_participants_are_frozen_after_the_draw(self) -> None:
        with self.Session.begin() as session:
            event = create_event_pool(session, "Rumble")
            league = create_league(session, "Office", event.id)
            alice = add_participant(session, league.id, "Alice", 30)
            self.assertEqual(len(get_assignment(session, league.id)), 0)
            run_draw(session, league.id)

            with self.assertRaises(ConflictError):
                add_participant(session, league.id, "Late", 1)
            with self.assertRaises(ConflictError):
                set_requested_entry_count(session, alice.id, 29)
            with self.assertRaises(ConflictError):
                remove_participant(session, alice.id)
            with self.assertRaises(ConflictError):
                distribute_evenly(session, league.id)

    def test_unknown_league(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(NotFoundError):
                run_draw(session, 12345)
            with self.assertRaises(NotFoundError):
                get_leaderboard(session, 12345)


class LiveWorkflowTests(WorkflowTestCase):
    def setUp(self) -> None:
        super().setUp()
        with self.Session.begin() as session:
            event = create_event_pool(session, "Rumble")
            league = create_league(
                session,
                "Office",
                event.id,
                league_type="points_based",
                elimination_points_enabled=True,
                points_per_elimination=1,
            )
            self.alice_id = add_participant(session, league.id, "Alice", 15).id
            self.bob_id = add_participant(session, league.id, "Bob", 15).id
            self.event_id = event.id
            self.league_id = league.id
            self.assignment = run_draw(session, league.id, rng=random.Random(11))

    def test_update_entrant_eliminates_with_placement(self) -> None:
        with self.Session.begin() as session:
            entrant = update_entrant(
                session,
                self.league_id,
                4,
                status="eliminated",
                eliminated_by="9",
                final_placement=27,
            )
            self.assertEqual(entrant.status, "Eliminated")
            self.assertEqual(entrant.eliminated_by, 9)
            self.assertEqual(entrant.final_placement, 27)

    def test_update_entrant_name_and_entrance_only(self) -> None:
        at = datetime(2025, 2, 1, 20, 0, tzinfo=timezone.utc)
        with self.Session.begin() as session:
            entrant = update_entrant(
                session, self.league_id, 1, wrestler_name="Gunther", entered_at=at
            )
            self.assertEqual(entrant.wrestler_name, "Gunther")
            self.assertEqual(entrant.status, "Active")
            self.assertIsNotNone(entrant.entered_at)

    def test_update_entrant_round_trip_restores_active_state(self) -> None:
        with self.Session.begin() as session:
            update_entrant(
                session, self.league_id, 5, status="Eliminated", eliminated_by="self"
            )
            entrant = update_entrant(session, self.league_id, 5, status="Active")
            self.assertEqual(entrant.status, "Active")
            self.assertIsNone(entrant.eliminated_by)
            self.assertIsNone(entrant.eliminated_at)
            self.assertIsNone(entrant.final_placement)

    def test_update_entrant_corrects_the_eliminator(self) -> None:
        with self.Session.begin() as session:
            update_entrant(
                session,
                self.league_id,
                6,
                status="Eliminated",
                eliminated_by=2,
                final_placement=20,
            )
            entrant = update_entrant(session, self.league_id, 6, eliminated_by=9)
            self.assertEqual(entrant.eliminated_by, 9)
            self.assertEqual(entrant.final_placement, 20)
            self.assertTrue(entrant.is_eliminated)
            self.assertIsNotNone(entrant.eliminated_at)

            entrant = update_entrant(session, self.league_id, 6, eliminated_by="self")
            self.assertEqual(entrant.eliminated_by, "self")
            entrant = update_entrant(session, self.league_id, 6, eliminated_by=None)
            self.assertIsNone(entrant.eliminated_by)
            self.assertEqual(entrant.final_placement, 20)

    def test_update_entrant_placement_without_elimination(self) -> None:
        with self.Session.begin() as session:
            entrant = update_entrant(session, self.league_id, 30, final_placement=1)
            self.assertEqual(entrant.final_placement, 1)
            self.assertFalse(entrant.is_eliminated)
            entrant = update_entrant(session, self.league_id, 30, final_placement=None)
            self.assertIsNone(entrant.final_placement)

    def test_update_entrant_without_changes_returns_entry(self) -> None:
        with self.Session.begin() as session:
            self.assertEqual(
                update_entrant(session, self.league_id, 12).entrant_number, 12
            )

    def test_update_entrant_rejections(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(ValidationError):
                update_entrant(session, self.league_id, 3, status="benched")
            with self.assertRaises(ValidationError):
                update_entrant(
                    session, self.league_id, 3, status="Active", eliminated_by=4
                )
            with self.assertRaises(InvalidTransitionError):
                update_entrant(session, self.league_id, 3, eliminated_by=4)
            with self.assertRaises(ValidationError):
                update_entrant(session, self.league_id, 3, entered_at=1706385600)
            with self.assertRaises(InvalidEliminationError):
                update_entrant(
                    session, self.league_id, 3, status="Eliminated", eliminated_by=3
                )
            with self.assertRaises(InvalidTransitionError):
                update_entrant(session, self.league_id, 3, status="Active")
            with self.assertRaises(NotFoundError):
                update_entrant(session, self.league_id, 31, wrestler_name="Nobody")
            with self.assertRaises(NotFoundError):
                update_entrant(
                    session, self.league_id, 3, event_id=self.event_id + 50, status="Active"
                )

    def test_update_entrant_uses_supplied_tracker(self) -> None:
        with self.Session.begin() as session:
            strict = EventTracker(session, unique_placements=True)
            update_entrant(session, self.league_id, 1, final_placement=2, tracker=strict)
            with self.assertRaises(ConflictError):
                update_entrant(
                    session, self.league_id, 2, final_placement=2, tracker=strict
                )

    def test_leaderboard_follows_tracker_edits(self) -> None:
        alice_entries = [s.entrant_number for s in self.assignment.for_participant(self.alice_id)]
        with self.Session.begin() as session:
            for number in range(1, 31):
                if number != alice_entries[0]:
                    update_entrant(session, self.league_id, number, status="Eliminated")
            update_entrant(session, self.league_id, alice_entries[0], final_placement=1)

            rows = get_leaderboard(session, self.league_id)
            self.assertEqual(rows[0].participant_id, self.alice_id)
            self.assertEqual(rows[0].score, 30)
            self.assertEqual(rows[1].score, 0)
            self.assertEqual(len(rows[0].entries), 15)

            winners = get_winners(session, self.league_id)
            self.assertEqual(winners[self.event_id].entrant_number, alice_entries[0])

            update_entrant(session, self.league_id, alice_entries[1], status="Active")
            self.assertIsNone(get_winners(session, self.league_id)[self.event_id])

    def test_elimination_points_reach_the_leaderboard(self) -> None:
        bob_entry = self.assignment.for_participant(self.bob_id)[0].entrant_number
        victims = [
            slot.entrant_number
            for slot in self.assignment.for_participant(self.alice_id)[:2]
        ]
        with self.Session.begin() as session:
            for victim in victims:
                update_entrant(
                    session,
                    self.league_id,
                    victim,
                    status="Eliminated",
                    eliminated_by=bob_entry,
                )
            rows = get_leaderboard(session, self.league_id)
            self.assertEqual(
                [(row.participant_id, row.score) for row in rows],
                [(self.bob_id, 2), (self.alice_id, 0)],
            )

    def test_get_entrants_lists_the_pool(self) -> None:
        with self.Session.begin() as session:
            update_entrant(session, self.league_id, 2, status="Eliminated")
            entrants = get_entrants(session, self.league_id)
            self.assertEqual([e.entrant_number for e in entrants], list(range(1, 31)))
            self.assertTrue(entrants[1].is_eliminated)

    def test_complete_league_is_explicit(self) -> None:
        with self.Session.begin() as session:
            league = complete_league(session, self.league_id)
            self.assertEqual(league.status, "completed")
            self.assertIsNotNone(league.completed_at)
            with self.assertRaises(InvalidTransitionError):
                complete_league(session, self.league_id)

        with self.Session() as session:
            self.assertEqual(session.get(League, self.league_id).status, "completed")


if __name__ == "__main__":
    unittest.main()
