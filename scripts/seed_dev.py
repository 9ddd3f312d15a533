import logging
import os
from datetime import datetime, timedelta, timezone

from rumbleraffle.db.engine import get_sessionmaker, make_engine
from rumbleraffle.models import Base
from rumbleraffle.tracker import EventTracker
from rumbleraffle.workflows import (
    add_participant,
    create_event_pool,
    create_league,
    get_leaderboard,
    run_draw,
)

# Historical 2024 men's Royal Rumble: (entrant number, wrestler, final placement)
ROYAL_RUMBLE_2024 = [
    (1, "Gunther", 2),
    (2, "Dominik Mysterio", 18),
    (3, "Ludwig Kaiser", 8),
    (4, "Kofi Kingston", 6),
    (5, "Xavier Woods", 10),
    (6, "Ivar", 13),
    (7, "Grayson Waller", 11),
    (8, "Austin Theory", 9),
    (9, "Bobby Lashley", 15),
    (10, "JD McDonagh", 12),
    (11, "Finn Balor", 7),
    (12, "Damian Priest", 14),
    (13, "Karrion Kross", 17),
    (14, "Shinsuke Nakamura", 20),
    (15, "Cody Rhodes", 1),
    (16, "Jinder Mahal", 16),
    (17, "Bron Breakker", 19),
    (18, "Ricochet", 22),
    (19, "Jimmy Uso", 21),
    (20, "Logan Paul", 4),
    (21, "LA Knight", 5),
    (22, "AJ Styles", 23),
    (23, "Andrade", 24),
    (24, "Trick Williams", 25),
    (25, "Bronson Reed", 26),
    (26, "Omos", 27),
    (27, "Sami Zayn", 3),
    (28, "Drew McIntyre", 28),
    (29, "Santos Escobar", 29),
    (30, "CM Punk", 30),
]


def main() -> None:
    """Seed the development database with sample events and a drawn league."""
    logging.basicConfig(level=os.getenv("RUMBLERAFFLE_LOG_LEVEL", "INFO"))
    engine = make_engine()

    # SQLite refuses to drop tables with live foreign keys, so switch the
    # checks off for the reset.
    with engine.connect() as conn:
        if engine.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        if engine.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    start = datetime(2024, 1, 27, 20, 0, tzinfo=timezone.utc)

    with Session.begin() as session:
        # Completed 2024 event with its real results
        rumble_2024 = create_event_pool(
            session,
            "Royal Rumble 2024 (Men)",
            wrestler_names=[name for _, name, _ in ROYAL_RUMBLE_2024],
            year=2024,
            event_date=start,
            description="2024 Royal Rumble Match - Men's Division",
        )

        # Upcoming 2025 event, every entrant still TBD
        rumble_2025 = create_event_pool(
            session,
            "Royal Rumble 2025 (Men)",
            year=2025,
            event_date=datetime(2025, 2, 1, 20, 0, tzinfo=timezone.utc),
            description="2025 Royal Rumble Match - Men's Division",
        )

        league = create_league(
            session,
            "Rumble 2024 Office Pool",
            rumble_2024.id,
            league_type="points_based",
            buy_in=5.0,
        )
        for name in ("Alice", "Bob", "Carmen"):
            add_participant(session, league.id, name, requested_entry_count=10)
        run_draw(session, league.id)

        tracker = EventTracker(session, unique_placements=True)
        tracker.start_event(rumble_2024.id)
        for number, _, _ in ROYAL_RUMBLE_2024:
            tracker.mark_entrance(
                rumble_2024.id, number, start + timedelta(minutes=2 * (number - 1))
            )
        # Eliminate from 30th place upwards, leaving the winner standing.
        for number, _, placement in sorted(ROYAL_RUMBLE_2024, key=lambda row: -row[2]):
            if placement == 1:
                tracker.set_placement(rumble_2024.id, number, 1)
                continue
            tracker.eliminate(
                rumble_2024.id,
                number,
                timestamp=start + timedelta(minutes=2 * (placement + 29)),
                placement=placement,
            )
        tracker.complete_event(rumble_2024.id)

        for row in get_leaderboard(session, league.id):
            print(f"{row.rank:>2}. {row.display_name:<10} {row.score}")
        print(f"Seeded events {rumble_2024.id} and {rumble_2025.id}")


if __name__ == "__main__":
    main()
