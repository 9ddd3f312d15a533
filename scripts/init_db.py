from __future__ import annotations

import logging
import os

from sqlalchemy import inspect

from rumbleraffle.db.engine import make_engine
from rumbleraffle.models import Base


def create_tables() -> None:
    """Create every table known to the models' metadata."""
    engine = make_engine()
    Base.metadata.create_all(engine)


def print_tables() -> None:
    """Inspect the configured database and print all table names."""
    engine = make_engine()
    insp = inspect(engine)
    print("Current tables:", ", ".join(sorted(insp.get_table_names())))


def main() -> None:
    """Create the schema and report the resulting tables."""
    logging.basicConfig(level=os.getenv("RUMBLERAFFLE_LOG_LEVEL", "INFO"))
    create_tables()
    print_tables()


if __name__ == "__main__":
    main()
