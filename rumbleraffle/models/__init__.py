from .base import Base

# import models so metadata.create_all and autoloaders can discover mappers
from .event import Event, Entrant  # noqa: F401
from .league import League, Participant, EntrantAssignment  # noqa: F401

__all__ = [
    "Base",
    "Event",
    "Entrant",
    "League",
    "Participant",
    "EntrantAssignment",
]
