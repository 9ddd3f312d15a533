"""Declarative base shared by every raffle table."""

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from rumbleraffle.db.metadata import metadata_obj

# Primary and foreign keys are BIGINT, except on SQLite where only INTEGER
# primary keys autoincrement.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class binding the models to the naming-convention metadata."""

    metadata = metadata_obj
