"""
Declarative base for the chat schema (users, conversations, messages).

Every model imports `Base` from here so one `MetaData` carries the whole schema
and its constraint names stay stable across Postgres and SQLite.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Explicitly named constraints (e.g. uq_conversations_participant_pair) keep their name
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
