from sqlalchemy.orm import DeclarativeBase

"""
Base class for all SQLAlchemy ORM models.

All Oracyn models (users, chats, messages, documents, charts) inherit from
this Base so a single metadata object describes the whole schema.
"""

class Base(DeclarativeBase):
    """
    Declarative base for SQLAlchemy models.

    `Base.metadata.create_all` on this class builds every Oracyn table.
    """
    pass
