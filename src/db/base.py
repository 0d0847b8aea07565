from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Record store tables."""


class VectorBase(DeclarativeBase):
    """Vector index tables. Created lazily on first namespace resolution."""
