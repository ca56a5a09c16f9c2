from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase


_PSYCOPG_SCHEMES = ("postgres://", "postgresql://")


class Base(DeclarativeBase):
    pass


def normalize_dsn(dsn: str) -> str:
    """Plain postgres URLs are routed to the psycopg 3 driver."""
    for scheme in _PSYCOPG_SCHEMES:
        if dsn.startswith(scheme):
            return "postgresql+psycopg://" + dsn[len(scheme):]
    return dsn


@lru_cache(maxsize=4)
def get_engine(dsn: str):
    return create_engine(normalize_dsn(dsn), future=True, pool_pre_ping=True)


def create_schema(engine) -> None:
    # Registers the tables on Base.metadata before creating them.
    from auth_api.infrastructure.db.models import auth  # noqa: F401

    Base.metadata.create_all(engine)
