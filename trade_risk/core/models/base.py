"""SQLAlchemy 2.0 DeclarativeBase with consistent naming conventions.

All models inherit from Base. The naming convention ensures Alembic
can reliably manage constraints across all tables.
"""

from sqlalchemy import BigInteger, Integer, MetaData, Numeric
from sqlalchemy.orm import DeclarativeBase

# Naming conventions for Alembic constraint management
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# BIGINT identity on PostgreSQL; SQLite only autoincrements INTEGER PKs.
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# Fixed-scale column types matching trade_risk.engine.money
Money = Numeric(19, 4)
Ratio = Numeric(19, 8)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    metadata = MetaData(naming_convention=convention)
