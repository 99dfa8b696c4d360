"""
Database session management (SQLAlchemy)
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, UniqueConstraint, create_engine, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from bestreward.config import settings


class Base(DeclarativeBase):
    pass


class QuotaRow(Base):
    """
    Quota usage for one reward config, optionally paired with a payment method.

    ``payment_method_id`` is stored as an empty string when there is no pairing,
    so the unique key also holds for unpaired rows.
    """
    __tablename__ = "quota_states"
    __table_args__ = (UniqueConstraint("reward_config_id", "payment_method_id", name="uq_quota_key"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    reward_config_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payment_method_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    used_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    current_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    last_refresh_marker: Mapped[str | None] = mapped_column(String(32), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


_engine = None
_SessionLocal = None


def get_engine() -> Engine:
    """Get or create SQLAlchemy engine (singleton)"""
    global _engine
    if _engine is None:
        _engine = create_engine(settings.database_url, pool_pre_ping=True)
        Base.metadata.create_all(_engine)
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create session factory (singleton)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _SessionLocal
