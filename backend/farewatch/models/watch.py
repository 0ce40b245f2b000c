"""Price watch table."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from farewatch.database import Base


class PriceWatch(Base):
    __tablename__ = "price_watches"
    __table_args__ = (
        Index("idx_price_watches_user", "user_id", "created_at"),
        Index("idx_price_watches_active", "active"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, default="anon")
    origin: Mapped[str] = mapped_column(String(10), nullable=False)
    destination: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    trip_type: Mapped[str] = mapped_column(String(20), nullable=False, default="roundtrip")
    flex_days: Mapped[int] = mapped_column(Integer, default=0)
    cabin: Mapped[str] = mapped_column(String(20), default="ECONOMY")
    max_stops: Mapped[int] = mapped_column(Integer, default=1)
    adults: Mapped[int] = mapped_column(Integer, default=1)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    target_usd: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_best_usd: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    last_notified_usd: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    email: Mapped[str | None] = mapped_column(String(320))
    provider: Mapped[str] = mapped_column(String(30), default="amadeus")
    last_provider: Mapped[str | None] = mapped_column(String(30))
    last_source_link: Mapped[str | None] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
