"""SQLAlchemy model for user accounts and their engagement counters."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from studymate.db.session import Base
from studymate.db.time import UTCDateTime, utcnow


class User(Base):
    """Account owned by the surrounding application.

    Only the aggregate counters are maintained here; they are updated
    server-side when a completed session is cleaned up.
    """

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)

    sessions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Running mean over total_reviews ratings.
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
