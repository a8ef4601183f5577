from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, String

from .base import Base


class Profile(Base):
    """Account profile keyed by the identity provider's user id.

    ``daily_question_count`` is only meaningful for ``last_question_date``;
    any other day reads as zero.
    """

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    email = Column(String(320))
    display_name = Column(String(255))
    avatar_url = Column(String(1024))
    tier = Column(String(16), nullable=False, default="free", server_default="free")
    daily_question_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_question_date = Column(Date)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["Profile"]
