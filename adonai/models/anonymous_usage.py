from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint

from .base import Base


class AnonymousUsage(Base):
    """Daily question count per IP address for callers without an account."""

    __tablename__ = "anonymous_usage"
    __table_args__ = (
        UniqueConstraint("ip_address", "usage_date", name="uq_anonymous_usage_ip_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    ip_address = Column(String(64), nullable=False)  # IPv6 or "unknown"
    usage_date = Column(Date, nullable=False)
    question_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["AnonymousUsage"]
