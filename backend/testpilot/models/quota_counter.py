"""
Quota counter model - persisted daily usage of the expensive (live check) path
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from testpilot.core.database import Base


class QuotaCounter(Base):
    """One row per named quota window"""
    __tablename__ = "quota_counters"

    name = Column(String(100), primary_key=True)
    calls = Column(Integer, nullable=False, default=0)
    daily_limit = Column(Integer, nullable=False)
    # Local wall-clock time; the window is a calendar day in local time
    window_start = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return f"<QuotaCounter(name={self.name}, calls={self.calls}/{self.daily_limit}, window_start={self.window_start})>"
