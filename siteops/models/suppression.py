"""
Email suppression list and daily send counter.
"""
from sqlalchemy import Column, Integer, Text, Date, DateTime
from sqlalchemy.sql import func

from siteops.database import Base


class EmailSuppression(Base):
    __tablename__ = 'email_suppression'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(Text, nullable=False, unique=True)  # lowercased, stripped
    reason = Column(Text, nullable=True)
    source = Column(Text, nullable=True)
    suppressed_at = Column(DateTime(timezone=True), server_default=func.now())


class DailySendStats(Base):
    __tablename__ = 'daily_send_stats'

    id = Column(Integer, primary_key=True, autoincrement=True)
    day = Column(Date, nullable=False, unique=True)
    emails_sent = Column(Integer, nullable=False, default=0)
