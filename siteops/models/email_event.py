"""
EmailEvent model — delivery events posted back by the email provider.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON
from sqlalchemy.sql import func

from siteops.database import Base


class EmailEvent(Base):
    __tablename__ = 'email_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_message_id = Column(Text, nullable=False, index=True)
    email_draft_id = Column(Integer, nullable=True)
    lead_id = Column(Integer, nullable=True)
    event_type = Column(Text, nullable=False)
    recipient = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    received_at = Column(DateTime(timezone=True), server_default=func.now())
