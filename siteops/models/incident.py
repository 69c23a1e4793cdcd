"""
Incident and Notification models.

A Notification row is written for every delivery attempt, successful or not.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from siteops.database import Base


class Incident(Base):
    __tablename__ = 'incidents'

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey('monitored_sites.id', ondelete='CASCADE'), nullable=False, index=True)
    severity = Column(Text, nullable=False)  # sev-1 / sev-2 / sev-3
    status = Column(Text, nullable=False, default='open')  # open → monitoring → resolved
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    trigger_check_type = Column(Text, nullable=True)
    trigger_event_ids = Column(JSON, default=list)
    opened_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey('incidents.id', ondelete='CASCADE'), nullable=False, index=True)
    site_id = Column(Integer, ForeignKey('monitored_sites.id', ondelete='CASCADE'), nullable=False)
    recipient = Column(Text, nullable=False)  # internal / client
    channel = Column(Text, nullable=False, default='email')
    recipient_address = Column(Text, nullable=True)
    subject = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    delivered = Column(Boolean, nullable=False, default=False)
    delivery_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
