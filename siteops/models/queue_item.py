"""
Lead processing queue — one row per lead scheduled for automated outreach.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from siteops.database import Base


class LeadProcessingQueueItem(Base):
    __tablename__ = 'lead_processing_queue'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False)
    status = Column(Text, nullable=False, default='scheduled')  # scheduled → processing → completed | failed
    scheduled_send_at = Column(DateTime(timezone=True), nullable=False)
    email_draft_id = Column(Integer, ForeignKey('email_drafts.id', ondelete='SET NULL'), nullable=True)
    suppressed = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_queue_status_scheduled', 'status', 'scheduled_send_at'),
    )
