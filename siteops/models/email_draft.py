"""
EmailDraft model — generated outreach email, draft until delivered.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from siteops.database import Base


class EmailDraft(Base):
    __tablename__ = 'email_drafts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False, index=True)
    template = Column(Text, nullable=False)  # high_score / simplified / generated
    subject = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    edited_body = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default='draft')  # draft → sent
    provider_message_id = Column(Text, nullable=True)
    generated_at = Column(DateTime(timezone=True), server_default=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)
