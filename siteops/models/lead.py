"""
Lead model — one row per prospect who submitted the contact form or booked a call.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime
from sqlalchemy.sql import func

from siteops.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(Text, default='')
    last_name = Column(Text, default='')
    email = Column(Text, nullable=False, index=True)  # stored lowercased
    company_name = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    booked_consult = Column(Boolean, nullable=False, default=False)
    calendly_event_uri = Column(Text, nullable=True, unique=True)
    prep_email_sent_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(Text, nullable=False, default='new')  # new → audited → emailed | suppressed
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self):
        return ' '.join(p for p in (self.first_name, self.last_name) if p)
