"""
SiteAudit model — one PageSpeed run for a lead's website.

Rows are immutable once written apart from the ``is_latest`` flag and the
cached ``insights`` list.
"""
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from siteops.database import Base

SCORE_FIELDS = ('performance', 'accessibility', 'seo', 'best_practices')


class SiteAudit(Base):
    __tablename__ = 'site_audits'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False)
    url = Column(Text, nullable=False)
    performance = Column(Integer, nullable=True)
    accessibility = Column(Integer, nullable=True)
    seo = Column(Integer, nullable=True)
    best_practices = Column(Integer, nullable=True)
    lcp = Column(Float, nullable=True)   # seconds
    cls = Column(Float, nullable=True)
    inp = Column(Float, nullable=True)   # milliseconds
    raw_json = Column(JSON, nullable=True)
    insights = Column(JSON, nullable=True)
    is_latest = Column(Boolean, nullable=False, default=True)
    audit_run_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_site_audits_lead_latest', 'lead_id', 'is_latest'),
        Index('ix_site_audits_url_run_at', 'url', 'audit_run_at'),
    )

    @property
    def scores(self):
        return {name: getattr(self, name) for name in SCORE_FIELDS}

    @property
    def core_web_vitals(self):
        return {'lcp': self.lcp, 'cls': self.cls, 'inp': self.inp}
