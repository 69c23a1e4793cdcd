"""
MonthlyReport model — one summary per (site, calendar month).
"""
from sqlalchemy import Column, Integer, Float, Text, Date, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from siteops.database import Base


class MonthlyReport(Base):
    __tablename__ = 'monthly_reports'

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey('monitored_sites.id', ondelete='CASCADE'), nullable=False)
    report_month = Column(Date, nullable=False)  # first day of the month
    uptime_percentage = Column(Float, nullable=False, default=100.0)
    total_checks = Column(Integer, nullable=False, default=0)
    incidents_sev1 = Column(Integer, nullable=False, default=0)
    incidents_sev2 = Column(Integer, nullable=False, default=0)
    incidents_sev3 = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False)  # all_clear / attention / action_needed
    summary_bullets = Column(JSON, default=list)
    recipient_email = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('site_id', 'report_month', name='uq_monthly_report_site_month'),
    )
