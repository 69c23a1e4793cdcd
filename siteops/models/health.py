"""
Health check definitions and the append-only event log they produce.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from siteops.database import Base

CHECK_TYPES = ('uptime', 'health_api', 'ssl', 'cms', 'form', 'seo')


class HealthCheck(Base):
    __tablename__ = 'health_checks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey('monitored_sites.id', ondelete='CASCADE'), nullable=False, index=True)
    check_type = Column(Text, nullable=False)
    target = Column(Text, nullable=False)  # absolute URL or path on primary_domain
    timeout_ms = Column(Integer, nullable=False, default=10000)
    expected_status = Column(Integer, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)


class HealthEvent(Base):
    __tablename__ = 'health_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey('monitored_sites.id', ondelete='CASCADE'), nullable=False)
    check_id = Column(Integer, ForeignKey('health_checks.id', ondelete='SET NULL'), nullable=True)
    check_type = Column(Text, nullable=False)
    result = Column(Text, nullable=False)  # ok / warn / fail
    latency_ms = Column(Integer, nullable=True)
    http_status = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    raw_payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_health_events_site_created', 'site_id', 'created_at'),
    )
