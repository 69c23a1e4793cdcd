"""
MonitoredSite model — a client website under a monitoring subscription.

``subscription_tier`` decides who is told about incidents (see
siteops.monitoring.notifications).
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from siteops.database import Base


class MonitoredSite(Base):
    __tablename__ = 'monitored_sites'

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_key = Column(Text, nullable=False, unique=True)
    site_name = Column(Text, nullable=False)
    primary_domain = Column(Text, nullable=False)
    environment = Column(Text, nullable=False, default='production')
    status = Column(Text, nullable=False, default='active')  # active / paused
    subscription_tier = Column(Text, nullable=False, default='none')  # none / essentials / care
    client_email = Column(Text, nullable=True)
    internal_email = Column(Text, nullable=True)
    secret = Column(Text, nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    cms_table = Column(Text, nullable=True)
    forms_table = Column(Text, nullable=True)
    last_deploy_at = Column(DateTime(timezone=True), nullable=True)
    deploy_suppression_minutes = Column(Integer, nullable=False, default=10)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
