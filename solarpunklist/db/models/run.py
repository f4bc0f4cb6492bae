import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from solarpunklist.db.base import Base, JSONType


class DiscoveryRunORM(Base):
    __tablename__ = "discovery_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    run_date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    queries_executed = Column(Integer, nullable=False, default=0)
    results_found = Column(Integer, nullable=False, default=0)
    duplicates_skipped = Column(Integer, nullable=False, default=0)
    new_communities_added = Column(Integer, nullable=False, default=0)
    errors = Column(JSONType, nullable=True)
    status = Column(String(32), nullable=False, default="pending")


class RefreshRunORM(Base):
    __tablename__ = "refresh_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    run_date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    communities_checked = Column(Integer, nullable=False, default=0)
    content_changes_detected = Column(Integer, nullable=False, default=0)
    stage_changes = Column(Integer, nullable=False, default=0)
    dormant_flagged = Column(Integer, nullable=False, default=0)
    errors = Column(JSONType, nullable=True)
    status = Column(String(32), nullable=False, default="pending")
