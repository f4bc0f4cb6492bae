import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from solarpunklist.db.base import Base


class EmailSubscriberORM(Base):
    __tablename__ = "email_subscribers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class PageVisitORM(Base):
    __tablename__ = "page_visits"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    path = Column(Text, nullable=False)
    visited_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
