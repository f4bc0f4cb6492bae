from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from solarpunklist.db.models.subscriber import EmailSubscriberORM, PageVisitORM
from solarpunklist.models import VisitStats


class SubscriberRepositorySQLAlchemy:
    def __init__(self, db: Session):
        self.db = db

    def add_subscriber(self, email: str) -> str:
        """Store a subscriber address; re-subscribing is a no-op."""
        email = email.strip().lower()
        existing = self.db.query(EmailSubscriberORM).filter(EmailSubscriberORM.email == email).one_or_none()
        if existing:
            return existing.email
        orm = EmailSubscriberORM(email=email)
        self.db.add(orm)
        self.db.commit()
        return orm.email

    def list_subscriber_emails(self) -> list[str]:
        rows = self.db.query(EmailSubscriberORM.email).order_by(EmailSubscriberORM.created_at.asc()).all()
        return [row[0] for row in rows]


class VisitRepositorySQLAlchemy:
    def __init__(self, db: Session):
        self.db = db

    def track_visit(self, path: str) -> None:
        self.db.add(PageVisitORM(path=path))
        self.db.commit()

    def get_visit_stats(self, now: datetime | None = None) -> VisitStats:
        total = int(self.db.query(func.count(PageVisitORM.id)).scalar() or 0)
        earliest = self.db.query(func.min(PageVisitORM.visited_at)).scalar()
        if not total or earliest is None:
            return VisitStats(total_visits=0, monthly_average=0)

        now = now or datetime.now(timezone.utc)
        months = max(1, (now.year - earliest.year) * 12 + (now.month - earliest.month) + 1)
        return VisitStats(total_visits=total, monthly_average=round(total / months))
