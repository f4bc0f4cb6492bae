"""Public read endpoints plus subscriptions and visit tracking."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from solarpunklist.db.deps import get_db
from solarpunklist.models import Community, VisitStats
from solarpunklist.repositories.community_repository_sqlalchemy import CommunityRepositorySQLAlchemy
from solarpunklist.repositories.subscriber_repository_sqlalchemy import (
    SubscriberRepositorySQLAlchemy,
    VisitRepositorySQLAlchemy,
)
from solarpunklist.routers.deps import get_community_repo
from solarpunklist.schemas.community import (
    StatsResponse,
    SubscribeRequest,
    SubscribeResponse,
    VisitRequest,
)

router = APIRouter()


@router.get("/communities", response_model=list[Community])
def list_communities(repo: CommunityRepositorySQLAlchemy = Depends(get_community_repo)):
    """Published communities, highest score first."""
    return repo.list_published()


@router.get("/communities/{slug}", response_model=Community)
def get_community(slug: str, repo: CommunityRepositorySQLAlchemy = Depends(get_community_repo)):
    community = repo.get_by_slug(slug)
    if not community:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Community not found")
    return community


@router.get("/stats", response_model=StatsResponse)
def get_stats(repo: CommunityRepositorySQLAlchemy = Depends(get_community_repo)):
    return StatsResponse(total_communities=repo.count())


@router.post("/subscribe", response_model=SubscribeResponse)
def subscribe(payload: SubscribeRequest, db: Session = Depends(get_db)):
    email = payload.email.strip()
    if "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid email is required")
    stored = SubscriberRepositorySQLAlchemy(db).add_subscriber(email)
    return SubscribeResponse(email=stored)


@router.post("/visits", status_code=status.HTTP_204_NO_CONTENT)
def track_visit(payload: VisitRequest, db: Session = Depends(get_db)):
    VisitRepositorySQLAlchemy(db).track_visit(payload.path)


@router.get("/visits/stats", response_model=VisitStats)
def visit_stats(db: Session = Depends(get_db)):
    return VisitRepositorySQLAlchemy(db).get_visit_stats()
