"""Per-request wiring of repositories and pipeline services."""

from collections.abc import AsyncIterator

from fastapi import Depends
from sqlalchemy.orm import Session

from solarpunklist.db.deps import get_db
from solarpunklist.repositories.community_repository_sqlalchemy import CommunityRepositorySQLAlchemy
from solarpunklist.repositories.subscriber_repository_sqlalchemy import SubscriberRepositorySQLAlchemy
from solarpunklist.services import (
    DiscoveryService,
    ImageService,
    NotificationService,
    RefreshService,
)


def get_community_repo(db: Session = Depends(get_db)) -> CommunityRepositorySQLAlchemy:
    return CommunityRepositorySQLAlchemy(db)


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(SubscriberRepositorySQLAlchemy(db))


async def get_image_service(
    repo: CommunityRepositorySQLAlchemy = Depends(get_community_repo),
) -> AsyncIterator[ImageService]:
    service = ImageService(repo)
    try:
        yield service
    finally:
        await service.close()


def get_discovery_service(
    repo: CommunityRepositorySQLAlchemy = Depends(get_community_repo),
    images: ImageService = Depends(get_image_service),
    notifier: NotificationService = Depends(get_notification_service),
) -> DiscoveryService:
    return DiscoveryService(repo, images=images, notifier=notifier)


def get_refresh_service(
    repo: CommunityRepositorySQLAlchemy = Depends(get_community_repo),
) -> RefreshService:
    return RefreshService(repo)
