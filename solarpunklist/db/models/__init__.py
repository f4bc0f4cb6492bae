from solarpunklist.db.models.community import (
    CommunityImageORM,
    CommunityLinkORM,
    CommunityORM,
    CommunityTagORM,
)
from solarpunklist.db.models.run import DiscoveryRunORM, RefreshRunORM
from solarpunklist.db.models.subscriber import EmailSubscriberORM, PageVisitORM

__all__ = [
    "CommunityORM",
    "CommunityTagORM",
    "CommunityLinkORM",
    "CommunityImageORM",
    "DiscoveryRunORM",
    "RefreshRunORM",
    "EmailSubscriberORM",
    "PageVisitORM",
]
