"""Services package for the SolarpunkList research pipeline."""

from solarpunklist.services.discovery_service import DiscoveryService
from solarpunklist.services.image_service import ImageService
from solarpunklist.services.notification_service import (
    NotificationService,
    ResendEmailSender,
    get_email_sender,
)
from solarpunklist.services.openrouter_service import OpenRouterService, get_openrouter_service
from solarpunklist.services.profile_service import ProfileService
from solarpunklist.services.refresh_service import RefreshService
from solarpunklist.services.search_service import SearchService, get_search_service

__all__ = [
    "SearchService",
    "get_search_service",
    "OpenRouterService",
    "get_openrouter_service",
    "ProfileService",
    "DiscoveryService",
    "RefreshService",
    "ImageService",
    "NotificationService",
    "ResendEmailSender",
    "get_email_sender",
]
