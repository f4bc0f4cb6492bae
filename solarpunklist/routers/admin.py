"""Operator endpoints that trigger the research pipelines."""

from fastapi import APIRouter, Depends

from solarpunklist.models import AuditReport, BackfillReport, DiscoverySummary, RefreshSummary
from solarpunklist.routers.deps import (
    get_discovery_service,
    get_image_service,
    get_refresh_service,
)
from solarpunklist.services import DiscoveryService, ImageService, RefreshService

router = APIRouter(prefix="/admin")


@router.post("/discover", response_model=DiscoverySummary)
async def run_discovery(discovery: DiscoveryService = Depends(get_discovery_service)):
    return await discovery.run_discovery()


@router.post("/refresh", response_model=RefreshSummary)
async def run_refresh(refresh: RefreshService = Depends(get_refresh_service)):
    return await refresh.run_refresh()


@router.post("/backfill-images", response_model=BackfillReport)
async def backfill_images(images: ImageService = Depends(get_image_service)):
    return await images.backfill_all_images()


@router.post("/audit-hero-images", response_model=AuditReport)
async def audit_hero_images(images: ImageService = Depends(get_image_service)):
    return await images.audit_and_fix_hero_images()
