"""Community submission by URL."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from solarpunklist.exceptions import (
    DuplicateCommunityError,
    InsufficientEvidenceError,
    ResearchError,
)
from solarpunklist.routers.deps import get_discovery_service
from solarpunklist.schemas.community import SubmitCommunityRequest, SubmitCommunityResponse
from solarpunklist.services import DiscoveryService
from solarpunklist.services.validation_service import SubmissionUrlValidator

logger = logging.getLogger(__name__)

router = APIRouter()

_url_validator = SubmissionUrlValidator()


@router.post("/submit-community", response_model=SubmitCommunityResponse)
async def submit_community(
    payload: SubmitCommunityRequest,
    discovery: DiscoveryService = Depends(get_discovery_service),
):
    """Research the community behind a public URL and add it to the directory."""
    url = payload.url.strip()
    check = _url_validator.validate(url)
    if not check.is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.reason)

    try:
        result = await discovery.research_from_url(url)
    except DuplicateCommunityError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except InsufficientEvidenceError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except ResearchError as e:
        logger.error(f"Submit community error for {url}: {e.message}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return SubmitCommunityResponse(slug=result.slug, name=result.name)
