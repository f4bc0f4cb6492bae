"""FastAPI application for the SolarpunkList directory.

Serves the public community directory and the operator endpoints that run
the discovery, refresh and image pipelines.
"""

# Load environment variables before any other imports
from dotenv import load_dotenv

load_dotenv()

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solarpunklist.routers import admin, communities, submissions

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"
API_TITLE = "SolarpunkList API"
PUBLIC_SITE_URL = os.getenv("PUBLIC_BASE_URL", "https://solarpunklist.com").rstrip("/")
API_DESCRIPTION = """
SolarpunkList API.

This API provides endpoints for:
- Browsing researched intentional communities and ecovillages
- Submitting a community by URL for automated research
- Subscribing to new-community announcements
- Running discovery, refresh and image maintenance passes
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log which external services are configured and close shared clients on shutdown."""
    from solarpunklist.services import get_email_sender, get_openrouter_service, get_search_service

    search = get_search_service()
    llm = get_openrouter_service()
    sender = get_email_sender()
    logger.info(f"Search service configured: {search.is_configured}")
    logger.info(f"OpenRouter configured: {llm.is_configured} (model: {llm.model})")
    if not sender.is_configured:
        logger.warning("Email sender not configured - subscriber notifications disabled")
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    await search.close()
    await llm.close()
    await sender.close()
    logger.info("External clients closed")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# Can be overridden via CORS_ORIGINS environment variable (comma-separated list)
_default_origins = [
    "http://localhost:3000",  # Next.js dev server
    "http://127.0.0.1:3000",
    PUBLIC_SITE_URL,
]

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
if _cors_origins_env:
    ALLOWED_ORIGINS = [
        origin.strip() for origin in _cors_origins_env.split(",") if origin.strip()
    ]
else:
    ALLOWED_ORIGINS = _default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, Any]:
    """Service name, version and where to find the directory and pipeline endpoints."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "directory": "/api/communities",
        "pipelines": [
            "/api/admin/discover",
            "/api/admin/refresh",
            "/api/admin/backfill-images",
            "/api/admin/audit-hero-images",
        ],
        "docs": "/docs",
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


app.include_router(communities.router, prefix="/api", tags=["communities"])
app.include_router(submissions.router, prefix="/api", tags=["submissions"])
app.include_router(admin.router, prefix="/api", tags=["admin"])
