"""
URL validation service.

Cheap, network-free checks applied before any request is made: image URLs
that are almost certainly not photographs, and submitted URLs that must not
be fetched from the server.
"""

import ipaddress
from dataclasses import dataclass
from urllib.parse import urlparse


@dataclass
class ValidationResult:
    """Result of URL validation."""
    is_valid: bool
    reason: str


class ImageUrlValidator:
    """Rejects image URLs that point at icons, logos, trackers and similar noise."""

    MIN_URL_LENGTH = 10

    # Substrings that identify non-photographic or tracking assets
    REJECT_PATTERNS = [
        "favicon", "spacer", "pixel", "tracking", "analytics",
        "1x1", "blank.jpg", "blank.png", "loading.gif", "loading.png",
        "gravatar.com", "avatar", "wp-content/plugins", "buddyicon",
        "spaceout", "spaceball", "privacyoptions", "rss_icon",
        "wikipedia-logo", "cross.png", "icon-phone", "icon-envelope",
        "gettyimages.com",
    ]

    REJECT_EXTENSIONS = (".svg", ".ico", ".gif")

    def validate(self, url: str | None) -> ValidationResult:
        if not url or len(url) < self.MIN_URL_LENGTH:
            return ValidationResult(False, "too_short")

        try:
            parsed = urlparse(url)
        except ValueError:
            return ValidationResult(False, "unparseable")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return ValidationResult(False, "unparseable")

        lower = url.lower()

        for pattern in self.REJECT_PATTERNS:
            if pattern in lower:
                return ValidationResult(False, f"noise_pattern:{pattern}")

        if "logo" in lower:
            return ValidationResult(False, "logo")

        path = parsed.path.lower()
        if path.endswith(self.REJECT_EXTENSIONS) or lower.endswith(self.REJECT_EXTENSIONS):
            return ValidationResult(False, "unsupported_extension")

        filename = path.rsplit("/", 1)[-1]
        if "icon" in filename and "section" not in filename:
            return ValidationResult(False, "icon_filename")

        if "badge" in lower and "shield" in lower:
            return ValidationResult(False, "shield_badge")

        return ValidationResult(True, "ok")

    def is_valid(self, url: str | None) -> bool:
        return self.validate(url).is_valid


class SubmissionUrlValidator:
    """Guards the public submission endpoint against fetching internal hosts."""

    BLOCKED_HOSTNAMES = {
        "localhost",
        "0.0.0.0",
        "metadata.google.internal",
        "169.254.169.254",
    }

    BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")

    def validate(self, url: str | None) -> ValidationResult:
        if not url or not isinstance(url, str):
            return ValidationResult(False, "A URL is required")

        try:
            parsed = urlparse(url.strip())
        except ValueError:
            return ValidationResult(False, "Please enter a valid URL (e.g. https://example.com)")

        if parsed.scheme not in ("http", "https"):
            return ValidationResult(False, "URL must start with http:// or https://")

        hostname = (parsed.hostname or "").lower()
        if not hostname:
            return ValidationResult(False, "Please enter a valid URL (e.g. https://example.com)")

        blocked = "This URL cannot be used. Please provide a public website URL."
        if hostname in self.BLOCKED_HOSTNAMES or hostname.endswith(self.BLOCKED_SUFFIXES):
            return ValidationResult(False, blocked)

        try:
            ip = ipaddress.ip_address(hostname)
        except ValueError:
            ip = None
        if ip is not None and (
            ip.is_private or ip.is_loopback or ip.is_link_local
            or ip.is_reserved or ip.is_multicast or ip.is_unspecified
        ):
            return ValidationResult(False, blocked)

        return ValidationResult(True, "ok")
