"""Tests for network-free URL validation."""

import pytest

from solarpunklist.services.validation_service import (
    ImageUrlValidator,
    SubmissionUrlValidator,
    ValidationResult,
)


class TestImageUrlValidator:
    """Test image URL noise filtering."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = ImageUrlValidator()

    def test_valid_photo(self):
        result = self.validator.validate("https://findhorn.org/uploads/2022/the-park.jpg")
        assert result == ValidationResult(True, "ok")

    def test_too_short(self):
        assert self.validator.validate("a.jpg").reason == "too_short"
        assert self.validator.validate(None).reason == "too_short"

    def test_relative_url_unparseable(self):
        assert self.validator.validate("/uploads/the-park.jpg").reason == "unparseable"

    def test_tracking_pixel(self):
        result = self.validator.validate("https://example.org/tracking/1x1.png")
        assert result.reason.startswith("noise_pattern:")

    def test_logo(self):
        assert self.validator.validate("https://example.org/media/LogoMain.jpg").reason == "logo"

    def test_extension_with_query_string(self):
        assert self.validator.validate("https://example.org/art/drawing.svg?v=2").reason == "unsupported_extension"

    def test_icon_filename(self):
        assert self.validator.validate("https://example.org/img/leaf-icon.png").reason == "icon_filename"

    def test_section_icon_allowed(self):
        assert self.validator.is_valid("https://example.org/img/section-icon-garden.jpg")

    def test_icon_in_directory_allowed(self):
        assert self.validator.is_valid("https://example.org/icons-and-photos/garden.jpg")


class TestSubmissionUrlValidator:
    """Test the public submission URL guard."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = SubmissionUrlValidator()

    @pytest.mark.parametrize(
        "url",
        ["https://siebenlinden.org", "http://www.tamera.org/en/", "https://8.8.8.8/page"],
    )
    def test_public_urls_accepted(self, url):
        assert self.validator.validate(url).is_valid

    def test_missing(self):
        assert self.validator.validate("").reason == "A URL is required"

    @pytest.mark.parametrize("url", ["ftp://example.org/file", "javascript:alert(1)", "example.org"])
    def test_wrong_scheme(self, url):
        assert self.validator.validate(url).reason == "URL must start with http:// or https://"

    def test_no_host(self):
        assert not self.validator.validate("https://").is_valid

    @pytest.mark.parametrize(
        "url",
        [
            "http://localhost:8000/admin",
            "http://169.254.169.254/latest/meta-data",
            "http://metadata.google.internal/",
            "http://printer.local/",
            "http://10.0.0.5/",
            "http://192.168.1.1/",
            "http://127.0.0.1:5432/",
            "http://[::1]/",
        ],
    )
    def test_internal_hosts_blocked(self, url):
        result = self.validator.validate(url)
        assert not result.is_valid
        assert result.reason == "This URL cannot be used. Please provide a public website URL."
