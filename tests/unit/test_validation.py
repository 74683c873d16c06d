"""Tests for input validation."""

import pytest

from homedash.core.validation import ServiceURLValidator, TargetValidator


class TestTargetValidator:
    """Tests for acquisition target validation."""

    @pytest.fixture
    def validator(self) -> TargetValidator:
        return TargetValidator()

    @pytest.mark.parametrize(
        "target",
        [
            "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M",
            "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC",
            "https://open.spotify.com/album/4aawyAB9vmqN3uQ7FjRGTy",
            "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC?si=abc123",
        ],
    )
    def test_valid_targets(self, validator: TargetValidator, target: str) -> None:
        result = validator.validate(target)

        assert result.is_valid
        assert result.sanitized_value == target
        assert result.error_message is None

    @pytest.mark.parametrize(
        "target",
        [
            "http://open.spotify.com/playlist/abc",
            "https://open.spotify.com/artist/0OdUWJ0sBjDrqHygGUXeCF",
            "https://open.spotify.com/playlist/",
            "https://evil.example/https://open.spotify.com/track/abc",
            "https://open.spotify.com.evil.example/track/abc",
            "not a url",
        ],
    )
    def test_invalid_targets(self, validator: TargetValidator, target: str) -> None:
        result = validator.validate(target)

        assert not result.is_valid
        assert result.error_message

    @pytest.mark.parametrize("target", [None, ""])
    def test_missing_target(self, validator: TargetValidator, target: object) -> None:
        result = validator.validate(target)  # type: ignore[arg-type]

        assert not result.is_valid
        assert result.error_message == "A valid Spotify Playlist, Track, or Album URL is required."

    def test_surrounding_whitespace_is_stripped(self, validator: TargetValidator) -> None:
        result = validator.validate("  https://open.spotify.com/album/abc123  ")

        assert result.is_valid
        assert result.sanitized_value == "https://open.spotify.com/album/abc123"

    def test_embedded_whitespace_rejected(self, validator: TargetValidator) -> None:
        result = validator.validate("https://open.spotify.com/album/abc123 --output /etc")

        assert not result.is_valid
        assert "whitespace" in (result.error_message or "")

    def test_control_characters_rejected(self, validator: TargetValidator) -> None:
        assert not validator.validate("https://open.spotify.com/album/abc\x00def").is_valid

    def test_too_long(self, validator: TargetValidator) -> None:
        target = "https://open.spotify.com/track/" + "a" * TargetValidator.MAX_TARGET_LENGTH

        result = validator.validate(target)

        assert not result.is_valid
        assert "maximum length" in (result.error_message or "")


class TestServiceURLValidator:
    """Tests for service card URL validation."""

    @pytest.fixture
    def validator(self) -> ServiceURLValidator:
        return ServiceURLValidator()

    @pytest.mark.parametrize(
        "url",
        ["http://192.168.1.10:8096", "https://nas.local/", "HTTP://router.lan"],
    )
    def test_valid_urls(self, validator: ServiceURLValidator, url: str) -> None:
        assert validator.validate(url).is_valid

    def test_url_is_stripped(self, validator: ServiceURLValidator) -> None:
        assert validator.validate(" http://nas.local ").sanitized_value == "http://nas.local"

    @pytest.mark.parametrize(
        "url,message",
        [
            ("", "URL is required"),
            ("ftp://nas.local", "http or https"),
            ("javascript:alert(1)", "http or https"),
            ("http://", "host"),
        ],
    )
    def test_invalid_urls(self, validator: ServiceURLValidator, url: str, message: str) -> None:
        result = validator.validate(url)

        assert not result.is_valid
        assert message in (result.error_message or "")
