from typing import Any, Optional


class SpotifyError(Exception):
    """Base class for every error raised by the spotify_api package."""


class ConfigurationError(SpotifyError):
    """Client identity secrets (or another required setting) are missing."""


class NoCredentialError(SpotifyError):
    """No refresh credential stored: the user has not completed authorization."""

    def __init__(self, message: str = "No refresh_token stored. Visit /auth/login to connect Spotify."):
        super().__init__(message)


class SpotifyAPIError(SpotifyError):
    """Non-2xx upstream response (or transport failure, reported as status 500)."""

    def __init__(self, status: int, message: str, raw_body: Any = None):
        super().__init__(message)
        self.status = int(status)
        self.message = message
        self.raw_body = raw_body

    def __str__(self) -> str:
        return f"Spotify API error {self.status}: {self.message}"

    @classmethod
    def from_response(cls, status_code: int, data: Any, reason: Optional[str] = None) -> "SpotifyAPIError":
        """Build an error preferring the status/message embedded in the upstream payload."""
        status = status_code
        message = None

        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict):
                if isinstance(err.get("status"), int) and not isinstance(err.get("status"), bool):
                    status = err["status"]
                if err.get("message"):
                    message = str(err["message"])
            if message is None and data.get("error_description"):
                message = str(data["error_description"])

        if not message:
            message = reason or f"HTTP {status_code}"

        return cls(status, message, data)
