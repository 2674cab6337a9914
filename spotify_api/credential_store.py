import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from utils.json_files import read_json_file, write_json_file


DEFAULT_TOKENS_PATH = os.path.join("data", "tokens.json")


@dataclass(frozen=True)
class CredentialRecord:
    """Long-lived credential persisted by CredentialStore."""

    refresh_token: str = ""
    scope: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token.strip())

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "CredentialRecord":
        refresh_token = data.get("refresh_token")
        scope = data.get("scope")
        updated_at = data.get("updated_at")
        return CredentialRecord(
            refresh_token=refresh_token if isinstance(refresh_token, str) else "",
            scope=scope if isinstance(scope, str) else None,
            updated_at=updated_at if isinstance(updated_at, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refresh_token": self.refresh_token,
            "scope": self.scope,
            "updated_at": self.updated_at,
        }


class CredentialStore:
    """Reads and writes the refresh credential file.

    Only one refresh credential is live at a time; saving replaces the old one.
    """

    def __init__(self, path: str = DEFAULT_TOKENS_PATH):
        self.path = path

    def load(self) -> CredentialRecord:
        """Load the stored record. Missing or corrupt files yield an empty record."""
        data = read_json_file(self.path, fallback={})
        if not isinstance(data, dict):
            return CredentialRecord()
        return CredentialRecord.from_dict(data)

    def save(self, record: CredentialRecord) -> None:
        write_json_file(self.path, record.to_dict())

    def update_from_token_response(self, payload: Dict[str, Any]) -> CredentialRecord:
        """Merge an authorization-code token response into the stored record.

        Spotify may omit refresh_token; the existing one is kept in that case.
        """
        current = self.load()
        refresh_token = payload.get("refresh_token")
        if not isinstance(refresh_token, str) or not refresh_token.strip():
            refresh_token = current.refresh_token

        scope = payload.get("scope")
        record = CredentialRecord(
            refresh_token=refresh_token,
            scope=scope if isinstance(scope, str) else current.scope,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )
        self.save(record)
        return record
