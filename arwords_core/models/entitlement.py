# =============================================================================
# arwords_core/models/entitlement.py
# Offline Dictionary Entitlement Record
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from arwords_core.errors import DataValidationError


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as e:
            raise DataValidationError("Invalid timestamp", field="timestamp", value=value) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class EntitlementRecord:
    """
    Per-user premium access flag.

    `has_access` only grants access while `expires_at` is unset or in the future.
    """
    user_id: str
    has_access: bool
    expires_at: Optional[datetime] = None
    last_synced: Optional[datetime] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if not self.has_access:
            return False
        if self.expires_at is None:
            return True
        return self.expires_at > (now or datetime.now(timezone.utc))

    @classmethod
    def from_remote(cls, row: Mapping[str, Any]) -> EntitlementRecord:
        """Build from a `user_profiles` row."""
        user_id = row.get("user_id")
        if not user_id:
            raise DataValidationError("Missing required field 'user_id'", field="user_id")
        return cls(
            user_id=str(user_id),
            has_access=bool(row.get("has_offline_dictionary_access", False)),
            expires_at=_parse_timestamp(row.get("subscription_valid_until")),
            last_synced=datetime.now(timezone.utc),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> EntitlementRecord:
        """Build from a local `profile` row."""
        return cls(
            user_id=row["user_id"],
            has_access=bool(row["has_access"]),
            expires_at=_parse_timestamp(row["expires_at"]),
            last_synced=_parse_timestamp(row["last_synced"]),
        )

    def to_row(self) -> tuple:
        return (
            self.user_id,
            1 if self.has_access else 0,
            self.expires_at.isoformat() if self.expires_at else None,
            self.last_synced.isoformat() if self.last_synced else None,
        )
