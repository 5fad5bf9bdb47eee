"""Service for the owner's firm profile.

Provides per-owner access to FirmProfile with patch-style updates.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from karat.db.models import FirmProfile, utc_now_iso
from karat.errors.domain import FirmProfileMissingError

logger = logging.getLogger(__name__)

# Fields that can be updated via patch
_MUTABLE_FIELDS = {"firm_name", "firm_address", "firm_phone", "firm_gstin"}


class FirmProfileService:
    """CRUD service for FirmProfile, one per owner."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, owner_id: str) -> FirmProfile | None:
        """Return the owner's profile, or None."""
        return (
            self._db.query(FirmProfile)
            .filter(FirmProfile.owner_id == owner_id)
            .first()
        )

    def require(self, owner_id: str) -> FirmProfile:
        """Return the owner's profile.

        Raises:
            FirmProfileMissingError: If the owner has not configured one.
        """
        profile = self.get(owner_id)
        if profile is None:
            raise FirmProfileMissingError(owner_id)
        return profile

    def upsert(self, owner_id: str, patch: dict[str, Any]) -> FirmProfile:
        """Create or patch the owner's profile.

        Raises:
            ValueError: If patch contains unknown field names, or a new
                profile has no firm_name.
        """
        unknown = set(patch.keys()) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown firm profile fields: {unknown}")

        profile = self.get(owner_id)
        if profile is None:
            if not patch.get("firm_name"):
                raise ValueError("firm_name is required")
            profile = FirmProfile(owner_id=owner_id, **patch)
            self._db.add(profile)
            self._db.flush()
            logger.info("Created firm profile for owner %s", owner_id)
            return profile

        for key, value in patch.items():
            setattr(profile, key, value)
        profile.updated_at = utc_now_iso()
        self._db.flush()
        return profile
