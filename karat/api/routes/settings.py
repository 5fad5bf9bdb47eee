"""API routes for the owner's firm profile.

Invoices snapshot these details at creation time, so an owner must have
a profile before the assistant can create invoices.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from karat.api.middleware.auth import require_owner_id
from karat.api.schemas import FirmProfilePatch, FirmProfileResponse
from karat.db.connection import get_db
from karat.services.firm_profile_service import FirmProfileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/firm", response_model=FirmProfileResponse)
def get_firm_profile(
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> FirmProfileResponse:
    """Return the owner's firm profile."""
    profile = FirmProfileService(db).get(owner_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Firm profile not configured")
    return FirmProfileResponse.model_validate(profile)


@router.patch("/firm", response_model=FirmProfileResponse)
def update_firm_profile(
    patch: FirmProfilePatch,
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> FirmProfileResponse:
    """Create or update the owner's firm profile."""
    svc = FirmProfileService(db)
    try:
        profile = svc.upsert(owner_id, patch.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(profile)
    return FirmProfileResponse.model_validate(profile)
