"""Owner business profile used on invoices and outgoing emails."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.core.security import get_current_user
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.user import OwnerSettingsRead, OwnerSettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=OwnerSettingsRead)
async def get_owner_settings(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("", response_model=OwnerSettingsRead)
def update_owner_settings(
    payload: OwnerSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "currency" and value is None:
            continue
        setattr(current_user, field, value)
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return current_user
