from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import CareRecipient, Caregiver, User

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    id: int
    role: str  # family_admin | caregiver
    name: Optional[str] = None
    care_recipient_id: Optional[int] = None  # caregivers only

    @property
    def is_caregiver(self) -> bool:
        return self.role == "caregiver"


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    """
    Resolves the bearer token to a family user or a caregiver.
    Missing, malformed or expired tokens, and deactivated accounts, are a 401.
    """
    if not credentials:
        raise HTTPException(status_code=401, detail="Missing Authentication Header")

    claims = decode_access_token(credentials.credentials)
    if not claims or "sub" not in claims:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    subject_id = int(claims["sub"])
    if claims.get("role") == "caregiver":
        caregiver = db.query(Caregiver).filter(Caregiver.id == subject_id).first()
        if not caregiver or not caregiver.active:
            raise HTTPException(status_code=401, detail="Caregiver account is inactive")
        return Principal(
            id=caregiver.id,
            role="caregiver",
            name=caregiver.name,
            care_recipient_id=caregiver.care_recipient_id,
        )

    user = db.query(User).filter(User.id == subject_id).first()
    if not user or not user.active:
        raise HTTPException(status_code=401, detail="User account is inactive")
    return Principal(id=user.id, role=user.role, name=user.name)


def require_caregiver(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_caregiver:
        raise HTTPException(status_code=403, detail="Only caregivers can do this")
    return principal


def require_family(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.is_caregiver:
        raise HTTPException(status_code=403, detail="Only family members can do this")
    return principal


def get_accessible_recipient(db: Session, principal: Principal, care_recipient_id: int) -> CareRecipient:
    """Ownership check shared by every recipient-scoped route (404 before 403)."""
    recipient = db.query(CareRecipient).filter(CareRecipient.id == care_recipient_id).first()
    if not recipient:
        raise HTTPException(status_code=404, detail="Care recipient not found")

    if principal.is_caregiver:
        allowed = principal.care_recipient_id == recipient.id
    else:
        allowed = recipient.family_admin_id == principal.id
    if not allowed:
        raise HTTPException(status_code=403, detail="No access to this care recipient")
    return recipient
