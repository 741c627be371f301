from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_accessible_recipient, get_current_principal, require_family
from app.db.session import get_db
from app.models.user import CareRecipient
from app.schemas.common import CareRecipientCreate, CareRecipientResponse

router = APIRouter()


@router.post("", response_model=CareRecipientResponse, status_code=status.HTTP_201_CREATED)
def create_care_recipient(
    recipient: CareRecipientCreate,
    principal: Principal = Depends(require_family),
    db: Session = Depends(get_db),
):
    db_recipient = CareRecipient(family_admin_id=principal.id, **recipient.model_dump())
    db.add(db_recipient)
    db.commit()
    db.refresh(db_recipient)
    return db_recipient


@router.get("", response_model=list[CareRecipientResponse])
def list_care_recipients(principal: Principal = Depends(require_family), db: Session = Depends(get_db)):
    """List all care recipients managed by the logged-in family admin"""
    return db.query(CareRecipient).filter(CareRecipient.family_admin_id == principal.id).all()


@router.get("/{care_recipient_id}", response_model=CareRecipientResponse)
def get_care_recipient(
    care_recipient_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Get a single care recipient (family owner or the assigned caregiver)"""
    return get_accessible_recipient(db, principal, care_recipient_id)
