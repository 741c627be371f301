import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_accessible_recipient, require_family
from app.core.security import generate_pin, hash_secret
from app.db.session import get_db
from app.models.user import Caregiver
from app.schemas.common import CaregiverCreate, CaregiverCreatedResponse, CaregiverResponse
from app.services.usernames import generate_username, is_valid_username

router = APIRouter()
logger = logging.getLogger(__name__)

USERNAME_ATTEMPTS = 10


def _pick_username(db: Session, requested: str = None) -> str:
    if requested:
        username = requested.strip().lower()
        if not is_valid_username(username):
            raise HTTPException(
                status_code=400,
                detail="Username must be 5-30 characters: lowercase letters, digits and inner hyphens",
            )
        if db.query(Caregiver).filter(Caregiver.username == username).first():
            raise HTTPException(status_code=409, detail="Username already taken")
        return username

    for _ in range(USERNAME_ATTEMPTS):
        username = generate_username()
        if not db.query(Caregiver).filter(Caregiver.username == username).first():
            return username
    raise HTTPException(status_code=409, detail="Could not generate a unique username, please choose one")


@router.post("", response_model=CaregiverCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_caregiver(
    payload: CaregiverCreate,
    principal: Principal = Depends(require_family),
    db: Session = Depends(get_db),
):
    """
    Creates a caregiver login for one of the family's care recipients.
    The plain PIN is in this response only; we store the hash.
    """
    get_accessible_recipient(db, principal, payload.care_recipient_id)

    pin = generate_pin()
    caregiver = Caregiver(
        care_recipient_id=payload.care_recipient_id,
        name=payload.name,
        phone=payload.phone,
        language=payload.language,
        username=_pick_username(db, payload.username),
        pin_hash=hash_secret(pin),
        created_by=principal.id,
    )
    db.add(caregiver)
    db.commit()
    db.refresh(caregiver)
    logger.info(f"Created caregiver {caregiver.id} ({caregiver.username}) for recipient {caregiver.care_recipient_id}")

    response = CaregiverResponse.model_validate(caregiver).model_dump()
    response["pin"] = pin
    return response


@router.get("/recipient/{care_recipient_id}", response_model=list[CaregiverResponse])
def list_caregivers(
    care_recipient_id: int,
    principal: Principal = Depends(require_family),
    db: Session = Depends(get_db),
):
    get_accessible_recipient(db, principal, care_recipient_id)
    return db.query(Caregiver).filter(Caregiver.care_recipient_id == care_recipient_id).all()
