import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.security import create_access_token, hash_secret, verify_secret
from app.db.session import get_db
from app.models.user import Caregiver, User
from app.schemas.common import AuthResponse, CaregiverLoginRequest, LoginRequest, SignupRequest

router = APIRouter()
logger = logging.getLogger(__name__)


# --- 1. FAMILY SIGNUP ---
@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    """Registers a family admin and logs them straight in."""
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=email,
        name=payload.name,
        phone=payload.phone,
        hashed_password=hash_secret(payload.password),
        role="family_admin",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered family admin {user.id}")

    return {"token": create_access_token(user.id, user.role), "user": user}


# --- 2. FAMILY LOGIN ---
@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.strip().lower()).first()
    if not user or not verify_secret(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.active:
        raise HTTPException(status_code=401, detail="Account is deactivated")

    recipient = user.care_recipients[0] if user.care_recipients else None
    return {
        "token": create_access_token(user.id, user.role),
        "user": user,
        "care_recipient": recipient,
    }


# --- 3. CAREGIVER PIN LOGIN ---
@router.post("/caregiver/login", response_model=AuthResponse)
def caregiver_login(payload: CaregiverLoginRequest, db: Session = Depends(get_db)):
    """
    1. Look the caregiver up by username (preferred) or id.
    2. Check the PIN against the stored hash.
    3. Issue a token scoped to the caregiver's care recipient.
    """
    query = db.query(Caregiver)
    if payload.username:
        caregiver = query.filter(Caregiver.username == payload.username.strip().lower()).first()
    else:
        caregiver = query.filter(Caregiver.id == payload.caregiver_id).first()

    if not caregiver or not verify_secret(payload.pin, caregiver.pin_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not caregiver.active:
        raise HTTPException(status_code=401, detail="Caregiver account is deactivated")

    token = create_access_token(caregiver.id, "caregiver", {"rid": caregiver.care_recipient_id})
    logger.info(f"Caregiver {caregiver.id} logged in")
    return {
        "token": token,
        "caregiver": caregiver,
        "care_recipient": caregiver.care_recipient,
    }
