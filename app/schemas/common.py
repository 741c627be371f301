from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire format is camelCase (careRecipientId, logDate...), Python stays snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- Auth ---
class SignupRequest(CamelModel):
    email: str
    name: str = Field(min_length=2)
    password: str = Field(min_length=8)
    phone: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class CaregiverLoginRequest(CamelModel):
    """Caregivers log in with either their username or their id, plus the PIN."""
    caregiver_id: Optional[int] = None
    username: Optional[str] = None
    pin: str = Field(pattern=r"^\d{6}$")

    @model_validator(mode="after")
    def check_identity(self):
        if self.caregiver_id is None and not self.username:
            raise ValueError("Either caregiverId or username is required")
        return self


class UserResponse(CamelModel):
    id: int
    email: str
    name: str
    role: str


# --- Care Recipients ---
class CareRecipientBase(CamelModel):
    name: str = Field(min_length=1)
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    condition: Optional[str] = None
    location: Optional[str] = None
    emergency_contact: Optional[str] = None


class CareRecipientCreate(CareRecipientBase):
    pass


class CareRecipientResponse(CareRecipientBase):
    id: int
    family_admin_id: int


# --- Caregivers ---
class CaregiverCreate(CamelModel):
    care_recipient_id: int
    name: str = Field(min_length=2)
    phone: Optional[str] = None
    language: str = "en"
    username: Optional[str] = None  # generated when omitted


class CaregiverResponse(CamelModel):
    id: int
    care_recipient_id: int
    name: str
    username: Optional[str] = None
    phone: Optional[str] = None
    language: str
    active: bool


class CaregiverCreatedResponse(CaregiverResponse):
    # Plain PIN is only ever returned once, so the family can share it
    pin: str


class AuthResponse(CamelModel):
    token: str
    user: Optional[UserResponse] = None
    caregiver: Optional[CaregiverResponse] = None
    care_recipient: Optional[CareRecipientResponse] = None


# --- Alerts ---
AlertType = Literal["emergency", "fall", "missed_medication", "vitals_anomaly", "trend_warning"]
AlertSeverity = Literal["low", "medium", "high", "critical"]


class AlertCreate(CamelModel):
    care_recipient_id: int
    alert_type: AlertType
    severity: AlertSeverity
    message: str = Field(min_length=1)


class AlertResponse(CamelModel):
    id: int
    care_recipient_id: int
    alert_type: str
    severity: str
    message: str
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
