from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class User(Base):
    """
    The Family Account Holder (family_admin).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String)
    role = Column(String, default="family_admin", nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    care_recipients = relationship("CareRecipient", back_populates="family_admin")


class CareRecipient(Base):
    """
    The elderly family member receiving care.
    """
    __tablename__ = "care_recipients"

    id = Column(Integer, primary_key=True, index=True)
    family_admin_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String)
    condition = Column(String)  # e.g. "Progressive Supranuclear Palsy"
    location = Column(String)
    emergency_contact = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    family_admin = relationship("User", back_populates="care_recipients")
    caregivers = relationship("Caregiver", back_populates="care_recipient")
    care_logs = relationship("CareLog", back_populates="care_recipient")


class Caregiver(Base):
    """
    The helper filling in the daily forms. Logs in with username + 6-digit PIN.
    """
    __tablename__ = "caregivers"

    id = Column(Integer, primary_key=True, index=True)
    care_recipient_id = Column(Integer, ForeignKey("care_recipients.id"), nullable=False)
    name = Column(String, nullable=False)
    username = Column(String, unique=True, index=True)
    phone = Column(String)
    language = Column(String, default="en", nullable=False)
    pin_hash = Column(String, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    care_recipient = relationship("CareRecipient", back_populates="caregivers")
