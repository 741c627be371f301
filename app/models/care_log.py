from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base


def utcnow():
    return datetime.now(timezone.utc)


class CareLog(Base):
    """
    One daily care record per care recipient per date.

    All care data (vitals, meals, medications, safety checks...) lives in the
    `data` JSON column keyed by its wire name, because the set of fields varies
    by section and keeps growing.
    """
    __tablename__ = "care_logs"
    __table_args__ = (UniqueConstraint("care_recipient_id", "log_date", name="uq_care_log_recipient_date"),)

    id = Column(Integer, primary_key=True, index=True)
    care_recipient_id = Column(Integer, ForeignKey("care_recipients.id"), nullable=False, index=True)
    caregiver_id = Column(Integer, ForeignKey("caregivers.id"))
    log_date = Column(Date, nullable=False)
    status = Column(String, default="draft", nullable=False)  # draft, submitted, invalidated
    submitted_at = Column(DateTime(timezone=True))
    invalidated_at = Column(DateTime(timezone=True))
    invalidated_by = Column(Integer, ForeignKey("users.id"))
    invalidation_reason = Column(String)

    # {"morning": {"submittedAt": "...", "submittedBy": "..."}, ...}
    completed_sections = Column(JSON, default=dict)
    data = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    care_recipient = relationship("CareRecipient", back_populates="care_logs")
    audit_entries = relationship("CareLogAudit", back_populates="care_log", order_by="CareLogAudit.id")


class CareLogAudit(Base):
    """
    Append-only trail of create, update, submit and invalidate events.
    Rows are never updated or deleted.
    """
    __tablename__ = "care_log_audit"

    id = Column(Integer, primary_key=True, index=True)
    care_log_id = Column(Integer, ForeignKey("care_logs.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False)  # created, updated, section_submitted, submitted, invalidated
    section = Column(String)
    actor_id = Column(Integer)
    actor_name = Column(String)  # denormalized so history survives caregiver renames
    changes = Column(JSON)  # {field: {"old": ..., "new": ...}}
    timestamp = Column(DateTime(timezone=True), default=utcnow)

    care_log = relationship("CareLog", back_populates="audit_entries")


class CareLogView(Base):
    """Last time a family user looked at a care log ("New Changes" badge)."""
    __tablename__ = "care_log_views"
    __table_args__ = (UniqueConstraint("care_log_id", "user_id", name="uq_care_log_view"),)

    id = Column(Integer, primary_key=True, index=True)
    care_log_id = Column(Integer, ForeignKey("care_logs.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    viewed_at = Column(DateTime(timezone=True), default=utcnow)


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    care_recipient_id = Column(Integer, ForeignKey("care_recipients.id"), nullable=False, index=True)
    alert_type = Column(String, nullable=False)  # emergency, fall, missed_medication, vitals_anomaly, trend_warning
    severity = Column(String, nullable=False)  # low, medium, high, critical
    message = Column(String, nullable=False)
    acknowledged = Column(Boolean, default=False, nullable=False)
    acknowledged_at = Column(DateTime(timezone=True))
    acknowledged_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), default=utcnow)
