import copy
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.care_log import CareLog, CareLogAudit, CareLogView
from app.services.progress import evaluate
from app.services.sections import SECTIONS, get_section

logger = logging.getLogger(__name__)

# Dict-valued areas merge one level deep, so the morning form saving
# meals.breakfast does not wipe the lunch the afternoon form already saved.
NESTED_MERGE_KEYS = (
    "meals", "safetyChecks", "hospitalBagStatus", "afternoonRest", "nightSleep", "toileting",
)
TIME_SLOT_ORDER = ("before_breakfast", "after_breakfast", "afternoon", "after_dinner", "before_bedtime")

# Log-level lifecycle: draft -> submitted (locked) -> invalidated (editable again, back to draft on the next save)
DRAFT = "draft"
SUBMITTED = "submitted"
INVALIDATED = "invalidated"


class CareLogStateError(Exception):
    """The requested transition is not allowed from the log's current status."""


class SectionIncompleteError(Exception):
    def __init__(self, section: str, missing_fields: List[str]):
        self.section = section
        self.missing_fields = missing_fields
        super().__init__(f"Section '{section}' is missing: {', '.join(missing_fields)}")


def _slot_index(medication: Dict[str, Any]) -> int:
    slot = medication.get("timeSlot")
    return TIME_SLOT_ORDER.index(slot) if slot in TIME_SLOT_ORDER else len(TIME_SLOT_ORDER)


def merge_medications(existing: List[Dict[str, Any]], incoming: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Incoming entries replace the stored entries of the same time slots; other slots are kept."""
    slots = {medication.get("timeSlot") for medication in incoming}
    kept = [medication for medication in existing if medication.get("timeSlot") not in slots]
    return sorted(kept + list(incoming), key=_slot_index)


def merge_changes(current: Dict[str, Any], changes: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    PATCH semantics for the care data document.

    Returns the merged document and a {key: {"old": ..., "new": ...}} diff of
    the keys whose value actually changed. Keys absent from `changes` are
    left untouched.
    """
    merged = copy.deepcopy(current)
    diff = {}
    for key, new_value in changes.items():
        old_value = current.get(key)
        if key == "medications" and new_value is not None:
            value = merge_medications(old_value or [], new_value)
        elif key in NESTED_MERGE_KEYS and isinstance(new_value, dict) and isinstance(old_value, dict):
            value = {**old_value, **new_value}
        else:
            value = new_value

        if value != old_value:
            merged[key] = value
            diff[key] = {"old": old_value, "new": value}
    return merged, diff


def record_audit(
    db: Session,
    log: CareLog,
    event_type: str,
    actor_id: Optional[int],
    actor_name: Optional[str],
    section: Optional[str] = None,
    changes: Optional[Dict[str, Any]] = None,
) -> CareLogAudit:
    entry = CareLogAudit(
        care_log_id=log.id,
        event_type=event_type,
        section=section,
        actor_id=actor_id,
        actor_name=actor_name,
        changes=changes,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


def find_log(db: Session, care_recipient_id: int, log_date: date) -> Optional[CareLog]:
    return db.query(CareLog).filter(
        CareLog.care_recipient_id == care_recipient_id,
        CareLog.log_date == log_date,
    ).first()


def create_or_get(
    db: Session,
    care_recipient_id: int,
    log_date: date,
    caregiver_id: int,
    actor_name: Optional[str],
    initial: Dict[str, Any],
) -> Tuple[CareLog, bool]:
    """
    At most one care log per recipient per date: an existing record is
    returned (with any initial fields merged in) instead of a duplicate.
    """
    existing = find_log(db, care_recipient_id, log_date)
    if existing:
        if initial:
            apply_update(db, existing, initial, caregiver_id, actor_name)
        return existing, False

    log = CareLog(
        care_recipient_id=care_recipient_id,
        caregiver_id=caregiver_id,
        log_date=log_date,
        status=DRAFT,
        completed_sections={},
        data=initial,
    )
    db.add(log)
    try:
        db.flush()  # need log.id for the audit row
    except IntegrityError:
        # Lost a race with another create for the same day
        db.rollback()
        return find_log(db, care_recipient_id, log_date), False
    record_audit(db, log, "created", caregiver_id, actor_name)
    db.commit()
    db.refresh(log)
    logger.info(f"Created care log {log.id} for recipient {care_recipient_id} on {log_date}")
    return log, True


def apply_update(
    db: Session,
    log: CareLog,
    changes: Dict[str, Any],
    actor_id: Optional[int],
    actor_name: Optional[str],
) -> Dict[str, Any]:
    """
    Partial merge update, last write wins. Returns the diff (empty when nothing changed).
    A submitted log is locked; saving an invalidated log reopens it as a draft.
    """
    if log.status == SUBMITTED:
        raise CareLogStateError("Can only update draft logs")

    reopened = log.status == INVALIDATED
    merged, diff = merge_changes(log.data or {}, changes)
    if not diff and not reopened:
        return diff

    if reopened:
        log.status = DRAFT
    if diff:
        # Reassign (not mutate) so SQLAlchemy notices the JSON column changed
        log.data = merged
        record_audit(db, log, "updated", actor_id, actor_name, changes=diff)
    log.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(log)
    logger.info(f"Updated care log {log.id}: {sorted(diff)}{' (reopened as draft)' if reopened else ''}")
    return diff


def submit_section(
    db: Session,
    log: CareLog,
    section_name: str,
    actor_id: int,
    actor_name: Optional[str],
) -> CareLog:
    """
    Marks a section as shared with the family.

    Re-submitting is allowed: the timestamp is refreshed and another audit
    entry is appended. The stored record must satisfy the same required
    fields the caregiver form checks.
    """
    if log.status == SUBMITTED:
        raise CareLogStateError("Submitted care logs are locked")

    section = get_section(section_name)
    progress = evaluate(section, section.hydrate(log.data or {}))
    if not progress.can_submit:
        raise SectionIncompleteError(section_name, progress.missing_fields)

    now = datetime.now(timezone.utc)
    completed = dict(log.completed_sections or {})
    completed[section_name] = {"submittedAt": now.isoformat(), "submittedBy": str(actor_id)}
    log.completed_sections = completed
    log.updated_at = now
    record_audit(db, log, "section_submitted", actor_id, actor_name, section=section_name)
    db.commit()
    db.refresh(log)
    logger.info(f"Section '{section_name}' submitted on care log {log.id} by caregiver {actor_id}")
    return log


def submit_log(db: Session, log: CareLog, actor_id: int, actor_name: Optional[str]) -> CareLog:
    """Final submit: the whole day's record is locked against further edits."""
    if log.status != DRAFT:
        raise CareLogStateError("Only draft logs can be submitted")

    now = datetime.now(timezone.utc)
    log.status = SUBMITTED
    log.submitted_at = now
    log.updated_at = now
    record_audit(db, log, "submitted", actor_id, actor_name)
    db.commit()
    db.refresh(log)
    logger.info(f"Care log {log.id} submitted by caregiver {actor_id}")
    return log


def invalidate_log(db: Session, log: CareLog, user_id: int, actor_name: Optional[str], reason: str) -> CareLog:
    """Family admin flags a submitted log for correction; the caregiver can edit it again."""
    if log.status != SUBMITTED:
        raise CareLogStateError("Only submitted logs can be invalidated")

    now = datetime.now(timezone.utc)
    changes = {"invalidationReason": {"old": log.invalidation_reason, "new": reason}}
    log.status = INVALIDATED
    log.invalidated_at = now
    log.invalidated_by = user_id
    log.invalidation_reason = reason
    log.updated_at = now
    record_audit(db, log, "invalidated", user_id, actor_name, changes=changes)
    db.commit()
    db.refresh(log)
    logger.info(f"Care log {log.id} invalidated by user {user_id}: {reason}")
    return log


def list_logs(db: Session, care_recipient_id: int, status: Optional[str] = None) -> List[CareLog]:
    """A recipient's logs, newest date first."""
    query = db.query(CareLog).filter(CareLog.care_recipient_id == care_recipient_id)
    if status:
        query = query.filter(CareLog.status == status)
    return query.order_by(CareLog.log_date.desc()).all()


def _strip_unsubmitted(data: Dict[str, Any], completed: Dict[str, Any]) -> Dict[str, Any]:
    for section in SECTIONS.values():
        if section.name in completed:
            continue
        for key in section.owned_keys:
            data.pop(key, None)
        meals = data.get("meals")
        if isinstance(meals, dict):
            for meal_key in section.meal_keys:
                meals.pop(meal_key, None)
        if section.medication_slots and data.get("medications"):
            data["medications"] = [
                medication for medication in data["medications"]
                if medication.get("timeSlot") not in section.medication_slots
            ]

    if data.get("meals") == {}:
        data.pop("meals")
    if data.get("medications") == []:
        data.pop("medications")
    return data


def family_visible_data(log: CareLog) -> Dict[str, Any]:
    """Care data with every not-yet-submitted section's fields removed."""
    return _strip_unsubmitted(copy.deepcopy(log.data or {}), log.completed_sections or {})


def family_visible_changes(log: CareLog, changes: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    An audit diff cut down to what family_visible_data would show, so the
    history never reveals data from sections that have not been submitted.
    """
    if not changes:
        return changes

    completed = log.completed_sections or {}
    old = _strip_unsubmitted({key: copy.deepcopy(change.get("old")) for key, change in changes.items()}, completed)
    new = _strip_unsubmitted({key: copy.deepcopy(change.get("new")) for key, change in changes.items()}, completed)
    visible = {}
    for key in changes:
        if (key in old or key in new) and old.get(key) != new.get(key):
            visible[key] = {"old": old.get(key), "new": new.get(key)}
    return visible


def changed_fields_since_view(db: Session, log: CareLog, user_id: int) -> Optional[List[str]]:
    """Visible fields updated after the user's last view; None when the user never viewed the log."""
    view = db.query(CareLogView).filter(
        CareLogView.care_log_id == log.id,
        CareLogView.user_id == user_id,
    ).first()
    if not view:
        return None

    entries = db.query(CareLogAudit).filter(
        CareLogAudit.care_log_id == log.id,
        CareLogAudit.event_type == "updated",
        CareLogAudit.timestamp > view.viewed_at,
    ).all()
    fields = set()
    for entry in entries:
        fields.update(family_visible_changes(log, entry.changes) or {})
    return sorted(fields)


def mark_viewed(db: Session, log: CareLog, user_id: int) -> CareLogView:
    view = db.query(CareLogView).filter(
        CareLogView.care_log_id == log.id,
        CareLogView.user_id == user_id,
    ).first()
    if not view:
        view = CareLogView(care_log_id=log.id, user_id=user_id)
        db.add(view)
    view.viewed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(view)
    return view


def serialize(log: CareLog, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Flat camelCase representation: identity fields plus the care data document."""
    payload = dict(log.data or {}) if data is None else dict(data)
    payload.update({
        "id": log.id,
        "careRecipientId": log.care_recipient_id,
        "caregiverId": log.caregiver_id,
        "logDate": log.log_date,
        "status": log.status,
        "completedSections": log.completed_sections or {},
        "submittedAt": log.submitted_at,
        "invalidatedAt": log.invalidated_at,
        "invalidatedBy": log.invalidated_by,
        "invalidationReason": log.invalidation_reason,
        "createdAt": log.created_at,
        "updatedAt": log.updated_at,
    })
    return payload
