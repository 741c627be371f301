import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_accessible_recipient, get_current_principal, require_caregiver, require_family
from app.db.session import get_db
from app.models.care_log import CareLog, CareLogAudit
from app.schemas.care_log import (
    AuditEntryResponse,
    CareLogCreate,
    CareLogResponse,
    CareLogUpdate,
    InvalidateRequest,
    SubmitSectionRequest,
)
from app.services import care_logs as service

router = APIRouter()
logger = logging.getLogger(__name__)


# --- HELPERS ---
def _get_log(db: Session, principal: Principal, log_id: int) -> CareLog:
    log = db.query(CareLog).filter(CareLog.id == log_id).first()
    if not log:
        raise HTTPException(status_code=404, detail="Care log not found")
    get_accessible_recipient(db, principal, log.care_recipient_id)
    return log


def _present(db: Session, principal: Principal, log: CareLog) -> dict:
    """Caregivers see everything; family only sees submitted sections."""
    if principal.is_caregiver:
        return service.serialize(log)

    payload = service.serialize(log, service.family_visible_data(log))
    changed = service.changed_fields_since_view(db, log, principal.id)
    payload["hasUnviewedChanges"] = bool(changed)
    payload["changedFields"] = changed or []
    return payload


# --- 1. CREATE (OR RETURN EXISTING) ---
@router.post("", response_model=CareLogResponse, response_model_exclude_unset=True, status_code=status.HTTP_201_CREATED)
def create_care_log(
    payload: CareLogCreate,
    response: Response,
    principal: Principal = Depends(require_caregiver),
    db: Session = Depends(get_db),
):
    """
    Creates the day's record for a care recipient.
    A second POST for the same date returns the existing record (200), never a duplicate.
    """
    get_accessible_recipient(db, principal, payload.care_recipient_id)

    try:
        log, created = service.create_or_get(
            db,
            care_recipient_id=payload.care_recipient_id,
            log_date=payload.log_date,
            caregiver_id=principal.id,
            actor_name=principal.name,
            initial=payload.wire_changes(),
        )
    except service.CareLogStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not created:
        response.status_code = status.HTTP_200_OK
    return service.serialize(log)


# --- 2. READS ---
@router.get("/caregiver/today", response_model=CareLogResponse, response_model_exclude_unset=True)
def get_caregiver_today(principal: Principal = Depends(require_caregiver), db: Session = Depends(get_db)):
    log = service.find_log(db, principal.care_recipient_id, date.today())
    if not log:
        raise HTTPException(status_code=404, detail="No care log for today")
    return service.serialize(log)


@router.get("/recipient/{care_recipient_id}", response_model=list[CareLogResponse], response_model_exclude_unset=True)
def list_recipient_logs(
    care_recipient_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Newest first. Family readers only get logs the caregiver has submitted."""
    get_accessible_recipient(db, principal, care_recipient_id)
    status_filter = None if principal.is_caregiver else service.SUBMITTED
    return [_present(db, principal, log) for log in service.list_logs(db, care_recipient_id, status_filter)]


@router.get("/recipient/{care_recipient_id}/today",response_model=CareLogResponse, response_model_exclude_unset=True)
def get_recipient_today(
    care_recipient_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return get_recipient_log_by_date(care_recipient_id, date.today(), principal, db)


@router.get(
    "/recipient/{care_recipient_id}/date/{log_date}",
    response_model=CareLogResponse,
    response_model_exclude_unset=True,
)
def get_recipient_log_by_date(
    care_recipient_id: int,
    log_date: date,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    get_accessible_recipient(db, principal, care_recipient_id)
    log = service.find_log(db, care_recipient_id, log_date)
    if not log:
        raise HTTPException(status_code=404, detail=f"No care log for {log_date.isoformat()}")
    return _present(db, principal, log)


@router.get("/{log_id}", response_model=CareLogResponse, response_model_exclude_unset=True)
def get_care_log(log_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return _present(db, principal, _get_log(db, principal, log_id))


# --- 3. PARTIAL UPDATE ---
@router.patch("/{log_id}", response_model=CareLogResponse, response_model_exclude_unset=True)
def update_care_log(
    log_id: int,
    payload: CareLogUpdate,
    principal: Principal = Depends(require_caregiver),
    db: Session = Depends(get_db),
):
    log = _get_log(db, principal, log_id)
    try:
        service.apply_update(db, log, payload.wire_changes(), principal.id, principal.name)
    except service.CareLogStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return service.serialize(log)


# --- 4. SUBMIT SECTION ---
@router.post("/{log_id}/submit-section", response_model=CareLogResponse, response_model_exclude_unset=True)
def submit_section(
    log_id: int,
    payload: SubmitSectionRequest,
    principal: Principal = Depends(require_caregiver),
    db: Session = Depends(get_db),
):
    log = _get_log(db, principal, log_id)
    try:
        log = service.submit_section(db, log, payload.section, principal.id, principal.name)
    except service.SectionIncompleteError as e:
        logger.info(f"Rejected submit of '{e.section}' on care log {log_id}: {e.missing_fields}")
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "missingFields": e.missing_fields},
        )
    except service.CareLogStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return service.serialize(log)


# --- 5. LOG LIFECYCLE ---
@router.post("/{log_id}/submit", response_model=CareLogResponse, response_model_exclude_unset=True)
def submit_care_log(log_id: int, principal: Principal = Depends(require_caregiver), db: Session = Depends(get_db)):
    """Locks the day's record. Only draft logs can be submitted."""
    log = _get_log(db, principal, log_id)
    try:
        log = service.submit_log(db, log, principal.id, principal.name)
    except service.CareLogStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return service.serialize(log)


@router.post("/{log_id}/invalidate", response_model=CareLogResponse, response_model_exclude_unset=True)
def invalidate_care_log(
    log_id: int,
    payload: InvalidateRequest,
    principal: Principal = Depends(require_family),
    db: Session = Depends(get_db),
):
    log = _get_log(db, principal, log_id)
    try:
        log = service.invalidate_log(db, log, principal.id, principal.name, payload.reason)
    except service.CareLogStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _present(db, principal, log)


# --- 6. FAMILY VIEW TRACKING ---
@router.post("/{log_id}/mark-viewed", status_code=status.HTTP_204_NO_CONTENT)
def mark_viewed(log_id: int, principal: Principal = Depends(require_family), db: Session = Depends(get_db)):
    service.mark_viewed(db, _get_log(db, principal, log_id), principal.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- 7. AUDIT HISTORY ---
@router.get("/{log_id}/history", response_model=list[AuditEntryResponse])
def get_history(log_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """
    Fetch the full audit trail for a care log, oldest first.
    Family readers only see changes to fields of submitted sections.
    """
    log = _get_log(db, principal, log_id)
    entries = db.query(CareLogAudit)\
        .filter(CareLogAudit.care_log_id == log.id)\
        .order_by(CareLogAudit.timestamp.asc(), CareLogAudit.id.asc())\
        .all()
    if principal.is_caregiver:
        return entries

    visible = []
    for entry in entries:
        item = AuditEntryResponse.model_validate(entry)
        item.changes = service.family_visible_changes(log, entry.changes)
        visible.append(item)
    return visible
