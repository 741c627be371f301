import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_accessible_recipient, get_current_principal, require_family
from app.db.session import get_db
from app.models.care_log import Alert
from app.schemas.common import AlertCreate, AlertResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
def create_alert(
    payload: AlertCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    get_accessible_recipient(db, principal, payload.care_recipient_id)

    alert = Alert(**payload.model_dump())
    db.add(alert)
    db.commit()
    db.refresh(alert)
    logger.info(f"Alert {alert.id} ({alert.severity} {alert.alert_type}) for recipient {alert.care_recipient_id}")
    return alert


@router.get("/recipient/{care_recipient_id}", response_model=list[AlertResponse])
def list_alerts(
    care_recipient_id: int,
    active: Optional[bool] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """`?active=true` returns only unacknowledged alerts, newest first."""
    get_accessible_recipient(db, principal, care_recipient_id)

    query = db.query(Alert).filter(Alert.care_recipient_id == care_recipient_id)
    if active:
        query = query.filter(Alert.acknowledged.is_(False))
    return query.order_by(Alert.created_at.desc(), Alert.id.desc()).all()


@router.post("/{alert_id}/acknowledge", response_model=AlertResponse)
def acknowledge_alert(
    alert_id: int,
    principal: Principal = Depends(require_family),
    db: Session = Depends(get_db),
):
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    get_accessible_recipient(db, principal, alert.care_recipient_id)

    alert.acknowledged = True
    alert.acknowledged_at = datetime.now(timezone.utc)
    alert.acknowledged_by = principal.id
    db.commit()
    db.refresh(alert)
    return alert
