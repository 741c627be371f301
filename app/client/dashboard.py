import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from app.client.api import AnchorClient
from app.client.errors import ApiError, NotFoundError
from app.services.sections import SECTION_NAMES
from app.utils.dicts import dig

logger = logging.getLogger(__name__)

WEEK_DAYS = 7


class TrendPoint(BaseModel):
    date: dt.date
    systolic: Optional[int] = None
    diastolic: Optional[int] = None
    pulse: Optional[int] = None
    oxygen: Optional[int] = None
    blood_sugar: Optional[float] = None
    appetite: int = 0
    amount_eaten: int = 0
    total_fluids: int = 0
    completed_section_count: int = 0


class DayView(BaseModel):
    care_recipient: Optional[Dict[str, Any]] = None
    today_log: Optional[Dict[str, Any]] = None
    completion_percentage: int = 0
    active_alerts: List[Dict[str, Any]] = []


class WeekView(BaseModel):
    care_recipient_id: int
    points: List[TrendPoint]


def parse_blood_pressure(value: Any) -> Tuple[Optional[int], Optional[int]]:
    """ "120/80" -> (120, 80); anything else -> (None, None)"""
    if not isinstance(value, str) or "/" not in value:
        return None, None
    systolic, _, diastolic = value.partition("/")
    try:
        return int(systolic.strip()), int(diastolic.strip())
    except ValueError:
        return None, None


def completion_percentage(log: Optional[Dict[str, Any]]) -> int:
    completed = dig(log, "completedSections", default={})
    return round(len(completed) / len(SECTION_NAMES) * 100)


def trend_point(day: dt.date, log: Optional[Dict[str, Any]]) -> TrendPoint:
    """One chart point; a day without a record is all zeros / None."""
    if not log:
        return TrendPoint(date=day)

    systolic, diastolic = parse_blood_pressure(log.get("bloodPressure"))
    return TrendPoint(
        date=day,
        systolic=systolic,
        diastolic=diastolic,
        pulse=log.get("pulseRate"),
        oxygen=log.get("oxygenLevel"),
        blood_sugar=log.get("bloodSugar"),
        appetite=dig(log, "meals", "breakfast", "appetite", default=0),
        amount_eaten=dig(log, "meals", "breakfast", "amountEaten", default=0),
        total_fluids=log.get("totalFluidIntake") or 0,
        completed_section_count=len(log.get("completedSections") or {}),
    )


class DashboardAggregator:
    """
    Family-facing read path. Never raises for missing data: a failed or
    missing piece degrades to None or an empty list.
    """

    def __init__(self, client: AnchorClient):
        self.client = client

    async def _log_for(self, care_recipient_id: int, day: Optional[dt.date] = None) -> Optional[Dict[str, Any]]:
        try:
            if day is None:
                return await self.client.get_recipient_today(care_recipient_id)
            return await self.client.get_recipient_log_by_date(care_recipient_id, day)
        except NotFoundError:
            return None
        except ApiError as e:
            logger.warning(f"Could not load care log for recipient {care_recipient_id} ({day or 'today'}): {e}")
            return None

    async def day_view(self, care_recipient_id: int) -> DayView:
        try:
            recipient = await self.client.get_care_recipient(care_recipient_id)
        except ApiError as e:
            logger.warning(f"Could not load care recipient {care_recipient_id}: {e}")
            recipient = None

        today_log = await self._log_for(care_recipient_id)

        try:
            alerts = await self.client.get_alerts(care_recipient_id, active=True) or []
        except ApiError as e:
            logger.warning(f"Could not load alerts for recipient {care_recipient_id}: {e}")
            alerts = []

        return DayView(
            care_recipient=recipient,
            today_log=today_log,
            completion_percentage=completion_percentage(today_log),
            active_alerts=alerts,
        )

    async def week_view(self, care_recipient_id: int, end: Optional[dt.date] = None) -> WeekView:
        """
        Last 7 days ending at `end` (default today), oldest first.
        Days are fetched one after another, not concurrently.
        """
        end = end or dt.date.today()
        points = []
        for offset in range(WEEK_DAYS - 1, -1, -1):
            day = end - dt.timedelta(days=offset)
            points.append(trend_point(day, await self._log_for(care_recipient_id, day)))
        return WeekView(care_recipient_id=care_recipient_id, points=points)
