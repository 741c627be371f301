from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from app.schemas.common import CamelModel

Mood = Literal["alert", "confused", "sleepy", "agitated", "calm"]
TimeSlot = Literal["before_breakfast", "after_breakfast", "afternoon", "after_dinner", "before_bedtime"]
SectionName = Literal["morning", "afternoon", "evening", "dailySummary"]
Assistance = Literal["none", "some", "full"]
SleepQuality = Literal["deep", "light", "restless", "no_sleep"]


# --- Nested areas ---
class MealLog(CamelModel):
    time: str
    appetite: Optional[int] = Field(default=None, ge=1, le=5)
    amount_eaten: Optional[int] = Field(default=None, ge=0, le=100)
    assistance: Optional[Assistance] = None
    swallowing_issues: List[str] = []


class Meals(CamelModel):
    breakfast: Optional[MealLog] = None
    lunch: Optional[MealLog] = None
    tea_break: Optional[MealLog] = None
    dinner: Optional[MealLog] = None
    food_preferences: Optional[str] = None
    food_refusals: Optional[str] = None


class MedicationLog(CamelModel):
    name: str
    given: bool = False
    time: Optional[str] = None
    time_slot: TimeSlot


class FluidEntry(CamelModel):
    name: str
    time: str
    amount_ml: int = Field(ge=0)


class AfternoonRest(CamelModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    quality: SleepQuality = "light"
    notes: Optional[str] = None


class NightSleep(CamelModel):
    bedtime: Optional[str] = None
    quality: Optional[SleepQuality] = None
    wakings: int = Field(default=0, ge=0)
    waking_reasons: List[str] = []
    behaviors: List[str] = []
    notes: Optional[str] = None


class Toileting(CamelModel):
    bowel_frequency: int = Field(default=0, ge=0)
    urine_frequency: int = Field(default=0, ge=0)
    diaper_changes: int = Field(default=0, ge=0)
    accidents: Optional[str] = None
    assistance: Optional[str] = None
    pain: Optional[str] = None


class UnaccompaniedPeriod(CamelModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: str
    replacement_person: Optional[str] = None
    duration: int = 0  # minutes


class SafetyCheck(CamelModel):
    checked: bool = False
    action: str = ""


class SafetyChecks(CamelModel):
    trip_hazards: Optional[SafetyCheck] = None
    cables: Optional[SafetyCheck] = None
    sandals: Optional[SafetyCheck] = None
    slip_hazards: Optional[SafetyCheck] = None
    mobility_aids: Optional[SafetyCheck] = None
    emergency_equipment: Optional[SafetyCheck] = None


class HospitalBagStatus(CamelModel):
    bag_ready: Optional[bool] = None
    location: Optional[str] = None
    last_checked: Optional[bool] = None
    notes: Optional[str] = None


class CareLogFields(CamelModel):
    """Every care field a daily log can carry. All optional; PATCH sends a subset."""

    # Morning routine
    wake_time: Optional[str] = None
    mood: Optional[Mood] = None
    shower_time: Optional[str] = None
    hair_wash: Optional[bool] = None

    # Vitals
    blood_pressure: Optional[str] = None  # "120/80"
    pulse_rate: Optional[int] = None
    oxygen_level: Optional[int] = Field(default=None, ge=0, le=100)
    blood_sugar: Optional[float] = None
    vitals_time: Optional[str] = None

    medications: Optional[List[MedicationLog]] = None
    meals: Optional[Meals] = None
    fluids: Optional[List[FluidEntry]] = None
    total_fluid_intake: Optional[int] = None

    afternoon_rest: Optional[AfternoonRest] = None
    night_sleep: Optional[NightSleep] = None
    toileting: Optional[Toileting] = None

    # Fall risk
    balance_issues: Optional[int] = Field(default=None, ge=1, le=5)
    near_falls: Optional[Literal["none", "once_or_twice", "multiple"]] = None
    actual_falls: Optional[Literal["none", "minor", "major"]] = None
    walking_pattern: Optional[List[str]] = None
    freezing_episodes: Optional[Literal["none", "mild", "severe"]] = None

    unaccompanied_time: Optional[List[UnaccompaniedPeriod]] = None
    unaccompanied_incidents: Optional[str] = None
    safety_checks: Optional[SafetyChecks] = None
    hospital_bag_status: Optional[HospitalBagStatus] = None

    emergency_flag: Optional[bool] = None
    emergency_note: Optional[str] = None

    # Caregiver notes for the family
    what_went_well: Optional[str] = None
    challenges_faced: Optional[str] = None
    recommendations_for_tomorrow: Optional[str] = None
    important_info_for_family: Optional[str] = None
    notes: Optional[str] = None

    def wire_changes(self) -> Dict[str, Any]:
        """Only the keys the client actually sent, in their camelCase wire form."""
        return self.model_dump(exclude_unset=True, by_alias=True, mode="json")


class CareLogCreate(CareLogFields):
    care_recipient_id: int
    log_date: date
    caregiver_id: Optional[int] = None

    def wire_changes(self) -> Dict[str, Any]:
        return self.model_dump(
            exclude_unset=True,
            by_alias=True,
            mode="json",
            exclude={"care_recipient_id", "log_date", "caregiver_id"},
        )


class CareLogUpdate(CareLogFields):
    pass


class SubmitSectionRequest(CamelModel):
    section: SectionName


class InvalidateRequest(CamelModel):
    reason: str = Field(min_length=1, max_length=500)


# --- Responses ---
class SectionSubmission(CamelModel):
    submitted_at: datetime
    submitted_by: str


class CareLogResponse(CareLogFields):
    id: int
    care_recipient_id: int
    caregiver_id: Optional[int] = None
    log_date: date
    status: str
    completed_sections: Dict[str, SectionSubmission] = {}
    submitted_at: Optional[datetime] = None
    invalidated_at: Optional[datetime] = None
    invalidated_by: Optional[int] = None
    invalidation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Family reads only
    has_unviewed_changes: Optional[bool] = None
    changed_fields: Optional[List[str]] = None


class AuditEntryResponse(CamelModel):
    id: int
    care_log_id: int
    event_type: str
    section: Optional[str] = None
    actor_id: Optional[int] = None
    actor_name: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None
    timestamp: datetime
