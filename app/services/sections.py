"""
Declarative definition of the four daily form sections.

Each section knows:
- its form fields (defaults, display labels, which ones gate "submit")
- how to build the PATCH payload from form state
- how to hydrate form state back from a stored care log
- which care log keys it owns (hidden from family until submitted)

The same definitions are used by the caregiver client (progress bar, submit
button) and by the API when it validates a submit-section request, so both
sides always agree on what "complete" means.
"""

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.utils.dicts import compact, dig, has_value

SECTION_NAMES = ("morning", "afternoon", "evening", "dailySummary")

SAFETY_CHECK_KEYS = ("tripHazards", "cables", "sandals", "slipHazards", "mobilityAids", "emergencyEquipment")

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class FormField:
    name: str
    label: str
    default: Any = None
    required: bool = False
    # Conditional requirement, e.g. rest times only once "rest" is switched on
    required_when: Optional[Callable[[Dict[str, Any]], bool]] = None
    is_present: Callable[[Any], bool] = has_value

    def is_required(self, state: Dict[str, Any]) -> bool:
        if not self.required:
            return False
        if self.required_when is None:
            return True
        return bool(self.required_when(state))


def _meal(state: Dict[str, Any], prefix: str, with_appetite: bool = True) -> Optional[Dict[str, Any]]:
    """Builds a meal entry, or None while its time is still blank."""
    if not has_value(state.get(f"{prefix}Time")):
        return None
    meal = {
        "time": state[f"{prefix}Time"],
        "amountEaten": state.get(f"{prefix}Amount"),
    }
    if with_appetite:
        meal["appetite"] = state.get(f"{prefix}Appetite")
    if f"{prefix}Assistance" in state:
        meal["assistance"] = state[f"{prefix}Assistance"]
    if f"{prefix}SwallowingIssues" in state:
        meal["swallowingIssues"] = list(state[f"{prefix}SwallowingIssues"])
    return {key: value for key, value in meal.items() if value is not None}


def _read_meal(log: Dict[str, Any], meal_key: str, prefix: str, state: Dict[str, Any]) -> None:
    meal = dig(log, "meals", meal_key)
    if not meal:
        return
    state[f"{prefix}Time"] = meal.get("time") or ""
    if f"{prefix}Appetite" in state and meal.get("appetite") is not None:
        state[f"{prefix}Appetite"] = meal["appetite"]
    if meal.get("amountEaten") is not None:
        state[f"{prefix}Amount"] = meal["amountEaten"]
    if f"{prefix}Assistance" in state and meal.get("assistance"):
        state[f"{prefix}Assistance"] = meal["assistance"]
    if f"{prefix}SwallowingIssues" in state:
        state[f"{prefix}SwallowingIssues"] = list(meal.get("swallowingIssues") or [])


def _minutes_of_day(value: Any) -> Optional[int]:
    """ "HH:MM" -> minutes since midnight, None for anything unparseable."""
    try:
        hours, minutes = (int(part) for part in value.split(":"))
    except (AttributeError, ValueError):
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def _minutes_between(start: Any, end: Any) -> int:
    """Length of a period in minutes; a period ending before it starts ran past midnight."""
    start_minutes = _minutes_of_day(start)
    end_minutes = _minutes_of_day(end)
    if start_minutes is None or end_minutes is None:
        return 0
    return (end_minutes - start_minutes) % MINUTES_PER_DAY


class Section:
    name: str = ""
    title: str = ""
    fields: Tuple[FormField, ...] = ()
    # Care log keys whose data belongs to this section
    owned_keys: Tuple[str, ...] = ()
    meal_keys: Tuple[str, ...] = ()
    medication_slots: Tuple[str, ...] = ()

    def field(self, name: str) -> FormField:
        for form_field in self.fields:
            if form_field.name == name:
                return form_field
        raise ValueError(f"Unknown field '{name}' for section '{self.name}'")

    def field_names(self) -> List[str]:
        return [form_field.name for form_field in self.fields]

    def empty_state(self) -> Dict[str, Any]:
        return {form_field.name: copy.deepcopy(form_field.default) for form_field in self.fields}

    def required_fields(self, state: Dict[str, Any]) -> List[FormField]:
        return [form_field for form_field in self.fields if form_field.is_required(state)]

    def hydrate(self, log: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Form state for this section from a care log (or the empty draft)."""
        state = self.empty_state()
        if log:
            self._read(log, state)
            if "medications" in state:
                state["medications"] = [
                    dict(med) for med in (log.get("medications") or [])
                    if med.get("timeSlot") in self.medication_slots
                ]
        return state

    def build_payload(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH body: only keys this section owns, empty values omitted."""
        payload = self._payload(state)
        medications = state.get("medications") or []
        if medications:
            payload["medications"] = [dict(med) for med in medications]
        return compact(payload)

    # Section specific
    def _read(self, log: Dict[str, Any], state: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _payload(self, state: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class MorningSection(Section):
    name = "morning"
    title = "Morning"
    fields = (
        FormField("wakeTime", "Wake Time", "", required=True),
        FormField("mood", "Mood", "", required=True),
        FormField("showerTime", "Shower Time", ""),
        FormField("hairWash", "Hair Wash", False),
        FormField("bloodPressure", "Blood Pressure", ""),
        FormField("pulseRate", "Pulse Rate", None),
        FormField("oxygenLevel", "Oxygen Level", None),
        FormField("bloodSugar", "Blood Sugar", None),
        FormField("vitalsTime", "Vitals Time", ""),
        FormField("breakfastTime", "Breakfast Time", ""),
        FormField("breakfastAppetite", "Breakfast Appetite", 3),
        FormField("breakfastAmount", "Breakfast Amount Eaten", 3),
        FormField("breakfastAssistance", "Breakfast Assistance", "none"),
        FormField("medications", "Morning Medications", []),
    )
    owned_keys = (
        "wakeTime", "mood", "showerTime", "hairWash",
        "bloodPressure", "pulseRate", "oxygenLevel", "bloodSugar", "vitalsTime",
    )
    meal_keys = ("breakfast",)
    medication_slots = ("before_breakfast", "after_breakfast")

    def _read(self, log, state):
        for key in self.owned_keys:
            if log.get(key) is not None:
                state[key] = log[key]
        _read_meal(log, "breakfast", "breakfast", state)

    def _payload(self, state):
        payload = {key: state.get(key) for key in self.owned_keys}
        breakfast = _meal(state, "breakfast")
        if breakfast:
            payload["meals"] = {"breakfast": breakfast}
        return payload


def _rest_enabled(state: Dict[str, Any]) -> bool:
    return bool(state.get("restEnabled"))


class AfternoonSection(Section):
    name = "afternoon"
    title = "Afternoon"
    fields = (
        FormField("lunchTime", "Lunch Time", "", required=True),
        FormField("lunchAppetite", "Lunch Appetite", 3),
        FormField("lunchAmount", "Lunch Amount Eaten", 3),
        FormField("lunchAssistance", "Lunch Assistance", "none"),
        FormField("lunchSwallowingIssues", "Lunch Swallowing Issues", []),
        FormField("teaBreakTime", "Tea Break Time", ""),
        FormField("teaBreakAmount", "Tea Break Amount Eaten", 3),
        FormField("restEnabled", "Afternoon Rest", False),
        FormField("restStartTime", "Rest Start Time", "", required=True, required_when=_rest_enabled),
        FormField("restEndTime", "Rest End Time", "", required=True, required_when=_rest_enabled),
        FormField("restQuality", "Rest Quality", "light"),
        FormField("restNotes", "Rest Notes", ""),
        FormField("medications", "Afternoon Medications", []),
    )
    owned_keys = ("afternoonRest",)
    meal_keys = ("lunch", "teaBreak")
    medication_slots = ("afternoon",)

    def _read(self, log, state):
        _read_meal(log, "lunch", "lunch", state)
        _read_meal(log, "teaBreak", "teaBreak", state)
        rest = log.get("afternoonRest")
        if rest:
            state["restEnabled"] = True
            state["restStartTime"] = rest.get("startTime") or ""
            state["restEndTime"] = rest.get("endTime") or ""
            state["restQuality"] = rest.get("quality") or "light"
            state["restNotes"] = rest.get("notes") or ""

    def _payload(self, state):
        payload = {}
        meals = {}
        lunch = _meal(state, "lunch")
        if lunch:
            meals["lunch"] = lunch
        tea_break = _meal(state, "teaBreak", with_appetite=False)
        if tea_break:
            meals["teaBreak"] = tea_break
        if meals:
            payload["meals"] = meals
        if state.get("restEnabled") and (state.get("restStartTime") or state.get("restEndTime")):
            payload["afternoonRest"] = compact({
                "startTime": state.get("restStartTime"),
                "endTime": state.get("restEndTime"),
                "quality": state.get("restQuality"),
                "notes": state.get("restNotes"),
            })
        return payload

    def build_payload(self, state):
        payload = super().build_payload(state)
        if not _rest_enabled(state):
            # Clears a rest period an earlier autosave stored before rest was switched off
            payload["afternoonRest"] = None
        return payload


class EveningSection(Section):
    name = "evening"
    title = "Evening"
    fields = (
        FormField("dinnerTime", "Dinner Time", "", required=True),
        FormField("dinnerAppetite", "Dinner Appetite", 3),
        FormField("dinnerAmount", "Dinner Amount Eaten", 3),
        FormField("dinnerAssistance", "Dinner Assistance", "none"),
        FormField("dinnerSwallowingIssues", "Dinner Swallowing Issues", []),
        FormField("bedtime", "Bedtime", ""),
        FormField("sleepBehaviors", "Sleep Behaviors", []),
        FormField("sleepNotes", "Sleep Notes", ""),
        FormField("medications", "Evening Medications", []),
    )
    owned_keys = ("nightSleep",)
    meal_keys = ("dinner",)
    medication_slots = ("after_dinner", "before_bedtime")

    def _read(self, log, state):
        _read_meal(log, "dinner", "dinner", state)
        night_sleep = log.get("nightSleep")
        if night_sleep:
            state["bedtime"] = night_sleep.get("bedtime") or ""
            state["sleepBehaviors"] = list(night_sleep.get("behaviors") or [])
            state["sleepNotes"] = night_sleep.get("notes") or ""

    def _payload(self, state):
        payload = {}
        dinner = _meal(state, "dinner")
        if dinner:
            payload["meals"] = {"dinner": dinner}
        if has_value(state.get("bedtime")):
            # wakings/wakingReasons are reported the next morning, not sent here
            payload["nightSleep"] = compact({
                "bedtime": state["bedtime"],
                "behaviors": list(state.get("sleepBehaviors") or []),
                "notes": state.get("sleepNotes"),
            })
        return payload


def _default_safety_checks() -> Dict[str, Dict[str, Any]]:
    return {key: {"checked": False, "action": ""} for key in SAFETY_CHECK_KEYS}


class DailySummarySection(Section):
    name = "dailySummary"
    title = "Daily Summary"
    fields = (
        FormField("balanceIssues", "Balance Issues", None, required=True),
        FormField("nearFalls", "Near Falls", "none"),
        FormField("actualFalls", "Actual Falls", "none"),
        FormField("walkingPattern", "Walking Pattern", []),
        FormField("freezingEpisodes", "Freezing Episodes", "none"),
        FormField("toileting", "Toileting", {}),
        FormField("unaccompaniedTime", "Unaccompanied Time", []),
        FormField("unaccompaniedIncidents", "Unaccompanied Incidents", ""),
        FormField("safetyChecks", "Safety Checks", _default_safety_checks()),
        FormField("hospitalBagStatus", "Hospital Bag", {}),
        FormField("emergencyFlag", "Emergency", False),
        FormField("emergencyNote", "Emergency Note", ""),
        FormField("whatWentWell", "What Went Well", ""),
        FormField("challengesFaced", "Challenges Faced", ""),
        FormField("recommendationsForTomorrow", "Recommendations for Tomorrow", ""),
        FormField("importantInfoForFamily", "Important Info for Family", ""),
        FormField("notes", "Notes", ""),
    )
    # emergencyFlag/emergencyNote are not owned, so family always sees them
    owned_keys = (
        "balanceIssues", "nearFalls", "actualFalls", "walkingPattern", "freezingEpisodes",
        "toileting", "unaccompaniedTime", "unaccompaniedIncidents", "safetyChecks",
        "hospitalBagStatus", "whatWentWell", "challengesFaced", "recommendationsForTomorrow",
        "importantInfoForFamily", "notes",
    )

    def _read(self, log, state):
        for key in self.owned_keys + ("emergencyFlag", "emergencyNote"):
            if log.get(key) is None:
                continue
            if key == "safetyChecks":
                state[key] = {**_default_safety_checks(), **copy.deepcopy(log[key])}
            elif key == "unaccompaniedTime":
                state[key] = [
                    {k: v for k, v in period.items() if k != "duration"}
                    for period in log[key]
                ]
            else:
                state[key] = copy.deepcopy(log[key])

    def _payload(self, state):
        payload = {key: copy.deepcopy(state.get(key)) for key in self.owned_keys}
        payload["emergencyFlag"] = state.get("emergencyFlag")
        payload["emergencyNote"] = state.get("emergencyNote")
        periods = state.get("unaccompaniedTime") or []
        payload["unaccompaniedTime"] = [
            {**period, "duration": _minutes_between(period.get("startTime"), period.get("endTime"))}
            for period in periods
        ]
        return payload


SECTIONS: Dict[str, Section] = {
    section.name: section
    for section in (MorningSection(), AfternoonSection(), EveningSection(), DailySummarySection())
}


def get_section(name: str) -> Section:
    try:
        return SECTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown section '{name}'") from None
