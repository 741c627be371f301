"""
Section schema and progress evaluation: required fields, conditional
requirements, payload building and hydration.
"""

import copy

import pytest

from app.services.progress import evaluate
from app.services.sections import SECTION_NAMES, SECTIONS, get_section
from app.utils.dicts import compact, dig, has_value


class TestEvaluate:
    """Required-field completion per section."""

    def test_empty_morning_reports_both_labels(self):
        progress = evaluate("morning", get_section("morning").empty_state())
        assert progress.missing_fields == ["Wake Time", "Mood"]
        assert progress.completed_count == 0
        assert progress.total_required == 2
        assert progress.can_submit is False

    def test_evening_dinner_time_gates_submit(self):
        state = get_section("evening").empty_state()
        progress = evaluate("evening", state)
        assert progress.can_submit is False
        assert progress.missing_fields == ["Dinner Time"]

        state["dinnerTime"] = "18:30"
        progress = evaluate("evening", state)
        assert progress.can_submit is True
        assert progress.missing_fields == []
        assert progress.percentage == 100

    def test_rest_times_only_required_when_rest_enabled(self):
        state = get_section("afternoon").empty_state()
        state["lunchTime"] = "12:30"
        assert evaluate("afternoon", state).can_submit is True

        state["restEnabled"] = True
        progress = evaluate("afternoon", state)
        assert progress.missing_fields == ["Rest Start Time", "Rest End Time"]
        assert progress.total_required == 3
        assert progress.completed_count == 1

        state["restStartTime"] = "14:00"
        state["restEndTime"] = "15:00"
        assert evaluate("afternoon", state).can_submit is True

    def test_whitespace_only_string_is_missing(self):
        state = get_section("morning").empty_state()
        state["wakeTime"] = "   "
        state["mood"] = "calm"
        assert evaluate("morning", state).missing_fields == ["Wake Time"]

    def test_daily_summary_requires_balance_rating(self):
        state = get_section("dailySummary").empty_state()
        assert evaluate("dailySummary", state).missing_fields == ["Balance Issues"]
        state["balanceIssues"] = 2
        assert evaluate("dailySummary", state).can_submit is True

    @pytest.mark.parametrize("name", SECTION_NAMES)
    def test_can_submit_matches_missing_fields(self, name):
        section = get_section(name)
        for state in (section.empty_state(), section.hydrate({"wakeTime": "07:00", "mood": "calm"})):
            progress = evaluate(section, state)
            assert progress.can_submit == (len(progress.missing_fields) == 0)

    def test_evaluate_does_not_mutate_state(self):
        state = get_section("afternoon").empty_state()
        state["restEnabled"] = True
        before = copy.deepcopy(state)
        first = evaluate("afternoon", state)
        assert state == before
        assert evaluate("afternoon", state) == first

    def test_percentage_rounds(self):
        state = get_section("afternoon").empty_state()
        state["restEnabled"] = True
        state["lunchTime"] = "12:00"
        assert evaluate("afternoon", state).percentage == 33

    def test_unknown_section_raises(self):
        with pytest.raises(ValueError):
            evaluate("night", {})


class TestSectionPayloads:
    """What each section sends, and how it reads a stored log back."""

    def test_morning_payload_omits_blanks_but_keeps_booleans(self):
        state = get_section("morning").empty_state()
        state.update(wakeTime="07:30", mood="calm")
        assert get_section("morning").build_payload(state) == {
            "wakeTime": "07:30",
            "mood": "calm",
            "hairWash": False,
        }

    def test_breakfast_is_nested_under_meals(self):
        section = get_section("morning")
        state = section.empty_state()
        state.update(breakfastTime="08:00", breakfastAppetite=4, breakfastAmount=75, breakfastAssistance="some")
        payload = section.build_payload(state)
        assert payload["meals"] == {
            "breakfast": {"time": "08:00", "appetite": 4, "amountEaten": 75, "assistance": "some"}
        }

    def test_medications_filtered_to_section_slots_on_hydrate(self):
        log = {
            "medications": [
                {"name": "Levodopa", "given": True, "time": "07:45", "timeSlot": "before_breakfast"},
                {"name": "Melatonin", "given": False, "timeSlot": "before_bedtime"},
            ]
        }
        assert [m["name"] for m in get_section("morning").hydrate(log)["medications"]] == ["Levodopa"]
        assert [m["name"] for m in get_section("evening").hydrate(log)["medications"]] == ["Melatonin"]
        assert get_section("afternoon").hydrate(log)["medications"] == []

    def test_rest_cleared_when_off_and_sent_when_on(self):
        section = get_section("afternoon")
        state = section.empty_state()
        state.update(lunchTime="12:30", restStartTime="14:00", restEndTime="15:00")
        # rest switched off clears whatever an earlier save stored
        assert section.build_payload(state)["afternoonRest"] is None

        state["restEnabled"] = True
        assert section.build_payload(state)["afternoonRest"] == {
            "startTime": "14:00",
            "endTime": "15:00",
            "quality": "light",
        }

    def test_unaccompanied_duration_is_computed(self):
        section = get_section("dailySummary")
        state = section.empty_state()
        state["unaccompaniedTime"] = [{"startTime": "14:00", "endTime": "14:45", "reason": "pharmacy run"}]
        payload = section.build_payload(state)
        assert payload["unaccompaniedTime"][0]["duration"] == 45

        hydrated = section.hydrate(payload)
        assert hydrated["unaccompaniedTime"] == state["unaccompaniedTime"]

    @pytest.mark.parametrize("start, end, minutes", [
        ("23:30", "00:15", 45),
        ("22:00", "06:00", 480),
        ("14:00", "14:00", 0),
        ("3pm", "15:20", 0),
        ("14:00", "25:00", 0),
        ("14:00", None, 0),
    ])
    def test_unaccompanied_duration_edge_cases(self, start, end, minutes):
        section = get_section("dailySummary")
        state = section.empty_state()
        state["unaccompaniedTime"] = [{"startTime": start, "endTime": end, "reason": "errand"}]
        assert section.build_payload(state)["unaccompaniedTime"][0]["duration"] == minutes

    def test_emergency_fields_not_owned_by_any_section(self):
        owned = {key for section in SECTIONS.values() for key in section.owned_keys}
        assert "emergencyFlag" not in owned
        assert "wakeTime" in owned

    def test_empty_state_defaults_are_independent(self):
        section = get_section("dailySummary")
        first = section.empty_state()
        first["safetyChecks"]["cables"]["checked"] = True
        assert section.empty_state()["safetyChecks"]["cables"]["checked"] is False

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError):
            get_section("morning").field("dinnerTime")


class TestDictHelpers:

    def test_dig(self):
        log = {"meals": {"breakfast": {"appetite": 4}}}
        assert dig(log, "meals", "breakfast", "appetite") == 4
        assert dig(log, "meals", "lunch", "appetite", default=0) == 0
        assert dig(None, "meals", default="x") == "x"

    def test_has_value(self):
        assert has_value(False) is True
        assert has_value(0) is True
        assert has_value("") is False
        assert has_value([]) is False
        assert has_value({}) is False
        assert has_value(None) is False

    def test_compact(self):
        assert compact({"a": "", "b": None, "c": 0, "d": [1], "e": False}) == {"c": 0, "d": [1], "e": False}
