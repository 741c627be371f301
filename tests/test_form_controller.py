"""
SectionFormController against the real API (in-process ASGI transport):
autosave debounce, save/submit transitions, round-trips and error handling.
"""

import asyncio
import json
from datetime import datetime

from conftest import FAMILY_PASSWORD

from app.client.debounce import Debouncer
from app.client.form import DRAFT_SAVED, DRAFT_UNSAVED, EMPTY, SUBMITTED, SectionFormController

DELAY = 0.05


def patches(sent):
    return [json.loads(request.content) for request in sent if request.method == "PATCH"]


def posts_to(sent, suffix):
    return [request for request in sent if request.method == "POST" and request.url.path.endswith(suffix)]


def parse_ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def caregiver_controller(client, team, section, delay=DELAY):
    await client.login_caregiver(pin=team.caregiver["pin"], username=team.caregiver["username"])
    controller = SectionFormController(client, section, autosave_delay=delay)
    await controller.load()
    return controller


class TestDebouncer:

    def test_rapid_triggers_fire_once(self):
        async def scenario():
            calls = []

            async def callback():
                calls.append(1)

            debouncer = Debouncer(0.02, callback)
            for _ in range(5):
                debouncer.trigger()
            await debouncer.wait_idle()
            return calls

        assert asyncio.run(scenario()) == [1]

    def test_fired_callback_is_not_cancelled_by_new_trigger(self):
        async def scenario():
            started = asyncio.Event()
            release = asyncio.Event()
            finished = []

            async def callback():
                started.set()
                await release.wait()
                finished.append(1)

            debouncer = Debouncer(0.01, callback)
            debouncer.trigger()
            await started.wait()
            debouncer.trigger()
            release.set()
            await debouncer.wait_idle()
            return finished

        assert asyncio.run(scenario()) == [1, 1]

    def test_flush_runs_pending_callback_now(self):
        async def scenario():
            calls = []

            async def callback():
                calls.append(1)

            debouncer = Debouncer(60, callback)
            debouncer.trigger()
            await debouncer.flush()
            return calls, debouncer.pending

        assert asyncio.run(scenario()) == ([1], False)


class TestLoad:

    def test_missing_record_gives_empty_draft(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (client, sent):
                controller = await caregiver_controller(client, care_team, "morning")
                return controller

        controller = asyncio.run(scenario())
        assert controller.state == controller.section.empty_state()
        assert controller.submitted is False
        assert controller.care_log_id is None
        assert controller.phase == EMPTY
        assert controller.error is None
        assert controller.submit_label == "Submit Morning"

    def test_progress_updates_without_network(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (client, sent):
                controller = await caregiver_controller(client, care_team, "evening", delay=60)
                requests_before = len(sent)

                assert controller.progress.missing_fields == ["Dinner Time"]
                assert controller.can_submit is False
                controller.set_field("dinnerTime", "18:30")
                assert controller.can_submit is True
                assert controller.progress.missing_fields == []
                assert len(sent) == requests_before
                controller._debouncer.cancel()

        asyncio.run(scenario())

    def test_unknown_field_raises(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (client, sent):
                controller = await caregiver_controller(client, care_team, "morning")
                try:
                    controller.set_field("dinnerTime", "18:30")
                except ValueError:
                    return True
                return False

        assert asyncio.run(scenario()) is True


class TestAutosave:

    def test_five_edits_one_patch_with_final_value(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (client, sent):
                controller = await caregiver_controller(client, care_team, "morning")
                for minute in range(5):
                    controller.set_field("wakeTime", f"07:0{minute}")
                assert controller.phase == DRAFT_UNSAVED
                await controller.wait_idle()
                return controller, sent

        controller, sent = asyncio.run(scenario())
        bodies = patches(sent)
        assert len(bodies) == 1
        assert bodies[0]["wakeTime"] == "07:04"
        assert len(posts_to(sent, "/care-logs")) == 1
        assert controller.phase == DRAFT_SAVED
        assert controller.last_saved_at is not None

    def test_wake_time_and_mood_are_persisted(self, client, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "morning")
                controller.set_field("wakeTime", "07:30")
                controller.set_field("mood", "calm")
                await asyncio.sleep(DELAY * 3)
                await controller.wait_idle()
                return sent

        sent = asyncio.run(scenario())
        bodies = patches(sent)
        assert len(bodies) == 1
        assert bodies[0]["wakeTime"] == "07:30"
        assert bodies[0]["mood"] == "calm"

        today = client.get("/api/v1/care-logs/caregiver/today", headers=care_team.caregiver_headers).json()
        assert today["wakeTime"] == "07:30"
        assert today["mood"] == "calm"

    def test_close_flushes_pending_autosave(self, client, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "morning", delay=60)
                controller.set_field("wakeTime", "06:15")
                await controller.close()
                return sent

        sent = asyncio.run(scenario())
        assert len(patches(sent)) == 1
        today = client.get("/api/v1/care-logs/caregiver/today", headers=care_team.caregiver_headers).json()
        assert today["wakeTime"] == "06:15"

    def test_failed_save_keeps_state_and_reports_error(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "morning", delay=60)
                controller.set_field("wakeTime", "07:30")
                api.logout()
                ok = await controller.save()
                controller._debouncer.cancel()
                return ok, controller

        ok, controller = asyncio.run(scenario())
        assert ok is False
        assert controller.error == "Not logged in"
        assert controller.state["wakeTime"] == "07:30"
        assert controller.phase == DRAFT_UNSAVED


class TestSubmit:

    def test_submit_disabled_until_complete(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "evening")
                before = len(sent)
                ok = await controller.submit_section()
                return ok, len(sent) - before

        assert asyncio.run(scenario()) == (False, 0)

    def test_resubmit_advances_timestamp_and_appends_one_submission(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "morning")
                controller.set_field("wakeTime", "07:30")
                controller.set_field("mood", "calm")
                assert await controller.submit_section() is True
                first_at = controller.care_log["completedSections"]["morning"]["submittedAt"]
                first_history = await api.get_history(controller.care_log_id)

                assert controller.submitted is True
                assert controller.phase == SUBMITTED
                assert controller.submit_label == "Update & Re-submit"

                await asyncio.sleep(0.01)
                controller.set_field("wakeTime", "07:45")
                assert controller.submitted is True
                assert await controller.submit_section() is True
                second_at = controller.care_log["completedSections"]["morning"]["submittedAt"]
                second_history = await api.get_history(controller.care_log_id)
                return first_at, second_at, first_history, second_history

        first_at, second_at, first_history, second_history = asyncio.run(scenario())
        assert parse_ts(second_at) > parse_ts(first_at)

        def submissions(entries):
            return [e for e in entries if e["eventType"] == "section_submitted"]

        assert len(submissions(second_history)) == len(submissions(first_history)) + 1
        new_entries = second_history[len(first_history):]
        assert [e["eventType"] for e in new_entries] == ["updated", "section_submitted"]

    def test_submit_twice_unchanged(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "evening")
                controller.set_field("dinnerTime", "18:30")
                assert await controller.submit_section() is True
                first_at = controller.care_log["completedSections"]["evening"]["submittedAt"]
                await asyncio.sleep(0.01)
                assert await controller.submit_section() is True
                history = await api.get_history(controller.care_log_id)
                return first_at, controller.care_log, history

        first_at, log, history = asyncio.run(scenario())
        types = [e["eventType"] for e in history]
        assert types.count("section_submitted") == 2
        assert types.count("updated") == 1
        assert list(log["completedSections"]) == ["evening"]
        assert parse_ts(log["completedSections"]["evening"]["submittedAt"]) > parse_ts(first_at)

    def test_submit_waits_for_create(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "dailySummary", delay=60)
                controller.set_field("balanceIssues", 3)
                assert await controller.submit_section() is True
                return [(r.method, r.url.path.rsplit("/", 1)[-1]) for r in sent if r.method != "GET"]

        calls = asyncio.run(scenario())
        assert calls[-3:] == [("POST", "care-logs"), ("PATCH", calls[-2][1]), ("POST", "submit-section")]


class TestRoundTrip:

    def test_morning_fields_survive_save_and_reload(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "morning", delay=60)
                edits = {
                    "wakeTime": "07:10",
                    "mood": "alert",
                    "hairWash": True,
                    "bloodPressure": "128/82",
                    "pulseRate": 72,
                    "oxygenLevel": 97,
                    "bloodSugar": 5.4,
                    "vitalsTime": "07:30",
                    "breakfastTime": "08:00",
                    "breakfastAppetite": 4,
                    "breakfastAmount": 80,
                    "breakfastAssistance": "some",
                    "medications": [
                        {"name": "Levodopa", "given": True, "time": "07:45", "timeSlot": "before_breakfast"},
                    ],
                }
                for name, value in edits.items():
                    controller.set_field(name, value)
                assert await controller.save() is True
                controller._debouncer.cancel()

                reloaded = SectionFormController(api, "morning", autosave_delay=60)
                await reloaded.load()
                return controller.state, reloaded.state

        saved, reloaded = asyncio.run(scenario())
        assert reloaded == saved

    def test_daily_summary_nested_fields_survive(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "dailySummary", delay=60)
                checks = controller.state["safetyChecks"]
                checks["tripHazards"] = {"checked": True, "action": "Moved the rug"}
                controller.set_field("safetyChecks", checks)
                controller.set_field("balanceIssues", 2)
                controller.set_field("walkingPattern", ["shuffling", "leaning"])
                controller.set_field("toileting", {"bowelFrequency": 1, "urineFrequency": 6})
                controller.set_field("hospitalBagStatus", {"bagReady": True, "location": "Hall closet"})
                controller.set_field(
                    "unaccompaniedTime",
                    [{"startTime": "15:00", "endTime": "15:20", "reason": "Pharmacy"}],
                )
                await controller.close()

                reloaded = SectionFormController(api, "dailySummary", autosave_delay=60)
                await reloaded.load()
                return controller.state, reloaded.state, reloaded.care_log

        saved, reloaded, log = asyncio.run(scenario())
        assert reloaded == saved
        assert log["unaccompaniedTime"][0]["duration"] == 20

    def test_sections_do_not_clobber_each_other(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                morning = await caregiver_controller(api, care_team, "morning", delay=60)
                afternoon = SectionFormController(api, "afternoon", autosave_delay=60)
                await afternoon.load()

                morning.set_field("breakfastTime", "08:00")
                assert await morning.save() is True
                afternoon.set_field("lunchTime", "12:30")
                assert await afternoon.save() is True
                for controller in (morning, afternoon):
                    controller._debouncer.cancel()
                return afternoon.care_log

        log = asyncio.run(scenario())
        assert set(log["meals"]) == {"breakfast", "lunch"}


class TestClientServerAgreement:

    def test_switching_rest_off_clears_stored_rest(self, client, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "afternoon", delay=60)
                controller.set_field("lunchTime", "12:30")
                controller.set_field("restEnabled", True)
                controller.set_field("restStartTime", "14:00")
                assert await controller.save() is True

                controller.set_field("restEnabled", False)
                can_submit = controller.can_submit
                ok = await controller.submit_section()
                return can_submit, ok, controller.error, patches(sent)

        can_submit, ok, error, bodies = asyncio.run(scenario())
        assert can_submit is True
        assert ok is True, error
        assert bodies[-1]["afternoonRest"] is None

        today = client.get("/api/v1/care-logs/caregiver/today", headers=care_team.caregiver_headers).json()
        assert today.get("afternoonRest") is None
        assert "afternoon" in today["completedSections"]

    def test_malformed_period_time_does_not_break_save(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "dailySummary", delay=60)
                controller.set_field("balanceIssues", 2)
                controller.set_field(
                    "unaccompaniedTime",
                    [{"startTime": "3pm", "endTime": "15:20", "reason": "Pharmacy"}],
                )
                ok = await controller.save()
                controller._debouncer.cancel()
                return ok, controller

        ok, controller = asyncio.run(scenario())
        assert ok is True
        assert controller.error is None
        assert controller.care_log["unaccompaniedTime"][0]["duration"] == 0

    def test_period_past_midnight_has_positive_duration(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "dailySummary", delay=60)
                controller.set_field(
                    "unaccompaniedTime",
                    [{"startTime": "23:40", "endTime": "00:10", "reason": "Neighbour sat in"}],
                )
                await controller.close()
                return controller.care_log

        log = asyncio.run(scenario())
        assert log["unaccompaniedTime"][0]["duration"] == 30


class TestLockedLog:

    def test_submitted_log_rejects_saves_until_invalidated(self, care_team, anchor_client):
        async def scenario():
            async with anchor_client() as (api, sent):
                controller = await caregiver_controller(api, care_team, "morning", delay=60)
                controller.set_field("wakeTime", "07:30")
                controller.set_field("mood", "calm")
                assert await controller.submit_section() is True
                await api.submit_log(controller.care_log_id)

                await controller.load()
                locked = controller.locked
                controller.set_field("wakeTime", "07:45")
                rejected = await controller.save()
                error = controller.error

                async with anchor_client() as (family_api, _):
                    await family_api.login_family(care_team.family_email, FAMILY_PASSWORD)
                    await family_api.invalidate_log(controller.care_log_id, "Wake time looks wrong")

                accepted = await controller.save()
                controller._debouncer.cancel()
                return locked, rejected, error, accepted, controller

        locked, rejected, error, accepted, controller = asyncio.run(scenario())
        assert locked is True
        assert rejected is False
        assert error == "Can only update draft logs"
        assert accepted is True
        assert controller.locked is False
        assert controller.care_log["status"] == "draft"
        assert controller.care_log["wakeTime"] == "07:45"
