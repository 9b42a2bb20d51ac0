from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from familybrief.brief_runner import generate_weekly_brief, run_weekly_briefs
from familybrief.errors import BriefInputError, LLMError
from familybrief.models import Notification, WeeklyBrief, WeeklyBriefRun

from conftest import add_event, add_family


def _failing_complete(system_prompt, user_prompt):
    raise LLMError("no network")


def test_run_generates_saves_and_notifies(store, db_session, good_complete):
    add_family(db_session, "p1", school_id="s1")
    add_family(db_session, "p2", school_id="s1")
    add_event(db_session, "s1", "Early dismissal", datetime(2025, 1, 14, 9))
    notify = MagicMock()

    out = run_weekly_briefs(store, week_start="2025-01-15", complete=good_complete, notify=notify)

    assert out["week_start_date"] == "2025-01-13"
    assert out["week_end_date"] == "2025-01-19"
    assert out["generated"] == 2
    assert all(r["saved_id"] and r["ux_state"] == "A" and r["used_fallback"] is False for r in out["results"])

    briefs = db_session.query(WeeklyBrief).all()
    assert len(briefs) == 2
    assert briefs[0].load_score == 3
    assert briefs[0].raw_inputs["generator"] == {"used_fallback": False, "fallback_reason": None}
    assert briefs[0].raw_inputs["school_signals"]["disruptions"][0]["kind"] == "early_dismissal"
    assert "Your Week, Simplified" in briefs[0].content_html

    run = db_session.get(WeeklyBriefRun, out["run_id"])
    assert run.status == "SUCCEEDED"
    assert run.generated_count == 2
    assert run.finished_at is not None

    assert notify.call_count == 2
    args = notify.call_args_list[0][0]
    assert args[2] == "weekly_brief_ready"
    assert args[4] == "Your weekly brief for January 13, 2025–January 19 is ready to view."
    assert args[5]["week_start"] == "2025-01-13"


def test_dry_run_saves_nothing(store, db_session, good_complete):
    add_family(db_session, "p1")
    notify = MagicMock()
    out = run_weekly_briefs(store, week_start="2025-01-13", dry_run=True, complete=good_complete, notify=notify)
    assert out["results"][0]["saved_id"] is None
    assert db_session.query(WeeklyBrief).count() == 0
    assert notify.call_count == 0
    assert db_session.get(WeeklyBriefRun, out["run_id"]).dry_run is True


def test_rerun_upserts_and_moves_to_reentry_state(store, db_session, good_complete):
    add_family(db_session, "p1")
    run_weekly_briefs(store, week_start="2025-01-06", complete=good_complete, notify=MagicMock())
    out = run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock())
    assert out["results"][0]["ux_state"] == "D"

    again = run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock())
    assert again["results"][0]["saved_id"] == out["results"][0]["saved_id"]
    assert db_session.query(WeeklyBrief).count() == 2


def test_opened_last_week_gives_normal_state(store, db_session, good_complete):
    add_family(db_session, "p1")
    first = run_weekly_briefs(store, week_start="2025-01-06", complete=good_complete, notify=MagicMock())
    store.mark_brief_opened(first["results"][0]["saved_id"])
    out = run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock())
    assert out["results"][0]["ux_state"] == "B"


def test_llm_outage_still_produces_briefs(store, db_session):
    add_family(db_session, "p1")
    out = run_weekly_briefs(store, week_start="2025-01-13", complete=_failing_complete, notify=MagicMock())
    assert out["results"][0]["used_fallback"] is True
    brief = db_session.query(WeeklyBrief).one()
    assert brief.raw_inputs["generator"]["fallback_reason"] == "no network"


def test_batch_isolation_on_history_failure(good_complete):
    store = MagicMock()
    store.create_run.return_value = "run-1"
    store.lookup_eligible_families.return_value = [
        {"parent_user_id": f"p{i}", "child_id": f"c{i}", "school_id": "s1"} for i in (1, 2, 3)
    ]
    store.lookup_school_events.return_value = []

    def history(parent, child, prev):
        if parent == "p2":
            raise RuntimeError("history unavailable")
        return {"has_history": True, "missed_last_week": False}

    store.lookup_family_history.side_effect = history
    store.upsert_brief.side_effect = lambda fields: {"id": f"brief-{fields['parent_user_id']}"}

    out = run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock())

    assert len(out["results"]) == 3
    assert out["results"][0]["saved_id"] == "brief-p1"
    assert out["results"][1] == {"parent_user_id": "p2", "child_id": "c2", "error": "history unavailable"}
    assert out["results"][2]["saved_id"] == "brief-p3"
    store.finish_run.assert_called_once()
    assert store.finish_run.call_args[0][1]["status"] == "SUCCEEDED"
    assert store.finish_run.call_args[0][1]["generated_count"] == 3


def test_school_events_cached_per_run(good_complete):
    store = MagicMock()
    store.lookup_eligible_families.return_value = [
        {"parent_user_id": "p1", "child_id": "c1", "school_id": "s1"},
        {"parent_user_id": "p2", "child_id": "c2", "school_id": "s1"},
        {"parent_user_id": "p3", "child_id": "c3", "school_id": "s2"},
        {"parent_user_id": "p4", "child_id": "c4", "school_id": None},
    ]
    store.lookup_school_events.return_value = []
    store.lookup_family_history.return_value = {"has_history": False, "missed_last_week": False}
    store.upsert_brief.return_value = {"id": "b"}

    cache = {}
    run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock(), event_cache=cache)
    assert store.lookup_school_events.call_count == 2
    assert set(cache) == {"s1", "s2"}

    run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock())
    assert store.lookup_school_events.call_count == 4


def test_rows_missing_identity_are_skipped(good_complete):
    store = MagicMock()
    store.lookup_eligible_families.return_value = [{"parent_user_id": None, "child_id": "c1"}]
    out = run_weekly_briefs(store, week_start="2025-01-13", complete=good_complete, notify=MagicMock())
    assert out["results"] == []


def test_run_level_failure_marks_run_failed():
    store = MagicMock()
    store.create_run.return_value = "run-1"
    store.lookup_eligible_families.side_effect = RuntimeError("directory down")

    with pytest.raises(RuntimeError, match="directory down"):
        run_weekly_briefs(store, week_start="2025-01-13")

    changes = store.finish_run.call_args[0][1]
    assert changes["status"] == "FAILED"
    assert changes["error"] == "directory down"


def test_invalid_week_raises_before_run_is_created():
    store = MagicMock()
    with pytest.raises(BriefInputError):
        run_weekly_briefs(store, week_start="13/01/2025x")
    store.create_run.assert_not_called()


def test_run_record_fields(store, db_session, good_complete):
    out = run_weekly_briefs(store, week_start="2025-01-13", trigger="scheduled",
                            scope={"organization_id": "o1"}, created_by_user_id="admin-1",
                            created_by_role="school_admin", complete=good_complete)
    run = db_session.get(WeeklyBriefRun, out["run_id"])
    assert run.trigger == "scheduled"
    assert run.organization_id == "o1"
    assert run.week_start_date == date(2025, 1, 13)
    assert run.created_by_role == "school_admin"
    assert out["generated"] == 0


# --- single family ------------------------------------------


def test_generate_weekly_brief_requires_identity(store):
    with pytest.raises(BriefInputError):
        generate_weekly_brief(store, {"week_start": "2025-01-13", "week_end": "2025-01-19"})
    with pytest.raises(BriefInputError):
        generate_weekly_brief(store, {"parent_user_id": "p1", "child_id": "c1"})


def test_generate_weekly_brief_from_raw_payload(store, db_session, good_complete):
    notify = MagicMock()
    out = generate_weekly_brief(store, {
        "parentUserId": "p1",
        "childId": "c1",
        "weekStart": "2025-01-13",
        "weekEnd": "2025-01-19",
        "announcements": [{"title": "Lockdown drill", "body": "Safety drill Wednesday"}],
    }, complete=good_complete, notify=notify)
    assert out["ux_state"] == "A"
    assert out["week_range"] == "January 13, 2025–January 19"
    assert out["used_fallback"] is False
    brief = db_session.get(WeeklyBrief, out["id"])
    assert brief.load_score == 1
    assert notify.call_count == 1


def test_generate_weekly_brief_with_presummarized_inputs_and_no_notify(store, db_session):
    notify = MagicMock()
    summary = {"load_score": 7, "scenario_pool": [{"title": "Walk", "description": "A short walk."}]}
    out = generate_weekly_brief(store, {
        "parent_user_id": "p1", "child_id": "c1",
        "week_start": "2025-01-13", "week_end": "2025-01-19",
        "summarized_inputs": summary, "week_range": "This week", "notify": False,
    }, complete=_failing_complete, notify=notify)
    assert out["used_fallback"] is True
    assert out["week_range"] == "This week"
    brief = db_session.get(WeeklyBrief, out["id"])
    assert brief.tiny_connection_idea["title"] == "Walk"
    assert brief.load_score == 7
    notify.assert_not_called()
