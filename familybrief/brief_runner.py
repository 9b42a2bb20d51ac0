# familybrief/brief_runner.py
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from .brief_generator import CompleteFn, generate_brief_with_llm
from .errors import BriefInputError
from .logger import logger
from .notifier import send_notification
from .render import render_brief_html, render_brief_text
from .summarizer import summarize_weekly_inputs
from .ux_state import determine_ux_state
from .week_range import format_week_range, parse_date, previous_week_start, resolve_week_range, to_iso_date

BRIEF_READY_TYPE = "weekly_brief_ready"
BRIEF_READY_TITLE = "Your weekly brief is ready"

NotifyFn = Callable[..., Any]


def _build_brief(
    store,
    parent_user_id: str,
    child_id: str,
    week_start: date,
    week_end: date,
    summary: Dict[str, Any],
    complete: Optional[CompleteFn],
    week_range: Optional[str] = None,
) -> Dict[str, Any]:
    """History lookup → UX state → draft → render. Returns the brief row fields."""
    history = store.lookup_family_history(parent_user_id, child_id, previous_week_start(week_start))
    ux_state = determine_ux_state(
        has_history=bool(history.get("has_history")),
        missed_last_week=bool(history.get("missed_last_week")),
        load_score=summary.get("load_score") or 0,
    )
    week_range = week_range or format_week_range(week_start, week_end)

    generated = generate_brief_with_llm(week_range, ux_state, summary, complete=complete)
    draft = generated["draft"]

    return {
        "parent_user_id": parent_user_id,
        "child_id": child_id,
        "week_start": week_start,
        "week_end": week_end,
        "week_range": week_range,
        "ux_state": ux_state,
        "load_score": summary.get("load_score") or 0,
        "shape_of_the_week": draft["shape_of_the_week"],
        "school_things_to_know": draft.get("school_things_to_know") or [],
        "moment_to_protect": draft.get("moment_to_protect"),
        "gentle_heads_up": draft["gentle_heads_up"],
        "tiny_connection_idea": draft["tiny_connection_idea"],
        "content_html": render_brief_html(week_range, draft),
        "content_text": render_brief_text(week_range, draft),
        "raw_inputs": {
            **summary,
            "generator": {
                "used_fallback": bool(generated["used_fallback"]),
                "fallback_reason": generated.get("fallback_reason"),
            },
        },
        "generated_at": datetime.utcnow(),
    }


def _notify_ready(store, notify: NotifyFn, fields: Dict[str, Any], brief_id: str):
    notify(
        store,
        fields["parent_user_id"],
        BRIEF_READY_TYPE,
        BRIEF_READY_TITLE,
        f"Your weekly brief for {fields['week_range']} is ready to view.",
        {
            "week_start": to_iso_date(fields["week_start"]),
            "week_end": to_iso_date(fields["week_end"]),
            "child_id": fields["child_id"],
            "brief_id": brief_id,
        },
    )


def run_weekly_briefs(
    store,
    week_start: Any = None,
    dry_run: bool = False,
    limit: Optional[int] = None,
    trigger: str = "manual",
    scope: Optional[Dict[str, Any]] = None,
    created_by_user_id: Optional[str] = None,
    created_by_role: Optional[str] = None,
    complete: Optional[CompleteFn] = None,
    notify: Optional[NotifyFn] = None,
    event_cache: Optional[Dict[str, List[Dict[str, Any]]]] = None,
) -> Dict[str, Any]:
    """
    Generate briefs for every eligible (parent, child) pair in scope for one week.

    Families are processed one at a time; a failure in one family is recorded
    in its result entry and the batch carries on. The school event cache lives
    for this call only.
    """
    scope = scope or {}
    notify = notify or send_notification
    week = resolve_week_range(week_start)
    ws, we = week["week_start"], week["week_end"]
    event_cache = {} if event_cache is None else event_cache

    run_id = None
    try:
        run_id = store.create_run({
            "organization_id": scope.get("organization_id"),
            "school_id": scope.get("school_id"),
            "week_start_date": ws,
            "week_end_date": we,
            "trigger": trigger,
            "dry_run": bool(dry_run),
            "status": "STARTED",
            "started_at": datetime.utcnow(),
            "created_by_user_id": created_by_user_id,
            "created_by_role": created_by_role,
            "metadata_json": {},
        })
        logger.info(f"[RUN] run_id={run_id} week={week['week_start_date']} trigger={trigger} dry_run={dry_run}")

        families = store.lookup_eligible_families(scope, limit)
        results: List[Dict[str, Any]] = []

        for fam in families:
            parent_user_id = fam.get("parent_user_id")
            child_id = fam.get("child_id")
            if not parent_user_id or not child_id:
                continue

            try:
                school_id = fam.get("school_id")
                school_events: List[Dict[str, Any]] = []
                if school_id:
                    if school_id not in event_cache:
                        event_cache[school_id] = store.lookup_school_events(school_id, ws, we)
                    school_events = event_cache[school_id]

                summary = summarize_weekly_inputs({
                    "week_start": week["week_start_date"],
                    "week_end": week["week_end_date"],
                    "child": {
                        "id": child_id,
                        "first_name": fam.get("first_name"),
                        "birthdate": fam.get("birthdate"),
                    },
                    "school_events": school_events,
                    "announcements": [],
                    "messages": [],
                })
                fields = _build_brief(store, parent_user_id, child_id, ws, we, summary, complete)

                saved_id = None
                if not dry_run:
                    saved = store.upsert_brief(fields)
                    saved_id = (saved or {}).get("id")
                    if saved_id:
                        _notify_ready(store, notify, fields, saved_id)

                results.append({
                    "parent_user_id": parent_user_id,
                    "child_id": child_id,
                    "ux_state": fields["ux_state"],
                    "week_start": week["week_start_date"],
                    "week_end": week["week_end_date"],
                    "used_fallback": fields["raw_inputs"]["generator"]["used_fallback"],
                    "saved_id": saved_id,
                })
            except Exception as e:
                logger.exception(f"[RUN] family parent={parent_user_id} child={child_id} failed: {e}")
                results.append({
                    "parent_user_id": parent_user_id,
                    "child_id": child_id,
                    "error": str(e) or "Failed to generate brief",
                })

        if run_id:
            store.finish_run(run_id, {
                "status": "SUCCEEDED",
                "finished_at": datetime.utcnow(),
                "generated_count": len(results),
            })

    except Exception as e:
        logger.exception(f"[RUN] run_id={run_id} failed: {e}")
        if run_id:
            try:
                store.finish_run(run_id, {
                    "status": "FAILED",
                    "finished_at": datetime.utcnow(),
                    "error": str(e) or "Unexpected error",
                })
            except Exception:
                logger.exception(f"[RUN] could not mark run_id={run_id} FAILED")
        raise

    failed = sum(1 for r in results if r.get("error"))
    logger.info(f"[RUN] run_id={run_id} generated={len(results)} failed={failed}")
    return {
        "run_id": run_id,
        "week_start_date": week["week_start_date"],
        "week_end_date": week["week_end_date"],
        "dry_run": bool(dry_run),
        "generated": len(results),
        "results": results,
    }


def generate_weekly_brief(
    store,
    payload: Dict[str, Any],
    complete: Optional[CompleteFn] = None,
    notify: Optional[NotifyFn] = None,
) -> Dict[str, Any]:
    """Generate and save one family's brief from a raw (or pre-summarized) payload."""
    payload = payload or {}
    notify = notify or send_notification
    parent_user_id = payload.get("parent_user_id") or payload.get("parentUserId")
    child_id = payload.get("child_id") or payload.get("childId")
    ws = parse_date(payload.get("week_start") or payload.get("weekStart"))
    we = parse_date(payload.get("week_end") or payload.get("weekEnd"))

    if not parent_user_id or not child_id:
        raise BriefInputError("parent_user_id and child_id are required")
    if not ws or not we:
        raise BriefInputError("week_start and week_end are required (ISO date/datetime)")

    summary = payload.get("summarized_inputs") or summarize_weekly_inputs({
        **payload,
        "week_start": payload.get("week_start") or payload.get("weekStart"),
        "week_end": payload.get("week_end") or payload.get("weekEnd"),
    })
    week_range = payload.get("week_range") or payload.get("weekRange")

    fields = _build_brief(store, parent_user_id, child_id, ws, we, summary, complete, week_range=week_range)
    saved = store.upsert_brief(fields) or {}

    if payload.get("notify") is not False and saved.get("id"):
        _notify_ready(store, notify, fields, saved["id"])

    logger.info(f"[BRIEF] saved brief={saved.get('id')} ux_state={fields['ux_state']} "
                f"fallback={fields['raw_inputs']['generator']['used_fallback']}")
    return {
        "id": saved.get("id"),
        "ux_state": saved.get("ux_state") or fields["ux_state"],
        "generated_at": saved.get("generated_at"),
        "week_range": fields["week_range"],
        "used_fallback": fields["raw_inputs"]["generator"]["used_fallback"],
    }
