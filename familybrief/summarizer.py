# familybrief/summarizer.py
"""
Normalize raw weekly inputs (calendar events, announcements, messages, child
profile) into the bounded WeeklySummary that drives brief generation.

Pure: no I/O, the only clock read is "today" for the child's age.
"""
import re
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .errors import BriefInputError
from .logger import logger
from .week_range import is_date_only, parse_date, parse_datetime

MAX_IMPORTANT_COMMS = 10
EVENTS_BONUS_THRESHOLD = 8
MAX_LOAD_SCORE = 10

DEFAULT_SCENARIOS: List[Dict[str, Any]] = [
    {
        "id": "s1",
        "title": "Two Highs + One Low",
        "description": "At dinner or bedtime, share two good things and one tough thing from the day.",
        "script": "Want to do two highs and one low with me?",
        "duration_minutes": 3,
    },
    {
        "id": "s2",
        "title": "Car-Ride Reset",
        "description": "On the way home, take one deep breath together, then pick a song.",
        "script": "Let's do one deep breath together, then you pick a song.",
        "duration_minutes": 2,
    },
    {
        "id": "s3",
        "title": "One-Word Check-In",
        "description": "Ask for one word that describes how they feel right now. No follow-up required.",
        "script": "One word check-in: what's your word?",
        "duration_minutes": 1,
    },
    {
        "id": "s4",
        "title": "Tiny Gratitude",
        "description": "Share one thing you noticed them doing well this week.",
        "script": "I noticed you… and I appreciate it.",
        "duration_minutes": 2,
    },
]

DEFAULT_FAMILY_ANCHORS = {
    "note": "No explicit routine data provided. Using safe defaults.",
    "defaults": {"weekday_rhythm": "school-day structure", "weekend_rhythm": "a different pace"},
}

# Ordered: first match wins.
DISRUPTION_RULES = [
    ("early_dismissal", re.compile(r"\b(early dismissal|half[- ]day)\b")),
    ("late_start", re.compile(r"\b(late start|delayed start)\b")),
    ("no_school", re.compile(r"\b(no school|school closed|closure|closed)\b")),
    ("conference", re.compile(r"\b(conference|conferences)\b")),
    ("testing", re.compile(r"\b(testing|exam|assessment)\b")),
]

IMPACT_HINTS = {
    "early_dismissal": "Pickup timing may feel rushed, especially if afternoons are tight.",
    "late_start": "Morning rhythm may shift a bit.",
    "no_school": "Expect a different pace that day.",
    "conference": "This may add coordination or timing changes.",
    "testing": "Energy may feel different midweek.",
}
DEFAULT_IMPACT_HINT = "This may affect routines."

NEWSLETTER_HINTS = ["newsletter", "weekly update", "this week at", "principal's note", "news and notes", "flyer"]
DISALLOWED_HINTS = ["grade", "graded", "score", "homework", "worksheet"]

_SAFETY_RE = re.compile(r"\b(lockdown|safety|security|threat|emergency)\b")
_URGENT_RE = re.compile(r"\b(urgent|immediately|asap|required|permission slip|permission form)\b")
_DEADLINE_RE = re.compile(r"\b(deadline|due|rsvp|signup|sign up|registration)\b")


def _s(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _first(obj: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = obj.get(k)
        if v not in (None, ""):
            return v
    return None


def _list(obj: Dict[str, Any], *keys: str) -> List[Any]:
    for k in keys:
        v = obj.get(k)
        if isinstance(v, list):
            return v
    return []


def truncate(value: Any, max_len: int = 280) -> str:
    s = _s(value).strip()
    if len(s) <= max_len:
        return s
    return f"{s[:max_len - 1]}…"


def classify_disruption(text: str) -> Optional[str]:
    t = (text or "").lower()
    for kind, pattern in DISRUPTION_RULES:
        if pattern.search(t):
            return kind
    return None


def looks_like_newsletter(text: str) -> bool:
    t = (text or "").lower()
    return any(hint in t for hint in NEWSLETTER_HINTS)


def contains_disallowed(text: str) -> bool:
    t = (text or "").lower()
    return any(hint in t for hint in DISALLOWED_HINTS)


def communication_importance(text: str) -> int:
    t = (text or "").lower()
    if _SAFETY_RE.search(t):
        return 3
    if _URGENT_RE.search(t):
        return 2
    if classify_disruption(t):
        return 2
    if _DEADLINE_RE.search(t):
        return 2
    return 1


def compute_age_years(birthdate: Any, today: Optional[date] = None) -> Optional[int]:
    dob = parse_date(birthdate)
    if dob is None:
        return None
    today = today or date.today()
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return max(0, years)


def compute_load_score(disruptions: int, important_comms: int, events_count: int) -> int:
    score = disruptions * 3 + important_comms
    if events_count >= EVENTS_BONUS_THRESHOLD:
        score += 1
    return max(0, min(MAX_LOAD_SCORE, score))


def _week_bounds(payload: Dict[str, Any]):
    raw_start = _first(payload, "week_start", "weekStart")
    raw_end = _first(payload, "week_end", "weekEnd")

    start = parse_datetime(raw_start)
    if raw_start is not None and start is None:
        raise BriefInputError(f"Invalid week_start: {raw_start!r}")
    end = parse_datetime(raw_end)
    if raw_end is not None and end is None:
        raise BriefInputError(f"Invalid week_end: {raw_end!r}")

    # A date-only week_end names the last day of the week; the exclusive
    # boundary is the midnight that closes it.
    if end is not None and is_date_only(raw_end):
        end = end + timedelta(days=1)
    return raw_start, raw_end, start, end


def _school_signals(events: List[Dict[str, Any]], start, end) -> Dict[str, Any]:
    signals: Dict[str, Any] = {"disruptions": [], "events_count": 0}
    if start is None or end is None:
        return signals

    for ev in events:
        if not isinstance(ev, dict):
            continue
        starts_at = parse_datetime(_first(ev, "starts_at", "startsAt", "start"))
        if starts_at is None or not (start <= starts_at < end):
            continue
        signals["events_count"] += 1

        title = _s(_first(ev, "title", "name", "summary"))
        desc = _s(_first(ev, "description", "body", "details"))
        kind = classify_disruption(f"{title} {desc}")
        if not kind:
            continue

        signals["disruptions"].append({
            "id": ev.get("id"),
            "kind": kind,
            "title": truncate(title, 120),
            "date": starts_at.date().isoformat(),
            "impact_hint": IMPACT_HINTS.get(kind, DEFAULT_IMPACT_HINT),
        })
    return signals


def _raw_communications(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    out = []
    for a in _list(payload, "announcements"):
        if not isinstance(a, dict):
            continue
        title = _first(a, "title")
        body = _first(a, "body", "content")
        out.append({
            "source": "announcement",
            "id": a.get("id"),
            "title": truncate(title or "Announcement", 120),
            "body": truncate(body or "", 500),
            "created_at": _first(a, "created_at", "createdAt"),
            "_text": f"{_s(title)} {_s(body)}".strip(),
        })
    for m in _list(payload, "messages"):
        if not isinstance(m, dict):
            continue
        title = _first(m, "title", "subject", "thread_title")
        body = _first(m, "body", "content", "text")
        out.append({
            "source": "message",
            "id": m.get("id"),
            "title": truncate(title or "Message", 120),
            "body": truncate(body or "", 500),
            "created_at": _first(m, "created_at", "createdAt"),
            "_text": f"{_s(title)} {_s(body)}".strip(),
        })
    return out


def _filter_communications(raw: List[Dict[str, Any]]) -> Dict[str, Any]:
    important = []
    ignored = 0
    for c in raw:
        t = c["_text"].lower()
        if not t or contains_disallowed(t) or looks_like_newsletter(t):
            ignored += 1
            continue
        score = communication_importance(t)
        if score <= 1:
            ignored += 1
            continue
        important.append({
            "source": c["source"],
            "id": c["id"],
            "title": c["title"],
            "body": c["body"],
            "created_at": c["created_at"],
            "importance_score": score,
        })

    # sorted() is stable, so ties keep announcement-then-message order.
    important = sorted(important, key=lambda c: c["importance_score"], reverse=True)
    return {"important": important[:MAX_IMPORTANT_COMMS], "ignored_count": ignored}


def summarize_weekly_inputs(payload: Optional[Dict[str, Any]] = None, today: Optional[date] = None) -> Dict[str, Any]:
    payload = payload or {}
    raw_start, raw_end, start, end = _week_bounds(payload)

    child = payload.get("child") or {}
    child_context = {
        "child_id": _first(child, "id") or payload.get("child_id"),
        "first_name": _first(child, "first_name", "firstName"),
        "age_years": compute_age_years(_first(child, "birthdate", "birth_date", "dob"), today=today),
        "accommodations": payload.get("accommodations") or child.get("accommodations"),
    }

    signals = _school_signals(_list(payload, "school_events", "schoolEvents"), start, end)
    communications = _filter_communications(_raw_communications(payload))

    scenario_pool = _list(payload, "scenario_pool", "scenarios") or [dict(s) for s in DEFAULT_SCENARIOS]
    family_anchors = _first(payload, "family_anchors", "familyAnchors") or DEFAULT_FAMILY_ANCHORS

    disruption_count = len(signals["disruptions"])
    important_count = len(communications["important"])
    load_score = compute_load_score(disruption_count, important_count, signals["events_count"])

    logger.debug(
        f"[SUMMARIZE] child={child_context['child_id']} events={signals['events_count']} "
        f"disruptions={disruption_count} important={important_count} "
        f"ignored={communications['ignored_count']} load_score={load_score}"
    )

    return {
        "week_start": raw_start,
        "week_end": raw_end,
        "child_context": child_context,
        "school_signals": signals,
        "communications": communications,
        "family_anchors": family_anchors,
        "scenario_pool": scenario_pool,
        "load_score": load_score,
        "load_factors": {
            "disruptions": disruption_count,
            "important_comms": important_count,
            "events_in_week": signals["events_count"],
        },
    }
