# familybrief/brief_generator.py
"""
Weekly brief drafting.

The model's JSON is never trusted as-is: every draft goes through
validate_brief_draft. One corrective retry is allowed, after which the
deterministic template in build_fallback_draft takes over. Nothing raised
while drafting leaves generate_brief_with_llm.
"""
from typing import Any, Callable, Dict, List, Optional

from .llm import complete as openai_complete
from .llm import parse_json_object
from .logger import logger
from .prompt import SYSTEM_PROMPT, build_retry_prompt, build_user_prompt
from .summarizer import DEFAULT_SCENARIOS

CompleteFn = Callable[[str, str], str]

BANNED_PHRASES = [
    "don't forget",
    "do not forget",
    "remember to",
    "make sure",
    "you should",
    "you must",
]

MAX_SHAPE = 240
MAX_ITEMS = 3
MAX_LABEL = 140
MAX_WHY = 240
MAX_MOMENT = 320
MAX_HEADS_UP = 360
MAX_IDEA_TITLE = 120
MAX_IDEA_DESC = 240

HIGH_LOAD_SHAPE = ("This week looks full but manageable. Focus on what matters, "
                   "and let the rest be background noise.")
TYPICAL_SHAPE = ("This week looks fairly typical: steady rhythm, with a few moments "
                 "that may need a little extra patience.")
FALLBACK_COMM_WHY = ("This may add a small coordination step. Keep it simple and ask "
                     "for help if needed.")
FALLBACK_MOMENT = ("If you can, protect one small calm pocket (even 5 minutes) midweek. "
                   "It tends to pay you back.")
FALLBACK_HEADS_UP = ("Midweek may feel a little tighter than it looks on paper. That's normal, "
                     "and it doesn't mean anything is going wrong.")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def has_banned_phrase(text: Any) -> bool:
    t = _text(text).lower()
    return any(p in t for p in BANNED_PHRASES)


def validate_brief_draft(draft: Any) -> List[str]:
    """Return every content-policy violation in the draft (empty list means valid)."""
    if not isinstance(draft, dict):
        draft = {}
    errors: List[str] = []

    shape = _text(draft.get("shape_of_the_week"))
    if not shape:
        errors.append("shape_of_the_week is required")
    if len(shape) > MAX_SHAPE:
        errors.append("shape_of_the_week too long")
    if has_banned_phrase(shape):
        errors.append("shape_of_the_week contains directive language")

    items = draft.get("school_things_to_know")
    if items is not None and not isinstance(items, list):
        errors.append("school_things_to_know must be a list")
    items = items if isinstance(items, list) else []
    if len(items) > MAX_ITEMS:
        errors.append(f"school_things_to_know exceeds {MAX_ITEMS} items")
    for idx, it in enumerate(items):
        it = it if isinstance(it, dict) else {}
        label = _text(it.get("label"))
        why = _text(it.get("why"))
        if not label or not why:
            errors.append(f"school_things_to_know[{idx}] missing label/why")
        if len(label) > MAX_LABEL:
            errors.append(f"school_things_to_know[{idx}].label too long")
        if len(why) > MAX_WHY:
            errors.append(f"school_things_to_know[{idx}].why too long")
        if has_banned_phrase(f"{label} {why}"):
            errors.append(f"school_things_to_know[{idx}] contains directive language")

    moment = _text(draft.get("moment_to_protect"))
    if len(moment) > MAX_MOMENT:
        errors.append("moment_to_protect too long")
    if moment and has_banned_phrase(moment):
        errors.append("moment_to_protect contains directive language")

    heads = _text(draft.get("gentle_heads_up"))
    if not heads:
        errors.append("gentle_heads_up is required")
    if len(heads) > MAX_HEADS_UP:
        errors.append("gentle_heads_up too long")
    if has_banned_phrase(heads):
        errors.append("gentle_heads_up contains directive language")

    idea = draft.get("tiny_connection_idea")
    idea = idea if isinstance(idea, dict) else {}
    idea_title = _text(idea.get("title"))
    idea_desc = _text(idea.get("description"))
    if not idea_title or not idea_desc:
        errors.append("tiny_connection_idea requires title + description")
    if len(idea_title) > MAX_IDEA_TITLE:
        errors.append("tiny_connection_idea.title too long")
    if len(idea_desc) > MAX_IDEA_DESC:
        errors.append("tiny_connection_idea.description too long")
    if has_banned_phrase(f"{idea_title} {idea_desc}"):
        errors.append("tiny_connection_idea contains directive language")

    return errors


def _clean_draft(draft: Dict[str, Any]) -> Dict[str, Any]:
    # Only the known fields survive into the persisted brief.
    idea = draft.get("tiny_connection_idea") or {}
    out_idea = {"title": _text(idea.get("title")), "description": _text(idea.get("description"))}
    if _text(idea.get("script")):
        out_idea["script"] = _text(idea.get("script"))
    return {
        "shape_of_the_week": _text(draft.get("shape_of_the_week")),
        "school_things_to_know": [
            {"label": _text(it.get("label")), "why": _text(it.get("why"))}
            for it in (draft.get("school_things_to_know") or [])
            if isinstance(it, dict)
        ],
        "moment_to_protect": _text(draft.get("moment_to_protect")) or None,
        "gentle_heads_up": _text(draft.get("gentle_heads_up")),
        "tiny_connection_idea": out_idea,
    }


def build_fallback_draft(summary: Dict[str, Any]) -> Dict[str, Any]:
    summary = summary or {}
    disruptions = (summary.get("school_signals") or {}).get("disruptions") or []
    important = (summary.get("communications") or {}).get("important") or []

    shape = HIGH_LOAD_SHAPE if (summary.get("load_score") or 0) >= 6 else TYPICAL_SHAPE

    items = [
        {
            "label": d.get("title") or "Schedule change",
            "why": d.get("impact_hint") or "This may affect timing and routines.",
        }
        for d in disruptions[:2]
    ]
    if len(items) < MAX_ITEMS and important:
        items.append({"label": important[0].get("title") or "School update", "why": FALLBACK_COMM_WHY})

    idea = (summary.get("scenario_pool") or DEFAULT_SCENARIOS)[0]
    tiny = {"title": idea.get("title"), "description": idea.get("description")}
    if idea.get("script"):
        tiny["script"] = idea["script"]

    return {
        "shape_of_the_week": shape,
        "school_things_to_know": items[:MAX_ITEMS],
        "moment_to_protect": FALLBACK_MOMENT,
        "gentle_heads_up": FALLBACK_HEADS_UP,
        "tiny_connection_idea": tiny,
    }


def _attempt(complete: CompleteFn, user_prompt: str):
    """One completion + parse + validate. Returns (draft or None, errors)."""
    raw = complete(SYSTEM_PROMPT, user_prompt)
    draft = parse_json_object(raw)
    if draft is None:
        return None, ["response was not a valid JSON object"]
    errors = validate_brief_draft(draft)
    return (draft if not errors else None), errors


def generate_brief_with_llm(
    week_range: str,
    ux_state: str,
    summary: Dict[str, Any],
    complete: Optional[CompleteFn] = None,
) -> Dict[str, Any]:
    """
    Returns {"draft", "used_fallback", "fallback_reason"}.
    fallback_reason is the validation error list after a failed retry, or the
    exception message when the completion call itself raised.
    """
    complete = complete or openai_complete
    user_prompt = build_user_prompt(week_range, ux_state, summary)

    try:
        draft, errors = _attempt(complete, user_prompt)
        if draft is not None:
            return {"draft": _clean_draft(draft), "used_fallback": False, "fallback_reason": None}

        logger.info(f"[BRIEF] first draft rejected ({len(errors)} issue(s)); retrying once")
        draft, errors = _attempt(complete, build_retry_prompt(user_prompt, errors))
        if draft is not None:
            return {"draft": _clean_draft(draft), "used_fallback": False, "fallback_reason": None}
        reason: Any = errors
    except Exception as e:
        reason = str(e) or e.__class__.__name__

    logger.warning(f"[BRIEF] using fallback draft: {reason}")
    return {"draft": build_fallback_draft(summary), "used_fallback": True, "fallback_reason": reason}
