# familybrief/prompt.py
import json
from typing import Any, Dict, List

SYSTEM_PROMPT = "\n".join([
    "You are Teachmo, a calm, trustworthy parenting assistant.",
    "You reduce cognitive load, normalize imperfection, and help parents see their week clearly.",
    "You never shame, overwhelm, guilt, or assign tasks.",
    'You avoid directives like "remember to" or "make sure". Use gentle, optional language.',
    "You prioritize clarity over completeness, and reassurance over productivity.",
])

STATE_HINTS = {
    "A": "This is the first brief. Keep it intentionally light and general.",
    "B": "Normal week. Be clear and steady.",
    "C": "Busy week. Subtract more. Be extra reassuring and minimal.",
    "D": "Re-entry week. Welcome back; do not mention missed weeks.",
}

WEEKLY_BRIEF_SCHEMA = """\
{
  "shape_of_the_week": string,
  "school_things_to_know": [{"label": string, "why": string}], (0-3 items)
  "moment_to_protect": string,
  "gentle_heads_up": string,
  "tiny_connection_idea": {"title": string, "description": string, "script": string}
}"""

CONSTRAINTS = """\
Constraints:
- shape_of_the_week: exactly 1 sentence, calm and neutral, <= 240 characters.
- school_things_to_know: max 3 items. Do NOT include homework/grades. label <= 140 characters, why <= 240 characters.
- moment_to_protect: low-effort, optional; do not sound mandatory. <= 320 characters.
- gentle_heads_up: 1-2 sentences; always normalizing. <= 360 characters.
- tiny_connection_idea: <= 5 minutes, skippable, no prep. title <= 120 characters, description <= 240 characters.
- Avoid directives: "remember to", "you should", "make sure", "don't forget", "you must"."""


def build_user_prompt(week_range: str, ux_state: str, summary: Dict[str, Any]) -> str:
    body = "\n".join([
        "Output must be valid JSON only (no markdown).",
        "Use this JSON schema exactly:",
        WEEKLY_BRIEF_SCHEMA,
        CONSTRAINTS,
        "",
        f"UX state: {ux_state}",
        f"Week range: {week_range}",
        "Summarized inputs (use only these):",
        json.dumps(summary, ensure_ascii=False, default=str),
    ])
    return f"{STATE_HINTS.get(ux_state, '')}\n\n{body}"


def build_retry_prompt(user_prompt: str, errors: List[str]) -> str:
    bullets = "\n- ".join(errors)
    return (
        f"{user_prompt}\n\n"
        f"Your last output failed these checks:\n- {bullets}\n\n"
        "Return corrected JSON only."
    )
