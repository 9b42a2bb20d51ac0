# familybrief/render.py
import html
from typing import Any, Dict

from .summarizer import truncate

EMPTY_ITEMS_TEXT = "No major school schedule changes showed up for this week."
DEFAULT_MOMENT = "If you can, protect one small calm pocket. Even a few minutes counts."
SKIP_NOTE = "Skip this if the moment passes. It's here if you want it."
FOOTER = "This brief refreshes weekly. Teachmo focuses on clarity, not perfection."
MAX_TEXT_LEN = 240

_H3 = '<h3 style="margin:16px 0 6px 0;">{}</h3>'
_MUTED = '<div style="color:#555;{}">{}</div>'


def _esc(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def _items(draft: Dict[str, Any]):
    items = draft.get("school_things_to_know")
    return items if isinstance(items, list) else []


def render_brief_html(week_range: str, draft: Dict[str, Any]) -> str:
    items_html = "".join(
        '<div style="margin:0 0 10px 0;">'
        f"<div><strong>• {_esc(it.get('label'))}</strong></div>"
        f"<div>{_esc(it.get('why'))}</div>"
        "</div>"
        for it in _items(draft)
    )
    idea = draft.get("tiny_connection_idea") or {}
    script_html = (
        _MUTED.format(" margin-top:6px;", f"<em>“{_esc(idea['script'])}”</em>")
        if idea.get("script") else ""
    )

    parts = [
        '<div style="font-family: system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif; line-height:1.45;">',
        '<h2 style="margin:0 0 6px 0;">Your Week, Simplified</h2>',
        _MUTED.format(" margin:0 0 16px 0;", f"Week of {_esc(week_range)}"),

        _H3.format("The shape of the week"),
        f"<div>{_esc(draft.get('shape_of_the_week'))}</div>",

        _H3.format("School things worth knowing"),
        _MUTED.format(" margin:0 0 8px 0;", "These are the school-related moments most likely to affect your week."),
        items_html or _MUTED.format("", EMPTY_ITEMS_TEXT),

        _H3.format("One moment to protect"),
        f"<div>{_esc(draft.get('moment_to_protect') or DEFAULT_MOMENT)}</div>",

        _H3.format("A gentle heads-up"),
        f"<div>{_esc(draft.get('gentle_heads_up'))}</div>",

        _H3.format("One tiny connection idea"),
        f"<div><strong>{_esc(idea.get('title'))}</strong></div>",
        f"<div>{_esc(idea.get('description'))}</div>",
        script_html,
        _MUTED.format(" margin-top:6px;", SKIP_NOTE),

        f'<div style="margin-top:18px; color:#666; font-size: 12px;">{FOOTER}</div>',
        "</div>",
    ]
    return "\n".join(p for p in parts if p)


def render_brief_text(week_range: str, draft: Dict[str, Any]) -> str:
    items = _items(draft)
    first = items[0].get("label") if items and isinstance(items[0], dict) else None
    first_item = f" • {first}" if first else ""
    return truncate(f"Your week ({week_range}): {draft.get('shape_of_the_week') or ''}{first_item}", MAX_TEXT_LEN)
