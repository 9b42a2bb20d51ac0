# familybrief/ux_state.py
import os

DEFAULT_HIGH_LOAD_THRESHOLD = 6

UX_STATES = ("A", "B", "C", "D")


def high_load_threshold() -> float:
    raw = os.getenv("WEEKLY_BRIEF_HIGH_LOAD_SCORE")
    try:
        return float(raw) if raw not in (None, "") else DEFAULT_HIGH_LOAD_THRESHOLD
    except ValueError:
        return DEFAULT_HIGH_LOAD_THRESHOLD


def determine_ux_state(has_history: bool, missed_last_week: bool, load_score: float) -> str:
    """
    A: first brief for this family (wins over everything else)
    D: re-entry after last week's brief went unopened
    C: busy week (load score at or above the threshold)
    B: normal week
    """
    if not has_history:
        return "A"
    if missed_last_week:
        return "D"
    if float(load_score or 0) >= high_load_threshold():
        return "C"
    return "B"
