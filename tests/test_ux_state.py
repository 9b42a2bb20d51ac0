import pytest

from familybrief.ux_state import determine_ux_state


@pytest.mark.parametrize("has_history,missed,score,expected", [
    (False, True, 9, "A"),
    (False, False, 0, "A"),
    (True, True, 9, "D"),
    (True, False, 6, "C"),
    (True, False, 10, "C"),
    (True, False, 5, "B"),
    (True, False, 0, "B"),
])
def test_determine_ux_state(has_history, missed, score, expected):
    assert determine_ux_state(has_history=has_history, missed_last_week=missed, load_score=score) == expected


def test_threshold_is_configurable(monkeypatch):
    monkeypatch.setenv("WEEKLY_BRIEF_HIGH_LOAD_SCORE", "3")
    assert determine_ux_state(True, False, 3) == "C"
    monkeypatch.setenv("WEEKLY_BRIEF_HIGH_LOAD_SCORE", "not-a-number")
    assert determine_ux_state(True, False, 5) == "B"
