from datetime import date

import pytest

from insight_dash.core.goals import goal_status, match_kpi, sync_goals
from insight_dash.models import KPI, Goal


def _kpi(name: str, value: float) -> KPI:
    return KPI(id=name, column=name, name=name, value=value, target=value * 1.1)


def _goal(title: str, target: float) -> Goal:
    return Goal(title=title, target=target, deadline=date(2024, 12, 31))

# --- Tests for Goal Status ---

@pytest.mark.parametrize("current, expected", [
    (100, "on-track"),
    (90, "on-track"),
    (89.99, "at-risk"),
    (70, "at-risk"),
    (69, "off-track"),
    (0, "off-track"),
])
def test_goal_status_thresholds(current, expected):
    assert goal_status(current, 100) == expected

# --- Tests for KPI Matching ---

def test_match_by_name_in_title():
    kpis = [_kpi("Orders", 10), _kpi("Revenue", 5)]
    assert match_kpi(_goal("Hit Revenue of 60k", 60000), kpis).name == "Revenue"

def test_match_by_second_word():
    kpis = [_kpi("Total Customers", 130)]
    assert match_kpi(_goal("Grow customers base", 150), kpis).name == "Total Customers"

def test_single_word_title_does_not_match_everything():
    assert match_kpi(_goal("Growth", 10), [_kpi("Revenue", 5)]) is None

def test_sync_updates_current_and_status():
    goals = [_goal("Increase revenue to 60k", 60000), _goal("Ship the app", 1)]
    synced = sync_goals(goals, [_kpi("Revenue", 51200)])

    assert synced[0].current == 51200
    assert synced[0].status == "at-risk"
    assert synced[1] == goals[1]
    # inputs are not mutated
    assert goals[0].current == 0
