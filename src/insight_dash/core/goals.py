from typing import List, Optional, Sequence

from insight_dash.models import KPI, Goal

ON_TRACK_RATIO = 0.9
AT_RISK_RATIO = 0.7


def goal_status(current: float, target: float) -> str:
    progress = current / target if target else 0.0
    if progress >= ON_TRACK_RATIO:
        return "on-track"
    if progress >= AT_RISK_RATIO:
        return "at-risk"
    return "off-track"


def match_kpi(goal: Goal, kpis: Sequence[KPI]) -> Optional[KPI]:
    """
    A KPI matches when its name appears in the goal title, or when it contains
    the title's second word ("Increase revenue to 60k" -> "revenue").
    """
    title = goal.title.lower()
    words = title.split()
    keyword = words[1] if len(words) > 1 else ""

    for kpi in kpis:
        name = kpi.name.lower()
        if name in title:
            return kpi
        if keyword and keyword in name:
            return kpi
    return None


def sync_goals(goals: Sequence[Goal], kpis: Sequence[KPI]) -> List[Goal]:
    """Refresh `current` and `status` from the matching KPI; unmatched goals are unchanged."""
    synced = []
    for goal in goals:
        kpi = match_kpi(goal, kpis)
        if kpi is None:
            synced.append(goal)
            continue
        synced.append(goal.model_copy(update={
            "current": kpi.value,
            "status": goal_status(kpi.value, goal.target),
        }))
    return synced
