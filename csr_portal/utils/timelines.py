"""Gantt-style layout of project activities."""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Dict, List, Optional

from .transforms import parse_date, safe_number

MIN_BAR_PERCENT = 8
MAX_MONTHS = 18
DEFAULT_WINDOW_START = date(2025, 1, 1)
DEFAULT_WINDOW_DAYS = 180


def activity_start(activity: dict) -> Optional[date]:
    for key in ('start_date', 'actual_start_date', 'actual_end_date', 'end_date'):
        parsed = parse_date(activity.get(key))
        if parsed:
            return parsed
    return None


def activity_end(activity: dict) -> Optional[date]:
    for key in ('end_date', 'actual_end_date', 'actual_start_date', 'start_date'):
        parsed = parse_date(activity.get(key))
        if parsed:
            return parsed
    return None


def timeline_window(activities: List[dict]) -> Dict[str, date]:
    """Earliest start to latest end; a 180 day window from 2025-01-01 when empty."""
    starts = [d for d in (activity_start(a) for a in activities) if d]
    ends = [d for d in (activity_end(a) for a in activities) if d]
    earliest = min(starts) if starts else DEFAULT_WINDOW_START
    latest = max(ends) if ends else None
    if latest is None or latest <= earliest:
        latest = earliest + timedelta(days=DEFAULT_WINDOW_DAYS)
    return {'start': earliest, 'end': latest}


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def activity_bounds(activity: dict, window: Dict[str, date]) -> Dict[str, float]:
    """Bar position as `left`/`width` percentages of the window."""
    span = max((window['end'] - window['start']).days, 1)
    start = activity_start(activity) or window['start']
    end = activity_end(activity) or start
    start_percent = (start - window['start']).days / span * 100
    raw_width = (end - start).days / span * 100
    left = _clamp(start_percent, 0, 100 - MIN_BAR_PERCENT)
    width = _clamp(max(raw_width, MIN_BAR_PERCENT), MIN_BAR_PERCENT, 100 - left)
    return {'left': round(left, 4), 'width': round(width, 4)}


def month_sequence(window: Dict[str, date]) -> List[dict]:
    """First-of-month markers across the window, at most 18."""
    cursor = window['start'].replace(day=1)
    last = window['end'].replace(day=1)
    months = []
    while cursor <= last and len(months) < MAX_MONTHS:
        months.append({'label': cursor.strftime('%b %y'), 'date': cursor.isoformat()})
        cursor = (cursor.replace(day=28) + timedelta(days=4)).replace(day=1)
    if not months:
        today = date.today().replace(day=1)
        months.append({'label': today.strftime('%b %y'), 'date': today.isoformat()})
    return months


def group_activities(projects: List[dict], activities: List[dict]) -> List[dict]:
    """Group activities per project (first-seen order), sorted by start date.

    Each group carries the rounded mean completion of its activities and
    each activity its bar bounds within the shared window.
    """
    window = timeline_window(activities)
    names = {p['id']: p.get('name') for p in projects}
    groups: Dict[str, dict] = {}
    for activity in activities:
        pid = activity['project_id']
        group = groups.setdefault(pid, {
            'project_id': pid,
            'project_name': names.get(pid) or 'Unnamed Project',
            'activities': [],
        })
        group['activities'].append({**activity, 'bounds': activity_bounds(activity, window)})
    for group in groups.values():
        group['activities'].sort(key=lambda a: activity_start(a) or date.max)
        completions = [safe_number(a.get('completion_percentage')) for a in group['activities']]
        # halves round up
        group['average_completion'] = math.floor(sum(completions) / len(completions) + 0.5) if completions else 0
    return list(groups.values())
