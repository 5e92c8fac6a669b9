"""Month grid and day bucketing for the events calendar."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, List, Optional

from .transforms import parse_date

MAX_EVENT_DAYS = 370
GRID_CELLS = 42

EVENT_COLOR_PALETTE = (
    {'background': '#dcfce7', 'text': '#166534', 'ring': '#22c55e'},
    {'background': '#e0f2fe', 'text': '#0f172a', 'ring': '#0ea5e9'},
    {'background': '#ede9fe', 'text': '#312e81', 'ring': '#6366f1'},
    {'background': '#cffafe', 'text': '#0c4a6e', 'ring': '#0891b2'},
    {'background': '#fef9c3', 'text': '#78350f', 'ring': '#f59e0b'},
    {'background': '#ecfccb', 'text': '#365314', 'ring': '#65a30d'},
    {'background': '#e0f7ff', 'text': '#0c4a6e', 'ring': '#22d3ee'},
)


def _color_key(event: dict) -> str:
    title = (event.get('title') or '').strip()
    return title.lower() if title else str(event.get('id') or '')


def event_color_map(events: List[dict]) -> Dict[str, dict]:
    """Assign palette colours by first appearance of each (case-insensitive) title."""
    colors: Dict[str, dict] = {}
    for event in events:
        key = _color_key(event)
        if key and key not in colors:
            colors[key] = EVENT_COLOR_PALETTE[len(colors) % len(EVENT_COLOR_PALETTE)]
    return colors


def events_by_day(events: List[dict]) -> Dict[str, List[dict]]:
    """Place each event on every day it spans, keyed by ISO date.

    Reversed ranges are swapped; spans are capped at 370 days. Events on
    a day are ordered by title, ignoring case.
    """
    by_day: Dict[str, List[dict]] = {}
    for event in events:
        start = parse_date(event.get('start_date')) or parse_date(event.get('event_date'))
        end = parse_date(event.get('end_date')) or start
        if not start or not end:
            continue
        first, last = (start, end) if end >= start else (end, start)
        cursor = first
        days = 0
        while days < MAX_EVENT_DAYS:
            by_day.setdefault(cursor.isoformat(), []).append(event)
            days += 1
            # stepping past `last` could overflow date.max
            if cursor == last:
                break
            cursor += timedelta(days=1)
    for day, items in by_day.items():
        items.sort(key=lambda e: (e.get('title') or '').lower())
    return by_day


def month_grid(year: int, month: int) -> List[dict]:
    """Six Sunday-first weeks (42 cells) covering the month."""
    first = date(year, month, 1)
    # date.weekday(): Monday=0 .. Sunday=6
    grid_start = first - timedelta(days=(first.weekday() + 1) % 7)
    cells = []
    for offset in range(GRID_CELLS):
        day = grid_start + timedelta(days=offset)
        cells.append({'date': day.isoformat(), 'day': day.day, 'in_month': day.month == month})
    return cells


def format_date_range(event: dict) -> Optional[str]:
    start = parse_date(event.get('start_date')) or parse_date(event.get('event_date'))
    end = parse_date(event.get('end_date')) or start
    if not start:
        return None
    return f"{start.strftime('%d/%m/%Y')} - {end.strftime('%d/%m/%Y')}"


def build_month_view(events: List[dict], year: int, month: int) -> dict:
    """Grid cells with their events and a colour per event."""
    colors = event_color_map(events)
    buckets = events_by_day(events)
    cells = []
    for cell in month_grid(year, month):
        day_events = [
            {**e, 'color': colors.get(_color_key(e), EVENT_COLOR_PALETTE[0]), 'date_range': format_date_range(e)}
            for e in buckets.get(cell['date'], [])
        ]
        cells.append({**cell, 'events': day_events})
    return {
        'year': year,
        'month': month,
        'label': date(year, month, 1).strftime('%B %Y'),
        'today': date.today().isoformat(),
        'cells': cells,
    }
