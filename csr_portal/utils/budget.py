"""Budget (accounts view) calculations.

Child projects do not carry budgets of their own: each child shows an
even share of its parent's budget, split across the parent's children.
Projects are grouped for display by a normalised form of their (parent)
name so that "Phase 1"/"Phase 2" variants land together.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .metrics import actual_utilized
from .transforms import safe_number

PROJECT_COLOR_COUNT = 6


def normalize_group_key(value: str) -> str:
    key = value.lower()
    key = re.sub(r'\b(phase|part|section|batch)\s*\d+', '', key, flags=re.IGNORECASE)
    key = re.sub(r'\([^)]*\)', '', key)
    key = re.sub(r'[^a-z0-9 ]+', ' ', key)
    return re.sub(r'\s+', ' ', key).strip()


def derive_group_label(value: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        return 'Miscellaneous Projects'
    segments = [s.strip() for s in re.split(r'[-–—_:|]', trimmed) if s.strip()]
    return segments[0] if segments else trimmed


def format_currency(amount: float) -> str:
    """Format rupees as Cr (1e7), L (1e5) or K (1e3)."""
    if amount >= 10_000_000:
        return f'₹{amount / 10_000_000:.2f} Cr'
    if amount >= 100_000:
        return f'₹{amount / 100_000:.2f} L'
    if amount >= 1_000:
        return f'₹{amount / 1_000:.1f} K'
    return f'₹{amount:g}'


class BudgetCalculator:
    """Budget figures for the projects in view.

    `all_projects` is the full project list used to look up parents and
    count siblings; `projects` is the filtered list being reported on.
    """

    def __init__(self, all_projects: List[dict], projects: List[dict], expense_totals: Optional[Dict[str, float]] = None):
        self.by_id = {p['id']: p for p in all_projects}
        self.projects = projects
        self.expense_totals = expense_totals or {}
        self.sub_project_counts: Dict[str, int] = {}
        for p in all_projects:
            parent = p.get('parent_project_id')
            if parent:
                self.sub_project_counts[parent] = self.sub_project_counts.get(parent, 0) + 1

    def grouping_source(self, project: dict) -> str:
        parent_id = project.get('parent_project_id')
        if parent_id and parent_id in self.by_id:
            return self.by_id[parent_id].get('name') or project.get('name') or ''
        return project.get('name') or ''

    def normalized_budget(self, project: dict) -> Dict[str, float]:
        parent_id = project.get('parent_project_id')
        source = self.by_id.get(parent_id, project) if parent_id else project
        divisor = max(self.sub_project_counts.get(parent_id, 1), 1) if parent_id else 1
        return {
            'total_budget': safe_number(source.get('total_budget')) / divisor,
            'utilized_budget': safe_number(source.get('utilized_budget')) / divisor,
        }

    def summary(self) -> dict:
        total = utilized = 0.0
        for project in self.projects:
            normalized = self.normalized_budget(project)
            total += normalized['total_budget']
            utilized += normalized['utilized_budget']
        percentage = (utilized / total) * 100 if total > 0 else 0.0
        return {
            'total': total,
            'utilized': utilized,
            'remaining': total - utilized,
            'percentage': percentage,
            'pending_percentage': 100 - percentage,
            'total_label': format_currency(total),
            'utilized_label': format_currency(utilized),
            'remaining_label': format_currency(total - utilized),
        }

    def _group_key(self, project: dict) -> str:
        source = self.grouping_source(project)
        return normalize_group_key(source) or source.lower()

    def color_index_map(self) -> Dict[str, int]:
        keys = sorted({self._group_key(p) for p in self.projects})
        return {key: i % PROJECT_COLOR_COUNT for i, key in enumerate(keys)}

    def project_entries(self) -> List[dict]:
        colors = self.color_index_map()
        entries = []
        for project in self.projects:
            normalized = self.normalized_budget(project)
            total = normalized['total_budget']
            utilized = normalized['utilized_budget']
            group_key = self._group_key(project)
            entries.append({
                'id': project['id'],
                'name': project.get('name'),
                'location': project.get('location') or 'N/A',
                'state': project.get('state') or 'N/A',
                'total_budget': total,
                'utilized_budget': utilized,
                'pending_budget': total - utilized,
                'utilization_percent': (utilized / total) * 100 if total > 0 else 0,
                'color_index': colors.get(group_key, 0),
                'group_key': group_key,
                'source_name': self.grouping_source(project),
            })
        return sorted(entries, key=lambda e: e['total_budget'], reverse=True)

    def groups(self) -> List[dict]:
        """Entries grouped by normalised name, largest total first."""
        groups: Dict[str, dict] = {}
        for entry in self.project_entries():
            group = groups.get(entry['group_key'])
            if group is None:
                groups[entry['group_key']] = {
                    'key': entry['group_key'],
                    'label': derive_group_label(entry['source_name']),
                    'total_budget': entry['total_budget'],
                    'utilized_budget': entry['utilized_budget'],
                    'pending_budget': entry['pending_budget'],
                    'utilization_percent': entry['utilization_percent'],
                    'projects': [entry],
                    'color_index': entry['color_index'],
                }
                continue
            group['projects'].append(entry)
            group['total_budget'] += entry['total_budget']
            group['utilized_budget'] += entry['utilized_budget']
            group['pending_budget'] = group['total_budget'] - group['utilized_budget']
            group['utilization_percent'] = (
                (group['utilized_budget'] / group['total_budget']) * 100 if group['total_budget'] > 0 else 0
            )
        return sorted(groups.values(), key=lambda g: g['total_budget'], reverse=True)

    def location_stats(self, by: str = 'state') -> List[dict]:
        """Project count and budget per distinct state (or location), sorted by name."""
        if by not in ('state', 'location'):
            raise ValueError("by must be 'state' or 'location'")
        names = sorted({p[by] for p in self.projects if p.get(by)})
        out = []
        for name in names:
            matching = [p for p in self.projects if p.get(by) == name]
            total = sum(safe_number(p.get('total_budget')) for p in matching)
            utilized = sum(actual_utilized(p, self.expense_totals) for p in matching)
            out.append({
                'name': name,
                'project_count': len(matching),
                'total': total,
                'utilized': utilized,
                'utilization_percent': (utilized / total) * 100 if total > 0 else 0,
            })
        return out
