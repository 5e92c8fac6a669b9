"""Dashboard metric aggregation over mapped projects."""

from __future__ import annotations

from typing import Dict, List, Optional

from .transforms import as_dict, safe_number

BENEFICIARY_COMPONENTS = (
    'direct_beneficiaries',
    'indirect_beneficiaries',
    'male_beneficiaries',
    'female_beneficiaries',
    'children_beneficiaries',
)

ALL_METRIC_KEYS = (
    'pads_distributed',
    'trees_planted',
    'meals_served',
    'students_enrolled',
    'schools_renovated',
    'sessions_conducted',
    'libraries_setup',
    'scholarships_given',
    'ration_kits_distributed',
    'families_fed',
    'waste_collected_kg',
    'plastic_recycled_kg',
    'communities_covered',
)

METRIC_TITLES = {
    'beneficiaries': 'Total Beneficiaries',
    'budget': 'Budget Utilized',
    'pads_distributed': 'Pads Distributed',
    'sessions_conducted': 'Sessions Conducted',
    'students_enrolled': 'Students Enrolled',
    'schools_renovated': 'Schools Renovated',
    'libraries_setup': 'Libraries Setup',
    'scholarships_given': 'Scholarships Given',
    'meals_served': 'Meals Served',
    'ration_kits_distributed': 'Ration Kits Distributed',
    'families_fed': 'Families Fed',
    'waste_collected_kg': 'Waste Collected (KG)',
    'trees_planted': 'Trees Planted',
    'plastic_recycled_kg': 'Plastic Recycled (KG)',
    'communities_covered': 'Communities Covered',
}


def actual_utilized(project: dict, expense_totals: Optional[Dict[str, float]] = None) -> float:
    """Approved/paid expense total when there is one, else the recorded utilised budget."""
    actual = (expense_totals or {}).get(project['id'], 0)
    return actual if actual > 0 else safe_number(project.get('utilized_budget'))


def calculate_dashboard_metrics(
    projects: List[dict],
    project_id: Optional[str] = None,
    state: Optional[str] = None,
    expense_totals: Optional[Dict[str, float]] = None,
) -> Dict[str, dict]:
    """Aggregate the dashboard cards as `{key: {current, target}}`.

    `project_id`/`state` of `'all'` or None leave the list unfiltered.
    Every known metric key is present (zeroed) in the result.
    """
    filtered = projects
    if project_id and project_id != 'all':
        filtered = [p for p in filtered if p['id'] == project_id]
    if state and state != 'all':
        filtered = [p for p in filtered if p.get('state') == state]

    total_beneficiaries = sum(
        safe_number(p.get(k)) for p in filtered for k in BENEFICIARY_COMPONENTS
    )
    target_beneficiaries = sum(safe_number(p.get('beneficiaries_target')) for p in filtered)
    total_budget = sum(safe_number(p.get('total_budget')) for p in filtered)
    utilized_budget = sum(actual_utilized(p, expense_totals) for p in filtered)

    aggregated: Dict[str, dict] = {
        'beneficiaries': {'current': total_beneficiaries, 'target': target_beneficiaries or total_beneficiaries},
        'budget': {'current': utilized_budget, 'target': total_budget or 1},
        'projects_active': {
            'current': len([p for p in filtered if p.get('status') == 'active']),
            'target': len(filtered) or 1,
        },
    }
    for key in ALL_METRIC_KEYS:
        aggregated[key] = {'current': 0, 'target': 0}

    for project in filtered:
        for key, value in as_dict(project.get('project_metrics')).items():
            value = as_dict(value)
            target = safe_number(value.get('target'))
            if key == 'projects_active':
                if target > 0:
                    aggregated[key]['target'] = target
                continue
            entry = aggregated.setdefault(key, {'current': 0, 'target': 0})
            if target > 0:
                entry['target'] += target
            entry['current'] += safe_number(value.get('current'))

    for entry in aggregated.values():
        if entry['target'] == 0 and entry['current'] > 0:
            entry['target'] = entry['current']
    return aggregated


def metric_breakdown(projects: List[dict], metric_key: str, expense_totals: Optional[Dict[str, float]] = None) -> List[dict]:
    """Per-project contribution to one dashboard card, zero rows dropped.

    Budget rows use the same utilised figure as the budget card.
    """
    rows = []
    for project in projects:
        if metric_key == 'beneficiaries':
            value = project.get('beneficiaries_current')
        elif metric_key == 'budget':
            value = actual_utilized(project, expense_totals)
        else:
            metric = as_dict(as_dict(project.get('project_metrics')).get(metric_key))
            if not metric:
                continue
            value = metric.get('current')
        rows.append({
            'project': project.get('name'),
            'location': f"{project.get('location')}, {project.get('state')}",
            'value': safe_number(value),
        })
    return [r for r in rows if r['value'] > 0]


def metric_title(key: str) -> str:
    if key in METRIC_TITLES:
        return METRIC_TITLES[key]
    return ' '.join(word.capitalize() for word in key.split('_'))
