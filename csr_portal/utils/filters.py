"""Project filter state shared by every portal view.

A view is scoped in three steps: the subcompany (toll) filter, the
project filter and the state filter. The value `'all'` (or an empty
value) disables a filter.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

ALL = 'all'


def _is_all(value: Optional[str]) -> bool:
    return not value or value.lower() == ALL


def format_project_label(project: dict) -> str:
    """Return `"<name> • <location>"` for select options."""
    name = (project.get('name') or '').strip() or 'Unnamed Project'
    location = f" • {project['location']}" if project.get('location') else ''
    return f'{name}{location}'


def resolve_subcompany(selected: Optional[str], owned_toll_id: Optional[str], toll_ids: Iterable[str]) -> str:
    """Return the effective subcompany selection.

    Toll users are pinned to their own toll. Partners may pick one of
    their tolls; anything unknown falls back to `'all'`.
    """
    if owned_toll_id:
        return owned_toll_id
    if _is_all(selected):
        return ALL
    return selected if selected in set(toll_ids) else ALL


def filter_by_subcompany(projects: List[dict], subcompany: str) -> List[dict]:
    if _is_all(subcompany):
        return list(projects)
    return [p for p in projects if p.get('toll_id') == subcompany]


class ProjectFilters:
    """Project/state filter over an already subcompany-scoped project list."""

    def __init__(self, projects: List[dict], selected_project_id: Optional[str] = None, selected_state: Optional[str] = None, subcompany: str = ALL):
        self.projects = projects
        self.subcompany = subcompany
        self.selected_project_group = ALL if _is_all(selected_project_id) else selected_project_id
        self.selected_state = ALL if _is_all(selected_state) else selected_state

    @property
    def project_group_options(self) -> List[Dict[str, str]]:
        options = [{'value': p['id'], 'label': format_project_label(p)} for p in self.projects]
        return sorted(options, key=lambda o: o['label'].lower())

    @property
    def states(self) -> List[str]:
        return sorted({p['state'] for p in self.projects if p.get('state')}, key=str.lower)

    @property
    def filtered_projects(self) -> List[dict]:
        working = self.projects
        if self.selected_project_group != ALL:
            working = [p for p in working if p['id'] == self.selected_project_group]
        if self.selected_state != ALL:
            working = [p for p in working if p.get('state') == self.selected_state]
        return working

    @property
    def visible_project_ids(self) -> List[str]:
        return [p['id'] for p in self.filtered_projects]

    @property
    def current_project_name(self) -> Optional[str]:
        """Name of the selected project when exactly one project is in view."""
        filtered = self.filtered_projects
        if self.selected_project_group != ALL and len(filtered) == 1:
            return filtered[0]['name']
        return None

    def visible(self, items: Iterable[dict]) -> List[dict]:
        """Keep only `items` whose `project_id` is in view."""
        ids = set(self.visible_project_ids)
        return [i for i in items if i.get('project_id') in ids]

    def as_dict(self) -> dict:
        return {
            'selected_project_group': self.selected_project_group,
            'selected_state': self.selected_state,
            'project_group_options': self.project_group_options,
            'states': self.states,
            'visible_project_ids': self.visible_project_ids,
            'current_project_name': self.current_project_name,
        }


def matches_group_project(project: dict, project_name: Optional[str], all_projects: List[dict]) -> bool:
    """True if `project` is a parent named `project_name` or a child of one."""
    if not project_name:
        return True
    parent_ids = {p['id'] for p in all_projects if not p.get('parent_project_id') and p.get('name') == project_name}
    return project['id'] in parent_ids or project.get('parent_project_id') in parent_ids


def group_projects(projects: List[dict]) -> List[dict]:
    """Group parent projects by name, attaching children and summing budgets."""
    groups: Dict[str, dict] = {}
    for project in projects:
        if project.get('parent_project_id'):
            continue
        name = project.get('name') or 'Unnamed Project'
        children = [p for p in projects if p.get('parent_project_id') == project['id']]
        total = (project.get('total_budget') or 0) + sum(c.get('total_budget') or 0 for c in children)
        utilized = (project.get('utilized_budget') or 0) + sum(c.get('utilized_budget') or 0 for c in children)
        existing = groups.get(name)
        if existing:
            existing['child_projects'].extend(children)
            existing['total_budget'] += total
            existing['utilized_budget'] += utilized
        else:
            groups[name] = {
                'name': name,
                'main_project': project,
                'child_projects': children,
                'total_budget': total,
                'utilized_budget': utilized,
            }
    return sorted(groups.values(), key=lambda g: g['name'].lower())
