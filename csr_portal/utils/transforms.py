"""Row mapping helpers.

Rows arrive as plain dictionaries, either from the local datastore
(`model_dump()` of SQLModel rows) or from the hosted REST API (JSON).
The mappers below normalise them into the shapes the portal views use,
coalescing nulls and picking fallback columns. Rows missing an id or a
project id are dropped.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

KNOWN_COLUMN_METRICS = (
    'pads_distributed',
    'trees_planted',
    'meals_served',
    'students_enrolled',
    'schools_renovated',
)

ARTICLE_MEDIA_TYPES = {'newspaper_cutting', 'article', 'document', 'report', 'pdf', 'certificate'}
VISUAL_MEDIA_TYPES = {'photo', 'image', 'video'}

COMPLETED_COLOR = '#10b981'
IN_PROGRESS_COLOR = '#8b5cf6'


def parse_date(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        try:
            return datetime.fromisoformat(raw.replace('Z', '+00:00')).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            return None
    return None


def to_iso_date(value) -> str:
    """Return `YYYY-MM-DD` for `value`, or today's date when it is missing or invalid."""
    parsed = parse_date(value)
    return (parsed or date.today()).isoformat()


def to_nullable_iso_date(value) -> Optional[str]:
    """Like `to_iso_date` but returns None for missing or invalid input."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def safe_number(value, fallback: float = 0):
    """Return `value` when it is a finite number, otherwise `fallback`."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return fallback


def safe_string(value, fallback: str = '') -> str:
    return value if value is not None else fallback


def normalize_metric_key(label: Optional[str]) -> str:
    """Turn a free-text metric name into a snake_case key."""
    if not label:
        return ''
    key = re.sub(r'[^a-z0-9]+', '_', label.strip().lower())
    return key.strip('_')


def as_dict(value) -> dict:
    """`value` when it is a JSON object, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def _first(row: dict, *keys):
    for k in keys:
        value = row.get(k)
        if value is not None:
            return value
    return None


def build_impact_metrics(rows: Iterable[dict]) -> List[dict]:
    """Normalise `project_impact_metrics` rows, keyed by their metric name."""
    out = []
    for row in rows:
        if not row.get('project_id'):
            continue
        name = safe_string(row.get('metric_name'), 'Metric')
        key = normalize_metric_key(name)
        if not key:
            continue
        progress = row.get('progress_percentage')
        out.append({
            'id': row.get('id'),
            'project_id': row['project_id'],
            'key': key,
            'metric_name': name,
            'metric_description': row.get('metric_description'),
            'category': row.get('category'),
            'unit_of_measurement': row.get('unit_of_measurement'),
            'metric_type': row.get('metric_type'),
            'target_value': safe_number(row.get('target_value')),
            'achieved_value': safe_number(row.get('achieved_value')),
            'progress_percentage': safe_number(progress, None),
            'target_date': to_nullable_iso_date(row.get('target_date')),
            'start_date': to_nullable_iso_date(row.get('start_date')),
            'last_updated_date': to_nullable_iso_date(row.get('last_updated_date')),
        })
    return out


def build_project_metrics(row: dict, impact_metrics: Optional[List[dict]] = None) -> Optional[Dict[str, dict]]:
    """Merge every metric source of a project into `{key: {current, target}}`.

    Sources are applied in order, later ones winning: the legacy
    `targets`/`achievements` JSON, the `project_metrics` JSON, the
    dedicated metric columns, then impact metric rows (which add up).
    """
    metrics: Dict[str, dict] = {}
    targets = as_dict(row.get('targets'))
    achievements = as_dict(row.get('achievements'))
    for key in list(targets.keys()) + [k for k in achievements.keys() if k not in targets]:
        metrics[key] = {
            'current': safe_number(achievements.get(key)),
            'target': safe_number(targets.get(key)),
        }

    for key, value in as_dict(row.get('project_metrics')).items():
        value = as_dict(value)
        metrics[key] = {
            'current': safe_number(value.get('current')),
            'target': safe_number(value.get('target')),
        }

    for key in KNOWN_COLUMN_METRICS:
        current_value = safe_number(row.get(key))
        if current_value > 0 or key in metrics:
            entry = metrics.setdefault(key, {'current': 0, 'target': 0})
            if current_value > 0:
                entry['current'] = current_value
            if entry['target'] == 0 and entry['current'] > 0:
                entry['target'] = entry['current']

    for metric in impact_metrics or []:
        entry = metrics.setdefault(metric['key'], {'current': 0, 'target': 0})
        entry['current'] += safe_number(metric.get('achieved_value'))
        entry['target'] += safe_number(metric.get('target_value'))

    return metrics or None


def map_projects(rows: Iterable[dict], impact_metrics_by_project: Optional[Dict[str, List[dict]]] = None) -> List[dict]:
    """Normalise `projects` rows. Rows without id, partner or name are dropped."""
    impact_metrics_by_project = impact_metrics_by_project or {}
    out = []
    for row in rows:
        if not (row.get('id') and row.get('csr_partner_id') and row.get('name')):
            continue
        impact = build_impact_metrics(impact_metrics_by_project.get(row['id'], []))
        end_source = row.get('actual_end_date') or row.get('expected_end_date')
        out.append({
            'id': row['id'],
            'csr_partner_id': row['csr_partner_id'],
            'name': row['name'],
            'code': safe_string(row.get('project_code'), str(row['id'])[:8]),
            'description': row.get('description'),
            'status': safe_string(row.get('status'), 'active'),
            'location': _first(row, 'location', 'city'),
            'state': row.get('state'),
            'start_date': to_iso_date(_first(row, 'start_date', 'created_at')),
            'end_date': to_iso_date(end_source) if end_source else None,
            'total_budget': safe_number(_first(row, 'total_budget', 'approved_budget', 'pending_budget')),
            'utilized_budget': safe_number(row.get('utilized_budget')),
            'beneficiaries_current': safe_number(_first(row, 'beneficiaries_reached', 'direct_beneficiaries')),
            'beneficiaries_target': safe_number(_first(row, 'total_beneficiaries', 'indirect_beneficiaries')),
            'direct_beneficiaries': safe_number(row.get('direct_beneficiaries')),
            'indirect_beneficiaries': safe_number(row.get('indirect_beneficiaries')),
            'male_beneficiaries': safe_number(row.get('male_beneficiaries')),
            'female_beneficiaries': safe_number(row.get('female_beneficiaries')),
            'children_beneficiaries': safe_number(row.get('children_beneficiaries')),
            **{key: safe_number(row.get(key)) for key in KNOWN_COLUMN_METRICS},
            'project_metrics': build_project_metrics(row, impact),
            'impact_metrics': impact or None,
            'targets': row.get('targets'),
            'achievements': row.get('achievements'),
            'toll_id': row.get('toll_id'),
            'parent_project_id': row.get('parent_project_id'),
            'is_beneficiary_project': bool(row.get('is_beneficiary_project') or False),
            'beneficiary_name': row.get('beneficiary_name'),
        })
    return out


def map_timelines(rows: Iterable[dict]) -> List[dict]:
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        completion = safe_number(row.get('completion_percentage'), 0)
        color = row.get('color')
        if color is None:
            done = completion >= 100 or row.get('status') == 'completed'
            color = COMPLETED_COLOR if done else IN_PROGRESS_COLOR
        start = _first(row, 'start_date', 'actual_start_date')
        end = _first(row, 'end_date', 'actual_end_date')
        out.append({
            'id': row['id'],
            'project_id': row['project_id'],
            'title': safe_string(row.get('title'), 'Timeline Phase'),
            'start_date': to_nullable_iso_date(start),
            'end_date': to_nullable_iso_date(end if end is not None else start),
            'completion_percentage': completion,
            'is_critical_path': bool(row.get('is_critical_path')),
            'color': color,
            'status': row.get('status'),
            'actual_start_date': to_nullable_iso_date(row.get('actual_start_date')),
            'actual_end_date': to_nullable_iso_date(row.get('actual_end_date')),
        })
    return out


def map_reports(rows: Iterable[dict]) -> List[dict]:
    """Normalise `reports` rows; the date is the first available milestone date."""
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        raw_date = _first(
            row,
            'publication_date', 'generated_date', 'submitted_date',
            'approved_date', 'sent_date', 'period_to', 'period_from',
        )
        out.append({
            'id': row['id'],
            'project_id': row['project_id'],
            'title': safe_string(row.get('title'), row.get('report_code') or 'Report'),
            'date': to_nullable_iso_date(raw_date),
            'drive_link': row.get('report_drive_link'),
            'source': 'report',
        })
    return out


def map_updates(rows: Iterable[dict]) -> List[dict]:
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        fallback_title = f"Update {row['update_no']}" if row.get('update_no') else 'Field Update'
        documents = row.get('documents') or {}
        link = row.get('pdf_url') or row.get('drive_link') or documents.get('drive_link')
        out.append({
            'id': row['id'],
            'project_id': row['project_id'],
            'title': safe_string(row.get('title'), fallback_title),
            'date': to_iso_date(row.get('date')),
            'description': row.get('description') or '',
            'drive_link': link,
            'is_downloadable': bool(link) or bool(row.get('is_downloadable')) or bool(row.get('is_public')),
            'source': 'update',
            'update_no': row.get('update_no'),
            'location': row.get('location'),
            'update_type': row.get('update_type'),
            'is_public': row.get('is_public'),
            'is_sent_to_client': row.get('is_sent_to_client'),
            'is_featured': row.get('is_featured'),
        })
    return out


def map_monthly_reports(rows: Iterable[dict]) -> List[dict]:
    """`real_time_temp` rows seen as reports ("Monthly Update <n>")."""
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        number = row.get('update_number')
        out.append({
            'id': str(row['id']),
            'project_id': row['project_id'],
            'title': f'Monthly Update {number}' if number else 'Monthly Update',
            'date': to_iso_date(row.get('date_of_report')),
            'drive_link': row.get('pdf_link') if isinstance(row.get('pdf_link'), str) else None,
            'source': 'monthly',
        })
    return out


def map_monthly_updates(rows: Iterable[dict]) -> List[dict]:
    """`real_time_temp` rows seen as updates ("Update <n>")."""
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        number = row.get('update_number')
        link = row.get('pdf_link') if isinstance(row.get('pdf_link'), str) else None
        out.append({
            'id': str(row['id']),
            'project_id': row['project_id'],
            'title': f'Update {number}' if number else 'Update PDF',
            'date': to_iso_date(row.get('date_of_report')),
            'description': row.get('description') if isinstance(row.get('description'), str) else '',
            'drive_link': link,
            'is_downloadable': bool(link),
            'source': 'temp',
        })
    return out


def map_merged_reports(rows: Iterable[dict]) -> List[dict]:
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        out.append({
            'id': str(row['id']),
            'project_id': row['project_id'],
            'title': row['title'] if isinstance(row.get('title'), str) else 'Merged Monthly Report',
            'date': to_iso_date(_first(row, 'end_date', 'start_date')),
            'drive_link': row.get('pdf_url') if isinstance(row.get('pdf_url'), str) else None,
            'source': 'merged',
        })
    return out


def split_media_articles(rows: Iterable[dict]) -> Dict[str, List[dict]]:
    """Split `media_articles` rows into `media` (photos/videos) and `articles`.

    A row may land in both lists only if its type is visual and it is not
    categorised as a news article, so in practice the split is exclusive.
    """
    media: List[dict] = []
    articles: List[dict] = []
    for row in rows:
        media_type = (row.get('media_type') or '').lower()
        title = safe_string(row.get('title'), 'Media Asset')
        description = row.get('description') if isinstance(row.get('description'), str) else None
        is_news_category = (row.get('category') or '').strip().lower() == 'news article'
        is_article = media_type in ARTICLE_MEDIA_TYPES or is_news_category

        if media_type in VISUAL_MEDIA_TYPES and not is_news_category:
            media.append({
                'id': row.get('id'),
                'project_id': row.get('project_id'),
                'title': title,
                'description': description,
                'type': 'video' if media_type == 'video' else 'photo',
                'date': to_nullable_iso_date(row.get('created_at')),
                'is_geo_tagged': bool(row.get('is_geo_tagged')),
                'drive_link': row.get('drive_link') or row.get('drive_folder_link') or '',
                'news_channel': row.get('news_channel'),
                'update_id': row.get('update_id'),
                'update_title': row.get('update_title'),
            })
        if is_article:
            articles.append({
                'id': row.get('id'),
                'project_id': row.get('project_id'),
                'title': title,
                'description': description,
                'date': to_nullable_iso_date(row.get('publication_date')),
                'is_featured': bool(row.get('is_featured')),
                'drive_link': row.get('article_url') or row.get('drive_link') or '',
                'update_id': row.get('update_id'),
                'update_title': row.get('update_title'),
            })
    return {'media': media, 'articles': articles}


def map_calendar_events(rows: Iterable[dict]) -> List[dict]:
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        fallback = _first(row, 'event_date', 'start_date', 'end_date')
        start = row.get('start_date') or fallback
        end = row.get('end_date') or row.get('start_date') or fallback
        out.append({
            'id': row['id'],
            'project_id': row['project_id'],
            'title': safe_string(row.get('title'), 'Event'),
            'description': row.get('description'),
            'start_date': to_nullable_iso_date(start),
            'end_date': to_nullable_iso_date(end),
            'event_date': to_nullable_iso_date(row.get('event_date')),
            'event_type': row.get('event_type'),
            'location': row.get('location'),
            'venue': row.get('venue'),
            'itenary_url': row.get('itenary_url'),
        })
    return out


def map_expenses(rows: Iterable[dict]) -> List[dict]:
    out = []
    for row in rows:
        if not (row.get('id') and row.get('project_id')):
            continue
        out.append({
            'id': row['id'],
            'project_id': row['project_id'],
            'total_amount': safe_number(_first(row, 'total_amount', 'amount')),
            'status': row.get('status'),
            'expense_date': to_iso_date(row['expense_date']) if row.get('expense_date') else None,
        })
    return out


def expense_totals(expenses: Iterable[dict]) -> Dict[str, float]:
    """Sum mapped expenses per project id."""
    totals: Dict[str, float] = {}
    for e in expenses:
        totals[e['project_id']] = totals.get(e['project_id'], 0) + safe_number(e.get('total_amount'))
    return totals


def sort_newest_first(items: List[dict]) -> List[dict]:
    """Sort by `date` descending; undated items go last."""
    return sorted(items, key=lambda i: i.get('date') or '', reverse=True)
