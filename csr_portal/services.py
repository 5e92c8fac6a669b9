"""Business logic services used by HTTP controllers.

This module holds the service classes that coordinate repositories and
the pure helpers under `utils`. `AuthService` resolves POC credentials
into a portal session; `PortalService` loads a partner's collections
once and derives every portal view (dashboard, accounts, timelines,
reports, media, calendar) from them.
"""

import base64
import binascii
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

import jwt
import requests
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .utils import transforms
from .utils.branding import partner_branding
from .utils.budget import BudgetCalculator
from .utils.calendar import build_month_view
from .utils.filters import ALL, ProjectFilters, filter_by_subcompany, group_projects, resolve_subcompany
from .utils.hosted_rest import HostedRestClient
from .utils.metrics import calculate_dashboard_metrics, metric_breakdown, metric_title
from .utils.reporting import fetch_pdf_bytes, group_by_period, group_by_project, merge_pdfs, summarize_pdf
from .utils.timelines import group_activities, month_sequence, timeline_window

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

INVALID_CREDENTIALS = 'Invalid credentials. Please check POC Name and Password.'
STORAGE_KEYS = ('csr_user', 'csr_partner', 'is_toll', 'toll_data')
MIN_CALENDAR_YEAR = 2
MAX_CALENDAR_YEAR = 9998

logger = logging.getLogger("csr_portal.auth")


def password_matches(supplied: str, stored: Optional[str]) -> bool:
    """Compare a supplied password with the stored one.

    Stored values are usually plain text and compared exactly; a value
    passlib recognises as a hash is verified instead.
    """
    if not stored:
        return False
    if PWD_CTX.identify(stored):
        return PWD_CTX.verify(supplied, stored)
    return supplied == stored


def _public(row: dict) -> dict:
    return {k: v for k, v in row.items() if k != 'poc_password'}


def hosted_client() -> Optional[HostedRestClient]:
    if not settings.hosted_rest_enabled:
        return None
    return HostedRestClient(settings.HOSTED_REST_URL, settings.HOSTED_REST_KEY)


class AuthService:
    """Credential lookup for partners and tolls, and session issuing."""
    def __init__(self, session: Session, hosted: Optional[HostedRestClient] = None):
        self.session = session
        self.partner_repo = repositories.PartnerRepository(session)
        self.toll_repo = repositories.TollRepository(session)
        self.hosted = hosted

    def find_partners(self, contact_person: str, poc_password: str) -> List[dict]:
        """Partner rows matching the credentials, without their passwords.

        The name is matched ignoring case, the password exactly. With a
        hosted REST upstream configured the query is forwarded to it.
        """
        if self.hosted is not None:
            rows = self.hosted.find_partners(contact_person, poc_password)
        else:
            rows = [
                p.model_dump() for p in self.partner_repo.list_by_contact_person(contact_person)
                if password_matches(poc_password, p.poc_password)
            ]
        return [_public(r) for r in rows]

    def find_tolls(self, poc_name: str, poc_password: str) -> List[dict]:
        """Toll rows matching the credentials, each with its partner under `csr_partners`."""
        if self.hosted is not None:
            rows = self.hosted.find_tolls(poc_name, poc_password)
        else:
            rows = []
            for toll in self.toll_repo.list_by_poc_name(poc_name):
                if not password_matches(poc_password, toll.poc_password):
                    continue
                parent = self.partner_repo.get(toll.csr_partner_id)
                rows.append({**toll.model_dump(), 'csr_partners': parent.model_dump() if parent else None})
        out = []
        for row in rows:
            parent = row.get('csr_partners')
            out.append({**_public(row), 'csr_partners': _public(parent) if parent else None})
        return out

    def login(self, poc_name: str, password: str) -> Optional[dict]:
        """Resolve credentials to a portal session, trying partners before tolls.

        Returns None when neither matches. The session carries the same
        `user`/`partner` objects the front end keeps, the toll details for
        toll users, and a signed `access_token`.
        """
        poc_name = (poc_name or '').strip()
        password = (password or '').strip()
        if not poc_name or not password:
            return None

        partners = self.find_partners(poc_name, password)
        if partners:
            logger.info("partner login %s", partners[0]['id'])
            return self._partner_session(partners[0], poc_name)

        for toll in self.find_tolls(poc_name, password):
            parent = toll.get('csr_partners')
            if not parent:
                continue
            logger.info("toll login %s", toll['id'])
            return self._toll_session(toll, parent)
        logger.info("login rejected")
        return None

    def bridge(self, encoded_user: Optional[str], encoded_pass: Optional[str]) -> Optional[dict]:
        """Partner-only login with base64-encoded credentials.

        Raises ValueError when either value is missing; returns None when
        the credentials cannot be decoded or do not match a partner.
        """
        if not encoded_user or not encoded_pass:
            raise ValueError('Missing authentication credentials')
        try:
            username = base64.b64decode(encoded_user, validate=True).decode('utf-8')
            password = base64.b64decode(encoded_pass, validate=True).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            return None
        partners = self.find_partners(username, password)
        if not partners:
            return None
        logger.info("bridge login %s", partners[0]['id'])
        return self._partner_session(partners[0], username)

    def _partner_session(self, row: dict, poc_name: str) -> dict:
        user = {
            'id': row['id'],
            'full_name': row.get('contact_person') or poc_name,
            'role': 'client',
            'csr_partner_id': row['id'],
            'email': row.get('email'),
        }
        partner = {
            'id': row['id'],
            'name': row.get('name'),
            'company_name': row.get('company_name') or row.get('name'),
            'website': row.get('website'),
            'primary_color': row.get('primary_color'),
        }
        return self._with_token({'user': user, 'partner': partner, 'is_toll': False, 'toll_data': None})

    def _toll_session(self, toll: dict, parent: dict) -> dict:
        user = {
            'id': toll['id'],
            'full_name': toll.get('poc_name'),
            'role': 'client',
            'csr_partner_id': toll.get('csr_partner_id'),
            'email': toll.get('email_id'),
            'toll_id': toll['id'],
        }
        partner = {
            'id': parent['id'],
            'name': parent.get('name'),
            'company_name': parent.get('company_name') or parent.get('name'),
            'website': parent.get('website'),
            'primary_color': parent.get('primary_color'),
            'toll_id': toll['id'],
            'toll_name': toll.get('toll_name'),
        }
        toll_data = {
            'id': toll['id'],
            'toll_name': toll.get('toll_name'),
            'poc_name': toll.get('poc_name'),
            'csr_partner_id': toll.get('csr_partner_id'),
            'state': toll.get('state'),
        }
        return self._with_token({'user': user, 'partner': partner, 'is_toll': True, 'toll_data': toll_data})

    def _with_token(self, payload: dict) -> dict:
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
        claims = {
            'user_id': payload['user']['id'],
            'partner_id': payload['partner']['id'],
            'toll_id': payload['user'].get('toll_id'),
            **payload,
            'exp': int(expire.timestamp()),
        }
        token = jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)
        return {**payload, 'access_token': token}


class PortalService:
    """Views over one partner's (or one toll's) project data.

    `claims` is the decoded session token. Collections are loaded from
    the datastore on first use and reused for every view computed by
    the same service instance.
    """
    def __init__(self, session: Session, claims: dict):
        self.session = session
        self.claims = claims
        self.partner_id = claims['partner_id']
        self.toll_id = claims.get('toll_id')
        self._collections: Optional[dict] = None
        self._tolls: Optional[List[dict]] = None

    # data loading

    def tolls(self) -> List[dict]:
        if self._tolls is None:
            rows = repositories.TollRepository(self.session).list_for_partner(self.partner_id)
            self._tolls = [
                {'id': t.id, 'toll_name': t.toll_name, 'csr_partner_id': t.csr_partner_id, 'state': t.state}
                for t in rows
            ]
        return self._tolls

    def collections(self) -> dict:
        """Load and map every collection for the session's projects."""
        if self._collections is not None:
            return self._collections
        project_rows = repositories.ProjectRepository(self.session).list_for_partner(self.partner_id, self.toll_id)
        project_ids = [r['id'] for r in project_rows]
        repo = repositories.CollectionRepository(self.session)

        impact_by_project: Dict[str, List[dict]] = {}
        for row in repo.rows_for_projects(models.ProjectImpactMetric, project_ids):
            impact_by_project.setdefault(row['project_id'], []).append(row)

        activities = repo.active_activities(project_ids)
        items_by_activity: Dict[str, List[dict]] = {}
        for item in repo.activity_items([a['id'] for a in activities]):
            items_by_activity.setdefault(item['activity_id'], []).append(item)
        activities = [{**a, 'items': items_by_activity.get(a['id'], [])} for a in activities]

        monthly_rows = repo.rows_for_projects(models.MonthlyUpdate, project_ids)
        reports = transforms.sort_newest_first(
            transforms.map_merged_reports(repo.rows_for_projects(models.MergedReport, project_ids))
            + transforms.map_monthly_reports(monthly_rows)
            + transforms.map_reports(repo.rows_for_projects(models.Report, project_ids))
        )
        updates = transforms.sort_newest_first(
            transforms.map_updates(repo.rows_for_projects(models.RealTimeUpdate, project_ids))
            + transforms.map_monthly_updates(monthly_rows)
        )

        update_titles = {u['id']: u['title'] for u in updates}
        media_rows = [
            {**m, 'update_title': update_titles.get(m['update_id']) if m.get('update_id') else None}
            for m in repo.rows_for_projects(models.MediaArticle, project_ids)
        ]
        split = transforms.split_media_articles(media_rows)

        expenses = transforms.map_expenses(repo.counted_expenses(project_ids))
        self._collections = {
            'projects': transforms.map_projects(project_rows, impact_by_project),
            'timelines': transforms.map_timelines(repo.rows_for_projects(models.Timeline, project_ids)),
            'activities': activities,
            'reports': reports,
            'updates': updates,
            'media_photos': [m for m in split['media'] if m['type'] == 'photo'],
            'media_videos': [m for m in split['media'] if m['type'] == 'video'],
            'articles': split['articles'],
            'calendar_events': transforms.map_calendar_events(repo.rows_for_projects(models.CalendarEvent, project_ids)),
            'expenses': expenses,
        }
        return self._collections

    def expense_totals(self) -> Dict[str, float]:
        return transforms.expense_totals(self.collections()['expenses'])

    # filtering

    def subcompany_options(self) -> List[dict]:
        if self.toll_id:
            return []
        return [{'value': t['id'], 'label': t['toll_name']} for t in self.tolls()]

    def scope(self, subcompany: Optional[str] = None, project_id: Optional[str] = None, state: Optional[str] = None) -> ProjectFilters:
        """Apply the subcompany, project and state filters.

        Selecting a project that belongs to a toll pins the subcompany to
        that toll; a project outside the scoped list is ignored.
        """
        projects = self.collections()['projects']
        by_id = {p['id']: p for p in projects}
        selected = by_id.get(project_id) if project_id and project_id != ALL else None
        if selected and selected.get('toll_id') and not self.toll_id:
            subcompany = selected['toll_id']
        toll_ids = [t['id'] for t in self.tolls()]
        effective = resolve_subcompany(subcompany, self.toll_id, toll_ids)
        scoped = filter_by_subcompany(projects, effective)
        if project_id and project_id not in {p['id'] for p in scoped}:
            project_id = None
        return ProjectFilters(scoped, project_id, state, subcompany=effective)

    def filter_options(self, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        toll_states = {t['id']: (t.get('state') or '').strip() or None for t in self.tolls()}
        return {
            **filters.as_dict(),
            'selected_subcompany': filters.subcompany,
            'subcompany_options': self.subcompany_options(),
            'subcompany_filter_enabled': not self.toll_id and bool(self.tolls()),
            'subcompany_state': toll_states.get(filters.subcompany),
            'project_groups': group_projects(filters.projects),
        }

    # views

    def portal(self, subcompany=None, project_id=None, state=None) -> dict:
        """Every mapped collection, limited to the projects in view."""
        filters = self.scope(subcompany, project_id, state)
        data = self.collections()
        out = {'projects': filters.filtered_projects, 'tolls': self.tolls()}
        for key in ('timelines', 'activities', 'reports', 'updates', 'media_photos',
                    'media_videos', 'articles', 'calendar_events', 'expenses'):
            out[key] = filters.visible(data[key])
        return out

    def _partner_projects(self, filters: ProjectFilters) -> List[dict]:
        return [p for p in filters.filtered_projects if p['csr_partner_id'] == self.partner_id]

    def dashboard(self, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        projects = self._partner_projects(filters)
        metrics = calculate_dashboard_metrics(projects, expense_totals=self.expense_totals())
        cards = [
            {'key': key, 'title': metric_title(key), **value}
            for key, value in metrics.items()
        ]
        return {
            'project_count': len(filters.filtered_projects),
            'current_project_name': filters.current_project_name,
            'metrics': metrics,
            'cards': cards,
        }

    def breakdown(self, metric_key: str, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        return {
            'key': metric_key,
            'title': metric_title(metric_key),
            'rows': metric_breakdown(self._partner_projects(filters), metric_key, self.expense_totals()),
        }

    def accounts(self, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        calc = BudgetCalculator(self.collections()['projects'], filters.filtered_projects, self.expense_totals())
        return {
            'current_project_name': filters.current_project_name,
            'summary': calc.summary(),
            'projects': calc.project_entries(),
            'groups': calc.groups(),
        }

    def location_stats(self, by: str = 'state', subcompany=None, project_id=None, state=None) -> List[dict]:
        filters = self.scope(subcompany, project_id, state)
        calc = BudgetCalculator(self.collections()['projects'], filters.filtered_projects, self.expense_totals())
        return calc.location_stats(by)

    def timelines(self, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        data = self.collections()
        activities = filters.visible(data['activities'])
        window = timeline_window(activities)
        return {
            'window': {'start': window['start'].isoformat(), 'end': window['end'].isoformat()},
            'months': month_sequence(window),
            'groups': group_activities(filters.filtered_projects, activities),
            'milestones': filters.visible(data['timelines']),
        }

    def reports(self, group_by: str = 'project', subcompany=None, project_id=None, state=None) -> dict:
        """Reports and updates in view, grouped per project or per month/quarter."""
        filters = self.scope(subcompany, project_id, state)
        data = self.collections()
        reports = filters.visible(data['reports'])
        updates = filters.visible(data['updates'])
        if group_by == 'project':
            grouped = {
                'reports': group_by_project(filters.filtered_projects, reports),
                'updates': group_by_project(filters.filtered_projects, updates),
            }
        else:
            grouped = {'reports': group_by_period(reports, group_by), 'updates': group_by_period(updates, group_by)}
        return {
            'group_by': group_by,
            'current_project_name': filters.current_project_name,
            'report_count': len(reports),
            'update_count': len(updates),
            **grouped,
        }

    def find_document(self, document_id: str) -> Optional[dict]:
        """A report or update (any source) by id."""
        data = self.collections()
        for item in data['reports'] + data['updates']:
            if item['id'] == document_id:
                return item
        return None

    def _fetch(self, url: str) -> bytes:
        return fetch_pdf_bytes(url, timeout=settings.PDF_FETCH_TIMEOUT_SECONDS, max_bytes=settings.MAX_PDF_BYTES)

    def preview(self, document_id: str) -> dict:
        """Page count and first-page excerpt of a document's linked PDF.

        Raises LookupError for an unknown id and ValueError when it has
        no link or the link is not a PDF.
        """
        doc = self.find_document(document_id)
        if doc is None:
            raise LookupError(f'document not found: {document_id}')
        if not doc.get('drive_link'):
            raise ValueError('document has no linked PDF')
        summary = summarize_pdf(self._fetch(doc['drive_link']))
        return {'id': doc['id'], 'title': doc['title'], 'date': doc.get('date'), **summary}

    def merge(self, report_ids: Optional[List[str]] = None, period: Optional[str] = None,
              period_key: Optional[str] = None, subcompany=None, project_id=None, state=None) -> bytes:
        """Merge the linked PDFs of the chosen reports/updates, oldest first.

        Documents are chosen either by id or as every linked document of
        one month/quarter bucket among those in view.
        """
        filters = self.scope(subcompany, project_id, state)
        data = self.collections()
        in_view = filters.visible(data['reports']) + filters.visible(data['updates'])
        if report_ids:
            by_id = {d['id']: d for d in in_view}
            missing = [rid for rid in report_ids if rid not in by_id]
            if missing:
                raise LookupError(f"documents not found: {', '.join(missing)}")
            chosen = [by_id[rid] for rid in report_ids]
        elif period and period_key:
            bucket = next((g for g in group_by_period(in_view, period) if g['key'] == period_key), None)
            chosen = bucket['items'] if bucket else []
        else:
            raise ValueError('report_ids or period and period_key are required')

        linked = []
        seen_links = set()
        # monthly update PDFs are listed both as a report and as an update
        for doc in chosen:
            link = doc.get('drive_link')
            if link and link not in seen_links:
                seen_links.add(link)
                linked.append(doc)
        if not linked:
            raise ValueError('no linked PDFs to merge')
        linked.sort(key=lambda d: d.get('date') or '')
        logger.info("merging %d documents", len(linked))
        return merge_pdfs([self._fetch(d['drive_link']) for d in linked])

    def media(self, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        data = self.collections()
        photos = filters.visible(data['media_photos'])
        videos = filters.visible(data['media_videos'])
        return {
            'photos': group_by_project(filters.filtered_projects, photos),
            'videos': group_by_project(filters.filtered_projects, videos),
            'photo_count': len(photos),
            'video_count': len(videos),
        }

    def articles(self, subcompany=None, project_id=None, state=None) -> dict:
        filters = self.scope(subcompany, project_id, state)
        articles = transforms.sort_newest_first(filters.visible(self.collections()['articles']))
        return {
            'articles': articles,
            'featured': [a for a in articles if a['is_featured']],
            'groups': group_by_project(filters.filtered_projects, articles),
        }

    def calendar(self, year: Optional[int] = None, month: Optional[int] = None,
                 subcompany=None, project_id=None, state=None) -> dict:
        if month is not None and not 1 <= month <= 12:
            raise ValueError('month must be between 1 and 12')
        # the six-week grid spills into the neighbouring years
        if year is not None and not MIN_CALENDAR_YEAR <= year <= MAX_CALENDAR_YEAR:
            raise ValueError(f'year must be between {MIN_CALENDAR_YEAR} and {MAX_CALENDAR_YEAR}')
        today = date.today()
        filters = self.scope(subcompany, project_id, state)
        events = filters.visible(self.collections()['calendar_events'])
        view = build_month_view(events, year or today.year, month or today.month)
        view['event_count'] = len(events)
        return view

    def branding(self) -> dict:
        partner = dict(self.claims.get('partner') or {})
        stored = repositories.PartnerRepository(self.session).get(self.partner_id)
        # stored branding may have changed since the token was issued
        if stored is not None:
            for key in ('website', 'primary_color', 'logo_url'):
                value = getattr(stored, key)
                if value:
                    partner[key] = value
        return partner_branding(partner, settings.LOGO_DEV_TOKEN)


def fetch_error_message(exc: requests.RequestException) -> str:
    response = getattr(exc, 'response', None)
    if response is not None:
        return f'linked PDF returned HTTP {response.status_code}'
    return f'linked PDF could not be fetched: {exc.__class__.__name__}'
