"""Demo data and partner branding updates.

`seed_demo` inserts two partners, one toll and a small set of projects
with every related collection, using fixed ids so it can run against a
fresh database only (it refuses to run twice). `apply_branding` sets
website and brand colour on partners looked up by name.
"""

from datetime import date
from typing import Dict, Iterable, List

from sqlmodel import Session

from . import models, repositories
from .services import PWD_CTX

DEMO_PASSWORD = 'demo123'

DEFAULT_BRANDING = [
    {'name': 'Interise', 'website': 'interiseworld.com', 'primary_color': '#2563eb'},
    {'name': 'Tata Mumbai Marathon', 'website': 'tcs.com', 'primary_color': '#1a1a1a'},
]


def seed_demo(session: Session, hash_passwords: bool = False) -> Dict[str, int]:
    """Insert the demo partners, toll and projects with related rows.

    With `hash_passwords` the toll and second partner get passlib hashes
    instead of plain passwords (both forms are accepted at login).
    Raises ValueError if the demo data is already present.
    """
    partners = repositories.PartnerRepository(session)
    if partners.get('partner-interise') is not None:
        raise ValueError('demo data already seeded')
    stored = PWD_CTX.hash(DEMO_PASSWORD) if hash_passwords else DEMO_PASSWORD

    rows: List = [
        models.CSRPartner(
            id='partner-interise', name='Interise', company_name='Interise Solutions',
            contact_person='Asha Rao', poc_password=DEMO_PASSWORD, email='asha@interise.example',
            website='https://www.interiseworld.com/about', primary_color='#2563eb',
        ),
        models.CSRPartner(
            id='partner-tmm', name='Tata Mumbai Marathon', contact_person='Vikram Shah',
            poc_password=stored, email='vikram@tmm.example', website='tcs.com', primary_color='#1a1a1a',
        ),
        models.Toll(
            id='toll-mumbai', csr_partner_id='partner-interise', toll_name='Mumbai Chapter',
            poc_name='Ravi Kumar', poc_password=stored, email_id='ravi@interise.example', state='Maharashtra',
        ),
        models.Toll(
            id='toll-pune', csr_partner_id='partner-interise', toll_name='Pune Chapter',
            poc_name='Meera Joshi', poc_password=DEMO_PASSWORD, state=' Maharashtra ',
        ),
        models.Project(
            id='proj-library', csr_partner_id='partner-interise', toll_id='toll-mumbai',
            name='Shiksha Library Program - Phase 1', project_code='SLP-01', status='active',
            location='Mumbai', state='Maharashtra', start_date=date(2025, 1, 10),
            expected_end_date=date(2025, 12, 31), total_budget=1_000_000, utilized_budget=400_000,
            direct_beneficiaries=300, indirect_beneficiaries=900, total_beneficiaries=1500,
            students_enrolled=250, project_metrics={'libraries_setup': {'current': 4, 'target': 10}},
        ),
        models.Project(
            id='proj-water', csr_partner_id='partner-interise', name='Clean Water Initiative',
            project_code='CWI', status='active', city='Bengaluru', state='Karnataka',
            start_date=date(2024, 6, 1), total_budget=2_000_000, utilized_budget=500_000,
            male_beneficiaries=120, female_beneficiaries=140, children_beneficiaries=60,
            targets={'communities_covered': 12}, achievements={'communities_covered': 5},
        ),
        models.Project(
            id='proj-water-mysuru', csr_partner_id='partner-interise', parent_project_id='proj-water',
            name='Clean Water Initiative (Mysuru)', status='active', location='Mysuru', state='Karnataka',
            start_date=date(2024, 7, 1), approved_budget=300_000,
        ),
        models.Project(
            id='proj-water-hubli', csr_partner_id='partner-interise', parent_project_id='proj-water',
            name='Clean Water Initiative (Hubli)', status='completed', location='Hubli', state='Karnataka',
            start_date=date(2024, 8, 1), actual_end_date=date(2025, 2, 28),
        ),
        models.Project(
            id='proj-run', csr_partner_id='partner-tmm', name='Run for Health', status='active',
            location='Mumbai', state='Maharashtra', start_date=date(2025, 1, 1), total_budget=500_000,
        ),
        models.Timeline(
            id='tl-library-1', project_id='proj-library', title='Site survey',
            start_date=date(2025, 1, 10), end_date=date(2025, 2, 10), completion_percentage=100,
        ),
        models.Timeline(
            id='tl-water-1', project_id='proj-water', title='Borewell drilling',
            start_date=date(2024, 6, 1), completion_percentage=40, is_critical_path=True,
        ),
        models.ProjectActivity(
            id='act-library-1', project_id='proj-library', title='Procure books',
            start_date=date(2025, 1, 15), end_date=date(2025, 3, 15), completion_percentage=80,
            status='in_progress', activity_order=1,
        ),
        models.ProjectActivity(
            id='act-library-2', project_id='proj-library', title='Train librarians',
            start_date=date(2025, 3, 1), end_date=date(2025, 4, 30), completion_percentage=30,
            activity_order=2,
        ),
        models.ProjectActivity(
            id='act-water-1', project_id='proj-water', title='Water quality testing',
            start_date=date(2025, 2, 1), end_date=date(2025, 2, 20), completion_percentage=100,
            status='completed',
        ),
        models.ProjectActivity(
            id='act-water-retired', project_id='proj-water', title='Retired activity', is_active=False,
        ),
        models.ProjectActivityItem(id='item-2', activity_id='act-library-1', item_text='Place order', item_order=2),
        models.ProjectActivityItem(
            id='item-1', activity_id='act-library-1', item_text='Shortlist titles', item_order=1, is_completed=True,
        ),
        models.Report(
            id='rep-q1', project_id='proj-library', title='Q1 Progress Report', report_code='SLP-Q1',
            period_from=date(2025, 1, 1), period_to=date(2025, 3, 31),
            report_drive_link='https://files.example/reports/slp-q1.pdf',
        ),
        models.Report(
            id='rep-water', project_id='proj-water', report_code='CWI-ANNUAL',
            publication_date=date(2025, 2, 15), report_drive_link='https://files.example/reports/cwi.pdf',
        ),
        models.RealTimeUpdate(
            id='upd-1', project_id='proj-library', update_no='1', date=date(2025, 2, 5),
            description='Books delivered to 4 schools', pdf_url='https://files.example/updates/slp-1.pdf',
        ),
        models.RealTimeUpdate(
            id='upd-2', project_id='proj-water', title='Site visit', date=date(2025, 3, 3),
            documents={'drive_link': 'https://files.example/updates/cwi-visit.pdf'},
        ),
        models.MonthlyUpdate(
            id='temp-1', project_id='proj-library', update_number='3', date_of_report=date(2025, 3, 20),
            description='March update', pdf_link='https://files.example/monthly/slp-3.pdf',
        ),
        models.MergedReport(
            id='merged-1', project_id='proj-library', start_date=date(2025, 1, 1), end_date=date(2025, 3, 31),
            pdf_url='https://files.example/merged/slp-q1.pdf',
        ),
        models.MediaArticle(
            id='media-photo', project_id='proj-library', title='Library opening', media_type='photo',
            drive_link='https://files.example/media/opening.jpg', is_geo_tagged=True, update_id='upd-1',
        ),
        models.MediaArticle(
            id='media-video', project_id='proj-water', title='Borewell walkthrough', media_type='video',
            drive_folder_link='https://files.example/media/borewell/',
        ),
        models.MediaArticle(
            id='media-news', project_id='proj-library', title='City paper feature', media_type='newspaper_cutting',
            article_url='https://news.example/slp', publication_date=date(2025, 2, 20), is_featured=True,
        ),
        models.MediaArticle(
            id='media-news-photo', project_id='proj-water', title='Front page photo', media_type='photo',
            category='News Article', drive_link='https://files.example/media/front.jpg',
            publication_date=date(2025, 3, 1),
        ),
        models.CalendarEvent(
            id='evt-launch', project_id='proj-library', title='Library launch',
            start_date=date(2025, 3, 14), end_date=date(2025, 3, 16), location='Mumbai',
        ),
        models.CalendarEvent(
            id='evt-camp', project_id='proj-water', title='Health camp', event_date=date(2025, 3, 15),
        ),
        models.ProjectExpense(id='exp-1', project_id='proj-library', total_amount=250_000, status='approved'),
        models.ProjectExpense(id='exp-2', project_id='proj-library', total_amount=200_000, status='paid'),
        models.ProjectExpense(id='exp-3', project_id='proj-water', total_amount=900_000, status='pending'),
        models.ProjectImpactMetric(
            id='impact-1', project_id='proj-library', metric_name='Students Enrolled',
            target_value=500, achieved_value=50,
        ),
    ]
    repositories.CollectionRepository(session).add_all(rows)
    counts: Dict[str, int] = {}
    for row in rows:
        table = row.__tablename__
        counts[table] = counts.get(table, 0) + 1
    return counts


def apply_branding(session: Session, updates: Iterable[dict]) -> List[str]:
    """Update `website`/`primary_color` of partners matched by exact name.

    Returns the names that matched no partner.
    """
    repo = repositories.PartnerRepository(session)
    by_name = {p.name: p for p in repo.list_all()}
    missing = []
    for update in updates:
        partner = by_name.get(update['name'])
        if partner is None:
            missing.append(update['name'])
            continue
        repo.update_branding(
            partner,
            website=update.get('website'),
            primary_color=update.get('primary_color'),
            logo_url=update.get('logo_url'),
        )
    return missing
