import io
import pytest
import requests
from fastapi.testclient import TestClient
from pypdf import PdfReader, PdfWriter
from csr_portal.main import app

client = TestClient(app)


def _pdf(width=200, pages=1):
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=300)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


@pytest.fixture
def fake_fetch(monkeypatch):
    """Serve linked PDFs from memory; unknown URLs get a one-page PDF."""
    served = {}
    calls = []

    def fetch(url, timeout=30, max_bytes=0):
        calls.append(url)
        return served.get(url) or _pdf()

    monkeypatch.setattr('csr_portal.services.fetch_pdf_bytes', fetch)
    return served, calls


def test_views_require_a_session():
    assert client.get('/api/dashboard').status_code in (401, 403)
    assert client.get('/health').json() == {'status': 'ok'}


def test_portal_collections_for_partner(partner_headers):
    r = client.get('/api/portal', headers=partner_headers)
    assert r.status_code == 200
    data = r.json()
    assert {p['id'] for p in data['projects']} == {'proj-library', 'proj-water', 'proj-water-mysuru', 'proj-water-hubli'}
    assert [t['id'] for t in data['tolls']] == ['toll-mumbai', 'toll-pune']
    assert [r['id'] for r in data['reports']] == ['merged-1', 'rep-q1', 'temp-1', 'rep-water']
    assert [u['id'] for u in data['updates']] == ['temp-1', 'upd-2', 'upd-1']
    assert {a['id'] for a in data['activities']} == {'act-library-1', 'act-library-2', 'act-water-1'}
    assert [m['id'] for m in data['media_photos']] == ['media-photo']
    assert data['media_photos'][0]['update_title'] == 'Update 1'
    assert [m['id'] for m in data['media_videos']] == ['media-video']
    assert {a['id'] for a in data['articles']} == {'media-news', 'media-news-photo'}
    # pending expenses do not count
    assert {e['id'] for e in data['expenses']} == {'exp-1', 'exp-2'}
    library = next(a for a in data['activities'] if a['id'] == 'act-library-1')
    assert [i['id'] for i in library['items']] == ['item-1', 'item-2']


def test_toll_user_is_pinned_to_their_toll(toll_headers):
    r = client.get('/api/portal', params={'subcompany': 'all'}, headers=toll_headers)
    assert [p['id'] for p in r.json()['projects']] == ['proj-library']
    f = client.get('/api/filters', headers=toll_headers).json()
    assert f['selected_subcompany'] == 'toll-mumbai'
    assert f['subcompany_options'] == []
    assert f['subcompany_filter_enabled'] is False


def test_filters_for_partner(partner_headers):
    f = client.get('/api/filters', params={'subcompany': 'toll-pune'}, headers=partner_headers).json()
    assert f['selected_subcompany'] == 'toll-pune'
    assert f['subcompany_state'] == 'Maharashtra'
    assert f['visible_project_ids'] == []
    everything = client.get('/api/filters', params={'subcompany': 'unknown'}, headers=partner_headers).json()
    assert everything['selected_subcompany'] == 'all'
    assert everything['states'] == ['Karnataka', 'Maharashtra']
    assert len(everything['project_group_options']) == 4
    assert [g['name'] for g in everything['project_groups']] == ['Clean Water Initiative', 'Shiksha Library Program - Phase 1']
    # picking a toll's project pins its toll
    pinned = client.get('/api/filters', params={'project_id': 'proj-library'}, headers=partner_headers).json()
    assert pinned['selected_subcompany'] == 'toll-mumbai'
    assert pinned['current_project_name'] == 'Shiksha Library Program - Phase 1'


def test_dashboard_metrics(partner_headers):
    r = client.get('/api/dashboard', headers=partner_headers)
    assert r.status_code == 200
    metrics = r.json()['metrics']
    assert metrics['beneficiaries'] == {'current': 1520, 'target': 1500}
    assert metrics['budget'] == {'current': 950000, 'target': 3300000}
    assert metrics['projects_active'] == {'current': 3, 'target': 4}
    assert metrics['students_enrolled'] == {'current': 300, 'target': 750}
    assert metrics['libraries_setup'] == {'current': 4, 'target': 10}
    assert metrics['communities_covered'] == {'current': 5, 'target': 12}
    assert metrics['pads_distributed'] == {'current': 0, 'target': 0}
    titles = {c['key']: c['title'] for c in r.json()['cards']}
    assert titles['waste_collected_kg'] == 'Waste Collected (KG)'


def test_dashboard_state_filter(partner_headers):
    r = client.get('/api/dashboard', params={'state': 'Karnataka'}, headers=partner_headers)
    body = r.json()
    assert body['project_count'] == 3
    assert body['metrics']['budget']['current'] == 500000


def test_dashboard_breakdown(partner_headers):
    r = client.get('/api/dashboard/breakdown/budget', headers=partner_headers)
    body = r.json()
    assert body['title'] == 'Budget Utilized'
    assert sorted((row['project'], row['value']) for row in body['rows']) == [
        ('Clean Water Initiative', 500000),
        ('Shiksha Library Program - Phase 1', 450000),
    ]
    # approved and paid expenses replace the recorded figure, matching the card
    assert sum(row['value'] for row in body['rows']) == 950000
    water = next(row for row in body['rows'] if row['project'] == 'Clean Water Initiative')
    assert water['location'] == 'Bengaluru, Karnataka'


def test_accounts(partner_headers):
    body = client.get('/api/accounts', headers=partner_headers).json()
    summary = body['summary']
    assert summary['total'] == 5000000
    assert summary['utilized'] == 1400000
    assert summary['percentage'] == pytest.approx(28.0)
    assert summary['total_label'] == '₹50.00 L'
    groups = body['groups']
    assert [g['label'] for g in groups] == ['Clean Water Initiative', 'Shiksha Library Program']
    assert groups[0]['total_budget'] == 4000000
    assert len(groups[0]['projects']) == 3
    child = next(p for p in body['projects'] if p['id'] == 'proj-water-hubli')
    assert child['total_budget'] == 1000000
    assert child['utilized_budget'] == 250000


def test_account_locations(partner_headers):
    rows = client.get('/api/accounts/locations', headers=partner_headers).json()
    assert [r['name'] for r in rows] == ['Karnataka', 'Maharashtra']
    maharashtra = rows[1]
    assert maharashtra['total'] == 1000000
    assert maharashtra['utilized'] == 450000
    by_location = client.get('/api/accounts/locations', params={'by': 'location'}, headers=partner_headers).json()
    assert [r['name'] for r in by_location] == ['Bengaluru', 'Hubli', 'Mumbai', 'Mysuru']
    bad = client.get('/api/accounts/locations', params={'by': 'district'}, headers=partner_headers)
    assert bad.status_code == 400


def test_timelines(partner_headers):
    body = client.get('/api/timelines', headers=partner_headers).json()
    assert body['window'] == {'start': '2025-01-15', 'end': '2025-04-30'}
    assert [m['date'] for m in body['months']] == ['2025-01-01', '2025-02-01', '2025-03-01', '2025-04-01']
    groups = {g['project_id']: g for g in body['groups']}
    assert groups['proj-library']['average_completion'] == 55
    assert [a['id'] for a in groups['proj-library']['activities']] == ['act-library-1', 'act-library-2']
    for group in body['groups']:
        for activity in group['activities']:
            assert activity['bounds']['width'] >= 8
            assert activity['bounds']['left'] + activity['bounds']['width'] <= 100.0001
    assert {m['id'] for m in body['milestones']} == {'tl-library-1', 'tl-water-1'}


def test_reports_grouping(partner_headers):
    by_project = client.get('/api/reports', headers=partner_headers).json()
    assert [g['project_id'] for g in by_project['reports']] == ['proj-library', 'proj-water']
    by_month = client.get('/api/reports', params={'group_by': 'month'}, headers=partner_headers).json()
    assert [(g['key'], g['label'], g['count']) for g in by_month['reports']] == [
        ('2025-03', 'March 2025', 3),
        ('2025-02', 'February 2025', 1),
    ]
    by_quarter = client.get('/api/reports', params={'group_by': 'quarter'}, headers=partner_headers).json()
    assert [(g['key'], g['label']) for g in by_quarter['updates']] == [('2025-Q1', 'Q1 2025')]
    bad = client.get('/api/reports', params={'group_by': 'week'}, headers=partner_headers)
    assert bad.status_code == 400


def test_merge_by_ids_is_oldest_first(partner_headers, fake_fetch):
    served, _ = fake_fetch
    served['https://files.example/updates/slp-1.pdf'] = _pdf(width=100)
    served['https://files.example/reports/cwi.pdf'] = _pdf(width=200, pages=2)
    r = client.post('/api/reports/merge', json={'report_ids': ['rep-water', 'upd-1']}, headers=partner_headers)
    assert r.status_code == 200
    assert r.headers['content-type'] == 'application/pdf'
    assert 'merged-report.pdf' in r.headers['content-disposition']
    pages = PdfReader(io.BytesIO(r.content)).pages
    assert [int(p.mediabox.width) for p in pages] == [100, 200, 200]


def test_merge_by_period_dedupes_links(partner_headers, fake_fetch):
    _, calls = fake_fetch
    r = client.post(
        '/api/reports/merge',
        json={'period': 'month', 'period_key': '2025-03', 'filename': 'march'},
        headers=partner_headers,
    )
    assert r.status_code == 200
    assert 'march.pdf' in r.headers['content-disposition']
    assert len(calls) == len(set(calls)) == 4
    assert len(PdfReader(io.BytesIO(r.content)).pages) == 4


def test_merge_errors(partner_headers, fake_fetch, monkeypatch):
    empty = client.post('/api/reports/merge', json={'period': 'month', 'period_key': '1999-01'}, headers=partner_headers)
    assert empty.status_code == 400
    missing = client.post('/api/reports/merge', json={'report_ids': ['nope']}, headers=partner_headers)
    assert missing.status_code == 404
    neither = client.post('/api/reports/merge', json={}, headers=partner_headers)
    assert neither.status_code == 400
    bad_name = client.post('/api/reports/merge', json={'report_ids': ['upd-1'], 'filename': '../x'}, headers=partner_headers)
    assert bad_name.status_code == 400

    served, _ = fake_fetch
    served['https://files.example/updates/slp-1.pdf'] = b'<html>not a pdf</html>'
    not_pdf = client.post('/api/reports/merge', json={'report_ids': ['upd-1']}, headers=partner_headers)
    assert not_pdf.status_code == 400

    def unreachable(url, timeout=30, max_bytes=0):
        raise requests.ConnectionError('down')

    monkeypatch.setattr('csr_portal.services.fetch_pdf_bytes', unreachable)
    down = client.post('/api/reports/merge', json={'report_ids': ['rep-water']}, headers=partner_headers)
    assert down.status_code == 502


def test_report_preview(partner_headers, fake_fetch):
    served, _ = fake_fetch
    served['https://files.example/reports/cwi.pdf'] = _pdf(pages=3)
    r = client.get('/api/reports/rep-water/preview', headers=partner_headers)
    assert r.status_code == 200
    body = r.json()
    assert body['page_count'] == 3
    assert body['title'] == 'CWI-ANNUAL'
    assert body['truncated'] is False
    assert client.get('/api/reports/unknown/preview', headers=partner_headers).status_code == 404


def test_report_preview_of_corrupt_pdf(partner_headers, fake_fetch):
    served, _ = fake_fetch
    served['https://files.example/reports/cwi.pdf'] = b'%PDF-1.4\n garbage\n'
    r = client.get('/api/reports/rep-water/preview', headers=partner_headers)
    assert r.status_code == 400
    assert 'could not be read' in r.json()['detail']


def test_media_and_articles(partner_headers):
    media = client.get('/api/media', headers=partner_headers).json()
    assert media['photo_count'] == 1
    assert media['video_count'] == 1
    assert media['videos'][0]['items'][0]['drive_link'] == 'https://files.example/media/borewell/'
    articles = client.get('/api/articles', headers=partner_headers).json()
    assert [a['id'] for a in articles['articles']] == ['media-news-photo', 'media-news']
    assert [a['id'] for a in articles['featured']] == ['media-news']


def test_calendar_month(partner_headers):
    r = client.get('/api/calendar', params={'year': 2025, 'month': 3}, headers=partner_headers)
    assert r.status_code == 200
    body = r.json()
    assert body['label'] == 'March 2025'
    assert len(body['cells']) == 42
    assert body['cells'][0]['date'] == '2025-02-23'
    cells = {c['date']: c for c in body['cells']}
    assert [e['title'] for e in cells['2025-03-15']['events']] == ['Health camp', 'Library launch']
    assert [e['title'] for e in cells['2025-03-16']['events']] == ['Library launch']
    launch = cells['2025-03-14']['events'][0]
    assert launch['date_range'] == '14/03/2025 - 16/03/2025'
    bad = client.get('/api/calendar', params={'month': 13}, headers=partner_headers)
    assert bad.status_code == 400


@pytest.mark.parametrize('year,month', [(1, 1), (9999, 12), (0, 6)])
def test_calendar_rejects_out_of_range_years(partner_headers, year, month):
    r = client.get('/api/calendar', params={'year': year, 'month': month}, headers=partner_headers)
    assert r.status_code == 400
    assert 'year must be between' in r.json()['detail']


def test_branding(partner_headers):
    body = client.get('/api/branding', headers=partner_headers).json()
    assert body['domain'] == 'interiseworld.com'
    assert body['colors']['lighter'] == 'rgb(102, 145, 241)'
    assert body['colors']['darker'] == 'rgb(25, 69, 164)'
    assert body['logo_url'].startswith('https://img.logo.dev/interiseworld.com?')
    assert body['fallback_logo'].startswith('data:image/svg+xml;base64,')
