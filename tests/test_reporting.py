import io
import pytest
import requests
from pypdf import PdfReader, PdfWriter
from csr_portal.utils import reporting


def _pdf(width, pages=1):
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=100)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_group_by_project_keeps_project_order():
    projects = [{'id': 'b', 'name': 'Beta'}, {'id': 'a', 'name': None}, {'id': 'c', 'name': 'Gamma'}]
    items = [{'id': 1, 'project_id': 'a'}, {'id': 2, 'project_id': 'b'}, {'id': 3, 'project_id': 'a'}]
    groups = reporting.group_by_project(projects, items)
    assert [(g['project_id'], g['count']) for g in groups] == [('b', 1), ('a', 2)]
    assert groups[1]['project_name'] == 'Unnamed Project'


def test_group_by_period_month_and_quarter():
    items = [
        {'id': 1, 'date': '2024-11-03'},
        {'id': 2, 'date': '2025-01-20'},
        {'id': 3, 'date': '2025-01-25'},
        {'id': 4, 'date': None},
        {'id': 5, 'date': 'garbage'},
    ]
    months = reporting.group_by_period(items, 'month')
    assert [(g['key'], g['label'], g['count']) for g in months] == [
        ('2025-01', 'January 2025', 2),
        ('2024-11', 'November 2024', 1),
        ('undated', 'Undated', 2),
    ]
    assert [i['id'] for i in months[0]['items']] == [3, 2]
    quarters = reporting.group_by_period(items, 'quarter')
    assert [(g['key'], g['label']) for g in quarters[:2]] == [('2025-Q1', 'Q1 2025'), ('2024-Q4', 'Q4 2024')]
    with pytest.raises(ValueError):
        reporting.group_by_period(items, 'year')


def test_merge_pdfs_preserves_order():
    merged = reporting.merge_pdfs([_pdf(100, 2), _pdf(300)])
    reader = PdfReader(io.BytesIO(merged))
    assert [int(p.mediabox.width) for p in reader.pages] == [100, 100, 300]


def test_merge_pdfs_rejects_bad_input():
    with pytest.raises(ValueError):
        reporting.merge_pdfs([])
    with pytest.raises(ValueError, match='document 2 is not a PDF'):
        reporting.merge_pdfs([_pdf(100), b'<html>login</html>'])


def test_summarize_pdf():
    summary = reporting.summarize_pdf(_pdf(200, 3))
    assert summary['page_count'] == 3
    assert summary['truncated'] is False
    with pytest.raises(ValueError):
        reporting.summarize_pdf(b'nope')


def test_summarize_pdf_rejects_corrupt_body():
    with pytest.raises(ValueError, match='could not be read'):
        reporting.summarize_pdf(b'%PDF-1.4\n garbage\n')


class _StreamResponse:
    def __init__(self, chunks, status_code=200):
        self.chunks = chunks
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def iter_content(self, chunk_size=1):
        return iter(self.chunks)

    def close(self):
        self.closed = True


def test_fetch_pdf_bytes(monkeypatch):
    calls = {}

    def fake_get(url, timeout=None, stream=False):
        calls.update(url=url, timeout=timeout, stream=stream)
        return _StreamResponse([b'%PDF', b'-1.4'])

    monkeypatch.setattr(reporting.requests, 'get', fake_get)
    assert reporting.fetch_pdf_bytes('https://files.example/a.pdf', timeout=5) == b'%PDF-1.4'
    assert calls == {'url': 'https://files.example/a.pdf', 'timeout': 5, 'stream': True}


def test_fetch_pdf_bytes_limits_size_and_raises_http_errors(monkeypatch):
    big = _StreamResponse([b'x' * 10, b'x' * 10])
    monkeypatch.setattr(reporting.requests, 'get', lambda url, timeout=None, stream=False: big)
    with pytest.raises(ValueError):
        reporting.fetch_pdf_bytes('https://files.example/big.pdf', max_bytes=15)
    assert big.closed

    monkeypatch.setattr(
        reporting.requests, 'get', lambda url, timeout=None, stream=False: _StreamResponse([], status_code=404)
    )
    with pytest.raises(requests.HTTPError):
        reporting.fetch_pdf_bytes('https://files.example/missing.pdf')
