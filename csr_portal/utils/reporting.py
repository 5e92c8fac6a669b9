"""Report grouping and PDF handling for the reports view.

Reports and updates are grouped per project (in project order) or per
calendar month/quarter. Linked PDFs can be fetched, merged into one
document, or summarised for a preview.
"""

from __future__ import annotations

import io
import logging
from datetime import date
from typing import Dict, Iterable, List

import pdfplumber
import requests
from pdfplumber.utils.exceptions import PdfminerException
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

logger = logging.getLogger("csr_portal.reporting")

PERIODS = ('month', 'quarter')
UNDATED_KEY = 'undated'


def group_by_project(projects: List[dict], items: Iterable[dict]) -> List[dict]:
    """Group `items` under the project they belong to, skipping empty groups."""
    items = list(items)
    groups = []
    for project in projects:
        matching = [i for i in items if i.get('project_id') == project['id']]
        if not matching:
            continue
        groups.append({
            'project_id': project['id'],
            'project_name': project.get('name') or 'Unnamed Project',
            'count': len(matching),
            'items': matching,
        })
    return groups


def period_key(iso_date: str, period: str) -> tuple:
    """Return `(key, label)` for an ISO date in the given period."""
    d = date.fromisoformat(iso_date[:10])
    if period == 'month':
        return f'{d.year:04d}-{d.month:02d}', d.strftime('%B %Y')
    quarter = (d.month - 1) // 3 + 1
    return f'{d.year:04d}-Q{quarter}', f'Q{quarter} {d.year}'


def group_by_period(items: Iterable[dict], period: str = 'month') -> List[dict]:
    """Bucket items by the month or quarter of their `date`, newest first.

    Items without a (valid) date are collected in a trailing "Undated" group.
    """
    if period not in PERIODS:
        raise ValueError(f"period must be one of {', '.join(PERIODS)}")
    buckets: Dict[str, dict] = {}
    undated = []
    for item in items:
        raw = item.get('date')
        try:
            key, label = period_key(raw, period) if raw else (None, None)
        except ValueError:
            key, label = None, None
        if key is None:
            undated.append(item)
            continue
        bucket = buckets.setdefault(key, {'key': key, 'label': label, 'items': []})
        bucket['items'].append(item)
    groups = sorted(buckets.values(), key=lambda b: b['key'], reverse=True)
    for g in groups:
        g['items'].sort(key=lambda i: i.get('date') or '', reverse=True)
        g['count'] = len(g['items'])
    if undated:
        groups.append({'key': UNDATED_KEY, 'label': 'Undated', 'items': undated, 'count': len(undated)})
    return groups


def merge_pdfs(streams: List[bytes]) -> bytes:
    """Concatenate the pages of each PDF in `streams`, in order, into one PDF.

    Raises ValueError when there is nothing to merge or a stream is not a
    readable PDF.
    """
    if not streams:
        raise ValueError('no PDFs to merge')
    writer = PdfWriter()
    for idx, payload in enumerate(streams):
        if not payload or payload[:4] != b'%PDF':
            raise ValueError(f'document {idx + 1} is not a PDF')
        try:
            reader = PdfReader(io.BytesIO(payload))
            for page in reader.pages:
                writer.add_page(page)
        except PdfReadError as exc:
            raise ValueError(f'document {idx + 1} could not be read: {exc}') from exc
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


def summarize_pdf(payload: bytes, excerpt_chars: int = 600) -> dict:
    """Return the page count and a first-page text excerpt of a PDF."""
    if not payload or payload[:4] != b'%PDF':
        raise ValueError('not a PDF')
    try:
        with pdfplumber.open(io.BytesIO(payload)) as pdf:
            page_count = len(pdf.pages)
            first_text = (pdf.pages[0].extract_text() or '') if page_count else ''
    except PdfminerException as exc:
        raise ValueError(f'PDF could not be read: {exc}') from exc
    excerpt = ' '.join(first_text.split())
    return {
        'page_count': page_count,
        'excerpt': excerpt[:excerpt_chars],
        'truncated': len(excerpt) > excerpt_chars,
    }


def fetch_pdf_bytes(url: str, timeout: float = 30, max_bytes: int = 25 * 1024 * 1024) -> bytes:
    """Download a linked report PDF.

    Raises `requests.RequestException` on HTTP failures and ValueError when
    the response is too large.
    """
    logger.info("fetching report pdf %s", url)
    response = requests.get(url, timeout=timeout, stream=True)
    response.raise_for_status()
    chunks = []
    size = 0
    for chunk in response.iter_content(chunk_size=64 * 1024):
        size += len(chunk)
        if size > max_bytes:
            response.close()
            raise ValueError(f'linked PDF exceeds {max_bytes} bytes')
        chunks.append(chunk)
    return b''.join(chunks)
