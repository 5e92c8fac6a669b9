"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests.
"""

from pydantic import BaseModel
from typing import List, Optional


class LoginIn(BaseModel):
    """POC credentials; the name is a partner contact person or a toll POC."""
    poc_name: str
    password: str


class MergeRequest(BaseModel):
    """Documents to merge: explicit ids, or one month/quarter bucket.

    `period` is `month` or `quarter` and `period_key` the bucket key as
    returned by `GET /api/reports` (e.g. `2025-03` or `2025-Q1`).
    """
    report_ids: Optional[List[str]] = None
    period: Optional[str] = None
    period_key: Optional[str] = None
    project_id: Optional[str] = None
    state: Optional[str] = None
    subcompany: Optional[str] = None
    filename: str = 'merged-report.pdf'
