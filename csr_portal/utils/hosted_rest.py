"""Client for the hosted (PostgREST-style) REST API.

Used by the auth lookup endpoints when `HOSTED_REST_URL` and
`HOSTED_REST_KEY` are configured. Names are matched with `ilike` and
passwords with `eq`, exactly as the hosted functions query them.
"""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import quote

import requests

logger = logging.getLogger("csr_portal.hosted_rest")


class UpstreamError(Exception):
    """Non-2xx response from the hosted API."""

    def __init__(self, status_code: int, text: str):
        super().__init__(f"upstream returned {status_code}")
        self.status_code = status_code
        self.text = text


def _ilike_literal(value: str) -> str:
    """Escape LIKE wildcards so a name only matches itself (ignoring case)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class HostedRestClient:
    def __init__(self, base_url: str, api_key: str, timeout: float = 30):
        self._base_url = f"{base_url.rstrip('/')}/rest/v1"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self.timeout = timeout

    def _get(self, path: str) -> List[dict]:
        # log the table only; the query string carries the password
        logger.info("hosted rest request %s", path.split("?", 1)[0])
        resp = requests.get(f"{self._base_url}{path}", headers=self._headers, timeout=self.timeout)
        if resp.status_code >= 300:
            logger.error("hosted rest error %s", resp.status_code)
            raise UpstreamError(resp.status_code, resp.text)
        return resp.json()

    def find_partners(self, contact_person: str, poc_password: str) -> List[dict]:
        return self._get(
            "/csr_partners?select=*"
            f"&contact_person=ilike.{quote(_ilike_literal(contact_person), safe='')}"
            f"&poc_password=eq.{quote(poc_password, safe='')}"
        )

    def find_tolls(self, poc_name: str, poc_password: str) -> List[dict]:
        """Matching toll rows, each embedding its partner as `csr_partners`."""
        return self._get(
            "/csr_partner_tolls?select=*,csr_partners(*)"
            f"&poc_name=ilike.{quote(_ilike_literal(poc_name), safe='')}"
            f"&poc_password=eq.{quote(poc_password, safe='')}"
        )
