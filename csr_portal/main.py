"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the CSR partner portal
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses.

Endpoints implemented:
- GET /api/auth/partner, GET /api/auth/toll (credential lookups)
- POST /api/auth/login, GET /api/auth/bridge, POST /api/auth/logout
- GET /api/session
- GET /api/portal, GET /api/filters
- GET /api/dashboard, GET /api/dashboard/breakdown/{metric}
- GET /api/accounts, GET /api/accounts/locations
- GET /api/timelines
- GET /api/reports, GET /api/reports/{id}/preview, POST /api/reports/merge
- GET /api/media, GET /api/articles, GET /api/calendar, GET /api/branding
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from typing import Optional
import json
import logging
import os
import re
import time
import uuid
import requests
from .database import create_db_and_tables, get_session
from . import services
from .auth import get_current_session
from .schemas import LoginIn, MergeRequest
from .utils.hosted_rest import UpstreamError
from .utils.rate_limit import LoginThrottle
from .config import settings

app = FastAPI(title="CSR Partner Portal API")
logger = logging.getLogger("csr_portal.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_login_throttle = LoginThrottle(settings.LOGIN_MAX_FAILURES, settings.LOGIN_FAILURE_WINDOW_SECONDS)

# The partner front end and the auth bridge are served from other origins.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _request_summary(request: Request, req_id: str, started: float, **extra) -> str:
    # path only: auth query strings carry passwords
    return json.dumps(
        {
            "request_id": req_id,
            "path": request.url.path,
            "method": request.method,
            "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
            "client": request.client.host if request.client else "unknown",
            **extra,
        },
        ensure_ascii=True,
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        if request.url.path.startswith("/api/auth"):
            logger.exception("request_failed %s", _request_summary(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api/auth"):
        logger.info("request_done %s", _request_summary(request, req_id, started, status_code=response.status_code))
    return response


def get_auth_service(db: Session = Depends(get_session)) -> services.AuthService:
    return services.AuthService(db, services.hosted_client())


def get_portal(db: Session = Depends(get_session), claims: dict = Depends(get_current_session)) -> services.PortalService:
    return services.PortalService(db, claims)


def _throttle_key(request: Request, name: Optional[str]) -> str:
    client = request.client.host if request.client else "unknown"
    return f"{client}:{(name or '').strip().lower()}"


def _enforce_login_throttle(key: str) -> None:
    retry_after = _login_throttle.retry_after(key)
    if retry_after:
        raise HTTPException(
            status_code=429,
            detail=f"too many failed logins; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _auth_lookup(lookup, name: Optional[str], password: Optional[str], missing: str):
    """Run a credential lookup with the hosted functions' error contract."""
    if not name or not password:
        return JSONResponse(status_code=400, content={"error": missing})
    try:
        rows = lookup(name, password)
    except UpstreamError as e:
        return JSONResponse(status_code=e.status_code, content={"error": f"Upstream error: {e.status_code}", "details": e.text})
    except (requests.RequestException, SQLAlchemyError) as e:
        logger.error("auth lookup failed: %s", e.__class__.__name__)
        return JSONResponse(status_code=500, content={"error": "Auth request failed", "details": str(e)})
    logger.info("auth lookup matched=%s", bool(rows))
    return rows


@app.get('/api/auth/partner')
def auth_partner(contact_person: Optional[str] = None, poc_password: Optional[str] = None, auth: services.AuthService = Depends(get_auth_service)):
    """Partner rows matching `contact_person` (any case) and `poc_password`."""
    return _auth_lookup(auth.find_partners, contact_person, poc_password, 'Missing contact_person or poc_password')


@app.get('/api/auth/toll')
def auth_toll(poc_name: Optional[str] = None, poc_password: Optional[str] = None, auth: services.AuthService = Depends(get_auth_service)):
    """Toll rows matching `poc_name` (any case) and `poc_password`, with their partner."""
    return _auth_lookup(auth.find_tolls, poc_name, poc_password, 'Missing poc_name or poc_password')


@app.post('/api/auth/login')
def login(payload: LoginIn, request: Request, auth: services.AuthService = Depends(get_auth_service)):
    """Log a partner or toll POC in and return the session.

    The body carries `user`, `partner`, `is_toll`, `toll_data` and an
    `access_token` to send as a Bearer token on every portal request.
    """
    key = _throttle_key(request, payload.poc_name)
    _enforce_login_throttle(key)
    try:
        session = auth.login(payload.poc_name, payload.password)
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=f'auth upstream returned {e.status_code}')
    if not session:
        _login_throttle.record_failure(key)
        raise HTTPException(status_code=401, detail=services.INVALID_CREDENTIALS)
    _login_throttle.reset(key)
    return session


@app.get('/api/auth/bridge')
def auth_bridge(request: Request, user: Optional[str] = None, auth_pass: Optional[str] = Query(default=None, alias='pass'), auth: services.AuthService = Depends(get_auth_service)):
    """Partner login from base64-encoded `user`/`pass` query parameters."""
    key = _throttle_key(request, user)
    _enforce_login_throttle(key)
    try:
        session = auth.bridge(user, auth_pass)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=f'auth upstream returned {e.status_code}')
    if not session:
        _login_throttle.record_failure(key)
        raise HTTPException(status_code=401, detail='Unauthorized Access')
    _login_throttle.reset(key)
    return session


@app.post('/api/auth/logout')
def logout():
    """Sessions are stateless; the client discards its token and these keys."""
    return {'status': 'ok', 'clear': list(services.STORAGE_KEYS)}


@app.get('/api/session')
def current_session(claims: dict = Depends(get_current_session)):
    """Restore the logged-in user and partner from the Bearer token."""
    return {
        'user': claims['user'],
        'partner': claims['partner'],
        'is_toll': bool(claims.get('is_toll')),
        'toll_data': claims.get('toll_data'),
    }


@app.get('/api/portal')
def portal(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """All mapped collections for the projects in view."""
    return svc.portal(subcompany, project_id, state)


@app.get('/api/filters')
def filters(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Project options, states and subcompany options for the filter bar."""
    return svc.filter_options(subcompany, project_id, state)


@app.get('/api/dashboard')
def dashboard(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    return svc.dashboard(subcompany, project_id, state)


@app.get('/api/dashboard/breakdown/{metric}')
def dashboard_breakdown(metric: str, project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Per-project contributions to one dashboard card."""
    return svc.breakdown(metric, subcompany, project_id, state)


@app.get('/api/accounts')
def accounts(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Budget summary plus per-project and per-group budget entries."""
    return svc.accounts(subcompany, project_id, state)


@app.get('/api/accounts/locations')
def account_locations(by: str = 'state', project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Budget per state (`by=state`) or per location (`by=location`)."""
    try:
        return svc.location_stats(by, subcompany, project_id, state)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/api/timelines')
def timelines(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    return svc.timelines(subcompany, project_id, state)


@app.get('/api/reports')
def reports(group_by: str = 'project', project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Reports and updates grouped by `project`, `month` or `quarter`."""
    if group_by not in ('project', 'month', 'quarter'):
        raise HTTPException(status_code=400, detail='group_by must be project, month or quarter')
    return svc.reports(group_by, subcompany, project_id, state)


@app.get('/api/reports/{document_id}/preview')
def report_preview(document_id: str, svc: services.PortalService = Depends(get_portal)):
    """Page count and first-page text of a report's linked PDF."""
    try:
        return svc.preview(document_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=services.fetch_error_message(e))


def _validate_download_filename(filename: str) -> str:
    if not filename or len(filename) > 200 or not re.fullmatch(r'[\w .()-]+', filename):
        raise HTTPException(status_code=400, detail='invalid filename')
    return filename if filename.lower().endswith('.pdf') else f'{filename}.pdf'


@app.post('/api/reports/merge')
def merge_reports(payload: MergeRequest, svc: services.PortalService = Depends(get_portal)):
    """Merge the linked PDFs of several reports/updates into one download."""
    filename = _validate_download_filename(payload.filename)
    try:
        merged = svc.merge(
            report_ids=payload.report_ids,
            period=payload.period,
            period_key=payload.period_key,
            subcompany=payload.subcompany,
            project_id=payload.project_id,
            state=payload.state,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=services.fetch_error_message(e))
    return Response(
        content=merged,
        media_type='application/pdf',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@app.get('/api/media')
def media(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Photos and videos grouped by project."""
    return svc.media(subcompany, project_id, state)


@app.get('/api/articles')
def articles(project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    return svc.articles(subcompany, project_id, state)


@app.get('/api/calendar')
def calendar(year: Optional[int] = None, month: Optional[int] = None, project_id: Optional[str] = None, state: Optional[str] = None, subcompany: Optional[str] = None, svc: services.PortalService = Depends(get_portal)):
    """Six-week month grid with the events of each day; defaults to the current month."""
    try:
        return svc.calendar(year, month, subcompany, project_id, state)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/api/branding')
def branding(svc: services.PortalService = Depends(get_portal)):
    """Brand colours and logo URLs of the logged-in partner."""
    try:
        return svc.branding()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
