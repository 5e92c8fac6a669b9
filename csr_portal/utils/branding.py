"""Partner branding: colour variations and company logos.

Logos come from logo.dev, keyed by the partner's website domain. When a
partner has no website an initials placeholder (SVG data URL) is used.
"""

from __future__ import annotations

import base64
import re
from typing import Optional
from urllib.parse import urlencode

LOGO_DEV_BASE_URL = 'https://img.logo.dev'
DEFAULT_PRIMARY_COLOR = '#059669'
FALLBACK_LOGO_COLOR = '#6366f1'

# domains logo.dev does not resolve on their own
DOMAIN_OVERRIDES = {
    'interise': 'interiseworld.com',
}


def _hex_to_rgb(value: str) -> tuple:
    raw = value.lstrip('#')
    if len(raw) == 3:
        raw = ''.join(ch * 2 for ch in raw)
    if not re.fullmatch(r'[0-9a-fA-F]{6}', raw):
        raise ValueError(f'invalid hex colour: {value!r}')
    return tuple(int(raw[i:i + 2], 16) for i in (0, 2, 4))


def brand_colors(primary_color: Optional[str]) -> dict:
    """Return the primary colour plus a 30% lighter and a 30% darker variant.

    Gradients run primary to darker (`gradient`) and lighter to primary
    (`gradient_reverse`). A missing colour falls back to the default
    green; a malformed one raises ValueError.
    """
    primary = primary_color or DEFAULT_PRIMARY_COLOR
    r, g, b = _hex_to_rgb(primary)

    def lighten(v):
        return min(255, int(v + (255 - v) * 0.3))

    def darken(v):
        return max(0, int(v * 0.7))

    lighter = f'rgb({lighten(r)}, {lighten(g)}, {lighten(b)})'
    darker = f'rgb({darken(r)}, {darken(g)}, {darken(b)})'
    return {
        'primary': primary,
        'lighter': lighter,
        'darker': darker,
        'gradient': f'linear-gradient(135deg, {primary}, {darker})',
        'gradient_reverse': f'linear-gradient(135deg, {lighter}, {primary})',
    }


def extract_domain(website: Optional[str]) -> str:
    """Strip scheme, `www.` and any path from a website."""
    if not website:
        return ''
    domain = re.sub(r'^https?://', '', website.strip())
    domain = re.sub(r'^www\.', '', domain)
    return domain.split('/')[0]


def company_logo_url(
    domain: str,
    token: str = '',
    size: int = 200,
    fmt: str = 'webp',
    theme: str = 'light',
    quality: int = 80,
    greyscale: bool = False,
) -> str:
    for needle, override in DOMAIN_OVERRIDES.items():
        if needle in domain:
            domain = override
            break
    params = {'token': token, 'format': fmt, 'size': str(size)}
    if quality:
        params['quality'] = str(quality)
    if greyscale:
        params['greyscale'] = 'true'
    if theme == 'dark':
        params['theme'] = 'dark'
    return f'{LOGO_DEV_BASE_URL}/{domain}?{urlencode(params)}'


def initials(company_name: str) -> str:
    words = [w for w in company_name.split(' ') if w]
    return ''.join(w[0] for w in words).upper()[:2]


def fallback_logo(company_name: str) -> str:
    """Square SVG with the company initials, as a base64 data URL."""
    svg = (
        '<svg width="200" height="200" xmlns="http://www.w3.org/2000/svg">'
        f'<rect width="200" height="200" fill="{FALLBACK_LOGO_COLOR}"/>'
        '<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" '
        'font-family="Arial, sans-serif" font-size="80" font-weight="bold" fill="white">'
        f'{initials(company_name)}'
        '</text></svg>'
    )
    encoded = base64.b64encode(svg.encode('utf-8')).decode('ascii')
    return f'data:image/svg+xml;base64,{encoded}'


def partner_branding(partner: dict, logo_token: str = '') -> dict:
    """Colours and logo URLs for a partner row."""
    company = partner.get('company_name') or partner.get('name') or ''
    domain = extract_domain(partner.get('website'))
    return {
        'company_name': company,
        'domain': domain or None,
        'colors': brand_colors(partner.get('primary_color')),
        'logo_url': partner.get('logo_url') or (company_logo_url(domain, token=logo_token) if domain else None),
        'fallback_logo': fallback_logo(company or 'CSR'),
    }
