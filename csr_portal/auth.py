"""Session token helpers and FastAPI security dependency.

A portal session is a signed JWT issued at login. It carries the
`user` and `partner` objects the front end displays, plus the partner
and toll ids every portal view is scoped by. `get_current_session`
validates the bearer token and returns its claims.
"""

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from .services import JWT_SECRET, JWT_ALGORITHM

bearer_scheme = HTTPBearer()


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_session(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> dict:
    """FastAPI dependency that returns the claims of the session token."""
    payload = decode_token(credentials.credentials)
    if not payload.get('partner_id') or not payload.get('user'):
        raise HTTPException(status_code=401, detail='invalid token payload')
    return payload
