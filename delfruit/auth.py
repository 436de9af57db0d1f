"""Caller identity: the per-request authorization context and bearer tokens.

Tokens are itsdangerous timed signatures over ``{"sub": <user id>,
"isAdmin": <bool>}``. Issuing them belongs to the login flow, which lives
outside this service; :func:`issue_token` exists for operators and tests.
"""
from dataclasses import dataclass
import logging
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .exceptions import AuthenticationError

logger = logging.getLogger('delfruit.auth')

_TOKEN_SALT = 'delfruit-auth'
_BEARER_PREFIX = 'bearer '


@dataclass(frozen=True)
class AuthorizationContext:
    """Who is calling. ``subject_id`` is ``None`` for anonymous callers."""

    subject_id: Optional[int] = None
    is_admin: bool = False

    @classmethod
    def anonymous(cls) -> 'AuthorizationContext':
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.subject_id is not None


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    if not secret_key:
        raise ValueError("secret_key is required to sign or verify tokens")
    return URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)


def issue_token(secret_key: str, subject_id: int, is_admin: bool = False) -> str:
    """Sign a bearer token for *subject_id*."""
    return _serializer(secret_key).dumps({'sub': int(subject_id), 'isAdmin': bool(is_admin)})


def resolve_context(authorization: Optional[str], secret_key: str,
                    max_age: int) -> AuthorizationContext:
    """Build the context for one request from its ``Authorization`` header.

    A missing header means an anonymous caller. A header that is present
    but does not carry a valid, unexpired token raises
    :class:`AuthenticationError` rather than silently downgrading to
    anonymous.
    """
    if not authorization:
        return AuthorizationContext.anonymous()
    if not authorization.lower().startswith(_BEARER_PREFIX):
        raise AuthenticationError('Invalid authorization header', code='INVALID_TOKEN')
    token = authorization[len(_BEARER_PREFIX):].strip()

    try:
        claims = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Rejected expired token")
        raise AuthenticationError('Token expired', code='INVALID_TOKEN')
    except BadSignature:
        logger.warning("Rejected token with bad signature")
        raise AuthenticationError('Invalid token', code='INVALID_TOKEN')

    subject = claims.get('sub') if isinstance(claims, dict) else None
    if not isinstance(subject, int) or isinstance(subject, bool):
        raise AuthenticationError('Invalid token', code='INVALID_TOKEN')
    return AuthorizationContext(subject_id=subject, is_admin=claims.get('isAdmin') is True)
