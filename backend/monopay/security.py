"""Bearer-token session layer.

Tokens are HS256 JWTs carrying the user's primary key in ``sub``. They are
verified on every request through Flask-Login's request loader, so views
only ever see ``current_user``.
"""
from datetime import timedelta
import hashlib
import secrets

from flask import current_app, g
from flask_login import current_user
from jose import jwt, ExpiredSignatureError, JWTError

from monopay import db
from monopay.errors import AuthError
from monopay.models import User, utcnow


def create_access_token(user_id: int) -> str:
    cfg = current_app.config
    expire = utcnow() + timedelta(days=int(cfg.get('JWT_EXPIRES_DAYS', 7)))
    claims = {'sub': str(user_id), 'exp': expire, 'type': 'access'}
    return jwt.encode(claims, cfg['SECRET_KEY'], algorithm=cfg.get('JWT_ALGORITHM', 'HS256'))


def decode_access_token(token: str) -> int:
    cfg = current_app.config
    try:
        payload = jwt.decode(token, cfg['SECRET_KEY'], algorithms=[cfg.get('JWT_ALGORITHM', 'HS256')])
    except ExpiredSignatureError as exc:
        raise AuthError('TOKEN_EXPIRED', 'Token expired. Please sign in again.') from exc
    except JWTError as exc:
        raise AuthError('TOKEN_INVALID', 'Invalid token') from exc
    if payload.get('type') not in (None, 'access'):
        raise AuthError('TOKEN_INVALID', 'Invalid token type')
    try:
        return int(payload.get('sub'))
    except (TypeError, ValueError) as exc:
        raise AuthError('TOKEN_INVALID', 'Invalid token') from exc


def user_from_authorization_header(header):
    """Resolve ``Authorization: Bearer <jwt>`` to a User, or None.

    The failure reason is parked on ``g`` for the unauthorized handler.
    """
    if not header or not header.startswith('Bearer '):
        g.auth_failure = ('UNAUTHENTICATED', 'No token provided')
        return None
    token = header.split(' ', 1)[1].strip()
    try:
        user_id = decode_access_token(token)
    except AuthError as exc:
        g.auth_failure = (exc.code, exc.message)
        return None
    user = db.session.get(User, user_id)
    if user is None:
        g.auth_failure = ('TOKEN_INVALID', 'User not found')
    return user


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def acting_user():
    """The authenticated User itself, unwrapped from Flask-Login's proxy so it
    can be assigned to relationships."""
    return current_user._get_current_object()
