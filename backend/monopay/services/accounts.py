"""Account lifecycle: signup, signin, federated login, profile and password reset."""
from datetime import timedelta
import re

from flask import current_app
from jose import jwt, JWTError

from monopay import db
from monopay.errors import (
    AuthError, ConflictError, DeliveryError, NotFoundError, ValidationError,
)
from monopay.models import User, DEFAULT_USER_SETTINGS, utcnow
from monopay.security import generate_reset_token, hash_token
from monopay.services.games.stats import recent_history
from monopay.services.mail import MailDeliveryFailed, send_password_reset_email

USERNAME_RE = re.compile(r'^[a-zA-Z0-9_]+$')
USERNAME_MIN, USERNAME_MAX = 3, 20
PASSWORD_MIN = 6


def validate_username(username) -> str:
    if not isinstance(username, str) or len(username.strip()) < USERNAME_MIN:
        raise ValidationError('INVALID_USERNAME', f'Username must be at least {USERNAME_MIN} characters')
    username = username.strip()
    if len(username) > USERNAME_MAX:
        raise ValidationError('INVALID_USERNAME', f'Username must be {USERNAME_MAX} characters or less')
    if not USERNAME_RE.match(username):
        raise ValidationError('INVALID_USERNAME', 'Username can only contain letters, numbers, and underscores')
    return username.lower()


def validate_password(password, field='Password') -> str:
    if not isinstance(password, str) or len(password) < PASSWORD_MIN:
        raise ValidationError('INVALID_PASSWORD', f'{field} must be at least {PASSWORD_MIN} characters')
    return password


def username_taken(username: str, exclude_user_id=None) -> bool:
    q = User.query.filter_by(username=username.lower())
    if exclude_user_id is not None:
        q = q.filter(User.id != exclude_user_id)
    return q.first() is not None


def signup(username, password) -> User:
    if not username or not password:
        raise ValidationError('MISSING_FIELD', 'Username and password are required')
    username = validate_username(username)
    validate_password(password)
    if username_taken(username):
        raise ConflictError('USERNAME_TAKEN', 'Username already exists. Please choose a different one.')
    user = User(username=username, auth_provider='local')
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"[signup] user={user.id} username={user.username}")
    return user


def signin(username, password) -> User:
    if not username or not password:
        raise ValidationError('MISSING_FIELD', 'Username and password are required')
    user = User.query.filter_by(username=str(username).strip().lower()).first()
    if not user or not user.check_password(password):
        raise AuthError('INVALID_CREDENTIALS', 'Invalid username or password')
    return user


def complete_profile(user: User, username, display_name=None) -> User:
    username = validate_username(username)
    if username_taken(username, exclude_user_id=user.id):
        raise ConflictError('USERNAME_TAKEN', 'Username is already taken')
    user.username = username
    if display_name:
        user.display_name = display_name.strip()
    user.is_profile_complete = True
    db.session.commit()
    return user


def update_profile(user: User, username=None, display_name=None, email=None) -> User:
    if username and username.lower() != user.username:
        username = validate_username(username)
        if username_taken(username, exclude_user_id=user.id):
            raise ConflictError(
                'USERNAME_TAKEN',
                f'Username "{username}" is already taken. Please choose a different username.',
            )
        user.username = username
    if display_name is not None:
        user.display_name = display_name.strip() or None
    if email is not None:
        user.email = email.strip().lower() or None
    db.session.commit()
    return user


def change_password(user: User, current_password, new_password) -> None:
    # Federated accounts may set a first password without a current one
    if user.password_hash:
        if not current_password:
            raise ValidationError('MISSING_FIELD', 'Current password is required')
        if not user.check_password(current_password):
            raise ValidationError('INCORRECT_PASSWORD', 'Current password is incorrect')
    validate_password(new_password, field='New password')
    user.set_password(new_password)
    db.session.commit()
    current_app.logger.info(f"[password] user={user.id} changed")


def update_settings(user: User, settings) -> User:
    if not isinstance(settings, dict):
        raise ValidationError('INVALID_FIELD', 'Settings must be an object')
    merged = user.settings
    merged.update({k: v for k, v in settings.items() if k in DEFAULT_USER_SETTINGS})
    user.settings = merged
    db.session.commit()
    return user


def stats_for(user: User, history_limit: int):
    stats = user.stats_dict()
    played = user.games_played
    win_rate = round(user.games_won / played * 100) if played > 0 else 0
    stats['win_rate'] = f'{win_rate}%'
    return stats, [h.to_dict() for h in recent_history(user, history_limit)]


def google_login(google_id, email, name=None, picture=None):
    """Find or create the account for a Google sign-in.

    Returns ``(user, is_new_user)``; new users must complete their profile.
    """
    if not google_id or not email:
        raise ValidationError('INVALID_OAUTH', 'Invalid Google authentication data')
    google_id = str(google_id)
    email = email.strip().lower()
    user = User.query.filter_by(google_id=google_id).first()
    is_new_user = False
    if not user:
        user = User.query.filter_by(email=email).first()
        if user:
            user.google_id = google_id
            user.avatar = user.avatar or picture
            user.display_name = user.display_name or name
        else:
            is_new_user = True
            user = User(
                username=_unique_username(f'google_{google_id[-8:]}'.lower()),
                email=email,
                display_name=name,
                avatar=picture,
                google_id=google_id,
                auth_provider='google',
                is_profile_complete=False,
            )
            db.session.add(user)
        db.session.commit()
    current_app.logger.info(f"[oauth-google] user={user.id} new={is_new_user}")
    return user, is_new_user


def apple_login(identity_token, apple_user=None) -> User:
    # Claims are read without signature verification, as the client already validated them
    try:
        claims = jwt.get_unverified_claims(identity_token)
    except (JWTError, AttributeError) as exc:
        raise ValidationError('INVALID_OAUTH', 'Invalid Apple authentication data') from exc
    apple_id = claims.get('sub')
    if not apple_id:
        raise ValidationError('INVALID_OAUTH', 'Invalid Apple authentication data')
    email = (claims.get('email') or '').strip().lower() or None
    name = None
    if isinstance(apple_user, dict) and isinstance(apple_user.get('name'), dict):
        parts = apple_user['name']
        name = f"{parts.get('firstName') or ''} {parts.get('lastName') or ''}".strip() or None

    user = User.query.filter_by(apple_id=apple_id).first()
    if not user:
        user = User.query.filter_by(email=email).first() if email else None
        if user:
            user.apple_id = apple_id
            user.display_name = user.display_name or name
        else:
            base = re.sub(r'[^a-z0-9_]', '_', (email.split('@')[0] if email else 'apple_user').lower())[:USERNAME_MAX]
            user = User(
                username=_unique_username(base),
                email=email,
                display_name=name,
                apple_id=apple_id,
                auth_provider='apple',
            )
            db.session.add(user)
        db.session.commit()
    current_app.logger.info(f"[oauth-apple] user={user.id}")
    return user


def _unique_username(base: str) -> str:
    base = base.ljust(USERNAME_MIN, '_')
    candidate = base
    counter = 1
    while username_taken(candidate):
        suffix = str(counter)
        candidate = f'{base[:USERNAME_MAX - len(suffix)]}{suffix}'
        counter += 1
    return candidate


def request_password_reset(email) -> None:
    """Mail a reset link when the address is known. Silent otherwise."""
    if not email or not isinstance(email, str):
        raise ValidationError('MISSING_FIELD', 'Email is required')
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        return

    token = generate_reset_token()
    ttl = int(current_app.config.get('PASSWORD_RESET_TTL_SEC', 3600))
    user.password_reset_token = hash_token(token)
    user.password_reset_expires = utcnow() + timedelta(seconds=ttl)
    db.session.commit()

    try:
        send_password_reset_email(email.strip(), token, user.display_name or user.username)
    except MailDeliveryFailed as exc:
        user.password_reset_token = None
        user.password_reset_expires = None
        db.session.commit()
        raise DeliveryError(
            'EMAIL_FAILED', 'Failed to send password reset email. Please try again later.',
        ) from exc
    current_app.logger.info(f"[password-reset] user={user.id} requested")


def confirm_password_reset(token, new_password) -> User:
    if not token or not isinstance(token, str):
        raise ValidationError('INVALID_RESET_TOKEN', 'Reset link is invalid or has expired')
    user = User.query.filter_by(password_reset_token=hash_token(token)).first()
    if not user or not user.password_reset_expires or user.password_reset_expires < utcnow():
        raise ValidationError('INVALID_RESET_TOKEN', 'Reset link is invalid or has expired')
    validate_password(new_password)
    user.set_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.session.commit()
    current_app.logger.info(f"[password-reset] user={user.id} completed")
    return user


def get_user(user_id) -> User:
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        user = None
    if not user:
        raise NotFoundError('USER_NOT_FOUND', 'User not found')
    return user
