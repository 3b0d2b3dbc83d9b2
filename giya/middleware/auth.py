"""
Session authentication middleware.

Session tokens are HS256 JWTs signed with SECRET_KEY. They are accepted from
an `Authorization: Bearer <token>` header or from the session cookie.
"""
import logging
from datetime import datetime, timedelta
from functools import wraps

import jwt
from flask import request, g, current_app

from ..extensions import db
from ..models import User, UserRole
from ..utils.errors import unauthorized, forbidden, ErrorCode

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = 'HS256'


def issue_session_token(user: User) -> str:
    """Sign a session token for the user."""
    now = datetime.utcnow()
    ttl = timedelta(hours=current_app.config['SESSION_TOKEN_TTL_HOURS'])
    payload = {
        'sub': str(user.id),
        'role': user.role,
        'iat': now,
        'exp': now + ttl,
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm=TOKEN_ALGORITHM)


def get_token_from_request() -> str | None:
    """
    Get the session token.

    Priority:
    1. Authorization: Bearer header
    2. Session cookie
    """
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip() or None
    return request.cookies.get(current_app.config['SESSION_COOKIE_NAME'])


def decode_session_token(token: str) -> dict:
    """
    Verify and decode a session token.

    Raises:
        jwt.ExpiredSignatureError: token has expired
        jwt.InvalidTokenError: signature or structure invalid
    """
    return jwt.decode(
        token,
        current_app.config['SECRET_KEY'],
        algorithms=[TOKEN_ALGORITHM],
        options={'require': ['sub', 'exp']},
    )


def require_auth(f):
    """
    Decorator to require a valid session.

    Sets g.user, g.user_id and g.role.

    Usage:
        @require_auth
        def my_endpoint():
            user = g.user
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_token_from_request()
        if not token:
            return unauthorized('Authentication required')

        try:
            payload = decode_session_token(token)
        except jwt.ExpiredSignatureError:
            return unauthorized('Session expired', ErrorCode.TOKEN_EXPIRED)
        except jwt.InvalidTokenError as e:
            logger.warning(f'Invalid session token: {e}')
            return unauthorized('Invalid session token', ErrorCode.INVALID_TOKEN)

        try:
            user_id = int(payload['sub'])
        except (TypeError, ValueError):
            return unauthorized('Invalid session token', ErrorCode.INVALID_TOKEN)

        user = db.session.get(User, user_id)
        if not user or not user.is_active:
            return unauthorized('Account not found or disabled', ErrorCode.INVALID_TOKEN)

        g.user = user
        g.user_id = user.id
        g.role = user.role
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Decorator to restrict an endpoint to specific roles.

    Includes @require_auth.

    Usage:
        @require_role('customer')
        def my_customer_endpoint():
            ...
    """
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            if g.role not in allowed:
                logger.warning(
                    f'Forbidden: user {g.user_id} ({g.role}) on {request.path}, needs {sorted(allowed)}'
                )
                return forbidden(f'This action requires role: {", ".join(sorted(allowed))}')
            if g.role == UserRole.CUSTOMER.value:
                g.customer = g.user.customer
                if g.customer is None:
                    return forbidden('Customer profile not found')
            elif g.role == UserRole.BUSINESS.value:
                g.business = g.user.business
                if g.business is None:
                    return forbidden('Business profile not found')
            elif g.role == UserRole.INFLUENCER.value:
                g.influencer = g.user.influencer
                if g.influencer is None:
                    return forbidden('Influencer profile not found')
            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_admin = require_role(UserRole.ADMIN)


def require_approved_business(f):
    """
    Decorator for business dashboard endpoints.

    The business must be approved, active and allowed on the dashboard.
    Sets g.business.
    """
    @wraps(f)
    @require_role(UserRole.BUSINESS)
    def decorated_function(*args, **kwargs):
        business = g.business
        if not business.is_approved:
            return forbidden(
                'Business account is not approved for dashboard access',
                ErrorCode.BUSINESS_NOT_APPROVED,
                extra={'approval_status': business.approval_status},
            )
        return f(*args, **kwargs)

    return decorated_function


def load_optional_user() -> User | None:
    """Resolve the session user without failing public endpoints."""
    token = get_token_from_request()
    if not token:
        return None
    try:
        payload = decode_session_token(token)
        user = db.session.get(User, int(payload['sub']))
    except (jwt.InvalidTokenError, TypeError, ValueError):
        return None
    if user and user.is_active:
        return user
    return None
