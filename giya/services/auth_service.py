"""
Account signup and login.

Signup creates the user and its role profile in one commit. Businesses
start pending and admins are notified; admins themselves are only created
from the CLI (`flask admin create`).
"""
import logging
from datetime import datetime
from typing import Any, Dict, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Business,
    BusinessApprovalStatus,
    Customer,
    Influencer,
    User,
    UserRole,
)
from ..utils.exceptions import (
    AuthenticationError,
    DuplicateError,
    FeatureDisabledError,
    ValidationError,
)
from ..utils.validation import (
    clean_text,
    parse_positive_int,
    require_fields,
    validate_email,
    validate_length,
)
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
SIGNUP_ROLES = (UserRole.CUSTOMER.value, UserRole.BUSINESS.value, UserRole.INFLUENCER.value)
SOCIAL_HANDLES = ('facebook_handle', 'instagram_handle', 'tiktok_handle', 'twitter_handle')


def validate_password(password: str, confirm_password: str = None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f'Password must be at least {MIN_PASSWORD_LENGTH} characters', field='password'
        )
    if confirm_password is not None and password != confirm_password:
        raise ValidationError('Passwords do not match', field='confirm_password')
    return password


def create_user(email: str, password: str, role: str) -> User:
    """Add a user to the session (no commit)."""
    email = validate_email(email)
    if User.query.filter_by(email=email).first():
        raise DuplicateError('An account with this email already exists')
    user = User(email=email, role=role, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    return user


class AuthService:

    # ==================== Profiles ====================

    @staticmethod
    def _customer_profile(user: User, profile: Dict[str, Any]) -> Customer:
        require_fields(profile, ('full_name',))
        return Customer(
            user_id=user.id,
            full_name=clean_text(validate_length(profile['full_name'], 'full_name', 2, 255)),
            email=user.email,
        )

    @staticmethod
    def _business_profile(user: User, profile: Dict[str, Any]) -> Business:
        require_fields(profile, ('business_name', 'business_category', 'address'))
        ppc = profile.get('points_per_currency')
        return Business(
            user_id=user.id,
            business_name=clean_text(validate_length(profile['business_name'], 'business_name', 2, 255)),
            business_category=clean_text(
                validate_length(profile['business_category'], 'business_category', 2, 100)
            ),
            address=clean_text(validate_length(profile['address'], 'address', 5, 500)),
            gmaps_link=clean_text(profile.get('gmaps_link'), max_length=500),
            description=clean_text(profile.get('description'), max_length=1000),
            points_per_currency=parse_positive_int(ppc, 'points_per_currency') if ppc is not None
            else current_app.config['DEFAULT_POINTS_PER_CURRENCY'],
            approval_status=BusinessApprovalStatus.PENDING.value,
            is_active=False,
            can_access_dashboard=False,
        )

    @staticmethod
    def _influencer_profile(user: User, profile: Dict[str, Any]) -> Influencer:
        require_fields(profile, ('full_name',))
        handles = {h: clean_text(profile.get(h), max_length=100) for h in SOCIAL_HANDLES}
        return Influencer(
            user_id=user.id,
            full_name=clean_text(validate_length(profile['full_name'], 'full_name', 2, 255)),
            **handles,
        )

    # ==================== Signup / login ====================

    def signup(self, data: Dict[str, Any]) -> Tuple[User, Any]:
        """
        Create an account with its role profile.

        Returns:
            (user, profile)
        """
        require_fields(data, ('email', 'password', 'role'))
        role = data['role']
        if role not in SIGNUP_ROLES:
            raise ValidationError(f'role must be one of: {", ".join(SIGNUP_ROLES)}', field='role')
        if role == UserRole.INFLUENCER.value and not current_app.config.get('AFFILIATES_ENABLED'):
            raise FeatureDisabledError('Influencer signup')

        password = validate_password(data['password'], data.get('confirm_password'))
        profile_data = data.get('profile') or {}
        if not isinstance(profile_data, dict):
            raise ValidationError('profile must be an object', field='profile')

        try:
            user = create_user(data['email'], password, role)
            builder = {
                UserRole.CUSTOMER.value: self._customer_profile,
                UserRole.BUSINESS.value: self._business_profile,
                UserRole.INFLUENCER.value: self._influencer_profile,
            }[role]
            profile = builder(user, profile_data)
            db.session.add(profile)
            db.session.flush()

            notifications = NotificationService()
            if role == UserRole.BUSINESS.value:
                notifications.new_business_signup(profile)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateError('An account with this email already exists')
        except (ValidationError, DuplicateError):
            db.session.rollback()
            raise

        notifications.deliver_pending()
        logger.info(f'New {role} account {user.id}')
        return user, profile

    @staticmethod
    def login(email: str, password: str) -> User:
        if not email or not password:
            raise ValidationError('Email and password are required')
        user = User.query.filter_by(email=(email or '').strip().lower()).first()
        if not user or not user.check_password(password):
            logger.warning(f'Failed login for {email!r}')
            raise AuthenticationError('Invalid email or password', 'INVALID_CREDENTIALS')
        if not user.is_active:
            logger.warning(f'Login attempt on disabled account {user.id}')
            raise AuthenticationError('Account is disabled', 'ACCOUNT_DISABLED')

        user.last_login_at = datetime.utcnow()
        db.session.commit()
        return user

    @staticmethod
    def create_admin(email: str, password: str) -> User:
        validate_password(password)
        user = create_user(email, password, UserRole.ADMIN.value)
        db.session.commit()
        logger.info(f'Created admin {user.id}')
        return user
