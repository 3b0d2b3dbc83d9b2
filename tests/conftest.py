"""
Shared fixtures for the Giya test suite.

Every test gets a fresh app on an in-memory SQLite database. The app
context stays pushed for the whole test, so model fixtures stay attached
to the session the test client requests use.
"""
import uuid
from decimal import Decimal

import pytest

from giya import create_app
from giya.extensions import db
from giya.middleware import issue_session_token
from giya.models import (
    Business,
    BusinessApprovalStatus,
    Customer,
    Influencer,
    PointsTransaction,
    PointsSource,
    PunchCard,
    PunchCardCustomer,
    User,
    UserRole,
)

TEST_PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def headers_for(user: User) -> dict:
    return {
        'Authorization': f'Bearer {issue_session_token(user)}',
        'Content-Type': 'application/json',
    }


def _user(role: str, email: str = None) -> User:
    unique_id = str(uuid.uuid4())[:8]
    user = User(email=email or f'{role}-{unique_id}@example.com', role=role, is_active=True)
    user.set_password(TEST_PASSWORD)
    db.session.add(user)
    db.session.flush()
    return user


@pytest.fixture
def make_customer(app):
    """Factory: make_customer(total_points=0) -> Customer."""
    def _make(total_points: int = 0, full_name: str = 'Juan Dela Cruz') -> Customer:
        user = _user(UserRole.CUSTOMER.value)
        customer = Customer(user_id=user.id, full_name=full_name, email=user.email,
                            total_points=total_points)
        db.session.add(customer)
        db.session.commit()
        return customer
    return _make


@pytest.fixture
def make_business(app):
    """Factory: make_business(status='approved') -> Business."""
    def _make(status: str = BusinessApprovalStatus.APPROVED.value,
              business_name: str = 'Kape Naga', points_per_currency: int = 100) -> Business:
        user = _user(UserRole.BUSINESS.value)
        approved = status == BusinessApprovalStatus.APPROVED.value
        business = Business(
            user_id=user.id,
            business_name=business_name,
            business_category='Cafe',
            address='123 Magsaysay Ave, Naga City',
            points_per_currency=points_per_currency,
            approval_status=status,
            is_active=approved,
            can_access_dashboard=approved,
        )
        db.session.add(business)
        db.session.commit()
        return business
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def business(make_business):
    return make_business()


@pytest.fixture
def pending_business(make_business):
    return make_business(status=BusinessApprovalStatus.PENDING.value, business_name='Bagong Tindahan')


@pytest.fixture
def admin(app):
    user = _user(UserRole.ADMIN.value)
    db.session.commit()
    return user


@pytest.fixture
def influencer(app):
    user = _user(UserRole.INFLUENCER.value)
    profile = Influencer(user_id=user.id, full_name='Maria Santos', instagram_handle='@maria')
    db.session.add(profile)
    db.session.commit()
    return profile


@pytest.fixture
def customer_headers(customer):
    return headers_for(customer.user)


@pytest.fixture
def business_headers(business):
    return headers_for(business.user)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def influencer_headers(influencer):
    return headers_for(influencer.user)


@pytest.fixture
def punch_card(business):
    card = PunchCard(
        business_id=business.id,
        title='Coffee Card',
        punches_required=3,
        reward_description='Free latte',
        is_active=True,
    )
    db.session.add(card)
    db.session.commit()
    return card


@pytest.fixture
def participation(punch_card, customer):
    joined = PunchCardCustomer(punch_card_id=punch_card.id, customer_id=customer.id, punches_count=0)
    db.session.add(joined)
    db.session.commit()
    return joined


@pytest.fixture
def give_points():
    """Factory: give_points(customer, business, points) records earned points and credits the balance."""
    def _give(customer: Customer, business: Business, points: int) -> PointsTransaction:
        transaction = PointsTransaction(
            customer_id=customer.id,
            business_id=business.id,
            amount_spent=Decimal(points * business.points_per_currency),
            points_earned=points,
            source=PointsSource.QR_SCAN.value,
        )
        db.session.add(transaction)
        customer.total_points = (customer.total_points or 0) + points
        db.session.commit()
        return transaction
    return _give


@pytest.fixture
def auth_headers_for(app):
    """Factory: auth_headers_for(user) -> bearer headers."""
    return headers_for
