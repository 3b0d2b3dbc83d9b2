"""
Tests for discount and exclusive deals.

Covers:
- Deal CRUD and field consistency
- Time-of-day and day-of-week scheduling
- Counter redemption: one use per customer, limits, points
"""
from datetime import datetime, timedelta

import pytest

from giya.extensions import db
from giya.models import Deal, DealUsage, Notification
from giya.services.deal_service import DealService
from giya.services.points_service import PointsService
from giya.utils.exceptions import ValidationError


@pytest.fixture
def deal(business):
    item = Deal(business_id=business.id, title='10% off pastries', deal_type='discount',
                discount_percentage=10, points_required=5, redemption_count=0)
    db.session.add(item)
    db.session.commit()
    return item


def _redeem(client, headers, deal, customer):
    return client.post('/api/deals/redeem', headers=headers, json={
        'qr_code_data': deal.qr_code_data, 'customer_id': customer.id,
    })


class TestDealCrud:
    """Tests for /api/deals management."""

    def test_create_discount(self, client, business_headers):
        response = client.post('/api/deals', headers=business_headers, json={
            'title': 'Weekend promo', 'discount_percentage': 15,
        })
        assert response.status_code == 201
        deal = response.get_json()['deal']
        assert deal['deal_type'] == 'discount'
        assert deal['schedule_type'] == 'always_available'
        assert deal['qr_code_data'].startswith('GIYA-DEAL-')

    def test_discount_needs_an_amount(self, client, business_headers):
        response = client.post('/api/deals', headers=business_headers, json={'title': 'Promo'})
        assert response.status_code == 400

    def test_create_exclusive(self, client, business_headers):
        response = client.post('/api/deals', headers=business_headers, json={
            'title': 'Members price', 'deal_type': 'exclusive', 'product_name': 'Ube Cheese Pandesal',
            'original_price': 120, 'exclusive_price': 95,
        })
        assert response.status_code == 201
        assert response.get_json()['deal']['exclusive_price'] == 95.0

    def test_exclusive_price_must_be_lower(self, client, business_headers):
        response = client.post('/api/deals', headers=business_headers, json={
            'title': 'Members price', 'deal_type': 'exclusive', 'product_name': 'Pandesal',
            'original_price': 100, 'exclusive_price': 100,
        })
        assert response.status_code == 400

    def test_time_schedule_needs_window(self, client, business_headers):
        response = client.post('/api/deals', headers=business_headers, json={
            'title': 'Happy hour', 'discount_value': 20, 'schedule_type': 'time_based',
        })
        assert response.status_code == 400

    def test_bad_active_days(self, client, business_headers):
        response = client.post('/api/deals', headers=business_headers, json={
            'title': 'Weekdays', 'discount_value': 20, 'schedule_type': 'day_based', 'active_days': [1, 9],
        })
        assert response.status_code == 400

    def test_update_keeps_consistency(self, client, business_headers, deal):
        """Updates are checked against the stored fields."""
        response = client.put(f'/api/deals/{deal.id}', headers=business_headers,
                              json={'deal_type': 'exclusive'})
        assert response.status_code == 400

        response = client.put(f'/api/deals/{deal.id}', headers=business_headers, json={'title': 'Renamed'})
        assert response.get_json()['deal']['title'] == 'Renamed'

    def test_listing_filters(self, client, business, deal):
        inactive = Deal(business_id=business.id, title='Old', discount_value=5, is_active=False)
        db.session.add(inactive)
        db.session.commit()

        data = client.get(f'/api/deals?businessId={business.id}&deal_type=discount').get_json()
        assert [d['title'] for d in data['deals']] == ['10% off pastries']

    def test_delete(self, client, business_headers, deal):
        response = client.delete(f'/api/deals/{deal.id}', headers=business_headers)
        assert response.status_code == 200
        assert response.get_json()['deleted'] is True
        assert Deal.query.count() == 0

    def test_delete_redeemed_deal_keeps_ledger(self, client, business_headers, customer, business, make_business,
                                               deal, give_points):
        """Usage rows survive so spent points stay spent."""
        give_points(customer, business, 5)
        give_points(customer, make_business(business_name='Other Shop'), 100)
        assert _redeem(client, business_headers, deal, customer).status_code == 200
        points = PointsService()
        assert points.available_at_business(customer.id, business.id) == 0

        response = client.delete(f'/api/deals/{deal.id}', headers=business_headers)
        assert response.status_code == 200
        assert response.get_json()['deactivated'] is True
        assert db.session.get(Deal, deal.id).is_active is False
        assert DealUsage.query.count() == 1
        assert points.available_at_business(customer.id, business.id) == 0
        assert points.business_analytics(business.id)['total_points_redeemed'] == 5


class TestDealSchedule:
    """Tests for Deal.is_within_schedule."""

    def test_time_window(self):
        deal = Deal(schedule_type='time_based', start_time='09:00', end_time='17:00')
        assert deal.is_within_schedule(datetime(2026, 10, 14, 12, 0))
        assert not deal.is_within_schedule(datetime(2026, 10, 14, 18, 0))

    def test_window_past_midnight(self):
        deal = Deal(schedule_type='time_based', start_time='22:00', end_time='02:00')
        assert deal.is_within_schedule(datetime(2026, 10, 14, 23, 30))
        assert deal.is_within_schedule(datetime(2026, 10, 15, 1, 0))
        assert not deal.is_within_schedule(datetime(2026, 10, 15, 12, 0))

    def test_days_use_sunday_zero(self):
        """2026-10-18 is a Sunday."""
        deal = Deal(schedule_type='day_based', active_days=[0, 6])
        assert deal.is_within_schedule(datetime(2026, 10, 18, 10, 0))
        assert not deal.is_within_schedule(datetime(2026, 10, 19, 10, 0))

    def test_time_and_day(self):
        deal = Deal(schedule_type='time_and_day', active_days=[3], start_time='08:00', end_time='10:00')
        assert deal.is_within_schedule(datetime(2026, 10, 14, 9, 0))
        assert not deal.is_within_schedule(datetime(2026, 10, 14, 11, 0))
        assert not deal.is_within_schedule(datetime(2026, 10, 15, 9, 0))


class TestDealRedemption:
    """Tests for POST /api/deals/redeem."""

    def test_redeem(self, client, business_headers, customer, deal, make_business, give_points):
        """Deals spend from the customer's overall balance."""
        give_points(customer, make_business(business_name='Other Shop'), 20)

        response = _redeem(client, business_headers, deal, customer)
        assert response.status_code == 200
        data = response.get_json()
        assert data['message'] == 'Deal successfully redeemed'
        assert data['remaining_points'] == 15
        assert data['deal_usage']['points_used'] == 5
        assert db.session.get(Deal, deal.id).redemption_count == 1
        assert Notification.query.filter_by(user_id=customer.user_id, type='deal_redeemed').count() == 1

    def test_redeem_by_customer_qr(self, client, business_headers, customer, business, deal, give_points):
        give_points(customer, business, 10)
        response = client.post('/api/deals/redeem', headers=business_headers, json={
            'qr_code_data': deal.qr_code_data, 'customer_qr': customer.qr_code_data,
        })
        assert response.status_code == 200

    def test_one_use_per_customer(self, client, business_headers, customer, business, deal, give_points):
        give_points(customer, business, 20)
        assert _redeem(client, business_headers, deal, customer).status_code == 200

        response = _redeem(client, business_headers, deal, customer)
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Customer has already used this deal'
        assert DealUsage.query.count() == 1

    def test_insufficient_points(self, client, business_headers, customer, deal):
        response = _redeem(client, business_headers, deal, customer)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INSUFFICIENT_POINTS'
        assert db.session.get(Deal, deal.id).redemption_count == 0

    def test_limit_reached(self, client, business_headers, customer, make_customer, business, deal, give_points):
        deal.redemption_limit = 1
        db.session.commit()
        second = make_customer(full_name='Pedro Penduko')
        give_points(customer, business, 10)
        give_points(second, business, 10)

        assert _redeem(client, business_headers, deal, customer).status_code == 200
        response = _redeem(client, business_headers, deal, second)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'LIMIT_EXCEEDED'
        db.session.refresh(second)
        assert second.total_points == 10

    def test_expired(self, client, business_headers, customer, business, deal, give_points):
        give_points(customer, business, 10)
        deal.validity_end = datetime.utcnow() - timedelta(days=1)
        db.session.commit()
        response = _redeem(client, business_headers, deal, customer)
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Deal has expired'

    def test_outside_schedule(self, customer, business, deal, give_points):
        give_points(customer, business, 10)
        deal.schedule_type = 'time_based'
        deal.start_time = '09:00'
        deal.end_time = '10:00'
        db.session.commit()

        with pytest.raises(ValidationError, match='not available at this time'):
            DealService().redeem(business, business.user, {
                'qr_code_data': deal.qr_code_data, 'customer_id': customer.id,
            }, now=datetime(2026, 10, 14, 15, 0))

    def test_other_business_deal(self, client, customer, deal, make_business, auth_headers_for):
        """A business can only redeem its own deals."""
        other = make_business(business_name='Other Shop')
        response = _redeem(client, auth_headers_for(other.user), deal, customer)
        assert response.status_code == 404
