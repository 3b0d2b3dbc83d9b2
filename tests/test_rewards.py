"""
Tests for the rewards catalog and redemptions.

Covers:
- Reward CRUD by the owning business
- Redemption: per-business balance, limits, single-use validation
- Cancellation refunds
"""
from unittest.mock import patch

import pytest

from giya.extensions import db
from giya.models import Redemption, Reward
from giya.services.points_service import PointsService
from giya.services.reward_service import RewardService
from giya.utils.exceptions import ConcurrencyError, InsufficientPointsError


@pytest.fixture
def reward(business):
    item = Reward(business_id=business.id, reward_name='Free Ensaymada', points_required=10,
                  redemption_count=0, is_active=True)
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def funded_customer(customer, business, give_points):
    give_points(customer, business, 25)
    return customer


def _redeem(client, headers, reward_id):
    return client.post(f'/api/rewards/{reward_id}/redeem', headers=headers)


class TestRewardCatalog:
    """Tests for /api/rewards management."""

    def test_create_reward(self, client, business_headers, business):
        response = client.post('/api/rewards', headers=business_headers, json={
            'reward_name': 'Free Latte', 'points_required': 50, 'redemption_limit': 20,
        })
        assert response.status_code == 201
        reward = response.get_json()['reward']
        assert reward['business_id'] == business.id
        assert reward['redemption_count'] == 0

    def test_create_requires_points(self, client, business_headers):
        response = client.post('/api/rewards', headers=business_headers, json={'reward_name': 'Free Latte'})
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_FIELD'

    def test_points_must_be_positive(self, client, business_headers):
        response = client.post('/api/rewards', headers=business_headers, json={
            'reward_name': 'Free Latte', 'points_required': 0,
        })
        assert response.status_code == 400

    def test_public_listing_hides_inactive(self, client, business, reward):
        """Only the owner sees inactive rewards."""
        reward.is_active = False
        db.session.commit()
        assert client.get(f'/api/rewards?businessId={business.id}').get_json()['count'] == 0

    def test_owner_listing_includes_inactive(self, client, business, business_headers, reward):
        reward.is_active = False
        db.session.commit()
        response = client.get(f'/api/rewards?businessId={business.id}', headers=business_headers)
        assert response.get_json()['count'] == 1

    def test_listing_requires_business(self, client):
        assert client.get('/api/rewards').status_code == 400

    def test_other_business_cannot_edit(self, client, reward, make_business, auth_headers_for):
        other = make_business(business_name='Other Shop')
        response = client.put(f'/api/rewards/{reward.id}', headers=auth_headers_for(other.user),
                              json={'points_required': 1})
        assert response.status_code == 403

    def test_limit_below_count_rejected(self, client, business_headers, reward):
        reward.redemption_count = 5
        db.session.commit()
        response = client.put(f'/api/rewards/{reward.id}', headers=business_headers,
                              json={'redemption_limit': 3})
        assert response.status_code == 400

    def test_delete_unused_reward(self, client, business_headers, reward):
        response = client.delete(f'/api/rewards/{reward.id}', headers=business_headers)
        assert response.get_json()['deleted'] is True
        assert Reward.query.count() == 0

    def test_delete_redeemed_reward_deactivates(self, client, business_headers, customer_headers,
                                                funded_customer, reward):
        """Issued codes keep their reward."""
        _redeem(client, customer_headers, reward.id)
        response = client.delete(f'/api/rewards/{reward.id}', headers=business_headers)
        assert response.get_json()['deactivated'] is True
        assert db.session.get(Reward, reward.id).is_active is False


class TestRedeem:
    """Tests for POST /api/rewards/<id>/redeem."""

    def test_redeem(self, client, customer_headers, funded_customer, reward):
        """Redeeming debits points and issues a pending code."""
        response = _redeem(client, customer_headers, reward.id)
        assert response.status_code == 201
        data = response.get_json()
        assert data['redemption_qr_code'].startswith('GIYA-REDEEM-')
        assert data['redemption']['status'] == 'pending'
        assert data['total_points'] == 15
        assert db.session.get(Reward, reward.id).redemption_count == 1

    def test_insufficient_points(self, client, customer_headers, customer, business, give_points, reward):
        give_points(customer, business, 5)
        response = _redeem(client, customer_headers, reward.id)
        assert response.status_code == 400
        body = response.get_json()
        assert body['error']['code'] == 'INSUFFICIENT_POINTS'
        assert body['required'] == 10
        assert body['available'] == 5

    def test_points_from_another_business_do_not_count(self, client, customer_headers, customer,
                                                       make_business, give_points, reward):
        """Points earned elsewhere are not spendable here."""
        give_points(customer, make_business(business_name='Other Shop'), 100)
        response = _redeem(client, customer_headers, reward.id)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INSUFFICIENT_POINTS'

    def test_stale_balance_read_cannot_overspend(self, customer, business, make_business, give_points, reward):
        """A second redeem that read the balance before the first committed is rolled back."""
        give_points(customer, business, 10)
        give_points(customer, make_business(business_name='Other Shop'), 100)
        service = RewardService()
        service.redeem(customer, reward.id)

        with patch.object(PointsService, 'available_at_business', return_value=10):
            with pytest.raises(InsufficientPointsError):
                service.redeem(customer, reward.id)

        assert Redemption.query.count() == 1
        assert db.session.get(Reward, reward.id).redemption_count == 1
        db.session.refresh(customer)
        assert customer.total_points == 100
        assert PointsService.spent_at_business(customer.id, business.id) == 10

    def test_limit_reached(self, client, customer_headers, funded_customer, reward):
        """The limit check and the counter move together."""
        reward.redemption_limit = 1
        db.session.commit()
        assert _redeem(client, customer_headers, reward.id).status_code == 201

        response = _redeem(client, customer_headers, reward.id)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'LIMIT_EXCEEDED'
        db.session.refresh(funded_customer)
        assert funded_customer.total_points == 15
        assert Redemption.query.count() == 1

    def test_inactive_reward(self, client, customer_headers, funded_customer, reward):
        reward.is_active = False
        db.session.commit()
        assert _redeem(client, customer_headers, reward.id).status_code == 404

    def test_business_cannot_redeem(self, client, business_headers, reward):
        assert _redeem(client, business_headers, reward.id).status_code == 403


class TestValidateRedemption:
    """Tests for POST /api/redemptions/validate."""

    def test_code_validates_once(self, client, customer_headers, business_headers, funded_customer, reward):
        """A second scan of the same code is a 409."""
        code = _redeem(client, customer_headers, reward.id).get_json()['redemption_qr_code']

        first = client.post('/api/redemptions/validate', headers=business_headers, json={'code': code})
        assert first.status_code == 200
        assert first.get_json()['redemption']['status'] == 'validated'

        second = client.post('/api/redemptions/validate', headers=business_headers, json={'code': code})
        assert second.status_code == 409
        body = second.get_json()
        assert body['error']['code'] == 'STATE_CONFLICT'
        assert body['validated_at']

    def test_other_business_code(self, client, customer_headers, funded_customer, reward,
                                 make_business, auth_headers_for):
        code = _redeem(client, customer_headers, reward.id).get_json()['redemption_qr_code']
        other = make_business(business_name='Other Shop')
        response = client.post('/api/redemptions/validate', headers=auth_headers_for(other.user),
                               json={'code': code})
        assert response.status_code == 403

    def test_unknown_code(self, client, business_headers):
        response = client.post('/api/redemptions/validate', headers=business_headers,
                               json={'code': 'GIYA-REDEEM-NOPE'})
        assert response.status_code == 404

    def test_missing_code(self, client, business_headers):
        response = client.post('/api/redemptions/validate', headers=business_headers, json={})
        assert response.status_code == 400


class TestCancelRedemption:
    """Tests for POST /api/redemptions/<id>/cancel."""

    def test_cancel_refunds(self, client, customer_headers, funded_customer, reward):
        redemption_id = _redeem(client, customer_headers, reward.id).get_json()['redemption']['id']

        response = client.post(f'/api/redemptions/{redemption_id}/cancel', headers=customer_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert data['redemption']['status'] == 'cancelled'
        assert data['total_points'] == 25
        assert db.session.get(Reward, reward.id).redemption_count == 0

    def test_cancel_validated(self, client, customer_headers, business_headers, funded_customer, reward):
        """Validated redemptions cannot be cancelled."""
        redeemed = _redeem(client, customer_headers, reward.id).get_json()
        client.post('/api/redemptions/validate', headers=business_headers,
                    json={'code': redeemed['redemption_qr_code']})

        response = client.post(f'/api/redemptions/{redeemed["redemption"]["id"]}/cancel',
                               headers=customer_headers)
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'INVALID_STATUS_TRANSITION'

    def test_validate_cancelled(self, funded_customer, business, reward):
        """A cancelled code cannot be validated."""
        service = RewardService()
        redemption = service.redeem(funded_customer, reward.id)
        service.cancel(funded_customer, redemption.id)

        with pytest.raises(ConcurrencyError, match='cancelled'):
            service.validate(business, business.user, redemption.redemption_qr_code)

    def test_lists_by_role(self, client, customer_headers, business_headers, funded_customer, reward):
        _redeem(client, customer_headers, reward.id)
        assert client.get('/api/redemptions', headers=customer_headers).get_json()['count'] == 1
        assert client.get('/api/redemptions', headers=business_headers).get_json()['count'] == 1
