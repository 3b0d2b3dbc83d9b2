"""
Tests for the Punch Cards API and service.

Covers:
- /api/punch-cards CRUD (business)
- /api/punch-cards/customers join, list, correct, leave
- /api/punch-cards/punches add, list, delete, PUT refused
- /api/punch-cards/bulk operations
- The punches_count <= punches_required guard
"""
import pytest

from giya.extensions import db
from giya.models import Notification, PunchCard, PunchCardCustomer, PunchCardPunch
from giya.services.punch_card_service import PunchCardService, completion_rate
from giya.utils.exceptions import ValidationError


class TestPunchCardCrud:
    """Tests for /api/punch-cards."""

    def test_create_punch_card(self, client, business, business_headers):
        """Approved businesses create cards (201)."""
        response = client.post('/api/punch-cards', headers=business_headers, json={
            'title': 'Milk Tea Card',
            'punches_required': 5,
            'reward_description': 'Free large milk tea',
        })
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['business_id'] == business.id
        assert data['punches_required'] == 5
        assert data['is_active'] is True

    def test_create_requires_fields(self, client, business_headers):
        """title, reward_description and punches_required are required."""
        response = client.post('/api/punch-cards', headers=business_headers, json={'title': 'No reward'})
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_FIELD'

    def test_create_rejects_zero_punches(self, client, business_headers):
        """punches_required must be positive."""
        response = client.post('/api/punch-cards', headers=business_headers, json={
            'title': 'Bad', 'punches_required': 0, 'reward_description': 'x',
        })
        assert response.status_code == 400

    def test_customer_cannot_create(self, client, customer_headers):
        """Customers get 403."""
        response = client.post('/api/punch-cards', headers=customer_headers, json={
            'title': 'Nope', 'punches_required': 3, 'reward_description': 'x',
        })
        assert response.status_code == 403

    def test_list_own_cards(self, client, business, business_headers, punch_card):
        """GET ?businessId lists the caller's cards."""
        response = client.get(f'/api/punch-cards?businessId={business.id}', headers=business_headers)
        assert response.status_code == 200
        assert [c['id'] for c in response.get_json()['data']] == [punch_card.id]

    def test_list_other_business_cards_forbidden(self, client, make_business, business_headers):
        """A business cannot list another business's cards."""
        other = make_business(business_name='Other Shop')
        response = client.get(f'/api/punch-cards?businessId={other.id}', headers=business_headers)
        assert response.status_code == 403

    def test_get_missing_parameters(self, client, business_headers):
        """No filter is a 400 'Missing parameters'."""
        response = client.get('/api/punch-cards', headers=business_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Missing parameters'

    def test_update_card(self, client, business_headers, punch_card):
        """PUT updates fields by id."""
        response = client.put('/api/punch-cards', headers=business_headers, json={
            'id': punch_card.id, 'title': 'Coffee Card v2',
        })
        assert response.status_code == 200
        assert response.get_json()['data']['title'] == 'Coffee Card v2'

    def test_update_cannot_drop_below_existing_count(self, client, business_headers, punch_card, participation):
        """punches_required cannot fall below a participant's count."""
        participation.punches_count = 2
        db.session.commit()
        response = client.put('/api/punch-cards', headers=business_headers, json={
            'id': punch_card.id, 'punches_required': 1,
        })
        assert response.status_code == 400

    def test_lowering_requirement_completes_full_cards(self, client, customer, business_headers,
                                                       punch_card, participation):
        """A participant whose count now meets punches_required is completed and notified."""
        participation.punches_count = 2
        db.session.commit()

        response = client.put('/api/punch-cards', headers=business_headers, json={
            'id': punch_card.id, 'punches_required': 2,
        })
        assert response.status_code == 200
        db.session.refresh(participation)
        assert participation.is_completed is True
        assert participation.completed_at is not None
        assert Notification.query.filter_by(user_id=customer.user_id, type='punch_card_completed').count() == 1

        response = client.post('/api/punch-cards/punches', headers=business_headers, json={
            'punch_card_customer_id': participation.id,
        })
        assert response.status_code == 400

    def test_update_other_business_card(self, client, make_business, auth_headers_for, punch_card):
        """Only the owner may update a card."""
        other = make_business(business_name='Other Shop')
        response = client.put('/api/punch-cards', headers=auth_headers_for(other.user), json={
            'id': punch_card.id, 'title': 'Hijacked',
        })
        assert response.status_code == 403

    def test_delete_card(self, client, business_headers, punch_card, participation):
        """DELETE removes the card and its participations."""
        card_id = punch_card.id
        response = client.delete(f'/api/punch-cards?id={card_id}', headers=business_headers)
        assert response.status_code == 200
        assert db.session.get(PunchCard, card_id) is None
        assert PunchCardCustomer.query.filter_by(punch_card_id=card_id).count() == 0


class TestParticipation:
    """Tests for /api/punch-cards/customers."""

    def test_join_card(self, client, customer, customer_headers, punch_card):
        """Customers join an active card with zero punches."""
        response = client.post('/api/punch-cards/customers', headers=customer_headers, json={
            'punch_card_id': punch_card.id,
        })
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['customer_id'] == customer.id
        assert data['punches_count'] == 0
        assert data['punch_cards']['id'] == punch_card.id

    def test_join_twice(self, client, customer_headers, punch_card, participation):
        """Joining the same card twice is a 400."""
        response = client.post('/api/punch-cards/customers', headers=customer_headers, json={
            'punch_card_id': punch_card.id,
        })
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Already joined this punch card'

    def test_join_inactive_card(self, client, customer_headers, punch_card):
        """Inactive cards cannot be joined."""
        punch_card.is_active = False
        db.session.commit()
        response = client.post('/api/punch-cards/customers', headers=customer_headers, json={
            'punch_card_id': punch_card.id,
        })
        assert response.status_code == 400

    def test_list_participations(self, client, customer, customer_headers, participation):
        """GET ?customerId returns the caller's participations with card data."""
        response = client.get(f'/api/punch-cards/customers?customerId={customer.id}', headers=customer_headers)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert len(data) == 1
        assert data[0]['punch_cards']['title'] == 'Coffee Card'

    def test_participation_for_unjoined_card(self, client, customer_headers, punch_card):
        """GET ?punchCardId returns null when not joined."""
        response = client.get(f'/api/punch-cards/customers?punchCardId={punch_card.id}', headers=customer_headers)
        assert response.status_code == 200
        assert response.get_json()['data'] is None

    def test_set_count_within_bounds(self, client, customer_headers, participation):
        """The participant may correct the count, completion follows."""
        response = client.put('/api/punch-cards/customers', headers=customer_headers, json={
            'id': participation.id, 'punches_count': 3,
        })
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['punches_count'] == 3
        assert data['is_completed'] is True

    def test_set_count_above_required(self, client, customer_headers, participation):
        """Counts above punches_required are rejected."""
        response = client.put('/api/punch-cards/customers', headers=customer_headers, json={
            'id': participation.id, 'punches_count': 4,
        })
        assert response.status_code == 400

    def test_leave_card(self, client, customer_headers, participation):
        """Customers can leave their own participation."""
        participation_id = participation.id
        response = client.delete(f'/api/punch-cards/customers?id={participation_id}', headers=customer_headers)
        assert response.status_code == 200
        assert db.session.get(PunchCardCustomer, participation_id) is None


class TestPunches:
    """Tests for /api/punch-cards/punches."""

    def _punch(self, client, headers, participation_id, **extra):
        return client.post('/api/punch-cards/punches', headers=headers, json={
            'punch_card_customer_id': participation_id, **extra,
        })

    def test_add_punch(self, client, business_headers, participation):
        """A punch increments the count and returns the participation."""
        response = self._punch(client, business_headers, participation.id, transaction_id='POS-1')
        assert response.status_code == 201
        data = response.get_json()
        assert data['punch_card_customer']['punches_count'] == 1
        assert data['data']['transaction_id'] == 'POS-1'
        assert data['message'] == 'Punch added successfully.'

    def test_final_punch_completes_card(self, client, customer, business_headers, participation):
        """Reaching punches_required completes the card and notifies the customer."""
        for _ in range(2):
            self._punch(client, business_headers, participation.id)
        response = self._punch(client, business_headers, participation.id)
        assert response.status_code == 201
        data = response.get_json()
        assert data['punch_card_customer']['is_completed'] is True
        assert data['punch_card_customer']['completed_at'] is not None
        assert data['message'] == 'Punch card completed! Reward unlocked.'
        assert Notification.query.filter_by(user_id=customer.user_id, type='punch_card_completed').count() == 1

    def test_punch_after_completion_rejected(self, client, business_headers, participation):
        """No punches beyond punches_required."""
        for _ in range(3):
            self._punch(client, business_headers, participation.id)
        response = self._punch(client, business_headers, participation.id)
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Punch card already completed'
        assert PunchCardPunch.query.filter_by(punch_card_customer_id=participation.id).count() == 3

    def test_other_business_cannot_punch(self, client, make_business, auth_headers_for, participation):
        """Only the card's business records punches."""
        other = make_business(business_name='Other Shop')
        response = self._punch(client, auth_headers_for(other.user), participation.id)
        assert response.status_code == 403

    def test_update_punch_not_allowed(self, client, business_headers):
        """PUT on punches is always 405."""
        response = client.put('/api/punch-cards/punches', headers=business_headers, json={})
        assert response.status_code == 405
        assert response.get_json()['error']['message'] == 'Updating punches is not allowed'

    def test_delete_punch_rolls_back_count(self, client, business_headers, participation):
        """Deleting a punch decrements the count and reopens the card."""
        for _ in range(3):
            self._punch(client, business_headers, participation.id)
        punch = PunchCardPunch.query.filter_by(punch_card_customer_id=participation.id).first()
        response = client.delete(f'/api/punch-cards/punches?id={punch.id}', headers=business_headers)
        assert response.status_code == 200
        data = response.get_json()['punch_card_customer']
        assert data['punches_count'] == 2
        assert data['is_completed'] is False

    def test_list_punches_for_customer(self, client, customer, customer_headers, business_headers, participation):
        """Customers list their own punches."""
        self._punch(client, business_headers, participation.id)
        response = client.get(f'/api/punch-cards/punches?customerId={customer.id}', headers=customer_headers)
        assert response.status_code == 200
        assert len(response.get_json()['data']) == 1


class TestPunchGuard:
    """The guarded increment never pushes punches_count past punches_required."""

    def test_lost_race_inserts_no_punch(self, app, business, participation, punch_card):
        """If another request filled the card first, the punch is refused."""
        # Simulate a concurrent punch that filled the card without flagging completion yet
        PunchCardCustomer.query.filter_by(id=participation.id).update(
            {PunchCardCustomer.punches_count: punch_card.punches_required},
            synchronize_session=False,
        )
        db.session.commit()

        with pytest.raises(ValidationError):
            PunchCardService().add_punch(business, participation.id, validated_by=business.user_id)

        db.session.refresh(participation)
        assert participation.punches_count == punch_card.punches_required
        assert PunchCardPunch.query.count() == 0

    def test_count_matches_punch_rows(self, app, business, participation, punch_card):
        """Every accepted punch has exactly one punch row."""
        service = PunchCardService()
        for _ in range(punch_card.punches_required):
            service.add_punch(business, participation.id, validated_by=business.user_id)
        db.session.refresh(participation)
        assert participation.punches_count == PunchCardPunch.query.count() == 3


class TestBulkOperations:
    """Tests for POST /api/punch-cards/bulk."""

    def test_bulk_create(self, client, business_headers):
        """All cards are created in one go (201)."""
        response = client.post('/api/punch-cards/bulk', headers=business_headers, json={
            'operation': 'bulk_create_punch_cards',
            'data': [
                {'title': 'A', 'punches_required': 3, 'reward_description': 'Free A'},
                {'title': 'B', 'punches_required': 5, 'reward_description': 'Free B'},
            ],
        })
        assert response.status_code == 201
        body = response.get_json()
        assert body['message'] == 'Created 2 punch cards successfully'
        assert PunchCard.query.count() == 2

    def test_bulk_create_all_or_nothing(self, client, business_headers):
        """One invalid item rejects the whole batch."""
        response = client.post('/api/punch-cards/bulk', headers=business_headers, json={
            'operation': 'bulk_create_punch_cards',
            'data': [
                {'title': 'A', 'punches_required': 3, 'reward_description': 'Free A'},
                {'title': 'B'},
            ],
        })
        assert response.status_code == 400
        assert PunchCard.query.count() == 0

    def test_bulk_add_punches_collects_errors(self, client, customer, business_headers, punch_card, participation):
        """Item failures are reported without aborting the batch."""
        response = client.post('/api/punch-cards/bulk', headers=business_headers, json={
            'operation': 'bulk_add_punches',
            'data': [
                {'punch_card_id': punch_card.id, 'customer_id': customer.id},
                {'punch_card_id': punch_card.id, 'customer_id': 99999},
            ],
        })
        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'Processed 1 punches successfully, 1 errors'
        assert len(body['results']) == 1
        assert len(body['errors']) == 1

    def test_bulk_delete(self, client, business_headers, punch_card):
        """Deleting unknown ids reports them as errors."""
        response = client.post('/api/punch-cards/bulk', headers=business_headers, json={
            'operation': 'bulk_delete_punch_cards',
            'data': [punch_card.id, 99999],
        })
        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'Deleted 1 punch cards successfully, 1 errors'
        assert body['errors'][0]['id'] == 99999

    def test_bulk_invalid_operation(self, client, business_headers):
        """Unknown operations are a 400."""
        response = client.post('/api/punch-cards/bulk', headers=business_headers, json={
            'operation': 'bulk_explode', 'data': [],
        })
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Invalid operation'

    def test_bulk_data_must_be_list(self, client, business_headers):
        """data must be an array."""
        response = client.post('/api/punch-cards/bulk', headers=business_headers, json={
            'operation': 'bulk_add_punches', 'data': {'x': 1},
        })
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Data must be an array for bulk_add_punches operation'


class TestAnalytics:
    """Tests for /api/punch-cards/analytics."""

    def test_completion_rate(self):
        """Completion rate is a rounded percentage."""
        assert completion_rate(0, 0) == 0
        assert completion_rate(1, 3) == 33
        assert completion_rate(2, 3) == 67

    def test_analytics_totals(self, client, business_headers, participation):
        """Business stats aggregate participants and punches."""
        client.post('/api/punch-cards/punches', headers=business_headers, json={
            'punch_card_customer_id': participation.id,
        })
        response = client.get('/api/punch-cards/analytics', headers=business_headers)
        assert response.status_code == 200
        stats = response.get_json()['business_stats']
        assert stats['total_punch_cards'] == 1
        assert stats['total_participants'] == 1
        assert stats['total_punches'] == 1
        assert stats['completion_rate'] == 0
