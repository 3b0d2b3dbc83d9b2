"""
Tests for business and customer profiles and public discovery.
"""
from giya.extensions import db
from giya.models import CuratedList, CuratedListItem, Deal, Reward


class TestBusinessProfile:
    """Tests for /api/businesses."""

    def test_pending_business_can_read_own_profile(self, client, pending_business, auth_headers_for):
        response = client.get('/api/businesses/me', headers=auth_headers_for(pending_business.user))
        assert response.status_code == 200
        assert response.get_json()['business']['approval_status'] == 'pending'

    def test_update_profile(self, client, business_headers):
        response = client.put('/api/businesses/me', headers=business_headers, json={
            'description': '\x07<b>Best</b> kape ', 'points_per_currency': 50, 'phone_number': '09171234567',
        })
        assert response.status_code == 200
        business = response.get_json()['business']
        assert business['points_per_currency'] == 50
        assert business['description'] == '<b>Best</b> kape'

    def test_rename_refreshes_curated_lists(self, client, admin, business, business_headers):
        curated = CuratedList(title='Best coffee in Naga', created_by=admin.id)
        db.session.add(curated)
        db.session.flush()
        db.session.add(CuratedListItem(curated_list_id=curated.id, business_id=business.id, added_by=admin.id))
        db.session.commit()

        first = client.get('/api/curated-lists').get_json()['curated_lists'][0]
        assert first['businesses'][0]['business_name'] == 'Kape Naga'

        client.put('/api/businesses/me', headers=business_headers, json={'business_name': 'Kape & Co'})
        renamed = client.get('/api/curated-lists').get_json()['curated_lists'][0]
        assert renamed['businesses'][0]['business_name'] == 'Kape & Co'

    def test_rate_must_be_positive(self, client, business_headers):
        response = client.put('/api/businesses/me', headers=business_headers, json={'points_per_currency': 0})
        assert response.status_code == 400

    def test_discovery_lists_approved_only(self, client, business, pending_business, make_business):
        make_business(business_name='Naga Bakeshop')
        data = client.get('/api/businesses').get_json()
        assert [b['business_name'] for b in data['businesses']] == ['Kape Naga', 'Naga Bakeshop']
        assert 'approval_status' not in data['businesses'][0]

    def test_discovery_search(self, client, business, make_business):
        make_business(business_name='Naga Bakeshop')
        data = client.get('/api/businesses?q=bake').get_json()
        assert [b['business_name'] for b in data['businesses']] == ['Naga Bakeshop']

    def test_public_profile_includes_offers(self, client, business):
        db.session.add_all([
            Reward(business_id=business.id, reward_name='Free Latte', points_required=20),
            Reward(business_id=business.id, reward_name='Retired', points_required=5, is_active=False),
            Deal(business_id=business.id, title='10% off', discount_percentage=10),
        ])
        db.session.commit()

        data = client.get(f'/api/businesses/{business.id}').get_json()['business']
        assert [r['reward_name'] for r in data['rewards']] == ['Free Latte']
        assert len(data['deals']) == 1

    def test_unapproved_profile_hidden(self, client, pending_business):
        assert client.get(f'/api/businesses/{pending_business.id}').status_code == 404


class TestCustomerProfile:
    """Tests for /api/customers/me."""

    def test_get_profile(self, client, customer, customer_headers):
        data = client.get('/api/customers/me', headers=customer_headers).get_json()
        assert data['customer']['qr_code_data'] == customer.qr_code_data

    def test_update_profile(self, client, customer_headers):
        response = client.put('/api/customers/me', headers=customer_headers, json={
            'nickname': 'Ana', 'phone_number': '+639171234567', 'date_of_birth': '1995-04-12',
        })
        assert response.status_code == 200
        data = response.get_json()['customer']
        assert data['nickname'] == 'Ana'
        assert data['date_of_birth'] == '1995-04-12'

    def test_invalid_phone(self, client, customer_headers):
        response = client.put('/api/customers/me', headers=customer_headers, json={'phone_number': '12345'})
        assert response.status_code == 400

    def test_business_cannot_use_customer_profile(self, client, business_headers):
        assert client.get('/api/customers/me', headers=business_headers).status_code == 403
