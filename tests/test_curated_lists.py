"""
Tests for admin-curated business lists.
"""
import pytest

from giya.extensions import db
from giya.models import CuratedList, CuratedListItem


@pytest.fixture
def curated(admin):
    item = CuratedList(title='Best coffee in Naga', category='trending', created_by=admin.id)
    db.session.add(item)
    db.session.commit()
    return item


def _add(client, headers, list_id, business_id):
    return client.post(f'/api/admin/curated-lists/{list_id}/items', headers=headers,
                       json={'business_id': business_id})


class TestCuratedListAdmin:
    """Tests for /api/admin/curated-lists."""

    def test_create(self, client, admin_headers):
        response = client.post('/api/admin/curated-lists', headers=admin_headers,
                               json={'title': 'New this week'})
        assert response.status_code == 201
        data = response.get_json()['curated_list']
        assert data['category'] == 'trending'
        assert data['is_active'] is True
        assert data['item_count'] == 0

    def test_create_requires_title(self, client, admin_headers):
        response = client.post('/api/admin/curated-lists', headers=admin_headers, json={})
        assert response.status_code == 400

    def test_update_and_toggle(self, client, admin_headers, curated):
        response = client.put(f'/api/admin/curated-lists/{curated.id}', headers=admin_headers,
                              json={'title': 'Top cafes'})
        assert response.get_json()['curated_list']['title'] == 'Top cafes'

        response = client.post(f'/api/admin/curated-lists/{curated.id}/toggle', headers=admin_headers)
        assert response.get_json()['curated_list']['is_active'] is False

    def test_delete_removes_items(self, client, admin_headers, curated, business):
        _add(client, admin_headers, curated.id, business.id)
        response = client.delete(f'/api/admin/curated-lists/{curated.id}', headers=admin_headers)
        assert response.status_code == 200
        assert CuratedListItem.query.count() == 0

    def test_add_business(self, client, admin_headers, curated, business):
        response = _add(client, admin_headers, curated.id, business.id)
        assert response.status_code == 201
        assert response.get_json()['item']['business']['business_name'] == 'Kape Naga'

    def test_add_twice(self, client, admin_headers, curated, business):
        _add(client, admin_headers, curated.id, business.id)
        response = _add(client, admin_headers, curated.id, business.id)
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'DUPLICATE_ENTRY'

    def test_add_unapproved_business(self, client, admin_headers, curated, pending_business):
        response = _add(client, admin_headers, curated.id, pending_business.id)
        assert response.status_code == 400

    def test_move_and_remove(self, client, admin_headers, curated, make_business):
        """Items swap with their neighbour and gaps close on removal."""
        first = make_business(business_name='Cafe Uno')
        second = make_business(business_name='Cafe Dos')
        third = make_business(business_name='Cafe Tres')
        for shop in (first, second, third):
            _add(client, admin_headers, curated.id, shop.id)

        response = client.post(f'/api/admin/curated-lists/{curated.id}/items/{third.id}/move',
                               headers=admin_headers, json={'direction': 'up'})
        assert [i['business_id'] for i in response.get_json()['items']] == [first.id, third.id, second.id]

        response = client.post(f'/api/admin/curated-lists/{curated.id}/items/{first.id}/move',
                               headers=admin_headers, json={'direction': 'up'})
        assert [i['business_id'] for i in response.get_json()['items']] == [first.id, third.id, second.id]

        client.delete(f'/api/admin/curated-lists/{curated.id}/items/{first.id}', headers=admin_headers)
        orders = [item.display_order for item in db.session.get(CuratedList, curated.id).items]
        assert orders == [0, 1]

    def test_bad_direction(self, client, admin_headers, curated, business):
        _add(client, admin_headers, curated.id, business.id)
        response = client.post(f'/api/admin/curated-lists/{curated.id}/items/{business.id}/move',
                               headers=admin_headers, json={'direction': 'sideways'})
        assert response.status_code == 400

    def test_admin_listing_includes_items(self, client, admin_headers, curated, business):
        _add(client, admin_headers, curated.id, business.id)
        data = client.get('/api/admin/curated-lists', headers=admin_headers).get_json()
        assert len(data['curated_lists'][0]['items']) == 1


class TestPublicCuratedLists:
    """Tests for GET /api/curated-lists."""

    def test_only_active_lists_and_approved_businesses(self, client, admin, admin_headers, curated,
                                                       business, make_business):
        shop = make_business(business_name='Cafe Uno')
        _add(client, admin_headers, curated.id, business.id)
        _add(client, admin_headers, curated.id, shop.id)
        hidden = CuratedList(title='Hidden', created_by=admin.id, is_active=False)
        db.session.add(hidden)
        db.session.commit()

        client.post('/api/admin/businesses/suspend', headers=admin_headers,
                    json={'business_id': shop.id, 'reason': 'Closed'})

        data = client.get('/api/curated-lists').get_json()
        assert [cl['title'] for cl in data['curated_lists']] == ['Best coffee in Naga']
        businesses = data['curated_lists'][0]['businesses']
        assert [b['business_name'] for b in businesses] == ['Kape Naga']
        assert 'approval_status' not in businesses[0]

    def test_writes_refresh_public_listing(self, client, admin_headers, curated):
        assert len(client.get('/api/curated-lists').get_json()['curated_lists']) == 1
        client.post(f'/api/admin/curated-lists/{curated.id}/toggle', headers=admin_headers)
        assert client.get('/api/curated-lists').get_json()['curated_lists'] == []
