"""
Tests for the notification inbox, admin broadcast and push delivery.
"""
from unittest.mock import patch, MagicMock

import requests

from giya.extensions import db
from giya.models import Notification
from giya.services.notification_service import NotificationService, send_push


def _notify(user_id, title='Hello', message='World'):
    notification = NotificationService().notify(user_id, title, message)
    db.session.commit()
    return notification


class TestInbox:
    """Tests for GET, PUT and DELETE /api/notifications."""

    def test_list_own_notifications(self, client, customer, customer_headers, business):
        _notify(customer.user_id, title='First')
        _notify(customer.user_id, title='Second')
        _notify(business.user_id, title='Not mine')

        data = client.get('/api/notifications', headers=customer_headers).get_json()
        assert [n['title'] for n in data['notifications']] == ['Second', 'First']
        assert data['unread_count'] == 2

    def test_mark_read(self, client, customer, customer_headers, business):
        mine = _notify(customer.user_id)
        theirs = _notify(business.user_id)

        response = client.put('/api/notifications', headers=customer_headers,
                              json={'notification_ids': [mine.id, theirs.id]})
        assert response.get_json() == {'success': True, 'updated': 1}
        assert db.session.get(Notification, theirs.id).is_read is False

        again = client.put('/api/notifications', headers=customer_headers,
                           json={'notification_ids': [mine.id]})
        assert again.get_json()['updated'] == 0

    def test_mark_read_needs_list(self, client, customer_headers):
        response = client.put('/api/notifications', headers=customer_headers,
                              json={'notification_ids': 5})
        assert response.status_code == 400

    def test_delete(self, client, customer, customer_headers):
        notification = _notify(customer.user_id)
        response = client.delete(f'/api/notifications?id={notification.id}', headers=customer_headers)
        assert response.status_code == 200
        assert Notification.query.count() == 0

    def test_delete_someone_elses(self, client, business, customer_headers):
        notification = _notify(business.user_id)
        response = client.delete(f'/api/notifications?id={notification.id}', headers=customer_headers)
        assert response.status_code == 404

    def test_requires_auth(self, client):
        assert client.get('/api/notifications').status_code == 401


class TestBroadcast:
    """Tests for POST /api/notifications/send."""

    def test_send_to_user(self, client, admin_headers, customer):
        response = client.post('/api/notifications/send', headers=admin_headers, json={
            'type': 'user', 'target': customer.user_id, 'title': 'Promo', 'message': 'Double points today',
        })
        assert response.status_code == 200
        assert response.get_json() == {'success': True, 'sent': 1, 'pushed': 0}

    def test_send_to_topic(self, client, admin_headers, make_customer, business):
        make_customer()
        make_customer(full_name='Pedro Penduko')
        response = client.post('/api/notifications/send', headers=admin_headers, json={
            'type': 'topic', 'target': 'customer', 'title': 'Promo', 'message': 'Double points today',
        })
        assert response.get_json()['sent'] == 2
        assert Notification.query.filter_by(user_id=business.user_id).count() == 0

    def test_unknown_users_skipped(self, client, admin_headers, customer):
        response = client.post('/api/notifications/send', headers=admin_headers, json={
            'type': 'users', 'target': [customer.user_id, 99999], 'title': 'Promo', 'message': 'Hi',
        })
        assert response.get_json()['sent'] == 1

    def test_requires_title_and_message(self, client, admin_headers, customer):
        response = client.post('/api/notifications/send', headers=admin_headers, json={
            'type': 'user', 'target': customer.user_id, 'title': 'Promo',
        })
        assert response.status_code == 400

    def test_bad_topic(self, client, admin_headers):
        response = client.post('/api/notifications/send', headers=admin_headers, json={
            'type': 'topic', 'target': 'everyone', 'title': 'Promo', 'message': 'Hi',
        })
        assert response.status_code == 400

    def test_admin_only(self, client, customer_headers, customer):
        response = client.post('/api/notifications/send', headers=customer_headers, json={
            'type': 'user', 'target': customer.user_id, 'title': 'Promo', 'message': 'Hi',
        })
        assert response.status_code == 403


class TestPush:
    """Tests for FCM delivery."""

    def test_skipped_without_server_key(self, app):
        with patch('giya.services.notification_service.requests.post') as mock_post:
            assert send_push('device-token', 'Hi', 'There') is False
        mock_post.assert_not_called()

    def test_delivers_to_customer_token(self, app, customer):
        app.config['FCM_SERVER_KEY'] = 'test-key'
        customer.fcm_token = 'device-token'
        db.session.commit()

        with patch('giya.services.notification_service.requests.post') as mock_post:
            mock_post.return_value = MagicMock(status_code=200)
            service = NotificationService()
            service.notify(customer.user_id, 'Hi', 'There', data={'points': 5})
            db.session.commit()
            assert service.deliver_pending() == 1

        payload = mock_post.call_args.kwargs['json']
        assert payload['to'] == 'device-token'
        assert payload['data'] == {'points': '5'}
        assert mock_post.call_args.kwargs['headers']['Authorization'] == 'key=test-key'

    def test_push_uses_request_bounds(self, app):
        app.config['FCM_SERVER_KEY'] = 'test-key'
        app.config['FCM_PUSH_MAX_RETRIES'] = 0

        with patch('giya.services.notification_service.requests.post',
                   side_effect=requests.ConnectionError('fcm down')) as mock_post:
            assert send_push('device-token', 'Hi', 'There') is False
        assert mock_post.call_count == 1
        assert mock_post.call_args.kwargs['timeout'] == 5

    def test_delivery_stops_when_budget_spent(self, app, customer):
        """Pushes left over once the budget is spent stay in the inbox only."""
        app.config['FCM_SERVER_KEY'] = 'test-key'
        app.config['FCM_DELIVERY_BUDGET_SECONDS'] = -1
        customer.fcm_token = 'device-token'
        db.session.commit()

        with patch('giya.services.notification_service.requests.post') as mock_post:
            service = NotificationService()
            service.notify(customer.user_id, 'Hi', 'There')
            db.session.commit()
            assert service.deliver_pending() == 0
        mock_post.assert_not_called()
        assert Notification.query.filter_by(user_id=customer.user_id).count() == 1

    def test_client_error_is_not_retried(self, app):
        app.config['FCM_SERVER_KEY'] = 'test-key'
        rejected = MagicMock()
        rejected.raise_for_status.side_effect = requests.HTTPError(response=MagicMock(status_code=400))

        with patch('giya.services.notification_service.requests.post', return_value=rejected) as mock_post:
            assert send_push('bad-token', 'Hi', 'There') is False
        assert mock_post.call_count == 1
