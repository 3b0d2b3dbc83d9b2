"""
Tests for the business approval workflow and admin analytics.
"""
from giya.extensions import db
from giya.models import Business, BusinessApprovalLog, Notification


def _act(client, headers, action, business_id, reason=None):
    body = {'business_id': business_id}
    if reason is not None:
        body['reason'] = reason
    return client.post(f'/api/admin/businesses/{action}', headers=headers, json=body)


class TestApprovalWorkflow:
    """Tests for approve, reject, suspend and reactivate."""

    def test_approve_pending(self, client, admin, admin_headers, pending_business):
        response = _act(client, admin_headers, 'approve', pending_business.id)
        assert response.status_code == 200
        data = response.get_json()
        assert data['changed'] is True
        assert data['message'] == 'Business approved'
        assert data['business']['approval_status'] == 'approved'
        assert data['business']['can_access_dashboard'] is True
        assert data['business']['approved_by'] == admin.id

        log = BusinessApprovalLog.query.filter_by(business_id=pending_business.id).one()
        assert (log.from_status, log.to_status) == ('pending', 'approved')
        notice = Notification.query.filter_by(user_id=pending_business.user_id).one()
        assert notice.type == 'business_status'

    def test_approve_twice_is_noop(self, client, admin_headers, pending_business):
        """Re-approving writes no second audit row."""
        _act(client, admin_headers, 'approve', pending_business.id)
        response = _act(client, admin_headers, 'approve', pending_business.id)
        assert response.status_code == 200
        data = response.get_json()
        assert data['changed'] is False
        assert data['message'] == 'Business already approved'
        assert BusinessApprovalLog.query.count() == 1

    def test_reject_requires_reason(self, client, admin_headers, pending_business):
        response = _act(client, admin_headers, 'reject', pending_business.id)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_FIELD'

    def test_reject_then_approve(self, client, admin_headers, pending_business):
        """Rejected businesses can still be approved later."""
        response = _act(client, admin_headers, 'reject', pending_business.id, reason='Incomplete address')
        business = response.get_json()['business']
        assert business['approval_status'] == 'rejected'
        assert business['rejection_reason'] == 'Incomplete address'

        response = _act(client, admin_headers, 'approve', pending_business.id)
        business = response.get_json()['business']
        assert business['approval_status'] == 'approved'
        assert business['rejection_reason'] is None

    def test_suspend_and_reactivate(self, client, admin_headers, business, business_headers):
        """Suspension locks the dashboard until reactivation."""
        response = _act(client, admin_headers, 'suspend', business.id, reason='Fraud report')
        assert response.get_json()['business']['approval_status'] == 'suspended'

        blocked = client.get('/api/punch-cards/analytics', headers=business_headers)
        assert blocked.status_code == 403
        assert blocked.get_json()['approval_status'] == 'suspended'

        response = _act(client, admin_headers, 'reactivate', business.id)
        data = response.get_json()['business']
        assert data['approval_status'] == 'approved'
        assert data['suspension_reason'] is None
        assert client.get('/api/punch-cards/analytics', headers=business_headers).status_code == 200

    def test_invalid_transition(self, client, admin_headers, pending_business):
        """A pending business cannot be suspended."""
        response = _act(client, admin_headers, 'suspend', pending_business.id, reason='x')
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'INVALID_STATUS_TRANSITION'
        assert db.session.get(Business, pending_business.id).approval_status == 'pending'

    def test_unknown_business(self, client, admin_headers):
        assert _act(client, admin_headers, 'approve', 99999).status_code == 404

    def test_missing_business_id(self, client, admin_headers):
        response = client.post('/api/admin/businesses/approve', headers=admin_headers, json={})
        assert response.status_code == 400

    def test_non_admin_forbidden(self, client, business_headers, pending_business):
        assert _act(client, business_headers, 'approve', pending_business.id).status_code == 403


class TestAdminQueries:
    """Tests for listings, history and analytics."""

    def test_pending_list(self, client, admin_headers, business, pending_business):
        data = client.get('/api/admin/businesses/pending', headers=admin_headers).get_json()
        assert data['count'] == 1
        assert data['businesses'][0]['business_name'] == 'Bagong Tindahan'

    def test_filter_by_status(self, client, admin_headers, business, pending_business):
        data = client.get('/api/admin/businesses?status=approved', headers=admin_headers).get_json()
        assert [b['id'] for b in data['businesses']] == [business.id]

    def test_bad_status_filter(self, client, admin_headers):
        response = client.get('/api/admin/businesses?status=closed', headers=admin_headers)
        assert response.status_code == 400

    def test_history(self, client, admin_headers, pending_business):
        _act(client, admin_headers, 'reject', pending_business.id, reason='Duplicate listing')
        _act(client, admin_headers, 'approve', pending_business.id)

        data = client.get(f'/api/admin/businesses/{pending_business.id}/history',
                          headers=admin_headers).get_json()
        assert data['count'] == 2
        assert {entry['action'] for entry in data['history']} == {'approve', 'reject'}

    def test_platform_analytics(self, client, admin_headers, customer, business, pending_business, give_points):
        give_points(customer, business, 8)
        data = client.get('/api/admin/analytics', headers=admin_headers).get_json()
        assert data['customers'] == 1
        assert data['businesses']['approved'] == 1
        assert data['businesses']['pending'] == 1
        assert data['businesses']['total'] == 2
        assert data['points_awarded'] == 8
