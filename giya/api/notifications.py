"""
Notifications API endpoints.

Handles:
- In-app inbox (list, mark read, delete)
- Admin broadcast with optional push delivery
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_auth, require_admin, ratelimit_api
from ..services.notification_service import NotificationService
from ..utils.exceptions import ValidationError
from ..utils.validation import parse_positive_int

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('', methods=['GET'])
@require_auth
def list_notifications():
    return jsonify(NotificationService.list_for_user(g.user_id))


@notifications_bp.route('', methods=['PUT'])
@require_auth
def mark_notifications_read():
    """JSON body: notification_ids: [int, ...]"""
    data = request.json or {}
    updated = NotificationService.mark_read(g.user_id, data.get('notification_ids'))
    return jsonify({'success': True, 'updated': updated})


@notifications_bp.route('', methods=['DELETE'])
@require_auth
def delete_notification():
    raw_id = request.args.get('id')
    if not raw_id:
        raise ValidationError('id is required', field='id')
    NotificationService.delete(g.user_id, parse_positive_int(raw_id, 'id'))
    return jsonify({'success': True})


@notifications_bp.route('/send', methods=['POST'])
@require_admin
@ratelimit_api
def send_notification():
    """
    JSON body:
        type: user | users | topic
        target: user id, list of user ids, or role name
        title, message (required)
        data: optional payload
    """
    data = request.json or {}
    result = NotificationService().send(
        data.get('type'), data.get('target'), data.get('title'), data.get('message'), data.get('data')
    )
    return jsonify({'success': True, **result})
