"""
Points API endpoints.

Handles:
- Awarding points by scanning a customer's QR code (business)
- Balance summary per business (customer)
- Transaction history and business analytics
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..middleware import require_auth, require_role, require_approved_business, ratelimit_api
from ..models import UserRole
from ..services.points_service import PointsService
from ..utils.errors import forbidden
from ..utils.validation import parse_int

points_bp = Blueprint('points', __name__)

service = PointsService()


@points_bp.route('/award', methods=['POST'])
@require_approved_business
@ratelimit_api
def award_points():
    """
    JSON body:
        customer_qr: scanned customer QR payload (required)
        amount_spent: purchase amount (required, > 0)
    """
    data = request.json or {}
    result = service.award_from_qr_scan(
        g.business, data.get('customer_qr'), data.get('amount_spent'), awarded_by=g.user_id
    )
    return jsonify({'success': True, **result}), 201


@points_bp.route('/summary', methods=['GET'])
@require_role(UserRole.CUSTOMER)
def points_summary():
    return jsonify(service.customer_summary(g.customer))


@points_bp.route('/transactions', methods=['GET'])
@require_auth
def list_transactions():
    """
    Query params:
        limit: max rows (default 50, max 100)
    """
    limit = parse_int(request.args.get('limit', 50), 'limit', minimum=1)
    if g.role == UserRole.CUSTOMER.value and g.user.customer:
        transactions = service.list_transactions(customer_id=g.user.customer.id, limit=limit)
    elif g.role == UserRole.BUSINESS.value and g.user.business:
        transactions = service.list_transactions(business_id=g.user.business.id, limit=limit)
    else:
        return forbidden('Only customers and businesses have point transactions')

    return jsonify({
        'transactions': [t.to_dict() for t in transactions],
        'count': len(transactions),
    })


@points_bp.route('/analytics', methods=['GET'])
@require_approved_business
def points_analytics():
    current_app.logger.debug(f'Points analytics requested by business {g.business.id}')
    return jsonify(service.business_analytics(g.business.id))
