"""
Deals API endpoints.

Handles:
- Discount and exclusive offers (business CRUD, public listing)
- Deal redemption at the counter (business scans deal QR for a customer)
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_approved_business, load_optional_user, ratelimit_api
from ..services.deal_service import DealService
from ..utils.validation import parse_positive_int

deals_bp = Blueprint('deals', __name__)

service = DealService()


@deals_bp.route('', methods=['GET'])
def list_deals():
    """
    Query params:
        businessId: filter by business
        deal_type: discount | exclusive

    Inactive deals are only listed for their owning business.
    """
    raw_id = request.args.get('businessId')
    business_id = parse_positive_int(raw_id, 'businessId') if raw_id else None

    user = load_optional_user()
    is_owner = bool(business_id and user and user.business and user.business.id == business_id)
    deals = service.list_deals(
        business_id=business_id,
        deal_type=request.args.get('deal_type'),
        include_inactive=is_owner,
    )
    return jsonify({'deals': [d.to_dict() for d in deals], 'count': len(deals)})


@deals_bp.route('', methods=['POST'])
@require_approved_business
@ratelimit_api
def create_deal():
    """
    JSON body:
        title (required), deal_type (discount | exclusive)
        discount:  discount_percentage (0-100) or discount_value
        exclusive: product_name, original_price, exclusive_price
        points_required, redemption_limit, validity_start, validity_end,
        schedule_type, start_time, end_time (HH:MM), active_days ([0-6], 0=Sunday)
    """
    data = request.json or {}
    deal = service.create_deal(g.business, data)
    return jsonify({'deal': deal.to_dict()}), 201


@deals_bp.route('/<int:deal_id>', methods=['PUT'])
@require_approved_business
@ratelimit_api
def update_deal(deal_id):
    data = request.json or {}
    deal = service.update_deal(g.business, deal_id, data)
    return jsonify({'deal': deal.to_dict()})


@deals_bp.route('/<int:deal_id>', methods=['DELETE'])
@require_approved_business
def delete_deal(deal_id):
    deleted = service.delete_deal(g.business, deal_id)
    return jsonify({'success': True, 'deleted': deleted, 'deactivated': not deleted})


@deals_bp.route('/redeem', methods=['POST'])
@require_approved_business
@ratelimit_api
def redeem_deal():
    """
    JSON body:
        qr_code_data: scanned deal QR (required)
        customer_id or customer_qr: the customer redeeming (required)
    """
    data = request.json or {}
    result = service.redeem(g.business, g.user, data)
    return jsonify({
        'success': True,
        'message': 'Deal successfully redeemed',
        'deal_usage': result['deal_usage'].to_dict(),
        'remaining_points': result['remaining_points'],
    })
