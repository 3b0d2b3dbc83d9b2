"""
Rewards API endpoints.

Handles:
- Rewards catalog (public listing, business management)
- Reward redemption (customer)
- Redemption validation by code (business) and cancellation (customer)
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import (
    require_auth,
    require_role,
    require_approved_business,
    load_optional_user,
    ratelimit_api,
)
from ..models import UserRole
from ..services.reward_service import RewardService
from ..utils.errors import bad_request, forbidden
from ..utils.validation import parse_positive_int

rewards_bp = Blueprint('rewards', __name__)
redemptions_bp = Blueprint('redemptions', __name__)

service = RewardService()


# ==============================================================================
# REWARDS CATALOG
# ==============================================================================

@rewards_bp.route('', methods=['GET'])
def list_rewards():
    """
    Query params:
        businessId: business whose rewards to list (required)

    The owning business also sees inactive rewards.
    """
    raw_id = request.args.get('businessId')
    if not raw_id:
        return bad_request('businessId is required')
    business_id = parse_positive_int(raw_id, 'businessId')

    user = load_optional_user()
    is_owner = bool(user and user.business and user.business.id == business_id)
    rewards = service.list_rewards(business_id, include_inactive=is_owner)
    return jsonify({'rewards': [r.to_dict() for r in rewards], 'count': len(rewards)})


@rewards_bp.route('', methods=['POST'])
@require_approved_business
@ratelimit_api
def create_reward():
    """
    JSON body:
        reward_name: 1-255 chars (required)
        points_required: positive integer (required)
        description, terms, image_url, redemption_limit, is_active
    """
    data = request.json or {}
    reward = service.create_reward(g.business, data)
    return jsonify({'reward': reward.to_dict()}), 201


@rewards_bp.route('/<int:reward_id>', methods=['PUT'])
@require_approved_business
@ratelimit_api
def update_reward(reward_id):
    data = request.json or {}
    reward = service.update_reward(g.business, reward_id, data)
    return jsonify({'reward': reward.to_dict()})


@rewards_bp.route('/<int:reward_id>', methods=['DELETE'])
@require_approved_business
def delete_reward(reward_id):
    deleted = service.delete_reward(g.business, reward_id)
    return jsonify({'success': True, 'deleted': deleted, 'deactivated': not deleted})


@rewards_bp.route('/<int:reward_id>/redeem', methods=['POST'])
@require_role(UserRole.CUSTOMER)
@ratelimit_api
def redeem_reward(reward_id):
    redemption = service.redeem(g.customer, reward_id)
    return jsonify({
        'success': True,
        'redemption': redemption.to_dict(),
        'redemption_qr_code': redemption.redemption_qr_code,
        'total_points': g.customer.total_points,
    }), 201


# ==============================================================================
# REDEMPTIONS
# ==============================================================================

@redemptions_bp.route('', methods=['GET'])
@require_auth
def list_redemptions():
    if g.role == UserRole.CUSTOMER.value and g.user.customer:
        redemptions = service.list_redemptions(customer_id=g.user.customer.id)
    elif g.role == UserRole.BUSINESS.value and g.user.business:
        redemptions = service.list_redemptions(business_id=g.user.business.id)
    else:
        return forbidden('Only customers and businesses have redemptions')
    return jsonify({'redemptions': [r.to_dict() for r in redemptions], 'count': len(redemptions)})


@redemptions_bp.route('/validate', methods=['POST'])
@require_approved_business
@ratelimit_api
def validate_redemption():
    """
    JSON body:
        code: scanned redemption QR code (required)
    """
    data = request.json or {}
    redemption = service.validate(g.business, g.user, data.get('code'))
    return jsonify({
        'success': True,
        'message': 'Redemption validated',
        'redemption': redemption.to_dict(),
    })


@redemptions_bp.route('/<int:redemption_id>/cancel', methods=['POST'])
@require_role(UserRole.CUSTOMER)
@ratelimit_api
def cancel_redemption(redemption_id):
    redemption = service.cancel(g.customer, redemption_id)
    return jsonify({
        'success': True,
        'redemption': redemption.to_dict(),
        'total_points': g.customer.total_points,
    })
