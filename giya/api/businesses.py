"""
Business profile and discovery endpoints.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_role, ratelimit_api, ratelimit_general
from ..models import UserRole
from ..services.profile_service import ProfileService

businesses_bp = Blueprint('businesses', __name__)


@businesses_bp.route('/me', methods=['GET'])
@require_role(UserRole.BUSINESS)
def get_my_business():
    """Own profile, including approval status (works while pending)."""
    return jsonify({'business': g.business.to_dict()})


@businesses_bp.route('/me', methods=['PUT'])
@require_role(UserRole.BUSINESS)
@ratelimit_api
def update_my_business():
    data = request.json or {}
    business = ProfileService.update_business(g.business, data)
    return jsonify({'business': business.to_dict()})


@businesses_bp.route('', methods=['GET'])
@ratelimit_general
def discover_businesses():
    """
    Query params:
        category: exact business_category
        q: name search
    """
    businesses = ProfileService.discover_businesses(
        category=request.args.get('category'),
        q=request.args.get('q'),
    )
    return jsonify({
        'businesses': [b.to_dict(include_approval=False) for b in businesses],
        'count': len(businesses),
    })


@businesses_bp.route('/<int:business_id>', methods=['GET'])
@ratelimit_general
def get_business(business_id):
    return jsonify({'business': ProfileService.public_business(business_id)})
