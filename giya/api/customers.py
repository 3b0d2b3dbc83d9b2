"""
Customer profile endpoints.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_role, ratelimit_api
from ..models import UserRole
from ..services.profile_service import ProfileService

customers_bp = Blueprint('customers', __name__)


@customers_bp.route('/me', methods=['GET'])
@require_role(UserRole.CUSTOMER)
def get_my_profile():
    return jsonify({'customer': g.customer.to_dict()})


@customers_bp.route('/me', methods=['PUT'])
@require_role(UserRole.CUSTOMER)
@ratelimit_api
def update_my_profile():
    """
    JSON body (all optional):
        full_name, nickname, phone_number (09XXXXXXXXX / +639XXXXXXXXX),
        date_of_birth (YYYY-MM-DD), profile_pic_url, fcm_token
    """
    data = request.json or {}
    customer = ProfileService.update_customer(g.customer, data)
    return jsonify({'customer': customer.to_dict()})
