"""
Affiliate program API endpoints.

Every endpoint answers 403 FEATURE_DISABLED while AFFILIATES_ENABLED is off.

Handles:
- Influencer referral links and earnings
- Link click tracking (public)
- Top affiliates for a business
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_role, require_approved_business, ratelimit_api, ratelimit_general
from ..models import UserRole
from ..services.affiliate_service import AffiliateService, ensure_enabled
from ..utils.validation import parse_positive_int

affiliates_bp = Blueprint('affiliates', __name__)

service = AffiliateService()


@affiliates_bp.before_request
def check_enabled():
    ensure_enabled()


@affiliates_bp.route('/links', methods=['POST'])
@require_role(UserRole.INFLUENCER)
@ratelimit_api
def create_link():
    """JSON body: business_id (approved business)"""
    data = request.json or {}
    link = service.create_link(g.influencer, data.get('business_id'))
    return jsonify({'link': link.to_dict()}), 201


@affiliates_bp.route('/links', methods=['GET'])
@require_role(UserRole.INFLUENCER)
def list_links():
    links = service.list_links(g.influencer)
    return jsonify({'links': [link.to_dict() for link in links], 'count': len(links)})


@affiliates_bp.route('/links/<code>/track', methods=['GET'])
@ratelimit_general
def track_link(code):
    """
    Query params:
        businessId: disambiguates codes shared across businesses
    """
    raw_id = request.args.get('businessId')
    link = service.track(code, parse_positive_int(raw_id, 'businessId') if raw_id else None)
    return jsonify({
        'business': link.business.to_dict(include_approval=False),
        'ref': link.unique_code,
    })


@affiliates_bp.route('/earnings', methods=['GET'])
@require_role(UserRole.INFLUENCER)
def earnings():
    return jsonify(service.earnings(g.influencer))


@affiliates_bp.route('/top', methods=['GET'])
@require_approved_business
def top_affiliates():
    return jsonify({'affiliates': service.top_affiliates(g.business)})
