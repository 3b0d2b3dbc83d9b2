"""
Punch Cards API endpoints.

Handles:
- Punch card management (business)
- Customer participation (join, leave, manual count correction)
- Punch recording and removal
- Bulk operations and analytics
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..middleware import require_auth, require_role, require_approved_business, ratelimit_api
from ..models import UserRole
from ..services.punch_card_service import PunchCardService
from ..utils.errors import bad_request, error_response, forbidden, ErrorCode
from ..utils.exceptions import ValidationError
from ..utils.validation import parse_positive_int

punch_cards_bp = Blueprint('punch_cards', __name__)

service = PunchCardService()


def _query_id(name: str):
    value = request.args.get(name)
    return parse_positive_int(value, name) if value else None


def _caller_business_id():
    business = g.user.business if g.role == UserRole.BUSINESS.value else None
    return business.id if business else None


def _caller_customer_id():
    customer = g.user.customer if g.role == UserRole.CUSTOMER.value else None
    return customer.id if customer else None


# ==============================================================================
# PUNCH CARDS
# ==============================================================================

@punch_cards_bp.route('', methods=['GET'])
@require_auth
def get_punch_cards():
    """
    Query params (one of):
        businessId: cards owned by the calling business
        customerId: the calling customer's participations with their cards
        punchCardId: one card (owner business only)
    """
    business_id = _query_id('businessId')
    customer_id = _query_id('customerId')
    card_id = _query_id('punchCardId')

    if business_id:
        if business_id != _caller_business_id():
            return forbidden('You can only view your own punch cards')
        cards = service.list_cards_for_business(business_id)
        return jsonify({'data': [c.to_dict() for c in cards]})

    if customer_id:
        if customer_id != _caller_customer_id():
            return forbidden('You can only view your own punch cards')
        participations = service.participations_for_customer(customer_id)
        return jsonify({'data': [p.to_dict(include_card=True) for p in participations]})

    if card_id:
        caller = _caller_business_id()
        card = service.get_card(card_id)
        if card.business_id != caller:
            return forbidden('You do not own this punch card')
        return jsonify({'data': card.to_dict()})

    return bad_request('Missing parameters')


@punch_cards_bp.route('', methods=['POST'])
@require_approved_business
@ratelimit_api
def create_punch_card():
    """
    JSON body:
        title, reward_description, punches_required (required)
        description, is_active, valid_from, valid_until
    """
    data = request.json or {}
    card = service.create_card(g.business, data)
    return jsonify({'data': card.to_dict()}), 201


@punch_cards_bp.route('', methods=['PUT'])
@require_approved_business
@ratelimit_api
def update_punch_card():
    data = request.json or {}
    if not data.get('id'):
        raise ValidationError('id is required', field='id')
    card_id = parse_positive_int(data['id'], 'id')
    updates = {k: v for k, v in data.items() if k not in ('id', 'business_id')}
    card = service.update_card(g.business, card_id, updates)
    return jsonify({'data': card.to_dict()})


@punch_cards_bp.route('', methods=['DELETE'])
@require_approved_business
def delete_punch_card():
    card_id = _query_id('id')
    if not card_id:
        raise ValidationError('id is required', field='id')
    service.delete_card(g.business, card_id)
    return jsonify({'success': True})


# ==============================================================================
# PARTICIPATION
# ==============================================================================

@punch_cards_bp.route('/customers', methods=['GET'])
@require_role(UserRole.CUSTOMER)
def get_participations():
    """
    Query params (one of):
        customerId: all of the caller's participations
        punchCardId: the caller's participation in one card (or null)
    """
    customer_id = _query_id('customerId')
    card_id = _query_id('punchCardId')

    if customer_id:
        if customer_id != g.customer.id:
            return forbidden('You can only view your own punch cards')
        participations = service.participations_for_customer(customer_id)
        return jsonify({'data': [p.to_dict(include_card=True) for p in participations]})

    if card_id:
        participation = service.participation_for_card(g.customer.id, card_id)
        return jsonify({'data': participation.to_dict(include_card=True) if participation else None})

    return bad_request('Missing parameters')


@punch_cards_bp.route('/customers', methods=['POST'])
@require_role(UserRole.CUSTOMER)
@ratelimit_api
def join_punch_card():
    data = request.json or {}
    if not data.get('punch_card_id'):
        raise ValidationError('punch_card_id is required', field='punch_card_id')
    participation = service.join(g.customer, parse_positive_int(data['punch_card_id'], 'punch_card_id'))
    return jsonify({'data': participation.to_dict(include_card=True)}), 201


@punch_cards_bp.route('/customers', methods=['PUT'])
@require_auth
@ratelimit_api
def update_participation():
    """Correct a participation's punch count (participant or card owner)."""
    data = request.json or {}
    if not data.get('id'):
        raise ValidationError('id is required', field='id')
    if 'punches_count' not in data:
        raise ValidationError('punches_count is required', field='punches_count')
    participation = service.set_punch_count(
        g.user, parse_positive_int(data['id'], 'id'), data['punches_count']
    )
    return jsonify({'data': participation.to_dict()})


@punch_cards_bp.route('/customers', methods=['DELETE'])
@require_role(UserRole.CUSTOMER)
def leave_punch_card():
    participation_id = _query_id('id')
    if not participation_id:
        raise ValidationError('id is required', field='id')
    service.leave(g.customer, participation_id)
    return jsonify({'success': True})


# ==============================================================================
# PUNCHES
# ==============================================================================

@punch_cards_bp.route('/punches', methods=['GET'])
@require_auth
def get_punches():
    """
    Query params (one of):
        customerId: the calling customer's punches
        businessId: punches recorded by the calling business
        punchCardId: punches on one card (owner business only)
    """
    customer_id = _query_id('customerId')
    business_id = _query_id('businessId')
    card_id = _query_id('punchCardId')

    if customer_id:
        if customer_id != _caller_customer_id():
            return forbidden('You can only view your own punches')
        punches = service.list_punches(customer_id=customer_id)
    elif business_id:
        if business_id != _caller_business_id():
            return forbidden('You can only view your own punches')
        punches = service.list_punches(business_id=business_id)
    elif card_id:
        card = service.get_card(card_id)
        if card.business_id != _caller_business_id():
            return forbidden('You do not own this punch card')
        punches = service.list_punches(card_id=card_id)
    else:
        return bad_request('Missing parameters')

    return jsonify({'data': [p.to_dict() for p in punches]})


@punch_cards_bp.route('/punches', methods=['POST'])
@require_approved_business
@ratelimit_api
def add_punch():
    """
    JSON body:
        punch_card_customer_id: participation to punch (required)
        transaction_id: optional POS reference
    """
    data = request.json or {}
    if not data.get('punch_card_customer_id'):
        raise ValidationError('punch_card_customer_id is required', field='punch_card_customer_id')

    result = service.add_punch(
        g.business,
        parse_positive_int(data['punch_card_customer_id'], 'punch_card_customer_id'),
        validated_by=g.user_id,
        transaction_id=data.get('transaction_id'),
    )
    return jsonify({
        'data': result['punch'].to_dict(),
        'punch_card_customer': result['participation'].to_dict(),
        'message': result['message'],
    }), 201


@punch_cards_bp.route('/punches', methods=['PUT'])
def update_punch():
    return error_response('Updating punches is not allowed', ErrorCode.METHOD_NOT_ALLOWED, 405, log_error=False)


@punch_cards_bp.route('/punches', methods=['DELETE'])
@require_approved_business
def delete_punch():
    punch_id = _query_id('id')
    if not punch_id:
        raise ValidationError('id is required', field='id')
    participation = service.delete_punch(g.business, punch_id)
    return jsonify({'success': True, 'punch_card_customer': participation.to_dict()})


# ==============================================================================
# BULK & REPORTING
# ==============================================================================

@punch_cards_bp.route('/bulk', methods=['POST'])
@require_approved_business
@ratelimit_api
def bulk_operation():
    """
    JSON body:
        operation: bulk_add_punches | bulk_create_punch_cards |
                   bulk_update_punch_cards | bulk_delete_punch_cards
        data: list of items for the operation
    """
    data = request.json or {}
    body, status = service.bulk(g.business, g.user, data.get('operation'), data.get('data'))
    current_app.logger.info(f"Bulk {data.get('operation')} by business {g.business.id}: {body['message']}")
    return jsonify(body), status


@punch_cards_bp.route('/analytics', methods=['GET'])
@require_approved_business
def punch_card_analytics():
    return jsonify(service.analytics(g.business.id))


@punch_cards_bp.route('/customers-by-business', methods=['GET'])
@require_approved_business
def customers_by_business():
    return jsonify({'data': service.customers_by_business(g.business.id)})
