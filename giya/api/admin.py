"""
Admin API endpoints.

Handles:
- Business approval workflow (approve, reject, suspend, reactivate)
- Approval audit history
- Platform analytics
- Curated list management
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_admin, ratelimit_api
from ..models import ApprovalAction
from ..services.approval_service import ApprovalService
from ..services.curated_list_service import CuratedListService

admin_bp = Blueprint('admin', __name__)

approvals = ApprovalService()
curated_lists = CuratedListService()


# ==============================================================================
# BUSINESS APPROVAL
# ==============================================================================

@admin_bp.route('/businesses/pending', methods=['GET'])
@require_admin
def pending_businesses():
    businesses = approvals.list_pending()
    return jsonify({'businesses': [b.to_dict() for b in businesses], 'count': len(businesses)})


@admin_bp.route('/businesses', methods=['GET'])
@require_admin
def list_businesses():
    """
    Query params:
        status: pending | approved | rejected | suspended
    """
    businesses = approvals.list_businesses(request.args.get('status'))
    return jsonify({'businesses': [b.to_dict() for b in businesses], 'count': len(businesses)})


def _transition(action: str):
    data = request.json or {}
    result = approvals.transition(g.user, data.get('business_id'), action, data.get('reason'))
    business = result['business']
    return jsonify({
        'success': True,
        'changed': result['changed'],
        'message': f'Business {business.approval_status}' if result['changed']
        else f'Business already {business.approval_status}',
        'business': business.to_dict(),
    })


@admin_bp.route('/businesses/approve', methods=['POST'])
@require_admin
@ratelimit_api
def approve_business():
    """JSON body: business_id"""
    return _transition(ApprovalAction.APPROVE.value)


@admin_bp.route('/businesses/reject', methods=['POST'])
@require_admin
@ratelimit_api
def reject_business():
    """JSON body: business_id, reason (required)"""
    return _transition(ApprovalAction.REJECT.value)


@admin_bp.route('/businesses/suspend', methods=['POST'])
@require_admin
@ratelimit_api
def suspend_business():
    """JSON body: business_id, reason (required)"""
    return _transition(ApprovalAction.SUSPEND.value)


@admin_bp.route('/businesses/reactivate', methods=['POST'])
@require_admin
@ratelimit_api
def reactivate_business():
    """JSON body: business_id"""
    return _transition(ApprovalAction.REACTIVATE.value)


@admin_bp.route('/businesses/<int:business_id>/history', methods=['GET'])
@require_admin
def business_history(business_id):
    logs = approvals.history(business_id)
    return jsonify({'history': [log.to_dict() for log in logs], 'count': len(logs)})


@admin_bp.route('/analytics', methods=['GET'])
@require_admin
def platform_analytics():
    return jsonify(approvals.platform_analytics())


# ==============================================================================
# CURATED LISTS
# ==============================================================================

@admin_bp.route('/curated-lists', methods=['GET'])
@require_admin
def list_curated_lists():
    lists = curated_lists.list_all()
    return jsonify({'curated_lists': [cl.to_dict(include_items=True) for cl in lists]})


@admin_bp.route('/curated-lists', methods=['POST'])
@require_admin
def create_curated_list():
    """JSON body: title (required), description, category, is_active"""
    data = request.json or {}
    curated = curated_lists.create_list(g.user, data)
    return jsonify({'curated_list': curated.to_dict()}), 201


@admin_bp.route('/curated-lists/<int:list_id>', methods=['PUT'])
@require_admin
def update_curated_list(list_id):
    data = request.json or {}
    curated = curated_lists.update_list(list_id, data)
    return jsonify({'curated_list': curated.to_dict()})


@admin_bp.route('/curated-lists/<int:list_id>', methods=['DELETE'])
@require_admin
def delete_curated_list(list_id):
    curated_lists.delete_list(list_id)
    return jsonify({'success': True})


@admin_bp.route('/curated-lists/<int:list_id>/toggle', methods=['POST'])
@require_admin
def toggle_curated_list(list_id):
    curated = curated_lists.toggle(list_id)
    return jsonify({'curated_list': curated.to_dict()})


@admin_bp.route('/curated-lists/<int:list_id>/items', methods=['POST'])
@require_admin
def add_curated_list_item(list_id):
    """JSON body: business_id (approved, active business)"""
    data = request.json or {}
    item = curated_lists.add_business(g.user, list_id, data.get('business_id'))
    return jsonify({'item': item.to_dict()}), 201


@admin_bp.route('/curated-lists/<int:list_id>/items/<int:business_id>', methods=['DELETE'])
@require_admin
def remove_curated_list_item(list_id, business_id):
    curated_lists.remove_business(list_id, business_id)
    return jsonify({'success': True})


@admin_bp.route('/curated-lists/<int:list_id>/items/<int:business_id>/move', methods=['POST'])
@require_admin
def move_curated_list_item(list_id, business_id):
    """JSON body: direction (up | down)"""
    data = request.json or {}
    items = curated_lists.move_business(list_id, business_id, data.get('direction'))
    return jsonify({'items': [item.to_dict() for item in items]})
