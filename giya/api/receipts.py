"""
Receipts API endpoints.

Handles:
- Receipt upload (customer)
- Receipt processing: text parsing, merchant check, points award
- Receipt history (customer or business)
"""
from flask import Blueprint, request, jsonify, g

from ..middleware import require_auth, require_role, ratelimit_api
from ..models import UserRole
from ..services.receipt_service import ReceiptService
from ..utils.errors import forbidden
from ..utils.exceptions import ValidationError
from ..utils.validation import parse_positive_int

receipts_bp = Blueprint('receipts', __name__)

service = ReceiptService()


@receipts_bp.route('', methods=['POST'])
@require_role(UserRole.CUSTOMER)
@ratelimit_api
def upload_receipt():
    """
    JSON body:
        business_id: business the receipt is from (required)
        image_url: stored receipt image
        raw_text: recognised receipt text
        ref: affiliate referral code
    """
    data = request.json or {}
    receipt = service.create_receipt(g.customer, data)
    return jsonify({'receipt': receipt.to_dict()}), 201


@receipts_bp.route('', methods=['GET'])
@require_auth
def list_receipts():
    if g.role == UserRole.CUSTOMER.value and g.user.customer:
        receipts = service.list_receipts(customer_id=g.user.customer.id)
    elif g.role == UserRole.BUSINESS.value and g.user.business:
        receipts = service.list_receipts(business_id=g.user.business.id)
    else:
        return forbidden('Only customers and businesses have receipts')
    return jsonify({'receipts': [r.to_dict() for r in receipts], 'count': len(receipts)})


@receipts_bp.route('/process', methods=['POST'])
@require_role(UserRole.CUSTOMER)
@ratelimit_api
def process_receipt():
    """
    JSON body:
        receiptId: receipt to process (required)
        raw_text: recognised text, overrides the stored text
    """
    data = request.json or {}
    receipt_id = data.get('receiptId') or data.get('receipt_id')
    if not receipt_id:
        raise ValidationError('receiptId is required', field='receiptId')

    result = service.process(g.customer, parse_positive_int(receipt_id, 'receiptId'), data.get('raw_text'))
    points = result['points_earned']
    return jsonify({
        'success': True,
        'message': f'Receipt processed successfully! You earned {points} points.',
        'receipt': result['receipt'].to_dict(),
        'receiptId': result['receipt'].id,
        'ocrData': result['ocr_data'],
        'points_earned': points,
        'total_points': result['total_points'],
    })
