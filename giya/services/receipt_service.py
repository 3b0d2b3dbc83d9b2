"""
Receipt Service for Giya.

A customer uploads a receipt for a business, then asks for it to be
processed. Processing:
1. moves the receipt to `processing` (guarded, so two requests can't both run)
2. gets the receipt text (request body, stored raw_text, or OCR provider)
3. parses merchant and total, and checks the merchant against the business
4. awards floor(total / points_per_currency) points and notifies the customer
5. pays affiliate commission when the receipt came through a referral link

Steps 4-5 commit together. points_awarded is flipped by a guarded UPDATE and
points_transactions.receipt_id is unique, so a receipt never pays out twice.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Business,
    Customer,
    PointsSource,
    Receipt,
    ReceiptStatus,
)
from ..utils.exceptions import (
    AuthorizationError,
    ConcurrencyError,
    GiyaError,
    NotFoundError,
    ValidationError,
)
from ..utils.validation import parse_positive_int, validate_image_url
from .affiliate_service import AffiliateService
from .notification_service import NotificationService
from .ocr import get_ocr_provider
from .points_service import PointsService, calculate_points, refresh_balance
from .receipt_parser import names_match, parse_receipt_text

logger = logging.getLogger(__name__)

MAX_RAW_TEXT_LENGTH = 20000
LIST_LIMIT = 50
PROCESSABLE_STATUSES = (ReceiptStatus.UPLOADED.value, ReceiptStatus.FAILED.value)


class ReceiptService:
    """
    Usage:
        service = ReceiptService()
        receipt = service.create_receipt(customer, {'business_id': 3, 'raw_text': text})
        result = service.process(customer, receipt.id)
    """

    def __init__(self):
        self.points = PointsService()
        self.affiliates = AffiliateService()

    # ==================== Upload ====================

    def create_receipt(self, customer: Customer, data: Dict[str, Any]) -> Receipt:
        business_id = parse_positive_int(data.get('business_id'), 'business_id') \
            if data.get('business_id') is not None else None
        if business_id is None:
            raise ValidationError('business_id is required', field='business_id')

        business = db.session.get(Business, business_id)
        if not business:
            raise NotFoundError('Business')
        if not business.is_approved:
            raise ValidationError('Business is not accepting receipts')

        raw_text = data.get('raw_text')
        if raw_text is not None and not isinstance(raw_text, str):
            raise ValidationError('raw_text must be a string', field='raw_text')

        link = self.affiliates.link_for_receipt(business.id, data.get('ref'))

        receipt = Receipt(
            customer_id=customer.id,
            business_id=business.id,
            image_url=validate_image_url(data.get('image_url')),
            raw_text=raw_text[:MAX_RAW_TEXT_LENGTH] if raw_text else None,
            status=ReceiptStatus.UPLOADED.value,
            affiliate_link_id=link.id if link else None,
        )
        db.session.add(receipt)
        db.session.commit()
        logger.info(f'Customer {customer.id} uploaded receipt {receipt.id} for business {business.id}')
        return receipt

    @staticmethod
    def list_receipts(customer_id: int = None, business_id: int = None,
                      limit: int = LIST_LIMIT) -> List[Receipt]:
        query = Receipt.query
        if customer_id is not None:
            query = query.filter(Receipt.customer_id == customer_id)
        if business_id is not None:
            query = query.filter(Receipt.business_id == business_id)
        return query.order_by(Receipt.created_at.desc(), Receipt.id.desc()).limit(limit).all()

    # ==================== Processing ====================

    @staticmethod
    def _fail(receipt_id: int, reason: str) -> None:
        """Mark a claimed receipt failed so it can be retried."""
        Receipt.query.filter(
            Receipt.id == receipt_id,
            Receipt.status == ReceiptStatus.PROCESSING.value,
        ).update(
            {Receipt.status: ReceiptStatus.FAILED.value, Receipt.failure_reason: reason[:500]},
            synchronize_session=False,
        )
        db.session.commit()

    def _receipt_text(self, receipt: Receipt, raw_text: Optional[str]) -> str:
        if raw_text:
            if not isinstance(raw_text, str):
                raise ValidationError('raw_text must be a string', field='raw_text')
            return raw_text[:MAX_RAW_TEXT_LENGTH]
        if receipt.raw_text:
            return receipt.raw_text
        if receipt.image_url:
            return get_ocr_provider().extract_text(receipt.image_url)
        raise ValidationError('No receipt text available to process')

    def process(self, customer: Customer, receipt_id: int, raw_text: Optional[str] = None) -> Dict[str, Any]:
        """
        Process an uploaded receipt and award points.

        Returns:
            Dict with receipt, points_earned, total_points and ocr_data

        Raises:
            NotFoundError: receipt missing
            AuthorizationError: receipt belongs to another customer
            ValidationError: already processed, name mismatch, invalid amount
            ConcurrencyError: another request is processing the same receipt
        """
        receipt = db.session.get(Receipt, receipt_id)
        if not receipt:
            raise NotFoundError('Receipt')
        if receipt.customer_id != customer.id:
            raise AuthorizationError('You can only process your own receipts')
        if receipt.status == ReceiptStatus.PROCESSED.value:
            raise ValidationError('Receipt already processed')

        claimed = Receipt.query.filter(
            Receipt.id == receipt.id,
            Receipt.status.in_(PROCESSABLE_STATUSES),
        ).update(
            {Receipt.status: ReceiptStatus.PROCESSING.value, Receipt.failure_reason: None},
            synchronize_session=False,
        )
        db.session.commit()
        if not claimed:
            raise ConcurrencyError('Receipt is already being processed')

        try:
            return self._process_claimed(customer, receipt, raw_text)
        except GiyaError as e:
            db.session.rollback()
            self._fail(receipt.id, e.message)
            raise
        except Exception:
            db.session.rollback()
            logger.exception(f'Unexpected error processing receipt {receipt.id}')
            self._fail(receipt.id, 'Internal error while processing receipt')
            raise

    def _process_claimed(self, customer: Customer, receipt: Receipt,
                         raw_text: Optional[str]) -> Dict[str, Any]:
        db.session.refresh(receipt)
        business = receipt.business

        text = self._receipt_text(receipt, raw_text)
        parsed = parse_receipt_text(text)
        detected = parsed['merchant']

        if not names_match(business.business_name, detected):
            logger.warning(
                f'Receipt {receipt.id}: merchant "{detected}" does not match "{business.business_name}"'
            )
            raise GiyaError(
                'Business name mismatch',
                'BUSINESS_NAME_MISMATCH',
                extra={
                    'details': (
                        f'Receipt appears to be from "{detected or "an unknown merchant"}" but you scanned '
                        f'QR code for "{business.business_name}". Please upload a receipt from the correct business.'
                    ),
                    'expectedBusiness': business.business_name,
                    'detectedBusiness': detected,
                },
            )

        total: Decimal = parsed['total']
        if total <= 0:
            raise GiyaError(
                'Invalid receipt amount',
                'INVALID_RECEIPT_AMOUNT',
                extra={'details': 'Could not find a valid total amount on the receipt.'},
            )

        points = calculate_points(total, business.points_per_currency)
        ocr_data = dict(parsed, total=float(total))
        now = datetime.utcnow()

        awarded = Receipt.query.filter(
            Receipt.id == receipt.id,
            Receipt.status == ReceiptStatus.PROCESSING.value,
            Receipt.points_awarded.is_(False),
        ).update(
            {
                Receipt.status: ReceiptStatus.PROCESSED.value,
                Receipt.points_awarded: True,
                Receipt.processed_at: now,
                Receipt.ocr_data: ocr_data,
                Receipt.total_amount: total,
                Receipt.currency_code: parsed['currency'],
                Receipt.points_earned: points,
                Receipt.raw_text: text[:MAX_RAW_TEXT_LENGTH],
            },
            synchronize_session=False,
        )
        if not awarded:
            db.session.rollback()
            raise ConcurrencyError('Receipt points were already awarded')

        self.points.record_earning(
            customer, business, points, total,
            source=PointsSource.RECEIPT,
            receipt_id=receipt.id,
            description=f'Receipt from {business.business_name}',
        )
        self.affiliates.record_receipt_conversion(receipt, points)

        notifications = NotificationService()
        notifications.receipt_processed(customer, points, business.business_name, receipt.id)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConcurrencyError('Receipt points were already awarded')
        notifications.deliver_pending()

        db.session.refresh(receipt)
        logger.info(f'Receipt {receipt.id} processed: {total} {parsed["currency"]} -> {points} points')
        return {
            'receipt': receipt,
            'ocr_data': ocr_data,
            'points_earned': points,
            'total_points': refresh_balance(customer),
        }
