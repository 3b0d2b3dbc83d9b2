"""
Tests for receipt upload and processing.

Covers:
- POST /api/receipts upload validation
- POST /api/receipts/process: points award, merchant mismatch, invalid amount
- Single payout per receipt and retry after failure
"""
import pytest

from giya.extensions import db
from giya.models import PointsTransaction, Receipt
from giya.services.ocr import OCRProvider, register_ocr_provider
from giya.services.receipt_parser import names_match
from giya.utils.validation import clean_text

RECEIPT_TEXT = """KAPE NAGA CAFE
Magsaysay Ave, Naga City
2026-10-01 10:15
Cafe Latte 150.00
Ensaymada 85.00
TOTAL PHP 1,235.00
"""

OTHER_STORE_TEXT = """PETRON STATION
TOTAL PHP 500.00
"""


@pytest.fixture
def upload(client, customer_headers, business):
    def _upload(**fields):
        body = {'business_id': business.id, **fields}
        return client.post('/api/receipts', headers=customer_headers, json=body)
    return _upload


def _process(client, headers, receipt_id, **extra):
    return client.post('/api/receipts/process', headers=headers, json={'receiptId': receipt_id, **extra})


class TestReceiptUpload:
    """Tests for POST /api/receipts."""

    def test_upload(self, upload, business):
        """Uploads start in the uploaded state."""
        response = upload(raw_text=RECEIPT_TEXT, image_url='https://cdn.example.com/r/1.jpg')
        assert response.status_code == 201
        receipt = response.get_json()['receipt']
        assert receipt['status'] == 'uploaded'
        assert receipt['business_id'] == business.id
        assert receipt['points_awarded'] is False

    def test_upload_requires_business(self, client, customer_headers):
        """business_id is required."""
        response = client.post('/api/receipts', headers=customer_headers, json={'raw_text': 'x'})
        assert response.status_code == 400

    def test_upload_for_pending_business(self, client, customer_headers, pending_business):
        """Unapproved businesses do not accept receipts."""
        response = client.post('/api/receipts', headers=customer_headers, json={
            'business_id': pending_business.id, 'raw_text': RECEIPT_TEXT,
        })
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Business is not accepting receipts'

    def test_upload_rejects_bad_image_type(self, upload):
        """Only jpeg, png and webp images are accepted."""
        response = upload(image_url='https://cdn.example.com/r/1.gif')
        assert response.status_code == 400

    def test_business_sees_its_receipts(self, client, upload, business_headers):
        """Businesses list receipts uploaded for them."""
        upload(raw_text=RECEIPT_TEXT)
        response = client.get('/api/receipts', headers=business_headers)
        assert response.status_code == 200
        assert response.get_json()['count'] == 1


class TestReceiptProcessing:
    """Tests for POST /api/receipts/process."""

    def test_process_awards_points(self, client, upload, customer, customer_headers):
        """floor(total / points_per_currency) points are awarded once."""
        receipt_id = upload(raw_text=RECEIPT_TEXT).get_json()['receipt']['id']

        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['points_earned'] == 12
        assert data['total_points'] == 12
        assert data['message'] == 'Receipt processed successfully! You earned 12 points.'
        assert data['receipt']['status'] == 'processed'
        assert data['ocrData']['merchant'] == 'KAPE NAGA CAFE'
        assert data['ocrData']['total'] == 1235.0

        transaction = PointsTransaction.query.filter_by(receipt_id=receipt_id).one()
        assert transaction.source == 'receipt'
        assert transaction.points_earned == 12

    def test_process_twice(self, client, upload, customer_headers):
        """A processed receipt cannot pay out again."""
        receipt_id = upload(raw_text=RECEIPT_TEXT).get_json()['receipt']['id']
        _process(client, customer_headers, receipt_id)

        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Receipt already processed'
        assert PointsTransaction.query.count() == 1

    def test_business_name_mismatch(self, client, upload, customer, customer_headers):
        """A receipt from another store fails with the expected and detected names."""
        receipt_id = upload(raw_text=OTHER_STORE_TEXT).get_json()['receipt']['id']

        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 400
        body = response.get_json()
        assert body['error']['code'] == 'BUSINESS_NAME_MISMATCH'
        assert body['error']['message'] == 'Business name mismatch'
        assert body['expectedBusiness'] == 'Kape Naga'
        assert body['detectedBusiness'] == 'PETRON STATION'
        assert 'Kape Naga' in body['details']

        receipt = db.session.get(Receipt, receipt_id)
        db.session.refresh(receipt)
        assert receipt.status == 'failed'
        assert receipt.points_awarded is False
        db.session.refresh(customer)
        assert customer.total_points == 0

    def test_name_with_punctuation_matches(self, client, upload, business, business_headers, customer_headers):
        """Names like "Tom's" are stored as typed and match the printed merchant."""
        client.put('/api/businesses/me', headers=business_headers, json={'business_name': "Tom's Bakeshop"})
        db.session.refresh(business)
        assert business.business_name == "Tom's Bakeshop"

        text = "TOM'S BAKESHOP\n2026-10-01 10:15\nPandesal 45.00\nTOTAL PHP 600.00\n"
        receipt_id = upload(raw_text=text).get_json()['receipt']['id']
        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 200
        assert response.get_json()['points_earned'] == 6

    @pytest.mark.parametrize('name,printed', [
        ("Tom's", "TOM'S"),
        ('A&W', 'A&W'),
        ('Kape & Co', 'KAPE & CO'),
    ])
    def test_stored_names_match_receipts(self, name, printed):
        assert names_match(clean_text(name), printed)

    def test_no_merchant_detected(self, client, upload, customer_headers):
        """Text with no recognisable merchant is a mismatch too."""
        receipt_id = upload(raw_text='12345678\nTOTAL PHP 300.00').get_json()['receipt']['id']
        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'BUSINESS_NAME_MISMATCH'

    def test_invalid_amount(self, client, upload, customer_headers):
        """A receipt without a total fails with INVALID_RECEIPT_AMOUNT."""
        receipt_id = upload(raw_text='Kape Naga\nThank you for visiting').get_json()['receipt']['id']
        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_RECEIPT_AMOUNT'

    def test_failed_receipt_can_be_retried(self, client, upload, customer_headers):
        """Corrected text on a failed receipt processes normally."""
        receipt_id = upload(raw_text=OTHER_STORE_TEXT).get_json()['receipt']['id']
        assert _process(client, customer_headers, receipt_id).status_code == 400

        response = _process(client, customer_headers, receipt_id, raw_text=RECEIPT_TEXT)
        assert response.status_code == 200
        assert response.get_json()['points_earned'] == 12

    def test_other_customer_cannot_process(self, client, upload, make_customer, auth_headers_for):
        """Receipts are private to their uploader."""
        receipt_id = upload(raw_text=RECEIPT_TEXT).get_json()['receipt']['id']
        intruder = make_customer(full_name='Someone Else')
        response = _process(client, auth_headers_for(intruder.user), receipt_id)
        assert response.status_code == 403

    def test_in_progress_receipt_conflict(self, client, upload, customer_headers):
        """A receipt already claimed by another request is a 409."""
        receipt_id = upload(raw_text=RECEIPT_TEXT).get_json()['receipt']['id']
        Receipt.query.filter_by(id=receipt_id).update({Receipt.status: 'processing'}, synchronize_session=False)
        db.session.commit()

        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'STATE_CONFLICT'

    def test_missing_receipt(self, client, customer_headers):
        """Unknown receipt ids are 404."""
        response = _process(client, customer_headers, 99999)
        assert response.status_code == 404


class TestOcrProvider:
    """Receipts without text go through the configured OCR provider."""

    def test_unconfigured_provider(self, client, upload, customer_headers):
        """With no provider the receipt fails with a 502."""
        receipt_id = upload(image_url='https://cdn.example.com/r/2.png').get_json()['receipt']['id']
        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 502
        assert response.get_json()['error']['code'] == 'EXTERNAL_SERVICE_ERROR'
        assert db.session.get(Receipt, receipt_id).status == 'failed'

    def test_registered_provider(self, app, client, upload, customer_headers):
        """A registered provider supplies the text."""
        class FixedTextProvider(OCRProvider):
            name = 'fixed-text'

            def extract_text(self, image_url):
                return RECEIPT_TEXT

        register_ocr_provider(FixedTextProvider)
        app.config['OCR_PROVIDER'] = 'fixed-text'

        receipt_id = upload(image_url='https://cdn.example.com/r/3.webp').get_json()['receipt']['id']
        response = _process(client, customer_headers, receipt_id)
        assert response.status_code == 200
        assert response.get_json()['points_earned'] == 12
