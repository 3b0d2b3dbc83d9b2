"""
Receipt text parsing.

Turns recognised receipt text into merchant, total, currency and line items,
and checks the detected merchant against the business the customer claims
the receipt came from.

Philippine receipts are the primary target: PHP is the default currency and
payment-terminal slips (GlobalPayments, GCash, ...) often print the gateway
name above the real merchant.
"""
import re
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MERCHANT_SCAN_LINES = 12
NAME_SIMILARITY_THRESHOLD = 0.7
MIN_PARTIAL_MATCH_LENGTH = 4

PAYMENT_GATEWAYS = (
    'globalpayments', 'global payments', 'stripe', 'paypal', 'square',
    'paymaya', 'gcash', 'grabpay', 'visa', 'mastercard', 'amex',
)

DATE_LINE = (
    re.compile(r'^\d{4}[-/]\d{2}[-/]\d{2}'),
    re.compile(r'^\w{3}\s*\d{1,2},?\s*\d{4}'),
    re.compile(r'^\d{2}[-/]\d{2}[-/]\d{4}'),
)
SERIAL_LINE = re.compile(r'^[\d\s-]{8,}$')
HEADER_LINE = re.compile(r'^(MERCHANT ID|TERMINAL ID|SN|BATCH|TRACE|REF|TXN|TRANSACTION|A\d{3,}|DATE/TIME)', re.I)
HAS_LETTERS = re.compile(r'[a-zA-Z]{2,}')
BUSINESS_KEYWORDS = re.compile(
    r'(petron|shell|caltex|station|gas|fuel|7-eleven|jollibee|mcdonalds|kfc|store|shop|mart|'
    r'market|restaurant|cafe|coffee|corp|inc|ltd|llc|co\.)', re.I
)
LOCATION_TERMS = re.compile(r'(naga|manila|cebu|davao|city|branch|outlet|diversion|road|street|avenue)', re.I)
LONG_WORD = re.compile(r'\b[a-zA-Z]{4,}\b')
CAPS_WITH_HYPHEN = re.compile(r'^[A-Z][A-Z\s-]+$')
ALL_LOWER = re.compile(r'^[a-z][a-z\s-]+$')
SPECIAL_CHARS = re.compile(r'[,./\-#:]')
POSITION_BONUS = {0: 5, 1: 8, 2: 10, 3: 8}

AMOUNT = r'([\d,]+\.\d{2})'
TOTAL_PATTERNS = (
    re.compile(r'\bTOTAL[:\s]*PHP\s*' + AMOUNT + r'\b', re.I),
    re.compile(r'\bGRAND\s*TOTAL[:\s]*PHP\s*' + AMOUNT, re.I),
    re.compile(r'\bTOTAL\s*AMOUNT[:\s]*PHP\s*' + AMOUNT, re.I),
    re.compile(r'\bNET\s*TOTAL[:\s]*PHP\s*' + AMOUNT, re.I),
    re.compile(r'\bTOTAL[:\s]*[₱$]\s*' + AMOUNT, re.I),
    re.compile(r'\bTOTAL[:\s]*' + AMOUNT + r'$', re.I),
    re.compile(r'\bTOTAL[:\s]+' + AMOUNT, re.I),
    re.compile(r'\bAMOUNT[:\s]*PHP\s*' + AMOUNT, re.I),
    re.compile(r'\bAMOUNT\s*DUE[:\s]*PHP\s*' + AMOUNT, re.I),
    re.compile(r'PHP\s*' + AMOUNT + r'\s*TOTAL', re.I),
    re.compile(r'[₱]\s*' + AMOUNT + r'\s*TOTAL', re.I),
    re.compile(r'\bGRAND\s*TOTAL[:\s]*' + AMOUNT, re.I),
    re.compile(r'\bBALANCE[:\s]*' + AMOUNT, re.I),
)
SUBTOTAL_LINE = re.compile(r'SUBTOTAL|SUB-TOTAL|SUB TOTAL', re.I)
STANDALONE_TOTAL = re.compile(r'(?<!SUB)(?<!SUB-)(?<!SUB )\bTOTAL\b', re.I)
PHP_AMOUNT = re.compile(r'PHP\s*' + AMOUNT, re.I)
ANY_AMOUNT = re.compile(r'[₱$]?\s*(\d+[,.]?\d*\.\d{2})')
ITEM_LINE = re.compile(r'([a-zA-Z][a-zA-Z\s]{2,40})\s+(?:[₱$]|PHP)?\s*(\d+[,.]?\d*\.\d{2})', re.I)
NON_ITEM_LINE = re.compile(r'TOTAL|AMOUNT|SUBTOTAL|TAX|VAT|CHANGE|TENDER|CASH|CARD|PAYMENT', re.I)
RECEIPT_DATE = re.compile(r'(\d{4}[-/]\d{2}[-/]\d{2}|\d{2}[-/]\d{2}[-/]\d{4})')


def _to_decimal(raw: str) -> Optional[Decimal]:
    try:
        value = Decimal(raw.replace(',', ''))
    except InvalidOperation:
        return None
    return value if value > 0 else None


def score_merchant_line(line: str, index: int) -> Optional[int]:
    """Score one line as a merchant-name candidate, or None to skip it."""
    if len(line) < 3:
        return None
    if any(p.match(line) for p in DATE_LINE):
        return None
    if SERIAL_LINE.match(line) or HEADER_LINE.match(line):
        return None
    digits = sum(ch.isdigit() for ch in line)
    if digits > len(line) * 0.7:
        return None
    if not HAS_LETTERS.search(line):
        return None

    score = 0
    lowered = line.lower()
    if any(gateway in lowered for gateway in PAYMENT_GATEWAYS):
        score = -10

    if BUSINESS_KEYWORDS.search(line):
        score += 20
    if LOCATION_TERMS.search(line):
        score += 15
    if LONG_WORD.search(line):
        score += 10
    if re.search(r'[a-z]', line) and re.search(r'[A-Z]', line):
        score += 8
    if CAPS_WITH_HYPHEN.match(line) and '-' in line:
        score += 12
    if ALL_LOWER.match(line):
        score += 12
    score += POSITION_BONUS.get(index, 0)
    if 5 <= len(line) <= 40:
        score += 8
    if len(line) > 50:
        score -= 8
    if len(SPECIAL_CHARS.findall(line)) > 3:
        score -= 5
    letters = sum(ch.isascii() and ch.isalpha() for ch in line)
    if 0.5 < letters / len(line) < 0.9:
        score += 5
    return score


def detect_merchant(lines: List[str]) -> str:
    candidates = []
    for index, line in enumerate(lines[:MERCHANT_SCAN_LINES]):
        score = score_merchant_line(line, index)
        if score is not None:
            candidates.append((score, index, line))
    if not candidates:
        return ''
    # Highest score first; ties go to the earlier line
    candidates.sort(key=lambda c: (-c[0], c[1]))
    best = next((c for c in candidates if c[0] > 0), candidates[0])
    logger.debug('Merchant candidates: %s', candidates[:5])
    return best[2]


def _currency_for_line(line: str) -> str:
    lowered = line.lower()
    if 'PHP' in line or '₱' in line or 'peso' in lowered:
        return 'PHP'
    if '$' in line or 'usd' in lowered:
        return 'USD'
    return 'PHP'


def detect_total(lines: List[str]) -> tuple:
    """Return (total, currency). total is Decimal('0') when nothing is found."""
    for line in lines:
        if SUBTOTAL_LINE.search(line) and not STANDALONE_TOTAL.search(line):
            continue
        for pattern in TOTAL_PATTERNS:
            match = pattern.search(line)
            if match:
                amount = _to_decimal(match.group(1))
                if amount:
                    return amount, _currency_for_line(line)

    php_amounts = [a for a in (_to_decimal(m.group(1)) for line in lines for m in PHP_AMOUNT.finditer(line)) if a]
    if php_amounts:
        return max(php_amounts), 'PHP'

    any_amounts = [a for a in (_to_decimal(m.group(1)) for line in lines for m in ANY_AMOUNT.finditer(line)) if a]
    if any_amounts:
        return max(any_amounts), 'PHP'

    return Decimal('0'), 'PHP'


def detect_items(lines: List[str], total: Decimal) -> List[Dict[str, Any]]:
    items = []
    for line in lines:
        if NON_ITEM_LINE.search(line):
            continue
        match = ITEM_LINE.search(line)
        if not match:
            continue
        name = match.group(1).strip()
        price = _to_decimal(match.group(2))
        if len(name) >= 3 and price and price < total:
            items.append({'name': name, 'price': float(price)})
    return items


def parse_receipt_text(text: str) -> Dict[str, Any]:
    """
    Parse recognised receipt text.

    Returns:
        {merchant, total, currency, date, items, confidence}
        total is a Decimal (0 when not found); confidence is 0.0-1.0.
    """
    lines = [line.strip() for line in (text or '').splitlines() if line.strip()]
    merchant = detect_merchant(lines)
    total, currency = detect_total(lines)
    items = detect_items(lines, total)

    date_match = next((m for m in (RECEIPT_DATE.search(line) for line in lines) if m), None)

    confidence = 0.0
    if merchant:
        confidence += 0.4
    if total > 0:
        confidence += 0.5
    if items:
        confidence += 0.1

    return {
        'merchant': merchant,
        'total': total,
        'currency': currency,
        'date': date_match.group(1) if date_match else None,
        'items': items,
        'confidence': round(confidence, 2),
    }


# ==================== Merchant name validation ====================

def normalize_name(name: str) -> str:
    return re.sub(r'[^a-z0-9]', '', (name or '').lower())


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(a, b)) / longer


def names_match(expected: str, detected: str) -> bool:
    """
    Does the merchant printed on the receipt match the business?

    Exact, containment (detected must be >= 4 chars when it is the shorter
    side) or >= 70% Levenshtein similarity on normalised names.
    """
    if not detected or not detected.strip():
        return False
    expected_n = normalize_name(expected)
    detected_n = normalize_name(detected)
    if not detected_n:
        return False
    if expected_n == detected_n:
        return True
    if expected_n and expected_n in detected_n:
        return True
    if detected_n in expected_n and len(detected_n) >= MIN_PARTIAL_MATCH_LENGTH:
        return True
    return name_similarity(expected_n, detected_n) >= NAME_SIMILARITY_THRESHOLD
