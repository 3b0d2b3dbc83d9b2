"""
QR payload and referral code generation.

Formats:
    customer:    GIYA-<12 upper hex>
    redemption:  GIYA-REDEEM-<epoch ms>-<9 base36>
    deal:        GIYA-DEAL-<epoch ms>-<9 base36>
    affiliate:   8 chars from A-Z0-9
"""
import time
import uuid
import secrets
import string

BASE36_ALPHABET = string.digits + string.ascii_lowercase
AFFILIATE_ALPHABET = string.ascii_uppercase + string.digits
AFFILIATE_CODE_LENGTH = 8


def _random_base36(length: int = 9) -> str:
    return ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def customer_qr_code() -> str:
    return f'GIYA-{uuid.uuid4().hex[:12].upper()}'


def redemption_code() -> str:
    return f'GIYA-REDEEM-{_epoch_ms()}-{_random_base36()}'


def deal_qr_code() -> str:
    return f'GIYA-DEAL-{_epoch_ms()}-{_random_base36()}'


def affiliate_code(length: int = AFFILIATE_CODE_LENGTH) -> str:
    return ''.join(secrets.choice(AFFILIATE_ALPHABET) for _ in range(length))
