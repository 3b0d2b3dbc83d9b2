"""
Input validation and sanitisation helpers.

All validators raise ValidationError, which the app error handler renders
as a 400 in the standard envelope.
"""
import re
from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from .exceptions import ValidationError

PHONE_PATTERN = re.compile(r'^(09|\+639)\d{9}$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
AFFILIATE_CODE_PATTERN = re.compile(r'^[A-Z0-9]{6,12}$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')
CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

ALLOWED_IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp')
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024


def clean_text(value: Optional[str], max_length: int = None) -> Optional[str]:
    """
    Trim user text and strip control characters.

    Text is stored as typed ("A&W" stays "A&W"); clients escape it when rendering.
    """
    if value is None:
        return None
    cleaned = CONTROL_CHARS.sub('', str(value)).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


def require_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    """Raise for the first field that is missing, None or blank."""
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f'{field} is required', field=field)


def validate_length(value: str, field: str, min_length: int = 0, max_length: int = None) -> str:
    value = (value or '').strip()
    if len(value) < min_length:
        raise ValidationError(
            f'{field} must be at least {min_length} characters', field=field
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f'{field} must be at most {max_length} characters', field=field
        )
    return value


def validate_email(email: str) -> str:
    email = (email or '').strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('Invalid email address', field='email')
    return email


def validate_phone_number(phone: str) -> str:
    """Philippine mobile numbers: 09XXXXXXXXX or +639XXXXXXXXX."""
    phone = (phone or '').replace(' ', '').replace('-', '')
    if not PHONE_PATTERN.match(phone):
        raise ValidationError(
            'Invalid phone number. Use 09XXXXXXXXX or +639XXXXXXXXX', field='phone_number'
        )
    return phone


def validate_image_url(url: str, field: str = 'image_url') -> Optional[str]:
    """Accept http(s) URLs that point at a jpeg, png or webp image."""
    if not url:
        return None
    lowered = url.lower().split('?', 1)[0]
    if not lowered.startswith(('http://', 'https://')):
        raise ValidationError('Invalid image URL', field=field)
    if not lowered.endswith(ALLOWED_IMAGE_EXTENSIONS):
        raise ValidationError(
            'Invalid image type. Only JPEG, PNG, and WebP are allowed', field=field
        )
    return url


def validate_affiliate_code(code: str) -> str:
    code = (code or '').strip().upper()
    if not AFFILIATE_CODE_PATTERN.match(code):
        raise ValidationError(
            'Invalid referral code format. Must be 6-12 uppercase alphanumeric characters.',
            field='ref'
        )
    return code


def validate_time_of_day(value: Optional[str], field: str) -> Optional[str]:
    if value in (None, ''):
        return None
    if not TIME_PATTERN.match(value):
        raise ValidationError(f'{field} must be in HH:MM format', field=field)
    return value


def parse_int(value: Any, field: str, minimum: int = None, maximum: int = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer', field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', field=field)
    if isinstance(value, float) and value != number:
        raise ValidationError(f'{field} must be an integer', field=field)
    if minimum is not None and number < minimum:
        raise ValidationError(f'{field} must be at least {minimum}', field=field)
    if maximum is not None and number > maximum:
        raise ValidationError(f'{field} must be at most {maximum}', field=field)
    return number


def parse_positive_int(value: Any, field: str) -> int:
    number = parse_int(value, field)
    if number <= 0:
        raise ValidationError(f'{field} must be positive', field=field)
    return number


def parse_decimal(value: Any, field: str, minimum: Decimal = None, maximum: Decimal = None,
                  exclusive_minimum: bool = False) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', field=field)
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'{field} must be a number', field=field)
    if not number.is_finite():
        raise ValidationError(f'{field} must be a number', field=field)
    if minimum is not None:
        if exclusive_minimum and number <= minimum:
            raise ValidationError(f'{field} must be greater than {minimum}', field=field)
        if not exclusive_minimum and number < minimum:
            raise ValidationError(f'{field} must be at least {minimum}', field=field)
    if maximum is not None and number > maximum:
        raise ValidationError(f'{field} must be at most {maximum}', field=field)
    return number


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into a naive UTC datetime."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{field} must be an ISO-8601 datetime', field=field)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value: Any, field: str) -> Optional[date]:
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date (YYYY-MM-DD)', field=field)


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    raise ValidationError(f'{field} must be a boolean', field=field)
