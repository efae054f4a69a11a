import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser

from .errors import ValidationError

CENT = Decimal('0.01')
# Numeric(12, 2) upper bound
MAX_AMOUNT = Decimal('10000000000')
_WHITESPACE = re.compile(r'\s+')


def get_pagination(page, per_page=10):
    """Helper function to get pagination parameters."""
    return {
        'page': max(1, int(page) if str(page).isdigit() else 1),
        'per_page': min(50, max(1, int(per_page) if str(per_page).isdigit() else 10))
    }


def normalize_name(value):
    """Casefold, trim and collapse internal whitespace."""
    if not value:
        return ''
    return _WHITESPACE.sub(' ', str(value)).strip().casefold()


def to_money(value):
    """Coerce a stored balance (Decimal, int, float or None) to a 2-place Decimal."""
    if value is None:
        return Decimal('0.00')
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def parse_amount(value, field='amount'):
    """Parse a currency amount: positive, at most two fractional digits."""
    if value is None or isinstance(value, bool) or str(value).strip() == '':
        raise ValidationError(f"{field} is required", field=field)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal number", field=field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum allowed", field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} may have at most 2 decimal places", field=field)
    return amount.quantize(CENT)


def parse_balance(value, field='statement_balance'):
    """Like parse_amount, but zero and negative values are allowed."""
    if value is None or isinstance(value, bool) or str(value).strip() == '':
        raise ValidationError(f"{field} is required", field=field)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal number", field=field)
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum allowed", field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} may have at most 2 decimal places", field=field)
    return amount.quantize(CENT)


def parse_date(value, field='date', default=None):
    """Parse an ISO-ish date string; date/datetime objects pass through."""
    if value is None or value == '':
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, OverflowError):
        raise ValidationError(f"{field} is not a valid date", field=field)


def last_four(number):
    """Keep only the last four digits of an account or routing number."""
    if not number:
        return None
    digits = re.sub(r'\D', '', str(number))
    return digits[-4:] if digits else None
