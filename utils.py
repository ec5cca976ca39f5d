# Helpers for Budgetbook application

import re
import uuid
from datetime import datetime, date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from dateutil import parser as date_parser

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')

# DecimalField(max_digits=10, decimal_places=2) holds values below this
MAX_AMOUNT = Decimal('100000000')

MONTH_NAMES = {
    'january': 1, 'february': 2, 'march': 3, 'april': 4, 'may': 5, 'june': 6,
    'july': 7, 'august': 8, 'september': 9, 'october': 10, 'november': 11, 'december': 12,
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'jun': 6, 'jul': 7, 'aug': 8,
    'sep': 9, 'sept': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

_NON_NUMERIC = re.compile(r'[^0-9.\-]')
_MONTH_SEPARATORS = re.compile(r'[\s\-/.,]+')


def generate_uid():
    """
    Generate unique record ID using UUID + timestamp.
    """
    uuid_part = uuid.uuid4().hex[:6]
    timestamp_part = str(int(datetime.now().timestamp()))[-4:]
    return f"{uuid_part}{timestamp_part}"


def empty_to_none(value):
    """Convert empty string or whitespace-only string to None.

    This ensures we store NULL in the database instead of empty strings,
    maintaining data integrity and query consistency.

    Args:
        value: Any value, typically a string from form input

    Returns:
        None if value is empty/whitespace/None, otherwise the value
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def validate_month(month: int) -> bool:
    """Validate month is 1-12."""
    return isinstance(month, int) and not isinstance(month, bool) and 1 <= month <= 12


def validate_year(year: int) -> bool:
    """Validate year is reasonable (1900-2100)."""
    return isinstance(year, int) and not isinstance(year, bool) and 1900 <= year <= 2100


def previous_month(year: int, month: int) -> tuple:
    """Return (year, month) of the calendar month before the given one."""
    if month == 1:
        return (year - 1, 12)
    return (year, month - 1)


def format_month_year(year: int, month: int) -> str:
    """Format as e.g. 'March 2024'."""
    return date(year, month, 1).strftime('%B %Y')


def derive_display_name(name: str) -> str:
    """Turn an internal key like 'side_hustle' into 'Side Hustle'."""
    tokens = [t for t in re.split(r'[_\-\s]+', name) if t]
    return ' '.join(t[:1].upper() + t[1:].lower() for t in tokens)


def to_cents(value) -> Decimal:
    """Quantize a Decimal (or int) to two decimal places."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


# ==================== AMOUNT NORMALIZATION ====================

def normalize_amount(raw, category_type: str) -> Decimal:
    """
    Coerce an externally supplied amount into a Decimal with cent precision.

    Accepts native numbers or strings with currency symbols and thousands
    separators. Anything that cannot be read as a number becomes 0.
    Numbers too large to store raise ValueError.

    Expense amounts are made positive. Revenue amounts keep their sign.

    Examples:
        ("$1,200.50", "expense") → Decimal("1200.50")
        ("-50", "expense") → Decimal("50.00")
        ("-50", "revenue") → Decimal("-50.00")
        ("n/a", "expense") → Decimal("0.00")
    """
    if raw is None or isinstance(raw, bool):
        return ZERO

    if isinstance(raw, Decimal):
        text = str(raw)
    elif isinstance(raw, (int, float)):
        text = str(raw)
    else:
        text = _NON_NUMERIC.sub('', str(raw))

    if not text:
        return ZERO

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return ZERO
    if not amount.is_finite():
        return ZERO
    if abs(amount) >= MAX_AMOUNT or abs(to_cents(amount)) >= MAX_AMOUNT:
        raise ValueError(f"Amount out of range: {raw}")
    if category_type == 'expense':
        amount = abs(amount)
    return to_cents(amount)


# ==================== DATE / MONTH PARSING ====================

def _strptime_date(value: str, fmt: str) -> Optional[date]:
    try:
        return datetime.strptime(value, fmt).date()
    except ValueError:
        return None


def _parse_iso_date(value: str) -> Optional[date]:
    return _strptime_date(value, '%Y-%m-%d')


def _parse_us_date(value: str) -> Optional[date]:
    return _strptime_date(value, '%m/%d/%Y')


def _parse_eu_date(value: str) -> Optional[date]:
    return _strptime_date(value, '%d/%m/%Y')


def _parse_long_date(value: str) -> Optional[date]:
    return _strptime_date(value, '%B %d, %Y')


def _parse_abbreviated_date(value: str) -> Optional[date]:
    return _strptime_date(value.replace('.', ''), '%b %d, %Y')


def _parse_iso_datetime(value: str) -> Optional[date]:
    text = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _parse_generic_date(value: str) -> Optional[date]:
    try:
        return date_parser.parse(value).date()
    except (ValueError, OverflowError):
        return None


# Order matters: first parser returning a date wins
DATE_PARSERS = (
    _parse_iso_date,
    _parse_us_date,
    _parse_eu_date,
    _parse_long_date,
    _parse_abbreviated_date,
)


def parse_flexible_date(value) -> Optional[date]:
    """
    Parse a loosely formatted date.

    Tries ISO (2024-03-15), US (03/15/2024), EU (15/03/2024),
    long (March 15, 2024) and abbreviated (Mar 15, 2024) formats in that
    order, then ISO datetimes, then generic parsing.

    Returns None when nothing matches. Callers pick their own default.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    for parse in DATE_PARSERS + (_parse_iso_datetime, _parse_generic_date):
        parsed = parse(text)
        if parsed is not None:
            return parsed
    return None


def _strptime_month(value: str, fmt: str) -> Optional[tuple]:
    try:
        parsed = datetime.strptime(value, fmt)
    except ValueError:
        return None
    return (parsed.year, parsed.month)


def _month_from_token(token: str) -> Optional[int]:
    if token.isdigit():
        number = int(token)
        return number if 1 <= number <= 12 else None
    return MONTH_NAMES.get(token.lower())


def _parse_month_tokens(value: str) -> Optional[tuple]:
    """Split on separators and pick out a 4-digit year plus a month token."""
    tokens = [t for t in _MONTH_SEPARATORS.split(value) if t]
    if len(tokens) != 2:
        return None

    for year_index in (0, 1):
        year_token = tokens[year_index]
        if len(year_token) == 4 and year_token.isdigit():
            month = _month_from_token(tokens[1 - year_index])
            if month is not None:
                return (int(year_token), month)
    return None


def _parse_month_from_date(value: str) -> Optional[tuple]:
    for parse in DATE_PARSERS:
        parsed = parse(value)
        if parsed is not None:
            return (parsed.year, parsed.month)
    return None


MONTH_PARSERS = (
    lambda v: _strptime_month(v, '%B %Y'),
    lambda v: _strptime_month(v, '%b %Y'),
    lambda v: _strptime_month(v, '%Y-%m'),
    lambda v: _strptime_month(v, '%m/%Y'),
    _parse_month_tokens,
    _parse_month_from_date,
)


def parse_month_string(value) -> Optional[tuple]:
    """
    Parse a month-year string into (year, month).

    Supports "March 2024", "Mar 2024", "2024-03", "03/2024", loose forms such
    as "2024 march" or "3.2024", and full dates.

    Returns None if the string does not name a month.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (date, datetime)):
        return (value.year, value.month)

    text = str(value).strip()
    if not text:
        return None

    for parse in MONTH_PARSERS:
        parsed = parse(text)
        if parsed is not None and validate_year(parsed[0]):
            return parsed
    return None
