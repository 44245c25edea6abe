"""Bonus points normalization.

Seat entry stores the bonus as free text. Values such as ``"1,5"`` or
several fragments glued together (``"00.500.900.202.00"``) show up in real
data, and one bad seat must not break a whole rating. ``normalize_points``
is therefore total: it always returns a finite ``Decimal``.

Ladder:

1. ``None`` -> 0
2. ``str()`` the value and turn every comma into a dot
3. first ``-?\\d*\\.?\\d+`` token, if it parses to a decimal below the
   per seat bound
4. otherwise keep only digits, dots and minus signs, drop every dot after
   the first one and parse what is left
5. otherwise 0
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

ZERO = Decimal('0')
# Per seat bound, far inside rating_result.points NUMERIC(10, 2)
SEAT_POINTS_LIMIT = Decimal('1e6')

_TOKEN = re.compile(r'-?\d*\.?\d+', re.ASCII)
_NOT_NUMERIC = re.compile(r'[^0-9.\-]')


def _to_decimal(text: str) -> Optional[Decimal]:
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or abs(value) >= SEAT_POINTS_LIMIT:
        return None
    return value


def _collapse_dots(text: str) -> str:
    head, dot, tail = text.partition('.')
    return head + dot + tail.replace('.', '')


def parse_points(raw) -> Tuple[Decimal, bool]:
    """Return ``(value, degraded)``.

    ``degraded`` is True when the input was not a clean decimal and had to be
    salvaged or zeroed.
    """
    if raw is None:
        return ZERO, False
    text = str(raw).strip().replace(',', '.')
    if not text:
        return ZERO, False

    match = _TOKEN.search(text)
    if match:
        value = _to_decimal(match.group(0))
        if value is not None:
            return value, match.group(0) != text

    cleaned = _collapse_dots(_NOT_NUMERIC.sub('', text))
    value = _to_decimal(cleaned) if cleaned else None
    if value is not None:
        return value, True
    return ZERO, True


def normalize_points(raw) -> Decimal:
    return parse_points(raw)[0]
