"""
Display formatting for money, timestamps and counters.

All output follows the en-US conventions of the back-office UI. The locale and
timezone are explicit keyword arguments so callers (and tests) can pin them
instead of relying on process-wide settings.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from babel import dates as babel_dates
from babel import numbers as babel_numbers

from .clock import SYSTEM_CLOCK, Clock

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en_US"
PLACEHOLDER = "—"
FREE_LABEL = "Free"

DATE_PATTERN = "MMM d, y"
DATETIME_PATTERN = "MMM d, y, h:mm a"
TIME_PATTERN = "h:mm a"
MONTH_DAY_PATTERN = "MMM d"

TimestampLike = Union[str, datetime, date, None]


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def parse_timestamp(value: TimestampLike, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware ``datetime``.

    Returns ``None`` for missing or unparseable input. Values without an
    offset are interpreted in ``tz`` (or the machine's local timezone).
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        if tz is not None:
            return parsed.replace(tzinfo=tz)
        try:
            return parsed.astimezone()
        except (OverflowError, OSError):
            return None
    return parsed


def to_local(value: TimestampLike, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse ``value`` and convert it to ``tz`` (local timezone by default)."""

    parsed = parse_timestamp(value, tz)
    if parsed is None:
        return None
    try:
        return parsed.astimezone(tz)
    except (OverflowError, OSError):
        return None


def _wall_clock(value: datetime) -> datetime:
    # Babel treats naive datetimes as already-local, which keeps the wall time intact.
    return value.replace(tzinfo=None)


def format_date(iso: TimestampLike, tz: Optional[tzinfo] = None, locale: str = DEFAULT_LOCALE) -> str:
    """``"Feb 7, 2026"``; the placeholder for missing or invalid input."""

    local = to_local(iso, tz)
    if local is None:
        return PLACEHOLDER
    return babel_dates.format_date(local.date(), DATE_PATTERN, locale=locale)


def format_date_time(iso: TimestampLike, tz: Optional[tzinfo] = None, locale: str = DEFAULT_LOCALE) -> str:
    """``"Feb 7, 2026, 8:30 PM"``."""

    local = to_local(iso, tz)
    if local is None:
        return PLACEHOLDER
    return babel_dates.format_datetime(_wall_clock(local), DATETIME_PATTERN, locale=locale)


def format_time(iso: TimestampLike, tz: Optional[tzinfo] = None, locale: str = DEFAULT_LOCALE) -> str:
    """``"8:30 PM"``."""

    local = to_local(iso, tz)
    if local is None:
        return PLACEHOLDER
    return babel_dates.format_time(_wall_clock(local), TIME_PATTERN, locale=locale)


def format_month_day(day: date, locale: str = DEFAULT_LOCALE) -> str:
    return babel_dates.format_date(day, MONTH_DAY_PATTERN, locale=locale)


def format_calendar_date(day: date, locale: str = DEFAULT_LOCALE) -> str:
    return babel_dates.format_date(day, DATE_PATTERN, locale=locale)


def format_relative_time(
    iso: TimestampLike,
    clock: Clock = SYSTEM_CLOCK,
    locale: str = DEFAULT_LOCALE,
) -> str:
    """
    Coarse relative label such as ``"5m ago"``, ``"in 3h"`` or ``"2d ago"``.

    Anything under a minute is ``"just now"``; thirty days or more falls back
    to the absolute date. Neither of those gets a prefix or suffix.
    """

    now = clock.now()
    parsed = parse_timestamp(iso, now.tzinfo)
    if parsed is None:
        return PLACEHOLDER

    diff_seconds = (now - parsed).total_seconds()
    future = diff_seconds < 0
    elapsed = abs(diff_seconds)
    minutes = int(elapsed // 60)
    hours = int(elapsed // 3600)
    days = int(elapsed // 86400)

    if minutes < 1:
        return "just now"
    if days >= 30:
        return format_date(parsed, now.tzinfo, locale=locale)
    if minutes < 60:
        label = f"{minutes}m"
    elif hours < 24:
        label = f"{hours}h"
    else:
        label = f"{days}d"
    return f"in {label}" if future else f"{label} ago"


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


def _cents_to_amount(cents: Union[int, float, None]) -> Decimal:
    try:
        return Decimal(str(cents if cents is not None else 0)) / Decimal(100)
    except InvalidOperation:
        return Decimal(0)


def format_money(cents: int, currency: Optional[str], locale: str = DEFAULT_LOCALE) -> str:
    """
    Format a minor-unit amount as a currency string (``1500, "usd"`` -> ``"$15.00"``).

    Codes unknown to CLDR fall back to ``"15.00 XYZ"``.
    """

    amount = _cents_to_amount(cents)
    code = (currency or "").strip()
    if babel_numbers.is_currency(code.upper()):
        return babel_numbers.format_currency(amount, code.upper(), locale=locale)
    logger.debug("Unknown currency code %r, using plain amount", currency)
    return f"{amount:.2f} {code}"


def format_price(
    cents: Optional[int],
    currency: Optional[str],
    is_free: bool = False,
    locale: str = DEFAULT_LOCALE,
) -> str:
    if is_free or cents is None or cents == 0:
        return FREE_LABEL
    return format_money(cents, currency, locale=locale)


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def _round_to_compact_step(n: Union[int, float]) -> Union[int, float, Decimal]:
    # Babel picks the K/M/B pattern before rounding, so 999999 would become "1000K".
    value = Decimal(str(n))
    if not value.is_finite() or abs(value) < 1000:
        return n
    scale = Decimal(10) ** (value.adjusted() // 3 * 3)
    return (value / scale).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP) * scale


def format_compact_number(n: Union[int, float], locale: str = DEFAULT_LOCALE) -> str:
    """``1200`` -> ``"1.2K"``, ``999999`` -> ``"1M"``."""

    return babel_numbers.format_compact_decimal(
        _round_to_compact_step(n), format_type="short", fraction_digits=1, locale=locale
    )


def format_percent(ratio: float) -> str:
    """``0.876`` -> ``"87.6%"``."""

    return f"{ratio * 100:.1f}%"
