"""
Status vocabularies shared by events, reservations, tickets and payments.

Each source table stores its status as free text. ``normalize`` collapses the
raw value into a closed enumeration and ``status_variant`` picks the badge
colour used by the back-office tables.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Optional, Type, TypeVar


class EventStatus(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    REFUNDED = "refunded"
    DRAFT = "draft"


class PaymentStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


class CheckinResult(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class BadgeVariant(str, Enum):
    DEFAULT = "default"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"
    SECONDARY = "secondary"


StatusT = TypeVar("StatusT", EventStatus, OrderStatus, PaymentStatus, CheckinResult)

_DEFAULTS: Dict[type, Enum] = {
    EventStatus: EventStatus.DRAFT,
    OrderStatus: OrderStatus.DRAFT,
    PaymentStatus: PaymentStatus.PENDING,
    CheckinResult: CheckinResult.REJECTED,
}

# Raw spellings found in the source tables, per domain.
_ALIASES: Dict[type, Dict[str, str]] = {
    EventStatus: {"canceled": "cancelled"},
    OrderStatus: {"canceled": "cancelled"},
    PaymentStatus: {"succeeded": "completed"},
    CheckinResult: {},
}


def _clean(raw: Optional[str]) -> str:
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


def normalize(raw: Optional[str], domain: Type[StatusT]) -> StatusT:
    """
    Map a raw status string onto ``domain``.

    Comparison is case-insensitive. Unknown or missing values resolve to the
    domain default (draft for events and orders, pending for payments,
    rejected for check-ins).
    """

    value = _clean(raw)
    value = _ALIASES[domain].get(value, value)
    try:
        return domain(value)
    except ValueError:
        return _DEFAULTS[domain]  # type: ignore[return-value]


def normalize_event_status(raw: Optional[str]) -> EventStatus:
    return normalize(raw, EventStatus)


def normalize_order_status(raw: Optional[str]) -> OrderStatus:
    return normalize(raw, OrderStatus)


def normalize_payment_status(raw: Optional[str]) -> PaymentStatus:
    return normalize(raw, PaymentStatus)


def normalize_checkin_result(raw: Optional[str]) -> CheckinResult:
    return normalize(raw, CheckinResult)


_FINANCE_COMPLETED = {"confirmed", "checkedin"}
_FINANCE_FAILED = {"cancelled", "canceled", "expired", "refunded"}


def normalize_finance_status(raw: Optional[str]) -> PaymentStatus:
    """Collapse a reservation status into the payment vocabulary for finance views."""

    value = _clean(raw)
    if value in _FINANCE_COMPLETED:
        return PaymentStatus.COMPLETED
    if value in _FINANCE_FAILED:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


_VARIANTS: Dict[str, BadgeVariant] = {
    # events
    EventStatus.PUBLISHED.value: BadgeVariant.SUCCESS,
    EventStatus.DRAFT.value: BadgeVariant.SECONDARY,
    EventStatus.COMPLETED.value: BadgeVariant.DEFAULT,
    EventStatus.CANCELLED.value: BadgeVariant.ERROR,
    "canceled": BadgeVariant.ERROR,
    # reservations / tickets
    OrderStatus.CONFIRMED.value: BadgeVariant.SUCCESS,
    OrderStatus.PENDING.value: BadgeVariant.WARNING,
    OrderStatus.EXPIRED.value: BadgeVariant.ERROR,
    OrderStatus.REFUNDED.value: BadgeVariant.INFO,
    "checkedin": BadgeVariant.INFO,
    # payments
    PaymentStatus.FAILED.value: BadgeVariant.ERROR,
    "succeeded": BadgeVariant.SUCCESS,
    "requires_action": BadgeVariant.WARNING,
    # ticket check-ins
    CheckinResult.ACCEPTED.value: BadgeVariant.SUCCESS,
    CheckinResult.REJECTED.value: BadgeVariant.ERROR,
}


def status_variant(status: Optional[str]) -> BadgeVariant:
    value = _clean(status)
    if not value:
        return BadgeVariant.DEFAULT
    return _VARIANTS.get(value, BadgeVariant.DEFAULT)


def format_status(status: Optional[str]) -> str:
    """Title-case a status for display, e.g. ``requires_action`` -> ``Requires Action``."""

    if not status:
        return "Unknown"
    text = str(status).replace("_", " ")
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), text)
