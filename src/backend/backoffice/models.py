from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .status import EventStatus, OrderStatus, PaymentStatus


@dataclass(frozen=True)
class Event:
    """
    Display-ready event.

    ``min_price`` is already formatted ("Free" for free events) while
    ``min_price_cents`` keeps the raw amount for sorting.
    """

    id: str
    title: str
    image: str
    date: str
    location: str
    attendee_count: int
    status: EventStatus
    currency: str
    min_price: str
    is_free: bool
    tags: Tuple[str, ...] = ()
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    venue: Optional[str] = None
    min_price_cents: Optional[int] = None
    description: Optional[str] = None
    category: Optional[str] = None
    organizer_id: Optional[str] = None
    organizer_name: Optional[str] = None


@dataclass(frozen=True)
class Order:
    id: str
    event_id: str
    event_name: str
    customer_name: str
    offer_type: str
    amount: int
    amount_formatted: str
    currency: str
    status: OrderStatus
    date: str
    item_count: int = 0
    customer_email: Optional[str] = None
    ordered_at: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    """
    A payment (or a reservation viewed as one) split into gross, fee and net.

    ``net_amount`` is ``gross_amount - platform_fee`` and may be negative when
    the fee snapshot exceeds the charged amount.
    """

    id: str
    event_id: str
    event_name: str
    gross_amount: int
    platform_fee: int
    net_amount: int
    gross_formatted: str
    fee_formatted: str
    net_formatted: str
    currency: str
    date: str
    status: PaymentStatus
    provider: str
    reservation_id: Optional[str] = None
    created_at: Optional[str] = None
    ordered_at: Optional[str] = None


@dataclass(frozen=True)
class Attendee:
    id: str
    ticket_id: str
    name: str
    email: str
    event_id: str
    event_name: str
    checked_in: bool
    check_in_time: Optional[str] = None
    ticket_type: Optional[str] = None


@dataclass(frozen=True)
class Review:
    id: str
    event_id: str
    user_name: str
    rating: Union[int, float]
    comment: str
    date: str
    helpful: int = 0
    event_name: Optional[str] = None
    user_avatar: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class Song:
    id: str
    event_id: str
    title: str
    artist: str
    likes: int = 0
    album: Optional[str] = None
    artwork_url: Optional[str] = None
    deezer_link: Optional[str] = None
    event_name: Optional[str] = None


@dataclass(frozen=True)
class Venue:
    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    venue_type: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.lat is None or self.lng is None:
            return None
        return self.lat, self.lng


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyRevenuePoint:
    label: str
    date: str
    date_key: str
    value: int
    reservation_count: int
    is_today: bool


@dataclass(frozen=True)
class MonthlyTaxRow:
    month: str
    transactions: int
    gross: int
    fees: int
    net: int
    gross_revenue: str
    platform_fees: str
    net_revenue: str


@dataclass(frozen=True)
class FinanceStats:
    transaction_count: int
    total_gross: int
    total_fees: int
    total_net: int


@dataclass(frozen=True)
class ReviewStats:
    count: int
    average: float
    distribution: Dict[int, int] = field(default_factory=lambda: {rating: 0 for rating in range(1, 6)})


@dataclass(frozen=True)
class CheckinSummary:
    event_id: str
    event_name: str
    total_tickets: int
    checked_in: int
    attendee_count: int


@dataclass(frozen=True)
class OverviewStats:
    total_events: int
    total_attendees: int
    total_tickets: int
    avg_rating: float
    total_revenue_cents: int
    total_revenue_formatted: str


@dataclass(frozen=True)
class Overview:
    stats: OverviewStats
    recent_events: Sequence[Event] = ()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_payload(obj: Any) -> Any:
    """
    Convert view models into a JSON-serialisable structure with camelCase keys.

    The FastAPI layer ships these payloads to the UI without exposing the
    dataclasses themselves.
    """

    if is_dataclass(obj) and not isinstance(obj, type):
        return {_camel(item.name): to_payload(getattr(obj, item.name)) for item in fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(key): to_payload(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_payload(item) for item in obj]
    return obj
