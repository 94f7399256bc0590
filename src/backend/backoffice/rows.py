"""
Typed views over the raw rows returned by the query layer.

Every row arrives as a mapping shaped like a relational join: plain columns
plus nested relation objects (``venues``, ``organizers``, ``events`` ...) that
may be ``None`` or missing altogether. ``from_mapping`` coerces each column
once and never raises, so mappers only deal with explicit ``Optional`` fields.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Tuple, Type, TypeVar, Union

RowT = TypeVar("RowT")


def _mapping(value: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(value, Mapping):
        return value
    return None


def _mappings(value: Any) -> Tuple[Mapping[str, Any], ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return ()
    return tuple(item for item in value if isinstance(item, Mapping))


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _str(value: Any, default: str = "") -> str:
    text = _opt_str(value)
    return default if text is None else text


def _opt_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _int(value: Any, default: int = 0) -> int:
    number = _opt_int(value)
    return default if number is None else number


def _opt_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    # Non-finite values count as missing.
    return number if math.isfinite(number) else None


def _rating(value: Any) -> Union[int, float]:
    number = _opt_number(value)
    if number is None:
        return 0
    return int(number) if number.is_integer() else number


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes"}
    return bool(value)


def coerce_row(row_type: Type[RowT], row: Union[RowT, Mapping[str, Any]]) -> RowT:
    """Accept either an already-typed record or a raw mapping."""

    if isinstance(row, row_type):
        return row
    return row_type.from_mapping(_mapping(row) or {})  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VenueRef:
    name: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True)
class EventQueryRow:
    """An ``events`` row joined with ``venues``, ``organizers`` and ``event_tags(tags)``."""

    id: str
    title: str
    status: Optional[str]
    currency: str
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    hero_image_url: Optional[str] = None
    min_price_cents: Optional[int] = None
    is_free: bool = False
    attendee_count: int = 0
    organizer_id: Optional[str] = None
    venue: Optional[VenueRef] = None
    organizer_name: Optional[str] = None
    tag_labels: Tuple[Optional[str], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EventQueryRow":
        venue = _mapping(data.get("venues"))
        organizer = _mapping(data.get("organizers"))
        tag_labels = []
        for link in _mappings(data.get("event_tags")):
            tag = _mapping(link.get("tags"))
            tag_labels.append(_opt_str(tag.get("label")) if tag is not None else None)
        return cls(
            id=_str(data.get("id")),
            title=_str(data.get("title")),
            status=_opt_str(data.get("status")),
            currency=_str(data.get("currency")),
            starts_at=_opt_str(data.get("starts_at")),
            ends_at=_opt_str(data.get("ends_at")),
            description=_opt_str(data.get("description")),
            category=_opt_str(data.get("category")),
            hero_image_url=_opt_str(data.get("hero_image_url")),
            min_price_cents=_opt_int(data.get("min_price_cents")),
            is_free=_bool(data.get("is_free")),
            attendee_count=max(0, _int(data.get("attendee_count"))),
            organizer_id=_opt_str(data.get("organizer_id")),
            venue=(
                VenueRef(name=_opt_str(venue.get("name")), city=_opt_str(venue.get("city")))
                if venue is not None
                else None
            ),
            organizer_name=_opt_str(organizer.get("name")) if organizer is not None else None,
            tag_labels=tuple(tag_labels),
        )


# ---------------------------------------------------------------------------
# Orders / reservations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemRef:
    name: str
    quantity: int


@dataclass(frozen=True)
class OrderQueryRow:
    """A ``reservations`` row joined with ``events(title)`` and ``reservation_items``."""

    id: str
    event_id: str
    status: Optional[str]
    currency: str
    total_amount_cents: int = 0
    service_fees_cents: int = 0
    ordered_at: Optional[str] = None
    billing_first_name: Optional[str] = None
    billing_last_name: Optional[str] = None
    billing_email: Optional[str] = None
    event_title: Optional[str] = None
    items: Tuple[OrderItemRef, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OrderQueryRow":
        event = _mapping(data.get("events"))
        return cls(
            id=_str(data.get("id")),
            event_id=_str(data.get("event_id")),
            status=_opt_str(data.get("status")),
            currency=_str(data.get("currency")),
            total_amount_cents=_int(data.get("total_amount_cents")),
            service_fees_cents=_int(data.get("service_fees_cents")),
            ordered_at=_opt_str(data.get("ordered_at")),
            billing_first_name=_opt_str(data.get("billing_first_name")),
            billing_last_name=_opt_str(data.get("billing_last_name")),
            billing_email=_opt_str(data.get("billing_email")),
            event_title=_opt_str(event.get("title")) if event is not None else None,
            items=tuple(
                OrderItemRef(
                    name=_str(item.get("ticket_type_name_snapshot")),
                    quantity=_int(item.get("quantity")),
                )
                for item in _mappings(data.get("reservation_items"))
            ),
        )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReservationRef:
    event_id: Optional[str] = None
    service_fees_cents: Optional[int] = None
    ordered_at: Optional[str] = None
    event_title: Optional[str] = None


@dataclass(frozen=True)
class PaymentQueryRow:
    """A ``payments`` row joined with ``reservations(event_id, service_fees_cents, events(title))``."""

    id: str
    reservation_id: str
    status: Optional[str]
    currency: str
    amount_cents: int = 0
    provider: str = ""
    created_at: Optional[str] = None
    reservation: Optional[ReservationRef] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PaymentQueryRow":
        reservation = _mapping(data.get("reservations"))
        ref = None
        if reservation is not None:
            event = _mapping(reservation.get("events"))
            ref = ReservationRef(
                event_id=_opt_str(reservation.get("event_id")),
                service_fees_cents=_opt_int(reservation.get("service_fees_cents")),
                ordered_at=_opt_str(reservation.get("ordered_at")),
                event_title=_opt_str(event.get("title")) if event is not None else None,
            )
        return cls(
            id=_str(data.get("id")),
            reservation_id=_str(data.get("reservation_id")),
            status=_opt_str(data.get("status")),
            currency=_str(data.get("currency")),
            amount_cents=_int(data.get("amount_cents")),
            provider=_str(data.get("provider")),
            created_at=_opt_str(data.get("created_at")),
            reservation=ref,
        )


# ---------------------------------------------------------------------------
# Attendees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CheckinRef:
    scanned_at: str
    result: Optional[str]


@dataclass(frozen=True)
class TicketRef:
    event_id: Optional[str] = None
    ticket_type_name: Optional[str] = None
    status: Optional[str] = None
    event_title: Optional[str] = None
    checkins: Tuple[CheckinRef, ...] = ()


def _checkins(value: Any) -> Tuple[CheckinRef, ...]:
    return tuple(
        CheckinRef(scanned_at=_str(item.get("scanned_at")), result=_opt_str(item.get("result")))
        for item in _mappings(value)
    )


@dataclass(frozen=True)
class AttendeeQueryRow:
    """A ``ticket_attendees`` row joined with ``tickets(events, ticket_checkins)``."""

    id: str
    ticket_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    ticket: Optional[TicketRef] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AttendeeQueryRow":
        ticket = _mapping(data.get("tickets"))
        ref = None
        if ticket is not None:
            event = _mapping(ticket.get("events"))
            ref = TicketRef(
                event_id=_opt_str(ticket.get("event_id")),
                ticket_type_name=_opt_str(ticket.get("ticket_type_name_snapshot")),
                status=_opt_str(ticket.get("status")),
                event_title=_opt_str(event.get("title")) if event is not None else None,
                checkins=_checkins(ticket.get("ticket_checkins")),
            )
        return cls(
            id=_str(data.get("id")),
            ticket_id=_str(data.get("ticket_id")),
            first_name=_opt_str(data.get("first_name")),
            last_name=_opt_str(data.get("last_name")),
            email=_opt_str(data.get("email")),
            ticket=ref,
        )


@dataclass(frozen=True)
class EventTicketsRow:
    """An ``events`` row with its ``tickets(id, ticket_checkins)`` for check-in summaries."""

    id: str
    title: str
    attendee_count: int = 0
    ticket_checkins: Tuple[Tuple[CheckinRef, ...], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EventTicketsRow":
        return cls(
            id=_str(data.get("id")),
            title=_str(data.get("title")),
            attendee_count=max(0, _int(data.get("attendee_count"))),
            ticket_checkins=tuple(
                _checkins(ticket.get("ticket_checkins")) for ticket in _mappings(data.get("tickets"))
            ),
        )


# ---------------------------------------------------------------------------
# Reviews, songs, venues
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProfileRef:
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class ReviewQueryRow:
    """An ``event_reviews`` row joined with ``profiles`` and ``events(title)``."""

    id: str
    event_id: str
    rating: Union[int, float] = 0
    comment: Optional[str] = None
    created_at: Optional[str] = None
    profile: Optional[ProfileRef] = None
    event_title: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ReviewQueryRow":
        profile = _mapping(data.get("profiles"))
        event = _mapping(data.get("events"))
        return cls(
            id=_str(data.get("id")),
            event_id=_str(data.get("event_id")),
            rating=_rating(data.get("rating")),
            comment=_opt_str(data.get("comment")),
            created_at=_opt_str(data.get("created_at")),
            profile=(
                ProfileRef(
                    display_name=_opt_str(profile.get("display_name")),
                    avatar_url=_opt_str(profile.get("avatar_url")),
                )
                if profile is not None
                else None
            ),
            event_title=_opt_str(event.get("title")) if event is not None else None,
        )


@dataclass(frozen=True)
class SongQueryRow:
    """An ``event_song_suggestions`` row joined with ``events(title)``."""

    id: str
    event_id: str
    track_title: str
    artist_name: str
    album_title: Optional[str] = None
    artwork_url: Optional[str] = None
    deezer_link: Optional[str] = None
    event_title: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SongQueryRow":
        event = _mapping(data.get("events"))
        return cls(
            id=_str(data.get("id")),
            event_id=_str(data.get("event_id")),
            track_title=_str(data.get("track_title")),
            artist_name=_str(data.get("artist_name")),
            album_title=_opt_str(data.get("album_title")),
            artwork_url=_opt_str(data.get("artwork_url")),
            deezer_link=_opt_str(data.get("deezer_link")),
            event_title=_opt_str(event.get("title")) if event is not None else None,
        )


@dataclass(frozen=True)
class VenueQueryRow:
    id: str
    name: str
    address_line1: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    venue_type: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VenueQueryRow":
        return cls(
            id=_str(data.get("id")),
            name=_str(data.get("name")),
            address_line1=_opt_str(data.get("address_line1")),
            city=_opt_str(data.get("city")),
            region=_opt_str(data.get("region")),
            country_code=_opt_str(data.get("country_code")),
            lat=_opt_number(data.get("lat")),
            lng=_opt_number(data.get("lng")),
            venue_type=_opt_str(data.get("venue_type")),
            created_at=_opt_str(data.get("created_at")),
        )
