"""
Row -> view model mappers.

Each ``map_*`` function accepts either a raw joined row (a mapping, as handed
over by the query layer) or the typed record from ``rows`` and returns a
display-ready view model. Missing relations fall back to the defaults below
instead of raising.
"""

from __future__ import annotations

from datetime import tzinfo
from typing import Any, Iterable, List, Mapping, Optional, Union

from .formatting import DEFAULT_LOCALE, PLACEHOLDER, format_date, format_money, format_price
from .models import Attendee, Event, Order, Review, Song, Transaction, Venue
from .rows import (
    AttendeeQueryRow,
    EventQueryRow,
    OrderQueryRow,
    PaymentQueryRow,
    ReviewQueryRow,
    SongQueryRow,
    VenueQueryRow,
    coerce_row,
)
from .status import (
    CheckinResult,
    normalize_event_status,
    normalize_finance_status,
    normalize_order_status,
    normalize_payment_status,
)

RawRow = Mapping[str, Any]

PLACEHOLDER_IMAGE = "/placeholder-event.png"
UNKNOWN_EVENT = "Unknown Event"
GUEST_NAME = "Guest"
ANONYMOUS_NAME = "Anonymous"
UNKNOWN_LOCATION = "TBA"
RESERVATION_PROVIDER = "stripe"


def _join_name(*parts: Any) -> str:
    return " ".join(part.strip() for part in parts if isinstance(part, str) and part.strip())


def map_event(
    row: Union[EventQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Event:
    record = coerce_row(EventQueryRow, row)
    venue_name = ""
    city = ""
    if record.venue is not None:
        venue_name = record.venue.name or ""
        city = record.venue.city or ""
    location = ", ".join(part for part in (venue_name, city) if part)

    return Event(
        id=record.id,
        title=record.title,
        image=record.hero_image_url or PLACEHOLDER_IMAGE,
        date=format_date(record.starts_at, tz, locale=locale),
        starts_at=record.starts_at,
        ends_at=record.ends_at,
        location=location or UNKNOWN_LOCATION,
        venue=venue_name or None,
        attendee_count=record.attendee_count,
        status=normalize_event_status(record.status),
        currency=record.currency.strip(),
        min_price=format_price(record.min_price_cents, record.currency, record.is_free, locale=locale),
        min_price_cents=record.min_price_cents,
        is_free=record.is_free,
        description=record.description,
        category=record.category,
        organizer_id=record.organizer_id,
        organizer_name=record.organizer_name,
        tags=tuple(label for label in record.tag_labels if label),
    )


def map_events(
    rows: Iterable[Union[EventQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Event]:
    return [map_event(row, locale=locale, tz=tz) for row in rows]


def _offer_type(record: OrderQueryRow) -> str:
    if len(record.items) == 1:
        return record.items[0].name
    if len(record.items) > 1:
        return f"{len(record.items)} types"
    return PLACEHOLDER


def map_order(
    row: Union[OrderQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Order:
    record = coerce_row(OrderQueryRow, row)
    currency = record.currency.strip()
    return Order(
        id=record.id,
        event_id=record.event_id,
        event_name=record.event_title or UNKNOWN_EVENT,
        customer_name=_join_name(record.billing_first_name, record.billing_last_name) or GUEST_NAME,
        customer_email=record.billing_email or None,
        offer_type=_offer_type(record),
        amount=record.total_amount_cents,
        amount_formatted=format_money(record.total_amount_cents, currency, locale=locale),
        currency=currency,
        status=normalize_order_status(record.status),
        date=format_date(record.ordered_at, tz, locale=locale),
        ordered_at=record.ordered_at,
        item_count=sum(item.quantity for item in record.items),
    )


def map_orders(
    rows: Iterable[Union[OrderQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Order]:
    return [map_order(row, locale=locale, tz=tz) for row in rows]


def map_transaction(
    row: Union[PaymentQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Transaction:
    """
    Map a payment row to a transaction.

    The platform fee is the parent reservation's ``service_fees_cents``
    snapshot (0 without a reservation); net is gross minus fee, unclamped.
    """

    record = coerce_row(PaymentQueryRow, row)
    reservation = record.reservation
    gross = record.amount_cents
    fee = 0
    if reservation is not None and reservation.service_fees_cents is not None:
        fee = reservation.service_fees_cents
    net = gross - fee
    currency = record.currency.strip()

    return Transaction(
        id=record.id,
        reservation_id=record.reservation_id or None,
        event_id=(reservation.event_id if reservation is not None else None) or "",
        event_name=(reservation.event_title if reservation is not None else None) or UNKNOWN_EVENT,
        gross_amount=gross,
        platform_fee=fee,
        net_amount=net,
        gross_formatted=format_money(gross, currency, locale=locale),
        fee_formatted=format_money(fee, currency, locale=locale),
        net_formatted=format_money(net, currency, locale=locale),
        currency=currency,
        date=format_date(record.created_at, tz, locale=locale),
        created_at=record.created_at,
        ordered_at=reservation.ordered_at if reservation is not None else None,
        status=normalize_payment_status(record.status),
        provider=record.provider,
    )


def map_transactions(
    rows: Iterable[Union[PaymentQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Transaction]:
    return [map_transaction(row, locale=locale, tz=tz) for row in rows]


def map_reservation_transaction(
    row: Union[OrderQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Transaction:
    """View a reservation as a transaction: gross is the order total, fee its service fees."""

    record = coerce_row(OrderQueryRow, row)
    currency = record.currency.strip()
    gross = record.total_amount_cents
    fee = record.service_fees_cents
    net = gross - fee

    return Transaction(
        id=record.id,
        reservation_id=record.id,
        event_id=record.event_id,
        event_name=record.event_title or UNKNOWN_EVENT,
        gross_amount=gross,
        platform_fee=fee,
        net_amount=net,
        gross_formatted=format_money(gross, currency, locale=locale),
        fee_formatted=format_money(fee, currency, locale=locale),
        net_formatted=format_money(net, currency, locale=locale),
        currency=currency,
        date=format_date(record.ordered_at, tz, locale=locale),
        created_at=record.ordered_at,
        ordered_at=record.ordered_at,
        status=normalize_finance_status(record.status),
        provider=RESERVATION_PROVIDER,
    )


def map_reservation_transactions(
    rows: Iterable[Union[OrderQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Transaction]:
    return [map_reservation_transaction(row, locale=locale, tz=tz) for row in rows]


def map_attendee(
    row: Union[AttendeeQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Attendee:
    record = coerce_row(AttendeeQueryRow, row)
    ticket = record.ticket
    accepted = []
    if ticket is not None:
        accepted = [
            checkin
            for checkin in ticket.checkins
            if checkin.result == CheckinResult.ACCEPTED.value
        ]
    accepted.sort(key=lambda checkin: checkin.scanned_at, reverse=True)
    last_checkin = accepted[0] if accepted else None

    return Attendee(
        id=record.id,
        ticket_id=record.ticket_id,
        name=_join_name(record.first_name, record.last_name),
        email=record.email or "",
        event_id=(ticket.event_id if ticket is not None else None) or "",
        event_name=(ticket.event_title if ticket is not None else None) or UNKNOWN_EVENT,
        checked_in=last_checkin is not None,
        check_in_time=last_checkin.scanned_at if last_checkin is not None else None,
        ticket_type=ticket.ticket_type_name if ticket is not None else None,
    )


def map_attendees(
    rows: Iterable[Union[AttendeeQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Attendee]:
    return [map_attendee(row, locale=locale, tz=tz) for row in rows]


def map_review(
    row: Union[ReviewQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Review:
    record = coerce_row(ReviewQueryRow, row)
    profile = record.profile
    return Review(
        id=record.id,
        event_id=record.event_id,
        event_name=record.event_title,
        user_name=(profile.display_name if profile is not None else None) or ANONYMOUS_NAME,
        user_avatar=profile.avatar_url if profile is not None else None,
        rating=record.rating,
        comment=record.comment or "",
        date=format_date(record.created_at, tz, locale=locale),
        created_at=record.created_at,
        helpful=0,
    )


def map_reviews(
    rows: Iterable[Union[ReviewQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Review]:
    return [map_review(row, locale=locale, tz=tz) for row in rows]


def map_song(
    row: Union[SongQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Song:
    record = coerce_row(SongQueryRow, row)
    return Song(
        id=record.id,
        event_id=record.event_id,
        title=record.track_title,
        artist=record.artist_name,
        album=record.album_title,
        artwork_url=record.artwork_url,
        deezer_link=record.deezer_link,
        event_name=record.event_title,
        likes=0,
    )


def map_songs(
    rows: Iterable[Union[SongQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Song]:
    return [map_song(row, locale=locale, tz=tz) for row in rows]


def map_venue(
    row: Union[VenueQueryRow, RawRow],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> Venue:
    record = coerce_row(VenueQueryRow, row)
    # A single coordinate cannot be placed on a map.
    has_coordinates = record.lat is not None and record.lng is not None
    return Venue(
        id=record.id,
        name=record.name,
        address=record.address_line1,
        city=record.city,
        region=record.region,
        country_code=record.country_code,
        lat=record.lat if has_coordinates else None,
        lng=record.lng if has_coordinates else None,
        venue_type=record.venue_type,
        created_at=record.created_at,
    )


def map_venues(
    rows: Iterable[Union[VenueQueryRow, RawRow]],
    locale: str = DEFAULT_LOCALE,
    tz: Optional[tzinfo] = None,
) -> List[Venue]:
    return [map_venue(row, locale=locale, tz=tz) for row in rows]
