from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from .config import BackofficeConfig, load_config
from .errors import QueryError

logger = logging.getLogger(__name__)

RawRow = Dict[str, Any]


@dataclass(frozen=True)
class QueryFilters:
    """
    Optional narrowing shared by the list queries.

    ``from_date`` and ``to_date`` are compared as given against the stored
    order timestamp, so a bare ``to_date`` of ``2026-02-07`` stops at the
    start of that day. Filters that do not apply to a query are ignored.
    """

    event_id: Optional[str] = None
    status: Optional[str] = None
    min_rating: Optional[int] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None


NO_FILTERS = QueryFilters()


class BackofficeRepository:
    """
    Interface for loading back-office rows.

    Implementations return rows shaped like the relational join the mappers
    expect: plain columns plus nested relation mappings (``None`` when the
    related row is missing) and lists for one-to-many relations.
    """

    def load_events(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_orders(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_reservation_transactions(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        return self.load_orders(filters)

    def load_transactions(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_succeeded_payments(self) -> Sequence[RawRow]:
        return self.load_transactions(QueryFilters(status="succeeded"))

    def load_attendees(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_reviews(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_songs(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_venues(self) -> Sequence[RawRow]:
        raise NotImplementedError

    def load_checkin_events(self) -> Sequence[RawRow]:
        raise NotImplementedError

    def count_tickets(self, filters: QueryFilters = NO_FILTERS) -> int:
        raise NotImplementedError


def _where(clauses: Iterable[str]) -> str:
    parts = list(clauses)
    return "WHERE " + " AND ".join(parts) if parts else ""


def _relation(row: RawRow, key_column: str, columns: Dict[str, str]) -> Optional[RawRow]:
    """Lift aliased LEFT JOIN columns into a nested mapping, or ``None`` when nothing joined."""

    if row.get(key_column) is None:
        return None
    return {name: row.get(alias) for name, alias in columns.items()}


def _strip(row: RawRow, prefixes: Tuple[str, ...]) -> RawRow:
    return {key: value for key, value in row.items() if not key.startswith(prefixes)}


class SQLBackofficeRepository(BackofficeRepository):
    """
    Load back-office rows from the relational schema with SQLAlchemy Core.

    Expected tables: events, venues, organizers, tags, event_tags,
    reservations, reservation_items, payments, tickets, ticket_attendees,
    ticket_checkins, event_reviews, profiles, event_song_suggestions.
    One-to-many relations are fetched with a second query and attached in
    Python to stay database-agnostic.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # -- plumbing ---------------------------------------------------------

    def _fetch(self, source: str, query: TextClause, params: Optional[Dict[str, Any]] = None) -> List[RawRow]:
        try:
            with self.engine.connect() as connection:
                rows = connection.execute(query, params or {}).mappings().all()
        except SQLAlchemyError as exc:
            logger.warning("Query for %s failed: %s", source, exc)
            raise QueryError(source, str(exc)) from exc
        return [dict(row) for row in rows]

    def _fetch_children(self, source: str, sql: str, ids: Sequence[Any]) -> List[RawRow]:
        if not ids:
            return []
        query = text(sql).bindparams(bindparam("ids", expanding=True))
        return self._fetch(source, query, {"ids": list(ids)})

    @staticmethod
    def _group(rows: Iterable[RawRow], key: str) -> Dict[Any, List[RawRow]]:
        grouped: Dict[Any, List[RawRow]] = defaultdict(list)
        for row in rows:
            parent = row.pop(key)
            grouped[parent].append(row)
        return grouped

    # -- events -----------------------------------------------------------

    def load_events(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        clauses = ["e.created_by_user_id IS NOT NULL"]
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("e.id = :event_id")
            params["event_id"] = filters.event_id
        query = text(
            f"""
            SELECT e.id, e.title, e.description, e.category, e.organizer_id, e.venue_id,
                   e.hero_image_url, e.starts_at, e.ends_at, e.status, e.currency,
                   e.min_price_cents, e.is_free, e.attendee_count,
                   v.id AS venue_ref_id, v.name AS venue_ref_name, v.city AS venue_ref_city,
                   o.id AS organizer_ref_id, o.name AS organizer_ref_name
            FROM events e
            LEFT JOIN venues v ON v.id = e.venue_id
            LEFT JOIN organizers o ON o.id = e.organizer_id
            {_where(clauses)}
            ORDER BY e.starts_at DESC
            """
        )
        rows = self._fetch("events", query, params)
        tags = self._group(
            self._fetch_children(
                "event tags",
                """
                SELECT et.event_id AS parent_id, t.label AS label
                FROM event_tags et
                LEFT JOIN tags t ON t.id = et.tag_id
                WHERE et.event_id IN :ids
                """,
                [row["id"] for row in rows],
            ),
            "parent_id",
        )
        return [self._row_to_event(row, tags.get(row["id"], [])) for row in rows]

    @staticmethod
    def _row_to_event(row: RawRow, tags: List[RawRow]) -> RawRow:
        event = _strip(row, ("venue_ref_", "organizer_ref_"))
        event["venues"] = _relation(row, "venue_ref_id", {"name": "venue_ref_name", "city": "venue_ref_city"})
        event["organizers"] = _relation(row, "organizer_ref_id", {"name": "organizer_ref_name"})
        event["event_tags"] = [
            {"tags": {"label": tag["label"]} if tag["label"] is not None else None} for tag in tags
        ]
        return event

    # -- reservations -----------------------------------------------------

    def load_orders(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("r.event_id = :event_id")
            params["event_id"] = filters.event_id
        if filters.status:
            clauses.append("r.status = :status")
            params["status"] = filters.status
        if filters.from_date:
            clauses.append("r.ordered_at >= :from_date")
            params["from_date"] = filters.from_date
        if filters.to_date:
            clauses.append("r.ordered_at <= :to_date")
            params["to_date"] = filters.to_date
        query = text(
            f"""
            SELECT r.id, r.event_id, r.status, r.currency, r.total_amount_cents,
                   r.service_fees_cents, r.ordered_at, r.billing_first_name,
                   r.billing_last_name, r.billing_email,
                   ev.id AS event_ref_id, ev.title AS event_ref_title
            FROM reservations r
            LEFT JOIN events ev ON ev.id = r.event_id
            {_where(clauses)}
            ORDER BY r.ordered_at DESC
            """
        )
        rows = self._fetch("reservations", query, params)
        items = self._group(
            self._fetch_children(
                "reservation items",
                """
                SELECT reservation_id AS parent_id, ticket_type_name_snapshot, quantity,
                       unit_price_cents, line_total_cents
                FROM reservation_items
                WHERE reservation_id IN :ids
                """,
                [row["id"] for row in rows],
            ),
            "parent_id",
        )
        orders = []
        for row in rows:
            order = _strip(row, ("event_ref_",))
            order["events"] = _relation(row, "event_ref_id", {"title": "event_ref_title"})
            order["reservation_items"] = items.get(row["id"], [])
            orders.append(order)
        return orders

    # -- payments ---------------------------------------------------------

    def load_transactions(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("r.event_id = :event_id")
            params["event_id"] = filters.event_id
        if filters.status:
            clauses.append("p.status = :status")
            params["status"] = filters.status
        query = text(
            f"""
            SELECT p.id, p.reservation_id, p.provider, p.status, p.amount_cents,
                   p.currency, p.created_at,
                   r.id AS reservation_ref_id, r.event_id AS reservation_ref_event_id,
                   r.service_fees_cents AS reservation_ref_service_fees_cents,
                   r.ordered_at AS reservation_ref_ordered_at,
                   ev.id AS event_ref_id, ev.title AS event_ref_title
            FROM payments p
            LEFT JOIN reservations r ON r.id = p.reservation_id
            LEFT JOIN events ev ON ev.id = r.event_id
            {_where(clauses)}
            ORDER BY p.created_at DESC
            """
        )
        return [self._row_to_payment(row) for row in self._fetch("payments", query, params)]

    @staticmethod
    def _row_to_payment(row: RawRow) -> RawRow:
        payment = _strip(row, ("reservation_ref_", "event_ref_"))
        reservation = _relation(
            row,
            "reservation_ref_id",
            {
                "event_id": "reservation_ref_event_id",
                "service_fees_cents": "reservation_ref_service_fees_cents",
                "ordered_at": "reservation_ref_ordered_at",
            },
        )
        if reservation is not None:
            reservation["events"] = _relation(row, "event_ref_id", {"title": "event_ref_title"})
        payment["reservations"] = reservation
        return payment

    # -- attendees & check-ins --------------------------------------------

    def _checkins_by_ticket(self, ticket_ids: Sequence[Any]) -> Dict[Any, List[RawRow]]:
        return self._group(
            self._fetch_children(
                "ticket check-ins",
                """
                SELECT ticket_id AS parent_id, scanned_at, result
                FROM ticket_checkins
                WHERE ticket_id IN :ids
                """,
                ticket_ids,
            ),
            "parent_id",
        )

    def load_attendees(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("t.event_id = :event_id")
            params["event_id"] = filters.event_id
        query = text(
            f"""
            SELECT a.id, a.ticket_id, a.first_name, a.last_name, a.email,
                   t.id AS ticket_ref_id, t.event_id AS ticket_ref_event_id,
                   t.ticket_type_name_snapshot AS ticket_ref_ticket_type_name_snapshot,
                   t.status AS ticket_ref_status,
                   ev.id AS event_ref_id, ev.title AS event_ref_title
            FROM ticket_attendees a
            LEFT JOIN tickets t ON t.id = a.ticket_id
            LEFT JOIN events ev ON ev.id = t.event_id
            {_where(clauses)}
            ORDER BY a.created_at DESC
            """
        )
        rows = self._fetch("ticket attendees", query, params)
        checkins = self._checkins_by_ticket([row["ticket_ref_id"] for row in rows if row["ticket_ref_id"] is not None])
        attendees = []
        for row in rows:
            attendee = _strip(row, ("ticket_ref_", "event_ref_"))
            ticket = _relation(
                row,
                "ticket_ref_id",
                {
                    "event_id": "ticket_ref_event_id",
                    "ticket_type_name_snapshot": "ticket_ref_ticket_type_name_snapshot",
                    "status": "ticket_ref_status",
                },
            )
            if ticket is not None:
                ticket["events"] = _relation(row, "event_ref_id", {"title": "event_ref_title"})
                ticket["ticket_checkins"] = checkins.get(row["ticket_ref_id"], [])
            attendee["tickets"] = ticket
            attendees.append(attendee)
        return attendees

    def load_checkin_events(self) -> Sequence[RawRow]:
        events = self._fetch(
            "events",
            text(
                """
                SELECT id, title, attendee_count
                FROM events
                ORDER BY starts_at DESC
                """
            ),
        )
        tickets = self._fetch_children(
            "tickets",
            """
            SELECT id, event_id AS parent_id
            FROM tickets
            WHERE event_id IN :ids
            """,
            [event["id"] for event in events],
        )
        checkins = self._checkins_by_ticket([ticket["id"] for ticket in tickets])
        for ticket in tickets:
            ticket["ticket_checkins"] = checkins.get(ticket["id"], [])
        tickets_by_event = self._group(tickets, "parent_id")
        return [{**event, "tickets": tickets_by_event.get(event["id"], [])} for event in events]

    def count_tickets(self, filters: QueryFilters = NO_FILTERS) -> int:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("event_id = :event_id")
            params["event_id"] = filters.event_id
        rows = self._fetch("tickets", text(f"SELECT COUNT(*) AS total FROM tickets {_where(clauses)}"), params)
        return int(rows[0]["total"] or 0) if rows else 0

    # -- reviews, songs, venues -------------------------------------------

    def load_reviews(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("er.event_id = :event_id")
            params["event_id"] = filters.event_id
        if filters.min_rating:
            clauses.append("er.rating >= :min_rating")
            params["min_rating"] = filters.min_rating
        query = text(
            f"""
            SELECT er.id, er.event_id, er.rating, er.comment, er.created_at,
                   p.user_id AS profile_ref_id, p.display_name AS profile_ref_display_name,
                   p.avatar_url AS profile_ref_avatar_url,
                   ev.id AS event_ref_id, ev.title AS event_ref_title
            FROM event_reviews er
            LEFT JOIN profiles p ON p.user_id = er.clerk_user_id
            LEFT JOIN events ev ON ev.id = er.event_id
            {_where(clauses)}
            ORDER BY er.created_at DESC
            """
        )
        reviews = []
        for row in self._fetch("event reviews", query, params):
            review = _strip(row, ("profile_ref_", "event_ref_"))
            review["profiles"] = _relation(
                row,
                "profile_ref_id",
                {"display_name": "profile_ref_display_name", "avatar_url": "profile_ref_avatar_url"},
            )
            review["events"] = _relation(row, "event_ref_id", {"title": "event_ref_title"})
            reviews.append(review)
        return reviews

    def load_songs(self, filters: QueryFilters = NO_FILTERS) -> Sequence[RawRow]:
        clauses: List[str] = []
        params: Dict[str, Any] = {}
        if filters.event_id:
            clauses.append("s.event_id = :event_id")
            params["event_id"] = filters.event_id
        query = text(
            f"""
            SELECT s.id, s.event_id, s.track_title, s.artist_name, s.album_title,
                   s.artwork_url, s.deezer_link,
                   ev.id AS event_ref_id, ev.title AS event_ref_title
            FROM event_song_suggestions s
            LEFT JOIN events ev ON ev.id = s.event_id
            {_where(clauses)}
            ORDER BY s.created_at DESC
            """
        )
        songs = []
        for row in self._fetch("song suggestions", query, params):
            song = _strip(row, ("event_ref_",))
            song["events"] = _relation(row, "event_ref_id", {"title": "event_ref_title"})
            songs.append(song)
        return songs

    def load_venues(self) -> Sequence[RawRow]:
        query = text(
            """
            SELECT id, name, address_line1, city, region, country_code, lat, lng,
                   venue_type, created_at
            FROM venues
            WHERE created_by_user_id IS NOT NULL
            ORDER BY created_at DESC
            """
        )
        return self._fetch("venues", query)


def build_repository_from_env(config: Optional[BackofficeConfig] = None) -> Optional[BackofficeRepository]:
    cfg = config or load_config()
    if cfg.database.url:
        engine = create_engine(cfg.database.url)
        return SQLBackofficeRepository(engine)
    return None
