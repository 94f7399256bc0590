"""
Integration tests for the SQL repository against in-memory SQLite
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from backend.backoffice.config import BackofficeConfig, DatabaseConfig
from backend.backoffice.errors import ErrorCode, QueryError
from backend.backoffice.mappers import map_attendees, map_events, map_orders, map_reviews, map_transactions
from backend.backoffice.repository import QueryFilters, SQLBackofficeRepository, build_repository_from_env
from backend.backoffice.service import compute_checkin_summary

SCHEMA = [
    """CREATE TABLE venues (
        id TEXT PRIMARY KEY, name TEXT, address_line1 TEXT, city TEXT, region TEXT,
        country_code TEXT, lat REAL, lng REAL, venue_type TEXT, created_at TEXT,
        created_by_user_id TEXT)""",
    "CREATE TABLE organizers (id TEXT PRIMARY KEY, name TEXT)",
    """CREATE TABLE events (
        id TEXT PRIMARY KEY, title TEXT, description TEXT, category TEXT, organizer_id TEXT,
        venue_id TEXT, hero_image_url TEXT, starts_at TEXT, ends_at TEXT, status TEXT,
        currency TEXT, min_price_cents INTEGER, is_free INTEGER, attendee_count INTEGER,
        created_by_user_id TEXT)""",
    "CREATE TABLE tags (id TEXT PRIMARY KEY, label TEXT)",
    "CREATE TABLE event_tags (event_id TEXT, tag_id TEXT)",
    """CREATE TABLE reservations (
        id TEXT PRIMARY KEY, event_id TEXT, status TEXT, currency TEXT,
        total_amount_cents INTEGER, service_fees_cents INTEGER, ordered_at TEXT,
        billing_first_name TEXT, billing_last_name TEXT, billing_email TEXT)""",
    """CREATE TABLE reservation_items (
        id TEXT PRIMARY KEY, reservation_id TEXT, ticket_type_name_snapshot TEXT,
        quantity INTEGER, unit_price_cents INTEGER, line_total_cents INTEGER)""",
    """CREATE TABLE payments (
        id TEXT PRIMARY KEY, reservation_id TEXT, provider TEXT, status TEXT,
        amount_cents INTEGER, currency TEXT, created_at TEXT)""",
    "CREATE TABLE tickets (id TEXT PRIMARY KEY, event_id TEXT, ticket_type_name_snapshot TEXT, status TEXT)",
    """CREATE TABLE ticket_attendees (
        id TEXT PRIMARY KEY, ticket_id TEXT, first_name TEXT, last_name TEXT, email TEXT,
        created_at TEXT)""",
    "CREATE TABLE ticket_checkins (id TEXT PRIMARY KEY, ticket_id TEXT, scanned_at TEXT, result TEXT)",
    "CREATE TABLE profiles (user_id TEXT PRIMARY KEY, display_name TEXT, avatar_url TEXT)",
    """CREATE TABLE event_reviews (
        id TEXT PRIMARY KEY, event_id TEXT, clerk_user_id TEXT, rating INTEGER,
        comment TEXT, created_at TEXT)""",
    """CREATE TABLE event_song_suggestions (
        id TEXT PRIMARY KEY, event_id TEXT, track_title TEXT, artist_name TEXT,
        album_title TEXT, artwork_url TEXT, deezer_link TEXT, created_at TEXT)""",
]

SEED = [
    "INSERT INTO venues VALUES ('v1', 'Grand Hall', '1 Main St', 'Lyon', 'ARA', 'FR', 45.76, 4.83, 'hall', '2026-01-01', 'u1')",
    "INSERT INTO venues VALUES ('v2', 'Shadow', NULL, NULL, NULL, NULL, NULL, NULL, NULL, '2026-01-02', NULL)",
    "INSERT INTO organizers VALUES ('o1', 'Acme')",
    """INSERT INTO events VALUES
        ('e1', 'Spring Gala', NULL, 'music', 'o1', 'v1', NULL, '2026-03-01T19:00:00Z', NULL,
         'published', 'USD', 1500, 0, 10, 'u1'),
        ('e2', 'Open Day', NULL, NULL, NULL, NULL, NULL, '2026-02-01T10:00:00Z', NULL,
         'draft', 'EUR', NULL, 1, 0, 'u1'),
        ('e3', 'Seeded', NULL, NULL, NULL, NULL, NULL, '2026-01-01T10:00:00Z', NULL,
         'published', 'USD', NULL, 0, 0, NULL)""",
    "INSERT INTO tags VALUES ('t-music', 'music'), ('t-gala', 'gala')",
    "INSERT INTO event_tags VALUES ('e1', 't-music'), ('e1', 't-gala')",
    """INSERT INTO reservations VALUES
        ('r1', 'e1', 'confirmed', 'USD', 5000, 300, '2026-02-07T12:00:00Z', 'Ada', 'Lovelace', 'ada@example.com'),
        ('r2', 'e2', 'cancelled', 'EUR', 2000, 100, '2026-02-06T12:00:00Z', NULL, NULL, NULL)""",
    """INSERT INTO reservation_items VALUES
        ('i1', 'r1', 'VIP', 1, 2500, 2500),
        ('i2', 'r1', 'General', 2, 1250, 2500)""",
    """INSERT INTO payments VALUES
        ('p1', 'r1', 'stripe', 'succeeded', 5000, 'USD', '2026-02-07T12:05:00Z'),
        ('p2', 'r2', 'stripe', 'failed', 2000, 'EUR', '2026-02-06T12:05:00Z'),
        ('p3', 'missing', 'stripe', 'succeeded', 700, 'USD', '2026-02-05T12:05:00Z')""",
    """INSERT INTO tickets VALUES
        ('k1', 'e1', 'VIP', 'valid'),
        ('k2', 'e1', 'General', 'valid'),
        ('k3', 'e2', 'General', 'valid')""",
    """INSERT INTO ticket_attendees VALUES
        ('a1', 'k1', 'Grace', 'Hopper', 'grace@example.com', '2026-02-07T12:00:00Z'),
        ('a2', 'k3', 'Alan', 'Turing', 'alan@example.com', '2026-02-06T12:00:00Z')""",
    """INSERT INTO ticket_checkins VALUES
        ('c1', 'k1', '2026-03-01T18:00:00Z', 'rejected'),
        ('c2', 'k1', '2026-03-01T18:05:00Z', 'accepted')""",
    "INSERT INTO profiles VALUES ('user-1', 'Lin', NULL)",
    """INSERT INTO event_reviews VALUES
        ('rv1', 'e1', 'user-1', 5, 'Great', '2026-03-02T10:00:00Z'),
        ('rv2', 'e1', 'ghost', 2, NULL, '2026-03-02T11:00:00Z')""",
    """INSERT INTO event_song_suggestions VALUES
        ('s1', 'e1', 'Clair de Lune', 'Debussy', NULL, NULL, NULL, '2026-02-01T10:00:00Z')""",
]


@pytest.fixture
def repository():
    engine = create_engine('sqlite://', poolclass=StaticPool, connect_args={'check_same_thread': False})
    with engine.begin() as connection:
        for statement in SCHEMA + SEED:
            connection.exec_driver_sql(statement)
    yield SQLBackofficeRepository(engine)
    engine.dispose()


class TestEvents:
    def test_user_created_events_with_relations(self, repository):
        rows = repository.load_events()

        assert [row['id'] for row in rows] == ['e1', 'e2']
        gala = rows[0]
        assert gala['venues'] == {'name': 'Grand Hall', 'city': 'Lyon'}
        assert gala['organizers'] == {'name': 'Acme'}
        assert sorted(link['tags']['label'] for link in gala['event_tags']) == ['gala', 'music']
        assert rows[1]['venues'] is None
        assert rows[1]['event_tags'] == []

    def test_maps_cleanly(self, repository):
        events = map_events(repository.load_events())

        assert events[0].location == 'Grand Hall, Lyon'
        assert events[0].min_price == '$15.00'
        assert events[1].location == 'TBA'
        assert events[1].min_price == 'Free'

    def test_filter_by_event(self, repository):
        assert [row['id'] for row in repository.load_events(QueryFilters(event_id='e2'))] == ['e2']


class TestOrders:
    def test_orders_with_items(self, repository):
        orders = map_orders(repository.load_orders())

        assert [order.id for order in orders] == ['r1', 'r2']
        assert orders[0].offer_type == '2 types'
        assert orders[0].item_count == 3
        assert orders[1].customer_name == 'Guest'
        assert orders[1].offer_type == '—'

    def test_filters(self, repository):
        assert [row['id'] for row in repository.load_orders(QueryFilters(status='cancelled'))] == ['r2']
        assert [row['id'] for row in repository.load_orders(QueryFilters(from_date='2026-02-07'))] == ['r1']
        assert [row['id'] for row in repository.load_orders(QueryFilters(to_date='2026-02-07'))] == ['r2']


class TestPayments:
    def test_fee_comes_from_reservation(self, repository):
        transactions = {txn.id: txn for txn in map_transactions(repository.load_transactions())}

        assert transactions['p1'].platform_fee == 300
        assert transactions['p1'].event_name == 'Spring Gala'
        assert transactions['p1'].ordered_at == '2026-02-07T12:00:00Z'
        assert transactions['p3'].platform_fee == 0
        assert transactions['p3'].event_name == 'Unknown Event'

    def test_succeeded_payments(self, repository):
        assert sorted(row['id'] for row in repository.load_succeeded_payments()) == ['p1', 'p3']

    def test_event_filter(self, repository):
        assert [row['id'] for row in repository.load_transactions(QueryFilters(event_id='e2'))] == ['p2']


class TestAttendeesAndCheckins:
    def test_attendees(self, repository):
        attendees = {attendee.id: attendee for attendee in map_attendees(repository.load_attendees())}

        assert attendees['a1'].checked_in is True
        assert attendees['a1'].check_in_time == '2026-03-01T18:05:00Z'
        assert attendees['a2'].checked_in is False
        assert attendees['a2'].event_name == 'Open Day'

    def test_checkin_summary(self, repository):
        summaries = {summary.event_id: summary for summary in compute_checkin_summary(repository.load_checkin_events())}

        assert summaries['e1'].total_tickets == 2
        assert summaries['e1'].checked_in == 1
        assert summaries['e2'].total_tickets == 1
        assert summaries['e3'].total_tickets == 0

    def test_count_tickets(self, repository):
        assert repository.count_tickets() == 3
        assert repository.count_tickets(QueryFilters(event_id='e1')) == 2


class TestReviewsSongsVenues:
    def test_reviews(self, repository):
        reviews = {review.id: review for review in map_reviews(repository.load_reviews())}

        assert reviews['rv1'].user_name == 'Lin'
        assert reviews['rv2'].user_name == 'Anonymous'
        assert [row['id'] for row in repository.load_reviews(QueryFilters(min_rating=4))] == ['rv1']

    def test_songs(self, repository):
        songs = repository.load_songs(QueryFilters(event_id='e1'))
        assert songs[0]['events'] == {'title': 'Spring Gala'}

    def test_venues_skip_seeded_rows(self, repository):
        assert [row['id'] for row in repository.load_venues()] == ['v1']


class TestErrors:
    def test_database_failure_raises_query_error(self):
        engine = create_engine('sqlite://')
        repository = SQLBackofficeRepository(engine)

        with pytest.raises(QueryError) as exc_info:
            repository.load_venues()

        assert exc_info.value.code is ErrorCode.QUERY_FAILED
        assert exc_info.value.source == 'venues'
        assert str(exc_info.value) == 'QUERY_FAILED: Failed to load venues'


class TestBuildFromConfig:
    def test_without_url(self):
        assert build_repository_from_env(BackofficeConfig()) is None

    def test_with_url(self):
        repository = build_repository_from_env(BackofficeConfig(database=DatabaseConfig(url='sqlite://')))
        assert isinstance(repository, SQLBackofficeRepository)
