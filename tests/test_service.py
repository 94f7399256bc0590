"""
Unit tests for the aggregation functions
"""

import pytest

from backend.backoffice.dataset import TransactionDataset, coerce_timezone
from backend.backoffice.mappers import map_events, map_review, map_transaction, map_transactions
from backend.backoffice.service import (
    BackofficeService,
    build_overview,
    clamp_rating,
    compute_checkin_summary,
    compute_daily_revenue,
    compute_finance_stats,
    compute_monthly_tax,
    compute_review_stats,
)

from .conftest import NEW_YORK, UTC


class TestDailyRevenue:
    def test_window_shape(self, utc_clock):
        points = compute_daily_revenue([], clock=utc_clock)

        assert len(points) == 29
        assert [point.is_today for point in points].count(True) == 1
        assert points[14].is_today
        assert points[14].label == 'Today'
        assert points[0].date_key == '2026-01-24'
        assert points[-1].date_key == '2026-02-21'
        assert points[13].label == 'Feb 6'
        assert points[14].date == 'Feb 7, 2026'
        assert all(point.value == 0 for point in points)

    def test_buckets_by_order_date(self, utc_clock, payment_row):
        transactions = map_transactions(
            [
                payment_row(id='a', amount_cents=1000, ordered_at='2026-02-07T08:00:00Z'),
                payment_row(id='b', amount_cents=2500, ordered_at='2026-02-07T23:59:00Z'),
                payment_row(id='c', amount_cents=4000, ordered_at='2026-02-05T10:00:00Z'),
                # No order date: the payment date is used instead
                payment_row(id='d', amount_cents=700, ordered_at=None, created_at='2026-02-05T11:00:00Z'),
                # Outside the window
                payment_row(id='e', amount_cents=9999, ordered_at='2025-11-01T10:00:00Z'),
                payment_row(id='f', amount_cents=123, ordered_at='garbage', created_at='also garbage'),
            ]
        )
        by_key = {point.date_key: point for point in compute_daily_revenue(transactions, clock=utc_clock)}

        assert by_key['2026-02-07'].value == 3500
        assert by_key['2026-02-07'].reservation_count == 2
        assert by_key['2026-02-05'].value == 4700
        assert sum(point.value for point in by_key.values()) == 8200

    def test_day_follows_clock_timezone(self, new_york_clock, payment_row):
        # 02:00 UTC on the 8th is 21:00 on the 7th in New York
        txn = map_transaction(payment_row(ordered_at='2026-02-08T02:00:00Z'))
        points = compute_daily_revenue([txn], clock=new_york_clock)
        today = next(point for point in points if point.is_today)

        assert today.date_key == '2026-02-07'
        assert today.value == txn.gross_amount

    def test_custom_window(self, utc_clock):
        assert len(compute_daily_revenue([], clock=utc_clock, window_days=3)) == 7


class TestMonthlyTax:
    def test_rows_sorted_by_month(self, payment_row):
        transactions = map_transactions(
            [
                payment_row(id='a', amount_cents=10000, service_fees_cents=500, created_at='2026-02-03T12:00:00Z'),
                payment_row(id='b', amount_cents=2000, service_fees_cents=100, created_at='2025-12-31T12:00:00Z'),
                payment_row(id='c', amount_cents=3000, service_fees_cents=150, created_at='2026-02-20T12:00:00Z'),
            ]
        )
        rows = compute_monthly_tax(transactions, tz=UTC)

        assert [row.month for row in rows] == ['2025-12', '2026-02']
        february = rows[1]
        assert february.transactions == 2
        assert february.gross == 13000
        assert february.fees == 650
        assert february.net == 12350
        assert february.gross_revenue == '$130.00'
        assert february.platform_fees == '$6.50'
        assert february.net_revenue == '$123.50'

    def test_keys_on_payment_date_not_order_date(self, payment_row):
        txn = map_transaction(payment_row(created_at='2026-03-01T12:00:00Z', ordered_at='2026-02-27T12:00:00Z'))
        assert [row.month for row in compute_monthly_tax([txn], tz=UTC)] == ['2026-03']

    def test_month_boundary_uses_timezone(self, payment_row):
        txn = map_transaction(payment_row(created_at='2026-03-01T03:00:00Z'))
        assert [row.month for row in compute_monthly_tax([txn], tz=NEW_YORK)] == ['2026-02']

    def test_empty(self):
        assert compute_monthly_tax([]) == []


class TestFinanceStats:
    def test_totals_balance(self, payment_row):
        transactions = map_transactions(
            [
                payment_row(id='a', amount_cents=10000, service_fees_cents=500),
                payment_row(id='b', amount_cents=100, service_fees_cents=250),
                payment_row(id='c', amount_cents=4321, with_reservation=False),
            ]
        )
        stats = compute_finance_stats(transactions)

        assert stats.transaction_count == 3
        assert stats.total_gross == 14421
        assert stats.total_fees == 750
        assert stats.total_gross - stats.total_fees == stats.total_net

    def test_completed_only(self, payment_row):
        transactions = map_transactions(
            [
                payment_row(id='a', amount_cents=10000, status='succeeded'),
                payment_row(id='b', amount_cents=5000, status='failed'),
                payment_row(id='c', amount_cents=2000, status='pending'),
            ]
        )
        stats = compute_finance_stats(transactions, completed_only=True)

        assert stats.transaction_count == 3
        assert stats.total_gross == 10000

    def test_empty(self):
        stats = compute_finance_stats([])
        assert (stats.transaction_count, stats.total_gross, stats.total_fees, stats.total_net) == (0, 0, 0, 0)


class TestReviewStats:
    def _reviews(self, ratings):
        return [map_review({'id': f'r{i}', 'event_id': 'evt-1', 'rating': rating}) for i, rating in enumerate(ratings)]

    def test_empty(self):
        stats = compute_review_stats([])

        assert stats.count == 0
        assert stats.average == 0
        assert stats.distribution == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}

    def test_out_of_range_ratings_are_clamped(self):
        stats = compute_review_stats(self._reviews([5, 5, 4, 3, 6, 0, 5]))

        assert stats.count == 7
        assert stats.distribution == {1: 1, 2: 0, 3: 1, 4: 1, 5: 4}
        assert stats.average == 4.0

    def test_average_rounds_to_one_decimal(self):
        assert compute_review_stats(self._reviews([5, 4, 4])).average == 4.3

    @pytest.mark.parametrize(
        'rating,expected',
        [
            (0, 1),
            (-3, 1),
            (1, 1),
            (2.5, 3),
            (4.4, 4),
            (7, 5),
            (float('nan'), 1),
            (float('inf'), 5),
            (float('-inf'), 1),
        ],
    )
    def test_clamp(self, rating, expected):
        assert clamp_rating(rating) == expected

    @pytest.mark.parametrize('rating', ['nan', 'inf', float('nan'), float('inf'), 10**400])
    def test_non_finite_ratings_count_as_missing(self, rating):
        reviews = self._reviews([rating, 5])

        assert reviews[0].rating == 0
        stats = compute_review_stats(reviews)
        assert stats.count == 2
        assert stats.distribution == {1: 1, 2: 0, 3: 0, 4: 0, 5: 1}
        assert stats.average == 3.0


def _checkin_events():
    accepted = {'scanned_at': '2026-02-07T19:00:00Z', 'result': 'accepted'}
    rejected = {'scanned_at': '2026-02-07T19:05:00Z', 'result': 'rejected'}
    return [
        {
            'id': 'evt-1',
            'title': 'Spring Gala',
            'attendee_count': 10,
            'tickets': [
                {'id': 't1', 'ticket_checkins': [accepted]},
                {'id': 't2', 'ticket_checkins': []},
                {'id': 't3', 'ticket_checkins': [rejected]},
            ],
        },
        {'id': 'evt-2', 'title': 'Quiet Night', 'attendee_count': 0, 'tickets': []},
    ]


class TestCheckinSummary:
    def test_counts(self):
        summaries = compute_checkin_summary(_checkin_events())

        assert [summary.event_id for summary in summaries] == ['evt-1', 'evt-2']
        gala = summaries[0]
        assert gala.total_tickets == 3
        assert gala.checked_in == 2
        assert gala.attendee_count == 10
        assert summaries[1].total_tickets == 0
        assert summaries[1].checked_in == 0


class TestOverview:
    def test_overview(self, payment_row):
        events = map_events(
            [{'id': f'evt-{i}', 'title': f'Event {i}', 'currency': 'USD', 'attendee_count': 99} for i in range(1, 9)]
        )
        reviews = [
            map_review({'id': 'r1', 'event_id': 'evt-1', 'rating': 5}),
            map_review({'id': 'r2', 'event_id': 'evt-1', 'rating': 4}),
        ]
        payments = map_transactions(
            [
                payment_row(id='a', amount_cents=10000, status='succeeded'),
                payment_row(id='b', amount_cents=5000, status='failed'),
            ]
        )
        checkins = compute_checkin_summary(_checkin_events())

        overview = build_overview(events, reviews, 57, payments, checkins)

        assert overview.stats.total_events == 8
        assert overview.stats.total_attendees == 2
        assert overview.stats.total_tickets == 57
        assert overview.stats.avg_rating == 4.5
        assert overview.stats.total_revenue_cents == 10000
        assert overview.stats.total_revenue_formatted == '$100.00'
        assert len(overview.recent_events) == 6
        assert overview.recent_events[0].attendee_count == 2
        assert overview.recent_events[1].attendee_count == 0

    def test_empty(self):
        overview = build_overview([], [], 0, [], [])

        assert overview.stats.total_revenue_formatted == '$0.00'
        assert overview.stats.avg_rating == 0
        assert overview.recent_events == ()


class TestBackofficeService:
    def test_build_finance(self, utc_clock, payment_row):
        service = BackofficeService(clock=utc_clock, tz=UTC)
        transactions = map_transactions([payment_row(amount_cents=2000, ordered_at='2026-02-07T10:00:00Z')])

        report = service.build_finance(transactions)

        assert report.stats.total_gross == 2000
        assert len(report.daily_revenue) == 29
        assert [row.month for row in report.tax_rows] == ['2026-02']

    def test_recent_limit(self):
        service = BackofficeService(recent_events_limit=2)
        events = map_events([{'id': str(i), 'title': 't', 'currency': 'USD'} for i in range(5)])
        assert len(service.build_overview(events, [], 0, [], []).recent_events) == 2


class TestDataset:
    def test_unparseable_dates_are_skipped(self, payment_row):
        txn = map_transaction(payment_row(created_at='nope', ordered_at=None))
        assert list(TransactionDataset([txn]).iter_localized(UTC)) == []

    def test_coerce_timezone(self):
        assert coerce_timezone('America/New_York') == NEW_YORK
        assert coerce_timezone('Mars/Olympus_Mons') is None
        assert coerce_timezone(None) is None
