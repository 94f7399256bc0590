from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from backend.backoffice.clock import FixedClock

UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")


@pytest.fixture
def utc_clock() -> FixedClock:
    """Noon UTC on Feb 7, 2026"""
    return FixedClock(datetime(2026, 2, 7, 12, 0, tzinfo=UTC), tz=UTC)


@pytest.fixture
def new_york_clock() -> FixedClock:
    """Late evening in New York, already the next day in UTC"""
    return FixedClock(datetime(2026, 2, 7, 22, 30), tz=NEW_YORK)


@pytest.fixture
def payment_row():
    """Factory for raw payment rows joined with their reservation"""

    def _create(
        id: str = 'pay-1',
        amount_cents: int = 10000,
        service_fees_cents=500,
        status: str = 'succeeded',
        created_at: str = '2026-02-07T12:00:00Z',
        ordered_at=None,
        currency: str = 'USD',
        with_reservation: bool = True,
    ):
        reservation = None
        if with_reservation:
            reservation = {
                'event_id': 'evt-1',
                'service_fees_cents': service_fees_cents,
                'ordered_at': ordered_at,
                'events': {'title': 'Spring Gala'},
            }
        return {
            'id': id,
            'reservation_id': 'res-1' if with_reservation else None,
            'provider': 'stripe',
            'status': status,
            'amount_cents': amount_cents,
            'currency': currency,
            'created_at': created_at,
            'reservations': reservation,
        }

    return _create
