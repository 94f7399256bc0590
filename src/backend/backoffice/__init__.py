"""
Event back-office helpers.

This package turns raw rows from the ticketing schema (events, reservations,
payments, attendees, reviews, songs, venues) into display-ready view models
and derives the finance, review and check-in aggregates the admin UI shows.
"""

from .clock import SYSTEM_CLOCK, Clock, FixedClock, SystemClock  # noqa: F401
from .export import csv_download, escape_csv_field, generate_csv  # noqa: F401
from .formatting import (  # noqa: F401
    format_compact_number,
    format_date,
    format_date_time,
    format_money,
    format_price,
    format_relative_time,
    format_time,
)
from .mappers import (  # noqa: F401
    map_attendee,
    map_event,
    map_order,
    map_reservation_transaction,
    map_review,
    map_song,
    map_transaction,
    map_venue,
)
from .models import (  # noqa: F401
    Attendee,
    CheckinSummary,
    DailyRevenuePoint,
    Event,
    FinanceStats,
    MonthlyTaxRow,
    Order,
    Overview,
    Review,
    ReviewStats,
    Song,
    Transaction,
    Venue,
)
from .repository import (  # noqa: F401
    BackofficeRepository,
    QueryFilters,
    SQLBackofficeRepository,
    build_repository_from_env,
)
from .service import (  # noqa: F401
    BackofficeService,
    compute_checkin_summary,
    compute_daily_revenue,
    compute_finance_stats,
    compute_monthly_tax,
    compute_review_stats,
)
from .status import format_status, normalize, status_variant  # noqa: F401
