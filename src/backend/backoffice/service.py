from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .clock import SYSTEM_CLOCK, Clock
from .dataset import Bucket, TransactionDataset
from .formatting import DEFAULT_LOCALE, format_calendar_date, format_money, format_month_day
from .models import (
    CheckinSummary,
    DailyRevenuePoint,
    Event,
    FinanceStats,
    MonthlyTaxRow,
    Overview,
    OverviewStats,
    Review,
    ReviewStats,
    Transaction,
)
from .rows import EventTicketsRow, coerce_row
from .status import PaymentStatus

DAILY_REVENUE_WINDOW_DAYS = 14
DEFAULT_CURRENCY = "USD"
RECENT_EVENTS_LIMIT = 6
RATING_BUCKETS = (1, 2, 3, 4, 5)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _main_currency(transactions: Sequence[Transaction], fallback: str = DEFAULT_CURRENCY) -> str:
    for transaction in transactions:
        if transaction.currency:
            return transaction.currency
    return fallback


def compute_daily_revenue(
    transactions: Iterable[Transaction],
    clock: Clock = SYSTEM_CLOCK,
    window_days: int = DAILY_REVENUE_WINDOW_DAYS,
    locale: str = DEFAULT_LOCALE,
) -> List[DailyRevenuePoint]:
    """
    Gross revenue per local calendar day, centred on today.

    The series always covers ``2 * window_days + 1`` days in chronological
    order (29 with the default window), whatever the input size. Days without
    transactions report zero.
    """

    now = clock.now()
    today = now.date()
    daily = TransactionDataset(list(transactions)).totals_by_day(now.tzinfo)
    span = max(0, window_days)

    points: List[DailyRevenuePoint] = []
    for offset in range(-span, span + 1):
        day = today + timedelta(days=offset)
        bucket = daily.get(day, Bucket())
        points.append(
            DailyRevenuePoint(
                label="Today" if offset == 0 else format_month_day(day, locale=locale),
                date=format_calendar_date(day, locale=locale),
                date_key=day.isoformat(),
                value=bucket.gross,
                reservation_count=bucket.count,
                is_today=offset == 0,
            )
        )
    return points


def compute_monthly_tax(
    transactions: Iterable[Transaction],
    currency: Optional[str] = None,
    tz: Optional[tzinfo] = None,
    locale: str = DEFAULT_LOCALE,
) -> List[MonthlyTaxRow]:
    """Gross, fees and net per ``YYYY-MM`` of the payment date, oldest month first."""

    items = list(transactions)
    code = currency or _main_currency(items)
    monthly = TransactionDataset(items).totals_by_month(tz)
    return [
        MonthlyTaxRow(
            month=month,
            transactions=bucket.count,
            gross=bucket.gross,
            fees=bucket.fees,
            net=bucket.net,
            gross_revenue=format_money(bucket.gross, code, locale=locale),
            platform_fees=format_money(bucket.fees, code, locale=locale),
            net_revenue=format_money(bucket.net, code, locale=locale),
        )
        for month, bucket in sorted(monthly.items())
    ]


def compute_finance_stats(transactions: Iterable[Transaction], completed_only: bool = False) -> FinanceStats:
    """
    Totals over a transaction list.

    Gross, fees and net are summed independently; because every transaction
    carries ``net = gross - fee`` the totals satisfy the same identity. With
    ``completed_only`` the money totals ignore pending and failed rows while
    ``transaction_count`` still counts everything.
    """

    count = 0
    total_gross = 0
    total_fees = 0
    total_net = 0
    for transaction in transactions:
        count += 1
        if completed_only and transaction.status is not PaymentStatus.COMPLETED:
            continue
        total_gross += transaction.gross_amount
        total_fees += transaction.platform_fee
        total_net += transaction.net_amount

    return FinanceStats(
        transaction_count=count,
        total_gross=total_gross,
        total_fees=total_fees,
        total_net=total_net,
    )


def clamp_rating(rating: Union[int, float]) -> int:
    if math.isnan(rating):
        return RATING_BUCKETS[0]
    if math.isinf(rating):
        return RATING_BUCKETS[-1] if rating > 0 else RATING_BUCKETS[0]
    return max(1, min(5, _round_half_up(rating)))


def compute_review_stats(reviews: Iterable[Review]) -> ReviewStats:
    """
    Count, one-decimal average and 1..5 histogram of review ratings.

    Ratings outside 1..5 are clamped before bucketing, and the average is
    taken over the clamped values.
    """

    distribution: Dict[int, int] = {bucket: 0 for bucket in RATING_BUCKETS}
    count = 0
    total = 0
    for review in reviews:
        clamped = clamp_rating(review.rating)
        distribution[clamped] += 1
        total += clamped
        count += 1

    if count == 0:
        return ReviewStats(count=0, average=0, distribution=distribution)
    return ReviewStats(
        count=count,
        average=_round_half_up(total / count * 10) / 10,
        distribution=distribution,
    )


def compute_checkin_summary(
    events: Iterable[Union[EventTicketsRow, Mapping[str, Any]]],
) -> List[CheckinSummary]:
    """Per event: tickets issued, tickets scanned at least once, and the stored attendee counter."""

    summaries: List[CheckinSummary] = []
    for row in events:
        record = coerce_row(EventTicketsRow, row)
        summaries.append(
            CheckinSummary(
                event_id=record.id,
                event_name=record.title,
                total_tickets=len(record.ticket_checkins),
                checked_in=sum(1 for checkins in record.ticket_checkins if checkins),
                attendee_count=record.attendee_count,
            )
        )
    return summaries


def build_overview(
    events: Sequence[Event],
    reviews: Sequence[Review],
    total_tickets: int,
    payments: Sequence[Transaction],
    checkins: Sequence[CheckinSummary],
    recent_limit: int = RECENT_EVENTS_LIMIT,
    default_currency: str = DEFAULT_CURRENCY,
    locale: str = DEFAULT_LOCALE,
) -> Overview:
    """
    Headline numbers for the landing page.

    Each event's attendee count is replaced by its checked-in ticket count;
    revenue only includes completed payments.
    """

    checked_in_by_event = {summary.event_id: summary.checked_in for summary in checkins}
    enriched = [replace(event, attendee_count=checked_in_by_event.get(event.id, 0)) for event in events]

    completed = [payment for payment in payments if payment.status is PaymentStatus.COMPLETED]
    revenue = sum(payment.gross_amount for payment in completed)
    currency = _main_currency(completed, default_currency)

    stats = OverviewStats(
        total_events=len(events),
        total_attendees=sum(summary.checked_in for summary in checkins),
        total_tickets=max(0, total_tickets),
        avg_rating=compute_review_stats(reviews).average,
        total_revenue_cents=revenue,
        total_revenue_formatted=format_money(revenue, currency, locale=locale),
    )
    return Overview(stats=stats, recent_events=tuple(enriched[: max(0, recent_limit)]))


@dataclass(frozen=True)
class FinanceReport:
    transactions: Sequence[Transaction]
    stats: FinanceStats
    daily_revenue: Sequence[DailyRevenuePoint]
    tax_rows: Sequence[MonthlyTaxRow]


class BackofficeService:
    """
    Aggregates mapped back-office data for the API layer.

    Holds the clock, timezone and presentation defaults so every endpoint
    derives its numbers the same way.
    """

    def __init__(
        self,
        clock: Clock = SYSTEM_CLOCK,
        tz: Optional[tzinfo] = None,
        locale: str = DEFAULT_LOCALE,
        default_currency: str = DEFAULT_CURRENCY,
        revenue_window_days: int = DAILY_REVENUE_WINDOW_DAYS,
        recent_events_limit: int = RECENT_EVENTS_LIMIT,
    ) -> None:
        self.clock = clock
        self.tz = tz
        self.locale = locale
        self.default_currency = default_currency
        self.revenue_window_days = revenue_window_days
        self.recent_events_limit = recent_events_limit

    def build_finance(self, transactions: Sequence[Transaction], completed_only: bool = False) -> FinanceReport:
        currency = _main_currency(transactions, self.default_currency)
        return FinanceReport(
            transactions=tuple(transactions),
            stats=compute_finance_stats(transactions, completed_only=completed_only),
            daily_revenue=compute_daily_revenue(
                transactions,
                clock=self.clock,
                window_days=self.revenue_window_days,
                locale=self.locale,
            ),
            tax_rows=compute_monthly_tax(transactions, currency=currency, tz=self.tz, locale=self.locale),
        )

    def build_review_stats(self, reviews: Sequence[Review]) -> ReviewStats:
        return compute_review_stats(reviews)

    def build_checkins(self, events: Iterable[Union[EventTicketsRow, Mapping[str, Any]]]) -> List[CheckinSummary]:
        return compute_checkin_summary(events)

    def build_overview(
        self,
        events: Sequence[Event],
        reviews: Sequence[Review],
        total_tickets: int,
        payments: Sequence[Transaction],
        checkins: Sequence[CheckinSummary],
    ) -> Overview:
        return build_overview(
            events,
            reviews,
            total_tickets,
            payments,
            checkins,
            recent_limit=self.recent_events_limit,
            default_currency=self.default_currency,
            locale=self.locale,
        )
