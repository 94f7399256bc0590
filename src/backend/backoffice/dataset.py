from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .formatting import to_local
from .models import Transaction

logger = logging.getLogger(__name__)

TimestampSelector = Callable[[Transaction], Optional[str]]


def coerce_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Resolve an IANA name; ``None`` (and unknown names) mean the machine's local timezone."""

    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to local time", name)
        return None


def order_timestamp(transaction: Transaction) -> Optional[str]:
    """Order date first, payment date as a fallback; used for daily revenue."""

    return transaction.ordered_at or transaction.created_at


def payment_timestamp(transaction: Transaction) -> Optional[str]:
    return transaction.created_at


@dataclass(frozen=True)
class Bucket:
    gross: int = 0
    fees: int = 0
    net: int = 0
    count: int = 0

    def add(self, transaction: Transaction) -> "Bucket":
        return Bucket(
            gross=self.gross + transaction.gross_amount,
            fees=self.fees + transaction.platform_fee,
            net=self.net + transaction.net_amount,
            count=self.count + 1,
        )


@dataclass
class TransactionDataset:
    transactions: Sequence[Transaction]

    def __post_init__(self) -> None:
        self.transactions = tuple(self.transactions)

    def iter_localized(
        self,
        tz: Optional[tzinfo],
        timestamp: TimestampSelector = order_timestamp,
    ) -> Iterator[Tuple[Transaction, datetime]]:
        """
        Yield ``(transaction, local_time)`` pairs.

        Transactions whose timestamp is missing or unparseable are skipped
        rather than failing the whole aggregation.
        """

        for transaction in self.transactions:
            local_time = to_local(timestamp(transaction), tz)
            if local_time is None:
                logger.debug("Skipping transaction %s with unparseable date", transaction.id)
                continue
            yield transaction, local_time

    def totals_by_day(
        self,
        tz: Optional[tzinfo],
        timestamp: TimestampSelector = order_timestamp,
    ) -> Dict[date, Bucket]:
        daily: Dict[date, Bucket] = defaultdict(Bucket)
        for transaction, local_time in self.iter_localized(tz, timestamp):
            day = local_time.date()
            daily[day] = daily[day].add(transaction)
        return dict(daily)

    def totals_by_month(
        self,
        tz: Optional[tzinfo],
        timestamp: TimestampSelector = payment_timestamp,
    ) -> Dict[str, Bucket]:
        monthly: Dict[str, Bucket] = defaultdict(Bucket)
        for transaction, local_time in self.iter_localized(tz, timestamp):
            key = f"{local_time.year:04d}-{local_time.month:02d}"
            monthly[key] = monthly[key].add(transaction)
        return dict(monthly)
