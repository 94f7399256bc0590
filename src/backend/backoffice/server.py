"""FastAPI server that exposes the event back-office read API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Literal, Optional, TypeVar

from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .clock import SystemClock
from .config import configure_logging, load_config
from .dataset import coerce_timezone
from .errors import QueryError, RepositoryNotConfiguredError
from .export import STATEMENT_COLUMNS, TAX_REPORT_COLUMNS, CsvDownload, csv_download, dated_filename, generate_csv
from .mappers import (
    map_attendees,
    map_events,
    map_orders,
    map_reservation_transactions,
    map_reviews,
    map_songs,
    map_transactions,
    map_venues,
)
from .models import to_payload
from .repository import BackofficeRepository, QueryFilters, build_repository_from_env
from .service import BackofficeService
from .status import normalize_event_status

T = TypeVar("T")

logger = logging.getLogger(__name__)

config = load_config()
configure_logging(config.log_level)
_tz = coerce_timezone(config.timezone)

app = FastAPI(title="Event Back-Office API", version="0.1.0")
repository: Optional[BackofficeRepository] = build_repository_from_env(config)
service = BackofficeService(
    clock=SystemClock(_tz),
    tz=_tz,
    locale=config.locale,
    default_currency=config.default_currency,
    revenue_window_days=config.revenue_window_days,
    recent_events_limit=config.recent_events_limit,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

TransactionSource = Literal["payments", "reservations"]


class DataResponse(BaseModel):
    data: Any
    count: Optional[int] = None


def _require_repository() -> BackofficeRepository:
    if repository is None:
        error = RepositoryNotConfiguredError()
        raise HTTPException(status_code=500, detail=error.message)
    return repository


async def _load(loader: Callable[..., T], *args: Any) -> T:
    """Run a blocking repository call off the event loop and translate query failures."""

    try:
        return await asyncio.to_thread(loader, *args)
    except QueryError as exc:
        logger.error("%s (%s)", exc, exc.detail)
        raise HTTPException(status_code=502, detail=exc.message) from exc


def _list_response(items: Any) -> DataResponse:
    payload = to_payload(items)
    return DataResponse(data=payload, count=len(payload))


def _csv_response(download: CsvDownload) -> Response:
    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


def _presentation() -> Dict[str, Any]:
    return {"locale": service.locale, "tz": service.tz}


async def _load_transactions(source: TransactionSource, filters: QueryFilters):
    repo = _require_repository()
    if source == "reservations":
        rows = await _load(repo.load_reservation_transactions, filters)
        return map_reservation_transactions(rows, **_presentation())
    return map_transactions(await _load(repo.load_transactions, filters), **_presentation())


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "database": "configured" if repository is not None else "missing"}


@app.get("/events", response_model=DataResponse)
async def list_events(
    event_id: Optional[str] = None,
    status: Optional[str] = None,
) -> DataResponse:
    repo = _require_repository()
    events = map_events(await _load(repo.load_events, QueryFilters(event_id=event_id)), **_presentation())
    if status:
        wanted = normalize_event_status(status)
        events = [event for event in events if event.status is wanted]
    return _list_response(events)


@app.get("/orders", response_model=DataResponse)
async def list_orders(
    event_id: Optional[str] = None,
    status: Optional[str] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> DataResponse:
    repo = _require_repository()
    filters = QueryFilters(event_id=event_id, status=status, from_date=from_date, to_date=to_date)
    return _list_response(map_orders(await _load(repo.load_orders, filters), **_presentation()))


@app.get("/attendees", response_model=DataResponse)
async def list_attendees(event_id: Optional[str] = None) -> DataResponse:
    repo = _require_repository()
    rows = await _load(repo.load_attendees, QueryFilters(event_id=event_id))
    return _list_response(map_attendees(rows, **_presentation()))


@app.get("/reviews", response_model=DataResponse)
async def list_reviews(
    event_id: Optional[str] = None,
    min_rating: Optional[int] = Query(default=None, ge=1, le=5),
) -> DataResponse:
    repo = _require_repository()
    rows = await _load(repo.load_reviews, QueryFilters(event_id=event_id, min_rating=min_rating))
    reviews = map_reviews(rows, **_presentation())
    return DataResponse(
        data={
            "reviews": to_payload(reviews),
            "stats": to_payload(service.build_review_stats(reviews)),
        },
        count=len(reviews),
    )


@app.get("/songs", response_model=DataResponse)
async def list_songs(event_id: Optional[str] = None) -> DataResponse:
    repo = _require_repository()
    rows = await _load(repo.load_songs, QueryFilters(event_id=event_id))
    return _list_response(map_songs(rows, **_presentation()))


@app.get("/venues", response_model=DataResponse)
async def list_venues() -> DataResponse:
    repo = _require_repository()
    return _list_response(map_venues(await _load(repo.load_venues), **_presentation()))


@app.get("/finance", response_model=DataResponse)
async def finance(
    source: TransactionSource = "payments",
    event_id: Optional[str] = None,
    completed_only: bool = False,
) -> DataResponse:
    transactions = await _load_transactions(source, QueryFilters(event_id=event_id))
    report = service.build_finance(transactions, completed_only=completed_only)
    return DataResponse(
        data={
            "transactions": to_payload(report.transactions),
            "stats": to_payload(report.stats),
        },
        count=len(report.transactions),
    )


@app.get("/finance/daily-revenue", response_model=DataResponse)
async def daily_revenue(source: TransactionSource = "payments") -> DataResponse:
    transactions = await _load_transactions(source, QueryFilters())
    return _list_response(service.build_finance(transactions).daily_revenue)


@app.get("/finance/tax-report", response_model=DataResponse)
async def tax_report(source: TransactionSource = "payments") -> DataResponse:
    transactions = await _load_transactions(source, QueryFilters())
    return _list_response(service.build_finance(transactions).tax_rows)


@app.get("/finance/tax-report.csv")
async def tax_report_csv(source: TransactionSource = "payments") -> Response:
    transactions = await _load_transactions(source, QueryFilters())
    rows = service.build_finance(transactions).tax_rows
    content = generate_csv(rows, TAX_REPORT_COLUMNS)
    return _csv_response(csv_download(content, dated_filename("tax-report", service.clock)))


@app.get("/finance/statement.csv")
async def statement_csv(
    source: TransactionSource = "payments",
    event_id: Optional[str] = None,
) -> Response:
    transactions = await _load_transactions(source, QueryFilters(event_id=event_id))
    content = generate_csv(transactions, STATEMENT_COLUMNS)
    return _csv_response(csv_download(content, dated_filename("finance-statement", service.clock)))


@app.get("/checkins", response_model=DataResponse)
async def checkins() -> DataResponse:
    repo = _require_repository()
    return _list_response(service.build_checkins(await _load(repo.load_checkin_events)))


@app.get("/overview", response_model=DataResponse)
async def overview() -> DataResponse:
    repo = _require_repository()
    event_rows, review_rows, total_tickets, payment_rows, checkin_rows = await asyncio.gather(
        _load(repo.load_events, QueryFilters()),
        _load(repo.load_reviews, QueryFilters()),
        _load(repo.count_tickets, QueryFilters()),
        _load(repo.load_succeeded_payments),
        _load(repo.load_checkin_events),
    )
    result = service.build_overview(
        events=map_events(event_rows, **_presentation()),
        reviews=map_reviews(review_rows, **_presentation()),
        total_tickets=total_tickets,
        payments=map_transactions(payment_rows, **_presentation()),
        checkins=service.build_checkins(checkin_rows),
    )
    return DataResponse(data=to_payload(result))
