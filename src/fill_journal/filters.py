"""Filter predicates shared by in-memory filtering and storage queries.

Storage backends that translate a ``FilterState`` into their own query
language must reproduce these semantics exactly; ``date_bounds`` and
``search_text`` are the pieces they are expected to reuse.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable

from fill_journal.models import MARKET_TYPES, ORDER_TYPES, SIDES, DerivedTrade, Fill

ALL = "all"


@dataclass(frozen=True)
class FilterState:
    start_date: date | None = None
    end_date: date | None = None
    symbol: str = ALL
    market_type: str = ALL
    side: str = ALL
    search: str = ""
    account_id: str | None = None
    order_type: str = ALL

    def __post_init__(self) -> None:
        _check_choice("market_type", self.market_type, MARKET_TYPES)
        _check_choice("side", self.side, SIDES)
        _check_choice("order_type", self.order_type, ORDER_TYPES)


def is_constrained(value: str | None) -> bool:
    return value not in (None, "", ALL)


def date_bounds(
    start_date: date | None,
    end_date: date | None,
    tz: tzinfo | None = None,
) -> tuple[datetime | None, datetime | None]:
    """Inclusive calendar dates -> half-open ``[lower, upper)`` aware datetimes."""
    lower = _midnight(start_date, tz) if start_date is not None else None
    upper = _midnight(end_date + timedelta(days=1), tz) if end_date is not None else None
    return lower, upper


def search_text(fill: Fill) -> str:
    return f"{fill.symbol} {fill.tx_ref}".lower()


def fill_matches(fill: Fill, filters: FilterState, tz: tzinfo | None = None) -> bool:
    if not _in_range(fill.timestamp, filters, tz):
        return False
    if is_constrained(filters.symbol) and fill.symbol != filters.symbol:
        return False
    if is_constrained(filters.market_type) and fill.market_type != filters.market_type:
        return False
    if is_constrained(filters.side) and fill.side != filters.side:
        return False
    if is_constrained(filters.account_id) and fill.account_id != filters.account_id:
        return False
    if is_constrained(filters.order_type) and fill.order_type != filters.order_type:
        return False
    if filters.search and filters.search.lower() not in search_text(fill):
        return False
    return True


def trade_matches(trade: DerivedTrade, filters: FilterState, tz: tzinfo | None = None) -> bool:
    # Derived trades carry no market type, account or tx reference.
    if not _in_range(trade.close_timestamp, filters, tz):
        return False
    if is_constrained(filters.symbol) and trade.symbol != filters.symbol:
        return False
    if is_constrained(filters.side) and trade.side != filters.side:
        return False
    return True


def apply_fill_filters(
    fills: Iterable[Fill], filters: FilterState, tz: tzinfo | None = None
) -> list[Fill]:
    return [fill for fill in fills if fill_matches(fill, filters, tz)]


def apply_trade_filters(
    trades: Iterable[DerivedTrade], filters: FilterState, tz: tzinfo | None = None
) -> list[DerivedTrade]:
    return [trade for trade in trades if trade_matches(trade, filters, tz)]


def symbols_in(fills: Iterable[Fill]) -> list[str]:
    return sorted({fill.symbol for fill in fills})


def filter_summary(filters: FilterState) -> str:
    return f"{filters.symbol}-{filters.market_type}-{filters.side}"


def parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value!r}") from exc


def _in_range(timestamp: datetime, filters: FilterState, tz: tzinfo | None) -> bool:
    lower, upper = date_bounds(filters.start_date, filters.end_date, tz)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if lower is not None and timestamp < lower:
        return False
    if upper is not None and timestamp >= upper:
        return False
    return True


def _midnight(day: date, tz: tzinfo | None) -> datetime:
    if tz is None:
        return datetime.combine(day, time()).astimezone()
    return datetime.combine(day, time(), tzinfo=tz)


def _check_choice(name: str, value: str, allowed: tuple[str, ...]) -> None:
    if value in (None, "", ALL) or value in allowed:
        return
    raise ValueError(f"Unknown {name}: {value!r}")
