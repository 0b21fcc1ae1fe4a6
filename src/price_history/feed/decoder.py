"""CSV series decoder: turns raw feed payloads into PricePoint records.

Feed payloads are row-oriented CSV: a header line followed by one line per
day with the fields ``date,open,high,low,close,adjClose,volume``. Only the
date and close columns are read.

Bad rows are dropped one at a time so a partially corrupt payload still
yields every row that can be read.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date

from price_history.core.exceptions import DecodeError
from price_history.core.models import Currency, PricePoint

logger = logging.getLogger(__name__)

# Positional layout of a feed row
_DATE_FIELD = 0
_CLOSE_FIELD = 4


@dataclass
class DecodeStats:
    """Row accounting for one decode pass."""

    rows_seen: int = 0
    rows_skipped: int = 0
    unmatched_dates: int = 0


def parse_row(fields: list[str], line: int) -> tuple[date, float]:
    """Parse one CSV record into ``(date, close)``.

    Raises
    ------
    DecodeError
        If the row is short, the date is not ISO-8601, or the close is not
        a positive finite number.
    """
    if len(fields) <= _CLOSE_FIELD:
        raise DecodeError(
            f"expected at least {_CLOSE_FIELD + 1} fields, got {len(fields)}",
            context={"line": line, "reason": "short_row"},
        )

    raw_date = fields[_DATE_FIELD].strip()
    try:
        # A datetime is accepted; only its date part is kept
        if len(raw_date) > 10 and raw_date[10] not in "T ":
            raise ValueError(f"trailing characters after date: {raw_date!r}")
        day = date.fromisoformat(raw_date[:10])
    except ValueError as e:
        raise DecodeError(
            f"unparseable date {raw_date!r}",
            context={"line": line, "reason": "bad_date"},
        ) from e

    raw_close = fields[_CLOSE_FIELD].strip()
    try:
        close = float(raw_close)
    except ValueError as e:
        raise DecodeError(
            f"unparseable close {raw_close!r}",
            context={"line": line, "reason": "bad_close"},
        ) from e

    # Checked after rounding: stored prices carry two decimals
    if math.isfinite(close):
        close = round(close, 2)
    if not math.isfinite(close) or close <= 0:
        raise DecodeError(
            f"close must be positive, got {raw_close!r}",
            context={"line": line, "reason": "bad_close"},
        )

    return day, close


def iter_closes(payload: str, stats: DecodeStats | None = None) -> Iterator[tuple[date, float]]:
    """Yield ``(date, close)`` for every readable data line of a payload.

    The first line is treated as the header. Blank lines are ignored;
    malformed lines are logged and skipped.
    """
    reader = csv.reader(io.StringIO(payload))
    for line, fields in enumerate(reader, start=1):
        if line == 1:
            continue
        if not any(f.strip() for f in fields):
            continue

        if stats is not None:
            stats.rows_seen += 1
        try:
            parsed = parse_row(fields, line)
        except DecodeError as e:
            if stats is not None:
                stats.rows_skipped += 1
            logger.warning("Skipping feed line %d: %s", line, e)
            continue
        yield parsed


def _collect(payload: str, currency: Currency, stats: DecodeStats | None) -> dict[date, float]:
    closes: dict[date, float] = {}
    for day, close in iter_closes(payload, stats):
        if day in closes:
            logger.warning(
                "Duplicate %s row for %s; keeping the later value", currency.value, day
            )
        closes[day] = close
    return closes


def decode_series(
    usd_payload: str,
    inr_payload: str,
    asset: str,
    stats: DecodeStats | None = None,
) -> Iterator[PricePoint]:
    """Pair the USD and INR series by date and yield PricePoints.

    Rows are matched on their decoded date, never on line position. A date
    that appears in only one of the two series is logged and dropped.
    Points are yielded in ascending date order.
    """
    usd = _collect(usd_payload, Currency.USD, stats)
    inr = _collect(inr_payload, Currency.INR, stats)

    for day in sorted(usd.keys() | inr.keys()):
        if day not in usd or day not in inr:
            missing = Currency.USD if day not in usd else Currency.INR
            if stats is not None:
                stats.unmatched_dates += 1
            logger.warning("Dropping %s for %s: no %s close", day, asset, missing.value)
            continue
        yield PricePoint(date=day, asset=asset, usd=usd[day], inr=inr[day])
