from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import asdict, dataclass, field, fields
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from functools import cached_property
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from booking_core.classify import booking_category, grade_label, segment_category
from booking_core.constants import (
    COL_ARRIVAL_DATE,
    COL_AVG_RATE,
    COL_BOOKING_NUMBER,
    COL_BOOKING_SOURCE,
    COL_BOOKING_TYPE,
    COL_ENTERED_DATE,
    COL_EVENT_REVENUE,
    COL_GRADE,
    COL_MARKET_SEGMENT,
    COL_ORGANIZATION,
    COL_PEAK_ROOM_NIGHTS,
    COL_POST_AS_NAME,
    COL_RESPONSE_TIME,
    COL_ROOM_NIGHT,
    COL_SALES_MANAGER,
    COL_STATUS,
    COL_TERMINAL_REASON,
    COL_TOTAL_REVENUE,
    FNB_FALLBACK_COLUMNS,
    MONTH_NAMES,
    NA_TOKENS,
    RENTAL_FALLBACK_COLUMNS,
    UNGRADED,
)

logger = logging.getLogger(__name__)

_NUM_PREFIX = r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
_NUM_PREFIX_RE = re.compile(_NUM_PREFIX)

INT_COLUMNS = ["grade", "arrival_year", "arrival_month_num", "entered_year", "entered_month_num"]
FLOAT_COLUMNS = [
    "room_night",
    "total_revenue",
    "event_revenue",
    "fnb_revenue",
    "rental_revenue",
    "lead_response_time",
    "avg_rate",
    "peak_room_nights",
    "lead_time",
]


class NoValidRecordsError(ValueError):
    """Raised when an upload yields no usable booking rows."""


@dataclass(frozen=True)
class ColumnMapping:
    fnb_column: Optional[str] = None
    rental_column: Optional[str] = None


@dataclass(frozen=True)
class BookingRecord:
    booking_number: str
    booking_type: str
    booking_category: str
    status: str
    grade: int
    grade_label: str
    arrival_date: Optional[date]
    entered_date: Optional[date]
    arrival_year: Optional[int]
    arrival_month: Optional[str]
    arrival_month_num: Optional[int]
    entered_year: Optional[int]
    entered_month: Optional[str]
    entered_month_num: Optional[int]
    market_segment: str
    segment_category: str
    booking_source: str
    sales_manager: str
    room_night: float
    total_revenue: float
    event_revenue: float
    fnb_revenue: float
    rental_revenue: float
    lead_response_time: float
    avg_rate: float
    peak_room_nights: float
    lead_time: Optional[int]
    post_as_name: str
    organization_name: str
    terminal_reason: str


# ---------------- Scalar parsing ----------------
def parse_num(value: object) -> float:
    """Parse a loosely formatted number ("$10,000", "12 hrs") into a float; anything else is 0."""
    if value is None:
        return 0.0
    match = _NUM_PREFIX_RE.match(re.sub(r"[,$]", "", str(value)))
    if not match:
        return 0.0
    out = float(match.group(1))
    return out if np.isfinite(out) else 0.0


def parse_date(value: object) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    s = str(value).strip()
    if s.lower() in NA_TOKENS:
        return None
    try:
        ts = pd.to_datetime(s, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def pct(part: float, whole: float, ndigits: int = 1) -> float:
    if not whole:
        return 0.0
    return round_half_up(part / whole * 100, ndigits) or 0.0


def safe_mean(values: Iterable[float]) -> float:
    values = list(values)
    return float(sum(values) / len(values)) if values else 0.0


def col_sum(df: pd.DataFrame, col: str) -> float:
    if df.empty:
        return 0.0
    return float(df[col].sum())


def positive_mean(df: pd.DataFrame, col: str) -> float:
    """Mean over strictly positive values only; 0 when there are none."""
    if df.empty:
        return 0.0
    values = df.loc[df[col] > 0, col]
    return float(values.mean()) if not values.empty else 0.0


def between_mask(values: pd.Series, low: Optional[float], high: Optional[float]) -> pd.Series:
    mask = pd.Series(True, index=values.index)
    if low is not None:
        mask &= values >= low
    if high is not None:
        mask &= values <= high
    return mask


def format_month_label(month_key: Optional[str]) -> str:
    """'2024-03' -> 'Mar 24'."""
    if not month_key:
        return ""
    year, month = month_key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year[2:]}"


# ---------------- Column resolution ----------------
def _is_fnb_column(label: str) -> bool:
    col = label.lower()
    return (
        "food and beverage" in col
        or "food & beverage" in col
        or "f&b" in col
        or ("event" in col and "food" in col)
    )


def _is_rental_column(label: str) -> bool:
    col = label.lower()
    return (
        "venue rental" in col
        or ("venue" in col and "rental" in col)
        or "meeting room rental" in col
        or col == "room rental"
    )


def resolve_columns(column_labels: Iterable[object]) -> ColumnMapping:
    labels = [str(c) for c in column_labels]
    fnb = next((c for c in labels if _is_fnb_column(c)), None)
    rental = next((c for c in labels if _is_rental_column(c)), None)
    logger.info("Revenue column detection: fnb=%r rental=%r", fnb, rental)
    return ColumnMapping(fnb_column=fnb, rental_column=rental)


# ---------------- Row normalization ----------------
def _text(raw: pd.DataFrame, label: str) -> pd.Series:
    if label not in raw.columns:
        return pd.Series([""] * len(raw), index=raw.index, dtype=object)
    return raw[label].where(raw[label].notna(), "").astype(str)


def _first_present(raw: pd.DataFrame, labels: Sequence[str]) -> pd.Series:
    out = pd.Series([""] * len(raw), index=raw.index, dtype=object)
    for label in reversed(labels):
        values = _text(raw, label)
        out = values.where(values.ne(""), out)
    return out


def numericize(values: pd.Series) -> pd.Series:
    cleaned = values.astype(str).str.replace(r"[,$]", "", regex=True)
    parsed = pd.to_numeric(cleaned.str.extract(_NUM_PREFIX, expand=False), errors="coerce")
    return parsed.replace([np.inf, -np.inf], np.nan).fillna(0.0).astype(float)


def _month_key(ts: Optional[pd.Timestamp]) -> Optional[str]:
    return f"{ts.year}-{ts.month:02d}" if ts is not None else None


def _lead_time(arrival: Optional[pd.Timestamp], entered: Optional[pd.Timestamp]) -> Optional[int]:
    if arrival is None or entered is None:
        return None
    return int((arrival - entered) // pd.Timedelta(days=1))


def normalize_rows(
    rows: Sequence[Mapping[str, object]],
    columns: Optional[ColumnMapping] = None,
) -> List[BookingRecord]:
    rows = list(rows)
    if not rows:
        return []
    mapping = columns if columns is not None else resolve_columns(rows[0].keys())
    raw = pd.DataFrame.from_records(rows)

    numbers = _text(raw, COL_BOOKING_NUMBER).str.strip()
    types = _text(raw, COL_BOOKING_TYPE).str.strip()
    keep = ~numbers.str.lower().isin(NA_TOKENS) & ~types.str.lower().str.contains("internal", regex=False)
    raw = raw.loc[keep]
    if raw.empty:
        return []
    numbers = numbers[keep]
    types = types[keep]

    fnb_src = _text(raw, mapping.fnb_column) if mapping.fnb_column else _first_present(raw, FNB_FALLBACK_COLUMNS)
    rental_src = (
        _text(raw, mapping.rental_column) if mapping.rental_column else _first_present(raw, RENTAL_FALLBACK_COLUMNS)
    )
    nums = {
        "grade": numericize(_text(raw, COL_GRADE)),
        "peak_room_nights": numericize(_text(raw, COL_PEAK_ROOM_NIGHTS)),
        "fnb_revenue": numericize(fnb_src),
        "rental_revenue": numericize(rental_src),
        "event_revenue": numericize(_text(raw, COL_EVENT_REVENUE)),
        "room_night": numericize(_text(raw, COL_ROOM_NIGHT)),
        "total_revenue": numericize(_text(raw, COL_TOTAL_REVENUE)),
        "lead_response_time": numericize(_text(raw, COL_RESPONSE_TIME)),
        "avg_rate": numericize(_text(raw, COL_AVG_RATE)),
    }
    nums = {k: v.tolist() for k, v in nums.items()}
    arrivals = [parse_date(v) for v in _text(raw, COL_ARRIVAL_DATE).tolist()]
    entereds = [parse_date(v) for v in _text(raw, COL_ENTERED_DATE).tolist()]
    statuses = _text(raw, COL_STATUS).str.strip().tolist()
    segments = _text(raw, COL_MARKET_SEGMENT).str.strip().tolist()
    sources = _text(raw, COL_BOOKING_SOURCE).str.strip().tolist()
    managers = _text(raw, COL_SALES_MANAGER).tolist()
    post_as = _text(raw, COL_POST_AS_NAME).tolist()
    orgs = _text(raw, COL_ORGANIZATION).tolist()
    reasons = _text(raw, COL_TERMINAL_REASON).tolist()

    records: List[BookingRecord] = []
    for i, (number, btype) in enumerate(zip(numbers.tolist(), types.tolist())):
        arrival, entered = arrivals[i], entereds[i]
        grade = int(nums["grade"][i])
        records.append(
            BookingRecord(
                booking_number=number,
                booking_type=btype,
                booking_category=booking_category(btype),
                status=statuses[i],
                grade=grade,
                grade_label=grade_label(grade),
                arrival_date=arrival.date() if arrival is not None else None,
                entered_date=entered.date() if entered is not None else None,
                arrival_year=arrival.year if arrival is not None else None,
                arrival_month=_month_key(arrival),
                arrival_month_num=arrival.month if arrival is not None else None,
                entered_year=entered.year if entered is not None else None,
                entered_month=_month_key(entered),
                entered_month_num=entered.month if entered is not None else None,
                market_segment=segments[i],
                segment_category=segment_category(segments[i]),
                booking_source=sources[i],
                sales_manager=managers[i],
                room_night=nums["room_night"][i],
                total_revenue=nums["total_revenue"][i],
                event_revenue=nums["event_revenue"][i],
                fnb_revenue=nums["fnb_revenue"][i],
                rental_revenue=nums["rental_revenue"][i],
                lead_response_time=nums["lead_response_time"][i],
                avg_rate=nums["avg_rate"][i],
                peak_room_nights=nums["peak_room_nights"][i],
                lead_time=_lead_time(arrival, entered),
                post_as_name=post_as[i],
                organization_name=orgs[i],
                terminal_reason=reasons[i],
            )
        )
    return records


# ---------------- Dataset ----------------
def records_frame(records: Sequence[BookingRecord]) -> pd.DataFrame:
    """One row per record (index = record position) for vectorized reducers."""
    if records:
        df = pd.DataFrame([asdict(r) for r in records])
    else:
        df = pd.DataFrame(columns=[f.name for f in fields(BookingRecord)])
    for col in FLOAT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    for col in INT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
    return df


@dataclass(frozen=True, eq=False)
class BookingDataset:
    records: Tuple[BookingRecord, ...]
    columns: ColumnMapping = field(default_factory=ColumnMapping)
    rows_read: int = 0
    rows_rejected: int = 0

    @cached_property
    def signature(self) -> str:
        return hashlib.sha1(repr(self.records).encode("utf-8")).hexdigest()

    @cached_property
    def frame(self) -> pd.DataFrame:
        return records_frame(self.records)

    @property
    def record_count(self) -> int:
        return len(self.records)

    def records_at(self, index: Iterable[int]) -> List[BookingRecord]:
        return [self.records[int(i)] for i in index]

    def entered_years(self) -> List[int]:
        return sorted({r.entered_year for r in self.records if r.entered_year})

    def arrival_years(self) -> List[int]:
        return sorted({r.arrival_year for r in self.records if r.arrival_year})

    def heat_map_years(self) -> List[int]:
        return sorted(set(self.entered_years()) | set(self.arrival_years()))

    def statuses(self) -> List[str]:
        return list(dict.fromkeys(r.status for r in self.records if r.status))

    def grades(self) -> List[str]:
        labels = {r.grade_label for r in self.records if r.grade_label}
        return sort_grade_labels(labels, ungraded_last=False)


def sort_grade_labels(labels: Iterable[str], *, ungraded_last: bool = True) -> List[str]:
    labels = set(labels)
    ordered = sorted(l for l in labels if l != UNGRADED)
    if UNGRADED in labels:
        return ordered + [UNGRADED] if ungraded_last else [UNGRADED] + ordered
    return ordered


def build_dataset(rows: Sequence[Mapping[str, object]]) -> BookingDataset:
    rows = list(rows)
    mapping = resolve_columns(rows[0].keys()) if rows else ColumnMapping()
    records = normalize_rows(rows, mapping)
    rejected = len(rows) - len(records)
    logger.info("Normalized %d of %d rows (%d rejected)", len(records), len(rows), rejected)
    if not records:
        raise NoValidRecordsError("No valid booking data found")
    return BookingDataset(records=tuple(records), columns=mapping, rows_read=len(rows), rows_rejected=rejected)
