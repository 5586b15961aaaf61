# ============================================================================
# src/symptom_trends/temporal/point_extractor.py
# ============================================================================
"""
Point Extractor - turns daily records into (x, y) series

Supported metric identifiers:
- Direct fields: "overall_health", "energy_level", "sleep_quality",
  "stress_level" or any other numeric top-level field of a record.
- Derived "<kind>:<id>": "symptom:<symptom_id>", "trigger:<trigger_id>",
  "medication:<medication_id>". Use "all" as id to take every sub-entry.
- Aggregates: "symptom-frequency[:daily|weekly|monthly]" and
  "medication-adherence".
- "flare-severity": every severity history entry of the flares listed
  under each record, at its own timestamp.

Unknown identifiers yield an empty series. Callers treat empty as
"no data", never as an error.
"""

import logging
import numbers
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import MetricMetadata, MetricSeries, Point
from .time_range import DateWindow
from ..utils.logging import log_performance

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DIRECT_METRICS = ("overall_health", "energy_level", "sleep_quality", "stress_level")

GRANULARITIES = ("daily", "weekly", "monthly")

METRIC_LABELS = {
    "overall_health": "Overall Health",
    "energy_level": "Energy Level",
    "sleep_quality": "Sleep Quality",
    "stress_level": "Stress Level",
    "symptom-frequency": "Symptom Frequency",
    "medication-adherence": "Medication Adherence",
    "flare-severity": "Flare Severity",
}


@dataclass(frozen=True)
class SubEntrySpec:
    """Where a derived metric kind lives inside a daily record"""
    collection: str
    id_field: str
    value_field: str
    unit: str
    label: str


DERIVED_KINDS: Dict[str, SubEntrySpec] = {
    "symptom": SubEntrySpec("symptoms", "symptom_id", "severity", "severity", "Symptom Severity"),
    "trigger": SubEntrySpec("triggers", "trigger_id", "intensity", "intensity", "Trigger Intensity"),
    "medication": SubEntrySpec("medications", "medication_id", "taken", "taken", "Medication Taken"),
}


# ----------------------------------------------------------------------------
# Record access helpers
# ----------------------------------------------------------------------------

def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a mapping or an attribute object"""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, numbers.Real):
        return float(value)
    return None


def _record_day(record: Any) -> Optional[date]:
    value = _field(record, "date")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def day_to_epoch_ms(day: date) -> float:
    """Epoch milliseconds of UTC midnight for a calendar day"""
    midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return (midnight - _EPOCH).total_seconds() * 1000.0


def _start_of_week(day: date) -> date:
    # Weeks start on Sunday
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _bucket_day(day: date, granularity: str) -> date:
    if granularity == "weekly":
        return _start_of_week(day)
    if granularity == "monthly":
        return day.replace(day=1)
    return day


# ----------------------------------------------------------------------------
# Extraction strategies
# ----------------------------------------------------------------------------

def _direct_series(records: Iterable[Any], metric: str) -> MetricSeries:
    points: List[Point] = []
    used: List[Any] = []

    for record in records:
        day = _record_day(record)
        value = _field(record, metric)
        if day is None or isinstance(value, bool):
            continue
        y = _as_number(value)
        if y is None:
            continue
        points.append(Point(x=day_to_epoch_ms(day), y=y))
        used.append(record)

    return MetricSeries(
        points=points,
        raw=used,
        metadata=MetricMetadata(label=METRIC_LABELS.get(metric, metric), unit="score"),
    )


def _derived_series(records: Iterable[Any], spec: SubEntrySpec, item_id: str) -> MetricSeries:
    points: List[Point] = []
    used: List[Any] = []
    match_all = item_id == "all"

    for record in records:
        day = _record_day(record)
        if day is None:
            continue
        x = day_to_epoch_ms(day)

        values = []
        for entry in _field(record, spec.collection) or []:
            if not match_all and str(_field(entry, spec.id_field)) != item_id:
                continue
            y = _as_number(_field(entry, spec.value_field))
            if y is not None:
                values.append(y)

        if not values:
            continue

        if match_all:
            points.extend(Point(x=x, y=y) for y in values)
        else:
            # Duplicate sub-entries for one day collapse to the worst value
            points.append(Point(x=x, y=max(values)))
        used.append(record)

    label = f"{spec.label} ({item_id})"
    return MetricSeries(
        points=points,
        raw=used,
        metadata=MetricMetadata(label=label, unit=spec.unit),
    )


def _symptom_frequency_series(records: Iterable[Any], granularity: str) -> MetricSeries:
    buckets: "OrderedDict[date, int]" = OrderedDict()
    total = 0

    for record in records:
        day = _record_day(record)
        if day is None:
            continue
        count = len(_field(record, "symptoms") or [])
        bucket = _bucket_day(day, granularity)
        buckets[bucket] = buckets.get(bucket, 0) + count
        total += count

    ordered = sorted(buckets.items())
    points = [Point(x=day_to_epoch_ms(bucket), y=float(count)) for bucket, count in ordered]
    raw = [{"date": bucket.isoformat(), "count": count} for bucket, count in ordered]

    return MetricSeries(
        points=points,
        raw=raw,
        metadata=MetricMetadata(
            label=f"{METRIC_LABELS['symptom-frequency']} ({granularity})",
            unit="occurrences",
            granularity=granularity,
            summary={"total_occurrences": total, "buckets": len(ordered)},
        ),
    )


def _medication_adherence_series(records: Iterable[Any]) -> MetricSeries:
    points: List[Point] = []
    raw: List[Dict[str, Any]] = []
    total_scheduled = 0
    total_taken = 0

    for record in records:
        day = _record_day(record)
        entries = _field(record, "medications") or []
        if day is None or not entries:
            continue
        taken = sum(1 for entry in entries if _field(entry, "taken"))
        adherence = round(taken / len(entries) * 100, 2)
        total_scheduled += len(entries)
        total_taken += taken
        points.append(Point(x=day_to_epoch_ms(day), y=adherence))
        raw.append({
            "date": day.isoformat(),
            "scheduled": len(entries),
            "taken": taken,
            "skipped": len(entries) - taken,
            "adherence": adherence,
        })

    overall = round(total_taken / total_scheduled * 100, 2) if total_scheduled else 0.0

    return MetricSeries(
        points=points,
        raw=raw,
        metadata=MetricMetadata(
            label=METRIC_LABELS["medication-adherence"],
            unit="percentage",
            summary={
                "overall_adherence": overall,
                "total_scheduled": total_scheduled,
                "total_taken": total_taken,
            },
        ),
    )


def _flare_severity_series(records: Iterable[Any], window: Optional[DateWindow]) -> MetricSeries:
    """
    One point per severity history entry of every flare in the records.

    Flares are listed under each daily record's "flares" collection and the
    same flare may repeat across days, so entries are keyed by
    (flare id, timestamp). Entry timestamps are epoch milliseconds; entries
    outside the window are dropped.
    """
    if window is not None:
        window_start = window.start.timestamp() * 1000.0
        window_end = window.end.timestamp() * 1000.0

    flare_ids = set()
    samples: Dict[tuple, Dict[str, Any]] = {}

    for record in records:
        for flare in _field(record, "flares") or []:
            flare_id = str(_field(flare, "id", _field(flare, "flare_id")))
            flare_ids.add(flare_id)

            for entry in _field(flare, "severity_history") or []:
                timestamp = _field(entry, "timestamp")
                severity = _field(entry, "severity")
                if isinstance(timestamp, bool) or not isinstance(timestamp, numbers.Real):
                    continue
                if isinstance(severity, bool) or not isinstance(severity, numbers.Real):
                    continue
                if window is not None and not (window_start <= timestamp <= window_end):
                    continue
                samples[(flare_id, float(timestamp))] = {
                    "flare_id": flare_id,
                    "timestamp": float(timestamp),
                    "severity": float(severity),
                    "status": _field(entry, "status"),
                }

    raw = sorted(samples.values(), key=lambda row: row["timestamp"])
    points = [Point(x=row["timestamp"], y=row["severity"]) for row in raw]
    average = round(sum(row["severity"] for row in raw) / len(raw), 2) if raw else 0.0

    return MetricSeries(
        points=points,
        raw=raw,
        metadata=MetricMetadata(
            label=METRIC_LABELS["flare-severity"],
            unit="severity",
            summary={
                "flare_count": len(flare_ids),
                "samples": len(raw),
                "average_severity": average,
            },
        ),
    )


def _empty_series(metric: str) -> MetricSeries:
    return MetricSeries(points=[], raw=[], metadata=MetricMetadata(label="Unknown Metric"))


# ----------------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------------

@log_performance(logger, "build_series")
def build_series(
    records: Iterable[Any],
    metric: str,
    window: Optional[DateWindow] = None,
) -> MetricSeries:
    """
    Build a MetricSeries for a metric from daily records.

    Args:
        records: Daily records (mappings or objects with a `date` field)
        metric: Metric identifier, see module docstring
        window: Range the records were fetched for; bounds flare severity
            entries, which carry their own timestamps

    Returns:
        MetricSeries with points sorted by x
    """
    records = list(records or [])
    kind, sep, ident = (metric or "").partition(":")
    kind = kind.strip().lower()
    ident = ident.strip()

    builder: Optional[Callable[[], MetricSeries]] = None

    if kind == "symptom-frequency":
        granularity = (ident.split(":")[-1] or "daily").lower() if ident else "daily"
        if granularity in GRANULARITIES:
            builder = lambda: _symptom_frequency_series(records, granularity)
    elif kind == "medication-adherence":
        builder = lambda: _medication_adherence_series(records)
    elif kind == "flare-severity":
        builder = lambda: _flare_severity_series(records, window)
    elif sep:
        spec = DERIVED_KINDS.get(kind)
        if spec is not None and ident:
            builder = lambda: _derived_series(records, spec, ident)
    elif kind:
        builder = lambda: _direct_series(records, metric.strip())

    if builder is None:
        logger.warning(f"Unsupported metric '{metric}'")
        return _empty_series(metric)

    series = builder()
    series.points.sort(key=lambda p: p.x)
    return series


def extract_points(
    records: Iterable[Any],
    metric: str,
    window: Optional[DateWindow] = None,
) -> List[Point]:
    """
    Map daily records to the (x, y) points of a metric.

    x is the record date at UTC midnight in epoch milliseconds.
    Returns an empty list for unknown metrics.
    """
    return build_series(records, metric, window).points
