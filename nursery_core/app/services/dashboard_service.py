"""
Dashboard aggregation over raw seedling and batch rows.

All functions are pure: they take the full collections as fetched from the
store and recompute every figure from scratch. A missing count is 0.
"""

from collections import OrderedDict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Sequence

Row = Mapping[str, Any]


def _count(row: Row, key: str = "count") -> int:
    return int(row.get(key) or 0)


def _group(seedlings: Iterable[Row], key: str) -> List[Dict[str, Any]]:
    totals: "OrderedDict[str, int]" = OrderedDict()
    for row in seedlings:
        label = row.get(key)
        totals[label] = totals.get(label, 0) + _count(row)
    return [{"label": label, "count": count} for label, count in totals.items()]


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def total(seedlings: Iterable[Row]) -> int:
    return sum(_count(row) for row in seedlings)


def species_stats(seedlings: Iterable[Row]) -> List[Dict[str, Any]]:
    """Stock per species, in the order each species first appears"""
    return _group(seedlings, "species")


def height_stats(seedlings: Iterable[Row]) -> List[Dict[str, Any]]:
    """Stock per height-range label; labels are not parsed or binned"""
    return _group(seedlings, "height_range")


def growth_trend(seedlings: Iterable[Row], batches: Iterable[Row]) -> List[Dict[str, Any]]:
    """
    Stock per batch collection date, oldest first.

    Seedlings whose batch_id is empty or points at no known batch are left out.
    """
    collected = {b["id"]: _as_date(b["collected_at"]) for b in batches if b.get("collected_at")}
    totals: Dict[date, int] = {}
    for row in seedlings:
        day = collected.get(row.get("batch_id"))
        if day is None:
            continue
        totals[day] = totals.get(day, 0) + _count(row)
    return [{"collected_at": day, "count": totals[day]} for day in sorted(totals)]


def survival_rate(seedlings: Sequence[Row]) -> float:
    stock = total(seedlings)
    if stock == 0:
        return 0.0
    survived = sum(_count(row, "survived_count") for row in seedlings)
    return round(survived / stock * 100, 2)


def seasonal_trend(seedlings: Iterable[Row], batches: Iterable[Row]) -> List[Dict[str, Any]]:
    """Stock per (year, month) of the batch collection date, chronological"""
    totals: Dict[tuple, int] = {}
    for point in growth_trend(seedlings, batches):
        key = (point["collected_at"].year, point["collected_at"].month)
        totals[key] = totals.get(key, 0) + point["count"]
    return [{"year": y, "month": m, "count": totals[(y, m)]} for y, m in sorted(totals)]


def summarize(seedlings: Sequence[Row], batches: Sequence[Row]) -> Dict[str, Any]:
    species = species_stats(seedlings)
    heights = height_stats(seedlings)
    return {
        "total": total(seedlings),
        "species_count": len(species),
        "height_range_count": len(heights),
        "species_stats": species,
        "height_stats": heights,
        "growth_trend": growth_trend(seedlings, batches),
        "survival_rate": survival_rate(seedlings),
        "seasonal_trend": seasonal_trend(seedlings, batches),
    }
