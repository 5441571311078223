# Intel Module - Normalization Helpers
#
# Small pure functions shared by the pattern detector and the threat
# scorer: grouping, co-occurrence counting, mean / standard deviation,
# exponential time decay and linear range normalisation.
#
# Degenerate inputs never raise: an empty sample has mean 0 and
# standard deviation 0, a missing date has decay 1.

import math
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")

SECONDS_PER_DAY = 86400.0


# ── Coercion ─────────────────────────────────────────────────────────

def to_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None``.

    Booleans are rejected even though they are ints.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, datetime, date or epoch seconds.

    Naive values are treated as UTC. Returns ``None`` on anything
    unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Grouping ─────────────────────────────────────────────────────────

def group_by(items: Iterable[T], key_fn: Callable[[T], Optional[Hashable]]) -> Dict[Hashable, List[T]]:
    """Group items by key, preserving first-seen key order.

    Items whose key is falsy are dropped.
    """
    groups: Dict[Hashable, List[T]] = {}
    for item in items:
        key = key_fn(item)
        if not key:
            continue
        groups.setdefault(key, []).append(item)
    return groups


def count_co_occurrences(
    items: Iterable[T],
    key_fn1: Callable[[T], Optional[Hashable]],
    key_fn2: Callable[[T], Optional[Hashable]],
) -> Dict[Tuple[Hashable, Hashable], int]:
    """Count how often two attributes appear together on one item."""
    counts: Dict[Tuple[Hashable, Hashable], int] = defaultdict(int)
    for item in items:
        key1 = key_fn1(item)
        key2 = key_fn2(item)
        if key1 and key2:
            counts[(key1, key2)] += 1
    return dict(counts)


def unique(values: Iterable[Optional[T]]) -> List[T]:
    """Distinct truthy values in first-seen order."""
    seen = set()
    out: List[T] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


# ── Statistics ───────────────────────────────────────────────────────

def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if len(values) == 0:
        return 0.0
    return float(np.std(values))


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with halves toward positive infinity (2.5 -> 3, -2.5 -> -2)."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ── Scaling ──────────────────────────────────────────────────────────

def normalize(value: float, min_value: float, max_value: float) -> float:
    """Map ``value`` linearly from [min, max] onto [0, 100], clamped."""
    if value <= min_value:
        return 0.0
    if value >= max_value:
        return 100.0
    return (value - min_value) / (max_value - min_value) * 100.0


def age_days(when: datetime, now: Optional[datetime] = None) -> float:
    now = now or utc_now()
    return (now - when).total_seconds() / SECONDS_PER_DAY


def time_decay(
    when: Optional[datetime],
    half_life_days: float,
    now: Optional[datetime] = None,
) -> float:
    """Exponential decay ``0.5 ** (age / half_life)`` in (0, 1].

    Future dates are treated as age 0.
    """
    if when is None:
        return 1.0
    age = max(0.0, age_days(when, now))
    return math.pow(0.5, age / half_life_days)
