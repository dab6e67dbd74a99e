"""Series store — merge by minute bucket, trim to a bounded history, persist.

The in-memory series is authoritative for the running process; storage is
best-effort. Loading never raises and saving reports success as a bool.
"""

from __future__ import annotations

import json
import math
from typing import Any

from basket_index.exceptions import PersistenceError
from basket_index.logging import get_logger
from basket_index.models import Sample
from basket_index.series.kv import KeyValueStore

log = get_logger(__name__)

MAX_POINTS = 500
DEFAULT_KEY = "crypto_basket_timeseries_v2"

_MINUTE_MS = 60_000


def minute_bucket(epoch_ms: int | float) -> int:
    """Truncate an epoch-millis timestamp to the start of its minute."""
    ms = int(epoch_ms)
    return ms - ms % _MINUTE_MS


def merge_sample(series: list[Sample], sample: Sample) -> list[Sample]:
    """Return *series* with *sample* merged in.

    A sample in the same minute bucket as the last entry overwrites its
    value; anything else is appended.
    """
    merged = list(series)
    if merged and merged[-1].ts == sample.ts:
        merged[-1] = Sample(ts=sample.ts, value=sample.value)
    else:
        merged.append(sample)
    return merged


def trim_series(series: list[Sample], max_points: int = MAX_POINTS) -> list[Sample]:
    """Keep only the most recent *max_points* samples."""
    if len(series) <= max_points:
        return series
    return series[len(series) - max_points:]


def _is_number(v: Any) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    return math.isfinite(v)


class SeriesStore:
    """Holds the series in memory and mirrors it to a key-value store."""

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = DEFAULT_KEY,
        max_points: int = MAX_POINTS,
    ) -> None:
        self._kv = kv
        self.key = key
        self.max_points = max_points
        self._series: list[Sample] = []

    @property
    def series(self) -> list[Sample]:
        return list(self._series)

    @property
    def latest(self) -> float | None:
        return self._series[-1].value if self._series else None

    def load(self) -> list[Sample]:
        """Read the stored series, replacing the in-memory one.

        Absent keys, undecodable payloads and non-list values give an empty
        series. Entries without numeric ``ts`` and ``value`` are dropped.
        """
        self._series = self._read()
        return self.series

    def _read(self) -> list[Sample]:
        try:
            raw = self._kv.get(self.key)
        except PersistenceError:
            log.warning("series_load_failed", key=self.key, exc_info=True)
            return []
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            log.warning("series_load_failed", key=self.key, reason="invalid_json")
            return []
        if not isinstance(parsed, list):
            log.warning("series_load_failed", key=self.key, reason="not_a_list")
            return []

        samples = [
            Sample(ts=int(p["ts"]), value=float(p["value"]))
            for p in parsed
            if isinstance(p, dict) and _is_number(p.get("ts")) and _is_number(p.get("value"))
        ]
        dropped = len(parsed) - len(samples)
        if dropped:
            log.info("series_entries_dropped", key=self.key, dropped=dropped)
        return trim_series(samples, self.max_points)

    def save(self, series: list[Sample] | None = None) -> bool:
        """Write the trimmed series; returns False if storage failed."""
        to_write = trim_series(self._series if series is None else series, self.max_points)
        payload = json.dumps([s.model_dump() for s in to_write]).encode()
        try:
            self._kv.set(self.key, payload)
        except PersistenceError:
            log.warning("series_save_failed", key=self.key, points=len(to_write), exc_info=True)
            return False
        return True

    def apply(self, sample: Sample) -> list[Sample]:
        """Merge *sample*, trim, persist; returns the new in-memory series."""
        self._series = trim_series(merge_sample(self._series, sample), self.max_points)
        self.save()
        return self.series
