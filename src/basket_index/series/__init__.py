"""Bounded, minute-bucketed series of basket values."""

from basket_index.series.kv import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from basket_index.series.store import (
    MAX_POINTS,
    SeriesStore,
    merge_sample,
    minute_bucket,
    trim_series,
)

__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "MAX_POINTS",
    "MemoryKeyValueStore",
    "SeriesStore",
    "merge_sample",
    "minute_bucket",
    "trim_series",
]
