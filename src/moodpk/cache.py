# src/moodpk/cache.py
from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Sequence

from .config import CacheConfig
from .helpers import dose_fingerprint
from .pharmacokinetics import (
    DEFAULT_BODY_WEIGHT_KG,
    FORMULA_VERSION,
    calculate_concentration,
    sample_times,
)
from .types import ConcentrationSample, Dose, Medication, MS_PER_MINUTE

logger = logging.getLogger(__name__)

Calculator = Callable[[Medication, Sequence[Dose], float, float], float]

_MISSING = object()


@dataclass(frozen=True)
class CacheStats:
    concentration_cache_size: int
    curve_cache_size: int
    total_cache_size: int
    access_order_length: int
    hits: int
    misses: int
    evictions: int


@dataclass(frozen=True)
class _Entry:
    value: Any
    inserted_at: float
    version: int


def _minute_bucket(t: float):
    # non-finite times stay as-is: they never compare equal, so never hit
    return math.floor(t / MS_PER_MINUTE) if math.isfinite(t) else t


class PharmacokineticCache:
    """
    Thread-safe TTL + LRU cache over `calculate_concentration`.

    clock      : zero-argument callable returning seconds (monotonic by default)
    calculator : the concentration function to memoize; injectable for tests
    """

    def __init__(self, max_size: int = 500, ttl_seconds: float = 300.0,
                 formula_version: int = FORMULA_VERSION, *,
                 clock: Callable[[], float] = time.monotonic,
                 calculator: Calculator = calculate_concentration,
                 sweep_interval_seconds: float = 60.0):
        if max_size <= 0:
            raise ValueError(f"max_size must be > 0 (got {max_size}).")
        if not ttl_seconds > 0:
            raise ValueError(f"ttl_seconds must be > 0 (got {ttl_seconds}).")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.formula_version = formula_version
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._calculator = calculator

        self._points: dict[Hashable, _Entry] = {}
        self._curves: dict[Hashable, _Entry] = {}
        self._access_order: OrderedDict[Hashable, None] = OrderedDict()
        self._lock = threading.RLock()
        self._inflight: dict[Hashable, threading.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    @classmethod
    def from_config(cls, config: CacheConfig, **kwargs) -> "PharmacokineticCache":
        return cls(max_size=config.max_size, ttl_seconds=config.ttl_seconds,
                   formula_version=config.formula_version,
                   sweep_interval_seconds=config.sweep_interval_seconds, **kwargs)

    # --------------------------
    # Keys
    # --------------------------
    def point_key(self, medication_id: str, doses: Sequence[Dose], target_time: float,
                  body_weight: float) -> tuple:
        return ("point", self.formula_version, medication_id, dose_fingerprint(doses),
                _minute_bucket(target_time), body_weight)

    def curve_key(self, medication_id: str, doses: Sequence[Dose], start: float, end: float,
                  points: int, body_weight: float) -> tuple:
        return ("curve", self.formula_version, medication_id, dose_fingerprint(doses),
                _minute_bucket(start), _minute_bucket(end), points, body_weight)

    # --------------------------
    # Bookkeeping (callers hold self._lock)
    # --------------------------
    def _touch(self, key: Hashable) -> None:
        self._access_order[key] = None
        self._access_order.move_to_end(key)
        if len(self._access_order) > self.max_size:
            oldest, _ = self._access_order.popitem(last=False)
            self._points.pop(oldest, None)
            self._curves.pop(oldest, None)
            self._evictions += 1
            logger.debug("Evicted least recently used cache key for %r", oldest[2])

    def _lookup(self, store: dict, key: Hashable):
        entry = store.get(key)
        if entry is not None and self._clock() - entry.inserted_at < self.ttl_seconds:
            self._touch(key)
            self._hits += 1
            return entry.value
        return _MISSING

    def _drop(self, key: Hashable) -> None:
        self._points.pop(key, None)
        self._curves.pop(key, None)
        self._access_order.pop(key, None)

    def _get_or_compute(self, store: dict, key: Hashable, compute: Callable[[], Any]):
        with self._lock:
            value = self._lookup(store, key)
            if value is not _MISSING:
                return value
            key_lock = self._inflight.setdefault(key, threading.Lock())

        # one computation per key; concurrent callers wait, then hit
        with key_lock:
            with self._lock:
                value = self._lookup(store, key)
                if value is not _MISSING:
                    return value
                self._misses += 1
            try:
                value = compute()
                with self._lock:
                    store[key] = _Entry(value=value, inserted_at=self._clock(), version=self.formula_version)
                    self._touch(key)
            finally:
                with self._lock:
                    self._inflight.pop(key, None)
        return value

    # --------------------------
    # Public API
    # --------------------------
    def get_concentration(self, medication: Medication, doses: Sequence[Dose], target_time: float,
                          body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> float:
        key = self.point_key(medication.id, doses, target_time, body_weight)
        return self._get_or_compute(
            self._points, key,
            lambda: self._calculator(medication, doses, target_time, body_weight),
        )

    def get_curve(self, medication: Medication, doses: Sequence[Dose], start: float, end: float,
                  points: int = 100, body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> list[ConcentrationSample]:
        key = self.curve_key(medication.id, doses, start, end, points, body_weight)

        def compute() -> tuple[ConcentrationSample, ...]:
            return tuple(
                ConcentrationSample(time=t, concentration=self.get_concentration(medication, doses, t, body_weight))
                for t in sample_times(start, end, points)
            )

        return list(self._get_or_compute(self._curves, key, compute))

    def invalidate(self, medication_id: str | None = None) -> None:
        """Drop everything, or only the entries computed for one medication."""
        with self._lock:
            if medication_id is None:
                self._points.clear()
                self._curves.clear()
                self._access_order.clear()
                logger.debug("Cache cleared")
                return
            doomed = [k for k in self._access_order if k[2] == medication_id]
            for key in doomed:
                self._drop(key)
            logger.debug("Invalidated %d cache entries for %r", len(doomed), medication_id)

    def clear_expired_entries(self) -> int:
        """Purge every entry older than the TTL; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for store in (self._points, self._curves)
                       for k, entry in store.items() if now - entry.inserted_at >= self.ttl_seconds]
            for key in expired:
                self._drop(key)
        if expired:
            logger.debug("Expired %d cache entries", len(expired))
        return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                concentration_cache_size=len(self._points),
                curve_cache_size=len(self._curves),
                total_cache_size=len(self._points) + len(self._curves),
                access_order_length=len(self._access_order),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    # --------------------------
    # Background sweep lifecycle
    # --------------------------
    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> "PharmacokineticCache":
        """Start the periodic expiry sweep on its own daemon thread."""
        if self.running:
            return self
        self._stop_event.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="moodpk-cache-sweeper", daemon=True)
        self._sweeper.start()
        logger.debug("Cache sweeper started (every %.1fs)", self.sweep_interval_seconds)
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.sweep_interval_seconds):
            self.clear_expired_entries()

    def __enter__(self) -> "PharmacokineticCache":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
