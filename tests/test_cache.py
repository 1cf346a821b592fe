import threading
import time

import pytest

from moodpk.cache import PharmacokineticCache
from moodpk.config import CacheConfig
from moodpk.dosing import repeated_doses, single_dose
from moodpk.pharmacokinetics import FORMULA_VERSION, calculate_concentration
from moodpk.types import Medication, MS_PER_HOUR

T0 = 1_700_000_000_000.0

MED_A = Medication(id="a", name="Alpha", half_life=12.0, volume_of_distribution=5.0, bioavailability=0.8)
MED_B = Medication(id="b", name="Beta", half_life=6.0, volume_of_distribution=2.0, bioavailability=0.9)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingCalculator:
    """Stands in for the engine and records every real computation."""

    def __init__(self, delay: float = 0.0):
        self.calls = 0
        self.delay = delay
        self._lock = threading.Lock()

    def __call__(self, medication, doses, target_time, body_weight):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return target_time / MS_PER_HOUR + len(doses)


def make_cache(**kwargs):
    calc = CountingCalculator()
    clock = FakeClock()
    cache = PharmacokineticCache(clock=clock, calculator=calc, **kwargs)
    return cache, calc, clock


def test_hit_is_deterministic_and_does_not_grow():
    cache, calc, _ = make_cache()
    doses = single_dose(MED_A.id, 50.0, T0)

    first = cache.get_concentration(MED_A, doses, T0 + MS_PER_HOUR)
    size = cache.get_stats().total_cache_size
    second = cache.get_concentration(MED_A, doses, T0 + MS_PER_HOUR)

    assert first == second
    assert calc.calls == 1
    stats = cache.get_stats()
    assert stats.total_cache_size == size == 1
    assert (stats.hits, stats.misses) == (1, 1)


def test_same_minute_shares_an_entry():
    cache, calc, _ = make_cache()
    doses = single_dose(MED_A.id, 50.0, T0)
    cache.get_concentration(MED_A, doses, T0)
    cache.get_concentration(MED_A, doses, T0 + 30_000)
    assert calc.calls == 1
    cache.get_concentration(MED_A, doses, T0 + 60_000)
    assert calc.calls == 2


def test_changed_dose_history_misses():
    cache, calc, _ = make_cache()
    cache.get_concentration(MED_A, single_dose(MED_A.id, 50.0, T0), T0)
    cache.get_concentration(MED_A, single_dose(MED_A.id, 75.0, T0), T0)
    assert calc.calls == 2


def test_invalidate_forces_recompute():
    cache, calc, _ = make_cache()
    doses = single_dose(MED_A.id, 50.0, T0)
    cache.get_concentration(MED_A, doses, T0)
    cache.invalidate()
    assert cache.get_stats().total_cache_size == 0
    cache.get_concentration(MED_A, doses, T0)
    assert calc.calls == 2


def test_invalidate_one_medication():
    cache, calc, _ = make_cache()
    doses_a = single_dose(MED_A.id, 50.0, T0)
    doses_b = single_dose(MED_B.id, 10.0, T0)
    cache.get_concentration(MED_A, doses_a, T0)
    cache.get_concentration(MED_B, doses_b, T0)
    cache.get_curve(MED_A, doses_a, T0, T0 + MS_PER_HOUR, points=2)

    cache.invalidate(MED_A.id)

    stats = cache.get_stats()
    assert stats.total_cache_size == 1
    assert stats.access_order_length == 1
    calls = calc.calls
    cache.get_concentration(MED_B, doses_b, T0)
    assert calc.calls == calls


def test_entries_expire_after_ttl():
    cache, calc, clock = make_cache(ttl_seconds=300.0)
    doses = single_dose(MED_A.id, 50.0, T0)
    cache.get_concentration(MED_A, doses, T0)

    clock.now = 299.0
    cache.get_concentration(MED_A, doses, T0)
    assert calc.calls == 1

    clock.now = 301.0
    cache.get_concentration(MED_A, doses, T0)
    assert calc.calls == 2


def test_least_recently_used_is_evicted():
    cache, calc, _ = make_cache(max_size=2)
    doses = single_dose(MED_A.id, 50.0, T0)
    t_a, t_b, t_c = T0, T0 + MS_PER_HOUR, T0 + 2 * MS_PER_HOUR

    cache.get_concentration(MED_A, doses, t_a)
    cache.get_concentration(MED_A, doses, t_b)
    cache.get_concentration(MED_A, doses, t_a)  # a is now most recent
    cache.get_concentration(MED_A, doses, t_c)  # evicts b

    stats = cache.get_stats()
    assert stats.total_cache_size == 2
    assert stats.evictions == 1
    assert calc.calls == 3

    cache.get_concentration(MED_A, doses, t_a)
    assert calc.calls == 3
    cache.get_concentration(MED_A, doses, t_b)
    assert calc.calls == 4


def test_formula_version_is_part_of_the_key():
    doses = single_dose(MED_A.id, 50.0, T0)
    old = PharmacokineticCache(formula_version=FORMULA_VERSION - 1)
    new = PharmacokineticCache()
    assert old.point_key(MED_A.id, doses, T0, 70.0) != new.point_key(MED_A.id, doses, T0, 70.0)
    assert new.point_key(MED_A.id, doses, T0, 70.0)[:3] == ("point", FORMULA_VERSION, MED_A.id)


def test_dose_order_does_not_change_the_key():
    cache = PharmacokineticCache()
    doses = repeated_doses(MED_A.id, 50.0, every_hours=12.0, count=3, start_ms=T0)
    assert cache.point_key(MED_A.id, doses, T0, 70.0) == \
        cache.point_key(MED_A.id, list(reversed(doses)), T0, 70.0)


def test_cached_values_match_the_engine():
    cache = PharmacokineticCache()
    doses = repeated_doses(MED_A.id, 50.0, every_hours=24.0, count=3, start_ms=T0)
    target = T0 + 30 * MS_PER_HOUR
    assert cache.get_concentration(MED_A, doses, target) == calculate_concentration(MED_A, doses, target)


def test_curve_is_cached_as_a_whole():
    cache, calc, _ = make_cache()
    doses = single_dose(MED_A.id, 50.0, T0)

    curve = cache.get_curve(MED_A, doses, T0, T0 + 4 * MS_PER_HOUR, points=4)
    assert len(curve) == 5
    assert [s.time for s in curve] == [T0 + i * MS_PER_HOUR for i in range(5)]
    assert calc.calls == 5

    again = cache.get_curve(MED_A, doses, T0, T0 + 4 * MS_PER_HOUR, points=4)
    assert again == curve
    assert calc.calls == 5
    stats = cache.get_stats()
    assert stats.curve_cache_size == 1
    assert stats.concentration_cache_size == 5


def test_clear_expired_entries():
    cache, _, clock = make_cache(ttl_seconds=10.0)
    doses = single_dose(MED_A.id, 50.0, T0)
    cache.get_concentration(MED_A, doses, T0)
    clock.now = 5.0
    cache.get_concentration(MED_A, doses, T0 + MS_PER_HOUR)

    clock.now = 12.0
    assert cache.clear_expired_entries() == 1
    assert cache.get_stats().total_cache_size == 1
    assert cache.get_stats().access_order_length == 1


def test_concurrent_callers_compute_once():
    calc = CountingCalculator(delay=0.05)
    cache = PharmacokineticCache(calculator=calc)
    doses = single_dose(MED_A.id, 50.0, T0)
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(cache.get_concentration(MED_A, doses, T0))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert calc.calls == 1
    assert len(set(results)) == 1 and len(results) == 8


def test_background_sweep_lifecycle():
    calc = CountingCalculator()
    clock = FakeClock()
    cache = PharmacokineticCache(ttl_seconds=1.0, clock=clock, calculator=calc,
                                 sweep_interval_seconds=0.01)
    cache.get_concentration(MED_A, single_dose(MED_A.id, 50.0, T0), T0)

    with cache:
        assert cache.running
        clock.now = 5.0
        deadline = time.monotonic() + 2.0
        while cache.get_stats().total_cache_size and time.monotonic() < deadline:
            time.sleep(0.01)
        assert cache.get_stats().total_cache_size == 0
    assert not cache.running


def test_rejects_bad_sizes():
    with pytest.raises(ValueError):
        PharmacokineticCache(max_size=0)
    with pytest.raises(ValueError):
        PharmacokineticCache(ttl_seconds=0.0)


def test_from_config():
    cache = PharmacokineticCache.from_config(CacheConfig(max_size=3, ttl_seconds=10.0, formula_version=7))
    assert (cache.max_size, cache.ttl_seconds, cache.formula_version) == (3, 10.0, 7)
