import pytest

from moodpk.concentration_series import (
    compute_trend_from_samples,
    default_concentration_mode,
    sample_concentration_at_times,
    sample_series,
    sample_trend_concentration_at_times,
    trend_window_ms,
)
from moodpk.dosing import repeated_doses
from moodpk.pharmacokinetics import calculate_concentration
from moodpk.types import Medication, MS_PER_HOUR

H = MS_PER_HOUR
T0 = 1_700_000_000_000.0

SSRI = Medication(id="s", name="Sertraline", drug_class="SSRI", half_life=26.0,
                  volume_of_distribution=20.0, bioavailability=0.44)
STIMULANT = Medication(id="m", name="Methylphenidate", drug_class="Stimulant", half_life=3.0,
                       volume_of_distribution=2.0, bioavailability=0.3)


def test_default_mode_follows_chronicity():
    assert default_concentration_mode(SSRI) == "trend"
    assert default_concentration_mode(STIMULANT) == "instant"


def test_trend_window():
    assert trend_window_ms(SSRI) == 48 * H
    assert trend_window_ms(STIMULANT) == 10.5 * H
    short = Medication(id="x", name="x", half_life=1.0, volume_of_distribution=1.0, bioavailability=1.0)
    assert trend_window_ms(short) == 6 * H


def test_instant_samples_hide_negligible_levels():
    doses = repeated_doses(STIMULANT.id, 10.0, every_hours=24.0, count=2, start_ms=T0)
    stamps = [T0 - H, T0 + 2 * H, T0 + 23 * H + 59 * 60_000]
    values = sample_concentration_at_times(STIMULANT, doses, stamps)

    assert values[0] is None
    assert values[1] == pytest.approx(calculate_concentration(STIMULANT, doses, stamps[1]))
    assert values[1] > 0.01


def test_trailing_mean_over_irregular_times():
    stamps = [0.0, H, 2 * H, 3 * H, 4 * H]
    values = [1.0, 2.0, 3.0, None, 5.0]
    trend = compute_trend_from_samples(stamps, values, window_ms=2 * H, min_points=2)
    assert trend == [None, 1.5, 2.0, 2.5, 4.0]


def test_trend_needs_min_points():
    trend = compute_trend_from_samples([0.0, H], [1.0, 2.0], window_ms=10 * H, min_points=3)
    assert trend == [None, None]


def test_sample_series_modes():
    doses = repeated_doses(SSRI.id, 50.0, every_hours=24.0, count=14, start_ms=T0)
    stamps = [T0 + i * 6 * H for i in range(1, 40)]

    assert sample_series(SSRI, doses, stamps) == sample_trend_concentration_at_times(SSRI, doses, stamps)
    assert sample_series(SSRI, doses, stamps, mode="instant") == \
        sample_concentration_at_times(SSRI, doses, stamps)

    trend = sample_series(SSRI, doses, stamps)
    assert trend[0] is None and trend[1] is None
    assert all(v is not None and v > 0 for v in trend[2:])
