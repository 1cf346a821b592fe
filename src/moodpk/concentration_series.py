# src/moodpk/concentration_series.py
from __future__ import annotations

import math
from collections import deque
from typing import Literal, Sequence

from .pharmacokinetics import DEFAULT_BODY_WEIGHT_KG, calculate_concentration, is_chronic_medication
from .types import Dose, Medication, MS_PER_HOUR

ConcentrationMode = Literal["instant", "trend"]

MIN_NON_ZERO = 0.01
CHRONIC_TREND_WINDOW_H = 48.0
MIN_ACUTE_TREND_WINDOW_H = 6.0
ACUTE_TREND_HALF_LIVES = 3.5


def default_concentration_mode(medication: Medication) -> ConcentrationMode:
    return "trend" if is_chronic_medication(medication) else "instant"


def trend_window_ms(medication: Medication) -> float:
    if is_chronic_medication(medication):
        hours = CHRONIC_TREND_WINDOW_H
    else:
        hours = max(MIN_ACUTE_TREND_WINDOW_H, ACUTE_TREND_HALF_LIVES * medication.half_life)
    return round(hours * MS_PER_HOUR)


def sample_concentration_at_times(medication: Medication, doses: Sequence[Dose], timestamps: Sequence[float],
                                  body_weight: float = DEFAULT_BODY_WEIGHT_KG,
                                  min_non_zero: float = MIN_NON_ZERO) -> list[float | None]:
    """Concentration at each timestamp, None where it is not above min_non_zero."""
    samples: list[float | None] = []
    for t in timestamps:
        conc = calculate_concentration(medication, doses, t, body_weight)
        samples.append(conc if conc > min_non_zero else None)
    return samples


def compute_trend_from_samples(timestamps: Sequence[float], values: Sequence[float | None],
                               window_ms: float, min_points: int = 3) -> list[float | None]:
    """
    Trailing mean over [t - window_ms, t] for irregular timestamps. Positions
    whose window holds fewer than min_points valid values stay None.
    """
    result: list[float | None] = [None] * len(values)
    window: deque[tuple[float, float]] = deque()
    total = 0.0

    for i, (t, v) in enumerate(zip(timestamps, values)):
        if v is not None and math.isfinite(v):
            window.append((t, v))
            total += v

        cutoff = t - window_ms
        while window and window[0][0] < cutoff:
            total -= window.popleft()[1]

        if len(window) >= min_points:
            result[i] = total / len(window)
    return result


def sample_trend_concentration_at_times(medication: Medication, doses: Sequence[Dose],
                                        timestamps: Sequence[float],
                                        body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> list[float | None]:
    raw = sample_concentration_at_times(medication, doses, timestamps, body_weight)
    return compute_trend_from_samples(timestamps, raw, trend_window_ms(medication), 3)


def sample_series(medication: Medication, doses: Sequence[Dose], timestamps: Sequence[float],
                  mode: ConcentrationMode | None = None,
                  body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> list[float | None]:
    """Sample in the requested mode, defaulting to the medication's natural one."""
    mode = mode or default_concentration_mode(medication)
    if mode == "trend":
        return sample_trend_concentration_at_times(medication, doses, timestamps, body_weight)
    return sample_concentration_at_times(medication, doses, timestamps, body_weight)
