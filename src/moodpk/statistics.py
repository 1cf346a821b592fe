# src/moodpk/statistics.py
from __future__ import annotations

import math
from collections import Counter
from typing import Mapping, Sequence

import numpy as np

from .types import (
    CorrelationMethod,
    CorrelationResult,
    DescriptiveStats,
    LagCorrelation,
    LaggedCorrelation,
    MoodEntry,
    MultiVariableCorrelation,
    OutlierResult,
    RegressionResult,
    SeriesTransform,
    Significance,
    TimeSeriesPoint,
    MS_PER_HOUR,
)

MIN_CORRELATION_SAMPLES = 3
R_CLAMP = 0.9999999999

# Continued fraction controls (Numerical Recipes betacf)
_BETACF_MAXIT = 200
_BETACF_EPS = 3e-10
_BETACF_FPMIN = 1e-30

_LANCZOS = (
    676.5203681218851,
    -1259.1392167224028,
    771.3234287776531,
    -176.6150291621406,
    12.507343278686905,
    -0.13857109526572012,
    9.984369578019572e-6,
    1.5056327351493116e-7,
)


def significance_level(p_value: float) -> Significance:
    if p_value < 0.001:
        return "high"
    if p_value < 0.01:
        return "medium"
    if p_value < 0.05:
        return "low"
    return "none"


def _neutral(n: int, method: CorrelationMethod) -> CorrelationResult:
    return CorrelationResult(value=0.0, p_value=1.0, sample_size=n,
                             significance="none", method=method)


# --------------------------
# Special functions
# --------------------------
def log_gamma(z: float) -> float:
    """Lanczos approximation of ln(Gamma(z)), reflection for z < 0.5."""
    if z < 0.5:
        return math.log(math.pi) - math.log(math.sin(math.pi * z)) - log_gamma(1 - z)

    x = 0.9999999999998099
    t = z - 1
    for i, p in enumerate(_LANCZOS):
        x += p / (t + i + 1)
    g = len(_LANCZOS) - 0.5
    tmp = t + g
    return 0.5 * math.log(2 * math.pi) + (t + 0.5) * math.log(tmp) - tmp + math.log(x)


def log_beta(a: float, b: float) -> float:
    return log_gamma(a) + log_gamma(b) - log_gamma(a + b)


def _beta_continued_fraction(a: float, b: float, x: float) -> float:
    qab = a + b
    qap = a + 1
    qam = a - 1

    c = 1.0
    d = 1 - qab * x / qap
    if abs(d) < _BETACF_FPMIN:
        d = _BETACF_FPMIN
    d = 1 / d
    h = d

    for m in range(1, _BETACF_MAXIT + 1):
        m2 = 2 * m

        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1 + aa * d
        if abs(d) < _BETACF_FPMIN:
            d = _BETACF_FPMIN
        c = 1 + aa / c
        if abs(c) < _BETACF_FPMIN:
            c = _BETACF_FPMIN
        d = 1 / d
        h *= d * c

        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1 + aa * d
        if abs(d) < _BETACF_FPMIN:
            d = _BETACF_FPMIN
        c = 1 + aa / c
        if abs(c) < _BETACF_FPMIN:
            c = _BETACF_FPMIN
        d = 1 / d
        delta = d * c
        h *= delta

        if abs(delta - 1) < _BETACF_EPS:
            break

    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """I_x(a, b), switching to the symmetric form where it converges faster."""
    if x <= 0:
        return 0.0
    if x >= 1:
        return 1.0

    bt = math.exp(a * math.log(x) + b * math.log(1 - x) - log_beta(a, b))
    if x < (a + 1) / (a + b + 2):
        return bt * _beta_continued_fraction(a, b, x) / a
    return 1 - bt * _beta_continued_fraction(b, a, 1 - x) / b


def p_value_from_t(t: float, df: float) -> float:
    """Two-tailed Student-t p-value: I_{df/(df+t^2)}(df/2, 1/2)."""
    if not math.isfinite(t) or not math.isfinite(df) or df <= 0:
        return 1.0
    p = regularized_incomplete_beta(df / (df + t * t), df / 2, 0.5)
    return min(1.0, max(0.0, p))


# --------------------------
# Correlation
# --------------------------
def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> CorrelationResult:
    """Product-moment correlation with a Student-t significance test."""
    if len(x) != len(y) or len(x) < MIN_CORRELATION_SAMPLES:
        return _neutral(len(x), "pearson")

    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    n = xa.size
    if not (np.all(np.isfinite(xa)) and np.all(np.isfinite(ya))):
        return _neutral(n, "pearson")

    dx = xa - xa.mean()
    dy = ya - ya.mean()
    denominator = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denominator == 0:
        return _neutral(n, "pearson")

    r = float(np.dot(dx, dy)) / denominator
    r = max(-R_CLAMP, min(R_CLAMP, r))

    t = r * math.sqrt((n - 2) / (1 - r * r))
    p_value = p_value_from_t(t, n - 2)
    confidence = 1.96 / math.sqrt(n - 3) if n > 3 else math.inf

    return CorrelationResult(value=r, p_value=p_value, sample_size=n,
                             significance=significance_level(p_value),
                             method="pearson", confidence=confidence)


def rank_data(data: Sequence[float]) -> list[float]:
    """1-based fractional ranks; tied values share their average rank."""
    order = sorted(range(len(data)), key=lambda i: data[i])
    ranks = [0.0] * len(data)
    i = 0
    while i < len(order):
        j = i + 1
        while j < len(order) and data[order[j]] == data[order[i]]:
            j += 1
        avg_rank = (i + 1 + j) / 2
        for k in range(i, j):
            ranks[order[k]] = avg_rank
        i = j
    return ranks


def spearman_correlation(x: Sequence[float], y: Sequence[float]) -> CorrelationResult:
    if len(x) != len(y) or len(x) < MIN_CORRELATION_SAMPLES:
        return _neutral(len(x), "spearman")
    if not all(math.isfinite(v) for v in (*x, *y)):
        return _neutral(len(x), "spearman")
    result = pearson_correlation(rank_data(x), rank_data(y))
    return CorrelationResult(value=result.value, p_value=result.p_value,
                             sample_size=result.sample_size, significance=result.significance,
                             method="spearman", confidence=result.confidence)


def _first_differences(data: Sequence[float]) -> list[float]:
    diff = [math.nan] * len(data)
    for i in range(1, len(data)):
        prev, curr = data[i - 1], data[i]
        diff[i] = curr - prev if math.isfinite(prev) and math.isfinite(curr) else math.nan
    return diff


def cross_correlation(x: Sequence[float], y: Sequence[float], max_lag: int = 24,
                      min_pairs: int = 5, method: CorrelationMethod = "pearson",
                      transform: SeriesTransform = "levels") -> list[LagCorrelation]:
    """
    Correlate x[i] with y[i + lag] for every lag in [-max_lag, max_lag].

    A positive lag means y follows x. Pairs with a non-finite member are
    dropped; lags left with fewer than `min_pairs` pairs report the neutral
    result with the surviving pair count.
    """
    length = min(len(x), len(y))
    tx = _first_differences(x) if transform == "differences" else list(x)
    ty = _first_differences(y) if transform == "differences" else list(y)
    correlate = spearman_correlation if method == "spearman" else pearson_correlation

    result: list[LagCorrelation] = []
    for lag in range(-max_lag, max_lag + 1):
        if lag >= 0:
            pairs = ((tx[i], ty[i + lag]) for i in range(0, length - lag))
        else:
            pairs = ((tx[i], ty[i + lag]) for i in range(-lag, length))
        kept = [(a, b) for a, b in pairs if math.isfinite(a) and math.isfinite(b)]

        if len(kept) >= min_pairs:
            xs, ys = zip(*kept)
            corr = correlate(xs, ys)
            result.append(LagCorrelation(lag=lag, correlation=corr.value, n=corr.sample_size,
                                         p_value=corr.p_value, significance=corr.significance))
        else:
            result.append(LagCorrelation(lag=lag, correlation=0.0, n=len(kept),
                                         p_value=1.0, significance="none"))
    return result


def best_lag(sweep: Sequence[LagCorrelation], min_pairs: int = 0) -> LagCorrelation | None:
    """Row with the largest |correlation| among lags with at least min_pairs pairs."""
    candidates = [row for row in sweep if row.n >= min_pairs] or list(sweep)
    if not candidates:
        return None
    return max(candidates, key=lambda row: abs(row.correlation))


def autocorrelation(data: Sequence[float], max_lag: int = 24) -> list[float]:
    n = len(data)
    if n == 0:
        return []
    values = np.asarray(data, dtype=float)
    centered = values - values.mean()
    denominator = float(np.dot(centered, centered))

    result: list[float] = []
    for lag in range(0, min(max_lag, n - 1) + 1):
        numerator = float(np.dot(centered[:n - lag], centered[lag:]))
        result.append(numerator / denominator if denominator > 0 else 0.0)
    return result


def multi_variable_correlation(data: Mapping[str, Sequence[float]]) -> MultiVariableCorrelation:
    """Pairwise Pearson matrix; significant pairs sorted by |r| descending."""
    variables = list(data.keys())
    n = len(variables)
    matrix = [[0.0] * n for _ in range(n)]
    p_matrix = [[0.0] * n for _ in range(n)]
    significant: list[tuple[str, str, float, float]] = []

    for i in range(n):
        for j in range(n):
            if i == j:
                matrix[i][j] = 1.0
                continue
            res = pearson_correlation(data[variables[i]], data[variables[j]])
            matrix[i][j] = res.value
            p_matrix[i][j] = res.p_value
            if i < j and res.p_value < 0.05:
                significant.append((variables[i], variables[j], res.value, res.p_value))

    significant.sort(key=lambda pair: abs(pair[2]), reverse=True)
    return MultiVariableCorrelation(variables=variables, correlation_matrix=matrix,
                                    p_value_matrix=p_matrix, significant_pairs=significant)


# --------------------------
# Regression & description
# --------------------------
def linear_regression(x: Sequence[float], y: Sequence[float]) -> RegressionResult:
    n = len(x)
    empty = RegressionResult(slope=0.0, intercept=0.0, r_squared=0.0, standard_error=0.0, predictions=())
    if n < 2 or n != len(y):
        return empty

    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    sxx = float(np.dot(xa - xa.mean(), xa - xa.mean()))
    if sxx == 0:
        return empty

    slope = float(np.dot(xa - xa.mean(), ya - ya.mean())) / sxx
    intercept = float(ya.mean()) - slope * float(xa.mean())
    predictions = slope * xa + intercept

    ss_total = float(np.sum((ya - ya.mean()) ** 2))
    ss_residual = float(np.sum((ya - predictions) ** 2))
    r_squared = 1 - ss_residual / ss_total if ss_total > 0 else 0.0
    standard_error = math.sqrt(ss_residual / (n - 2)) if n > 2 else 0.0

    return RegressionResult(slope=slope, intercept=intercept, r_squared=r_squared,
                            standard_error=standard_error,
                            predictions=tuple(float(p) for p in predictions))


def descriptive_stats(data: Sequence[float]) -> DescriptiveStats:
    """
    Population moments plus order statistics. Quartiles are the lower
    nearest-rank values sorted[floor(n*0.25)] and sorted[floor(n*0.75)];
    kurtosis is excess kurtosis.
    """
    n = len(data)
    if n == 0:
        return DescriptiveStats(mean=0.0, median=0.0, mode=0.0, std_dev=0.0, variance=0.0,
                                min=0.0, max=0.0, q1=0.0, q3=0.0, skewness=0.0, kurtosis=0.0)

    values = np.asarray(data, dtype=float)
    ordered = np.sort(values)
    mean = float(values.mean())
    median = float(np.median(ordered))
    mode = float(Counter(data).most_common(1)[0][0])
    variance = float(np.mean((values - mean) ** 2))
    std_dev = math.sqrt(variance)

    skewness = 0.0
    kurtosis = 0.0
    if std_dev > 0:
        z = (values - mean) / std_dev
        if n > 2:
            skewness = float(np.mean(z ** 3))
        if n > 3:
            kurtosis = float(np.mean(z ** 4)) - 3

    return DescriptiveStats(mean=mean, median=median, mode=mode, std_dev=std_dev, variance=variance,
                            min=float(ordered[0]), max=float(ordered[-1]),
                            q1=float(ordered[int(n * 0.25)]), q3=float(ordered[int(n * 0.75)]),
                            skewness=skewness, kurtosis=kurtosis)


def detect_outliers(data: Sequence[float]) -> OutlierResult:
    """Values outside [Q1 - 1.5 IQR, Q3 + 1.5 IQR]."""
    if len(data) == 0:
        return OutlierResult(indices=(), values=())
    ordered = sorted(data)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr

    hits = [(i, v) for i, v in enumerate(data) if v < lower or v > upper]
    return OutlierResult(indices=tuple(i for i, _ in hits), values=tuple(v for _, v in hits))


# --------------------------
# Time-series helpers
# --------------------------
def mood_points(entries: Sequence[MoodEntry], attribute: str = "mood_score") -> list[TimeSeriesPoint]:
    """One point per entry that recorded `attribute`, in time order."""
    points = []
    for entry in entries:
        value = getattr(entry, attribute)
        if value is not None and math.isfinite(value):
            points.append(TimeSeriesPoint(timestamp=entry.timestamp, value=float(value)))
    points.sort(key=lambda p: p.timestamp)
    return points


def align_time_series(series1: Sequence[TimeSeriesPoint], series2: Sequence[TimeSeriesPoint],
                      window_ms: float = MS_PER_HOUR) -> tuple[list[float], list[float], list[float]]:
    """
    Pair points whose timestamps fall in the same window. The first point of
    series2 in a window wins. Returns (aligned1, aligned2, window starts).
    """
    lookup: dict[float, float] = {}
    for point in series2:
        lookup.setdefault(math.floor(point.timestamp / window_ms) * window_ms, point.value)

    aligned1: list[float] = []
    aligned2: list[float] = []
    stamps: list[float] = []
    for point in series1:
        bucket = math.floor(point.timestamp / window_ms) * window_ms
        if bucket in lookup:
            aligned1.append(point.value)
            aligned2.append(lookup[bucket])
            stamps.append(bucket)
    return aligned1, aligned2, stamps


def compute_lagged_correlation(times: Sequence[float], x: Sequence[float | None],
                               y: Sequence[float | None], lag_hours: float) -> LaggedCorrelation:
    """
    Pearson r between x(t) and y(t + lag) on a uniformly spaced series.
    The sample spacing is read from the first two timestamps.
    """
    if len(times) < MIN_CORRELATION_SAMPLES:
        return LaggedCorrelation(lag_hours=lag_hours, r=0.0, n=0)
    interval = times[1] - times[0]
    if not interval or interval <= 0:
        return LaggedCorrelation(lag_hours=lag_hours, r=0.0, n=0)

    shift = round(lag_hours * MS_PER_HOUR / interval)
    length = min(len(times), len(x), len(y))
    if shift >= 0:
        idx = ((i, i + shift) for i in range(0, length - shift))
    else:
        idx = ((i, i + shift) for i in range(-shift, length))

    xs: list[float] = []
    ys: list[float] = []
    for i, j in idx:
        a, b = x[i], y[j]
        if a is not None and b is not None and math.isfinite(a) and math.isfinite(b):
            xs.append(a)
            ys.append(b)

    if len(xs) < MIN_CORRELATION_SAMPLES:
        return LaggedCorrelation(lag_hours=lag_hours, r=0.0, n=len(xs))
    return LaggedCorrelation(lag_hours=lag_hours, r=pearson_correlation(xs, ys).value, n=len(xs))


def describe_strength(r: float) -> str:
    magnitude = abs(r)
    if magnitude > 0.7:
        return "strong"
    if magnitude > 0.4:
        return "moderate"
    return "weak"
