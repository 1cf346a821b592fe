# src/moodpk/metrics.py
import numpy as np
from typing import Sequence, Tuple

from .types import ConcentrationSample


def curve_arrays(curve: Sequence[ConcentrationSample]) -> Tuple[np.ndarray, np.ndarray]:
    """Split a sampled curve into (t, C) arrays; t stays in epoch ms."""
    t = np.fromiter((s.time for s in curve), dtype=float, count=len(curve))
    C = np.fromiter((s.concentration for s in curve), dtype=float, count=len(curve))
    return t, C


def cmax(C: np.ndarray) -> float:
    """Global maximum concentration (ng/mL)."""
    return float(np.max(C))


def tmax(t: np.ndarray, C: np.ndarray) -> float:
    """Time of maximum concentration (same unit as t)."""
    return float(t[int(np.argmax(C))])


def cmin(C: np.ndarray) -> float:
    """Global minimum concentration (ng/mL)."""
    return float(np.min(C))


def cmax_tmax(t: np.ndarray, C: np.ndarray) -> Tuple[float, float]:
    """Return Cmax and the time it occurs."""
    idx = np.argmax(C)
    return float(C[idx]), float(t[idx])


def auc_trapz(t: np.ndarray, C: np.ndarray) -> float:
    """Area Under the Curve via trapezoidal rule (ng*[t]/mL)."""
    return float(np.trapezoid(C, t))


def cavg(C: np.ndarray) -> float:
    """Average concentration over the sampled window."""
    return float(np.mean(C))


def peak_to_trough_ratio(C: np.ndarray) -> float:
    """
    Peak-to-Trough Ratio (PTR) = Cmax / Cmin.
    Infinite when the trough is zero.
    """
    cmin_val = cmin(C)
    if cmin_val <= 0:
        return float('inf')
    return cmax(C) / cmin_val


def fluctuation_index(C: np.ndarray) -> float:
    """
    Fluctuation Index (FI) = (Cmax - Cmin) / Cavg.
    Zero for an empty or all-zero window.
    """
    if C.size == 0:
        return 0.0
    cavg_val = cavg(C)
    if cavg_val == 0.0:
        return 0.0
    return (cmax(C) - cmin(C)) / cavg_val
