# src/moodpk/dosing.py
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .types import Dose, Route, MS_PER_HOUR


def single_dose(medication_id: str, amount_mg: float, timestamp_ms: float,
                route: Route = "oral", *, dose_id: str | None = None) -> list[Dose]:
    """
    Create a history with exactly one dose.
    Example: 50 mg oral at a given epoch-ms timestamp.
    """
    _validate_positive("amount_mg", amount_mg)
    _validate_non_negative("timestamp_ms", timestamp_ms)
    return [Dose(id=dose_id or f"{medication_id}-0", medication_id=medication_id,
                 timestamp=float(timestamp_ms), dose_amount=float(amount_mg), route=route)]


def repeated_doses(medication_id: str, amount_mg: float, every_hours: float, count: int,
                   start_ms: float = 0.0, route: Route = "oral") -> list[Dose]:
    """
    Make a regular schedule like: 20 mg every 24 h for 14 doses.

    amount_mg   : size of each dose, mg
    every_hours : spacing between doses, hours
    count       : number of doses
    start_ms    : epoch-ms timestamp of the first dose
    """
    _validate_positive("amount_mg", amount_mg)
    _validate_positive("every_hours", every_hours)
    _validate_positive_int("count", count)
    _validate_non_negative("start_ms", start_ms)

    times_ms = float(start_ms) + np.arange(count, dtype=float) * every_hours * MS_PER_HOUR
    return [
        Dose(id=f"{medication_id}-{i}", medication_id=medication_id,
             timestamp=float(t), dose_amount=float(amount_mg), route=route)
        for i, t in enumerate(times_ms)
    ]


def from_explicit_schedule(medication_id: str, entries: Sequence[Tuple[float, float]],
                           route: Route = "oral") -> list[Dose]:
    """
    Build a history from manual (timestamp_ms, amount_mg) entries.
    Example: entries=[(0, 50), (43_200_000, 50)]
    """
    doses: list[Dose] = []
    for i, (timestamp_ms, amount_mg) in enumerate(entries):
        _validate_positive("amount_mg", amount_mg)
        _validate_non_negative("timestamp_ms", timestamp_ms)
        doses.append(Dose(id=f"{medication_id}-{i}", medication_id=medication_id,
                          timestamp=float(timestamp_ms), dose_amount=float(amount_mg), route=route))
    doses.sort(key=lambda d: d.timestamp)
    return doses


# --------------------------
# Small input validators
# --------------------------
def _validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise ValueError(f"{name} must be > 0 (got {x}).")

def _validate_non_negative(name: str, x: float) -> None:
    if not (x >= 0):
        raise ValueError(f"{name} must be >= 0 (got {x}).")

def _validate_positive_int(name: str, x: int) -> None:
    if not (isinstance(x, int) and x > 0):
        raise ValueError(f"{name} must be a positive integer (got {x}).")
