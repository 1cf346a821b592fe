# src/moodpk/models/two_compartment.py
from __future__ import annotations

# Vd (L/kg) above which the bi-exponential model is used
TWO_COMPARTMENT_VD_THRESHOLD = 10.0

MAX_PERIPHERAL_FRACTION = 0.7
_REFERENCE_VD = 20.0
_REFERENCE_FRACTION = 0.5


def peripheral_fraction(volume_of_distribution: float) -> float:
    """Share of the dose following the distribution phase, scaled by Vd / 20."""
    scaled = _REFERENCE_FRACTION * volume_of_distribution / _REFERENCE_VD
    return min(MAX_PERIPHERAL_FRACTION, scaled)


def distribution_rate(ka: float, ke: float) -> float:
    """alpha ~= min(Ka, 3 Ke); callers separate it from Ka afterwards."""
    return min(ka, 3.0 * ke)


def disposition_terms(ka: float, ke: float, volume_of_distribution: float
                      ) -> tuple[float, tuple[tuple[float, float], ...]]:
    """
    Return (central volume fraction, ((weight, rate), ...)).

    The weights sum to 1 so an IV bolus would start at D / Vc; the central
    volume is the part of Vd not taken by the periphery.
    """
    frac = peripheral_fraction(volume_of_distribution)
    alpha = distribution_rate(ka, ke)
    return 1.0 - frac, ((frac, alpha), (1.0 - frac, ke))
