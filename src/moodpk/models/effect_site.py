# src/moodpk/models/effect_site.py
import numpy as np

from .one_compartment import bateman

# Rate constants closer than this are treated as equal
RATE_TOLERANCE = 1e-6


def rates_coincide(*rates: float) -> bool:
    for i, a in enumerate(rates):
        for b in rates[i + 1:]:
            if abs(a - b) < RATE_TOLERANCE:
                return True
    return False


def effect_kernel(t, ka, k, ke0):
    """
    Effect-site counterpart of the Bateman kernel.

    Convolving the plasma kernel with ke0 * exp(-ke0 t) gives

        ke0 * [ exp(-k t)   / ((ka - k)(ke0 - k))
              + exp(-ka t)  / ((k - ka)(ke0 - ka))
              + exp(-ke0 t) / ((k - ke0)(ka - ke0)) ]

    When two of the rates coincide the denominators vanish; the plasma
    kernel is then scaled by the equilibration factor 1 - exp(-ke0 t).
    """
    if rates_coincide(ka, k, ke0):
        return bateman(t, ka, k) * (1.0 - np.exp(-ke0 * t))

    term_k = np.exp(-k * t) / ((ka - k) * (ke0 - k))
    term_a = np.exp(-ka * t) / ((k - ka) * (ke0 - ka))
    term_0 = np.exp(-ke0 * t) / ((k - ke0) * (ka - ke0))
    return ke0 * (term_k + term_a + term_0)
