# src/moodpk/models/one_compartment.py
import numpy as np


def bateman(t, ka, k):
    """
    Unit Bateman kernel for first-order absorption into a compartment that
    empties at rate k:

        (exp(-k t) - exp(-ka t)) / (ka - k)

    Multiplying by F * D * ka / V gives the concentration of a single oral
    dose. Non-negative for every t >= 0 whichever of ka, k is larger.
    Callers guarantee ka != k.

    t may be a float or a numpy array (hours since dose).
    """
    return (np.exp(-k * t) - np.exp(-ka * t)) / (ka - k)


def bateman_steady_state(t, ka, k, tau):
    """
    Bateman kernel summed over an infinite train of doses every tau hours,
    evaluated at t in [0, tau] hours after the latest dose.

    Each exponential picks up its own accumulation factor 1 / (1 - exp(-r tau)).
    """
    acc_k = 1.0 / (1.0 - np.exp(-k * tau))
    acc_a = 1.0 / (1.0 - np.exp(-ka * tau))
    return (np.exp(-k * t) * acc_k - np.exp(-ka * t) * acc_a) / (ka - k)


def bateman_tmax(ka, k):
    """Time of the single-dose peak of the Bateman kernel (h)."""
    return float(np.log(ka / k) / (ka - k))


def plasma_effect_rhs(t, y, ka, ke, ke0, V):
    """
    One-compartment model with first-order absorption and an effect site.
    Three states:
      y[0] = drug in absorption depot (mg, bioavailable fraction only)
      y[1] = drug in central compartment (mg)
      y[2] = effect-site concentration (mg/L)

    Parameters:
      t      : current time (h)
      ka     : absorption rate constant (1/h)
      ke     : elimination rate constant (1/h)
      ke0    : plasma <-> effect-site equilibration rate (1/h)
      V      : volume of distribution (L)
    """
    A_gut, A_c, C_e = y

    dA_gut_dt = -ka * A_gut
    dA_c_dt = ka * A_gut - ke * A_c
    dC_e_dt = ke0 * (A_c / V - C_e)

    return [dA_gut_dt, dA_c_dt, dC_e_dt]
