# src/moodpk/solvers.py
import numpy as np
from scipy.integrate import solve_ivp
from typing import Sequence

from .types import Dose, Medication, MS_PER_HOUR
from .models.one_compartment import plasma_effect_rhs
from .pharmacokinetics import (
    DEFAULT_BODY_WEIGHT_KG,
    MG_PER_L_TO_NG_PER_ML,
    effect_parameters,
    resolve_kinetics,
)


def simulate_plasma_effect(medication: Medication, doses: Sequence[Dose], t_end_h: float,
                           dt_h: float = 0.25, body_weight: float = DEFAULT_BODY_WEIGHT_KG):
    """
    Numerically integrate the one-compartment oral model with an effect site.

    Serves as an independent reference for the closed-form engine. Each dose
    is an instantaneous jump of F * D into the absorption depot at its
    scheduled time; time 0 is the earliest dose. The effect lag is not
    applied (shift the returned time axis by it if needed).

    Returns:
      t  : array of time points (hours since first dose)
      Cp : plasma concentration (ng/mL)
      Ce : effect-site concentration (ng/mL, lag-free)
    """
    if not doses:
        raise ValueError("simulate_plasma_effect needs at least one dose.")
    kin = resolve_kinetics(medication, body_weight)
    if kin is None or kin.model != "one_compartment":
        raise ValueError("simulate_plasma_effect needs valid one-compartment parameters.")
    ke0, _ = effect_parameters(medication)
    V = kin.central_volume_l

    origin = min(d.timestamp for d in doses)
    events = sorted(((d.timestamp - origin) / MS_PER_HOUR, kin.bioavailability * d.dose_amount)
                    for d in doses)

    t_grid = np.arange(0.0, t_end_h + dt_h / 2, dt_h)
    boundaries = sorted({0.0, float(t_end_h), *(t for t, _ in events if 0.0 <= t <= t_end_h)})

    def rhs(t, y):
        return plasma_effect_rhs(t, y, kin.ka, kin.ke, ke0, V)

    def inject(y, at):
        y = list(y)
        for t_dose, amount in events:
            if np.isclose(t_dose, at):
                y[0] += amount
        return y

    y0 = inject([0.0, 0.0, 0.0], 0.0)
    t_out: list[float] = [0.0]
    y_out: list[list[float]] = [list(y0)]

    prev = boundaries[0]
    for curr in boundaries[1:]:
        t_eval_seg = t_grid[(t_grid > prev) & (t_grid <= curr)]
        sol_seg = solve_ivp(rhs, t_span=(prev, curr), y0=y0, method="LSODA",
                            t_eval=t_eval_seg if t_eval_seg.size else None,
                            rtol=1e-8, atol=1e-10)
        if t_eval_seg.size:
            t_out.extend(sol_seg.t.tolist())
            y_out.extend(sol_seg.y.T.tolist())
        y0 = inject(sol_seg.y[:, -1], curr)
        prev = curr

    t_arr = np.asarray(t_out, dtype=float)
    Y = np.asarray(y_out, dtype=float)
    Cp = np.maximum(Y[:, 1] / V, 0.0) * MG_PER_L_TO_NG_PER_ML
    Ce = np.maximum(Y[:, 2], 0.0) * MG_PER_L_TO_NG_PER_ML
    return t_arr, Cp, Ce
