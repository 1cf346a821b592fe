# src/moodpk/pharmacokinetics.py
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from . import metrics
from .drug_classes import is_autoinducer, profile_for
from .models.effect_site import effect_kernel
from .models.one_compartment import bateman, bateman_steady_state, bateman_tmax
from .models.two_compartment import TWO_COMPARTMENT_VD_THRESHOLD, disposition_terms
from .types import (
    MS_PER_HOUR,
    AdherenceEffectLag,
    CompartmentModel,
    ConcentrationSample,
    Dose,
    DualConcentrationSample,
    EffectMetrics,
    Medication,
    PKMetrics,
    SteadyStateMetrics,
)

logger = logging.getLogger(__name__)

# Bump whenever a formula below changes; cached results keyed on an older
# version stop matching.
FORMULA_VERSION = 3

DEFAULT_BODY_WEIGHT_KG = 70.0
MG_PER_L_TO_NG_PER_ML = 1000.0

KA_KE_PERTURBATION = 1e-3
RATE_TOLERANCE = 1e-6
MIN_FALLBACK_KA = 0.5

# Autoinduction: half-life shrinks by up to 20%, ramping from day 7 to day 21
AUTOINDUCTION_MAX_REDUCTION = 0.2
AUTOINDUCTION_ONSET_DAYS = 7.0
AUTOINDUCTION_FULL_DAYS = 21.0

# Steady state
STEADY_STATE_HALF_LIVES = 5.0
MIN_DOSING_INTERVAL_H = 4.0
MAX_DOSING_INTERVAL_H = 72.0
DEFAULT_DOSING_INTERVAL_H = 24.0
_STEADY_STATE_GRID = 241

# Chronic adherence lag window (hours)
CHRONIC_LAG_MIN_H = 72
CHRONIC_LAG_MAX_H = 96


@dataclass(frozen=True)
class Kinetics:
    """Resolved rate constants and disposition for one medication."""
    ka: float
    ke: float
    half_life: float
    bioavailability: float
    central_volume_l: float
    terms: tuple[tuple[float, float], ...]  # (weight, rate) pairs
    model: CompartmentModel


def _positive(x) -> bool:
    return x is not None and math.isfinite(x) and x > 0


def elimination_rate(half_life: float) -> float:
    return math.log(2) / half_life


def separate_rate(ka: float, k: float) -> float:
    """Nudge ka off k so the closed forms keep a non-zero denominator."""
    if abs(ka - k) < RATE_TOLERANCE:
        return ka + KA_KE_PERTURBATION
    return ka


def absorption_rate(medication: Medication, ke: float) -> float:
    """
    Ka from, in order: the medication record, the drug-class table, and
    finally max(3 Ke, 0.5) which always absorbs faster than it eliminates.
    """
    if _positive(medication.absorption_rate):
        ka = float(medication.absorption_rate)
    else:
        class_ka = profile_for(medication).ka
        ka = class_ka if class_ka is not None else max(3.0 * ke, MIN_FALLBACK_KA)
    return separate_rate(ka, ke)


def autoinduction_factor(medication: Medication, first_dose_ms: float, target_ms: float) -> float:
    """Multiplier applied to the half-life of a self-inducing drug."""
    if not is_autoinducer(medication):
        return 1.0
    days = (target_ms - first_dose_ms) / (24.0 * MS_PER_HOUR)
    span = AUTOINDUCTION_FULL_DAYS - AUTOINDUCTION_ONSET_DAYS
    ramp = min(1.0, max(0.0, (days - AUTOINDUCTION_ONSET_DAYS) / span))
    return 1.0 - AUTOINDUCTION_MAX_REDUCTION * ramp


def _half_life_factor(medication: Medication, doses: Sequence[Dose], target_ms: float) -> float:
    if not is_autoinducer(medication):
        return 1.0
    given = [d.timestamp for d in doses if d.timestamp <= target_ms]
    if not given:
        return 1.0
    return autoinduction_factor(medication, min(given), target_ms)


def resolve_kinetics(medication: Medication, body_weight: float = DEFAULT_BODY_WEIGHT_KG,
                     half_life_factor: float = 1.0) -> Kinetics | None:
    """
    Resolve Ka, Ke and the disposition terms, or None when any parameter is
    non-finite or non-positive.
    """
    half_life = medication.half_life
    vd = medication.volume_of_distribution
    F = medication.bioavailability
    if not all(_positive(x) for x in (half_life, vd, F, body_weight, half_life_factor)):
        logger.debug("Invalid PK parameters for medication %r; reporting zero", medication.id)
        return None

    half_life = half_life * half_life_factor
    ke = elimination_rate(half_life)
    ka = absorption_rate(medication, ke)
    volume_l = vd * body_weight

    if vd <= TWO_COMPARTMENT_VD_THRESHOLD:
        return Kinetics(ka=ka, ke=ke, half_life=half_life, bioavailability=F,
                        central_volume_l=volume_l, terms=((1.0, ke),),
                        model="one_compartment")

    central_fraction, raw_terms = disposition_terms(ka, ke, vd)
    terms = tuple((w, r if abs(ka - r) >= RATE_TOLERANCE else r + KA_KE_PERTURBATION)
                  for w, r in raw_terms)
    return Kinetics(ka=ka, ke=ke, half_life=half_life, bioavailability=F,
                    central_volume_l=volume_l * central_fraction, terms=terms,
                    model="two_compartment")


def _dose_scale(kin: Kinetics, amount_mg: float) -> float:
    """F * D * Ka / Vc, converted from mg/L to ng/mL."""
    return kin.bioavailability * amount_mg * kin.ka / kin.central_volume_l * MG_PER_L_TO_NG_PER_ML


def single_dose_plasma(kin: Kinetics, amount_mg: float, hours):
    """Plasma concentration `hours` after one dose (float or array)."""
    shape = sum(w * bateman(hours, kin.ka, r) for w, r in kin.terms)
    return _dose_scale(kin, amount_mg) * shape


def single_dose_effect(kin: Kinetics, ke0: float, amount_mg: float, hours):
    """Effect-site concentration `hours` after one dose, lag not applied."""
    shape = sum(w * effect_kernel(hours, kin.ka, r, ke0) for w, r in kin.terms)
    return _dose_scale(kin, amount_mg) * shape


def _usable(dose: Dose, target_time: float) -> bool:
    return dose.timestamp <= target_time and _positive(dose.dose_amount)


def calculate_concentration(medication: Medication, doses: Sequence[Dose], target_time: float,
                            body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> float:
    """
    Plasma concentration (ng/mL) at epoch-ms `target_time` from every dose
    taken at or before it.
    """
    if not math.isfinite(target_time):
        return 0.0
    kin = resolve_kinetics(medication, body_weight, _half_life_factor(medication, doses, target_time))
    if kin is None:
        return 0.0

    total = 0.0
    for dose in doses:
        if not _usable(dose, target_time):
            continue
        hours = (target_time - dose.timestamp) / MS_PER_HOUR
        total += max(0.0, float(single_dose_plasma(kin, dose.dose_amount, hours)))
    return total


def effect_parameters(medication: Medication) -> tuple[float, float]:
    """(ke0, effect_lag) from the medication record, else the class table."""
    profile = profile_for(medication)
    effect = medication.effect
    ke0 = effect.ke0 if effect is not None and _positive(effect.ke0) else profile.ke0
    lag = profile.effect_lag
    if effect is not None and effect.effect_lag is not None \
            and math.isfinite(effect.effect_lag) and effect.effect_lag >= 0:
        lag = effect.effect_lag
    return float(ke0), float(lag)


def calculate_effect_concentration(medication: Medication, doses: Sequence[Dose], target_time: float,
                                   body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> float:
    """
    Effect-site concentration (ng/mL) at `target_time`. Each dose only starts
    to act once the effect lag has elapsed.
    """
    if not math.isfinite(target_time):
        return 0.0
    kin = resolve_kinetics(medication, body_weight, _half_life_factor(medication, doses, target_time))
    if kin is None:
        return 0.0
    ke0, lag = effect_parameters(medication)

    total = 0.0
    for dose in doses:
        if not _usable(dose, target_time):
            continue
        hours = (target_time - dose.timestamp) / MS_PER_HOUR - lag
        if hours <= 0:
            continue
        total += max(0.0, float(single_dose_effect(kin, ke0, dose.dose_amount, hours)))
    return total


def sample_times(start: float, end: float, points: int) -> list[float]:
    """points + 1 evenly spaced instants from start to end inclusive."""
    if points < 1:
        return []
    interval = (end - start) / points
    return [start + i * interval for i in range(points + 1)]


def generate_concentration_curve(medication: Medication, doses: Sequence[Dose], start: float, end: float,
                                 points: int = 100,
                                 body_weight: float = DEFAULT_BODY_WEIGHT_KG) -> list[ConcentrationSample]:
    return [
        ConcentrationSample(time=t, concentration=calculate_concentration(medication, doses, t, body_weight))
        for t in sample_times(start, end, points)
    ]


def generate_dual_concentration_curves(medication: Medication, doses: Sequence[Dose], start: float, end: float,
                                       points: int = 100,
                                       body_weight: float = DEFAULT_BODY_WEIGHT_KG
                                       ) -> list[DualConcentrationSample]:
    """Plasma and effect-site curves sampled on the same grid."""
    return [
        DualConcentrationSample(
            time=t,
            plasma=calculate_concentration(medication, doses, t, body_weight),
            effect=calculate_effect_concentration(medication, doses, t, body_weight),
        )
        for t in sample_times(start, end, points)
    ]


def estimate_dosing_interval(doses: Sequence[Dose]) -> float:
    """
    Median gap (h) between consecutive doses, ignoring gaps outside
    [4 h, 72 h] (duplicates, missed days). 24 h when nothing qualifies.
    """
    stamps = sorted(d.timestamp for d in doses)
    gaps = [(b - a) / MS_PER_HOUR for a, b in zip(stamps, stamps[1:])]
    usable = [g for g in gaps if MIN_DOSING_INTERVAL_H <= g <= MAX_DOSING_INTERVAL_H]
    if not usable:
        return DEFAULT_DOSING_INTERVAL_H
    return float(np.median(usable))


def _empty_steady_state(time_to_ss: float = 0.0) -> SteadyStateMetrics:
    return SteadyStateMetrics(tau=0.0, css_avg=0.0, cmax_ss=0.0, cmin_ss=0.0,
                              accumulation_factor=0.0, fluctuation=0.0,
                              time_to_steady_state=time_to_ss, elapsed_hours=0.0,
                              at_steady_state=False)


def calculate_steady_state_metrics(medication: Medication, doses: Sequence[Dose],
                                   body_weight: float = DEFAULT_BODY_WEIGHT_KG,
                                   reference_time: float | None = None) -> SteadyStateMetrics:
    """
    Steady-state levels for the regimen the dose history implies.

    The interval is estimated from the history, the typical dose is the
    median amount, and the profile over one interval is the infinite
    superposition of single doses. `reference_time` (epoch ms, default now)
    decides whether five half-lives have elapsed since the first dose.
    """
    kin = resolve_kinetics(medication, body_weight)
    if kin is None:
        return _empty_steady_state()
    time_to_ss = STEADY_STATE_HALF_LIVES * kin.half_life
    given = [d for d in doses if _positive(d.dose_amount) and math.isfinite(d.timestamp)]
    if not given:
        return _empty_steady_state(time_to_ss)

    tau = estimate_dosing_interval(given)
    amount = float(np.median([d.dose_amount for d in given]))
    accumulation = 1.0 / (1.0 - math.exp(-kin.ke * tau))

    grid = np.linspace(0.0, tau, _STEADY_STATE_GRID)
    scale = _dose_scale(kin, amount)
    profile = scale * sum(w * bateman_steady_state(grid, kin.ka, r, tau) for w, r in kin.terms)
    profile = np.maximum(profile, 0.0)

    # AUC of one dose over all time equals the steady-state AUC over tau
    auc_single = scale / kin.ka * sum(w / r for w, r in kin.terms)
    css_avg = auc_single / tau

    if reference_time is None:
        reference_time = time.time() * 1000.0
    first = min(d.timestamp for d in given)
    elapsed = max(0.0, (reference_time - first) / MS_PER_HOUR)

    return SteadyStateMetrics(
        tau=tau,
        css_avg=css_avg,
        cmax_ss=metrics.cmax(profile),
        cmin_ss=metrics.cmin(profile),
        accumulation_factor=accumulation,
        fluctuation=(metrics.cmax(profile) - metrics.cmin(profile)) / css_avg * 100.0 if css_avg > 0 else 0.0,
        time_to_steady_state=time_to_ss,
        elapsed_hours=elapsed,
        at_steady_state=elapsed >= time_to_ss,
    )


def _search_horizon(kin: Kinetics) -> np.ndarray:
    horizon = max(48.0, STEADY_STATE_HALF_LIVES * kin.half_life)
    return np.linspace(0.0, horizon, 4001)


def get_pk_metrics(medication: Medication) -> PKMetrics | None:
    """Ka, Ke and single-dose Tmax, or None for malformed parameters."""
    kin = resolve_kinetics(medication)
    if kin is None:
        return None
    if kin.model == "one_compartment":
        peak = bateman_tmax(kin.ka, kin.ke)
    else:
        t = _search_horizon(kin)
        peak = metrics.tmax(t, single_dose_plasma(kin, 1.0, t))
    return PKMetrics(ka=kin.ka, ke=kin.ke, half_life=kin.half_life, tmax=peak, model=kin.model)


def get_effect_metrics(medication: Medication) -> EffectMetrics | None:
    """ke0, effect lag and the time of the single-dose effect peak."""
    kin = resolve_kinetics(medication)
    if kin is None:
        return None
    ke0, lag = effect_parameters(medication)
    t = _search_horizon(kin)
    peak = metrics.tmax(t, single_dose_effect(kin, ke0, 1.0, t))
    return EffectMetrics(ke0=ke0, effect_lag=lag, t_max_effect=peak + lag)


def is_chronic_medication(medication: Medication) -> bool:
    return profile_for(medication).chronic


def calculate_adherence_effect_lag(medication: Medication) -> AdherenceEffectLag:
    """
    Expected delay between a change in adherence and its effect on mood.

    Chronic drugs sit at steady state, so a missed dose shows up over days:
    about three half-lives, kept within the observed 3-4 day window. Acute
    drugs act within hours of each dose: peak time plus the effect lag.
    """
    if is_chronic_medication(medication):
        hl = medication.half_life if _positive(medication.half_life) else 0.0
        hours = int(min(CHRONIC_LAG_MAX_H, max(CHRONIC_LAG_MIN_H, round(3 * hl))))
        description = (
            f"{medication.name} is taken chronically; adherence changes typically "
            f"reach mood after ~{hours / 24:.1f} days as levels drift from steady state."
        )
    else:
        pk = get_pk_metrics(medication)
        _, lag = effect_parameters(medication)
        peak = pk.tmax if pk is not None else 2.0
        hours = max(1, int(round(peak + lag)))
        description = (
            f"{medication.name} acts acutely; effects follow each dose after ~{hours}h "
            f"(peak plus effect-site lag)."
        )
    return AdherenceEffectLag(adherence_lag_hours=hours,
                              adherence_lag_days=round(hours / 24, 1),
                              description=description)
