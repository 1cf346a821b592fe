# src/moodpk/types.py
from dataclasses import dataclass, field
from typing import Literal, Sequence

# Timestamps at the boundary are epoch MILLISECONDS; kinetics run in HOURS.
Route = Literal["oral", "sublingual", "iv_bolus", "im", "sc", "transdermal"]
Significance = Literal["high", "medium", "low", "none"]
CorrelationMethod = Literal["pearson", "spearman"]
SeriesTransform = Literal["levels", "differences"]
CompartmentModel = Literal["one_compartment", "two_compartment"]

MS_PER_HOUR = 3_600_000.0
MS_PER_MINUTE = 60_000.0


@dataclass(frozen=True)
class EffectParams:
    """
    Effect-site parameters of a medication.

    ke0        : plasma <-> effect-site equilibration rate (1/h)
    effect_lag : fixed delay between plasma exposure and effect (h)
    """
    ke0: float | None = None
    effect_lag: float | None = None


@dataclass(frozen=True)
class Medication:
    """
    Reference PK data for one medication.

    half_life              : elimination half-life (h)
    volume_of_distribution : apparent volume (L/kg); scaled by body weight
    bioavailability        : fraction of an oral dose reaching circulation
    absorption_rate        : Ka (1/h); falls back to the drug-class table
    drug_class             : free-text class, e.g. "SSRI" or "Stimulant"
    therapeutic_range      : (min, max) in ng/mL, informational only
    """
    id: str
    name: str
    half_life: float
    volume_of_distribution: float
    bioavailability: float
    drug_class: str = ""
    absorption_rate: float | None = None
    effect: EffectParams | None = None
    generic_name: str | None = None
    therapeutic_range: tuple[float, float] | None = None


@dataclass(frozen=True)
class Dose:
    """
    One administration event.

    timestamp   : epoch milliseconds
    dose_amount : milligrams
    """
    id: str
    medication_id: str
    timestamp: float
    dose_amount: float
    route: Route = "oral"


@dataclass(frozen=True)
class MoodEntry:
    timestamp: float
    mood_score: float
    anxiety_level: float | None = None
    energy_level: float | None = None
    focus_level: float | None = None
    cognitive_score: float | None = None


@dataclass(frozen=True)
class ConcentrationSample:
    time: float           # epoch ms
    concentration: float  # ng/mL, never negative


@dataclass(frozen=True)
class DualConcentrationSample:
    time: float
    plasma: float
    effect: float


@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: float
    value: float


@dataclass(frozen=True)
class CorrelationResult:
    """
    value       : correlation coefficient in [-1, 1]
    p_value     : two-tailed p-value in [0, 1]
    confidence  : approximate 95% half-width, 1.96 / sqrt(n - 3)
    lag         : set by lag sweeps, otherwise None
    """
    value: float
    p_value: float
    sample_size: int
    significance: Significance
    method: CorrelationMethod
    confidence: float = 0.0
    lag: int | None = None


@dataclass(frozen=True)
class LagCorrelation:
    lag: int
    correlation: float
    n: int
    p_value: float
    significance: Significance


@dataclass(frozen=True)
class LaggedCorrelation:
    lag_hours: float
    r: float
    n: int


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r_squared: float
    standard_error: float
    predictions: Sequence[float] = field(default_factory=tuple)


@dataclass(frozen=True)
class DescriptiveStats:
    mean: float
    median: float
    mode: float
    std_dev: float
    variance: float
    min: float
    max: float
    q1: float
    q3: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class OutlierResult:
    indices: Sequence[int]
    values: Sequence[float]


@dataclass(frozen=True)
class MultiVariableCorrelation:
    variables: Sequence[str]
    correlation_matrix: Sequence[Sequence[float]]
    p_value_matrix: Sequence[Sequence[float]]
    significant_pairs: Sequence[tuple[str, str, float, float]]


@dataclass(frozen=True)
class PKMetrics:
    ka: float
    ke: float
    half_life: float
    tmax: float  # hours after a single dose
    model: CompartmentModel


@dataclass(frozen=True)
class EffectMetrics:
    ke0: float
    effect_lag: float
    t_max_effect: float  # hours after a single dose, lag included


@dataclass(frozen=True)
class SteadyStateMetrics:
    """
    tau                  : estimated dosing interval (h)
    css_avg              : average steady-state concentration (ng/mL)
    cmax_ss / cmin_ss    : peak / trough over one interval at steady state
    accumulation_factor  : R = 1 / (1 - exp(-Ke * tau))
    fluctuation          : (cmax_ss - cmin_ss) / css_avg, in percent
    time_to_steady_state : 5 half-lives (h)
    """
    tau: float
    css_avg: float
    cmax_ss: float
    cmin_ss: float
    accumulation_factor: float
    fluctuation: float
    time_to_steady_state: float
    elapsed_hours: float
    at_steady_state: bool


@dataclass(frozen=True)
class AdherenceEffectLag:
    adherence_lag_hours: int
    adherence_lag_days: float
    description: str
