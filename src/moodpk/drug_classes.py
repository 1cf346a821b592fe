# src/moodpk/drug_classes.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .types import Medication


class DrugClass(Enum):
    STIMULANT = "stimulant"
    SSRI = "ssri"
    SNRI = "snri"
    MOOD_STABILIZER = "mood_stabilizer"
    ANTIPSYCHOTIC = "antipsychotic"
    BENZODIAZEPINE = "benzodiazepine"
    NOOTROPIC = "nootropic"
    AMINO_ACID = "amino_acid"
    FATTY_ACID = "fatty_acid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassProfile:
    """
    ka         : default absorption rate (1/h), None -> generic fallback
    ke0        : plasma <-> effect-site equilibration rate (1/h)
    effect_lag : delay before plasma changes reach the effect site (h)
    chronic    : mood effect tracks days-scale levels rather than peaks
    """
    ka: float | None
    ke0: float
    effect_lag: float
    chronic: bool


CLASS_PROFILES: dict[DrugClass, ClassProfile] = {
    DrugClass.STIMULANT:       ClassProfile(ka=1.5,  ke0=0.80, effect_lag=0.5,  chronic=False),
    DrugClass.SSRI:            ClassProfile(ka=1.0,  ke0=0.15, effect_lag=2.0,  chronic=True),
    DrugClass.SNRI:            ClassProfile(ka=0.8,  ke0=0.20, effect_lag=2.0,  chronic=True),
    DrugClass.MOOD_STABILIZER: ClassProfile(ka=1.2,  ke0=0.10, effect_lag=4.0,  chronic=True),
    DrugClass.ANTIPSYCHOTIC:   ClassProfile(ka=0.9,  ke0=0.25, effect_lag=1.0,  chronic=True),
    DrugClass.BENZODIAZEPINE:  ClassProfile(ka=2.0,  ke0=1.20, effect_lag=0.25, chronic=False),
    DrugClass.NOOTROPIC:       ClassProfile(ka=2.5,  ke0=0.60, effect_lag=0.5,  chronic=False),
    DrugClass.AMINO_ACID:      ClassProfile(ka=3.0,  ke0=0.90, effect_lag=0.5,  chronic=False),
    DrugClass.FATTY_ACID:      ClassProfile(ka=0.5,  ke0=0.05, effect_lag=6.0,  chronic=False),
    DrugClass.UNKNOWN:         ClassProfile(ka=None, ke0=0.50, effect_lag=0.0,  chronic=False),
}

# Free-text labels seen in medication records -> class
_ALIASES: dict[str, DrugClass] = {
    "stimulant": DrugClass.STIMULANT,
    "adhd": DrugClass.STIMULANT,
    "ssri": DrugClass.SSRI,
    "antidepressant": DrugClass.SSRI,
    "snri": DrugClass.SNRI,
    "mood stabilizer": DrugClass.MOOD_STABILIZER,
    "mood_stabilizer": DrugClass.MOOD_STABILIZER,
    "anticonvulsant": DrugClass.MOOD_STABILIZER,
    "antipsychotic": DrugClass.ANTIPSYCHOTIC,
    "benzodiazepine": DrugClass.BENZODIAZEPINE,
    "nootropic": DrugClass.NOOTROPIC,
    "amino acid": DrugClass.AMINO_ACID,
    "amino_acid": DrugClass.AMINO_ACID,
    "fatty acid": DrugClass.FATTY_ACID,
    "fatty_acid": DrugClass.FATTY_ACID,
}

# Drugs that induce their own metabolism; their half-life shortens over weeks.
AUTOINDUCERS: tuple[str, ...] = (
    "carbamazepine",
    "rifampicin",
    "rifampin",
    "phenobarbital",
    "primidone",
    "efavirenz",
)


def resolve_drug_class(label: str | None) -> DrugClass:
    if not label:
        return DrugClass.UNKNOWN
    return _ALIASES.get(label.strip().lower(), DrugClass.UNKNOWN)


def profile_for(medication: Medication) -> ClassProfile:
    return CLASS_PROFILES[resolve_drug_class(medication.drug_class)]


def is_autoinducer(medication: Medication) -> bool:
    names = (medication.name or "", medication.generic_name or "")
    return any(drug in n.lower() for n in names for drug in AUTOINDUCERS)
