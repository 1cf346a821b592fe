import pytest

from moodpk.drug_classes import (
    CLASS_PROFILES,
    DrugClass,
    is_autoinducer,
    profile_for,
    resolve_drug_class,
)
from moodpk.types import Medication


def med(**overrides) -> Medication:
    params = dict(id="m", name="Something", half_life=10.0, volume_of_distribution=1.0, bioavailability=1.0)
    params.update(overrides)
    return Medication(**params)


def test_every_class_has_a_profile():
    assert set(CLASS_PROFILES) == set(DrugClass)
    for profile in CLASS_PROFILES.values():
        assert profile.ke0 > 0
        assert profile.effect_lag >= 0
        assert profile.ka is None or profile.ka > 0


@pytest.mark.parametrize("label, expected", [
    ("SSRI", DrugClass.SSRI),
    ("  Antidepressant ", DrugClass.SSRI),
    ("Mood Stabilizer", DrugClass.MOOD_STABILIZER),
    ("stimulant", DrugClass.STIMULANT),
    ("Fatty Acid", DrugClass.FATTY_ACID),
    ("herbal tea", DrugClass.UNKNOWN),
    ("", DrugClass.UNKNOWN),
    (None, DrugClass.UNKNOWN),
])
def test_resolve_drug_class(label, expected):
    assert resolve_drug_class(label) is expected


def test_chronic_classes():
    chronic = {cls for cls, profile in CLASS_PROFILES.items() if profile.chronic}
    assert chronic == {DrugClass.SSRI, DrugClass.SNRI, DrugClass.MOOD_STABILIZER, DrugClass.ANTIPSYCHOTIC}
    assert profile_for(med(drug_class="SNRI")).chronic
    assert not profile_for(med(drug_class="Benzodiazepine")).chronic


def test_autoinducers_match_brand_or_generic_name():
    assert is_autoinducer(med(name="Carbamazepine ER"))
    assert is_autoinducer(med(name="Tegretol", generic_name="carbamazepine"))
    assert not is_autoinducer(med(name="Sertraline"))
