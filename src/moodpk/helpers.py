from collections import defaultdict
from typing import Iterable

from .types import Dose


def split_doses_by_medication(doses: Iterable[Dose]) -> dict[str, list[Dose]]:
    """
    Group a mixed dose history by medication_id, each group in time order.
    """
    buckets: dict[str, list[Dose]] = defaultdict(list)
    for d in doses:
        buckets[d.medication_id].append(d)
    return {
        medication_id: sorted(ds, key=lambda x: x.timestamp)
        for medication_id, ds in buckets.items()
    }


def doses_for_medication(doses: Iterable[Dose], medication_id: str) -> list[Dose]:
    return split_doses_by_medication(doses).get(medication_id, [])


def dose_fingerprint(doses: Iterable[Dose]) -> str:
    """
    Order-independent identity of a dose history: sorted "id:timestamp:amount"
    tokens joined by "|".
    """
    return "|".join(sorted(f"{d.id}:{float(d.timestamp)!r}:{float(d.dose_amount)!r}" for d in doses))
