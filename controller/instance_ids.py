"""
Instance-id allocation for new pods.
"""
import random
from typing import List, Set

from kube_types import INSTANCE_ID_LABEL, INSTANCE_ID_LENGTH, PersistentVolumeClaim, Pod

# Same alphabet the API server uses for generated names: no vowels, no
# confusable characters.
_ID_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


def _random_id(rng: random.Random) -> str:
    return "".join(rng.choice(_ID_ALPHABET) for _ in range(INSTANCE_ID_LENGTH))


def get_or_gen_available_ids(num: int, pods: List[Pod], pvcs: List[PersistentVolumeClaim],
                             rng: random.Random = None) -> Set[str]:
    """
    Pick ``num`` distinct instance-ids for new pods.

    Ids found on claims but on no pod are reused first, so the new pod binds
    the orphaned claim. Remaining ids are generated at random and never
    collide with an id in use or already picked.
    """
    rng = rng or random.SystemRandom()

    existing_ids = set()
    available_ids = set()
    for pvc in pvcs:
        instance_id = pvc.labels.get(INSTANCE_ID_LABEL)
        if instance_id:
            existing_ids.add(instance_id)
            available_ids.add(instance_id)
    for pod in pods:
        instance_id = pod.labels.get(INSTANCE_ID_LABEL)
        if instance_id:
            existing_ids.add(instance_id)
            available_ids.discard(instance_id)

    ret_ids = set()
    # sorted() keeps reuse order stable for a given set of claims
    reusable = sorted(available_ids)
    while len(ret_ids) < num:
        if reusable:
            ret_ids.add(reusable.pop(0))
            continue
        instance_id = _random_id(rng)
        if instance_id in existing_ids or instance_id in ret_ids:
            continue
        ret_ids.add(instance_id)
    return ret_ids
