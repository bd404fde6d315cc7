"""
Deterministic variant assignment for A/B testing.

Uses a 32-bit FNV-1a hash of "<identity>:<experiment_id>" to ensure stable
assignments with relative variant weights. No assignment state is stored:
the same inputs always produce the same variant, in any process.
"""

import logging
from typing import Iterable, List, Sequence

from .schema import AssignmentDecision, Experiment

logger = logging.getLogger(__name__)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
MASK_32 = 0xFFFFFFFF
KEY_SEPARATOR = ":"


def fnv1a_32(data: str) -> int:
    """32-bit FNV-1a over the UTF-8 bytes of data."""
    h = FNV_OFFSET_BASIS
    for byte in data.encode("utf-8"):
        h ^= byte
        h = (h * FNV_PRIME) & MASK_32
    return h


def hash_key(identity: str, experiment_id: str) -> int:
    """
    Hash an (identity, experiment) pair.

    The key layout "<identity>:<experiment_id>" is shared with existing
    clients and must not change.
    """
    return fnv1a_32(f"{identity}{KEY_SEPARATOR}{experiment_id}")


def assign(identity: str, experiment_id: str, weights: Sequence[int]) -> int:
    """
    Assign identity to a variant index using relative weights.

    The bucket is hash mod sum(weights). Weights are relative: a total other
    than 100 is not rescaled.

    Args:
        identity: Stable visitor token
        experiment_id: Experiment identifier
        weights: Ordered positive integer weights (need not sum to 100)

    Returns:
        Index in [0, len(weights))
    """
    if not weights:
        raise ValueError("weights must be non-empty")
    if any(w <= 0 for w in weights):
        raise ValueError(f"weights must be positive, got {list(weights)}")

    bucket = hash_key(identity, experiment_id) % sum(weights)
    running = 0
    for i, w in enumerate(weights):
        running += w
        if running > bucket:
            return i
    return len(weights) - 1


def assign_uniform(identity: str, experiment_id: str, variant_count: int) -> int:
    """
    Assign identity to one of variant_count equally weighted variants.

    Same result as assign() with unit weights [1] * variant_count. Moving an
    experiment to other weights reassigns part of its traffic.
    """
    if variant_count <= 0:
        raise ValueError(f"variant_count must be positive, got {variant_count}")
    return hash_key(identity, experiment_id) % variant_count


def assign_experiment(identity: str, experiment: Experiment) -> AssignmentDecision:
    """Weighted assignment for a configured experiment."""
    index = assign(identity, experiment.id, experiment.weights)
    return AssignmentDecision(
        experiment_id=experiment.id,
        identity=identity,
        variant_index=index,
    )


def assign_identities(
    identities: Iterable[str],
    experiment: Experiment,
) -> List[AssignmentDecision]:
    """
    Assign many identities to an experiment.

    Args:
        identities: Visitor tokens
        experiment: Experiment definition

    Returns:
        List of AssignmentDecision, in input order
    """
    decisions = [assign_experiment(uid, experiment) for uid in identities]

    counts = [0] * len(experiment.variants)
    for d in decisions:
        counts[d.variant_index] += 1
    logger.info(
        f"Assignment complete: {len(decisions)} identities -> "
        f"{experiment.id} {dict(zip(experiment.variant_labels(), counts))}"
    )
    return decisions
