"""
Request-time decision point.

For one target and one visitor, picks a variant in every applicable
experiment, applies at most one redirect and collects content overrides.
Failures never reach the visitor: an experiment that cannot be assigned
falls back to its control variant.
"""

import logging
from typing import Dict, Mapping, Optional

from .assignment import assign_experiment
from .identity import resolve
from .registry import ExperimentRegistry
from .schema import (
    AssignmentDecision,
    ContentOverride,
    Experiment,
    ExperimentKind,
    RedirectTarget,
    Resolution,
)

logger = logging.getLogger(__name__)

CONTROL_INDEX = 0


def _decide(identity: str, experiment: Experiment) -> AssignmentDecision:
    try:
        return assign_experiment(identity, experiment)
    except Exception as e:
        logger.error(f"Assignment failed for {experiment.id}, serving control: {e}")
        return AssignmentDecision(experiment.id, identity, CONTROL_INDEX)


def resolve_assignment(
    registry: ExperimentRegistry,
    target: str,
    identity: Optional[str] = None,
) -> Resolution:
    """
    Resolve all experiment decisions for a request.
    
    Args:
        registry: Experiment definitions
        target: Normalized URL path or content key
        identity: Visitor token, if the session layer has one
        
    Returns:
        Resolution with one decision per applicable experiment, the rewrite
        target of the first matching redirect experiment (if any) and
        content overrides keyed by experiment id
    """
    token, is_new = resolve(identity)
    resolution = Resolution(target=target, identity=token, is_new_identity=is_new)

    for exp in registry.active_experiments_for(target):
        if exp.kind == ExperimentKind.REDIRECT:
            if resolution.redirect_experiment_id is not None:
                logger.debug(
                    f"Skipping redirect experiment {exp.id} for {target}: "
                    f"{resolution.redirect_experiment_id} already applies"
                )
                continue
            decision = _decide(token, exp)
            payload = exp.variants[decision.variant_index].payload
            if isinstance(payload, RedirectTarget) and payload.url != target:
                resolution.rewrite = payload.url
            resolution.redirect_experiment_id = exp.id
        else:
            decision = _decide(token, exp)
            payload = exp.variants[decision.variant_index].payload
            if isinstance(payload, ContentOverride) and payload.fields:
                resolution.content[exp.id] = dict(payload.fields)
        resolution.decisions.append(decision)

    return resolution


def apply_override(
    base: Mapping[str, str],
    override: Optional[Mapping[str, str]],
) -> Dict[str, str]:
    """Base content with each present, non-empty override field swapped in."""
    merged = dict(base)
    for key, value in (override or {}).items():
        if value:
            merged[key] = value
    return merged
