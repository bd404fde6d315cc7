"""
Synthetic traffic simulator.

Sends simulated visitors through the request-time resolver and records
impressions, conversions and custom events in an event store:
- each visitor views one target, drawn from the configured targets
- every applicable experiment logs an impression for its assigned variant
- conversion probability = base rate, scaled by a relative uplift for
  non-control variants
- converting visitors also emit a custom "cta_click" event

Returns a run summary. Used by demos and end-to-end tests.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np

from .event_store import EventStore
from .registry import ExperimentRegistry
from .resolver import resolve_assignment
from .schema import Event, EventKind

logger = logging.getLogger(__name__)

SIMULATOR_SEED = 42
CUSTOM_EVENT_NAME = "cta_click"


def simulate_traffic(
    registry: ExperimentRegistry,
    store: EventStore,
    targets: Sequence[str],
    n_visitors: int = 1000,
    base_conversion_rate: float = 0.10,
    treatment_uplift: float = 0.20,
    click_rate: float = 0.5,
    random_seed: int = SIMULATOR_SEED,
    identity_prefix: str = "sim-visitor",
) -> Dict:
    """
    Run a traffic simulation.
    
    Args:
        registry: Experiment definitions
        store: Destination event store
        targets: URL paths visitors land on (uniformly drawn)
        n_visitors: Number of distinct visitors
        base_conversion_rate: Control conversion probability
        treatment_uplift: Relative conversion lift for variants 1+ (0.2 = +20%)
        click_rate: Probability a converting visitor also logs a custom event
        random_seed: RNG seed for reproducibility
        identity_prefix: Prefix of synthetic identity tokens
        
    Returns:
        Summary dict with visitor, impression, conversion and rewrite counts
    """
    if not targets:
        raise ValueError("targets must be non-empty")
    rng = np.random.default_rng(random_seed)
    target_idx = rng.integers(0, len(targets), size=n_visitors)

    events = []
    n_rewrites = 0
    n_conversions = 0
    for i in range(n_visitors):
        identity = f"{identity_prefix}-{i:06d}"
        target = targets[target_idx[i]]
        resolution = resolve_assignment(registry, target, identity)
        if resolution.rewrite:
            n_rewrites += 1

        for decision in resolution.decisions:
            variant = str(decision.variant_index)
            events.append(Event(decision.experiment_id, variant, EventKind.IMPRESSION,
                                target=target, identity=identity))
            p = base_conversion_rate
            if decision.variant_index > 0:
                p *= 1 + treatment_uplift
            if rng.random() < min(p, 1.0):
                n_conversions += 1
                events.append(Event(decision.experiment_id, variant, EventKind.CONVERSION,
                                    target=target, identity=identity))
                if rng.random() < click_rate:
                    events.append(Event(decision.experiment_id, variant, EventKind.CUSTOM,
                                        name=CUSTOM_EVENT_NAME, target=target, identity=identity))

    store.append_many(events)
    n_impressions = sum(1 for e in events if e.kind == EventKind.IMPRESSION)
    summary = {
        "n_visitors": n_visitors,
        "n_events": len(events),
        "n_impressions": n_impressions,
        "n_conversions": n_conversions,
        "n_rewrites": n_rewrites,
    }
    logger.info(f"Simulation complete: {summary}")
    return summary
