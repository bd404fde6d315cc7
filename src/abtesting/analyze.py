"""
Experiment results entrypoint.

Input: an event store, the experiment registry, optionally one experiment id.
Output: ExperimentReport per experiment (per-variant counts and rates, lift of
each variant over control, sample ratio check, leading variant), optionally
saved as JSON to artifacts/experiments/<experiment_id>/analysis.json
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .aggregate import aggregate_events
from .event_store import EventStore, experiment_dir_name
from .registry import ExperimentRegistry
from .schema import AggregateResult
from .stats import check_srm, compare_to_control

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACTS_DIR = "artifacts/experiments"
# A variant is only called "leading" once the experiment has this much traffic
MIN_IMPRESSIONS_FOR_LEADER = 20


@dataclass
class ExperimentReport:
    """Results for one experiment."""
    experiment_id: str
    name: str = ""
    kind: Optional[str] = None
    scope_pattern: Optional[str] = None
    active: Optional[bool] = None
    analysis_timestamp: datetime = field(default_factory=datetime.utcnow)
    variants: List[AggregateResult] = field(default_factory=list)
    comparisons: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    total_impressions: int = 0
    leading_variant: Optional[str] = None

    # SRM, only for experiments known to the registry
    srm_passed: Optional[bool] = None
    srm_p_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "experiment_id": self.experiment_id,
            "name": self.name or self.experiment_id,
            "type": self.kind,
            "match": self.scope_pattern,
            "active": self.active,
            "analysis_timestamp": self.analysis_timestamp.isoformat(),
            "total_impressions": self.total_impressions,
            "leading_variant": self.leading_variant,
            "srm_passed": self.srm_passed,
            "srm_p_value": self.srm_p_value,
            "variants": [v.to_dict() for v in self.variants],
            "comparisons": self.comparisons,
        }


def _leading_variant(variants: List[AggregateResult], total_impressions: int) -> Optional[str]:
    if total_impressions <= MIN_IMPRESSIONS_FOR_LEADER or not variants:
        return None
    best = max(variants, key=lambda v: v.conversion_rate)
    return best.variant_key


def build_report(
    experiment_id: str,
    variants: Dict[str, AggregateResult],
    registry: Optional[ExperimentRegistry] = None,
) -> ExperimentReport:
    """Turn aggregated variants of one experiment into a report."""
    exp = registry.get(experiment_id) if registry else None
    rows = list(variants.values())
    total = sum(v.impressions for v in rows)

    report = ExperimentReport(
        experiment_id=experiment_id,
        name=exp.display_name if exp else experiment_id,
        kind=exp.kind.value if exp else None,
        scope_pattern=exp.scope_pattern if exp else None,
        active=exp.active if exp else None,
        variants=rows,
        total_impressions=total,
        leading_variant=_leading_variant(rows, total),
    )

    control = variants.get("0")
    if control is not None and control.impressions > 0:
        for key, v in variants.items():
            if key == "0" or v.impressions == 0:
                continue
            report.comparisons[key] = compare_to_control(
                control.impressions, control.conversions, v.impressions, v.conversions
            )

    if exp is not None and total > 0:
        observed = [variants[str(i)].impressions if str(i) in variants else 0 for i in range(len(exp.variants))]
        passed, _, p_value = check_srm(observed, exp.weights)
        report.srm_passed = passed
        report.srm_p_value = p_value
        if not passed:
            logger.warning(
                f"Sample ratio mismatch in {experiment_id}: observed {observed}, "
                f"weights {exp.weights}, p={p_value:.4g}"
            )
    return report


def run_analysis(
    store: EventStore,
    registry: Optional[ExperimentRegistry] = None,
    experiment_id: Optional[str] = None,
    artifacts_dir: Optional[str] = None,
) -> List[ExperimentReport]:
    """
    Build result reports for one or all experiments.

    An experiment id unknown to both the registry and the event log yields
    an empty list, not an error.

    Args:
        store: Event store to read
        registry: Experiment definitions (supplies labels, weights and
            zero-traffic variants)
        experiment_id: Restrict to one experiment
        artifacts_dir: If given, write analysis.json per experiment here

    Returns:
        List of ExperimentReport, registry order first
    """
    labels: Dict[str, List[str]] = {}
    if registry is not None:
        for exp in registry.experiments:
            if experiment_id is None or exp.id == experiment_id:
                labels[exp.id] = exp.variant_labels()

    events = store.query(experiment_id)
    report = aggregate_events(events, labels)
    if report.skipped:
        logger.warning(f"{report.skipped} malformed events ignored in results")

    reports = [
        build_report(exp_id, variants, registry)
        for exp_id, variants in report.results.items()
    ]

    if artifacts_dir:
        for r in reports:
            out_dir = Path(artifacts_dir) / experiment_dir_name(r.experiment_id)
            out_dir.mkdir(parents=True, exist_ok=True)
            with open(out_dir / "analysis.json", "w") as f:
                json.dump(r.to_dict(), f, indent=2)
        logger.info(f"Analysis saved for {len(reports)} experiments in {artifacts_dir}")
    return reports
