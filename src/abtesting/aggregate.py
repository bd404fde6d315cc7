"""
Roll tracked events up into per-experiment, per-variant results.

Results are a derived view over the event log and are recomputed on read.
Malformed events are skipped and counted, never fatal.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .event_store import EVENT_COLUMNS
from .schema import AggregateResult, Event, EventKind, default_label

logger = logging.getLogger(__name__)

Results = Dict[str, Dict[str, AggregateResult]]
VariantLabels = Mapping[str, Sequence[str]]


@dataclass
class AggregationReport:
    """Aggregated results plus the number of events that could not be used."""
    results: Results = field(default_factory=dict)
    skipped: int = 0

    def to_dict(self) -> Dict:
        return {
            "results": results_to_dict(self.results),
            "skipped": self.skipped,
        }


def _variant_key(variant: str, labels: Optional[Sequence[str]]) -> str:
    """Events may name a variant by index ("1") or by label ("B"); both map to the index key."""
    if labels and variant not in {str(i) for i in range(len(labels))} and variant in labels:
        return str(list(labels).index(variant))
    return variant


def _is_index(key: str) -> bool:
    # str.isdigit() also accepts digits int() rejects, e.g. "²"
    return key.isascii() and key.isdigit()


def _sort_key(key: str):
    return (0, int(key), "") if _is_index(key) else (1, 0, key)


def _label_for(key: str, labels: Optional[Sequence[str]]) -> str:
    if labels and _is_index(key) and int(key) < len(labels):
        return labels[int(key)]
    if _is_index(key):
        return default_label(int(key))
    return key


def _build(
    impressions: Mapping,
    conversions: Mapping,
    customs: Mapping,
    experiment_ids: Iterable[str],
    variant_labels: Optional[VariantLabels],
) -> Results:
    variant_labels = variant_labels or {}
    seen: Dict[str, set] = defaultdict(set)
    for counter in (impressions, conversions):
        for exp_id, key in counter:
            seen[exp_id].add(key)
    for exp_id, key, _ in customs:
        seen[exp_id].add(key)

    results: Results = {}
    for exp_id in experiment_ids:
        labels = variant_labels.get(exp_id)
        known = [str(i) for i in range(len(labels))] if labels else []
        extra = sorted(seen[exp_id] - set(known), key=_sort_key)
        results[exp_id] = {}
        for key in known + extra:
            results[exp_id][key] = AggregateResult(
                experiment_id=exp_id,
                variant_key=key,
                variant_label=_label_for(key, labels),
                impressions=int(impressions.get((exp_id, key), 0)),
                conversions=int(conversions.get((exp_id, key), 0)),
                custom_event_counts={
                    name: int(n) for (e, k, name), n in sorted(customs.items())
                    if e == exp_id and k == key
                },
            )
    return results


def aggregate_frame(
    df: pd.DataFrame,
    variant_labels: Optional[VariantLabels] = None,
) -> Results:
    """
    Aggregate a DataFrame of valid events (EVENT_COLUMNS).

    Args:
        df: Events, one row each
        variant_labels: Optional experiment id -> ordered variant labels. Listed
            experiments report every variant, including ones with no events.

    Returns:
        experiment id -> variant key -> AggregateResult
    """
    variant_labels = variant_labels or {}
    if df.empty:
        df = pd.DataFrame(columns=EVENT_COLUMNS)
    df = df.copy()
    df["variant"] = [
        _variant_key(str(v), variant_labels.get(e))
        for e, v in zip(df["experiment_id"], df["variant"])
    ]

    by_kind = df.groupby(["experiment_id", "variant", "kind"]).size()
    impressions: Dict = {}
    conversions: Dict = {}
    for (exp_id, key, kind), n in by_kind.items():
        if kind == EventKind.IMPRESSION.value:
            impressions[(exp_id, key)] = n
        elif kind == EventKind.CONVERSION.value:
            conversions[(exp_id, key)] = n

    custom_df = df[(df["kind"] == EventKind.CUSTOM.value) & (df["name"] != "")]
    customs = dict(custom_df.groupby(["experiment_id", "variant", "name"]).size().items())

    experiment_ids = list(variant_labels) + sorted(set(df["experiment_id"]) - set(variant_labels))
    return _build(impressions, conversions, customs, experiment_ids, variant_labels)


def aggregate_events(
    events: Iterable[Event],
    variant_labels: Optional[VariantLabels] = None,
) -> AggregationReport:
    """Aggregate events, skipping and counting malformed ones."""
    rows = []
    skipped = 0
    for e in events:
        if not isinstance(e, Event) or not e.is_valid:
            skipped += 1
            continue
        rows.append(e.to_row())
    if skipped:
        logger.warning(f"Skipped {skipped} malformed events during aggregation")

    df = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    return AggregationReport(results=aggregate_frame(df, variant_labels), skipped=skipped)


def aggregate(
    events: Iterable[Event],
    variant_labels: Optional[VariantLabels] = None,
) -> Results:
    """experiment id -> variant key -> AggregateResult."""
    return aggregate_events(events, variant_labels).results


def results_to_dict(results: Results) -> Dict[str, Dict[str, Dict]]:
    return {
        exp_id: {key: r.to_dict() for key, r in variants.items()}
        for exp_id, variants in results.items()
    }


class RunningAggregator:
    """
    Incremental counterpart of aggregate(): counts events as they are
    ingested so results can be read without rescanning the log.
    """

    def __init__(self, variant_labels: Optional[VariantLabels] = None):
        self.variant_labels = dict(variant_labels or {})
        self.skipped = 0
        self._impressions: Dict = defaultdict(int)
        self._conversions: Dict = defaultdict(int)
        self._customs: Dict = defaultdict(int)
        self._experiment_ids: List[str] = []
        self._lock = threading.Lock()

    def add(self, event: Event) -> bool:
        """Count one event. Returns False if it was malformed and skipped."""
        with self._lock:
            if not isinstance(event, Event) or not event.is_valid:
                self.skipped += 1
                return False
            exp_id = event.experiment_id
            key = _variant_key(str(event.variant), self.variant_labels.get(exp_id))
            if exp_id not in self._experiment_ids:
                self._experiment_ids.append(exp_id)
            if event.kind == EventKind.IMPRESSION:
                self._impressions[(exp_id, key)] += 1
            elif event.kind == EventKind.CONVERSION:
                self._conversions[(exp_id, key)] += 1
            else:
                self._customs[(exp_id, key, event.name)] += 1
            return True

    def add_many(self, events: Iterable[Event]) -> int:
        return sum(1 for e in events if self.add(e))

    def results(self) -> Results:
        with self._lock:
            experiment_ids = list(self.variant_labels) + sorted(
                set(self._experiment_ids) - set(self.variant_labels)
            )
            return _build(
                dict(self._impressions),
                dict(self._conversions),
                dict(self._customs),
                experiment_ids,
                self.variant_labels,
            )
