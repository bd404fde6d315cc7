"""Deterministic A/B variant assignment and event aggregation for headless sites."""

from .errors import ConfigurationError, ValidationError
from .schema import (
    AggregateResult,
    AssignmentDecision,
    ContentOverride,
    Event,
    EventKind,
    Experiment,
    ExperimentKind,
    RedirectTarget,
    Resolution,
    Variant,
)
from .matching import matches
from .assignment import assign, assign_uniform, assign_experiment, fnv1a_32
from .identity import resolve, resolve_identity
from .registry import ExperimentRegistry, load_experiments
from .resolver import resolve_assignment, apply_override
from .event_store import EventStore, InMemoryEventStore, CsvEventStore, SqliteEventStore
from .aggregate import aggregate, aggregate_events, RunningAggregator
from .analyze import run_analysis
from .tracking import track

__all__ = [
    "ConfigurationError",
    "ValidationError",
    "AggregateResult",
    "AssignmentDecision",
    "ContentOverride",
    "Event",
    "EventKind",
    "Experiment",
    "ExperimentKind",
    "RedirectTarget",
    "Resolution",
    "Variant",
    "matches",
    "assign",
    "assign_uniform",
    "assign_experiment",
    "fnv1a_32",
    "resolve",
    "resolve_identity",
    "ExperimentRegistry",
    "load_experiments",
    "resolve_assignment",
    "apply_override",
    "EventStore",
    "InMemoryEventStore",
    "CsvEventStore",
    "SqliteEventStore",
    "aggregate",
    "aggregate_events",
    "RunningAggregator",
    "run_analysis",
    "track",
]
