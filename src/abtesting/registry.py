"""
Experiment registry and JSON configuration source.

Holds the experiment definitions for one deployment in declared order and
answers which of them apply to a target. Definitions are validated when the
registry is built; nothing is validated per request.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import ConfigurationError
from .matching import is_valid_pattern, matches
from .schema import (
    ContentOverride,
    Experiment,
    ExperimentKind,
    RedirectTarget,
    Variant,
)

logger = logging.getLogger(__name__)


class ExperimentRegistry:
    """Immutable, ordered set of experiments."""

    def __init__(self, experiments: Iterable[Experiment] = ()):
        self._experiments: List[Experiment] = list(experiments)
        self._by_id: Dict[str, Experiment] = {}
        for exp in self._experiments:
            if exp.id in self._by_id:
                raise ConfigurationError(f"Duplicate experiment id '{exp.id}'")
            if not is_valid_pattern(exp.scope_pattern):
                raise ConfigurationError(
                    f"Experiment '{exp.id}': malformed match pattern {exp.scope_pattern!r}"
                )
            self._by_id[exp.id] = exp

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ExperimentRegistry":
        return cls(load_experiments(path))

    @property
    def experiments(self) -> List[Experiment]:
        return list(self._experiments)

    def __len__(self) -> int:
        return len(self._experiments)

    def __contains__(self, experiment_id: str) -> bool:
        return experiment_id in self._by_id

    def get(self, experiment_id: str) -> Optional[Experiment]:
        return self._by_id.get(experiment_id)

    def active_experiments_for(self, target: str) -> List[Experiment]:
        """Active experiments whose pattern matches target, in declared order."""
        return [
            exp for exp in self._experiments
            if exp.active and matches(target, exp.scope_pattern)
        ]

    def redirect_experiment_for(self, target: str) -> Optional[Experiment]:
        """First matching redirect experiment. Later matches never apply."""
        for exp in self.active_experiments_for(target):
            if exp.kind == ExperimentKind.REDIRECT:
                return exp
        return None

    def content_experiments_for(self, target: str) -> List[Experiment]:
        return [
            exp for exp in self.active_experiments_for(target)
            if exp.kind == ExperimentKind.CONTENT
        ]

    def variant_labels(self, experiment_id: str) -> Optional[List[str]]:
        exp = self.get(experiment_id)
        return exp.variant_labels() if exp else None


def _parse_variant(raw: Dict[str, Any], kind: ExperimentKind, exp_id: str, index: int) -> Variant:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Experiment '{exp_id}' variant {index} must be an object")
    weight = raw.get("weight")
    if kind == ExperimentKind.REDIRECT:
        url = raw.get("url")
        if not url:
            raise ConfigurationError(f"Experiment '{exp_id}' variant {index}: redirect variants need a url")
        payload = RedirectTarget(url=str(url))
    else:
        if raw.get("url"):
            raise ConfigurationError(f"Experiment '{exp_id}' variant {index}: content variants cannot carry a url")
        fields = raw.get("meta") or raw.get("fields") or {}
        if not isinstance(fields, dict):
            raise ConfigurationError(f"Experiment '{exp_id}' variant {index}: meta must be an object")
        payload = ContentOverride(fields={str(k): str(v) for k, v in fields.items()})
    label = raw.get("label") or raw.get("value")
    return Variant(weight=weight, payload=payload, label=str(label) if label else None)


def parse_experiment(raw: Dict[str, Any]) -> Experiment:
    """Build an Experiment from one JSON definition."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Experiment definition must be an object")
    exp_id = raw.get("id")
    if not exp_id:
        raise ConfigurationError("Experiment definition is missing 'id'")
    try:
        kind = ExperimentKind(raw.get("type", ""))
    except ValueError:
        raise ConfigurationError(
            f"Experiment '{exp_id}': type must be 'redirect' or 'content', got {raw.get('type')!r}"
        )
    variants = [
        _parse_variant(v, kind, exp_id, i)
        for i, v in enumerate(raw.get("variants") or [])
    ]
    return Experiment(
        id=str(exp_id),
        kind=kind,
        scope_pattern=raw.get("match", ""),
        variants=variants,
        active=bool(raw.get("active", True)),
        name=str(raw.get("name", "")),
    )


def load_experiments(path: Union[str, Path]) -> List[Experiment]:
    """
    Load experiment definitions from a JSON file.
    
    Accepts {"experiments": [...]} or a bare list.
    
    Raises:
        ConfigurationError: unreadable file or invalid definitions
    """
    path = Path(path)
    try:
        with open(path) as f:
            doc = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot load experiments from {path}: {e}")

    raw_list = doc.get("experiments", []) if isinstance(doc, dict) else doc
    if not isinstance(raw_list, list):
        raise ConfigurationError(f"{path}: 'experiments' must be a list")

    experiments = [parse_experiment(raw) for raw in raw_list]
    n_active = sum(1 for e in experiments if e.active)
    logger.info(f"Loaded {len(experiments)} experiments ({n_active} active) from {path}")
    return experiments
