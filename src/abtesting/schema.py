"""
Data models for headless A/B testing.

Dataclass schemas for experiment definitions, variant payloads, tracked
events, assignment decisions and aggregated per-variant results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError, ValidationError


class ExperimentKind(str, Enum):
    """How an experiment changes the page."""
    REDIRECT = "redirect"  # rewrite the request to another URL
    CONTENT = "content"  # same URL, overridden content fields


class EventKind(str, Enum):
    """Recognized event kinds."""
    IMPRESSION = "impression"
    CONVERSION = "conversion"
    CUSTOM = "event"  # named custom event, e.g. cta_click


@dataclass(frozen=True)
class RedirectTarget:
    """Payload of a redirect variant."""
    url: str


@dataclass(frozen=True)
class ContentOverride:
    """Payload of a content variant: field name -> override value."""
    fields: Dict[str, str] = field(default_factory=dict)


Payload = Union[RedirectTarget, ContentOverride]


@dataclass(frozen=True)
class Variant:
    """One treatment within an experiment."""
    weight: int
    payload: Payload
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"weight": self.weight, "label": self.label}
        if isinstance(self.payload, RedirectTarget):
            d["url"] = self.payload.url
        else:
            d["fields"] = dict(self.payload.fields)
        return d


def default_label(index: int) -> str:
    return "Control" if index == 0 else f"Variant {index}"


@dataclass(frozen=True)
class Experiment:
    """
    A named traffic split for a scope of targets.
    
    Weights are relative. They conventionally sum to 100 but any positive
    total is accepted.
    """
    id: str
    kind: ExperimentKind
    scope_pattern: str
    variants: List[Variant]
    active: bool = True
    name: str = ""

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError("Experiment id must be non-empty")
        if not self.variants:
            raise ConfigurationError(f"Experiment '{self.id}' has no variants")
        expected = RedirectTarget if self.kind == ExperimentKind.REDIRECT else ContentOverride
        for i, v in enumerate(self.variants):
            if isinstance(v.weight, bool) or not isinstance(v.weight, int) or v.weight <= 0:
                raise ConfigurationError(
                    f"Experiment '{self.id}' variant {i}: weight must be a positive integer, got {v.weight!r}"
                )
            if not isinstance(v.payload, expected):
                raise ConfigurationError(
                    f"Experiment '{self.id}' variant {i}: {self.kind.value} experiments "
                    f"require {expected.__name__} payloads"
                )

    @property
    def weights(self) -> List[int]:
        return [v.weight for v in self.variants]

    @property
    def total_weight(self) -> int:
        return sum(self.weights)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def variant_label(self, index: int) -> str:
        label = self.variants[index].label
        return label or default_label(index)

    def variant_labels(self) -> List[str]:
        return [self.variant_label(i) for i in range(len(self.variants))]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "type": self.kind.value,
            "match": self.scope_pattern,
            "active": self.active,
            "variants": [v.to_dict() for v in self.variants],
        }


@dataclass(frozen=True)
class AssignmentDecision:
    """Derived decision. Recomputable from (identity, experiment id, weights)."""
    experiment_id: str
    identity: str
    variant_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "identity": self.identity,
            "variant_index": self.variant_index,
        }


@dataclass
class Event:
    """Tracked event. Append-only once stored."""
    experiment_id: str
    variant: str
    kind: EventKind
    name: Optional[str] = None  # custom event name, only for EventKind.CUSTOM
    target: str = ""
    identity: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def validate(self) -> "Event":
        """Raise ValidationError if required fields are missing."""
        if not self.experiment_id or not str(self.experiment_id).strip():
            raise ValidationError("experiment_id is required")
        if not isinstance(self.kind, EventKind):
            raise ValidationError(f"Unknown event kind: {self.kind!r}")
        if self.variant is None or str(self.variant) == "":
            raise ValidationError("variant is required")
        if self.kind == EventKind.CUSTOM and not self.name:
            raise ValidationError("Custom events require a name")
        return self

    @property
    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Event":
        """
        Build an Event from a tracking payload.
        
        Accepts the compact shape ``{testId, variant, event, slug, uid, name}``
        and the plugin shape ``{experiment_id|post_id, variant_index,
        event_type, event_name, slug, uid}``.
        
        Raises:
            ValidationError: missing fields or unknown event kind
        """
        if not isinstance(payload, dict):
            raise ValidationError("Event payload must be a JSON object")

        experiment_id = _first(payload, "testId", "experiment_id", "post_id")
        variant = _first(payload, "variant", "variant_index")
        raw_kind = _first(payload, "event", "event_type", "kind")
        name = _first(payload, "name", "event_name")

        if experiment_id is None or str(experiment_id).strip() == "":
            raise ValidationError("Missing testId")
        if variant is None or str(variant) == "":
            raise ValidationError("Missing variant")
        if not raw_kind:
            raise ValidationError("Missing event")

        try:
            kind = EventKind(str(raw_kind).lower())
        except ValueError:
            if str(raw_kind).lower() == "custom":
                kind = EventKind.CUSTOM
            else:
                raise ValidationError(
                    f"event must be impression, conversion, or event, got {raw_kind!r}"
                )

        event = cls(
            experiment_id=str(experiment_id),
            variant=str(variant),
            kind=kind,
            name=str(name) if name else None,
            target=str(_first(payload, "slug", "target") or ""),
            identity=str(_first(payload, "uid", "identity") or "") or None,
        )
        return event.validate()

    def to_row(self) -> Dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "variant": self.variant,
            "kind": self.kind.value if isinstance(self.kind, EventKind) else str(self.kind),
            "name": self.name or "",
            "target": self.target or "",
            "identity": self.identity or "",
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Event":
        """Inverse of to_row for rows read back from a store."""
        ts = row.get("timestamp")
        return cls(
            experiment_id=str(row["experiment_id"]),
            variant=str(row["variant"]),
            kind=EventKind(row["kind"]),
            name=_blank_to_none(row.get("name")),
            target=_blank_to_none(row.get("target")) or "",
            identity=_blank_to_none(row.get("identity")),
            timestamp=datetime.fromisoformat(str(ts)) if ts else datetime.utcnow(),
        )


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if payload.get(k) is not None:
            return payload[k]
    return None


def _blank_to_none(value: Any) -> Optional[str]:
    # pandas reads empty CSV cells back as NaN
    if value is None or value != value or str(value) == "":
        return None
    return str(value)


@dataclass
class AggregateResult:
    """Per (experiment, variant) roll-up of the event log."""
    experiment_id: str
    variant_key: str
    variant_label: str
    impressions: int = 0
    conversions: int = 0
    custom_event_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def conversion_rate(self) -> float:
        return self.conversions / self.impressions if self.impressions > 0 else 0.0

    @property
    def rate(self) -> str:
        if self.impressions > 0:
            return f"{self.conversion_rate * 100:.1f}%"
        return "0%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant_key,
            "label": self.variant_label,
            "impressions": self.impressions,
            "conversions": self.conversions,
            "rate": self.rate,
            "events": dict(self.custom_event_counts),
        }


@dataclass
class Resolution:
    """Request-time decisions for one target."""
    target: str
    identity: str
    is_new_identity: bool = False
    decisions: List[AssignmentDecision] = field(default_factory=list)
    rewrite: Optional[str] = None
    redirect_experiment_id: Optional[str] = None
    content: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def variant_for(self, experiment_id: str) -> Optional[int]:
        for d in self.decisions:
            if d.experiment_id == experiment_id:
                return d.variant_index
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "identity": self.identity,
            "is_new_identity": self.is_new_identity,
            "decisions": [d.to_dict() for d in self.decisions],
            "rewrite": self.rewrite,
            "redirect_experiment_id": self.redirect_experiment_id,
            "content": {k: dict(v) for k, v in self.content.items()},
        }
