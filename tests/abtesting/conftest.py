"""Shared experiment fixtures."""
import pytest

from src.abtesting.registry import ExperimentRegistry, parse_experiment

EXPERIMENTS = [
    {
        "id": "pricing-redesign",
        "type": "redirect",
        "match": "/pricing",
        "active": True,
        "variants": [
            {"weight": 50, "url": "/pricing"},
            {"weight": 50, "url": "/pricing-v2"},
        ],
    },
    {
        "id": "hero",
        "type": "content",
        "match": "/services/*",
        "active": True,
        "variants": [
            {"weight": 50, "value": "A"},
            {"weight": 50, "value": "B", "meta": {"headline": "We build what matters", "bg": "/hero-alt.jpg"}},
        ],
    },
    {
        "id": "cta",
        "type": "content",
        "match": "/pricing",
        "active": True,
        "variants": [
            {"weight": 50, "value": "A"},
            {"weight": 50, "value": "B", "meta": {"ctaText": "Start Free Trial"}},
        ],
    },
    {
        "id": "retired",
        "type": "content",
        "match": "*",
        "active": False,
        "variants": [{"weight": 100, "value": "A"}],
    },
]


@pytest.fixture
def registry():
    return ExperimentRegistry([parse_experiment(raw) for raw in EXPERIMENTS])


@pytest.fixture
def experiment_defs():
    return [dict(raw) for raw in EXPERIMENTS]
