"""Tests for experiment result reports."""
import json

from src.abtesting.analyze import run_analysis
from src.abtesting.event_store import InMemoryEventStore
from src.abtesting.schema import Event, EventKind


def _fill(store, exp, variant, impressions, conversions):
    store.append_many([Event(exp, variant, EventKind.IMPRESSION) for _ in range(impressions)])
    store.append_many([Event(exp, variant, EventKind.CONVERSION) for _ in range(conversions)])


def test_reports_follow_registry(registry):
    """Every registry experiment is reported, even without traffic."""
    reports = run_analysis(InMemoryEventStore(), registry)
    assert [r.experiment_id for r in reports] == ["pricing-redesign", "hero", "cta", "retired"]
    hero = reports[1]
    assert [v.variant_label for v in hero.variants] == ["A", "B"]
    assert hero.total_impressions == 0
    assert hero.leading_variant is None
    assert hero.srm_passed is None


def test_report_with_traffic(registry):
    store = InMemoryEventStore()
    _fill(store, "hero", "0", 500, 50)
    _fill(store, "hero", "1", 500, 100)
    [report] = run_analysis(store, registry, experiment_id="hero")
    assert report.total_impressions == 1000
    assert report.leading_variant == "1"
    assert report.srm_passed
    assert report.comparisons["1"]["significant"]
    assert report.comparisons["1"]["lift"] > 0
    d = report.to_dict()
    assert d["variants"][1]["rate"] == "20.0%"
    assert d["type"] == "content"


def test_no_leader_below_traffic_threshold(registry):
    store = InMemoryEventStore()
    _fill(store, "hero", "0", 10, 1)
    _fill(store, "hero", "1", 10, 5)
    [report] = run_analysis(store, registry, experiment_id="hero")
    assert report.leading_variant is None


def test_srm_flagged(registry):
    store = InMemoryEventStore()
    _fill(store, "hero", "0", 900, 0)
    _fill(store, "hero", "1", 100, 0)
    [report] = run_analysis(store, registry, experiment_id="hero")
    assert report.srm_passed is False


def test_unknown_experiment_is_empty(registry):
    """No config and no data is a normal state, not an error."""
    assert run_analysis(InMemoryEventStore(), registry, experiment_id="ghost") == []


def test_log_only_experiment_reported(registry):
    """Events for experiments missing from config are still aggregated."""
    store = InMemoryEventStore()
    _fill(store, "legacy", "0", 3, 1)
    [report] = run_analysis(store, registry, experiment_id="legacy")
    assert report.kind is None
    assert report.variants[0].rate == "33.3%"


def test_artifacts_written(registry, tmp_path):
    store = InMemoryEventStore()
    _fill(store, "cta", "1", 30, 3)
    run_analysis(store, registry, experiment_id="cta", artifacts_dir=str(tmp_path))
    with open(tmp_path / "cta" / "analysis.json") as f:
        saved = json.load(f)
    assert saved["experiment_id"] == "cta"
    assert saved["variants"][1]["conversions"] == 3
