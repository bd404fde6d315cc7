"""Tests for event aggregation."""
from src.abtesting.aggregate import (
    RunningAggregator,
    aggregate,
    aggregate_events,
    results_to_dict,
)
from src.abtesting.schema import Event, EventKind


def _events(exp, variant, kind, n, name=None):
    return [Event(exp, variant, kind, name=name) for _ in range(n)]


def _sample():
    return (
        _events("e1", "0", EventKind.IMPRESSION, 10)
        + _events("e1", "0", EventKind.CONVERSION, 2)
        + _events("e1", "1", EventKind.IMPRESSION, 10)
        + _events("e1", "1", EventKind.CONVERSION, 5)
    )


def test_conversion_rates():
    """10 impressions / 2 conversions -> 20.0%, 10 / 5 -> 50.0%."""
    results = aggregate(_sample())
    v0, v1 = results["e1"]["0"], results["e1"]["1"]
    assert (v0.impressions, v0.conversions, v0.rate) == (10, 2, "20.0%")
    assert (v1.impressions, v1.conversions, v1.rate) == (10, 5, "50.0%")


def test_aggregate_is_idempotent():
    events = _sample()
    assert results_to_dict(aggregate(events)) == results_to_dict(aggregate(events))


def test_zero_impressions_rate():
    results = aggregate(_events("e1", "0", EventKind.CONVERSION, 3))
    assert results["e1"]["0"].rate == "0%"


def test_rate_one_decimal():
    events = _events("e1", "0", EventKind.IMPRESSION, 3) + _events("e1", "0", EventKind.CONVERSION, 1)
    assert aggregate(events)["e1"]["0"].rate == "33.3%"


def test_custom_event_counts():
    events = (
        _events("e1", "1", EventKind.CUSTOM, 4, name="cta_click")
        + _events("e1", "1", EventKind.CUSTOM, 1, name="scroll_75")
        + _events("e1", "0", EventKind.CUSTOM, 2, name="cta_click")
    )
    results = aggregate(events)
    assert results["e1"]["1"].custom_event_counts == {"cta_click": 4, "scroll_75": 1}
    assert results["e1"]["0"].custom_event_counts == {"cta_click": 2}
    assert results["e1"]["1"].impressions == 0


def test_known_variants_reported_with_zero_counts():
    """Registry labels define the variant universe, even with no events."""
    events = _events("e1", "0", EventKind.IMPRESSION, 5)
    results = aggregate(events, {"e1": ["Control", "Variant 1", "Variant 2"], "e2": ["A", "B"]})
    assert list(results["e1"]) == ["0", "1", "2"]
    assert results["e1"]["2"].impressions == 0
    assert results["e1"]["2"].variant_label == "Variant 2"
    assert list(results["e2"]) == ["0", "1"]


def test_without_labels_only_logged_variants():
    results = aggregate(_events("e1", "1", EventKind.IMPRESSION, 1))
    assert list(results["e1"]) == ["1"]
    assert results["e1"]["1"].variant_label == "Variant 1"


def test_labels_in_events_map_to_index():
    """Events naming variants by label ("B") count toward the index key."""
    events = _events("hero", "B", EventKind.IMPRESSION, 3) + _events("hero", "1", EventKind.IMPRESSION, 2)
    results = aggregate(events, {"hero": ["A", "B"]})
    assert results["hero"]["1"].impressions == 5
    assert results["hero"]["1"].variant_label == "B"


def test_variant_order_numeric():
    events = [Event("e1", v, EventKind.IMPRESSION) for v in ("10", "2", "0", "x")]
    assert list(aggregate(events)["e1"]) == ["0", "2", "10", "x"]


def test_malformed_events_skipped_and_counted():
    events = _sample() + [
        Event("", "0", EventKind.IMPRESSION),
        Event("e1", "0", "bogus"),
        Event("e1", "1", EventKind.CUSTOM),
        "not an event",
    ]
    report = aggregate_events(events)
    assert report.skipped == 4
    assert report.results["e1"]["0"].impressions == 10
    assert report.to_dict()["skipped"] == 4


def test_empty_input():
    assert aggregate([]) == {}


def test_running_aggregator_matches_batch():
    """Incremental counting gives the same result as a full scan."""
    events = _sample() + _events("e1", "1", EventKind.CUSTOM, 2, name="cta_click")
    running = RunningAggregator({"e1": ["Control", "Variant 1"]})
    assert running.add_many(events) == len(events)
    assert results_to_dict(running.results()) == results_to_dict(
        aggregate(events, {"e1": ["Control", "Variant 1"]})
    )
    assert not running.add(Event("", "0", EventKind.IMPRESSION))
    assert running.skipped == 1


def test_unicode_digit_variant_does_not_break_aggregation():
    """Keys like "²" pass str.isdigit() but are not indexes."""
    events = _events("e1", "²", EventKind.IMPRESSION, 2) + _events("e1", "1", EventKind.IMPRESSION, 1)
    res = aggregate(events, {"e1": ["A", "B"]})
    assert list(res["e1"]) == ["0", "1", "²"]
    assert res["e1"]["²"].variant_label == "²"
    assert res["e1"]["²"].impressions == 2

    running = RunningAggregator()
    running.add_many(events)
    assert list(running.results()["e1"]) == ["1", "²"]
