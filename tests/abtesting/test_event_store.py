"""Tests for the append-only event store backends."""
import threading

import pytest

from src.abtesting.errors import ValidationError
from src.abtesting.event_store import (
    CsvEventStore,
    InMemoryEventStore,
    SqliteEventStore,
)
from src.abtesting.schema import Event, EventKind


@pytest.fixture(params=["memory", "csv", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryEventStore()
    if request.param == "csv":
        return CsvEventStore(str(tmp_path / "experiments"))
    return SqliteEventStore(str(tmp_path / "events.db"))


def test_append_and_query(store):
    store.append(Event("hero", "1", EventKind.IMPRESSION, target="/services/web", identity="u1"))
    store.append(Event("hero", "1", EventKind.CUSTOM, name="cta_click"))
    store.append(Event("cta", "0", EventKind.CONVERSION))

    hero = store.query("hero")
    assert len(hero) == 2
    impression = next(e for e in hero if e.kind == EventKind.IMPRESSION)
    assert impression.variant == "1"
    assert impression.target == "/services/web"
    assert impression.identity == "u1"
    custom = next(e for e in hero if e.kind == EventKind.CUSTOM)
    assert custom.name == "cta_click"
    assert custom.identity is None

    assert len(store.query()) == 3
    assert store.count() == 3
    assert store.count("cta") == 1
    assert store.experiment_ids() == ["cta", "hero"]


def test_query_unknown_experiment_is_empty(store):
    assert store.query("nope") == []
    assert store.query_frame("nope").empty


def test_malformed_event_rejected(store):
    with pytest.raises(ValidationError):
        store.append(Event("", "0", EventKind.IMPRESSION))
    with pytest.raises(ValidationError):
        store.append(Event("hero", "0", EventKind.CUSTOM))
    assert store.count() == 0


def test_batch_is_all_or_nothing(store):
    """One bad event in a batch means nothing is written."""
    batch = [
        Event("hero", "0", EventKind.IMPRESSION),
        Event("hero", "", EventKind.IMPRESSION),
    ]
    with pytest.raises(ValidationError):
        store.append_many(batch)
    assert store.count() == 0
    assert store.append_many(batch[:1]) == 1


def test_duplicates_are_kept(store):
    """Retried beacons are stored again; no dedup in this layer."""
    e = Event("hero", "0", EventKind.IMPRESSION, identity="u1")
    store.append(e)
    store.append(e)
    assert store.count("hero") == 2


def test_concurrent_appends(store):
    """N concurrent appends give exactly N intact records."""
    n_threads, per_thread = 8, 50

    def worker(t):
        for i in range(per_thread):
            store.append(Event("load", str(t), EventKind.CUSTOM, name=f"evt-{t}-{i}", identity=f"u-{t}-{i}"))

    threads = [threading.Thread(target=worker, args=(t,)) for t in range(n_threads)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    events = store.query("load")
    assert len(events) == n_threads * per_thread
    names = {e.name for e in events}
    assert names == {f"evt-{t}-{i}" for t in range(n_threads) for i in range(per_thread)}
    assert all(e.identity == "u-" + e.name[len("evt-"):] for e in events)


def test_query_frame_columns(store):
    store.append(Event("hero", "0", EventKind.IMPRESSION))
    df = store.query_frame()
    assert list(df.columns) == ["experiment_id", "variant", "kind", "name", "target", "identity", "timestamp"]
    assert df.iloc[0]["kind"] == "impression"


def test_csv_store_keeps_ids_inside_base_dir(tmp_path):
    """Experiment ids from payloads cannot escape the store directory."""
    base = tmp_path / "experiments"
    store = CsvEventStore(str(base))
    store.append(Event("../escape", "0", EventKind.IMPRESSION))
    assert not (tmp_path / "escape").exists()
    assert store.experiment_ids() == ["../escape"]
    assert len(store.query("../escape")) == 1


def test_csv_values_survive_round_trip(tmp_path):
    """Commas, quotes and numeric-looking strings are preserved."""
    store = CsvEventStore(str(tmp_path))
    store.append(Event("exp", "007", EventKind.CUSTOM, name='say "hi", twice', target="/a,b"))
    e = store.query("exp")[0]
    assert e.variant == "007"
    assert e.name == 'say "hi", twice'
    assert e.target == "/a,b"


def test_sqlite_store_shared_between_instances(tmp_path):
    """Two store objects on one database see each other's events."""
    path = str(tmp_path / "shared.db")
    a, b = SqliteEventStore(path), SqliteEventStore(path)
    a.append(Event("hero", "0", EventKind.IMPRESSION))
    b.append(Event("hero", "1", EventKind.IMPRESSION))
    assert a.count("hero") == 2
