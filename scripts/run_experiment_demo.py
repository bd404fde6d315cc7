#!/usr/bin/env python3
"""
Run full experiment demo: load experiments -> simulate traffic -> analyze.

Creates artifacts/experiments/<id>/analysis.json and prints per-variant results.
"""

import logging
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))


def main():
    logging.basicConfig(level=logging.INFO)

    from src.abtesting.analyze import run_analysis
    from src.abtesting.event_store import SqliteEventStore
    from src.abtesting.registry import ExperimentRegistry
    from src.abtesting.simulate import simulate_traffic

    registry = ExperimentRegistry.from_file(ROOT / "config" / "experiments.json")
    artifacts_dir = ROOT / "artifacts" / "experiments"
    artifacts_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory() as tmp:
        store = SqliteEventStore(str(Path(tmp) / "demo_events.db"))

        print("1. Simulating traffic...")
        summary = simulate_traffic(
            registry,
            store,
            targets=["/pricing", "/services/web", "/services/app", "/about"],
            n_visitors=5000,
        )
        print(f"   {summary['n_impressions']} impressions, {summary['n_conversions']} conversions, "
              f"{summary['n_rewrites']} rewrites")

        print("2. Running analysis...")
        reports = run_analysis(store, registry, artifacts_dir=str(artifacts_dir))

    for report in reports:
        print(f"\n{report.name} ({report.experiment_id}) - {report.total_impressions} impressions")
        for v in report.variants:
            marker = "  <- leading" if v.variant_key == report.leading_variant else ""
            print(f"   {v.variant_label:<12} {v.impressions:>6} {v.conversions:>6} {v.rate:>7}{marker}")
        for key, cmp in report.comparisons.items():
            print(f"   variant {key} vs control: lift {cmp['lift_pct']:+.1f}%, p={cmp['p_value']:.3f}")
        if report.srm_passed is False:
            print("   WARNING: sample ratio mismatch")

    print(f"\n[OK] Demo complete. Artifacts in {artifacts_dir}")


if __name__ == "__main__":
    main()
