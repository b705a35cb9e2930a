"""Demonstrates training, explaining, and serving a failure-prediction tree.

failtree logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle`` usable as a context manager.

Key concepts shown here:

- ``level``: the custom ``TRAINING`` level (numeric value 25, between INFO and
  WARNING) surfaces one line per trained or published model and is the default.
  ``"DEBUG"`` also shows every split chosen during induction.
- ``train_frame``: trains straight from a Polars DataFrame holding historical
  observations; extra columns such as ``pipelineId`` are ignored.
- ``extract_rules``: turns each leaf into an IF/THEN rule.
- ``ModelRegistry``: holds the current model and swaps in retrained ones while
  predictions keep running.
"""

import numpy as np
import polars as pl

from failtree import ModelRegistry, TrainingConfig, enable_logging, extract_rules, train_frame
from failtree.decision_tree import LabeledRecord

rng = np.random.default_rng(seed=7)
n_rows = 500

# Synthetic history: stale pipelines that already fail often tend to fail again.
hours_since_last_run = rng.uniform(0, 24, n_rows)
avg_failure_rate = rng.uniform(0, 60, n_rows)
history = pl.DataFrame({
    "pipelineId": rng.choice(["etl-orders", "etl-customers", "etl-inventory"], n_rows),
    "hoursSinceLastRun": hours_since_last_run.round(2),
    "avgFailureRate": avg_failure_rate.round(1),
    "dataVolumeVariance": rng.uniform(0, 100, n_rows).round(1),
    "dayOfWeek": rng.integers(0, 7, n_rows),
    "hourOfDay": rng.integers(0, 24, n_rows),
    "willFailInNext2Hours": (hours_since_last_run > 12) & (avg_failure_rate > 20) | (rng.random(n_rows) < 0.05),
})

with enable_logging(level="DEBUG", log_format="full"):
    model = train_frame(history, max_depth=3, min_samples_leaf=10)

print(f"\nTraining accuracy (in-sample): {model.training_accuracy:.1%}")
print(f"Feature importance: {model.feature_importance}\n")
for rule in extract_rules(model):
    print(rule)

with enable_logging():
    registry = ModelRegistry(model, config=TrainingConfig(max_depth=4, min_samples_leaf=5))

    prediction = registry.predict({
        "hoursSinceLastRun": 18.0,
        "avgFailureRate": 35.0,
        "dataVolumeVariance": 12.0,
        "dayOfWeek": 2,
        "hourOfDay": 3,
    })
    print(f"\nWill fail: {prediction.label} ({prediction.confidence:.0%} confidence)")
    for step in prediction.decision_path:
        print(f"  {step}")

    # Retrain with the registry's hyperparameters; readers switch to the new model on publish.
    records = [LabeledRecord.from_historical(row) for row in history.iter_rows(named=True)]
    registry.retrain(records)

# Logging automatically disabled here
