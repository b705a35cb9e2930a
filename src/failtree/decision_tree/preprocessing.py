"""Input preparation: feature-vector validation, DataFrame ingestion, and numpy encoding."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

import numpy as np
import polars as pl

from failtree.decision_tree.models import FEATURE_NAMES, LABEL_NAME, FeatureName, LabeledRecord
from failtree.exceptions import MissingFeatureError, NonFiniteFeatureError

# ---------------------------------------------------------------------------
# Public interface -- Feature vectors
# ---------------------------------------------------------------------------


def validate_feature_vector(features: Mapping[str, float]) -> dict[FeatureName, float]:
    """Check that a feature vector is complete and finite, and normalize it.

    Extra keys are ignored so that callers can pass richer rows (for example
    a record that still carries `pipelineId`).

    Args:
        features (Mapping[str, float]): Feature name to value mapping.

    Returns:
        dict[FeatureName, float]: The five feature values as floats, in
            `FEATURE_NAMES` order.

    Raises:
        MissingFeatureError: If any of the five features is absent.
        NonFiniteFeatureError: If any of the five values is NaN or infinite.
    """
    missing = [name for name in FEATURE_NAMES if name not in features]
    if missing:
        raise MissingFeatureError(missing_features=missing, available_features=list(features))

    vector = {name: float(features[name]) for name in FEATURE_NAMES}
    non_finite = {name: value for name, value in vector.items() if not math.isfinite(value)}
    if non_finite:
        raise NonFiniteFeatureError(features=non_finite)
    return vector


# ---------------------------------------------------------------------------
# Public interface -- Encoding
# ---------------------------------------------------------------------------


def encode_records(records: Sequence[LabeledRecord]) -> tuple[np.ndarray, np.ndarray]:
    """Convert records into a feature matrix and a label vector.

    Args:
        records (Sequence[LabeledRecord]): Records to encode.

    Returns:
        tuple[np.ndarray, np.ndarray]: A 2-tuple of `(feature_matrix, labels)`
            where *feature_matrix* is a float64 array with shape
            `(n_records, 5)` whose columns follow `FEATURE_NAMES`, and
            *labels* is a bool array with shape `(n_records,)`.
    """
    feature_matrix = np.array(
        [[record.features[name] for name in FEATURE_NAMES] for record in records],
        dtype=np.float64,
    ).reshape(len(records), len(FEATURE_NAMES))
    labels = np.array([record.label for record in records], dtype=bool)
    return feature_matrix, labels


# ---------------------------------------------------------------------------
# Public interface -- DataFrame ingestion
# ---------------------------------------------------------------------------


def records_from_frame(df: pl.DataFrame, *, label_column: str = LABEL_NAME) -> list[LabeledRecord]:
    """Build labeled records from a Polars DataFrame of historical observations.

    The frame must hold one column per feature plus a boolean label column;
    any other columns (identifiers, timestamps) are ignored. Rows whose label
    is null are dropped.

    Args:
        df (pl.DataFrame): Historical observations.
        label_column (str): Name of the boolean label column.

    Returns:
        list[LabeledRecord]: One record per row with a non-null label, in row order.

    Raises:
        MissingFeatureError: If the label column or any feature column is absent.
        ValueError: If a feature column contains null values.
        NonFiniteFeatureError: If a feature column contains NaN or infinite values.
    """
    required_columns = [*FEATURE_NAMES, label_column]
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise MissingFeatureError(missing_features=missing, available_features=df.columns)

    df_clean = (
        df.select(required_columns)
        .drop_nulls(subset=[label_column])
        .with_columns(
            pl.col(list(FEATURE_NAMES)).cast(pl.Float64),
            pl.col(label_column).cast(pl.Boolean),
        )
    )
    _validate_feature_columns(df_clean)

    return [
        LabeledRecord(
            features={name: row[name] for name in FEATURE_NAMES},
            label=row[label_column],
        )
        for row in df_clean.iter_rows(named=True)
    ]


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _validate_feature_columns(df: pl.DataFrame) -> None:
    """Raise if any feature column holds nulls or non-finite values.

    Args:
        df (pl.DataFrame): Frame whose feature columns are already cast to Float64.

    Raises:
        ValueError: If a feature column contains null values.
        NonFiniteFeatureError: If a feature column contains NaN or infinite values.
    """
    null_columns = [name for name in FEATURE_NAMES if df[name].null_count() > 0]
    if null_columns:
        raise ValueError(f"Feature columns contain null values: {null_columns}")

    non_finite: dict[str, float] = {}
    for name in FEATURE_NAMES:
        offending = df[name].filter(~df[name].is_finite())
        if len(offending) > 0:
            non_finite[name] = float(offending[0])
    if non_finite:
        raise NonFiniteFeatureError(features=non_finite)
