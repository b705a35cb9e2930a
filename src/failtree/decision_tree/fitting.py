"""Decision tree induction: Gini impurity, best-split search, recursive construction, and scoring."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Final, NamedTuple

import numpy as np
import polars as pl
from loguru import logger
from sklearn.metrics import accuracy_score

from failtree.decision_tree.inference import _descend
from failtree.decision_tree.models import (
    FEATURE_NAMES,
    LABEL_NAME,
    FeatureName,
    LabeledRecord,
    LeafNode,
    SplitNode,
    TreeModel,
    iter_nodes,
)
from failtree.decision_tree.preprocessing import encode_records, records_from_frame
from failtree.exceptions import EmptyTrainingSetError
from failtree.logging import TRAINING_LEVEL

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

MIN_GAIN_TO_SPLIT: Final[float] = 0.01  # Splits improving Gini impurity by less than this become leaves.
_MIN_TREE_DEPTH: Final[int] = 1
_MIN_SAMPLES_LEAF: Final[int] = 1


class SplitCandidate(NamedTuple):
    """The best (feature, threshold) pair found for a node.

    Attributes:
        feature (FeatureName): Feature to compare.
        threshold (float): Records with `feature <= threshold` go left.
        gain (float): Reduction in Gini impurity achieved by the split.
    """

    feature: FeatureName
    threshold: float
    gain: float


# ---------------------------------------------------------------------------
# Public interface -- Impurity and split search
# ---------------------------------------------------------------------------


def gini_impurity(labels: np.ndarray | Sequence[bool]) -> float:
    """Compute the Gini impurity of a set of binary labels.

    Args:
        labels (np.ndarray | Sequence[bool]): The labels of the records in the set.

    Returns:
        float: `1 - (p² + (1 - p)²)` where `p` is the fraction of `True`
            labels; 0.0 for a pure or empty set and 0.5 for an even mix.

    Examples:
        >>> gini_impurity([True, False])
        0.5
        >>> gini_impurity([True, True, True])
        0.0
    """
    label_array = np.asarray(labels, dtype=bool)
    return _gini_from_counts(int(np.count_nonzero(label_array)), label_array.size)


def find_best_split(feature_matrix: np.ndarray, labels: np.ndarray) -> SplitCandidate | None:
    """Search every feature and every midpoint threshold for the largest Gini gain.

    Features are scanned in `FEATURE_NAMES` order and thresholds in ascending
    order. A candidate replaces the running best only when its gain is
    strictly larger, so ties keep the first candidate found. Candidates that
    would leave either side empty are skipped.

    Args:
        feature_matrix (np.ndarray): Float array with shape `(n_records, 5)`,
            columns in `FEATURE_NAMES` order.
        labels (np.ndarray): Bool array with shape `(n_records,)`.

    Returns:
        SplitCandidate | None: The best split, or `None` when no candidate
            improves impurity at all.
    """
    total = labels.size
    positives = int(np.count_nonzero(labels))
    parent_gini = _gini_from_counts(positives, total)
    best_split: SplitCandidate | None = None
    best_gain = 0.0

    for column_index, feature in enumerate(FEATURE_NAMES):
        column = feature_matrix[:, column_index]
        distinct_values = np.unique(column)
        thresholds = (distinct_values[:-1] + distinct_values[1:]) / 2

        for threshold in thresholds:
            left_mask = column <= threshold
            left_count = int(np.count_nonzero(left_mask))
            right_count = total - left_count
            if left_count == 0 or right_count == 0:
                continue

            left_positives = int(np.count_nonzero(labels & left_mask))
            right_positives = positives - left_positives
            weighted_gini = (left_count / total) * _gini_from_counts(left_positives, left_count) + (
                right_count / total
            ) * _gini_from_counts(right_positives, right_count)
            gain = parent_gini - weighted_gini

            if gain > best_gain:
                best_gain = gain
                best_split = SplitCandidate(feature=feature, threshold=float(threshold), gain=gain)

    return best_split


# ---------------------------------------------------------------------------
# Public interface -- Scoring
# ---------------------------------------------------------------------------


def compute_training_accuracy(root: LeafNode | SplitNode, records: Sequence[LabeledRecord]) -> float:
    """Re-classify every training record with the finished tree.

    Args:
        root (LeafNode | SplitNode): Root of the trained tree.
        records (Sequence[LabeledRecord]): The records the tree was trained on.

    Returns:
        float: Fraction of records whose predicted label matches their label.
            This is in-sample accuracy, not a generalization estimate.
    """
    predicted = [_descend(root, record.features)[0].prediction for record in records]
    actual = [record.label for record in records]
    return float(accuracy_score(actual, predicted))


def compute_feature_importance(root: LeafNode | SplitNode) -> dict[FeatureName, float]:
    """Score features by how often and how close to the root they split.

    Each split node adds `1 / (depth + 1)` to its feature; the totals are then
    normalized to sum to 1.0.

    Args:
        root (LeafNode | SplitNode): Root of the trained tree.

    Returns:
        dict[FeatureName, float]: Importance per feature in `FEATURE_NAMES`
            order. All scores are 0.0 when the tree is a single leaf.
    """
    importance: dict[FeatureName, float] = dict.fromkeys(FEATURE_NAMES, 0.0)
    for node, depth in iter_nodes(root):
        if isinstance(node, SplitNode):
            importance[node.feature] += 1.0 / (depth + 1)

    total = sum(importance.values())
    if total > 0:
        importance = {name: score / total for name, score in importance.items()}
    return importance


# ---------------------------------------------------------------------------
# Public interface -- Training
# ---------------------------------------------------------------------------


def train(
    records: Sequence[LabeledRecord],
    *,
    max_depth: int,
    min_samples_leaf: int,
) -> TreeModel:
    """Induce a decision tree that predicts pipeline failure from labeled records.

    Args:
        records (Sequence[LabeledRecord]): Training records, in a fixed order.
            Training is deterministic for a given order.
        max_depth (int): Nodes at this depth become leaves; the root is depth 0.
        min_samples_leaf (int): Nodes with fewer records than this become leaves.

    Returns:
        TreeModel: The trained, immutable model.

    Raises:
        EmptyTrainingSetError: If `records` is empty.
        ValueError: If `max_depth` or `min_samples_leaf` is less than 1.
    """
    if len(records) == 0:
        raise EmptyTrainingSetError()
    _validate_hyperparameters(max_depth, min_samples_leaf)

    feature_matrix, labels = encode_records(records)
    root = _build_node(
        feature_matrix,
        labels,
        depth=0,
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
    )

    model = TreeModel(
        root=root,
        training_accuracy=compute_training_accuracy(root, records),
        trained_at=datetime.now(UTC),
        feature_importance=compute_feature_importance(root),
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
    )
    logger.log(
        TRAINING_LEVEL,
        "Decision tree trained",
        samples=model.sample_count,
        depth=model.depth,
        leaves=model.leaf_count,
        training_accuracy=round(model.training_accuracy, 4),
    )
    return model


def train_frame(
    df: pl.DataFrame,
    *,
    max_depth: int,
    min_samples_leaf: int,
    label_column: str = LABEL_NAME,
) -> TreeModel:
    """Train a decision tree directly from a Polars DataFrame.

    Args:
        df (pl.DataFrame): Historical observations with one column per feature
            and a boolean label column. Other columns are ignored.
        max_depth (int): Nodes at this depth become leaves; the root is depth 0.
        min_samples_leaf (int): Nodes with fewer records than this become leaves.
        label_column (str): Name of the boolean label column.

    Returns:
        TreeModel: The trained, immutable model.

    Raises:
        EmptyTrainingSetError: If no row with a non-null label remains.
        MissingFeatureError: If a feature or label column is absent.
    """
    records = records_from_frame(df, label_column=label_column)
    return train(records, max_depth=max_depth, min_samples_leaf=min_samples_leaf)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _build_node(
    feature_matrix: np.ndarray,
    labels: np.ndarray,
    *,
    depth: int,
    max_depth: int,
    min_samples_leaf: int,
) -> LeafNode | SplitNode:
    """Recursively build the subtree for the records that reached one node.

    Args:
        feature_matrix (np.ndarray): Feature rows of the node's records.
        labels (np.ndarray): Labels of the node's records.
        depth (int): Depth of the node; the root is 0.
        max_depth (int): Depth at which nodes are forced to be leaves.
        min_samples_leaf (int): Record count below which nodes are forced to be leaves.

    Returns:
        LeafNode | SplitNode: The subtree rooted at this node.
    """
    total = labels.size
    failures = int(np.count_nonzero(labels))
    is_pure = failures in {0, total}

    if depth >= max_depth or total < min_samples_leaf or is_pure:
        return _majority_leaf(failures, total)

    split = find_best_split(feature_matrix, labels)
    if split is None or split.gain < MIN_GAIN_TO_SPLIT:
        return _majority_leaf(failures, total)

    logger.debug(
        "Split chosen",
        feature=split.feature,
        threshold=split.threshold,
        gain=round(split.gain, 6),
        depth=depth,
        samples=total,
    )
    left_mask = feature_matrix[:, FEATURE_NAMES.index(split.feature)] <= split.threshold
    subtree_kwargs = {"depth": depth + 1, "max_depth": max_depth, "min_samples_leaf": min_samples_leaf}
    return SplitNode(
        feature=split.feature,
        threshold=split.threshold,
        left=_build_node(feature_matrix[left_mask], labels[left_mask], **subtree_kwargs),
        right=_build_node(feature_matrix[~left_mask], labels[~left_mask], **subtree_kwargs),
        sample_count=total,
    )


def _gini_from_counts(positives: int, total: int) -> float:
    """Compute Gini impurity from the number of `True` labels and the set size.

    Args:
        positives (int): Number of `True` labels.
        total (int): Number of labels; an empty set has impurity 0.0.

    Returns:
        float: The Gini impurity.
    """
    if total == 0:
        return 0.0
    positive_ratio = positives / total
    negative_ratio = (total - positives) / total
    return 1.0 - (positive_ratio * positive_ratio + negative_ratio * negative_ratio)


def _majority_leaf(failures: int, total: int) -> LeafNode:
    """Build a leaf predicting the majority label; an even split predicts failure.

    Args:
        failures (int): Number of records labeled `True`.
        total (int): Number of records at the node.

    Returns:
        LeafNode: The leaf with its majority-class confidence.
    """
    failure_rate = failures / total
    return LeafNode(
        prediction=failure_rate >= 0.5,
        confidence=max(failure_rate, 1.0 - failure_rate),
        sample_count=total,
    )


def _validate_hyperparameters(max_depth: int, min_samples_leaf: int) -> None:
    """Raise `ValueError` if a hyperparameter is out of range.

    Args:
        max_depth (int): Requested maximum depth.
        min_samples_leaf (int): Requested minimum records per split node.

    Raises:
        ValueError: If `max_depth < 1` or `min_samples_leaf < 1`.
    """
    if max_depth < _MIN_TREE_DEPTH:
        raise ValueError(f"max_depth must be at least {_MIN_TREE_DEPTH}, got {max_depth}.")
    if min_samples_leaf < _MIN_SAMPLES_LEAF:
        raise ValueError(f"min_samples_leaf must be at least {_MIN_SAMPLES_LEAF}, got {min_samples_leaf}.")
