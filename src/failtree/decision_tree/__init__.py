"""Decision tree sub-package: models, preprocessing, fitting, and inference."""

from __future__ import annotations

from failtree.decision_tree.fitting import (
    MIN_GAIN_TO_SPLIT,
    SplitCandidate,
    compute_feature_importance,
    compute_training_accuracy,
    find_best_split,
    gini_impurity,
    train,
    train_frame,
)
from failtree.decision_tree.inference import extract_rules, predict
from failtree.decision_tree.models import (
    FEATURE_NAMES,
    LABEL_NAME,
    Condition,
    ConditionOp,
    DecisionRule,
    FeatureName,
    LabeledRecord,
    LeafNode,
    Prediction,
    SplitNode,
    TreeModel,
    TreeNode,
    iter_nodes,
)
from failtree.decision_tree.preprocessing import encode_records, records_from_frame, validate_feature_vector

__all__ = [
    "FEATURE_NAMES",
    "LABEL_NAME",
    "MIN_GAIN_TO_SPLIT",
    "Condition",
    "ConditionOp",
    "DecisionRule",
    "FeatureName",
    "LabeledRecord",
    "LeafNode",
    "Prediction",
    "SplitCandidate",
    "SplitNode",
    "TreeModel",
    "TreeNode",
    "compute_feature_importance",
    "compute_training_accuracy",
    "encode_records",
    "extract_rules",
    "find_best_split",
    "gini_impurity",
    "iter_nodes",
    "predict",
    "records_from_frame",
    "train",
    "train_frame",
    "validate_feature_vector",
]
