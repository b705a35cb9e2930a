"""Prediction by tree traversal and IF/THEN rule extraction."""

from __future__ import annotations

from collections.abc import Mapping

from failtree.decision_tree.models import (
    Condition,
    DecisionRule,
    LeafNode,
    Prediction,
    SplitNode,
    TreeModel,
)
from failtree.decision_tree.preprocessing import validate_feature_vector

# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def predict(model: TreeModel, features: Mapping[str, float]) -> Prediction:
    """Predict whether a pipeline will fail and explain how the tree decided.

    Starting at the root, each split compares the observed feature value to
    its threshold, records the branch taken as a `Condition`, and descends
    left on `<=` or right otherwise. The first leaf reached supplies the
    label and confidence.

    Args:
        model (TreeModel): A trained model. It is never modified.
        features (Mapping[str, float]): Values for all five features. Extra
            keys are ignored.

    Returns:
        Prediction: The leaf's label and confidence with the ordered conditions
            evaluated on the way.

    Raises:
        MissingFeatureError: If any of the five features is absent.
        NonFiniteFeatureError: If any of the five values is NaN or infinite.

    Examples:
        >>> prediction = predict(model, record.features)  # doctest: +SKIP
        >>> prediction.decision_path  # doctest: +SKIP
        ['hoursSinceLastRun (3) ≤ 5.5']
    """
    vector = validate_feature_vector(features)
    leaf, conditions = _descend(model.root, vector)
    return Prediction(label=leaf.prediction, confidence=leaf.confidence, conditions=conditions)


def extract_rules(model: TreeModel) -> list[DecisionRule]:
    """Express every root-to-leaf path of a tree as an IF/THEN rule.

    Args:
        model (TreeModel): A trained model.

    Returns:
        list[DecisionRule]: One rule per leaf, left subtrees before right.
            A single-leaf tree yields one rule with no conditions.
    """
    rules: list[DecisionRule] = []
    _collect_rules(model.root, path_conditions=[], rules=rules)
    return rules


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _descend(root: LeafNode | SplitNode, features: Mapping[str, float]) -> tuple[LeafNode, list[Condition]]:
    """Walk from `root` to a leaf, recording each branch taken.

    Args:
        root (LeafNode | SplitNode): Node to start from.
        features (Mapping[str, float]): Feature values; must hold every
            feature the tree splits on.

    Returns:
        tuple[LeafNode, list[Condition]]: The leaf reached and the conditions
            evaluated, root first.
    """
    node = root
    conditions: list[Condition] = []
    while isinstance(node, SplitNode):
        value = features[node.feature]
        goes_left = value <= node.threshold
        conditions.append(
            Condition(
                feature=node.feature,
                operator="<=" if goes_left else ">",
                threshold=node.threshold,
                observed_value=value,
            ),
        )
        node = node.left if goes_left else node.right
    return node, conditions


def _collect_rules(
    node: LeafNode | SplitNode,
    *,
    path_conditions: list[Condition],
    rules: list[DecisionRule],
) -> None:
    """Recursively accumulate one rule per leaf below `node`.

    Args:
        node (LeafNode | SplitNode): The current node.
        path_conditions (list[Condition]): Conditions from the root to `node`.
        rules (list[DecisionRule]): Accumulator; leaf rules are appended in place.
    """
    if isinstance(node, LeafNode):
        rules.append(
            DecisionRule(
                conditions=path_conditions,
                prediction=node.prediction,
                confidence=node.confidence,
                sample_count=node.sample_count,
            ),
        )
        return

    left_condition = Condition(feature=node.feature, operator="<=", threshold=node.threshold)
    right_condition = Condition(feature=node.feature, operator=">", threshold=node.threshold)
    _collect_rules(node.left, path_conditions=[*path_conditions, left_condition], rules=rules)
    _collect_rules(node.right, path_conditions=[*path_conditions, right_condition], rules=rules)
