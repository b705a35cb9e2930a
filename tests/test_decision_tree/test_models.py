"""Tests for the decision tree models: records, nodes, TreeModel, Condition, Prediction, DecisionRule."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from pydantic import ValidationError
from pytest_check import check

from failtree.decision_tree.fitting import train
from failtree.decision_tree.models import (
    FEATURE_NAMES,
    Condition,
    DecisionRule,
    LabeledRecord,
    LeafNode,
    Prediction,
    SplitNode,
    TreeModel,
    iter_nodes,
)
from failtree.exceptions import MissingFeatureError


class TestLabeledRecord:
    """Tests for `LabeledRecord`: validated, immutable training observations."""

    def test_construction_coerces_feature_values_to_float(self) -> None:
        """Integer features such as `dayOfWeek` are stored as floats."""
        # Act
        record = LabeledRecord(features=_make_features(dayOfWeek=1, hourOfDay=8), label=True)

        # Assert
        with check:
            assert record.features["dayOfWeek"] == 1.0
        with check:
            assert isinstance(record.features["hourOfDay"], float)
        with check:
            assert record.label is True

    def test_missing_feature_rejected(self) -> None:
        """A record without all five features fails validation, carrying a `MissingFeatureError`."""
        # Arrange
        features = _make_features()
        del features["avgFailureRate"]

        # Act
        with pytest.raises(ValidationError, match="avgFailureRate") as exc_info:
            LabeledRecord(features=features, label=False)

        # Assert
        cause = exc_info.value.errors()[0]["ctx"]["error"]
        with check:
            assert isinstance(cause, MissingFeatureError)
        with check:
            assert cause.missing_features == ["avgFailureRate"]

    def test_unknown_feature_rejected(self) -> None:
        """Keys outside the closed feature set are not accepted."""
        # Arrange
        features = {**_make_features(), "cpuLoad": 0.4}

        # Act / Assert
        with pytest.raises(ValidationError):
            LabeledRecord(features=features, label=False)

    @pytest.mark.parametrize("bad_value", [float("nan"), float("inf")], ids=["nan", "inf"])
    def test_non_finite_value_rejected(self, bad_value: float) -> None:
        """NaN and infinite feature values fail validation.

        Args:
            bad_value (float): The non-finite value to inject.
        """
        # Act / Assert
        with pytest.raises(ValidationError):
            LabeledRecord(features=_make_features(dataVolumeVariance=bad_value), label=True)

    def test_record_is_frozen(self) -> None:
        """Assigning to a field of a record raises."""
        # Arrange
        record = LabeledRecord(features=_make_features(), label=True)

        # Act / Assert
        with pytest.raises(ValidationError):
            record.label = False  # type: ignore[misc]

    def test_features_mapping_is_read_only(self) -> None:
        """Feature values cannot be overwritten after validation, so NaN cannot sneak in."""
        # Arrange
        record = LabeledRecord(features=_make_features(), label=True)

        # Act / Assert
        with pytest.raises(TypeError):
            record.features["hoursSinceLastRun"] = float("nan")  # type: ignore[index]
        assert record.features["hoursSinceLastRun"] == 2.0

    def test_from_historical_drops_bookkeeping_fields(self) -> None:
        """Rows from the upstream generator keep only the five features and the label."""
        # Arrange
        row: dict[str, Any] = {
            "pipelineId": "etl-customers",
            "timestamp": datetime(2024, 6, 3, 8, 15, tzinfo=UTC),
            **_make_features(hoursSinceLastRun=7.25),
            "willFailInNext2Hours": True,
        }

        # Act
        record = LabeledRecord.from_historical(row)

        # Assert
        with check:
            assert set(record.features) == set(FEATURE_NAMES)
        with check:
            assert record.features["hoursSinceLastRun"] == 7.25
        with check:
            assert record.label is True

    def test_from_historical_missing_label_raises(self) -> None:
        """A row without the label column raises `MissingFeatureError` naming it."""
        # Act / Assert
        with pytest.raises(MissingFeatureError) as exc_info:
            LabeledRecord.from_historical(_make_features())
        assert exc_info.value.missing_features == ["willFailInNext2Hours"]


class TestTreeNodes:
    """Tests for `LeafNode` and `SplitNode` validation."""

    @pytest.mark.parametrize("confidence", [0.49, 1.01], ids=["below-half", "above-one"])
    def test_leaf_confidence_out_of_range_rejected(self, confidence: float) -> None:
        """Leaf confidence must lie in [0.5, 1.0].

        Args:
            confidence (float): Out-of-range confidence.
        """
        # Act / Assert
        with pytest.raises(ValidationError):
            LeafNode(prediction=True, confidence=confidence, sample_count=4)

    def test_split_children_must_partition_samples(self) -> None:
        """A split whose children do not add up to its sample count is rejected."""
        # Act / Assert
        with pytest.raises(ValidationError, match="children hold 9 samples"):
            SplitNode(
                feature="dayOfWeek",
                threshold=4.5,
                left=LeafNode(prediction=False, confidence=0.8, sample_count=5),
                right=LeafNode(prediction=True, confidence=0.75, sample_count=4),
                sample_count=10,
            )

    def test_iter_nodes_is_preorder_with_depths(self) -> None:
        """`iter_nodes` visits parents before children and left before right."""
        # Arrange
        left_leaf = LeafNode(prediction=False, confidence=0.9, sample_count=6)
        inner = SplitNode(
            feature="hourOfDay",
            threshold=12.5,
            left=LeafNode(prediction=True, confidence=0.5, sample_count=2),
            right=LeafNode(prediction=True, confidence=1.0, sample_count=2),
            sample_count=4,
        )
        root = SplitNode(feature="avgFailureRate", threshold=25.0, left=left_leaf, right=inner, sample_count=10)

        # Act
        visited = [(node.kind, depth) for node, depth in iter_nodes(root)]

        # Assert
        assert visited == [("split", 0), ("leaf", 1), ("split", 1), ("leaf", 2), ("leaf", 2)]


class TestTreeModel:
    """Tests for `TreeModel`: derived properties, validation, and JSON round-trip."""

    def test_derived_properties(self) -> None:
        """Depth, leaf count, and sample count are read off the tree."""
        # Arrange
        model = _make_one_split_model()

        # Act / Assert
        with check:
            assert model.depth == 1
        with check:
            assert model.leaf_count == 2
        with check:
            assert model.sample_count == 20
        with check:
            assert model.accuracy == model.training_accuracy == 0.9

    def test_importance_must_sum_to_one_for_split_tree(self) -> None:
        """A tree with splits needs importances summing to 1."""
        # Act / Assert
        with pytest.raises(ValidationError, match="must sum to 1.0"):
            _make_one_split_model(feature_importance=_make_importance(hoursSinceLastRun=0.5))

    def test_importance_must_be_zero_for_single_leaf(self) -> None:
        """A single-leaf tree needs all-zero importances."""
        # Act / Assert
        with pytest.raises(ValidationError, match="must sum to 0.0"):
            TreeModel(
                root=LeafNode(prediction=False, confidence=0.6, sample_count=10),
                training_accuracy=0.6,
                trained_at=datetime(2024, 6, 3, tzinfo=UTC),
                feature_importance=_make_importance(dayOfWeek=1.0),
                max_depth=4,
                min_samples_leaf=5,
            )

    def test_importance_must_cover_every_feature(self) -> None:
        """Dropping a feature from the importance mapping is rejected."""
        # Arrange
        importance = _make_importance(hoursSinceLastRun=1.0)
        del importance["hourOfDay"]

        # Act / Assert
        with pytest.raises(ValidationError, match="missing features"):
            _make_one_split_model(feature_importance=importance)

    def test_depth_beyond_max_depth_rejected(self) -> None:
        """A tree deeper than its recorded `max_depth` is rejected."""
        # Arrange
        root = SplitNode(
            feature="hoursSinceLastRun",
            threshold=6.0,
            left=LeafNode(prediction=False, confidence=0.9, sample_count=10),
            right=SplitNode(
                feature="hourOfDay",
                threshold=17.5,
                left=LeafNode(prediction=False, confidence=0.6, sample_count=5),
                right=LeafNode(prediction=True, confidence=0.8, sample_count=5),
                sample_count=10,
            ),
            sample_count=20,
        )

        # Act / Assert
        with pytest.raises(ValidationError, match="exceeds max_depth"):
            TreeModel(
                root=root,
                training_accuracy=0.8,
                trained_at=datetime(2024, 6, 3, tzinfo=UTC),
                feature_importance=_make_importance(hoursSinceLastRun=2 / 3, hourOfDay=1 / 3),
                max_depth=1,
                min_samples_leaf=5,
            )

    def test_feature_importance_is_read_only(self) -> None:
        """Importance scores cannot be edited in place, bypassing the sum and sign checks."""
        # Arrange
        model = _make_one_split_model()

        # Act / Assert
        with check, pytest.raises(TypeError):
            model.feature_importance["hoursSinceLastRun"] = -5.0  # type: ignore[index]
        with check:
            assert model.feature_importance["hoursSinceLastRun"] == 1.0
        with check:
            assert type(model.model_dump()["feature_importance"]) is dict

    def test_json_round_trip_preserves_trained_model(self) -> None:
        """A trained model survives serialization to JSON and back unchanged."""
        # Arrange
        records = [
            LabeledRecord(
                features=_make_features(hoursSinceLastRun=float(hours), hourOfDay=float(hours * 2)),
                label=hours > 5,
            )
            for hours in range(12)
        ]
        model = train(records, max_depth=3, min_samples_leaf=2)

        # Act
        restored = TreeModel.model_validate_json(model.model_dump_json())

        # Assert
        assert restored == model


class TestCondition:
    """Tests for `Condition` rendering."""

    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (
                Condition(feature="hoursSinceLastRun", operator="<=", threshold=5.5, observed_value=3.0),
                "hoursSinceLastRun (3) ≤ 5.5",
            ),
            (
                Condition(feature="avgFailureRate", operator=">", threshold=12.25, observed_value=40.125),
                "avgFailureRate (40.125) > 12.25",
            ),
            (Condition(feature="hourOfDay", operator=">", threshold=16.5), "hourOfDay > 16.5"),
            (
                Condition(feature="dataVolumeVariance", operator="<=", threshold=2.3000000000000003),
                "dataVolumeVariance ≤ 2.3",
            ),
            (
                Condition(feature="hoursSinceLastRun", operator=">", threshold=5.00002, observed_value=5.00003),
                "hoursSinceLastRun (5.00003) > 5.00002",
            ),
            (
                Condition(feature="hoursSinceLastRun", operator="<=", threshold=5.5, observed_value=5.5),
                "hoursSinceLastRun (5.5) ≤ 5.5",
            ),
        ],
        ids=["observed-left", "observed-right", "rule-right", "float-noise", "rounding-collapse", "equal-values"],
    )
    def test_str(self, condition: Condition, expected: str) -> None:
        """Conditions render as `feature (observed) op threshold` with compact numbers.

        Args:
            condition (Condition): The condition to render.
            expected (str): The expected text.
        """
        # Act / Assert
        assert str(condition) == expected

    def test_invalid_operator_rejected(self) -> None:
        """Only the two branch operators are allowed."""
        # Act / Assert
        with pytest.raises(ValidationError):
            Condition(feature="dayOfWeek", operator=">=", threshold=2.5)  # type: ignore[arg-type]


class TestPredictionAndRule:
    """Tests for `Prediction` and `DecisionRule`."""

    def test_decision_path_renders_conditions_in_order(self) -> None:
        """`decision_path` is the string form of `conditions`, in order."""
        # Arrange
        prediction = Prediction(
            label=True,
            confidence=0.8,
            conditions=[
                Condition(feature="dayOfWeek", operator=">", threshold=5.5, observed_value=6.0),
                Condition(feature="hourOfDay", operator="<=", threshold=5.5, observed_value=2.0),
            ],
        )

        # Act / Assert
        assert prediction.decision_path == ["dayOfWeek (6) > 5.5", "hourOfDay (2) ≤ 5.5"]

    def test_rule_str_for_healthy_leaf(self) -> None:
        """A rule predicting no failure renders `WILL NOT FAIL` and its confidence percentage."""
        # Arrange
        rule = DecisionRule(
            conditions=[
                Condition(feature="hoursSinceLastRun", operator="<=", threshold=6.0),
                Condition(feature="avgFailureRate", operator="<=", threshold=15.5),
            ],
            prediction=False,
            confidence=0.925,
            sample_count=80,
        )

        # Act / Assert
        assert str(rule) == "IF hoursSinceLastRun ≤ 6 AND avgFailureRate ≤ 15.5 THEN WILL NOT FAIL (92.5% confidence)"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_features(**overrides: float) -> dict[str, float]:
    """Build a complete feature vector with typical values, overriding the given features.

    Args:
        **overrides (float): Feature values to set instead of the defaults.

    Returns:
        dict[str, float]: The five feature values.
    """
    features = {
        "hoursSinceLastRun": 2.0,
        "avgFailureRate": 12.5,
        "dataVolumeVariance": 30.0,
        "dayOfWeek": 3.0,
        "hourOfDay": 14.0,
    }
    features.update(overrides)
    return features


def _make_importance(**scores: float) -> dict[str, float]:
    """Build an importance mapping that is zero except for the given features.

    Args:
        **scores (float): Non-zero importance scores.

    Returns:
        dict[str, float]: Importance for all five features.
    """
    return {name: scores.get(name, 0.0) for name in FEATURE_NAMES}


def _make_one_split_model(
    *,
    feature_importance: dict[str, float] | None = None,
) -> TreeModel:
    """Build a model with a single split on `hoursSinceLastRun`.

    Args:
        feature_importance (dict[str, float] | None): Importance mapping;
            defaults to all weight on `hoursSinceLastRun`.

    Returns:
        TreeModel: The model.
    """
    return TreeModel(
        root=SplitNode(
            feature="hoursSinceLastRun",
            threshold=6.0,
            left=LeafNode(prediction=False, confidence=0.9, sample_count=10),
            right=LeafNode(prediction=True, confidence=0.9, sample_count=10),
            sample_count=20,
        ),
        training_accuracy=0.9,
        trained_at=datetime(2024, 6, 3, tzinfo=UTC),
        feature_importance=feature_importance or _make_importance(hoursSinceLastRun=1.0),
        max_depth=2,
        min_samples_leaf=5,
    )
