"""Pydantic data models for decision tree training, prediction, and explanation."""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Annotated, Any, Final, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, FiniteFloat, PlainSerializer, model_validator

from failtree.exceptions import MissingFeatureError

# ---------------------------------------------------------------------------
# Public constants and type aliases
# ---------------------------------------------------------------------------

type FeatureName = Literal[
    "hoursSinceLastRun",
    "avgFailureRate",
    "dataVolumeVariance",
    "dayOfWeek",
    "hourOfDay",
]

type ConditionOp = Literal["<=", ">"]

# Split-search iteration order and key order of every importance mapping.
FEATURE_NAMES: Final[tuple[FeatureName, ...]] = (
    "hoursSinceLastRun",
    "avgFailureRate",
    "dataVolumeVariance",
    "dayOfWeek",
    "hourOfDay",
)

LABEL_NAME: Final[str] = "willFailInNext2Hours"

THRESHOLD_DECIMAL_PLACES: Final[int] = 4  # Decimal places kept when rendering numbers in conditions.

_OPERATOR_SYMBOLS: Final[dict[str, str]] = {"<=": "≤", ">": ">"}
_IMPORTANCE_SUM_TOLERANCE: Final[float] = 1e-6


def _freeze_mapping(value: Mapping[FeatureName, float]) -> Mapping[FeatureName, float]:
    """Wrap a validated mapping in a read-only view."""
    return MappingProxyType(dict(value))


def _thaw_mapping(value: Mapping[FeatureName, float]) -> dict[str, float]:
    """Convert a read-only view back to a plain dict for serialization."""
    return dict(value)


# Per-feature values stored on frozen models. Item assignment raises `TypeError`.
FeatureValues = Annotated[
    Mapping[FeatureName, FiniteFloat],
    AfterValidator(_freeze_mapping),
    PlainSerializer(_thaw_mapping, return_type=dict[str, float]),
]
FeatureScores = Annotated[
    Mapping[FeatureName, float],
    AfterValidator(_freeze_mapping),
    PlainSerializer(_thaw_mapping, return_type=dict[str, float]),
]

# ---------------------------------------------------------------------------
# Public models -- Training input
# ---------------------------------------------------------------------------


class LabeledRecord(BaseModel):
    """One historical observation of a pipeline with its ground-truth outcome.

    Attributes:
        features (Mapping[FeatureName, float]): Read-only value of each of the
            five features. All five must be present and finite.
        label (bool): Whether the pipeline failed within the next two hours.

    Direct construction reports every problem as a pydantic `ValidationError`;
    a missing feature appears there with the `MissingFeatureError` as the
    error's `ctx["error"]`. `from_historical` checks presence first and
    raises `MissingFeatureError` itself.

    Examples:
        >>> record = LabeledRecord(
        ...     features={
        ...         "hoursSinceLastRun": 7.5,
        ...         "avgFailureRate": 12.0,
        ...         "dataVolumeVariance": 40.0,
        ...         "dayOfWeek": 1,
        ...         "hourOfDay": 8,
        ...     },
        ...     label=True,
        ... )
        >>> record.features["dayOfWeek"]
        1.0
    """

    model_config = ConfigDict(frozen=True)

    features: FeatureValues = Field(
        description="Value of each of the five features, keyed by feature name.",
    )
    label: bool = Field(
        description="Whether the pipeline failed within the next two hours.",
    )

    @model_validator(mode="after")
    def _validate_all_features_present(self) -> LabeledRecord:
        """Validate that every required feature has a value.

        Returns:
            LabeledRecord: The validated model instance.

        Raises:
            MissingFeatureError: If any of `FEATURE_NAMES` is absent. Pydantic
                surfaces it to the caller wrapped in a `ValidationError`.
        """
        missing = [name for name in FEATURE_NAMES if name not in self.features]
        if missing:
            raise MissingFeatureError(missing_features=missing, available_features=list(self.features))
        return self

    @classmethod
    def from_historical(cls, row: Mapping[str, Any], *, label_key: str = LABEL_NAME) -> LabeledRecord:
        """Build a record from a flat historical row.

        Rows produced upstream carry bookkeeping fields such as `pipelineId`
        and `timestamp` next to the features and the label; those are dropped.

        Args:
            row (Mapping[str, Any]): Flat mapping holding the five feature
                values and the label.
            label_key (str): Key under which the boolean label is stored.

        Returns:
            LabeledRecord: The validated record.

        Raises:
            MissingFeatureError: If the label or any feature is missing.
        """
        missing = [name for name in (*FEATURE_NAMES, label_key) if name not in row]
        if missing:
            raise MissingFeatureError(missing_features=missing, available_features=list(row))
        return cls(
            features={name: row[name] for name in FEATURE_NAMES},
            label=row[label_key],
        )


# ---------------------------------------------------------------------------
# Public models -- Tree structure
# ---------------------------------------------------------------------------


class LeafNode(BaseModel):
    """Terminal tree node holding the majority label of the records that reached it.

    Attributes:
        kind (Literal["leaf"]): Discriminator field; always `"leaf"`.
        prediction (bool): Majority label; ties resolve to `True`.
        confidence (float): Fraction of the node's records carrying the
            majority label. Always between 0.5 and 1.0.
        sample_count (int): Number of training records routed to this leaf.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["leaf"] = "leaf"
    prediction: bool
    confidence: float = Field(ge=0.5, le=1.0)
    sample_count: int = Field(ge=1)


class SplitNode(BaseModel):
    """Internal tree node that routes a record by comparing one feature to a threshold.

    Records with `feature <= threshold` go to `left`, all others to `right`.

    Attributes:
        kind (Literal["split"]): Discriminator field; always `"split"`.
        feature (FeatureName): Feature compared at this node.
        threshold (float): Midpoint between two adjacent distinct training values.
        left (TreeNode): Subtree for records with `feature <= threshold`.
        right (TreeNode): Subtree for records with `feature > threshold`.
        sample_count (int): Number of training records that reached this node.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["split"] = "split"
    feature: FeatureName
    threshold: FiniteFloat
    left: TreeNode
    right: TreeNode
    sample_count: int = Field(ge=2)

    @model_validator(mode="after")
    def _validate_children_partition_samples(self) -> SplitNode:
        """Validate that the two children account for exactly this node's records.

        Returns:
            SplitNode: The validated model instance.

        Raises:
            ValueError: If the children's sample counts do not add up to
                `sample_count`.
        """
        child_total = self.left.sample_count + self.right.sample_count
        if child_total != self.sample_count:
            raise ValueError(
                f"children hold {child_total} samples but the split node holds {self.sample_count}",
            )
        return self


# Use this alias wherever a node of either kind is accepted; Pydantic selects the model from `kind`.
TreeNode = Annotated[LeafNode | SplitNode, Field(discriminator="kind")]

SplitNode.model_rebuild()


def iter_nodes(root: LeafNode | SplitNode, depth: int = 0) -> Iterator[tuple[LeafNode | SplitNode, int]]:
    """Yield every node of a tree with its depth, in pre-order (left before right).

    Args:
        root (LeafNode | SplitNode): Node to start from.
        depth (int): Depth assigned to `root`.

    Yields:
        tuple[LeafNode | SplitNode, int]: Each node paired with its depth.
    """
    yield root, depth
    if isinstance(root, SplitNode):
        yield from iter_nodes(root.left, depth + 1)
        yield from iter_nodes(root.right, depth + 1)


class TreeModel(BaseModel):
    """A trained decision tree together with its training diagnostics.

    Instances are immutable and safe to share across threads.

    Attributes:
        root (TreeNode): Root node of the tree.
        training_accuracy (float): Fraction of the training records that the
            finished tree classifies correctly. This is in-sample accuracy on
            the same records the tree was fitted to, not a validation score.
        trained_at (datetime): When training finished.
        feature_importance (Mapping[FeatureName, float]): Read-only depth-weighted split
            usage per feature. Holds all five features; sums to 1.0 when the
            tree has at least one split and is all zero otherwise.
        max_depth (int): The `max_depth` the tree was trained with.
        min_samples_leaf (int): The `min_samples_leaf` the tree was trained with.
    """

    model_config = ConfigDict(frozen=True)

    root: TreeNode
    training_accuracy: float = Field(
        ge=0.0,
        le=1.0,
        description="In-sample accuracy on the training records; not a generalization estimate.",
    )
    trained_at: datetime
    feature_importance: FeatureScores
    max_depth: int = Field(ge=1)
    min_samples_leaf: int = Field(ge=1)

    @property
    def accuracy(self) -> float:
        """Alias of `training_accuracy`; measured on the training records only."""
        return self.training_accuracy

    @property
    def sample_count(self) -> int:
        """Number of records the tree was trained on."""
        return self.root.sample_count

    @property
    def depth(self) -> int:
        """Depth of the deepest leaf; 0 for a single-leaf tree."""
        return max(depth for _, depth in iter_nodes(self.root))

    @property
    def leaf_count(self) -> int:
        """Number of leaves in the tree."""
        return sum(1 for node, _ in iter_nodes(self.root) if isinstance(node, LeafNode))

    @model_validator(mode="after")
    def _validate_depth_within_limit(self) -> TreeModel:
        """Validate that no leaf lies deeper than `max_depth`.

        Returns:
            TreeModel: The validated model instance.

        Raises:
            ValueError: If the tree depth exceeds `max_depth`.
        """
        if self.depth > self.max_depth:
            raise ValueError(f"tree depth {self.depth} exceeds max_depth {self.max_depth}")
        return self

    @model_validator(mode="after")
    def _validate_feature_importance(self) -> TreeModel:
        """Validate the importance mapping against the tree shape.

        Returns:
            TreeModel: The validated model instance.

        Raises:
            ValueError: If a feature is missing, a score is negative, or the
                scores do not sum to 1.0 (for a tree with splits) or 0.0 (for a
                single leaf).
        """
        missing = [name for name in FEATURE_NAMES if name not in self.feature_importance]
        if missing:
            raise ValueError(f"feature_importance is missing features: {missing}")
        negative = sorted(name for name, score in self.feature_importance.items() if score < 0.0)
        if negative:
            raise ValueError(f"feature_importance scores must be non-negative, got negative scores for {negative}")
        total = sum(self.feature_importance.values())
        expected = 0.0 if isinstance(self.root, LeafNode) else 1.0
        if not math.isclose(total, expected, abs_tol=_IMPORTANCE_SUM_TOLERANCE):
            raise ValueError(f"feature_importance scores must sum to {expected}, got {total:.8f}")
        return self


# ---------------------------------------------------------------------------
# Public models -- Prediction and explanation
# ---------------------------------------------------------------------------


class Condition(BaseModel):
    """One split condition on the path from the root to a leaf.

    Attributes:
        feature (FeatureName): Feature the condition tests.
        operator (ConditionOp): `"<="` for the left branch, `">"` for the right.
        threshold (float): Split threshold.
        observed_value (float | None): Value of the feature in the predicted
            record, or `None` when the condition describes a rule rather than
            a concrete prediction.

    Examples:
        >>> str(Condition(feature="hoursSinceLastRun", operator="<=", threshold=5.5, observed_value=3))
        'hoursSinceLastRun (3) ≤ 5.5'
        >>> str(Condition(feature="hourOfDay", operator=">", threshold=16.5))
        'hourOfDay > 16.5'
    """

    model_config = ConfigDict(frozen=True)

    feature: FeatureName
    operator: ConditionOp
    threshold: float
    observed_value: float | None = None

    def __str__(self) -> str:
        """Return the condition as human-readable text.

        Returns:
            str: `"<feature> (<observed>) <op> <threshold>"`, omitting the
                parenthesized value when `observed_value` is `None`. Numbers
                are rounded to `THRESHOLD_DECIMAL_PLACES`; when that would
                render two different values identically, both are shown at
                full precision instead.
        """
        symbol = _OPERATOR_SYMBOLS[self.operator]
        threshold = _format_number(self.threshold)
        if self.observed_value is None:
            return f"{self.feature} {symbol} {threshold}"
        observed = _format_number(self.observed_value)
        if observed == threshold and self.observed_value != self.threshold:
            observed, threshold = repr(float(self.observed_value)), repr(float(self.threshold))
        return f"{self.feature} ({observed}) {symbol} {threshold}"


class Prediction(BaseModel):
    """Outcome of running one feature vector through a tree.

    Attributes:
        label (bool): Predicted failure within the next two hours.
        confidence (float): Confidence of the leaf that was reached.
        conditions (list[Condition]): Conditions evaluated from root to leaf,
            in order. Empty when the tree is a single leaf.
    """

    model_config = ConfigDict(frozen=True)

    label: bool
    confidence: float = Field(ge=0.5, le=1.0)
    conditions: list[Condition] = Field(default_factory=list)

    @property
    def decision_path(self) -> list[str]:
        """Human-readable rendering of `conditions`; use `conditions` for structured access."""
        return [str(condition) for condition in self.conditions]


class DecisionRule(BaseModel):
    """The path to one leaf expressed as an IF/THEN rule.

    Attributes:
        conditions (list[Condition]): Conditions from the root to the leaf.
        prediction (bool): Label predicted at the leaf.
        confidence (float): Confidence of the leaf.
        sample_count (int): Training records that reached the leaf.

    Examples:
        >>> rule = DecisionRule(
        ...     conditions=[Condition(feature="hoursSinceLastRun", operator=">", threshold=5.5)],
        ...     prediction=True,
        ...     confidence=0.9,
        ...     sample_count=40,
        ... )
        >>> str(rule)
        'IF hoursSinceLastRun > 5.5 THEN WILL FAIL (90.0% confidence)'
    """

    model_config = ConfigDict(frozen=True)

    conditions: list[Condition]
    prediction: bool
    confidence: float = Field(ge=0.5, le=1.0)
    sample_count: int = Field(ge=1)

    def __str__(self) -> str:
        """Return the rule as `IF ... THEN ...` text.

        Returns:
            str: The rule, e.g. `"IF a ≤ 1 AND b > 2 THEN WILL NOT FAIL (80.0% confidence)"`.
        """
        premise = " AND ".join(str(condition) for condition in self.conditions) or "TRUE"
        outcome = "WILL FAIL" if self.prediction else "WILL NOT FAIL"
        return f"IF {premise} THEN {outcome} ({self.confidence * 100:.1f}% confidence)"


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _format_number(value: float) -> str:
    """Render a number compactly: integral values without a decimal point.

    Args:
        value (float): The number to render.

    Returns:
        str: The rounded number, e.g. `"3"`, `"5.5"`, or `"0.1235"`.
    """
    return format(round(float(value), THRESHOLD_DECIMAL_PLACES), ".10g")
