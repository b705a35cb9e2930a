"""Custom exceptions for the failtree decision tree engine.

This module defines the errors raised by training, prediction, and model
publication:

Input validation exceptions (subclass ValueError):
- EmptyTrainingSetError: Raised when training is requested on zero records.
- MissingFeatureError: Raised when a feature vector or DataFrame lacks one or
  more of the required feature names.
- NonFiniteFeatureError: Raised when a feature vector holds NaN or infinite
  values.

Registry exceptions (subclass LookupError):
- NoModelPublishedError: Raised when a ModelRegistry is queried before any
  model has been published to it.
"""

from __future__ import annotations


class EmptyTrainingSetError(ValueError):
    """Raised when `train` is called with an empty sequence of records.

    No tree can be induced from zero observations, so the call fails instead
    of producing a default model.

    Examples:
        >>> err = EmptyTrainingSetError()
        >>> str(err)
        'Cannot train a decision tree on an empty set of records'
    """

    def __init__(self) -> None:
        """Initialize EmptyTrainingSetError."""
        super().__init__("Cannot train a decision tree on an empty set of records")


class MissingFeatureError(ValueError):
    """Raised when required features are absent from a feature vector.

    Attributes:
        missing_features (list[str]): Required feature names that were not found.
        available_features (list[str]): Names that were present in the input.

    Examples:
        >>> err = MissingFeatureError(
        ...     missing_features=["dayOfWeek"],
        ...     available_features=["hoursSinceLastRun", "avgFailureRate"],
        ... )
        >>> err.missing_features
        ['dayOfWeek']
    """

    missing_features: list[str]
    available_features: list[str]

    def __init__(
        self,
        missing_features: list[str],
        available_features: list[str],
    ) -> None:
        """Initialize MissingFeatureError.

        Args:
            missing_features (list[str]): Required feature names not found in the input.
            available_features (list[str]): Names present in the input.
        """
        super().__init__(f"Required features missing: {missing_features}")
        self.missing_features = missing_features
        self.available_features = available_features

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including missing and available features.
        """
        return (
            f"{self.__class__.__name__}("
            f"missing_features={self.missing_features!r}, "
            f"available_features={self.available_features!r})"
        )


class NonFiniteFeatureError(ValueError):
    """Raised when a feature vector contains NaN or infinite values.

    Comparisons against NaN are always false, which would silently route an
    observation down the right branch of every split. Such inputs are rejected
    instead.

    Attributes:
        features (dict[str, float]): Offending feature names mapped to their values.

    Examples:
        >>> err = NonFiniteFeatureError(features={"avgFailureRate": float("nan")})
        >>> list(err.features)
        ['avgFailureRate']
    """

    features: dict[str, float]

    def __init__(self, features: dict[str, float]) -> None:
        """Initialize NonFiniteFeatureError.

        Args:
            features (dict[str, float]): Offending feature names mapped to their values.
        """
        super().__init__(f"Features must be finite numbers, got non-finite values for: {sorted(features)}")
        self.features = features


class NoModelPublishedError(LookupError):
    """Raised when a ModelRegistry has no published model yet."""

    def __init__(self) -> None:
        """Initialize NoModelPublishedError."""
        super().__init__("No decision tree model has been published to this registry")
