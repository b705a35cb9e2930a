"""Model registry that publishes retrained decision trees to concurrent readers."""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence

from loguru import logger

from failtree.config import TrainingConfig
from failtree.decision_tree.fitting import train
from failtree.decision_tree.inference import predict
from failtree.decision_tree.models import LabeledRecord, Prediction, TreeModel
from failtree.exceptions import NoModelPublishedError
from failtree.logging import TRAINING_LEVEL


class ModelRegistry:
    """Holds the current decision tree model and swaps in retrained ones.

    Models are immutable, so readers never lock: `predict` takes one snapshot
    of the current reference and uses it for the whole call. Only the
    reference swap in `publish` is guarded. Construct one registry per
    application and pass it to the code that needs it.

    Examples:
        >>> registry = ModelRegistry(config=TrainingConfig(max_depth=3))
        >>> registry.generation
        0
        >>> registry.retrain(records)  # doctest: +SKIP
        >>> registry.predict(record.features).label  # doctest: +SKIP
        True
    """

    def __init__(self, model: TreeModel | None = None, *, config: TrainingConfig | None = None) -> None:
        """Initialize the registry.

        Args:
            model (TreeModel | None): Model to publish immediately. Defaults to None.
            config (TrainingConfig | None): Hyperparameters used by `retrain`.
                Defaults to `TrainingConfig()`, which reads the environment.
        """
        self.config = config if config is not None else TrainingConfig()
        self._lock = threading.Lock()
        self._model: TreeModel | None = None
        self._generation = 0
        if model is not None:
            self.publish(model)

    def __repr__(self) -> str:
        """Return a summary of the registry state.

        Returns:
            str: The class name with the generation and whether a model is published.
        """
        return f"{self.__class__.__name__}(generation={self._generation}, has_model={self._model is not None})"

    @property
    def current(self) -> TreeModel:
        """The most recently published model.

        Raises:
            NoModelPublishedError: If no model has been published yet.
        """
        model = self._model
        if model is None:
            raise NoModelPublishedError()
        return model

    @property
    def generation(self) -> int:
        """Number of models published so far."""
        return self._generation

    def publish(self, model: TreeModel) -> TreeModel | None:
        """Replace the current model.

        Args:
            model (TreeModel): The model to publish.

        Returns:
            TreeModel | None: The model that was replaced, or None if the
                registry was empty.
        """
        with self._lock:
            previous = self._model
            self._model = model
            self._generation += 1
            generation = self._generation
        logger.log(
            TRAINING_LEVEL,
            "Decision tree published",
            generation=generation,
            samples=model.sample_count,
            training_accuracy=round(model.training_accuracy, 4),
        )
        return previous

    def retrain(self, records: Sequence[LabeledRecord]) -> TreeModel:
        """Train a new model with the registry's config and publish it.

        Training runs outside the lock; predictions keep using the previous
        model until the new one is published. A failed training run leaves
        the current model in place.

        Args:
            records (Sequence[LabeledRecord]): Training records.

        Returns:
            TreeModel: The newly published model.

        Raises:
            EmptyTrainingSetError: If `records` is empty.
        """
        model = train(
            records,
            max_depth=self.config.max_depth,
            min_samples_leaf=self.config.min_samples_leaf,
        )
        self.publish(model)
        return model

    def predict(self, features: Mapping[str, float]) -> Prediction:
        """Predict with the current model.

        Args:
            features (Mapping[str, float]): Values for all five features.

        Returns:
            Prediction: The prediction from the model current at call time.

        Raises:
            NoModelPublishedError: If no model has been published yet.
            MissingFeatureError: If any of the five features is absent.
            NonFiniteFeatureError: If any of the five values is NaN or infinite.
        """
        return predict(self.current, features)
