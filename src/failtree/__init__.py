"""failtree: Decision tree induction and inference for pipeline failure prediction."""

from loguru import logger

from failtree.config import TrainingConfig
from failtree.decision_tree import (
    LabeledRecord,
    Prediction,
    TreeModel,
    extract_rules,
    predict,
    train,
    train_frame,
)
from failtree.logging import PACKAGE_NAME, enable_logging
from failtree.registry import ModelRegistry

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the failtree module by default

__all__ = [
    "LabeledRecord",
    "ModelRegistry",
    "Prediction",
    "TrainingConfig",
    "TreeModel",
    "enable_logging",
    "extract_rules",
    "predict",
    "train",
    "train_frame",
]
