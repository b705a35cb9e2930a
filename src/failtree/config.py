"""Training hyperparameters, loadable from the environment or a `.env` file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_DEPTH: int = 4
DEFAULT_MIN_SAMPLES_LEAF: int = 5


class TrainingConfig(BaseSettings):
    """Tunable parameters for decision tree induction.

    Values are read from `FAILTREE_`-prefixed environment variables or a
    `.env` file in the working directory; explicit keyword arguments win.

    Attributes:
        max_depth (int): Maximum depth of the tree. The root sits at depth 0,
            so a tree never has more than `max_depth` splits on any path.
        min_samples_leaf (int): A node holding fewer records than this becomes
            a leaf without searching for a split.

    Examples:
        >>> config = TrainingConfig(max_depth=2)
        >>> config.max_depth, config.min_samples_leaf
        (2, 5)
    """

    model_config = SettingsConfigDict(
        env_prefix="FAILTREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=1,
        description="Maximum depth of the tree; the root is depth 0.",
    )
    min_samples_leaf: int = Field(
        default=DEFAULT_MIN_SAMPLES_LEAF,
        ge=1,
        description="Nodes with fewer records than this are not split.",
    )
