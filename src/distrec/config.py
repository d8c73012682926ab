# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Recommender job configuration and general settings.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Any, Mapping

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    NonNegativeInt,
    PositiveInt,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict, TomlConfigSettingsSource

from distrec.diagnostics import ConfigurationError
from distrec.logging import get_logger
from distrec.random import init_global_rng
from distrec.similarity import SimilarityMeasure, resolve_measure

__all__ = [
    "NO_THRESHOLD",
    "RecommenderConfig",
    "DistRecSettings",
    "EngineSettings",
    "RandomSettings",
    "configure",
    "distrec_settings",
]

_log = get_logger(__name__)
_settings: DistRecSettings | None = None

NO_THRESHOLD: float | None = None
"Threshold value that disables similarity thresholding."


class RecommenderConfig(BaseModel, extra="forbid"):
    """
    Configuration for a distributed recommender run.

    Use :meth:`load` to build a configuration from untrusted input; it reports
    problems as :class:`~distrec.diagnostics.ConfigurationError`.
    """

    similarity: SimilarityMeasure = Field(
        validation_alias=AliasChoices("similarity", "similarity_classname")
    )
    """
    The similarity measure.  Required.
    """
    threshold: float | None = NO_THRESHOLD
    """
    Discard similarities below this value (``None`` to keep everything).
    """
    num_recommendations: PositiveInt = Field(10, validation_alias=AliasChoices("num_recommendations", "n"))
    """
    The number of recommendations to compute per user.
    """
    max_similarities_per_row: PositiveInt = Field(
        100, validation_alias=AliasChoices("max_similarities_per_row", "max_similarities_per_item")
    )
    """
    The maximum number of similarities kept for each row of the similarity
    matrix.
    """
    max_prefs_per_user: PositiveInt = 1000
    """
    Users with more preferences than this are sampled down before computing
    similarities.
    """
    max_prefs_per_user_considered: PositiveInt | None = None
    """
    Users with more preferences than this are sampled down before the
    multiplication phase (``None`` for no limit).
    """
    min_prefs_per_user: PositiveInt = 1
    """
    Users with fewer preferences than this are ignored.
    """
    exclude_self_similarity: bool = True
    """
    Whether to drop each row's similarity with itself.
    """
    item_based: bool = True
    """
    Compute item-item similarities (``True``) or user-user similarities.
    """
    boolean_data: bool = False
    """
    Treat preferences as present/absent, ignoring their values.
    """
    items_file: Path | None = None
    """
    A file of item IDs (one per line); only these items are recommended.
    """
    encode_ids: bool = Field(True, validation_alias=AliasChoices("encode_ids", "encode_longs_as_ints"))
    """
    Map external user and item IDs to dense codes.  If ``False``, the IDs must
    already be non-negative integer codes.
    """
    seed: int | None = None
    """
    Seed for sampling.  If ``None``, uses the global seed from
    :func:`configure`.
    """
    start_phase: NonNegativeInt = 0
    """
    The first phase to run (see :class:`~distrec.orchestrator.Phase`).
    """
    end_phase: NonNegativeInt | None = None
    """
    The last phase to run (``None`` for all remaining phases).
    """

    @field_validator("similarity", mode="before")
    @staticmethod
    def resolve_similarity(value: Any) -> Any:
        if isinstance(value, str):
            return resolve_measure(value)
        return value

    @model_validator(mode="after")
    def check_phases(self) -> RecommenderConfig:
        if self.end_phase is not None and self.end_phase < self.start_phase:
            raise ValueError("end_phase must not be before start_phase")
        return self

    @property
    def thresholding(self) -> bool:
        "Whether a similarity threshold is in effect."
        return self.threshold is not NO_THRESHOLD

    @classmethod
    def load(cls, data: Mapping[str, Any]) -> RecommenderConfig:
        """
        Validate a configuration mapping.

        Raises:
            ConfigurationError: if a parameter is missing or invalid.
        """
        try:
            return cls.model_validate(data)
        except ConfigurationError:
            raise
        except ValidationError as e:
            raise ConfigurationError(f"invalid recommender configuration: {e}") from e


class RandomSettings(BaseModel):
    """
    Random number generator configuration.
    """

    seed: int | None = None
    """
    The root RNG seed.
    """


class EngineSettings(BaseModel):
    """
    Settings passed through to the execution substrate.
    """

    partitions: PositiveInt | None = None
    """
    Number of map partitions (``None`` lets the substrate decide).
    """
    map_java_opts: str | None = None
    """
    JVM options for map tasks on a Hadoop-style substrate; the ``-Xmx`` heap
    size is used to size sort buffers.
    """
    child_java_opts: str | None = None
    """
    JVM options for all tasks; used when :attr:`map_java_opts` is unset.
    """


class DistRecSettings(BaseSettings, extra="allow"):
    """
    General DistRec settings, loaded from the environment (``DR_`` prefix,
    ``__`` as the nesting delimiter) and optionally from ``distrec.toml``.
    """

    model_config = SettingsConfigDict(
        nested_model_default_partial_update=True, env_prefix="DR_", env_nested_delimiter="__"
    )

    random: RandomSettings = RandomSettings()
    engine: EngineSettings = EngineSettings()

    def engine_conf(self) -> dict[str, Any]:
        """
        Get the substrate configuration entries derived from these settings.
        """
        conf: dict[str, Any] = {}
        if self.engine.map_java_opts:
            conf["mapred.map.child.java.opts"] = self.engine.map_java_opts
        if self.engine.child_java_opts:
            conf["mapred.child.java.opts"] = self.engine.child_java_opts
        return conf


def distrec_settings() -> DistRecSettings:
    """
    Get the active settings, or defaults if :func:`configure` was never called.
    """
    if _settings is None:
        return DistRecSettings()
    return _settings


def configure(cfg_dir: Path | None = None, *, _set_global: bool = True) -> DistRecSettings:
    """
    Load settings from the environment and ``distrec.toml`` (in ``cfg_dir`` or
    the current directory), and seed the global RNG if a seed is given.
    """
    global _settings

    if _settings is not None and _set_global:
        warnings.warn("DistRec already configured, overwriting configuration")

    toml_file = cfg_dir / "distrec.toml" if cfg_dir is not None else Path("distrec.toml")

    class DistRecFileSettings(DistRecSettings):
        @classmethod
        def settings_customise_sources(
            cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
        ):
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                file_secret_settings,
                TomlConfigSettingsSource(settings_cls, toml_file),
            )

    settings = DistRecFileSettings()
    _log.debug("loaded settings", file=str(toml_file), seed=settings.random.seed)
    if _set_global:
        _settings = settings
        if settings.random.seed is not None:
            init_global_rng(settings.random.seed)

    return settings
