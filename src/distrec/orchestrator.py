# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Sequencing of the recommender pipeline phases.
"""

# pyright: basic
from __future__ import annotations

import re
from enum import IntEnum
from os import PathLike
from typing import Any, Mapping

import numpy as np
import pandas as pd

from distrec.config import DistRecSettings, RecommenderConfig, distrec_settings
from distrec.data import ArtifactStore
from distrec.diagnostics import ConfigurationError, PhaseFailure
from distrec.logging import Stopwatch, get_logger
from distrec.stages import params
from distrec.stages.multiply import aggregate_job, partial_multiply_job
from distrec.stages.prepare import (
    encode_preferences,
    load_item_ids,
    load_preferences,
    rating_matrix_job,
    store_preferences,
    user_vectors_job,
)
from distrec.stages.recommend import recommend_job, recommendations_frame, save_recommendations
from distrec.stages.rowsim import RowSimilarityJob
from distrec.substrate import JobResult, JobSpec, LocalSubstrate, Substrate

_log = get_logger(__name__)

PREFERENCES = "prepare/preferences"
USER_VECTORS = "prepare/user-vectors"
RATING_MATRIX = "prepare/rating-matrix"
NUM_USERS = "prepare/num-users"
NUM_ITEMS = "prepare/num-items"
USER_INDEX = "prepare/user"
ITEM_INDEX = "prepare/item"
SIMILARITY_MATRIX = "similarity/matrix"
PARTIAL_MULTIPLY = "multiply/joined"
AGGREGATED = "aggregate/scores"
RECOMMENDATIONS = "recommend/items"

DEFAULT_HEAP_MB = 512
MAX_SORT_MB = 1024
TASK_TIMEOUT_MS = 60 * 60 * 1000
_HEAP_RE = re.compile(r"-Xmx([0-9]+)([mMgG])")


class Phase(IntEnum):
    """
    The pipeline phases, in execution order.
    """

    PREPARE = 0
    SIMILARITY = 1
    PARTIAL_MULTIPLY = 2
    AGGREGATE = 3
    RECOMMEND = 4


def io_sort_settings(conf: Mapping[str, Any]) -> dict[str, int]:
    """
    Compute sort and shuffle settings for jobs with a large merge fan-in.

    The sort buffer is half the task heap (parsed from the ``-Xmx`` option in
    the map or general task JVM options, assumed 512 MB if absent), capped at
    1024 MB.  The task timeout is raised to an hour because long merges do
    not report progress.
    """
    opts = conf.get("mapred.map.child.java.opts")
    if opts is None:
        opts = conf.get("mapred.child.java.opts")

    heap = DEFAULT_HEAP_MB
    if opts is not None:
        m = _HEAP_RE.search(opts)
        if m:
            heap = int(m.group(1))
            if m.group(2).lower() == "g":
                heap *= 1024

    return {
        "io.sort.factor": 100,
        "io.sort.mb": min(heap // 2, MAX_SORT_MB),
        "mapred.task.timeout": TASK_TIMEOUT_MS,
    }


def count_entities(store: ArtifactStore) -> tuple[int, int]:
    """
    Count the users and the distinct items in the stored user vectors.
    """
    n_users = store.count_records(USER_VECTORS)
    items = [v.indices for _u, v in store.read(USER_VECTORS)]
    n_items = len(np.unique(np.concatenate(items))) if items else 0
    return n_users, n_items


class PipelineOrchestrator:
    """
    Run the recommender pipeline phases in order on a substrate.

    Phases before ``config.start_phase`` and after ``config.end_phase`` are
    skipped; skipped phases must have left their outputs in the substrate's
    store.  If a phase fails, no later phase runs and :class:`PhaseFailure`
    is raised.

    Args:
        config:
            The recommender configuration (or a mapping to validate).
        substrate:
            The execution substrate.  Defaults to a :class:`LocalSubstrate`.
        settings:
            General settings.  Defaults to the configured settings.

    Raises:
        ConfigurationError: if the configuration is invalid.
    """

    config: RecommenderConfig
    substrate: Substrate
    settings: DistRecSettings
    results: list[JobResult]
    entity_counts: tuple[int, int] | None
    "The user and item counts used by the similarity phase."

    def __init__(
        self,
        config: RecommenderConfig | Mapping[str, Any],
        substrate: Substrate | None = None,
        settings: DistRecSettings | None = None,
    ):
        if not isinstance(config, RecommenderConfig):
            config = RecommenderConfig.load(config)
        self.config = config
        self.settings = settings if settings is not None else distrec_settings()
        if substrate is None:
            substrate = LocalSubstrate(partitions=self.settings.engine.partitions)
        self.substrate = substrate
        self.results = []
        self.entity_counts = None
        self.validate()

    @property
    def store(self) -> ArtifactStore:
        return self.substrate.store

    def validate(self):
        """
        Check the configuration before any data is processed.
        """
        cfg = self.config
        if cfg.start_phase > max(Phase):
            raise ConfigurationError(f"start phase {cfg.start_phase} is past the last phase")
        if cfg.items_file is not None and not cfg.items_file.exists():
            raise ConfigurationError(f"items file {cfg.items_file} does not exist")

    def phases(self) -> list[Phase]:
        "Get the phases that this orchestrator will run."
        end = self.config.end_phase if self.config.end_phase is not None else max(Phase)
        return [p for p in Phase if self.config.start_phase <= p <= end]

    def run(self, preferences: pd.DataFrame | str | PathLike[str] | None = None) -> list[JobResult]:
        """
        Run the selected phases.

        Args:
            preferences:
                The input preferences (see
                :func:`~distrec.stages.prepare.load_preferences`); required
                when the preparation phase runs.

        Returns:
            The results of the jobs that ran.

        Raises:
            PhaseFailure: if a phase fails.
        """
        selected = self.phases()
        log = _log.bind(measure=self.config.similarity.value, item_based=self.config.item_based)
        log.info("running phases %s", ", ".join(p.name for p in selected))
        timer = Stopwatch()

        n_users = n_items = None
        for phase in Phase:
            if phase not in selected:
                log.debug("skipping phase %s", phase.name)
                continue

            ptime = Stopwatch()
            match phase:
                case Phase.PREPARE:
                    n_users, n_items = self._prepare(preferences)
                case Phase.SIMILARITY:
                    if n_users is None or n_items is None:
                        n_users, n_items = count_entities(self.store)
                        log.info("recomputed entity counts", n_users=n_users, n_items=n_items)
                    self.entity_counts = (n_users, n_items)
                    self._similarity(n_users, n_items)
                case Phase.PARTIAL_MULTIPLY:
                    self._partial_multiply()
                case Phase.AGGREGATE:
                    self._aggregate()
                case Phase.RECOMMEND:
                    self._recommend()
            log.info("[%s] finished phase %s", ptime, phase.name)

        log.info("[%s] pipeline finished", timer)
        return self.results

    def _run_jobs(self, phase: Phase, jobs: list[JobSpec]) -> list[JobResult]:
        results = self.substrate.run_all(jobs)
        self.results.extend(results)
        if not results:
            return results
        last = results[-1]
        if not last.succeeded:
            _log.error("phase %s failed", phase.name, job=last.job)
            raise PhaseFailure(phase.name, last.job) from last.error
        return results

    def _base_conf(self) -> dict[str, Any]:
        cfg = self.config
        conf = self.settings.engine_conf()
        conf.update(
            {
                params.ITEM_BASED: cfg.item_based,
                params.BOOLEAN_DATA: cfg.boolean_data,
                params.SEED: cfg.seed,
            }
        )
        return conf

    def _prepare(self, preferences) -> tuple[int, int]:
        cfg = self.config
        if preferences is None:
            raise ConfigurationError("the preparation phase requires input preferences")

        prefs = load_preferences(preferences)
        coded, users, items = encode_preferences(prefs, cfg.encode_ids, cfg.boolean_data)
        if users is not None and items is not None:
            self.store.write_vocab(USER_INDEX, users)
            self.store.write_vocab(ITEM_INDEX, items)
        store_preferences(self.store, PREFERENCES, coded)

        conf = self._base_conf()
        conf[params.MIN_PREFS] = cfg.min_prefs_per_user
        conf[params.MAX_PREFS] = cfg.max_prefs_per_user
        results = self._run_jobs(
            Phase.PREPARE,
            [
                user_vectors_job(PREFERENCES, USER_VECTORS, conf),
                rating_matrix_job(USER_VECTORS, RATING_MATRIX, conf),
            ],
        )

        n_users = results[0].counters.get(params.USERS)
        _n, n_items = count_entities(self.store)
        self.store.write_scalar(NUM_USERS, n_users)
        self.store.write_scalar(NUM_ITEMS, n_items)
        _log.info("prepared preference matrix", n_users=n_users, n_items=n_items)
        return n_users, n_items

    def _similarity(self, n_users: int, n_items: int):
        cfg = self.config
        job = RowSimilarityJob(
            cfg.similarity,
            n_columns=n_users if cfg.item_based else n_items,
            max_similarities_per_row=cfg.max_similarities_per_row,
            threshold=cfg.threshold,
            exclude_self_similarity=cfg.exclude_self_similarity,
            transpose=cfg.item_based,
        )
        self._run_jobs(Phase.SIMILARITY, job.jobs(RATING_MATRIX, SIMILARITY_MATRIX))

    def _partial_multiply(self):
        conf = self._base_conf()
        conf[params.MAX_PREFS_CONSIDERED] = self.config.max_prefs_per_user_considered
        self._run_jobs(
            Phase.PARTIAL_MULTIPLY,
            [partial_multiply_job(SIMILARITY_MATRIX, USER_VECTORS, PARTIAL_MULTIPLY, conf)],
        )

    def _aggregate(self):
        conf = self._base_conf()
        conf.update(io_sort_settings(conf))
        self._run_jobs(Phase.AGGREGATE, [aggregate_job(PARTIAL_MULTIPLY, AGGREGATED, conf)])

    def _recommend(self):
        cfg = self.config
        conf = self._base_conf()
        conf.update(io_sort_settings(conf))
        conf[params.NUM_RECOMMENDATIONS] = cfg.num_recommendations

        items = None
        if cfg.encode_ids and self.store.has_vocab(ITEM_INDEX):
            conf[params.ITEM_INDEX] = ITEM_INDEX
            items = self.store.read_vocab(ITEM_INDEX)
        if cfg.items_file is not None:
            conf[params.ALLOWED_ITEMS] = load_item_ids(cfg.items_file, items)

        self._run_jobs(
            Phase.RECOMMEND, [recommend_job(AGGREGATED, USER_VECTORS, RECOMMENDATIONS, conf)]
        )

    def _user_index(self):
        if self.config.encode_ids and self.store.has_vocab(USER_INDEX):
            return self.store.read_vocab(USER_INDEX)
        return None

    def recommendations(self) -> pd.DataFrame:
        """
        Get the recommendations as a data frame (see
        :func:`~distrec.stages.recommend.recommendations_frame`).
        """
        return recommendations_frame(self.store.read(RECOMMENDATIONS), self._user_index())

    def save(self, path: str | PathLike[str]) -> int:
        """
        Save the recommendations to a text or Parquet file.
        """
        return save_recommendations(self.store, RECOMMENDATIONS, path, self._user_index())
