# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
End-to-end tests of the recommender pipeline.
"""

import math

import pandas as pd

from pytest import approx, mark, raises

from distrec.config import RecommenderConfig
from distrec.data import ParquetStore
from distrec.diagnostics import ConfigurationError, PhaseFailure
from distrec.orchestrator import (
    AGGREGATED,
    ITEM_INDEX,
    PARTIAL_MULTIPLY,
    RATING_MATRIX,
    SIMILARITY_MATRIX,
    USER_VECTORS,
    Phase,
    PipelineOrchestrator,
    io_sort_settings,
)
from distrec.substrate import Counters, JobResult, JobSpec, LocalSubstrate


class FailingSubstrate(LocalSubstrate):
    "Substrate that reports failure for one named job."

    def __init__(self, fail: str, **kwargs):
        super().__init__(**kwargs)
        self.fail = fail

    def run(self, job: JobSpec) -> JobResult:
        if job.name == self.fail:
            return JobResult(job.name, False, Counters(), error=RuntimeError("node lost"))
        return super().run(job)


class RecordingSubstrate(LocalSubstrate):
    "Substrate that remembers the configuration of each job it runs."

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.confs = {}

    def run(self, job: JobSpec) -> JobResult:
        self.confs[job.name] = dict(job.conf)
        return super().run(job)


def user_recs(frame: pd.DataFrame, user) -> list:
    return frame[frame["user"] == user].sort_values("rank")["item"].tolist()


def test_toy_item_based(substrate, toy_prefs):
    orch = PipelineOrchestrator({"similarity": "cosine"}, substrate)
    results = orch.run(toy_prefs)
    assert all(results)
    assert orch.entity_counts == (3, 4)

    recs = orch.recommendations()
    assert user_recs(recs, "u1") == ["i3"]
    assert user_recs(recs, "u2") == ["i1", "i4"]
    assert user_recs(recs, "u3") == ["i2"]
    assert recs["score"].tolist() == approx([1.0, 1.0, 1.0, 1.0])


def test_toy_similarity_matrix(substrate, toy_prefs):
    orch = PipelineOrchestrator(
        {
            "similarity": "cosine",
            "boolean_data": True,
            "max_similarities_per_row": 4,
            "num_recommendations": 2,
        },
        substrate,
    )
    orch.run(toy_prefs)

    items = substrate.store.read_vocab(ITEM_INDEX)
    sims = {
        items.term(k): {items.term(j): x for j, x in v}
        for k, v in substrate.store.read(SIMILARITY_MATRIX)
    }
    assert sims["i2"] == approx({"i1": 1 / math.sqrt(2), "i3": 0.5})
    assert "i4" not in sims["i1"]

    recs = orch.recommendations()
    u1 = user_recs(recs, "u1")
    assert u1[0] == "i3"
    assert "i1" not in u1 and "i2" not in u1


def test_toy_boolean(substrate, toy_prefs):
    orch = PipelineOrchestrator(
        RecommenderConfig(similarity="cosine", boolean_data=True), substrate
    )
    orch.run(toy_prefs)
    recs = orch.recommendations()
    u1 = recs[recs["user"] == "u1"]
    assert u1["item"].tolist() == ["i3"]
    assert u1["score"].tolist() == approx([0.5])


def test_toy_user_based(substrate, toy_prefs):
    orch = PipelineOrchestrator({"similarity": "cosine", "item_based": False}, substrate)
    orch.run(toy_prefs)
    recs = orch.recommendations()
    assert user_recs(recs, "u1") == ["i3"]
    assert set(user_recs(recs, "u2")) == {"i1", "i4"}


def test_num_recommendations(substrate, toy_prefs):
    orch = PipelineOrchestrator({"similarity": "cooccurrence", "n": 1}, substrate)
    orch.run(toy_prefs)
    recs = orch.recommendations()
    assert recs.groupby("user")["item"].count().max() == 1


def test_items_file(substrate, toy_prefs, tmp_path):
    file = tmp_path / "items.txt"
    file.write_text("i4\nunknown\n")
    orch = PipelineOrchestrator({"similarity": "cosine", "items_file": file}, substrate)
    orch.run(toy_prefs)
    recs = orch.recommendations()
    assert recs["item"].unique().tolist() == ["i4"]
    assert recs["user"].tolist() == ["u2"]


def test_integer_ids(substrate):
    prefs = pd.DataFrame({"user": [0, 0, 1, 1, 2, 2], "item": [0, 1, 1, 2, 2, 3]})
    orch = PipelineOrchestrator({"similarity": "cosine", "encode_ids": False}, substrate)
    orch.run(prefs)
    recs = orch.recommendations()
    assert user_recs(recs, 0) == [2]


def test_save_text(substrate, toy_prefs, tmp_path):
    orch = PipelineOrchestrator({"similarity": "cosine"}, substrate)
    orch.run(toy_prefs)
    assert orch.save(tmp_path / "recs.txt") == 3
    lines = (tmp_path / "recs.txt").read_text().splitlines()
    assert lines[0] == "u1\t[i3:1]"


def test_resume(toy_prefs, tmp_path):
    store = ParquetStore(tmp_path / "work")
    first = PipelineOrchestrator(
        {"similarity": "cosine", "end_phase": 1}, LocalSubstrate(store, partitions=2)
    )
    first.run(toy_prefs)
    assert first.phases() == [Phase.PREPARE, Phase.SIMILARITY]
    assert store.exists(SIMILARITY_MATRIX)
    assert not store.exists(PARTIAL_MULTIPLY)

    resumed = PipelineOrchestrator(
        {"similarity": "cosine", "start_phase": 1}, LocalSubstrate(ParquetStore(tmp_path / "work"))
    )
    resumed.run()
    assert resumed.entity_counts == first.entity_counts
    assert user_recs(resumed.recommendations(), "u1") == ["i3"]


def test_phase_failure(toy_prefs):
    substrate = FailingSubstrate("cooccurrence")
    orch = PipelineOrchestrator({"similarity": "cosine"}, substrate)
    with raises(PhaseFailure) as exc:
        orch.run(toy_prefs)

    assert exc.value.phase == "SIMILARITY"
    assert exc.value.job == "cooccurrence"
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert orch.results[-1].job == "cooccurrence"
    assert not substrate.store.exists(SIMILARITY_MATRIX)
    assert not substrate.store.exists(AGGREGATED)
    assert substrate.store.exists(USER_VECTORS)
    assert substrate.store.exists(RATING_MATRIX)


def test_recommend_failure_keeps_scores(toy_prefs):
    substrate = FailingSubstrate("recommend")
    orch = PipelineOrchestrator({"similarity": "cosine"}, substrate)
    with raises(PhaseFailure) as exc:
        orch.run(toy_prefs)

    assert exc.value.phase == "RECOMMEND"
    assert substrate.store.exists(USER_VECTORS)
    assert substrate.store.exists(RATING_MATRIX)
    assert substrate.store.exists(SIMILARITY_MATRIX)
    assert substrate.store.exists(AGGREGATED)


def test_missing_preferences(substrate):
    orch = PipelineOrchestrator({"similarity": "cosine"}, substrate)
    with raises(ConfigurationError):
        orch.run()


def test_bad_start_phase():
    with raises(ConfigurationError):
        PipelineOrchestrator({"similarity": "cosine", "start_phase": 5})


def test_missing_items_file(tmp_path):
    with raises(ConfigurationError, match="items file"):
        PipelineOrchestrator({"similarity": "cosine", "items_file": tmp_path / "nope.txt"})


def test_bad_similarity():
    with raises(ConfigurationError):
        PipelineOrchestrator({"similarity": "nonsense"})


@mark.parametrize(
    "conf,sort_mb",
    [
        ({}, 256),
        ({"mapred.child.java.opts": "-Xmx2g"}, 1024),
        ({"mapred.child.java.opts": "-server -Xmx1000m"}, 500),
        ({"mapred.child.java.opts": "-Xmx4g", "mapred.map.child.java.opts": "-Xmx300m"}, 150),
        ({"mapred.child.java.opts": "-verbose"}, 256),
    ],
)
def test_io_sort_settings(conf, sort_mb):
    settings = io_sort_settings(conf)
    assert settings["io.sort.mb"] == sort_mb
    assert settings["io.sort.factor"] == 100
    assert settings["mapred.task.timeout"] == 3_600_000


def test_io_sort_passed_to_jobs(toy_prefs):
    substrate = RecordingSubstrate(partitions=2)
    orch = PipelineOrchestrator({"similarity": "cosine"}, substrate)
    orch.run(toy_prefs)

    for job in ["aggregate", "recommend"]:
        conf = substrate.confs[job]
        assert conf["io.sort.mb"] == io_sort_settings(conf)["io.sort.mb"]
        assert conf["io.sort.factor"] == 100
        assert conf["mapred.task.timeout"] == 3_600_000

    multiply = substrate.confs["partial-multiply"]
    assert "io.sort.mb" not in multiply
    assert "io.sort.factor" not in multiply
    assert "mapred.task.timeout" not in multiply
