# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Tests for artifact storage.
"""

import numpy as np

from pytest import fixture, raises

from distrec.data import (
    ArtifactStore,
    ColumnStat,
    ParquetStore,
    PartialScores,
    Preference,
    RecommendedItems,
    ScoresOrPrefs,
    SparseVector,
    StatKey,
    StatKind,
    VectorAndPrefs,
    VectorOrPref,
    Vocabulary,
)


@fixture(params=["memory", "parquet"])
def store(request, tmp_path) -> ArtifactStore:
    if request.param == "memory":
        return ArtifactStore()
    else:
        return ParquetStore(tmp_path / "artifacts")


def test_missing_artifact(store: ArtifactStore):
    assert not store.exists("foo/bar")
    with raises(KeyError):
        store.read("foo/bar")
    with raises(KeyError):
        store.count_records("foo/bar")
    with raises(KeyError):
        store.read_scalar("n")
    with raises(KeyError):
        store.read_vocab("item")


def test_vectors(store: ArtifactStore):
    records = [
        (0, SparseVector.from_dict({1: 0.5, 3: 2.0})),
        (4, SparseVector()),
        (StatKey(StatKind.NORM), ColumnStat("cosine", SparseVector.from_dict({0: 1.0}))),
    ]
    assert store.write("similarity/columns", records) == 3
    assert store.exists("similarity/columns")
    assert store.count_records("similarity/columns") == 3

    back = list(store.read("similarity/columns"))
    assert len(back) == 3
    assert back[0][0] == 0
    assert back[0][1] == records[0][1]
    assert back[1][1].nnz == 0
    assert back[2][0] == StatKey(StatKind.NORM)
    assert back[2][1].measure == "cosine"
    assert back[2][1].vector == records[2][1].vector


def test_tagged_records(store: ArtifactStore):
    vec = SparseVector.from_dict({2: 0.25})
    records = [
        (1, VectorOrPref.of_vector(vec)),
        (1, VectorOrPref.of_pref(9, 4.0)),
        (2, VectorAndPrefs(vec, np.array([3, 4]), np.array([1.0, 5.0]))),
        (3, PartialScores(vec, abs(vec))),
        (3, PartialScores(vec)),
        (5, ScoresOrPrefs(scores=vec)),
        (5, ScoresOrPrefs(known=vec)),
        (6, Preference(6, 2, 3.5)),
    ]
    store.write("mixed", records)
    back = list(store.read("mixed"))

    assert back[0][1].is_vector
    assert back[0][1].vector == vec
    assert back[1][1] == VectorOrPref(None, 9, 4.0)
    assert back[2][1].entities.tolist() == [3, 4]
    assert back[2][1].values.tolist() == [1.0, 5.0]
    assert back[3][1].denominators == vec
    assert back[4][1].denominators is None
    assert back[5][1].known is None
    assert back[6][1].scores is None
    assert back[7][1] == Preference(6, 2, 3.5)


def test_recommended_ids(store: ArtifactStore):
    records = [
        (0, RecommendedItems([10, 20], np.array([0.5, 0.25]))),
        (1, RecommendedItems(["x"], np.array([1.0]))),
    ]
    store.write("recs", records)
    back = dict(store.read("recs"))
    assert back[0].items == [10, 20]
    assert back[0].scores.tolist() == [0.5, 0.25]
    assert back[1].items == ["x"]


def test_scalars_and_vocab(store: ArtifactStore):
    store.write_scalar("prepare/num-users", 17)
    assert store.read_scalar("prepare/num-users") == 17

    vocab = Vocabulary([30, 10, 20], "item")
    assert not store.has_vocab("prepare/item")
    store.write_vocab("prepare/item", vocab)
    assert store.has_vocab("prepare/item")
    assert store.read_vocab("prepare/item") == vocab


def test_delete(store: ArtifactStore):
    store.write("tmp", [(0, SparseVector())])
    store.delete("tmp")
    assert not store.exists("tmp")
    store.delete("tmp")


def test_parquet_persists(tmp_path):
    store = ParquetStore(tmp_path)
    store.write("a/b", [(3, SparseVector.singleton(1, 2.0))])

    reopened = ParquetStore(tmp_path)
    assert reopened.count_records("a/b") == 1
    assert dict(reopened.read("a/b"))[3].to_dict() == {1: 2.0}
