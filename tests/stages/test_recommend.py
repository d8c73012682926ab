# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Tests for recommendation extraction and output.
"""

from io import StringIO

import numpy as np
import pandas as pd

from pytest import approx

from distrec.data import ArtifactStore, RecommendedItems, SparseVector, Vocabulary
from distrec.stages import params
from distrec.stages.recommend import (
    recommend_job,
    recommendations_frame,
    save_recommendations,
    write_recommendations_text,
)
from distrec.substrate import LocalSubstrate


def run_recs(sub: LocalSubstrate, scores, users, **conf) -> dict:
    sub.store.write("scores", [(k, SparseVector.from_dict(v)) for k, v in scores.items()])
    sub.store.write("users", [(k, SparseVector.from_dict(v)) for k, v in users.items()])
    res = sub.run(recommend_job("scores", "users", "recs", {params.ITEM_BASED: True} | conf))
    assert res, res.error
    return dict(sub.store.read("recs"))


def test_excludes_known(substrate):
    recs = run_recs(
        substrate,
        {0: {1: 2.0, 2: 3.0, 3: 1.0}},
        {0: {2: 5.0}},
        **{params.NUM_RECOMMENDATIONS: 2},
    )
    assert recs[0].items == [1, 3]
    assert recs[0].scores.tolist() == [2.0, 1.0]


def test_fewer_than_n(substrate):
    recs = run_recs(substrate, {0: {1: 2.0, 2: 3.0}}, {0: {5: 1.0}})
    assert recs[0].items == [2, 1]


def test_ties_by_index(substrate):
    recs = run_recs(substrate, {0: {4: 1.0, 1: 1.0, 3: 1.0, 7: 2.0}}, {0: {}})
    assert recs[0].items == [7, 1, 3, 4]


def test_allow_list(substrate):
    recs = run_recs(
        substrate,
        {0: {1: 2.0, 2: 3.0, 3: 1.0}, 1: {2: 1.0}},
        {0: {}, 1: {}},
        **{params.ALLOWED_ITEMS: np.array([3, 9])},
    )
    assert recs[0].items == [3]
    # user 1 has nothing left
    assert 1 not in recs


def test_no_scores(substrate):
    recs = run_recs(substrate, {0: {1: 1.0}}, {0: {1: 1.0}, 2: {1: 1.0}})
    assert recs == {}


def test_user_based(substrate):
    recs = run_recs(
        substrate,
        {5: {0: 2.0, 1: 1.0}, 6: {0: 1.0}},
        {0: {}, 1: {6: 1.0}},
        **{params.ITEM_BASED: False},
    )
    assert recs[0].items == [5, 6]
    assert recs[0].scores.tolist() == approx([2.0, 1.0])
    assert recs[1].items == [5]


def test_item_ids(substrate):
    substrate.store.write_vocab("items", Vocabulary(["a", "b", "c", "d"], "item"))
    recs = run_recs(
        substrate, {0: {1: 2.0, 3: 3.0}}, {0: {}}, **{params.ITEM_INDEX: "items"}
    )
    assert recs[0].items == ["d", "b"]


def sample_records():
    return [
        (1, RecommendedItems(["x"], np.array([0.5]))),
        (0, RecommendedItems(["y", "z"], np.array([2.0, 1.5]))),
    ]


def test_text_output():
    out = StringIO()
    n = write_recommendations_text(sample_records(), out)
    assert n == 2
    assert out.getvalue() == "0\t[y:2,z:1.5]\n1\t[x:0.5]\n"


def test_text_output_user_ids():
    out = StringIO()
    write_recommendations_text(sample_records(), out, Vocabulary(["u1", "u2"], "user"))
    assert out.getvalue().splitlines()[0].startswith("u1\t")


def test_frame():
    frame = recommendations_frame(sample_records())
    assert list(frame.columns) == ["user", "item", "score", "rank"]
    assert frame["user"].tolist() == [0, 0, 1]
    assert frame["item"].tolist() == ["y", "z", "x"]
    assert frame["rank"].tolist() == [1, 2, 1]


def test_empty_frame():
    frame = recommendations_frame([])
    assert len(frame) == 0
    assert list(frame.columns) == ["user", "item", "score", "rank"]


def test_save(tmp_path):
    store = ArtifactStore()
    store.write("recs", sample_records())

    assert save_recommendations(store, "recs", tmp_path / "recs.txt") == 2
    lines = (tmp_path / "recs.txt").read_text().splitlines()
    assert len(lines) == 2

    assert save_recommendations(store, "recs", tmp_path / "recs.parquet") == 2
    frame = pd.read_parquet(tmp_path / "recs.parquet")
    assert len(frame) == 3
    assert frame["score"].tolist() == [2.0, 1.5, 0.5]
