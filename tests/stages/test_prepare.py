# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Tests for preference loading and matrix preparation.
"""

import numpy as np
import pandas as pd

from pytest import raises, warns

from distrec.data import Vocabulary
from distrec.diagnostics import DataShapeViolation, DataWarning
from distrec.stages import params
from distrec.stages.prepare import (
    encode_preferences,
    load_item_ids,
    load_preferences,
    rating_matrix_job,
    store_preferences,
    user_vectors_job,
    validate_codes,
)
from distrec.substrate import LocalSubstrate


def test_load_frame(toy_prefs):
    prefs = load_preferences(toy_prefs.rename(columns={"user": "user_id"}))
    assert list(prefs.columns) == ["user", "item", "rating"]
    assert len(prefs) == 6
    assert np.all(prefs["rating"] == 1.0)


def test_load_csv(tmp_path):
    file = tmp_path / "prefs.csv"
    file.write_text("1,10,3.5\n1,11,2\n2,10,5\n")
    prefs = load_preferences(file)
    assert prefs["user"].tolist() == [1, 1, 2]
    assert prefs["item"].tolist() == [10, 11, 10]
    assert prefs["rating"].tolist() == [3.5, 2.0, 5.0]


def test_load_tsv_without_ratings(tmp_path):
    file = tmp_path / "prefs.tsv"
    file.write_text("a\tx\nb\ty\n")
    prefs = load_preferences(file)
    assert prefs["user"].tolist() == ["a", "b"]
    assert prefs["rating"].tolist() == [1.0, 1.0]


def test_load_parquet(tmp_path, toy_prefs):
    file = tmp_path / "prefs.parquet"
    toy_prefs.assign(rating=2.0).to_parquet(file)
    prefs = load_preferences(file)
    assert np.all(prefs["rating"] == 2.0)


def test_load_one_column(tmp_path):
    file = tmp_path / "prefs.csv"
    file.write_text("1\n2\n")
    with raises(DataShapeViolation):
        load_preferences(file)


def test_load_missing_column():
    with raises(DataShapeViolation, match="item"):
        load_preferences(pd.DataFrame({"user": [1], "thing": [2]}))


def test_encode(toy_prefs):
    coded, users, items = encode_preferences(load_preferences(toy_prefs), True, False)
    assert users is not None and items is not None
    assert len(users) == 3
    assert len(items) == 4
    assert coded["user"].tolist() == [0, 0, 1, 1, 2, 2]
    assert coded["item"].tolist() == [0, 1, 1, 2, 2, 3]


def test_encode_duplicates():
    prefs = pd.DataFrame({"user": [1, 1, 2], "item": [5, 5, 5], "rating": [1.0, 4.0, 2.0]})
    with warns(DataWarning, match="duplicate"):
        coded, _u, _i = encode_preferences(prefs, False, False)
    assert len(coded) == 2
    assert coded.set_index("user").loc[1, "rating"] == 4.0


def test_encode_boolean():
    prefs = pd.DataFrame({"user": [1, 2], "item": [5, 6], "rating": [3.0, 4.0]})
    coded, _u, _i = encode_preferences(prefs, False, True)
    assert coded["rating"].tolist() == [1.0, 1.0]


def test_validate_codes():
    assert validate_codes(pd.Series([3, 0, 7]), "user").tolist() == [3, 0, 7]
    with raises(DataShapeViolation, match="not integers"):
        validate_codes(pd.Series(["a"]), "user")
    with raises(DataShapeViolation, match="out of range"):
        validate_codes(pd.Series([-1, 2]), "item")


def prepare(sub: LocalSubstrate, prefs: pd.DataFrame, **conf):
    coded, _u, _i = encode_preferences(load_preferences(prefs), True, False)
    store_preferences(sub.store, "prefs", coded)
    results = sub.run_all(
        [user_vectors_job("prefs", "users", conf), rating_matrix_job("users", "matrix", conf)]
    )
    assert all(results)
    return results


def test_user_vectors(substrate, toy_prefs):
    results = prepare(substrate, toy_prefs)
    assert results[0].counters.get(params.USERS) == 3
    users = {k: v.to_dict() for k, v in substrate.store.read("users")}
    assert users == {0: {0: 1.0, 1: 1.0}, 1: {1: 1.0, 2: 1.0}, 2: {2: 1.0, 3: 1.0}}


def test_min_prefs(substrate):
    prefs = pd.DataFrame({"user": [1, 1, 2], "item": [5, 6, 5]})
    results = prepare(substrate, prefs, **{params.MIN_PREFS: 2})
    assert results[0].counters.get(params.USERS) == 1
    assert [k for k, _v in substrate.store.read("users")] == [0]


def test_item_rating_matrix(substrate, toy_prefs):
    prepare(substrate, toy_prefs, **{params.ITEM_BASED: True})
    rows = {k: v.to_dict() for k, v in substrate.store.read("matrix")}
    assert rows == {0: {0: 1.0}, 1: {0: 1.0, 1: 1.0}, 2: {1: 1.0, 2: 1.0}, 3: {2: 1.0}}


def test_user_rating_matrix(substrate, toy_prefs):
    prepare(substrate, toy_prefs, **{params.ITEM_BASED: False})
    rows = {k: v.to_dict() for k, v in substrate.store.read("matrix")}
    assert rows == {k: v.to_dict() for k, v in substrate.store.read("users")}


def test_sample_rating_matrix(substrate, toy_prefs):
    results = prepare(substrate, toy_prefs, **{params.MAX_PREFS: 1, params.SEED: 1})
    assert results[1].counters.get(params.SAMPLED) == 3
    rows = dict(substrate.store.read("matrix"))
    assert sum(v.nnz for v in rows.values()) == 3


def test_item_ids(tmp_path):
    file = tmp_path / "items.txt"
    file.write_text("c\na\n\nzz\n")
    codes = load_item_ids(file, Vocabulary(["a", "b", "c"], "item"))
    assert codes.tolist() == [0, 2]


def test_item_ids_int_vocab(tmp_path):
    file = tmp_path / "items.txt"
    file.write_text("30\n10\n")
    codes = load_item_ids(file, Vocabulary([10, 20, 30], "item"))
    assert codes.tolist() == [0, 2]


def test_item_codes(tmp_path):
    file = tmp_path / "items.txt"
    file.write_text("5\n2\n5\n")
    assert load_item_ids(file, None).tolist() == [2, 5]

    file.write_text("x\n")
    with raises(DataShapeViolation):
        load_item_ids(file, None)
