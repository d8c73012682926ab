# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Tests for the Vocabulary class.
"""

import numpy as np
import pandas as pd

import hypothesis.strategies as st
from hypothesis import assume, given
from pytest import raises

from distrec.data import Vocabulary


def id_ints():
    li = np.iinfo(np.int64)
    return st.integers(li.min, li.max)


@given(
    st.one_of(
        st.sets(id_ints()),
        st.sets(st.emails()),
    )
)
def test_create_basic(keys: set[int | str]):
    vocab = Vocabulary(keys, reorder=True)
    assert vocab.size == len(keys)
    assert len(vocab) == len(keys)

    index = vocab.index
    assert all(index.values == sorted(keys))


@given(
    st.one_of(
        st.lists(id_ints()),
        st.lists(st.emails()),
    )
)
def test_create_nonunique(keys: list[int | str]):
    uq = set(keys)
    vocab = Vocabulary(keys, reorder=True)
    assert vocab.size == len(uq)


@given(st.lists(id_ints()), st.sets(id_ints()))
def test_not_equal(keys: list[int], oks: set[int]):
    uq = set(keys)
    assume(oks != uq)

    vocab = Vocabulary(keys, reorder=True)
    v2 = Vocabulary(oks, reorder=True)
    assert v2 != vocab


@given(st.sets(id_ints(), min_size=1))
def test_lookup_round_trip(keys: set[int]):
    vocab = Vocabulary(keys, "item")
    ids = np.array(sorted(keys), dtype=np.int64)
    codes = vocab.numbers(ids)
    assert codes.tolist() == list(range(len(keys)))
    assert np.all(vocab.terms(codes) == ids)

    first = ids[0].item()
    assert vocab.number(first) == 0
    assert vocab.term(0) == first
    assert isinstance(vocab.term(0), int)


def test_missing():
    vocab = Vocabulary(["a", "b", "c"], "user")
    assert vocab.number("z", missing="none") is None
    with raises(KeyError):
        vocab.number("z")

    assert vocab.numbers(["b", "z"], missing="negative").tolist() == [1, -1]
    with raises(KeyError):
        vocab.numbers(["b", "z"])


def test_no_reorder_unique():
    vocab = Vocabulary(["c", "a", "b"], reorder=False)
    assert vocab.number("c") == 0
    with raises(ValueError):
        Vocabulary(["a", "a"], reorder=False)


def test_index_name():
    keys = pd.Index([3, 1, 2], name="original")
    vocab = Vocabulary(keys, "item")
    assert vocab.index.name == "item_id"
    assert keys.name == "original"


def test_frame_round_trip():
    vocab = Vocabulary(["x", "q", "m"], "item")
    frame = vocab.to_frame()
    assert frame.columns.tolist() == ["code", "id"]

    v2 = Vocabulary.from_frame(frame.sample(frac=1.0, random_state=7), "item")
    assert v2 == vocab
    assert v2.ids().tolist() == ["m", "q", "x"]
