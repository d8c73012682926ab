# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

import numpy as np

from distrec.random import derived_rng, global_seed, init_global_rng, make_seed, random_generator


def test_generator():
    rng = random_generator()
    assert isinstance(rng, np.random.Generator)


def test_generator_seed():
    rng = random_generator(42)
    assert isinstance(rng, np.random.Generator)


def test_generator_seed_seq():
    seq = np.random.SeedSequence(42)
    rng = random_generator(seq)
    assert isinstance(rng, np.random.Generator)


def test_generator_passthrough():
    rng1 = random_generator()
    rng = random_generator(rng1)
    assert rng is rng1


def test_initialize():
    init_global_rng(42)
    seed = global_seed()
    assert seed is not None
    assert seed.entropy == make_seed(42).entropy


def test_string_seeds():
    a = make_seed(42, "prepare", 7)
    b = make_seed(42, "prepare", 7)
    c = make_seed(42, "multiply", 7)
    assert a.entropy == b.entropy
    assert a.entropy != c.entropy


def test_negative_key():
    seed = make_seed(-1)
    assert all(e >= 0 for e in np.atleast_1d(seed.entropy))


def test_derived_deterministic():
    x = derived_rng(20, "prepare", 3).integers(0, 1_000_000, 5)
    y = derived_rng(20, "prepare", 3).integers(0, 1_000_000, 5)
    z = derived_rng(20, "prepare", 4).integers(0, 1_000_000, 5)
    assert np.all(x == y)
    assert not np.all(x == z)


def test_derived_global_seed():
    init_global_rng(99)
    x = derived_rng(None, "multiply", 1).random(3)
    y = derived_rng(99, "multiply", 1).random(3)
    assert np.all(x == y)
