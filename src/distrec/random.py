# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Seed management for sampling and shuffling.

Sampling in the pipeline must not depend on how records are partitioned, so
samplers derive a fresh generator from the run seed and the record key instead
of drawing from a shared generator.
"""

# pyright: strict
from __future__ import annotations

from hashlib import md5
from typing import Any, Sequence, TypeAlias

import numpy as np
from numpy.random import Generator, SeedSequence, default_rng

SeedLike: TypeAlias = int | Sequence[int] | np.random.SeedSequence
RNGInput: TypeAlias = SeedLike | np.random.Generator | None

_global_seed: SeedSequence | None = None


def init_global_rng(seed: SeedLike | None):
    """
    Set the global root seed, used when a job does not specify its own.
    """
    global _global_seed
    _global_seed = None if seed is None else make_seed(seed)


def global_seed() -> SeedSequence | None:
    "Get the global root seed, if one has been configured."
    return _global_seed


def random_generator(seed: RNGInput = None) -> Generator:
    """
    Create a random generator with the given seed, falling back to the global
    seed, and finally to fresh OS entropy.
    """
    if isinstance(seed, Generator):
        return seed
    if seed is None and _global_seed is not None:
        return default_rng(_global_seed)
    return default_rng(seed)


def derived_rng(seed: SeedLike | None, *keys: int | str) -> Generator:
    """
    Derive a generator that depends only on a root seed and the given keys.

    If ``seed`` is ``None``, the global seed is used; if that is also unset,
    the generator is nondeterministic.
    """
    if seed is None:
        seed = _global_seed
    if seed is None:
        return default_rng()
    return default_rng(make_seed(seed, *keys))


def make_seed(*keys: SeedSequence | int | str | bytes | Sequence[int] | np.integer[Any] | None) -> SeedSequence:
    """
    Make an RNG seed from input keys, allowing strings as seed material.
    """
    seed: list[int] = []
    for key in keys:
        if key is None:
            continue
        elif isinstance(key, SeedSequence):
            ent = key.entropy
            if ent is None:
                continue
            elif isinstance(ent, int):
                seed.append(ent)
            else:
                seed += ent
        elif isinstance(key, np.integer):
            seed.append(key.item())
        elif isinstance(key, int):
            # seed sequences reject negative entropy
            seed.append(key if key >= 0 else (1 << 64) + key)
        elif isinstance(key, str):
            seed.append(_bytes_seed(key.encode("utf8")))
        elif isinstance(key, bytes):
            seed.append(_bytes_seed(key))
        elif isinstance(key, Sequence):  # type: ignore
            seed += key
        else:  # pragma: nocover
            raise TypeError(f"invalid key input: {key}")

    return SeedSequence(seed)


def _bytes_seed(data: bytes) -> int:
    h = md5(data)
    return int.from_bytes(h.digest(), "little")
