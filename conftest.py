# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University
# Copyright (C) 2023-2026 Drexel University
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

import os
import warnings

import pandas as pd
import structlog
from numpy.random import Generator, default_rng

from hypothesis import settings
from pytest import fixture

from distrec.random import init_global_rng
from distrec.substrate import LocalSubstrate

_log = structlog.stdlib.get_logger("distrec.tests")
RNG_SEED = 42
if "DR_TEST_FREE_RNG" in os.environ:
    warnings.warn("using nondeterministic RNG initialization")
    RNG_SEED = None

structlog.configure(
    [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.MaybeTimeStamper(fmt="iso"),
        structlog.processors.KeyValueRenderer(key_order=["timestamp", "event"]),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


@fixture
def rng() -> Generator:
    if RNG_SEED is None:
        return default_rng()
    else:
        return default_rng(RNG_SEED)


@fixture(autouse=True)
def init_rng(request):
    init_global_rng(RNG_SEED)
    yield
    init_global_rng(None)


@fixture(autouse=True)
def log_test(request):
    try:
        modname = request.module.__name__ if request.module else "<unknown>"
    except Exception:
        modname = "<unknown>"
    funcname = request.function.__name__ if request.function else "<unknown>"
    _log.info("running test %s:%s", modname, funcname)


@fixture
def substrate() -> LocalSubstrate:
    """
    An in-memory substrate with several map partitions and reduce partitions,
    so tests see partition-local state and merging.
    """
    return LocalSubstrate(partitions=3, reduce_partitions=2)


@fixture
def toy_prefs() -> pd.DataFrame:
    """
    Three users with boolean preferences over four items: u1 likes i1 and i2,
    u2 likes i2 and i3, u3 likes i3 and i4.
    """
    return pd.DataFrame(
        {
            "user": ["u1", "u1", "u2", "u2", "u3", "u3"],
            "item": ["i1", "i2", "i2", "i3", "i3", "i4"],
        }
    )


settings.register_profile("default", deadline=1000)
