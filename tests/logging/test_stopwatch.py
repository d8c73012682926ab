# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

import re
import time

from pytest import mark

from distrec.logging import Stopwatch, friendly_duration


def test_stopwatch_instant():
    w = Stopwatch()
    assert w.elapsed() > 0


def test_stopwatch_stop():
    w = Stopwatch()
    time.sleep(0.1)
    e = w.stop()
    time.sleep(0.1)
    assert e >= 0.09
    assert w.elapsed() == e
    assert "stopped" in repr(w)


def test_stopwatch_str():
    w = Stopwatch()
    s = str(w)
    assert s.endswith("ms")


def test_stopwatch_minutes():
    w = Stopwatch()
    w.stop()
    assert w.stop_time is not None
    w.start_time = w.stop_time - 62
    s = str(w)
    p = re.compile(r"1m2.\d\ds")
    assert p.match(s)


def test_stopwatch_hours():
    w = Stopwatch()
    w.stop()
    assert w.stop_time is not None
    w.start_time = w.stop_time - 3663
    s = str(w)
    p = re.compile(r"1h1m3.\d\ds")
    assert p.match(s)


@mark.parametrize("secs,text", [(0.25, "250ms"), (1.5, "1.50s"), (59.0, "59.00s")])
def test_friendly_duration(secs, text):
    assert friendly_duration(secs) == text
