# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def distrec_version() -> str:
    try:
        return version("distrec")
    except PackageNotFoundError:  # pragma: nocover
        return "UNKNOWN"
